"""Document stores addressed by path-like target ids."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from statsbridge.backend import BackendClient

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    async def list_files(self) -> Any: ...

    async def read(self, target_id: str) -> str: ...

    async def create(self, target_id: str, content: str) -> Any: ...

    async def commit_patch(self, target_id: str, ops: Sequence[Sequence[Any]], document: str) -> Any:
        """Persist a patch whose result has already been computed."""
        ...


class LocalDocumentStore:
    """Files under a single root directory.

    File access runs in a worker thread so concurrent dispatches keep going.
    """

    def __init__(self, root: Path):
        self.root = Path(root).expanduser().resolve()

    def resolve(self, target_id: str) -> Path:
        """Map a target id to a path, rejecting anything outside the root."""
        if not target_id:
            raise ValueError("Filename must not be empty")
        path = (self.root / target_id).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"File {target_id} is outside the database directory")
        return path

    def _list_files(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(str(p.relative_to(self.root)) for p in self.root.rglob("*") if p.is_file())

    def _read(self, target_id: str) -> str:
        path = self.resolve(target_id)
        if not path.is_file():
            raise FileNotFoundError(f"File {target_id} does not exist")
        return path.read_text(encoding="utf-8")

    def _create(self, target_id: str, content: str) -> dict:
        path = self.resolve(target_id)
        if not path.parent.is_dir():
            raise ValueError(f"Parent directory of {target_id} does not exist")
        if path.exists():
            raise ValueError(f"File {target_id} already exists")
        path.write_text(content, encoding="utf-8")
        logger.info(f"Created {path}")
        return {"filename": target_id, "created": True}

    def _write(self, target_id: str, document: str) -> dict:
        path = self.resolve(target_id)
        if not path.is_file():
            raise FileNotFoundError(f"File {target_id} does not exist")
        path.write_text(document, encoding="utf-8")
        logger.info(f"Patched {path}")
        return {"filename": target_id, "patched": True}

    async def list_files(self) -> list[str]:
        return await asyncio.to_thread(self._list_files)

    async def read(self, target_id: str) -> str:
        return await asyncio.to_thread(self._read, target_id)

    async def create(self, target_id: str, content: str) -> dict:
        return await asyncio.to_thread(self._create, target_id, content)

    async def commit_patch(self, target_id: str, ops: Sequence[Sequence[Any]], document: str) -> dict:
        return await asyncio.to_thread(self._write, target_id, document)


class HttpDocumentStore:
    """The backend's ``/database`` endpoints; path checks happen server side."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def list_files(self) -> Any:
        return await self.backend.get("/database/get-index")

    async def read(self, target_id: str) -> str:
        return await self.backend.post("/database/read-file", {"filename": target_id}, "text")

    async def create(self, target_id: str, content: str) -> Any:
        return await self.backend.post("/database/create-file", {"filename": target_id, "content": content})

    async def commit_patch(self, target_id: str, ops: Sequence[Sequence[Any]], document: str) -> Any:
        body = {
            "filename": target_id,
            "diff_content": [[int(kind), text] for kind, text in ops],
            "dry_run": False,
        }
        return await self.backend.post("/database/patch-file", body)
