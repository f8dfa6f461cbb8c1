import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from statsbridge.config import ProxyConfig
from statsbridge.context import ToolContext
from statsbridge.tooling import FunctionLibrary


class RecordingBackend:
    """httpx MockTransport that records requests and answers from a route table."""

    def __init__(self, routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] | None = None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def route(self, method: str, path: str, response: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        self.routes[(method, path)] = response if callable(response) else (lambda request: response)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, text=f"No route for {request.method} {request.url.path}")
        return handler(request)

    def body(self, index: int = -1) -> dict | None:
        content = self.requests[index].content
        return json.loads(content) if content else None


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def database_root(tmp_path: Path) -> Path:
    root = tmp_path / "database"
    root.mkdir()
    return root


@pytest.fixture
def make_library(backend: RecordingBackend) -> Callable[..., FunctionLibrary]:
    """Library over the bundled tools, talking to the recording backend."""
    import statsbridge.tools  # noqa: F401

    def factory(config: ProxyConfig | None = None) -> FunctionLibrary:
        config = config or ProxyConfig()
        return FunctionLibrary(context_factory=lambda: ToolContext.from_config(config, backend.transport))

    return factory
