from dataclasses import dataclass

import httpx

from statsbridge.backend import BackendClient
from statsbridge.config import ProxyConfig, SettingsStore
from statsbridge.store import DocumentStore, HttpDocumentStore, LocalDocumentStore
from statsbridge.tooling import FunctionLibrary


@dataclass
class ToolContext:
    """Shared state handed to every tool taking ``ctx``."""

    config: ProxyConfig
    backend: BackendClient
    store: DocumentStore

    @classmethod
    def from_config(
        cls, config: ProxyConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> "ToolContext":
        backend = BackendClient(config, transport=transport)
        database_root = config.resolved_database_root()
        if database_root is not None:
            store: DocumentStore = LocalDocumentStore(database_root)
        else:
            store = HttpDocumentStore(backend)
        return cls(config=config, backend=backend, store=store)


def create_library(
    settings: SettingsStore, transport: httpx.AsyncBaseTransport | None = None
) -> FunctionLibrary:
    """Library over all bundled tools, configured from the settings store.

    ``reload()`` on the returned library re-reads the settings.
    """
    import statsbridge.tools  # noqa: F401  registers the bundled tools

    return FunctionLibrary(context_factory=lambda: ToolContext.from_config(settings.load(), transport))
