import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

SETTINGS_KEY = "apiStatsFetcher_settings"
DEFAULT_SETTINGS_PATH = Path("~/.config/statsbridge/settings.json")
SETTINGS_ENV_VAR = "STATSBRIDGE_SETTINGS"


class ProxyConfig(BaseModel):
    """Connection and behaviour settings for the stats backend tools."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Backend
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_host: str = "localhost"
    request_timeout: float = Field(default=30.0, gt=0)

    # Polling refresh, in seconds
    refresh_interval: int = Field(default=60, ge=1)

    # Local alternatives to the backend
    database_root: Path | None = None
    kpm_log_path: Path = Path("~/.kpm_log.csv")

    strict_patches: bool = True

    @property
    def base_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"

    def resolved_kpm_log_path(self) -> Path:
        return self.kpm_log_path.expanduser()

    def resolved_database_root(self) -> Path | None:
        if self.database_root is None:
            return None
        return self.database_root.expanduser().resolve()


def default_settings_path() -> Path:
    return Path(os.environ.get(SETTINGS_ENV_VAR, DEFAULT_SETTINGS_PATH)).expanduser()


class SettingsStore:
    """JSON key-value file holding the settings under a fixed key.

    Other keys in the file are preserved on save.
    """

    def __init__(self, path: Path | None = None, key: str = SETTINGS_KEY):
        self.path = Path(path).expanduser() if path else default_settings_path()
        self.key = key

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} must contain a JSON object")
        return data

    def load(self) -> ProxyConfig:
        """Read the settings, falling back to defaults when none are stored."""
        stored = self._read_all().get(self.key)
        if stored is None:
            logger.debug(f"No settings under {self.key} in {self.path}, using defaults")
            return ProxyConfig()
        return ProxyConfig.model_validate(stored)

    def save(self, config: ProxyConfig) -> None:
        data = self._read_all()
        data[self.key] = config.model_dump(mode="json", by_alias=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        logger.info(f"Settings saved to {self.path}")

    def update(self, **changes) -> ProxyConfig:
        """Apply changes to the stored settings and persist them."""
        config = self.load()
        merged = config.model_dump()
        merged.update(changes)
        config = ProxyConfig.model_validate(merged)
        self.save(config)
        return config
