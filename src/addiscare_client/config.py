"""Configuration for the notification client."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

if sys.version_info < (3, 11):
    import tomli as _tomllib
else:
    import tomllib as _tomllib

CONFIG_SECTION = "addiscare-client"


class ClientConfig(BaseModel):
    """Client settings, loaded from the ``[addiscare-client]`` TOML table."""

    api_url: str = "http://localhost:5000/api/v1"
    # One interval for every surface; the server is polled by one engine per session.
    poll_interval: float = Field(25.0, gt=0)
    # Maximum notifications kept in memory.
    retention_cap: int = Field(50, ge=1)
    # Page size requested per poll; defaults to the retention cap.
    page_limit: int | None = Field(None, ge=1, le=100)
    timeout: float = Field(10.0, gt=0)
    refresh_after_mutation: bool = True

    @model_validator(mode="after")
    def _default_page_limit(self):
        if self.page_limit is None:
            self.page_limit = min(self.retention_cap, 100)
        return self


def load_config(path: Path | str | None = None) -> ClientConfig:
    """Load the client config from *path*; a missing path means defaults."""
    if path is None:
        return ClientConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        raw = _tomllib.load(f)

    return ClientConfig(**raw.get(CONFIG_SECTION, {}))
