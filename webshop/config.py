"""Web application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from shopcore.config import AppConfig, load_env


@dataclass
class WebConfig:
    """Flask-level settings plus the shared core configuration."""

    secret_key: str
    host: str
    port: int
    debug: bool
    core: AppConfig

    @property
    def data_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent / "data"

    @classmethod
    def load(cls) -> "WebConfig":
        """Build settings from the environment and make sure the data directory exists."""

        core = load_env()
        config = cls(
            secret_key=os.environ.get("WEBSHOP_SECRET_KEY", core.secret_key),
            host=os.environ.get("WEBSHOP_HOST", "0.0.0.0"),
            port=int(os.environ.get("WEBSHOP_PORT", "5000")),
            debug=os.environ.get("WEBSHOP_DEBUG", "").lower() in ("1", "true", "yes"),
            core=core,
        )
        config.data_dir.mkdir(parents=True, exist_ok=True)
        return config
