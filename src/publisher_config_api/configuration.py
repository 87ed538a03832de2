from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

CONFIG_PATH_ENV = "PUBLISHER_API_CONFIG"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "https://localhost:3000",
]

# Environment variable -> Settings field
ENV_OVERRIDES: Dict[str, str] = {
    "APP_ENV": "environment",
    "DATA_DIR": "data_dir",
    "API_KEY": "api_key",
    "RATE_LIMIT_MAX": "rate_limit_max_requests",
    "RATE_LIMIT_WINDOW_SECONDS": "rate_limit_window_seconds",
    "MAX_BODY_BYTES": "max_body_bytes",
    "AUDIT_LOG_PATH": "audit_log_path",
    "AUDIT_LOG_MAX_BYTES": "audit_log_max_bytes",
    "LOG_LEVEL": "log_level",
    "SERIALIZE_INDEX_WRITES": "serialize_index_writes",
    "HOST": "host",
    "PORT": "port",
}


@dataclass
class Settings:
    environment: str = "development"
    data_dir: str = "data"
    api_key: str = ""
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 15 * 60
    max_body_bytes: int = 100 * 1024
    audit_log_path: str = "logs/audit.log"
    audit_log_max_bytes: int = 5 * 1024 * 1024
    log_level: str = "INFO"
    serialize_index_writes: bool = True
    host: str = "0.0.0.0"
    port: int = 3001

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        attr: environ[name] for name, attr in ENV_OVERRIDES.items() if environ.get(name, "") != ""
    }
    origins = environ.get("ALLOWED_ORIGINS", "")
    if origins:
        overrides["allowed_origins"] = [origin.strip() for origin in origins.split(",") if origin.strip()]
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build settings from defaults, an optional YAML file, then the environment.

    Later sources win. OmegaConf checks every value against the ``Settings``
    field types, so ``PORT=abc`` fails here instead of at first use.
    """
    environ = os.environ if environ is None else environ
    if config_path is None and environ.get(CONFIG_PATH_ENV):
        config_path = Path(environ[CONFIG_PATH_ENV])

    layers = [OmegaConf.structured(Settings)]
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found at {config_path}")
        layers.append(OmegaConf.load(config_path))
    layers.append(OmegaConf.create(_env_overrides(environ)))

    merged = OmegaConf.merge(*layers)
    return OmegaConf.to_object(merged)  # type: ignore[return-value]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return load_settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
