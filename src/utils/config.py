# runtime settings, read from the environment
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    val = os.getenv(name)
    if not val:
        return list(default)
    return [part.strip() for part in val.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    db_path: str = "data/storefront.sqlite"
    pool_size: int = 10
    busy_timeout: float = 5.0  # seconds a writer waits for the database lock
    seed: bool = True
    client_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False


def load_settings() -> Settings:
    """Build Settings from STOREFRONT_* environment variables."""
    defaults = Settings()
    return Settings(
        db_path=os.getenv("STOREFRONT_DB_PATH", defaults.db_path),
        pool_size=max(int(os.getenv("STOREFRONT_POOL_SIZE", defaults.pool_size)), 1),
        busy_timeout=float(
            os.getenv("STOREFRONT_BUSY_TIMEOUT", defaults.busy_timeout)
        ),
        seed=_env_bool("STOREFRONT_SEED", defaults.seed),
        client_origins=_env_list("STOREFRONT_CLIENT_ORIGINS", defaults.client_origins),
        host=os.getenv("STOREFRONT_HOST", defaults.host),
        port=int(os.getenv("STOREFRONT_PORT", defaults.port)),
        debug=_env_bool("DEBUG", defaults.debug),
    )
