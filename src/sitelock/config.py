# SiteLock: Configuration
#
# Settings come from environment variables, optionally seeded from a
# .env file in the working directory:
#
#   SITELOCK_DATA_DIR         data directory (default: data)
#   SITELOCK_DB_PATH          settings database (default: <data>/sitelock.db)
#   SITELOCK_AUDIT_DIR        audit log directory (default: ./audit_logs)
#   SITELOCK_HOST             API bind host (default: 127.0.0.1)
#   SITELOCK_PORT             API port (default: 8000)
#   SITELOCK_DEFAULT_STORAGE  initial block-list area, sync|local (default: sync)

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .blocker.rules import StorageLocation


@dataclass(frozen=True)
class SiteLockConfig:
    data_dir: Path = Path("data")
    db_path: Path = Path("data/sitelock.db")
    audit_dir: Path = Path("./audit_logs")
    host: str = "127.0.0.1"
    port: int = 8000
    default_storage: StorageLocation = StorageLocation.SYNC

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> "SiteLockConfig":
        """Build a config from ``environ`` (default: ``os.environ``).

        Raises:
            ValueError: If SITELOCK_PORT is not a valid TCP port.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        data_dir = Path(environ.get("SITELOCK_DATA_DIR") or "data")
        db_path = Path(environ.get("SITELOCK_DB_PATH") or data_dir / "sitelock.db")
        audit_dir = Path(environ.get("SITELOCK_AUDIT_DIR") or "./audit_logs")

        raw_port = environ.get("SITELOCK_PORT") or "8000"
        try:
            port = int(raw_port)
        except ValueError:
            raise ValueError(f"SITELOCK_PORT must be an integer, got {raw_port!r}")
        if not 0 < port < 65536:
            raise ValueError(f"SITELOCK_PORT out of range: {port}")

        return cls(
            data_dir=data_dir,
            db_path=db_path,
            audit_dir=audit_dir,
            host=environ.get("SITELOCK_HOST") or "127.0.0.1",
            port=port,
            default_storage=StorageLocation.from_string(
                environ.get("SITELOCK_DEFAULT_STORAGE")
            ),
        )


_config: Optional[SiteLockConfig] = None


def get_config() -> SiteLockConfig:
    """Get or load the process-wide config."""
    global _config
    if _config is None:
        _config = SiteLockConfig.from_env()
    return _config


def set_config(config: Optional[SiteLockConfig]) -> None:
    """Replace the process-wide config (for testing)."""
    global _config
    _config = config
