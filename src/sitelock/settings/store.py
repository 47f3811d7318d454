# SiteLock: Settings Store
#
# Persistent home of the block list, the master password digest and the
# storage-location preference. Two areas mirror the browser's storage:
#
#   local: blockedStorage (preference), masterHash (never synced)
#   sync or local, per preference: blockedSites
#
# All calls are async. The SQLite store runs its queries in a worker
# thread so the event loop never blocks. I/O failures surface as
# StorageError and are never retried here.

import asyncio
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from ..blocker.exceptions import StorageError
from ..blocker.rules import RuleSet, StorageLocation, normalize_rules

logger = logging.getLogger(__name__)

# Storage keys (shared with the export format)
KEY_BLOCKED_STORAGE = "blockedStorage"
KEY_BLOCKED_SITES = "blockedSites"
KEY_MASTER_HASH = "masterHash"


class SettingsStore(ABC):
    """Async key/value settings storage split into sync and local areas.

    Subclasses implement :meth:`_read` and :meth:`_write`; the typed
    accessors below hold the defaults and normalization.
    """

    @abstractmethod
    async def _read(self, area: StorageLocation, key: str, default: Any) -> Any:
        ...

    @abstractmethod
    async def _write(self, area: StorageLocation, key: str, value: Any) -> None:
        ...

    # Area used until the user picks one
    default_location: StorageLocation = StorageLocation.SYNC

    async def get_storage_location(self) -> StorageLocation:
        raw = await self._read(StorageLocation.LOCAL, KEY_BLOCKED_STORAGE, None)
        if raw is None:
            return self.default_location
        return StorageLocation.from_string(raw)

    async def set_storage_location(self, location: Union[StorageLocation, str]) -> None:
        location = StorageLocation.from_string(str(location))
        await self._write(StorageLocation.LOCAL, KEY_BLOCKED_STORAGE, location.value)

    async def get_rule_set(self, location: Optional[StorageLocation] = None) -> RuleSet:
        """Read the block list from ``location`` or the preferred area.

        Whatever is stored is normalized on the way out, so hand-edited
        or imported data still obeys the RuleSet invariants.
        """
        area = location or await self.get_storage_location()
        raw = await self._read(area, KEY_BLOCKED_SITES, [])
        if not isinstance(raw, list):
            return ()
        return normalize_rules(raw)

    async def set_rule_set(
        self,
        rules: Iterable[str],
        location: Optional[StorageLocation] = None,
    ) -> RuleSet:
        area = location or await self.get_storage_location()
        normalized = normalize_rules(rules)
        await self._write(area, KEY_BLOCKED_SITES, list(normalized))
        return normalized

    async def get_secret_digest(self) -> str:
        raw = await self._read(StorageLocation.LOCAL, KEY_MASTER_HASH, "")
        return raw if isinstance(raw, str) else ""

    async def set_secret_digest(self, digest: str) -> None:
        await self._write(StorageLocation.LOCAL, KEY_MASTER_HASH, digest or "")


class MemorySettingsStore(SettingsStore):
    """Dict-backed store. Lost on exit; meant for tests and embedding."""

    def __init__(self, initial: Optional[Dict[Tuple[str, str], Any]] = None):
        self._data: Dict[Tuple[str, str], Any] = dict(initial or {})

    async def _read(self, area, key, default):
        return self._data.get((StorageLocation(area).value, key), default)

    async def _write(self, area, key, value):
        self._data[(StorageLocation(area).value, key)] = value


class SQLiteSettingsStore(SettingsStore):
    """SQLite-backed settings store.

    Args:
        db_path: Path to SQLite file. Defaults to data/sitelock.db.
        default_location: Area for the block list until one is chosen.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        default_location: StorageLocation = StorageLocation.SYNC,
    ):
        self.db_path = Path(db_path) if db_path else Path("data/sitelock.db")
        self.default_location = default_location
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open settings database {self.db_path}: {e}") from e

    @contextmanager
    def _connect(self):
        """Open a WAL-mode SQLite connection; auto-closes on exit."""
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    area TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (area, key)
                )
            """)

    def _read_sync(self, area: str, key: str, default: Any) -> Any:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE area = ? AND key = ?",
                (area, key),
            ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Corrupt value for %s/%s, using default", area, key)
            return default

    def _write_sync(self, area: str, key: str, value: Any) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock, self._connect() as conn:
            conn.execute(
                """INSERT INTO settings (area, key, value, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(area, key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (area, key, json.dumps(value), now),
            )

    async def _read(self, area, key, default):
        try:
            return await asyncio.to_thread(
                self._read_sync, StorageLocation(area).value, key, default
            )
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def _write(self, area, key, value):
        try:
            await asyncio.to_thread(
                self._write_sync, StorageLocation(area).value, key, value
            )
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to write {key}: {e}") from e


# ── Singleton ────────────────────────────────────────────────────────

_instance: Optional[SettingsStore] = None


def get_settings_store() -> SettingsStore:
    """Get or create the singleton settings store."""
    global _instance
    if _instance is None:
        from ..config import get_config
        config = get_config()
        _instance = SQLiteSettingsStore(config.db_path, config.default_storage)
    return _instance


def set_settings_store(instance: Optional[SettingsStore]) -> None:
    """Replace the singleton (for testing)."""
    global _instance
    _instance = instance
