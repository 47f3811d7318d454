# Settings Module - block-list storage, the save/confirm workflow, and
# import/export of the settings document.

from .editor import PendingMutation, SaveOutcome, SaveStatus, SettingsEditor, SettingsSnapshot
from .store import (
    MemorySettingsStore,
    SettingsStore,
    SQLiteSettingsStore,
    get_settings_store,
    set_settings_store,
)
from .transfer import SettingsPayload, export_settings, import_settings, validate_payload

__all__ = [
    "PendingMutation",
    "SaveOutcome",
    "SaveStatus",
    "SettingsEditor",
    "SettingsSnapshot",
    "MemorySettingsStore",
    "SettingsStore",
    "SQLiteSettingsStore",
    "get_settings_store",
    "set_settings_store",
    "SettingsPayload",
    "export_settings",
    "import_settings",
    "validate_payload",
]
