# SiteLock: Settings Import / Export
#
# JSON document shared with the browser extension's settings page:
#
#   {
#     "version": 1,
#     "exportedAt": "2026-01-01T12:00:00.000Z",
#     "blockedStorage": "sync" | "local",
#     "blockedSites": ["facebook.com", ...],
#     "masterHash": "<sha256 hex or empty>"
#   }
#
# Importing is a settings change like any other: if it would drop
# blocked sites, the mutation guard applies against the current list
# and the current master password.

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from ..blocker.exceptions import InvalidSettingsPayload, MutationRejected, Unauthorized
from ..blocker.mutation_guard import MutationDecision, MutationGuard, removed_rules
from ..blocker.rules import StorageLocation, normalize_rules
from ..blocker.secret import SecretVerifier
from ..core.audit_log import EventSeverity, EventType, get_audit_logger
from .store import SettingsStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1
_VALID_STORAGE = ("local", "sync")


def _iso_now() -> str:
    """UTC timestamp in the browser's toISOString() shape."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class SettingsPayload:
    """Exported settings document."""

    blocked_sites: List[str] = field(default_factory=list)
    blocked_storage: str = "sync"
    # None: the document has no masterHash and the stored one is kept
    master_hash: Optional[str] = None
    version: int = EXPORT_VERSION
    exported_at: str = field(default_factory=_iso_now)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "exportedAt": self.exported_at,
            "blockedStorage": self.blocked_storage,
            "blockedSites": list(self.blocked_sites),
            "masterHash": self.master_hash or "",
        }

    @classmethod
    def from_dict(cls, obj: Any) -> "SettingsPayload":
        """Parse a document, raising InvalidSettingsPayload on bad shape.

        Optional fields fall back to defaults; ``blockedSites`` is kept
        as given (normalization happens on import).
        """
        error = validate_payload(obj)
        if error:
            raise InvalidSettingsPayload(error)

        version = obj.get("version", EXPORT_VERSION)
        return cls(
            blocked_sites=list(obj["blockedSites"]),
            blocked_storage=obj.get("blockedStorage", "sync"),
            master_hash=obj.get("masterHash"),
            version=version if isinstance(version, int) else EXPORT_VERSION,
            exported_at=obj.get("exportedAt") or "",
        )


def validate_payload(obj: Any) -> Optional[str]:
    """Return a human-readable reason the document is invalid, or None."""
    if not isinstance(obj, dict):
        return "Invalid file format."
    if not isinstance(obj.get("blockedSites"), list):
        return "Missing or invalid 'blockedSites'."
    if "blockedStorage" in obj and obj["blockedStorage"] not in _VALID_STORAGE:
        return "Invalid 'blockedStorage' value."
    if "masterHash" in obj and not isinstance(obj["masterHash"], str):
        return "Invalid 'masterHash' value."
    return None


def dumps_payload(payload: SettingsPayload) -> str:
    return json.dumps(payload.to_dict(), indent=2)


def loads_payload(text: str) -> SettingsPayload:
    try:
        obj = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InvalidSettingsPayload("Failed to import: invalid JSON file.") from e
    return SettingsPayload.from_dict(obj)


def export_filename(now: Optional[datetime] = None) -> str:
    """site-blocker-settings-YYYY-MM-DD-HH-MM-SS.json (UTC)."""
    now = now or datetime.now(timezone.utc)
    return f"site-blocker-settings-{now.strftime('%Y-%m-%d-%H-%M-%S')}.json"


async def export_settings(store: SettingsStore) -> SettingsPayload:
    location = await store.get_storage_location()
    payload = SettingsPayload(
        blocked_sites=list(await store.get_rule_set(location)),
        blocked_storage=location.value,
        master_hash=await store.get_secret_digest(),
    )
    get_audit_logger().log_settings_event(
        EventType.SETTINGS_EXPORTED,
        "Exported settings",
        details={"rule_count": len(payload.blocked_sites)},
    )
    return payload


async def import_settings(
    store: SettingsStore,
    obj: Any,
    secret: Optional[str] = None,
) -> SettingsPayload:
    """Apply an exported document to ``store``.

    Args:
        store: Target settings store.
        obj: Parsed JSON document or a SettingsPayload.
        secret: Current master password; needed only when the import
            would remove blocked sites.

    Raises:
        InvalidSettingsPayload: Bad document shape.
        MutationRejected: Import removes sites and no password is set.
        Unauthorized: Import removes sites and ``secret`` is wrong.
    """
    payload = obj if isinstance(obj, SettingsPayload) else SettingsPayload.from_dict(obj)
    audit = get_audit_logger()

    location = StorageLocation.from_string(payload.blocked_storage)
    new_rules = normalize_rules(payload.blocked_sites)
    old_rules = await store.get_rule_set()
    digest = await store.get_secret_digest()

    decision = MutationGuard.evaluate(old_rules, new_rules, SecretVerifier.has_secret(digest))
    removed = removed_rules(old_rules, new_rules)
    if decision == MutationDecision.REJECT:
        audit.log_settings_event(
            EventType.MUTATION_REJECTED,
            "Import refused, it removes sites and no master password is set",
            severity=EventSeverity.ALERT,
            details={"removed": list(removed)},
        )
        raise MutationRejected(decision.description)
    if decision == MutationDecision.REQUIRE_REAUTH and not SecretVerifier.verify(secret, digest):
        audit.log_settings_event(
            EventType.REAUTH_FAILED,
            "Import refused, master password required to remove sites",
            severity=EventSeverity.INVESTIGATE,
            details={"removed": list(removed)},
        )
        raise Unauthorized("Incorrect master password.")

    replaces_digest = payload.master_hash is not None
    if replaces_digest:
        await store.set_secret_digest(payload.master_hash)
    await store.set_rule_set(new_rules, location)
    await store.set_storage_location(location)

    audit.log_settings_event(
        EventType.SETTINGS_IMPORTED,
        "Imported settings",
        details={
            "rule_count": len(new_rules),
            "removed_count": len(removed),
            "location": location.value,
        },
    )
    return SettingsPayload(
        blocked_sites=list(new_rules),
        blocked_storage=location.value,
        master_hash=payload.master_hash if replaces_digest else digest,
        version=payload.version,
        exported_at=payload.exported_at,
    )
