# SiteLock: Settings Editor
#
# Two-step save protocol for the settings form:
#
#   propose(new list, location, new password)
#     -> guard ALLOW           commit now                  SAVED
#     -> guard REJECT          nothing written             REJECTED
#     -> guard REQUIRE_REAUTH  keep as pending mutation    CONFIRMATION_REQUIRED
#   confirm(master password)   verify, commit, clear       SAVED
#   cancel()                   drop the pending mutation
#
# Re-authentication checks the digest in the store at confirm time, not
# the password typed into the pending change, so a new password cannot
# authorize removing sites.

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from ..blocker.exceptions import MutationRejected, NoPendingMutation, Unauthorized
from ..blocker.mutation_guard import MutationDecision, MutationGuard, removed_rules
from ..blocker.rules import RuleSet, StorageLocation, normalize_rules, parse_rules_text
from ..blocker.secret import SecretVerifier
from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from .store import SettingsStore

logger = logging.getLogger(__name__)


class SaveStatus:
    SAVED = "saved"
    CONFIRMATION_REQUIRED = "confirmation_required"
    REJECTED = "rejected"


@dataclass
class SettingsSnapshot:
    """What the settings form shows. Never carries the digest."""

    rules: RuleSet
    location: StorageLocation
    has_secret: bool

    def to_dict(self) -> dict:
        return {
            "blocked_sites": list(self.rules),
            "blocked_storage": self.location.value,
            "has_master_password": self.has_secret,
        }


@dataclass
class PendingMutation:
    """A proposed change waiting for the master password. Never persisted."""

    old_rules: RuleSet
    new_rules: RuleSet
    new_location: StorageLocation
    new_secret: Optional[str] = field(default=None, repr=False)

    @property
    def removed(self) -> RuleSet:
        return removed_rules(self.old_rules, self.new_rules)


@dataclass
class SaveOutcome:
    status: str
    message: str
    removed: RuleSet = ()
    snapshot: Optional[SettingsSnapshot] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "message": self.message,
            "removed": list(self.removed),
            "settings": self.snapshot.to_dict() if self.snapshot else None,
        }


class SettingsEditor:
    """Owns the pending block-list change for one settings session.

    Usage::

        editor = SettingsEditor(store)
        outcome = await editor.propose("facebook.com\\nreddit.com", "sync")
        if outcome.status == SaveStatus.CONFIRMATION_REQUIRED:
            outcome = await editor.confirm(password)   # may raise Unauthorized
    """

    def __init__(self, store: SettingsStore, audit_logger: Optional[AuditLogger] = None):
        self.store = store
        self._audit = audit_logger
        self._pending: Optional[PendingMutation] = None

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    @property
    def pending(self) -> Optional[PendingMutation]:
        return self._pending

    async def load(self) -> SettingsSnapshot:
        location = await self.store.get_storage_location()
        rules = await self.store.get_rule_set(location)
        digest = await self.store.get_secret_digest()
        return SettingsSnapshot(rules, location, SecretVerifier.has_secret(digest))

    async def propose(
        self,
        rules: Union[str, Iterable[str]],
        location: Union[StorageLocation, str, None] = None,
        new_secret: Optional[str] = None,
    ) -> SaveOutcome:
        """Evaluate and, where allowed, save a settings change."""
        new_rules = parse_rules_text(rules) if isinstance(rules, str) else normalize_rules(rules)
        current_location = await self.store.get_storage_location()
        new_location = (
            StorageLocation.from_string(str(location)) if location is not None
            else current_location
        )
        old_rules = await self.store.get_rule_set(current_location)
        digest = await self.store.get_secret_digest()

        mutation = PendingMutation(old_rules, new_rules, new_location, new_secret)
        decision = MutationGuard.evaluate(
            old_rules, new_rules, SecretVerifier.has_secret(digest)
        )

        if decision == MutationDecision.REJECT:
            self.audit.log_settings_event(
                EventType.MUTATION_REJECTED,
                "Removal refused, no master password set",
                severity=EventSeverity.ALERT,
                details={"removed": list(mutation.removed)},
            )
            return SaveOutcome(SaveStatus.REJECTED, decision.description, mutation.removed)

        if decision == MutationDecision.REQUIRE_REAUTH:
            self._pending = mutation
            self.audit.log_settings_event(
                EventType.REAUTH_REQUIRED,
                "Removal awaiting master password",
                details={"removed": list(mutation.removed)},
            )
            return SaveOutcome(
                SaveStatus.CONFIRMATION_REQUIRED, decision.description, mutation.removed
            )

        self.cancel()
        snapshot = await self._commit(mutation)
        return SaveOutcome(SaveStatus.SAVED, "Settings saved.", snapshot=snapshot)

    async def confirm(self, secret: Optional[str]) -> SaveOutcome:
        """Commit the pending change if ``secret`` matches.

        Raises:
            NoPendingMutation: Nothing was proposed.
            MutationRejected: The master password was removed meanwhile;
                the pending change is dropped.
            Unauthorized: Blank or wrong password; the change stays pending.
        """
        if self._pending is None:
            raise NoPendingMutation("No pending settings change to confirm")

        if not SecretVerifier.normalize(secret):
            raise Unauthorized("Please enter your master password.")

        stored = await self.store.get_secret_digest()
        if not SecretVerifier.has_secret(stored):
            # Password was cleared elsewhere after the proposal
            self.cancel()
            raise MutationRejected(MutationDecision.REJECT.description)

        if not SecretVerifier.verify(secret, stored):
            self.audit.log_settings_event(
                EventType.REAUTH_FAILED,
                "Incorrect master password on removal",
                severity=EventSeverity.INVESTIGATE,
            )
            raise Unauthorized("Incorrect master password.")

        mutation = self._pending
        snapshot = await self._commit(mutation)
        self.cancel()
        return SaveOutcome(
            SaveStatus.SAVED, "Settings saved.", mutation.removed, snapshot
        )

    def cancel(self) -> None:
        self._pending = None

    async def _commit(self, mutation: PendingMutation) -> SettingsSnapshot:
        await self.store.set_storage_location(mutation.new_location)
        await self.store.set_rule_set(mutation.new_rules, mutation.new_location)

        if SecretVerifier.normalize(mutation.new_secret):
            await self.store.set_secret_digest(SecretVerifier.digest(mutation.new_secret))
            self.audit.log_settings_event(EventType.SECRET_CHANGED, "Master password updated")

        self.audit.log_settings_event(
            EventType.RULES_SAVED,
            "Block list saved",
            details={
                "rule_count": len(mutation.new_rules),
                "removed_count": len(mutation.removed),
                "location": mutation.new_location.value,
            },
        )
        return await self.load()
