# SiteLock: Block Decision Coordinator
#
# Single owner of the unlock table. Flow per navigation:
#
#   navigation(ctx, url)
#     -> destination = host(url)          (unparseable: no action)
#     -> already unlocked for ctx?        (yes: no action)
#     -> covered by the block list?       (yes: challenge)
#
#   challenge response(ctx, destination, secret)
#     -> no digest stored                 NOT_CONFIGURED
#     -> digest mismatch                  REJECTED
#     -> match                            ACCEPTED, destination unlocked for ctx
#
# The block list and digest are read from the settings store on every
# event, so a restarted process picks up the current settings. Unlock
# state is memory only and starts empty in every process.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Hashable, List, Optional

from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from .matcher import first_match, get_destination, normalize_destination
from .secret import SecretVerifier
from .unlock_state import UnlockStateStore

if TYPE_CHECKING:
    from ..settings.store import SettingsStore

logger = logging.getLogger(__name__)

UnlockListener = Callable[[Hashable, str], None]


class NavigationDecision(str, Enum):
    CHALLENGE_REQUIRED = "challenge_required"
    NO_ACTION = "no_action"


class ChallengeResult(str, Enum):
    """Outcome of a challenge response, for the overlay to present."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    NOT_CONFIGURED = "not_configured"

    @property
    def message(self) -> str:
        messages = {
            ChallengeResult.ACCEPTED: "Unlocked.",
            ChallengeResult.REJECTED: "Incorrect password. Please try again.",
            ChallengeResult.NOT_CONFIGURED: (
                "No master password set. Open Settings and create one."
            ),
        }
        return messages[self]


@dataclass
class NavigationOutcome:
    decision: NavigationDecision
    destination: str = ""
    matched_rule: Optional[str] = None

    @property
    def challenge_required(self) -> bool:
        return self.decision == NavigationDecision.CHALLENGE_REQUIRED


class BlockDecisionCoordinator:
    """Answers "challenge this navigation now?" and records unlocks.

    Args:
        store: Settings store providing the block list and digest.
        unlock_state: Unlock table (a fresh one by default).
        audit_logger: Audit sink (the global one by default).
    """

    def __init__(
        self,
        store: "SettingsStore",
        unlock_state: Optional[UnlockStateStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.unlock_state = unlock_state or UnlockStateStore()
        self._audit = audit_logger
        self._listeners: List[UnlockListener] = []

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    # ── Notifications ────────────────────────────────────────────────

    def add_unlock_listener(self, listener: UnlockListener) -> None:
        """Register ``listener(ctx, destination)``, called after each unlock."""
        self._listeners.append(listener)

    def remove_unlock_listener(self, listener: UnlockListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_unlocked(self, ctx: Hashable, destination: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(ctx, destination)
            except Exception:
                logger.warning("Unlock listener failed", exc_info=True)

    # ── Navigation ───────────────────────────────────────────────────

    async def evaluate_navigation(self, ctx: Hashable, url: str) -> NavigationOutcome:
        """Full navigation decision, including the rule that matched."""
        destination = get_destination(url)
        if not destination:
            return NavigationOutcome(NavigationDecision.NO_ACTION)

        if self.unlock_state.is_unlocked(ctx, destination):
            return NavigationOutcome(NavigationDecision.NO_ACTION, destination)

        rules = await self.store.get_rule_set()
        if not rules:
            return NavigationOutcome(NavigationDecision.NO_ACTION, destination)

        rule = first_match(url, rules)
        if rule is None:
            return NavigationOutcome(NavigationDecision.NO_ACTION, destination)

        self.audit.log_blocker_event(
            EventType.NAVIGATION_CHALLENGED,
            ctx,
            destination,
            severity=EventSeverity.INVESTIGATE,
            details={"rule": rule},
        )
        return NavigationOutcome(NavigationDecision.CHALLENGE_REQUIRED, destination, rule)

    async def on_navigation(self, ctx: Hashable, url: str) -> NavigationDecision:
        outcome = await self.evaluate_navigation(ctx, url)
        return outcome.decision

    # ── Challenge ────────────────────────────────────────────────────

    async def on_challenge_response(
        self, ctx: Hashable, destination: str, candidate_secret: Optional[str]
    ) -> ChallengeResult:
        destination = normalize_destination(destination)
        stored = await self.store.get_secret_digest()

        if not SecretVerifier.has_secret(stored):
            self.audit.log_blocker_event(
                EventType.UNLOCK_NOT_CONFIGURED, ctx, destination,
                severity=EventSeverity.INVESTIGATE,
            )
            return ChallengeResult.NOT_CONFIGURED

        if not destination or not SecretVerifier.verify(candidate_secret, stored):
            self.audit.log_blocker_event(
                EventType.UNLOCK_DENIED, ctx, destination,
                severity=EventSeverity.INVESTIGATE,
            )
            return ChallengeResult.REJECTED

        self.unlock_state.mark_unlocked(ctx, destination)
        self.audit.log_blocker_event(EventType.UNLOCK_GRANTED, ctx, destination)
        self._notify_unlocked(ctx, destination)
        return ChallengeResult.ACCEPTED

    # ── Context lifecycle ────────────────────────────────────────────

    def on_context_closed(self, ctx: Hashable) -> None:
        """Host notification that ``ctx`` is gone: forget its unlocks."""
        dropped = self.unlock_state.clear(ctx)
        if dropped:
            self.audit.log_blocker_event(
                EventType.CONTEXT_CLOSED, ctx, "",
                details={"unlocks_dropped": dropped},
            )

    def is_unlocked(self, ctx: Hashable, url_or_destination: str) -> bool:
        destination = get_destination(url_or_destination) or normalize_destination(
            url_or_destination
        )
        return self.unlock_state.is_unlocked(ctx, destination)


# ── Singleton ────────────────────────────────────────────────────────

_coordinator: Optional[BlockDecisionCoordinator] = None


def get_coordinator() -> BlockDecisionCoordinator:
    """Get or create the process-wide coordinator."""
    global _coordinator
    if _coordinator is None:
        from ..settings.store import get_settings_store
        _coordinator = BlockDecisionCoordinator(get_settings_store())
    return _coordinator


def set_coordinator(instance: Optional[BlockDecisionCoordinator]) -> None:
    """Replace the singleton (for testing)."""
    global _coordinator
    _coordinator = instance
