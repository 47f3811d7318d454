# SiteLock: Mutation Guard
#
# Decides whether a proposed change to the block list may be saved.
#
#   removals, no master password   -> REJECT
#   removals, master password set  -> REQUIRE_REAUTH
#   no removals                    -> ALLOW
#
# Additions only narrow what the user can reach, so they never need a
# password. The guard is pure; the caller runs the confirm step.

from enum import Enum
from typing import Iterable, Optional, Tuple

from .rules import normalize_rules


class MutationDecision(str, Enum):
    """Outcome of evaluating a block-list change."""

    ALLOW = "allow"
    REQUIRE_REAUTH = "require_reauth"
    REJECT = "reject"

    @property
    def description(self) -> str:
        descriptions = {
            MutationDecision.ALLOW: "Change can be saved.",
            MutationDecision.REQUIRE_REAUTH: (
                "Removing blocked sites requires your master password."
            ),
            MutationDecision.REJECT: (
                "You cannot remove blocked sites without a master password. "
                "Set a master password first."
            ),
        }
        return descriptions[self]


def removed_rules(
    old: Optional[Iterable[str]], proposed: Optional[Iterable[str]]
) -> Tuple[str, ...]:
    """Rules present in ``old`` but missing from ``proposed``, in ``old`` order."""
    kept = set(normalize_rules(proposed))
    return tuple(rule for rule in normalize_rules(old) if rule not in kept)


class MutationGuard:
    """Stateless policy for block-list edits."""

    @staticmethod
    def evaluate(
        old: Optional[Iterable[str]],
        proposed: Optional[Iterable[str]],
        has_secret_configured: bool,
    ) -> MutationDecision:
        if not removed_rules(old, proposed):
            return MutationDecision.ALLOW
        if not has_secret_configured:
            return MutationDecision.REJECT
        return MutationDecision.REQUIRE_REAUTH


def evaluate_mutation(
    old: Optional[Iterable[str]],
    proposed: Optional[Iterable[str]],
    has_secret_configured: bool,
) -> MutationDecision:
    return MutationGuard.evaluate(old, proposed, has_secret_configured)
