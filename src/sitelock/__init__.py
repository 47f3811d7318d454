# SiteLock - Main Package
#
# Password-gated site blocking: block-list matching, per-tab unlock
# state, and a master password that guards removing blocked sites.

__version__ = "0.1.0"
__author__ = "SiteLock Team"
__description__ = "Password-gated site blocker"

from .blocker import (
    BlockDecisionCoordinator,
    ChallengeResult,
    MutationDecision,
    MutationGuard,
    NavigationDecision,
    SecretVerifier,
    UnlockStateStore,
    matches,
)

__all__ = [
    "__version__",
    "BlockDecisionCoordinator",
    "ChallengeResult",
    "MutationDecision",
    "MutationGuard",
    "NavigationDecision",
    "SecretVerifier",
    "UnlockStateStore",
    "matches",
]
