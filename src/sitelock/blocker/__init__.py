# Blocker Module - decides when a navigation needs the master password
#
# matcher        -> is this URL on the block list?
# unlock_state   -> did this tab already unlock this host?
# secret         -> does this password match the stored digest?
# mutation_guard -> may this block-list edit be saved?
# coordinator    -> ties the above together per navigation / response

from .coordinator import (
    BlockDecisionCoordinator,
    ChallengeResult,
    NavigationDecision,
    NavigationOutcome,
)
from .matcher import get_destination, get_host, matches
from .mutation_guard import MutationDecision, MutationGuard, evaluate_mutation, removed_rules
from .rules import RuleSet, StorageLocation, normalize_rules, parse_rules_text
from .secret import SecretVerifier, digest_secret, has_secret, verify_secret
from .unlock_state import UnlockStateStore

__all__ = [
    "BlockDecisionCoordinator",
    "ChallengeResult",
    "NavigationDecision",
    "NavigationOutcome",
    "get_destination",
    "get_host",
    "matches",
    "MutationDecision",
    "MutationGuard",
    "evaluate_mutation",
    "removed_rules",
    "RuleSet",
    "StorageLocation",
    "normalize_rules",
    "parse_rules_text",
    "SecretVerifier",
    "digest_secret",
    "has_secret",
    "verify_secret",
    "UnlockStateStore",
]
