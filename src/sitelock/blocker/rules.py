# SiteLock: Block-list rules
#
# A rule is one line of the block list. Rules are stored trimmed and
# case-folded, deduplicated by exact equality after normalization, and
# kept in insertion order (order only matters for export).
#
# The rule list lives in one of two storage areas chosen by the user:
#   - sync:  follows the user across browsers (default)
#   - local: stays on this machine

import re
from enum import Enum
from typing import Iterable, Optional, Tuple

RuleSet = Tuple[str, ...]

_LINE_SPLIT = re.compile(r"\r?\n")


class StorageLocation(str, Enum):
    """Storage area holding the blocked-site list."""

    SYNC = "sync"
    LOCAL = "local"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "StorageLocation":
        """Parse a storage area name. Anything but "local" means sync."""
        if isinstance(value, str) and value.strip().lower() == "local":
            return cls.LOCAL
        return cls.SYNC

    def __str__(self) -> str:
        return self.value


def normalize_rule(raw: Optional[str]) -> str:
    """Trim and case-fold a single rule. ``None`` becomes ``""``."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


def normalize_rules(raw_rules: Optional[Iterable[Optional[str]]]) -> RuleSet:
    """Build a RuleSet: normalized, empties dropped, first occurrence wins."""
    if raw_rules is None or isinstance(raw_rules, (str, bytes, dict)):
        return ()

    seen = set()
    out = []
    for raw in raw_rules:
        rule = normalize_rule(raw)
        if not rule or rule in seen:
            continue
        seen.add(rule)
        out.append(rule)
    return tuple(out)


def parse_rules_text(text: Optional[str]) -> RuleSet:
    """Parse the newline-separated block list typed into the settings form."""
    return normalize_rules(_LINE_SPLIT.split(text or ""))


def format_rules_text(rules: Iterable[str]) -> str:
    """Inverse of parse_rules_text for display."""
    return "\n".join(rules)
