# SiteLock: Pattern Matcher
#
# Decides whether a navigation target is covered by the block list.
#
# Accepted rule forms:
#   - "facebook.com"         domain, its subdomains, and any host containing it
#   - "*.example.com"        same as above ("*." is stripped)
#   - "https://example.com/x" prefix match on the full URL
#   - "twitter.com/explore"  substring match on the full URL
#
# Malformed URLs never match (fail open).

import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from .rules import normalize_rule

logger = logging.getLogger(__name__)

_URL_PREFIXES = ("http://", "https://")


def get_host(url: Optional[str]) -> str:
    """Return the lower-cased host of ``url``, or ``""`` if it has none.

    Anything without a scheme and a network location counts as
    unparseable, as do URLs the parser rejects outright (e.g. an
    unbalanced IPv6 bracket).
    """
    if not isinstance(url, str) or not url.strip():
        return ""
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname or ""
    except ValueError:
        return ""
    if not parts.scheme:
        return ""
    return host.lower()


def normalize_href(url: Optional[str]) -> str:
    """Lower-cased URL with an empty path written as ``/``.

    ``https://a.com`` and ``https://a.com/`` compare equal, as they do
    in a browser's ``location.href``. ``""`` when unparseable.
    """
    if not get_host(url):
        return ""
    parts = urlsplit(url.strip())
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path or "/", parts.query, parts.fragment)
    ).lower()


def get_destination(url: Optional[str]) -> str:
    """Unlock-tracking key for ``url``: its host.

    ``/a`` and ``/b`` on the same host share one unlock.
    """
    return get_host(url)


def normalize_destination(destination: Optional[str]) -> str:
    """Normalize a destination handed back by the overlay."""
    if not isinstance(destination, str):
        return ""
    return destination.strip().lower()


def rule_matches(rule: str, href: str, host: str) -> bool:
    """Match a single normalized rule against a lowered URL and host."""
    if not rule:
        return False

    if rule.startswith(_URL_PREFIXES):
        return href.startswith(rule)

    if "/" in rule:
        return rule in href

    domain = rule[2:] if rule.startswith("*.") else rule
    if not domain:
        return False
    if host == domain or host.endswith("." + domain):
        return True

    # Host substring fallback
    return domain in host


def matches(target_url: Optional[str], rules: Optional[Iterable[str]]) -> bool:
    """Return True if ``target_url`` is covered by any rule in ``rules``.

    Rules are evaluated in order and the first hit wins. Never raises.
    """
    return first_match(target_url, rules) is not None


def first_match(target_url: Optional[str], rules: Optional[Iterable[str]]) -> Optional[str]:
    """Like :func:`matches` but return the rule that hit, if any."""
    host = get_host(target_url)
    if not host:
        return None
    href = normalize_href(target_url)

    for raw in rules or ():
        rule = normalize_rule(raw)
        if rule_matches(rule, href, host):
            logger.debug("Rule %r matched %s", rule, host)
            return rule
    return None
