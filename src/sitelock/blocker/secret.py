# SiteLock: Secret Verifier
#
# Master password → SHA-256 digest (lowercase hex)
# The password is trimmed before hashing, both when it is set and when
# it is checked.
#
# The digest is unsalted and always kept in the local storage area.

import hmac
from typing import Optional

from cryptography.hazmat.primitives import hashes

DIGEST_HEX_LENGTH = 64  # SHA-256


class SecretVerifier:
    """
    Digest and verify master passwords.

    An empty stored digest means "no master password configured". That
    is reported separately through :meth:`has_secret`, so callers can
    tell "set one up first" apart from "wrong password".
    """

    @staticmethod
    def normalize(secret: Optional[str]) -> str:
        """Trim a secret exactly as it is trimmed before hashing."""
        return (secret or "").strip()

    @staticmethod
    def digest(secret: Optional[str]) -> str:
        """
        Digest a secret.

        Deterministic, and ``digest(" s ") == digest("s")``. The empty
        string gets an ordinary digest like any other input; rejecting
        blank passwords is the settings form's job.

        Returns:
            64-character lowercase hex SHA-256
        """
        h = hashes.Hash(hashes.SHA256())
        h.update(SecretVerifier.normalize(secret).encode("utf-8"))
        return h.finalize().hex()

    @staticmethod
    def has_secret(stored: Optional[str]) -> bool:
        """True if a master password digest is configured."""
        return bool(stored)

    @staticmethod
    def verify(candidate: Optional[str], stored: Optional[str]) -> bool:
        """
        Check ``candidate`` against a stored digest.

        Always False when ``stored`` is empty. Comparison is exact and
        constant-time.
        """
        if not stored:
            return False
        # compare as bytes: imported digests may hold non-ASCII text
        return hmac.compare_digest(
            SecretVerifier.digest(candidate).encode("utf-8"),
            stored.encode("utf-8"),
        )


def digest_secret(secret: Optional[str]) -> str:
    return SecretVerifier.digest(secret)


def verify_secret(candidate: Optional[str], stored: Optional[str]) -> bool:
    return SecretVerifier.verify(candidate, stored)


def has_secret(stored: Optional[str]) -> bool:
    return SecretVerifier.has_secret(stored)
