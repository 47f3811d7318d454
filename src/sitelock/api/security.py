# SiteLock: Bridge authentication
#
# Only the browser bridge and the settings page may drive the backend.
# Each backend process mints one random token at startup and hands it
# to them at launch; every HTTP call carries it as X-Session-Token and
# the unlock WebSocket carries it as ?token=.
#
# The token dies with the process, like the unlock table.

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

TOKEN_HEADER = "X-Session-Token"

_bridge_token: Optional[str] = None


def initialize_session_token() -> str:
    """Mint the bridge token for this process and return it."""
    global _bridge_token
    _bridge_token = secrets.token_urlsafe(32)
    return _bridge_token


def get_session_token() -> str:
    """The current bridge token.

    Raises:
        RuntimeError: The API has not started yet.
    """
    if _bridge_token is None:
        raise RuntimeError("Bridge token not minted yet; start the API first.")
    return _bridge_token


def reset_session_token() -> None:
    """Forget the token (for testing)."""
    global _bridge_token
    _bridge_token = None


def token_matches(supplied: Optional[str]) -> bool:
    """Constant-time check of ``supplied`` against the bridge token.

    False before startup and for a missing token.
    """
    if _bridge_token is None or not supplied:
        return False
    return secrets.compare_digest(supplied.encode(), _bridge_token.encode())


async def verify_session_token(
    x_session_token: Optional[str] = Header(None),
) -> str:
    """Route dependency guarding every bridge and settings endpoint.

    503 while no token has been minted (the API is still starting),
    401 when the header is absent or wrong.
    """
    if _bridge_token is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SiteLock backend is still starting",
        )
    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {TOKEN_HEADER} header",
        )
    if not token_matches(x_session_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {TOKEN_HEADER}",
        )
    return x_session_token
