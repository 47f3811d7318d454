# SiteLock API: Blocker endpoints
#
# Called by the browser bridge:
# - navigation: should this tab be challenged for this URL?
# - challenge:  the overlay submitted a password
# - contexts:   a tab was closed
# - evaluate:   dry-run the mutation guard for a proposed block list

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..blocker.coordinator import get_coordinator
from ..blocker.exceptions import StorageError
from ..blocker.mutation_guard import MutationGuard, removed_rules
from .security import verify_session_token

router = APIRouter(prefix="/api/blocker", tags=["blocker"])


# Request/Response Models
class NavigationRequest(BaseModel):
    context_id: str = Field(..., min_length=1, max_length=200)
    url: str = ""


class NavigationResponse(BaseModel):
    decision: str
    destination: str


class ChallengeRequest(BaseModel):
    context_id: str = Field(..., min_length=1, max_length=200)
    destination: str
    secret: str = ""


class ChallengeResponse(BaseModel):
    result: str
    message: str


class EvaluateRequest(BaseModel):
    old_rules: List[str] = Field(default_factory=list)
    new_rules: List[str] = Field(default_factory=list)
    has_secret: bool = False


class EvaluateResponse(BaseModel):
    decision: str
    message: str
    removed: List[str]


def _storage_failure(e: StorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Settings storage unavailable: {e}",
    )


# Endpoints

@router.post("/navigation", response_model=NavigationResponse)
async def navigation(
    request: NavigationRequest,
    token: str = Depends(verify_session_token),
):
    """Decide whether a navigation must be challenged. Malformed URLs never are."""
    try:
        outcome = await get_coordinator().evaluate_navigation(request.context_id, request.url)
    except StorageError as e:
        raise _storage_failure(e)
    return NavigationResponse(decision=outcome.decision.value, destination=outcome.destination)


@router.post("/challenge", response_model=ChallengeResponse)
async def challenge(
    request: ChallengeRequest,
    token: str = Depends(verify_session_token),
):
    """
    Check a password typed into the overlay.

    ``not_configured`` is distinct from ``rejected`` so the overlay can
    point the user at Settings instead of saying "wrong password".
    """
    try:
        result = await get_coordinator().on_challenge_response(
            request.context_id, request.destination, request.secret
        )
    except StorageError as e:
        raise _storage_failure(e)
    return ChallengeResponse(result=result.value, message=result.message)


@router.delete("/contexts/{context_id}")
async def close_context(
    context_id: str,
    token: str = Depends(verify_session_token),
):
    """Tab closed: its unlocks are forgotten."""
    get_coordinator().on_context_closed(context_id)
    return {"success": True}


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate(
    request: EvaluateRequest,
    token: str = Depends(verify_session_token),
):
    decision = MutationGuard.evaluate(request.old_rules, request.new_rules, request.has_secret)
    return EvaluateResponse(
        decision=decision.value,
        message=decision.description,
        removed=list(removed_rules(request.old_rules, request.new_rules)),
    )
