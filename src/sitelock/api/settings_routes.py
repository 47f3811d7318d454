# SiteLock API: Settings endpoints
#
# Backs the settings page:
# - read the current block list / storage area / password status
# - save (may answer "confirmation_required" when sites are removed)
# - confirm or cancel a pending removal
# - export / import the settings document

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..blocker.exceptions import (
    InvalidSettingsPayload,
    MutationRejected,
    NoPendingMutation,
    StorageError,
    Unauthorized,
)
from ..settings.editor import SaveStatus, SettingsEditor
from ..settings.store import get_settings_store
from ..settings.transfer import export_filename, export_settings, import_settings
from .security import verify_session_token

router = APIRouter(prefix="/api/settings", tags=["settings"])

_editor: Optional[SettingsEditor] = None


def _get_editor() -> SettingsEditor:
    global _editor
    if _editor is None:
        _editor = SettingsEditor(get_settings_store())
    return _editor


def reset_editor() -> None:
    """Drop the editor and any pending change (for testing)."""
    global _editor
    _editor = None


# Request Models
class SaveSettingsRequest(BaseModel):
    blocked_sites: Union[str, List[str]] = ""
    # None keeps the current area
    blocked_storage: Optional[str] = Field(None, pattern="^(sync|local)$")
    master_password: Optional[str] = None


class ConfirmRequest(BaseModel):
    master_password: str = ""


class ImportRequest(BaseModel):
    payload: Dict[str, Any]
    master_password: Optional[str] = None


def _storage_failure(e: StorageError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Settings storage unavailable: {e}",
    )


# Endpoints

@router.get("")
async def get_settings(token: str = Depends(verify_session_token)):
    try:
        snapshot = await _get_editor().load()
    except StorageError as e:
        raise _storage_failure(e)
    return snapshot.to_dict()


@router.post("")
async def save_settings(
    request: SaveSettingsRequest,
    token: str = Depends(verify_session_token),
):
    """
    Save the settings form.

    Removing sites needs a master password: 409 when none is set,
    otherwise ``confirmation_required`` and a follow-up call to /confirm.
    """
    try:
        outcome = await _get_editor().propose(
            request.blocked_sites, request.blocked_storage, request.master_password
        )
    except StorageError as e:
        raise _storage_failure(e)

    if outcome.status == SaveStatus.REJECTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=outcome.message)
    return outcome.to_dict()


@router.post("/confirm")
async def confirm_settings(
    request: ConfirmRequest,
    token: str = Depends(verify_session_token),
):
    try:
        outcome = await _get_editor().confirm(request.master_password)
    except NoPendingMutation as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MutationRejected as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StorageError as e:
        raise _storage_failure(e)
    return outcome.to_dict()


@router.post("/cancel")
async def cancel_settings(token: str = Depends(verify_session_token)):
    _get_editor().cancel()
    return {"success": True}


@router.get("/export")
async def export(token: str = Depends(verify_session_token)):
    try:
        payload = await export_settings(get_settings_store())
    except StorageError as e:
        raise _storage_failure(e)
    return JSONResponse(
        content=payload.to_dict(),
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/import")
async def import_(
    request: ImportRequest,
    token: str = Depends(verify_session_token),
):
    try:
        payload = await import_settings(
            get_settings_store(), request.payload, request.master_password
        )
    except InvalidSettingsPayload as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MutationRejected as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StorageError as e:
        raise _storage_failure(e)

    # A pending removal was computed against the old list
    _get_editor().cancel()
    return {
        "success": True,
        "message": "Imported settings.",
        "blocked_sites": payload.blocked_sites,
        "blocked_storage": payload.blocked_storage,
        "has_master_password": bool(payload.master_hash),
    }
