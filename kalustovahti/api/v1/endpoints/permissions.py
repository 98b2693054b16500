"""
Permission Endpoints
Resolved page permissions of the calling principal
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from kalustovahti.core.access_gate import evaluate_gate
from kalustovahti.core.deps import get_current_resolution
from kalustovahti.core.pages import parse_page_key
from kalustovahti.core.permission_resolver import PermissionResolution, resolution_to_dict
from kalustovahti.schemas.permissions import PermissionQueryOut, ResolvedPermissionsOut

router = APIRouter()


@router.get("/me", response_model=ResolvedPermissionsOut)
async def my_permissions(
    resolution: PermissionResolution = Depends(get_current_resolution),
) -> Any:
    """
    Full page mapping for the caller. Anonymous callers get every page
    denied; pending and failed resolutions also report every page denied.
    """
    return resolution_to_dict(resolution)


@router.get("/me/{page_key}", response_model=PermissionQueryOut)
async def my_page_permission(
    page_key: str,
    resolution: PermissionResolution = Depends(get_current_resolution),
) -> Any:
    page = parse_page_key(page_key)
    if page is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown page")
    if resolution.is_failed:
        # A failed read is reported as an error, never as an all-false answer
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=evaluate_gate(resolution, page).to_dict(),
        )
    return resolution.get_permission(page).to_dict()
