"""
Page Endpoints
Page catalogue and access gate decisions
"""

from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from kalustovahti.core.access_gate import AccessGate
from kalustovahti.core.deps import get_current_resolution
from kalustovahti.core.pages import ALL_PAGES, PAGE_LABELS, parse_page_key
from kalustovahti.core.permission_resolver import PermissionResolution
from kalustovahti.schemas.permissions import PageInfo

router = APIRouter()


@router.get("/", response_model=List[PageInfo])
async def list_pages() -> Any:
    return [PageInfo(key=page.value, label=PAGE_LABELS[page]) for page in ALL_PAGES]


@router.get("/{page_key}")
async def guard_page(
    page_key: str,
    require_edit: bool = Query(default=False),
    resolution: PermissionResolution = Depends(get_current_resolution),
) -> Any:
    """
    Gate decision for one page: pending, denied (with fallback path),
    granted or error. The decision is reported with status 200; blocking
    is left to the caller.
    """
    page = parse_page_key(page_key)
    if page is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown page")

    gate = AccessGate(page, require_edit=require_edit)
    decision = gate.render(resolution, lambda: {"page_key": page.value, "label": PAGE_LABELS[page]})
    return decision.to_dict()
