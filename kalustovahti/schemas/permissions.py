"""
Permission and access gate schemas
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from kalustovahti.core.permission_resolver import ResolutionStatus


class PagePermissionOut(BaseModel):
    can_view: bool = False
    can_edit: bool = False


class PermissionQueryOut(PagePermissionOut):
    """getPermission(page_key)"""
    pending: bool = False


class ResolvedPermissionsOut(BaseModel):
    status: ResolutionStatus
    principal_id: Optional[str] = None
    is_super_admin: bool = False
    permissions: Dict[str, PagePermissionOut] = Field(default_factory=dict)


class PageInfo(BaseModel):
    key: str
    label: str
