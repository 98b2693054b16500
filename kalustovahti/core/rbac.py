"""
RBAC helpers and canonical role definitions for Kalustovahti.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import structlog

from kalustovahti.core.pages import ALL_PAGES, PageKey, parse_page_key

logger = structlog.get_logger()


class SystemRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    DRIVER = "driver"
    CONTRACT_MANAGER = "contract_manager"
    HARDWARE_OPS = "hardware_ops"
    SUPPORT = "support"


SUPER_ADMIN_ROLE = SystemRole.SYSTEM_ADMIN.value
DEFAULT_USER_ROLE = SystemRole.SUPPORT.value

SYSTEM_ROLE_DISPLAY_NAMES: dict[str, str] = {
    SystemRole.SYSTEM_ADMIN.value: "Järjestelmänvalvoja",
    SystemRole.ADMIN.value: "Ylläpitäjä",
    SystemRole.MANAGER.value: "Esihenkilö",
    SystemRole.DRIVER.value: "Kuljettaja",
    SystemRole.CONTRACT_MANAGER.value: "Sopimushallinta",
    SystemRole.HARDWARE_OPS.value: "Laitehallinta",
    SystemRole.SUPPORT.value: "Asiakastuki",
}


@dataclass(frozen=True)
class PagePermission:
    can_view: bool = False
    can_edit: bool = False

    def merge(self, can_view: bool, can_edit: bool) -> "PagePermission":
        return PagePermission(
            can_view=self.can_view or bool(can_view),
            can_edit=self.can_edit or bool(can_edit),
        )

    def allows(self, require_edit: bool = False) -> bool:
        return self.can_edit if require_edit else self.can_view


NO_ACCESS = PagePermission()
FULL_ACCESS = PagePermission(can_view=True, can_edit=True)


@dataclass(frozen=True)
class Grant:
    """What one role may do on one page. page_key stays a raw string so that
    rows naming retired or not-yet-deployed pages can be carried and skipped."""

    role: str
    page_key: str
    can_view: bool = False
    can_edit: bool = False


def normalize_role_name(name: str) -> str:
    return "_".join(name.strip().lower().split())


def empty_permissions() -> dict[PageKey, PagePermission]:
    return {page: NO_ACCESS for page in ALL_PAGES}


def resolve_page_permissions(
    *,
    principal_present: bool,
    is_super_admin: bool,
    roles: Iterable[str],
    grants: Iterable[Grant],
) -> dict[PageKey, PagePermission]:
    """
    Merge role membership with the grant table into a per-page mapping.

    Every page key is present in the result. Super admins get full access
    without the grant table being read; everyone else gets the boolean OR of
    all grants attached to roles they hold.
    """
    permissions = empty_permissions()

    if not principal_present:
        return permissions

    if is_super_admin:
        return {page: FULL_ACCESS for page in ALL_PAGES}

    held_roles = set(roles)
    for grant in grants:
        if grant.role not in held_roles:
            continue
        page = parse_page_key(grant.page_key)
        if page is None:
            logger.debug("Ignoring grant for unknown page", role=grant.role, page_key=grant.page_key)
            continue
        permissions[page] = permissions[page].merge(grant.can_view, grant.can_edit)

    return permissions
