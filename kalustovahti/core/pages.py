"""
Protected application sections.

The page key values are shared with the ``page_key`` column of the grant
table; rows using any other value are ignored by permission resolution.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class PageKey(str, Enum):
    DASHBOARD = "dashboard"
    OPERATORS = "operators"
    DOCUMENTS = "documents"
    FLEET = "fleet"
    DEVICES = "devices"
    DRIVERS = "drivers"
    EQUIPMENT = "equipment"
    QUALITY = "quality"
    SETTINGS = "settings"
    USERS = "users"


ALL_PAGES: tuple[PageKey, ...] = tuple(PageKey)

PAGE_LABELS: dict[PageKey, str] = {
    PageKey.DASHBOARD: "Hallintapaneeli",
    PageKey.OPERATORS: "Autoilijat",
    PageKey.DOCUMENTS: "Dokumentit",
    PageKey.FLEET: "Autot",
    PageKey.DEVICES: "Laitevarasto",
    PageKey.DRIVERS: "Kuljettajat",
    PageKey.EQUIPMENT: "Attribuutit",
    PageKey.QUALITY: "Laadunvalvonta",
    PageKey.SETTINGS: "Asetukset",
    PageKey.USERS: "Käyttäjät",
}


def parse_page_key(value: str | PageKey | None) -> Optional[PageKey]:
    """Return the matching PageKey, or None for values outside the fixed set."""
    if value is None:
        return None
    if isinstance(value, PageKey):
        return value
    try:
        return PageKey(value)
    except ValueError:
        return None
