"""
Access gate for a guarded unit of content tied to one page key.

The decision is a pure function of a PermissionResolution. Guarded content
is produced only for GRANTED; PENDING shows a loading placeholder, DENIED a
no-access notice with a way back to a safe page, ERROR a generic error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.pages import PAGE_LABELS, PageKey, parse_page_key
from kalustovahti.core.permission_resolver import PermissionResolution

logger = structlog.get_logger()

LOADING_MESSAGE = "Ladataan..."
DENIED_TITLE = "Ei käyttöoikeuksia"
DENIED_MESSAGE = (
    "Sinulla ei ole oikeuksia tähän sivuun. "
    "Ota yhteyttä järjestelmänvalvojaan jos tarvitset pääsyn."
)
DENIED_ACTION_LABEL = "Palaa etusivulle"
ERROR_MESSAGE = "Käyttöoikeuksien tarkistus epäonnistui. Yritä myöhemmin uudelleen."


class GateState(str, Enum):
    PENDING = "pending"
    DENIED = "denied"
    GRANTED = "granted"
    ERROR = "error"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    page_key: PageKey
    require_edit: bool
    message: Optional[str] = None
    fallback_path: Optional[str] = None
    content: Any = None

    @property
    def granted(self) -> bool:
        return self.state == GateState.GRANTED

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "state": self.state.value,
            "page_key": self.page_key.value,
            "page_label": PAGE_LABELS[self.page_key],
            "require_edit": self.require_edit,
        }
        if self.state == GateState.DENIED:
            body["title"] = DENIED_TITLE
            body["fallback"] = {"path": self.fallback_path, "label": DENIED_ACTION_LABEL}
        if self.message:
            body["message"] = self.message
        if self.granted and self.content is not None:
            body["content"] = self.content
        return body


def evaluate_gate(
    resolution: PermissionResolution,
    page_key: PageKey | str,
    require_edit: bool = False,
    fallback_path: Optional[str] = None,
) -> GateDecision:
    page = parse_page_key(page_key)
    if page is None:
        raise ValueError(f"Unknown page key: {page_key!r}")

    if resolution.is_pending:
        return GateDecision(GateState.PENDING, page, require_edit, message=LOADING_MESSAGE)

    if resolution.is_failed:
        return GateDecision(GateState.ERROR, page, require_edit, message=ERROR_MESSAGE)

    if not resolution.permission_for(page).allows(require_edit):
        return GateDecision(
            GateState.DENIED,
            page,
            require_edit,
            message=DENIED_MESSAGE,
            fallback_path=fallback_path or settings.ACCESS_GATE_FALLBACK_PATH,
        )

    return GateDecision(GateState.GRANTED, page, require_edit)


class AccessGate:
    """Wraps one page key and required level; see evaluate_gate"""

    def __init__(self, page_key: PageKey | str, require_edit: bool = False, fallback_path: Optional[str] = None):
        page = parse_page_key(page_key)
        if page is None:
            raise ValueError(f"Unknown page key: {page_key!r}")
        self.page_key = page
        self.require_edit = require_edit
        self.fallback_path = fallback_path

    def decide(self, resolution: PermissionResolution) -> GateDecision:
        return evaluate_gate(resolution, self.page_key, self.require_edit, self.fallback_path)

    def render(self, resolution: PermissionResolution, content: Callable[[], Any]) -> GateDecision:
        """Decide and, only when granted, build the guarded content."""
        decision = self.decide(resolution)
        if not decision.granted:
            logger.debug(
                "Access gate blocked content",
                page_key=self.page_key.value,
                state=decision.state.value,
                principal_id=resolution.principal_id,
            )
            return decision
        return GateDecision(
            decision.state,
            decision.page_key,
            decision.require_edit,
            content=content(),
        )
