"""
Caller-visible permission state for long-lived consumers (live sessions).

Each refresh opens a new generation and exposes PENDING right away. A
resolution that finishes after a newer refresh was started, or after the
principal changed, is dropped instead of being published.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from kalustovahti.core.permission_resolver import PermissionResolution, PermissionResolver

logger = structlog.get_logger()

Listener = Callable[[PermissionResolution], Awaitable[None]]


class PermissionTracker:
    def __init__(self, resolver: PermissionResolver, listener: Optional[Listener] = None) -> None:
        self._resolver = resolver
        self._listener = listener
        self._generation = 0
        self._principal_id: Optional[str] = None
        self._current = PermissionResolution.pending()
        self._lock = asyncio.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def principal_id(self) -> Optional[str]:
        return self._principal_id

    def current(self) -> PermissionResolution:
        """Latest published state; PENDING until a resolution for the current principal lands."""
        if self._current.principal_id != self._principal_id:
            return PermissionResolution.pending(self._principal_id)
        return self._current

    async def refresh(self, principal_id: Optional[str] = None, *, keep_principal: bool = False) -> PermissionResolution:
        """
        Start a new resolution cycle and wait for it.

        Returns whatever state is current once the cycle ends, which is the new
        result unless another refresh superseded it in the meantime.
        """
        async with self._lock:
            self._generation += 1
            generation = self._generation
            if not keep_principal:
                self._principal_id = str(principal_id) if principal_id is not None else None
            target = self._principal_id
            await self._publish(PermissionResolution.pending(target))

        result = await self._resolver.resolve(target)

        async with self._lock:
            if generation != self._generation or target != self._principal_id:
                logger.debug(
                    "Discarding superseded permission resolution",
                    principal_id=target,
                    generation=generation,
                    current_generation=self._generation,
                )
                return self.current()
            await self._publish(result)
            return result

    async def invalidate(self) -> PermissionResolution:
        """Role or grant data changed: resolve again for the same principal."""
        return await self.refresh(keep_principal=True)

    async def _publish(self, resolution: PermissionResolution) -> None:
        self._current = resolution
        if self._listener is not None:
            await self._listener(resolution)
