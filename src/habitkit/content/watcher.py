"""Hot-reload watcher — poll source snapshots and reload the manager on change.

The watcher is the only caller of ContentManager.reload() in watch mode, so
reloads never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from habitkit.content.manager import ContentManager

logger = logging.getLogger(__name__)


class Snapshotting(Protocol):
    def snapshot(self) -> dict[str, Any]:
        """Map of source name -> change marker (mtime, version, ...)."""
        ...


class ContentWatcher:
    """Reload content whenever the provider's snapshot changes."""

    def __init__(
        self,
        manager: ContentManager,
        provider: Snapshotting,
        poll_interval: float = 2.0,
    ) -> None:
        self._manager = manager
        self._provider = provider
        self._poll_interval = poll_interval
        self._last: dict[str, Any] | None = None
        self.reloads = 0

    async def check(self) -> bool:
        """Compare against the last snapshot; reload if it differs. Returns True on reload."""
        current = self._provider.snapshot()
        if self._last is None:
            self._last = current
            return False
        if current == self._last:
            return False

        changed = sorted(
            name
            for name in set(current) | set(self._last)
            if current.get(name) != self._last.get(name)
        )
        logger.info("Content changed (%s), reloading", ", ".join(changed))
        self._last = current
        await self._manager.reload()
        self.reloads += 1
        return True

    async def run(self, shutdown_event: asyncio.Event | None = None) -> None:
        """Poll until shutdown_event is set."""
        shutdown_event = shutdown_event or asyncio.Event()
        logger.info("Content watcher started (interval=%.1fs)", self._poll_interval)
        await self._manager.initialize()
        self._last = self._provider.snapshot()

        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self._poll_interval)
                break  # shutdown requested
            except asyncio.TimeoutError:
                pass

            try:
                await self.check()
            except Exception as e:
                logger.error("Content reload failed: %s", e)

        logger.info("Content watcher stopped.")
