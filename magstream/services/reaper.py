"""Background task that reclaims the on-disk storage root."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional

import anyio

from magstream.runtime.sessions import ActiveSessions
from magstream.sources.base import ContentSource

logger = logging.getLogger(__name__)

REAP_INTERVAL_SECONDS = 3 * 3600


class StorageReaper:
    """
    Periodically deletes downloaded bundles from the storage root.

    By default a bundle directory is skipped while a stream session is reading
    from it. With respect_active_sessions=False the whole storage root is
    removed every cycle, including files that active sessions are reading.
    """

    def __init__(
        self,
        storage_dir: str | Path,
        sessions: ActiveSessions,
        content_source: Optional[ContentSource] = None,
        *,
        interval_seconds: float = REAP_INTERVAL_SECONDS,
        respect_active_sessions: bool = True,
    ):
        """
        Initialize the reaper.

        Args:
            storage_dir: Root directory holding one sub-directory per bundle
            sessions: Registry of bundles with open stream sessions
            content_source: Told to forget each bundle before it is deleted
            interval_seconds: Time between reaping cycles (default 3 hours)
            respect_active_sessions: Skip bundles that are being streamed
        """
        self.storage_dir = Path(storage_dir)
        self.sessions = sessions
        self.content_source = content_source
        self.interval_seconds = interval_seconds
        self.respect_active_sessions = respect_active_sessions
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the background reaping task."""
        if self._running:
            logger.warning("Storage reaper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Started storage reaper (interval: %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop the background reaping task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped storage reaper")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.reap_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in storage reaper: %s", e, exc_info=True)

    async def reap_once(self) -> list[str]:
        """
        Run one reaping cycle and return the names of the removed entries.
        Failures are logged; nothing is retried before the next cycle.
        """
        if not self.respect_active_sessions:
            return await self._clear_storage_root()

        try:
            entries = await anyio.to_thread.run_sync(self._list_entries)
        except OSError as e:
            logger.error("Error listing storage root %s: %s", self.storage_dir, e)
            return []

        removed = []
        skipped = 0
        for entry in entries:
            if self.sessions.is_active(entry.name):
                skipped += 1
                logger.info("Skipping bundle %s: stream in progress", entry.name)
                continue

            try:
                if self.content_source is not None:
                    await self.content_source.evict(entry.name)
                await anyio.to_thread.run_sync(_remove_entry, entry)
            except Exception as e:
                logger.error("Error removing %s: %s", entry, e, exc_info=True)
                continue
            removed.append(entry.name)

        logger.info("Storage reaper cycle complete: %d removed, %d in use", len(removed), skipped)
        return removed

    async def _clear_storage_root(self) -> list[str]:
        if not self.storage_dir.exists():
            logger.info("Downloads folder cleared")
            return []

        try:
            names = [entry.name for entry in await anyio.to_thread.run_sync(self._list_entries)]
            await anyio.to_thread.run_sync(shutil.rmtree, self.storage_dir)
        except OSError as e:
            logger.error("Error clearing downloads folder: %s", e)
            return []

        logger.info("Downloads folder cleared")
        return names

    def _list_entries(self) -> list[Path]:
        if not self.storage_dir.exists():
            return []
        return sorted(self.storage_dir.iterdir())


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
