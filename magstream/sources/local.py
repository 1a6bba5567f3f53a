from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Sequence

import anyio

from magstream.core.exceptions import AcquisitionError
from magstream.sources.magnet import bundle_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFile:
    """
    name: path relative to the bundle directory, "/" separated
    length: size in bytes when the bundle was listed
    path: absolute filesystem path
    """
    name: str
    length: int
    path: Path

    def open_reader(self) -> BinaryIO:
        return self.path.open("rb")


@dataclass
class LocalBundle:
    key: str
    root: Path
    entries: Sequence[LocalFile]

    async def wait_ready(self) -> None:
        return None

    def files(self) -> Sequence[LocalFile]:
        return self.entries


class LocalContentSource:
    """
    Serves bundles already present on disk under STORAGE_DIR/<bundle key>.

    Nothing is downloaded: a magnet resolves only if a bundle with its info-hash
    was fetched earlier, which makes this source useful for replaying a cache.
    """

    def __init__(self, storage_dir: str | Path):
        self.storage_dir = Path(storage_dir)

    async def resolve(self, locator: str) -> LocalBundle:
        key = bundle_key(locator)
        root = self._safe_bundle_path(key)
        if not await anyio.to_thread.run_sync(root.is_dir):
            raise AcquisitionError(f"unknown content bundle: {key}")

        entries = await anyio.to_thread.run_sync(self._list_files, root)
        logger.debug("Resolved local bundle %s with %d files", key, len(entries))
        return LocalBundle(key=key, root=root, entries=entries)

    async def evict(self, key: str) -> None:
        return None

    async def close(self) -> None:
        return None

    # ---------- internals ----------

    def _safe_bundle_path(self, key: str) -> Path:
        base = self.storage_dir.resolve()
        target = (base / key).resolve()
        if not key or target == base or target.parent != base:
            raise AcquisitionError(f"invalid content locator: {key!r}")
        return target

    @staticmethod
    def _list_files(root: Path) -> list[LocalFile]:
        files = []
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            files.append(
                LocalFile(
                    name=path.relative_to(root).as_posix(),
                    length=path.stat().st_size,
                    path=path,
                )
            )
        return files
