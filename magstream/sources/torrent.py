from __future__ import annotations

import io
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

import anyio
import libtorrent as lt

from magstream.core.exceptions import AcquisitionError
from magstream.sources.magnet import info_hash, is_magnet

logger = logging.getLogger(__name__)


class TorrentFileReader:
    """
    Blocking, seekable reader over one file of a torrent that may still be downloading.

    read() waits until the piece under the current position is on disk and asks
    libtorrent to fetch the next few pieces first, which is what lets a client
    play a file while the rest of it is still arriving.
    """

    def __init__(
        self,
        handle: "lt.torrent_handle",
        path: Path,
        *,
        offset: int,
        length: int,
        piece_length: int,
        num_pieces: int,
        readahead_pieces: int,
        poll_interval: float,
    ):
        self._handle = handle
        self._path = path
        self._offset = offset
        self._length = length
        self._piece_length = piece_length
        self._num_pieces = num_pieces
        self._readahead = readahead_pieces
        self._poll_interval = poll_interval
        self._pos = 0
        self._fh: Optional[io.BufferedReader] = None
        self._closed = threading.Event()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._length + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if pos < 0:
            raise OSError(f"negative seek position {pos}")
        self._pos = pos
        return pos

    def read(self, size: int = -1) -> bytes:
        if self._closed.is_set():
            raise ValueError("read from closed torrent reader")
        remaining = self._length - self._pos
        if remaining <= 0:
            return b""
        if size < 0 or size > remaining:
            size = remaining

        absolute = self._offset + self._pos
        piece = absolute // self._piece_length
        self._wait_for_piece(piece)

        # never read past the piece we know is complete
        piece_end = (piece + 1) * self._piece_length
        size = min(size, piece_end - absolute)

        if self._fh is None:
            self._fh = self._path.open("rb")
        self._fh.seek(self._pos)
        data = self._fh.read(size)
        self._pos += len(data)
        return data

    def close(self) -> None:
        self._closed.set()
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def _wait_for_piece(self, piece: int) -> None:
        last = min(piece + self._readahead, self._num_pieces)
        for i, p in enumerate(range(piece, last)):
            self._handle.set_piece_deadline(p, i * 100)

        while not self._handle.have_piece(piece):
            if self._closed.is_set():
                raise ValueError("torrent reader closed while waiting for data")
            if not self._handle.is_valid():
                raise OSError(f"torrent for {self._path.name} was removed")
            time.sleep(self._poll_interval)


class TorrentFile:
    def __init__(self, bundle: "TorrentBundle", index: int, name: str, length: int, offset: int):
        self._bundle = bundle
        self.index = index
        self.name = name
        self.length = length
        self.offset = offset

    def open_reader(self) -> TorrentFileReader:
        return self._bundle.open_reader(self)


class TorrentBundle:
    def __init__(self, key: str, handle: "lt.torrent_handle", save_path: Path, *,
                 poll_interval: float, readahead_pieces: int):
        self.key = key
        self.handle = handle
        self.save_path = save_path
        self._poll_interval = poll_interval
        self._readahead = readahead_pieces
        self._files: Optional[list[TorrentFile]] = None
        self._piece_length = 0
        self._num_pieces = 0

    async def wait_ready(self) -> None:
        while not self.handle.status().has_metadata:
            await anyio.sleep(self._poll_interval)
        self._load_files()

    def files(self) -> Sequence[TorrentFile]:
        if self._files is None:
            self._load_files()
        return self._files or []

    def open_reader(self, f: TorrentFile) -> TorrentFileReader:
        return TorrentFileReader(
            self.handle,
            self.save_path / f.name,
            offset=f.offset,
            length=f.length,
            piece_length=self._piece_length,
            num_pieces=self._num_pieces,
            readahead_pieces=self._readahead,
            poll_interval=self._poll_interval,
        )

    def _load_files(self) -> None:
        info = self.handle.torrent_file()
        if info is None:
            return
        storage = info.files()
        self._piece_length = info.piece_length()
        self._num_pieces = info.num_pieces()
        self._files = [
            TorrentFile(
                self,
                index=i,
                name=storage.file_path(i).replace("\\", "/"),
                length=storage.file_size(i),
                offset=storage.file_offset(i),
            )
            for i in range(storage.num_files())
        ]


class TorrentContentSource:
    """
    BitTorrent content source backed by a libtorrent session.

    Each magnet is downloaded sequentially into STORAGE_DIR/<info-hash>/.
    Adding the same magnet twice returns the bundle that is already running.
    """

    def __init__(
        self,
        storage_dir: str | Path,
        *,
        listen_interfaces: str = "0.0.0.0:6881",
        poll_interval: float = 0.5,
        readahead_pieces: int = 8,
    ):
        self.storage_dir = Path(storage_dir)
        self.poll_interval = poll_interval
        self.readahead_pieces = readahead_pieces
        self._session = lt.session({"listen_interfaces": listen_interfaces})
        self._bundles: dict[str, TorrentBundle] = {}

    async def resolve(self, locator: str) -> TorrentBundle:
        if not is_magnet(locator):
            raise AcquisitionError(f"not a magnet link: {locator}")
        key = info_hash(locator)

        bundle = self._bundles.get(key)
        if bundle is not None and bundle.handle.is_valid():
            return bundle

        save_path = self.storage_dir / key
        try:
            params = lt.parse_magnet_uri(locator)
            params.save_path = str(save_path)
            handle = self._session.add_torrent(params)
        except (RuntimeError, ValueError) as exc:
            raise AcquisitionError(f"Error adding magnet: {exc}") from exc

        handle.set_flags(lt.torrent_flags.sequential_download)
        bundle = TorrentBundle(
            key,
            handle,
            save_path,
            poll_interval=self.poll_interval,
            readahead_pieces=self.readahead_pieces,
        )
        self._bundles[key] = bundle
        logger.info("Added torrent %s", key)
        return bundle

    async def evict(self, key: str) -> None:
        bundle = self._bundles.pop(key, None)
        if bundle is None:
            return
        if bundle.handle.is_valid():
            self._session.remove_torrent(bundle.handle)
        logger.info("Removed torrent %s", key)

    async def close(self) -> None:
        for key in list(self._bundles):
            await self.evict(key)
        self._session.pause()
