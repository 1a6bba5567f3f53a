from __future__ import annotations

import io
import logging
from typing import Callable, Optional, Protocol

import anyio

from magstream.core.exceptions import StreamIOError
from magstream.services.range_parser import ByteRange
from magstream.sources.base import SeekableReader

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB


class ByteSink(Protocol):
    """
    Output of a stream session. Written bytes may be buffered until flush().
    Implementations raise StreamWriteError when the client is gone.
    """

    async def write(self, data: bytes) -> None: ...

    async def flush(self) -> None: ...


class StreamSession:
    """
    Copies one byte range from a seekable reader to a sink.

    The session owns its reader from open() until close(). Reads and seeks are
    blocking calls on readers that may wait for data still being downloaded,
    so they run in a worker thread under `limiter` rather than anyio's shared
    default limiter. A session without a limiter gets one of its own. Every
    chunk is flushed as soon as it is written so the client sees progress
    while the source is still filling in.
    """

    def __init__(
        self,
        open_reader: Callable[[], SeekableReader],
        byte_range: ByteRange,
        *,
        chunk_size: int = CHUNK_SIZE,
        limiter: Optional[anyio.CapacityLimiter] = None,
    ):
        self._open_reader = open_reader
        self.byte_range = byte_range
        self.chunk_size = chunk_size
        self.bytes_written = 0
        self.limiter = limiter
        self._reader: Optional[SeekableReader] = None
        self._closed = False

    async def open(self) -> None:
        """
        Acquire the reader and seek to the range start.
        Raises StreamIOError (with the reader already released) on failure.
        """
        if self._reader is not None or self._closed:
            raise StreamIOError("stream session already opened")
        if self.limiter is None:
            self.limiter = anyio.CapacityLimiter(1)
        try:
            self._reader = await anyio.to_thread.run_sync(self._open_reader, limiter=self.limiter)
        except OSError as exc:
            self._closed = True
            raise StreamIOError(f"Error opening file: {exc}") from exc

        try:
            await anyio.to_thread.run_sync(
                self._reader.seek, self.byte_range.start, io.SEEK_SET, limiter=self.limiter
            )
        except (OSError, ValueError) as exc:
            self.close()
            raise StreamIOError(f"Error seeking in file: {exc}") from exc

    async def pump(self, sink: ByteSink) -> int:
        """
        Stream [start, end] into `sink` and return the number of bytes written.

        Stops early if the reader runs dry. Never writes past `end`. A read that
        is still blocked when the caller is cancelled is abandoned; close()
        then releases the reader and unblocks the worker thread.
        """
        reader = self._reader
        if reader is None:
            raise StreamIOError("stream session is not open")

        position = self.byte_range.start
        end = self.byte_range.end
        while position <= end:
            if self._closed:
                raise StreamIOError("stream session closed")
            want = min(self.chunk_size, end - position + 1)
            try:
                chunk = await anyio.to_thread.run_sync(
                    reader.read, want, abandon_on_cancel=True, limiter=self.limiter
                )
            except (OSError, ValueError) as exc:
                raise StreamIOError(f"Error reading file: {exc}") from exc
            if not chunk:
                break

            await sink.write(chunk)
            await sink.flush()
            position += len(chunk)
            self.bytes_written += len(chunk)

        return self.bytes_written

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        reader, self._reader = self._reader, None
        if reader is None:
            return
        try:
            reader.close()
        except OSError as exc:
            logger.warning("Error closing reader: %s", exc)

    async def __aenter__(self) -> StreamSession:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
