"""
Contract between the stream endpoint and whatever acquires the bytes.

A content source turns an opaque locator (usually a magnet URI) into a handle.
The handle reports when its file list is known and hands out blocking,
seekable readers that may still be waiting on data behind the read position.
"""

from __future__ import annotations

from typing import Protocol, Sequence


class SeekableReader(Protocol):
    def seek(self, offset: int, whence: int = 0) -> int: ...

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class MediaFile(Protocol):
    name: str
    length: int

    def open_reader(self) -> SeekableReader: ...


class ContentHandle(Protocol):
    # storage sub-directory holding this bundle
    key: str

    async def wait_ready(self) -> None: ...

    def files(self) -> Sequence[MediaFile]: ...


class ContentSource(Protocol):
    async def resolve(self, locator: str) -> ContentHandle: ...

    async def evict(self, key: str) -> None: ...

    async def close(self) -> None: ...
