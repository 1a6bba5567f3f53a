"""Shared pytest fixtures and fakes for all tests."""

import io
from dataclasses import dataclass, field
from typing import Optional

import anyio
import pytest
from fastapi.testclient import TestClient

from magstream.core import Settings
from magstream.core.exceptions import AcquisitionError
from magstream.main import create_app


class FakeReader(io.BytesIO):
    """
    In-memory reader that can be told to fail on seek, or on read past an offset.
    """

    def __init__(self, data: bytes, *, fail_seek: bool = False, fail_read_at: Optional[int] = None):
        super().__init__(data)
        self.fail_seek = fail_seek
        self.fail_read_at = fail_read_at

    def seek(self, offset, whence=0):
        if self.fail_seek:
            raise OSError("seek failed")
        return super().seek(offset, whence)

    def read(self, size=-1):
        if self.fail_read_at is not None and self.tell() >= self.fail_read_at:
            raise OSError("source went away")
        return super().read(size)


@dataclass
class FakeFile:
    name: str
    data: bytes = b""
    length: Optional[int] = None
    fail_seek: bool = False
    fail_read_at: Optional[int] = None
    readers: list = field(default_factory=list)

    def __post_init__(self):
        if self.length is None:
            self.length = len(self.data)

    def open_reader(self) -> FakeReader:
        reader = FakeReader(self.data, fail_seek=self.fail_seek, fail_read_at=self.fail_read_at)
        self.readers.append(reader)
        return reader


@dataclass
class FakeHandle:
    key: str
    entries: list
    ready: bool = True
    ready_event: Optional[anyio.Event] = None

    async def wait_ready(self):
        if self.ready_event is not None:
            await self.ready_event.wait()
        elif not self.ready:
            await anyio.sleep_forever()

    def files(self):
        return self.entries


class FakeSource:
    """
    Content source resolving locators from a fixed table.
    """

    def __init__(self, handles=None):
        self.handles = dict(handles or {})
        self.resolved = []
        self.evicted = []
        self.closed = False

    async def resolve(self, locator):
        self.resolved.append(locator)
        handle = self.handles.get(locator)
        if handle is None:
            raise AcquisitionError(f"Error adding magnet: unknown locator {locator}")
        return handle

    async def evict(self, key):
        self.evicted.append(key)

    async def close(self):
        self.closed = True


def sample_bytes(size: int) -> bytes:
    return bytes(i % 251 for i in range(size))


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = {"STORAGE_DIR": str(tmp_path / "downloads"), "CHUNK_SIZE": 64}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client(make_settings):
    """
    Build a TestClient around an app wired to the given content source.
    """

    def _make(source, **overrides):
        app = create_app(make_settings(**overrides), content_source=source)
        return TestClient(app)

    return _make
