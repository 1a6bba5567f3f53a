from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


# Reads "bytes=<start>-<end>" left to right and stops at the first mismatch,
# leaving whatever was not read at zero.
_RANGE_RE = re.compile(r"bytes=(?:(\d+)(?:-(\d+))?)?")


@dataclass(frozen=True)
class ByteRange:
    """
    Inclusive byte interval [start, end] of a file.

    total: number of bytes the response body must contain. Not validated, so it
    can be zero or negative for nonsense ranges; use clamp() before trusting it.
    """
    start: int
    end: int

    @property
    def total(self) -> int:
        return self.end - self.start + 1

    def clamp(self, length: int) -> Optional[ByteRange]:
        """
        Returns this range cut down to a file of `length` bytes,
        or None if no byte of it can be served.
        """
        if self.start < 0 or self.start >= length:
            return None
        end = min(self.end, length - 1)
        if end < self.start:
            return None
        return ByteRange(self.start, end)

    def content_range(self, length: int) -> str:
        return f"bytes {self.start}-{self.end}/{length}"


def parse_range_header(range_header: Optional[str], length: int) -> ByteRange:
    """
    Returns the byte range requested by a Range header for a file of `length` bytes.

    Only the single-range form is understood. An explicit end of 0 counts as
    "no end given", so "bytes=0-0" streams the whole file. Suffix ranges and
    garbage parse as full content; multiple ranges keep the first one.
    """
    if not range_header:
        return ByteRange(0, length - 1)

    start = end = 0
    m = _RANGE_RE.match(range_header)
    if m:
        start = int(m.group(1) or 0)
        end = int(m.group(2) or 0)

    if end == 0:
        end = length - 1
    return ByteRange(start, end)
