from __future__ import annotations

from typing import Iterable, Optional

from magstream.services.media_types import is_video_file
from magstream.sources.base import MediaFile


def select_video_file(files: Iterable[MediaFile]) -> Optional[MediaFile]:
    """
    Returns the largest .mp4/.mkv file, keeping the earliest one on ties.
    """
    best: Optional[MediaFile] = None
    for f in files:
        if not is_video_file(f.name):
            continue
        if best is None or f.length > best.length:
            best = f
    return best
