from __future__ import annotations

from magstream.core.config import Settings
from magstream.sources.base import ContentHandle, ContentSource, MediaFile, SeekableReader
from magstream.sources.local import LocalContentSource


def build_content_source(settings: Settings) -> ContentSource:
    """
    Instantiate the content source named by CONTENT_SOURCE.
    libtorrent is only imported when the torrent source is selected.
    """
    if settings.CONTENT_SOURCE == "local":
        return LocalContentSource(settings.STORAGE_DIR)

    from magstream.sources.torrent import TorrentContentSource

    return TorrentContentSource(
        settings.STORAGE_DIR,
        listen_interfaces=settings.TORRENT_LISTEN_INTERFACES,
        poll_interval=settings.TORRENT_POLL_INTERVAL_SECONDS,
        readahead_pieces=settings.TORRENT_READAHEAD_PIECES,
    )


__all__ = [
    "ContentHandle",
    "ContentSource",
    "LocalContentSource",
    "MediaFile",
    "SeekableReader",
    "build_content_source",
]
