from __future__ import annotations

import logging
from typing import Optional

import anyio
from fastapi import APIRouter, Request, Response

from magstream.core.config import Settings
from magstream.core.exceptions import InputError, MetadataTimeoutError, NotFoundError
from magstream.api.responses import RangeStreamResponse
from magstream.runtime.sessions import ActiveSessions
from magstream.services.file_selector import select_video_file
from magstream.services.media_types import content_type_for
from magstream.services.range_parser import parse_range_header
from magstream.services.streaming import StreamSession
from magstream.sources.base import ContentHandle, ContentSource

logger = logging.getLogger(__name__)


async def _wait_for_metadata(handle: ContentHandle, timeout: float) -> None:
    if not timeout:
        await handle.wait_ready()
        return
    try:
        with anyio.fail_after(timeout):
            await handle.wait_ready()
    except TimeoutError:
        raise MetadataTimeoutError(f"Timed out after {timeout:g}s waiting for torrent metadata")


def _stream_limiter(request: Request) -> anyio.CapacityLimiter:
    # created on first use so it binds to the running event loop
    state = request.app.state
    if state.stream_limiter is None:
        state.stream_limiter = anyio.CapacityLimiter(state.settings.STREAM_IO_THREADS)
    return state.stream_limiter


async def stream_media(request: Request, magnet: Optional[str] = None) -> Response:
    """
    Stream the largest video file of the bundle behind `magnet`, honouring Range.
    """
    if not magnet:
        raise InputError("Magnet link is required")

    settings: Settings = request.app.state.settings
    source: ContentSource = request.app.state.content_source
    sessions: ActiveSessions = request.app.state.sessions

    logger.info("Processing magnet link: %s", magnet)
    handle = await source.resolve(magnet)
    await _wait_for_metadata(handle, settings.METADATA_TIMEOUT_SECONDS)

    video = select_video_file(handle.files())
    if video is None:
        raise NotFoundError("No video file found in the torrent")
    logger.info("Streaming video file: %s", video.name)

    requested = parse_range_header(request.headers.get("range", ""), video.length)
    byte_range = requested.clamp(video.length)
    if byte_range is None:
        return Response(
            status_code=416,
            headers={
                "Content-Range": f"bytes */{video.length}",
                "Accept-Ranges": "bytes",
            },
        )

    headers = {
        "Content-Type": content_type_for(video.name),
        "Content-Length": str(byte_range.total),
        "Accept-Ranges": "bytes",
        "Content-Range": byte_range.content_range(video.length),
    }

    if request.method.upper() == "HEAD":
        return Response(status_code=206, headers=headers)

    session = StreamSession(
        video.open_reader,
        byte_range,
        chunk_size=settings.CHUNK_SIZE,
        limiter=_stream_limiter(request),
    )
    sessions.acquire(handle.key)
    try:
        await session.open()
    except BaseException:
        sessions.release(handle.key)
        raise

    return RangeStreamResponse(
        session,
        headers=headers,
        on_close=lambda: sessions.release(handle.key),
    )


def build_router() -> APIRouter:
    router = APIRouter(tags=["stream"])
    router.add_api_route("/stream", stream_media, methods=["GET", "HEAD"])
    return router
