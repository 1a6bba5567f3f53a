from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

import anyio
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from magstream.core.exceptions import StreamIOError, StreamWriteError
from magstream.services.streaming import StreamSession

logger = logging.getLogger(__name__)


class ASGIBodySink:
    """
    ByteSink over an ASGI `send` callable.

    write() buffers, flush() sends everything buffered as one body message.
    """

    def __init__(self, send: Send):
        self._send = send
        self._pending: list[bytes] = []
        self.bytes_sent = 0

    async def write(self, data: bytes) -> None:
        self._pending.append(bytes(data))

    async def flush(self) -> None:
        if not self._pending:
            return
        body = b"".join(self._pending)
        self._pending.clear()
        await self._emit(body, more_body=True)
        self.bytes_sent += len(body)

    async def finish(self) -> None:
        await self.flush()
        await self._emit(b"", more_body=False)

    async def _emit(self, body: bytes, *, more_body: bool) -> None:
        try:
            await self._send({"type": "http.response.body", "body": body, "more_body": more_body})
        except OSError as exc:
            raise StreamWriteError(f"Error writing to client: {exc}") from exc


class RangeStreamResponse(Response):
    """
    Partial-content response that pumps an opened StreamSession to the client.

    Once the status line is out nothing can be reported as a status code any
    more: I/O errors and disconnects are logged and the response is left
    incomplete so the server drops the connection. The session is closed and
    `on_close` called on every exit path.
    """

    def __init__(
        self,
        session: StreamSession,
        *,
        headers: Mapping[str, str],
        status_code: int = 206,
        on_close: Optional[Callable[[], None]] = None,
    ):
        super().__init__(status_code=status_code, headers=headers)
        self.session = session
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        sink = ASGIBodySink(send)
        completed = False
        try:
            await send(
                {
                    "type": "http.response.start",
                    "status": self.status_code,
                    "headers": self.raw_headers,
                }
            )

            async with anyio.create_task_group() as task_group:

                async def wrap() -> None:
                    nonlocal completed
                    completed = await self._stream(sink)
                    task_group.cancel_scope.cancel()

                task_group.start_soon(wrap)
                await self._listen_for_disconnect(receive)
                # releasing the reader unblocks a read still waiting on data
                self.session.close()
                task_group.cancel_scope.cancel()

            if completed:
                await sink.finish()
            else:
                logger.info(
                    "Stream aborted after %d of %d bytes",
                    sink.bytes_sent,
                    self.session.byte_range.total,
                )
        except OSError as exc:
            logger.warning("Error writing to client: %s", exc)
        except StreamWriteError as exc:
            logger.warning("%s", exc)
        finally:
            self.session.close()
            if self.on_close is not None:
                self.on_close()

    async def _stream(self, sink: ASGIBodySink) -> bool:
        try:
            sent = await self.session.pump(sink)
        except StreamWriteError as exc:
            logger.warning("%s", exc)
            return False
        except StreamIOError as exc:
            logger.error("%s", exc)
            return False
        logger.info("Stream completed (%d bytes)", sent)
        return True

    @staticmethod
    async def _listen_for_disconnect(receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                logger.info("Client disconnected")
                break
