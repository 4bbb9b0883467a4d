"""One client connection of the chat server."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from typing import Any, Protocol

from imserver.constants import HEAD_TOTAL_LEN, MAX_SENDQUE
from imserver.framing import FrameError, RecvNode, decode_header, encode_message

logger = logging.getLogger(__name__)


class _Server(Protocol):
    def clear_session(self, uuid: str) -> None:
        ...


class _Logic(Protocol):
    def post(self, session: Any, node: RecvNode) -> None:
        ...


class ChatSession:
    """Reads frames from a peer, posts them to the logic and writes replies in order."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: Any,
        server: _Server,
        logic: _Logic,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._server = server
        self._logic = logic
        self.uuid = str(uuid.uuid4())
        self._pending: deque[bytes] = deque()
        self._write_task: asyncio.Task[None] | None = None
        self._closed = False
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        """Read frames until the peer disconnects or sends a bad frame."""
        self._loop = asyncio.get_running_loop()
        try:
            while not self._closed:
                header = await self._reader.readexactly(HEAD_TOTAL_LEN)
                msg_id, length = decode_header(header)
                logger.debug("msg_id is %s, msg_len is %s", msg_id, length)
                body = await self._reader.readexactly(length)
                self._logic.post(self, RecvNode(msg_id, body))
        except asyncio.IncompleteReadError as exc:
            logger.info(
                "read length not match, read [%s], total [%s]",
                len(exc.partial),
                exc.expected,
            )
        except FrameError as exc:
            logger.warning("session %s: %s", self.uuid, exc)
        except OSError as exc:
            logger.warning("handle read failed, error is %s", exc)
        finally:
            self.close()
            self._server.clear_session(self.uuid)

    def send(self, payload: bytes | str, msg_id: int) -> None:
        """Queue a message for the peer; safe to call from any thread."""
        frame = encode_message(msg_id, payload)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None:
            self._loop = running
        if self._loop is None:
            raise RuntimeError("session has no event loop to send on")
        if running is self._loop:
            self._enqueue(frame)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._enqueue, frame)

    def _enqueue(self, frame: bytes) -> None:
        if self._closed:
            return
        if len(self._pending) > MAX_SENDQUE:
            logger.warning(
                "Session: %s send que fulled, size is %s", self.uuid, MAX_SENDQUE
            )
            return
        self._pending.append(frame)
        if self._write_task is None or self._write_task.done():
            self._write_task = asyncio.get_running_loop().create_task(
                self._write_loop()
            )

    async def _write_loop(self) -> None:
        try:
            while self._pending and not self._closed:
                frame = self._pending[0]
                self._writer.write(frame)
                await self._writer.drain()
                self._pending.popleft()
        except OSError as exc:
            logger.warning("handle write failed, error is %s", exc)
            self.close()
            self._server.clear_session(self.uuid)

    def close(self) -> None:
        """Close the connection and drop any unsent messages."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        task = self._write_task
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()
        try:
            self._writer.close()
        except OSError as exc:
            logger.debug("error closing session %s: %s", self.uuid, exc)