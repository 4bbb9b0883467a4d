"""TCP server accepting chat clients and tracking their sessions."""

from __future__ import annotations

import asyncio
import logging
import threading

from imserver.chat_logic import ChatLogic
from imserver.chat_session import ChatSession

logger = logging.getLogger(__name__)


class ChatServer:
    """Accepts connections and runs one ChatSession for each."""

    def __init__(self, logic: ChatLogic, host: str = "0.0.0.0", port: int = 0) -> None:
        self._logic = logic
        self._host = host
        self._port = port
        self._server: asyncio.AbstractServer | None = None
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        """The port actually listened on once started."""
        if self._server is not None and self._server.sockets:
            return int(self._server.sockets[0].getsockname()[1])
        return self._port

    @property
    def sessions(self) -> dict[str, ChatSession]:
        with self._lock:
            return dict(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def start(self) -> None:
        """Bind and start accepting connections."""
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._on_connect, self._host, self._port
        )
        logger.info("Server start Success, listen on port: %s", self.port)

    async def _on_connect(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        session = ChatSession(reader, writer, self, self._logic)
        with self._lock:
            self._sessions[session.uuid] = session
        await session.run()

    async def serve_forever(self) -> None:
        """Start if needed and accept connections until cancelled."""
        await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    def clear_session(self, uuid: str) -> None:
        """Forget a session; unknown ids are ignored."""
        with self._lock:
            self._sessions.pop(uuid, None)

    async def stop(self) -> None:
        """Stop accepting, close every session and wait for the listener to close."""
        server = self._server
        self._server = None
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        if server is not None:
            server.close()
            await server.wait_closed()
        logger.info("Server stopped, port %s", self._port)