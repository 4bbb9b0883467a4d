"""Message dispatch for the chat server, run on a dedicated worker thread."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from types import TracebackType
from typing import Any, Callable, Protocol

from imserver.constants import ErrorCode, MsgId
from imserver.framing import RecvNode
from imserver.services import LoginReply, UserInfo

logger = logging.getLogger(__name__)


class _Session(Protocol):
    def send(self, payload: bytes | str, msg_id: int) -> None:
        ...


class _StatusClient(Protocol):
    def login(self, uid: int, token: str) -> LoginReply:
        ...


class _UserLookup(Protocol):
    def get_user(self, uid: int) -> UserInfo | None:
        ...


Handler = Callable[[Any, int, str], object]


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _as_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _styled(value: dict[str, Any]) -> str:
    return json.dumps(value, indent=3, sort_keys=True) + "\n"


class ChatLogic:
    """Queues received messages and hands each to the handler for its id."""

    def __init__(self, status_client: _StatusClient, user_store: _UserLookup) -> None:
        self._status = status_client
        self._store = user_store
        self._handlers: dict[int, Handler] = {}
        self._queue: deque[tuple[Any, RecvNode]] = deque()
        self._cond = threading.Condition()
        self._stopped = False
        self._thread: threading.Thread | None = None
        self._users: dict[int, UserInfo] = {}
        self._users_lock = threading.Lock()
        self.register(MsgId.CHAT_LOGIN, self.login_handler)

    def register(self, msg_id: int, handler: Handler) -> None:
        """Install the handler for a message id, replacing any earlier one."""
        self._handlers[int(msg_id)] = handler

    def post(self, session: Any, node: RecvNode) -> None:
        """Queue a received message for the worker thread."""
        with self._cond:
            self._queue.append((session, node))
            if len(self._queue) == 1:
                self._cond.notify()

    def dispatch(self, session: Any, node: RecvNode) -> bool:
        """Run the handler for a message; return False if none is registered."""
        logger.debug("recv_msg id is %s", node.msg_id)
        handler = self._handlers.get(node.msg_id)
        if handler is None:
            logger.info("msg id [%s] handler not found", node.msg_id)
            return False
        handler(session, node.msg_id, node.text)
        return True

    def _work(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._stopped or bool(self._queue))
                if not self._queue:
                    return
                session, node = self._queue.popleft()
            try:
                self.dispatch(session, node)
            except Exception:
                logger.exception("handler for msg id %s failed", node.msg_id)

    def start(self) -> None:
        """Start the worker thread; does nothing if it already runs."""
        with self._cond:
            if self._thread is not None:
                return
            self._stopped = False
            self._thread = threading.Thread(
                target=self._work, name="chat-logic", daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        """Handle every queued message, then stop the worker thread."""
        with self._cond:
            thread = self._thread
            self._stopped = True
            self._cond.notify_all()
        if thread is not None:
            thread.join()
        with self._cond:
            self._thread = None

    def __enter__(self) -> ChatLogic:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def _lookup_user(self, uid: int) -> UserInfo | None:
        with self._users_lock:
            cached = self._users.get(uid)
        if cached is not None:
            return cached
        user = self._store.get_user(uid)
        if user is not None:
            with self._users_lock:
                self._users[uid] = user
        return user

    def login_handler(self, session: _Session, msg_id: int, data: str) -> None:
        """Check a login token with the status service and reply to the session."""
        try:
            root = json.loads(data)
        except ValueError:
            root = {}
        if not isinstance(root, dict):
            root = {}
        uid = _as_int(root.get("uid"))
        token = _as_str(root.get("token"))
        logger.info("user login uid is %s, user token is %s", uid, token)

        reply: dict[str, Any] = {}
        try:
            rsp = self._status.login(uid, token)
            reply["error"] = int(rsp.error)
            if rsp.error != ErrorCode.SUCCESS:
                return
            user = self._lookup_user(uid)
            if user is None:
                reply["error"] = int(ErrorCode.UID_INVALID)
                return
            reply["uid"] = uid
            reply["token"] = rsp.token
            reply["name"] = user.name
        finally:
            session.send(_styled(reply), MsgId.CHAT_LOGIN_RSP)