"""Route handlers of the gate server's HTTP interface."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Protocol

from imserver.constants import CODE_PREFIX, ErrorCode
from imserver.services import ChatServerReply, UserInfo, VerifyReply

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "text/json"


@dataclass
class GateRequest:
    """The parts of an HTTP request that handlers read."""

    body: bytes = b""
    params: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass
class GateResponse:
    """An HTTP response that handlers fill in."""

    status: HTTPStatus = HTTPStatus.OK
    headers: dict[str, str] = field(default_factory=dict)
    parts: list[str] = field(default_factory=list)

    def write(self, text: str) -> None:
        """Append text to the body."""
        self.parts.append(text)

    @property
    def body(self) -> bytes:
        return "".join(self.parts).encode("utf-8")


class _Redis(Protocol):
    def get(self, key: str) -> str | None:
        ...


class _Users(Protocol):
    def reg_user(self, name: str, email: str, pwd: str) -> int:
        ...

    def check_email(self, name: str, email: str) -> bool:
        ...

    def check_pwd(self, name: str, pwd: str) -> UserInfo | None:
        ...


class _Verify(Protocol):
    def get_varify_code(self, email: str) -> VerifyReply:
        ...


class _Status(Protocol):
    def get_chat_server(self, uid: int) -> ChatServerReply:
        ...


HttpHandler = Callable[[GateRequest, GateResponse], object]


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


def _parse_object(request: GateRequest) -> dict[str, Any] | None:
    logger.info("receive body is %s", request.text)
    try:
        root = json.loads(request.text)
    except ValueError:
        return None
    return root if isinstance(root, dict) else None


def _reply(response: GateResponse, root: dict[str, Any]) -> None:
    response.write(_styled(root))


def _error(response: GateResponse, code: ErrorCode) -> None:
    _reply(response, {"error": int(code)})


class GateLogic:
    """Maps request paths to handlers and implements the gate's routes."""

    def __init__(
        self, redis: _Redis, users: _Users, verify: _Verify, status: _Status
    ) -> None:
        self._redis = redis
        self._users = users
        self._verify = verify
        self._status = status
        self._get_handlers: dict[str, HttpHandler] = {}
        self._post_handlers: dict[str, HttpHandler] = {}
        self.register_get("/get_test", self._get_test)
        self.register_post("/get_varifycode", self._get_varifycode)
        self.register_post("/user_register", self._user_register)
        self.register_post("/reset_pwd", self._reset_pwd)
        self.register_post("/user_login", self._user_login)

    def register_get(self, url: str, handler: HttpHandler) -> None:
        """Add a GET handler; a path already registered keeps its handler."""
        self._get_handlers.setdefault(url, handler)

    def register_post(self, url: str, handler: HttpHandler) -> None:
        """Add a POST handler; a path already registered keeps its handler."""
        self._post_handlers.setdefault(url, handler)

    def handle_get(
        self, path: str, request: GateRequest, response: GateResponse
    ) -> bool:
        """Run the GET handler for a path; return False if there is none."""
        handler = self._get_handlers.get(path)
        if handler is None:
            return False
        handler(request, response)
        return True

    def handle_post(
        self, path: str, request: GateRequest, response: GateResponse
    ) -> bool:
        """Run the POST handler for a path; return False if there is none."""
        handler = self._post_handlers.get(path)
        if handler is None:
            return False
        handler(request, response)
        return True

    @staticmethod
    def _get_test(request: GateRequest, response: GateResponse) -> None:
        response.write("receive get_test req\n")
        for index, (key, value) in enumerate(request.params.items(), start=1):
            response.write(f"param {index}Key is {key}\n")
            response.write(f"param {index}Value is {value}\n")

    def _get_varifycode(self, request: GateRequest, response: GateResponse) -> None:
        response.headers["Content-Type"] = JSON_CONTENT_TYPE
        src = _parse_object(request)
        if src is None or "email" not in src:
            logger.info("Failed to parse JSON data")
            _error(response, ErrorCode.ERROR_JSON)
            return
        email = _as_str(src["email"])
        rsp = self._verify.get_varify_code(email)
        logger.info("email is %s", email)
        _reply(response, {"error": int(rsp.error), "email": src["email"]})

    def _check_code(
        self, email: str, code: str, response: GateResponse
    ) -> bool:
        stored = self._redis.get(CODE_PREFIX + email)
        if stored is None:
            logger.info("varify code expired")
            _error(response, ErrorCode.VARIFY_EXPIRED)
            return False
        if stored != code:
            logger.info("varify code is not match")
            _error(response, ErrorCode.VARIFY_CODE_ERR)
            return False
        return True

    def _user_register(self, request: GateRequest, response: GateResponse) -> None:
        response.headers["Content-Type"] = JSON_CONTENT_TYPE
        src = _parse_object(request)
        if src is None:
            logger.info("Failed to parse JSON data")
            _error(response, ErrorCode.ERROR_JSON)
            return
        email = _as_str(src.get("email"))
        name = _as_str(src.get("user"))
        pwd = _as_str(src.get("passwd"))
        confirm = _as_str(src.get("confirm"))
        code = _as_str(src.get("varifycode"))
        if not self._check_code(email, code, response):
            return
        uid = self._users.reg_user(name, email, pwd)
        if uid in (0, 1):
            logger.info("user or email exist")
            _error(response, ErrorCode.USER_EXIST)
            return
        _reply(
            response,
            {
                "error": int(ErrorCode.SUCCESS),
                "email": email,
                "uid": uid,
                "user": name,
                "passwd": pwd,
                "confirm": confirm,
                "varifycode": code,
            },
        )

    def _reset_pwd(self, request: GateRequest, response: GateResponse) -> None:
        response.headers["Content-Type"] = JSON_CONTENT_TYPE
        src = _parse_object(request)
        if src is None:
            logger.info("Failed to parse JSON data")
            _error(response, ErrorCode.ERROR_JSON)
            return
        email = _as_str(src.get("email"))
        name = _as_str(src.get("user"))
        pwd = _as_str(src.get("passwd"))
        code = _as_str(src.get("varifycode"))
        if not self._check_code(email, code, response):
            return
        if not self._users.check_email(name, email):
            logger.info("user email not match")
            _error(response, ErrorCode.EMAIL_NOT_MATCH)
            return
        logger.info("succeed to update password for %s", name)
        _reply(
            response,
            {
                "error": int(ErrorCode.SUCCESS),
                "email": email,
                "user": name,
                "passwd": pwd,
                "varifycode": code,
            },
        )

    def _user_login(self, request: GateRequest, response: GateResponse) -> None:
        response.headers["Content-Type"] = JSON_CONTENT_TYPE
        src = _parse_object(request)
        if src is None:
            logger.info("Failed to parse JSON data")
            _error(response, ErrorCode.ERROR_JSON)
            return
        name = _as_str(src.get("user"))
        pwd = _as_str(src.get("passwd"))
        user = self._users.check_pwd(name, pwd)
        if user is None:
            logger.info("user pwd not match")
            _error(response, ErrorCode.PASSWD_INVALID)
            return
        reply = self._status.get_chat_server(user.uid)
        if reply.error:
            logger.info("grpc get chat server failed, error is %s", reply.error)
            _error(response, ErrorCode.RPC_FAILED)
            return
        logger.info("succeed to load userinfo uid is %s", user.uid)
        _reply(
            response,
            {
                "error": int(ErrorCode.SUCCESS),
                "user": name,
                "uid": user.uid,
                "token": reply.token,
                "host": reply.host,
            },
        )