"""User records, remote-service replies and clients for the status and verify services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from imserver.constants import ErrorCode
from imserver.pool import ConnectionPool

logger = logging.getLogger(__name__)


@dataclass
class UserInfo:
    """A registered user."""

    name: str = ""
    pwd: str = ""
    uid: int = 0
    email: str = ""


@dataclass(frozen=True)
class ChatServerReply:
    """The chat server assigned to a user by the status service."""

    error: int = ErrorCode.SUCCESS
    host: str = ""
    token: str = ""


@dataclass(frozen=True)
class LoginReply:
    """The status service's answer to a chat login."""

    error: int = ErrorCode.SUCCESS
    uid: int = 0
    token: str = ""


@dataclass(frozen=True)
class VerifyReply:
    """The verify service's answer to a request for a verification code."""

    error: int = ErrorCode.SUCCESS
    email: str = ""


class UserStore(Protocol):
    """Persistent storage of users."""

    def reg_user(self, name: str, email: str, pwd: str) -> int:
        """Register a user; returns the new uid, or 0 or 1 if name or email exist."""
        ...

    def check_email(self, name: str, email: str) -> bool:
        ...

    def update_pwd(self, name: str, pwd: str) -> bool:
        ...

    def check_pwd(self, name: str, pwd: str) -> UserInfo | None:
        """Return the user when name and password match, else None."""
        ...

    def get_user(self, uid: int) -> UserInfo | None:
        ...


class StatusStub(Protocol):
    """A connection to the status service; calls raise when the RPC fails."""

    def get_chat_server(self, uid: int) -> ChatServerReply:
        ...

    def login(self, uid: int, token: str) -> LoginReply:
        ...


class VerifyStub(Protocol):
    """A connection to the verify service; calls raise when the RPC fails."""

    def get_varify_code(self, email: str) -> VerifyReply:
        ...


class StatusClient:
    """Calls the status service through a pool of stubs."""

    def __init__(self, pool: ConnectionPool[StatusStub]) -> None:
        self._pool = pool

    def get_chat_server(self, uid: int) -> ChatServerReply:
        """Ask which chat server a user should connect to."""
        with self._pool.connection() as stub:
            try:
                return stub.get_chat_server(uid)
            except Exception as exc:
                logger.warning("status rpc get_chat_server failed: %s", exc)
                return ChatServerReply(error=ErrorCode.RPC_FAILED)

    def login(self, uid: int, token: str) -> LoginReply:
        """Check a user's login token with the status service."""
        with self._pool.connection() as stub:
            try:
                return stub.login(uid, token)
            except Exception as exc:
                logger.warning("status rpc login failed: %s", exc)
                return LoginReply(error=ErrorCode.RPC_FAILED)


class VerifyClient:
    """Calls the verify service through a pool of stubs."""

    def __init__(self, pool: ConnectionPool[VerifyStub]) -> None:
        self._pool = pool

    def get_varify_code(self, email: str) -> VerifyReply:
        """Ask the verify service to send a code to an address."""
        with self._pool.connection() as stub:
            try:
                return stub.get_varify_code(email)
            except Exception as exc:
                logger.warning("verify rpc failed: %s", exc)
                return VerifyReply(error=ErrorCode.RPC_FAILED)