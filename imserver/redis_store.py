"""High-level redis operations on top of a pool of redis clients."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Callable, TypeVar

import redis

from imserver.config import ConfigMgr
from imserver.pool import ConnectionPool

logger = logging.getLogger(__name__)

R = TypeVar("R")

REDIS_SECTION = "Redis"
POOL_SIZE = 5


def _as_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class RedisMgr:
    """Runs redis commands on pooled clients.

    A command that fails, including one issued after close(), is logged
    and reported as False, None or an empty string rather than raised.
    """

    def __init__(self, pool: ConnectionPool[Any]) -> None:
        self._pool = pool

    @property
    def pool(self) -> ConnectionPool[Any]:
        return self._pool

    @staticmethod
    def from_config(config: ConfigMgr) -> RedisMgr:
        """Build a manager from the [Redis] section's Host, Port and Passwd."""
        section = config[REDIS_SECTION]
        host = section["Host"]
        port_text = section["Port"]
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"invalid redis port {port_text!r}") from None
        password = section["Passwd"] or None
        clients = [
            redis.Redis(host=host, port=port, password=password, decode_responses=True)
            for _ in range(POOL_SIZE)
        ]
        return RedisMgr(ConnectionPool(clients))

    def _run(self, description: str, command: Callable[[Any], R]) -> tuple[bool, R | None]:
        """Run a command on a pooled client; return (ok, reply)."""
        try:
            with self._pool.connection() as client:
                reply = command(client)
        except RuntimeError:
            logger.warning("Execute command [ %s ] failure: pool closed", description)
            return False, None
        except redis.RedisError as exc:
            logger.warning("Execute command [ %s ] failure: %s", description, exc)
            return False, None
        return True, reply

    def get(self, key: str) -> str | None:
        """Return the string stored at key, or None."""
        ok, reply = self._run(f"GET {key}", lambda c: c.get(key))
        if not ok or reply is None or not isinstance(reply, (str, bytes, bytearray)):
            logger.info("[ GET %s ] failed", key)
            return None
        logger.info("Succeed to execute command [ GET %s ]", key)
        return _as_text(reply)

    def set(self, key: str, value: str) -> bool:
        ok, reply = self._run(f"SET {key} {value}", lambda c: c.set(key, value))
        if not ok or reply is not True:
            logger.info("Execute command [ SET %s %s ] failure", key, value)
            return False
        logger.info("Execute command [ SET %s %s ] success", key, value)
        return True

    def auth(self, password: str) -> bool:
        ok, _ = self._run("AUTH", lambda c: c.execute_command("AUTH", password))
        logger.info("authentication %s", "succeeded" if ok else "failed")
        return ok

    def _push(self, name: str, key: str, value: str, command: Callable[[Any], Any]) -> bool:
        ok, reply = self._run(f"{name} {key} {value}", command)
        if not ok or not isinstance(reply, int) or reply <= 0:
            logger.info("Execute command [ %s %s %s ] failure", name, key, value)
            return False
        logger.info("Execute command [ %s %s %s ] success", name, key, value)
        return True

    def _pop(self, name: str, key: str, command: Callable[[Any], Any]) -> str | None:
        ok, reply = self._run(f"{name} {key}", command)
        if not ok or reply is None:
            logger.info("Execute command [ %s %s ] failure", name, key)
            return None
        logger.info("Execute command [ %s %s ] success", name, key)
        return _as_text(reply)

    def lpush(self, key: str, value: str) -> bool:
        return self._push("LPUSH", key, value, lambda c: c.lpush(key, value))

    def lpop(self, key: str) -> str | None:
        return self._pop("LPOP", key, lambda c: c.lpop(key))

    def rpush(self, key: str, value: str) -> bool:
        return self._push("RPUSH", key, value, lambda c: c.rpush(key, value))

    def rpop(self, key: str) -> str | None:
        return self._pop("RPOP", key, lambda c: c.rpop(key))

    def hset(self, key: str, hkey: str, value: str | bytes) -> bool:
        """Set a hash field; value may be text or raw bytes."""
        ok, reply = self._run(f"HSET {key} {hkey}", lambda c: c.hset(key, hkey, value))
        if not ok or not isinstance(reply, int):
            logger.info("Execute command [ HSET %s %s ] failure", key, hkey)
            return False
        logger.info("Execute command [ HSET %s %s ] success", key, hkey)
        return True

    def hget(self, key: str, hkey: str) -> str:
        """Return a hash field's value, or an empty string if it is missing."""
        ok, reply = self._run(f"HGET {key} {hkey}", lambda c: c.hget(key, hkey))
        if not ok or reply is None:
            logger.info("Execute command [ HGET %s %s ] failure", key, hkey)
            return ""
        logger.info("Execute command [ HGET %s %s ] success", key, hkey)
        return _as_text(reply)

    def delete(self, key: str) -> bool:
        """Delete a key; succeeds whether or not the key existed."""
        ok, reply = self._run(f"DEL {key}", lambda c: c.delete(key))
        if not ok or not isinstance(reply, int):
            logger.info("Execute command [ DEL %s ] failure", key)
            return False
        logger.info("Execute command [ DEL %s ] success", key)
        return True

    def exists(self, key: str) -> bool:
        ok, reply = self._run(f"EXISTS {key}", lambda c: c.exists(key))
        if not ok or not isinstance(reply, int) or reply == 0:
            logger.info("Not found [ key %s ]", key)
            return False
        logger.info("Found [ key %s ]", key)
        return True

    def close(self) -> None:
        """Close the pool; later commands fail."""
        self._pool.close()

    def __enter__(self) -> RedisMgr:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()