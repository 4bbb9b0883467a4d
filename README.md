# imserver

`imserver` holds the building blocks of a small instant-messaging backend:

- a **gate server** (`imserver.gate_http.GateServer`) that speaks HTTP and
  handles accounts: requesting a verification code, registering a user,
  resetting a password and logging in;
- a **chat server** (`imserver.chat_server.ChatServer`) that accepts TCP
  connections carrying length-prefixed binary frames and answers chat logins
  checked against a status service;
- the configuration loader, connection pools, Redis wrapper and service
  clients both servers use.

## What the package does not do

- There is no command-line entry point. You build the servers in your own
  program and start them there (see the examples below).
- There is no database-backed user store. `imserver.services.UserStore` is
  only an interface (`reg_user`, `check_email`, `update_pwd`, `check_pwd`,
  `get_user`); you supply the implementation.
- There are no RPC stubs for the status and verify services.
  `imserver.services.StatusStub` and `imserver.services.VerifyStub` are
  interfaces; `StatusClient` and `VerifyClient` call whatever objects you
  pool for them.
- The `/reset_pwd` route checks the verification code and that the user's
  e-mail matches; it does not store a new password.

## Configuration

`imserver.config.load_config(path)` reads an INI file into a `ConfigMgr`.
Key case is kept and values are taken literally. A missing section reads as
an empty `SectionInfo` and a missing key as `""`.

```ini
[SelfServer]
Port = 8090

[Redis]
Host = 127.0.0.1
Port = 6380
Passwd = password
```

```python
from imserver.config import load_config

config = load_config("config.ini")
port = int(config["SelfServer"]["Port"])
missing = config["NoSuchSection"]["NoSuchKey"]   # ""
```

`imserver.config.get_config()` loads `config.ini` from the current directory
once and returns the same `ConfigMgr` on every later call.

## Wire format of the chat server

A frame is a four-byte header in network byte order, a signed two-byte
message id and a signed two-byte body length, followed by the body.

```python
from imserver.constants import MsgId
from imserver.framing import encode_message, decode_header

frame = encode_message(MsgId.CHAT_LOGIN, b'{"uid": 1, "token": "token"}')
msg_id, length = decode_header(frame[:4])
```

`encode_message` raises `imserver.framing.FrameError` when the id or body
length does not fit in a signed 16-bit field. `decode_header` raises it for a
header that is not four bytes, an id above 2048, or a length above 2048 or
below zero.

A chat login (`MsgId.CHAT_LOGIN`) carries a JSON object with `uid` and
`token`. The reply is sent as `MsgId.CHAT_LOGIN_RSP`: a JSON object whose
`error` holds an `imserver.constants.ErrorCode` value and, on success, the
user's `uid`, `token` and `name`. A user unknown to the store gives
`ErrorCode.UID_INVALID`; users found are cached by the logic.

## Running the chat server

```python
import asyncio

from imserver.chat_logic import ChatLogic
from imserver.chat_server import ChatServer


async def main(status_client, user_store):
    logic = ChatLogic(status_client, user_store)
    with logic:                       # starts and stops the worker thread
        server = ChatServer(logic, "0.0.0.0", 8090)
        try:
            await server.serve_forever()
        finally:
            await server.stop()
```

`ChatLogic` queues received messages and hands them, one at a time on a
worker thread, to the handler registered for their id; `register(msg_id,
handler)` adds more handlers. `stop()` handles whatever is still queued
before the thread ends. Each connection becomes a `ChatSession`; a bad
header or a closed connection ends the session and removes it from the
server. A session keeps at most about 1000 unsent frames and drops the rest.

## Running the gate server

```python
from imserver.gate_logic import GateLogic
from imserver.gate_http import GateServer

logic = GateLogic(redis_mgr, user_store, verify_client, status_client)
server = GateServer(logic, "0.0.0.0", 8080)
server.serve_forever()               # shutdown() from another thread stops it
```

| Method | Path               | Purpose                                   |
|--------|--------------------|-------------------------------------------|
| GET    | `/get_test`        | echoes the query parameters               |
| POST   | `/get_varifycode`  | asks the verify service to send a code    |
| POST   | `/user_register`   | registers a user after checking the code  |
| POST   | `/reset_pwd`       | checks the code and the user's e-mail     |
| POST   | `/user_login`      | checks the password, returns a chat host  |

Codes are looked up in Redis under `code_<email>`. Request bodies are JSON
and replies are JSON objects with an `error` field, for example
`{"user": "alice", "passwd": "password"}` posted to `/user_login`. Unknown
paths get `404` with `url not found`. Every response closes the connection;
idle connections time out after 60 seconds. Methods other than GET and POST
get no reply.

`imserver.gate_http.handle_request(logic, method, target, body)` runs one
request through a `GateLogic` without a socket and returns a `GateResponse`
(or `None` for other methods), which is handy in tests.

## URL helpers

```python
from imserver.urlcodec import url_encode, url_decode, parse_target

url_encode("a b&c")          # 'a+b%26c'
url_decode("a+b%26c")        # 'a b&c'
parse_target("/get_test?name=alice&mail=alice%40example.com")
# ('/get_test', {'name': 'alice', 'mail': 'alice@example.com'})
```

`url_decode` raises `ValueError` on a malformed `%` escape.

## Supporting pieces

- `imserver.pool.ConnectionPool` hands out connections first in, first out,
  blocks while all are in use and raises `RuntimeError` from `acquire()` once
  closed; `with pool.connection() as conn:` gives the connection back.
- `imserver.pool.KeepAlivePool(factory, size, ping)` creates its connections
  with `factory`; `check_connections()` pings idle connections unused for at
  least five seconds and replaces any whose ping raises. It is not run on a
  timer; call it yourself.
- `imserver.redis_store.RedisMgr` wraps the Redis commands the servers use:
  `get`, `set`, `auth`, `lpush`, `lpop`, `rpush`, `rpop`, `hset`, `hget`,
  `delete`, `exists`. Failures are logged and reported as `False`, `None` or
  `""`. `RedisMgr.from_config(config)` builds five clients from the `[Redis]`
  section's `Host`, `Port` and `Passwd`.
- `imserver.services` holds `UserInfo`, the reply dataclasses and the
  `StatusClient` and `VerifyClient` wrappers, which turn an exception from a
  stub into a reply with `ErrorCode.RPC_FAILED`.
- `imserver.ioservice.IOServicePool` runs a fixed number of asyncio event
  loops on their own threads and hands them out round-robin with
  `get_loop()`.