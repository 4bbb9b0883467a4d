import json
import threading

import pytest

from imserver.chat_logic import ChatLogic
from imserver.constants import ErrorCode, MsgId
from imserver.framing import RecvNode
from imserver.pool import ConnectionPool
from imserver.services import LoginReply, StatusClient, UserInfo


class FakeStub:
    def __init__(self, reply=None, fail=False):
        self.reply = reply
        self.fail = fail
        self.calls = []

    def login(self, uid, token):
        self.calls.append((uid, token))
        if self.fail:
            raise ConnectionError("down")
        return self.reply

    def get_chat_server(self, uid):
        raise NotImplementedError


class FakeStore:
    def __init__(self, users):
        self.users = users
        self.lookups = 0

    def get_user(self, uid):
        self.lookups += 1
        return self.users.get(uid)


class FakeSession:
    def __init__(self):
        self.sent = []
        self.lock = threading.Lock()

    def send(self, payload, msg_id):
        with self.lock:
            self.sent.append((payload, msg_id))


def make_logic(reply=None, fail=False, users=None):
    stub = FakeStub(reply, fail)
    store = FakeStore(users or {})
    return ChatLogic(StatusClient(ConnectionPool([stub])), store), stub, store


def login_payload(uid, token):
    return json.dumps({"uid": uid, "token": token})


def test_login_success_replies_with_user():
    logic, stub, _ = make_logic(
        LoginReply(error=ErrorCode.SUCCESS, uid=7, token="token"),
        users={7: UserInfo(name="alice", uid=7)},
    )
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(7, "token"))
    assert stub.calls == [(7, "token")]
    assert len(session.sent) == 1
    payload, msg_id = session.sent[0]
    assert msg_id == MsgId.CHAT_LOGIN_RSP
    assert json.loads(payload) == {
        "error": ErrorCode.SUCCESS,
        "uid": 7,
        "token": "token",
        "name": "alice",
    }


def test_login_status_error_is_forwarded():
    logic, _, store = make_logic(LoginReply(error=ErrorCode.TOKEN_INVALID))
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(3, "token"))
    assert json.loads(session.sent[0][0]) == {"error": ErrorCode.TOKEN_INVALID}
    assert store.lookups == 0


def test_login_rpc_failure():
    logic, _, _ = make_logic(fail=True)
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(3, "token"))
    assert json.loads(session.sent[0][0]) == {"error": ErrorCode.RPC_FAILED}


def test_login_unknown_user():
    logic, _, _ = make_logic(LoginReply(error=ErrorCode.SUCCESS, token="token"))
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(99, "token"))
    assert json.loads(session.sent[0][0]) == {"error": ErrorCode.UID_INVALID}


def test_login_bad_json_uses_defaults():
    logic, stub, _ = make_logic(LoginReply(error=ErrorCode.TOKEN_INVALID))
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, "not json")
    assert stub.calls == [(0, "")]
    assert json.loads(session.sent[0][0])["error"] == ErrorCode.TOKEN_INVALID


def test_user_is_cached_after_first_lookup():
    logic, _, store = make_logic(
        LoginReply(error=ErrorCode.SUCCESS, uid=5, token="token"),
        users={5: UserInfo(name="bob", uid=5)},
    )
    session = FakeSession()
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(5, "token"))
    logic.login_handler(session, MsgId.CHAT_LOGIN, login_payload(5, "token"))
    assert store.lookups == 1
    assert [json.loads(p)["name"] for p, _ in session.sent] == ["bob", "bob"]


def test_dispatch_unknown_id_returns_false():
    logic, _, _ = make_logic()
    assert logic.dispatch(FakeSession(), RecvNode(42, b"x")) is False


def test_dispatch_runs_registered_handler():
    logic, _, _ = make_logic()
    seen = []
    logic.register(42, lambda s, mid, data: seen.append((mid, data)))
    assert logic.dispatch(FakeSession(), RecvNode(42, b"hello")) is True
    assert seen == [(42, "hello")]


def test_post_then_stop_handles_every_message_in_order():
    logic, _, _ = make_logic()
    seen = []
    logic.register(42, lambda s, mid, data: seen.append(data))
    logic.start()
    for text in ["a", "b", "c", "d"]:
        logic.post(FakeSession(), RecvNode(42, text.encode()))
    logic.post(FakeSession(), RecvNode(43, b"ignored"))
    logic.stop()
    assert seen == ["a", "b", "c", "d"]


def test_handler_error_does_not_stop_worker():
    logic, _, _ = make_logic()
    seen = []

    def boom(session, msg_id, data):
        raise RuntimeError("boom")

    logic.register(1, boom)
    logic.register(2, lambda s, mid, data: seen.append(data))
    with logic:
        logic.post(FakeSession(), RecvNode(1, b"x"))
        logic.post(FakeSession(), RecvNode(2, b"after"))
    assert seen == ["after"]


def test_queued_login_is_answered_by_worker():
    logic, _, _ = make_logic(
        LoginReply(error=ErrorCode.SUCCESS, uid=7, token="token"),
        users={7: UserInfo(name="alice", uid=7)},
    )
    session = FakeSession()
    with logic:
        logic.post(session, RecvNode(MsgId.CHAT_LOGIN, login_payload(7, "token").encode()))
    assert session.sent[0][1] == MsgId.CHAT_LOGIN_RSP
    assert json.loads(session.sent[0][0])["name"] == "alice"


@pytest.mark.parametrize("msg_id", [MsgId.CHAT_LOGIN_RSP, 0, 2048])
def test_only_login_registered_by_default(msg_id):
    logic, _, _ = make_logic()
    assert logic.dispatch(FakeSession(), RecvNode(msg_id, b"{}")) is False