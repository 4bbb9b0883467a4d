import json

import pytest

from imserver.constants import CODE_PREFIX, ErrorCode
from imserver.gate_logic import GateLogic, GateRequest, GateResponse
from imserver.services import ChatServerReply, UserInfo, VerifyReply

EMAIL = "alice@example.com"


class FakeRedis:
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)


class FakeUsers:
    def __init__(self, reg_uid=7, email_ok=True, user=None):
        self.reg_uid = reg_uid
        self.email_ok = email_ok
        self.user = user
        self.registered = []
        self.checked = []

    def reg_user(self, name, email, pwd):
        self.registered.append((name, email, pwd))
        return self.reg_uid

    def check_email(self, name, email):
        return self.email_ok

    def check_pwd(self, name, pwd):
        self.checked.append((name, pwd))
        return self.user


class FakeVerify:
    def __init__(self, error=ErrorCode.SUCCESS):
        self.error = error
        self.emails = []

    def get_varify_code(self, email):
        self.emails.append(email)
        return VerifyReply(error=self.error, email=email)


class FakeStatus:
    def __init__(self, reply):
        self.reply = reply
        self.uids = []

    def get_chat_server(self, uid):
        self.uids.append(uid)
        return self.reply


def make_logic(redis=None, users=None, verify=None, status=None):
    return GateLogic(
        redis or FakeRedis(),
        users or FakeUsers(),
        verify or FakeVerify(),
        status or FakeStatus(ChatServerReply(host="chat.example.com", token="token")),
    )


def post(logic, path, payload):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    response = GateResponse()
    handled = logic.handle_post(path, GateRequest(body=body), response)
    return handled, response


def result(response):
    return json.loads(response.body)


def test_get_test_lists_params():
    logic = make_logic()
    response = GateResponse()
    assert logic.handle_get("/get_test", GateRequest(params={"a": "1"}), response)
    text = response.body.decode()
    assert text.startswith("receive get_test req\n")
    assert "param 1Key is a\n" in text
    assert "param 1Value is 1\n" in text


def test_unknown_paths_are_not_handled():
    logic = make_logic()
    response = GateResponse()
    assert not logic.handle_get("/missing", GateRequest(), response)
    assert not logic.handle_post("/get_test", GateRequest(), response)
    assert response.body == b""


def test_register_keeps_first_handler():
    logic = make_logic()
    calls = []
    logic.register_post("/x", lambda req, rsp: calls.append("first"))
    logic.register_post("/x", lambda req, rsp: calls.append("second"))
    assert logic.handle_post("/x", GateRequest(), GateResponse())
    assert calls == ["first"]


def test_varifycode_calls_verify_service():
    verify = FakeVerify()
    logic = make_logic(verify=verify)
    handled, response = post(logic, "/get_varifycode", {"email": EMAIL})
    assert handled
    assert result(response) == {"error": 0, "email": EMAIL}
    assert verify.emails == [EMAIL]
    assert response.headers["Content-Type"] == "text/json"


def test_varifycode_propagates_error():
    logic = make_logic(verify=FakeVerify(error=ErrorCode.RPC_FAILED))
    _, response = post(logic, "/get_varifycode", {"email": EMAIL})
    assert result(response)["error"] == ErrorCode.RPC_FAILED


@pytest.mark.parametrize("payload", [b"not json", {"user": "bob"}, b"[1, 2]"])
def test_varifycode_bad_json(payload):
    _, response = post(make_logic(), "/get_varifycode", payload)
    assert result(response) == {"error": ErrorCode.ERROR_JSON}


def register_payload(code="1234"):
    return {
        "email": EMAIL,
        "user": "bob",
        "passwd": "password",
        "confirm": "password",
        "varifycode": code,
    }


def test_register_success():
    users = FakeUsers(reg_uid=42)
    redis = FakeRedis({CODE_PREFIX + EMAIL: "1234"})
    _, response = post(make_logic(redis=redis, users=users), "/user_register", register_payload())
    data = result(response)
    assert data["error"] == 0
    assert data["uid"] == 42
    assert data["user"] == "bob"
    assert data["varifycode"] == "1234"
    assert users.registered == [("bob", EMAIL, "password")]


def test_register_expired_code():
    _, response = post(make_logic(), "/user_register", register_payload())
    assert result(response) == {"error": ErrorCode.VARIFY_EXPIRED}


def test_register_wrong_code():
    redis = FakeRedis({CODE_PREFIX + EMAIL: "9999"})
    _, response = post(make_logic(redis=redis), "/user_register", register_payload())
    assert result(response) == {"error": ErrorCode.VARIFY_CODE_ERR}


@pytest.mark.parametrize("uid", [0, 1])
def test_register_existing_user(uid):
    redis = FakeRedis({CODE_PREFIX + EMAIL: "1234"})
    users = FakeUsers(reg_uid=uid)
    _, response = post(make_logic(redis=redis, users=users), "/user_register", register_payload())
    assert result(response) == {"error": ErrorCode.USER_EXIST}


def test_register_bad_json():
    _, response = post(make_logic(), "/user_register", b"{broken")
    assert result(response) == {"error": ErrorCode.ERROR_JSON}


def test_reset_pwd_success_and_mismatch():
    redis = FakeRedis({CODE_PREFIX + EMAIL: "1234"})
    payload = {"email": EMAIL, "user": "bob", "passwd": "password", "varifycode": "1234"}
    _, ok = post(make_logic(redis=redis), "/reset_pwd", payload)
    assert result(ok)["error"] == 0
    assert result(ok)["email"] == EMAIL
    _, bad = post(make_logic(redis=redis, users=FakeUsers(email_ok=False)), "/reset_pwd", payload)
    assert result(bad) == {"error": ErrorCode.EMAIL_NOT_MATCH}


def test_login_success():
    users = FakeUsers(user=UserInfo(name="bob", uid=9, email=EMAIL))
    status = FakeStatus(ChatServerReply(host="chat.example.com", token="token"))
    _, response = post(
        make_logic(users=users, status=status),
        "/user_login",
        {"user": "bob", "passwd": "password"},
    )
    data = result(response)
    assert data == {"error": 0, "user": "bob", "uid": 9, "token": "token", "host": "chat.example.com"}
    assert status.uids == [9]


def test_login_bad_password():
    _, response = post(make_logic(), "/user_login", {"user": "bob", "passwd": "password"})
    assert result(response) == {"error": ErrorCode.PASSWD_INVALID}


def test_login_status_failure():
    users = FakeUsers(user=UserInfo(name="bob", uid=9))
    status = FakeStatus(ChatServerReply(error=ErrorCode.RPC_FAILED))
    _, response = post(
        make_logic(users=users, status=status),
        "/user_login",
        {"user": "bob", "passwd": "password"},
    )
    assert result(response) == {"error": ErrorCode.RPC_FAILED}