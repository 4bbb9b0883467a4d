"""Protocol constants, error codes and message identifiers shared by the servers."""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes returned to clients in JSON replies."""

    SUCCESS = 0
    ERROR_JSON = 1001
    RPC_FAILED = 1002
    VARIFY_EXPIRED = 1003
    VARIFY_CODE_ERR = 1004
    USER_EXIST = 1005
    PASSWD_ERROR = 1006
    EMAIL_NOT_MATCH = 1007
    PASSWD_UP_FAILED = 1008
    PASSWD_INVALID = 1009
    TOKEN_INVALID = 1010
    UID_INVALID = 1011


class MsgId(IntEnum):
    """Identifiers of messages carried over the chat TCP protocol."""

    CHAT_LOGIN = 1005
    CHAT_LOGIN_RSP = 1006


# Largest message id and body length accepted from a peer.
MAX_LENGTH = 1024 * 2

HEAD_ID_LEN = 2
HEAD_DATA_LEN = 2
HEAD_TOTAL_LEN = HEAD_ID_LEN + HEAD_DATA_LEN

MAX_RECVQUE = 10000
MAX_SENDQUE = 1000

# Prefix of the redis key under which a verification code is stored.
CODE_PREFIX = "code_"