"""Form-style URL encoding and decoding, and request-target parsing."""

from __future__ import annotations

import string

_UNRESERVED = frozenset(
    (string.ascii_letters + string.digits + "-_.~").encode("ascii")
)
_HEX_DIGITS = "0123456789ABCDEF"


def url_encode(text: str) -> str:
    """Encode text, turning spaces into '+' and other bytes into %XX."""
    parts = []
    for byte in text.encode("utf-8"):
        if byte in _UNRESERVED:
            parts.append(chr(byte))
        elif byte == 0x20:
            parts.append("+")
        else:
            parts.append("%" + _HEX_DIGITS[byte >> 4] + _HEX_DIGITS[byte & 0x0F])
    return "".join(parts)


def url_decode(text: str) -> str:
    """Decode text produced by url_encode; raises ValueError on a bad escape."""
    out = bytearray()
    chars = iter(text)
    for ch in chars:
        if ch == "+":
            out.append(0x20)
        elif ch == "%":
            pair = "".join(c for _, c in zip(range(2), chars))
            if len(pair) != 2 or not all(c in string.hexdigits for c in pair):
                raise ValueError(f"invalid percent escape %{pair!s} in {text!r}")
            out.append(int(pair, 16))
        else:
            out.extend(ch.encode("utf-8"))
    return out.decode("utf-8", errors="replace")


def parse_target(target: str) -> tuple[str, dict[str, str]]:
    """Split a request target into its path and decoded query parameters.

    Pairs without '=' are ignored; a repeated key keeps its last value.
    """
    path, sep, query = target.partition("?")
    params: dict[str, str] = {}
    if not sep:
        return path, params
    for pair in query.split("&"):
        key, eq, value = pair.partition("=")
        if eq:
            params[url_decode(key)] = url_decode(value)
    return path, params