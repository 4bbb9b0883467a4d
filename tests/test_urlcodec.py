import pytest

from imserver.urlcodec import parse_target, url_decode, url_encode


def test_unreserved_kept():
    assert url_encode("aZ9-_.~") == "aZ9-_.~"


def test_space_becomes_plus():
    assert url_encode(" ") == "+"


def test_reserved_byte_uppercase_hex():
    assert url_encode("/") == "%2F"


def test_lowercase_hex_decodes():
    assert url_decode("%2f") == "/"


@pytest.mark.parametrize(
    "text", ["hello world", "a=b&c=d", "用户@example.com", "100%", "~tilde~"]
)
def test_round_trip(text):
    encoded = url_encode(text)
    assert " " not in encoded
    assert url_decode(encoded) == text


def test_plus_decodes_to_space():
    assert url_decode(url_encode("x y")) == "x y"


def test_truncated_escape():
    with pytest.raises(ValueError):
        url_decode("abc%4")


def test_non_hex_escape():
    with pytest.raises(ValueError):
        url_decode("%zz")


def test_parse_target_without_query():
    assert parse_target("/get_test") == ("/get_test", {})


def test_parse_target_with_params():
    path, params = parse_target("/get_test?key1=value1&key2=a+b")
    assert path == "/get_test"
    assert params == {"key1": "value1", "key2": "a b"}


def test_parse_target_skips_pairs_without_equals():
    path, params = parse_target("/p?flag&k=v&")
    assert path == "/p"
    assert params == {"k": "v"}


def test_parse_target_last_value_wins():
    _, params = parse_target("/p?k=1&k=2")
    assert params == {"k": "2"}