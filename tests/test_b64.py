import base64

import pytest

from bestsub.parser.b64 import decode_base64, is_base64_string


@pytest.mark.parametrize(
    "text",
    ["ss://aes-128-gcm:pw@host:1", "hello world", "中文内容", "a\nb\nc", "x"],
)
def test_round_trip_standard(text):
    encoded = base64.b64encode(text.encode("utf-8")).decode()
    assert is_base64_string(encoded)
    assert decode_base64(encoded) == text


def test_round_trip_urlsafe_without_padding():
    text = "???>>>~~~ subscription"
    encoded = base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")
    assert is_base64_string(encoded)
    assert decode_base64(encoded) == text


def test_surrounding_whitespace_is_ignored():
    encoded = base64.b64encode(b"vmess://abc").decode()
    assert decode_base64(f"  {encoded}\n") == "vmess://abc"


def test_known_value():
    assert decode_base64("aGVsbG8") == "hello"


@pytest.mark.parametrize("text", ["", "   ", "ss://abc@host:1", "ab=c", "not base64!"])
def test_non_base64_is_rejected_and_unchanged(text):
    assert not is_base64_string(text)
    assert decode_base64(text) == text


def test_invalid_utf8_is_rejected():
    encoded = base64.b64encode(b"\xff\xfe\xfd").decode()
    assert not is_base64_string(encoded)
    assert decode_base64(encoded) == encoded


def test_bad_padding_is_rejected():
    assert not is_base64_string("a===")
    assert decode_base64("a===") == "a==="