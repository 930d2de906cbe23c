"""Tests for the decision builder and decision values."""

import base64

import pytest

from rulehook.builder import MOCK_PAYLOADS, TRANSPARENT_GIF_URI, build_response, build_rules
from rulehook.config import MockRuleConfig
from rulehook.decisions import ResponseOverride, decode_data_uri
from rulehook.errors import UnknownCategoryError

GIF_BYTES = base64.b64decode("R0lGODlhAQABAIAAAP///wAAACH5BAEAAAAALAAAAAABAAEAAAICRAEAOw==")


class TestBuildResponse:
    """Tests for build_response."""

    def test_gif_mock(self) -> None:
        decision = build_response("gif")

        assert decision.status_code == 200
        assert decision.header == {"Content-Type": "image/gif"}
        assert decision.body == TRANSPARENT_GIF_URI
        assert decision.content == GIF_BYTES
        assert decision.content.startswith(b"GIF89a")

    def test_json_mock(self) -> None:
        decision = build_response("json")

        assert decision.status_code == 200
        assert decision.header == {"Content-Type": "application/json"}
        assert decision.body == "[]"
        assert decision.content == b"[]"

    def test_unknown_category(self) -> None:
        with pytest.raises(UnknownCategoryError):
            build_response("mp4")

    def test_header_dicts_are_not_shared(self) -> None:
        """Each decision owns its headers so the payload table stays intact."""
        first = build_response("json")
        first.header["X-Extra"] = "1"

        assert build_response("json").header == {"Content-Type": "application/json"}
        assert MOCK_PAYLOADS["json"][1] == {"Content-Type": "application/json"}


class TestBuildRules:
    """Tests for build_rules."""

    def test_preserves_order(self) -> None:
        rules = build_rules(
            [
                MockRuleConfig(name="b", category="json", patterns=["x"]),
                MockRuleConfig(name="a", category="gif", patterns=["y"]),
            ]
        )
        assert [r.name for r in rules] == ["b", "a"]
        assert rules[1].decision.header["Content-Type"] == "image/gif"

    def test_unknown_category_fails_at_build_time(self) -> None:
        with pytest.raises(UnknownCategoryError):
            build_rules([MockRuleConfig(name="video", category="mp4", patterns=["x"])])


class TestResponseOverride:
    """Tests for ResponseOverride body handling."""

    def test_bytes_body_is_served_as_is(self) -> None:
        assert ResponseOverride(status_code=200, body=b"\x00\x01").content == b"\x00\x01"

    def test_text_body_is_utf8(self) -> None:
        assert ResponseOverride(status_code=200, body="héllo").content == "héllo".encode()

    def test_data_uri_flag(self) -> None:
        assert ResponseOverride(status_code=200, body=TRANSPARENT_GIF_URI).is_data_uri
        assert not ResponseOverride(status_code=200, body="[]").is_data_uri
        assert not ResponseOverride(status_code=200, body=b"data:x,y").is_data_uri


class TestDecodeDataUri:
    """Tests for decode_data_uri."""

    def test_percent_encoded_payload(self) -> None:
        assert decode_data_uri("data:text/plain,hello%20world") == b"hello world"

    def test_not_a_data_uri(self) -> None:
        with pytest.raises(ValueError):
            decode_data_uri("https://example.com/")

    def test_missing_separator(self) -> None:
        with pytest.raises(ValueError):
            decode_data_uri("data:image/gif;base64")

    def test_invalid_base64(self) -> None:
        with pytest.raises(ValueError):
            decode_data_uri("data:image/gif;base64,!!!")
