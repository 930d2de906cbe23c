"""Tests for URL matching."""

import re

import pytest

from rulehook.builder import build_response
from rulehook.matcher import MatchRule, any_match, compile_pattern, first_match, matches


class TestMatches:
    """Tests for the matches predicate."""

    @pytest.mark.parametrize(
        ("url", "pattern"),
        [
            ("https://p.byteimg.com/img/1.jpg", r"byteimg\.com"),
            ("https://P3.BYTEIMG.COM/x.webp", r"byteimg\.com"),
            ("https://www.google.com/search?q=x", "google"),
            ("https://api.amemv.com/aweme/v1/feed/?count=6", r"aweme/v1/feed"),
        ],
    )
    def test_matches_case_insensitive_substring(self, url: str, pattern: str) -> None:
        """Patterns are searched anywhere in the URL ignoring case."""
        assert matches(url, pattern)

    def test_no_match(self) -> None:
        assert not matches("https://example.com/other", r"byteimg\.com")

    def test_dot_is_escaped_in_pattern(self) -> None:
        """An escaped dot must not match arbitrary characters."""
        assert not matches("https://byteimgXcom/", r"byteimg\.com")

    def test_accepts_compiled_pattern(self) -> None:
        assert matches("https://ixigua.com/v", re.compile("IXIGUA", re.IGNORECASE))

    def test_invalid_regex_matches_literally(self, caplog: pytest.LogCaptureFixture) -> None:
        """A pattern that is not a valid regex falls back to a literal test."""
        pattern = compile_pattern("cdn[")
        assert pattern.search("https://cdn[.example.com/")
        assert not pattern.search("https://cdn.example.com/")
        assert "Invalid pattern" in caplog.text

    def test_any_match(self) -> None:
        assert any_match("https://a.ixigua.com/", [r"byteimg\.com", r"ixigua\.com"])
        assert not any_match("https://a.example.com/", [r"byteimg\.com", r"ixigua\.com"])
        assert not any_match("https://a.example.com/", [])


class TestFirstMatch:
    """Tests for first-match-wins rule tables."""

    @pytest.fixture
    def rules(self) -> list[MatchRule]:
        return [
            MatchRule.from_patterns("image", [r"byteimg\.com"], build_response("gif")),
            MatchRule.from_patterns("api-stub", ["google", "byteimg"], build_response("json")),
        ]

    def test_declared_order_wins(self, rules: list[MatchRule]) -> None:
        """A URL matching two rules resolves to the one declared first."""
        rule = first_match("https://google.byteimg.com/", rules)
        assert rule is not None
        assert rule.name == "image"

    def test_second_rule(self, rules: list[MatchRule]) -> None:
        rule = first_match("https://www.google.com/search?q=x", rules)
        assert rule is not None
        assert rule.name == "api-stub"

    def test_no_rule(self, rules: list[MatchRule]) -> None:
        assert first_match("https://example.com/other", rules) is None

    def test_empty_table(self) -> None:
        assert first_match("https://www.google.com/", []) is None
