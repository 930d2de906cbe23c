"""URL matching for rule tables.

Patterns are case-insensitive regular expressions searched anywhere in the
full request URL, so a plain hostname fragment works as a substring test.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rulehook.decisions import ResponseOverride

logger = logging.getLogger(__name__)

Pattern = str | re.Pattern[str]


def compile_pattern(pattern: Pattern) -> re.Pattern[str]:
    """Compile a pattern for case-insensitive search.

    Strings that are not valid regular expressions are matched literally.
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Invalid pattern %r (%s), matching it literally", pattern, e)
        return re.compile(re.escape(pattern), re.IGNORECASE)


def matches(url: str, pattern: Pattern) -> bool:
    """Check whether a URL matches a pattern."""
    return compile_pattern(pattern).search(url) is not None


def any_match(url: str, patterns: Iterable[Pattern]) -> bool:
    """Check a URL against patterns in order, stopping at the first hit."""
    return any(matches(url, p) for p in patterns)


@dataclass(frozen=True)
class MatchRule:
    """One row of a first-match-wins rule table.

    Attributes:
        name: Rule name used in logs
        patterns: Compiled URL patterns, any of which selects the rule
        decision: Response returned when the rule matches
    """

    name: str
    patterns: tuple[re.Pattern[str], ...]
    decision: ResponseOverride

    @classmethod
    def from_patterns(cls, name: str, patterns: Iterable[Pattern], decision: ResponseOverride) -> MatchRule:
        return cls(name=name, patterns=tuple(compile_pattern(p) for p in patterns), decision=decision)

    def test(self, url: str) -> bool:
        return any_match(url, self.patterns)


def first_match(url: str, rules: Sequence[MatchRule]) -> MatchRule | None:
    """Return the first rule in declared order that matches the URL."""
    for rule in rules:
        if rule.test(url):
            return rule
    return None
