"""Decision builder: static payload table for mock responses.

Every mock is a literal substitution ``category -> (status, headers, body)``;
nothing is computed per request.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from rulehook.decisions import ResponseOverride
from rulehook.errors import UnknownCategoryError
from rulehook.matcher import MatchRule

if TYPE_CHECKING:
    from rulehook.config import MockRuleConfig

logger = logging.getLogger(__name__)

# 1x1 transparent GIF
TRANSPARENT_GIF_URI = "data:image/gif;base64,R0lGODlhAQABAIAAAP///wAAACH5BAEAAAAALAAAAAABAAEAAAICRAEAOw=="

MOCK_PAYLOADS: dict[str, tuple[int, dict[str, str], str]] = {
    "gif": (200, {"Content-Type": "image/gif"}, TRANSPARENT_GIF_URI),
    "json": (200, {"Content-Type": "application/json"}, "[]"),
}


def build_response(category: str) -> ResponseOverride:
    """Build the mock response for a payload category.

    Args:
        category: Key into MOCK_PAYLOADS

    Returns:
        ResponseOverride with its own copy of the header dict

    Raises:
        UnknownCategoryError: If the category has no payload
    """
    try:
        status_code, header, body = MOCK_PAYLOADS[category]
    except KeyError:
        raise UnknownCategoryError(category) from None
    return ResponseOverride(status_code=status_code, header=dict(header), body=body)


def build_rules(mock_rules: Iterable[MockRuleConfig]) -> list[MatchRule]:
    """Turn configured mock rules into an ordered match table."""
    rules = []
    for rule_config in mock_rules:
        decision = build_response(rule_config.category)
        rules.append(MatchRule.from_patterns(rule_config.name, rule_config.patterns, decision))
        logger.debug("Mock rule %s: %s -> %s", rule_config.name, rule_config.patterns, rule_config.category)
    return rules
