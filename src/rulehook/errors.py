"""Error types raised and handled inside the rule engine.

None of these are fatal to the proxy. Every rule-level failure degrades to
pass-through behavior.
"""


class RuleHookError(Exception):
    """Base class for rulehook errors."""


class DecodeError(RuleHookError):
    """Response body could not be turned into text."""


class ReportDeliveryError(RuleHookError):
    """Side-channel POST to the collector failed."""


class UpstreamRequestError(RuleHookError):
    """The host failed to complete an HTTP transaction."""


class UpstreamConnectError(RuleHookError):
    """The host failed to establish a connection or tunnel upstream."""


class UnknownCategoryError(RuleHookError, KeyError):
    """A mock rule refers to a payload category the builder does not know."""
