"""Rule engine hooks for an intercepting HTTP/HTTPS proxy."""

from rulehook.decisions import HeaderOverride, RejectTunnel, ResponseOverride, ServeLocalFile
from rulehook.hooks import HookSet
from rulehook.reporter import SideChannelReporter
from rulehook.snapshot import Headers, RequestOptions, ResponseRecord, TransactionSnapshot

__version__ = "0.1.0"

__all__ = [
    "HookSet",
    "ResponseOverride",
    "HeaderOverride",
    "ServeLocalFile",
    "RejectTunnel",
    "SideChannelReporter",
    "TransactionSnapshot",
    "RequestOptions",
    "ResponseRecord",
    "Headers",
]
