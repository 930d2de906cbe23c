"""Lifecycle hooks invoked by the proxy host.

The host calls one hook per transaction phase:

    on_request        before the request leaves the proxy
    on_response       after the upstream response arrives, before relaying it
    on_connect        when a CONNECT tunnel is set up, before TLS interception
    on_request_error  when the transaction fails
    on_connect_error  when tunnel or upstream connection setup fails

Hooks are coroutines and keep all per-call state local, so any number of
transactions can run through one HookSet at the same time. Rule tables are
built once in the constructor and never changed afterwards.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

from rulehook.builder import build_rules
from rulehook.config import RuleHookConfig, get_config
from rulehook.decisions import ConnectDecision, HeaderOverride, RejectTunnel, RequestDecision, ServeLocalFile
from rulehook.errors import DecodeError
from rulehook.matcher import any_match, compile_pattern, first_match
from rulehook.reporter import SideChannelReporter
from rulehook.snapshot import TransactionSnapshot, decode_body

logger = logging.getLogger(__name__)


class HookSet:
    """The rule: five hooks implementing the decision protocol."""

    def __init__(
        self,
        config: RuleHookConfig | None = None,
        reporter: SideChannelReporter | None = None,
    ) -> None:
        """Initialize the hook set.

        Args:
            config: Rule configuration (global config if None)
            reporter: Side-channel reporter (built from config if None)

        Raises:
            UnknownCategoryError: If a mock rule names an unknown payload category
        """
        self.config = config if config is not None else get_config()
        self.reporter = reporter or SideChannelReporter(self.config.collector)
        self.mock_rules = build_rules(self.config.mock_rules)
        self.capture_patterns = tuple(compile_pattern(p) for p in self.config.capture_patterns)
        self.passthrough_hosts = tuple(compile_pattern(p) for p in self.config.https.passthrough_hosts)
        self.blocked_hosts = tuple(compile_pattern(p) for p in self.config.https.blocked_hosts)

    async def on_request(self, snapshot: TransactionSnapshot) -> RequestDecision:
        """Decide whether to mock, modify or pass through a request.

        Returns:
            ResponseOverride for the first matching mock rule, HeaderOverride
            when extra request headers are configured, otherwise None
        """
        rule = first_match(snapshot.url, self.mock_rules)
        if rule is not None:
            logger.debug("Mocked %s with rule %s", snapshot.url, rule.name)
            # Shared rule table: callers get their own header dict
            return dataclasses.replace(rule.decision, header=dict(rule.decision.header))

        headers = self._extra_request_headers(snapshot)
        if headers:
            return HeaderOverride(headers=headers)
        return None

    def _extra_request_headers(self, snapshot: TransactionSnapshot) -> dict[str, str]:
        headers = dict(self.config.request_headers)
        if self.config.forwarded_for and snapshot.client_address:
            prior = snapshot.request_options.headers.get("x-forwarded-for")
            client_ip = snapshot.client_address
            headers["X-Forwarded-For"] = f"{prior}, {client_ip}" if prior else client_ip
        return headers

    async def on_response(self, snapshot: TransactionSnapshot, response_snapshot: TransactionSnapshot) -> None:
        """Report captured responses to the collector.

        The response itself is never altered.
        """
        if not any_match(snapshot.url, self.capture_patterns):
            return None

        record = response_snapshot.response
        try:
            text = decode_body(record.body if record is not None else b"")
        except DecodeError as e:
            logger.warning("Skipping report for %s: %s", snapshot.url, e)
            return None

        self.reporter.report({"json": text})
        logger.debug("Captured %s (%d chars)", snapshot.url, len(text))
        return None

    async def on_connect(self, snapshot: TransactionSnapshot) -> ConnectDecision:
        """Decide how to handle a CONNECT tunnel.

        Returns:
            RejectTunnel for blocked hosts, ServeLocalFile when the host asks for
            local content and a file is configured, otherwise True to intercept
            or False to tunnel through
        """
        host = snapshot.request_options.host or snapshot.url
        if any_match(host, self.blocked_hosts):
            logger.info("Refusing tunnel to %s", host)
            return RejectTunnel(status=self.config.https.blocked_status)

        if snapshot.replace_local_file:
            local = await self._serve_local_file()
            if local is not None:
                return local
            logger.warning("Local file replacement requested for %s but none is configured", snapshot.url)

        if any_match(host, self.passthrough_hosts):
            logger.debug("Tunneling %s without interception", host)
            return False
        return self.config.https.intercept

    async def _serve_local_file(self) -> ServeLocalFile | None:
        local_file = self.config.local_file
        if local_file is None:
            return None
        try:
            body = await asyncio.to_thread(local_file.path.read_bytes)
        except OSError as e:
            logger.error("Cannot read local file %s: %s", local_file.path, e)
            return None
        return ServeLocalFile(
            status=local_file.status,
            headers={"content-type": local_file.content_type},
            body=body,
        )

    async def on_request_error(self, snapshot: TransactionSnapshot, error: Any) -> None:
        """Observe a failed transaction."""
        logger.warning("Request error for %s: %s", snapshot.url, error)
        return None

    async def on_connect_error(self, snapshot: TransactionSnapshot, error: Any) -> None:
        """Observe a failed tunnel or upstream connection."""
        logger.warning("Connect error for %s: %s", snapshot.url, error)
        return None
