"""Mitmproxy addon script for use with mitmdump -s flag.

Loaded by mitmdump to run every proxied transaction through the rule hooks.
Configuration is read from ``$RULEHOOK_CONFIG_DIR/rulehook.yaml``.

Usage:
    mitmdump --listen-port 8081 -s script.py
"""

from __future__ import annotations

import logging
from typing import Any

from rulehook.config import get_config
from rulehook.hooks import HookSet
from rulehook.mitm.addon import RuleHookAddon

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class RuleHookScript:
    """Mitmproxy addon script that wraps RuleHookAddon."""

    def __init__(self) -> None:
        self.addon: RuleHookAddon | None = None

    def load(self, loader: Any) -> None:  # noqa: ANN401
        """Called when addon is loaded by mitmproxy."""
        logger.info("Loading rulehook mitmproxy addon...")

        config = get_config()
        if config.debug:
            logging.getLogger("rulehook").setLevel(logging.DEBUG)

        self.addon = RuleHookAddon(HookSet(config))
        logger.info(
            "rulehook addon initialized: %d mock rule(s), %d capture pattern(s), collector %s",
            len(config.mock_rules),
            len(config.capture_patterns),
            config.collector.url_for(),
        )

    async def request(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP request."""
        if self.addon:
            await self.addon.request(flow)

    async def response(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP response."""
        if self.addon:
            await self.addon.response(flow)

    async def http_connect(self, flow: Any) -> None:  # noqa: ANN401
        """Handle CONNECT request."""
        if self.addon:
            await self.addon.http_connect(flow)

    async def tls_clienthello(self, data: Any) -> None:  # noqa: ANN401
        """Handle TLS ClientHello."""
        if self.addon:
            await self.addon.tls_clienthello(data)

    async def error(self, flow: Any) -> None:  # noqa: ANN401
        """Handle flow error."""
        if self.addon:
            await self.addon.error(flow)

    async def server_connect_error(self, data: Any) -> None:  # noqa: ANN401
        """Handle upstream connection failure."""
        if self.addon:
            await self.addon.server_connect_error(data)

    async def tls_failed_server(self, data: Any) -> None:  # noqa: ANN401
        """Handle upstream TLS failure."""
        if self.addon:
            await self.addon.tls_failed_server(data)

    def client_disconnected(self, client: Any) -> None:  # noqa: ANN401
        """Handle client disconnect."""
        if self.addon:
            self.addon.client_disconnected(client)

    async def done(self) -> None:
        """Called when mitmproxy shuts down."""
        if self.addon:
            logger.info("Shutting down rulehook addon...")
            await self.addon.done()
            logger.info("rulehook addon shutdown complete")


addons = [RuleHookScript()]
