"""Side-channel reporter.

Forwards captured payloads to a collector endpoint as a form-encoded POST.
Reports run as detached asyncio tasks: the caller never waits for them and
delivery failures are only logged.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from rulehook.config import CollectorConfig
from rulehook.errors import ReportDeliveryError

logger = logging.getLogger(__name__)

SideChannelMessage = dict[str, str]


class SideChannelReporter:
    """Fire-and-forget POSTs to the configured collector."""

    def __init__(self, collector: CollectorConfig) -> None:
        """Initialize the reporter.

        Args:
            collector: Collector endpoint configuration
        """
        self.collector = collector
        # Strong references so running tasks are not garbage collected
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of reports still in flight."""
        return len(self._tasks)

    def report(self, message: SideChannelMessage, path: str | None = None) -> None:
        """Schedule a report and return immediately.

        Args:
            message: Form fields to send
            path: Collector path, defaults to the configured one
        """
        url = self.collector.url_for(path)
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(url, message))
        except RuntimeError:
            logger.warning("No running event loop, dropping report to %s", url)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, url: str, message: SideChannelMessage) -> None:
        try:
            await self.send(url, message)
        except ReportDeliveryError as e:
            logger.warning("Report to %s failed: %s", url, e)
        except Exception as e:
            logger.warning("Report to %s failed unexpectedly: %s", url, e, exc_info=True)

    async def send(self, url: str, message: SideChannelMessage) -> None:
        """POST one report and drain the response.

        A fresh client is used per report. The response is read and discarded
        without checking its status.

        Raises:
            ReportDeliveryError: If the request could not be completed
        """
        try:
            async with httpx.AsyncClient(timeout=self.collector.timeout) as client:
                response = await client.post(
                    url,
                    data=message,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                await response.aread()
        except httpx.HTTPError as e:
            raise ReportDeliveryError(f"{type(e).__name__}: {e}") from e

        logger.debug("Report to %s delivered (status: %d, %d bytes)", url, response.status_code, len(response.content))

    async def aclose(self) -> None:
        """Wait for outstanding reports to finish."""
        if not self._tasks:
            return
        logger.debug("Waiting for %d pending report(s)", len(self._tasks))
        await asyncio.gather(*self._tasks, return_exceptions=True)
