"""Mitmproxy addon that dispatches proxy events to the rule hooks.

The addon is the only place that knows about mitmproxy types. It builds a
TransactionSnapshot for each event, awaits the matching hook and applies the
returned decision to the flow.
"""

from __future__ import annotations

import dataclasses
import logging

from mitmproxy import connection, http, tls
from mitmproxy.proxy import server_hooks

from rulehook.decisions import ConnectDecision, HeaderOverride, RejectTunnel, ResponseOverride, ServeLocalFile
from rulehook.errors import UpstreamConnectError, UpstreamRequestError
from rulehook.hooks import HookSet
from rulehook.snapshot import Headers, RequestOptions, ResponseRecord, TransactionSnapshot

logger = logging.getLogger(__name__)

# flow.metadata key another addon can set on a CONNECT flow
REPLACE_LOCAL_FILE_KEY = "replace_local_file"


def _peer_host(conn: connection.Connection | None) -> str | None:
    peername = getattr(conn, "peername", None)
    if peername:
        return str(peername[0])
    return None


def snapshot_from_flow(flow: http.HTTPFlow) -> TransactionSnapshot:
    """Build a request-phase snapshot from an HTTP flow."""
    request = flow.request
    return TransactionSnapshot(
        protocol=request.scheme,
        url=request.pretty_url,
        request_options=RequestOptions(
            method=request.method,
            host=request.pretty_host,
            port=request.port,
            path=request.path,
            headers=Headers(dict(request.headers.items())),
        ),
        request_data=request.get_content(strict=False) or b"",
        client_address=_peer_host(flow.client_conn),
        replace_local_file=bool(flow.metadata.get(REPLACE_LOCAL_FILE_KEY, False)),
    )


def with_response(snapshot: TransactionSnapshot, response: http.Response) -> TransactionSnapshot:
    """Copy a snapshot with the upstream response attached.

    The body is the decoded content (gzip and friends already removed); if
    decoding fails the raw bytes are used.
    """
    record = ResponseRecord(
        status_code=response.status_code,
        header=Headers(dict(response.headers.items())),
        body=response.get_content(strict=False) or b"",
    )
    return dataclasses.replace(snapshot, response=record)


def snapshot_from_address(
    host: str,
    port: int | None,
    client: connection.Client | None = None,
    replace_local_file: bool = False,
) -> TransactionSnapshot:
    """Build a tunnel-phase snapshot for a host and port."""
    netloc = f"{host}:{port}" if port else host
    return TransactionSnapshot(
        protocol="https",
        url=f"https://{netloc}",
        request_options=RequestOptions(method="CONNECT", host=host, port=port, path=netloc),
        client_address=_peer_host(client),
        replace_local_file=replace_local_file,
    )


class RuleHookAddon:
    """Mitmproxy addon that routes events through a HookSet."""

    def __init__(self, hooks: HookSet) -> None:
        """Initialize the addon.

        Args:
            hooks: Rule hooks to dispatch to
        """
        self.hooks = hooks
        # Per client connection: tunnel decision taken at CONNECT time
        self._tunnel_decisions: dict[str, bool] = {}
        # Per client connection: local content served on every request
        self._local_files: dict[str, ServeLocalFile] = {}
        # Per client connection: refusal for tunnels seen without a CONNECT
        self._rejections: dict[str, RejectTunnel] = {}

    async def request(self, flow: http.HTTPFlow) -> None:
        """Mock, modify or pass through a request."""
        rejection = self._rejections.get(flow.client_conn.id)
        if rejection is not None:
            flow.response = http.Response.make(rejection.status)
            return

        local = self._local_files.get(flow.client_conn.id)
        if local is not None:
            flow.response = http.Response.make(local.status, local.body, local.headers)
            return

        try:
            decision = await self.hooks.on_request(snapshot_from_flow(flow))
        except Exception as e:
            logger.error("on_request failed for %s: %s", flow.request.pretty_url, e, exc_info=True)
            return

        if isinstance(decision, ResponseOverride):
            flow.response = http.Response.make(decision.status_code, decision.content, dict(decision.header))
            logger.info("Mocked %s (status: %d)", flow.request.pretty_url, decision.status_code)
        elif isinstance(decision, HeaderOverride):
            for name, value in decision.headers.items():
                flow.request.headers[name] = value

    async def response(self, flow: http.HTTPFlow) -> None:
        """Hand the upstream response to the rule."""
        if flow.response is None:
            return
        try:
            snapshot = snapshot_from_flow(flow)
            await self.hooks.on_response(snapshot, with_response(snapshot, flow.response))
        except Exception as e:
            logger.error("on_response failed for %s: %s", flow.request.pretty_url, e, exc_info=True)

    async def http_connect(self, flow: http.HTTPFlow) -> None:
        """Ask the rule how to handle a CONNECT tunnel."""
        snapshot = snapshot_from_address(
            flow.request.host,
            flow.request.port,
            flow.client_conn,
            replace_local_file=bool(flow.metadata.get(REPLACE_LOCAL_FILE_KEY, False)),
        )
        decision = await self._connect_decision(snapshot)
        client_id = flow.client_conn.id
        if isinstance(decision, RejectTunnel):
            # A non-2xx response to the CONNECT is sent to the client and the tunnel is not opened
            flow.response = http.Response.make(decision.status)
            logger.info("Refused CONNECT to %s (status: %d)", snapshot.request_options.host, decision.status)
        elif isinstance(decision, ServeLocalFile):
            # Requests inside this tunnel are answered with the local content
            self._local_files[client_id] = decision
            self._tunnel_decisions[client_id] = True
        else:
            self._tunnel_decisions[client_id] = decision

    async def tls_clienthello(self, data: tls.ClientHelloData) -> None:
        """Skip TLS interception for tunnels the rule passes through."""
        client = data.context.client
        intercept = self._tunnel_decisions.pop(client.id, None)
        if intercept is None:
            # No CONNECT seen (transparent or upstream mode)
            server_address = data.context.server.address
            host = data.client_hello.sni or (server_address[0] if server_address else None)
            if not host:
                return
            port = server_address[1] if server_address else None
            decision = await self._connect_decision(snapshot_from_address(host, port, client))
            if isinstance(decision, RejectTunnel):
                # No CONNECT to answer: intercept and refuse every request instead
                self._rejections[client.id] = decision
                intercept = True
            elif isinstance(decision, ServeLocalFile):
                self._local_files[client.id] = decision
                intercept = True
            else:
                intercept = decision

        if not intercept:
            data.ignore_connection = True

    async def _connect_decision(self, snapshot: TransactionSnapshot) -> ConnectDecision:
        try:
            decision = await self.hooks.on_connect(snapshot)
        except Exception as e:
            logger.error("on_connect failed for %s: %s", snapshot.url, e, exc_info=True)
            return True
        if decision is None:
            logger.error("on_connect returned None for %s, intercepting", snapshot.url)
            return True
        return decision

    async def error(self, flow: http.HTTPFlow) -> None:
        """Report a failed transaction to the rule."""
        if flow.error is None:
            return
        try:
            await self.hooks.on_request_error(snapshot_from_flow(flow), UpstreamRequestError(str(flow.error)))
        except Exception as e:
            logger.error("on_request_error failed: %s", e, exc_info=True)

    async def server_connect_error(self, data: server_hooks.ServerConnectionHookData) -> None:
        """Report a failed upstream connection to the rule."""
        server = data.server
        await self._connect_error(server, data.client, server.error or "connection failed")

    async def tls_failed_server(self, data: tls.TlsData) -> None:
        """Report a failed upstream TLS handshake to the rule."""
        await self._connect_error(data.context.server, data.context.client, data.conn.error or "TLS handshake failed")

    async def _connect_error(self, server: connection.Server, client: connection.Client, message: str) -> None:
        address = server.address
        host = server.sni or (address[0] if address else "")
        port = address[1] if address else None
        try:
            await self.hooks.on_connect_error(snapshot_from_address(host, port, client), UpstreamConnectError(message))
        except Exception as e:
            logger.error("on_connect_error failed: %s", e, exc_info=True)

    def client_disconnected(self, client: connection.Client) -> None:
        """Forget per-connection decisions."""
        self._tunnel_decisions.pop(client.id, None)
        self._local_files.pop(client.id, None)
        self._rejections.pop(client.id, None)

    async def done(self) -> None:
        """Wait for pending side-channel reports on shutdown."""
        await self.hooks.reporter.aclose()
