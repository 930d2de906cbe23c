"""rulehook CLI for inspecting rules and running the proxy - Tyro implementation."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated
from urllib.parse import urlsplit

import attrs
import tyro
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rulehook.config import CONFIG_FILENAME, DEFAULT_CONFIG_DIR, RuleHookConfig
from rulehook.decisions import HeaderOverride, RejectTunnel, ResponseOverride, ServeLocalFile
from rulehook.hooks import HookSet
from rulehook.mitm.process import start_mitm
from rulehook.snapshot import RequestOptions, TransactionSnapshot


# Subcommand definitions using attrs
@attrs.define
class Start:
    """Start mitmdump with the rulehook addon."""

    args: Annotated[list[str] | None, tyro.conf.Positional] = None
    """Additional arguments to pass to mitmdump."""

    port: Annotated[int, tyro.conf.arg(aliases=["-p"])] = 8081
    """Port for the proxy to listen on."""

    detach: Annotated[bool, tyro.conf.arg(aliases=["-d"])] = False
    """Run in background and save PID to rulehook.lock."""


@attrs.define
class Install:
    """Write a rulehook.yaml with the default rules."""

    force: bool = False
    """Overwrite existing configuration."""


@attrs.define
class Check:
    """Show which decisions the rules produce for a URL."""

    url: Annotated[str, tyro.conf.Positional]
    """Request URL to evaluate."""

    json: bool = False
    """Output decisions as JSON."""


@attrs.define
class ShowConfig:
    """Show the effective rulehook configuration."""


Command = (
    Annotated[Start, tyro.conf.subcommand(name="start")]
    | Annotated[Install, tyro.conf.subcommand(name="install")]
    | Annotated[Check, tyro.conf.subcommand(name="check")]
    | Annotated[ShowConfig, tyro.conf.subcommand(name="config")]
)


def setup_logging(debug: bool = False) -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config(config_dir: Path) -> RuleHookConfig:
    return RuleHookConfig.from_yaml(config_dir / CONFIG_FILENAME)


def install_config(config_dir: Path, force: bool = False) -> None:
    """Write the default configuration to config_dir.

    Args:
        config_dir: Directory to write rulehook.yaml into
        force: Overwrite an existing file
    """
    config_path = config_dir / CONFIG_FILENAME
    if config_path.exists() and not force:
        print(f"Configuration already exists at {config_path}", file=sys.stderr)
        print("Use --force to overwrite", file=sys.stderr)
        sys.exit(1)

    config_dir.mkdir(parents=True, exist_ok=True)
    defaults = RuleHookConfig().model_dump(mode="json", exclude={"rulehook_config_path"})
    with config_path.open("w") as f:
        yaml.safe_dump({"rulehook": defaults}, f, sort_keys=False)
    print(f"Wrote {config_path}")


def _snapshot_for_url(url: str) -> TransactionSnapshot:
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return TransactionSnapshot(
        protocol=parts.scheme or "http",
        url=url,
        request_options=RequestOptions(method="GET", host=parts.hostname or "", port=parts.port, path=path),
    )


def _describe_request_decision(decision: object) -> dict[str, object]:
    if isinstance(decision, ResponseOverride):
        body = decision.body if isinstance(decision.body, str) else f"<{len(decision.body)} bytes>"
        return {
            "decision": "response_override",
            "status_code": decision.status_code,
            "header": decision.header,
            "body": body,
        }
    if isinstance(decision, HeaderOverride):
        return {"decision": "header_override", "headers": decision.headers}
    return {"decision": "pass_through"}


def _describe_connect_decision(decision: object) -> dict[str, object]:
    if isinstance(decision, RejectTunnel):
        return {"decision": "reject", "status": decision.status}
    if isinstance(decision, ServeLocalFile):
        return {"decision": "serve_local_file", "status": decision.status, "headers": decision.headers}
    return {"decision": "intercept" if decision else "tunnel"}


def check_url(config_dir: Path, url: str, json_output: bool = False) -> dict[str, dict[str, object]]:
    """Evaluate the request and connect hooks for a URL and print the result.

    Args:
        config_dir: Configuration directory
        url: Request URL
        json_output: Print JSON instead of a table

    Returns:
        Decision descriptions keyed by hook name
    """
    hooks = HookSet(load_config(config_dir))
    snapshot = _snapshot_for_url(url)

    async def evaluate() -> dict[str, dict[str, object]]:
        result = {"on_request": _describe_request_decision(await hooks.on_request(snapshot))}
        if snapshot.protocol == "https":
            result["on_connect"] = _describe_connect_decision(await hooks.on_connect(snapshot))
        return result

    result = asyncio.run(evaluate())

    if json_output:
        print(json.dumps(result, indent=2))
        return result

    console = Console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Hook", style="cyan")
    table.add_column("Decision", style="green")
    table.add_column("Details")
    for hook_name, description in result.items():
        details = {k: v for k, v in description.items() if k != "decision"}
        table.add_row(hook_name, str(description["decision"]), json.dumps(details) if details else "")
    console.print(Panel(table, title=url))
    return result


def show_config(config_dir: Path) -> None:
    """Print the effective configuration."""
    config = load_config(config_dir)
    console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("config file", str(config.rulehook_config_path))
    table.add_row("collector", config.collector.url_for())
    table.add_row("capture patterns", ", ".join(config.capture_patterns) or "-")
    table.add_row("https intercept", str(config.https.intercept))
    table.add_row("passthrough hosts", ", ".join(config.https.passthrough_hosts) or "-")
    table.add_row("blocked hosts", ", ".join(config.https.blocked_hosts) or "-")
    table.add_row("local file", str(config.local_file.path) if config.local_file else "-")
    table.add_row("request headers", json.dumps(config.request_headers) if config.request_headers else "-")
    table.add_row("forwarded for", str(config.forwarded_for))
    console.print(Panel(table, title="rulehook"))

    rules = Table(show_header=True, header_style="bold")
    rules.add_column("#", justify="right")
    rules.add_column("Rule", style="cyan")
    rules.add_column("Category", style="green")
    rules.add_column("Patterns")
    for i, rule in enumerate(config.mock_rules, start=1):
        rules.add_row(str(i), rule.name, rule.category, ", ".join(rule.patterns))
    console.print(Panel(rules, title="Mock rules (first match wins)"))


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """rulehook - rule engine hooks for an intercepting proxy.

    Mocks, captures and tunnels HTTP/HTTPS traffic according to
    configurable URL rules.
    """
    if config_dir is None:
        config_dir = DEFAULT_CONFIG_DIR

    setup_logging()

    if isinstance(cmd, Start):
        start_mitm(config_dir, port=cmd.port, args=cmd.args, detach=cmd.detach)

    elif isinstance(cmd, Install):
        install_config(config_dir, force=cmd.force)

    elif isinstance(cmd, Check):
        check_url(config_dir, cmd.url, json_output=cmd.json)

    elif isinstance(cmd, ShowConfig):
        show_config(config_dir)


def entry_point() -> None:
    """Entry point for the rulehook command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
