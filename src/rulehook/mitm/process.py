"""Process management for the mitmdump host running the rule hooks."""

import logging
import os
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def get_pid_file(config_dir: Path) -> Path:
    return config_dir / "rulehook.lock"


def get_log_file(config_dir: Path) -> Path:
    return config_dir / "rulehook.log"


def build_command(mitmdump_path: Path, port: int, args: list[str] | None = None) -> list[str]:
    """Build the mitmdump command line.

    Args:
        mitmdump_path: mitmdump executable
        port: Port for mitmproxy to listen on
        args: Extra mitmdump arguments

    Returns:
        Command as a list of arguments
    """
    script_path = Path(__file__).parent / "script.py"
    cmd = [
        str(mitmdump_path),
        "--listen-port",
        str(port),
        "-s",
        str(script_path),
    ]
    if args:
        cmd.extend(args)
    return cmd


def start_mitm(
    config_dir: Path,
    port: int = 8081,
    args: list[str] | None = None,
    detach: bool = False,
) -> None:
    """Start mitmdump with the rulehook addon.

    Args:
        config_dir: Configuration directory holding rulehook.yaml
        port: Port for mitmproxy to listen on
        args: Extra mitmdump arguments
        detach: Run in background mode
    """
    # Get the bin directory from the current Python interpreter's location
    venv_bin = Path(sys.executable).parent
    mitmdump_path = venv_bin / "mitmdump"

    if not mitmdump_path.exists():
        logger.error(f"mitmdump not found at {mitmdump_path}")
        logger.error("Make sure mitmproxy is installed: pip install mitmproxy")
        sys.exit(1)

    cmd = build_command(mitmdump_path, port, args)

    # Pass environment to subprocess
    env = os.environ.copy()
    env["RULEHOOK_CONFIG_DIR"] = str(config_dir)

    if detach:
        config_dir.mkdir(parents=True, exist_ok=True)
        log_file = get_log_file(config_dir)
        logger.info(f"Starting mitmproxy on port {port}")
        logger.info(f"Log file: {log_file}")

        try:
            with log_file.open("w") as log:
                # S603: Command construction is safe - we control the mitmdump path
                process = subprocess.Popen(  # noqa: S603
                    cmd,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,  # Detach from parent process group
                    env=env,
                )
        except FileNotFoundError:
            logger.error("mitmdump command not found")
            sys.exit(1)

        get_pid_file(config_dir).write_text(str(process.pid))
        logger.info(f"Mitmproxy started with PID {process.pid}")
        return

    logger.info(f"Starting mitmproxy on port {port}")
    try:
        # S603: Command construction is safe - we control the mitmdump path
        result = subprocess.run(cmd, env=env)  # noqa: S603
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("mitmdump command not found")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
