"""Process management for the mitmdump-hosted proxy."""

import logging
import os
import subprocess
import sys
from pathlib import Path

from gtfsproxy.process import is_process_running, stop_process, write_pid

logger = logging.getLogger(__name__)


def get_pid_file(config_dir: Path) -> Path:
    """Get the path to the proxy PID file."""
    return config_dir / "gtfsproxy.lock"


def get_log_file(config_dir: Path) -> Path:
    """Get the path to the proxy log file."""
    return config_dir / "gtfsproxy.log"


def is_running(config_dir: Path) -> tuple[bool, int | None]:
    """Check if the proxy is currently running.

    Args:
        config_dir: Configuration directory

    Returns:
        Tuple of (is_running, pid or None)
    """
    return is_process_running(get_pid_file(config_dir))


def find_mitmdump() -> Path:
    """Locate mitmdump next to the running interpreter."""
    return Path(sys.executable).parent / "mitmdump"


def build_command(mitmdump_path: Path, backend_url: str, host: str, port: int) -> list[str]:
    """Build the mitmdump command line for reverse proxy mode.

    Large bodies are not streamed: the filter needs the complete request.
    """
    script_path = Path(__file__).parent / "script.py"
    return [
        str(mitmdump_path),
        "--mode",
        f"reverse:{backend_url}",
        "--listen-host",
        host,
        "--listen-port",
        str(port),
        "-s",
        str(script_path),
    ]


def start_mitm(
    config_dir: Path,
    backend_url: str,
    host: str = "127.0.0.1",
    port: int = 4080,
    detach: bool = False,
) -> None:
    """Start the proxy under mitmdump.

    Args:
        config_dir: Configuration directory for PID and log files
        backend_url: Origin the reverse proxy forwards to
        host: Address to listen on
        port: Port to listen on
        detach: Run in background mode
    """
    running, pid = is_running(config_dir)
    if running:
        logger.error(f"gtfsproxy is already running with PID {pid}")
        sys.exit(1)

    mitmdump_path = find_mitmdump()
    if not mitmdump_path.exists():
        logger.error(f"mitmdump not found at {mitmdump_path}")
        logger.error("Make sure mitmproxy is installed: pip install mitmproxy")
        sys.exit(1)

    cmd = build_command(mitmdump_path, backend_url, host, port)

    env = os.environ.copy()
    env["GTFSPROXY_CONFIG_DIR"] = str(config_dir)
    env["GTFSPROXY_BACKEND_URL"] = backend_url

    logger.info(f"Starting gtfsproxy on {host}:{port} → {backend_url}")

    if detach:
        pid_file = get_pid_file(config_dir)
        log_file = get_log_file(config_dir)
        log_file.parent.mkdir(parents=True, exist_ok=True)
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

        write_pid(pid_file, process.pid)
        logger.info(f"gtfsproxy started with PID {process.pid}")
        return

    try:
        # S603: Command construction is safe - we control the mitmdump path
        result = subprocess.run(cmd, env=env)  # noqa: S603
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("mitmdump command not found")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


def stop_mitm(config_dir: Path) -> bool:
    """Stop a detached proxy.

    Returns:
        True if the proxy was stopped, False otherwise
    """
    pid_file = get_pid_file(config_dir)
    if not pid_file.exists():
        logger.error("No gtfsproxy server is running (PID file not found)")
        return False
    return stop_process(pid_file)


def get_mitm_status(config_dir: Path) -> dict[str, bool | int | str | None]:
    """Get the status of the proxy.

    Returns:
        Dictionary with running state, PID and file locations
    """
    running, pid = is_running(config_dir)
    log_file = get_log_file(config_dir)
    return {
        "running": running,
        "pid": pid,
        "pid_file": str(get_pid_file(config_dir)) if running else None,
        "log_file": str(log_file) if log_file.exists() else None,
    }
