"""PID file helpers for background processes."""

import logging
import os
import signal
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def write_pid(pid_file: Path, pid: int) -> None:
    """Write a PID to file, creating the parent directory if needed."""
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(pid))


def read_pid(pid_file: Path) -> int | None:
    """Read a PID from file.

    Returns:
        The PID, or None if the file is missing or does not hold an integer
    """
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def is_process_running(pid_file: Path) -> tuple[bool, int | None]:
    """Check whether the process recorded in a PID file is alive.

    A PID file pointing at a dead process is removed.

    Returns:
        Tuple of (is_running, pid or None)
    """
    pid = read_pid(pid_file)
    if pid is None:
        return False, None

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        logger.debug(f"Removing stale PID file {pid_file} (PID {pid})")
        pid_file.unlink(missing_ok=True)
        return False, None
    except PermissionError:
        # Process exists but belongs to another user
        return True, pid

    return True, pid


def stop_process(pid_file: Path, grace_period: float = 0.5) -> bool:
    """Stop the process recorded in a PID file.

    Sends SIGTERM, then SIGKILL if the process is still alive after the grace
    period. The PID file is removed once the process is gone.

    Returns:
        True if the process was stopped, False otherwise
    """
    running, pid = is_process_running(pid_file)
    if not running or pid is None:
        logger.error(f"No running process found for {pid_file}")
        return False

    try:
        os.kill(pid, signal.SIGTERM)
        time.sleep(grace_period)

        try:
            os.kill(pid, 0)
            os.kill(pid, signal.SIGKILL)
            logger.info(f"Force killed process (PID: {pid})")
        except ProcessLookupError:
            logger.info(f"Process stopped (PID: {pid})")

        pid_file.unlink(missing_ok=True)
        return True

    except OSError as e:
        logger.error(f"Error stopping process {pid}: {e}")
        return False
