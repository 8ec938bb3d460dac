"""gtfsproxy CLI for managing the GTFS-Realtime to JSON proxy - Tyro implementation."""

import json
import logging
import shutil
import subprocess
import sys
from builtins import print as builtin_print
from pathlib import Path
from typing import Annotated

import attrs
import tyro
from rich import print
from rich.console import Console
from rich.table import Table

from gtfsproxy.config import CONFIG_FILENAME, GtfsProxyConfig, default_config_dir
from gtfsproxy.utils import get_templates_dir


# Subcommand definitions using attrs
@attrs.define
class Start:
    """Start the proxy (mitmdump in reverse proxy mode)."""

    detach: Annotated[bool, tyro.conf.arg(aliases=["-d"])] = False
    """Run in background and save PID to gtfsproxy.lock."""

    port: int | None = None
    """Port to listen on (default: from gtfsproxy.yaml)."""

    backend: str | None = None
    """Backend origin to forward to (default: from gtfsproxy.yaml)."""


@attrs.define
class Stop:
    """Stop the background proxy."""


@attrs.define
class Status:
    """Show the status of the proxy and its configuration."""

    json: bool = False
    """Output status as JSON."""


@attrs.define
class Logs:
    """View the proxy log file."""

    follow: Annotated[bool, tyro.conf.arg(aliases=["-f"])] = False
    """Follow log output (like tail -f)."""

    lines: Annotated[int, tyro.conf.arg(aliases=["-n"])] = 100
    """Number of lines to show (default: 100)."""


@attrs.define
class Install:
    """Install a default gtfsproxy.yaml."""

    force: bool = False
    """Overwrite existing configuration."""


@attrs.define
class Convert:
    """Convert a GTFS-Realtime protobuf file to JSON."""

    input: Annotated[Path, tyro.conf.Positional]
    """Path to the protobuf feed file."""

    output: Annotated[Path | None, tyro.conf.arg(aliases=["-o"])] = None
    """Write JSON here instead of stdout."""


# Type alias for all subcommands
Command = (
    Annotated[Start, tyro.conf.subcommand(name="start")]
    | Annotated[Stop, tyro.conf.subcommand(name="stop")]
    | Annotated[Status, tyro.conf.subcommand(name="status")]
    | Annotated[Logs, tyro.conf.subcommand(name="logs")]
    | Annotated[Install, tyro.conf.subcommand(name="install")]
    | Annotated[Convert, tyro.conf.subcommand(name="convert")]
)


def setup_logging(debug: bool = False) -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config(config_dir: Path) -> GtfsProxyConfig:
    """Load gtfsproxy.yaml from the config directory (defaults if absent)."""
    return GtfsProxyConfig.from_yaml(config_dir / CONFIG_FILENAME)


def install_config(config_dir: Path, force: bool = False) -> None:
    """Install the default gtfsproxy.yaml.

    Args:
        config_dir: Directory to install configuration files to
        force: Whether to overwrite existing configuration
    """
    dst = config_dir / CONFIG_FILENAME
    if dst.exists() and not force:
        print(f"Configuration {dst} already exists.")
        print("Use --force to overwrite existing configuration.")
        sys.exit(1)

    src = get_templates_dir() / CONFIG_FILENAME
    if not src.exists():
        print(f"[red]Error: template {src} not found[/red]", file=sys.stderr)
        sys.exit(1)

    config_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    print(f"Installed {CONFIG_FILENAME} to: {config_dir}")
    print("\nNext steps:")
    print(f"  1. Set backend_url in {dst}")
    print("  2. Start the proxy with: gtfsproxy start")


def start_proxy(config_dir: Path, port: int | None = None, backend: str | None = None, detach: bool = False) -> None:
    """Start the proxy, letting command-line values override gtfsproxy.yaml.

    Args:
        config_dir: Configuration directory
        port: Listen port override
        backend: Backend origin override
        detach: Run in background mode
    """
    from gtfsproxy.mitm import start_mitm

    config = load_config(config_dir)
    start_mitm(
        config_dir,
        backend_url=backend if backend is not None else config.backend_url,
        host=config.host,
        port=port if port is not None else config.port,
        detach=detach,
    )


def stop_proxy(config_dir: Path) -> bool:
    """Stop the background proxy.

    Returns:
        True if the proxy was stopped successfully, False otherwise
    """
    from gtfsproxy.mitm import stop_mitm

    return stop_mitm(config_dir)


def show_status(config_dir: Path, json_output: bool = False) -> None:
    """Show the status of the proxy and its configuration.

    Args:
        config_dir: Configuration directory to check
        json_output: Output status as JSON
    """
    from gtfsproxy.mitm import get_mitm_status

    config_file = config_dir / CONFIG_FILENAME
    config = load_config(config_dir)
    proxy_status = get_mitm_status(config_dir)

    status_data = {
        "proxy": proxy_status["running"],
        "pid": proxy_status["pid"],
        "url": f"http://{config.host}:{config.port}",
        "backend": config.backend_url,
        "config": str(config_file) if config_file.exists() else None,
        "log": proxy_status["log_file"],
    }

    if json_output:
        builtin_print(json.dumps(status_data, indent=2))
        return

    console = Console()

    table = Table(show_header=False, show_lines=True)
    table.add_column("Key", style="white", width=15)
    table.add_column("Value", style="yellow")

    if status_data["proxy"]:
        proxy_display = f"[cyan]{status_data['url']}[/cyan] [green]true[/green] [dim](pid: {status_data['pid']})[/dim]"
    else:
        proxy_display = f"[dim]{status_data['url']}[/dim] [red]false[/red]"
    table.add_row("proxy", proxy_display)
    table.add_row("backend", f"[cyan]{status_data['backend']}[/cyan]")
    table.add_row("config", status_data["config"] or "[dim]defaults (no gtfsproxy.yaml)[/dim]")
    table.add_row("log", status_data["log"] or "[dim]none[/dim]")

    console.print(table)


def view_logs(config_dir: Path, follow: bool = False, lines: int = 100) -> None:
    """Print the tail of the proxy log.

    Args:
        config_dir: Configuration directory containing the log file
        follow: Follow log output (like tail -f)
        lines: Number of lines to show
    """
    from gtfsproxy.mitm.process import get_log_file

    log_file = get_log_file(config_dir)
    if not log_file.exists():
        print("[red]No log file found[/red]", file=sys.stderr)
        print(f"[dim]Expected log file:[/dim] {log_file}", file=sys.stderr)
        sys.exit(1)

    if follow:
        try:
            # S603, S607: tail is a standard system command, file path is validated
            result = subprocess.run(["tail", "-n", str(lines), "-f", str(log_file)])  # noqa: S603, S607
            sys.exit(result.returncode)
        except KeyboardInterrupt:
            sys.exit(0)
        except FileNotFoundError:
            print("[red]Error: 'tail' command not found[/red]", file=sys.stderr)
            sys.exit(1)

    content = log_file.read_text(errors="replace").splitlines()
    for line in content[-lines:] if lines > 0 else []:
        builtin_print(line)


def convert_feed(input_path: Path, output_path: Path | None = None) -> None:
    """Decode a GTFS-Realtime file and emit the same JSON the proxy serves.

    Args:
        input_path: Protobuf feed file
        output_path: Destination file, or None for stdout
    """
    from gtfsproxy.transcode import FeedDecodeError, FeedEncodeError, decode_feed, feed_to_json

    try:
        body = input_path.read_bytes()
    except OSError as e:
        print(f"[red]Error reading {input_path}: {e}[/red]", file=sys.stderr)
        sys.exit(1)

    try:
        json_body = feed_to_json(decode_feed(body))
    except (FeedDecodeError, FeedEncodeError) as e:
        print(f"[red]Not a valid GTFS-Realtime feed: {e}[/red]", file=sys.stderr)
        sys.exit(1)

    if output_path is None:
        builtin_print(json_body.decode("utf-8"))
    else:
        output_path.write_bytes(json_body)
        print(f"Wrote {len(json_body)} bytes to {output_path}", file=sys.stderr)


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """gtfsproxy - GTFS-Realtime to JSON reverse proxy.

    Forwards requests to a backend and rewrites GTFS-Realtime protobuf
    responses as JSON; everything else passes through untouched.
    """
    if config_dir is None:
        config_dir = default_config_dir()

    setup_logging()

    if isinstance(cmd, Start):
        start_proxy(config_dir, port=cmd.port, backend=cmd.backend, detach=cmd.detach)

    elif isinstance(cmd, Stop):
        success = stop_proxy(config_dir)
        sys.exit(0 if success else 1)

    elif isinstance(cmd, Status):
        show_status(config_dir, json_output=cmd.json)

    elif isinstance(cmd, Logs):
        view_logs(config_dir, follow=cmd.follow, lines=cmd.lines)

    elif isinstance(cmd, Install):
        install_config(config_dir, force=cmd.force)

    elif isinstance(cmd, Convert):
        convert_feed(cmd.input, cmd.output)


def entry_point() -> None:
    """Entry point for the gtfsproxy command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
