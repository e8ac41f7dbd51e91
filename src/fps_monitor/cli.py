"""CLI commands for fps-monitor."""

from pathlib import Path

import click

from fps_monitor.config import Config


def _load_config(path: Path | None = None) -> Config:
    """Load config, turning validation errors into CLI errors."""
    try:
        return Config.load(path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="fps-monitor")
def main() -> None:
    """Serve MSI Afterburner telemetry as JSON over HTTP."""
    pass


@main.command()
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="HTTP port (overrides config)")
@click.option("--no-replace", is_flag=True, help="Don't terminate a running instance")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file to use",
)
def serve(host: str | None, port: int | None, no_replace: bool, config_path: Path | None) -> None:
    """Run the poller and HTTP server until interrupted."""
    import asyncio

    from fps_monitor import logging as rlog
    from fps_monitor.daemon import run_daemon

    config = _load_config(config_path)
    if host is not None:
        config.server.host = host
    if port is not None:
        config.server.port = port
    if no_replace:
        config.server.replace_existing = False

    exit_code = asyncio.run(run_daemon(config))
    if exit_code:
        address = f"{config.server.host}:{config.server.port}"
        rlog.error(f"Server could not listen on [cyan]{address}[/]")
        raise SystemExit(exit_code)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the full JSON status document")
@click.option("--region", "region_name", default=None, help="Region name (overrides config)")
@click.option(
    "--shm-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of a file-backed region",
)
def dump(as_json: bool, region_name: str | None, shm_dir: Path | None) -> None:
    """Capture the region once and print it."""
    import json
    import time

    from rich.table import Table
    from rich.text import Text

    from fps_monitor import logging as rlog
    from fps_monitor.decoder import capture
    from fps_monitor.formatting import format_age, format_value

    config = _load_config()
    name = region_name or config.region.name
    snapshot = capture(name, int(time.time()), shm_dir=shm_dir or config.region.shm_path)

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    if snapshot.is_empty:
        rlog.region_missing(name)
        return

    table = Table(
        title=Text(f"{name} ({snapshot.all_count} readings, {format_age(snapshot.timestamp)})")
    )
    table.add_column("Name")
    table.add_column("Value", justify="right")
    table.add_column("Category")
    table.add_column("GPU", justify="right")
    for reading in snapshot.all:
        table.add_row(
            Text(reading.name),
            Text(format_value(reading)),
            reading.category.value,
            str(reading.gpu_index),
        )
    rlog.get_console().print(table)


@main.command()
def status() -> None:
    """Quick health check: region presence and daemon state."""
    import time

    from fps_monitor import logging as rlog
    from fps_monitor.decoder import capture
    from fps_monitor.instance import running_pid

    config = _load_config()

    snapshot = capture(config.region.name, int(time.time()), shm_dir=config.region.shm_path)
    if snapshot.is_empty:
        rlog.region_missing(config.region.name)
    else:
        rlog.region_present(config.region.name, snapshot.all_count)

    pid = running_pid(config.pid_path)
    if pid is not None:
        rlog.daemon_running(pid)
    else:
        rlog.daemon_not_running()


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[region]")
    click.echo(f"  name = {cfg.region.name}")
    click.echo(f"  shm_dir = {cfg.region.shm_dir or '(default)'}")
    click.echo(f"  poll_interval = {cfg.region.poll_interval}")
    click.echo()
    click.echo("[server]")
    click.echo(f"  host = {cfg.server.host}")
    click.echo(f"  port = {cfg.server.port}")
    click.echo(f"  replace_existing = {cfg.server.replace_existing}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")


@config.command("reset")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from fps_monitor import logging as rlog

    cfg = Config()
    cfg.save()
    rlog.config_created(str(cfg.config_path))
