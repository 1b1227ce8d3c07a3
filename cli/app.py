from __future__ import annotations

import time
from dataclasses import dataclass
from typing import NoReturn, Optional

import typer

from cli.client import SensorLogClient
from cli.config import CLIConfig, load_config
from cli.render import render_readings
from models.codec import TIMESTAMP_FORMAT
from services.protocol import ServerError


@dataclass
class CLIState:
    config: CLIConfig
    client: SensorLogClient


app = typer.Typer(
    help="Send readings to and query a sensor log server.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _report_server_error(exc: ServerError) -> NoReturn:
    typer.secho(f"Server rejected request: {exc.code}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-H",
        help="Server address (defaults to SENSOR_LOG_HOST env or 127.0.0.1).",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        min=1,
        max=65535,
        help="Server port (defaults to SENSOR_LOG_PORT env or 9000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Socket timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(host=host, port=port, timeout=timeout)
    client = SensorLogClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("log")
def log_command(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Sensor identifier."),
    value: float = typer.Argument(..., help="Measured value."),
    timestamp: Optional[str] = typer.Option(
        None,
        "--timestamp",
        "-t",
        help="Reading time as YYYY-MM-DDTHH:MM:SS local time (defaults to now).",
    ),
) -> None:
    """Store one reading."""
    state = _get_state(ctx)
    when = timestamp or time.strftime(TIMESTAMP_FORMAT, time.localtime())
    try:
        state.client.log_reading(sensor_id, when, value)
    except ServerError as exc:
        _report_server_error(exc)
    typer.secho(f"Logged {sensor_id} {when} {value}", fg=typer.colors.GREEN)


@app.command("get")
def get_command(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Sensor identifier."),
    count: int = typer.Option(10, "--count", "-n", min=0, help="Number of most recent readings."),
) -> None:
    """Fetch the most recent readings of a sensor."""
    state = _get_state(ctx)
    try:
        readings = state.client.get_readings(sensor_id, count)
    except ServerError as exc:
        _report_server_error(exc)
    render_readings(sensor_id, readings)
