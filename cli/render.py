from __future__ import annotations

from typing import Any, Iterable, Sequence

import typer

from models.codec import format_timestamp, format_value
from models.records import SensorReading


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_readings(sensor_id: str, readings: Sequence[SensorReading]) -> None:
    echo_heading(f"Readings for {sensor_id}")
    echo_key_values([("count", len(readings))])
    if not readings:
        typer.echo("No readings stored.")
        return
    for reading in readings:
        typer.echo(f"  {format_timestamp(reading.timestamp)}  {format_value(reading.value)}")
