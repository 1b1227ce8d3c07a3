"""Process entrypoint: ``sensor-log-server <port>``."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import List, Optional

import typer

from app.server import build_default_server
from logging_config import configure_logging

logger = logging.getLogger(__name__)

USAGE = "Usage: sensor-log-server <port>"

app = typer.Typer(add_completion=False)


@app.command()
def serve(
    port: int = typer.Argument(..., min=1, max=65535, help="TCP port to listen on."),
) -> None:
    """Run the sensor log server until the process is terminated."""
    configure_logging()
    server = build_default_server(port)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as exc:
        logger.error("Unable to listen", extra={"reason": str(exc)})
        raise typer.Exit(code=1)
    finally:
        server.executor.shutdown(wait=False, cancel_futures=True)


def _parse_port(args: List[str]) -> Optional[int]:
    if len(args) != 1:
        return None
    try:
        port = int(args[0])
    except ValueError:
        return None
    return port if 0 < port < 65536 else None


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    port = _parse_port(args)
    if port is None:
        typer.echo(USAGE, err=True)
        return 1
    command = typer.main.get_command(app)
    result = command.main(
        args=[str(port)], prog_name="sensor-log-server", standalone_mode=False
    )
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    sys.exit(main())
