from __future__ import annotations

from typing import List

import pytest

import app.main as server_main


class StubServer:
    def __init__(self, port: int, bind_error: OSError | None = None) -> None:
        self.port = port
        self.bind_error = bind_error
        self.served = False
        self.executor = self
        self.shutdown_calls: List[dict] = []

    async def serve_forever(self) -> None:
        if self.bind_error is not None:
            raise self.bind_error
        self.served = True

    def shutdown(self, **kwargs) -> None:
        self.shutdown_calls.append(kwargs)


@pytest.fixture()
def servers(monkeypatch) -> List[StubServer]:
    created: List[StubServer] = []

    def factory(port: int) -> StubServer:
        server = StubServer(port)
        created.append(server)
        return server

    monkeypatch.setattr(server_main, "build_default_server", factory)
    monkeypatch.setattr(server_main, "configure_logging", lambda: None)
    return created


@pytest.mark.parametrize(
    "argv", [[], ["9000", "9001"], ["port"], ["0"], ["-1"], ["65536"], ["70000"], ["--help"]]
)
def test_bad_arguments_print_usage_and_exit_1(argv, servers, capsys) -> None:
    assert server_main.main(argv) == 1

    assert "Usage: sensor-log-server <port>" in capsys.readouterr().err
    assert servers == []


def test_valid_port_runs_server(servers) -> None:
    assert server_main.main(["9000"]) == 0

    (server,) = servers
    assert server.port == 9000
    assert server.served is True
    assert server.shutdown_calls


def test_bind_failure_exits_1(monkeypatch) -> None:
    monkeypatch.setattr(
        server_main,
        "build_default_server",
        lambda port: StubServer(port, bind_error=OSError(98, "Address already in use")),
    )
    monkeypatch.setattr(server_main, "configure_logging", lambda: None)

    assert server_main.main(["9000"]) == 1


def test_arguments_default_to_process_argv(monkeypatch, servers, capsys) -> None:
    monkeypatch.setattr(server_main.sys, "argv", ["sensor-log-server"])

    assert server_main.main() == 1
    assert capsys.readouterr().err.strip() == "Usage: sensor-log-server <port>"

    monkeypatch.setattr(server_main.sys, "argv", ["sensor-log-server", "65535"])

    assert server_main.main() == 0
    assert [server.port for server in servers] == [65535]
