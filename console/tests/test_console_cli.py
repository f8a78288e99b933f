"""Tests for the wg-mesh command line."""
import httpx
import pytest

from console import main as cli


def test_master_url_from_environment(monkeypatch):
    monkeypatch.setenv("WG_MESH_MASTER_URL", "http://10.1.1.1:8080")

    args = cli.build_parser().parse_args(["list"])

    assert args.master == "http://10.1.1.1:8080"


def test_master_url_default(monkeypatch):
    monkeypatch.delenv("WG_MESH_MASTER_URL", raising=False)

    args = cli.build_parser().parse_args(["list"])

    assert args.master == "http://localhost:8080"


@pytest.mark.asyncio
async def test_list_prints_table(master_client, capsys):
    args = cli.build_parser().parse_args(["list"])

    code = await cli.run(args, master_client)

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0].split() == ["ID", "Name", "Adresse", "CIDR"]
    assert out[1].split() == ["1", "alpha", "10.0.0.5:9000", "10.100.0.1/32"]
    assert len(out) == 4


@pytest.mark.asyncio
async def test_status_prints_agent_output(fake_master, master_client, capsys):
    args = cli.build_parser().parse_args(["status", "3"])

    code = await cli.run(args, master_client)

    assert code == 0
    assert "interface: wg0" in capsys.readouterr().out
    assert fake_master.calls("GET", "/api/workers/status")[0].url.params["id"] == "3"


@pytest.mark.asyncio
async def test_add_success(fake_master, master_client, capsys):
    args = cli.build_parser().parse_args(
        ["add", "--name", "w1", "--ip", "10.0.0.5", "--port", "9000", "--api-key", "secret"]
    )

    code = await cli.run(args, master_client)

    assert code == 0
    assert capsys.readouterr().out.startswith("Worker hinzugefügt.\n")
    assert fake_master.created_payloads() == [
        {"name": "w1", "ip": "10.0.0.5", "port": 9000, "cidr": "", "api_key": "secret"}
    ]


@pytest.mark.asyncio
async def test_add_failure_exits_nonzero(make_master, capsys):
    fake, client = make_master(create_status=409, create_body="address allocation conflict, try again")
    args = cli.build_parser().parse_args(
        ["add", "--name", "w1", "--ip", "10.0.0.5", "--port", "9000", "--cidr", "10.100.0.1/32"]
    )

    async with client:
        code = await cli.run(args, client)

    assert code == 1
    assert capsys.readouterr().out == "Fehler: address allocation conflict, try again\n"
    assert fake.calls("GET", "/api/workers") == []


def test_unreachable_master_exits_1(monkeypatch):
    async def failing(args):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli, "_main", failing)

    with pytest.raises(SystemExit) as exc:
        cli.main(["--master", "http://127.0.0.1:1", "list"])

    assert exc.value.code == 1
