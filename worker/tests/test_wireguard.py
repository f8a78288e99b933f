"""Tests for wireguard.py conf handling and command sequencing."""
import os
import stat

import pytest
from unittest.mock import AsyncMock, patch

from worker import wireguard


def test_interface_conf_is_written_with_0600(agent_env):
    preserved = wireguard.write_interface_conf(agent_env, "wg0", "PRIV", "10.100.0.1/32", 51820)

    path = agent_env / "wg0.conf"
    assert preserved is False
    assert path.read_text() == (
        "[Interface]\nPrivateKey = PRIV\nAddress = 10.100.0.1/32\nListenPort = 51820\n"
    )
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_rewriting_interface_keeps_existing_peers(agent_env):
    path = agent_env / "wg0.conf"
    path.write_text(
        "[Interface]\nPrivateKey = OLD\nAddress = 10.100.0.9/32\nListenPort = 1\n"
        "\n[Peer]\nPublicKey = PEER1\nAllowedIPs = 10.100.0.2/32\n"
    )

    preserved = wireguard.write_interface_conf(agent_env, "wg0", "NEW", "10.100.0.1/32", 51820)

    text = path.read_text()
    assert preserved is True
    assert text.startswith("[Interface]\nPrivateKey = NEW\n")
    assert "OLD" not in text
    assert text.endswith("\n[Peer]\nPublicKey = PEER1\nAllowedIPs = 10.100.0.2/32\n")


def test_persist_peer_appends_once(agent_env):
    wireguard.write_interface_conf(agent_env, "wg0", "PRIV", "10.100.0.1/32", 51820)

    assert wireguard.persist_peer(agent_env, "wg0", "PUB", "10.100.0.2/32", "192.0.2.2:51820") is True
    assert wireguard.persist_peer(agent_env, "wg0", "PUB", "10.100.0.2/32", "192.0.2.2:51820") is False

    text = (agent_env / "wg0.conf").read_text()
    assert text.count("[Peer]") == 1
    assert "Endpoint = 192.0.2.2:51820\n" in text


def test_peer_without_endpoint_has_no_endpoint_line():
    assert wireguard.render_peer("PUB", "10.100.0.2/32") == (
        "\n[Peer]\nPublicKey = PUB\nAllowedIPs = 10.100.0.2/32\n"
    )


@pytest.mark.parametrize("iface", ["wg0", "mesh_1", "a.b-c"])
def test_valid_iface(iface):
    assert wireguard.valid_iface(iface)


@pytest.mark.parametrize("iface", ["", "..", "../etc/passwd", "wg0/x", "abcdefghijklmnop"])
def test_invalid_iface(iface):
    assert not wireguard.valid_iface(iface)


@pytest.mark.asyncio
@patch("worker.wireguard._run_args", new_callable=AsyncMock)
async def test_bring_up_uses_systemd(mock_run):
    mock_run.return_value = (0, "")

    assert await wireguard.bring_up("wg0") is True

    assert [c.args[0] for c in mock_run.await_args_list] == [
        ["systemctl", "enable", "wg-quick@wg0"],
        ["systemctl", "start", "wg-quick@wg0"],
    ]


@pytest.mark.asyncio
@patch("worker.wireguard._run_args", new_callable=AsyncMock)
async def test_bring_up_falls_back_to_wg_quick(mock_run):
    mock_run.side_effect = [(1, "no systemd"), (1, "no systemd"), (0, "")]

    assert await wireguard.bring_up("wg0") is True

    assert mock_run.await_args_list[-1].args[0] == ["wg-quick", "up", "wg0"]


@pytest.mark.asyncio
@patch("worker.wireguard._run_args", new_callable=AsyncMock)
async def test_restart_falls_back_to_down_up(mock_run):
    mock_run.side_effect = [(1, "failed"), (0, ""), (0, "")]

    assert await wireguard.restart("wg0") is True

    assert [c.args[0] for c in mock_run.await_args_list] == [
        ["systemctl", "restart", "wg-quick@wg0"],
        ["wg-quick", "down", "wg0"],
        ["wg-quick", "up", "wg0"],
    ]


@pytest.mark.asyncio
@patch("worker.wireguard._run_args", new_callable=AsyncMock)
async def test_set_peer_arguments(mock_run):
    mock_run.return_value = (0, "")

    await wireguard.set_peer("wg0", "PUB", "10.100.0.2/32", "192.0.2.2:51820")
    await wireguard.set_peer("wg0", "PUB", "10.100.0.2/32")

    with_endpoint, without_endpoint = [c.args[0] for c in mock_run.await_args_list]
    assert with_endpoint == [
        "wg", "set", "wg0", "peer", "PUB", "allowed-ips", "10.100.0.2/32",
        "endpoint", "192.0.2.2:51820",
    ]
    assert without_endpoint == ["wg", "set", "wg0", "peer", "PUB", "allowed-ips", "10.100.0.2/32"]


@pytest.mark.asyncio
async def test_run_args_reports_missing_binary():
    rc, out = await wireguard._run_args(["definitely-not-a-real-binary-xyz"])

    assert rc == 127
    assert "definitely-not-a-real-binary-xyz" in out


def test_rendering_refuses_line_breaks(agent_env):
    with pytest.raises(ValueError):
        wireguard.write_interface_conf(agent_env, "wg0", "PRIV\nPostUp = id", "10.100.0.1/32", 51820)
    with pytest.raises(ValueError):
        wireguard.persist_peer(agent_env, "wg0", "PUB", "10.100.0.2/32\nPostUp = id")

    assert not (agent_env / "wg0.conf").exists()
