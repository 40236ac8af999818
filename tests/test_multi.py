"""Tests for multi-host execution."""

import json

import pytest
from unittest.mock import MagicMock, patch

from amt_power.errors import ResolutionError
from amt_power.multi import (
    format_multi_host_output,
    load_hosts_from_csv,
    run_multiple_hosts,
    run_single_host,
)


HOST = {
    "host": "192.0.2.10",
    "username": "admin",
    "password": "pass1",
    "name": "node1",
    "port": 16992,
    "protocol": "http",
}


def test_load_hosts_from_csv(tmp_path):
    """Test CSV rows are loaded with defaults for optional columns."""
    csv_file = tmp_path / "hosts.csv"
    csv_file.write_text(
        "host,username,password,name,port,protocol\n"
        "192.0.2.10,admin,pass1,node1,16993,https\n"
        "192.0.2.11,admin,pass2,,,\n"
    )

    hosts = load_hosts_from_csv(str(csv_file))

    assert hosts[0] == {
        "host": "192.0.2.10",
        "username": "admin",
        "password": "pass1",
        "name": "node1",
        "port": 16993,
        "protocol": "https",
    }
    assert hosts[1]["name"] == "192.0.2.11"
    assert hosts[1]["port"] == 16992
    assert hosts[1]["protocol"] == "http"


def test_load_hosts_missing_columns(tmp_path):
    """Test required columns are enforced."""
    csv_file = tmp_path / "hosts.csv"
    csv_file.write_text("host,username\n192.0.2.10,admin\n")

    with pytest.raises(ValueError):
        load_hosts_from_csv(str(csv_file))


def test_load_hosts_missing_file(tmp_path):
    """Test a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_hosts_from_csv(str(tmp_path / "missing.csv"))


@patch("amt_power.multi.run_command")
@patch("amt_power.multi.AMTClient")
def test_run_single_host(mock_client_class, mock_run_command):
    """Test a successful command is reported per host."""
    mock_run_command.return_value = {"command": "power-on", "success": True}

    outcome = run_single_host(HOST, "power-on", quiet=True)

    assert outcome["success"] is True
    assert outcome["result"] == {"command": "power-on", "success": True}
    assert outcome["error"] is None
    kwargs = mock_client_class.call_args[1]
    assert kwargs["host"] == "192.0.2.10"
    assert kwargs["port"] == 16992


@patch("amt_power.multi.run_command")
@patch("amt_power.multi.AMTClient")
def test_run_single_host_rejected(mock_client_class, mock_run_command):
    """Test a rejected power change counts as a failure."""
    mock_run_command.return_value = {"command": "reset", "success": False}

    outcome = run_single_host(HOST, "reset", quiet=True)

    assert outcome["success"] is False
    assert outcome["error"] == "Failed to reset device"


@patch("amt_power.multi.run_command")
@patch("amt_power.multi.AMTClient")
def test_run_single_host_error(mock_client_class, mock_run_command):
    """Test errors are captured instead of raised."""
    mock_run_command.side_effect = ResolutionError("Failed to resolve host 192.0.2.10")

    outcome = run_single_host(HOST, "status", quiet=True)

    assert outcome["success"] is False
    assert "Failed to resolve host" in outcome["error"]


@patch("amt_power.multi.run_single_host")
def test_run_multiple_hosts(mock_run_single):
    """Test every host gets its own run."""
    mock_run_single.side_effect = lambda host, *args: {
        "name": host["name"],
        "host": host["host"],
        "success": True,
        "result": {"command": "status", "power_state": 2},
        "error": None,
    }
    hosts = [HOST, {**HOST, "host": "192.0.2.11", "name": "node2"}]

    outcomes = run_multiple_hosts(hosts, "status", quiet=True)

    assert sorted(o["name"] for o in outcomes) == ["node1", "node2"]
    assert mock_run_single.call_count == 2


def test_format_multi_host_output_text():
    """Test text report lists failures and results."""
    outcomes = [
        {"name": "node1", "host": "192.0.2.10", "success": True,
         "result": {"command": "status", "power_state": 2}, "error": None},
        {"name": "node2", "host": "192.0.2.11", "success": False,
         "result": None, "error": "timed out"},
    ]

    output = format_multi_host_output(outcomes)

    assert "Total: 2 | Success: 1 | Failed: 1" in output
    assert "node2 (192.0.2.11): timed out" in output
    assert "Current power state: Power On (2)" in output


def test_format_multi_host_output_json():
    """Test JSON report round-trips the outcomes."""
    outcomes = [{"name": "node1", "host": "192.0.2.10", "success": True,
                 "result": {"command": "test", "success": True}, "error": None}]

    assert json.loads(format_multi_host_output(outcomes, "json")) == outcomes


def test_load_hosts_with_defaults(tmp_path):
    """Test caller-supplied defaults fill missing port and protocol."""
    csv_file = tmp_path / "hosts.csv"
    csv_file.write_text("host,username,password\n192.0.2.10,admin,pass1\n")

    hosts = load_hosts_from_csv(str(csv_file), default_port=16993, default_protocol="https")

    assert hosts[0]["port"] == 16993
    assert hosts[0]["protocol"] == "https"
