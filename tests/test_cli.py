"""Tests for the command line interface."""

from unittest.mock import patch

from click.testing import CliRunner

from amt_power.cli import main
from amt_power.errors import ProtocolError


ARGS = ["--host", "192.168.1.100", "-u", "admin", "-p", "P@ssw0rd"]


@patch("amt_power.cli.PowerController")
@patch("amt_power.cli.AMTClient")
def test_status(mock_client_class, mock_controller_class):
    """Test status prints the named power state."""
    mock_controller_class.return_value.get_power_state.return_value = 8

    result = CliRunner().invoke(main, ["status", *ARGS, "--quiet"])

    assert result.exit_code == 0
    assert "Current power state: Power Off (8)" in result.output
    kwargs = mock_client_class.call_args[1]
    assert kwargs["port"] == 16992
    assert kwargs["protocol"] == "http"
    assert kwargs["force_ipv4"] is True
    assert kwargs["verify_ssl"] is False


@patch("amt_power.cli.PowerController")
@patch("amt_power.cli.AMTClient")
def test_power_on_json(mock_client_class, mock_controller_class):
    """Test JSON output of a power command."""
    mock_controller_class.return_value.power_on.return_value = True

    result = CliRunner().invoke(main, ["power-on", *ARGS, "--quiet", "--format", "json"])

    assert result.exit_code == 0
    assert '"success": true' in result.output


@patch("amt_power.cli.PowerController")
@patch("amt_power.cli.AMTClient")
def test_rejected_power_change_exits_nonzero(mock_client_class, mock_controller_class):
    """Test a failed power change exits with status 1."""
    mock_controller_class.return_value.power_off.return_value = False

    result = CliRunner().invoke(main, ["power-off", *ARGS, "--quiet"])

    assert result.exit_code == 1
    assert "Failed to power off device" in result.output


@patch("amt_power.cli.PowerController")
@patch("amt_power.cli.AMTClient")
def test_error_is_reported(mock_client_class, mock_controller_class):
    """Test library errors are printed and exit with status 1."""
    mock_controller_class.return_value.reset.side_effect = ProtocolError(401, "unauthorized")

    result = CliRunner().invoke(main, ["reset", *ARGS, "--quiet"])

    assert result.exit_code == 1
    assert "Error: AMT request failed: 401" in result.output


@patch("amt_power.cli.PowerController")
@patch("amt_power.cli.AMTClient")
def test_environment_configuration(mock_client_class, mock_controller_class):
    """Test options fall back to AMT_* environment variables."""
    mock_controller_class.return_value.test_connection.return_value = True
    env = {
        "AMT_HOST": "amt.example.com",
        "AMT_USERNAME": "admin",
        "AMT_PASSWORD": "P@ssw0rd",
        "AMT_PORT": "16993",
        "AMT_PROTOCOL": "https",
        "AMT_FORCE_IPV4": "false",
    }

    result = CliRunner().invoke(main, ["test", "--quiet"], env=env)

    assert result.exit_code == 0
    kwargs = mock_client_class.call_args[1]
    assert kwargs["host"] == "amt.example.com"
    assert kwargs["port"] == 16993
    assert kwargs["protocol"] == "https"
    assert kwargs["force_ipv4"] is False


def test_missing_credentials():
    """Test a usage error without host or credentials."""
    result = CliRunner().invoke(main, ["status"], env={"AMT_HOST": "", "AMT_USERNAME": "", "AMT_PASSWORD": ""})

    assert result.exit_code == 2


def test_invalid_command():
    """Test unknown commands are rejected by click."""
    result = CliRunner().invoke(main, ["hibernate", *ARGS])

    assert result.exit_code == 2


@patch("amt_power.cli.run_multiple_hosts")
def test_hosts_file(mock_run_multiple, tmp_path):
    """Test multi-host mode reports every host and fails if any failed."""
    csv_file = tmp_path / "hosts.csv"
    csv_file.write_text("host,username,password\n192.0.2.10,admin,pass1\n")
    mock_run_multiple.return_value = [
        {"name": "192.0.2.10", "host": "192.0.2.10", "success": False,
         "result": None, "error": "timed out"},
    ]

    result = CliRunner().invoke(main, ["status", "--hosts-file", str(csv_file), "--quiet"])

    assert result.exit_code == 1
    assert "Failed: 1" in result.output
    assert mock_run_multiple.call_args[1]["hosts"][0]["host"] == "192.0.2.10"


@patch("amt_power.cli.run_multiple_hosts")
def test_hosts_file_uses_environment_port_and_protocol(mock_run_multiple, tmp_path):
    """Test rows without port/protocol fall back to AMT_PORT and AMT_PROTOCOL."""
    csv_file = tmp_path / "hosts.csv"
    csv_file.write_text(
        "host,username,password,port,protocol\n"
        "192.0.2.10,admin,pass1,,\n"
        "192.0.2.11,admin,pass2,16992,http\n"
    )
    mock_run_multiple.return_value = []

    result = CliRunner().invoke(
        main,
        ["status", "--hosts-file", str(csv_file), "--quiet"],
        env={"AMT_PORT": "16993", "AMT_PROTOCOL": "https"},
    )

    assert result.exit_code == 0
    hosts = mock_run_multiple.call_args[1]["hosts"]
    assert (hosts[0]["port"], hosts[0]["protocol"]) == (16993, "https")
    assert (hosts[1]["port"], hosts[1]["protocol"]) == (16992, "http")
