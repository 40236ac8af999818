"""Power state control and formatting."""

import json
import logging
import re
from enum import IntEnum
from typing import Any, Dict, Optional

from .client import AMTClient
from .envelope import (
    ENUMERATE,
    REQUEST_POWER_STATE_CHANGE,
    build_get_power_state_envelope,
    build_power_state_change_envelope,
)

UNKNOWN_POWER_STATE = -1

# Substring match on purpose: only a literal ReturnValue of 0 counts
SUCCESS_MARKER = "ReturnValue>0</"

_POWER_STATE_ELEMENT = re.compile(r"<(?:\w+:)?PowerState>\s*(\d+)\s*</(?:\w+:)?PowerState>")


class PowerState(IntEnum):
    """CIM RequestPowerStateChange codes."""

    POWER_ON = 2
    POWER_OFF = 8
    RESET = 10


POWER_STATE_NAMES = {
    PowerState.POWER_ON: "Power On",
    PowerState.POWER_OFF: "Power Off",
    PowerState.RESET: "Reset",
}


def describe_power_state(code: int) -> str:
    """Human readable name for a power state code."""
    try:
        return POWER_STATE_NAMES[PowerState(code)]
    except ValueError:
        return "Unknown"


def is_success_response(body: str) -> bool:
    return SUCCESS_MARKER in body


def parse_power_state(body: str) -> int:
    """
    Extract the first PowerState value from a response body.

    Returns:
        The integer state, or -1 when the body carries none
    """
    match = _POWER_STATE_ELEMENT.search(body)
    return int(match.group(1)) if match else UNKNOWN_POWER_STATE


class PowerController:
    """Power on/off/reset and status queries for one AMT device."""

    def __init__(self, client: AMTClient, logger: Optional[logging.Logger] = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def change_power_state(self, state: PowerState) -> bool:
        """
        Request a power state change.

        Args:
            state: Target power state

        Returns:
            True if the device answered with ReturnValue 0, False otherwise

        Raises:
            AMTError: On resolution, authentication, protocol or connection failures
        """
        body = self.client.send(
            REQUEST_POWER_STATE_CHANGE,
            build_power_state_change_envelope(state),
        )
        self.logger.debug("Power state change response: %s", body)
        success = is_success_response(body)
        if not success:
            self.logger.warning("Device rejected power state %s", int(state))
        return success

    def power_on(self) -> bool:
        return self.change_power_state(PowerState.POWER_ON)

    def power_off(self) -> bool:
        return self.change_power_state(PowerState.POWER_OFF)

    def reset(self) -> bool:
        return self.change_power_state(PowerState.RESET)

    def get_power_state(self) -> int:
        """
        Query the current power state.

        Returns:
            CIM power state code, or -1 if the response had none
        """
        body = self.client.send(ENUMERATE, build_get_power_state_envelope())
        self.logger.debug("Get power state response: %s", body)
        return parse_power_state(body)

    def test_connection(self) -> bool:
        """Run a status query end to end; never raises."""
        try:
            self.get_power_state()
            return True
        except Exception as e:
            self.logger.error("Connection test failed: %s", e)
            return False


def format_power_output(result: Dict[str, Any], format: str = "text") -> str:
    """
    Format a command result for display.

    Args:
        result: Dictionary with 'command' and either 'success' or 'power_state'
        format: Output format ('text' or 'json')

    Returns:
        Formatted string output
    """
    if format.lower() == "json":
        return json.dumps(result, indent=2)

    command = result["command"]
    if command == "status":
        return f"Current power state: {describe_power_state(result['power_state'])} ({result['power_state']})"
    if command == "test":
        return "Connection OK" if result["success"] else "Connection failed"

    messages = {
        "power-on": ("Device powered on successfully", "Failed to power on device"),
        "power-off": ("Device powered off successfully", "Failed to power off device"),
        "reset": ("Device reset successfully", "Failed to reset device"),
    }
    ok, failed = messages[command]
    return ok if result["success"] else failed


COMMANDS = ("power-on", "power-off", "reset", "status", "test")


def run_command(controller: PowerController, command: str) -> Dict[str, Any]:
    """
    Run one named command against a controller.

    Args:
        controller: Controller bound to the target device
        command: One of COMMANDS

    Returns:
        Result dictionary suitable for format_power_output
    """
    if command == "status":
        state = controller.get_power_state()
        return {
            "command": command,
            "power_state": state,
            "power_state_name": describe_power_state(state),
        }

    actions = {
        "power-on": controller.power_on,
        "power-off": controller.power_off,
        "reset": controller.reset,
        "test": controller.test_connection,
    }
    if command not in actions:
        raise ValueError(f"Unknown command: {command}")
    return {"command": command, "success": actions[command]()}


def command_succeeded(result: Dict[str, Any]) -> bool:
    """Whether a run_command result should count as success."""
    if result["command"] == "status":
        return True
    return bool(result["success"])
