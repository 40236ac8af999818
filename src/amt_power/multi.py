"""Multi-host execution for batch operations."""

import csv
import concurrent.futures
import json
from typing import Any, Dict, List, Optional
from pathlib import Path

import click

from .client import AMTClient
from .config import DEFAULT_PORT, DEFAULT_PROTOCOL
from .power import (
    PowerController,
    command_succeeded,
    format_power_output,
    run_command,
)


def load_hosts_from_csv(
    csv_file: str,
    default_port: int = DEFAULT_PORT,
    default_protocol: str = DEFAULT_PROTOCOL,
) -> List[Dict[str, Any]]:
    """
    Load AMT host credentials from CSV file.

    Args:
        csv_file: Path to CSV file with columns: host,username,password
                  Optional columns: name, port, protocol
        default_port: Port for rows without a port value
        default_protocol: Protocol for rows without a protocol value

    Returns:
        List of host dictionaries

    Example CSV:
        host,username,password,name,port,protocol
        192.0.2.10,admin,pass1,node1,16992,http
        192.0.2.11,admin,pass2,node2,16993,https
        192.0.2.12,admin,pass3,,,
    """
    hosts = []
    csv_path = Path(csv_file)

    if not csv_path.exists():
        raise FileNotFoundError(f"Hosts file not found: {csv_file}")

    with open(csv_path, 'r', newline='') as f:
        reader = csv.DictReader(f)

        # Validate required columns
        required = {'host', 'username', 'password'}
        if not reader.fieldnames or not required.issubset(reader.fieldnames):
            raise ValueError(
                f"CSV must contain columns: {', '.join(sorted(required))}\n"
                f"Found: {', '.join(reader.fieldnames or [])}"
            )

        for row in reader:
            host = row['host'].strip()
            hosts.append({
                'host': host,
                'username': row['username'].strip(),
                'password': row['password'].strip(),
                'name': (row.get('name') or '').strip() or host,
                'port': int(row['port']) if (row.get('port') or '').strip() else default_port,
                'protocol': (row.get('protocol') or '').strip() or default_protocol,
            })

    return hosts


def run_single_host(
    host: Dict[str, Any],
    command: str,
    timeout: Optional[int] = None,
    retries: Optional[int] = None,
    verify_ssl: bool = False,
    force_ipv4: bool = True,
    quiet: bool = False,
) -> Dict[str, Any]:
    """
    Run a command against a single host and return the outcome.

    Each call owns its own AMTClient, so parallel workers never share
    connection state.

    Returns:
        Dictionary with host name, address, success flag, result and error
    """
    outcome: Dict[str, Any] = {
        'name': host['name'],
        'host': host['host'],
        'success': False,
        'result': None,
        'error': None,
    }

    try:
        with AMTClient(
            host=host['host'],
            username=host['username'],
            password=host['password'],
            port=host['port'],
            protocol=host['protocol'],
            timeout=timeout,
            retries=retries,
            verify_ssl=verify_ssl,
            force_ipv4=force_ipv4,
        ) as client:
            result = run_command(PowerController(client), command)

        outcome['result'] = result
        outcome['success'] = command_succeeded(result)
        if not outcome['success']:
            outcome['error'] = format_power_output(result)

    except Exception as e:
        outcome['error'] = str(e)
        if not quiet:
            click.echo(f"[{host['name']}] Error: {e}", err=True)

    return outcome


def run_multiple_hosts(
    hosts: List[Dict[str, Any]],
    command: str,
    timeout: Optional[int] = None,
    retries: Optional[int] = None,
    verify_ssl: bool = False,
    force_ipv4: bool = True,
    max_workers: int = 5,
    quiet: bool = False,
) -> List[Dict[str, Any]]:
    """
    Run a command against multiple hosts in parallel.

    Args:
        hosts: List of host configurations
        command: Command name (see power.COMMANDS)
        timeout: Request timeout in milliseconds
        retries: Retry budget per host
        verify_ssl: Verify TLS certificates
        force_ipv4: Resolve hosts to IPv4 only
        max_workers: Maximum parallel workers
        quiet: Suppress progress messages

    Returns:
        List of outcomes for each host, in completion order
    """
    if not quiet:
        click.echo(f"Running {command} on {len(hosts)} host(s)...\n", err=True)

    outcomes = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_host = {
            executor.submit(
                run_single_host,
                host,
                command,
                timeout,
                retries,
                verify_ssl,
                force_ipv4,
                quiet,
            ): host
            for host in hosts
        }

        for future in concurrent.futures.as_completed(future_to_host):
            outcome = future.result()
            outcomes.append(outcome)

            if not quiet:
                if outcome['success']:
                    click.echo(f"[{outcome['name']}] ✓ Complete", err=True)
                else:
                    click.echo(f"[{outcome['name']}] ✗ Failed: {outcome['error']}", err=True)

    return outcomes


def format_multi_host_output(outcomes: List[Dict[str, Any]], output_format: str = "text") -> str:
    """
    Format multi-host outcomes for display.

    Args:
        outcomes: List of host outcomes
        output_format: "text" or "json"

    Returns:
        Formatted output string
    """
    if output_format.lower() == "json":
        return json.dumps(outcomes, indent=2)

    lines = ["=== Multi-Host AMT Power Control ===\n"]

    successful = [o for o in outcomes if o['success']]
    failed = [o for o in outcomes if not o['success']]

    lines.append(f"Total: {len(outcomes)} | Success: {len(successful)} | Failed: {len(failed)}\n")

    if failed:
        lines.append("Failed Hosts:")
        for o in failed:
            lines.append(f"  {o['name']} ({o['host']}): {o['error']}")
        lines.append("")

    for outcome in successful:
        lines.append(f"--- {outcome['name']} ({outcome['host']}) ---")
        lines.append(f"  {format_power_output(outcome['result'])}")
        lines.append("")

    return "\n".join(lines)
