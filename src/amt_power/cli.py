"""CLI interface for AMT power control."""

import logging
import sys
from typing import Optional

import click

from .client import AMTClient
from .config import DEFAULT_PORT, DEFAULT_PROTOCOL, DEFAULT_RETRIES, DEFAULT_TIMEOUT_MS, PROTOCOLS
from .power import (
    COMMANDS,
    PowerController,
    command_succeeded,
    format_power_output,
    run_command,
)
from .multi import (
    load_hosts_from_csv,
    run_multiple_hosts,
    format_multi_host_output,
)


PROGRESS = {
    "power-on": "Powering on device at {host}...",
    "power-off": "Powering off device at {host}...",
    "reset": "Resetting device at {host}...",
    "status": "Getting power state for device at {host}...",
    "test": "Testing connection to device at {host}...",
}


def write_output(output: str, output_text: str, output_format: str, quiet: bool) -> None:
    """Save a report, adding an extension matching the format if missing."""
    output_file = output
    if not output_file.endswith(('.txt', '.json')):
        ext = '.json' if output_format.lower() == 'json' else '.txt'
        output_file = f"{output_file}{ext}"

    with open(output_file, 'w') as f:
        f.write(output_text)
    if not quiet:
        click.echo(f"Report saved to: {output_file}", err=True)


@click.command()
@click.argument("command", type=click.Choice(COMMANDS))
@click.option(
    "--host",
    envvar="AMT_HOST",
    help="AMT hostname or IP address (not needed with --hosts-file)",
)
@click.option(
    "--username",
    "-u",
    envvar="AMT_USERNAME",
    help="AMT username (not needed with --hosts-file)",
)
@click.option(
    "--password",
    "-p",
    envvar="AMT_PASSWORD",
    help="AMT password (not needed with --hosts-file)",
)
@click.option(
    "--port",
    type=int,
    default=DEFAULT_PORT,
    envvar="AMT_PORT",
    help=f"AMT WS-Management port (default: {DEFAULT_PORT})",
)
@click.option(
    "--protocol",
    type=click.Choice(PROTOCOLS, case_sensitive=False),
    default=DEFAULT_PROTOCOL,
    envvar="AMT_PROTOCOL",
    help="Transport protocol (default: http)",
)
@click.option(
    "--timeout",
    type=int,
    default=DEFAULT_TIMEOUT_MS,
    envvar="AMT_TIMEOUT",
    help=f"Request timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
)
@click.option(
    "--retries",
    type=int,
    default=DEFAULT_RETRIES,
    envvar="AMT_RETRIES",
    help=f"Retries on transient network errors (default: {DEFAULT_RETRIES})",
)
@click.option(
    "--verify-ssl/--no-verify-ssl",
    default=False,
    envvar="AMT_VERIFY_SSL",
    help="Verify TLS certificates (default: no)",
)
@click.option(
    "--force-ipv4/--no-force-ipv4",
    default=True,
    envvar="AMT_FORCE_IPV4",
    help="Resolve the host to an IPv4 address only (default: yes)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format",
)
@click.option(
    "--hosts-file",
    type=click.Path(exists=True),
    metavar="CSV_FILE",
    help="CSV file with host list (columns: host,username,password,name,port,protocol)",
)
@click.option(
    "--max-workers",
    type=int,
    default=5,
    help="Max parallel connections for multi-host mode (default: 5)",
)
@click.option(
    "--output",
    type=click.Path(),
    metavar="FILENAME",
    help="Save report to file (extension added automatically: .txt or .json)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress messages (errors and final report still shown)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log protocol details (requests, responses, retries)",
)
@click.version_option(package_name="amt-power")
def main(
    command: str,
    host: Optional[str],
    username: Optional[str],
    password: Optional[str],
    port: int,
    protocol: str,
    timeout: int,
    retries: int,
    verify_ssl: bool,
    force_ipv4: bool,
    output_format: str,
    hosts_file: Optional[str],
    max_workers: int,
    output: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """Control the power state of Intel AMT devices.

    COMMAND is one of power-on, power-off, reset, status or test.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        # Multi-host mode
        if hosts_file:
            hosts = load_hosts_from_csv(hosts_file, default_port=port, default_protocol=protocol.lower())
            outcomes = run_multiple_hosts(
                hosts=hosts,
                command=command,
                timeout=timeout,
                retries=retries,
                verify_ssl=verify_ssl,
                force_ipv4=force_ipv4,
                max_workers=max_workers,
                quiet=quiet,
            )

            output_text = format_multi_host_output(outcomes, output_format)
            if output:
                write_output(output, output_text, output_format, quiet)
            click.echo(output_text)

            # Exit with error if any host failed
            if any(not o['success'] for o in outcomes):
                sys.exit(1)

            return

        # Single host mode - validate required options
        if not host or not username or not password:
            raise click.UsageError(
                "Either --hosts-file or all of --host, --username, and --password are required"
            )

        if not quiet:
            click.echo(PROGRESS[command].format(host=host), err=True)

        with AMTClient(
            host=host,
            username=username,
            password=password,
            port=port,
            protocol=protocol.lower(),
            timeout=timeout,
            retries=retries,
            verify_ssl=verify_ssl,
            force_ipv4=force_ipv4,
        ) as client:
            result = run_command(PowerController(client), command)

        output_text = format_power_output(result, format=output_format)
        if output:
            write_output(output, output_text, output_format, quiet)
        click.echo(output_text)

        if not command_succeeded(result):
            sys.exit(1)

    except click.UsageError:
        raise
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
