"""
Command-line interface for the Open Credential Verifier.

Usage:
    opencred-verify credential.json
    opencred-verify https://example.com/credentials/123
    cat credential.json | opencred-verify -
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from opencred_verifier.config import VerifierOptions
from opencred_verifier.document_loader import is_url
from opencred_verifier.verifier import CredentialVerifier, VerificationResult


console = Console()


class InputError(click.ClickException):
    """The credential could not be loaded."""

    exit_code = 2


def format_result(result: VerificationResult) -> None:
    """Format and print verification result."""
    if result.verified:
        status_icon = "[bold green]VERIFIED[/]"
        panel_style = "green"
    elif "data" in result.errors or "verification" in result.errors:
        status_icon = "[bold yellow]ERROR[/]"
        panel_style = "yellow"
    else:
        status_icon = "[bold red]NOT VERIFIED[/]"
        panel_style = "red"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Check", style="dim")
    table.add_column("Value")

    table.add_row("Status", status_icon)

    signature = result.params.signature
    if signature:
        table.add_row("Signature Type", str(signature.get("type", "unknown")))
        table.add_row("Creator", str(signature.get("creator", "unknown")))

    for name, passed in result.checks.items():
        table.add_row(name, "[green]pass[/]" if passed else "[red]fail[/]")

    if result.params.has_expiration and result.params.expiration:
        table.add_row("Expires", result.params.expiration.isoformat())

    console.print(Panel(table, title="Verification Result", border_style=panel_style))

    if result.errors:
        console.print("\n[bold red]Errors:[/]")
        for stage, error in result.errors.items():
            console.print(f"  [red]x[/] {stage}: {error}")


def load_credential(source: str) -> dict[str, Any] | str:
    """Load credential from file or stdin; URLs are passed through.

    Args:
        source: File path, URL, or "-" for stdin.

    Returns:
        Parsed credential JSON, or the URL for the verifier to fetch.
    """
    if source == "-":
        return json.loads(sys.stdin.read())

    if is_url(source):
        return source

    path = Path(source)
    if not path.exists():
        raise InputError(f"File not found: {source}")

    with path.open() as f:
        return json.load(f)


@click.command()
@click.argument("source", required=True)
@click.option(
    "--json-output",
    is_flag=True,
    help="Output result as JSON",
)
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    envvar="OPENCRED_TIMEOUT",
    show_default=True,
    help="HTTP request timeout in seconds",
)
@click.option(
    "--no-ssl-verify",
    is_flag=True,
    envvar="OPENCRED_NO_SSL_VERIFY",
    help="Disable SSL certificate verification",
)
@click.option(
    "--disable-local-framing",
    is_flag=True,
    envvar="OPENCRED_DISABLE_LOCAL_FRAMING",
    help="Treat documents under --local-base-uri as already framed",
)
@click.option(
    "--local-base-uri",
    envvar="OPENCRED_LOCAL_BASE_URI",
    default=None,
    help="Base URI of trusted local documents",
)
@click.option("-v", "--verbose", is_flag=True, help="Log verification steps")
@click.version_option(package_name="opencred-verifier")
def main(
    source: str,
    json_output: bool,
    timeout: float,
    no_ssl_verify: bool,
    disable_local_framing: bool,
    local_base_uri: str | None,
    verbose: bool,
) -> None:
    """Verify a signed linked-data credential.

    SOURCE can be:
    - A file path (e.g., credential.json)
    - A URL (e.g., https://example.com/credentials/123)
    - "-" to read from stdin

    Examples:

        opencred-verify credential.json

        opencred-verify https://example.com/credentials/123

        cat credential.json | opencred-verify -
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )

    try:
        options = VerifierOptions(
            disable_local_framing=disable_local_framing,
            local_base_uri=local_base_uri,
            timeout=timeout,
            verify_ssl=not no_ssl_verify,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    try:
        credential = load_credential(source)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        if json_output:
            console.print_json(data={"error": f"Invalid JSON: {e}"})
        else:
            console.print(f"[red]Error:[/] Invalid JSON: {e}")
        sys.exit(2)

    result = CredentialVerifier(options).verify(credential)

    if json_output:
        console.print_json(data=result.to_dict())
    else:
        format_result(result)

    sys.exit(0 if result.verified else 1)


if __name__ == "__main__":
    main()
