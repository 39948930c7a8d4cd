"""Shared utilities for pvelxc CLI modules."""
from typing import List, Optional

import typer
from rich.console import Console

from pvelxc.core.config import get_settings
from pvelxc.core.orchestrator import ReconcileAction
from pvelxc.services.proxmox.api import GuestApi
from pvelxc.services.proxmox.http import build_api


def is_mock() -> bool:
    """Return True when the CLI runs against the in-memory API."""
    return get_settings().mock


def get_api() -> GuestApi:
    return build_api(get_settings())


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up console verbosity and, when asked for, file logging."""
    from pvelxc.core.logger import set_verbose, setup_file_logging
    set_verbose(verbose)
    if log_file:
        setup_file_logging(log_file=log_file, verbose=verbose)


def confirm_action(message: str, yes_flag: bool = False, mock: bool = False) -> bool:
    """Prompt for confirmation unless --yes or mock mode."""
    if yes_flag or mock:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Print an error consistently and exit.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_actions(console: Console, actions: List[ReconcileAction]) -> None:
    for index, action in enumerate(actions, 1):
        console.print(f"  {index}. [bold]{action.name}[/bold] {action.detail}".rstrip())


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")
