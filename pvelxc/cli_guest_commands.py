"""Guest CLI commands - show, plan, apply, create."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from pvelxc.cli_support import (
    confirm_action,
    get_api,
    handle_cli_error,
    is_mock,
    print_actions,
    print_success,
    print_warning,
    setup_logging,
)
from pvelxc.config.loader import load_guest_file
from pvelxc.core.errors import LxcError
from pvelxc.core.orchestrator import LxcReconciler
from pvelxc.models.guest import GuestRef
from pvelxc.models.lxc import ConfigLXC
from pvelxc.models.mounts import mount_key
from pvelxc.models.network import network_key
from pvelxc.models.size import render_size

# Module-level console instance (set by the register function)
console: Console = Console()


def _describe_mount(mount) -> str:
    if mount.bind is not None:
        flag = " (ro)" if mount.bind.read_only else ""
        return f"{mount.bind.host_path} -> {mount.bind.guest_path}{flag}"
    if mount.data is not None:
        size = render_size(mount.data.size_kib) if mount.data.size_kib else "?"
        return f"{mount.data.storage} {size} at {mount.data.path}"
    return ""


def _render_config(ref: GuestRef, config: ConfigLXC) -> Table:
    table = Table(title=f"Container {ref}", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value", overflow="fold")

    table.add_row("name", config.name or "")
    table.add_row("state", config.state.label if config.state is not None else "unknown")
    table.add_row("privileged", "yes" if config.is_privileged() else "no")
    table.add_row("memory", f"{config.memory} MiB")
    table.add_row("swap", f"{config.swap} MiB")
    if config.cpu is not None:
        table.add_row("cores", str(config.cpu.cores or "all"))
    if config.boot_mount is not None and config.boot_mount.size_kib:
        table.add_row("rootfs", f"{config.boot_mount.storage} {render_size(config.boot_mount.size_kib)}")
    for slot, mount in sorted((config.mounts or {}).items()):
        table.add_row(mount_key(slot), _describe_mount(mount))
    for slot, network in sorted((config.networks or {}).items()):
        table.add_row(network_key(slot), f"{network.name} on {network.bridge} ({network.raw_mac or network.mac})")
    table.add_row("pool", config.pool or "")
    table.add_row("tags", ", ".join(config.tags or []))
    table.add_row("digest", str(config.digest or ""))
    return table


def show(
    node: str = typer.Argument(..., help="Node the container runs on"),
    vmid: int = typer.Argument(..., help="Container id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Show the live configuration of a container."""
    setup_logging(log_file=log_file, verbose=verbose)
    ref = GuestRef(node=node, vmid=vmid)
    try:
        current = LxcReconciler(get_api()).read_current(ref)
    except LxcError as e:
        handle_cli_error(e, console, verbose)
    console.print(_render_config(ref, current))


def plan(
    file: str = typer.Argument(..., help="Desired-state YAML file"),
    allow_restart: bool = typer.Option(False, "--allow-restart", help="Plan as if restarts were allowed"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Show what 'apply' would change. Read-only."""
    setup_logging(log_file=log_file, verbose=verbose)
    try:
        guest_file = load_guest_file(file)
        ref = guest_file.ref()
        reconciler = LxcReconciler(get_api(), allow_restart=allow_restart or guest_file.allow_restart)
        update_plan = reconciler.plan(ref, guest_file.to_config())
    except (LxcError, FileNotFoundError) as e:
        handle_cli_error(e, console, verbose)

    actions = update_plan.actions(reconciler.allow_restart)
    if not actions:
        print_success(console, f"{ref} is up to date")
        return
    console.print(f"\n[bold]Plan for {ref}:[/bold]")
    print_actions(console, actions)
    if verbose and not update_plan.delta.is_empty():
        console.print(update_plan.delta.to_params())
    if (update_plan.stop_for_target or update_plan.stop_for_mounts) and not reconciler.allow_restart:
        print_warning(console, "this plan needs a shutdown; apply with --allow-restart")


def apply(
    file: str = typer.Argument(..., help="Desired-state YAML file"),
    allow_restart: bool = typer.Option(False, "--allow-restart", help="Allow shutdowns and reboots"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Bring an existing container to the desired configuration."""
    setup_logging(log_file=log_file, verbose=verbose)
    try:
        guest_file = load_guest_file(file)
        ref = guest_file.ref()
        desired = guest_file.to_config()
        reconciler = LxcReconciler(get_api(), allow_restart=allow_restart or guest_file.allow_restart)

        actions = reconciler.plan(ref, desired).actions(reconciler.allow_restart)
        if not actions:
            print_success(console, f"{ref} is up to date")
            return
        console.print(f"\n[bold]Plan for {ref}:[/bold]")
        print_actions(console, actions)

        if not confirm_action("\nApply these changes?", yes_flag=yes, mock=is_mock()):
            console.print("[yellow]Aborted[/yellow]")
            raise typer.Exit(1)

        result = reconciler.update(ref, desired)
    except (LxcError, FileNotFoundError) as e:
        handle_cli_error(e, console, verbose)

    print_success(console, f"{ref}: {len(result.actions)} step(s) applied")


def create(
    file: str = typer.Argument(..., help="Desired-state YAML file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Create a new container from a desired-state file."""
    setup_logging(log_file=log_file, verbose=verbose)
    try:
        guest_file = load_guest_file(file)
        ref = LxcReconciler(get_api()).create(guest_file.to_config())
    except (LxcError, FileNotFoundError) as e:
        handle_cli_error(e, console, verbose)
    print_success(console, f"Created {ref}")


def register_guest_commands(app: typer.Typer, shared_console: Console):
    """Register guest commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(show)
    app.command()(plan)
    app.command()(apply)
    app.command()(create)
