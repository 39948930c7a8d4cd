#!/usr/bin/env python3
"""pvelxc CLI - reconcile Proxmox containers against YAML files."""

import typer

from pvelxc.cli_guest_commands import register_guest_commands
from pvelxc.core.logger import console

app = typer.Typer(
    name="pvelxc",
    help="""pvelxc - Declarative LXC configuration for Proxmox VE

Quick start:
  pvelxc show pve 101        # Live configuration
  pvelxc plan web01.yml      # See what will change
  pvelxc apply web01.yml     # Make it happen

Set PVE_MOCK=1 to work against an in-memory demo guest.
""",
    add_completion=False,
)

register_guest_commands(app, console)

if __name__ == "__main__":
    app()
