"""
CLI commands for firmware boot entries.

Thin wrappers over ``sbprovision.core.services.boot_entry``.
"""

from __future__ import annotations

import json
import sys

import click


@click.group()
def entries() -> None:
    """Firmware boot entries — list what NVRAM holds."""


@entries.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List firmware boot entries, marking the managed one."""
    from sbprovision.adapters import default_registry
    from sbprovision.core.config.loader import ConfigError, load_config
    from sbprovision.core.errors import EntryCreationFailed
    from sbprovision.core.services.boot_entry import list_entries

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    try:
        found = list_entries(default_registry())
    except EntryCreationFailed as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in found], indent=2))
        return

    if not found:
        click.secho("⊘ No boot entries reported by firmware", fg="yellow")
        return

    for entry in found:
        managed = entry.label == config.boot_entry_label
        marker = "*" if entry.active else " "
        click.secho(f"   Boot{entry.number}{marker} ", fg="green" if managed else "white", nl=False)
        click.echo(f"{entry.label}  {entry.loader_path or ''}")
