"""
CLI commands for the signing key pair.

Thin wrappers over ``sbprovision.core.services.keystore``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


@click.group()
def keys() -> None:
    """Signing key pair — inspect the local MOK certificate."""


@keys.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, as_json: bool) -> None:
    """Show the key pair location and certificate details."""
    from sbprovision.core.config.loader import ConfigError, load_config
    from sbprovision.core.services.keystore import describe_certificate, find_keypair, key_paths

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    key_dir = Path(config.key_dir)
    keypair = find_keypair(key_dir, config.key_name)

    if keypair is None:
        key_path, cert_path, _ = key_paths(key_dir, config.key_name)
        present = [p for p in (key_path, cert_path) if p.is_file()]
        state = "corrupt" if present else "absent"
        if as_json:
            click.echo(json.dumps({"state": state, "present": [str(p) for p in present]}, indent=2))
            sys.exit(1 if present else 0)
        if present:
            click.secho(f"❌ Half a key pair: only {present[0]} exists", fg="red", bold=True)
            click.echo("   Restore the missing file or run 'sbprovision provision --replace-corrupt-keys'.")
            sys.exit(1)
        click.secho(f"⊘ No key pair in {key_dir}", fg="yellow")
        click.echo("   'sbprovision provision' will generate one.")
        return

    try:
        info = describe_certificate(keypair.certificate)
    except (OSError, ValueError) as e:
        click.secho(f"❌ Cannot read {keypair.certificate}: {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "state": "present",
            "keypair": keypair.model_dump(mode="json"),
            "certificate": info.model_dump(mode="json"),
        }, indent=2))
        return

    click.secho(f"\n🔑 {config.key_name}", fg="cyan", bold=True)
    click.echo(f"   Private key: {keypair.private_key}")
    click.echo(f"   Certificate: {keypair.certificate}")
    if keypair.certificate_der:
        click.echo(f"   DER copy:    {keypair.certificate_der}")
    click.echo(f"   Subject:     {info.subject}")
    click.echo(f"   Serial:      {info.serial}")
    click.echo(f"   SHA-256:     {info.fingerprint_sha256}")
    click.echo(f"   Valid:       {info.not_before} → {info.not_after}")
    click.echo()
