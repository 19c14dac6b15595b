"""
sbprovision — CLI entrypoint.

Usage:
    sbprovision --help
    sbprovision provision
    sbprovision probe
    sbprovision config check
"""

from __future__ import annotations

import json
import signal
import sys
import threading
from pathlib import Path

import click

from sbprovision import __version__
from sbprovision.core.observability.logging_config import setup_from_flags


@click.group()
@click.version_option(version=__version__, prog_name="sbprovision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to sbprovision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """sbprovision — Secure Boot trust chain for rEFInd via shim."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_flags(debug=debug, verbose=verbose, quiet=quiet)


# ── provision ─────────────────────────────────────────────────────


_STATUS_ICONS = {
    "present": ("✓", "green"),
    "installed": ("✓", "green"),
    "copied": ("✓", "green"),
    "unchanged": ("✓", "green"),
    "signed": ("✓", "green"),
    "already_signed": ("✓", "green"),
    "created": ("✓", "green"),
    "skipped": ("⊘", "yellow"),
    "missing": ("✗", "red"),
    "failed": ("✗", "red"),
}


def _line(status: str, text: str) -> None:
    icon, color = _STATUS_ICONS.get(status, ("•", "white"))
    click.secho(f"   {icon} ", fg=color, nl=False)
    click.echo(text)


def _render_plan(plan) -> None:
    click.secho("\n📝 Remaining manual steps", fg="cyan", bold=True)
    if not plan.steps:
        click.echo("   None.")
    for step in plan.steps:
        click.secho(f"   {step.order}. {step.action}", bold=True)
        if step.detail:
            click.echo(f"      {step.detail}")
    if plan.certificate_path:
        click.echo(f"\n   Certificate: {plan.certificate_path}")
    if plan.certificate_esp_path:
        click.echo(f"   On the ESP:  {plan.certificate_esp_path}")
    if plan.notes:
        click.echo()
        click.secho("⚠️  Notes:", fg="yellow")
        for note in plan.notes:
            click.echo(f"   • {note}")


def _install_cancel_handlers(cancel: threading.Event) -> dict:
    def _handler(signum, frame):
        cancel.set()
        click.secho(
            "\n⊘ Interrupt received; stopping after the current stage.",
            fg="yellow", err=True,
        )

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handler)
    return previous


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--skip-deps", is_flag=True, help="Only check dependencies, never install.")
@click.option(
    "--replace-corrupt-keys", is_flag=True,
    help="If only half of the key pair exists, set it aside and generate a new pair.",
)
@click.option(
    "--signing",
    type=click.Choice(["best-effort", "mandatory"]),
    default=None,
    help="Signing policy (default: from config, else best-effort).",
)
@click.option("--esp", "esp_path", default=None, help="ESP mount point (default: detect).")
@click.option("--force", is_flag=True, help="Provision even if Secure Boot is already enabled.")
@click.pass_context
def provision(
    ctx: click.Context,
    as_json: bool,
    skip_deps: bool,
    replace_corrupt_keys: bool,
    signing: str | None,
    esp_path: str | None,
    force: bool,
) -> None:
    """Provision shim, MokManager, keys, config and the boot entry."""
    from sbprovision.core.engine.provisioner import EngineOptions
    from sbprovision.core.use_cases.provision import run_provision

    options = EngineOptions(
        install_dependencies=not skip_deps,
        replace_corrupt_keys=replace_corrupt_keys,
        force=force,
        signing_policy=signing.replace("-", "_") if signing else None,
        esp_path=esp_path,
    )

    cancel = threading.Event()
    previous = _install_cancel_handlers(cancel)
    try:
        result = run_provision(
            config_path=ctx.obj.get("config_path"),
            options=options,
            cancel=cancel,
        )
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    state = result.state
    assert state is not None

    if state.short_circuited:
        click.secho("✅ Secure Boot is already enabled; nothing to do.", fg="green", bold=True)
        click.echo("   Use --force to provision anyway.")
        return

    click.secho(f"\n🔐 Provisioning run {state.run_id}", fg="cyan", bold=True)
    if state.profile:
        p = state.profile
        click.echo(f"   Platform: {p.distro_id} ({p.package_manager}, {p.efi_arch})  ESP: {p.esp_path}")
    click.echo()

    if state.capabilities:
        for r in state.capabilities.results:
            suffix = f"  {r.detail}" if r.detail else ""
            _line(r.status, f"{r.capability.value} ({r.package}) {r.status}{suffix}")
    if state.keypair:
        verb = "generated" if state.keypair.created_this_run else "reused"
        _line("present", f"key pair {verb}: {state.keypair.certificate}")
    if state.deployment:
        for r in state.deployment.results:
            _line(r.status, f"{r.name} → {r.destination} ({r.status})")
    for s in state.signatures:
        reason = f": {s.reason}" if s.reason else ""
        _line(s.status, f"{s.binary} {s.status}{reason}")
    if state.config:
        c = state.config
        what = "updated" if c.changed else "unchanged"
        _line("present", f"{c.path} {what}")
        if c.backup_path:
            click.echo(f"      backup: {c.backup_path}")
    if state.boot_entry:
        _line(state.boot_entry.status, f"boot entry '{state.boot_entry.label}' {state.boot_entry.status}")

    if state.failure:
        f = state.failure
        click.echo()
        click.secho(f"❌ Failed at {f.stage.value}: {f.kind}", fg="red", bold=True)
        click.echo(f"   {f.message}")
        click.echo(f"   Last completed stage: {state.last_completed.value}")
        click.echo()
        sys.exit(1)

    if state.plan:
        _render_plan(state.plan)
        if result.config:
            click.echo(f"\n   Instructions saved to {result.config.instructions_path}")

    click.echo()
    click.secho("✅ Provisioning complete", fg="green", bold=True)
    click.echo()


# ── probe ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def probe(as_json: bool) -> None:
    """Report the firmware Secure Boot state."""
    from sbprovision.core.use_cases.probe import run_probe

    result = run_probe()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    reading = result.reading
    colors = {"enabled": "green", "disabled": "yellow", "indeterminate": "white"}
    click.echo("Secure Boot: ", nl=False)
    click.secho(reading.status.value, fg=colors.get(reading.status.value, "white"), bold=True)
    if reading.setup_mode is not None:
        click.echo(f"Setup mode:  {'yes' if reading.setup_mode else 'no'}")
    if reading.detail:
        click.echo(f"   {reading.detail}")


# ── config ────────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate sbprovision.yml."""
    from sbprovision.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path or '(defaults)'}")
        assert result.config is not None
        click.echo(f"   Signing policy: {result.config.signing_policy}")
        click.echo(f"   Key directory:  {result.config.key_dir}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


# ── Register sub-command groups from sbprovision/ui/cli/ ──────────

from sbprovision.ui.cli.entries import entries  # noqa: E402
from sbprovision.ui.cli.keys import keys  # noqa: E402

cli.add_command(keys)
cli.add_command(entries)


if __name__ == "__main__":
    cli()
