"""
Provisioning engine — the state machine that drives every component.

    Start → PlatformResolved → DependenciesSatisfied → KeysReady
          → ArtifactsDeployed → BinarySigned → ConfigUpdated
          → BootEntryReady → Advised

Each arrow is one stage function. A stage either returns (the state is
advanced) or raises a ProvisioningError, which moves the run to the
terminal Failed state; nothing is retried or rolled back. Every stage
checks what is already on disk or in firmware first, so re-running
after a failure redoes only the unfinished work.

Cancellation is honoured between stages only.
"""

from __future__ import annotations

import logging
import shutil
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import (
    ConfigWriteFailed,
    DependencyUnavailable,
    ProvisioningCancelled,
    ProvisioningError,
)
from sbprovision.core.models.boot import BootEntry
from sbprovision.core.models.config import ProvisionConfig, SigningPolicy
from sbprovision.core.models.platform import PlatformProfile, RequiredCapability
from sbprovision.core.models.state import ProvisioningState, SecureBootStatus, Stage
from sbprovision.core.observability.logging_config import bind_run
from sbprovision.core.services import (
    boot_entry,
    distro,
    enrollment,
    esp,
    keystore,
    packages,
    signing,
    state_probe,
)
from sbprovision.core.services.config_editor import ConfigDocument, ConfigEditor, default_blocks
from sbprovision.core.services.lock import process_lock
from sbprovision.core.services.mounts import PROC_MOUNTS

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "refind.conf"


@dataclass
class EngineOptions:
    """Per-invocation switches and host probes (injectable for tests)."""

    install_dependencies: bool = True
    replace_corrupt_keys: bool = False
    force: bool = False
    signing_policy: SigningPolicy | None = None
    esp_path: str | None = None
    profile: PlatformProfile | None = None

    os_release: Path = distro.OS_RELEASE
    mounts_path: Path = PROC_MOUNTS
    efi_dir: Path = state_probe.EFI_DIR
    machine: str | None = None
    which: Callable[[str], str | None] = field(default=shutil.which)
    write_instructions: bool = True


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


def loader_path(boot_manager_dir: str, binary_name: str) -> str:
    r"""Firmware-style path, e.g. ``\EFI\refind\shimx64.efi``."""
    parts = PurePosixPath(boot_manager_dir.strip("/")).parts
    return "\\" + "\\".join((*parts, binary_name))


class ProvisioningEngine:
    """Runs the provisioning stages in order against one host."""

    def __init__(
        self,
        config: ProvisionConfig,
        registry: AdapterRegistry,
        options: EngineOptions | None = None,
    ):
        self.config = config
        self.registry = registry
        self.options = options or EngineOptions()
        self._editor = ConfigEditor()

    @property
    def signing_policy(self) -> SigningPolicy:
        return self.options.signing_policy or self.config.signing_policy

    # ── Run loop ────────────────────────────────────────────────────

    def stages(self) -> list[tuple[Stage, Callable[[ProvisioningState], None]]]:
        return [
            (Stage.PLATFORM_RESOLVED, self._resolve_platform),
            (Stage.DEPENDENCIES_SATISFIED, self._satisfy_dependencies),
            (Stage.KEYS_READY, self._ensure_keys),
            (Stage.ARTIFACTS_DEPLOYED, self._deploy_artifacts),
            (Stage.BINARY_SIGNED, self._sign_boot_manager),
            (Stage.CONFIG_UPDATED, self._update_config),
            (Stage.BOOT_ENTRY_READY, self._ensure_boot_entry),
            (Stage.ADVISED, self._advise),
        ]

    def run(self, cancel: threading.Event | None = None) -> ProvisioningState:
        """Run to Advised or Failed. Never raises ProvisioningError."""
        state = ProvisioningState(run_id=generate_run_id())

        with bind_run(state.run_id):
            logger.info("Provisioning run %s started", state.run_id)
            try:
                with process_lock(Path(self.config.lock_path)):
                    self._run_locked(state, cancel)
            except ProvisioningError as e:
                # Only the lock itself fails outside a stage.
                logger.error("%s: %s", e.kind, e)
                state.fail(Stage.START, e.kind, str(e))

        return state

    def _run_locked(self, state: ProvisioningState, cancel: threading.Event | None) -> None:
        reading = state_probe.read(self.options.efi_dir)
        state.initial_probe = reading
        state.last_probe = reading

        if reading.status == SecureBootStatus.ENABLED:
            if not (self.config.provision_when_enabled or self.options.force):
                logger.info("Secure Boot already enabled, nothing to provision")
                state.short_circuited = True
                state.plan = enrollment.advise(state)
                state.advance(Stage.ADVISED)
                return
            logger.info("Secure Boot already enabled, provisioning anyway")
        elif reading.status == SecureBootStatus.INDETERMINATE:
            logger.warning("Secure Boot state indeterminate, provisioning as if disabled")

        for stage, step in self.stages():
            try:
                if cancel is not None and cancel.is_set():
                    raise ProvisioningCancelled(
                        f"Cancelled before {stage.value} (last completed: {state.last_completed.value})"
                    )
                logger.info("→ %s", stage.value)
                step(state)
            except ProvisioningError as e:
                logger.error("✗ %s failed: %s: %s", stage.value, e.kind, e)
                state.fail(stage, e.kind, str(e))
                return
            state.advance(stage)
            logger.info("✓ %s", stage.value)

    # ── Stages ──────────────────────────────────────────────────────

    def _resolve_platform(self, state: ProvisioningState) -> None:
        opts = self.options
        if opts.profile is not None:
            logger.info("Using pre-resolved platform %s", opts.profile.distro_id)
            state.profile = opts.profile
            return
        state.profile = distro.resolve(
            os_release=opts.os_release,
            which=opts.which,
            machine=opts.machine,
            mounts_path=opts.mounts_path,
            esp_override=opts.esp_path or self.config.esp_path,
        )

    def _satisfy_dependencies(self, state: ProvisioningState) -> None:
        assert state.profile is not None
        required = [c for c in RequiredCapability if c is not RequiredCapability.SIGNING_TOOL]
        optional: list[RequiredCapability] = []
        if self.signing_policy == "mandatory":
            required.append(RequiredCapability.SIGNING_TOOL)
        else:
            optional.append(RequiredCapability.SIGNING_TOOL)

        try:
            report = packages.ensure(
                required,
                state.profile,
                self.registry,
                optional=optional,
                install=self.options.install_dependencies,
                which=self.options.which,
            )
        except DependencyUnavailable as e:
            state.capabilities = e.report
            raise
        state.capabilities = report

        for result in report.results:
            if result.optional and result.status in ("missing", "failed"):
                state.annotate(f"Optional {result.capability.value} unavailable: {result.detail}")

    def _ensure_keys(self, state: ProvisioningState) -> None:
        cfg = self.config
        keypair = keystore.ensure_keypair(
            Path(cfg.key_dir),
            self.registry,
            name=cfg.key_name,
            subject=cfg.certificate_subject,
            days=cfg.validity_days,
            bits=cfg.key_bits,
            replace_corrupt=self.options.replace_corrupt_keys,
        )
        state.keypair = keypair
        try:
            state.certificate = keystore.describe_certificate(keypair.certificate)
        except ValueError as e:
            state.annotate(f"Cannot read certificate details from {keypair.certificate}: {e}")

    def _deploy_artifacts(self, state: ProvisioningState) -> None:
        assert state.profile is not None
        artifact_set = esp.build_artifact_set(
            state.profile, state.keypair, boot_manager_dir=self.config.boot_manager_dir,
        )
        state.artifact_set = artifact_set
        state.deployment = esp.deploy(artifact_set, self.registry)
        for result in state.deployment.results:
            if result.status == "skipped":
                state.annotate(f"{result.name} not deployed: {result.detail}")

    def _sign_boot_manager(self, state: ProvisioningState) -> None:
        assert state.profile is not None
        for binary in esp.signing_targets(state.profile, self.config.boot_manager_dir):
            outcome = signing.sign(binary, state.keypair, self.registry, policy=self.signing_policy)
            state.signatures.append(outcome)
            if outcome.status == "skipped":
                state.annotate(f"Signing skipped for {binary.name}: {outcome.reason}")
        # Summary outcome: the boot manager's own copy.
        state.signing = state.signatures[0]

    def _update_config(self, state: ProvisioningState) -> None:
        assert state.profile is not None
        esp_root = Path(state.profile.esp_path)
        path = esp_root / self.config.boot_manager_dir / CONFIG_FILE_NAME

        document = None
        if path.is_file():
            try:
                document = ConfigDocument.parse(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigWriteFailed(f"Cannot read {path}: {e}") from e

        blocks = default_blocks(
            esp_root,
            document,
            boot_manager_dir=self.config.boot_manager_dir,
            windows_entry=self.config.windows_entry,
        )
        blocks.update(self.config.managed_entries)
        state.config = self._editor.apply_file(path, self.config.managed_settings, blocks)

    def _ensure_boot_entry(self, state: ProvisioningState) -> None:
        assert state.profile is not None
        entry = BootEntry(
            label=self.config.boot_entry_label,
            loader_path=loader_path(self.config.boot_manager_dir, state.profile.validator_name),
        )
        state.boot_entry = boot_entry.ensure(
            entry,
            self.registry,
            esp_path=state.profile.esp_path,
            mounts_path=self.options.mounts_path,
        )
        state.last_probe = state_probe.read(self.options.efi_dir)

    def _advise(self, state: ProvisioningState) -> None:
        state.plan = enrollment.advise(state)
        if not self.options.write_instructions:
            return
        try:
            enrollment.write_plan(state.plan, Path(self.config.instructions_path))
        except OSError as e:
            logger.warning("Could not write enrollment instructions: %s", e)
