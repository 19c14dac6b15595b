"""
Package provisioner — make sure every capability is actually present.

A package manager exiting 0 is not proof: success is defined by the
capability's existence check passing afterwards. Capabilities that are
already satisfied never reach the package manager.

The pass is exhaustive: every capability is checked and attempted
before anything is reported, so one run shows the operator the whole
picture instead of the first missing piece.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import DependencyUnavailable
from sbprovision.core.models.action import Action
from sbprovision.core.models.platform import (
    CapabilitySpec,
    ExecutableOnPath,
    PlatformProfile,
    RequiredCapability,
)
from sbprovision.core.models.state import CapabilityReport, CapabilityResult

logger = logging.getLogger(__name__)

Which = Callable[[str], str | None]


def is_satisfied(spec: CapabilitySpec, which: Which = shutil.which) -> bool:
    """Run the capability's existence check."""
    check = spec.check
    if isinstance(check, ExecutableOnPath):
        return any(which(name) for name in check.names)
    return any(os.path.exists(path) for path in check.paths)


def _install(
    packages: list[str],
    profile: PlatformProfile,
    registry: AdapterRegistry,
) -> dict[str, str]:
    """Install ``packages``; return {package: error} for those that failed.

    One transaction for the whole batch. If it fails, each package is
    retried on its own so failures can be attributed per name.
    """
    def attempt(names: list[str], suffix: str) -> tuple[bool, str]:
        receipt = registry.execute_action(Action(
            id=f"install:{suffix}",
            adapter="package_manager",
            operation="install",
            params={
                "manager": profile.package_manager,
                "packages": names,
            },
        ))
        return receipt.ok, "" if receipt.ok else receipt.explain()

    ok, error = attempt(packages, "batch")
    if ok:
        return {}
    if len(packages) == 1:
        return {packages[0]: error}

    logger.warning(
        "Batch install failed (%s). Retrying packages individually.",
        error.splitlines()[-1] if error else "no output",
    )
    failures: dict[str, str] = {}
    for package in packages:
        ok, error = attempt([package], package)
        if not ok:
            failures[package] = error
    return failures


def ensure(
    capabilities: Iterable[RequiredCapability],
    profile: PlatformProfile,
    registry: AdapterRegistry,
    *,
    optional: Iterable[RequiredCapability] = (),
    install: bool = True,
    which: Which = shutil.which,
) -> CapabilityReport:
    """Bring every capability to present/installed, or fail naming all gaps.

    Args:
        capabilities: Capabilities the run cannot proceed without.
        profile: Resolved platform (package names and checks).
        registry: Adapter registry (package_manager adapter).
        optional: Capabilities to attempt whose failure is reported
            but not raised.
        install: When False, only run existence checks.
        which: PATH lookup, injectable for tests.

    Returns:
        CapabilityReport with one result per capability.

    Raises:
        DependencyUnavailable: naming every required capability that is
            still unsatisfied. The report rides along on the exception.
    """
    required = list(dict.fromkeys(capabilities))
    extra = [c for c in dict.fromkeys(optional) if c not in required]
    wanted = [(c, False) for c in required] + [(c, True) for c in extra]

    results: dict[RequiredCapability, CapabilityResult] = {}
    missing: list[tuple[RequiredCapability, bool]] = []

    for capability, is_optional in wanted:
        spec = profile.spec_for(capability)
        if is_satisfied(spec, which):
            logger.debug("%s present (%s)", capability.value, spec.check.describe())
            results[capability] = CapabilityResult(
                capability=capability, package=spec.package,
                status="present", optional=is_optional,
            )
        else:
            missing.append((capability, is_optional))

    failures: dict[str, str] = {}
    if missing and install:
        packages = list(dict.fromkeys(profile.spec_for(c).package for c, _ in missing))
        failures = _install(packages, profile, registry)

    for capability, is_optional in missing:
        spec = profile.spec_for(capability)
        if not install:
            status, detail = "missing", f"not found: {spec.check.describe()}"
        elif is_satisfied(spec, which):
            status, detail = "installed", ""
        elif spec.package in failures:
            status, detail = "failed", f"installing {spec.package} failed"
        else:
            status = "failed"
            detail = f"{spec.package} installed but {spec.check.describe()} not found"

        results[capability] = CapabilityResult(
            capability=capability, package=spec.package,
            status=status, optional=is_optional, detail=detail,
        )
        log = logger.info if status == "installed" else logger.warning
        log("%s: %s %s", capability.value, status, detail)

    report = CapabilityReport(results=[results[c] for c, _ in wanted])

    unsatisfied = report.unsatisfied
    if unsatisfied:
        raise DependencyUnavailable(
            [f"{r.capability.value} ({r.package})" for r in unsatisfied],
            report=report,
        )
    return report
