"""
Tests for the provision and probe use cases.
"""

from pathlib import Path

import yaml

from sbprovision.core.engine.provisioner import EngineOptions
from sbprovision.core.use_cases.probe import run_probe
from sbprovision.core.use_cases.provision import ProvisionResult, run_provision


def _config_file(host, tmp_path: Path, **extra) -> Path:
    data = {
        "key_dir": str(host.key_dir),
        "key_bits": 2048,
        "lock_path": str(host.root / "run/sbprovision.lock"),
        "instructions_path": str(host.root / "tmp/secure_boot_enrollment.json"),
        **extra,
    }
    path = tmp_path / "sbprovision.yml"
    path.write_text(yaml.safe_dump(data))
    return path


def _options(host) -> EngineOptions:
    return EngineOptions(
        profile=host.profile(),
        efi_dir=host.efi_dir,
        mounts_path=host.mounts,
        which=host.which,
    )


class TestRunProvision:
    def test_success(self, host, registry, tmp_path):
        result = run_provision(_config_file(host, tmp_path), _options(host), registry)
        assert result.ok
        assert result.exit_code == 0
        data = result.to_dict()
        assert data["status"] == "advised"
        assert data["stage"] == "Advised"
        assert data["platform"]["family"] == "debian"
        assert data["boot_entry"]["status"] == "created"
        assert data["instructions_path"].endswith("secure_boot_enrollment.json")
        assert data["secure_boot_initial"] == "disabled"

    def test_failure_dict(self, host, registry, tmp_path):
        host.tools.discard("sbsign")
        result = run_provision(
            _config_file(host, tmp_path, signing_policy="mandatory"), _options(host), registry,
        )
        assert result.exit_code == 1
        data = result.to_dict()
        assert data["status"] == "failed"
        assert data["failure"]["stage"] == "DependenciesSatisfied"
        assert data["last_completed"] == "PlatformResolved"
        assert "instructions_path" not in data

    def test_config_error(self, tmp_path):
        bad = tmp_path / "sbprovision.yml"
        bad.write_text("signing_policy: sometimes\n")
        result = run_provision(bad)
        assert not result.ok
        assert result.state is None
        assert result.to_dict()["status"] == "error"

    def test_short_circuit_dict(self, host, registry, tmp_path):
        host.set_secure_boot(1)
        data = run_provision(_config_file(host, tmp_path), _options(host), registry).to_dict()
        assert data["short_circuited"] is True
        assert data["status"] == "advised"
        assert "instructions_path" not in data

    def test_empty_result_not_ok(self):
        assert not ProvisionResult().ok


class TestRunProbe:
    def test_enabled(self, host):
        host.set_secure_boot(1)
        result = run_probe(host.efi_dir)
        assert result.enabled
        assert result.to_dict()["secure_boot"] == "enabled"

    def test_indeterminate(self, tmp_path):
        result = run_probe(tmp_path / "none")
        assert not result.enabled
        assert result.to_dict()["secure_boot"] == "indeterminate"
