"""
Tests for the signing service — policy-driven signing of the boot manager.
"""

import errno
from pathlib import Path

import pytest
from conftest import SIGNATURE, FakeSbsign, write_keypair

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import SigningToolUnavailable
from sbprovision.core.models.action import Receipt
from sbprovision.core.models.keys import KeyPair
from sbprovision.core.services.signing import is_signed_by, sign


@pytest.fixture
def keypair(tmp_path: Path) -> KeyPair:
    write_keypair(tmp_path / "k.key", tmp_path / "k.crt")
    return KeyPair(private_key=tmp_path / "k.key", certificate=tmp_path / "k.crt")


@pytest.fixture
def binary(tmp_path: Path) -> Path:
    path = tmp_path / "esp/refind_x64.efi"
    path.parent.mkdir()
    path.write_bytes(b"MZ refind")
    return path


def _registry(sbsign: FakeSbsign | None = None) -> AdapterRegistry:
    reg = AdapterRegistry()
    if sbsign is not None:
        reg.register(sbsign)
    return reg


class TestSign:
    def test_signs_in_place(self, binary, keypair):
        outcome = sign(binary, keypair, _registry(FakeSbsign()))
        assert outcome.status == "signed"
        assert binary.read_bytes() == b"MZ refind" + SIGNATURE

    def test_no_temp_files_left(self, binary, keypair):
        sign(binary, keypair, _registry(FakeSbsign()))
        assert [p.name for p in binary.parent.iterdir()] == ["refind_x64.efi"]

    def test_already_signed(self, binary, keypair):
        sbsign = FakeSbsign()
        reg = _registry(sbsign)
        sign(binary, keypair, reg)
        signed = binary.read_bytes()

        outcome = sign(binary, keypair, reg)

        assert outcome.status == "already_signed"
        assert binary.read_bytes() == signed
        assert len(sbsign.calls_for("sign")) == 1

    def test_is_signed_by(self, binary, keypair):
        reg = _registry(FakeSbsign())
        assert not is_signed_by(binary, keypair, reg)
        binary.write_bytes(binary.read_bytes() + SIGNATURE)
        assert is_signed_by(binary, keypair, reg)


# ── Policy ───────────────────────────────────────────────────────────


class TestPolicy:
    def test_missing_binary_always_skipped(self, tmp_path, keypair):
        outcome = sign(tmp_path / "absent.efi", keypair, _registry(), policy="mandatory")
        assert outcome.status == "skipped"
        assert "not present" in outcome.reason

    def test_no_sbsign_best_effort(self, binary, keypair):
        outcome = sign(binary, keypair, _registry(FakeSbsign(available=False)))
        assert outcome.status == "skipped"
        assert "sbsign" in outcome.reason
        assert binary.read_bytes() == b"MZ refind"

    def test_no_sbsign_mandatory(self, binary, keypair):
        with pytest.raises(SigningToolUnavailable):
            sign(binary, keypair, _registry(), policy="mandatory")

    def test_no_keypair(self, binary):
        assert sign(binary, None, _registry(FakeSbsign())).status == "skipped"
        with pytest.raises(SigningToolUnavailable, match="no signing key pair"):
            sign(binary, None, _registry(FakeSbsign()), policy="mandatory")

    def test_tool_vanished_mid_run(self, binary, keypair):
        sbsign = FakeSbsign()
        sbsign.set_response("sign:binary", Receipt.failure(
            adapter="sbsign", action_id="sign:binary",
            error="Command not found: sbsign", tool_missing=True,
        ))
        outcome = sign(binary, keypair, _registry(sbsign))
        assert outcome.status == "skipped"

    def test_tool_error_fails_under_either_policy(self, binary, keypair):
        sbsign = FakeSbsign()
        sbsign.set_failure("sign:binary", error="Invalid DOS header magic")
        with pytest.raises(SigningToolUnavailable, match="Invalid DOS header"):
            sign(binary, keypair, _registry(sbsign))
        assert binary.read_bytes() == b"MZ refind"
        assert [p.name for p in binary.parent.iterdir()] == ["refind_x64.efi"]

    @pytest.mark.parametrize("policy", ["best_effort", "mandatory"])
    def test_read_only_esp_fails_under_either_policy(self, binary, keypair, monkeypatch, policy):
        sbsign = FakeSbsign()

        def read_only(*args, **kwargs):
            raise PermissionError(errno.EROFS, "Read-only file system")

        monkeypatch.setattr("sbprovision.core.services.signing.tempfile.mkstemp", read_only)
        with pytest.raises(SigningToolUnavailable, match="Cannot stage a signed copy"):
            sign(binary, keypair, _registry(sbsign), policy=policy)
        assert binary.read_bytes() == b"MZ refind"
        assert sbsign.calls_for("sign") == []
