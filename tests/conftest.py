"""
Shared test fixtures and configuration.

``host`` builds a throwaway machine under tmp_path: shim and MokManager
sources, a rEFInd install, an ESP with a mount table entry, and efivars.
The fake adapters stand in for openssl, sbsign and efibootmgr so no test
touches real firmware, packages or signing tools.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from sbprovision.adapters.mock import MockAdapter
from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.adapters.shell.filesystem import FilesystemAdapter
from sbprovision.core.data.platforms import FAMILIES
from sbprovision.core.models.action import Receipt
from sbprovision.core.models.config import ProvisionConfig
from sbprovision.core.models.platform import (
    CapabilitySpec,
    ExecutableOnPath,
    FileExistsCheck,
    PlatformProfile,
    RequiredCapability,
)
from sbprovision.core.services.state_probe import GLOBAL_VARIABLE_GUID

SIGNATURE = b"\n--sbsign-test-signature--\n"
ALL_TOOLS = frozenset({"efibootmgr", "sbsign", "openssl", "apt-get"})


# ── Certificates ─────────────────────────────────────────────────────


@functools.lru_cache(maxsize=1)
def _selfsigned_pem() -> tuple[bytes, bytes]:
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.hazmat.primitives.serialization import (
        Encoding,
        NoEncryption,
        PrivateFormat,
    )
    from cryptography.x509.oid import NameOID

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Locally generated rEFInd key")])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=3650))
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(Encoding.PEM, PrivateFormat.TraditionalOpenSSL, NoEncryption())
    return key_pem, cert.public_bytes(Encoding.PEM)


def write_keypair(key_path: Path, cert_path: Path) -> None:
    """Write a valid PEM key and self-signed certificate."""
    key_pem, cert_pem = _selfsigned_pem()
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_bytes(key_pem)
    cert_path.write_bytes(cert_pem)


# ── Fake tool adapters ───────────────────────────────────────────────


class FakeOpenSSL(MockAdapter):
    """Writes a real key pair where ``openssl req`` would."""

    def __init__(self, **kwargs):
        super().__init__("openssl", **kwargs)

    def execute(self, context):
        receipt = super().execute(context)
        if receipt.ok and receipt.metadata.get("mock"):
            write_keypair(Path(context.param("key_path")), Path(context.param("cert_path")))
        return receipt


class FakeSbsign(MockAdapter):
    """Signing appends a marker; verification looks for it."""

    def __init__(self, **kwargs):
        super().__init__("sbsign", **kwargs)

    def execute(self, context):
        receipt = super().execute(context)
        if not (receipt.ok and receipt.metadata.get("mock")):
            return receipt

        if context.operation == "verify":
            data = Path(context.param("input_path")).read_bytes()
            if data.endswith(SIGNATURE):
                return receipt
            return Receipt.failure(
                adapter=self.name, action_id=context.action.id, error="No signature",
            )

        data = Path(context.param("input_path")).read_bytes()
        Path(context.param("output_path")).write_bytes(data + SIGNATURE)
        return receipt


@dataclass
class FirmwareEntry:
    number: str
    label: str
    loader: str


class FakeEfibootmgr(MockAdapter):
    """In-memory NVRAM speaking ``efibootmgr -v`` output."""

    def __init__(self, entries: list[FirmwareEntry] | None = None, **kwargs):
        super().__init__("efibootmgr", **kwargs)
        self.entries: list[FirmwareEntry] = list(entries or [])

    def render(self) -> str:
        lines = ["BootCurrent: 0000", "Timeout: 1 seconds"]
        lines.append("BootOrder: " + ",".join(e.number for e in self.entries))
        for e in self.entries:
            lines.append(
                f"Boot{e.number}* {e.label}\tHD(1,GPT,0f1c5b2e-0000-4000-8000-000000000001,"
                f"0x800,0x100000)/File({e.loader})"
            )
        return "\n".join(lines)

    def execute(self, context):
        receipt = super().execute(context)
        if not (receipt.ok and receipt.metadata.get("mock")):
            return receipt

        if context.operation == "list":
            return Receipt.success(adapter=self.name, action_id=context.action.id, output=self.render())

        number = f"{len(self.entries):04X}"
        self.entries.append(FirmwareEntry(number, context.param("label"), context.param("loader")))
        return receipt


# ── Fake host ────────────────────────────────────────────────────────


@dataclass
class FakeHost:
    root: Path
    tools: set[str] = field(default_factory=lambda: set(ALL_TOOLS))

    @property
    def shim(self) -> Path:
        return self.root / "usr/lib/shim/shimx64.efi.signed"

    @property
    def mm(self) -> Path:
        return self.root / "usr/lib/shim/mmx64.efi.signed"

    @property
    def refind_share(self) -> Path:
        return self.root / "usr/share/refind"

    @property
    def esp(self) -> Path:
        return self.root / "boot/efi"

    @property
    def refind_dir(self) -> Path:
        return self.esp / "EFI/refind"

    @property
    def refind_binary(self) -> Path:
        return self.refind_dir / "refind_x64.efi"

    @property
    def refind_conf(self) -> Path:
        return self.refind_dir / "refind.conf"

    @property
    def efi_dir(self) -> Path:
        return self.root / "sys/firmware/efi"

    @property
    def mounts(self) -> Path:
        return self.root / "proc/mounts"

    @property
    def key_dir(self) -> Path:
        return self.root / "etc/refind.d/keys"

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.tools else None

    def set_secure_boot(self, value: int | None) -> None:
        var = self.efi_dir / "efivars" / f"SecureBoot-{GLOBAL_VARIABLE_GUID}"
        if value is None:
            var.unlink(missing_ok=True)
            return
        var.parent.mkdir(parents=True, exist_ok=True)
        var.write_bytes(b"\x06\x00\x00\x00" + bytes([value]))

    def profile(self) -> PlatformProfile:
        packages = FAMILIES["debian"]["packages"]
        checks = {
            RequiredCapability.VALIDATOR: FileExistsCheck(paths=(str(self.shim),)),
            RequiredCapability.KEY_ENROLLMENT_TOOL: FileExistsCheck(paths=(str(self.mm),)),
            RequiredCapability.BOOT_ENTRY_TOOL: ExecutableOnPath(names=("efibootmgr",)),
            RequiredCapability.SIGNING_TOOL: ExecutableOnPath(names=("sbsign",)),
            RequiredCapability.BOOT_MANAGER_PACKAGE: FileExistsCheck(
                paths=(str(self.refind_share / "refind/refind_x64.efi"),),
            ),
            RequiredCapability.CERTIFICATE_TOOL: ExecutableOnPath(names=("openssl",)),
        }
        return PlatformProfile(
            distro_id="ubuntu",
            family="debian",
            package_manager="apt",
            efi_arch="x64",
            validator_paths=(str(self.shim),),
            key_enrollment_paths=(str(self.mm),),
            boot_manager_dir=str(self.refind_share),
            esp_path=str(self.esp),
            capabilities={
                cap: CapabilitySpec(capability=cap, package=packages[cap.value], check=check)
                for cap, check in checks.items()
            },
        )

    def config(self, **overrides) -> ProvisionConfig:
        values = dict(
            key_dir=str(self.key_dir),
            key_bits=2048,
            lock_path=str(self.root / "run/sbprovision.lock"),
            instructions_path=str(self.root / "tmp/secure_boot_enrollment.json"),
        )
        values.update(overrides)
        return ProvisionConfig(**values)


def build_host(root: Path) -> FakeHost:
    """Fresh machine: packages installed, nothing provisioned, Secure Boot off."""
    host = FakeHost(root=root)

    host.shim.parent.mkdir(parents=True)
    host.shim.write_bytes(b"MZ shim binary")
    host.mm.write_bytes(b"MZ mokmanager binary")

    (host.refind_share / "refind").mkdir(parents=True)
    (host.refind_share / "refind/refind_x64.efi").write_bytes(b"MZ refind")
    (host.refind_share / "icons").mkdir()
    (host.refind_share / "icons/os_linux.png").write_bytes(b"PNG linux")
    (host.refind_share / "icons/os_win.png").write_bytes(b"PNG windows")

    host.refind_dir.mkdir(parents=True)
    host.refind_conf.write_text(
        "timeout 20\n"
        "use_nvram true\n"
        "\n"
        'menuentry "Arch Linux" {\n'
        "    icon /EFI/refind/icons/os_arch.png\n"
        "    loader /vmlinuz-linux\n"
        "}\n",
        encoding="utf-8",
    )

    host.mounts.parent.mkdir(parents=True)
    host.mounts.write_text(
        "/dev/nvme0n1p2 / ext4 rw,relatime 0 0\n"
        f"/dev/nvme0n1p1 {host.esp} vfat rw,relatime 0 0\n",
        encoding="utf-8",
    )

    host.set_secure_boot(0)
    return host


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    return build_host(tmp_path / "host")


@pytest.fixture
def firmware() -> FakeEfibootmgr:
    return FakeEfibootmgr([
        FirmwareEntry("0000", "ubuntu", r"\EFI\ubuntu\shimx64.efi"),
    ])


@pytest.fixture
def registry(firmware: FakeEfibootmgr) -> AdapterRegistry:
    """Registry with the real filesystem adapter and fake tool adapters."""
    reg = AdapterRegistry()
    reg.register(FilesystemAdapter())
    reg.register(MockAdapter("package_manager"))
    reg.register(FakeOpenSSL())
    reg.register(FakeSbsign())
    reg.register(firmware)
    return reg
