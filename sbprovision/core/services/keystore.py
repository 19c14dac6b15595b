"""
Key store — the local MOK signing key pair.

Created on first use, reused forever after. A pair that may already be
enrolled in firmware is never regenerated behind the operator's back:

    both halves present  → reuse unchanged
    neither present      → generate a fresh self-signed pair
    exactly one present  → CorruptKeyState, nothing written

Generation goes through the openssl adapter into a private staging
directory next to the final location; the halves are renamed into place
only after both exist. MokManager enrolls DER certificates, so a DER
copy (``<name>.cer``) is kept beside the PEM certificate.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import CorruptKeyState, KeyGenerationFailed
from sbprovision.core.models.action import Action
from sbprovision.core.models.keys import CertificateInfo, KeyPair
from sbprovision.core.persistence.atomic import atomic_write_bytes

logger = logging.getLogger(__name__)

KEY_SUFFIX = ".key"
CERT_SUFFIX = ".crt"
DER_SUFFIX = ".cer"


def key_paths(key_dir: Path, name: str) -> tuple[Path, Path, Path]:
    """(private key, PEM certificate, DER certificate) for a key name."""
    return (
        key_dir / f"{name}{KEY_SUFFIX}",
        key_dir / f"{name}{CERT_SUFFIX}",
        key_dir / f"{name}{DER_SUFFIX}",
    )


def _mtime_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, UTC).isoformat()


def _timestamp() -> str:
    return datetime.now(UTC).strftime("%Y%m%d_%H%M%S")


# ── Certificate helpers (cryptography) ──────────────────────────────


def _load_certificate(cert_path: Path):
    from cryptography import x509

    data = cert_path.read_bytes()
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def write_der(cert_path: Path, der_path: Path) -> Path:
    """Write a DER encoding of ``cert_path`` to ``der_path`` (atomic)."""
    from cryptography.hazmat.primitives.serialization import Encoding

    der = _load_certificate(cert_path).public_bytes(Encoding.DER)
    atomic_write_bytes(der_path, der, mode=0o644)
    logger.debug("DER certificate written to %s", der_path)
    return der_path


def check_pair(key_path: Path, cert_path: Path) -> None:
    """Raise ValueError unless ``key_path`` holds the private half of ``cert_path``."""
    from cryptography.exceptions import UnsupportedAlgorithm
    from cryptography.hazmat.primitives.serialization import (
        Encoding,
        PublicFormat,
        load_pem_private_key,
    )

    cert = _load_certificate(cert_path)
    try:
        key = load_pem_private_key(key_path.read_bytes(), password=None)
    except TypeError as e:
        raise ValueError(f"{key_path.name} is passphrase-protected; sbsign needs an unencrypted key") from e
    except UnsupportedAlgorithm as e:
        raise ValueError(f"{key_path.name} uses an unsupported key type: {e}") from e

    spki = (Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    if key.public_key().public_bytes(*spki) != cert.public_key().public_bytes(*spki):
        raise ValueError(f"{key_path.name} does not match the public key in {cert_path.name}")


def describe_certificate(cert_path: Path) -> CertificateInfo:
    """Subject, serial, SHA-256 fingerprint and validity of a certificate."""
    from cryptography.hazmat.primitives import hashes

    cert = _load_certificate(cert_path)
    return CertificateInfo(
        subject=cert.subject.rfc4514_string(),
        serial=format(cert.serial_number, "X"),
        fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex(":").upper(),
        not_before=cert.not_valid_before_utc.isoformat(),
        not_after=cert.not_valid_after_utc.isoformat(),
    )


# ── Key pair lifecycle ──────────────────────────────────────────────


def _set_aside(path: Path) -> Path:
    """Move an orphaned half out of the way, keeping it for forensics."""
    target = path.with_name(f"{path.name}.orphaned.{_timestamp()}")
    try:
        path.rename(target)
    except OSError as e:
        raise KeyGenerationFailed(f"Cannot move orphaned {path} aside: {e}") from e
    logger.warning("Moved orphaned %s to %s", path, target)
    return target


def _generate(
    key_path: Path,
    cert_path: Path,
    registry: AdapterRegistry,
    *,
    subject: str,
    days: int,
    bits: int,
) -> None:
    """Generate into a staging directory, then move both halves into place.

    The certificate is renamed last: a crash between the two renames
    leaves a key without a certificate, which the next run reports as
    CorruptKeyState instead of trusting a certificate with no key.
    """
    key_dir = key_path.parent
    try:
        key_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        staging = Path(tempfile.mkdtemp(dir=key_dir, prefix=".staging-"))
    except OSError as e:
        raise KeyGenerationFailed(f"Cannot prepare key directory {key_dir}: {e}") from e

    try:
        staged_key = staging / key_path.name
        staged_cert = staging / cert_path.name
        receipt = registry.execute_action(Action(
            id="keys:generate",
            adapter="openssl",
            operation="generate_selfsigned",
            params={
                "key_path": str(staged_key),
                "cert_path": str(staged_cert),
                "subject": subject,
                "days": days,
                "bits": bits,
            },
        ))
        if not receipt.ok:
            raise KeyGenerationFailed(f"Certificate generation failed: {receipt.explain()}")
        if not (staged_key.is_file() and staged_cert.is_file()):
            raise KeyGenerationFailed(
                "Certificate tool reported success but did not write both "
                f"{staged_key.name} and {staged_cert.name}"
            )

        try:
            staged_key.chmod(0o600)
            staged_cert.chmod(0o644)
            staged_key.replace(key_path)
            staged_cert.replace(cert_path)
        except OSError as e:
            raise KeyGenerationFailed(f"Cannot move the new key pair into {key_dir}: {e}") from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)


def ensure_keypair(
    key_dir: Path,
    registry: AdapterRegistry,
    *,
    name: str = "refind_local",
    subject: str = "/CN=Locally generated rEFInd key/",
    days: int = 3650,
    bits: int = 4096,
    replace_corrupt: bool = False,
) -> KeyPair:
    """Return the signing key pair at ``key_dir``, creating it if absent.

    Args:
        key_dir: Directory holding ``<name>.key`` and ``<name>.crt``.
        registry: Adapter registry (openssl adapter).
        name: Base file name of the pair.
        subject: Distinguished name for a new certificate.
        days: Validity period for a new certificate.
        bits: RSA key size for a new key.
        replace_corrupt: Operator override. When exactly one half exists,
            move it aside and generate a fresh pair instead of failing.

    Raises:
        CorruptKeyState: exactly one half exists and no override was given,
            or the existing halves are unreadable or do not belong together.
        KeyGenerationFailed: the certificate tool failed, or the key
            directory could not be written.
    """
    key_path, cert_path, der_path = key_paths(key_dir, name)
    has_key, has_cert = key_path.is_file(), cert_path.is_file()

    if has_key and has_cert:
        logger.info("Reusing existing signing key pair in %s", key_dir)
        try:
            check_pair(key_path, cert_path)
            if not der_path.is_file():
                write_der(cert_path, der_path)
        except ValueError as e:
            raise CorruptKeyState(f"Existing key pair in {key_dir} is unusable: {e}") from e
        except OSError as e:
            raise KeyGenerationFailed(f"Cannot read or export the key pair in {key_dir}: {e}") from e
        return KeyPair(
            private_key=key_path,
            certificate=cert_path,
            certificate_der=der_path,
            created_at=_mtime_iso(cert_path),
        )

    if has_key or has_cert:
        present, absent = (key_path, cert_path) if has_key else (cert_path, key_path)
        if not replace_corrupt:
            raise CorruptKeyState(
                f"{present} exists but {absent} does not. Refusing to guess which "
                "half is valid; restore the missing file or re-run with "
                "--replace-corrupt-keys to set the orphan aside."
            )
        _set_aside(present)

    logger.info("Generating signing key pair in %s (%s)", key_dir, subject)
    _generate(key_path, cert_path, registry, subject=subject, days=days, bits=bits)
    try:
        write_der(cert_path, der_path)
    except ValueError as e:
        raise KeyGenerationFailed(f"Generated certificate is unreadable: {e}") from e
    except OSError as e:
        raise KeyGenerationFailed(f"Cannot write {der_path}: {e}") from e

    return KeyPair(
        private_key=key_path,
        certificate=cert_path,
        certificate_der=der_path,
        created_at=_mtime_iso(cert_path),
        created_this_run=True,
    )


def find_keypair(key_dir: Path, name: str = "refind_local") -> KeyPair | None:
    """Read-only lookup: the pair if both halves exist, else None."""
    key_path, cert_path, der_path = key_paths(key_dir, name)
    if key_path.is_file() and cert_path.is_file():
        return KeyPair(
            private_key=key_path,
            certificate=cert_path,
            certificate_der=der_path if der_path.is_file() else None,
            created_at=_mtime_iso(cert_path),
        )
    return None
