"""
Key pair model — the local MOK signing hierarchy.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class KeyPair(BaseModel):
    """A private key and its self-signed certificate.

    Both files exist together or the pair does not exist at all; the
    key store never hands out a half pair.
    """

    model_config = ConfigDict(frozen=True)

    private_key: Path
    certificate: Path
    certificate_der: Path | None = None
    created_at: str = ""
    created_this_run: bool = False


class CertificateInfo(BaseModel):
    """Read-only summary of a certificate, for display and enrollment."""

    subject: str
    serial: str
    fingerprint_sha256: str
    not_before: str
    not_after: str
