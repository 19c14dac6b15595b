"""
OpenSSL adapter — self-signed certificate issuance.

Certificate generation is treated as a file-in/file-out function:
given two output paths, a subject and a lifetime, produce a private key
and a matching self-signed X.509 certificate.
"""

from __future__ import annotations

from sbprovision.adapters.base import ExecutionContext
from sbprovision.adapters.shell.command import ShellCommandAdapter
from sbprovision.core.models.action import Receipt


class OpenSSLAdapter(ShellCommandAdapter):
    """``generate_selfsigned`` via ``openssl req -x509``.

    Params: ``key_path`` and ``cert_path`` (PEM outputs, the key
    unencrypted), ``subject`` (e.g. '/CN=My Key/'), ``days`` and
    ``bits`` (RSA size, default 4096).
    """

    binary = "openssl"
    operations = ("generate_selfsigned",)

    @property
    def name(self) -> str:
        return "openssl"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, reason = super().validate(context)
        if not valid:
            return valid, reason
        missing = context.missing("key_path", "cert_path", "subject", "days")
        return (False, f"Missing required param: '{missing}'") if missing else (True, "")

    def execute(self, context: ExecutionContext) -> Receipt:
        return self._run(context, [
            "openssl", "req",
            "-newkey", f"rsa:{int(context.param('bits', 4096))}",
            "-nodes",
            "-keyout", str(context.param("key_path")),
            "-new", "-x509", "-sha256",
            "-days", str(int(context.param("days"))),
            "-subj", str(context.param("subject")),
            "-out", str(context.param("cert_path")),
        ])
