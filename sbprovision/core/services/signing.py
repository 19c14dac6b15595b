"""
Signing service — sign the boot manager binary with the local key pair.

Outcomes are explicit: ``signed``, ``already_signed`` or ``skipped``
with a reason. Only policy decides whether a gap is fatal:

    target binary missing        → skipped (always)
    key pair or sbsign missing   → skipped        (best_effort)
                                 → SigningToolUnavailable (mandatory)
    sbsign ran and failed        → SigningToolUnavailable (either policy)
    ESP directory not writable   → SigningToolUnavailable (either policy)

The signed output is written next to the target and renamed over it,
so the binary on the ESP is never half-written.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import SigningToolUnavailable
from sbprovision.core.models.action import Action
from sbprovision.core.models.config import SigningPolicy
from sbprovision.core.models.keys import KeyPair
from sbprovision.core.models.state import SigningOutcome

logger = logging.getLogger(__name__)


def _skip_or_raise(binary: Path, policy: SigningPolicy, reason: str) -> SigningOutcome:
    if policy == "mandatory":
        raise SigningToolUnavailable(f"Cannot sign {binary}: {reason}")
    logger.warning("Signing skipped for %s: %s", binary, reason)
    return SigningOutcome(status="skipped", binary=str(binary), reason=reason)


def is_signed_by(binary: Path, keypair: KeyPair, registry: AdapterRegistry) -> bool:
    """True when ``binary`` already verifies against the local certificate."""
    receipt = registry.execute_action(Action(
        id="sign:verify",
        adapter="sbsign",
        operation="verify",
        params={
            "cert_path": str(keypair.certificate),
            "input_path": str(binary),
        },
    ))
    return receipt.ok


def sign(
    binary: Path,
    keypair: KeyPair | None,
    registry: AdapterRegistry,
    *,
    policy: SigningPolicy = "best_effort",
) -> SigningOutcome:
    """Sign ``binary`` in place.

    Raises:
        SigningToolUnavailable: signing was required and could not happen.
    """
    if not binary.is_file():
        reason = f"{binary.name} not present at {binary.parent}"
        logger.warning("Signing skipped: %s", reason)
        return SigningOutcome(status="skipped", binary=str(binary), reason=reason)

    if keypair is None:
        return _skip_or_raise(binary, policy, "no signing key pair")

    if not registry.is_available("sbsign"):
        return _skip_or_raise(binary, policy, "sbsign is not installed")

    if is_signed_by(binary, keypair, registry):
        logger.info("%s already signed with %s", binary, keypair.certificate.name)
        return SigningOutcome(status="already_signed", binary=str(binary))

    try:
        fd, tmp_name = tempfile.mkstemp(dir=binary.parent, prefix=f".{binary.name}.", suffix=".signed")
        os.close(fd)
    except OSError as e:
        raise SigningToolUnavailable(f"Cannot stage a signed copy in {binary.parent}: {e}") from e
    tmp = Path(tmp_name)

    receipt = registry.execute_action(Action(
        id="sign:binary",
        adapter="sbsign",
        operation="sign",
        params={
            "key_path": str(keypair.private_key),
            "cert_path": str(keypair.certificate),
            "input_path": str(binary),
            "output_path": str(tmp),
        },
    ))
    if not receipt.ok:
        tmp.unlink(missing_ok=True)
        if receipt.tool_missing:
            return _skip_or_raise(binary, policy, "sbsign is not installed")
        raise SigningToolUnavailable(f"sbsign failed on {binary}: {receipt.explain()}")

    try:
        os.replace(tmp, binary)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise SigningToolUnavailable(f"Could not replace {binary} with signed copy: {e}") from e

    logger.info("Signed %s", binary)
    return SigningOutcome(status="signed", binary=str(binary))
