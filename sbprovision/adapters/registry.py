"""
Adapter registry — dispatches Actions to the adapter they name.

``execute_action`` is the only way services cause side effects. It
always returns a Receipt: an unknown adapter, a rejected action or an
adapter that raises anyway all become failed receipts.
"""

from __future__ import annotations

import logging
import time

from sbprovision.adapters.base import Adapter, ExecutionContext
from sbprovision.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

_MARKERS = {"ok": "✓", "failed": "✗", "skipped": "⊘"}


class AdapterRegistry:
    """Name → adapter table plus dispatch."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter: %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def is_available(self, name: str) -> bool:
        """Registered and its tool usable. Never raises."""
        adapter = self._adapters.get(name)
        if adapter is None:
            return False
        try:
            return adapter.is_available()
        except Exception:
            logger.debug("Availability check for %s raised", name, exc_info=True)
            return False

    def execute_action(self, action: Action, cwd: str | None = None) -> Receipt:
        """Validate and run ``action`` on its adapter.

        External tools run to completion: no timeout, no retry. A
        failure is reported once and the caller decides what it means.
        """
        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(action=action, cwd=cwd)
        start = time.monotonic()
        try:
            valid, reason = adapter.validate(context)
            if not valid:
                receipt = Receipt.failure(
                    adapter=action.adapter, action_id=action.id, error=f"Invalid action: {reason}",
                )
            else:
                receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", action.adapter, action.describe(), e)
            receipt = Receipt.failure(adapter=action.adapter, action_id=action.id, error=f"Unexpected error: {e}")

        if not receipt.duration_ms:
            receipt.duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug("%s %s (%s) → %s", _MARKERS[receipt.status], action.id, action.describe(), receipt.explain())
        return receipt
