"""
Mock adapter — stands in for any tool adapter in tests.

Records every context it is given and answers with a success receipt
unless told otherwise, either per action ID or per operation.
"""

from __future__ import annotations

from sbprovision.adapters.base import Adapter, ExecutionContext
from sbprovision.core.models.action import Receipt


class MockAdapter(Adapter):
    """Recording test double registered under any adapter name."""

    def __init__(self, adapter_name: str = "mock", available: bool = True, output: str = "[mock] executed"):
        self._name = adapter_name
        self._available = available
        self._output = output
        self._by_action: dict[str, Receipt] = {}
        self._by_operation: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def calls_for(self, operation: str) -> list[ExecutionContext]:
        return [c for c in self.call_log if c.operation == operation]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._by_action[action_id] = receipt

    def set_operation_response(self, operation: str, receipt: Receipt) -> None:
        self._by_operation[operation] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        self._by_action[action_id] = Receipt.failure(adapter=self._name, action_id=action_id, error=error)

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action = context.action
        canned = self._by_action.get(action.id) or self._by_operation.get(action.operation)
        if canned is not None:
            return canned
        return Receipt.success(adapter=self._name, action_id=action.id, output=self._output, metadata={"mock": True})

    def reset(self) -> None:
        self.call_log.clear()
        self._by_action.clear()
        self._by_operation.clear()
