"""Recovery strategies consulted before fallbacks.

A recovery strategy gets a chance to produce a result from the final error
of a failed execution, for example by reading a secondary source when the
primary one refused the connection. Strategies are tried in registration
order; the first one that accepts the error and returns without raising
supplies the result.

Example usage:
    from persevere.execution.recovery import RecoveryStrategy

    class ReadReplica:
        name = "read_replica"

        def can_recover(self, error, context):
            return "ECONNREFUSED" in str(error)

        async def recover(self, error, context):
            return await replica.fetch(context.operation_name)

    executor.add_recovery_strategy(ReadReplica())
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from persevere.core.logging import OperationContext


@runtime_checkable
class RecoveryStrategy(Protocol):
    """Pluggable hook that can turn a failed execution into a result.

    Attributes:
        name: Label used in logs and as the fallback source.
    """

    name: str

    def can_recover(self, error: BaseException, context: OperationContext) -> bool: ...

    def recover(self, error: BaseException, context: OperationContext) -> Any | Awaitable[Any]: ...


__all__ = ["RecoveryStrategy"]
