"""Resource protocols and their result types.

A consumer drains a whole record stream and reports one terminal
``DrainResult``; a transformer is called once per record and reports a
``GateOutcome`` scoped to that record.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

RecordStream: TypeAlias = AsyncIterable[bytes] | Iterable[bytes]


@dataclass(frozen=True, slots=True)
class DrainResult:
    """How a consumer run ended."""

    written: int
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class GateOutcome:
    """Output of one transformer call: bytes, nothing, or an error."""

    output: bytes | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def suppressed(self) -> bool:
        return self.error is None and self.output is None


@runtime_checkable
class Consumer(Protocol):
    """Protocol for resources filling the consumer role."""

    async def drain(self, records: RecordStream) -> DrainResult:
        """Process *records* in order until exhaustion or the first error."""
        ...

    async def consume(
        self,
        records: RecordStream,
        errors: asyncio.Queue[Exception | None],
        done: asyncio.Event,
    ) -> None:
        """Drain *records*, report into *errors*, then close both signals."""
        ...

    def close(self) -> None:
        """Release the storage connection."""
        ...


@runtime_checkable
class Transformer(Protocol):
    """Protocol for resources filling the transformer role."""

    async def transform(self, record: bytes) -> bytes | None:
        """Return the record to forward, or ``None`` to drop it."""
        ...

    async def evaluate(self, record: bytes) -> GateOutcome:
        """Like ``transform`` but with errors captured in the outcome."""
        ...

    def close(self) -> None:
        """Release the storage connection."""
        ...
