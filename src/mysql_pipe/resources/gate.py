"""Deduplication gate: the ``mysql-filter`` transformer resource."""

from __future__ import annotations

import asyncio

import structlog

from mysql_pipe.codec.decoder import decoder_for
from mysql_pipe.codec.projector import project
from mysql_pipe.config.models import ConfigurationError, ResourceConfig
from mysql_pipe.resources.base import GateOutcome
from mysql_pipe.storage.gateway import StorageGateway, count_statement

logger = structlog.get_logger()


class ExistenceCountError(RuntimeError):
    """Raised when a key matches a number of rows other than 0 or 1."""

    def __init__(self, count: int) -> None:
        super().__init__(f"unexpected existence count: {count}")
        self.count = count


class DeduplicationGate:
    """Drops records whose key already exists in the table.

    A key with no stored row passes through as the original bytes; a key with
    exactly one row is suppressed. Errors only fail the record at hand.
    """

    def __init__(
        self,
        config: ResourceConfig,
        *,
        gateway: StorageGateway | None = None,
    ) -> None:
        if len(config.fields) != 1:
            msg = (
                "mysql-filter supports exactly 1 key field, "
                f"got {len(config.fields)}: {config.fields}"
            )
            raise ConfigurationError(msg)
        self._config = config
        self._key = config.fields[0]
        self._record_key = config.record_keys[0]
        self._decoder = decoder_for(config.encoding)
        self._gateway = gateway or StorageGateway.from_descriptor(
            config.connection.get_secret_value()
        )
        self._statement = count_statement(config.table, self._key)

    @property
    def key_field(self) -> str:
        return self._key

    @property
    def statement(self) -> str:
        return self._statement

    async def transform(self, record: bytes) -> bytes | None:
        (key,) = project([self._record_key], self._decoder.decode(record))

        loop = asyncio.get_running_loop()
        count = await loop.run_in_executor(
            None, self._gateway.count_where, self._statement, key
        )

        if count == 0:
            return record
        if count == 1:
            logger.debug(
                "dedup_gate.suppressed", table=self._config.table, key_field=self._key
            )
            return None
        raise ExistenceCountError(count)

    async def evaluate(self, record: bytes) -> GateOutcome:
        try:
            output = await self.transform(record)
        except Exception as exc:
            logger.warning(
                "dedup_gate.record_failed",
                table=self._config.table,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return GateOutcome(error=exc)
        return GateOutcome(output=output)

    def close(self) -> None:
        self._gateway.close()
