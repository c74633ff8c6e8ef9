"""Ingestion sink: the ``mysql-table`` consumer resource."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from enum import StrEnum

import structlog

from mysql_pipe.codec.decoder import decoder_for
from mysql_pipe.codec.projector import project
from mysql_pipe.config.models import ResourceConfig
from mysql_pipe.resources.base import DrainResult, RecordStream
from mysql_pipe.storage.gateway import StorageGateway, insert_statement

logger = structlog.get_logger()


class SinkState(StrEnum):
    READY = "ready"
    RUNNING = "running"
    DRAINED = "drained"
    FAILED = "failed"
    CLOSED = "closed"


class SinkClosedError(RuntimeError):
    """Raised when a sink that already reached CLOSED is drained again."""


async def _iterate(records: RecordStream) -> AsyncIterator[bytes]:
    if hasattr(records, "__aiter__"):
        async for record in records:
            yield record
    else:
        for record in records:
            yield record


class IngestionSink:
    """Writes every record of a stream into one table, one row per statement.

    The first decode or write failure ends the run; nothing after the bad
    record is written.
    """

    def __init__(
        self,
        config: ResourceConfig,
        *,
        gateway: StorageGateway | None = None,
    ) -> None:
        self._config = config
        self._fields = list(config.fields)
        self._keys = config.record_keys
        self._decoder = decoder_for(config.encoding)
        self._gateway = gateway or StorageGateway.from_descriptor(
            config.connection.get_secret_value()
        )
        self._statement = insert_statement(config.table, self._fields)
        self._state = SinkState.READY
        if config.insert_chunk_size != 1:
            logger.warning(
                "ingestion_sink.chunk_size_ignored",
                table=config.table,
                insert_chunk_size=config.insert_chunk_size,
            )

    @property
    def state(self) -> SinkState:
        return self._state

    @property
    def statement(self) -> str:
        return self._statement

    async def drain(self, records: RecordStream) -> DrainResult:
        if self._state is SinkState.CLOSED:
            msg = f"sink for table {self._config.table} is closed"
            raise SinkClosedError(msg)

        self._state = SinkState.RUNNING
        loop = asyncio.get_running_loop()
        written = 0
        logger.info("ingestion_sink.started", table=self._config.table)
        try:
            async for record in _iterate(records):
                values = project(self._keys, self._decoder.decode(record))
                await loop.run_in_executor(
                    None, self._gateway.write, self._statement, values
                )
                written += 1
        except Exception as exc:
            self._state = SinkState.FAILED
            logger.error(
                "ingestion_sink.failed",
                table=self._config.table,
                error_type=type(exc).__name__,
                record_index=written,
                error=str(exc),
            )
            return DrainResult(written=written, error=exc)
        else:
            self._state = SinkState.DRAINED
            logger.info(
                "ingestion_sink.drained", table=self._config.table, rows=written
            )
            return DrainResult(written=written)
        finally:
            self.close()

    async def consume(
        self,
        records: RecordStream,
        errors: asyncio.Queue[Exception | None],
        done: asyncio.Event,
    ) -> None:
        """Host channel contract.

        At most one error is put on *errors*, followed by a ``None`` sentinel
        that closes it; *done* is set exactly once whichever way the run
        ended.
        """
        try:
            try:
                result = await self.drain(records)
            except SinkClosedError as exc:
                result = DrainResult(written=0, error=exc)
            if result.error is not None:
                await errors.put(result.error)
            await errors.put(None)
        finally:
            done.set()

    def close(self) -> None:
        if self._state is SinkState.CLOSED:
            return
        self._gateway.close()
        self._state = SinkState.CLOSED
        logger.info("ingestion_sink.closed", table=self._config.table)
