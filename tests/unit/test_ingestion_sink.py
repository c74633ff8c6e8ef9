"""Unit tests for the ingestion sink (mysql-table consumer)."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import MagicMock, call, patch

import pytest

from mysql_pipe.codec.decoder import DecodeError, UnsupportedEncodingError
from mysql_pipe.codec.projector import UnboundValueError
from mysql_pipe.resources.base import Consumer, DrainResult
from mysql_pipe.resources.sink import IngestionSink, SinkClosedError, SinkState

INSERT = "INSERT IGNORE INTO events (id, name) VALUES (?, ?)"


def _records(n: int) -> list[bytes]:
    return [f'{{"id": {i}, "name": "user-{i}"}}'.encode() for i in range(n)]


async def _aiter(items: list[bytes]) -> AsyncIterator[bytes]:
    for item in items:
        await asyncio.sleep(0)
        yield item


class TestSinkSetup:
    def test_builds_insert_statement(self, config_factory, gateway: MagicMock):
        sink = IngestionSink(config_factory(), gateway=gateway)
        assert sink.statement == INSERT
        assert sink.state is SinkState.READY

    def test_unsupported_encoding_fails_setup(self, config_factory):
        with (
            patch("mysql_pipe.resources.sink.StorageGateway") as gw_cls,
            pytest.raises(UnsupportedEncodingError),
        ):
            IngestionSink(config_factory(encoding="XML"))
        gw_cls.from_descriptor.assert_not_called()

    def test_opens_gateway_from_connection(self, config_factory):
        with patch("mysql_pipe.resources.sink.StorageGateway") as gw_cls:
            IngestionSink(config_factory())
        gw_cls.from_descriptor.assert_called_once_with(
            "app:secret@tcp(localhost:3306)/events"
        )

    def test_satisfies_consumer_protocol(self, config_factory, gateway: MagicMock):
        assert isinstance(IngestionSink(config_factory(), gateway=gateway), Consumer)

    def test_chunk_size_is_accepted_but_inert(self, config_factory, gateway):
        sink = IngestionSink(
            config_factory(**{"insert-chunk-size": 50}), gateway=gateway
        )
        assert sink.statement == INSERT


@pytest.mark.asyncio
class TestSinkDrain:
    async def test_writes_every_record_in_order(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)

        result = await sink.drain(_records(3))

        assert result == DrainResult(written=3)
        assert result.ok
        assert gateway.write.call_args_list == [
            call(INSERT, (0, "user-0")),
            call(INSERT, (1, "user-1")),
            call(INSERT, (2, "user-2")),
        ]

    async def test_accepts_async_iterables(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        result = await sink.drain(_aiter(_records(4)))
        assert result.written == 4
        assert gateway.write.call_count == 4

    async def test_missing_field_written_as_null(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        await sink.drain([b'{"id": 5}'])
        gateway.write.assert_called_once_with(INSERT, (5, None))

    async def test_unprojected_nested_field_is_written(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        result = await sink.drain([b'{"id": 1, "name": "a", "meta": {"src": "web"}}'])
        assert result == DrainResult(written=1)
        gateway.write.assert_called_once_with(INSERT, (1, "a"))

    async def test_projected_nested_field_stops_the_stream(
        self, config_factory, gateway
    ):
        records = [b'{"id": 1, "name": "a"}', b'{"id": 2, "name": ["a", "b"]}']
        sink = IngestionSink(config_factory(), gateway=gateway)

        result = await sink.drain(records)

        assert isinstance(result.error, UnboundValueError)
        assert result.written == 1
        gateway.write.assert_called_once_with(INSERT, (1, "a"))

    async def test_quoted_columns_read_unquoted_keys(self, config_factory, gateway):
        cfg = config_factory(table="`order`", fields=["id", "`key`"])
        sink = IngestionSink(cfg, gateway=gateway)
        await sink.drain([b'{"id": 1, "key": "k-1"}'])
        gateway.write.assert_called_once_with(
            "INSERT IGNORE INTO `order` (id, `key`) VALUES (?, ?)", (1, "k-1")
        )

    async def test_empty_stream(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        result = await sink.drain([])
        assert result.ok
        assert result.written == 0
        gateway.write.assert_not_called()

    async def test_malformed_record_stops_the_stream(self, config_factory, gateway):
        records = _records(5)
        records[2] = b'{"id": 2, "name":'
        sink = IngestionSink(config_factory(), gateway=gateway)

        result = await sink.drain(records)

        assert not result.ok
        assert isinstance(result.error, DecodeError)
        assert result.written == 2
        assert gateway.write.call_count == 2

    async def test_write_failure_stops_the_stream(self, config_factory, gateway):
        error = RuntimeError("Lost connection to MySQL server")
        gateway.write.side_effect = [None, error, None]
        sink = IngestionSink(config_factory(), gateway=gateway)

        result = await sink.drain(_records(3))

        assert result.error is error
        assert result.written == 1
        assert gateway.write.call_count == 2

    async def test_stream_error_fails_the_run(self, config_factory, gateway):
        def _broken():
            yield _records(1)[0]
            raise OSError("upstream went away")

        sink = IngestionSink(config_factory(), gateway=gateway)
        result = await sink.drain(_broken())

        assert isinstance(result.error, OSError)
        assert result.written == 1

    async def test_closes_gateway_after_drain(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        await sink.drain(_records(1))
        gateway.close.assert_called_once()
        assert sink.state is SinkState.CLOSED

    async def test_closes_gateway_after_failure(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        await sink.drain([b"garbage"])
        gateway.close.assert_called_once()
        assert sink.state is SinkState.CLOSED

    async def test_closed_is_terminal(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        await sink.drain(_records(1))
        with pytest.raises(SinkClosedError):
            await sink.drain(_records(1))
        assert gateway.write.call_count == 1

    async def test_close_is_idempotent(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        sink.close()
        sink.close()
        gateway.close.assert_called_once()

    async def test_writes_run_in_executor(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        loop = asyncio.get_running_loop()
        with patch.object(loop, "run_in_executor", wraps=loop.run_in_executor) as spy:
            await sink.drain(_records(2))
            assert spy.call_count == 2


@pytest.mark.asyncio
class TestSinkConsume:
    async def test_success_signals_done_without_error(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        errors: asyncio.Queue[Exception | None] = asyncio.Queue()
        done = asyncio.Event()

        await sink.consume(_records(3), errors, done)

        assert done.is_set()
        assert errors.get_nowait() is None
        assert errors.empty()
        assert gateway.write.call_count == 3

    async def test_failure_signals_one_error_then_done(self, config_factory, gateway):
        records = _records(4)
        records[1] = b"not json"
        sink = IngestionSink(config_factory(), gateway=gateway)
        errors: asyncio.Queue[Exception | None] = asyncio.Queue()
        done = asyncio.Event()

        await sink.consume(records, errors, done)

        assert done.is_set()
        assert isinstance(errors.get_nowait(), DecodeError)
        assert errors.get_nowait() is None
        assert errors.empty()
        assert gateway.write.call_count == 1

    async def test_consume_on_closed_sink_still_terminates(
        self, config_factory, gateway
    ):
        sink = IngestionSink(config_factory(), gateway=gateway)
        sink.close()
        errors: asyncio.Queue[Exception | None] = asyncio.Queue()
        done = asyncio.Event()

        await sink.consume(_records(1), errors, done)

        assert done.is_set()
        assert isinstance(errors.get_nowait(), SinkClosedError)
        assert errors.get_nowait() is None

    async def test_host_can_await_both_signals(self, config_factory, gateway):
        sink = IngestionSink(config_factory(), gateway=gateway)
        errors: asyncio.Queue[Exception | None] = asyncio.Queue()
        done = asyncio.Event()

        task = asyncio.create_task(sink.consume(_aiter(_records(2)), errors, done))
        first = await asyncio.wait_for(errors.get(), timeout=5)
        await asyncio.wait_for(done.wait(), timeout=5)
        await task

        assert first is None
