"""Shared fixtures for mysql-pipe tests."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest
import structlog

from mysql_pipe.config.models import ResourceConfig
from mysql_pipe.storage.gateway import StorageGateway

DSN = "app:secret@tcp(localhost:3306)/events"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """The CLI reconfigures structlog; keep tests independent of that."""
    yield
    structlog.reset_defaults()


def make_config(**overrides: object) -> ResourceConfig:
    data: dict[str, object] = {
        "connection": DSN,
        "table": "events",
        "fields": ["id", "name"],
    }
    data.update(overrides)
    return ResourceConfig.model_validate(data)


@pytest.fixture
def gateway() -> MagicMock:
    gw = MagicMock(spec=StorageGateway)
    gw.count_where.return_value = 0
    return gw


@pytest.fixture
def config_factory():
    return make_config
