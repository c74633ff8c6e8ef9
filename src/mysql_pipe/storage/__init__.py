from mysql_pipe.storage.dsn import (
    ConnectionParams,
    InvalidConnectionError,
    parse_connection,
)
from mysql_pipe.storage.gateway import (
    BackendUnavailableError,
    MissingCountError,
    StorageGateway,
    count_statement,
    insert_statement,
)
from mysql_pipe.storage.pool import ConnectionPool, PoolClosedError

__all__ = [
    "BackendUnavailableError",
    "ConnectionParams",
    "ConnectionPool",
    "InvalidConnectionError",
    "MissingCountError",
    "PoolClosedError",
    "StorageGateway",
    "count_statement",
    "insert_statement",
    "parse_connection",
]
