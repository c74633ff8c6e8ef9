from mysql_pipe.resources.base import (
    Consumer,
    DrainResult,
    GateOutcome,
    RecordStream,
    Transformer,
)
from mysql_pipe.resources.factory import (
    PLUGIN_NAME,
    create_resource,
    describe_options,
    resource_kind,
    resource_names,
)
from mysql_pipe.resources.gate import DeduplicationGate, ExistenceCountError
from mysql_pipe.resources.sink import IngestionSink, SinkClosedError, SinkState

__all__ = [
    "PLUGIN_NAME",
    "Consumer",
    "DeduplicationGate",
    "DrainResult",
    "ExistenceCountError",
    "GateOutcome",
    "IngestionSink",
    "RecordStream",
    "SinkClosedError",
    "SinkState",
    "Transformer",
    "create_resource",
    "describe_options",
    "resource_kind",
    "resource_names",
]
