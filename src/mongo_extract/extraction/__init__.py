"""Windowed extraction: planning, querying, batching, rendering and emission."""

from mongo_extract.extraction.batch import BatchMode, BatchPolicy, RecordBatch, RecordBatcher
from mongo_extract.extraction.controller import RunController, RunResult, RunStatus
from mongo_extract.extraction.emitter import Emitter, OutputUnit
from mongo_extract.extraction.executor import QueryExecutor
from mongo_extract.extraction.mapping import FieldMapper
from mongo_extract.extraction.query import QuerySpec, build_filter
from mongo_extract.extraction.serializer import PayloadSerializer, deserialize
from mongo_extract.extraction.windows import TimeWindow, WindowPlanner, plan_windows

__all__ = [
    "BatchMode",
    "BatchPolicy",
    "RecordBatch",
    "RecordBatcher",
    "RunController",
    "RunResult",
    "RunStatus",
    "Emitter",
    "OutputUnit",
    "QueryExecutor",
    "FieldMapper",
    "QuerySpec",
    "build_filter",
    "PayloadSerializer",
    "deserialize",
    "TimeWindow",
    "WindowPlanner",
    "plan_windows",
]
