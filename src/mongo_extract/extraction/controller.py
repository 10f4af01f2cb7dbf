"""Run orchestration: windows, cursors, batches, payloads, units."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

import structlog

from mongo_extract.connectors.base import DocumentStore
from mongo_extract.core.config import Settings
from mongo_extract.core.exceptions import (
    FatalRunError,
    RunStateError,
    SerializationError,
    WindowError,
)
from mongo_extract.core.utils import format_millis, utc_now
from mongo_extract.extraction.batch import BatchMode, BatchPolicy, RecordBatch, RecordBatcher
from mongo_extract.extraction.emitter import Emitter
from mongo_extract.extraction.executor import QueryExecutor
from mongo_extract.extraction.query import QuerySpec
from mongo_extract.extraction.serializer import PayloadSerializer
from mongo_extract.extraction.windows import TimeWindow, WindowPlanner
from mongo_extract.sinks.base import Sink
from mongo_extract.utils.logging import bind_run, bind_window, log_execution_time, unbind_run

logger = structlog.get_logger()

RecordTransform = Callable[[dict[str, Any]], dict[str, Any]]


class RunStatus(str, Enum):
    """Lifecycle of a run controller."""

    IDLE = "idle"
    RUNNING = "running"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class RunState:
    """Mutable state of the current run."""

    status: RunStatus = RunStatus.IDLE
    current_window: TimeWindow | None = None
    committed: bool = False


@dataclass
class RunResult:
    """Outcome of one extraction run."""

    run_id: str
    status: RunStatus = RunStatus.RUNNING
    windows_planned: int = 0
    windows_failed: int = 0
    units_emitted: int = 0
    records_read: int = 0
    batches_dropped: int = 0
    errors: list[Exception] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Run duration in seconds."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def committed(self) -> bool:
        return self.status is RunStatus.COMMITTED

    @property
    def fatal_error(self) -> FatalRunError | None:
        """The error that rolled the run back, if any."""
        for error in self.errors:
            if isinstance(error, FatalRunError):
                return error
        return None


class RunController:
    """
    Drive one extraction run from configuration to commit.

    Windows are processed strictly in order. A failure inside one window is
    logged and the window skipped; the run still commits the units of every
    other window. A failure outside the window loop rolls the whole run back
    and asks the sink to yield. A controller runs once.
    """

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        sink: Sink,
        planner: WindowPlanner | None = None,
        record_transform: RecordTransform | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.sink = sink
        self.record_transform = record_transform
        self.state = RunState()

        incremental = settings.incremental
        self.incremental = incremental.enabled
        self.planner = planner or WindowPlanner(range_days=incremental.range_days)

        output = settings.output
        self.policy = BatchPolicy.from_config(output.results_per_unit, output.whole_window)
        self.batcher = RecordBatcher(self.policy)
        self.serializer = PayloadSerializer(
            json_format=output.json_format,
            output_format=output.format,
        )
        self.mime_type = output.format.mime_type
        self.address_field = settings.enrichment.address_field
        self.logger = logger.bind(component="run_controller")

    def windows(self) -> Iterable[TimeWindow | None]:
        """Windows of this run; a single unbounded pass when not incremental."""
        if not self.incremental:
            return [None]
        return self.planner.plan(
            self.settings.incremental.from_date,
            self.settings.incremental.to_date,
        )

    @log_execution_time(message="Extraction run finished")
    def run(self) -> RunResult:
        """
        Execute the run.

        Returns:
            RunResult in either the committed or the rolled back state

        Raises:
            RunStateError: If the controller already ran
        """
        if self.state.status is not RunStatus.IDLE:
            raise RunStateError(
                "Run controller cannot be reused",
                details={"status": self.state.status.value},
            )

        result = RunResult(run_id=bind_run())
        self.state.status = RunStatus.RUNNING
        opened_store = False

        self.logger.info(
            "Starting extraction run",
            incremental=self.incremental,
            batch_mode=self.policy.mode.value,
            output_format=self.serializer.output_format.value,
            json_format=self.serializer.json_format.value,
        )

        try:
            if not self.store.is_connected:
                self.store.connect()
                opened_store = True

            spec = self.settings.query_spec()
            executor = QueryExecutor(self.store, self.settings.incremental.range_field or None)
            emitter = Emitter(self.sink, self.store.source_uri)

            for window in self.windows():
                self.state.current_window = window
                result.windows_planned += 1
                try:
                    self._process_window(spec, window, executor, emitter, result)
                except Exception as e:
                    result.windows_failed += 1
                    result.errors.append(self._window_error(window, e))

            self.sink.commit()
            self.state.committed = True
            self.state.status = RunStatus.COMMITTED

        except Exception as e:
            fatal = FatalRunError(f"Extraction run failed: {e}", cause=e)
            result.errors.append(fatal)
            self.logger.error(
                "Extraction run failed, rolling back",
                error=str(e),
                window=str(self.state.current_window) if self.state.current_window else None,
                exc_info=True,
            )
            self.sink.yield_()
            self.sink.rollback()
            self.state.status = RunStatus.ROLLED_BACK

        finally:
            if opened_store:
                self.store.disconnect()
            unbind_run()

        result.status = self.state.status
        result.finished_at = utc_now()

        self.logger.info(
            "Extraction run completed",
            status=result.status.value,
            windows=result.windows_planned,
            windows_failed=result.windows_failed,
            units=result.units_emitted,
            records=result.records_read,
            batches_dropped=result.batches_dropped,
        )
        return result

    def _process_window(
        self,
        spec: QuerySpec,
        window: TimeWindow | None,
        executor: QueryExecutor,
        emitter: Emitter,
        result: RunResult,
    ) -> None:
        if window is not None:
            bind_window(str(window))

        with executor.execute(spec, window) as records:
            stream = self._counted(records, result)
            if self.record_transform is not None:
                stream = map(self.record_transform, stream)

            for batch in self.batcher.batches(stream):
                try:
                    payload = self.serializer.serialize(batch)
                except SerializationError as e:
                    result.batches_dropped += 1
                    result.errors.append(e)
                    self.logger.error(
                        "Error building batch, dropping it",
                        batch=batch.index,
                        rows=len(batch),
                        window=str(window) if window else None,
                        error=str(e),
                    )
                    continue

                if _is_empty_payload(payload):
                    self.logger.debug("Skipping empty payload", window=str(window) if window else None)
                    continue

                emitter.emit(payload, self._attributes(batch, window), self.mime_type)
                result.units_emitted += 1

    @staticmethod
    def _counted(
        records: Iterator[dict[str, Any]],
        result: RunResult,
    ) -> Iterator[dict[str, Any]]:
        for record in records:
            result.records_read += 1
            yield record

    def _attributes(self, batch: RecordBatch, window: TimeWindow | None) -> dict[str, str]:
        attributes = {
            "record.count": str(len(batch)),
            "batch.index": str(batch.index),
        }
        if window is not None:
            attributes["window.start"] = format_millis(window.start)
            attributes["window.end"] = format_millis(window.end)
            if self.policy.mode is BatchMode.WHOLE_WINDOW:
                attributes["filename"] = format_millis(window.start)
        if batch.single:
            address = batch.records[0].get(self.address_field)
            if isinstance(address, str):
                attributes["address"] = address
        return attributes

    def _window_error(self, window: TimeWindow | None, error: Exception) -> WindowError:
        self.logger.error(
            "Window failed, skipping",
            window_start=format_millis(window.start) if window else None,
            window_end=format_millis(window.end) if window else None,
            error=str(error),
            exc_info=True,
        )
        return WindowError(
            f"Window failed: {error}",
            window_start=window.start if window else None,
            window_end=window.end if window else None,
        )


def _is_empty_payload(payload: str) -> bool:
    stripped = payload.strip()
    return not stripped or stripped == "[]"
