"""Base sink interface for emitted units."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

import structlog

from mongo_extract.core.exceptions import SinkError
from mongo_extract.core.utils import utc_now

logger = structlog.get_logger()

REL_SUCCESS = "success"


@dataclass
class UnitHandle:
    """A unit under construction inside a sink session."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    content: bytes = b""
    attributes: dict[str, str] = field(default_factory=dict)
    source_uri: str | None = None
    relationship: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def transferred(self) -> bool:
        """Whether the unit was routed and became immutable."""
        return self.relationship is not None


@dataclass
class ProvenanceEvent:
    """Record of where an emitted unit originated."""

    unit_id: str
    event_type: str
    source_uri: str
    timestamp: datetime = field(default_factory=utc_now)


class Sink(ABC):
    """
    Transactional destination for output units.

    Units are built with ``create``/``write``/``put_attributes``, reported
    with ``report_receive`` and routed with ``transfer``. Nothing becomes
    visible outside the sink until ``commit``; ``rollback`` discards every
    unit transferred since the last commit.
    """

    name: str = "sink"

    def __init__(self) -> None:
        self.logger = logger.bind(sink=self.name)
        self._pending: list[UnitHandle] = []
        self.provenance: list[ProvenanceEvent] = []
        self.yield_count = 0

    def create(self) -> UnitHandle:
        """Start a new unit."""
        return UnitHandle()

    def write(self, handle: UnitHandle, data: bytes) -> None:
        """Replace the unit's content."""
        self._check_open(handle, "write")
        handle.content = bytes(data)

    def put_attributes(self, handle: UnitHandle, attributes: Mapping[str, str]) -> None:
        """Add or overwrite unit attributes."""
        self._check_open(handle, "put_attributes")
        handle.attributes.update({str(k): str(v) for k, v in attributes.items()})

    def report_receive(self, handle: UnitHandle, source_uri: str) -> None:
        """Record a receive provenance event for the unit."""
        self._check_open(handle, "report_receive")
        handle.source_uri = source_uri
        self.provenance.append(
            ProvenanceEvent(unit_id=handle.id, event_type="RECEIVE", source_uri=source_uri)
        )

    def transfer(self, handle: UnitHandle, relationship: str = REL_SUCCESS) -> None:
        """Route the unit; it cannot be modified afterwards."""
        self._check_open(handle, "transfer")
        handle.relationship = relationship
        self._pending.append(handle)

    def commit(self) -> int:
        """
        Publish every transferred unit.

        Returns:
            Number of units published
        """
        units = list(self._pending)
        self._publish(units)
        self._pending.clear()
        self.logger.info("Sink committed", units=len(units))
        return len(units)

    def rollback(self) -> int:
        """
        Discard every unit transferred since the last commit.

        Returns:
            Number of units discarded
        """
        discarded = len(self._pending)
        pending_ids = {handle.id for handle in self._pending}
        self._pending.clear()
        self.provenance = [e for e in self.provenance if e.unit_id not in pending_ids]
        self.logger.warning("Sink rolled back", units=discarded)
        return discarded

    def yield_(self) -> None:
        """Signal that the caller should back off before the next run."""
        self.yield_count += 1
        self.logger.info("Sink asked to yield", yield_count=self.yield_count)

    @property
    def pending(self) -> list[UnitHandle]:
        """Units transferred but not yet committed."""
        return list(self._pending)

    @abstractmethod
    def _publish(self, units: list[UnitHandle]) -> None:
        """Make committed units visible."""
        pass

    def _check_open(self, handle: UnitHandle, operation: str) -> None:
        if handle.transferred:
            raise SinkError(
                "Unit was already transferred",
                sink=self.name,
                operation=operation,
                details={"unit_id": handle.id},
            )
