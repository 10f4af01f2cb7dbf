"""Hand serialized payloads to the sink."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

import structlog

from mongo_extract.sinks.base import REL_SUCCESS, Sink

logger = structlog.get_logger()

MIME_TYPE_ATTRIBUTE = "mime.type"


@dataclass(frozen=True)
class OutputUnit:
    """One emitted artifact."""

    payload: bytes
    mime_type: str
    attributes: dict[str, str] = field(default_factory=dict)
    unit_id: str | None = None


class Emitter:
    """Write each payload to the sink as a new unit and route it to success."""

    def __init__(self, sink: Sink, source_uri: str) -> None:
        self.sink = sink
        self.source_uri = source_uri
        self.logger = logger.bind(component="emitter")

    def emit(
        self,
        payload: str | bytes,
        attributes: Mapping[str, str] | None = None,
        mime_type: str = "application/json",
    ) -> OutputUnit:
        """
        Create, fill, report and transfer one unit.

        Args:
            payload: Serialized content (text is encoded as UTF-8)
            attributes: Extra unit attributes
            mime_type: Value of the ``mime.type`` attribute

        Returns:
            The emitted OutputUnit
        """
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        unit_attributes = {str(k): str(v) for k, v in (attributes or {}).items()}
        unit_attributes[MIME_TYPE_ATTRIBUTE] = mime_type

        handle = self.sink.create()
        self.sink.write(handle, data)
        self.sink.put_attributes(handle, unit_attributes)
        self.sink.report_receive(handle, self.source_uri)
        self.sink.transfer(handle, REL_SUCCESS)

        self.logger.debug("Emitted unit", unit_id=handle.id, bytes=len(data))
        return OutputUnit(
            payload=data,
            mime_type=mime_type,
            attributes=unit_attributes,
            unit_id=handle.id,
        )
