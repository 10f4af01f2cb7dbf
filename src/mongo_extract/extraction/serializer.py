"""Payload rendering for record batches."""

from __future__ import annotations

import base64
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import polars as pl
import structlog
from bson import json_util
from bson.decimal128 import Decimal128
from bson.objectid import ObjectId
from bson.regex import Regex
from bson.timestamp import Timestamp

from mongo_extract.core.config import JsonFormat, OutputFormat
from mongo_extract.core.exceptions import SerializationError
from mongo_extract.core.utils import format_millis
from mongo_extract.extraction.batch import RecordBatch

logger = structlog.get_logger()

EXTENDED_JSON_OPTIONS = json_util.CANONICAL_JSON_OPTIONS


def _standard_default(value: Any) -> Any:
    """Map store types onto plain JSON values."""
    if isinstance(value, datetime):
        return format_millis(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Timestamp):
        return format_millis(value.as_datetime())
    if isinstance(value, Regex):
        return value.pattern
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render_standard(record: dict[str, Any], indent: int | None = 2) -> str:
    """Render a record as normalized JSON."""
    return json.dumps(record, default=_standard_default, indent=indent, ensure_ascii=False)


def render_extended(record: dict[str, Any]) -> str:
    """Render a record with MongoDB canonical Extended JSON type tags."""
    return json_util.dumps(record, json_options=EXTENDED_JSON_OPTIONS)


def _csv_cell(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    # bool and numbers keep their JSON spelling
    return json.dumps(value)


class PayloadSerializer:
    """
    Render record batches into payload strings.

    JSON output is a single object for per-record batches and an array
    otherwise. CSV output is built from the normalized JSON of each record,
    with the header taken from the first record's keys.
    """

    def __init__(
        self,
        json_format: JsonFormat = JsonFormat.EXTENDED,
        output_format: OutputFormat = OutputFormat.JSON,
    ) -> None:
        self.json_format = json_format
        self.output_format = output_format

    def render_record(self, record: dict[str, Any], json_format: JsonFormat) -> str:
        """Render one record with the given JSON convention."""
        if json_format is JsonFormat.STANDARD:
            return render_standard(record)
        return render_extended(record)

    def serialize(
        self,
        batch: RecordBatch,
        output_format: OutputFormat | None = None,
        json_format: JsonFormat | None = None,
    ) -> str:
        """
        Render a batch.

        Args:
            batch: Records to render
            output_format: JSON or CSV, defaults to the serializer's
            json_format: Extended or standard, defaults to the serializer's

        Returns:
            Payload string (empty string for an empty CSV batch)

        Raises:
            SerializationError: If any record cannot be rendered
        """
        output_format = output_format or self.output_format
        json_format = json_format or self.json_format

        try:
            if output_format is OutputFormat.CSV:
                return self._to_csv(batch)
            return self._to_json(batch, json_format)
        except SerializationError:
            raise
        except Exception as e:
            raise SerializationError(
                f"Failed to render batch: {e}",
                output_format=output_format.value,
                batch_index=batch.index,
            ) from e

    def _to_json(self, batch: RecordBatch, json_format: JsonFormat) -> str:
        if batch.single and len(batch.records) == 1:
            return self.render_record(batch.records[0], json_format)
        documents = [self.render_record(record, json_format) for record in batch.records]
        return "[" + ", ".join(documents) + "]"

    def _to_csv(self, batch: RecordBatch) -> str:
        if batch.is_empty:
            return ""

        rows: list[dict[str, Any]] = []
        for position, record in enumerate(batch.records):
            rendered = render_standard(record, indent=None)
            try:
                parsed = json.loads(rendered)
            except json.JSONDecodeError as e:
                raise SerializationError(
                    f"Record {position} is not valid JSON",
                    output_format=OutputFormat.CSV.value,
                    batch_index=batch.index,
                ) from e
            if not isinstance(parsed, dict):
                raise SerializationError(
                    f"Record {position} is not a JSON object",
                    output_format=OutputFormat.CSV.value,
                    batch_index=batch.index,
                )
            rows.append(parsed)

        header = list(rows[0].keys())
        if not header:
            return ""

        columns = {key: [_csv_cell(row.get(key)) for row in rows] for key in header}
        frame = pl.DataFrame(columns, schema={key: pl.Utf8 for key in header})
        logger.debug("Rendering CSV", batch=batch.index, rows=len(rows), columns=len(header))
        return frame.write_csv()


def deserialize(payload: str | bytes) -> list[dict[str, Any]]:
    """
    Parse a normalized JSON payload back into records.

    Accepts a single object or an array of objects.

    Raises:
        SerializationError: If the payload is not JSON objects
    """
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Payload is not valid JSON: {e}") from e

    if isinstance(parsed, dict):
        return [parsed]
    if isinstance(parsed, list) and all(isinstance(item, dict) for item in parsed):
        return parsed
    raise SerializationError("Payload must be a JSON object or an array of objects")
