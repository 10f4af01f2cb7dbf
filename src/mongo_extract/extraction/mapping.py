"""Join input records with matching collection documents."""

from __future__ import annotations

from typing import Any

import structlog

from mongo_extract.connectors.base import DocumentStore
from mongo_extract.core.resources import closing_resource
from mongo_extract.extraction.query import QuerySpec
from mongo_extract.extraction.serializer import deserialize, render_standard

logger = structlog.get_logger()


class FieldMapper:
    """
    Copy fields of matching documents onto input records.

    For each record the collection is queried with the base filter plus
    ``{to_field: record[from_field]}``. Every key of every match is copied
    onto the record, except ``to_field`` and, with ``replace_id``, ``_id``.
    Both exclusions ignore case, so ``Email`` is skipped when mapping to
    ``email``. Later matches overwrite earlier ones.
    """

    def __init__(
        self,
        store: DocumentStore,
        from_field: str,
        to_field: str,
        replace_id: bool = False,
        spec: QuerySpec | None = None,
    ) -> None:
        self.store = store
        self.from_field = from_field
        self.to_field = to_field
        self.replace_id = replace_id
        self.spec = spec or QuerySpec()
        self.logger = logger.bind(component="field_mapper", to_field=to_field)

    def query_for(self, record: dict[str, Any]) -> dict[str, Any]:
        query = dict(self.spec.filter or {})
        query[self.to_field] = record.get(self.from_field)
        return query

    def map_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Merge matching documents into ``record`` in place and return it."""
        if self.from_field not in record:
            self.logger.warning("Record has no mapping field", from_field=self.from_field)
            return record

        query = self.query_for(record)
        merged: dict[str, Any] = {}
        try:
            cursor = self.store.find(
                filter=query,
                projection=self.spec.projection,
                sort=self.spec.sort,
            )
            with closing_resource(cursor, resource_name="cursor"):
                for document in cursor:
                    for key, value in document.items():
                        if not self._excluded(key):
                            merged[key] = value
        except Exception as e:
            self.logger.error("Mapping lookup failed", query=str(query)[:200], error=str(e))
            return record

        record.update(merged)
        return record

    def _excluded(self, key: str) -> bool:
        lowered = key.lower()
        if lowered == self.to_field.lower():
            return True
        return self.replace_id and lowered == "_id"

    def map_records(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self.map_record(record) for record in records]

    def map_payload(self, payload: str | bytes) -> str:
        """Map every object of a JSON array and render the result as JSON."""
        records = self.map_records(deserialize(payload))
        return "[" + ", ".join(render_standard(r, indent=None) for r in records) + "]"
