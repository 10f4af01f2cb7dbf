"""Tests for the lookup field mapper."""

import json

from bson.objectid import ObjectId

from conftest import FakeStore
from mongo_extract.extraction.mapping import FieldMapper
from mongo_extract.extraction.query import QuerySpec

CUSTOMERS = [
    {"_id": ObjectId("65a0c0ffee0000000000beef"), "email": "lan@example.com", "tier": "gold", "active": True},
    {"_id": ObjectId("65a0c0ffee0000000000cafe"), "email": "minh@example.com", "tier": "silver", "active": False},
]


def connected(documents=CUSTOMERS) -> FakeStore:
    store = FakeStore(documents)
    store.connect()
    return store


class TestFieldMapper:
    """Test joining input records with collection documents."""

    def test_copies_matching_fields(self):
        mapper = FieldMapper(connected(), from_field="customer_email", to_field="email")

        record = mapper.map_record({"order": 7, "customer_email": "lan@example.com"})

        assert record["tier"] == "gold"
        assert record["active"] is True
        assert "email" not in record
        assert record["_id"] == ObjectId("65a0c0ffee0000000000beef")

    def test_replace_id_keeps_input_id(self):
        mapper = FieldMapper(connected(), "customer_email", "email", replace_id=True)

        record = mapper.map_record({"_id": "order-7", "customer_email": "lan@example.com"})

        assert record["_id"] == "order-7"
        assert record["tier"] == "gold"

    def test_exclusions_ignore_case(self):
        documents = [{"_id": 1, "_ID": 2, "email": "lan@example.com", "EMAIL": "LAN@EXAMPLE.COM", "tier": "gold"}]
        mapper = FieldMapper(connected(documents), "customer_email", "email", replace_id=True)

        record = mapper.map_record({"_id": "order-7", "customer_email": "lan@example.com"})

        assert record == {"_id": "order-7", "customer_email": "lan@example.com", "tier": "gold"}

    def test_base_filter_applied(self):
        store = connected()
        mapper = FieldMapper(store, "customer_email", "email", spec=QuerySpec(filter={"active": True}))

        record = mapper.map_record({"customer_email": "minh@example.com"})

        assert store.queries == [{"active": True, "email": "minh@example.com"}]
        assert "tier" not in record

    def test_base_filter_not_shared_between_records(self):
        store = connected()
        spec = QuerySpec(filter={"active": True})
        mapper = FieldMapper(store, "customer_email", "email", spec=spec)

        mapper.map_records([{"customer_email": "a"}, {"customer_email": "b"}])

        assert store.queries[1] == {"active": True, "email": "b"}
        assert spec.filter == {"active": True}

    def test_cursor_closed_per_lookup(self):
        store = connected()
        mapper = FieldMapper(store, "customer_email", "email")

        mapper.map_records([{"customer_email": "lan@example.com"}, {"customer_email": "x"}])

        assert [c.close_calls for c in store.cursors] == [1, 1]

    def test_failed_lookup_leaves_record(self):
        store = FakeStore(CUSTOMERS)  # never connected
        mapper = FieldMapper(store, "customer_email", "email")
        record = {"customer_email": "lan@example.com"}

        assert mapper.map_record(record) == {"customer_email": "lan@example.com"}

    def test_missing_from_field(self):
        store = connected()
        record = FieldMapper(store, "customer_email", "email").map_record({"order": 1})

        assert record == {"order": 1}
        assert store.queries == []

    def test_map_payload(self):
        mapper = FieldMapper(connected(), "customer_email", "email", replace_id=True)
        payload = json.dumps([{"customer_email": "minh@example.com"}])

        records = json.loads(mapper.map_payload(payload))

        assert records == [{"customer_email": "minh@example.com", "tier": "silver", "active": False}]
