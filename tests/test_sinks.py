"""Tests for transactional sinks."""

import json

import pytest

from mongo_extract.core.exceptions import SinkError
from mongo_extract.sinks import REL_SUCCESS, DirectorySink, InMemorySink


def stage(sink, content=b"{}", attributes=None):
    handle = sink.create()
    sink.write(handle, content)
    sink.put_attributes(handle, attributes or {"mime.type": "application/json"})
    sink.report_receive(handle, "mongodb://localhost/shop.orders")
    sink.transfer(handle, REL_SUCCESS)
    return handle


class TestInMemorySink:
    """Test commit and rollback semantics."""

    def test_nothing_visible_before_commit(self, sink):
        stage(sink)

        assert sink.committed == []
        assert len(sink.pending) == 1

    def test_commit_publishes_in_order(self, sink):
        stage(sink, b"1")
        stage(sink, b"2")

        assert sink.commit() == 2
        assert sink.payloads() == ["1", "2"]
        assert sink.pending == []

    def test_rollback_discards(self, sink):
        stage(sink)
        stage(sink)

        assert sink.rollback() == 2
        assert sink.commit() == 0
        assert sink.committed == []
        assert sink.provenance == []

    def test_provenance_recorded(self, sink):
        handle = stage(sink)

        event = sink.provenance[0]
        assert event.unit_id == handle.id
        assert event.event_type == "RECEIVE"
        assert event.source_uri == "mongodb://localhost/shop.orders"

    def test_transferred_unit_is_immutable(self, sink):
        handle = stage(sink)

        with pytest.raises(SinkError):
            sink.write(handle, b"changed")
        with pytest.raises(SinkError):
            sink.transfer(handle, REL_SUCCESS)

    def test_yield_counts(self, sink):
        sink.yield_()
        assert sink.yield_count == 1


class TestDirectorySink:
    """Test file output."""

    def test_commit_writes_files(self, temp_dir):
        sink = DirectorySink(temp_dir / "out")
        stage(sink, b'{"a": 1}', {"mime.type": "application/json", "filename": "2024-01-01T00:00:00.000Z"})
        stage(sink, b"a\n1\n", {"mime.type": "text/csv"})

        sink.commit()

        assert [p.suffix for p in sink.written] == [".json", ".csv"]
        assert sink.written[0].name == "000001_2024-01-01T00-00-00.000Z.json"
        assert sink.written[0].read_bytes() == b'{"a": 1}'

        sidecar = temp_dir / "out" / "000001_2024-01-01T00-00-00.000Z.attributes.json"
        meta = json.loads(sidecar.read_text())
        assert meta["relationship"] == REL_SUCCESS
        assert meta["attributes"]["mime.type"] == "application/json"

    def test_rollback_writes_nothing(self, temp_dir):
        sink = DirectorySink(temp_dir / "out")
        stage(sink)

        sink.rollback()

        assert not (temp_dir / "out").exists()

    def test_failed_commit_removes_partial_files(self, temp_dir):
        out = temp_dir / "out"
        sink = DirectorySink(out)
        stage(sink, b"[1]", {"mime.type": "application/json", "filename": "first"})
        stage(sink, b"[2]", {"mime.type": "application/json", "filename": "second"})
        (out / "000002_second.json").mkdir(parents=True)

        with pytest.raises(SinkError):
            sink.commit()

        assert sorted(p.name for p in out.iterdir()) == ["000002_second.json"]
        assert sink.written == []
        assert len(sink.pending) == 2

    def test_commit_after_failure_reuses_sequence(self, temp_dir):
        out = temp_dir / "out"
        sink = DirectorySink(out)
        stage(sink, b"[1]", {"mime.type": "application/json", "filename": "first"})
        stage(sink, b"[2]", {"mime.type": "application/json", "filename": "second"})
        blocker = out / "000002_second.json"
        blocker.mkdir(parents=True)

        with pytest.raises(SinkError):
            sink.commit()
        blocker.rmdir()

        assert sink.commit() == 2
        assert [p.name for p in sink.written] == ["000001_first.json", "000002_second.json"]

    def test_extension_follows_output_format(self, temp_dir):
        sink = DirectorySink(temp_dir / "out")
        stage(sink, b"a\n", {"mime.type": "text/csv"})
        stage(sink, b"?", {"mime.type": "application/x-unknown"})

        sink.commit()

        assert [p.suffix for p in sink.written] == [".csv", ".bin"]
