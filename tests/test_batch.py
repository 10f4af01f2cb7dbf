"""Tests for record batching."""

import pytest

from mongo_extract.extraction.batch import BatchMode, BatchPolicy, RecordBatch, RecordBatcher


def records(*names):
    return [{"name": name} for name in names]


def names(batch: RecordBatch):
    return [record["name"] for record in batch.records]


class TestBatchPolicy:
    """Test policy construction."""

    def test_fixed_needs_size(self):
        with pytest.raises(ValueError):
            BatchPolicy(BatchMode.FIXED)

    def test_fixed_rejects_zero(self):
        with pytest.raises(ValueError):
            BatchPolicy.fixed(0)

    def test_whole_window_takes_no_size(self):
        with pytest.raises(ValueError):
            BatchPolicy(BatchMode.WHOLE_WINDOW, 10)

    def test_unbounded_ceiling(self):
        assert BatchPolicy.unbounded().ceiling == 1


class TestRecordBatcher:
    """Test batch boundaries for each policy."""

    def test_fixed_with_remainder(self):
        """Ceiling 2 over five records gives 2, 2 and 1."""
        batches = list(RecordBatcher(BatchPolicy.fixed(2)).batches(records("a", "b", "c", "d", "e")))

        assert [names(b) for b in batches] == [["a", "b"], ["c", "d"], ["e"]]
        assert [b.index for b in batches] == [0, 1, 2]
        assert batches[0].is_full
        assert not batches[2].is_full

    def test_fixed_exact_multiple(self):
        batches = list(RecordBatcher(BatchPolicy.fixed(2)).batches(records("a", "b", "c", "d")))
        assert [len(b) for b in batches] == [2, 2]

    def test_fixed_empty_stream(self):
        assert list(RecordBatcher(BatchPolicy.fixed(3)).batches([])) == []

    def test_unbounded_one_per_record(self):
        batches = list(RecordBatcher(BatchPolicy.unbounded()).batches(records("a", "b")))

        assert [names(b) for b in batches] == [["a"], ["b"]]
        assert all(b.single for b in batches)

    def test_whole_window_single_batch(self):
        batches = list(RecordBatcher(BatchPolicy.whole_window()).batches(records("a", "b", "c")))

        assert len(batches) == 1
        assert names(batches[0]) == ["a", "b", "c"]
        assert not batches[0].single

    def test_whole_window_empty(self):
        """An empty cursor still yields one (empty) batch."""
        batches = list(RecordBatcher(BatchPolicy.whole_window()).batches([]))

        assert len(batches) == 1
        assert batches[0].is_empty

    def test_order_preserved(self):
        stream = records(*"abcdefg")
        batches = RecordBatcher(BatchPolicy.fixed(3)).batches(stream)
        assert [n for b in batches for n in names(b)] == list("abcdefg")

    def test_lazy_consumption(self):
        """Fixed batches are produced before the stream is exhausted."""
        consumed = []

        def stream():
            for name in "abcd":
                consumed.append(name)
                yield {"name": name}

        first = next(RecordBatcher(BatchPolicy.fixed(2)).batches(stream()))

        assert names(first) == ["a", "b"]
        assert consumed == ["a", "b"]
