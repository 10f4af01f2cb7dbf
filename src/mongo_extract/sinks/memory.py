"""In-memory sink."""

from __future__ import annotations

from mongo_extract.sinks.base import Sink, UnitHandle


class InMemorySink(Sink):
    """Keep committed units in a list, in emission order."""

    name = "memory"

    def __init__(self) -> None:
        super().__init__()
        self.committed: list[UnitHandle] = []
        self.commits = 0
        self.rollbacks = 0

    def _publish(self, units: list[UnitHandle]) -> None:
        self.committed.extend(units)
        self.commits += 1

    def rollback(self) -> int:
        self.rollbacks += 1
        return super().rollback()

    def payloads(self) -> list[str]:
        """Decoded content of every committed unit."""
        return [unit.content.decode("utf-8") for unit in self.committed]
