"""Output sinks for emitted units."""

from mongo_extract.sinks.base import REL_SUCCESS, ProvenanceEvent, Sink, UnitHandle
from mongo_extract.sinks.directory import DirectorySink
from mongo_extract.sinks.memory import InMemorySink

__all__ = [
    "REL_SUCCESS",
    "ProvenanceEvent",
    "Sink",
    "UnitHandle",
    "DirectorySink",
    "InMemorySink",
]
