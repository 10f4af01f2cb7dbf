"""Local directory sink."""

from __future__ import annotations

import json
from pathlib import Path

from mongo_extract.core.config import OutputFormat
from mongo_extract.core.exceptions import SinkError
from mongo_extract.sinks.base import Sink, UnitHandle
from mongo_extract.utils.helpers import safe_filename

_EXTENSIONS = {fmt.mime_type: fmt.extension for fmt in OutputFormat}


class DirectorySink(Sink):
    """
    Write committed units as files under a directory.

    Each unit becomes ``<sequence>_<name>.<ext>`` with its attributes in a
    ``.attributes.json`` sidecar. ``name`` is the unit's ``filename``
    attribute when present, otherwise its id. Rolled back units never touch
    the disk, and a commit that fails part way removes the files it already
    wrote.
    """

    name = "directory"

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self.written: list[Path] = []
        self._sequence = 0

    def _publish(self, units: list[UnitHandle]) -> None:
        sequence = self._sequence
        created: list[Path] = []
        targets: list[Path] = []
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            for unit in units:
                sequence += 1
                targets.append(self._write_unit(unit, sequence, created))
        except OSError as e:
            self._discard(created)
            raise SinkError(
                f"Failed to write units: {e}",
                sink=self.name,
                operation="commit",
                details={"path": str(self.path), "discarded": len(created)},
            ) from e

        self._sequence = sequence
        self.written.extend(targets)

    def _write_unit(self, unit: UnitHandle, sequence: int, created: list[Path]) -> Path:
        mime_type = unit.attributes.get("mime.type", "application/octet-stream")
        extension = _EXTENSIONS.get(mime_type, "bin")
        stem = f"{sequence:06d}_{safe_filename(unit.attributes.get('filename', unit.id))}"

        target = self.path / f"{stem}.{extension}"
        sidecar = self.path / f"{stem}.attributes.json"

        target.write_bytes(unit.content)
        created.append(target)

        with open(sidecar, "w") as f:
            created.append(sidecar)
            json.dump(
                {
                    "id": unit.id,
                    "attributes": unit.attributes,
                    "source_uri": unit.source_uri,
                    "relationship": unit.relationship,
                    "created_at": unit.created_at.isoformat(),
                },
                f,
                indent=2,
            )

        self.logger.debug("Wrote unit", path=str(target), bytes=len(unit.content))
        return target

    def _discard(self, paths: list[Path]) -> None:
        for path in reversed(paths):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning("Could not remove partial unit", path=str(path), error=str(e))
        if paths:
            self.logger.warning("Discarded partial commit", files=len(paths))
