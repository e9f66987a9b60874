"""
pipeline/mapping_store.py
-------------------------
The keyed ``(data type, source key) -> destination key`` registry.

Every cross reference in a migration run goes through this table, so it is
kept behind one small interface that can be tested without any exporter:

* :class:`InMemoryMappingStore` for one-shot runs and tests.
* :class:`JsonMappingStore` persists the table to a JSON file at every
  chunk boundary so an aborted run can be resumed without duplicating
  already-imported rows.

Entries are immutable once written.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from entities.keys import DestinationKey, SourceKey, key_from_token
from logger import get_logger

log = get_logger(__name__)


class MappingConflictError(Exception):
    """Raised when an existing mapping would be changed."""


class MappingStore(ABC):
    """Abstract mapping table; subclasses decide on durability."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, DestinationKey]] = {}

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def get(self, data_type: str, key: SourceKey) -> DestinationKey | None:
        return self._data.get(data_type, {}).get(key.token)

    def contains(self, data_type: str, key: SourceKey) -> bool:
        return key.token in self._data.get(data_type, {})

    def count(self, data_type: str | None = None) -> int:
        if data_type is not None:
            return len(self._data.get(data_type, {}))
        return sum(len(entries) for entries in self._data.values())

    def data_types(self) -> list[str]:
        return [name for name, entries in self._data.items() if entries]

    def items(self, data_type: str) -> Iterator[tuple[SourceKey, DestinationKey]]:
        for token, destination in self._data.get(data_type, {}).items():
            yield key_from_token(token), destination

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def add(self, data_type: str, key: SourceKey, destination: DestinationKey) -> None:
        """
        Record a new mapping.

        Re-adding the identical mapping is a no-op.

        Raises:
            MappingConflictError: If the pair already maps elsewhere.
        """
        entries = self._data.setdefault(data_type, {})
        existing = entries.get(key.token)
        if existing is not None:
            if existing == destination:
                return
            raise MappingConflictError(
                f"{data_type} {key.token} is already mapped to {existing!r}, "
                f"refusing to remap it to {destination!r}."
            )
        entries[key.token] = destination
        self._on_change()

    def clear(self) -> None:
        """Discard the whole table (after a successful run)."""
        self._data = {}
        log.info("Mapping table discarded.")
        self._on_change()
        self.flush()

    def _on_change(self) -> None:
        """Hook for subclasses that track unsaved changes."""

    @abstractmethod
    def flush(self) -> None:
        """Make all mappings added so far durable."""


class InMemoryMappingStore(MappingStore):
    """Mapping table that lives as long as the process."""

    def flush(self) -> None:
        return None


class JsonMappingStore(MappingStore):
    """
    Mapping table persisted to a JSON file.

    Attributes:
        _path:      Location of the JSON file.
        _dirty:     True when mappings were added since the last flush.
        _read_only: Load the file but never write it (dry runs).
    """

    def __init__(self, file_path: Path | str, read_only: bool = False) -> None:
        super().__init__()
        self._path = Path(file_path)
        self._dirty = False
        self._read_only = read_only

    @property
    def path(self) -> Path:
        return self._path

    @property
    def read_only(self) -> bool:
        return self._read_only

    def load(self) -> None:
        """
        Load mappings from the JSON file.

        A missing file yields an empty store.

        Raises:
            ValueError: On corrupt JSON; a resumed run must never silently
                        start from an empty table.
        """
        if not self._path.exists():
            self._data = {}
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in mapping file '{self._path}': {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"Mapping file '{self._path}' must contain a JSON object.")
        self._data = {str(dt): dict(entries) for dt, entries in raw.items()}
        self._dirty = False
        log.info("Loaded %d mapping(s) from '%s'.", self.count(), self._path)

    def _on_change(self) -> None:
        self._dirty = True

    def flush(self) -> None:
        """Write the table atomically (write-then-rename) if it changed."""
        if self._read_only or not self._dirty:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)
        self._dirty = False
        log.debug("Saved %d mapping(s) to '%s'.", self.count(), self._path)
