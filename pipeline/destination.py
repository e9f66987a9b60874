"""
pipeline/destination.py
-----------------------
Interface to the destination persistence layer.

The coordination core never writes destination tables itself; it hands
normalized records to a :class:`DestinationWriter`. The concrete writer
belongs to the target platform. :class:`DryRunDestination` keeps
everything in memory and backs dry runs and the test suite.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator

from entities.keys import DestinationKey
from logger import get_logger

log = get_logger(__name__)


class DestinationError(Exception):
    """Raised by writers when a record cannot be persisted."""


@dataclass
class Association:
    """One membership / option row attached to an imported record."""
    kind: str
    target_type: str | None
    target_key: Any
    value: Any = None


class DestinationWriter(ABC):
    """Persistence callbacks used by the translator and the resolver."""

    @abstractmethod
    def insert(self, data_type: str, record: dict[str, Any]) -> DestinationKey:
        """Persist *record* and return its newly assigned key."""

    @abstractmethod
    def add_association(
        self,
        data_type: str,
        destination_key: DestinationKey,
        association: Association,
    ) -> None:
        """Attach a membership or option value to an imported record."""

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Scope of one row import.

        Writers backed by a database commit on clean exit and roll back on
        any exception; the default is a no-op for non-transactional stores.
        """
        yield


class DryRunDestination(DestinationWriter):
    """
    In-memory destination assigning sequential keys per data type.

    Attributes:
        rows:          ``{data_type: {destination_key: record}}``
        associations:  ``{(data_type, destination_key): [Association, ...]}``
    """

    def __init__(self, first_key: int = 1) -> None:
        self._first_key = first_key
        self._next_key: dict[str, int] = {}
        self.rows: dict[str, dict[DestinationKey, dict[str, Any]]] = {}
        self.associations: dict[tuple[str, DestinationKey], list[Association]] = {}
        self._journal: list[Callable[[], Any]] | None = None

    def insert(self, data_type: str, record: dict[str, Any]) -> DestinationKey:
        key = self._next_key.get(data_type, self._first_key)
        self._next_key[data_type] = key + 1
        table = self.rows.setdefault(data_type, {})
        table[key] = dict(record)
        if self._journal is not None:
            self._journal.append(lambda: table.pop(key, None))
        log.debug("Dry run: %s stored as %s.", data_type, key)
        return key

    def add_association(
        self,
        data_type: str,
        destination_key: DestinationKey,
        association: Association,
    ) -> None:
        attached = self.associations.setdefault((data_type, destination_key), [])
        attached.append(association)
        if self._journal is not None:
            self._journal.append(attached.pop)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        next_keys = dict(self._next_key)
        self._journal = []
        try:
            yield
        except Exception:
            for undo in reversed(self._journal):
                undo()
            self._next_key = next_keys
            raise
        finally:
            self._journal = None

    def count(self, data_type: str) -> int:
        return len(self.rows.get(data_type, {}))

    def associations_of(
        self, data_type: str, destination_key: DestinationKey, kind: str | None = None
    ) -> list[Association]:
        found = self.associations.get((data_type, destination_key), [])
        return [a for a in found if kind is None or a.kind == kind]
