"""
pipeline/exporter.py
--------------------
The contract every legacy platform adapter implements.

An exporter declares its data types once (:meth:`Exporter.data_types`)
and supplies leaf-level callbacks: ``count`` and ``export`` per data type,
plus two preflight checks. Dispatch goes through the ``methods`` table::

    class WBB2xExporter(DatabaseExporter):
        methods = {"user": "users", "board": "boards"}
        limits = {"user": 200}

        def count_users(self) -> int: ...
        def export_users(self, offset: int, limit: int) -> Iterator[ExportedRow]: ...

The driver owns pagination, ordering and translation; an exporter never
calls the translator itself.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterable

from entities.datatypes import ConfigurationError, DataTypeRegistry, DataTypeSpec
from logger import get_logger
from pipeline.database import SourceDatabase

log = get_logger(__name__)


@dataclass
class ExportedRow:
    """
    One normalized row produced by an exporter.

    Attributes:
        source_key:       Legacy key (int, str, tuple for composites, or a
                          :mod:`entities.keys` instance; ``0`` for "no key").
        record:           Normalized field map for the destination.
        additional_data:  Memberships, options and ``fileLocation``.
        data_type:        Override when one legacy row yields records of
                          another type (a private message becomes both a
                          conversation and its first message).
    """
    source_key: Any
    record: dict[str, Any]
    additional_data: dict[str, Any] = field(default_factory=dict)
    data_type: str | None = None


class Exporter(ABC):
    """Base class of all legacy platform adapters."""

    # data type -> method suffix, e.g. {"user": "users"} -> count_users/export_users
    methods: ClassVar[dict[str, str]] = {}
    # data type -> chunk size overriding the configured default
    limits: ClassVar[dict[str, int]] = {}

    def __init__(self) -> None:
        self._registry: DataTypeRegistry | None = None

    @abstractmethod
    def data_types(self) -> list[DataTypeSpec]:
        """Declare the data types, in a stable order, with their relations."""

    @property
    def registry(self) -> DataTypeRegistry:
        if self._registry is None:
            self._registry = DataTypeRegistry(self.data_types())
        return self._registry

    def supported_data(self) -> dict[str, list[str]]:
        """
        Selectable parent types and their optional children, for the
        operator's selection screen.
        """
        return {}

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------

    def validate_source_access(self) -> bool:
        return True

    def validate_file_access(self, data_types: Iterable[str] = ()) -> bool:
        """Check the legacy file system for the data types about to run."""
        return True

    # ------------------------------------------------------------------
    # Paginated read interface
    # ------------------------------------------------------------------

    def chunk_size(self, data_type: str, default: int) -> int:
        spec = self.registry.get(data_type)
        return spec.chunk_size or self.limits.get(data_type, default)

    def _method(self, prefix: str, data_type: str) -> Callable[..., Any]:
        suffix = self.methods.get(data_type)
        if suffix is None:
            raise ConfigurationError(
                f"{type(self).__name__} has no export method for '{data_type}'."
            )
        method = getattr(self, f"{prefix}_{suffix}", None)
        if method is None:
            raise ConfigurationError(
                f"{type(self).__name__} does not implement {prefix}_{suffix}()."
            )
        return method

    def count(self, data_type: str) -> int:
        return int(self._method("count", data_type)())

    def export(self, data_type: str, offset: int, limit: int) -> Iterable[ExportedRow]:
        return self._method("export", data_type)(offset, limit)


class DatabaseExporter(Exporter):
    """
    Exporter reading a legacy SQL database.

    Args:
        database:          Open (or openable) source connection.
        file_system_path:  Root of the legacy installation, for avatars and
                           attachments; None when files are not migrated.

    The file system is only required when a run contains one of
    ``file_data_types``; the driver passes the run's data types to
    :meth:`validate_file_access`.
    """

    # Data types whose export needs the legacy file system.
    file_data_types: ClassVar[frozenset[str]] = frozenset()
    # A file that must exist below file_system_path for it to be accepted.
    file_system_marker: ClassVar[str | None] = None

    def __init__(
        self,
        database: SourceDatabase,
        file_system_path: Path | str | None = None,
    ) -> None:
        super().__init__()
        self.database = database
        self.file_system_path = Path(file_system_path) if file_system_path else None

    def table(self, name: str) -> str:
        return self.database.table(name)

    def validate_source_access(self) -> bool:
        if not self.database.is_connected:
            self.database.connect()
        self.database.fetch_value("SELECT 1")
        return True

    def validate_file_access(self, data_types: Iterable[str] = ()) -> bool:
        """Require a file system path only if a file data type is in the run."""
        needing_files = sorted(self.file_data_types.intersection(data_types))
        if not needing_files:
            return True
        if self.file_system_path is None or not self.file_system_path.is_dir():
            log.error("%s need the legacy file system, but '%s' is not a directory.",
                      ", ".join(needing_files), self.file_system_path)
            return False
        if self.file_system_marker and not (self.file_system_path / self.file_system_marker).exists():
            log.error("'%s' does not look like the legacy installation (missing %s).",
                      self.file_system_path, self.file_system_marker)
            return False
        return True

    # ------------------------------------------------------------------
    # Pagination helpers
    # ------------------------------------------------------------------

    def _max_id(self, table: str, column: str) -> int:
        return self.database.max_id(self.table(table), column)

    def _count(self, table: str) -> int:
        return self.database.count_rows(self.table(table))

    @staticmethod
    def _id_range(offset: int, limit: int) -> tuple[int, int]:
        """
        ``BETWEEN`` bounds for ID-range pagination.

        With ``count = MAX(id)`` the driver's offsets walk the ID space;
        gaps simply yield short chunks.
        """
        return offset + 1, offset + limit
