"""
pipeline/translator.py
----------------------
Translates legacy source keys into destination keys.

``import_record`` is the single entry point every exported row goes
through. For a source key that is already mapped it returns the existing
destination key and discards the row, which makes re-running a migration
safe. Otherwise it:

1. rewrites the record's declared references (``boardID``, ``userID``...)
   to destination keys via :meth:`IDTranslator.lookup`;
2. persists the record and its membership/option rows in one destination
   transaction;
3. stores the mapping once that transaction committed;
4. relocates the row's file, if any (failures are reported only).

Source key ``0`` means "no identity": the row is inserted on every call
and no mapping is stored. Such data types are flagged, because re-running
them against a populated destination duplicates their rows.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from entities.datatypes import FILE_LOCATION_KEY, DataTypeRegistry, DataTypeSpec
from entities.keys import DestinationKey, SourceKey, source_key
from entities.report import FileFailure
from logger import get_logger
from pipeline.destination import DestinationWriter
from pipeline.mapping_store import MappingStore
from pipeline.resolver import AssociationResolver, ResolutionResult

log = get_logger(__name__)


@dataclass
class TranslatorStats:
    """Per data type counters."""
    imported: int = 0
    already_mapped: int = 0
    skipped: int = 0
    keyless: int = 0
    unresolved_references: int = 0
    file_failures: list[FileFailure] = field(default_factory=list)


class IDTranslator:
    """
    Central ``(data type, source key) -> destination key`` service.

    Args:
        registry:  Data type declarations (references, memberships).
        store:     Mapping table.
        writer:    Destination writer persisting records.
        resolver:  AdditionalData resolver; one writing through *writer*
                   without file relocation is created when omitted.

    Example::

        translator.import_record("board", "7", {"title": "News"})   # -> 101
        translator.import_record("thread", "55", {"boardID": "7"})  # boardID -> 101
        translator.lookup("board", 7)                               # -> 101
    """

    def __init__(
        self,
        registry: DataTypeRegistry,
        store: MappingStore,
        writer: DestinationWriter,
        resolver: AssociationResolver | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._writer = writer
        self._resolver = resolver or AssociationResolver(registry, writer)
        self._stats: dict[str, TranslatorStats] = {}

    @property
    def store(self) -> MappingStore:
        return self._store

    @property
    def registry(self) -> DataTypeRegistry:
        return self._registry

    @property
    def stats(self) -> dict[str, TranslatorStats]:
        return self._stats

    def stats_for(self, data_type: str) -> TranslatorStats:
        return self._stats.setdefault(data_type, TranslatorStats())

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, data_type: str, key: Any) -> DestinationKey | None:
        """
        Return the destination key for a source key, or None.

        Reflects every earlier import of the run. Empty keys, key ``0`` and
        data types that were never imported all resolve to None.
        """
        parsed = source_key(key)
        if parsed is None or parsed.is_anonymous:
            return None
        return self._store.get(data_type, parsed)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_record(
        self,
        data_type: str,
        key: Any,
        record: dict[str, Any],
        additional_data: dict[str, Any] | None = None,
    ) -> DestinationKey | None:
        """
        Import one row and return its destination key.

        Returns:
            The existing key for an already-mapped row, the new key for an
            imported row, or None when a required reference is missing and
            the row was skipped.

        Raises:
            ConfigurationError: Unknown data type.
            ValueError:         The row has no source key at all.
            Exception:          Whatever the destination writer raises; the
                                row is rolled back and no mapping is stored.
        """
        spec = self._registry.get(data_type)
        parsed = source_key(key)
        if parsed is None:
            raise ValueError(f"{data_type}: row without source key cannot be imported.")
        stats = self.stats_for(data_type)
        additional_data = additional_data or {}

        if not parsed.is_anonymous:
            existing = self._store.get(data_type, parsed)
            if existing is not None:
                stats.already_mapped += 1
                log.debug("%s %s already mapped to %s.", data_type, parsed, existing)
                return existing

        resolved = self._rewrite_references(spec, parsed, record, stats)
        if resolved is None:
            stats.skipped += 1
            return None

        with self._writer.transaction():
            destination = self._writer.insert(data_type, resolved)
            result = self._resolver.resolve_associations(
                data_type, destination, additional_data, self.lookup
            )

        if parsed.is_anonymous:
            if stats.keyless == 0:
                log.warning(
                    "%s: rows without a natural key are inserted on every run; "
                    "re-running this data type against a populated destination "
                    "duplicates them.",
                    data_type,
                )
            stats.keyless += 1
        else:
            self._store.add(data_type, parsed, destination)

        self._finish(data_type, destination, additional_data, result, stats)
        return destination

    def _finish(
        self,
        data_type: str,
        destination: DestinationKey,
        additional_data: dict[str, Any],
        result: ResolutionResult,
        stats: TranslatorStats,
    ) -> None:
        self._resolver.relocate_files(data_type, destination, additional_data, result)
        stats.imported += 1
        if result.unresolved:
            stats.unresolved_references += len(result.unresolved)
            log.debug("%s %s: dropped unresolved associations %s.",
                      data_type, destination, result.unresolved)
        if result.file_error:
            stats.file_failures.append(
                FileFailure(
                    data_type=data_type,
                    destination_key=str(destination),
                    file_location=str(additional_data.get(FILE_LOCATION_KEY)),
                    reason=result.file_error,
                )
            )

    def _rewrite_references(
        self,
        spec: DataTypeSpec,
        key: SourceKey,
        record: dict[str, Any],
        stats: TranslatorStats,
    ) -> dict[str, Any] | None:
        """Copy *record* with declared references replaced by destination keys."""
        resolved = dict(record)
        for ref in spec.references:
            if ref.field not in resolved and not ref.required:
                continue
            value = resolved.pop(ref.field, None)
            target = self.lookup(ref.data_type, value)
            if target is None:
                if ref.required:
                    log.warning(
                        "%s %s skipped: %s '%s' was not imported.",
                        spec.name, key, ref.data_type, value,
                    )
                    return None
                parsed = source_key(value)
                if parsed is not None and not parsed.is_anonymous:
                    stats.unresolved_references += 1
            resolved[ref.destination_field] = target
        return resolved
