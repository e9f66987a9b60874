"""
pipeline/driver.py
------------------
Runs a migration: sequence, preflight, then one paginated pass per type.

Design Decisions:
    * Strictly sequential. A data type is drained completely before the
      next one starts, and chunks run in offset order; lookups of earlier
      data types rely on it.
    * ``count`` then ``export(offset, limit)`` for offset = 0, L, 2L, ...
      while offset < count. A short chunk is normal (rows deleted since
      counting, or gaps in ID-range pagination) and pagination continues.
    * A chunk is read completely before any of its rows is imported, so a
      source read error never leaves a half-imported chunk. The mapping
      table is flushed at every chunk boundary.
    * No retries. A failed run reports the data type and offset it stopped
      at; re-running (optionally with ``resume_from``) is safe because
      already-mapped rows are skipped by the translator.
    * Progress goes through a callback ``(message, current, total)`` so
      callers can render it however they like.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable

from config import CONFIG, AppConfig
from entities.datatypes import ConfigurationError
from entities.report import DataTypeStatus, RunReport, RunStatus
from logger import for_data_type, get_logger
from pipeline.destination import DestinationWriter, DryRunDestination
from pipeline.exporter import ExportedRow, Exporter
from pipeline.files import FileRelocator
from pipeline.mapping_store import InMemoryMappingStore, JsonMappingStore, MappingStore
from pipeline.resolver import AssociationResolver
from pipeline.sequencer import Sequencer
from pipeline.translator import IDTranslator

log = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]  # message, current, total


class PreflightError(Exception):
    """Raised when the exporter refuses source or file access checks."""


class SourceReadError(Exception):
    """Raised when counting or exporting a chunk fails."""

    def __init__(self, data_type: str, offset: int | None, message: str) -> None:
        where = "count" if offset is None else f"offset {offset}"
        super().__init__(f"Reading '{data_type}' failed at {where}: {message}")
        self.data_type = data_type
        self.offset = offset


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationDriver:
    """
    Drives an exporter through a full migration run.

    Args:
        exporter:     Legacy platform adapter.
        translator:   ID translator wired to the destination writer.
        chunk_size:   Default page size for data types without their own.
        progress_cb:  Optional ``(message, current, total)`` callback.
        dry_run:      Recorded in the report; the caller chooses the writer.

    Example::

        driver = MigrationDriver.from_config(exporter, writer=my_writer)
        report = driver.run({"user", "board"})
        print(report.summary())
    """

    def __init__(
        self,
        exporter: Exporter,
        translator: IDTranslator,
        chunk_size: int | None = None,
        progress_cb: ProgressCallback | None = None,
        dry_run: bool = False,
        discard_mappings: bool = False,
    ) -> None:
        self._exporter = exporter
        self._translator = translator
        self._chunk_size = chunk_size or CONFIG.migration.chunk_size
        self._progress_cb = progress_cb or self._default_progress
        self._dry_run = dry_run
        self._discard_mappings = discard_mappings
        self._sequencer = Sequencer(exporter.registry)

    @classmethod
    def from_config(
        cls,
        exporter: Exporter,
        writer: DestinationWriter | None = None,
        config: AppConfig = CONFIG,
        progress_cb: ProgressCallback | None = None,
    ) -> "MigrationDriver":
        """
        Wire store, resolver and translator from the application config.

        Without a *writer*, or with ``MIGRATION_DRY_RUN`` set, records go to
        a :class:`DryRunDestination`. A dry run reads ``MIGRATION_MAPPING_FILE``
        but never writes it: its keys do not exist in any destination.
        """
        settings = config.migration
        dry_run = settings.dry_run or writer is None
        if dry_run:
            writer = DryRunDestination()

        store: MappingStore
        if settings.mapping_file is not None:
            store = JsonMappingStore(settings.mapping_file, read_only=dry_run)
            store.load()
        else:
            store = InMemoryMappingStore()

        source_root = getattr(exporter, "file_system_path", None) or config.source.file_system_path
        relocator = None if dry_run else FileRelocator(settings.file_target_dir, source_root)
        resolver = AssociationResolver(exporter.registry, writer, relocator)
        translator = IDTranslator(exporter.registry, store, writer, resolver)
        return cls(
            exporter,
            translator,
            chunk_size=settings.chunk_size,
            progress_cb=progress_cb,
            dry_run=dry_run,
            discard_mappings=settings.discard_mappings,
        )

    @property
    def translator(self) -> IDTranslator:
        return self._translator

    @staticmethod
    def _default_progress(msg: str, current: int, total: int) -> None:
        log.info("%s (%d/%s)", msg, current, total if total else "?")

    def _progress(self, msg: str, current: int = 0, total: int = 0) -> None:
        self._progress_cb(msg, current, total)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def run(self, selection: Iterable[str], resume_from: str | None = None) -> RunReport:
        """
        Migrate the selected data types.

        Args:
            selection:    Data types chosen by the operator.
            resume_from:  Skip every data type sequenced before this one
                          (their mappings must already be in the store).

        Returns:
            :class:`RunReport`; ``status`` is FAILED when preflight, a
            source read or a destination write failed.

        Raises:
            ConfigurationError: Unknown data types, cyclic declarations or a
                                *resume_from* outside the run. Raised before
                                any I/O.
        """
        sequence = self._sequencer.order(selection)
        start = 0
        if resume_from is not None:
            if resume_from not in sequence:
                raise ConfigurationError(
                    f"Cannot resume from '{resume_from}': not part of this run."
                )
            start = sequence.index(resume_from)

        report = RunReport(
            status=RunStatus.RUNNING,
            sequence=sequence,
            dry_run=self._dry_run,
            started_at=_utcnow(),
        )
        for position, data_type in enumerate(sequence):
            if position < start:
                report.progress(data_type).status = DataTypeStatus.SKIPPED
            else:
                report.progress(data_type)
        self._translator.stats.clear()

        try:
            self._preflight(sequence[start:])
            for data_type in sequence[start:]:
                self._run_data_type(report, data_type)
            report.status = RunStatus.COMPLETED
            log.info("Migration completed: %d data type(s).", len(sequence) - start)
        except Exception as exc:
            report.status = RunStatus.FAILED
            report.last_error = str(exc)
            log.error("Migration failed: %s", exc)
        finally:
            self._translator.store.flush()
            self._sync_stats(report)
            report.completed_at = _utcnow()

        if report.keyless_data_types:
            log.warning(
                "Data types with keyless rows (unsafe to re-run against this "
                "destination): %s", ", ".join(report.keyless_data_types),
            )
        if report.succeeded and self._discard_mappings:
            self._translator.store.clear()
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _preflight(self, data_types: list[str]) -> None:
        """Source then file access for *data_types*; nothing is mapped if either fails."""
        try:
            source_ok = self._exporter.validate_source_access()
        except Exception as exc:
            raise PreflightError(f"Source access check failed: {exc}") from exc
        if source_ok is False:
            raise PreflightError("Source access check failed.")
        if not self._exporter.validate_file_access(data_types):
            raise PreflightError("File access check failed.")
        log.info("Preflight checks passed.")

    def _count(self, data_type: str) -> int:
        try:
            return max(int(self._exporter.count(data_type)), 0)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise SourceReadError(data_type, None, str(exc)) from exc

    def _read_chunk(self, data_type: str, offset: int, limit: int) -> list[ExportedRow]:
        try:
            return list(self._exporter.export(data_type, offset, limit) or ())
        except ConfigurationError:
            raise
        except Exception as exc:
            raise SourceReadError(data_type, offset, str(exc)) from exc

    def _run_data_type(self, report: RunReport, data_type: str) -> None:
        dt_log = for_data_type(log, data_type)
        progress = report.progress(data_type)
        progress.status = DataTypeStatus.RUNNING
        progress.started_at = _utcnow()
        offset = 0
        try:
            total = self._count(data_type)
            limit = self._exporter.chunk_size(data_type, self._chunk_size)
            progress.total_rows = total
            progress.chunk_size = limit
            self._progress(f"Exporting {data_type}", 0, total)

            while offset < total:
                rows = self._read_chunk(data_type, offset, limit)
                for row in rows:
                    self._translator.import_record(
                        row.data_type or data_type,
                        row.source_key,
                        row.record,
                        row.additional_data,
                    )
                self._translator.store.flush()

                progress.chunks_completed += 1
                progress.rows_exported += len(rows)
                if len(rows) < limit:
                    dt_log.debug("short chunk at offset %d (%d of %d rows).",
                                 offset, len(rows), limit)
                offset += limit
                self._sync_stats(report)
                self._progress(f"Exporting {data_type}", min(offset, total), total)
        except Exception as exc:
            progress.status = DataTypeStatus.FAILED
            progress.last_error = str(exc)
            progress.completed_at = _utcnow()
            report.failed_data_type = data_type
            report.failed_offset = offset
            raise

        progress.status = DataTypeStatus.COMPLETED
        progress.completed_at = _utcnow()
        dt_log.info(
            "finished: %d exported, %d imported, %d already mapped.",
            progress.rows_exported, progress.rows_imported,
            progress.rows_already_mapped,
        )

    def _sync_stats(self, report: RunReport) -> None:
        report.file_failures = []
        for data_type, stats in self._translator.stats.items():
            progress = report.progress(data_type)
            progress.rows_imported = stats.imported
            progress.rows_already_mapped = stats.already_mapped
            progress.rows_skipped = stats.skipped
            progress.unresolved_references = stats.unresolved_references
            progress.has_keyless_rows = stats.keyless > 0
            report.file_failures.extend(stats.file_failures)
