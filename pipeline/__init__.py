"""pipeline/__init__.py"""
from pipeline.database import (
    ConnectionLostError,
    DatabaseError,
    MySQLSourceDatabase,
    PostgreSQLSourceDatabase,
    SourceDatabase,
)
from pipeline.destination import Association, DestinationError, DestinationWriter, DryRunDestination
from pipeline.driver import MigrationDriver, PreflightError, SourceReadError
from pipeline.exporter import DatabaseExporter, ExportedRow, Exporter
from pipeline.files import FileRelocationError, FileRelocator
from pipeline.mapping_store import (
    InMemoryMappingStore,
    JsonMappingStore,
    MappingConflictError,
    MappingStore,
)
from pipeline.resolver import AssociationResolver, ResolutionResult
from pipeline.sequencer import Sequencer, build_sequence
from pipeline.translator import IDTranslator, TranslatorStats

__all__ = [
    "ConnectionLostError",
    "DatabaseError",
    "MySQLSourceDatabase",
    "PostgreSQLSourceDatabase",
    "SourceDatabase",
    "Association",
    "DestinationError",
    "DestinationWriter",
    "DryRunDestination",
    "MigrationDriver",
    "PreflightError",
    "SourceReadError",
    "DatabaseExporter",
    "ExportedRow",
    "Exporter",
    "FileRelocationError",
    "FileRelocator",
    "InMemoryMappingStore",
    "JsonMappingStore",
    "MappingConflictError",
    "MappingStore",
    "AssociationResolver",
    "ResolutionResult",
    "Sequencer",
    "build_sequence",
    "IDTranslator",
    "TranslatorStats",
]
