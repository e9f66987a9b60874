"""entities/__init__.py"""
from entities.datatypes import (
    FILE_LOCATION_KEY,
    OPTIONS_KEY,
    ConfigurationError,
    DataTypeRegistry,
    DataTypeSpec,
    Membership,
    Reference,
)
from entities.keys import (
    NO_KEY,
    CompositeKey,
    DerivedKey,
    DestinationKey,
    NaturalKey,
    SourceKey,
    source_key,
)
from entities.report import DataTypeProgress, DataTypeStatus, FileFailure, RunReport, RunStatus

__all__ = [
    "FILE_LOCATION_KEY",
    "OPTIONS_KEY",
    "ConfigurationError",
    "DataTypeRegistry",
    "DataTypeSpec",
    "Membership",
    "Reference",
    "NO_KEY",
    "CompositeKey",
    "DerivedKey",
    "DestinationKey",
    "NaturalKey",
    "SourceKey",
    "source_key",
    "DataTypeProgress",
    "DataTypeStatus",
    "FileFailure",
    "RunReport",
    "RunStatus",
]
