"""
tests/conftest.py
-----------------
Shared fixtures: a small forum data type graph and a list-backed exporter.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from typing import Any, Iterable

import pytest

from entities.datatypes import DataTypeRegistry, DataTypeSpec, Membership, Reference
from pipeline.destination import DryRunDestination
from pipeline.exporter import ExportedRow, Exporter
from pipeline.mapping_store import InMemoryMappingStore
from pipeline.resolver import AssociationResolver
from pipeline.translator import IDTranslator


def forum_specs() -> list[DataTypeSpec]:
    """Data types of a typical forum, in declaration order."""
    return [
        DataTypeSpec("user.group"),
        DataTypeSpec("user.option"),
        DataTypeSpec(
            "user",
            follows=("user.group", "user.option"),
            memberships=(Membership("groupIDs", "user.group"),),
            options_type="user.option",
        ),
        DataTypeSpec("board", includes=("thread", "post")),
        DataTypeSpec("label", prerequisites=("board",)),
        DataTypeSpec(
            "thread",
            prerequisites=("board",),
            follows=("user", "label"),
            references=(
                Reference("boardSourceKey", "board", target_field="boardID", required=True),
                Reference("userID", "user"),
            ),
            memberships=(Membership("labels", "label"), Membership("tags")),
        ),
        DataTypeSpec(
            "post",
            prerequisites=("thread",),
            references=(
                Reference("threadID", "thread", required=True),
                Reference("userID", "user"),
            ),
        ),
        DataTypeSpec(
            "post.attachment",
            prerequisites=("post",),
            references=(Reference("objectID", "post", required=True),),
        ),
        DataTypeSpec("poll", prerequisites=("post",)),
        DataTypeSpec(
            "poll.option",
            prerequisites=("poll",),
            references=(Reference("pollID", "poll", required=True),),
        ),
        DataTypeSpec(
            "poll.option.vote",
            prerequisites=("poll.option",),
            references=(
                Reference("optionID", "poll.option", required=True),
                Reference("userID", "user"),
            ),
        ),
    ]


class ListExporter(Exporter):
    """
    Exporter over in-memory rows; records every export call.

    ``fail_at`` maps a data type to the offset whose export raises.
    """

    def __init__(
        self,
        rows: dict[str, list[ExportedRow]] | None = None,
        specs: list[DataTypeSpec] | None = None,
        counts: dict[str, int] | None = None,
    ) -> None:
        super().__init__()
        self._specs = specs if specs is not None else forum_specs()
        self.rows = rows or {}
        self.counts = counts or {}
        self.calls: list[tuple[str, int, int]] = []
        self.count_calls: list[str] = []
        self.fail_at: dict[str, int] = {}
        self.source_ok = True
        self.files_ok = True
        self.file_checks: list[list[str]] = []

    def data_types(self) -> list[DataTypeSpec]:
        return self._specs

    def validate_source_access(self) -> bool:
        return self.source_ok

    def validate_file_access(self, data_types: Iterable[str] = ()) -> bool:
        self.file_checks.append(list(data_types))
        return self.files_ok

    def count(self, data_type: str) -> int:
        self.count_calls.append(data_type)
        return self.counts.get(data_type, len(self.rows.get(data_type, [])))

    def export(self, data_type: str, offset: int, limit: int) -> list[ExportedRow]:
        self.calls.append((data_type, offset, limit))
        if self.fail_at.get(data_type) == offset:
            raise RuntimeError("source connection went away")
        return self.rows.get(data_type, [])[offset:offset + limit]


def row(key: Any, **record: Any) -> ExportedRow:
    return ExportedRow(source_key=key, record=record)


@pytest.fixture
def registry() -> DataTypeRegistry:
    return DataTypeRegistry(forum_specs())


@pytest.fixture
def destination() -> DryRunDestination:
    return DryRunDestination(first_key=101)


@pytest.fixture
def store() -> InMemoryMappingStore:
    return InMemoryMappingStore()


@pytest.fixture
def translator(registry, store, destination) -> IDTranslator:
    resolver = AssociationResolver(registry, destination)
    return IDTranslator(registry, store, destination, resolver)
