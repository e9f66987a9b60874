"""
entities/datatypes.py
---------------------
Declarative description of the data types an exporter can migrate.

A data type (``"user"``, ``"thread"``, ``"post.attachment"``) declares how
it relates to the other types of the same exporter:

* ``prerequisites``: must be fully imported first; pulled into the run
  even when the operator did not select them.
* ``follows``: ordering only; honoured when the other type is part of the
  run anyway (users follow user groups, but selecting users alone does
  not drag groups along).
* ``includes``: children processed with this type when it was selected or
  itself included (a board brings its threads and posts, a board pulled in
  only as a prerequisite of labels does not).

Field-level cross references (``references``) and AdditionalData
membership lists (``memberships``) tell the translator and the resolver
which other data types' source keys a record points at.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

# AdditionalData keys understood by the resolver besides declared memberships.
OPTIONS_KEY = "options"
FILE_LOCATION_KEY = "fileLocation"


class ConfigurationError(Exception):
    """Raised for malformed data type declarations or selections."""


@dataclass(frozen=True)
class Reference:
    """
    A record field holding another data type's source key.

    Attributes:
        field:         Name of the field in the exported record.
        data_type:     Data type the key belongs to.
        target_field:  Field that receives the destination key; defaults
                       to ``field`` (rewritten in place).
        required:      When True, a row whose reference cannot be resolved
                       is skipped instead of imported with ``None``.
    """
    field: str
    data_type: str
    target_field: str | None = None
    required: bool = False

    @property
    def destination_field(self) -> str:
        return self.target_field or self.field


@dataclass(frozen=True)
class Membership:
    """
    An AdditionalData entry listing associated rows, e.g. a user's groups.

    ``data_type=None`` marks literal values (free-form tags) that are
    passed to the destination unchanged.
    """
    key: str
    data_type: str | None = None


@dataclass(frozen=True)
class DataTypeSpec:
    """One migratable data type and its relations."""
    name: str
    prerequisites: tuple[str, ...] = ()
    follows: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    chunk_size: int | None = None
    references: tuple[Reference, ...] = ()
    memberships: tuple[Membership, ...] = ()
    options_type: str | None = None

    def related_types(self) -> Iterator[str]:
        """Every data type name this declaration mentions."""
        yield from self.prerequisites
        yield from self.follows
        yield from self.includes
        for ref in self.references:
            yield ref.data_type
        for membership in self.memberships:
            if membership.data_type is not None:
                yield membership.data_type
        if self.options_type is not None:
            yield self.options_type


class DataTypeRegistry:
    """
    Ordered collection of :class:`DataTypeSpec` for one exporter.

    Declaration order is significant: the sequencer uses it to break ties,
    so the same registry and selection always produce the same sequence.

    Raises:
        ConfigurationError: On duplicate names, self references, unknown
                            related types or a non-positive chunk size.
    """

    def __init__(self, specs: Iterable[DataTypeSpec]) -> None:
        self._specs: dict[str, DataTypeSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ConfigurationError(f"Data type '{spec.name}' is declared twice.")
            self._specs[spec.name] = spec
        self._validate()

    def _validate(self) -> None:
        for spec in self._specs.values():
            if spec.chunk_size is not None and spec.chunk_size < 1:
                raise ConfigurationError(
                    f"Data type '{spec.name}' has invalid chunk size {spec.chunk_size}."
                )
            for other in (*spec.prerequisites, *spec.follows, *spec.includes):
                if other == spec.name:
                    raise ConfigurationError(
                        f"Data type '{spec.name}' depends on itself."
                    )
            unknown = sorted({t for t in spec.related_types() if t not in self._specs})
            if unknown:
                raise ConfigurationError(
                    f"Data type '{spec.name}' refers to unknown data type(s): "
                    + ", ".join(unknown)
                )

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[DataTypeSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, name: str) -> DataTypeSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise ConfigurationError(f"Unknown data type '{name}'.") from None

    def names(self) -> list[str]:
        return list(self._specs)

    def position(self, name: str) -> int:
        """Declaration index of *name* (tie-breaker for ordering)."""
        return self.names().index(name)
