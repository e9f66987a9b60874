"""
pipeline/resolver.py
--------------------
Deferred associations carried in a row's AdditionalData.

Runs once the primary record has its destination key:

* membership lists (``groupIDs``, ``labels``, ``categories``...) are
  resolved through the translator's lookup and written as association
  rows; keys that do not resolve are dropped;
* ``options`` maps option source keys to values (custom profile fields);
* ``fileLocation`` is relocated after the record has been committed; a
  failure is reported, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from entities.datatypes import (
    FILE_LOCATION_KEY,
    OPTIONS_KEY,
    DataTypeRegistry,
    DataTypeSpec,
    Membership,
)
from entities.keys import DestinationKey
from logger import get_logger
from pipeline.destination import Association, DestinationWriter
from pipeline.files import FileRelocationError, FileRelocator

log = get_logger(__name__)

LookupFn = Callable[[str, Any], Optional[DestinationKey]]


@dataclass
class ResolutionResult:
    """What the resolver did for one imported row."""
    associations: int = 0
    unresolved: list[tuple[str, str]] = field(default_factory=list)
    file_path: Path | None = None
    file_error: str | None = None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class AssociationResolver:
    """
    Resolves and writes AdditionalData for imported rows.

    Args:
        registry:   Data type declarations (membership keys, options type).
        writer:     Destination writer receiving association rows.
        relocator:  File relocator; ``fileLocation`` entries are skipped
                    when None.
    """

    def __init__(
        self,
        registry: DataTypeRegistry,
        writer: DestinationWriter,
        relocator: FileRelocator | None = None,
    ) -> None:
        self._registry = registry
        self._writer = writer
        self._relocator = relocator

    def resolve_associations(
        self,
        data_type: str,
        destination_key: DestinationKey,
        additional_data: dict[str, Any],
        lookup: LookupFn,
    ) -> ResolutionResult:
        """
        Write memberships and option values; runs inside the row transaction.
        """
        result = ResolutionResult()
        if not additional_data:
            return result

        spec = self._registry.get(data_type)
        for membership in spec.memberships:
            if membership.key in additional_data:
                self._write_memberships(
                    spec, destination_key, membership,
                    _as_list(additional_data[membership.key]), lookup, result,
                )

        options = additional_data.get(OPTIONS_KEY)
        if options:
            self._write_options(spec, destination_key, options, lookup, result)

        known = {m.key for m in spec.memberships} | {OPTIONS_KEY, FILE_LOCATION_KEY}
        ignored = sorted(k for k in additional_data if k not in known)
        if ignored:
            log.debug("%s: ignoring undeclared additional data %s.", data_type, ignored)
        return result

    def _write_memberships(
        self,
        spec: DataTypeSpec,
        destination_key: DestinationKey,
        membership: Membership,
        values: Iterable[Any],
        lookup: LookupFn,
        result: ResolutionResult,
    ) -> None:
        written: set[Any] = set()
        for value in values:
            if membership.data_type is None:
                target = value
            else:
                target = lookup(membership.data_type, value)
                if target is None:
                    result.unresolved.append((membership.data_type, str(value)))
                    continue
            if target in written:
                continue
            written.add(target)
            self._writer.add_association(
                spec.name,
                destination_key,
                Association(kind=membership.key, target_type=membership.data_type, target_key=target),
            )
            result.associations += 1

    def _write_options(
        self,
        spec: DataTypeSpec,
        destination_key: DestinationKey,
        options: dict[Any, Any],
        lookup: LookupFn,
        result: ResolutionResult,
    ) -> None:
        for option_key, value in options.items():
            target: Any = option_key
            if spec.options_type is not None:
                target = lookup(spec.options_type, option_key)
                if target is None:
                    result.unresolved.append((spec.options_type, str(option_key)))
                    continue
            self._writer.add_association(
                spec.name,
                destination_key,
                Association(
                    kind=OPTIONS_KEY,
                    target_type=spec.options_type,
                    target_key=target,
                    value=value,
                ),
            )
            result.associations += 1

    def relocate_files(
        self,
        data_type: str,
        destination_key: DestinationKey,
        additional_data: dict[str, Any],
        result: ResolutionResult,
    ) -> None:
        """Copy the row's ``fileLocation``; runs after the row committed."""
        location = (additional_data or {}).get(FILE_LOCATION_KEY)
        if not location:
            return
        if self._relocator is None:
            log.debug("%s %s: no file target configured, skipping '%s'.",
                      data_type, destination_key, location)
            return
        try:
            result.file_path = self._relocator.relocate(data_type, destination_key, location)
        except FileRelocationError as exc:
            result.file_error = str(exc)
            log.warning("%s %s: %s", data_type, destination_key, exc)
