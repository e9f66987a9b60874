"""
entities/keys.py
----------------
Source keys: the identity of a legacy row within its data type.

Three shapes exist in practice:

* ``NaturalKey``: the legacy primary key (``userid = 42``).
* ``CompositeKey``: an adapter-built key for rows without a single-column
  identity, e.g. a poll option addressed as ``(topicID, optionIndex)``.
* ``DerivedKey``: a content hash for entities the legacy system never
  stored as rows, e.g. a conversation inferred from its participants.

Each variant serialises to a distinct token (``token``), so a natural key
``"55-0"`` can never collide with ``CompositeKey(("55", "0"))``.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class NaturalKey:
    """The legacy row's own primary key."""
    value: int | str

    @property
    def token(self) -> str:
        return f"n:{self.value}"

    @property
    def is_anonymous(self) -> bool:
        """True for key ``0``: no identity, always insert a new row."""
        return self.value == 0

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CompositeKey:
    """Key made of several legacy values, e.g. ``(threadID, optionIndex)``."""
    parts: tuple[str, ...]

    @property
    def token(self) -> str:
        return "c:" + json.dumps(list(self.parts), separators=(",", ":"))

    @property
    def is_anonymous(self) -> bool:
        return False

    def __str__(self) -> str:
        return "-".join(self.parts)


@dataclass(frozen=True)
class DerivedKey:
    """Hash-derived key for entities without any legacy identity."""
    digest: str

    @classmethod
    def of(cls, *parts: Any) -> "DerivedKey":
        """
        Derive a key from the given parts (SHA-1 over their ``-`` join).

        Example::

            DerivedKey.of(root_pm_id, ",".join(sorted(participants)))
        """
        raw = "-".join(str(p) for p in parts)
        return cls(hashlib.sha1(raw.encode("utf-8")).hexdigest())

    @property
    def token(self) -> str:
        return f"d:{self.digest}"

    @property
    def is_anonymous(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.digest


def _is_int_text(text: str) -> bool:
    digits = text[1:] if text.startswith("-") else text
    return digits.isdecimal()


SourceKey = Union[NaturalKey, CompositeKey, DerivedKey]

# Identity assigned by the destination writer.
DestinationKey = Union[int, str]

# Rows whose duplicate detection is meaningless (individual votes, watches).
NO_KEY = NaturalKey(0)


def source_key(value: Any) -> SourceKey | None:
    """
    Coerce an adapter-supplied value into a :data:`SourceKey`.

    Ints and digit strings become the same ``NaturalKey(int)`` so that
    ``"7"`` and ``7`` address the same row; tuples and lists become a
    ``CompositeKey``. ``None`` and ``""`` yield ``None`` (no key at all).

    Raises:
        TypeError: For values that cannot act as a key (floats, dicts...).
    """
    if value is None:
        return None
    if isinstance(value, (NaturalKey, CompositeKey, DerivedKey)):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Boolean {value!r} is not a valid source key.")
    if isinstance(value, int):
        return NaturalKey(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if _is_int_text(stripped):
            return NaturalKey(int(stripped))
        return NaturalKey(stripped)
    if isinstance(value, (tuple, list)):
        if not value:
            raise TypeError("A composite source key needs at least one part.")
        return CompositeKey(tuple(str(p) for p in value))
    raise TypeError(f"Unsupported source key type: {type(value).__name__}")


def key_from_token(token: str) -> SourceKey:
    """Inverse of ``SourceKey.token``; used when loading persisted mappings."""
    kind, _, payload = token.partition(":")
    if kind == "n":
        return NaturalKey(int(payload)) if _is_int_text(payload) else NaturalKey(payload)
    if kind == "c":
        return CompositeKey(tuple(json.loads(payload)))
    if kind == "d":
        return DerivedKey(payload)
    raise ValueError(f"Unrecognised source key token: {token!r}")
