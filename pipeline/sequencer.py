"""
pipeline/sequencer.py
---------------------
Turns an operator's selection into the ordered list of export passes.

The exporter declares its data types once, as a graph
(:class:`~entities.datatypes.DataTypeRegistry`); the sequencer derives the
run order from it:

1. Expand the selection: prerequisites join the run transitively. Included
   children join only below selected (or themselves included) types, so a
   board pulled in as a prerequisite of labels does not bring its threads.
2. Build "must run before" edges: prerequisites and including parents
   always, ``follows`` edges only between types that are both in the run.
3. Topologically sort with Kahn's algorithm, always picking the ready type
   declared first, so the same input always yields the same order.

Unknown names and cycles are :class:`ConfigurationError` and surface
before any I/O happens.
"""
from __future__ import annotations

import heapq
from typing import Iterable

from entities.datatypes import ConfigurationError, DataTypeRegistry
from logger import get_logger

log = get_logger(__name__)


class Sequencer:
    """
    Ordering service for one exporter's data types.

    Example::

        sequencer = Sequencer(registry)
        sequencer.order({"user", "user.group", "board"})
        # ['user.group', 'user', 'board', 'thread', 'post']
    """

    def __init__(self, registry: DataTypeRegistry) -> None:
        self._registry = registry
        self._position = {name: i for i, name in enumerate(registry.names())}
        # Reject cycles when the exporter is wired up, not halfway through a run.
        self._sort(set(registry.names()))

    def expand(self, selection: Iterable[str]) -> set[str]:
        """
        Return the selection plus everything it transitively requires.

        Raises:
            ConfigurationError: If the selection names an unknown data type.
        """
        selected = set(selection)
        unknown = sorted(name for name in selected if name not in self._registry)
        if unknown:
            raise ConfigurationError(
                "Selection contains unknown data type(s): " + ", ".join(unknown)
            )

        # name -> whether its includes are followed (selected or included types)
        in_run: dict[str, bool] = {}
        pending = [(name, True) for name in sorted(selected, key=self._position.__getitem__)]
        while pending:
            name, with_children = pending.pop()
            if name in in_run and (in_run[name] or not with_children):
                continue
            in_run[name] = with_children
            spec = self._registry.get(name)
            pulled = [(t, False) for t in spec.prerequisites]
            if with_children:
                pulled.extend((t, True) for t in spec.includes)
            for required, follow in pulled:
                if required not in selected and required not in in_run:
                    log.debug("'%s' pulls in unselected '%s'.", name, required)
                pending.append((required, follow))
        return set(in_run)

    def _edges(self, in_run: set[str]) -> dict[str, set[str]]:
        """Map each data type in the run to the types that must precede it."""
        before: dict[str, set[str]] = {name: set() for name in in_run}
        for name in in_run:
            spec = self._registry.get(name)
            before[name].update(spec.prerequisites)
            before[name].update(t for t in spec.follows if t in in_run)
            for child in spec.includes:
                if child in in_run:
                    before[child].add(name)
        return before

    def order(self, selection: Iterable[str]) -> list[str]:
        """
        Return the dependency-respecting processing order for *selection*.

        Raises:
            ConfigurationError: On unknown data types or a cyclic graph.
        """
        sequence = self._sort(self.expand(selection))
        log.info("Export sequence: %s", " -> ".join(sequence) or "(empty)")
        return sequence

    def _sort(self, in_run: set[str]) -> list[str]:
        before = self._edges(in_run)

        dependants: dict[str, set[str]] = {name: set() for name in in_run}
        remaining = {name: len(preds) for name, preds in before.items()}
        for name, preds in before.items():
            for pred in preds:
                dependants[pred].add(name)

        ready = [(self._position[name], name) for name, n in remaining.items() if n == 0]
        heapq.heapify(ready)
        sequence: list[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            sequence.append(name)
            for dependant in dependants[name]:
                remaining[dependant] -= 1
                if remaining[dependant] == 0:
                    heapq.heappush(ready, (self._position[dependant], dependant))

        if len(sequence) != len(in_run):
            stuck = sorted(
                (name for name, n in remaining.items() if n > 0),
                key=self._position.__getitem__,
            )
            raise ConfigurationError(
                "Cyclic data type dependencies between: " + ", ".join(stuck)
            )

        return sequence


def build_sequence(registry: DataTypeRegistry, selection: Iterable[str]) -> list[str]:
    """Convenience wrapper: ``Sequencer(registry).order(selection)``."""
    return Sequencer(registry).order(selection)
