"""All-or-nothing execution across the strategy and its collaborators."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

LOGGER = logging.getLogger("rollover.engine.transaction")


@runtime_checkable
class Snapshotable(Protocol):
    def snapshot(self) -> Any:
        """Return an opaque copy of the mutable state."""

    def restore(self, state: Any) -> None:
        """Put back a state previously returned by ``snapshot``."""


@contextmanager
def atomic(participants: Iterable[object]) -> Iterator[None]:
    """Roll every participant back if the block raises.

    Participants without ``snapshot``/``restore`` are skipped; the same object
    listed twice is only captured once.
    """
    seen: set[int] = set()
    captured: list[tuple[Snapshotable, Any]] = []
    for participant in participants:
        if id(participant) in seen or not isinstance(participant, Snapshotable):
            continue
        seen.add(id(participant))
        captured.append((participant, participant.snapshot()))
    try:
        yield
    except Exception as exc:
        for participant, state in reversed(captured):
            participant.restore(state)
        LOGGER.debug("Rolled back %d participants after %s", len(captured), exc)
        raise
