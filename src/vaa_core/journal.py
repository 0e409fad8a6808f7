# -*- encoding: utf-8 -*-
"""
Journal - undo log for state mutated in place.

While a transaction is open, every mutator records the inverse of what it
just changed. A failing transaction replays the inverses newest-first back
to its savepoint; a clean one keeps them until the outermost transaction
closes, then drops them. Rollback cost is proportional to what the
transaction touched, never to the size of the state.

Transactions nest: an inner transaction is a savepoint inside the outer
one. Its changes survive its own clean exit and are still undone if the
outer transaction later fails.

Usage:
    journal = Journal()

    mark = journal.begin()
    try:
        claims[key] = record
        journal.record(lambda: claims.pop(key))
        ...
    except BaseException:
        journal.rollback(mark)
        raise
    finally:
        journal.end()

Not thread-safe on its own; StateStore serializes access.
"""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Undo = Callable[[], None]


class Journal:
    """Stack of undo operations for the open transaction(s)."""

    def __init__(self):
        self._entries: List[Undo] = []
        self._depth = 0

    @property
    def active(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        return self._depth

    def __len__(self) -> int:
        return len(self._entries)

    def begin(self) -> int:
        """Open a (possibly nested) transaction and return its savepoint."""
        self._depth += 1
        return len(self._entries)

    def record(self, undo: Undo) -> None:
        """Remember how to revert a change. Ignored outside a transaction."""
        if self._depth:
            self._entries.append(undo)

    def rollback(self, mark: int) -> None:
        """Revert every change recorded after `mark`, newest first."""
        undone = len(self._entries) - mark
        while len(self._entries) > mark:
            self._entries.pop()()
        logger.debug(f"Rolled back {undone} change(s) to savepoint {mark}")

    def end(self) -> None:
        """Close the innermost transaction."""
        if self._depth == 0:
            raise RuntimeError("No open transaction")
        self._depth -= 1
        if self._depth == 0:
            self._entries.clear()
