# -*- encoding: utf-8 -*-
"""
Emitter Sequencer - per-emitter monotonically increasing sequence numbers.

Publishing side only. The first message from an emitter gets sequence 1.
"""

import logging
import threading
from typing import Any, Dict, Optional

from .journal import Journal

logger = logging.getLogger(__name__)


class EmitterSequencer:
    """Next-sequence counters keyed by opaque emitter identity."""

    def __init__(self):
        self._next: Dict[bytes, int] = {}
        self._lock = threading.Lock()
        self.journal: Optional[Journal] = None

    def next_sequence(self, emitter: bytes) -> int:
        """Assign and return the next sequence for `emitter`."""
        emitter = bytes(emitter)
        with self._lock:
            sequence = self._next.get(emitter)
            previous = sequence
            if sequence is None:
                sequence = 1
                logger.info(f"New emitter {emitter.hex()}")
            self._next[emitter] = sequence + 1
        if self.journal is not None:
            self.journal.record(lambda: self._reset(emitter, previous))
        return sequence

    def _reset(self, emitter: bytes, previous: Optional[int]) -> None:
        with self._lock:
            if previous is None:
                self._next.pop(emitter, None)
            else:
                self._next[emitter] = previous

    def peek(self, emitter: bytes) -> int:
        """Sequence the next publish from `emitter` would receive."""
        with self._lock:
            return self._next.get(bytes(emitter), 1)

    def clone(self) -> "EmitterSequencer":
        other = EmitterSequencer()
        with self._lock:
            other._next = dict(self._next)
        return other

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {e.hex(): n for e, n in self._next.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmitterSequencer":
        seq = cls()
        seq._next = {bytes.fromhex(e): int(n) for e, n in data.items()}
        return seq
