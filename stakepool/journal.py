"""
journal.py - Undo journal for fail-atomic execution

Every write to protocol state made while a journal is open records how to
undo it, the way a UnitStateChange carries the old state next to the new
one. Rolling back replays the undo entries newest first down to a
savepoint, so undoing a failed operation costs what that operation touched,
never the size of the state.

Savepoints nest: an inner failure rolls back to the inner savepoint and the
outer operation keeps its own earlier writes.

Example:
    journal = Journal()
    balances = JournaledDict(journal, {"alice": 10})

    journal.open()
    mark = journal.savepoint()
    balances["alice"] = 0
    balances["bob"] = 10
    journal.rollback(mark)
    journal.close()

    # balances == {"alice": 10}
"""

from __future__ import annotations
from typing import Any, Callable, List


_MISSING = object()


class Journal:
    """Stack of undo callables, recorded only while open."""

    def __init__(self):
        self._entries: List[Callable[[], Any]] = []
        self._recording = False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def recording(self) -> bool:
        return self._recording

    def open(self) -> None:
        self._entries.clear()
        self._recording = True

    def close(self) -> None:
        """Stop recording and forget every entry; what was written stays."""
        self._entries.clear()
        self._recording = False

    def record(self, undo: Callable[[], Any]) -> None:
        if self._recording:
            self._entries.append(undo)

    def savepoint(self) -> int:
        return len(self._entries)

    def rollback(self, savepoint: int) -> None:
        """Undo every entry recorded after ``savepoint``, newest first."""
        recording, self._recording = self._recording, False
        try:
            while len(self._entries) > savepoint:
                self._entries.pop()()
        finally:
            self._recording = recording


class JournaledDict(dict):
    """
    dict whose item writes are recorded on a Journal.

    Values are expected to be immutable (ints, frozen dataclasses); a value
    mutated in place is not journaled.
    """

    __slots__ = ("journal",)

    def __init__(self, journal: Journal, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.journal = journal

    def _remember(self, key) -> None:
        if self.journal.recording:
            old = dict.get(self, key, _MISSING)
            self.journal.record(lambda: self._reset(key, old))

    def _reset(self, key, old) -> None:
        if old is _MISSING:
            dict.pop(self, key, None)
        else:
            dict.__setitem__(self, key, old)

    def __setitem__(self, key, value) -> None:
        self._remember(key)
        super().__setitem__(key, value)

    def __delitem__(self, key) -> None:
        self._remember(key)
        super().__delitem__(key)

    def pop(self, key, *default):
        if key in self:
            self._remember(key)
        return super().pop(key, *default)

    def setdefault(self, key, default=None):
        if key not in self:
            self[key] = default
        return dict.__getitem__(self, key)

    def update(self, *args, **kwargs) -> None:
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def popitem(self):
        key = next(reversed(self))
        value = dict.__getitem__(self, key)
        del self[key]
        return key, value

    def clear(self) -> None:
        for key in list(self):
            del self[key]
