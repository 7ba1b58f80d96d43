"""
Classification history — newest-first, prepend-only log of decisions.

Entry 0 is authoritative. Entry 1 is consulted to tell a human override of a
bot decision apart from a freestanding human decision. The value type here is
immutable; the persistent append lives in services.store.
"""
from typing import Iterable, Iterator, Optional, Tuple

from app.lifecycle.base import Author, Classification, ClassificationEntry


class ClassificationHistory:
    """Immutable sequence of ClassificationEntry, newest first."""

    __slots__ = ('_entries',)

    def __init__(self, entries: Iterable[ClassificationEntry] = ()):
        self._entries: Tuple[ClassificationEntry, ...] = tuple(entries)

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[ClassificationEntry]:
        return iter(self._entries)

    def __getitem__(self, index) -> ClassificationEntry:
        return self._entries[index]

    def __eq__(self, other):
        if not isinstance(other, ClassificationHistory):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self):
        return f'ClassificationHistory({list(self._entries)!r})'

    def prepend(self, entry: ClassificationEntry) -> 'ClassificationHistory':
        """Return a new history with ``entry`` as the authoritative decision."""
        current = self.current()
        if current is not None and entry.timestamp < current.timestamp:
            raise ValueError(
                f"Entry at {entry.timestamp.isoformat()} is older than the current "
                f"entry at {current.timestamp.isoformat()}"
            )
        return ClassificationHistory((entry,) + self._entries)

    def current(self) -> Optional[ClassificationEntry]:
        return self._entries[0] if self._entries else None

    def current_classification(self) -> Optional[Classification]:
        entry = self.current()
        return entry.classification if entry else None

    def previous(self) -> Optional[ClassificationEntry]:
        return self._entries[1] if len(self._entries) > 1 else None

    def previous_author(self) -> Optional[Author]:
        entry = self.previous()
        return entry.author if entry else None

    def is_override(self) -> bool:
        """Current entry is a human decision replacing a bot decision."""
        current = self.current()
        return (
            current is not None
            and current.author is Author.HUMAN
            and self.previous_author() is Author.BOT
        )

    def has_human_entry(self) -> bool:
        return any(e.author is Author.HUMAN for e in self._entries)

    def bot_entry(self) -> Optional[ClassificationEntry]:
        """Most recent bot decision, if any."""
        for entry in self._entries:
            if entry.author is Author.BOT:
                return entry
        return None

    def to_list(self):
        return [e.to_dict() for e in self._entries]
