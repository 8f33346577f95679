"""
Fingerprint library for soundprint.

Repository protocol the matcher scans, plus a thread-safe in-memory
implementation.
"""

import logging
import threading
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from soundprint.core.models import LibraryEntry
from soundprint.utils.errors import EntryNotFoundError


@runtime_checkable
class FingerprintRepository(Protocol):
    """
    Storage for taught sounds.

    Matching depends only on ``scan_all`` and ``list_by_owner``; both must
    return a consistent view that later mutations cannot change.
    """

    def get(self, audio_id: str) -> LibraryEntry:
        ...

    def put(self, entry: LibraryEntry) -> None:
        ...

    def delete(self, audio_id: str) -> bool:
        ...

    def list_by_owner(self, owner_id: Optional[str]) -> Tuple[LibraryEntry, ...]:
        ...

    def scan_all(self) -> Tuple[LibraryEntry, ...]:
        ...


class InMemoryLibrary:
    """
    Thread-safe in-memory library keyed by audio id.

    Writers take the lock and swap in a new snapshot (copy-on-write);
    readers grab the current snapshot reference, so a scan never sees a
    half-applied insert or delete. Entries are immutable.
    """

    def __init__(self, entries: Optional[Iterable[LibraryEntry]] = None):
        self._lock = threading.RLock()
        self._entries: Dict[str, LibraryEntry] = {}
        self._snapshot: Tuple[LibraryEntry, ...] = ()
        self.logger = logging.getLogger("library")

        if entries:
            for entry in entries:
                self._entries[entry.audio_id] = entry
            self._refresh_snapshot()

    def _refresh_snapshot(self) -> None:
        self._snapshot = tuple(self._entries.values())

    def get(self, audio_id: str) -> LibraryEntry:
        """
        Raises:
            EntryNotFoundError: Unknown id
        """
        with self._lock:
            try:
                return self._entries[audio_id]
            except KeyError:
                raise EntryNotFoundError(audio_id) from None

    def put(self, entry: LibraryEntry) -> None:
        """Insert or replace an entry."""
        with self._lock:
            replaced = entry.audio_id in self._entries
            # A replaced id keeps its position in scan order
            self._entries[entry.audio_id] = entry
            self._refresh_snapshot()
        self.logger.debug(
            f"{'Replaced' if replaced else 'Stored'} fingerprint: {entry.audio_id} "
            f"(owner: {entry.owner_id})"
        )

    def delete(self, audio_id: str) -> bool:
        """Remove an entry; False if it did not exist."""
        with self._lock:
            if audio_id not in self._entries:
                return False
            del self._entries[audio_id]
            self._refresh_snapshot()
        self.logger.debug(f"Deleted fingerprint: {audio_id}")
        return True

    def replace_all(self, entries: Iterable[LibraryEntry]) -> None:
        """Swap the whole content in one step (used when loading from disk)."""
        new_entries = {entry.audio_id: entry for entry in entries}
        with self._lock:
            self._entries = new_entries
            self._refresh_snapshot()

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._refresh_snapshot()

    def list_by_owner(self, owner_id: Optional[str]) -> Tuple[LibraryEntry, ...]:
        """Entries of one owner, or all entries when ``owner_id`` is None."""
        snapshot = self._snapshot
        if owner_id is None:
            return snapshot
        return tuple(entry for entry in snapshot if entry.owner_id == owner_id)

    def scan_all(self) -> Tuple[LibraryEntry, ...]:
        """Immutable snapshot of every entry in insertion order."""
        return self._snapshot

    def ids(self) -> List[str]:
        return [entry.audio_id for entry in self._snapshot]

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, audio_id: str) -> bool:
        with self._lock:
            return audio_id in self._entries

    def __iter__(self) -> Iterator[LibraryEntry]:
        return iter(self._snapshot)
