"""
JSON persistence for the fingerprint library.

On disk the library is one JSON object keyed by audio id:

    {
      "doorbell": {
        "fingerprint": [{"energy": 0.01, "zcr": 0.05, ...}, ...],
        "ownerId": "johns-iphone",
        "timestamp": "2026-01-01T00:00:00+00:00"
      }
    }

Older files written as a list of ``[audio_id, data]`` pairs with the owner
under ``userId``, or with a bare fingerprint list instead of the ``data``
object, are still readable.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from soundprint.core.library import InMemoryLibrary
from soundprint.core.models import Fingerprint, LibraryEntry
from soundprint.utils.errors import StoreError


class JSONLibraryStore:
    """Reads and writes library entries as a flat JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logging.getLogger("store")

    def save(self, entries: Iterable[LibraryEntry]) -> None:
        """
        Write all entries, replacing the file atomically.

        Raises:
            StoreError: If the file cannot be written
        """
        payload = {entry.audio_id: self._encode_entry(entry) for entry in entries}

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StoreError(
                f"Failed to write fingerprint library: {e}", path=str(self.path)
            ) from e

        self.logger.debug(f"Saved {len(payload)} fingerprints to {self.path}")

    def load(self) -> List[LibraryEntry]:
        """
        Read all entries; a missing file is an empty library.

        Raises:
            StoreError: If the file is unreadable or malformed
        """
        if not self.path.exists():
            self.logger.info(f"No fingerprint library at {self.path}, starting empty")
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(
                f"Failed to read fingerprint library: {e}", path=str(self.path)
            ) from e

        if isinstance(raw, dict):
            items = list(raw.items())
        elif isinstance(raw, list):
            items = raw
        else:
            raise StoreError(
                f"Unexpected library layout: {type(raw).__name__}", path=str(self.path)
            )

        entries = []
        for index, item in enumerate(items):
            try:
                audio_id, data = item
                entries.append(self._decode_entry(str(audio_id), data))
            except (TypeError, ValueError, AttributeError) as e:
                raise StoreError(
                    f"Malformed library entry #{index}: {e}", path=str(self.path)
                ) from e

        self.logger.info(f"Loaded {len(entries)} fingerprints from {self.path}")
        return entries

    def load_into(self, library: InMemoryLibrary) -> int:
        """Replace the library's content with the stored entries."""
        entries = self.load()
        library.replace_all(entries)
        return len(entries)

    @staticmethod
    def _encode_entry(entry: LibraryEntry) -> Dict[str, Any]:
        return {
            'fingerprint': entry.fingerprint.to_list(),
            'ownerId': entry.owner_id,
            'timestamp': entry.timestamp.isoformat() if entry.timestamp else None,
        }

    @staticmethod
    def _decode_entry(audio_id: str, data: Any) -> LibraryEntry:
        if isinstance(data, list):
            # Legacy: bare fingerprint without owner metadata
            return LibraryEntry(
                audio_id=audio_id,
                fingerprint=Fingerprint.from_list(data),
                owner_id=None,
                timestamp=None,
            )

        return LibraryEntry(
            audio_id=audio_id,
            fingerprint=Fingerprint.from_list(data.get('fingerprint') or []),
            # Files from the first backend name the owner "userId"
            owner_id=data.get('ownerId', data.get('userId')),
            timestamp=_parse_timestamp(data.get('timestamp')),
        )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # JavaScript's toISOString() ends with "Z"
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def create_library_store(config: Optional[Dict[str, Any]] = None) -> Optional[JSONLibraryStore]:
    """Factory function; None when the ``library`` section has no path."""
    if config is None:
        config = {}
    path = config.get('path')
    if not path:
        return None
    return JSONLibraryStore(path)
