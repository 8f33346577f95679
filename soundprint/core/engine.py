"""
Fingerprint engine for soundprint.

Service-layer façade that wires decoding, fingerprinting, the library and
its persistence, and matching together.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from soundprint.core.fingerprint import FingerprintBuilder, create_fingerprint_builder
from soundprint.core.library import InMemoryLibrary
from soundprint.core.loader import AudioLoader, create_audio_loader
from soundprint.core.matcher import LibraryMatcher
from soundprint.core.models import Fingerprint, LibraryEntry, MatchResult
from soundprint.core.similarity import create_similarity_scorer
from soundprint.core.store import JSONLibraryStore, create_library_store
from soundprint.utils.errors import AudioDecodeError, StoreError
from soundprint.utils.logging import create_logger_with_context

PathLike = Union[str, Path]


class FingerprintEngine:
    """
    Teaches, identifies, lists and deletes sounds.

    Design:
    - Dependency Injection: loader, builder, library, matcher and store are injected
    - Parallel Execution: batch fingerprinting runs on a thread pool
    - Persistence: every successful teach/delete is written through to the store
    """

    def __init__(
        self,
        loader: AudioLoader,
        builder: FingerprintBuilder,
        library: InMemoryLibrary,
        matcher: LibraryMatcher,
        store: Optional[JSONLibraryStore] = None,
        max_workers: int = 4,
        decode_retries: int = 1,
    ):
        """
        Args:
            loader: AudioLoader instance
            builder: FingerprintBuilder instance
            library: Library the matcher scans
            matcher: LibraryMatcher instance
            store: Optional persistence for the library
            max_workers: Max parallel workers for batch fingerprinting
            decode_retries: Extra decode attempts after an AudioDecodeError
        """
        self.loader = loader
        self.builder = builder
        self.library = library
        self.matcher = matcher
        self.store = store
        self.decode_retries = max(0, decode_retries)
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.logger = logging.getLogger('engine')
        self._persist_lock = threading.Lock()

    def load_library(self) -> int:
        """Populate the library from the store; returns the entry count."""
        if self.store is None:
            return len(self.library)
        count = self.store.load_into(self.library)
        self.logger.info(f"Loaded {count} fingerprints from library")
        return count

    def _persist(self, before: Sequence[LibraryEntry]) -> None:
        """
        Write the library through to the store; call with ``_persist_lock`` held.

        If the save fails the library is restored to ``before`` (the snapshot
        taken ahead of the mutation) so memory and disk stay in agreement.

        Raises:
            StoreError: The library file could not be written
        """
        if self.store is None:
            return
        try:
            self.store.save(self.library.scan_all())
        except StoreError:
            self.library.replace_all(before)
            self.logger.error("Library save failed, change rolled back")
            raise

    def _decode(self, file_path: Path):
        attempts = self.decode_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.loader.load(file_path)
            except AudioDecodeError as e:
                if attempt == attempts:
                    raise
                self.logger.warning(
                    f"Decode attempt {attempt}/{attempts} failed for {file_path.name}: {e}"
                )

    def fingerprint_samples(self, samples: Optional[np.ndarray], sample_rate: int) -> Fingerprint:
        """Fingerprint an already decoded buffer."""
        return self.builder.build(samples, sample_rate)

    def fingerprint_file(self, file_path: PathLike) -> Fingerprint:
        """
        Decode and fingerprint an audio file.

        Raises:
            AudioDecodeError: Decoding failed after retries
        """
        file_path = Path(file_path)
        start_time = time.time()

        buffer = self._decode(file_path)
        fingerprint = self.builder.build_from_buffer(buffer)

        self.logger.info(
            f"Fingerprinted {file_path.name}: {len(fingerprint)} windows "
            f"in {time.time() - start_time:.3f}s"
        )
        return fingerprint

    def fingerprint_batch(self, file_paths: Sequence[PathLike]) -> List[Optional[Fingerprint]]:
        """
        Fingerprint several files in parallel.

        Returns:
            Fingerprints in input order; None where a file failed
        """
        paths = [Path(p) for p in file_paths]
        self.logger.info(f"Fingerprinting batch of {len(paths)} files")

        futures = {
            self.executor.submit(self.fingerprint_file, path): index
            for index, path in enumerate(paths)
        }

        results: List[Optional[Fingerprint]] = [None] * len(paths)
        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                self.logger.error(f"Failed to fingerprint {paths[index]}: {e}")

        return results

    def teach(
        self,
        file_path: PathLike,
        audio_id: str,
        owner_id: Optional[str] = None,
    ) -> LibraryEntry:
        """
        Fingerprint a reference recording and store it under ``audio_id``.

        An existing entry with the same id is replaced.

        Raises:
            AudioDecodeError: Decoding failed after retries
            StoreError: The library could not be saved; the change is rolled back
        """
        fingerprint = self.fingerprint_file(file_path)
        entry = LibraryEntry(
            audio_id=audio_id,
            fingerprint=fingerprint,
            owner_id=owner_id,
            timestamp=datetime.now(timezone.utc),
        )
        # Mutation and save under one lock so saves land in mutation order
        with self._persist_lock:
            before = self.library.scan_all()
            self.library.put(entry)
            self._persist(before)

        self.logger.info(f"Stored fingerprint for: {audio_id} (user: {owner_id})")
        return entry

    def identify(
        self,
        file_path: PathLike,
        threshold: Optional[float] = None,
        owner_id: Optional[str] = None,
        match_own_only: bool = False,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> MatchResult:
        """
        Match an unknown recording against the library.

        Args:
            file_path: Recording to identify
            threshold: Acceptance threshold (matcher default when None)
            owner_id: Caller's owner id
            match_own_only: Restrict the scan to ``owner_id``'s entries
            should_cancel: Optional per-entry cancellation check

        Returns:
            MatchResult (``best_id`` None when nothing reached the threshold)
        """
        log = create_logger_with_context('engine', {'owner_id': owner_id})
        query = self.fingerprint_file(file_path)

        owner_filter = owner_id if (match_own_only and owner_id) else None
        result = self.matcher.match(
            query,
            self.library.list_by_owner(owner_filter),
            threshold=threshold,
            owner_filter=owner_filter,
            should_cancel=should_cancel,
        )

        if result.matched:
            log.info(f"Match: {result.best_id} ({result.best_score:.1%} confidence)")
        else:
            log.info(
                f"No match for {Path(file_path).name} "
                f"(best score {result.best_score:.3f} < {result.threshold})"
            )
        return result

    def list_entries(self, owner_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Summaries of stored entries, optionally for one owner."""
        return [entry.summary() for entry in self.library.list_by_owner(owner_id)]

    def delete(self, audio_id: str) -> bool:
        """
        Delete an entry; False if it did not exist.

        Raises:
            StoreError: The library could not be saved; the entry is restored
        """
        with self._persist_lock:
            before = self.library.scan_all()
            deleted = self.library.delete(audio_id)
            if deleted:
                self._persist(before)

        if deleted:
            self.logger.info(f"Fingerprint deleted: {audio_id}")
        else:
            self.logger.warning(f"Fingerprint not found: {audio_id}")
        return deleted

    def shutdown(self) -> None:
        """Shutdown the executor."""
        self.executor.shutdown(wait=True)


def create_fingerprint_engine(
    config: Optional[Dict[str, Any]] = None,
    load_library: bool = True,
) -> FingerprintEngine:
    """
    Factory function to create a fully wired FingerprintEngine.

    Args:
        config: Configuration dict (see utils.config.get_default_config)
        load_library: Read the persisted library immediately

    Returns:
        FingerprintEngine: Ready to use
    """
    if config is None:
        config = {}

    audio_config = config.get('audio', {})
    matching_config = config.get('matching', {})

    engine = FingerprintEngine(
        loader=create_audio_loader(audio_config),
        builder=create_fingerprint_builder(config.get('fingerprint', {})),
        library=InMemoryLibrary(),
        matcher=LibraryMatcher(
            scorer=create_similarity_scorer(matching_config),
            threshold=matching_config.get('threshold', 0.85),
        ),
        store=create_library_store(config.get('library', {})),
        max_workers=config.get('performance', {}).get('max_workers', 4),
        decode_retries=audio_config.get('decode_retries', 1),
    )

    if load_library:
        engine.load_library()

    return engine
