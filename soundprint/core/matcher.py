"""
Library matcher for soundprint.

Linear scan of stored fingerprints against a query: every eligible entry
is scored, results are ranked, and the best one is accepted only if it
reaches the threshold.
"""

import logging
from typing import Callable, Iterable, List, Optional, Tuple, Union

from soundprint.core.models import Fingerprint, LibraryEntry, MatchResult, RankedScore
from soundprint.core.similarity import SimilarityScorer
from soundprint.utils.errors import MatchCancelledError

DEFAULT_THRESHOLD: float = 0.85

EntryLike = Union[LibraryEntry, Tuple[str, Fingerprint, Optional[str]]]


def _as_entry(item: EntryLike) -> LibraryEntry:
    if isinstance(item, LibraryEntry):
        return item
    audio_id, fingerprint, owner_id = item
    return LibraryEntry(audio_id=audio_id, fingerprint=fingerprint, owner_id=owner_id)


class LibraryMatcher:
    """
    Scores a query fingerprint against library entries.

    O(entries x fingerprint comparison); meant for personal libraries of
    tens to a few hundred sounds. The matcher holds no mutable state, so
    concurrent matches are safe as long as each gets its own entry snapshot.
    """

    def __init__(
        self,
        scorer: Optional[SimilarityScorer] = None,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        """
        Args:
            scorer: Anything with ``score(query, reference) -> float``
            threshold: Default acceptance threshold
        """
        self.scorer = scorer or SimilarityScorer()
        self.threshold = threshold
        self.logger = logging.getLogger("matcher")

    def match(
        self,
        query: Fingerprint,
        entries: Iterable[EntryLike],
        threshold: Optional[float] = None,
        owner_filter: Optional[str] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> MatchResult:
        """
        Find the best matching entry.

        Args:
            query: Fingerprint of the unknown clip
            entries: LibraryEntry objects or (audio_id, fingerprint, owner_id) tuples
            threshold: Acceptance threshold (defaults to the matcher's)
            owner_filter: Only consider entries of this owner
            should_cancel: Checked before each entry; True aborts the scan

        Returns:
            MatchResult: best id (None below threshold), best score, ranked scores

        Raises:
            MatchCancelledError: If ``should_cancel`` returned True
        """
        if threshold is None:
            threshold = self.threshold

        candidates = [_as_entry(item) for item in entries]
        if owner_filter is not None:
            candidates = [e for e in candidates if e.owner_id == owner_filter]

        best_id: Optional[str] = None
        best_score = 0.0
        scores: List[RankedScore] = []

        for scanned, entry in enumerate(candidates):
            if should_cancel is not None and should_cancel():
                raise MatchCancelledError(scanned, len(candidates))

            score = self.scorer.score(query, entry.fingerprint)
            scores.append(RankedScore(entry.audio_id, score, entry.owner_id))

            if score > best_score:
                best_score = score
                best_id = entry.audio_id

        # Stable: equal scores keep scan order
        ranked = tuple(sorted(scores, key=lambda r: r.score, reverse=True))

        if ranked:
            self.logger.debug(
                "Top matches: " + ", ".join(
                    f"{r.audio_id}={r.score:.3f}" for r in ranked[:3]
                )
            )

        accepted = best_id if best_score >= threshold else None
        return MatchResult(
            best_id=accepted,
            best_score=best_score,
            ranked=ranked,
            threshold=threshold,
        )


def match(
    query: Fingerprint,
    library: Iterable[EntryLike],
    threshold: float = DEFAULT_THRESHOLD,
    owner_filter: Optional[str] = None,
) -> MatchResult:
    """Match with the default scorer."""
    return LibraryMatcher().match(query, library, threshold, owner_filter)
