"""
Similarity scorer for soundprint.

Compares two fingerprints frame by frame with a fixed per-feature weighting
and a small search over time offsets. Scores are in [0, 1]; identical
fingerprints score 1.0.
"""

import math
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from soundprint.core.models import FEATURE_NAMES, Fingerprint
from soundprint.utils.errors import ConfigurationError

# Frequency bands carry 79% of the weight; they separate distinct
# recordings far better than the shape descriptors.
FEATURE_WEIGHTS: Dict[str, float] = {
    "energy": 0.03,
    "zcr": 0.05,
    "spectralCentroid": 0.05,
    "spectralFlux": 0.04,
    "spectralRolloff": 0.04,
    "subBass": 0.12,
    "bass": 0.14,
    "lowMid": 0.13,
    "mid": 0.15,
    "highMid": 0.11,
    "presence": 0.08,
    "brilliance": 0.06,
}

DECAY: float = 1.5
DIFF_FLOOR: float = 0.001
MAX_OFFSET: int = 10
OFFSET_FRACTION: float = 0.05
OFFSET_STEP: int = 5


def validate_weights(weights: Mapping[str, float]) -> None:
    """
    Check a weight table covers exactly the twelve features and sums to 1.0.

    Raises:
        ConfigurationError: If the table is malformed
    """
    missing = set(FEATURE_NAMES) - set(weights)
    unknown = set(weights) - set(FEATURE_NAMES)
    if missing or unknown:
        raise ConfigurationError(
            f"Weight table mismatch (missing: {sorted(missing)}, unknown: {sorted(unknown)})",
            config_key="matching.weights"
        )
    total = math.fsum(weights.values())
    if not math.isclose(total, 1.0, rel_tol=0.0, abs_tol=1e-9):
        raise ConfigurationError(
            f"Feature weights must sum to 1.0, got {total!r}",
            config_key="matching.weights"
        )


class SimilarityScorer:
    """
    Weighted, offset-tolerant fingerprint comparison.

    Per frame pair and feature:
        d = |v1 - v2| / max(|v1|, |v2|, 0.001)
        similarity = exp(-decay * d)
    weighted over the features and averaged over the aligned frames.
    The final score is the best over the tested offsets.
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        decay: float = DECAY,
        max_offset: int = MAX_OFFSET,
        offset_fraction: float = OFFSET_FRACTION,
        offset_step: int = OFFSET_STEP,
    ):
        weights = dict(FEATURE_WEIGHTS if weights is None else weights)
        validate_weights(weights)
        if offset_step < 1:
            raise ConfigurationError(
                f"offset_step must be positive, got {offset_step}",
                config_key="matching.offset_step"
            )

        self.weights = weights
        self.decay = decay
        self.max_offset = max_offset
        self.offset_fraction = offset_fraction
        self.offset_step = offset_step
        self._weight_vector = np.array(
            [weights[name] for name in FEATURE_NAMES], dtype=np.float64
        )

    def offsets(self, len1: int, len2: int) -> List[int]:
        """
        Offsets to evaluate, zero first.

        The rest step from -max_offset to +max_offset by ``offset_step``,
        where max_offset = min(10, floor(0.05 * shorter length)).
        """
        limit = min(self.max_offset, math.floor(self.offset_fraction * min(len1, len2)))
        candidates = [0]
        for offset in range(-limit, limit + 1, self.offset_step):
            if offset != 0:
                candidates.append(offset)
        return candidates

    def score_at_offset(self, fp1: Fingerprint, fp2: Fingerprint, offset: int) -> float:
        """
        Mean weighted frame similarity with ``fp1`` shifted by ``offset`` windows.

        A positive offset skips the first ``offset`` windows of ``fp1``; a
        negative one skips the first ``-offset`` windows of ``fp2``.
        No overlap scores 0.
        """
        length = min(len(fp1), len(fp2)) - abs(offset)
        if length <= 0:
            return 0.0

        start1 = max(0, offset)
        start2 = max(0, -offset)
        a = fp1.matrix[start1:start1 + length]
        b = fp2.matrix[start2:start2 + length]

        scale = np.maximum(np.maximum(np.abs(a), np.abs(b)), DIFF_FLOOR)
        similarity = np.exp(-self.decay * (np.abs(a - b) / scale))
        per_frame = similarity @ self._weight_vector
        # Weights sum to 1.0 only up to rounding
        return min(1.0, float(np.sum(per_frame) / length))

    def best_alignment(self, fp1: Fingerprint, fp2: Fingerprint) -> Tuple[float, int]:
        """
        Best score and the offset that produced it.

        Ties keep the earlier offset, so identical clips report offset 0.
        """
        best_score = 0.0
        best_offset = 0
        for index, offset in enumerate(self.offsets(len(fp1), len(fp2))):
            score = self.score_at_offset(fp1, fp2, offset)
            if index == 0 or score > best_score:
                best_score = score
                best_offset = offset
        return best_score, best_offset

    def score(self, fp1: Fingerprint, fp2: Fingerprint) -> float:
        """Similarity in [0, 1]; 0 when either fingerprint is empty."""
        return self.best_alignment(fp1, fp2)[0]


def create_similarity_scorer(config: Optional[Dict[str, object]] = None) -> SimilarityScorer:
    """Factory function to create SimilarityScorer from the ``matching`` config section."""
    if config is None:
        config = {}

    return SimilarityScorer(
        weights=config.get('weights'),
        decay=config.get('decay', DECAY),
        max_offset=config.get('max_offset', MAX_OFFSET),
        offset_fraction=config.get('offset_fraction', OFFSET_FRACTION),
        offset_step=config.get('offset_step', OFFSET_STEP),
    )
