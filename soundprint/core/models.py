"""
Core data models for soundprint.

Immutable domain models for PCM buffers, per-window feature vectors,
fingerprints, library entries and match results.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

# Wire names in canonical order. Stored fingerprints and the weight table
# in similarity.py are keyed by these.
FEATURE_NAMES: Tuple[str, ...] = (
    "energy",
    "zcr",
    "spectralCentroid",
    "spectralFlux",
    "spectralRolloff",
    "subBass",
    "bass",
    "lowMid",
    "mid",
    "highMid",
    "presence",
    "brilliance",
)

_array_lock = threading.Lock()


@dataclass(frozen=True)
class PcmBuffer:
    """Decoded mono audio handed to the fingerprint builder."""

    samples: np.ndarray  # float32, range [-1, 1]
    sample_rate: int

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / self.sample_rate


@dataclass(frozen=True)
class FeatureVector:
    """Scalar descriptors of one analysis window."""

    energy: float = 0.0
    zcr: float = 0.0
    spectral_centroid: float = 0.0  # Hz
    spectral_flux: float = 0.0
    spectral_rolloff: float = 0.0  # Hz
    sub_bass: float = 0.0
    bass: float = 0.0
    low_mid: float = 0.0
    mid: float = 0.0
    high_mid: float = 0.0
    presence: float = 0.0
    brilliance: float = 0.0

    def as_tuple(self) -> Tuple[float, ...]:
        """Values in FEATURE_NAMES order."""
        return tuple(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> Dict[str, float]:
        """Convert to the camelCase wire representation."""
        return dict(zip(FEATURE_NAMES, self.as_tuple()))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeatureVector":
        """Build from the wire representation; missing or null fields read as 0."""
        values = [float(data.get(name) or 0.0) for name in FEATURE_NAMES]
        return cls(*values)


@dataclass(frozen=True)
class Fingerprint:
    """
    Ordered feature vectors of a clip, one per analysis window.

    Immutable once built. The numeric matrix used by the scorer is
    computed lazily and cached.
    """

    vectors: Tuple[FeatureVector, ...] = ()

    _matrix: Optional[np.ndarray] = field(
        default=None, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        if not isinstance(self.vectors, tuple):
            object.__setattr__(self, "vectors", tuple(self.vectors))

    def __len__(self) -> int:
        return len(self.vectors)

    def __iter__(self) -> Iterator[FeatureVector]:
        return iter(self.vectors)

    def __getitem__(self, index: int) -> FeatureVector:
        return self.vectors[index]

    @property
    def is_empty(self) -> bool:
        return len(self.vectors) == 0

    @property
    def matrix(self) -> np.ndarray:
        """Feature values as a read-only (n_windows, 12) float64 array (thread-safe)."""
        if self._matrix is None:
            with _array_lock:
                if self._matrix is None:
                    matrix = np.array(
                        [v.as_tuple() for v in self.vectors], dtype=np.float64
                    ).reshape(len(self.vectors), len(FEATURE_NAMES))
                    matrix.setflags(write=False)
                    object.__setattr__(self, "_matrix", matrix)
        return self._matrix

    def to_list(self) -> List[Dict[str, float]]:
        """Convert to a JSON-serializable list of feature dicts."""
        return [v.to_dict() for v in self.vectors]

    @classmethod
    def from_list(cls, data: Sequence[Mapping[str, Any]]) -> "Fingerprint":
        return cls(tuple(FeatureVector.from_dict(item) for item in data))


@dataclass(frozen=True)
class LibraryEntry:
    """A taught sound: its identifier, fingerprint and owner metadata."""

    audio_id: str
    fingerprint: Fingerprint
    owner_id: Optional[str] = None
    timestamp: Optional[datetime] = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def summary(self) -> Dict[str, Any]:
        """Listing view without the fingerprint payload."""
        return {
            'audioId': self.audio_id,
            'ownerId': self.owner_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'fingerprintLength': len(self.fingerprint),
        }


@dataclass(frozen=True)
class RankedScore:
    """One compared library entry."""

    audio_id: str
    score: float
    owner_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'audioId': self.audio_id,
            'score': self.score,
            'ownerId': self.owner_id if self.owner_id is not None else 'unknown',
        }


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching a query against a library.

    ``best_id`` is None when nothing reached the threshold; ``best_score``
    still carries the highest score seen so callers can report near misses.
    """

    best_id: Optional[str]
    best_score: float
    ranked: Tuple[RankedScore, ...] = ()
    threshold: float = 0.85

    def __post_init__(self) -> None:
        if self.best_id is not None and self.best_score < self.threshold:
            raise ValueError(
                f"best_id set with score {self.best_score} below threshold {self.threshold}"
            )

    @property
    def matched(self) -> bool:
        return self.best_id is not None

    def top(self, n: int = 3) -> Tuple[RankedScore, ...]:
        return self.ranked[:n]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'match': self.best_id,
            'confidence': self.best_score,
            'confidencePercent': f"{self.best_score * 100:.1f}%",
            'threshold': self.threshold,
            'allScores': [r.to_dict() for r in self.ranked],
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)
