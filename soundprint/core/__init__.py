"""
Core module: fingerprint extraction, similarity scoring and library matching.

Uses lazy imports for modules with heavy dependencies (librosa, soundfile).
"""

# numpy-only modules - import directly
from soundprint.core.models import (
    FEATURE_NAMES,
    PcmBuffer,
    FeatureVector,
    Fingerprint,
    LibraryEntry,
    RankedScore,
    MatchResult,
)
from soundprint.core.spectral import (
    SpectralEstimator,
    DecimatedDFTEstimator,
    FFTEstimator,
    create_spectral_estimator,
)
from soundprint.core.features import FeatureExtractor
from soundprint.core.fingerprint import (
    FingerprintBuilder,
    build_fingerprint,
    create_fingerprint_builder,
)
from soundprint.core.similarity import (
    FEATURE_WEIGHTS,
    SimilarityScorer,
    create_similarity_scorer,
)
from soundprint.core.library import FingerprintRepository, InMemoryLibrary
from soundprint.core.matcher import LibraryMatcher, match
from soundprint.core.store import JSONLibraryStore, create_library_store

__all__ = [
    # Models
    "FEATURE_NAMES",
    "PcmBuffer",
    "FeatureVector",
    "Fingerprint",
    "LibraryEntry",
    "RankedScore",
    "MatchResult",
    # Extraction
    "SpectralEstimator",
    "DecimatedDFTEstimator",
    "FFTEstimator",
    "create_spectral_estimator",
    "FeatureExtractor",
    "FingerprintBuilder",
    "build_fingerprint",
    "create_fingerprint_builder",
    # Matching
    "FEATURE_WEIGHTS",
    "SimilarityScorer",
    "create_similarity_scorer",
    "FingerprintRepository",
    "InMemoryLibrary",
    "LibraryMatcher",
    "match",
    "JSONLibraryStore",
    "create_library_store",
    # Heavy modules (lazy loaded)
    "AudioLoader",
    "create_audio_loader",
    "FingerprintEngine",
    "create_fingerprint_engine",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioLoader", "create_audio_loader"):
        from soundprint.core.loader import AudioLoader, create_audio_loader
        return AudioLoader if name == "AudioLoader" else create_audio_loader
    elif name in ("FingerprintEngine", "create_fingerprint_engine"):
        from soundprint.core.engine import FingerprintEngine, create_fingerprint_engine
        return FingerprintEngine if name == "FingerprintEngine" else create_fingerprint_engine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
