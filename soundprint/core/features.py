"""
Per-window feature extractor for soundprint.

Computes the twelve scalar descriptors of a FeatureVector from one tapered
window and its spectrum.
"""

import math
from typing import Dict, Optional, Tuple

import numpy as np

from soundprint.core.models import FeatureVector

ROLLOFF_PERCENT: float = 0.85

# (low Hz, high Hz) per band, in FeatureVector order
FREQUENCY_BANDS: Dict[str, Tuple[float, float]] = {
    'sub_bass': (20.0, 60.0),
    'bass': (60.0, 250.0),
    'low_mid': (250.0, 500.0),
    'mid': (500.0, 2000.0),
    'high_mid': (2000.0, 4000.0),
    'presence': (4000.0, 6000.0),
    'brilliance': (6000.0, 20000.0),
}


class FeatureExtractor:
    """
    Stateless feature extraction.

    All methods are static and pure; degenerate input (empty window,
    silent spectrum, empty band) yields 0 rather than an error.
    """

    @staticmethod
    def extract(
        window: np.ndarray,
        spectrum: np.ndarray,
        sample_rate: int,
        previous_spectrum: Optional[np.ndarray] = None,
    ) -> FeatureVector:
        """
        Extract all features of one window.

        Args:
            window: Tapered time-domain samples
            spectrum: Magnitude spectrum of ``window``
            sample_rate: Sample rate of the source clip (Hz)
            previous_spectrum: Spectrum of the preceding window, None for the first

        Returns:
            FeatureVector: Descriptors in canonical order
        """
        nyquist = sample_rate / 2.0

        bands = {
            name: FeatureExtractor.band_energy(spectrum, low, high, nyquist)
            for name, (low, high) in FREQUENCY_BANDS.items()
        }

        return FeatureVector(
            energy=FeatureExtractor.energy(window),
            zcr=FeatureExtractor.zero_crossing_rate(window),
            spectral_centroid=FeatureExtractor.spectral_centroid(spectrum, nyquist),
            spectral_flux=(
                FeatureExtractor.spectral_flux(spectrum, previous_spectrum)
                if previous_spectrum is not None else 0.0
            ),
            spectral_rolloff=FeatureExtractor.spectral_rolloff(spectrum, nyquist),
            **bands,
        )

    @staticmethod
    def energy(window: np.ndarray) -> float:
        """Root-mean-square amplitude."""
        if len(window) == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(window, dtype=np.float64))))

    @staticmethod
    def zero_crossing_rate(window: np.ndarray) -> float:
        """Sign changes between adjacent samples divided by window length (0 counts as positive)."""
        n = len(window)
        if n == 0:
            return 0.0
        non_negative = np.asarray(window) >= 0
        crossings = np.count_nonzero(non_negative[1:] != non_negative[:-1])
        return float(crossings / n)

    @staticmethod
    def spectral_centroid(spectrum: np.ndarray, nyquist: float) -> float:
        """Amplitude-weighted mean frequency in Hz."""
        num_bins = len(spectrum)
        if num_bins == 0:
            return 0.0
        total = float(np.sum(spectrum))
        if total <= 0:
            return 0.0
        frequencies = np.arange(num_bins, dtype=np.float64) / num_bins * nyquist
        return float(np.dot(frequencies, spectrum)) / total

    @staticmethod
    def spectral_flux(spectrum: np.ndarray, previous: np.ndarray) -> float:
        """RMS of the bin-wise change from the previous spectrum."""
        length = min(len(spectrum), len(previous))
        if length == 0:
            return 0.0
        diff = np.asarray(spectrum[:length], dtype=np.float64) - previous[:length]
        return float(np.sqrt(np.mean(diff * diff)))

    @staticmethod
    def spectral_rolloff(
        spectrum: np.ndarray,
        nyquist: float,
        percent: float = ROLLOFF_PERCENT,
    ) -> float:
        """Frequency where cumulative magnitude first reaches ``percent`` of the total."""
        num_bins = len(spectrum)
        if num_bins == 0:
            return nyquist
        threshold = percent * float(np.sum(spectrum))
        reached = np.flatnonzero(np.cumsum(spectrum, dtype=np.float64) >= threshold)
        if reached.size == 0:
            return nyquist
        return float(reached[0]) / num_bins * nyquist

    @staticmethod
    def band_bins(
        low_hz: float,
        high_hz: float,
        nyquist: float,
        num_bins: int,
    ) -> Tuple[int, int]:
        """Half-open bin range [start, end) covering a frequency band."""
        if nyquist <= 0:
            return 0, 0
        start = math.floor(low_hz / nyquist * num_bins + 0.5)
        end = math.floor(high_hz / nyquist * num_bins + 0.5)
        return max(0, start), min(end, num_bins)

    @staticmethod
    def band_energy(
        spectrum: np.ndarray,
        low_hz: float,
        high_hz: float,
        nyquist: float,
    ) -> float:
        """sqrt(sum of squared magnitudes / (bin count + 1)) over the band; 0 when empty."""
        start, end = FeatureExtractor.band_bins(low_hz, high_hz, nyquist, len(spectrum))
        if start >= end:
            return 0.0
        band = np.asarray(spectrum[start:end], dtype=np.float64)
        return float(np.sqrt(np.sum(band * band) / (end - start + 1)))
