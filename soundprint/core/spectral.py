"""
Windowing and spectral estimation.

Slices a mono PCM buffer into fixed-length analysis windows, tapers each
with a Hann window and estimates a coarse magnitude spectrum.

The default estimator is a decimated direct DFT: only the first
``min(128, N // 2)`` bins are computed and only every 4th sample takes part
in the sum. Stored fingerprints depend on this exact arithmetic, so any
other estimator produces fingerprints that are not score-compatible.
"""

from typing import Iterator, Protocol, Tuple, runtime_checkable

import numpy as np

MAX_BINS: int = 128
DECIMATION: int = 4


@runtime_checkable
class SpectralEstimator(Protocol):
    """
    Maps one tapered window to a non-negative magnitude spectrum.

    The returned bins cover 0 to Nyquist; feature extraction only relies on
    the bin count, never on the window length.
    """

    @property
    def name(self) -> str:
        ...

    def estimate(self, window: np.ndarray) -> np.ndarray:
        ...


def num_bins_for(window_size: int) -> int:
    """Number of spectrum bins produced for a window of ``window_size`` samples."""
    return min(MAX_BINS, window_size // 2)


class DecimatedDFTEstimator:
    """
    Direct DFT over every 4th sample of the window.

    magnitude[k] = |sum_n x[n] * exp(-2j*pi*k*n/N)| / (N/4), n = 0, 4, 8, ...

    O(bins * N/4). Cosine/sine tables are cached per window length.
    """

    name = "decimated"

    def __init__(self, max_bins: int = MAX_BINS, step: int = DECIMATION):
        self.max_bins = max_bins
        self.step = step
        self._tables: dict = {}

    def _basis(self, n_samples: int) -> Tuple[np.ndarray, np.ndarray]:
        tables = self._tables.get(n_samples)
        if tables is None:
            bins = min(self.max_bins, n_samples // 2)
            k = np.arange(bins, dtype=np.float64)[:, np.newaxis]
            n = np.arange(0, n_samples, self.step, dtype=np.float64)[np.newaxis, :]
            angle = (2.0 * np.pi * k / n_samples) * n
            tables = (np.cos(angle), np.sin(angle))
            # Benign race: two threads may build the same table
            self._tables[n_samples] = tables
        return tables

    def estimate(self, window: np.ndarray) -> np.ndarray:
        n_samples = len(window)
        if n_samples < 2:
            return np.zeros(0, dtype=np.float64)

        cos_table, sin_table = self._basis(n_samples)
        decimated = np.asarray(window, dtype=np.float64)[::self.step]

        real = cos_table @ decimated
        imag = -(sin_table @ decimated)

        return np.sqrt(real * real + imag * imag) / (n_samples / self.step)


class FFTEstimator:
    """
    Full-resolution alternative using numpy's real FFT.

    Keeps the bin count and the 0..Nyquist coverage of the decimated
    estimator (the rfft is pooled down to the same number of bins) but
    uses every sample. Not score-compatible with fingerprints built by
    DecimatedDFTEstimator.
    """

    name = "fft"

    def __init__(self, max_bins: int = MAX_BINS):
        self.max_bins = max_bins

    def estimate(self, window: np.ndarray) -> np.ndarray:
        n_samples = len(window)
        bins = min(self.max_bins, n_samples // 2)
        if bins == 0:
            return np.zeros(0, dtype=np.float64)

        magnitude = np.abs(np.fft.rfft(np.asarray(window, dtype=np.float64)))
        magnitude = magnitude[: (len(magnitude) // bins) * bins]
        pooled = magnitude.reshape(bins, -1).mean(axis=1)
        return pooled / (n_samples / 2)


ESTIMATORS = {
    DecimatedDFTEstimator.name: DecimatedDFTEstimator,
    FFTEstimator.name: FFTEstimator,
}


def create_spectral_estimator(name: str = "decimated") -> SpectralEstimator:
    """
    Build an estimator by name ("decimated" or "fft").

    Raises:
        ValueError: Unknown estimator name
    """
    try:
        return ESTIMATORS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown spectral estimator '{name}'. "
            f"Available: {', '.join(sorted(ESTIMATORS))}"
        ) from None


def hann_window(window_size: int) -> np.ndarray:
    """Raised-cosine taper: 0.5 * (1 - cos(2*pi*i / (N-1)))."""
    if window_size < 2:
        return np.ones(window_size, dtype=np.float64)
    i = np.arange(window_size, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (window_size - 1)))


def count_windows(num_samples: int, window_size: int, hop_size: int) -> int:
    """floor((num_samples - window_size) / hop_size) + 1, or 0 if the clip is too short."""
    if num_samples < window_size or window_size <= 0:
        return 0
    return (num_samples - window_size) // hop_size + 1


def iter_windows(
    samples: np.ndarray,
    window_size: int,
    hop_size: int,
) -> Iterator[np.ndarray]:
    """
    Yield tapered windows in time order.

    Windows start every ``hop_size`` samples while a full window remains;
    the partial tail is dropped. With the default hop (2048) larger than
    the window (512) consecutive windows do not overlap and the samples
    between them are skipped.
    """
    taper = hann_window(window_size)
    for index in range(count_windows(len(samples), window_size, hop_size)):
        start = index * hop_size
        yield samples[start:start + window_size] * taper
