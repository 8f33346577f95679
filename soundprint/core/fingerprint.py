"""
Fingerprint builder for soundprint.

Runs windowing, spectral estimation and feature extraction across a whole
sample buffer and collects the feature vectors in time order.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from soundprint.core.features import FeatureExtractor
from soundprint.core.models import Fingerprint, PcmBuffer
from soundprint.core.spectral import (
    SpectralEstimator,
    count_windows,
    create_spectral_estimator,
    iter_windows,
)
from soundprint.utils.errors import ConfigurationError

WINDOW_SIZE: int = 512
HOP_SIZE: int = 2048

logger = logging.getLogger(__name__)

Samples = Union[np.ndarray, Sequence[float], None]


class FingerprintBuilder:
    """
    Builds fingerprints from mono PCM samples.

    Owns the windowing parameters. Stateless between calls and safe to
    share across threads; each call only touches its own input buffer.
    """

    def __init__(
        self,
        window_size: int = WINDOW_SIZE,
        hop_size: int = HOP_SIZE,
        estimator: Optional[SpectralEstimator] = None,
    ):
        """
        Args:
            window_size: Samples per analysis window
            hop_size: Samples between window starts
            estimator: Spectral estimator (decimated DFT by default)

        Raises:
            ConfigurationError: Non-positive hop or window shorter than 2 samples
        """
        if window_size < 2:
            raise ConfigurationError(
                f"window_size must be at least 2, got {window_size}",
                config_key="fingerprint.window_size"
            )
        if hop_size < 1:
            raise ConfigurationError(
                f"hop_size must be positive, got {hop_size}",
                config_key="fingerprint.hop_size"
            )
        if hop_size > window_size:
            logger.debug(
                f"hop_size {hop_size} > window_size {window_size}: "
                f"{1 - window_size / hop_size:.0%} of samples are not analysed"
            )

        self.window_size = window_size
        self.hop_size = hop_size
        self.estimator = estimator or create_spectral_estimator("decimated")

    def build(self, samples: Samples, sample_rate: int) -> Fingerprint:
        """
        Compute the fingerprint of a clip.

        Args:
            samples: Mono samples in [-1, 1], or a (samples, channels) array that is
                averaged to mono; None or empty gives an empty fingerprint
            sample_rate: Sample rate in Hz

        Returns:
            Fingerprint: One FeatureVector per analysis window

        Raises:
            ValueError: Input with more than two dimensions
        """
        if samples is None:
            return Fingerprint()

        data = np.asarray(samples, dtype=np.float64)
        if data.ndim == 2:
            # (n_samples, n_channels), mixed down as the loader does
            data = data.mean(axis=1)
        elif data.ndim > 2:
            raise ValueError(
                f"Expected mono or (samples, channels) input, got shape {data.shape}"
            )
        else:
            data = data.reshape(-1)
        if data.size < self.window_size:
            return Fingerprint()

        vectors = []
        previous = None
        for window in iter_windows(data, self.window_size, self.hop_size):
            spectrum = self.estimator.estimate(window)
            vectors.append(
                FeatureExtractor.extract(window, spectrum, sample_rate, previous)
            )
            previous = spectrum

        logger.debug(
            f"Built fingerprint: {len(vectors)} windows from {data.size} samples "
            f"at {sample_rate} Hz ({self.estimator.name})"
        )
        return Fingerprint(tuple(vectors))

    def build_from_buffer(self, buffer: PcmBuffer) -> Fingerprint:
        return self.build(buffer.samples, buffer.sample_rate)

    def expected_length(self, num_samples: int) -> int:
        """Number of windows a clip of ``num_samples`` produces."""
        return count_windows(num_samples, self.window_size, self.hop_size)


_default_builder = FingerprintBuilder()


def build_fingerprint(samples: Samples, sample_rate: int) -> Fingerprint:
    """Deterministic fingerprint with the default window (512) and hop (2048)."""
    return _default_builder.build(samples, sample_rate)


def create_fingerprint_builder(config: Optional[Dict[str, Any]] = None) -> FingerprintBuilder:
    """
    Factory function to create FingerprintBuilder from the ``fingerprint`` config section.

    Raises:
        ConfigurationError: Invalid window/hop or unknown estimator
    """
    if config is None:
        config = {}

    try:
        estimator = create_spectral_estimator(config.get('estimator', 'decimated'))
    except ValueError as e:
        raise ConfigurationError(str(e), config_key="fingerprint.estimator") from e

    return FingerprintBuilder(
        window_size=config.get('window_size', WINDOW_SIZE),
        hop_size=config.get('hop_size', HOP_SIZE),
        estimator=estimator,
    )
