"""Shared fixtures: deterministic synthetic clips and WAV files."""

import numpy as np
import pytest
import soundfile as sf

from soundprint.core.models import FeatureVector, Fingerprint, LibraryEntry

SR = 22050
WINDOW = 512
HOP = 2048


# ---------------------------------------------------------------------------
# Signal generators
# ---------------------------------------------------------------------------


def make_tone(freqs, duration, sr=SR, amplitude=0.5, decay=0.0):
    """Sum of sines with an optional exponential decay envelope."""
    t = np.arange(int(duration * sr)) / sr
    signal = sum(np.sin(2 * np.pi * f * t) for f in freqs) / len(freqs)
    return (amplitude * signal * np.exp(-decay * t)).astype(np.float32)


def make_doorbell(sr=SR):
    """Two decaying notes: 660 Hz then 880 Hz."""
    first = make_tone([660.0], 0.6, sr=sr, decay=3.0)
    second = make_tone([880.0], 0.6, sr=sr, decay=3.0)
    return np.concatenate([first, second])


def make_dog_bark(sr=SR, seed=7):
    """Loud broadband bursts separated by silence."""
    rng = np.random.default_rng(seed)
    burst = int(0.15 * sr)
    gap = int(0.25 * sr)
    parts = []
    for _ in range(4):
        parts.append(rng.normal(0.0, 0.3, burst))
        parts.append(np.zeros(gap))
    return np.clip(np.concatenate(parts), -1.0, 1.0).astype(np.float32)


def make_ambient_noise(duration=1.5, sr=SR, seed=11, sigma=0.05):
    """Quiet steady broadband noise."""
    rng = np.random.default_rng(seed)
    return rng.normal(0.0, sigma, int(duration * sr)).astype(np.float32)


def make_block_noise(num_blocks, hop=HOP, seed=3):
    """Noise whose loudness changes at every hop boundary, so windows differ."""
    rng = np.random.default_rng(seed)
    gains = rng.uniform(0.1, 1.0, num_blocks)
    noise = rng.normal(0.0, 0.25, num_blocks * hop)
    return (noise * np.repeat(gains, hop)).astype(np.float64)


def feature_fingerprint(*energies):
    """Fingerprint with one window per value, carried in the energy field."""
    return Fingerprint(tuple(FeatureVector(energy=e) for e in energies))


class EnergyScorer:
    """Test stub: the score of an entry is the energy of its first window."""

    def score(self, query, reference):
        return reference[0].energy


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def doorbell():
    return make_doorbell()


@pytest.fixture
def dog_bark():
    return make_dog_bark()


@pytest.fixture
def ambient_noise():
    return make_ambient_noise()


@pytest.fixture
def energy_scorer():
    return EnergyScorer()


@pytest.fixture
def scored_entries():
    """Three entries the EnergyScorer scores 0.3, 0.9 and 0.6."""
    return [
        LibraryEntry("low", feature_fingerprint(0.3), owner_id="alice"),
        LibraryEntry("high", feature_fingerprint(0.9), owner_id="bob"),
        LibraryEntry("middle", feature_fingerprint(0.6), owner_id="alice"),
    ]


@pytest.fixture
def write_wav(tmp_path):
    """Write samples to a WAV file in tmp_path and return its path."""

    def _write(name, samples, sr=SR):
        path = tmp_path / name
        sf.write(str(path), samples, sr, subtype="FLOAT")
        return path

    return _write


@pytest.fixture
def doorbell_wav(write_wav, doorbell):
    return write_wav("doorbell.wav", doorbell)


@pytest.fixture
def bark_wav(write_wav, dog_bark):
    return write_wav("bark.wav", dog_bark)
