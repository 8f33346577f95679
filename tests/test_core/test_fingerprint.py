"""Tests for fingerprint construction and the fingerprint models."""

import numpy as np
import pytest
from conftest import HOP, SR, WINDOW, feature_fingerprint, make_tone

from soundprint.core.fingerprint import (
    FingerprintBuilder,
    build_fingerprint,
    create_fingerprint_builder,
)
from soundprint.core.models import FEATURE_NAMES, FeatureVector, Fingerprint, PcmBuffer
from soundprint.core.spectral import FFTEstimator
from soundprint.utils.errors import ConfigurationError


class TestBuildFingerprint:
    @pytest.mark.parametrize(
        "num_samples, expected",
        [(WINDOW, 1), (WINDOW + HOP, 2), (SR, 11), (3 * SR, 33)],
    )
    def test_length_follows_window_count(self, num_samples, expected):
        samples = np.random.default_rng(0).normal(0, 0.1, num_samples)
        assert len(build_fingerprint(samples, SR)) == expected

    def test_short_input_gives_empty_fingerprint(self):
        assert build_fingerprint(np.zeros(WINDOW - 1), SR).is_empty

    def test_missing_input_gives_empty_fingerprint(self):
        assert build_fingerprint(None, SR).is_empty
        assert build_fingerprint([], SR).is_empty

    def test_is_deterministic(self, doorbell):
        first = build_fingerprint(doorbell, SR)
        second = build_fingerprint(doorbell.copy(), SR)
        assert first == second

    def test_accepts_plain_sequences(self):
        samples = list(make_tone([440.0], 0.2))
        assert build_fingerprint(samples, SR) == build_fingerprint(np.array(samples), SR)

    def test_first_window_has_no_flux(self, dog_bark):
        fingerprint = build_fingerprint(dog_bark, SR)
        assert fingerprint[0].spectral_flux == 0.0
        assert any(v.spectral_flux > 0 for v in fingerprint.vectors[1:])

    def test_tone_energy_lands_in_its_band(self):
        fingerprint = build_fingerprint(make_tone([600.0], 0.5), SR)
        for vector in fingerprint:
            assert vector.mid > vector.bass
            assert vector.mid > vector.high_mid
            assert vector.mid > vector.brilliance

    def test_silence_is_all_zero(self):
        fingerprint = build_fingerprint(np.zeros(SR), SR)
        assert np.count_nonzero(fingerprint.matrix) == 0


class TestFingerprintBuilder:
    def test_expected_length(self):
        builder = FingerprintBuilder()
        assert builder.expected_length(SR) == 11
        assert builder.expected_length(10) == 0

    def test_build_from_buffer(self, doorbell):
        builder = FingerprintBuilder()
        buffer = PcmBuffer(doorbell, SR)
        assert builder.build_from_buffer(buffer) == builder.build(doorbell, SR)

    def test_single_column_input(self):
        samples = np.zeros((4096, 1))
        assert len(FingerprintBuilder().build(samples, SR)) == 2

    def test_stereo_input_is_mixed_to_mono(self):
        mono = make_tone([440.0], 1.0).astype(np.float64)
        stereo = np.stack([mono, mono], axis=1)
        builder = FingerprintBuilder()

        fingerprint = builder.build(stereo, SR)

        assert len(fingerprint) == 11
        assert fingerprint == builder.build(mono, SR)

    def test_stereo_channels_are_averaged(self):
        left = make_tone([440.0], 0.5).astype(np.float64)
        right = make_tone([1200.0], 0.5).astype(np.float64)
        builder = FingerprintBuilder()

        mixed = builder.build(np.stack([left, right], axis=1), SR)

        assert mixed == builder.build((left + right) / 2, SR)

    def test_rejects_higher_dimensional_input(self):
        with pytest.raises(ValueError, match="shape"):
            FingerprintBuilder().build(np.zeros((4096, 2, 2)), SR)

    def test_custom_window_and_hop(self):
        builder = FingerprintBuilder(window_size=256, hop_size=256)
        assert len(builder.build(np.zeros(1024), SR)) == 4

    @pytest.mark.parametrize("window_size, hop_size", [(1, 2048), (512, 0)])
    def test_rejects_invalid_windowing(self, window_size, hop_size):
        with pytest.raises(ConfigurationError):
            FingerprintBuilder(window_size=window_size, hop_size=hop_size)

    def test_factory_reads_config(self):
        builder = create_fingerprint_builder(
            {'window_size': 1024, 'hop_size': 512, 'estimator': 'fft'}
        )
        assert builder.window_size == 1024
        assert builder.hop_size == 512
        assert isinstance(builder.estimator, FFTEstimator)

    def test_factory_defaults(self):
        builder = create_fingerprint_builder()
        assert (builder.window_size, builder.hop_size) == (WINDOW, HOP)
        assert builder.estimator.name == "decimated"

    def test_factory_rejects_unknown_estimator(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_fingerprint_builder({'estimator': 'wavelet'})
        assert exc_info.value.config_key == "fingerprint.estimator"


class TestFingerprintModel:
    def test_matrix_shape_and_order(self):
        fingerprint = Fingerprint((FeatureVector(energy=1.0, brilliance=2.0),))
        matrix = fingerprint.matrix
        assert matrix.shape == (1, len(FEATURE_NAMES))
        assert matrix[0, 0] == 1.0
        assert matrix[0, -1] == 2.0

    def test_matrix_is_read_only(self):
        fingerprint = feature_fingerprint(0.5, 0.6)
        with pytest.raises(ValueError):
            fingerprint.matrix[0, 0] = 1.0

    def test_empty_matrix(self):
        assert Fingerprint().matrix.shape == (0, len(FEATURE_NAMES))

    def test_list_round_trip_uses_camel_case(self, doorbell):
        fingerprint = build_fingerprint(doorbell, SR)
        data = fingerprint.to_list()
        assert set(data[0]) == set(FEATURE_NAMES)
        assert Fingerprint.from_list(data) == fingerprint

    def test_from_list_tolerates_missing_fields(self):
        fingerprint = Fingerprint.from_list([{"energy": 0.5, "mid": None}])
        assert fingerprint[0].energy == 0.5
        assert fingerprint[0].mid == 0.0
        assert fingerprint[0].brilliance == 0.0

    def test_buffer_duration(self):
        assert PcmBuffer(np.zeros(SR), SR).duration == pytest.approx(1.0)
