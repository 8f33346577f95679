"""Tests for FingerprintEngine wiring and persistence."""

import json
from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import SR, feature_fingerprint

from soundprint.core.engine import FingerprintEngine, create_fingerprint_engine
from soundprint.core.fingerprint import FingerprintBuilder
from soundprint.core.library import InMemoryLibrary
from soundprint.core.matcher import LibraryMatcher
from soundprint.core.models import Fingerprint, LibraryEntry, PcmBuffer
from soundprint.utils.errors import AudioDecodeError, MatchCancelledError, StoreError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_engine(**overrides):
    """FingerprintEngine with a mock loader; keywords replace constructor args."""
    defaults = dict(
        loader=MagicMock(),
        builder=FingerprintBuilder(),
        library=InMemoryLibrary(),
        matcher=LibraryMatcher(),
        store=None,
        max_workers=2,
    )
    defaults.update(overrides)
    return FingerprintEngine(**defaults)


@pytest.fixture
def library_path(tmp_path):
    return tmp_path / "user_fingerprints" / "fingerprints.json"


@pytest.fixture
def engine(library_path):
    engine = create_fingerprint_engine({'library': {'path': str(library_path)}})
    yield engine
    engine.shutdown()


# ---------------------------------------------------------------------------
# Teach / identify
# ---------------------------------------------------------------------------


class TestTeachAndIdentify:
    def test_teach_then_identify(self, engine, doorbell_wav, bark_wav):
        engine.teach(doorbell_wav, "doorbell", owner_id="alice")
        engine.teach(bark_wav, "bark", owner_id="bob")

        result = engine.identify(doorbell_wav)

        assert result.best_id == "doorbell"
        assert result.best_score == pytest.approx(1.0)
        assert [r.audio_id for r in result.ranked] == ["doorbell", "bark"]

    def test_teach_returns_entry(self, engine, doorbell_wav):
        entry = engine.teach(doorbell_wav, "doorbell", owner_id="alice")
        assert entry.audio_id == "doorbell"
        assert entry.owner_id == "alice"
        assert entry.timestamp is not None
        assert len(entry.fingerprint) == engine.builder.expected_length(int(1.2 * SR))

    def test_unknown_sound_is_not_matched(self, engine, doorbell_wav, write_wav, ambient_noise):
        engine.teach(doorbell_wav, "doorbell")
        result = engine.identify(write_wav("hum.wav", ambient_noise))
        assert result.best_id is None
        assert result.best_score < 0.85

    def test_identify_with_empty_library(self, engine, doorbell_wav):
        result = engine.identify(doorbell_wav)
        assert result.best_id is None
        assert result.ranked == ()

    def test_match_own_only(self, engine, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell", owner_id="alice")

        assert engine.identify(doorbell_wav, owner_id="bob").best_id == "doorbell"
        own_only = engine.identify(doorbell_wav, owner_id="bob", match_own_only=True)
        assert own_only.best_id is None
        assert own_only.ranked == ()

    def test_threshold_override(self, engine, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell")
        result = engine.identify(doorbell_wav, threshold=0.5)
        assert result.threshold == 0.5

    def test_cancellation_propagates(self, engine, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell")
        with pytest.raises(MatchCancelledError):
            engine.identify(doorbell_wav, should_cancel=lambda: True)

    def test_reteach_replaces_entry(self, engine, doorbell_wav, bark_wav):
        engine.teach(doorbell_wav, "clip")
        engine.teach(bark_wav, "clip")
        assert len(engine.library) == 1
        assert engine.identify(bark_wav).best_id == "clip"


# ---------------------------------------------------------------------------
# Listing, deletion and persistence
# ---------------------------------------------------------------------------


class TestLibraryManagement:
    def test_list_entries(self, engine, doorbell_wav, bark_wav):
        engine.teach(doorbell_wav, "doorbell", owner_id="alice")
        engine.teach(bark_wav, "bark", owner_id="bob")

        summaries = engine.list_entries()
        assert [s['audioId'] for s in summaries] == ["doorbell", "bark"]
        assert summaries[0]['fingerprintLength'] > 0
        assert 'fingerprint' not in summaries[0]
        assert [s['audioId'] for s in engine.list_entries("bob")] == ["bark"]

    def test_delete(self, engine, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell")
        assert engine.delete("doorbell") is True
        assert engine.delete("doorbell") is False
        assert engine.list_entries() == []

    def test_teach_is_persisted(self, engine, library_path, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell", owner_id="alice")

        raw = json.loads(library_path.read_text())
        assert raw["doorbell"]["ownerId"] == "alice"

        reloaded = create_fingerprint_engine({'library': {'path': str(library_path)}})
        try:
            assert reloaded.identify(doorbell_wav).best_id == "doorbell"
        finally:
            reloaded.shutdown()

    def test_delete_is_persisted(self, engine, library_path, doorbell_wav):
        engine.teach(doorbell_wav, "doorbell")
        engine.delete("doorbell")
        assert json.loads(library_path.read_text()) == {}

    def test_without_store(self, doorbell_wav):
        engine = create_fingerprint_engine({})
        try:
            assert engine.store is None
            engine.teach(doorbell_wav, "doorbell")
            assert engine.load_library() == 1
        finally:
            engine.shutdown()


class TestFailedSaves:
    """A failed library save leaves the in-memory library as it was."""

    @pytest.fixture
    def failing_store(self):
        store = MagicMock()
        store.save.side_effect = StoreError("disk full", path="fingerprints.json")
        return store

    @pytest.fixture
    def loader(self, doorbell):
        loader = MagicMock()
        loader.load.return_value = PcmBuffer(doorbell, SR)
        return loader

    def test_teach_is_rolled_back(self, loader, failing_store):
        engine = _make_engine(loader=loader, store=failing_store)

        with pytest.raises(StoreError):
            engine.teach("doorbell.wav", "doorbell")

        assert len(engine.library) == 0
        engine.shutdown()

    def test_replacing_teach_keeps_previous_entry(self, loader, failing_store):
        previous = LibraryEntry("doorbell", feature_fingerprint(0.5), owner_id="alice")
        library = InMemoryLibrary([previous, LibraryEntry("bark", feature_fingerprint(0.2))])
        engine = _make_engine(loader=loader, store=failing_store, library=library)

        with pytest.raises(StoreError):
            engine.teach("doorbell.wav", "doorbell", owner_id="bob")

        assert library.get("doorbell") is previous
        assert library.ids() == ["doorbell", "bark"]
        engine.shutdown()

    def test_delete_is_rolled_back(self, failing_store):
        library = InMemoryLibrary([
            LibraryEntry("doorbell", feature_fingerprint(0.5)),
            LibraryEntry("bark", feature_fingerprint(0.2)),
        ])
        engine = _make_engine(store=failing_store, library=library)

        with pytest.raises(StoreError):
            engine.delete("doorbell")

        assert library.ids() == ["doorbell", "bark"]
        engine.shutdown()

    def test_unknown_delete_does_not_save(self, failing_store):
        engine = _make_engine(store=failing_store)
        assert engine.delete("missing") is False
        failing_store.save.assert_not_called()
        engine.shutdown()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecoding:
    def test_decode_is_retried(self, doorbell):
        loader = MagicMock()
        loader.load.side_effect = [
            AudioDecodeError("transient", file_path="clip.m4a"),
            PcmBuffer(doorbell, SR),
        ]
        engine = _make_engine(loader=loader)

        fingerprint = engine.fingerprint_file("clip.m4a")

        assert loader.load.call_count == 2
        assert not fingerprint.is_empty
        engine.shutdown()

    def test_decode_failure_after_retries(self):
        loader = MagicMock()
        loader.load.side_effect = AudioDecodeError("corrupt", file_path="clip.m4a")
        engine = _make_engine(loader=loader, decode_retries=2)

        with pytest.raises(AudioDecodeError):
            engine.fingerprint_file("clip.m4a")

        assert loader.load.call_count == 3
        engine.shutdown()

    def test_other_errors_are_not_retried(self):
        loader = MagicMock()
        loader.load.side_effect = FileNotFoundError("missing")
        engine = _make_engine(loader=loader)

        with pytest.raises(FileNotFoundError):
            engine.fingerprint_file("missing.wav")

        assert loader.load.call_count == 1
        engine.shutdown()

    def test_failed_teach_leaves_library_untouched(self, engine, tmp_path):
        broken = tmp_path / "broken.wav"
        broken.write_bytes(b"RIFF" + b"\x00" * 64)

        with pytest.raises(AudioDecodeError):
            engine.teach(broken, "broken")

        assert "broken" not in engine.library

    def test_fingerprint_samples(self, engine, doorbell):
        assert engine.fingerprint_samples(doorbell, SR) == engine.builder.build(doorbell, SR)
        assert engine.fingerprint_samples(None, SR) == Fingerprint()

    def test_batch_keeps_input_order(self, engine, doorbell_wav, bark_wav, tmp_path):
        results = engine.fingerprint_batch([bark_wav, tmp_path / "missing.wav", doorbell_wav])

        assert results[1] is None
        assert results[0] == engine.fingerprint_file(bark_wav)
        assert results[2] == engine.fingerprint_file(doorbell_wav)

    def test_short_clip_fingerprints_empty(self, engine, write_wav):
        path = write_wav("click.wav", np.zeros(100, dtype=np.float32))
        assert engine.fingerprint_file(path).is_empty
