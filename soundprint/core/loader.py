"""
Audio loader for soundprint.

Decodes recorded clips (wav, mp3, m4a, ...) into mono float PCM for the
fingerprint builder. Everything that can go wrong while decoding is
reported as AudioDecodeError so callers can tell "could not process
audio" apart from "no match".
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from soundprint.core.models import PcmBuffer
from soundprint.utils.errors import AudioDecodeError, FileTooLargeError, UnsupportedFormatError


SUPPORTED_FORMATS: Tuple[str, ...] = (
    '.wav', '.mp3', '.m4a', '.aac', '.flac', '.ogg', '.aif', '.aiff'
)

MAX_FILE_SIZE: int = 52428800  # 50 MB

logger = logging.getLogger(__name__)


class AudioLoader:
    """
    Loads audio files into PcmBuffer instances.

    Thread-safe and stateless - can be used concurrently.
    """

    def __init__(
        self,
        target_sr: Optional[int] = None,
        max_file_size: int = MAX_FILE_SIZE,
        supported_formats: Iterable[str] = SUPPORTED_FORMATS,
    ):
        """
        Initialize loader with configuration.

        Args:
            target_sr: Resample to this rate; None keeps the file's native rate
            max_file_size: Maximum file size in bytes
            supported_formats: Accepted file extensions (with leading dot)
        """
        self.target_sr = target_sr
        self.max_file_size = max_file_size
        self.supported_suffixes: Set[str] = {s.lower() for s in supported_formats}

    def load(self, file_path: Union[str, Path]) -> PcmBuffer:
        """
        Load an audio file as mono PCM.

        Args:
            file_path: Path to audio file

        Returns:
            PcmBuffer: Samples in [-1, 1] and their sample rate

        Raises:
            FileNotFoundError: File doesn't exist
            UnsupportedFormatError: File format not supported
            FileTooLargeError: File exceeds size limit
            AudioDecodeError: Decoder could not read the audio
        """
        file_path = Path(file_path)

        self._validate_file(file_path)
        samples, sample_rate = self._decode(file_path)
        samples = self._validate_audio_data(samples, file_path)

        logger.info(
            f"Decoded {file_path.name}: {len(samples)} samples at {sample_rate} Hz "
            f"({len(samples) / sample_rate if sample_rate else 0:.2f}s)"
        )
        return PcmBuffer(samples=samples, sample_rate=int(sample_rate))

    def _validate_file(self, file_path: Path) -> None:
        """Validate file exists, has supported format, and is within size limit."""
        if not file_path.exists():
            raise FileNotFoundError(f"Audio file not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix not in self.supported_suffixes:
            raise UnsupportedFormatError(
                f"Format {suffix} not supported. "
                f"Supported formats: {', '.join(sorted(self.supported_suffixes))}",
                format=suffix
            )

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size:
            raise FileTooLargeError(
                f"File too large: {file_size / 1024 / 1024:.1f} MB. "
                f"Maximum: {self.max_file_size / 1024 / 1024:.1f} MB",
                file_size=file_size,
                max_size=self.max_file_size
            )

    def _decode(self, file_path: Path) -> Tuple[np.ndarray, int]:
        """
        Decode to mono float32.

        soundfile handles PCM containers directly; compressed formats go
        through librosa's audioread fallback.
        """
        try:
            if self.target_sr is None and file_path.suffix.lower() in ('.wav', '.flac', '.ogg', '.aif', '.aiff'):
                data, sample_rate = sf.read(str(file_path), dtype='float32', always_2d=True)
                return np.mean(data, axis=1, dtype=np.float32), sample_rate

            samples, sample_rate = librosa.load(
                str(file_path),
                sr=self.target_sr,
                mono=True,
                dtype=np.float32
            )
            return samples, sample_rate

        except Exception as e:
            raise AudioDecodeError(
                f"Failed to decode audio from {file_path}: {e}",
                file_path=str(file_path),
                original_error=e
            ) from e

    def _validate_audio_data(
        self, samples: np.ndarray, file_path: Path
    ) -> np.ndarray:
        """Warn on empty or silent audio and normalize clipping."""
        if samples.size == 0:
            # Empty clips fingerprint to nothing and never match
            logger.warning(f"Audio file contains no samples: {file_path}")
            return samples

        rms = np.sqrt(np.mean(samples ** 2))
        if rms < 1e-6:
            logger.warning(f"Audio appears to be silent: {file_path}")

        max_abs = np.max(np.abs(samples))
        if max_abs > 1.0:
            logger.warning(
                f"Audio contains clipping (max: {max_abs:.2f}), normalizing: {file_path}"
            )
            samples = samples / max_abs

        return samples


def create_audio_loader(config: Optional[Dict[str, Any]] = None) -> AudioLoader:
    """
    Factory function to create AudioLoader from the ``audio`` config section.
    """
    if config is None:
        config = {}

    return AudioLoader(
        target_sr=config.get('target_sample_rate'),
        max_file_size=config.get('max_file_size', MAX_FILE_SIZE),
        supported_formats=config.get('supported_formats', SUPPORTED_FORMATS),
    )
