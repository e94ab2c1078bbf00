"""
Parakeet TDT transcription over exported ONNX graphs.

Pipeline per chunk: feature extractor -> encoder -> TDT greedy decoder ->
detokenizer. Long audio is split into overlapping 30 s windows whose
results are stitched onto one timeline.
"""
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from parakeet_onnx.adapters import FEATURE_CHANNELS, Encoder, FeatureExtractor
from parakeet_onnx.audio import DEFAULT_RES_TYPE, SAMPLE_RATE, load_audio
from parakeet_onnx.backends import DEFAULT_PROVIDERS, InferenceBackend, LogMelBackend, OnnxBackend
from parakeet_onnx.chunking import CHUNK_SIZE, OVERLAP, iter_chunks
from parakeet_onnx.decoding import DURATIONS, MAX_SYMBOLS_PER_STEP, MAX_TOKENS, STATE_SHAPE, TDTGreedyDecoder
from parakeet_onnx.segments import BatchTranscriptionResult, TranscriptionSegment, stitch_results
from parakeet_onnx.vocab import VocabularyTable

logger = logging.getLogger(__name__)

ENCODER_FILE = 'encoder.onnx'
DECODER_FILE = 'decoder.onnx'
FEATURE_EXTRACTOR_FILE = 'feature_extractor.onnx'
VOCAB_FILE = 'vocab.txt'
FEATURE_EXTRACTORS = ('onnx', 'torch')

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class TranscriberConfig:
    sample_rate: int = SAMPLE_RATE
    chunk_size: int = CHUNK_SIZE
    overlap: int = OVERLAP
    max_tokens: int = MAX_TOKENS
    max_symbols_per_step: int = MAX_SYMBOLS_PER_STEP
    state_shape: Tuple[int, ...] = STATE_SHAPE
    feature_channels: int = FEATURE_CHANNELS
    durations: Tuple[int, ...] = DURATIONS
    res_type: str = DEFAULT_RES_TYPE

    def __post_init__(self):
        if not 0 <= self.overlap < self.chunk_size:
            raise ValueError(f"Need 0 <= overlap < chunk_size, got overlap={self.overlap}, chunk_size={self.chunk_size}")
        if self.max_tokens <= 0 or self.max_symbols_per_step <= 0:
            raise ValueError("max_tokens and max_symbols_per_step must be positive")
        if not self.durations:
            raise ValueError("durations must not be empty")


def notify(progress: Optional[ProgressCallback], message: str) -> None:
    """Fire-and-forget progress message."""
    if progress is None:
        return
    try:
        progress(message)
    except Exception:
        logger.warning("Progress callback failed for %r", message, exc_info=True)


class ParakeetModel:
    """Owns the vocabulary and the three inference backends.

    One transcription runs at a time per instance; concurrent callers are
    serialized.
    """

    def __init__(
        self,
        feature_extractor: InferenceBackend,
        encoder: InferenceBackend,
        decoder: InferenceBackend,
        vocab: VocabularyTable,
        config: Optional[TranscriberConfig] = None,
    ):
        self.config = config or TranscriberConfig()
        self.vocab = vocab
        self.feature_extractor = FeatureExtractor(feature_extractor, channels=self.config.feature_channels)
        self.encoder = Encoder(encoder)
        self.decoder = TDTGreedyDecoder(
            decoder, vocab,
            max_tokens=self.config.max_tokens,
            max_symbols_per_step=self.config.max_symbols_per_step,
            state_shape=self.config.state_shape,
            durations=self.config.durations,
        )
        self._lock = threading.Lock()

    @classmethod
    def from_directory(
        cls,
        model_dir: Union[str, Path],
        providers: Sequence[str] = DEFAULT_PROVIDERS,
        feature_extractor: str = 'onnx',
        config: Optional[TranscriberConfig] = None,
    ) -> 'ParakeetModel':
        """Build a model from a directory holding the exported files.

        Args:
            model_dir: Directory with encoder.onnx, decoder.onnx, vocab.txt
                and (unless feature_extractor='torch') feature_extractor.onnx
            providers: onnxruntime execution providers
            feature_extractor: 'onnx' or 'torch' (built-in log-mel front end)
        """
        if feature_extractor not in FEATURE_EXTRACTORS:
            raise ValueError(f"feature_extractor must be one of {FEATURE_EXTRACTORS}, got {feature_extractor!r}")
        model_dir = Path(model_dir)
        return cls.from_files(
            encoder_path=model_dir / ENCODER_FILE,
            decoder_path=model_dir / DECODER_FILE,
            vocab_path=model_dir / VOCAB_FILE,
            feature_extractor_path=model_dir / FEATURE_EXTRACTOR_FILE if feature_extractor == 'onnx' else None,
            providers=providers,
            config=config,
        )

    @classmethod
    def from_files(
        cls,
        encoder_path: Union[str, Path],
        decoder_path: Union[str, Path],
        vocab_path: Union[str, Path],
        feature_extractor_path: Optional[Union[str, Path]] = None,
        providers: Sequence[str] = DEFAULT_PROVIDERS,
        config: Optional[TranscriberConfig] = None,
    ) -> 'ParakeetModel':
        config = config or TranscriberConfig()
        vocab = VocabularyTable.from_file(vocab_path)
        if feature_extractor_path is None:
            fe_backend = LogMelBackend(n_mels=config.feature_channels)
        else:
            fe_backend = OnnxBackend.from_file(feature_extractor_path, providers)
        return cls(
            feature_extractor=fe_backend,
            encoder=OnnxBackend.from_file(encoder_path, providers),
            decoder=OnnxBackend.from_file(decoder_path, providers),
            vocab=vocab,
            config=config,
        )

    def transcribe(
        self,
        audio: Union[str, Path, np.ndarray],
        progress: Optional[ProgressCallback] = None,
    ) -> BatchTranscriptionResult:
        """Transcribe a file path or a mono float32 array at ``config.sample_rate``."""
        if isinstance(audio, (str, Path)):
            audio = load_audio(str(audio), target_sr=self.config.sample_rate, res_type=self.config.res_type)
        else:
            audio = np.asarray(audio, dtype=np.float32)
            if audio.ndim != 1:
                raise ValueError(f"Expected mono 1-D audio, got shape {audio.shape}")

        notify(progress, "Transcribing...")
        duration = len(audio) / self.config.sample_rate
        logger.info("Transcribing %.2fs of audio", duration)
        t0 = time.perf_counter()
        with self._lock:
            result = self.transcribe_batch(audio)
        logger.info("Transcription finished in %.2fs (%d segments)", time.perf_counter() - t0, len(result.segments))
        return result

    def transcribe_batch(self, audio: np.ndarray) -> BatchTranscriptionResult:
        if len(audio) == 0:
            return BatchTranscriptionResult(text='', segments=[])
        if len(audio) > self.config.chunk_size:
            return self.transcribe_long_audio(audio)
        return self.transcribe_single_chunk(audio)

    def transcribe_long_audio(self, audio: np.ndarray) -> BatchTranscriptionResult:
        sr = self.config.sample_rate
        chunks = list(iter_chunks(audio, self.config.chunk_size, self.config.overlap))
        logger.info("Splitting %d samples into %d chunks", len(audio), len(chunks))
        results = []
        for chunk in chunks:
            results.append((chunk.offset_seconds(sr), self.transcribe_single_chunk(chunk.samples)))
        return stitch_results(results)

    def transcribe_single_chunk(self, audio: np.ndarray) -> BatchTranscriptionResult:
        features, t_len = self.feature_extractor(audio)
        encoder_out = self.encoder(features, t_len)
        tokens = self.decoder.decode(encoder_out)
        text = self.vocab.decode(tokens)
        segment = TranscriptionSegment(start=0.0, end=len(audio) / self.config.sample_rate, text=text)
        return BatchTranscriptionResult(text=text, segments=[segment])
