"""Feature-extractor and encoder calls, with their tensor layout conventions."""
import logging
from typing import Tuple

import numpy as np

from parakeet_onnx.backends import InferenceBackend
from parakeet_onnx.errors import InferenceError, MissingOutputError, ShapeError

logger = logging.getLogger(__name__)

FEATURE_CHANNELS = 128


class FeatureExtractor:
    """Turns raw samples into a [1, channels, T] feature tensor."""

    def __init__(self, backend: InferenceBackend, channels: int = FEATURE_CHANNELS):
        self.backend = backend
        self.channels = channels

    def __call__(self, audio: np.ndarray) -> Tuple[np.ndarray, int]:
        """
        Args:
            audio: [N] float32 samples
        Returns:
            (features [1, channels, T], T)
        """
        waveforms = np.asarray(audio, dtype=np.float32).reshape(1, -1)
        lens = np.array([waveforms.shape[1]], dtype=np.int64)

        inputs = {}
        for name in self.backend.input_names:
            inputs[name] = lens if 'len' in name else waveforms
        outputs = self.backend.run(inputs)
        if not outputs:
            raise InferenceError("Feature extractor produced no output")
        features = next(iter(outputs.values()))
        features = self._canonical_layout(np.asarray(features, dtype=np.float32))
        return features, features.shape[2]

    def _canonical_layout(self, features: np.ndarray) -> np.ndarray:
        # Exports disagree on [B, C, T] vs [B, T, C].
        if features.ndim != 3:
            raise ShapeError(f"Expected 3-D features, got shape {features.shape}")
        if features.shape[1] == self.channels:
            return features
        if features.shape[2] == self.channels:
            logger.debug("Transposing features %s -> [B, C, T]", features.shape)
            return np.ascontiguousarray(features.transpose(0, 2, 1))
        raise ShapeError(f"No axis of size {self.channels} in feature shape {features.shape}")


class Encoder:
    """Runs the acoustic encoder: [1, C, T] features -> [1, D, T'] embeddings."""

    def __init__(self, backend: InferenceBackend):
        self.backend = backend

    def __call__(self, features: np.ndarray, length: int) -> np.ndarray:
        inputs = {}
        for name in self.backend.input_names:
            if 'len' in name:
                inputs[name] = np.array([length], dtype=np.int64)
            else:
                inputs[name] = features
        outputs = self.backend.run(inputs)
        if not outputs:
            raise MissingOutputError("Encoder produced no output")
        encoded = outputs['outputs'] if 'outputs' in outputs else next(iter(outputs.values()))
        encoded = np.asarray(encoded, dtype=np.float32)
        if encoded.ndim != 3:
            raise InferenceError(f"Expected encoder output [B, D, T], got shape {encoded.shape}")
        logger.debug("Encoder output %s", encoded.shape)
        return encoded
