"""parakeet_onnx — Parakeet TDT speech-to-text over exported ONNX graphs."""
import threading
from typing import Optional, Sequence

from parakeet_onnx._loader import DEFAULT_MODEL, ModelLoader, ModelState
from parakeet_onnx.backends import DEFAULT_PROVIDERS
from parakeet_onnx.errors import (
    InferenceError,
    MediaDecodeError,
    MissingOutputError,
    ParakeetError,
    ResampleError,
    ShapeError,
    UnsupportedMediaError,
    VocabLoadError,
)
from parakeet_onnx.model import ParakeetModel, ProgressCallback, TranscriberConfig
from parakeet_onnx.segments import (
    AlignedSegment,
    BatchTranscriptionResult,
    TranscriptionSegment,
    align_segments,
    format_timestamp,
)
from parakeet_onnx.vocab import VocabularyTable

__all__ = [
    'AlignedSegment', 'BatchTranscriptionResult', 'ModelLoader', 'ModelState', 'ParakeetModel',
    'TranscriberConfig', 'TranscriptionSegment', 'VocabularyTable', 'align_segments',
    'format_timestamp', 'from_pretrained', 'get_loader',
    'ParakeetError', 'VocabLoadError', 'MediaDecodeError', 'UnsupportedMediaError',
    'ResampleError', 'InferenceError', 'MissingOutputError', 'ShapeError',
]

_LOADERS: dict = {}
_LOADERS_LOCK = threading.Lock()


def get_loader(
    model_name: str = DEFAULT_MODEL,
    providers: Sequence[str] = DEFAULT_PROVIDERS,
    feature_extractor: str = 'onnx',
    cache_dir: Optional[str] = None,
    local_files_only: bool = False,
) -> ModelLoader:
    """Return the process-wide loader for this model/runtime combination."""
    cache_key = (model_name, tuple(providers), feature_extractor, cache_dir, local_files_only)
    with _LOADERS_LOCK:
        loader = _LOADERS.get(cache_key)
        if loader is None:
            loader = ModelLoader(model_name, cache_dir=cache_dir, local_files_only=local_files_only,
                                 providers=providers, feature_extractor=feature_extractor)
            _LOADERS[cache_key] = loader
    return loader


def from_pretrained(
    model_name: str = DEFAULT_MODEL,
    providers: Sequence[str] = DEFAULT_PROVIDERS,
    feature_extractor: str = 'onnx',
    cache_dir: Optional[str] = None,
    local_files_only: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> ParakeetModel:
    """Download (or use cached) model files and return a ready ParakeetModel.

    Args:
        model_name: HuggingFace repo with encoder.onnx, decoder.onnx,
            feature_extractor.onnx and vocab.txt
        providers: onnxruntime execution providers, e.g.
            ('CUDAExecutionProvider', 'CPUExecutionProvider')
        feature_extractor: 'onnx' to use the exported front end, 'torch' for
            the built-in log-mel implementation
        cache_dir: Hub cache directory (default: huggingface_hub's)
        local_files_only: Never hit the network
        progress: Optional callable receiving status messages
    Returns:
        The same ParakeetModel on every call with the same arguments
    """
    loader = get_loader(model_name, providers, feature_extractor, cache_dir, local_files_only)
    return loader.load(progress)
