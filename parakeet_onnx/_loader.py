"""Model download from the Hugging Face Hub and one-time engine construction."""
import enum
import logging
import threading
from pathlib import Path
from typing import Optional, Sequence

from huggingface_hub import hf_hub_download

from parakeet_onnx.backends import DEFAULT_PROVIDERS
from parakeet_onnx.model import (
    DECODER_FILE,
    ENCODER_FILE,
    FEATURE_EXTRACTOR_FILE,
    FEATURE_EXTRACTORS,
    VOCAB_FILE,
    ParakeetModel,
    ProgressCallback,
    TranscriberConfig,
    notify,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 's0me-0ne/parakeet-tdt-0.6b-v3-onnx'


class ModelState(enum.Enum):
    PENDING = 'pending'
    DOWNLOADING = 'downloading'
    READY = 'ready'
    FAILED = 'failed'


class ModelLoader:
    """Downloads the model files on first use and builds the engine once.

    ``state`` tells callers whether the model is usable yet. After a failure
    the error is kept in ``error`` and the next ``load()`` tries again.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        cache_dir: Optional[str] = None,
        local_files_only: bool = False,
        providers: Sequence[str] = DEFAULT_PROVIDERS,
        feature_extractor: str = 'onnx',
        config: Optional[TranscriberConfig] = None,
    ):
        if feature_extractor not in FEATURE_EXTRACTORS:
            raise ValueError(f"feature_extractor must be one of {FEATURE_EXTRACTORS}, got {feature_extractor!r}")
        self.model_name = model_name
        self.cache_dir = cache_dir
        self.local_files_only = local_files_only
        self.providers = tuple(providers)
        self.feature_extractor = feature_extractor
        self.config = config
        self.state = ModelState.PENDING
        self.error: Optional[BaseException] = None
        self._model: Optional[ParakeetModel] = None
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self.state is ModelState.READY

    def _fetch(self, filename: str) -> Path:
        return Path(hf_hub_download(
            repo_id=self.model_name,
            filename=filename,
            cache_dir=self.cache_dir,
            local_files_only=self.local_files_only,
        ))

    def load(self, progress: Optional[ProgressCallback] = None) -> ParakeetModel:
        with self._lock:
            if self._model is not None:
                return self._model

            self.state = ModelState.DOWNLOADING
            notify(progress, "Downloading model...")
            logger.info("Fetching %s", self.model_name)
            try:
                fe_path = None
                if self.feature_extractor == 'onnx':
                    fe_path = self._fetch(FEATURE_EXTRACTOR_FILE)
                model = ParakeetModel.from_files(
                    encoder_path=self._fetch(ENCODER_FILE),
                    decoder_path=self._fetch(DECODER_FILE),
                    vocab_path=self._fetch(VOCAB_FILE),
                    feature_extractor_path=fe_path,
                    providers=self.providers,
                    config=self.config,
                )
            except Exception as exc:
                self.state = ModelState.FAILED
                self.error = exc
                logger.error("Loading %s failed: %s", self.model_name, exc)
                raise

            self._model = model
            self.error = None
            self.state = ModelState.READY
            logger.info("Model %s ready", self.model_name)
            return model
