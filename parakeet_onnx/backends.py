"""
Inference backends: anything exposing ``run(named_inputs) -> named_outputs``.

The ONNX backend runs the exported Parakeet graphs; the log-mel backend is a
pure-PyTorch replacement for ``feature_extractor.onnx``.
"""
import logging
import threading
from typing import Dict, List, Protocol, Sequence

import librosa
import numpy as np
import onnxruntime as ort
import torch
import torch.nn as nn

from parakeet_onnx.errors import InferenceError

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS = ('CPUExecutionProvider',)


class InferenceBackend(Protocol):
    input_names: List[str]
    output_names: List[str]

    def run(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        ...


class OnnxBackend:
    """onnxruntime session behind the backend interface.

    Sessions are not assumed to be re-entrant, so ``run`` is serialized.
    """

    def __init__(self, session, name: str = 'onnx'):
        self.session = session
        self.name = name
        self.input_names = [i.name for i in session.get_inputs()]
        self.output_names = [o.name for o in session.get_outputs()]
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str, providers: Sequence[str] = DEFAULT_PROVIDERS) -> 'OnnxBackend':
        opts = ort.SessionOptions()
        opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        try:
            session = ort.InferenceSession(str(path), sess_options=opts, providers=list(providers))
        except Exception as exc:
            raise InferenceError(f"Failed to create ONNX session from {path}: {exc}") from exc
        logger.debug("Loaded %s (inputs=%s, outputs=%s)", path,
                     [i.name for i in session.get_inputs()], [o.name for o in session.get_outputs()])
        return cls(session, name=str(path))

    def run(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        with self._lock:
            try:
                values = self.session.run(None, inputs)
            except Exception as exc:
                raise InferenceError(f"{self.name}: inference failed: {exc}") from exc
        return dict(zip(self.output_names, values))


class LogMelPreprocessor(nn.Module):
    """Log mel spectrogram + per-feature normalization (mirrors NeMo's featurizer)."""

    def __init__(self, sample_rate: int = 16000, n_fft: int = 512, hop_length: int = 160,
                 win_length: int = 400, n_mels: int = 128,
                 log_zero_guard: float = 5.960464e-8):
        super().__init__()
        self.n_fft = n_fft
        self.hop_length = hop_length
        self.win_length = win_length
        self.log_zero_guard = log_zero_guard
        self.register_buffer('window', torch.hann_window(win_length, periodic=False))
        fb = librosa.filters.mel(sr=sample_rate, n_fft=n_fft, n_mels=n_mels,
                                 fmin=0.0, fmax=sample_rate / 2, norm='slaney')
        self.register_buffer('fb', torch.from_numpy(fb).float().unsqueeze(0))

    def forward(self, audio: torch.Tensor) -> torch.Tensor:
        """
        Args:
            audio: [B, T] float32, 16 kHz mono
        Returns:
            features: [B, n_mels, T'] normalised log-mel spectrogram
        """
        x = torch.cat([audio[:, :1], audio[:, 1:] - 0.97 * audio[:, :-1]], dim=1)

        stft = torch.stft(
            x.float(), n_fft=self.n_fft, hop_length=self.hop_length,
            win_length=self.win_length, window=self.window,
            center=True, pad_mode='reflect', return_complex=True,
        )  # [B, n_fft//2+1, T']

        power   = torch.view_as_real(stft).pow(2).sum(-1)
        mel     = torch.matmul(self.fb, power)  # [B, n_mels, T']
        log_mel = torch.log(mel + self.log_zero_guard)

        T    = log_mel.shape[-1]
        mean = log_mel.mean(dim=-1, keepdim=True)
        std  = torch.sqrt(((log_mel - mean).pow(2).sum(dim=-1, keepdim=True)) / max(T - 1, 1))
        return (log_mel - mean) / (std + 1e-5)


class LogMelBackend:
    """Feature extractor backend computing log-mels with torch.

    Takes ``waveforms`` [1, N] and ``waveforms_lens`` [1]; returns
    ``features`` [1, 128, T'] and ``features_lens`` [1].
    """

    input_names = ['waveforms', 'waveforms_lens']
    output_names = ['features', 'features_lens']

    def __init__(self, n_mels: int = 128, device: str = 'cpu'):
        self.device = torch.device(device)
        self.preprocessor = LogMelPreprocessor(n_mels=n_mels).to(self.device).eval()

    @torch.inference_mode()
    def run(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        try:
            audio = torch.from_numpy(np.asarray(inputs['waveforms'], dtype=np.float32)).to(self.device)
        except KeyError as exc:
            raise InferenceError("log-mel backend needs a 'waveforms' input") from exc
        if audio.ndim == 1:
            audio = audio.unsqueeze(0)
        min_len = self.preprocessor.n_fft // 2 + 1
        if audio.shape[-1] < min_len:
            raise InferenceError(f"log-mel backend needs at least {min_len} samples, got {audio.shape[-1]}")
        features = self.preprocessor(audio).cpu().numpy()
        lens = np.full((features.shape[0],), features.shape[-1], dtype=np.int64)
        return {'features': features, 'features_lens': lens}
