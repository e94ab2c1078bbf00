"""
TDT (Token-and-Duration Transducer) greedy decoding over exported decoder graphs.

Each step feeds the previous token, the recurrent state and the whole encoder
output to the decoder/joint graph, reads the logits at the current frame and
either emits a token or advances time by the predicted duration.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from parakeet_onnx.backends import InferenceBackend
from parakeet_onnx.errors import MissingOutputError, ShapeError
from parakeet_onnx.vocab import VocabularyTable

logger = logging.getLogger(__name__)

MAX_TOKENS = 4096
MAX_SYMBOLS_PER_STEP = 10
STATE_SHAPE = (2, 1, 640)  # [layers, batch, hidden] of the 2-layer LSTM
DURATIONS = (0, 1, 2, 3, 4)


def argmax(values) -> int:
    """Index of the first maximum; NaN entries never win."""
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        raise ValueError("argmax of an empty sequence")
    values = np.where(np.isnan(values), -np.inf, values)
    return int(np.argmax(values))


@dataclass
class DecoderState:
    """Recurrent state pair carried between decode steps of one chunk."""
    states_1: np.ndarray
    states_2: np.ndarray

    @classmethod
    def zeros(cls, shape: Tuple[int, ...] = STATE_SHAPE) -> 'DecoderState':
        return cls(np.zeros(shape, dtype=np.float32), np.zeros(shape, dtype=np.float32))


@dataclass
class DecodeProgress:
    """Loop variables of one chunk's decode."""
    state: DecoderState
    frame_idx: int = 0
    emitted_this_frame: int = 0
    decoded: List[int] = field(default_factory=list)
    steps: int = 0


class TDTGreedyDecoder:
    """Greedy TDT decoding driven one step at a time.

    ``decode()`` runs a whole chunk; ``start()`` / ``step()`` / ``finished()``
    expose the same loop for inspection.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        vocab: VocabularyTable,
        max_tokens: int = MAX_TOKENS,
        max_symbols_per_step: int = MAX_SYMBOLS_PER_STEP,
        state_shape: Tuple[int, ...] = STATE_SHAPE,
        durations: Sequence[int] = DURATIONS,
    ):
        self.backend = backend
        self.vocab = vocab
        self.max_tokens = max_tokens
        self.max_symbols_per_step = max_symbols_per_step
        self.state_shape = tuple(state_shape)
        self.durations = list(durations)

    def start(self) -> DecodeProgress:
        return DecodeProgress(state=DecoderState.zeros(self.state_shape))

    def finished(self, progress: DecodeProgress, total_frames: int) -> bool:
        return progress.frame_idx >= total_frames or len(progress.decoded) >= self.max_tokens

    def step(self, progress: DecodeProgress, encoder_out: np.ndarray) -> DecodeProgress:
        """Run one decoder call and update ``progress`` in place."""
        last_tok = progress.decoded[-1] if progress.decoded else self.vocab.blank_id
        outputs = self.backend.run({
            'encoder_outputs': encoder_out,
            'targets': np.array([[last_tok]], dtype=np.int32),
            'target_length': np.array([1], dtype=np.int32),
            'input_states_1': progress.state.states_1,
            'input_states_2': progress.state.states_2,
        })
        if 'outputs' not in outputs:
            raise MissingOutputError(f"Decoder returned no 'outputs' (got {sorted(outputs)})")

        token_logits, dur_logits = self._frame_logits(np.asarray(outputs['outputs']), progress.frame_idx)
        pred_token = argmax(token_logits)
        dur_bin = argmax(dur_logits)
        # bins past the table advance by their own index
        duration = self.durations[dur_bin] if dur_bin < len(self.durations) else dur_bin
        if duration == 0:
            duration = 1

        if pred_token == self.vocab.blank_id:
            progress.frame_idx += 1
            progress.emitted_this_frame = 0
        else:
            progress.decoded.append(pred_token)
            progress.emitted_this_frame += 1
            if progress.emitted_this_frame >= self.max_symbols_per_step:
                progress.frame_idx += 1
                progress.emitted_this_frame = 0
            else:
                progress.frame_idx += duration

        if outputs.get('output_states_1') is not None:
            progress.state.states_1 = np.asarray(outputs['output_states_1'], dtype=np.float32)
        if outputs.get('output_states_2') is not None:
            progress.state.states_2 = np.asarray(outputs['output_states_2'], dtype=np.float32)
        progress.steps += 1
        return progress

    def _frame_logits(self, logits: np.ndarray, frame_idx: int) -> Tuple[np.ndarray, np.ndarray]:
        # joint output is [B, T, U, vocab + durations]; B and U are 1 here
        c_dim = logits.shape[-1]
        n_dur = c_dim - self.vocab.vocab_size
        if n_dur <= 0:
            raise ShapeError(f"Decoder channel dim {c_dim} leaves no duration bins after vocab {self.vocab.vocab_size}")
        rows = logits.reshape(-1, c_dim)
        if frame_idx >= rows.shape[0]:
            raise ShapeError(f"Decoder output has {rows.shape[0]} frames, needed frame {frame_idx}")
        row = rows[frame_idx]
        return row[:self.vocab.vocab_size], row[self.vocab.vocab_size:]

    def decode(self, encoder_out: np.ndarray) -> List[int]:
        """
        Args:
            encoder_out: [1, D, T] encoder embeddings for one chunk
        Returns:
            emitted token ids (blank never included)
        """
        if encoder_out.ndim != 3:
            raise ShapeError(f"Expected encoder output [B, D, T], got shape {encoder_out.shape}")
        total_frames = encoder_out.shape[2]
        progress = self.start()
        while not self.finished(progress, total_frames):
            self.step(progress, encoder_out)
        logger.debug("Decoded %d tokens in %d steps over %d frames",
                     len(progress.decoded), progress.steps, total_frames)
        return progress.decoded
