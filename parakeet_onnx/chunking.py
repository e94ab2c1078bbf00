"""Overlapping fixed-size windows over long audio."""
from dataclasses import dataclass
from typing import Iterator

import numpy as np

CHUNK_SIZE = 480_000  # 30 s at 16 kHz
OVERLAP = 48_000      # 3 s


@dataclass(frozen=True)
class AudioChunk:
    pos: int             # sample offset of the window in the full signal
    samples: np.ndarray

    def offset_seconds(self, sample_rate: int) -> float:
        return self.pos / sample_rate


def iter_chunks(audio: np.ndarray, chunk_size: int = CHUNK_SIZE,
                overlap: int = OVERLAP) -> Iterator[AudioChunk]:
    """Yield windows advancing by ``chunk_size - overlap``.

    The last window is cut to whatever remains; nothing is padded. Audio no
    longer than ``chunk_size`` comes back as one window at offset 0.
    """
    if not 0 <= overlap < chunk_size:
        raise ValueError(f"overlap must be in [0, chunk_size), got {overlap} for chunk_size {chunk_size}")
    n = len(audio)
    pos = 0
    while pos < n:
        end = min(pos + chunk_size, n)
        yield AudioChunk(pos=pos, samples=audio[pos:end])
        if end == n:
            break
        pos += chunk_size - overlap
