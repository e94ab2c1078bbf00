import numpy as np
import pytest

from parakeet_onnx.chunking import CHUNK_SIZE, OVERLAP, iter_chunks


class TestIterChunks:
    def test_short_audio_single_chunk(self):
        audio = np.zeros(1000, np.float32)
        chunks = list(iter_chunks(audio))
        assert len(chunks) == 1
        assert chunks[0].pos == 0
        assert len(chunks[0].samples) == 1000

    def test_exact_chunk_size(self):
        chunks = list(iter_chunks(np.zeros(CHUNK_SIZE, np.float32)))
        assert [c.pos for c in chunks] == [0]

    def test_windows_overlap_and_tail_truncated(self):
        audio = np.arange(1_000_000, dtype=np.float32)
        chunks = list(iter_chunks(audio))
        step = CHUNK_SIZE - OVERLAP
        assert [c.pos for c in chunks] == [0, step, 2 * step]
        assert [len(c.samples) for c in chunks] == [CHUNK_SIZE, CHUNK_SIZE, 1_000_000 - 2 * step]
        assert chunks[1].samples[0] == step
        assert chunks[-1].samples[-1] == 999_999

    def test_offset_seconds(self):
        chunks = list(iter_chunks(np.zeros(600_000, np.float32)))
        assert chunks[1].offset_seconds(16000) == 27.0

    def test_small_windows(self):
        chunks = list(iter_chunks(np.arange(10), chunk_size=4, overlap=1))
        assert [c.samples.tolist() for c in chunks] == [[0, 1, 2, 3], [3, 4, 5, 6], [6, 7, 8, 9]]

    def test_empty(self):
        assert list(iter_chunks(np.zeros(0))) == []

    @pytest.mark.parametrize('overlap', [-1, 4, 5])
    def test_bad_overlap(self, overlap):
        with pytest.raises(ValueError):
            list(iter_chunks(np.zeros(10), chunk_size=4, overlap=overlap))
