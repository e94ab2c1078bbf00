import numpy as np
import pytest

from parakeet_onnx.vocab import VocabularyTable

N_DURATIONS = 5


class StubBackend:
    """Backend double recording every call."""

    def __init__(self, input_names, fn, output_names=None):
        self.input_names = list(input_names)
        self.output_names = list(output_names or [])
        self.fn = fn
        self.calls = []

    def run(self, inputs):
        self.calls.append(inputs)
        return self.fn(inputs)


def joint_logits(n_frames, vocab_size, token, duration_bin):
    """[1, T, 1, vocab + durations] with the same winner on every frame."""
    logits = np.zeros((1, n_frames, 1, vocab_size + N_DURATIONS), dtype=np.float32)
    logits[..., token] = 5.0
    logits[..., vocab_size + duration_bin] = 5.0
    return logits


@pytest.fixture
def vocab():
    return VocabularyTable(
        {0: '<unk>', 1: ' hello', 2: ' world', 3: 'ing', 4: '<blk>'},
        blank_id=4,
    )


@pytest.fixture
def feature_backend():
    def fn(inputs):
        n = inputs['waveforms'].shape[1]
        return {'features': np.zeros((1, 128, n // 160 + 1), dtype=np.float32)}
    return StubBackend(['waveforms', 'waveforms_lens'], fn, ['features'])


@pytest.fixture
def encoder_backend():
    def fn(inputs):
        t = inputs['audio_signal'].shape[2]
        return {'outputs': np.zeros((1, 4, max(1, t // 8)), dtype=np.float32),
                'encoded_lengths': np.array([max(1, t // 8)])}
    return StubBackend(['audio_signal', 'length'], fn, ['outputs', 'encoded_lengths'])


@pytest.fixture
def chain_decoder_backend(vocab):
    """Pure function of the previous token: blank -> 1 -> 2 -> 3 -> blank."""
    nxt = {vocab.blank_id: 1, 1: 2, 2: 3, 3: vocab.blank_id}

    def fn(inputs):
        last = int(inputs['targets'][0, 0])
        t = inputs['encoder_outputs'].shape[2]
        return {
            'outputs': joint_logits(t, vocab.vocab_size, nxt[last], 1),
            'output_states_1': inputs['input_states_1'],
            'output_states_2': inputs['input_states_2'],
        }
    return StubBackend(
        ['encoder_outputs', 'targets', 'target_length', 'input_states_1', 'input_states_2'],
        fn, ['outputs', 'output_states_1', 'output_states_2'],
    )
