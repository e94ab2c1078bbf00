import pytest

from parakeet_onnx import vocab as vocab_mod
from parakeet_onnx.errors import VocabLoadError
from parakeet_onnx.vocab import VocabularyTable, tokens_to_text


def write_vocab(tmp_path, lines):
    path = tmp_path / 'vocab.txt'
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


class TestFromFile:
    def test_size_and_blank(self, tmp_path):
        path = write_vocab(tmp_path, ['hello 0', 'world 1', '<blk> 2'])
        vocab = VocabularyTable.from_file(path)
        assert vocab.vocab_size == 3
        assert len(vocab) == 3
        assert vocab.blank_id == 2
        assert vocab.token_of(0) == 'hello'
        assert vocab.token_of(2) == '<blk>'
        assert vocab.token_of(3) is None

    def test_blank_alias(self, tmp_path):
        path = write_vocab(tmp_path, ['<unk> 0', '<blank> 1', 'a 2'])
        assert VocabularyTable.from_file(path).blank_id == 1

    def test_two_different_blanks_fail(self, tmp_path):
        path = write_vocab(tmp_path, ['a 0', '<blk> 1', '<blank> 2'])
        with pytest.raises(VocabLoadError, match='line 3'):
            VocabularyTable.from_file(path)

    def test_repeated_blank_same_id_ok(self, tmp_path):
        path = write_vocab(tmp_path, ['a 0', '<blk> 1', '<blk> 1'])
        assert VocabularyTable.from_file(path).blank_id == 1

    def test_missing_blank_fails(self, tmp_path):
        path = write_vocab(tmp_path, ['hello 0', 'world 1'])
        with pytest.raises(VocabLoadError, match='blk'):
            VocabularyTable.from_file(path)

    def test_bad_id_fails(self, tmp_path):
        path = write_vocab(tmp_path, ['hello 0', 'world one', '<blk> 2'])
        with pytest.raises(VocabLoadError, match='line 2'):
            VocabularyTable.from_file(path)

    def test_missing_file_fails(self, tmp_path):
        with pytest.raises(VocabLoadError):
            VocabularyTable.from_file(tmp_path / 'nope.txt')

    def test_short_lines_skipped(self, tmp_path):
        path = write_vocab(tmp_path, ['', 'lonely', 'a 0', '<blk> 1'])
        assert VocabularyTable.from_file(path).vocab_size == 2

    def test_sentencepiece_marker_becomes_space(self, tmp_path):
        path = write_vocab(tmp_path, ['▁Hello 0', '▁World 1', 's 2', '<blk> 3'])
        vocab = VocabularyTable.from_file(path)
        assert vocab.token_of(0) == ' Hello'
        assert vocab.decode([0, 1, 2]) == 'Hello Worlds'


class FakeSentencePiece:
    pieces = ['<unk>', '▁the', '▁cat', 's']

    def Load(self, path):
        if not path.endswith('.model'):
            raise OSError(f'Not found: "{path}"')

    def GetPieceSize(self):
        return len(self.pieces)

    def IdToPiece(self, i):
        return self.pieces[i]


class TestFromSentencePiece:
    @pytest.fixture(autouse=True)
    def fake_spm(self, monkeypatch):
        import sentencepiece
        monkeypatch.setattr(sentencepiece, 'SentencePieceProcessor', FakeSentencePiece)

    def test_blank_appended_after_pieces(self):
        vocab = VocabularyTable.from_sentencepiece('tokenizer.model')
        assert vocab.vocab_size == 5
        assert vocab.blank_id == 4
        assert vocab.decode([1, 2, 3, 4]) == 'the cats'

    def test_load_failure(self):
        with pytest.raises(VocabLoadError):
            VocabularyTable.from_sentencepiece('missing.bin')


class TestTokensToText:
    def test_words(self, vocab):
        assert tokens_to_text([1, 2], vocab) == 'hello world'

    def test_hello_world(self):
        vocab = VocabularyTable({0: ' Hello', 1: ' World', 2: '<blk>'}, blank_id=2)
        assert tokens_to_text([0, 1], vocab) == 'Hello World'

    def test_only_control_tokens(self, vocab):
        assert tokens_to_text([4], vocab) == ''
        assert tokens_to_text([0, 4, 0], vocab) == ''

    def test_continuation_glued(self, vocab):
        assert tokens_to_text([2, 3, 3], vocab) == 'worldinging'

    def test_leading_continuation(self, vocab):
        assert tokens_to_text([3, 1], vocab) == 'ing hello'

    def test_angle_bracket_tokens_and_unknown_ids_skipped(self):
        vocab = VocabularyTable({0: '<blk>', 1: '<|nospeech|>', 2: ' ok', 3: '<pad>'}, blank_id=0)
        assert tokens_to_text([1, 2, 3, 99], vocab) == 'ok'

    def test_bare_space_token_splits_words(self):
        vocab = VocabularyTable({0: 'ab', 1: ' ', 2: 'cd', 3: '<blk>'}, blank_id=3)
        assert tokens_to_text([0, 1, 2], vocab) == 'ab cd'


def test_blank_must_be_in_table():
    with pytest.raises(VocabLoadError):
        VocabularyTable({0: 'a'}, blank_id=1)


def test_control_tokens_cover_blank_markers():
    assert set(vocab_mod.BLANK_TOKENS) <= set(vocab_mod.CONTROL_TOKENS)
