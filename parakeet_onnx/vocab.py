"""Token-id vocabulary and subword detokenization."""
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from parakeet_onnx.errors import VocabLoadError

logger = logging.getLogger(__name__)

BLANK_TOKENS = ('<blk>', '<blank>')
CONTROL_TOKENS = BLANK_TOKENS + ('<pad>', '<unk>')
WORD_MARKER = '▁'  # SentencePiece '▁'


def _normalize_piece(token: str) -> str:
    # '▁foo' and ' foo' both mean "foo starts a new word"
    if token.startswith(WORD_MARKER):
        return ' ' + token[len(WORD_MARKER):]
    return token


class VocabularyTable:
    """Immutable id -> token mapping with a single blank id.

    ``vocab_size`` counts every entry, blank included, and is where the
    decoder splits token logits from duration logits.
    """

    def __init__(self, id_to_token: Dict[int, str], blank_id: int):
        if blank_id not in id_to_token:
            raise VocabLoadError(f"Blank id {blank_id} is not in the vocabulary")
        self._id_to_token = dict(id_to_token)
        self.blank_id = blank_id

    @property
    def vocab_size(self) -> int:
        return len(self._id_to_token)

    def __len__(self) -> int:
        return len(self._id_to_token)

    def token_of(self, token_id: int) -> Optional[str]:
        return self._id_to_token.get(token_id)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'VocabularyTable':
        """Load a ``token id`` per line vocabulary (e.g. the exported vocab.txt).

        Lines with fewer than two fields are skipped. A non-integer id, a
        missing file or the absence of a ``<blk>``/``<blank>`` line raises
        VocabLoadError.
        """
        try:
            content = Path(path).read_text(encoding='utf-8')
        except OSError as exc:
            raise VocabLoadError(f"Cannot read vocabulary file {path}: {exc}") from exc

        id_to_token = {}
        blank_id = None
        for lineno, line in enumerate(content.splitlines(), start=1):
            parts = line.split()
            if len(parts) < 2:
                continue
            token = parts[0]
            try:
                token_id = int(parts[1])
            except ValueError as exc:
                raise VocabLoadError(f"Bad token id at line {lineno}: {line!r}") from exc
            if token in BLANK_TOKENS:
                if blank_id is not None and blank_id != token_id:
                    raise VocabLoadError(
                        f"Second blank token at line {lineno} (id {token_id}, already have id {blank_id})"
                    )
                blank_id = token_id
            id_to_token[token_id] = _normalize_piece(token)

        if blank_id is None:
            raise VocabLoadError(f"No <blk>/<blank> token found in {path}")

        logger.debug("Loaded %d tokens from %s (blank id %d)", len(id_to_token), path, blank_id)
        return cls(id_to_token, blank_id)

    @classmethod
    def from_sentencepiece(cls, model_path: Union[str, Path]) -> 'VocabularyTable':
        """Build the table from a SentencePiece model, appending ``<blk>`` last.

        Transducer checkpoints put the blank right after the final content
        piece, so its id equals the piece count.
        """
        import sentencepiece as spm

        sp = spm.SentencePieceProcessor()
        try:
            sp.Load(str(model_path))
        except (OSError, RuntimeError) as exc:
            raise VocabLoadError(f"Cannot load SentencePiece model {model_path}: {exc}") from exc

        n_pieces = sp.GetPieceSize()
        id_to_token = {i: _normalize_piece(sp.IdToPiece(i)) for i in range(n_pieces)}
        id_to_token[n_pieces] = BLANK_TOKENS[0]
        return cls(id_to_token, blank_id=n_pieces)

    def decode(self, token_ids: Iterable[int]) -> str:
        return tokens_to_text(token_ids, self)


def tokens_to_text(token_ids: Iterable[int], vocab: VocabularyTable) -> str:
    """Join subword tokens into space-separated words.

    A token starting with a space opens a new word; any other token is
    glued onto the current one. Control tokens and unknown ids are dropped.
    """
    words = []
    cur = ''
    for token_id in token_ids:
        tok = vocab.token_of(token_id)
        if tok is None or tok in CONTROL_TOKENS or tok.startswith('<'):
            continue
        if tok.startswith(' '):
            if cur:
                words.append(cur)
            cur = tok[1:]
        else:
            cur += tok
    if cur:
        words.append(cur)
    return ' '.join(words)
