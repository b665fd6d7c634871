"""WordPiece tokenizer producing fixed-length model inputs.

Only the subset a BERT-style sentence encoder needs: lowercase, split on
whitespace and punctuation, greedy longest-match-first subword lookup.
"""

import logging
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Union

import numpy as np

logger = logging.getLogger(__name__)

UNKNOWN_TOKEN = "[UNK]"
START_TOKEN = "[CLS]"
SEPARATOR_TOKEN = "[SEP]"
CONTINUATION_PREFIX = "##"

# Bounds the quadratic longest-match search
MAX_WORD_CHARS = 200


@dataclass(frozen=True)
class TokenizedInput:
    """Model inputs of length ``max_sequence_length``."""
    input_ids: np.ndarray
    attention_mask: np.ndarray

    @property
    def length(self) -> int:
        """Number of real (non-padding) positions."""
        return int(self.attention_mask.sum())


def _is_punctuation(char: str) -> bool:
    return unicodedata.category(char)[0] in ("P", "S")


def split_words(text: str) -> List[str]:
    """Whitespace-separated runs, with each punctuation/symbol char on its own."""
    words: List[str] = []
    current: List[str] = []
    for char in text:
        if char.isspace():
            if current:
                words.append("".join(current))
                current = []
        elif _is_punctuation(char):
            if current:
                words.append("".join(current))
                current = []
            words.append(char)
        else:
            current.append(char)
    if current:
        words.append("".join(current))
    return words


class WordPieceTokenizer:
    """BERT-style WordPiece tokenizer over a plain-text vocabulary."""

    def __init__(self, vocabulary: Dict[str, int], max_sequence_length: int = 512):
        for special in (UNKNOWN_TOKEN, START_TOKEN, SEPARATOR_TOKEN):
            if special not in vocabulary:
                raise ValueError(f"Vocabulary is missing the {special} token")
        self.vocabulary = vocabulary
        self.max_sequence_length = max_sequence_length

    @classmethod
    def from_file(cls, vocab_path: Union[str, Path], max_sequence_length: int = 512) -> "WordPieceTokenizer":
        """Load a vocabulary file; line number is the token id."""
        vocabulary: Dict[str, int] = {}
        with open(vocab_path, encoding="utf-8") as f:
            for index, line in enumerate(f):
                token = line.strip()
                if token:
                    vocabulary[token] = index
        logger.debug(f"Loaded {len(vocabulary)} vocabulary entries from {vocab_path}")
        return cls(vocabulary, max_sequence_length)

    def _word_pieces(self, word: str) -> List[str]:
        if word in self.vocabulary:
            return [word]
        if len(word) > MAX_WORD_CHARS:
            return [UNKNOWN_TOKEN]

        pieces: List[str] = []
        start = 0
        while start < len(word):
            end = len(word)
            match = None
            while end > start:
                candidate = word[start:end]
                if start > 0:
                    candidate = CONTINUATION_PREFIX + candidate
                if candidate in self.vocabulary:
                    match = candidate
                    break
                end -= 1
            if match is None:
                return [UNKNOWN_TOKEN]
            pieces.append(match)
            start = end
        return pieces

    def tokenize(self, text: str) -> List[str]:
        """WordPiece tokens of ``text`` (no special tokens)."""
        tokens: List[str] = []
        for word in split_words(text.lower()):
            tokens.extend(self._word_pieces(word))
        return tokens

    def convert_tokens_to_ids(self, tokens: List[str]) -> List[int]:
        unknown = self.vocabulary[UNKNOWN_TOKEN]
        return [self.vocabulary.get(token, unknown) for token in tokens]

    def tokenize_to_arrays(self, text: str) -> TokenizedInput:
        """
        Token ids and attention mask, ``[CLS] tokens [SEP]`` truncated and
        zero padded to ``max_sequence_length``.
        """
        ids = (
            [self.vocabulary[START_TOKEN]]
            + self.convert_tokens_to_ids(self.tokenize(text))
            + [self.vocabulary[SEPARATOR_TOKEN]]
        )
        length = min(len(ids), self.max_sequence_length)

        input_ids = np.zeros(self.max_sequence_length, dtype=np.int64)
        attention_mask = np.zeros(self.max_sequence_length, dtype=np.int64)
        input_ids[:length] = ids[:length]
        attention_mask[:length] = 1
        return TokenizedInput(input_ids, attention_mask)

    def __len__(self) -> int:
        return len(self.vocabulary)
