#
#  Copyright (c) 2020 IBM Corp.
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#  http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#

################################################################################
# bpe.py
#
"""
This module contains a byte-level byte-pair-encoding (BPE) tokenizer of the
kind used by GPT-2 and RoBERTa models.

Text is split into words with the GPT-2 pre-tokenization pattern, each word is
mapped byte-by-byte onto printable unicode characters, and adjacent symbols
are then merged in order of their merge rank until no known merge applies.
Every resulting piece keeps the character offsets of the part of the
original text that it covers, so that model outputs can be aligned back to
the input tokens.
"""

import json
from typing import *

import regex

from pandas_annotators.tokenization.types import (
    IndexedToken,
    Sentence,
    TokenPiece,
)

# Same pattern as the reference GPT-2 encoder. Needs the `regex` library for
# the \p{...} unicode classes.
_PRETOKENIZE_PATTERN = regex.compile(
    r"""'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""
)

# Symbol that byte-level BPE vocabularies use for a leading space
PREFIX_SPACE = "Ġ"

# Upper bound on the number of cached merge results per tokenizer
_MAX_CACHE_SIZE = 100000


def bytes_to_unicode() -> Dict[int, str]:
    """
    :returns: A reversible mapping from every byte value to a printable
     unicode character. Printable latin-1 bytes map to themselves; the rest
     (whitespace and control characters) are shifted above 255, which is why
     a space becomes ``"Ġ"``.
    """
    printable = (list(range(ord("!"), ord("~") + 1))
                 + list(range(ord("¡"), ord("¬") + 1))
                 + list(range(ord("®"), ord("ÿ") + 1)))
    byte_values = printable[:]
    code_points = printable[:]
    n = 0
    for b in range(256):
        if b not in printable:
            byte_values.append(b)
            code_points.append(256 + n)
            n += 1
    return dict(zip(byte_values, [chr(c) for c in code_points]))


def read_vocabulary(path: str) -> Dict[str, int]:
    """
    :param path: location of a ``vocab.json`` file mapping pieces to ids
    :returns: The vocabulary as a dictionary
    """
    with open(path, "r", encoding="utf-8") as f:
        vocabulary = json.load(f)
    if not isinstance(vocabulary, dict):
        raise ValueError(f"Expected a JSON object in {path}, but found "
                         f"{type(vocabulary)}")
    return {str(k): int(v) for k, v in vocabulary.items()}


def read_merges(path: str) -> Dict[Tuple[str, str], int]:
    """
    :param path: location of a ``merges.txt`` file with one space-separated
     pair per line, highest priority first. A leading ``#version`` line is
     skipped.
    :returns: Dictionary mapping each pair to its rank (0 = merged first)
    """
    merges = {}
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\n")
            if len(line) == 0 or line.startswith("#version"):
                continue
            parts = line.split(" ")
            if len(parts) != 2:
                raise ValueError(f"Malformed merge rule '{line}' in {path}")
            merges[(parts[0], parts[1])] = len(merges)
    return merges


class SpecialTokens(NamedTuple):
    sentence_start: str
    sentence_end: str
    unknown: str
    pad: str
    mask: Optional[str] = None

    def as_list(self) -> List[str]:
        tokens = [self.sentence_start, self.sentence_end, self.unknown, self.pad]
        if self.mask is not None:
            tokens.append(self.mask)
        # Several roles may share one string (GPT-2 uses a single token for all)
        return list(dict.fromkeys(tokens))


class BpeTokenizer:
    """
    Byte-level BPE tokenizer over a fixed vocabulary and merge table.

    Use :func:`BpeTokenizer.for_model` to get a tokenizer configured with the
    special tokens of a particular model family.
    """

    def __init__(self, merges: Mapping[Tuple[str, str], int],
                 vocabulary: Mapping[str, int], special_tokens: SpecialTokens,
                 add_prefix_space: bool = True):
        """
        :param merges: Dictionary mapping symbol pairs to merge rank
        :param vocabulary: Dictionary mapping pieces to ids
        :param special_tokens: Special tokens of the model; all of them must be
         present in `vocabulary`
        :param add_prefix_space: Whether to treat the first word of a text as
         if it were preceded by a space, which is how RoBERTa sees every word
        """
        missing = [t for t in special_tokens.as_list() if t not in vocabulary]
        if len(missing) > 0:
            raise ValueError(f"Special tokens {missing} not found in vocabulary")
        self._merges = dict(merges)
        self._vocabulary = dict(vocabulary)
        self._special_tokens = special_tokens
        self._add_prefix_space = add_prefix_space
        self._byte_encoder = bytes_to_unicode()
        self._cache = {}  # Type: Dict[Tuple[str, ...], Tuple[str, ...]]

        specials = sorted(special_tokens.as_list(), key=len, reverse=True)
        self._special_pattern = regex.compile(
            "|".join(regex.escape(t) for t in specials))

    @classmethod
    def for_model(cls, model_type: str, merges: Mapping[Tuple[str, str], int],
                  vocabulary: Mapping[str, int]) -> "BpeTokenizer":
        """
        :param model_type: Model family, currently "roberta" or "gpt2"
        :param merges: Dictionary mapping symbol pairs to merge rank
        :param vocabulary: Dictionary mapping pieces to ids
        :returns: A tokenizer with the special tokens and prefix-space behavior
         of the indicated model family
        """
        model_type = model_type.lower()
        if model_type == "roberta":
            return cls(merges, vocabulary,
                       SpecialTokens("<s>", "</s>", "<unk>", "<pad>", "<mask>"),
                       add_prefix_space=True)
        elif model_type == "gpt2":
            eos = "<|endoftext|>"
            return cls(merges, vocabulary, SpecialTokens(eos, eos, eos, eos),
                       add_prefix_space=False)
        else:
            raise ValueError(f"Unsupported BPE model type '{model_type}'; "
                             f"expected 'roberta' or 'gpt2'")

    @property
    def special_tokens(self) -> SpecialTokens:
        return self._special_tokens

    @property
    def vocabulary(self) -> Dict[str, int]:
        return self._vocabulary

    @property
    def merges(self) -> Dict[Tuple[str, str], int]:
        return self._merges

    @property
    def special_token_ids(self) -> Dict[str, int]:
        """
        :returns: ids of the "sentence_start", "sentence_end", "pad" and
         "unknown" tokens
        """
        return {
            "sentence_start": self._vocabulary[self._special_tokens.sentence_start],
            "sentence_end": self._vocabulary[self._special_tokens.sentence_end],
            "pad": self._vocabulary[self._special_tokens.pad],
            "unknown": self._vocabulary[self._special_tokens.unknown],
        }

    def tokenize(self, sentence: Sentence) -> List[IndexedToken]:
        """
        Split a sentence into the words that BPE operates on.

        :param sentence: Sentence whose `begin` is the offset of its content
         in the document
        :returns: Non-whitespace words and special tokens, with document
         offsets. Leading spaces are not part of the returned tokens.
        """
        content = sentence.content
        tokens = []
        pos = 0
        for m in self._special_pattern.finditer(content):
            tokens.extend(self._pretokenize(content, pos, m.start(), sentence.begin))
            tokens.append(IndexedToken(m.group(), sentence.begin + m.start(),
                                       sentence.begin + m.end()))
            pos = m.end()
        tokens.extend(self._pretokenize(content, pos, len(content), sentence.begin))
        return tokens

    def _pretokenize(self, content: str, start: int, end: int,
                     base: int) -> List[IndexedToken]:
        result = []
        for m in _PRETOKENIZE_PATTERN.finditer(content, start, end):
            text = m.group()
            word = text.lstrip()
            if len(word) == 0:
                continue
            begin = base + m.start() + (len(text) - len(word))
            result.append(IndexedToken(word, begin, begin + len(word)))
        return result

    def encode(self, token: IndexedToken, prefix_space: Optional[bool] = None,
               word_start: bool = True) -> List[TokenPiece]:
        """
        Apply byte-pair merges to a single word.

        :param token: Word to encode, as returned by :func:`tokenize`
        :param prefix_space: Whether to prepend the space symbol before merging;
         `None` means use this tokenizer's `add_prefix_space` setting
        :param word_start: Whether the first piece starts a word
        :returns: Pieces in order, each with its vocabulary id (the unknown id
         for pieces not in the vocabulary) and the offsets of the characters
         it covers. A piece that consists only of the prefix space gets a
         zero-length span at the start of the word.
        """
        if token.token in self._special_tokens.as_list():
            return [TokenPiece(token.token, token.token,
                               self._vocabulary[token.token], word_start,
                               token.begin, token.end)]
        if len(token.token) == 0:
            return []
        if prefix_space is None:
            prefix_space = self._add_prefix_space

        # Map each UTF-8 byte to its symbol and remember which character it
        # came from, so that merged pieces can be mapped back to offsets.
        symbols = []
        owners = []
        if prefix_space:
            symbols.append(PREFIX_SPACE)
            owners.append(-1)
        for char_ix, ch in enumerate(token.token):
            for b in ch.encode("utf-8"):
                symbols.append(self._byte_encoder[b])
                owners.append(char_ix)

        unknown_id = self._vocabulary[self._special_tokens.unknown]
        pieces = []
        pos = 0
        for piece in self._bpe(tuple(symbols)):
            piece_owners = [o for o in owners[pos:pos + len(piece)] if o >= 0]
            pos += len(piece)
            if len(piece_owners) > 0:
                begin = token.begin + min(piece_owners)
                end = token.begin + max(piece_owners) + 1
            else:
                begin = end = token.begin
            pieces.append(TokenPiece(
                piece, token.token, self._vocabulary.get(piece, unknown_id),
                word_start and len(pieces) == 0, begin, end))
        return pieces

    def encode_sentence(self, sentence: Sentence) -> List[TokenPiece]:
        """
        Tokenize and encode a whole sentence.

        The first word gets this tokenizer's prefix-space setting; every other
        word gets a prefix space exactly when it follows whitespace. Only the
        first piece of each whitespace-delimited word is marked as a word start.

        :param sentence: Sentence to encode
        :returns: Pieces for the entire sentence, in order
        """
        pieces = []
        for k, token in enumerate(self.tokenize(sentence)):
            local = token.begin - sentence.begin
            after_space = local > 0 and sentence.content[local - 1].isspace()
            if k == 0:
                pieces.extend(self.encode(token))
            else:
                pieces.extend(self.encode(token, prefix_space=after_space,
                                          word_start=after_space))
        return pieces

    def _bpe(self, symbols: Tuple[str, ...]) -> Tuple[str, ...]:
        cached = self._cache.get(symbols)
        if cached is not None:
            return cached

        word = list(symbols)
        while len(word) > 1:
            best_rank = None
            best_pair = None
            for pair in zip(word, word[1:]):
                rank = self._merges.get(pair)
                if rank is not None and (best_rank is None or rank < best_rank):
                    best_rank = rank
                    best_pair = pair
            if best_pair is None:
                break

            # Merge every occurrence of the best pair, left to right
            first, second = best_pair
            merged = []
            i = 0
            while i < len(word):
                if i < len(word) - 1 and word[i] == first and word[i + 1] == second:
                    merged.append(first + second)
                    i += 2
                else:
                    merged.append(word[i])
                    i += 1
            word = merged

        result = tuple(word)
        if len(self._cache) >= _MAX_CACHE_SIZE:
            self._cache.clear()
        self._cache[symbols] = result
        return result
