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
# roberta.py
#
"""
This module contains the inference logic for RoBERTa-style classification
models: BPE tokenization aligned with the original word tokens, batching,
running the model through an :class:`InferenceSession`, and turning the
resulting scores back into annotations.
"""

import warnings
from typing import *

import numpy as np

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.ml.session import InferenceSession
from pandas_annotators.ml.signatures import (
    ModelSignatureConstants,
    ModelSignatureManager,
)
from pandas_annotators.tokenization.batching import (
    batches,
    encode_sentences,
    pad_batch,
    sigmoid,
    softmax,
)
from pandas_annotators.tokenization.bpe import BpeTokenizer
from pandas_annotators.tokenization.types import (
    IndexedToken,
    Sentence,
    TokenizedSentence,
    TokenPiece,
    WordpieceTokenizedSentence,
)
from pandas_annotators.util import format_scores

_ACTIVATIONS = {"softmax": softmax, "sigmoid": sigmoid}


class RoBertaClassification:
    """
    Token and sequence classification with a RoBERTa model behind an
    inference session.
    """

    def __init__(self, session: InferenceSession,
                 sentence_start_token_id: int,
                 sentence_end_token_id: int,
                 sentence_pad_token_id: int,
                 tags: Mapping[str, int],
                 merges: Mapping[Tuple[str, str], int],
                 vocabulary: Mapping[str, int],
                 signatures: Optional[Mapping[str, str]] = None):
        """
        :param session: Session that runs the model
        :param sentence_start_token_id: id of the sentence start token
        :param sentence_end_token_id: id of the sentence end token
        :param sentence_pad_token_id: id of the padding token
        :param tags: Dictionary mapping each label the model was trained with
         to its output position
        :param merges: BPE merge table
        :param vocabulary: BPE vocabulary
        :param signatures: Optional overrides of the default tensor names
        """
        self._session = session
        self._start_id = sentence_start_token_id
        self._end_id = sentence_end_token_id
        self._pad_id = sentence_pad_token_id
        self._tags = dict(tags)
        self._labels = [label for label, _ in
                        sorted(self._tags.items(), key=lambda kv: kv[1])]
        self._signatures = ModelSignatureManager.apply(signatures)
        self._bpe_tokenizer = BpeTokenizer.for_model("roberta", merges, vocabulary)

    @property
    def session(self) -> InferenceSession:
        return self._session

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    @property
    def tags(self) -> Dict[str, int]:
        return dict(self._tags)

    @property
    def bpe_tokenizer(self) -> BpeTokenizer:
        return self._bpe_tokenizer

    def tokenize_with_alignment(self, sentences: Sequence[TokenizedSentence],
                                max_seq_length: int,
                                case_sensitive: bool) -> List[WordpieceTokenizedSentence]:
        """
        Split each word of each sentence into BPE pieces.

        :param sentences: Sentences in the original word tokenization
        :param max_seq_length: Maximum number of pieces to keep per sentence
        :param case_sensitive: If `False`, words are lowercased before encoding
        :returns: One :class:`WordpieceTokenizedSentence` per input sentence.
         The first piece of every word is marked as a word start and starts at
         the same offset as the word.
        """
        result = []
        for sentence in sentences:
            pieces = []  # Type: List[TokenPiece]
            for token in sentence.indexed_tokens:
                # Skip empty and whitespace-only tokens
                if len(token.token.strip()) == 0:
                    continue
                content = token.token if case_sensitive else token.token.lower()
                word = Sentence(content, token.begin, token.end,
                                sentence.sentence_index)
                pieces.extend(self._bpe_tokenizer.encode_sentence(word))
            result.append(WordpieceTokenizedSentence(pieces[:max_seq_length]))
        return result

    def encode(self, sentences: Sequence[WordpieceTokenizedSentence],
               max_sequence_length: int) -> List[np.ndarray]:
        return encode_sentences(sentences, max_sequence_length,
                                self._start_id, self._end_id, self._pad_id)

    def _run_logits(self, batch: Sequence[np.ndarray]) -> Tuple[np.ndarray, int, int]:
        input_ids, attention_mask = pad_batch(batch, self._pad_id)
        outs = (
            self._session.runner()
            .feed(ModelSignatureManager.resolve(
                self._signatures, ModelSignatureConstants.InputIds), input_ids)
            .feed(ModelSignatureManager.resolve(
                self._signatures, ModelSignatureConstants.AttentionMask), attention_mask)
            .fetch(ModelSignatureManager.resolve(
                self._signatures, ModelSignatureConstants.LogitsOutput))
            .run()
        )
        raw_scores = np.asarray(outs[0], dtype=np.float32).reshape(-1)
        batch_length, max_sentence_length = input_ids.shape
        return raw_scores, batch_length, max_sentence_length

    def tag(self, batch: Sequence[np.ndarray]) -> np.ndarray:
        """
        Run token classification on a batch of encoded sentences.

        :param batch: Encoded sentences, as returned by :func:`encode`
        :returns: Array of shape ``[len(batch), max_len, num_labels]`` holding a
         probability distribution over labels for every position
        """
        raw_scores, batch_length, max_sentence_length = self._run_logits(batch)
        positions = batch_length * max_sentence_length
        dim = raw_scores.size // positions
        if dim == 0 or dim * positions != raw_scores.size:
            raise ValueError(f"Model returned {raw_scores.size} scores, which "
                             f"cannot be split over {batch_length} sentences "
                             f"of length {max_sentence_length}")
        return softmax(raw_scores.reshape(batch_length, max_sentence_length, dim))

    def tag_sequence(self, batch: Sequence[np.ndarray],
                     activation: str = "softmax") -> np.ndarray:
        """
        Run sequence classification on a batch of encoded sentences.

        :param batch: Encoded sentences, as returned by :func:`encode`
        :param activation: "softmax" for single-label or "sigmoid" for
         multi-label models
        :returns: Array of shape ``[len(batch), num_labels]`` of scores
        """
        if activation not in _ACTIVATIONS:
            raise ValueError(f"Unknown activation '{activation}'; expected one "
                             f"of {list(_ACTIVATIONS.keys())}")
        raw_scores, batch_length, _ = self._run_logits(batch)
        dim = raw_scores.size // batch_length
        if dim == 0 or dim * batch_length != raw_scores.size:
            raise ValueError(f"Model returned {raw_scores.size} scores, which "
                             f"cannot be split over {batch_length} sentences")
        return _ACTIVATIONS[activation](raw_scores.reshape(batch_length, dim))

    @staticmethod
    def find_indexed_token(tokenized_sentences: Sequence[TokenizedSentence],
                           sentence_index: int,
                           token_piece: TokenPiece) -> Optional[IndexedToken]:
        """
        :param tokenized_sentences: Sentences in the original tokenization
        :param sentence_index: Position of the sentence in `tokenized_sentences`
        :param token_piece: A piece produced by :func:`tokenize_with_alignment`
        :returns: The original token that starts where `token_piece` starts,
         or `None` if there is no such token
        """
        for token in tokenized_sentences[sentence_index].indexed_tokens:
            if token.begin == token_piece.begin:
                return token
        return None

    def _label(self, label_id: int) -> str:
        if label_id < len(self._labels):
            return self._labels[label_id]
        warnings.warn(f"Model predicted label id {label_id}, but only "
                      f"{len(self._labels)} labels are known")
        return str(label_id)

    def _warn_if_truncated(self, sentences: Sequence[TokenizedSentence],
                           wordpiece: Sequence[WordpieceTokenizedSentence],
                           max_sentence_length: int) -> None:
        for s, wp in zip(sentences, wordpiece):
            if len(wp.tokens) > max_sentence_length - 2:
                warnings.warn(f"Sentence {s.sentence_index} is longer than "
                              f"max_sentence_length={max_sentence_length} pieces "
                              f"and has been truncated")

    def predict(self, tokenized_sentences: Sequence[TokenizedSentence],
                batch_size: int, max_sentence_length: int,
                case_sensitive: bool) -> List[Annotation]:
        """
        Label every word of the indicated sentences.

        :param tokenized_sentences: Sentences in the original tokenization
        :param batch_size: Number of sentences per call to the model
        :param max_sentence_length: Maximum encoded sentence length, including
         the start and end markers. Words beyond it are not labeled.
        :param case_sensitive: If `False`, words are lowercased before encoding
        :returns: One NAMED_ENTITY annotation per labeled word, with metadata
         holding the sentence index, the word, and the score of every label
        """
        annotations = []
        for batch in batches(list(tokenized_sentences), batch_size):
            wordpiece = self.tokenize_with_alignment(batch, max_sentence_length,
                                                     case_sensitive)
            self._warn_if_truncated(batch, wordpiece, max_sentence_length)
            scores = self.tag(self.encode(wordpiece, max_sentence_length))
            for i, (sentence, wp) in enumerate(zip(batch, wordpiece)):
                # Position 0 of every encoded sentence is the start marker
                num_pieces = min(len(wp.tokens), scores.shape[1] - 2)
                for j, piece in enumerate(wp.tokens[:num_pieces]):
                    if not piece.is_word_start:
                        continue
                    token = self.find_indexed_token(batch, i, piece)
                    if token is None:
                        continue
                    piece_scores = scores[i, j + 1]
                    metadata = {"sentence": str(sentence.sentence_index),
                                "word": token.token}
                    metadata.update(format_scores(self._labels, piece_scores))
                    annotations.append(Annotation(
                        AnnotatorType.NAMED_ENTITY, token.begin, token.end,
                        self._label(int(np.argmax(piece_scores))), metadata))
        return annotations

    def predict_sequence(self, documents: Sequence[Sequence[TokenizedSentence]],
                         batch_size: int, max_sentence_length: int,
                         case_sensitive: bool, coalesce_sentences: bool = False,
                         activation: str = "softmax") -> List[List[Annotation]]:
        """
        Classify sentences, or whole documents.

        :param documents: For each document, its sentences in the original
         tokenization
        :param batch_size: Number of sequences per call to the model
        :param max_sentence_length: Maximum encoded sequence length
        :param case_sensitive: If `False`, words are lowercased before encoding
        :param coalesce_sentences: If `True`, all sentences of a document are
         classified together as one sequence
        :param activation: "softmax" or "sigmoid"
        :returns: For each document, one CATEGORY annotation per sentence (or a
         single one when `coalesce_sentences` is set) spanning the sentence's
         tokens, with the sentence index and the score of every label as
         metadata
        """
        units = []  # Type: List[Tuple[int, TokenizedSentence]]
        for doc_ix, sentences in enumerate(documents):
            sentences = [s for s in sentences if len(s.indexed_tokens) > 0]
            if len(sentences) == 0:
                continue
            if coalesce_sentences:
                tokens = [t for s in sentences for t in s.indexed_tokens]
                units.append((doc_ix, TokenizedSentence(
                    tokens, sentences[0].sentence_index)))
            else:
                units.extend((doc_ix, s) for s in sentences)

        results = [[] for _ in documents]  # Type: List[List[Annotation]]
        for batch in batches(units, batch_size):
            sentences = [s for _, s in batch]
            wordpiece = self.tokenize_with_alignment(sentences, max_sentence_length,
                                                     case_sensitive)
            self._warn_if_truncated(sentences, wordpiece, max_sentence_length)
            scores = self.tag_sequence(self.encode(wordpiece, max_sentence_length),
                                       activation)
            for (doc_ix, sentence), sentence_scores in zip(batch, scores):
                metadata = {"sentence": str(sentence.sentence_index)}
                metadata.update(format_scores(self._labels, sentence_scores))
                results[doc_ix].append(Annotation(
                    AnnotatorType.CATEGORY,
                    sentence.indexed_tokens[0].begin,
                    sentence.indexed_tokens[-1].end,
                    self._label(int(np.argmax(sentence_scores))), metadata))
        return results
