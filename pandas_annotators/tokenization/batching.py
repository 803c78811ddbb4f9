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
# batching.py
#
# Functions for turning variable-length sequences of token ids into the
# fixed-length, padded and masked batches that transformer models expect, and
# for post-processing their raw scores.

import numpy as np
from typing import *

from pandas_annotators.tokenization.types import WordpieceTokenizedSentence

T = TypeVar("T")


def encode_sentences(
    sentences: Sequence[WordpieceTokenizedSentence],
    max_sequence_length: int,
    start_id: int,
    end_id: int,
    pad_id: int,
) -> List[np.ndarray]:
    """
    Wrap each sentence's piece ids in sentence start and end markers and pad
    all sentences of the batch to a common length.

    :param sentences: Subword-tokenized sentences of one batch
    :param max_sequence_length: Upper bound on the length of an encoded
     sentence, markers included
    :param start_id: id of the sentence start marker
    :param end_id: id of the sentence end marker
    :param pad_id: id used for padding

    :returns: One 1D int32 array per sentence, all of length
     ``min(longest sentence + 2, max_sequence_length)``
    """
    if len(sentences) == 0:
        return []
    if max_sequence_length < 2:
        raise ValueError(f"max_sequence_length must leave room for the start "
                         f"and end markers; got {max_sequence_length}")
    longest = max(len(s.tokens) for s in sentences)
    sentence_length = min(longest + 2, max_sequence_length)

    result = []
    for s in sentences:
        piece_ids = [p.piece_id for p in s.tokens][:sentence_length - 2]
        buf = np.full(shape=[sentence_length], fill_value=pad_id, dtype=np.int32)
        buf[0] = start_id
        buf[1:1 + len(piece_ids)] = piece_ids
        buf[1 + len(piece_ids)] = end_id
        result.append(buf)
    return result


def pad_batch(batch: Sequence[Sequence[int]],
              pad_id: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pack a batch of id sequences into a single rectangular tensor.

    :param batch: Sequences of token ids, possibly of different lengths
    :param pad_id: id of the padding token

    :returns: A tuple of two int32 arrays of shape ``[len(batch), max_len]``:
      * `input_ids`: the sequences, padded at the end with `pad_id`
      * `attention_mask`: 1 for positions that hold a real token of the
        sequence, 0 for padding (including `pad_id` tokens inside a sequence)
    """
    if len(batch) == 0:
        raise ValueError("Cannot build a tensor from an empty batch")
    max_len = max(len(seq) for seq in batch)
    input_ids = np.full(shape=[len(batch), max_len], fill_value=pad_id,
                        dtype=np.int32)
    attention_mask = np.zeros(shape=[len(batch), max_len], dtype=np.int32)
    for i, seq in enumerate(batch):
        seq = np.asarray(seq, dtype=np.int32)
        input_ids[i, :len(seq)] = seq
        attention_mask[i, :len(seq)] = (seq != pad_id)
    return input_ids, attention_mask


def softmax(scores: np.ndarray, axis: int = -1) -> np.ndarray:
    """
    :param scores: Raw scores (logits)
    :param axis: Axis along which the probabilities sum to 1
    :returns: Softmax of `scores` as float32, computed stably by shifting each
     row by its maximum before exponentiating
    """
    scores = np.asarray(scores, dtype=np.float32)
    shifted = scores - np.max(scores, axis=axis, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=axis, keepdims=True)


def sigmoid(scores: np.ndarray) -> np.ndarray:
    scores = np.asarray(scores, dtype=np.float32)
    return 1.0 / (1.0 + np.exp(-scores))


def batches(items: Sequence[T], batch_size: int) -> Iterator[Sequence[T]]:
    """
    :param items: Sequence to split
    :param batch_size: Maximum number of elements per chunk
    :returns: Consecutive chunks of `items`, the last one possibly shorter
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1; got {batch_size}")
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]
