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
# types.py
#
# Lightweight containers for sentences, tokens and subword pieces, plus
# conversions from annotation lists.

import collections
from typing import *

from pandas_annotators.annotation import Annotation, AnnotatorType


class Sentence(NamedTuple):
    content: str
    begin: int
    end: int
    index: int


class IndexedToken(NamedTuple):
    """A token with character offsets (end exclusive) into the document."""
    token: str
    begin: int
    end: int


class TokenizedSentence(NamedTuple):
    indexed_tokens: List[IndexedToken]
    sentence_index: int


class TokenPiece(NamedTuple):
    """
    One subword piece of a token.

    `wordpiece` is the piece as it appears in the model vocabulary, `token` is
    the word it came from and `piece_id` is its vocabulary id. `begin` and `end`
    are the character offsets of the part of the word the piece covers.
    """
    wordpiece: str
    token: str
    piece_id: int
    is_word_start: bool
    begin: int
    end: int


class WordpieceTokenizedSentence(NamedTuple):
    tokens: List[TokenPiece]


def unpack_sentences(annotations: Iterable[Annotation]) -> List[Sentence]:
    """
    :param annotations: annotations of one row; only DOCUMENT annotations
     are considered
    :returns: One :class:`Sentence` per DOCUMENT annotation, using the
     "sentence" metadata entry as index when present and the position otherwise
    """
    documents = [a for a in annotations
                 if a.annotator_type == AnnotatorType.DOCUMENT]
    return [
        Sentence(a.result, a.begin, a.end,
                 int(a.metadata.get("sentence", position)))
        for position, a in enumerate(documents)
    ]


def unpack_tokenized_sentences(
        annotations: Iterable[Annotation]) -> List[TokenizedSentence]:
    """
    Group the TOKEN annotations of one row by sentence.

    :param annotations: annotations of one row; only TOKEN annotations are
     considered
    :returns: One :class:`TokenizedSentence` per distinct sentence index,
     ordered by sentence index, with tokens in their original order.
    """
    by_sentence = collections.OrderedDict()  # Type: Dict[int, List[IndexedToken]]
    for a in annotations:
        if a.annotator_type != AnnotatorType.TOKEN:
            continue
        by_sentence.setdefault(a.sentence_index, []).append(
            IndexedToken(a.result, a.begin, a.end))
    return [TokenizedSentence(tokens, index)
            for index, tokens in sorted(by_sentence.items())]
