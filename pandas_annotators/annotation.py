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

#
# annotation.py
#
# Part of pandas_annotators
#
# The annotation record that flows between annotators, one list of
# annotations per DataFrame cell.
#

import textwrap
from typing import *

import numpy as np


class AnnotatorType:
    """
    String constants identifying the kind of content an annotation column
    holds. Annotators declare which types they consume and produce.
    """
    DOCUMENT = "document"
    TOKEN = "token"
    WORDPIECE = "wordpiece"
    WORD_EMBEDDINGS = "word_embeddings"
    SENTENCE_EMBEDDINGS = "sentence_embeddings"
    CATEGORY = "category"
    NAMED_ENTITY = "named_entity"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.DOCUMENT, cls.TOKEN, cls.WORDPIECE, cls.WORD_EMBEDDINGS,
                cls.SENTENCE_EMBEDDINGS, cls.CATEGORY, cls.NAMED_ENTITY]


_EMPTY_EMBEDDINGS = np.zeros(shape=[0], dtype=np.float32)


class Annotation:
    """
    Python object representation of a single annotation over a region of
    text.

    Offsets follow Python slicing conventions: `begin` is inclusive and `end`
    is exclusive, so ``text[a.begin:a.end]`` is the annotated region.
    """

    def __init__(self, annotator_type: str, begin: int, end: int, result: str,
                 metadata: Optional[Dict[str, str]] = None,
                 embeddings: Optional[Union[np.ndarray, Sequence[float]]] = None):
        """
        :param annotator_type: one of the :class:`AnnotatorType` constants
        :param begin: Begin offset (inclusive) of the annotated region
        :param end: End offset (exclusive, one past the last char)
        :param result: String result of the annotator, e.g. a label or the
         covered text
        :param metadata: Optional string-to-string dictionary of extra
         information such as the sentence index or per-label scores
        :param embeddings: Optional 1D vector attached to the annotation
        """
        if begin < 0:
            raise ValueError(f"begin must be >= 0 (got {begin})")
        if end < begin:
            raise ValueError(f"end must be >= begin (got [{begin}, {end}))")
        self._annotator_type = annotator_type
        self._begin = int(begin)
        self._end = int(end)
        self._result = result
        self._metadata = dict(metadata) if metadata is not None else {}
        if embeddings is None:
            self._embeddings = _EMPTY_EMBEDDINGS
        else:
            self._embeddings = np.asarray(embeddings, dtype=np.float32).reshape(-1)

    @property
    def annotator_type(self) -> str:
        return self._annotator_type

    @property
    def begin(self) -> int:
        return self._begin

    @property
    def end(self) -> int:
        return self._end

    @property
    def result(self) -> str:
        return self._result

    @property
    def metadata(self) -> Dict[str, str]:
        return self._metadata

    @property
    def embeddings(self) -> np.ndarray:
        return self._embeddings

    @property
    def sentence_index(self) -> int:
        """
        Index of the sentence this annotation belongs to, taken from the
        "sentence" metadata entry. Annotations without one belong to sentence 0.
        """
        return int(self._metadata.get("sentence", 0))

    def __repr__(self) -> str:
        return (f"Annotation({self._annotator_type}, [{self._begin}, {self._end}): "
                f"'{textwrap.shorten(str(self._result), 40)}')")

    def __eq__(self, other):
        if not isinstance(other, Annotation):
            return False
        return (self._annotator_type == other._annotator_type
                and self._begin == other._begin
                and self._end == other._end
                and self._result == other._result
                and self._metadata == other._metadata
                and np.array_equal(self._embeddings, other._embeddings))

    def __hash__(self):
        return hash((self._annotator_type, self._begin, self._end, self._result))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annotator_type": self._annotator_type,
            "begin": self._begin,
            "end": self._end,
            "result": self._result,
            "metadata": dict(self._metadata),
            "embeddings": self._embeddings.tolist(),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Annotation":
        metadata = d.get("metadata")
        # Arrow map columns come back as lists of (key, value) pairs
        if metadata is not None and not isinstance(metadata, Mapping):
            metadata = dict(metadata)
        return cls(d["annotator_type"], d["begin"], d["end"], d["result"],
                   metadata, d.get("embeddings"))


def annotation_column_type(values: Iterable[Any]) -> Optional[str]:
    """
    Infer the annotator type of a column of annotation lists.

    :param values: cells of an annotation column; each cell is a list of
     :class:`Annotation` objects (or a missing value)
    :returns: The annotator type of the first annotation found, or `None` if
     the column contains no annotations at all.
    """
    for cell in values:
        if isinstance(cell, (list, tuple)) and len(cell) > 0:
            first = cell[0]
            if not isinstance(first, Annotation):
                raise TypeError(f"Expected a column of Annotation lists, but found "
                                f"an element of type {type(first)}")
            return first.annotator_type
    return None
