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
# document.py
#
"""
This module contains the annotators that bring raw text into annotation form
and split it into sentences and tokens.
"""

from typing import *

import pandas as pd
import regex

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.annotator import (
    AnnotatorApproach,
    AnnotatorModel,
    set_annotator_type,
)
from pandas_annotators.util import object_series

_CLEAN_UP_MODES = ("disabled", "shrink")
_WHITESPACE = regex.compile(r"\s+")
_SENTENCE_BOUNDARY = regex.compile(r"(?<=[.!?])\s+")


class DocumentAssembler(AnnotatorModel):
    """
    Entry point of every pipeline: turns a column of strings into a column of
    DOCUMENT annotations, one per row.
    """

    output_annotator_type = AnnotatorType.DOCUMENT

    def __init__(self, input_col: str = "text", output_col: str = "document",
                 clean_up_mode: str = "disabled"):
        """
        :param input_col: Name of the column of raw strings
        :param output_col: Name of the column to create
        :param clean_up_mode: "disabled" to keep text as is, or "shrink" to
         strip the text and collapse runs of whitespace into single spaces.
         Offsets of all downstream annotations refer to the cleaned text.
        """
        super().__init__(input_cols=input_col, output_col=output_col)
        self.input_col = input_col
        self.clean_up_mode = clean_up_mode

    def get_input_cols(self) -> List[str]:
        return [self.input_col]

    def _clean(self, text: str) -> str:
        if self.clean_up_mode == "shrink":
            return _WHITESPACE.sub(" ", text.strip())
        return text

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if self.clean_up_mode not in _CLEAN_UP_MODES:
            raise ValueError(f"Unknown clean_up_mode '{self.clean_up_mode}'; "
                             f"expected one of {_CLEAN_UP_MODES}")
        if self.input_col not in df.columns:
            raise ValueError(f"Input column '{self.input_col}' not found in "
                             f"DataFrame (columns are {list(df.columns)})")
        results = []
        for text in df[self.input_col]:
            if not isinstance(text, str):
                results.append([])
                continue
            text = self._clean(text)
            results.append([Annotation(AnnotatorType.DOCUMENT, 0, len(text), text,
                                       {"sentence": "0"})])
        ret = df.copy()
        ret[self.output_col] = object_series(results, index=df.index)
        set_annotator_type(ret, self.output_col, self.output_annotator_type)
        return ret


class SentenceDetector(AnnotatorModel):
    """
    Splits DOCUMENT annotations into one DOCUMENT annotation per sentence.
    A sentence ends at ".", "!" or "?" followed by whitespace.
    """

    input_annotator_types = (AnnotatorType.DOCUMENT,)
    output_annotator_type = AnnotatorType.DOCUMENT

    def __init__(self, input_cols: Union[str, Sequence[str]] = "document",
                 output_col: str = "sentence", min_length: int = 0):
        """
        :param input_cols: Column of DOCUMENT annotations
        :param output_col: Name of the column to create
        :param min_length: Sentences with fewer characters are dropped
        """
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.min_length = min_length

    def annotate(self, annotations: List[Annotation]) -> List[Annotation]:
        result = []
        for doc in annotations:
            if doc.annotator_type != AnnotatorType.DOCUMENT:
                continue
            text = doc.result
            bounds = []
            start = 0
            for m in _SENTENCE_BOUNDARY.finditer(text):
                bounds.append((start, m.start()))
                start = m.end()
            bounds.append((start, len(text)))

            for begin, end in bounds:
                sentence = text[begin:end]
                stripped = sentence.strip()
                if len(stripped) == 0 or len(stripped) < self.min_length:
                    continue
                begin += len(sentence) - len(sentence.lstrip())
                result.append(Annotation(
                    AnnotatorType.DOCUMENT, doc.begin + begin,
                    doc.begin + begin + len(stripped), stripped,
                    {"sentence": str(len(result))}))
        return result


class TokenizerModel(AnnotatorModel):
    """
    Splits DOCUMENT annotations into TOKEN annotations with a regular
    expression. Usually created by fitting a :class:`Tokenizer`.
    """

    input_annotator_types = (AnnotatorType.DOCUMENT,)
    output_annotator_type = AnnotatorType.TOKEN

    def __init__(self, input_cols: Union[str, Sequence[str]] = "sentence",
                 output_col: str = "token",
                 target_pattern: str = r"\w+|[^\w\s]+",
                 min_length: int = 0, max_length: Optional[int] = None):
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.target_pattern = target_pattern
        self.min_length = min_length
        self.max_length = max_length

    def annotate(self, annotations: List[Annotation]) -> List[Annotation]:
        # regex keeps its own cache of compiled patterns
        pattern = regex.compile(self.target_pattern)
        result = []
        sentences = [a for a in annotations
                     if a.annotator_type == AnnotatorType.DOCUMENT]
        for position, sentence in enumerate(sentences):
            sentence_index = sentence.metadata.get("sentence", str(position))
            for m in pattern.finditer(sentence.result):
                token = m.group()
                if len(token) == 0 or len(token) < self.min_length:
                    continue
                if self.max_length is not None and len(token) > self.max_length:
                    continue
                result.append(Annotation(
                    AnnotatorType.TOKEN, sentence.begin + m.start(),
                    sentence.begin + m.end(), token,
                    {"sentence": sentence_index}))
        return result


class Tokenizer(AnnotatorApproach):
    """
    Estimator for :class:`TokenizerModel`. Fitting validates the parameters and
    compiles the target pattern.
    """

    def __init__(self, input_cols: Union[str, Sequence[str]] = "sentence",
                 output_col: str = "token",
                 target_pattern: str = r"\w+|[^\w\s]+",
                 min_length: int = 0, max_length: Optional[int] = None):
        self.input_cols = input_cols
        self.output_col = output_col
        self.target_pattern = target_pattern
        self.min_length = min_length
        self.max_length = max_length

    def train(self, df: pd.DataFrame) -> TokenizerModel:
        try:
            regex.compile(self.target_pattern)
        except regex.error as e:
            raise ValueError(f"Invalid target_pattern "
                             f"'{self.target_pattern}': {e}") from e
        if self.max_length is not None and self.max_length < self.min_length:
            raise ValueError(f"max_length ({self.max_length}) is less than "
                             f"min_length ({self.min_length})")
        return TokenizerModel(**self.get_params(deep=False))
