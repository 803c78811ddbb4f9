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
# finisher.py
#
# Transformers that turn annotation columns back into ordinary pandas columns
# of strings and vectors at the end of a pipeline.

from typing import *

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from pandas_annotators.annotation import AnnotatorType
from pandas_annotators.annotator import ANNOTATOR_TYPES_ATTR, get_annotator_type
from pandas_annotators.util import object_series

_EMBEDDINGS_TYPES = (AnnotatorType.WORD_EMBEDDINGS,
                     AnnotatorType.SENTENCE_EMBEDDINGS)


def _cells(df: pd.DataFrame, col: str) -> List[list]:
    return [cell if isinstance(cell, (list, tuple)) else [] for cell in df[col]]


class _FinisherBase(BaseEstimator, TransformerMixin):

    def fit(self, df: pd.DataFrame, y=None):
        return self

    def __sklearn_is_fitted__(self) -> bool:
        return True

    def _output_names(self, suffix: str) -> List[str]:
        input_cols = [self.input_cols] if isinstance(self.input_cols, str) \
            else list(self.input_cols)
        if self.output_cols is None:
            return [f"{suffix}_{c}" for c in input_cols]
        output_cols = [self.output_cols] if isinstance(self.output_cols, str) \
            else list(self.output_cols)
        if len(output_cols) != len(input_cols):
            raise ValueError(f"Got {len(input_cols)} input columns but "
                             f"{len(output_cols)} output columns")
        return output_cols

    def _input_names(self, df: pd.DataFrame) -> List[str]:
        input_cols = [self.input_cols] if isinstance(self.input_cols, str) \
            else list(self.input_cols)
        missing = [c for c in input_cols if c not in df.columns]
        if len(missing) > 0:
            raise ValueError(f"Input columns {missing} not found in DataFrame "
                             f"(columns are {list(df.columns)})")
        return input_cols

    def _drop_annotations(self, ret: pd.DataFrame) -> pd.DataFrame:
        annotation_cols = [c for c in ret.columns
                           if c in ret.attrs.get(ANNOTATOR_TYPES_ATTR, {})]
        ret = ret.drop(columns=annotation_cols)
        ret.attrs[ANNOTATOR_TYPES_ATTR] = {}
        return ret


class Finisher(_FinisherBase):
    """
    Converts annotation columns into columns of lists of result strings.
    """

    def __init__(self, input_cols: Union[str, Sequence[str]],
                 output_cols: Union[str, Sequence[str], None] = None,
                 include_metadata: bool = False,
                 clean_annotations: bool = True):
        """
        :param input_cols: Annotation columns to convert
        :param output_cols: Names of the new columns; defaults to
         "finished_<input column>"
        :param include_metadata: If `True`, also add "<output column>_metadata"
         columns holding lists of metadata dictionaries
        :param clean_annotations: If `True`, drop all annotation columns from the
         result
        """
        self.input_cols = input_cols
        self.output_cols = output_cols
        self.include_metadata = include_metadata
        self.clean_annotations = clean_annotations

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        input_cols = self._input_names(df)
        output_cols = self._output_names("finished")
        ret = df.copy()
        for in_col, out_col in zip(input_cols, output_cols):
            cells = _cells(df, in_col)
            ret[out_col] = object_series([[a.result for a in cell] for cell in cells],
                                         index=df.index)
            if self.include_metadata:
                ret[f"{out_col}_metadata"] = object_series(
                    [[dict(a.metadata) for a in cell] for cell in cells],
                    index=df.index)
        if self.clean_annotations:
            ret = self._drop_annotations(ret)
        return ret


class EmbeddingsFinisher(_FinisherBase):
    """
    Converts embeddings annotation columns into columns of vectors.
    """

    def __init__(self, input_cols: Union[str, Sequence[str]],
                 output_cols: Union[str, Sequence[str], None] = None,
                 output_as_vector: bool = False,
                 clean_annotations: bool = True):
        """
        :param input_cols: Columns of WORD_EMBEDDINGS or SENTENCE_EMBEDDINGS
         annotations
        :param output_cols: Names of the new columns; defaults to
         "finished_<input column>"
        :param output_as_vector: If `True`, each cell is a 2D `np.ndarray` with
         one row per annotation; otherwise a list of 1D arrays
        :param clean_annotations: If `True`, drop all annotation columns from the
         result
        """
        self.input_cols = input_cols
        self.output_cols = output_cols
        self.output_as_vector = output_as_vector
        self.clean_annotations = clean_annotations

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        input_cols = self._input_names(df)
        output_cols = self._output_names("finished")
        for c in input_cols:
            annotator_type = get_annotator_type(df, c)
            if annotator_type is not None and annotator_type not in _EMBEDDINGS_TYPES:
                raise TypeError(f"Column '{c}' holds {annotator_type} annotations, "
                                f"not embeddings")
        ret = df.copy()
        for in_col, out_col in zip(input_cols, output_cols):
            values = []
            for cell in _cells(df, in_col):
                vectors = [a.embeddings for a in cell]
                if self.output_as_vector:
                    values.append(np.stack(vectors) if len(vectors) > 0
                                  else np.zeros(shape=[0, 0], dtype=np.float32))
                else:
                    values.append(vectors)
            ret[out_col] = object_series(values, index=df.index)
        if self.clean_annotations:
            ret = self._drop_annotations(ret)
        return ret
