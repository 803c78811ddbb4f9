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
# annotator.py
#
"""
This module contains the base classes that plug annotators into scikit-learn
style pipelines over pandas DataFrames.

An annotator reads one or more *annotation columns* (each cell a list of
:class:`Annotation` objects) and writes a new one. Annotators that need no
training derive from :class:`AnnotatorModel`; annotators whose `fit()` builds
a model from data derive from :class:`AnnotatorApproach`. Parameters are plain
constructor arguments, so `get_params()` and `set_params()` act as the
parameter getters and setters, and annotators can be chained with
`sklearn.pipeline.Pipeline`.
"""

import importlib
import json
import os
from typing import *

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from pandas_annotators.annotation import Annotation, annotation_column_type
from pandas_annotators.ml.session import InferenceSession, SESSION_TYPES
from pandas_annotators.tokenization.batching import batches
from pandas_annotators.util import object_series

# Keys under DataFrame.attrs where annotators record column-level information
ANNOTATOR_TYPES_ATTR = "annotator_types"
ANNOTATION_METADATA_ATTR = "annotation_metadata"

_METADATA_FILE = "metadata.json"
_FIELDS_DIR = "fields"
_MODEL_DIR = "model"


def get_annotator_type(df: pd.DataFrame, col: str) -> Optional[str]:
    """
    :param df: DataFrame containing an annotation column
    :param col: Name of the column
    :returns: The annotator type recorded for `col` in `df.attrs`, or failing
     that the type of the first annotation in the column, or `None` if the
     column is empty
    """
    recorded = df.attrs.get(ANNOTATOR_TYPES_ATTR, {}).get(col)
    if recorded is not None:
        return recorded
    return annotation_column_type(df[col])


def set_annotator_type(df: pd.DataFrame, col: str, annotator_type: str) -> None:
    """
    Record the annotator type of column `col` of `df`. MODIFIES `df` IN PLACE.
    """
    types = dict(df.attrs.get(ANNOTATOR_TYPES_ATTR, {}))
    types[col] = annotator_type
    df.attrs[ANNOTATOR_TYPES_ATTR] = types


def _as_list(cols: Union[None, str, Sequence[str]]) -> List[str]:
    if cols is None:
        return []
    if isinstance(cols, str):
        return [cols]
    return list(cols)


def _row_annotations(cells: Sequence[Any]) -> List[Annotation]:
    # Missing values (NaN/None) count as "no annotations"
    result = []
    for cell in cells:
        if isinstance(cell, (list, tuple)):
            result.extend(cell)
    return result


class AnnotatorModel(BaseEstimator, TransformerMixin):
    """
    Base class for annotators that are ready to use without training.

    Subclasses declare `input_annotator_types` and `output_annotator_type`
    and implement :func:`annotate`.
    """

    # Annotator types that the input columns must provide, in any order
    input_annotator_types = ()  # Type: Tuple[str, ...]

    # Annotator type of the output column
    output_annotator_type = None  # Type: str

    def __init__(self, input_cols: Union[str, Sequence[str], None] = None,
                 output_col: Optional[str] = None):
        self.input_cols = input_cols
        self.output_col = output_col

    def get_input_cols(self) -> List[str]:
        return _as_list(self.input_cols)

    def fit(self, df: pd.DataFrame, y=None) -> "AnnotatorModel":
        return self

    def __sklearn_is_fitted__(self) -> bool:
        return True

    def annotate(self, annotations: List[Annotation]) -> List[Annotation]:
        """
        Produce the annotations of one row.

        :param annotations: All annotations of the row's input columns,
         concatenated in column order
        :returns: Any number of output annotations for the row
        """
        raise NotImplementedError()

    def annotate_rows(self, rows: List[List[Annotation]]) -> List[List[Annotation]]:
        return [self.annotate(row) for row in rows]

    def after_annotate(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Hook called with the output DataFrame after the output column has been
        added. Subclasses use it to attach column-level metadata.
        """
        return df

    def _validate_input(self, df: pd.DataFrame) -> List[str]:
        if not isinstance(df, pd.DataFrame):
            raise TypeError(f"Expected a pandas DataFrame but received {type(df)}")
        cols = self.get_input_cols()
        if len(cols) == 0:
            raise ValueError(f"No input columns set on {type(self).__name__}")
        if self.output_col is None:
            raise ValueError(f"No output column set on {type(self).__name__}")
        missing = [c for c in cols if c not in df.columns]
        if len(missing) > 0:
            raise ValueError(f"Input columns {missing} not found in DataFrame "
                             f"(columns are {list(df.columns)})")

        actual = [get_annotator_type(df, c) for c in cols]
        # Columns with no annotations at all can't be checked
        if None not in actual:
            required = list(self.input_annotator_types)
            for t in required:
                if t not in actual:
                    raise ValueError(
                        f"{type(self).__name__} requires input columns of types "
                        f"{required}, but columns {cols} have types {actual}")
        return cols

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        :param df: DataFrame containing the input annotation columns
        :returns: A copy of `df` with the output column added
        """
        cols = self._validate_input(df)
        columns = [df[c].tolist() for c in cols]
        rows = [_row_annotations(cells) for cells in zip(*columns)]
        results = self.annotate_rows(rows) if len(rows) > 0 else []
        ret = df.copy()
        ret[self.output_col] = object_series(results, index=df.index)
        set_annotator_type(ret, self.output_col, self.output_annotator_type)
        return self.after_annotate(ret)

    ############################################################################
    # Model management

    def set_model_if_not_set(self, model: Any) -> "AnnotatorModel":
        """
        Attach the inference engine this annotator runs. Has no effect if an
        engine is already attached.
        """
        if getattr(self, "_model", None) is None:
            self._model = model
        return self

    def get_model(self) -> Any:
        model = getattr(self, "_model", None)
        if model is None:
            raise ValueError(f"No model has been set on {type(self).__name__}; "
                             f"load one with pretrained() or load_saved_model()")
        return model

    def has_model(self) -> bool:
        return getattr(self, "_model", None) is not None

    ############################################################################
    # Persistence

    def _fields_to_write(self) -> Dict[str, Any]:
        """
        :returns: JSON-serializable state beyond the parameters that must be
         saved along with this annotator, keyed by field name
        """
        return {}

    def _session_to_write(self) -> Optional[InferenceSession]:
        model = getattr(self, "_model", None)
        if model is None or isinstance(model, InferenceSession):
            return model
        return model.session

    @classmethod
    def _session_load_args(cls, model_path: str) -> Dict[str, Any]:
        """
        :param model_path: Directory holding the saved session
        :returns: Extra arguments that this class needs passed to the
         session's `load()` method
        """
        return {}

    def _on_load(self, fields: Dict[str, Any],
                 session: Optional[InferenceSession]) -> None:
        """
        Restore state written by :func:`_fields_to_write` and the saved session.
        """
        if session is not None:
            self.set_model_if_not_set(session)

    def write(self, path: str, overwrite: bool = False) -> None:
        """
        Save this annotator to the directory `path`.

        :param path: Target directory
        :param overwrite: If `False`, refuse to write into a non-empty directory
        """
        if os.path.isdir(path) and len(os.listdir(path)) > 0 and not overwrite:
            raise FileExistsError(f"Directory {path} already exists and is not "
                                  f"empty; pass overwrite=True to replace it")
        os.makedirs(os.path.join(path, _FIELDS_DIR), exist_ok=True)

        for name, value in self._fields_to_write().items():
            with open(os.path.join(path, _FIELDS_DIR, f"{name}.json"), "w",
                      encoding="utf-8") as f:
                json.dump(value, f)

        session = self._session_to_write()
        if session is not None:
            session.save(os.path.join(path, _MODEL_DIR))
        metadata = {
            "class": f"{type(self).__module__}.{type(self).__qualname__}",
            "params": self.get_params(deep=False),
            "session": type(session).__name__ if session is not None else None,
        }
        with open(os.path.join(path, _METADATA_FILE), "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2)

    @classmethod
    def load(cls, path: str, **session_args) -> "AnnotatorModel":
        """
        Read back an annotator saved with :func:`write`.

        :param path: Directory written by :func:`write`
        :param session_args: Extra arguments for the session's `load()`
         method, such as `device`
        """
        metadata_file = os.path.join(path, _METADATA_FILE)
        if not os.path.exists(metadata_file):
            raise FileNotFoundError(f"No saved annotator found at {path} "
                                    f"({_METADATA_FILE} missing)")
        with open(metadata_file, "r", encoding="utf-8") as f:
            metadata = json.load(f)

        module_name, _, class_name = metadata["class"].rpartition(".")
        target = getattr(importlib.import_module(module_name), class_name)
        if not issubclass(target, cls):
            raise TypeError(f"Annotator saved at {path} is a {metadata['class']}, "
                            f"which is not a subclass of {cls.__name__}")
        instance = target(**metadata["params"])

        fields = {}
        fields_dir = os.path.join(path, _FIELDS_DIR)
        if os.path.isdir(fields_dir):
            for file_name in sorted(os.listdir(fields_dir)):
                if file_name.endswith(".json"):
                    with open(os.path.join(fields_dir, file_name), "r",
                              encoding="utf-8") as f:
                        fields[file_name[:-len(".json")]] = json.load(f)

        session = None
        if metadata.get("session") is not None:
            session_type = SESSION_TYPES.get(metadata["session"])
            if session_type is None:
                raise ValueError(f"Don't know how to load a session of type "
                                 f"{metadata['session']}")
            model_path = os.path.join(path, _MODEL_DIR)
            load_args = target._session_load_args(model_path)
            load_args.update(session_args)
            session = session_type.load(model_path, **load_args)
        instance._on_load(fields, session)
        return instance


class HasBatchedAnnotate:
    """
    Mixin for annotators that process several rows per call to their model.
    Classes using it must have a `batch_size` parameter and implement
    :func:`batch_annotate`.
    """

    def batch_annotate(self, batch: List[List[Annotation]]) -> List[List[Annotation]]:
        raise NotImplementedError()

    def annotate_rows(self, rows: List[List[Annotation]]) -> List[List[Annotation]]:
        results = []
        for batch in batches(rows, self.batch_size):
            results.extend(self.batch_annotate(list(batch)))
        return results


class AnnotatorApproach(BaseEstimator, TransformerMixin):
    """
    Base class for annotators that build their model in `fit()`. After
    fitting, the model is available as `model_` and `transform()` delegates
    to it.
    """

    def train(self, df: pd.DataFrame) -> AnnotatorModel:
        raise NotImplementedError()

    def fit(self, df: pd.DataFrame, y=None) -> "AnnotatorApproach":
        self.model_ = self.train(df)
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "model_")
        return self.model_.transform(df)

    def __sklearn_is_fitted__(self) -> bool:
        return hasattr(self, "model_")
