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
# sentence_encoder.py
#
"""
This module contains an annotator that attaches a sentence embedding to each
sentence of a document.

Models are imported from the ``sentence-transformers``_ format with
:func:`UniversalSentenceEncoder.load_saved_model`. You will need that library
in your Python path to import or restore a model.

.. _``sentence-transformers``: https://www.sbert.net
"""

import os
import warnings
from typing import *

import pandas as pd

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.annotator import (
    ANNOTATION_METADATA_ATTR,
    AnnotatorModel,
    HasBatchedAnnotate,
)
from pandas_annotators.annotators.pretrained import HasPretrained
from pandas_annotators.ml.sentence_encoder import SentenceEncoderModel
from pandas_annotators.ml.session import (
    InferenceSession,
    SentenceTransformerSession,
)
from pandas_annotators.tokenization.types import Sentence, unpack_sentences

_MODULES_FILE = "modules.json"


class UniversalSentenceEncoder(HasBatchedAnnotate, HasPretrained, AnnotatorModel):
    """
    Encodes every sentence into a fixed-size vector.

    Takes a DOCUMENT column (usually the output of a
    :class:`pandas_annotators.text.SentenceDetector`) and produces a
    SENTENCE_EMBEDDINGS column with one annotation per non-empty sentence.
    """

    input_annotator_types = (AnnotatorType.DOCUMENT,)
    output_annotator_type = AnnotatorType.SENTENCE_EMBEDDINGS
    default_model_name = "tfhub_use"

    def __init__(self, input_cols: Union[str, Sequence[str]] = "sentence",
                 output_col: str = "sentence_embeddings", dimension: int = 512,
                 storage_ref: str = "tfhub_use", load_sp: Optional[bool] = None,
                 batch_size: int = 32):
        """
        :param input_cols: Column of DOCUMENT annotations
        :param output_col: Name of the column to create
        :param dimension: Size of the vectors the model produces
        :param storage_ref: Identifier of the embeddings, recorded with the
         output column so that downstream consumers can check compatibility
        :param load_sp: Whether the model needs the SentencePiece library
        :param batch_size: Number of rows per call to the model
        """
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.dimension = dimension
        self.storage_ref = storage_ref
        self.load_sp = load_sp
        self.batch_size = batch_size

    def set_load_sp(self, value: bool) -> "UniversalSentenceEncoder":
        """
        Set `load_sp`, unless it has been set already.
        """
        if self.load_sp is None:
            self.load_sp = value
        return self

    def get_load_sp(self) -> bool:
        return bool(self.load_sp)

    def set_model_if_not_set(self, session: Union[InferenceSession, SentenceEncoderModel]
                             ) -> "UniversalSentenceEncoder":
        if self.has_model():
            return self
        if not isinstance(session, SentenceEncoderModel):
            session = SentenceEncoderModel(session, batch_size=self.batch_size)
        return super().set_model_if_not_set(session)

    def batch_annotate(self, batch: List[List[Annotation]]) -> List[List[Annotation]]:
        engine = self.get_model()
        sentences = []  # Type: List[Sentence]
        row_of = []  # Type: List[int]
        for row_ix, row in enumerate(batch):
            for s in unpack_sentences(row):
                if len(s.content) == 0:
                    continue
                sentences.append(s)
                row_of.append(row_ix)

        results = [[] for _ in batch]  # Type: List[List[Annotation]]
        if len(sentences) == 0:
            return results
        annotations = engine.predict(sentences, self.batch_size)
        for row_ix, a in zip(row_of, annotations):
            results[row_ix].append(a)
        return results

    def after_annotate(self, df: pd.DataFrame) -> pd.DataFrame:
        for row in df[self.output_col]:
            if len(row) > 0:
                actual = len(row[0].embeddings)
                if actual != self.dimension:
                    warnings.warn(f"Model produced embeddings of size {actual}, "
                                  f"but dimension is set to {self.dimension}")
                break
        all_metadata = dict(df.attrs.get(ANNOTATION_METADATA_ATTR, {}))
        all_metadata[self.output_col] = {
            "dimension": str(self.dimension),
            "storage_ref": self.storage_ref,
        }
        df.attrs[ANNOTATION_METADATA_ATTR] = all_metadata
        return df

    @classmethod
    def load_saved_model(cls, folder: str, load_sp: bool = False,
                         device: str = "cpu", **params) -> "UniversalSentenceEncoder":
        """
        Import a model saved in the `sentence-transformers` format.

        :param folder: Directory containing ``modules.json`` and the files of
         the modules it lists
        :param load_sp: `True` if the model tokenizes its input with
         SentencePiece; requires the ``sentencepiece`` package
        :param device: torch device on which to run the model
        :param params: Parameters for the new annotator
        :returns: A new annotator instance running the imported model
        """
        if not os.path.exists(folder):
            raise ValueError(f"Folder {folder} not found")
        if not os.path.isdir(folder):
            raise ValueError(f"File {folder} is not a folder")
        if not os.path.exists(os.path.join(folder, _MODULES_FILE)):
            raise ValueError(f"{_MODULES_FILE} not found in folder {folder}")
        if load_sp:
            try:
                # noinspection PyPackageRequirements
                import sentencepiece  # noqa: F401
            except ImportError as e:
                raise ImportError("This model requires the sentencepiece "
                                  "package; install it with "
                                  "'pip install sentencepiece'") from e

        session = SentenceTransformerSession.load(folder, device=device)
        annotator = cls(**params).set_load_sp(load_sp)
        annotator.set_model_if_not_set(session)
        dimension = getattr(session.model, "get_sentence_embedding_dimension",
                            lambda: None)()
        if dimension is not None and "dimension" not in params:
            annotator.dimension = int(dimension)
        return annotator
