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
# Inference logic for models that map whole sentences to fixed-size vectors.

from typing import *

import numpy as np

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.ml.session import InferenceSession
from pandas_annotators.ml.signatures import (
    ModelSignatureConstants,
    ModelSignatureManager,
)
from pandas_annotators.tokenization.batching import batches
from pandas_annotators.tokenization.types import Sentence


class SentenceEncoderModel:
    """
    Sentence embeddings from a model that takes raw strings as input, such as
    the Universal Sentence Encoder.
    """

    def __init__(self, session: InferenceSession,
                 signatures: Optional[Mapping[str, str]] = None,
                 batch_size: int = 32):
        self._session = session
        self._signatures = ModelSignatureManager.apply(signatures)
        self._batch_size = batch_size

    @property
    def session(self) -> InferenceSession:
        return self._session

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        :param texts: Strings to encode
        :returns: float32 array of shape ``[len(texts), dimension]``
        """
        outs = (
            self._session.runner()
            .feed(ModelSignatureManager.resolve(
                self._signatures, ModelSignatureConstants.SentenceInput),
                np.array(list(texts), dtype=object))
            .fetch(ModelSignatureManager.resolve(
                self._signatures, ModelSignatureConstants.SentenceEmbeddingsOutput))
            .run()
        )
        embeddings = np.asarray(outs[0], dtype=np.float32)
        if len(embeddings.shape) == 1:
            embeddings = embeddings.reshape(len(texts), -1)
        if embeddings.shape[0] != len(texts):
            raise ValueError(f"Model returned {embeddings.shape[0]} embeddings "
                             f"for {len(texts)} sentences")
        return embeddings

    def predict(self, sentences: Sequence[Sentence],
                batch_size: Optional[int] = None) -> List[Annotation]:
        """
        :param sentences: Sentences to encode
        :param batch_size: Number of sentences per call to the model; defaults
         to the batch size this model was created with
        :returns: One SENTENCE_EMBEDDINGS annotation per sentence, in order
        """
        if batch_size is None:
            batch_size = self._batch_size
        annotations = []
        for batch in batches(list(sentences), batch_size):
            embeddings = self.embed([s.content for s in batch])
            for sentence, vector in zip(batch, embeddings):
                annotations.append(Annotation(
                    AnnotatorType.SENTENCE_EMBEDDINGS,
                    sentence.begin, sentence.end, sentence.content,
                    {"sentence": str(sentence.index),
                     "token": sentence.content,
                     "pieceId": "-1",
                     "isWordStart": "true"},
                    vector))
        return annotations
