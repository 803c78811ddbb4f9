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
# roberta_classifier.py
#
"""
This module contains annotators that classify tokens and sentences with
RoBERTa models.

Models saved in the Hugging Face format can be imported with
:func:`RoBertaForTokenClassification.load_saved_model`, which uses the
``transformers``_ library. You will need that library in your Python path to
use that function.

.. _``transformers``: https://github.com/huggingface/transformers
"""

import json
import os
from typing import *

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.annotator import AnnotatorModel, HasBatchedAnnotate
from pandas_annotators.annotators.pretrained import HasPretrained
from pandas_annotators.ml.roberta import RoBertaClassification
from pandas_annotators.ml.session import InferenceSession, TorchModelSession
from pandas_annotators.tokenization.bpe import read_merges, read_vocabulary
from pandas_annotators.tokenization.types import (
    TokenizedSentence,
    unpack_tokenized_sentences,
)

# Longest sequence RoBERTa position embeddings support
MAX_SENTENCE_LENGTH_LIMIT = 512

# Room for the sentence start and end markers
MIN_SENTENCE_LENGTH = 2

_REQUIRED_FILES = ("config.json", "vocab.json", "merges.txt")


class _RoBertaClassifierBase(HasBatchedAnnotate, HasPretrained, AnnotatorModel):

    input_annotator_types = (AnnotatorType.DOCUMENT, AnnotatorType.TOKEN)

    # Name of the `transformers` auto class that loads the network
    _auto_model_class = None  # Type: str

    def set_model_if_not_set(self, session: InferenceSession,
                             tags: Mapping[str, int] = None,
                             merges: Mapping[Tuple[str, str], int] = None,
                             vocabulary: Mapping[str, int] = None) -> "_RoBertaClassifierBase":
        """
        Attach a model to this annotator, unless one is already attached.

        :param session: Session that runs the model; may also be a ready-made
         :class:`RoBertaClassification`, in which case the other arguments are
         ignored
        :param tags: Dictionary mapping labels to output positions
        :param merges: BPE merge table
        :param vocabulary: BPE vocabulary; must contain ``<s>``, ``</s>`` and
         ``<pad>``
        """
        if self.has_model():
            return self
        if isinstance(session, RoBertaClassification):
            return super().set_model_if_not_set(session)
        if tags is None or merges is None or vocabulary is None:
            raise ValueError("tags, merges and vocabulary are required to build "
                             "a RoBERTa model")
        missing = [t for t in ("<s>", "</s>", "<pad>") if t not in vocabulary]
        if len(missing) > 0:
            raise ValueError(f"Vocabulary is missing special tokens {missing}")
        engine = RoBertaClassification(
            session,
            sentence_start_token_id=vocabulary["<s>"],
            sentence_end_token_id=vocabulary["</s>"],
            sentence_pad_token_id=vocabulary["<pad>"],
            tags=tags, merges=merges, vocabulary=vocabulary,
            signatures=self.signatures)
        return super().set_model_if_not_set(engine)

    def get_classes(self) -> List[str]:
        """
        :returns: Labels the model was trained with, in output order
        """
        return self.get_model().labels

    def _check_params(self) -> None:
        if not (MIN_SENTENCE_LENGTH <= self.max_sentence_length
                <= MAX_SENTENCE_LENGTH_LIMIT):
            raise ValueError(f"max_sentence_length must be between "
                             f"{MIN_SENTENCE_LENGTH} and "
                             f"{MAX_SENTENCE_LENGTH_LIMIT}; got "
                             f"{self.max_sentence_length}")

    def _fields_to_write(self) -> Dict[str, Any]:
        engine = self.get_model()
        merges = engine.bpe_tokenizer.merges
        return {
            "tags": engine.tags,
            "merges": [list(pair) for pair, _ in
                       sorted(merges.items(), key=lambda kv: kv[1])],
            "vocabulary": engine.bpe_tokenizer.vocabulary,
        }

    def _on_load(self, fields: Dict[str, Any],
                 session: Optional[InferenceSession]) -> None:
        if session is None:
            return
        merges = {tuple(pair): rank for rank, pair in enumerate(fields["merges"])}
        self.set_model_if_not_set(session, fields["tags"], merges,
                                  fields["vocabulary"])

    @classmethod
    def _load_transformers_model(cls, path: str):
        # noinspection PyPackageRequirements
        import transformers
        return getattr(transformers, cls._auto_model_class).from_pretrained(path)

    @classmethod
    def _session_load_args(cls, model_path: str) -> Dict[str, Any]:
        # Sessions saved with save_pretrained() need the auto class that
        # includes the classification head.
        if os.path.exists(os.path.join(model_path, "config.json")):
            return {"model_loader": cls._load_transformers_model}
        return {}

    @classmethod
    def load_saved_model(cls, folder: str, device: str = "cpu", **params):
        """
        Import a model saved with `transformers`' `save_pretrained()`.

        :param folder: Directory containing ``config.json`` (with an
         ``id2label`` entry), ``vocab.json``, ``merges.txt`` and the weights
        :param device: torch device on which to run the model
        :param params: Parameters for the new annotator
        :returns: A new annotator instance running the imported model
        """
        if not os.path.exists(folder):
            raise ValueError(f"Folder {folder} not found")
        if not os.path.isdir(folder):
            raise ValueError(f"File {folder} is not a folder")
        for file_name in _REQUIRED_FILES:
            if not os.path.exists(os.path.join(folder, file_name)):
                raise ValueError(f"{file_name} not found in folder {folder}")

        with open(os.path.join(folder, "config.json"), "r", encoding="utf-8") as f:
            config = json.load(f)
        id2label = config.get("id2label")
        if not id2label:
            raise ValueError(f"config.json in {folder} has no id2label entry")
        tags = {label: int(ix) for ix, label in id2label.items()}
        vocabulary = read_vocabulary(os.path.join(folder, "vocab.json"))
        merges = read_merges(os.path.join(folder, "merges.txt"))

        session = TorchModelSession.load(
            folder, model_loader=cls._load_transformers_model, device=device)
        return cls(**params).set_model_if_not_set(session, tags, merges, vocabulary)


class RoBertaForTokenClassification(_RoBertaClassifierBase):
    """
    Labels every token with a RoBERTa token classification model, for
    instance for named entity recognition.

    Takes DOCUMENT and TOKEN columns and produces a NAMED_ENTITY column with
    one annotation per token. The metadata of each annotation contains the
    sentence index, the word, and the score of every label.
    """

    output_annotator_type = AnnotatorType.NAMED_ENTITY
    default_model_name = "roberta_base_token_classifier_conll03"
    _auto_model_class = "AutoModelForTokenClassification"

    def __init__(self, input_cols: Union[str, Sequence[str]] = ("document", "token"),
                 output_col: str = "ner", batch_size: int = 8,
                 max_sentence_length: int = 128, case_sensitive: bool = True,
                 signatures: Optional[Dict[str, str]] = None):
        """
        :param input_cols: DOCUMENT and TOKEN columns
        :param output_col: Name of the column to create
        :param batch_size: Number of rows per batch; all sentences of a batch
         are sent to the model together
        :param max_sentence_length: Maximum number of BPE pieces per sentence,
         including the start and end markers
        :param case_sensitive: If `False`, tokens are lowercased before encoding
        :param signatures: Optional overrides of the model's tensor names
        """
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.batch_size = batch_size
        self.max_sentence_length = max_sentence_length
        self.case_sensitive = case_sensitive
        self.signatures = signatures

    def batch_annotate(self, batch: List[List[Annotation]]) -> List[List[Annotation]]:
        self._check_params()
        engine = self.get_model()

        # Renumber sentences across rows so results can be routed back
        flat = []  # Type: List[TokenizedSentence]
        origin = []  # Type: List[Tuple[int, int]]
        for row_ix, row in enumerate(batch):
            for s in unpack_tokenized_sentences(row):
                origin.append((row_ix, s.sentence_index))
                flat.append(TokenizedSentence(s.indexed_tokens, len(flat)))

        results = [[] for _ in batch]  # Type: List[List[Annotation]]
        if len(flat) == 0:
            return results
        for a in engine.predict(flat, self.batch_size, self.max_sentence_length,
                                self.case_sensitive):
            row_ix, sentence_index = origin[int(a.metadata["sentence"])]
            metadata = dict(a.metadata)
            metadata["sentence"] = str(sentence_index)
            results[row_ix].append(Annotation(a.annotator_type, a.begin, a.end,
                                              a.result, metadata))
        return results


class RoBertaForSequenceClassification(_RoBertaClassifierBase):
    """
    Classifies sentences (or whole documents) with a RoBERTa sequence
    classification model, for instance for sentiment analysis.

    Takes DOCUMENT and TOKEN columns and produces a CATEGORY column.
    """

    output_annotator_type = AnnotatorType.CATEGORY
    default_model_name = "roberta_base_sequence_classifier_imdb"
    _auto_model_class = "AutoModelForSequenceClassification"

    def __init__(self, input_cols: Union[str, Sequence[str]] = ("document", "token"),
                 output_col: str = "class", batch_size: int = 8,
                 max_sentence_length: int = 128, case_sensitive: bool = True,
                 signatures: Optional[Dict[str, str]] = None,
                 coalesce_sentences: bool = False, activation: str = "softmax"):
        """
        :param input_cols: DOCUMENT and TOKEN columns
        :param output_col: Name of the column to create
        :param batch_size: Number of sequences per call to the model
        :param max_sentence_length: Maximum number of BPE pieces per sequence,
         including the start and end markers
        :param case_sensitive: If `False`, tokens are lowercased before encoding
        :param signatures: Optional overrides of the model's tensor names
        :param coalesce_sentences: If `True`, produce one label per row from
         all of its sentences instead of one label per sentence
        :param activation: "softmax" for single-label models, "sigmoid" for
         multi-label models
        """
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.batch_size = batch_size
        self.max_sentence_length = max_sentence_length
        self.case_sensitive = case_sensitive
        self.signatures = signatures
        self.coalesce_sentences = coalesce_sentences
        self.activation = activation

    def batch_annotate(self, batch: List[List[Annotation]]) -> List[List[Annotation]]:
        self._check_params()
        documents = [unpack_tokenized_sentences(row) for row in batch]
        return self.get_model().predict_sequence(
            documents, self.batch_size, self.max_sentence_length,
            self.case_sensitive, self.coalesce_sentences, self.activation)
