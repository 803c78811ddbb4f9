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
# pandas_annotators
#
# NLP annotators that run over Pandas DataFrames in scikit-learn pipelines.
#
# To use:
#   import pandas_annotators as pdann
#

# Core types at the top level of our namespace.
from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.annotator import (
    AnnotatorModel, AnnotatorApproach, get_annotator_type, set_annotator_type
)
from pandas_annotators.text import (
    DocumentAssembler, SentenceDetector, Tokenizer, TokenizerModel,
    Finisher, EmbeddingsFinisher
)
from pandas_annotators.annotators import (
    RoBertaForTokenClassification, RoBertaForSequenceClassification,
    UniversalSentenceEncoder
)

# Sub-modules
from pandas_annotators import io
from pandas_annotators import ml
from pandas_annotators import tokenization

# Sphinx autodoc needs this redundant listing of public symbols to list the contents
# of this subpackage.
__all__ = [
    "Annotation", "AnnotatorType",
    "AnnotatorModel", "AnnotatorApproach", "get_annotator_type",
    "set_annotator_type",
    "DocumentAssembler", "SentenceDetector", "Tokenizer", "TokenizerModel",
    "Finisher", "EmbeddingsFinisher",
    "RoBertaForTokenClassification", "RoBertaForSequenceClassification",
    "UniversalSentenceEncoder",
    "io", "ml", "tokenization",
]
