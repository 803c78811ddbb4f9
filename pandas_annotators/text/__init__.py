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
# text module
#
# Annotators that bring raw text into annotation form, and finishers that
# turn annotation columns back into ordinary columns.

from pandas_annotators.text.document import (
    DocumentAssembler, SentenceDetector, Tokenizer, TokenizerModel
)
from pandas_annotators.text.finisher import Finisher, EmbeddingsFinisher

__all__ = [
    "DocumentAssembler", "SentenceDetector", "Tokenizer", "TokenizerModel",
    "Finisher", "EmbeddingsFinisher",
]
