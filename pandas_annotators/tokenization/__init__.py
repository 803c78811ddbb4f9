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
# tokenization module
#
# Subword tokenization and batch preparation for transformer models.

from pandas_annotators.tokenization.types import (
    Sentence, IndexedToken, TokenizedSentence, TokenPiece,
    WordpieceTokenizedSentence, unpack_sentences, unpack_tokenized_sentences
)
from pandas_annotators.tokenization.bpe import (
    BpeTokenizer, SpecialTokens, bytes_to_unicode, read_merges, read_vocabulary
)
from pandas_annotators.tokenization.batching import (
    encode_sentences, pad_batch, softmax, sigmoid, batches
)

__all__ = [
    "Sentence", "IndexedToken", "TokenizedSentence", "TokenPiece",
    "WordpieceTokenizedSentence", "unpack_sentences", "unpack_tokenized_sentences",
    "BpeTokenizer", "SpecialTokens", "bytes_to_unicode", "read_merges",
    "read_vocabulary",
    "encode_sentences", "pad_batch", "softmax", "sigmoid", "batches",
]
