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
# ml module
#
# Running models through inference sessions and interpreting their outputs.

from pandas_annotators.ml.signatures import (
    ModelSignatureConstants, ModelSignatureManager
)
from pandas_annotators.ml.session import (
    InferenceSession, Runner, FunctionSession, TorchModelSession,
    SentenceTransformerSession
)
from pandas_annotators.ml.roberta import RoBertaClassification
from pandas_annotators.ml.sentence_encoder import SentenceEncoderModel

__all__ = [
    "ModelSignatureConstants", "ModelSignatureManager",
    "InferenceSession", "Runner", "FunctionSession", "TorchModelSession",
    "SentenceTransformerSession",
    "RoBertaClassification", "SentenceEncoderModel",
]
