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

#
# signatures.py
#
# Part of pandas_annotators
#
# Logical names for the tensors that annotators feed to and fetch from an
# inference session, and the mapping from those names to the tensor names a
# particular model actually uses.
#

import enum
from typing import *


class ModelSignatureConstants(enum.Enum):
    """
    Each member's value is a pair of (key, default tensor name). The key is
    what annotators ask for; the tensor name is what the session sees.
    """
    InputIds = ("input_ids", "input_ids")
    AttentionMask = ("attention_mask", "attention_mask")
    TokenTypeIds = ("token_type_ids", "token_type_ids")
    LogitsOutput = ("logits", "logits")
    LastHiddenState = ("last_hidden_state", "last_hidden_state")
    PoolerOutput = ("pooler_output", "pooler_output")
    SentenceInput = ("sentence_input", "input")
    SentenceEmbeddingsOutput = ("sentence_embeddings", "sentence_embedding")

    @property
    def key(self) -> str:
        return self.value[0]

    @property
    def default_name(self) -> str:
        return self.value[1]


class ModelSignatureManager:

    @staticmethod
    def apply(overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        :param overrides: Optional dictionary of key to tensor name for models
         whose tensors are named differently from the defaults
        :returns: Dictionary mapping every signature key to a tensor name
        """
        signatures = {c.key: c.default_name for c in ModelSignatureConstants}
        if overrides is not None:
            unknown = set(overrides.keys()) - set(signatures.keys())
            if len(unknown) > 0:
                raise ValueError(f"Unknown signature keys {sorted(unknown)}; "
                                 f"valid keys are {sorted(signatures.keys())}")
            signatures.update(overrides)
        return signatures

    @staticmethod
    def resolve(signatures: Mapping[str, str],
                constant: ModelSignatureConstants) -> str:
        """
        :param signatures: Dictionary as returned by :func:`apply`
        :param constant: Which logical tensor to look up
        :returns: The session-level tensor name for `constant`
        """
        name = signatures.get(constant.key)
        if name is None:
            raise ValueError(f"Model signatures have no entry for '{constant.key}' "
                             f"(available keys: {sorted(signatures.keys())})")
        return name
