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

import unittest

from pandas_annotators.ml.signatures import *
from pandas_annotators.util import TestBase


class ModelSignatureManagerTest(TestBase):

    def test_defaults(self):
        signatures = ModelSignatureManager.apply()
        self.assertEqual(len(signatures), len(ModelSignatureConstants))
        self.assertEqual(ModelSignatureManager.resolve(
            signatures, ModelSignatureConstants.InputIds), "input_ids")
        self.assertEqual(ModelSignatureManager.resolve(
            signatures, ModelSignatureConstants.SentenceEmbeddingsOutput),
            "sentence_embedding")
        self.assertEqual(ModelSignatureConstants.SentenceInput.key, "sentence_input")
        self.assertEqual(ModelSignatureConstants.SentenceInput.default_name, "input")

    def test_overrides(self):
        signatures = ModelSignatureManager.apply({"logits": "output_0"})
        self.assertEqual(ModelSignatureManager.resolve(
            signatures, ModelSignatureConstants.LogitsOutput), "output_0")
        self.assertEqual(ModelSignatureManager.resolve(
            signatures, ModelSignatureConstants.AttentionMask), "attention_mask")

        with self.assertRaisesRegex(ValueError, "logit"):
            ModelSignatureManager.apply({"logit": "output_0"})

    def test_missing_key(self):
        with self.assertRaisesRegex(ValueError, "attention_mask"):
            ModelSignatureManager.resolve({"input_ids": "ids"},
                                          ModelSignatureConstants.AttentionMask)


if __name__ == '__main__':
    unittest.main()
