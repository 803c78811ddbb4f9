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

import pandas as pd
from sklearn.pipeline import Pipeline

from pandas_annotators.annotation import AnnotatorType
from pandas_annotators.annotator import get_annotator_type
from pandas_annotators.text.document import *
from pandas_annotators.util import TestBase


class DocumentAssemblerTest(TestBase):

    def test_assemble(self):
        df = pd.DataFrame({"text": ["Hello world.", None, 5, ""]})
        result = DocumentAssembler().transform(df)
        self.assertEqual(get_annotator_type(result, "document"),
                         AnnotatorType.DOCUMENT)
        self._assertSpansEqual(result["document"].iloc[0], [(0, 12, "Hello world.")])
        self.assertEqual(result["document"].iloc[0][0].metadata, {"sentence": "0"})
        self.assertEqual(result["document"].iloc[1], [])
        self.assertEqual(result["document"].iloc[2], [])
        self._assertSpansEqual(result["document"].iloc[3], [(0, 0, "")])

    def test_shrink(self):
        df = pd.DataFrame({"raw": ["  Hello \n\n world  "]})
        result = DocumentAssembler(input_col="raw", output_col="doc",
                                   clean_up_mode="shrink").transform(df)
        self._assertSpansEqual(result["doc"].iloc[0], [(0, 11, "Hello world")])

    def test_errors(self):
        df = pd.DataFrame({"text": ["a"]})
        with self.assertRaises(ValueError):
            DocumentAssembler(clean_up_mode="each").transform(df)
        with self.assertRaises(ValueError):
            DocumentAssembler(input_col="body").transform(df)


class SentenceDetectorTest(TestBase):

    def _sentences(self, text, **params):
        df = DocumentAssembler().transform(pd.DataFrame({"text": [text]}))
        return SentenceDetector(**params).transform(df)["sentence"].iloc[0]

    def test_split(self):
        sentences = self._sentences("Hello world. How are you?")
        self._assertSpansEqual(sentences, [(0, 12, "Hello world."),
                                           (13, 25, "How are you?")])
        self.assertEqual([s.metadata["sentence"] for s in sentences], ["0", "1"])

    def test_whitespace(self):
        self._assertSpansEqual(self._sentences("  Hi. Bye"),
                               [(2, 5, "Hi."), (6, 9, "Bye")])
        self._assertSpansEqual(self._sentences("Hi!  Wow?Yes.\n"),
                               [(0, 3, "Hi!"), (5, 13, "Wow?Yes.")])
        self.assertEqual(self._sentences("   "), [])

    def test_min_length(self):
        sentences = self._sentences("Hi! How are you?", min_length=4)
        self._assertSpansEqual(sentences, [(4, 16, "How are you?")])
        self.assertEqual(sentences[0].metadata["sentence"], "0")


class TokenizerTest(TestBase):

    def _tokens(self, text, **params):
        pipeline = Pipeline([
            ("document", DocumentAssembler()),
            ("sentence", SentenceDetector()),
            ("token", Tokenizer(**params)),
        ])
        df = pipeline.fit_transform(pd.DataFrame({"text": [text]}))
        self.assertEqual(get_annotator_type(df, "token"), AnnotatorType.TOKEN)
        return df["token"].iloc[0]

    def test_tokenize(self):
        tokens = self._tokens("Hello world. How are you?")
        self._assertSpansEqual(tokens, [
            (0, 5, "Hello"), (6, 11, "world"), (11, 12, "."),
            (13, 16, "How"), (17, 20, "are"), (21, 24, "you"), (24, 25, "?")])
        self.assertEqual([t.metadata["sentence"] for t in tokens],
                         ["0", "0", "0", "1", "1", "1", "1"])

    def test_length_filters(self):
        self._assertSpansEqual(self._tokens("I am here .", min_length=2),
                               [(2, 4, "am"), (5, 9, "here")])
        self._assertSpansEqual(self._tokens("I am here .", max_length=2),
                               [(0, 1, "I"), (2, 4, "am"), (10, 11, ".")])

    def test_target_pattern(self):
        self._assertSpansEqual(self._tokens("e-mail me", target_pattern=r"\S+"),
                               [(0, 6, "e-mail"), (7, 9, "me")])

    def test_invalid_params(self):
        df = pd.DataFrame({"text": ["a"]})
        with self.assertRaises(ValueError):
            Tokenizer(target_pattern="(unclosed").fit(df)
        with self.assertRaises(ValueError):
            Tokenizer(min_length=3, max_length=2).fit(df)

    def test_train_copies_params(self):
        model = Tokenizer(input_cols="document", min_length=2).train(pd.DataFrame())
        self.assertIsInstance(model, TokenizerModel)
        self.assertEqual(model.input_cols, "document")
        self.assertEqual(model.min_length, 2)


if __name__ == '__main__':
    unittest.main()
