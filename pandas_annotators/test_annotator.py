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

import json
import os
import tempfile
import unittest

import pandas as pd
from sklearn.base import clone
from sklearn.exceptions import NotFittedError
from sklearn.pipeline import Pipeline

from pandas_annotators.annotation import Annotation, AnnotatorType
from pandas_annotators.annotator import *
from pandas_annotators.text.document import (
    DocumentAssembler, SentenceDetector, Tokenizer, TokenizerModel
)
from pandas_annotators.util import TestBase


class UpperCaser(AnnotatorModel):
    """Turns every token into its upper-case version."""

    input_annotator_types = (AnnotatorType.TOKEN,)
    output_annotator_type = AnnotatorType.TOKEN

    def __init__(self, input_cols="token", output_col="upper"):
        super().__init__(input_cols=input_cols, output_col=output_col)

    def annotate(self, annotations):
        return [Annotation(AnnotatorType.TOKEN, a.begin, a.end, a.result.upper(),
                           a.metadata) for a in annotations]

    def after_annotate(self, df):
        df.attrs["after_annotate_called"] = True
        return df


class BatchCounter(HasBatchedAnnotate, UpperCaser):
    """Records the size of every batch it is called with."""

    def __init__(self, input_cols="token", output_col="upper", batch_size=2):
        super().__init__(input_cols=input_cols, output_col=output_col)
        self.batch_size = batch_size

    def batch_annotate(self, batch):
        self.batch_sizes_ = getattr(self, "batch_sizes_", []) + [len(batch)]
        return [self.annotate(row) for row in batch]


def _token_df() -> pd.DataFrame:
    pipeline = Pipeline([
        ("document", DocumentAssembler()),
        ("sentence", SentenceDetector()),
        ("token", Tokenizer()),
    ])
    return pipeline.fit_transform(
        pd.DataFrame({"text": ["Hello world.", "Bye now.", "Why?"]}))


class AnnotatorModelTest(TestBase):

    def test_transform(self):
        df = _token_df()
        result = UpperCaser().transform(df)
        self.assertIn("upper", result.columns)
        self.assertNotIn("upper", df.columns)
        self._assertSpansEqual(result["upper"].iloc[0],
                               [(0, 5, "HELLO"), (6, 11, "WORLD"), (11, 12, ".")])
        self.assertEqual(get_annotator_type(result, "upper"), AnnotatorType.TOKEN)
        self.assertTrue(result.attrs["after_annotate_called"])

    def test_annotator_types(self):
        df = _token_df()
        self.assertEqual(get_annotator_type(df, "document"), AnnotatorType.DOCUMENT)
        self.assertEqual(get_annotator_type(df, "token"), AnnotatorType.TOKEN)

        # Falls back to looking at the annotations
        df.attrs = {}
        self.assertEqual(get_annotator_type(df, "token"), AnnotatorType.TOKEN)

        set_annotator_type(df, "token", AnnotatorType.WORDPIECE)
        self.assertEqual(get_annotator_type(df, "token"), AnnotatorType.WORDPIECE)

    def test_validation(self):
        df = _token_df()
        with self.assertRaises(TypeError):
            UpperCaser().transform([["not", "a", "DataFrame"]])
        with self.assertRaisesRegex(ValueError, "not_a_column"):
            UpperCaser(input_cols="not_a_column").transform(df)
        with self.assertRaisesRegex(ValueError, "requires input columns"):
            UpperCaser(input_cols="sentence").transform(df)
        with self.assertRaises(ValueError):
            UpperCaser(input_cols=[]).transform(df)
        with self.assertRaises(ValueError):
            UpperCaser(output_col=None).transform(df)

    def test_missing_values(self):
        df = pd.DataFrame({"token": [[Annotation(AnnotatorType.TOKEN, 0, 1, "a")],
                                     None]})
        result = UpperCaser().transform(df)
        self._assertSpansEqual(result["upper"].iloc[0], [(0, 1, "A")])
        self.assertEqual(result["upper"].iloc[1], [])

    def test_batches(self):
        annotator = BatchCounter(batch_size=2)
        result = annotator.transform(_token_df())
        self.assertEqual(annotator.batch_sizes_, [2, 1])
        self._assertSpansEqual(result["upper"].iloc[2], [(0, 3, "WHY"), (3, 4, "?")])

    def test_params(self):
        annotator = BatchCounter(batch_size=4)
        self.assertEqual(annotator.get_params(),
                         {"input_cols": "token", "output_col": "upper",
                          "batch_size": 4})
        annotator.set_params(batch_size=16)
        self.assertEqual(annotator.batch_size, 16)
        self.assertEqual(clone(annotator).get_params(), annotator.get_params())

    def test_model(self):
        annotator = UpperCaser()
        self.assertFalse(annotator.has_model())
        with self.assertRaises(ValueError):
            annotator.get_model()
        annotator.set_model_if_not_set("first").set_model_if_not_set("second")
        self.assertEqual(annotator.get_model(), "first")

    def test_write_load(self):
        annotator = TokenizerModel(target_pattern=r"\S+", min_length=2)
        with tempfile.TemporaryDirectory() as dirname:
            path = os.path.join(dirname, "tokenizer")
            annotator.write(path)
            with open(os.path.join(path, "metadata.json"), "r") as f:
                metadata = json.load(f)
            self.assertEqual(metadata["class"],
                             "pandas_annotators.text.document.TokenizerModel")
            self.assertIsNone(metadata["session"])

            restored = AnnotatorModel.load(path)
            self.assertIsInstance(restored, TokenizerModel)
            self.assertEqual(restored.get_params(), annotator.get_params())

            with self.assertRaises(TypeError):
                SentenceDetector.load(path)
            with self.assertRaises(FileExistsError):
                annotator.write(path)
            annotator.set_params(min_length=3).write(path, overwrite=True)
            self.assertEqual(TokenizerModel.load(path).min_length, 3)

    def test_load_missing(self):
        with tempfile.TemporaryDirectory() as dirname:
            with self.assertRaises(FileNotFoundError):
                AnnotatorModel.load(dirname)


class AnnotatorApproachTest(TestBase):

    def test_fit(self):
        df = DocumentAssembler().transform(pd.DataFrame({"text": ["a b"]}))
        tokenizer = Tokenizer(input_cols="document")
        with self.assertRaises(NotFittedError):
            tokenizer.transform(df)
        self.assertIs(tokenizer.fit(df), tokenizer)
        self.assertIsInstance(tokenizer.model_, TokenizerModel)
        self._assertSpansEqual(tokenizer.transform(df)["token"].iloc[0],
                               [(0, 1, "a"), (2, 3, "b")])


if __name__ == '__main__':
    unittest.main()
