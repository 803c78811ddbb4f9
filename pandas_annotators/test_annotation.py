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

import numpy as np
import pandas as pd

from pandas_annotators.annotation import *
from pandas_annotators.util import TestBase


class AnnotationTest(TestBase):

    def test_create(self):
        a = Annotation(AnnotatorType.TOKEN, 6, 11, "world", {"sentence": "1"})
        self.assertEqual(a.annotator_type, "token")
        self.assertEqual(a.begin, 6)
        self.assertEqual(a.end, 11)
        self.assertEqual(a.result, "world")
        self.assertEqual(a.sentence_index, 1)
        self.assertEqual(a.embeddings.dtype, np.float32)
        self.assertEqual(len(a.embeddings), 0)

        # No sentence metadata means sentence 0
        self.assertEqual(Annotation(AnnotatorType.TOKEN, 0, 1, "a").sentence_index, 0)

        # Zero-length annotations are allowed
        Annotation(AnnotatorType.TOKEN, 3, 3, "")

    def test_invalid_offsets(self):
        with self.assertRaises(ValueError):
            Annotation(AnnotatorType.TOKEN, -1, 3, "abc")
        with self.assertRaises(ValueError):
            Annotation(AnnotatorType.TOKEN, 5, 4, "abc")

    def test_embeddings(self):
        a = Annotation(AnnotatorType.SENTENCE_EMBEDDINGS, 0, 5, "hello",
                       embeddings=[[1.0, 2.0, 3.0]])
        self.assertEqual(a.embeddings.dtype, np.float32)
        self._assertArrayEquals(a.embeddings, [1.0, 2.0, 3.0])

    def test_eq(self):
        a = Annotation(AnnotatorType.SENTENCE_EMBEDDINGS, 0, 5, "hello",
                       {"sentence": "0"}, [1.0, 2.0])
        b = Annotation(AnnotatorType.SENTENCE_EMBEDDINGS, 0, 5, "hello",
                       {"sentence": "0"}, np.array([1.0, 2.0]))
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))
        self.assertNotEqual(a, Annotation(AnnotatorType.SENTENCE_EMBEDDINGS, 0, 5,
                                          "hello", {"sentence": "0"}, [1.0, 2.5]))
        self.assertNotEqual(a, Annotation(AnnotatorType.SENTENCE_EMBEDDINGS, 0, 5,
                                          "hello", {"sentence": "1"}, [1.0, 2.0]))
        self.assertNotEqual(a, "hello")

    def test_repr(self):
        a = Annotation(AnnotatorType.DOCUMENT, 0, 11, "hello world")
        self.assertEqual(repr(a), "Annotation(document, [0, 11): 'hello world')")

    def test_dict_round_trip(self):
        a = Annotation(AnnotatorType.NAMED_ENTITY, 0, 5, "B-PER",
                       {"sentence": "0", "word": "Alice"})
        d = a.to_dict()
        self.assertEqual(d["metadata"], {"sentence": "0", "word": "Alice"})
        self.assertEqual(Annotation.from_dict(d), a)

        # Arrow returns maps as lists of pairs
        d["metadata"] = [("sentence", "0"), ("word", "Alice")]
        self.assertEqual(Annotation.from_dict(d), a)

    def test_annotation_column_type(self):
        tok = Annotation(AnnotatorType.TOKEN, 0, 1, "a")
        self.assertEqual(annotation_column_type([[], None, [tok]]), "token")
        self.assertIsNone(annotation_column_type([[], []]))
        self.assertIsNone(annotation_column_type(pd.Series([], dtype=object)))
        with self.assertRaises(TypeError):
            annotation_column_type([["not an annotation"]])

    def test_all_types(self):
        self.assertEqual(len(AnnotatorType.all()), 7)
        self.assertIn(AnnotatorType.NAMED_ENTITY, AnnotatorType.all())


if __name__ == '__main__':
    unittest.main()
