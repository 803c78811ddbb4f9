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
import warnings

import numpy as np

from pandas_annotators.annotation import AnnotatorType
from pandas_annotators.ml.roberta import *
from pandas_annotators.ml.session import FunctionSession
from pandas_annotators.tokenization.types import IndexedToken, TokenizedSentence
from pandas_annotators.util import TestBase

# Toy BPE model that knows the words "hello" and "world"
TOY_MERGES = {
    ("Ġ", "h"): 0,
    ("Ġh", "e"): 1,
    ("l", "l"): 2,
    ("Ġhe", "ll"): 3,
    ("Ġhell", "o"): 4,
    ("w", "o"): 5,
    ("wo", "r"): 6,
    ("wor", "l"): 7,
    ("worl", "d"): 8,
    ("Ġ", "world"): 9,
}

TOY_VOCAB = {
    "<s>": 0, "<pad>": 1, "</s>": 2, "<unk>": 3, "<mask>": 4,
    "Ġhello": 5, "Ġ": 6, "world": 7, ",": 8, "Ġworld": 10,
}

# Label "id % 3" wins for every piece, so "Ġhello" is B-PER, "Ġworld" is
# B-LOC and a bare "Ġ" is O.
TOKEN_TAGS = {"O": 0, "B-LOC": 1, "B-PER": 2}

# Label "number of unmasked positions % 2" wins for every sequence.
SEQUENCE_TAGS = {"negative": 0, "positive": 1}


def token_logits(input_ids: np.ndarray, attention_mask: np.ndarray):
    logits = np.zeros(input_ids.shape + (3,), dtype=np.float32)
    for (b, l), piece_id in np.ndenumerate(input_ids):
        logits[b, l, piece_id % 3] = 5.0
    return {"logits": logits}


def sequence_logits(input_ids: np.ndarray, attention_mask: np.ndarray):
    logits = np.zeros([input_ids.shape[0], 2], dtype=np.float32)
    for b, length in enumerate(attention_mask.sum(axis=1)):
        logits[b, length % 2] = 5.0
    return {"logits": logits}


def make_engine(fn, tags, signatures=None) -> RoBertaClassification:
    return RoBertaClassification(FunctionSession(fn), 0, 2, 1, tags,
                                 TOY_MERGES, TOY_VOCAB, signatures)


_HELLO_WORLD = TokenizedSentence([
    IndexedToken("hello", 0, 5),
    IndexedToken(",", 5, 6),
    IndexedToken("world", 7, 12),
], 0)


class RoBertaClassificationTest(TestBase):

    def test_labels(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        self.assertEqual(engine.labels, ["O", "B-LOC", "B-PER"])
        self.assertEqual(engine.tags, TOKEN_TAGS)

    def test_tokenize_with_alignment(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        wordpiece = engine.tokenize_with_alignment([_HELLO_WORLD], 128, True)
        self.assertEqual(len(wordpiece), 1)
        self.assertEqual(
            [(p.wordpiece, p.piece_id, p.is_word_start, p.begin, p.end)
             for p in wordpiece[0].tokens],
            [("Ġhello", 5, True, 0, 5),
             ("Ġ", 6, True, 5, 5),
             (",", 8, False, 5, 6),
             ("Ġworld", 10, True, 7, 12)])

        truncated = engine.tokenize_with_alignment([_HELLO_WORLD], 2, True)
        self.assertEqual(len(truncated[0].tokens), 2)

    def test_tokenize_skips_blank_tokens(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        sentence = TokenizedSentence([IndexedToken("hello", 0, 5),
                                      IndexedToken(" ", 5, 6),
                                      IndexedToken("", 6, 6)], 0)
        wordpiece = engine.tokenize_with_alignment([sentence], 128, True)
        self.assertEqual([p.wordpiece for p in wordpiece[0].tokens], ["Ġhello"])

    def test_case_sensitive(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        sentence = TokenizedSentence([IndexedToken("Hello", 0, 5)], 0)
        lowered = engine.tokenize_with_alignment([sentence], 128, False)
        self.assertEqual([p.piece_id for p in lowered[0].tokens], [5])
        kept = engine.tokenize_with_alignment([sentence], 128, True)
        self.assertEqual(kept[0].tokens[0].wordpiece, "Ġ")
        self.assertTrue(all(p.piece_id == 3 for p in kept[0].tokens[1:]))

    def test_encode(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        wordpiece = engine.tokenize_with_alignment([_HELLO_WORLD], 128, True)
        encoded = engine.encode(wordpiece, 128)
        self._assertArrayEquals(encoded[0], [0, 5, 6, 8, 10, 2])

    def test_tag(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        batch = [np.array([0, 5, 10, 2]), np.array([0, 6, 2, 1])]
        scores = engine.tag(batch)
        self.assertEqual(scores.shape, (2, 4, 3))
        np.testing.assert_allclose(scores.sum(axis=-1), np.ones([2, 4]), rtol=1e-6)
        self._assertArrayEquals(np.argmax(scores[0], axis=-1), [0, 2, 1, 2])

    def test_tag_bad_size(self):
        engine = make_engine(lambda input_ids, attention_mask:
                             {"logits": np.zeros([4])}, TOKEN_TAGS)
        with self.assertRaises(ValueError):
            engine.tag([np.array([0, 5, 2])])

    def test_tag_sequence(self):
        engine = make_engine(sequence_logits, SEQUENCE_TAGS)
        batch = [np.array([0, 5, 10, 2]), np.array([0, 5, 2, 1])]
        scores = engine.tag_sequence(batch)
        self.assertEqual(scores.shape, (2, 2))
        self._assertArrayEquals(np.argmax(scores, axis=-1), [0, 1])

        scores = engine.tag_sequence(batch, activation="sigmoid")
        self.assertAlmostEqual(float(scores[0, 1]), 0.5)
        with self.assertRaises(ValueError):
            engine.tag_sequence(batch, activation="relu")

    def test_signatures(self):
        def renamed(ids, mask):
            return {"scores": token_logits(ids, mask)["logits"]}
        engine = make_engine(renamed, TOKEN_TAGS, signatures={
            "input_ids": "ids", "attention_mask": "mask", "logits": "scores"})
        self.assertEqual(engine.tag([np.array([0, 5, 2])]).shape, (1, 3, 3))

    def test_find_indexed_token(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        pieces = engine.tokenize_with_alignment([_HELLO_WORLD], 128, True)[0].tokens
        self.assertEqual(engine.find_indexed_token([_HELLO_WORLD], 0, pieces[3]),
                         IndexedToken("world", 7, 12))
        self.assertIsNone(engine.find_indexed_token(
            [_HELLO_WORLD], 0, pieces[0]._replace(begin=3)))

    def test_predict(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        second = TokenizedSentence([IndexedToken("world", 14, 19)], 1)
        annotations = engine.predict([_HELLO_WORLD, second], batch_size=1,
                                     max_sentence_length=128, case_sensitive=True)
        self._assertSpansEqual(annotations, [(0, 5, "B-PER"), (5, 6, "O"),
                                             (7, 12, "B-LOC"), (14, 19, "B-LOC")])
        self.assertTrue(all(a.annotator_type == AnnotatorType.NAMED_ENTITY
                            for a in annotations))
        self.assertEqual(annotations[0].metadata["word"], "hello")
        self.assertEqual(annotations[0].metadata["sentence"], "0")
        self.assertEqual(annotations[3].metadata["sentence"], "1")
        self.assertEqual(set(annotations[0].metadata.keys()),
                         {"sentence", "word", "O", "B-LOC", "B-PER"})
        self.assertGreater(float(annotations[0].metadata["B-PER"]), 0.9)

    def test_predict_truncates(self):
        engine = make_engine(token_logits, TOKEN_TAGS)
        with self.assertWarns(UserWarning):
            annotations = engine.predict([_HELLO_WORLD], batch_size=8,
                                         max_sentence_length=3,
                                         case_sensitive=True)
        # Room for just one piece between the start and end markers
        self._assertSpansEqual(annotations, [(0, 5, "B-PER")])

    def test_predict_unknown_label(self):
        engine = make_engine(token_logits, {"O": 0, "B-LOC": 1})
        with self.assertWarns(UserWarning):
            annotations = engine.predict([_HELLO_WORLD], 8, 128, True)
        self.assertEqual(annotations[0].result, "2")

    def test_predict_sequence(self):
        engine = make_engine(sequence_logits, SEQUENCE_TAGS)
        documents = [
            [TokenizedSentence([IndexedToken("hello", 0, 5),
                                IndexedToken("world", 6, 11)], 0),
             TokenizedSentence([IndexedToken("hello", 13, 18)], 1)],
            [],
            [TokenizedSentence([IndexedToken("world", 0, 5)], 0)],
        ]
        results = engine.predict_sequence(documents, batch_size=2,
                                          max_sentence_length=128,
                                          case_sensitive=True)
        self.assertEqual(len(results), 3)
        self._assertSpansEqual(results[0], [(0, 11, "negative"),
                                            (13, 18, "positive")])
        self.assertEqual(results[1], [])
        self._assertSpansEqual(results[2], [(0, 5, "positive")])
        self.assertEqual(results[0][1].annotator_type, AnnotatorType.CATEGORY)
        self.assertEqual(results[0][1].metadata["sentence"], "1")
        self.assertEqual(set(results[0][0].metadata.keys()),
                         {"sentence", "negative", "positive"})

        coalesced = engine.predict_sequence(documents, 2, 128, True,
                                            coalesce_sentences=True)
        self._assertSpansEqual(coalesced[0], [(0, 18, "positive")])
        self.assertEqual(coalesced[0][0].metadata["sentence"], "0")


if __name__ == '__main__':
    unittest.main()
