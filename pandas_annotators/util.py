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
# util.py
#
# Part of pandas_annotators
#
# Internal utility functions, not exposed in the public API.
#

import numpy as np
import pandas as pd
from typing import *
import unittest

# Internal imports
from pandas_annotators.annotation import Annotation


def format_scores(labels: Sequence[str], scores: np.ndarray) -> Dict[str, str]:
    """
    Turn a vector of per-label scores into annotation metadata entries.

    :param labels: label names, in the same order as `scores`
    :param scores: 1D array of scores
    :returns: Dictionary mapping each label to its score, formatted as a string
    """
    return {label: str(float(score)) for label, score in zip(labels, scores)}


class TestBase(unittest.TestCase):
    """
    Base class to hold common utility code used by test cases in multiple files.
    """

    def _assertArrayEquals(self, a1: Union[np.ndarray, List[Any]],
                           a2: Union[np.ndarray, List[Any]]) -> None:
        """
        Assert that two arrays are completely identical, with useful error
        messages if they are not.

        :param a1: first array to compare. Lists automatically converted to
         arrays.
        :param a2: second array (or list)
        """
        a1 = np.array(a1) if not isinstance(a1, np.ndarray) else a1
        a2 = np.array(a2) if not isinstance(a2, np.ndarray) else a2
        if len(a1) != len(a2):
            raise self.failureException(
                f"Arrays:\n"
                f"   {a1}\n"
                f"and\n"
                f"   {a2}\n"
                f"have different lengths {len(a1)} and {len(a2)}"
            )
        mask = (a1 == a2)
        if not np.all(mask):
            raise self.failureException(
                f"Arrays:\n"
                f"   {a1}\n"
                f"and\n"
                f"   {a2}\n"
                f"differ at positions: {np.argwhere(~mask)}"
            )

    def _assertSpansEqual(self, annotations: Sequence[Annotation],
                          expected: Sequence[Tuple[int, int, str]]) -> None:
        """
        Assert that a list of annotations has the indicated offsets and results,
        ignoring metadata and embeddings.

        :param annotations: annotations to check
        :param expected: list of (begin, end, result) tuples
        """
        actual = [(a.begin, a.end, a.result) for a in annotations]
        if actual != list(expected):
            raise self.failureException(
                f"Annotations:\n"
                f"   {actual}\n"
                f"differ from expected:\n"
                f"   {list(expected)}"
            )


def object_series(values: Sequence[Any], index: Any = None) -> pd.Series:
    """
    Build a Series of arbitrary Python objects (lists, arrays) with exactly
    one element per entry of `values`.

    Filling the object array one element at a time keeps NumPy from turning
    equal-length lists into extra dimensions.

    :param values: Cell values
    :param index: Optional index for the returned Series
    """
    buf = np.empty(len(values), dtype=object)
    for i, v in enumerate(values):
        buf[i] = v
    return pd.Series(buf, index=index, dtype=object)
