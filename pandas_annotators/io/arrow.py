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
# arrow.py
#
# Part of pandas_annotators
#
# Conversion of annotation columns to and from Apache Arrow, and Parquet
# files that keep annotation columns intact.
#

import json
from typing import *

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from pandas_annotators.annotation import Annotation
from pandas_annotators.annotator import (
    ANNOTATION_METADATA_ATTR,
    ANNOTATOR_TYPES_ATTR,
)
from pandas_annotators.util import object_series

# Keys of the schema metadata entries that hold DataFrame attrs
ANNOTATOR_TYPES_KEY = b"pandas_annotators.annotator_types"
ANNOTATION_METADATA_KEY = b"pandas_annotators.annotation_metadata"

ANNOTATION_STRUCT_TYPE = pa.struct([
    pa.field("annotator_type", pa.string()),
    pa.field("begin", pa.int64()),
    pa.field("end", pa.int64()),
    pa.field("result", pa.string()),
    pa.field("metadata", pa.map_(pa.string(), pa.string())),
    pa.field("embeddings", pa.list_(pa.float32())),
])

ANNOTATION_COLUMN_TYPE = pa.list_(ANNOTATION_STRUCT_TYPE)


def _annotation_to_struct(a: Annotation) -> Dict[str, Any]:
    return {
        "annotator_type": a.annotator_type,
        "begin": a.begin,
        "end": a.end,
        "result": a.result,
        "metadata": list(a.metadata.items()),
        "embeddings": a.embeddings.tolist(),
    }


def annotations_to_arrow(values: Iterable[Any]) -> pa.Array:
    """
    Convert the cells of an annotation column to an Arrow array.

    :param values: One list of :class:`Annotation` per row; missing values
     (`None`, `NaN`) become null entries
    :returns: Array of type ``list<struct<annotator_type, begin, end, result,
     metadata, embeddings>>``
    """
    rows = []
    for cell in values:
        if isinstance(cell, (list, tuple)):
            rows.append([_annotation_to_struct(a) for a in cell])
        else:
            rows.append(None)
    return pa.array(rows, type=ANNOTATION_COLUMN_TYPE)


def arrow_to_annotations(array: Union[pa.Array, pa.ChunkedArray]) -> List[List[Annotation]]:
    """
    Inverse of :func:`annotations_to_arrow`.

    :param array: Array (or chunked array) of type ``ANNOTATION_COLUMN_TYPE``
    :returns: One list of :class:`Annotation` per entry; null entries become
     empty lists
    """
    if not array.type.equals(ANNOTATION_COLUMN_TYPE):
        raise TypeError(f"Expected an Arrow array of type {ANNOTATION_COLUMN_TYPE}, "
                        f"but received {array.type}")
    return [[Annotation.from_dict(d) for d in row] if row is not None else []
            for row in array.to_pylist()]


def write_parquet(df: pd.DataFrame, path: str) -> None:
    """
    Write a DataFrame with annotation columns to a Parquet file.

    Columns listed in ``df.attrs["annotator_types"]`` are stored as nested
    Arrow structures; all other columns are converted the usual pandas way.
    The DataFrame's annotation attrs are kept in the file's schema metadata.
    The index is not written.

    :param df: DataFrame to write
    :param path: Location of the Parquet file
    """
    annotator_types = df.attrs.get(ANNOTATOR_TYPES_ATTR, {})
    arrays = []
    names = []
    for col in df.columns:
        if col in annotator_types:
            arrays.append(annotations_to_arrow(df[col]))
        else:
            arrays.append(pa.Array.from_pandas(df[col]))
        names.append(str(col))
    table = pa.Table.from_arrays(arrays, names=names)
    table = table.replace_schema_metadata({
        ANNOTATOR_TYPES_KEY: json.dumps(annotator_types).encode("utf-8"),
        ANNOTATION_METADATA_KEY: json.dumps(
            df.attrs.get(ANNOTATION_METADATA_ATTR, {})).encode("utf-8"),
    })
    pq.write_table(table, path)


def read_parquet(path: str) -> pd.DataFrame:
    """
    Read a Parquet file written by :func:`write_parquet`.

    :param path: Location of the Parquet file
    :returns: DataFrame with annotation columns restored as lists of
     :class:`Annotation` and with the annotator types in ``df.attrs``
    """
    table = pq.read_table(path)
    schema_metadata = table.schema.metadata or {}
    annotator_types = json.loads(
        schema_metadata.get(ANNOTATOR_TYPES_KEY, b"{}").decode("utf-8"))
    annotation_metadata = json.loads(
        schema_metadata.get(ANNOTATION_METADATA_KEY, b"{}").decode("utf-8"))

    columns = {}
    for name in table.column_names:
        column = table.column(name)
        if name in annotator_types:
            columns[name] = object_series(arrow_to_annotations(column))
        else:
            columns[name] = column.to_pandas()
    df = pd.DataFrame(columns, columns=table.column_names)
    df.attrs[ANNOTATOR_TYPES_ATTR] = annotator_types
    df.attrs[ANNOTATION_METADATA_ATTR] = annotation_metadata
    return df
