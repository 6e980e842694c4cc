"""
Data loaders for record results.

A loader receives the scanned rows as ``{column: value}`` dicts plus the
ordered column names and builds the final result object.
"""
from collections.abc import Sequence

import pandas as pd
import pyarrow as pa

__all__ = [
    'iterdict_data_loader',
    'pandas_data_loader',
    'pandas_pyarrow_data_loader',
]


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def _empty_dataframe(columns: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame(columns=list(columns))


def pandas_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)
    return pd.DataFrame.from_records(list(data), columns=list(columns))


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    Column order follows columns, not the key order of the row dicts.
    """
    if not data:
        return _empty_dataframe(columns)

    table = pa.Table.from_pylist(list(data)).select(list(columns))
    return table.to_pandas(types_mapper=pd.ArrowDtype)
