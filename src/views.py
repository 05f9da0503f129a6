# src/views.py
"""
Row and column subsets of a table for inspection or single-year analysis.
"""
from __future__ import annotations

from typing import Callable

import pandas as pd

from helpers import require_columns

Predicate = Callable[[pd.DataFrame], pd.Series]


def where_equals(column: str, value) -> Predicate:
    """Predicate: `column == value`."""
    def _pred(df: pd.DataFrame) -> pd.Series:
        require_columns(df, [column], context="where_equals")
        return df[column] == value
    return _pred


def where_in(column: str, values) -> Predicate:
    """Predicate: `column` is one of `values`."""
    values = list(values)

    def _pred(df: pd.DataFrame) -> pd.Series:
        require_columns(df, [column], context="where_in")
        return df[column].isin(values)
    return _pred


def filter_rows(df: pd.DataFrame, predicate: Predicate) -> pd.DataFrame:
    """
    Rows of `df` for which `predicate(df)` is True, in their original order.

    Missing values in the mask count as False. Columns and dtypes are
    unchanged; the index is reset.
    """
    mask = predicate(df)
    mask = pd.Series(mask, index=df.index).fillna(False).astype(bool)
    return df.loc[mask].reset_index(drop=True)


def cross_section(df: pd.DataFrame, year: int, year_col: str = "year") -> pd.DataFrame:
    """All rows for a single `year`."""
    return filter_rows(df, where_equals(year_col, year))


def select_columns(df: pd.DataFrame, columns) -> pd.DataFrame:
    """Column subset in the order given."""
    columns = list(columns)
    require_columns(df, columns, context="select_columns")
    return df.loc[:, columns].copy()


def drop_incomplete(df: pd.DataFrame, subset=None) -> pd.DataFrame:
    """
    Drop every row holding a missing value (in `subset`, or in any column).
    """
    if subset is not None:
        subset = list(subset)
        require_columns(df, subset, context="drop_incomplete")
    return df.dropna(subset=subset).reset_index(drop=True)
