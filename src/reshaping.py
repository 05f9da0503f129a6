# src/reshaping.py
"""
Wide-to-long reshaping of per-year indicator tables.

A wide table carries one column per year ('x1960', ..., 'x2022' after name
normalisation). `pivot_longer` turns the selected columns into
(name, value) rows, repeating every other column, and coerces the names to
integers.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, Union

import pandas as pd

from errors import TypeConversionError
from helpers import require_columns

ColumnSelector = Union[Iterable[str], Callable[[str], bool]]

_INT_RE = re.compile(r"[+-]?\d+")


def prefixed(prefix: str) -> Callable[[str], bool]:
    """
    Column predicate: name is `prefix` followed by digits only.

    >>> sel = prefixed("x")
    >>> sel("x1960"), sel("xyz"), sel("country_code")
    (True, False, False)
    """
    def _select(name) -> bool:
        s = str(name)
        rest = s[len(prefix):]
        return s.startswith(prefix) and rest.isdigit()

    return _select


def _strip_prefix(label, prefix: str) -> str:
    s = str(label)
    if prefix and s.startswith(prefix):
        return s[len(prefix):]
    return s


def _coerce_key(label) -> int:
    s = str(label).strip()
    if not _INT_RE.fullmatch(s):
        raise TypeConversionError(s, "int")
    return int(s)


def _select_columns(df: pd.DataFrame, cols: ColumnSelector) -> list:
    if callable(cols):
        return [c for c in df.columns if cols(c)]
    selected = list(cols)
    require_columns(df, selected, context="pivot_longer")
    return selected


def pivot_longer(
    df: pd.DataFrame,
    cols: ColumnSelector,
    names_prefix: str = "",
    names_to: str = "year",
    values_to: str = "value",
) -> pd.DataFrame:
    """
    Pivot the selected wide columns into long (name, value) rows.

    Each selected column contributes one row per input row; columns that are
    not selected are repeated on every generated row. The output therefore has
    exactly len(df) * K rows for K selected columns, including K == 0.

    Parameters
    ----------
    df : pd.DataFrame
        Wide table.
    cols : Iterable[str] | Callable[[str], bool]
        Explicit column names, or a predicate over column names (see `prefixed`).
    names_prefix : str
        Stripped from each selected column name before coercion.
    names_to, values_to : str
        Names of the generated key and value columns.

    Returns
    -------
    pd.DataFrame
        Long table: id columns + `names_to` (int64) + `values_to`. Missing
        cells stay missing.

    Raises
    ------
    ColumnNotFoundError
        If an explicitly named column is absent.
    TypeConversionError
        If a stripped column name is not an integer label (e.g. 'abc').
    ValueError
        If `names_to` / `values_to` collide with a column that is kept.
    """
    selected = _select_columns(df, cols)
    id_cols = [c for c in df.columns if c not in selected]

    clash = [c for c in (names_to, values_to) if c in id_cols]
    if clash or names_to == values_to:
        raise ValueError(f"[pivot_longer] output column name(s) clash with existing columns: {clash or [names_to]}")

    keys = {c: _coerce_key(_strip_prefix(c, names_prefix)) for c in selected}

    if not selected:
        out = df.loc[:, id_cols].iloc[0:0].copy()
        out[names_to] = pd.Series(dtype="int64")
        out[values_to] = pd.Series(dtype="float64")
        return out.reset_index(drop=True)

    long = df.melt(
        id_vars=id_cols,
        value_vars=selected,
        var_name=names_to,
        value_name=values_to,
    )
    long[names_to] = long[names_to].map(keys).astype("int64")
    return long


def indicator_to_long(
    df: pd.DataFrame,
    value_name: str,
    prefix: str = "x",
    id_cols=("entity_name", "entity_code"),
) -> pd.DataFrame:
    """
    Long (entity, year, value) view of a normalised wide indicator table.

    Keeps `id_cols` plus every `prefix`+digits column and pivots the latter
    into `year` / `value_name`. Any other column is discarded.
    """
    id_cols = list(id_cols)
    require_columns(df, id_cols, context="indicator_to_long")
    year_cols = [c for c in df.columns if prefixed(prefix)(c)]
    wide = df.loc[:, id_cols + year_cols]
    long = pivot_longer(
        wide, year_cols, names_prefix=prefix, names_to="year", values_to=value_name
    )
    long[value_name] = pd.to_numeric(long[value_name], errors="coerce")
    return long
