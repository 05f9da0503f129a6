# src/joins.py
"""
Inner joins on composite keys, with an account of the rows each side loses.

Row order of a join result is not part of the contract; callers compare
key/value sets, not positions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from helpers import require_columns


@dataclass(frozen=True)
class JoinReport:
    """Row counts of an inner join: inputs, output, and unmatched rows per side."""
    left_rows: int
    right_rows: int
    result_rows: int
    left_unmatched: int
    right_unmatched: int

    def as_dict(self) -> dict:
        return {
            "left_rows": self.left_rows,
            "right_rows": self.right_rows,
            "result_rows": self.result_rows,
            "left_unmatched": self.left_unmatched,
            "right_unmatched": self.right_unmatched,
        }


def _check_keys(left: pd.DataFrame, right: pd.DataFrame, by) -> list:
    by = [by] if isinstance(by, str) else list(by)
    if not by:
        raise ValueError("[inner_join] at least one key column is required")
    require_columns(left, by, context="inner_join:left")
    require_columns(right, by, context="inner_join:right")
    return by


def _unmatched_mask(df: pd.DataFrame, other: pd.DataFrame, by: list) -> pd.Series:
    """Boolean mask of rows in `df` whose key has no partner in `other`."""
    other_keys = pd.MultiIndex.from_frame(other[by].dropna())
    own_keys = pd.MultiIndex.from_frame(df[by])
    has_null = df[by].isna().any(axis=1).to_numpy()
    matched = own_keys.isin(other_keys) & ~has_null
    return pd.Series(~matched, index=df.index)


def join_report(left: pd.DataFrame, right: pd.DataFrame, by, result_rows=None) -> JoinReport:
    """
    Count the rows of each side that an inner join on `by` would drop.

    Rows with a missing value in any key column count as unmatched.
    """
    by = _check_keys(left, right, by)
    if result_rows is None:
        result_rows = len(inner_join(left, right, by, log=False))
    return JoinReport(
        left_rows=len(left),
        right_rows=len(right),
        result_rows=int(result_rows),
        left_unmatched=int(_unmatched_mask(left, right, by).sum()),
        right_unmatched=int(_unmatched_mask(right, left, by).sum()),
    )


def inner_join(
    left: pd.DataFrame,
    right: pd.DataFrame,
    by,
    suffixes=(".x", ".y"),
    log: bool = True,
) -> pd.DataFrame:
    """
    Inner join `left` and `right` on the ordered key columns `by`.

    One output row per pair of input rows with pairwise-equal keys: keys
    duplicated on either side multiply rows. Rows whose key contains a missing
    value never match. Non-key columns present on both sides get `suffixes`.

    Parameters
    ----------
    left, right : pd.DataFrame
    by : str | list[str]
        Non-empty ordered sequence of shared key columns.
    suffixes : tuple[str, str]
        Disambiguation for duplicated non-key column names.
    log : bool
        Log the rows dropped from each side at INFO level.

    Returns
    -------
    pd.DataFrame
        Left columns followed by right non-key columns, fresh RangeIndex.

    Raises
    ------
    ValueError
        If `by` is empty.
    ColumnNotFoundError
        If a key column is missing from either side.
    """
    by = _check_keys(left, right, by)
    l = left.dropna(subset=by)
    r = right.dropna(subset=by)
    out = pd.merge(l, r, how="inner", on=by, suffixes=tuple(suffixes), sort=False)
    out = out.reset_index(drop=True)

    if log:
        _log_drops(join_report(left, right, by, result_rows=len(out)), by)
    return out


def _log_drops(rep: JoinReport, by: list) -> None:
    if rep.left_unmatched or rep.right_unmatched:
        logging.info(
            f"[join] on {by}: dropped {rep.left_unmatched}/{rep.left_rows} left and "
            f"{rep.right_unmatched}/{rep.right_rows} right row(s) without a partner"
        )


def inner_join_with_report(left: pd.DataFrame, right: pd.DataFrame, by, suffixes=(".x", ".y")):
    """inner_join plus its JoinReport, computed once and logged at INFO."""
    out = inner_join(left, right, by, suffixes=suffixes, log=False)
    by = [by] if isinstance(by, str) else list(by)
    rep = join_report(left, right, by, result_rows=len(out))
    _log_drops(rep, by)
    return out, rep


def coalesce_suffixed(
    df: pd.DataFrame,
    name: str,
    suffixes=(".x", ".y"),
    keep: str = "left",
) -> pd.DataFrame:
    """
    Collapse `name+suffixes[0]` / `name+suffixes[1]` back into `name`.

    The kept side's values are used, with gaps filled from the other side;
    the result takes the position of the left column.
    """
    lcol, rcol = f"{name}{suffixes[0]}", f"{name}{suffixes[1]}"
    require_columns(df, [lcol, rcol], context="coalesce_suffixed")
    if keep not in ("left", "right"):
        raise ValueError(f"keep must be 'left' or 'right', got {keep!r}")
    first, second = (lcol, rcol) if keep == "left" else (rcol, lcol)

    out = df.copy()
    out[lcol] = out[first].combine_first(out[second])
    out = out.drop(columns=[rcol]).rename(columns={lcol: name})
    return out
