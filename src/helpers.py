# src/helpers.py
"""
General-purpose helpers shared across the pipeline.

This module centralizes reusable utilities that are agnostic to which
indicator is being processed:
- Column-name canonicalisation (the Normalizer stage).
- Liberal header detection for lookup files.
- Column presence checks and key-uniqueness diagnostics.
- List/string coercions for config values.

All functions are pure and side-effect free; every function that returns a
DataFrame returns a new object and leaves its input untouched.

IMPORTANT: This module only imports `errors` from the project to avoid circular
dependencies. Callers must supply any configuration defaults they need.
"""
from __future__ import annotations

import re
import pandas as pd

from errors import ColumnNotFoundError

# ---------------------------------------------------------------------------
# Column names
# ---------------------------------------------------------------------------

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def clean_name(name) -> str:
    """
    Canonical snake_case form of a column name.

    Rules
    -----
    - lowercase;
    - every run of non-alphanumeric characters becomes a single '_';
    - leading/trailing '_' are trimmed;
    - 'x' is prefixed when the result starts with a digit or is empty.

    The transformation is idempotent: clean_name(clean_name(s)) == clean_name(s).

    Examples
    --------
    >>> clean_name("Country Name")
    'country_name'
    >>> clean_name("1960")
    'x1960'
    """
    s = _NON_ALNUM.sub("_", str(name).lower()).strip("_")
    if not s or s[0].isdigit():
        s = "x" + s
    return s


def clean_names(df: pd.DataFrame, drop=()) -> pd.DataFrame:
    """
    Canonicalise every column name, then drop `drop`.

    When several source columns canonicalise to the same name the last one
    wins; earlier ones are discarded. Names in `drop` are canonicalised before
    lookup.

    Parameters
    ----------
    df : pd.DataFrame
    drop : Iterable[str]
        Columns to remove after renaming.

    Returns
    -------
    pd.DataFrame

    Raises
    ------
    ColumnNotFoundError
        If a name in `drop` does not exist after normalisation.
    """
    new_names = pd.Index([clean_name(c) for c in df.columns])
    keep = ~new_names.duplicated(keep="last")
    out = df.loc[:, keep].copy()
    out.columns = new_names[keep]

    drop = [clean_name(c) for c in drop]
    missing = [c for c in drop if c not in out.columns]
    if missing:
        raise ColumnNotFoundError(missing, out.columns, context="clean_names")
    return out.drop(columns=drop)


def _find_col(df: pd.DataFrame, must_include: list[str]) -> str | None:
    """
    Return the first column name in `df` whose lowercase name contains *all*
    substrings in `must_include`. Used for robust header detection.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame with candidate columns.
    must_include : list[str]
        Substrings that must all appear in the lowercase column name.

    Returns
    -------
    str | None
        Original column name or None if not found.
    """
    low = {str(c).lower(): c for c in df.columns}
    for lc, orig in low.items():
        if all(s in lc for s in must_include):
            return orig
    return None


def resolve_column(df: pd.DataFrame, preferred: str, *hints: list[str]) -> str:
    """
    `preferred` if present, else the first column matching one of `hints`
    (see `_find_col`).

    Raises
    ------
    ColumnNotFoundError
        If neither the preferred name nor any hint matches.
    """
    if preferred in df.columns:
        return preferred
    for h in hints:
        cand = _find_col(df, h)
        if cand is not None:
            return cand
    raise ColumnNotFoundError([preferred], df.columns, context="resolve_column")


def require_columns(df: pd.DataFrame, columns, context: str = "") -> None:
    """Raise ColumnNotFoundError if any of `columns` is absent from `df`."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ColumnNotFoundError(missing, df.columns, context=context)


def duplicated_keys(df: pd.DataFrame, key) -> pd.DataFrame:
    """
    Rows of `df` whose `key` combination occurs more than once.

    An empty result means `key` is a unique key of `df`.
    """
    key = list(key)
    require_columns(df, key, context="duplicated_keys")
    return df.loc[df.duplicated(subset=key, keep=False)].copy()


# ---------------------------------------------------------------------------
# List / string coercions for config-like values
# ---------------------------------------------------------------------------

def _coerce_list(x):
    """
    Coerce input to a flat list of strings.

    Rules
    -----
    - If `x` is a list, flatten one level; split any string items on ';' or ','.
    - If `x` is a string, split on ';' or ',' and strip.
    - Otherwise return None (caller should fall back to project defaults).

    Parameters
    ----------
    x : Any

    Returns
    -------
    list[str] | None
    """
    if isinstance(x, list):
        flat: list[str] = []
        for it in x:
            if isinstance(it, list):
                flat.extend(it)
            elif isinstance(it, str) and (";" in it or "," in it):
                flat.extend(
                    [s.strip() for s in it.replace(",", ";").split(";") if s.strip()]
                )
            else:
                flat.append(str(it))
        return flat
    if isinstance(x, str):
        if ";" in x or "," in x:
            return [s.strip() for s in x.replace(",", ";").split(";") if s.strip()]
        return [x.strip()]
    return None
