# src/enrichment.py
"""
Derived columns and region attachment for the joined indicator table.

Country-name normalisation is delegated to a collaborator
`normalize(name) -> code | None`; the default uses `pycountry`'s exact lookup
(ISO names, official names, alpha-2/alpha-3 codes) and never guesses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
import pandas as pd
import pycountry

from errors import UnresolvedMappingError
from helpers import require_columns
from joins import inner_join

Normalizer = Callable[[str], Optional[str]]


# ---------------------------------------------------------------------------
# Derived columns
# ---------------------------------------------------------------------------

def add_ratio(df: pd.DataFrame, numerator: str, denominator: str, name: str) -> pd.DataFrame:
    """
    Append `name = numerator / denominator`, row by row.

    A zero denominator or a missing operand yields a missing value rather
    than inf or an exception.
    """
    require_columns(df, [numerator, denominator], context="add_ratio")
    num = pd.to_numeric(df[numerator], errors="coerce").astype(float)
    den = pd.to_numeric(df[denominator], errors="coerce").astype(float)
    den = den.where(den != 0)

    out = df.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        out[name] = num / den
    return out


# ---------------------------------------------------------------------------
# Country names -> codes
# ---------------------------------------------------------------------------

def country_to_iso3(name) -> Optional[str]:
    """
    ISO 3166-1 alpha-3 code for a country name, or None when pycountry has
    no exact match.

    >>> country_to_iso3("Mexico")
    'MEX'
    """
    if name is None or (isinstance(name, float) and np.isnan(name)):
        return None
    s = str(name).strip()
    if not s:
        return None
    try:
        return pycountry.countries.lookup(s).alpha_3
    except LookupError:
        return None


@dataclass
class UnresolvedReport:
    """Entity names the normaliser could not map to a code."""
    names: list = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.names)

    def __bool__(self) -> bool:
        return bool(self.names)


def map_country_codes(names: pd.Series, normalize: Normalizer = country_to_iso3) -> pd.Series:
    """
    Map each name through `normalize`; unresolved names become <NA>.

    Each distinct name is normalised once.
    """
    uniq = pd.unique(names.dropna())
    lookup = {n: normalize(n) for n in uniq}
    codes = names.map(lookup)
    return codes.where(codes.notna(), pd.NA).astype("string")


def build_region_lookup(
    df: pd.DataFrame,
    name_col: str,
    region_col: str,
    normalize: Normalizer = country_to_iso3,
    strict: bool = False,
):
    """
    Region lookup table keyed by country code.

    Every input row is kept, as {entity_name, entity_code, region_name}:

    - `entity_code` is <NA> when the name could not be mapped (unresolved);
    - `region_name` is <NA> when the source assigns no region.

    The two conditions stay distinguishable. When several names map to the
    same code only the first row keeps it; later duplicates are removed with
    a warning so that `entity_code` is unique among resolved rows.

    Parameters
    ----------
    df : pd.DataFrame
        Classification table with a free-text name column and a region column.
    name_col, region_col : str
    normalize : Callable[[str], str | None]
        Name-to-code collaborator.
    strict : bool
        Raise UnresolvedMappingError instead of reporting unresolved names.

    Returns
    -------
    tuple[pd.DataFrame, UnresolvedReport]
    """
    require_columns(df, [name_col, region_col], context="build_region_lookup")
    names = df[name_col].astype("string").str.strip()
    out = pd.DataFrame({
        "entity_name": names,
        "entity_code": map_country_codes(names, normalize),
        "region_name": df[region_col].astype("string"),
    }).reset_index(drop=True)

    unresolved = out.loc[out["entity_code"].isna() & out["entity_name"].notna(), "entity_name"]
    report = UnresolvedReport(names=unresolved.drop_duplicates().tolist())
    if report:
        if strict:
            raise UnresolvedMappingError(report.names)
        logging.warning(
            f"[region] {report.count} entity name(s) could not be mapped to a country code: {report.names}"
        )

    dup = out["entity_code"].notna() & out.duplicated(subset=["entity_code"], keep="first")
    if dup.any():
        logging.warning(
            f"[region] dropping {int(dup.sum())} row(s) whose code duplicates an earlier entity: "
            f"{out.loc[dup, 'entity_name'].tolist()}"
        )
        out = out.loc[~dup].reset_index(drop=True)
    return out, report


def attach_region(df: pd.DataFrame, lookup: pd.DataFrame, on: str = "entity_code") -> pd.DataFrame:
    """
    Add `region_name` by inner join on `on` alone.

    Only resolved lookup rows take part, so an unresolved entity never picks
    up a region; rows of `df` without a lookup entry are dropped.
    """
    require_columns(lookup, [on, "region_name"], context="attach_region")
    resolved = lookup.loc[lookup[on].notna(), [on, "region_name"]]
    # codes from the indicator files are plain object strings
    resolved = resolved.astype({on: object, "region_name": object})
    return inner_join(df, resolved, on)
