# ------------------------------------------------------------------------------
# Indicator pipeline: population, GDP and life expectancy -> one analytical table.
# - Per indicator file: read (skip metadata preamble) -> clean names ->
#   drop descriptive columns -> pivot year columns to long.
# - Pairwise inner joins on (entity_code, year); gdp_per_capita = gdp / population.
# - Region attached by inner join on entity_code, from a name-based lookup
#   mapped to ISO alpha-3 codes. Unresolved names are reported, never joined.
# - Writes the analytical table and the complete-case cross-section of the
#   analysis year to results_dir; optionally renders the static scatter.
# ------------------------------------------------------------------------------


from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional
import logging
import os
import sys
import pandas as pd

from errors import PipelineError
from data_loaders import _load_config, load_indicator_tables, read_lookup_csv
from helpers import (
    clean_name, clean_names, require_columns, resolve_column, duplicated_keys, _coerce_list,
)
from reshaping import indicator_to_long
from joins import JoinReport, inner_join_with_report, join_report, coalesce_suffixed
from enrichment import (
    UnresolvedReport, add_ratio, attach_region, build_region_lookup, country_to_iso3,
)
from views import cross_section, drop_incomplete, select_columns

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
CONFIG_PATH = os.path.join(ROOT_DIR, "config.yaml")

KEY = ["entity_code", "year"]
ANALYTICAL_COLUMNS = [
    "entity_name", "entity_code", "region_name", "year",
    "population", "gdp", "gdp_per_capita", "life_expectancy",
]


@dataclass
class PipelineResult:
    table: pd.DataFrame
    join_reports: Dict[str, JoinReport] = field(default_factory=dict)
    unresolved: UnresolvedReport = field(default_factory=UnresolvedReport)
    region_lookup: Optional[pd.DataFrame] = None


# ------------------------------- Stage helpers --------------------------------

def build_long_tables(raw_tables: dict, cfg: dict) -> dict:
    """
    Normalise and reshape every wide indicator table.

    Returns {indicator: DataFrame[entity_name, entity_code, year, <indicator>]}.
    """
    cols = cfg["columns"]
    drop = _coerce_list(cols.get("drop")) or []
    entity = {clean_name(k): v for k, v in cols["entity"].items()}
    prefix = cols["year_prefix"]

    out = {}
    for name, raw in raw_tables.items():
        wide = clean_names(raw, drop=drop)
        require_columns(wide, list(entity), context=name)
        wide = wide.rename(columns=entity)
        long = indicator_to_long(wide, name, prefix=prefix, id_cols=list(entity.values()))

        dups = duplicated_keys(long, KEY)
        if len(dups):
            logging.warning(
                f"[{name}] {len(dups)} row(s) share an (entity_code, year) key; joins will multiply them"
            )
        out[name] = long
    return out


def merge_indicators(long_tables: dict, order) -> tuple[pd.DataFrame, Dict[str, JoinReport]]:
    """
    Inner-join the long tables in `order` on (entity_code, year).

    `entity_name` is carried once (left value first, gaps filled from the
    right). Returns the merged table and a JoinReport per joined indicator.
    """
    order = list(order)
    if not order:
        raise ValueError("[merge] no indicators to merge")
    missing = [n for n in order if n not in long_tables]
    if missing:
        raise KeyError(f"[merge] no long table for indicator(s): {missing}")

    merged = long_tables[order[0]]
    reports: Dict[str, JoinReport] = {}
    for name in order[1:]:
        right = long_tables[name]
        joined, reports[name] = inner_join_with_report(merged, right, KEY)
        if "entity_name.x" in joined.columns:
            joined = coalesce_suffixed(joined, "entity_name")
        merged = joined
    return merged, reports


def build_analytical_table(long_tables: dict, region_lookup: pd.DataFrame, order=None):
    """
    Joined analytical table with gdp_per_capita and region_name.

    Columns: entity_name, entity_code, region_name, year, population, gdp,
    gdp_per_capita, life_expectancy. Only (entity_code, year) pairs present
    in every indicator and entities with a resolved region survive.

    Returns (table, join_reports); the region join is reported under 'region'.
    """
    order = list(order) if order is not None else ["population", "gdp", "life_expectancy"]
    merged, reports = merge_indicators(long_tables, order)
    merged = add_ratio(merged, "gdp", "population", "gdp_per_capita")

    with_region = attach_region(merged, region_lookup)
    resolved = region_lookup.loc[region_lookup["entity_code"].notna(), ["entity_code"]].astype(object)
    reports["region"] = join_report(merged, resolved, ["entity_code"], result_rows=len(with_region))

    table = select_columns(with_region, ANALYTICAL_COLUMNS)
    table = table.sort_values(KEY, kind="stable").reset_index(drop=True)
    return table, reports


def load_region_lookup(PATHS: dict, cfg: dict, normalize=country_to_iso3):
    """Read, normalise and code-map the region classification file."""
    raw = clean_names(read_lookup_csv(PATHS["region_lookup"], cfg["reading"]["lookup_skip_rows"]))
    name_col = resolve_column(raw, clean_name(cfg["lookup"]["name_col"]), ["country"], ["name"])
    region_col = resolve_column(raw, clean_name(cfg["lookup"]["region_col"]), ["region"])
    return build_region_lookup(
        raw, name_col, region_col,
        normalize=normalize,
        strict=bool(cfg["analysis"].get("strict_country_mapping", False)),
    )


def run_pipeline(cfg: dict, PATHS: dict, normalize=country_to_iso3, progress: bool = True) -> PipelineResult:
    """
    Load -> normalise -> reshape each indicator, then join and enrich.
    """
    raw_tables = load_indicator_tables(PATHS, cfg, progress=progress)
    long_tables = build_long_tables(raw_tables, cfg)
    lookup, unresolved = load_region_lookup(PATHS, cfg, normalize)
    table, reports = build_analytical_table(long_tables, lookup, order=cfg["indicators"])

    print(f"[pipeline] analytical table: {len(table)} rows, "
          f"{table['entity_code'].nunique()} entities, "
          f"{table['year'].nunique()} years.")
    if unresolved:
        print(f"[region] {unresolved.count} unresolved entity name(s); see warnings above.")
    return PipelineResult(table=table, join_reports=reports, unresolved=unresolved, region_lookup=lookup)


def save_outputs(result: PipelineResult, results_dir: str, cfg: dict) -> dict:
    """
    Write the analytical table and the complete-case cross-section of
    analysis.year as CSV. Returns {'analytical': path, 'cross_section': path}.
    """
    os.makedirs(results_dir, exist_ok=True)
    year = int(cfg["analysis"]["year"])
    names = cfg["filenames"]

    paths = {
        "analytical": os.path.join(results_dir, names["analytical"]),
        "cross_section": os.path.join(results_dir, names["cross_section"].format(year=year)),
    }
    result.table.to_csv(paths["analytical"], index=False)
    drop_incomplete(cross_section(result.table, year)).to_csv(paths["cross_section"], index=False)
    return paths


# ----------------------------------- Driver -----------------------------------

def main(config_path: str = CONFIG_PATH, normalize=country_to_iso3) -> int:
    root = os.path.dirname(os.path.abspath(config_path))
    fig = None
    try:
        cfg, PATHS = _load_config(root, config_path)
        result = run_pipeline(cfg, PATHS, normalize=normalize)
        year = int(cfg["analysis"]["year"])

        # nothing is written until the figure has been built
        if cfg["figures"].get("enabled", False):
            from figures_static import plot_cross_section

            fig = plot_cross_section(result.table, year)

        saved = save_outputs(result, PATHS["results_dir"], cfg)
        for kind, path in saved.items():
            print(f"[pipeline] wrote {kind}: {path}")

        if fig is not None:
            os.makedirs(PATHS["figures_dir"], exist_ok=True)
            fig_path = os.path.join(PATHS["figures_dir"], cfg["figures"]["filename"].format(year=year))
            fig.savefig(fig_path, dpi=150)
            print(f"[pipeline] wrote figure: {fig_path}")
    except PipelineError as e:
        print(f"[pipeline] FAILED: {e}", file=sys.stderr)
        return 1
    finally:
        if fig is not None:
            import matplotlib.pyplot as plt

            plt.close(fig)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    sys.exit(main())
