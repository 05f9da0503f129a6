# src/data_loaders.py
import os
import re
import yaml
import pandas as pd
from tqdm import tqdm

from errors import ConfigError, ParseError


def return_default_config():
    """
    Returns the default configuration dictionary
    """
    return {
        "paths": {
            "data_dir": "./data",
            "results_dir": "./results",
            "figures_dir": "./figures",
            "indicators": {
                "population": "./data/API_SP.POP.TOTL_DS2_en_csv_v2.csv",
                "gdp": "./data/API_NY.GDP.MKTP.CD_DS2_en_csv_v2.csv",
                "life_expectancy": "./data/API_SP.DYN.LE00.IN_DS2_en_csv_v2.csv",
            },
            "region_lookup": "./data/country_regions.csv",
        },
        "reading": {"indicator_skip_rows": 4, "lookup_skip_rows": 0},
        "columns": {
            "year_prefix": "x",
            "drop": ["indicator_name", "indicator_code"],
            "entity": {"country_name": "entity_name", "country_code": "entity_code"},
        },
        "lookup": {"name_col": "country", "region_col": "region"},
        "indicators": ["population", "gdp", "life_expectancy"],
        "analysis": {"year": 2019, "strict_country_mapping": False},
        "figures": {"enabled": True, "filename": "gdp_vs_life_expectancy_{year}.png"},
        "filenames": {
            "analytical": "analytical_table.csv",
            "cross_section": "cross_section_{year}.csv",
        },
    }

def _resolve(ROOT_DIR, p):
    """
    Resolve path p relative to ROOT_DIR if not absolute.
    """
    return os.path.abspath(os.path.join(ROOT_DIR, p))

def _deep_merge(dst, src):
    """
    Recursively merge src into dst
    """
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v

def _is_count(x):
    return isinstance(x, int) and not isinstance(x, bool)

def validate_config(cfg):
    """
    Check the values the pipeline cannot run without.

    Raises ConfigError on a negative or non-integer skip count, an empty
    indicator list, an indicator without a configured path, or a non-integer
    analysis year.
    """
    reading = cfg["reading"]
    for key in ("indicator_skip_rows", "lookup_skip_rows"):
        if not _is_count(reading.get(key)) or reading[key] < 0:
            raise ConfigError(f"[config] reading.{key} must be a non-negative integer, got {reading.get(key)!r}")

    indicators = list(cfg.get("indicators") or [])
    if not indicators:
        raise ConfigError("[config] at least one indicator must be configured")
    missing = [name for name in indicators if name not in cfg["paths"]["indicators"]]
    if missing:
        raise ConfigError(f"[config] no path configured for indicator(s): {missing}")

    year = cfg["analysis"].get("year")
    if not _is_count(year):
        raise ConfigError(f"[config] analysis.year must be an integer, got {year!r}")

def _load_config(ROOT_DIR: str, path: str):
    """
    Load YAML config if present; otherwise use defaults for both config and paths.
    Returns (cfg, PATHS)
    """
    cfg = return_default_config()
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as fh:
            user = yaml.safe_load(fh) or {}
        if not isinstance(user, dict):
            raise ConfigError(f"[config] {path} must contain a mapping at top level")
        _deep_merge(cfg, user)
    else:
        print(f"[config] No config file at {path}; using built-in defaults.")

    validate_config(cfg)

    paths = cfg["paths"]
    PATHS = {
        "data_dir": _resolve(ROOT_DIR, paths["data_dir"]),
        "results_dir": _resolve(ROOT_DIR, paths["results_dir"]),
        "figures_dir": _resolve(ROOT_DIR, paths["figures_dir"]),
        "region_lookup": _resolve(ROOT_DIR, paths["region_lookup"]),
        "indicators": {
            name: _resolve(ROOT_DIR, paths["indicators"][name])
            for name in cfg["indicators"]
        },
    }
    return cfg, PATHS

# ----------------------------------- readers ----------------------------------

_LINE_RE = re.compile(r"line (\d+)")
# unterminated quotes: 0-based physical row where the quoted field opens
_ROW_RE = re.compile(r"starting at row (\d+)")

def _count_lines(file_path: str) -> int:
    with open(file_path, "r", encoding="utf-8", newline="") as fh:
        return sum(1 for _ in fh)

def _check_skip_rows(file_path: str, skip_rows) -> None:
    """
    Raise ConfigError unless file_path exists and 0 <= skip_rows < line count.
    """
    if not os.path.isfile(file_path):
        raise ConfigError(f"File not found: {file_path}")
    if not _is_count(skip_rows) or skip_rows < 0:
        raise ConfigError(f"skip_rows must be a non-negative integer, got {skip_rows!r} for {file_path}")
    try:
        n_lines = _count_lines(file_path)
    except UnicodeDecodeError as e:
        raise ParseError(file_path, detail=f"not valid UTF-8 ({e.reason})") from e
    if skip_rows >= n_lines:
        raise ConfigError(
            f"skip_rows={skip_rows} leaves nothing to read in {file_path} ({n_lines} line(s))"
        )

def _error_line(message: str):
    """
    1-based file line named by a pandas tokenizer message, or None.

    Both counters include the skipped preamble lines.
    """
    m = _LINE_RE.search(message)
    if m:
        return int(m.group(1))
    m = _ROW_RE.search(message)
    if m:
        return int(m.group(1)) + 1
    return None

def _drop_empty_unnamed(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop the all-missing 'Unnamed: N' columns that a trailing delimiter
    produces (every World Bank bulk-download CSV ends rows with a comma).
    """
    empty = [
        c for c in df.columns
        if str(c).startswith("Unnamed:") and df[c].isna().all()
    ]
    return df.drop(columns=empty) if empty else df

def read_delimited(file_path: str, skip_rows: int = 0) -> pd.DataFrame:
    """
    Read a UTF-8 CSV after skipping `skip_rows` leading metadata lines.

    Column types are inferred by pandas (string, integer, floating point);
    empty cells become missing values. A row shorter than the header is
    padded with missing values; a longer one is a ParseError.

    Raises
    ------
    ConfigError
        Missing file or skip count outside [0, line count).
    ParseError
        Malformed row, undecodable bytes, or nothing left to parse. The
        message names the file and, when known, the offending line.
    """
    _check_skip_rows(file_path, skip_rows)
    try:
        df = pd.read_csv(file_path, skiprows=skip_rows, encoding="utf-8")
    except pd.errors.ParserError as e:
        raise ParseError(file_path, _error_line(str(e)), str(e).strip()) from e
    except pd.errors.EmptyDataError as e:
        raise ParseError(file_path, detail="no columns to parse") from e
    except UnicodeDecodeError as e:
        raise ParseError(file_path, detail=f"not valid UTF-8 ({e.reason})") from e
    return _drop_empty_unnamed(df)

def read_indicator_csv(file_path: str, skip_rows: int = 4) -> pd.DataFrame:
    """
    Read one wide World Bank indicator file (one row per entity, one column
    per year) skipping its metadata preamble.
    """
    return read_delimited(file_path, skip_rows)

def read_lookup_csv(file_path: str, skip_rows: int = 0) -> pd.DataFrame:
    """
    Read the country/region classification file.
    """
    return read_delimited(file_path, skip_rows)

def load_indicator_tables(PATHS: dict, cfg: dict, progress: bool = True) -> dict:
    """
    Loads every configured indicator file, keyed by indicator name.
    """
    skip = cfg["reading"]["indicator_skip_rows"]
    tables = {}
    for name in tqdm(cfg["indicators"], desc="Loading indicators", disable=not progress):
        tables[name] = read_indicator_csv(PATHS["indicators"][name], skip)
    return tables
