"""
Tests for main_compute.py: stage composition and an end-to-end run from
files on disk.
"""

import os
import sys
import pytest
import numpy as np
import pandas as pd
import yaml
import matplotlib

matplotlib.use("Agg")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from main_compute import (
    ANALYTICAL_COLUMNS,
    build_long_tables,
    merge_indicators,
    build_analytical_table,
    run_pipeline,
    save_outputs,
    main,
)
from data_loaders import _load_config, return_default_config
from enrichment import build_region_lookup
from views import cross_section, drop_incomplete


def fake_normalize(name):
    return {"United States": "USA", "Mexico": "MEX"}.get(name)


@pytest.fixture
def long_tables():
    name = "United States"
    return {
        "population": pd.DataFrame({
            "entity_name": [name, name], "entity_code": ["USA", "USA"],
            "year": [2019, 2020], "population": [1000, 1010],
        }),
        "gdp": pd.DataFrame({
            "entity_name": [name], "entity_code": ["USA"], "year": [2019], "gdp": [50000],
        }),
        "life_expectancy": pd.DataFrame({
            "entity_name": [name], "entity_code": ["USA"], "year": [2019], "life_expectancy": [78.5],
        }),
    }


@pytest.fixture
def region_lookup():
    lookup, _ = build_region_lookup(
        pd.DataFrame({"country": ["United States"], "region": ["Americas"]}),
        "country", "region", fake_normalize,
    )
    return lookup


class TestBuildAnalyticalTable:

    def test_end_to_end_cross_section(self, long_tables, region_lookup):
        table, _ = build_analytical_table(long_tables, region_lookup)
        assert list(table.columns) == ANALYTICAL_COLUMNS

        xs = cross_section(table, 2019)
        assert len(xs) == 1
        row = xs.iloc[0]
        assert row["entity_code"] == "USA"
        assert row["region_name"] == "Americas"
        assert row["year"] == 2019
        assert row["population"] == 1000
        assert row["gdp"] == 50000
        assert row["gdp_per_capita"] == pytest.approx(50.0)
        assert row["life_expectancy"] == pytest.approx(78.5)

    def test_year_missing_in_one_source_is_absent(self, long_tables, region_lookup):
        table, _ = build_analytical_table(long_tables, region_lookup)
        assert cross_section(table, 2020).empty

    def test_join_reports(self, long_tables, region_lookup):
        _, reports = build_analytical_table(long_tables, region_lookup)
        assert set(reports) == {"gdp", "life_expectancy", "region"}
        assert reports["gdp"].left_unmatched == 1   # USA 2020 population only
        assert reports["region"].left_unmatched == 0

    def test_entity_name_carried_once(self, long_tables):
        merged, _ = merge_indicators(long_tables, ["population", "gdp", "life_expectancy"])
        assert "entity_name" in merged.columns
        assert not any(c.startswith("entity_name.") for c in merged.columns)

    def test_zero_population_gives_missing_ratio(self, long_tables, region_lookup):
        long_tables["population"].loc[0, "population"] = 0
        table, _ = build_analytical_table(long_tables, region_lookup)
        assert pd.isna(table.loc[0, "gdp_per_capita"])

    def test_unknown_indicator(self, long_tables):
        with pytest.raises(KeyError):
            merge_indicators(long_tables, ["population", "co2"])


class TestBuildLongTables:

    def test_wide_to_long(self):
        cfg = return_default_config()
        raw = {"gdp": pd.DataFrame({
            "Country Name": ["Mexico"], "Country Code": ["MEX"],
            "Indicator Name": ["GDP"], "Indicator Code": ["NY.GDP.MKTP.CD"],
            "2019": [1.0], "2020": [np.nan],
        })}
        long = build_long_tables(raw, cfg)["gdp"]
        assert list(long.columns) == ["entity_name", "entity_code", "year", "gdp"]
        assert sorted(long["year"]) == [2019, 2020]
        assert long["gdp"].isna().sum() == 1


# ---------------------------------------------------------------------------
# Files on disk
# ---------------------------------------------------------------------------

PREAMBLE = '"Data Source","World Development Indicators",\n\n"Last Updated Date","2023-12-18",\n\n'
HEADER = '"Country Name","Country Code","Indicator Name","Indicator Code","2019","2020",\n'


def _wide(path, indicator, rows):
    lines = [PREAMBLE, HEADER]
    for name, code, v19, v20 in rows:
        lines.append(f'"{name}","{code}","{indicator}","IND","{v19}","{v20}",\n')
    path.write_text("".join(lines), encoding="utf-8")


@pytest.fixture
def project(tmp_path):
    _wide(tmp_path / "pop.csv", "Population, total", [
        ("United States", "USA", 1000, 1010),
        ("Mexico", "MEX", 500, 510),
        ("World", "WLD", 8000, 8100),
    ])
    _wide(tmp_path / "gdp.csv", "GDP (current US$)", [
        ("United States", "USA", 50000, 52000),
        ("Mexico", "MEX", 5000, 4800),
        ("World", "WLD", 90000, 91000),
    ])
    _wide(tmp_path / "le.csv", "Life expectancy at birth, total (years)", [
        ("United States", "USA", 78.5, 77.0),
        ("Mexico", "MEX", 75.0, ""),
        ("World", "WLD", 72.8, 72.0),
    ])
    (tmp_path / "regions.csv").write_text(
        "Country,Region\nUnited States,Americas\nMexico,Americas\nAtlantis,Oceania\n",
        encoding="utf-8",
    )
    (tmp_path / "config.yaml").write_text(yaml.safe_dump({
        "paths": {
            "results_dir": "./results",
            "figures_dir": "./figures",
            "indicators": {
                "population": "./pop.csv",
                "gdp": "./gdp.csv",
                "life_expectancy": "./le.csv",
            },
            "region_lookup": "./regions.csv",
        },
        "analysis": {"year": 2019},
        "figures": {"enabled": False},
    }))
    return tmp_path


class TestRunPipeline:

    def test_analytical_table_from_files(self, project):
        cfg, PATHS = _load_config(str(project), str(project / "config.yaml"))
        result = run_pipeline(cfg, PATHS, progress=False)
        table = result.table

        assert list(table.columns) == ANALYTICAL_COLUMNS
        # World has no region entry; Atlantis never resolves
        assert set(table["entity_code"]) == {"USA", "MEX"}
        assert len(table) == 4
        assert result.unresolved.count == 1
        assert result.unresolved.names == ["Atlantis"]

        usa = table[(table["entity_code"] == "USA") & (table["year"] == 2019)].iloc[0]
        assert usa["gdp_per_capita"] == pytest.approx(50.0)
        assert usa["region_name"] == "Americas"

    def test_missing_value_survives_join_but_not_cross_section(self, project):
        cfg, PATHS = _load_config(str(project), str(project / "config.yaml"))
        table = run_pipeline(cfg, PATHS, progress=False).table
        mex20 = table[(table["entity_code"] == "MEX") & (table["year"] == 2020)]
        assert len(mex20) == 1
        assert pd.isna(mex20["life_expectancy"].iloc[0])
        assert len(drop_incomplete(cross_section(table, 2020))) == 1

    def test_save_outputs(self, project):
        cfg, PATHS = _load_config(str(project), str(project / "config.yaml"))
        result = run_pipeline(cfg, PATHS, progress=False)
        paths = save_outputs(result, PATHS["results_dir"], cfg)
        xs = pd.read_csv(paths["cross_section"])
        assert paths["cross_section"].endswith("cross_section_2019.csv")
        assert set(xs["entity_code"]) == {"USA", "MEX"}
        assert len(pd.read_csv(paths["analytical"])) == 4

    def test_main_success(self, project):
        assert main(str(project / "config.yaml"), normalize=fake_normalize) == 0
        assert (project / "results" / "analytical_table.csv").exists()

    def test_main_missing_input_fails(self, project, capsys):
        os.remove(project / "gdp.csv")
        assert main(str(project / "config.yaml"), normalize=fake_normalize) == 1
        assert "gdp.csv" in capsys.readouterr().err

    def _set_figures(self, project, year):
        cfg_path = project / "config.yaml"
        raw = yaml.safe_load(cfg_path.read_text())
        raw["analysis"]["year"] = year
        raw["figures"] = {"enabled": True}
        cfg_path.write_text(yaml.safe_dump(raw))
        return str(cfg_path)

    def test_main_writes_figure(self, project):
        assert main(self._set_figures(project, 2019), normalize=fake_normalize) == 0
        assert (project / "figures" / "gdp_vs_life_expectancy_2019.png").exists()

    def test_main_year_without_complete_rows_fails(self, project, capsys):
        assert main(self._set_figures(project, 2030), normalize=fake_normalize) == 1
        assert "year=2030" in capsys.readouterr().err
        assert not (project / "results").exists()
        assert not (project / "figures").exists()
