"""Tests for prepare_data.py — building the joined obesity table."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from constants import FLAG_MISSING, FLAG_OBSERVED, REQUIRED_COLUMNS
from prepare_data import (
    build_table,
    impute_smoking,
    main,
    prepare,
    prepare_indicators,
    prepare_obesity,
)
from utils import build_country_lookup

POP = 1.0e6


@pytest.fixture()
def who_obesity() -> pd.DataFrame:
    rows = []
    for country, rate in (('Russian Federation', 25.0), ('France', 20.0)):
        for sex in ('Male', 'Female', 'Both sexes'):
            for year in (2015, 2016):
                rows.append({'country': country, 'sex': sex, 'year': year, 'rate': rate})
    # Outside the dashboard's year range
    rows.append({'country': 'France', 'sex': 'Male', 'year': 1970, 'rate': 10.0})
    return pd.DataFrame(rows)


@pytest.fixture()
def wb_indicators() -> pd.DataFrame:
    """Population and smoking series.

    France only has a 2015 smoking survey, and its female 2016 stratum has
    a smoking value but no population.
    """
    rows = []
    for country in ('Russian Federation', 'France'):
        for year in (2015, 2016):
            for sex, suffix in (('Male', 'MA'), ('Female', 'FE')):
                if not (country == 'France' and sex == 'Female' and year == 2016):
                    rows.append({'country': country, 'year': year,
                                 'series': f'SP.POP.TOTL.{suffix}.IN', 'value': POP})
                if country == 'Russian Federation' or year == 2015 or sex == 'Female':
                    rows.append({'country': country, 'year': year,
                                 'series': f'SH.PRV.SMOK.{suffix}', 'value': 30.0})
    rows.append({'country': 'France', 'year': 2016, 'series': 'NY.GDP.MKTP.CD', 'value': 2.4e12})
    return pd.DataFrame(rows)


@pytest.fixture()
def wb_metadata() -> pd.DataFrame:
    return pd.DataFrame({
        'country': ['Russian Federation', 'France', 'Atlantis'],
        'region': ['Europe', 'Europe', None],
        'income': ['Upper middle income', 'High income', None],
    })


@pytest.fixture()
def table(who_obesity, wb_indicators, wb_metadata, sample_cydict) -> pd.DataFrame:
    return build_table(who_obesity, wb_indicators, wb_metadata, sample_cydict)


# =============================================================================
# Source preparation
# =============================================================================

class TestPrepareObesity:
    def test_drops_both_sexes_and_out_of_range_years(self, who_obesity, sample_cydict) -> None:
        result = prepare_obesity(who_obesity, build_country_lookup(sample_cydict))
        assert set(result['sex']) == {'Male', 'Female'}
        assert result['year'].min() == 2015

    def test_canonical_names(self, who_obesity, sample_cydict) -> None:
        result = prepare_obesity(who_obesity, build_country_lookup(sample_cydict))
        assert set(result['country']) == {'Russia', 'France'}

    def test_strata_without_rate_dropped(self, who_obesity, sample_cydict) -> None:
        df = who_obesity.copy()
        gap = (df['country'] == 'France') & (df['sex'] == 'Female') & (df['year'] == 2016)
        df.loc[gap, 'rate'] = np.nan
        result = prepare_obesity(df, build_country_lookup(sample_cydict))
        assert result['rate'].notna().all()
        france_female = result[(result['country'] == 'France') & (result['sex'] == 'Female')]
        assert france_female['year'].tolist() == [2015]

    def test_missing_column(self, sample_cydict) -> None:
        with pytest.raises(ValueError, match="rate"):
            prepare_obesity(pd.DataFrame({'country': [], 'sex': [], 'year': []}),
                            build_country_lookup(sample_cydict))


class TestPrepareIndicators:
    def test_one_column_per_indicator(self, wb_indicators, sample_cydict) -> None:
        result = prepare_indicators(wb_indicators, build_country_lookup(sample_cydict))
        assert {'pop', 'smoke', 'primedu', 'unemployed', 'literacy', 'youthpop', 'lifexp'} <= set(result.columns)
        assert result['primedu'].isna().all()
        assert 'NY.GDP.MKTP.CD' not in result.columns

    def test_one_row_per_stratum(self, wb_indicators, sample_cydict) -> None:
        result = prepare_indicators(wb_indicators, build_country_lookup(sample_cydict))
        assert not result.duplicated(['country', 'sex', 'year']).any()
        assert len(result) == 8


def test_impute_smoking_flags_filled_values() -> None:
    df = pd.DataFrame({
        'country': ['A', 'A', 'A'],
        'sex': ['Male'] * 3,
        'year': [2014, 2015, 2016],
        'smoke': [np.nan, 0.3, np.nan],
    })
    result = impute_smoking(df)
    assert result['smoke'].tolist() == [0.3, 0.3, 0.3]
    assert result['flag_smoke'].tolist() == [FLAG_MISSING, FLAG_OBSERVED, FLAG_MISSING]


# =============================================================================
# Joined table
# =============================================================================

class TestBuildTable:
    def test_columns_and_keys(self, table: pd.DataFrame) -> None:
        assert list(table.columns) == REQUIRED_COLUMNS
        assert not table.duplicated(['country', 'sex', 'year']).any()

    def test_strata_without_population_dropped(self, table: pd.DataFrame) -> None:
        assert len(table) == 7
        assert table['pop'].notna().all()
        france_female = table[(table['country'] == 'France') & (table['sex'] == 'Female')]
        assert france_female['year'].tolist() == [2015]

    def test_metadata_attached(self, table: pd.DataFrame) -> None:
        russia = table[table['country'] == 'Russia']
        assert (russia['income'] == 'Upper middle income').all()
        assert (russia['region'] == 'Europe').all()

    def test_obesity_stored_as_count(self, table: pd.DataFrame) -> None:
        russia = table[table['country'] == 'Russia']
        assert russia['obese'].tolist() == pytest.approx([0.25 * POP] * 4)

    def test_smoking_carried_forward(self, table: pd.DataFrame) -> None:
        row = table[
            (table['country'] == 'France') & (table['sex'] == 'Male') & (table['year'] == 2016)
        ].iloc[0]
        assert row['smoke'] == pytest.approx(0.30 * POP)
        assert row['flag_smoke'] == FLAG_MISSING

    def test_indicators_without_series_stay_missing(self, table: pd.DataFrame) -> None:
        assert table['unemployed'].isna().all()

    def test_no_overlap_is_an_error(self, who_obesity, wb_indicators, sample_cydict) -> None:
        metadata = pd.DataFrame({'country': ['Atlantis'], 'region': ['Sea'], 'income': ['Low income']})
        with pytest.raises(ValueError, match="empty"):
            build_table(who_obesity, wb_indicators, metadata, sample_cydict)


# =============================================================================
# Command line
# =============================================================================

class TestPrepare:
    def _write_sources(self, tmp_path, who_obesity, wb_indicators, wb_metadata, sample_cydict):
        paths = {name: tmp_path / f"{name}.csv"
                 for name in ('obesity', 'indicators', 'metadata', 'cydict')}
        who_obesity.to_csv(paths['obesity'], index=False)
        wb_indicators.to_csv(paths['indicators'], index=False)
        wb_metadata.to_csv(paths['metadata'], index=False)
        sample_cydict.to_csv(paths['cydict'], index=False)
        return paths

    def test_writes_parquet(self, tmp_path, who_obesity, wb_indicators, wb_metadata, sample_cydict) -> None:
        paths = self._write_sources(tmp_path, who_obesity, wb_indicators, wb_metadata, sample_cydict)
        output = tmp_path / "out" / "ob.parquet"
        assert prepare(str(paths['obesity']), str(paths['indicators']),
                       str(paths['metadata']), str(paths['cydict']), str(output))
        written = pd.read_parquet(output)
        assert len(written) == 7
        assert set(REQUIRED_COLUMNS) <= set(written.columns)

    def test_main(self, tmp_path, who_obesity, wb_indicators, wb_metadata, sample_cydict) -> None:
        paths = self._write_sources(tmp_path, who_obesity, wb_indicators, wb_metadata, sample_cydict)
        output = tmp_path / "ob.parquet"
        code = main([
            '--obesity', str(paths['obesity']),
            '--indicators', str(paths['indicators']),
            '--metadata', str(paths['metadata']),
            '--cydict', str(paths['cydict']),
            '--output', str(output),
        ])
        assert code == 0
        assert output.exists()

    def test_missing_file(self, tmp_path) -> None:
        missing = str(tmp_path / "missing.csv")
        code = main([
            '--obesity', missing,
            '--indicators', missing,
            '--metadata', missing,
            '--cydict', missing,
            '--output', str(tmp_path / "ob.parquet"),
        ])
        assert code == 1
        assert not (tmp_path / "ob.parquet").exists()
