"""Shared fixtures for dashboard tests."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

# country: (region, income, male population in 2014, male obesity rate in 2014)
COUNTRIES = {
    'Canada': ('North America', 'High income', 18.0e6, 0.28),
    'France': ('Europe', 'High income', 32.0e6, 0.21),
    'Germany': ('Europe', 'High income', 40.0e6, 0.22),
    'Ukraine': ('Europe', 'Lower middle income', 20.0e6, 0.24),
    'India': ('South Asia', 'Lower middle income', 600.0e6, 0.04),
}
YEARS = [2014, 2015, 2016]


@pytest.fixture()
def sample_ob() -> pd.DataFrame:
    """Small joined obesity table: 5 countries x 2 sexes x 3 years.

    Counts are rate x population. France has no smoking survey after 2014
    and India has no unemployment figure for 2016, so both rely on
    carry-forward in the scatter data.
    """
    rows = []
    for i, (country, (region, income, base_pop, base_rate)) in enumerate(COUNTRIES.items()):
        for sex in ('Male', 'Female'):
            for year in YEARS:
                step = year - YEARS[0]
                pop = base_pop * (1.05 if sex == 'Female' else 1.0) * (1 + 0.01 * step)
                rate = base_rate + (0.01 if sex == 'Female' else 0.0) + 0.005 * step
                smoke_rate = (0.30 if sex == 'Male' else 0.20) - 0.01 * step
                unemployed_rate = 0.05 + 0.01 * i
                smoke_missing = country == 'France' and year > 2014
                unemployed_missing = country == 'India' and year == 2016
                rows.append({
                    'country': country,
                    'region': region,
                    'income': income,
                    'sex': sex,
                    'year': year,
                    'pop': pop,
                    'obese': rate * pop,
                    'smoke': np.nan if smoke_missing else smoke_rate * pop,
                    'primedu': (0.90 + 0.01 * i) * pop,
                    'unemployed': np.nan if unemployed_missing else unemployed_rate * pop,
                    'literacy': 0.99 * pop,
                    'youthpop': 0.2 * pop,
                    'lifexp': 75.0 * pop,
                    'flag_smoke': 'missing' if smoke_missing else 'observed',
                })
    return pd.DataFrame(rows)


@pytest.fixture()
def sample_cydict() -> pd.DataFrame:
    """Country dictionary with a few differently spelled countries."""
    return pd.DataFrame({
        'primary': ['Canada', 'France', 'Germany', 'Ukraine', 'India',
                    'United States', 'Russia', 'Iran'],
        'world_bank': ['Canada', 'France', 'Germany', 'Ukraine', 'India',
                       'United States', 'Russian Federation', 'Iran, Islamic Rep.'],
        'obesity': ['Canada', 'France', 'Germany', 'Ukraine', 'India',
                    'United States of America', 'Russian Federation',
                    'Iran (Islamic Republic of)'],
        'plotly': ['Canada', 'France', 'Germany', 'Ukraine', 'India',
                   'United States', 'Russia', 'Iran'],
        'code': ['CAN', 'FRA', 'DEU', 'UKR', 'IND', 'USA', 'RUS', 'IRN'],
    })


@pytest.fixture()
def country_codes(sample_cydict: pd.DataFrame) -> dict[str, str]:
    return dict(zip(sample_cydict['primary'], sample_cydict['code']))


@pytest.fixture()
def all_regions(sample_ob: pd.DataFrame) -> list[str]:
    return sorted(sample_ob['region'].unique())


@pytest.fixture()
def all_income(sample_ob: pd.DataFrame) -> list[str]:
    return sorted(sample_ob['income'].unique())


@pytest.fixture()
def default_inputs(all_regions: list[str], all_income: list[str]) -> dict:
    """An input snapshot with the dashboard's start-up values."""
    return {
        'sex': 'Both',
        'year': 2016,
        'year_range': (2014, 2016),
        'region': tuple(all_regions),
        'income': tuple(all_income),
        'highlight_country': ('Canada',),
        'grouper': 'none',
        'regressor': 'unemployed',
    }
