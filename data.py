"""
Data loading, filtering, and aggregation functions.

All heavy data operations live here so they can be tested independently
of the Streamlit UI layer. Every filter function returns a new DataFrame
and leaves the shared base table untouched.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Union

import pandas as pd
import streamlit as st
from streamlit.errors import StreamlitAPIException

from constants import (
    COUNT_COLUMNS,
    CYDICT_COLUMNS,
    DEFAULT_CYDICT_URL,
    DEFAULT_OB_URL,
    GROUP_COLUMNS,
    INDICATOR_COLUMNS,
    KEY_COLUMNS,
    REQUIRED_COLUMNS,
    SEX_BOTH,
    SEX_VALUES,
)
from utils import build_country_codes, fill_by_group, safe_rate

logger = logging.getLogger(__name__)

Selection = Union[str, Sequence[str], None]


# =============================================================================
# Schema validation
# =============================================================================

def validate_schema(df: pd.DataFrame, required: list[str] = REQUIRED_COLUMNS) -> None:
    """Check that *df* contains every column listed in *required*.

    Raises
    ------
    ValueError
        With a message listing the missing columns.
    """
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"Data file is missing required columns: {', '.join(missing)}"
        )


def validate_table(df: pd.DataFrame) -> None:
    """Check the invariants of the joined obesity table.

    The dashboard must not start serving from a corrupt base table, so
    every violation raises ``ValueError``.
    """
    validate_schema(df)
    if len(df) == 0:
        raise ValueError("Data file is empty, check the data source.")

    if df['pop'].isna().any():
        raise ValueError(
            f"Data file has {int(df['pop'].isna().sum())} rows without population."
        )

    bad_sex = sorted(set(df['sex'].dropna()) - set(SEX_VALUES))
    if bad_sex or df['sex'].isna().any():
        raise ValueError(f"Unexpected sex values in data file: {bad_sex or ['<missing>']}")

    duplicated = df.duplicated(KEY_COLUMNS)
    if duplicated.any():
        example = df.loc[duplicated, KEY_COLUMNS].iloc[0].tolist()
        raise ValueError(
            f"Data file has {int(duplicated.sum())} duplicate (country, sex, year) "
            f"strata, e.g. {example}"
        )


# =============================================================================
# Data loading
# =============================================================================

def data_locations() -> tuple[str, str]:
    """Return the ``(ob_url, cydict_url)`` pair the dashboard should read.

    Supports both Streamlit secrets and environment variables for
    configuration, falling back to the files shipped in ``data/``.
    """
    try:
        return st.secrets["ob_url"], st.secrets["cydict_url"]
    except (AttributeError, KeyError, FileNotFoundError, StreamlitAPIException):
        return (
            os.getenv("OB_URL", DEFAULT_OB_URL),
            os.getenv("CYDICT_URL", DEFAULT_CYDICT_URL),
        )


@st.cache_data
def load_data(ob_url: str) -> pd.DataFrame:
    """Load the joined obesity table from Parquet and validate it."""
    df = pd.read_parquet(ob_url)
    validate_table(df)
    df = df.assign(year=df['year'].astype(int))
    logger.info(
        "Loaded %d strata for %d countries from %s",
        len(df), df['country'].nunique(), ob_url,
    )
    return df


@st.cache_data
def load_country_dict(cydict_url: str) -> pd.DataFrame:
    """Load the country reconciliation dictionary from CSV."""
    cydict = pd.read_csv(cydict_url, dtype=str, keep_default_na=False, na_values=[''])
    validate_schema(cydict, CYDICT_COLUMNS)
    if cydict['primary'].isna().any():
        raise ValueError("Country dictionary has rows without a primary name.")
    logger.info("Loaded %d country dictionary entries from %s", len(cydict), cydict_url)
    return cydict


@st.cache_data
def load_country_codes(cydict_url: str) -> dict[str, str]:
    """Canonical country name -> ISO-3 map code, built once per dictionary."""
    return build_country_codes(load_country_dict(cydict_url))


def distinct_values(df: pd.DataFrame, column: str) -> list[str]:
    """Sorted distinct non-null values of *column*, for dropdown options."""
    return sorted(df[column].dropna().astype(str).unique().tolist())


# =============================================================================
# Shared helpers
# =============================================================================

def _as_list(values: Selection) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)


def _select_sex(df: pd.DataFrame, sex: str) -> pd.DataFrame:
    if sex == SEX_BOTH:
        return df
    return df[df['sex'] == sex]


def aggregate_sexes(df: pd.DataFrame, by: list[str]) -> pd.DataFrame:
    """Sum the Male and Female counts of each *by* group into one ``Both`` row.

    Indicator columns that are missing for every row of a group stay NaN.
    ``obese`` stays NaN when any row of the group lacks it, so the group's
    obesity rate is undefined rather than taken over a partial population.
    """
    if df.empty:
        return df.iloc[:0][[*by, *COUNT_COLUMNS]].assign(sex=SEX_BOTH)
    summed = (
        df.assign(obese_missing=df['obese'].isna())
        .groupby(by, as_index=False, dropna=False)[[*COUNT_COLUMNS, 'obese_missing']]
        .sum(min_count=1)
    )
    summed['obese'] = summed['obese'].where(summed.pop('obese_missing') == 0)
    return summed.assign(sex=SEX_BOTH)


# =============================================================================
# Country standings (bar chart, choropleth)
# =============================================================================

def filter_standings(
    df: pd.DataFrame,
    regions: Selection,
    year: int,
    income: Selection,
    sex: str = SEX_BOTH,
) -> pd.DataFrame:
    """Rows for one year restricted to the selected regions and income groups.

    Parameters
    ----------
    df : DataFrame
        The full obesity table.
    regions : str or list of str
        Regions to keep. An empty selection keeps nothing.
    year : int
        Year to keep.
    income : str or list of str
        Income groups to keep. An empty selection keeps nothing.
    sex : str
        ``'Male'``, ``'Female'``, or ``'Both'`` to sum both sexes per country.

    Returns
    -------
    DataFrame
        One row per country (and sex) with an added ``obesity_rate`` column.
    """
    mask = (
        df['region'].isin(_as_list(regions))
        & df['income'].isin(_as_list(income))
        & (df['year'] == year)
    )
    subset = df.loc[mask]

    if sex == SEX_BOTH:
        subset = aggregate_sexes(subset, [*GROUP_COLUMNS, 'year'])
    else:
        subset = subset[subset['sex'] == sex]

    return (
        subset
        .assign(obesity_rate=safe_rate(subset['obese'], subset['pop']))
        .reset_index(drop=True)
    )


def rate_data(
    df: pd.DataFrame,
    regions: Selection,
    year: int,
    income: Selection,
    sex: str = SEX_BOTH,
) -> pd.DataFrame:
    """Obesity rate per country, highest first, for the bar chart and map.

    Countries whose rate is undefined (zero population) are left out.
    """
    standings = filter_standings(df, regions, year, income, sex)
    result = (
        standings.dropna(subset=['obesity_rate'])
        .sort_values(['obesity_rate', 'country'], ascending=[False, True])
        .reset_index(drop=True)
    )
    return result[[*GROUP_COLUMNS, 'sex', 'year', 'pop', 'obese', 'obesity_rate']]


# =============================================================================
# Trends (time series)
# =============================================================================

def _rate_by(df: pd.DataFrame, by: list[str]) -> pd.DataFrame:
    # Strata without an obesity figure count towards neither side of the rate
    df = df.dropna(subset=['obese'])
    grouped = df.groupby(by, as_index=False)[['obese', 'pop']].sum()
    grouped['obesity_rate'] = safe_rate(grouped['obese'], grouped['pop'])
    return grouped.dropna(subset=['obesity_rate']).sort_values(by).reset_index(drop=True)


def timeseries_data(
    df: pd.DataFrame,
    sex: str,
    year_range: Sequence[int],
    highlight: Selection = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Regional background series and highlighted country series.

    Returns
    -------
    (background, overlay)
        ``background`` has one row per ``(region, year)``; ``overlay`` one
        row per ``(country, year)`` for the highlighted countries found in
        the data. Both carry ``obese``, ``pop`` and ``obesity_rate``.
    """
    lo, hi = sorted((int(year_range[0]), int(year_range[1])))
    subset = _select_sex(df[df['year'].between(lo, hi)], sex)

    background = _rate_by(subset, ['region', 'year'])
    overlay = _rate_by(subset[subset['country'].isin(_as_list(highlight))], ['country', 'year'])
    return background, overlay


# =============================================================================
# Associations (scatter)
# =============================================================================

def _latest_shared_year(df: pd.DataFrame) -> pd.DataFrame:
    """Rows of each country's latest year in which all of its sexes are present."""
    sexes_in_year = df.groupby(['country', 'year'])['sex'].transform('nunique')
    sexes_in_country = df.groupby('country')['sex'].transform('nunique')
    shared = df[sexes_in_year == sexes_in_country]
    last = shared.groupby('country')['year'].transform('max')
    return shared[shared['year'] == last]


def scatter_data(
    df: pd.DataFrame,
    regions: Selection,
    year: int,
    income: Selection,
    sex: str,
    regressor: str,
    grouper: str,
) -> pd.DataFrame:
    """Latest obesity rate and regressor rate per country up to *year*.

    Missing indicator values are carried forward (then backward) within
    each ``(country, sex)`` series before the latest row is taken. With
    ``sex='Both'`` the sexes are summed per country at the latest year they
    share, unless the points are grouped by sex, in which case each sex
    keeps its own point.

    The result has columns ``country``, ``region``, ``income``, ``sex``,
    ``year``, ``pop``, ``obesity_rate`` and ``<regressor>_rate``; rows
    missing either rate are dropped.
    """
    rate_col = f'{regressor}_rate'
    columns = [*GROUP_COLUMNS, 'sex', 'year', 'pop', 'obesity_rate', rate_col]

    mask = (
        df['region'].isin(_as_list(regions))
        & df['income'].isin(_as_list(income))
        & (df['year'] <= year)
    )
    subset = _select_sex(df.loc[mask], sex)
    if subset.empty:
        return pd.DataFrame(columns=columns)

    # Fill rates rather than counts so that a carried value follows the
    # population of the year it is carried into
    rates = subset.assign(**{
        col: safe_rate(subset[col], subset['pop']) for col in INDICATOR_COLUMNS
    })
    filled = fill_by_group(rates, ['country', 'sex'], 'year', INDICATOR_COLUMNS)
    filled = filled.assign(**{col: filled[col] * filled['pop'] for col in INDICATOR_COLUMNS})

    if sex == SEX_BOTH and grouper != 'sex':
        latest = aggregate_sexes(_latest_shared_year(filled), [*GROUP_COLUMNS, 'year'])
    else:
        latest = filled.groupby(['country', 'sex']).tail(1)

    result = latest.assign(**{
        'obesity_rate': safe_rate(latest['obese'], latest['pop']),
        rate_col: safe_rate(latest[regressor], latest['pop']),
    })
    result = result.dropna(subset=['obesity_rate', rate_col])
    return result[columns].sort_values(['country', 'sex']).reset_index(drop=True)
