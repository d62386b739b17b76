"""
Build the joined obesity table used by the dashboard.

This script reads the WHO obesity prevalence export, the World Bank
indicator export and its country metadata, reconciles country names
through the country dictionary, joins everything into one row per
(country, sex, year) stratum and writes the result as Parquet.

Steps:
- Canonicalize country names in every source
- Drop the WHO "Both sexes" rows (re-derived on demand by the dashboard)
- Pivot the World Bank series into one column per indicator
- Join obesity with indicators and attach region / income group
- Drop strata without population
- Carry smoking rates forward (then backward) per country and sex
- Convert rates to population-weighted counts

Usage:
    python prepare_data.py                        # Default files in data/
    python prepare_data.py --obesity who.csv --indicators wb.csv \\
        --metadata wb_meta.csv --cydict cydict.csv --output ob.parquet
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import pandas as pd

from constants import (
    COUNT_COLUMNS,
    CYDICT_COLUMNS,
    DEFAULT_CYDICT_URL,
    DEFAULT_OB_URL,
    FLAG_MISSING,
    FLAG_OBSERVED,
    INDICATOR_COLUMNS,
    KEY_COLUMNS,
    METADATA_SOURCE_COLUMNS,
    OBESITY_SOURCE_COLUMNS,
    PERCENT_INDICATORS,
    REQUIRED_COLUMNS,
    SEX_VALUES,
    WB_SERIES,
    WB_SOURCE_COLUMNS,
    YEAR_MAX,
    YEAR_MIN,
)
from data import validate_schema, validate_table
from utils import build_country_lookup, canonicalize_countries, fill_by_group

logger = logging.getLogger(__name__)

DEFAULT_OBESITY_URL = 'data/who_obesity.csv'
DEFAULT_INDICATORS_URL = 'data/wb_indicators.csv'
DEFAULT_METADATA_URL = 'data/wb_metadata.csv'


# =============================================================================
# Source preparation
# =============================================================================

def prepare_obesity(obesity: pd.DataFrame, lookup: dict[str, str]) -> pd.DataFrame:
    """Canonical, sex-specific obesity rates (percent) within the year range."""
    validate_schema(obesity, OBESITY_SOURCE_COLUMNS)
    df = obesity[OBESITY_SOURCE_COLUMNS].copy()
    df['country'] = canonicalize_countries(df['country'].astype(str), lookup)
    df['year'] = pd.to_numeric(df['year'], errors='coerce')
    df['rate'] = pd.to_numeric(df['rate'], errors='coerce')

    df = df[df['sex'].isin(SEX_VALUES) & df['year'].between(YEAR_MIN, YEAR_MAX)]

    missing = df['rate'].isna()
    if missing.any():
        logger.info("Dropping %d obesity strata without a rate", int(missing.sum()))
    df = df[~missing]
    df = df.assign(year=df['year'].astype(int))
    return _drop_duplicate_strata(df, "obesity")


def prepare_indicators(indicators: pd.DataFrame, lookup: dict[str, str]) -> pd.DataFrame:
    """Pivot World Bank series into one column per indicator and sex row."""
    validate_schema(indicators, WB_SOURCE_COLUMNS)
    df = indicators[indicators['series'].isin(WB_SERIES)].copy()

    unknown = sorted(set(indicators['series'].dropna()) - set(WB_SERIES))
    if unknown:
        logger.info("Ignoring %d unused World Bank series: %s", len(unknown), ", ".join(unknown))

    df['country'] = canonicalize_countries(df['country'].astype(str), lookup)
    df['indicator'] = df['series'].map(lambda s: WB_SERIES[s][0])
    df['sex'] = df['series'].map(lambda s: WB_SERIES[s][1])
    df['year'] = pd.to_numeric(df['year'], errors='coerce')
    df['value'] = pd.to_numeric(df['value'], errors='coerce')
    df = df.dropna(subset=['year'])
    df = df.assign(year=df['year'].astype(int))

    wide = (
        df.pivot_table(
            index=KEY_COLUMNS,
            columns='indicator',
            values='value',
            aggfunc='first',
        )
        .reset_index()
    )
    wide.columns.name = None

    for col in ['pop', *INDICATOR_COLUMNS]:
        if col not in wide.columns:
            wide[col] = float('nan')
    return wide


def prepare_metadata(metadata: pd.DataFrame, lookup: dict[str, str]) -> pd.DataFrame:
    """One region and income group per canonical country."""
    validate_schema(metadata, METADATA_SOURCE_COLUMNS)
    df = metadata[METADATA_SOURCE_COLUMNS].dropna(subset=['region', 'income']).copy()
    df['country'] = canonicalize_countries(df['country'].astype(str), lookup)
    return df.drop_duplicates('country')


def _drop_duplicate_strata(df: pd.DataFrame, source: str) -> pd.DataFrame:
    duplicated = df.duplicated(KEY_COLUMNS)
    if duplicated.any():
        logger.warning(
            "Dropping %d duplicate strata from %s after name reconciliation",
            int(duplicated.sum()), source,
        )
    return df[~duplicated]


# =============================================================================
# Join
# =============================================================================

def impute_smoking(df: pd.DataFrame) -> pd.DataFrame:
    """Carry smoking rates forward, then backward, within each country and sex.

    Adds ``flag_smoke``: ``'observed'`` where the source had a value,
    ``'missing'`` where it was filled (or is still empty).
    """
    flagged = df.assign(
        flag_smoke=df['smoke'].notna().map({True: FLAG_OBSERVED, False: FLAG_MISSING})
    )
    return fill_by_group(flagged, ['country', 'sex'], 'year', ['smoke'])


def build_table(
    obesity: pd.DataFrame,
    indicators: pd.DataFrame,
    metadata: pd.DataFrame,
    cydict: pd.DataFrame,
) -> pd.DataFrame:
    """Join the three sources into the dashboard table.

    Returns
    -------
    DataFrame
        One row per (country, sex, year) with the columns listed in
        ``REQUIRED_COLUMNS``. Rates are stored as population-weighted
        counts (rate x population).
    """
    validate_schema(cydict, CYDICT_COLUMNS)
    lookup = build_country_lookup(cydict)

    ob = prepare_obesity(obesity, lookup)
    wb = _drop_duplicate_strata(prepare_indicators(indicators, lookup), "indicators")
    meta = prepare_metadata(metadata, lookup)

    joined = ob.merge(wb, on=KEY_COLUMNS, how='inner').merge(meta, on='country', how='inner')
    lost = sorted(set(ob['country']) - set(joined['country']))
    if lost:
        logger.warning(
            "%d obesity countries have no indicators or metadata: %s",
            len(lost), ", ".join(lost),
        )

    before = len(joined)
    joined = joined.dropna(subset=['pop'])
    if len(joined) < before:
        logger.info("Dropped %d strata without population", before - len(joined))

    joined = impute_smoking(joined)

    counts = {'obese': joined['rate'] / 100 * joined['pop']}
    for col in INDICATOR_COLUMNS:
        scale = 100 if col in PERCENT_INDICATORS else 1
        counts[col] = joined[col] / scale * joined['pop']
    joined = joined.assign(**counts)

    result = joined[REQUIRED_COLUMNS].sort_values(KEY_COLUMNS).reset_index(drop=True)
    result[COUNT_COLUMNS] = result[COUNT_COLUMNS].astype(float)
    validate_table(result)
    return result


# =============================================================================
# Command line
# =============================================================================

def prepare(
    obesity_path: str,
    indicators_path: str,
    metadata_path: str,
    cydict_path: str,
    output_path: str,
) -> bool:
    """Read the sources, build the table and write it to *output_path*.

    Returns
    -------
    bool: True if successful, False otherwise
    """
    logger.info("Obesity:    %s", obesity_path)
    logger.info("Indicators: %s", indicators_path)
    logger.info("Metadata:   %s", metadata_path)
    logger.info("Dictionary: %s", cydict_path)
    logger.info("Output:     %s", output_path)

    try:
        cydict = pd.read_csv(cydict_path, dtype=str, keep_default_na=False, na_values=[''])
        table = build_table(
            pd.read_csv(obesity_path),
            pd.read_csv(indicators_path),
            pd.read_csv(metadata_path),
            cydict,
        )
    except FileNotFoundError as e:
        logger.error("Input file not found: %s", e.filename)
        return False
    except ValueError as e:
        logger.error("Could not build the table: %s", e)
        return False

    logger.info(
        "Built %d strata for %d countries, %d smoking values imputed",
        len(table), table['country'].nunique(),
        int((table['flag_smoke'] == FLAG_MISSING).sum() - table['smoke'].isna().sum()),
    )

    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    table.to_parquet(
        output_path,
        engine='pyarrow',
        compression='snappy',
        index=False,
    )

    # Verify the data can be read back
    check = pd.read_parquet(output_path)
    validate_table(check)
    logger.info("Verification successful: %d rows, %d columns", len(check), len(check.columns))
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description='Join WHO obesity and World Bank data into the dashboard table'
    )
    parser.add_argument('--obesity', default=DEFAULT_OBESITY_URL,
                        help='WHO obesity CSV (country, sex, year, rate)')
    parser.add_argument('--indicators', default=DEFAULT_INDICATORS_URL,
                        help='World Bank CSV (country, year, series, value)')
    parser.add_argument('--metadata', default=DEFAULT_METADATA_URL,
                        help='World Bank country metadata CSV (country, region, income)')
    parser.add_argument('--cydict', default=DEFAULT_CYDICT_URL,
                        help='Country dictionary CSV')
    parser.add_argument('--output', default=DEFAULT_OB_URL,
                        help='Output Parquet file')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    success = prepare(args.obesity, args.indicators, args.metadata, args.cydict, args.output)
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
