"""
Utility functions for country reconciliation, imputation, formatting and
validation.

Pure Python module with no Streamlit dependency — safe to use in tests.
"""

from __future__ import annotations

import os
from collections.abc import Hashable, Mapping, Sequence
from typing import Any

import pandas as pd

from constants import (
    CYDICT_ALIAS_COLUMNS,
    DEFAULT_REGRESSOR,
    GROUPER_LABELS,
    GROUPER_NONE,
    HOSTED_ADDRESS,
    HOSTED_ENV_VAR,
    LOCAL_ADDRESS,
    REGRESSOR_LABELS,
    SEX_BOTH,
    SEX_OPTIONS,
    YEAR_MAX,
    YEAR_MIN,
)


# =============================================================================
# Country reconciliation
# =============================================================================

def build_country_lookup(cydict: pd.DataFrame) -> dict[str, str]:
    """Map every known spelling of a country to its canonical name.

    Each canonical (``primary``) name maps to itself, so canonicalizing an
    already canonical name is a no-op.
    """
    lookup: dict[str, str] = {}
    for col in CYDICT_ALIAS_COLUMNS:
        pairs = cydict[[col, 'primary']].dropna()
        lookup.update(zip(pairs[col].astype(str), pairs['primary'].astype(str)))
    # Primaries win over aliases that happen to share a spelling
    lookup.update({p: p for p in cydict['primary'].dropna().astype(str)})
    return lookup


def build_country_codes(cydict: pd.DataFrame) -> dict[str, str]:
    """Map canonical country names to the ISO-3 codes used by the map."""
    pairs = cydict[['primary', 'code']].dropna().drop_duplicates('primary')
    return dict(zip(pairs['primary'].astype(str), pairs['code'].astype(str)))


def canonicalize_country(name: str, lookup: dict[str, str]) -> str:
    """Return the canonical spelling of *name*, or *name* if unknown."""
    return lookup.get(name, name)


def canonicalize_countries(names: pd.Series, lookup: dict[str, str]) -> pd.Series:
    """Vectorized :func:`canonicalize_country`."""
    return names.map(lambda n: canonicalize_country(n, lookup))


# =============================================================================
# Imputation
# =============================================================================

def _is_missing(value: Any) -> bool:
    return value is None or bool(pd.isna(value))


def fill_forward_backward(values: Sequence[Any]) -> list[Any]:
    """Fill gaps in an ordered sequence with the nearest observed value.

    Each missing entry takes the closest earlier observation; leading gaps
    with no earlier observation take the closest later one. An all-missing
    sequence is returned unchanged.

    >>> fill_forward_backward([None, 1.0, None, 3.0, None])
    [1.0, 1.0, 1.0, 3.0, 3.0]
    """
    filled = list(values)
    last = None
    for i, value in enumerate(filled):
        if _is_missing(value):
            if last is not None:
                filled[i] = last
        else:
            last = value

    first = next((v for v in filled if not _is_missing(v)), None)
    if first is None:
        return filled
    for i, value in enumerate(filled):
        if not _is_missing(value):
            break
        filled[i] = first
    return filled


def fill_by_group(
    df: pd.DataFrame,
    keys: list[Hashable],
    order: Hashable,
    columns: list[Hashable],
) -> pd.DataFrame:
    """Apply :func:`fill_forward_backward` to *columns* within each group.

    Rows are ordered by *order* inside each group of *keys*. Returns a new
    DataFrame sorted by ``keys + [order]``; *df* is left untouched.
    """
    result = df.sort_values([*keys, order]).reset_index(drop=True)
    if result.empty:
        return result

    for col in columns:
        filled: list[Any] = [None] * len(result)
        for positions in result.groupby(keys, sort=False, dropna=False).indices.values():
            group_values = fill_forward_backward(result[col].iloc[positions].tolist())
            for pos, value in zip(positions, group_values):
                filled[pos] = value
        result[col] = pd.to_numeric(pd.Series(filled, index=result.index), errors='coerce')
    return result


# =============================================================================
# Rates
# =============================================================================

def safe_rate(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    """Element-wise ``numerator / denominator`` with NaN where the denominator is 0."""
    denominator = denominator.where(denominator != 0)
    return numerator / denominator


# =============================================================================
# Formatting
# =============================================================================

def format_percentage(value: float, decimals: int = 1) -> str:
    """Format a fraction as a percentage string, e.g. ``0.253`` → ``"25.3%"``."""
    if _is_missing(value):
        return "n/a"
    return f"{value * 100:.{decimals}f}%"


def format_population(value: float) -> str:
    """Format a head count with thousands separators, e.g. ``"1,234,567"``."""
    if _is_missing(value):
        return "n/a"
    return f"{value:,.0f}"


# =============================================================================
# Query-parameter / input validation
# =============================================================================

def validate_year(value: str | int | None, default: int = YEAR_MAX) -> int:
    """Return a valid year in [1975, 2016], or *default*."""
    try:
        val = int(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return default
    if val < YEAR_MIN or val > YEAR_MAX:
        return default
    return val


def validate_year_range(
    value: Sequence[Any] | None,
    default: tuple[int, int] = (YEAR_MIN, YEAR_MAX),
) -> tuple[int, int]:
    """Return an ordered ``(lo, hi)`` pair within the dataset bounds, or *default*."""
    if value is None or len(value) != 2:
        return default
    lo = validate_year(value[0], default=-1)
    hi = validate_year(value[1], default=-1)
    if lo < 0 or hi < 0:
        return default
    return (min(lo, hi), max(lo, hi))


def validate_sex(value: str | None, default: str = SEX_BOTH) -> str:
    """Return *value* if it is Male, Female or Both, else *default*."""
    if value in SEX_OPTIONS:
        return value  # type: ignore[return-value]
    return default


def validate_regressor(value: str | None, default: str = DEFAULT_REGRESSOR) -> str:
    """Return *value* if it is a known scatter regressor, else *default*."""
    if value in REGRESSOR_LABELS:
        return value  # type: ignore[return-value]
    return default


def validate_grouper(value: str | None, default: str = GROUPER_NONE) -> str:
    """Return *value* if it is a known scatter grouping, else *default*."""
    if value in GROUPER_LABELS:
        return value  # type: ignore[return-value]
    return default


def validate_selection(values: Sequence[str] | None, allowed: Sequence[str]) -> list[str]:
    """Keep only the entries of *values* that appear in *allowed*, in order."""
    if not values:
        return []
    allowed_set = set(allowed)
    return [v for v in values if v in allowed_set]


def widget_defaults(params: Mapping[str, str]) -> dict[str, Any]:
    """Validated widget start values from URL query parameters.

    The year range is read from ``from`` and ``to``; anything missing or
    invalid falls back to the dashboard default.
    """
    return {
        'sex': validate_sex(params.get('sex')),
        'year': validate_year(params.get('year')),
        'year_range': validate_year_range([params.get('from'), params.get('to')]),
        'regressor': validate_regressor(params.get('regressor')),
        'grouper': validate_grouper(params.get('grouper')),
    }


def query_params_for(inputs: Mapping[str, Any]) -> dict[str, str]:
    """URL query parameters that reproduce the widget values in *inputs*."""
    lo, hi = inputs['year_range']
    return {
        'sex': str(inputs['sex']),
        'year': str(inputs['year']),
        'from': str(lo),
        'to': str(hi),
        'regressor': str(inputs['regressor']),
        'grouper': str(inputs['grouper']),
    }


# =============================================================================
# Deployment
# =============================================================================

def server_address(environ: dict[str, str] | None = None) -> str:
    """Bind to all interfaces when hosted (``DYNO`` set), else localhost."""
    env = os.environ if environ is None else environ
    if env.get(HOSTED_ENV_VAR):
        return HOSTED_ADDRESS
    return LOCAL_ADDRESS
