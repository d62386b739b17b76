"""
Constants for the obesity dashboard.

Centralizes year bounds, filter options, labels, and configuration values
used throughout the dashboard modules.
"""

from __future__ import annotations

# =============================================================================
# Year range covered by the dataset
# =============================================================================
YEAR_MIN: int = 1975
YEAR_MAX: int = 2016

# =============================================================================
# Sex filter values
# =============================================================================
SEX_MALE: str = "Male"
SEX_FEMALE: str = "Female"
SEX_BOTH: str = "Both"
SEX_VALUES: list[str] = [SEX_MALE, SEX_FEMALE]
SEX_OPTIONS: list[str] = [SEX_MALE, SEX_FEMALE, SEX_BOTH]

# =============================================================================
# Smoking provenance flag
# =============================================================================
FLAG_MISSING: str = "missing"
FLAG_OBSERVED: str = "observed"

# =============================================================================
# Columns
# =============================================================================
KEY_COLUMNS: list[str] = ['country', 'sex', 'year']
GROUP_COLUMNS: list[str] = ['country', 'region', 'income']

# Population-weighted counts (rate x pop); summed across sexes, divided by pop
COUNT_COLUMNS: list[str] = [
    'pop', 'obese', 'smoke', 'primedu', 'unemployed',
    'literacy', 'youthpop', 'lifexp',
]
INDICATOR_COLUMNS: list[str] = [c for c in COUNT_COLUMNS if c not in ('pop', 'obese')]

REQUIRED_COLUMNS: list[str] = [
    'country', 'region', 'income', 'sex', 'year',
    *COUNT_COLUMNS,
    'flag_smoke',
]

CYDICT_COLUMNS: list[str] = ['primary', 'world_bank', 'obesity', 'plotly', 'code']
CYDICT_ALIAS_COLUMNS: list[str] = ['world_bank', 'obesity', 'plotly']

# =============================================================================
# Scatter plot options (value -> label)
# =============================================================================
REGRESSOR_LABELS: dict[str, str] = {
    'smoke': 'Smoking Rate',
    'primedu': 'Primary Education Completion Rate',
    'unemployed': 'Unemployment Rate',
}
DEFAULT_REGRESSOR: str = 'unemployed'

GROUPER_NONE: str = 'none'
GROUPER_LABELS: dict[str, str] = {
    'income': 'Income group',
    'sex': 'Sex',
    'region': 'Region',
    GROUPER_NONE: 'No grouping',
}

# Minimum number of finite (x, y) pairs needed to fit a trend line
MIN_TREND_POINTS: int = 2

# =============================================================================
# Time series defaults
# =============================================================================
DEFAULT_HIGHLIGHT: list[str] = ['Canada']

# =============================================================================
# Figure display configuration
# =============================================================================
FIGURE_HEIGHT: int = 450
BAR_ROW_HEIGHT: int = 18           # Pixels per country in the bar chart
RATE_COLOR_SCALE: str = 'Reds'
NO_DATA_COLOR: str = '#e5e5e5'
HIGHLIGHT_WIDTH: int = 4
BACKGROUND_WIDTH: int = 2
BACKGROUND_OPACITY: float = 0.45

# =============================================================================
# Data locations (overridden by secrets / environment variables)
# =============================================================================
DEFAULT_OB_URL: str = 'data/ob.parquet'
DEFAULT_CYDICT_URL: str = 'data/cydict.csv'

# =============================================================================
# Deployment
# =============================================================================
HOSTED_ENV_VAR: str = 'DYNO'
HOSTED_ADDRESS: str = '0.0.0.0'
LOCAL_ADDRESS: str = 'localhost'

# =============================================================================
# Texts
# =============================================================================
HEADER_TEXT: str = (
    "Explore how adult obesity rates have changed across the world since "
    "1975, and how they relate to smoking, education and unemployment. "
    "Use the filters on the left to narrow the view by sex, year, region "
    "and income group."
)

FOOTER_TEXT: str = (
    "**Sources:** obesity prevalence (BMI ≥ 30) from the "
    "[WHO Global Health Observatory](https://www.who.int/data/gho); "
    "population, smoking, education and unemployment from the "
    "[World Bank World Development Indicators](https://databank.worldbank.org/source/world-development-indicators)."
)

SMOKE_TEXT: str = (
    "**Note:** smoking rates are only surveyed every few years. Missing "
    "years are filled with the closest earlier survey for the same country "
    "and sex, or the closest later one when no earlier survey exists."
)

# =============================================================================
# Data preparation: World Bank series code -> (indicator, sex)
# =============================================================================
WB_SERIES: dict[str, tuple[str, str]] = {
    'SP.POP.TOTL.MA.IN': ('pop', SEX_MALE),
    'SP.POP.TOTL.FE.IN': ('pop', SEX_FEMALE),
    'SH.PRV.SMOK.MA': ('smoke', SEX_MALE),
    'SH.PRV.SMOK.FE': ('smoke', SEX_FEMALE),
    'SE.PRM.CMPT.MA.ZS': ('primedu', SEX_MALE),
    'SE.PRM.CMPT.FE.ZS': ('primedu', SEX_FEMALE),
    'SL.UEM.TOTL.MA.ZS': ('unemployed', SEX_MALE),
    'SL.UEM.TOTL.FE.ZS': ('unemployed', SEX_FEMALE),
    'SE.ADT.LITR.MA.ZS': ('literacy', SEX_MALE),
    'SE.ADT.LITR.FE.ZS': ('literacy', SEX_FEMALE),
    'SP.POP.0014.MA.ZS': ('youthpop', SEX_MALE),
    'SP.POP.0014.FE.ZS': ('youthpop', SEX_FEMALE),
    'SP.DYN.LE00.MA.IN': ('lifexp', SEX_MALE),
    'SP.DYN.LE00.FE.IN': ('lifexp', SEX_FEMALE),
}

# Indicators published as percentages; everything else is used as-is
PERCENT_INDICATORS: list[str] = ['smoke', 'primedu', 'unemployed', 'literacy', 'youthpop']

OBESITY_SOURCE_COLUMNS: list[str] = ['country', 'sex', 'year', 'rate']
WB_SOURCE_COLUMNS: list[str] = ['country', 'year', 'series', 'value']
METADATA_SOURCE_COLUMNS: list[str] = ['country', 'region', 'income']
