"""
Chart generation functions for the dashboard.

Each function receives pre-computed data and returns a Plotly figure.
This keeps visualisation logic separate from data processing. Every
builder returns a valid figure for empty input.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from constants import (
    BACKGROUND_OPACITY,
    BACKGROUND_WIDTH,
    BAR_ROW_HEIGHT,
    FIGURE_HEIGHT,
    GROUPER_LABELS,
    GROUPER_NONE,
    HIGHLIGHT_WIDTH,
    MIN_TREND_POINTS,
    NO_DATA_COLOR,
    RATE_COLOR_SCALE,
    REGRESSOR_LABELS,
)
from utils import format_percentage, format_population

logger = logging.getLogger(__name__)

NO_DATA_TEXT = "No data for selected filters"


def _no_data_annotation(fig: go.Figure) -> None:
    fig.add_annotation(
        text=NO_DATA_TEXT,
        xref='paper',
        yref='paper',
        x=0.5,
        y=0.5,
        showarrow=False,
        font=dict(size=16, color='grey'),
    )


def _hover_text(df: pd.DataFrame, rate_label: str = "Obesity rate") -> pd.Series:
    return (
        "<b>" + df['country'].astype(str) + "</b><br>"
        + rate_label + ": " + df['obesity_rate'].apply(format_percentage) + "<br>"
        + "Population: " + df['pop'].apply(format_population)
    )


# =============================================================================
# Country standings — bar chart
# =============================================================================

def bar_chart(rates: pd.DataFrame) -> go.Figure:
    """Horizontal bars of obesity rate per country, highest on top."""
    fig = go.Figure()

    if len(rates) > 0:
        rates = rates.sort_values('obesity_rate', ascending=False)
        fig.add_trace(go.Bar(
            x=rates['obesity_rate'],
            y=rates['country'],
            orientation='h',
            marker=dict(
                color=rates['obesity_rate'],
                colorscale=RATE_COLOR_SCALE,
            ),
            hovertext=_hover_text(rates),
            hoverinfo='text',
            showlegend=False,
        ))
    else:
        _no_data_annotation(fig)

    fig.update_layout(
        title="Obesity rate by country",
        xaxis_title="Obesity rate",
        yaxis_title="",
        height=max(FIGURE_HEIGHT, BAR_ROW_HEIGHT * len(rates)),
        showlegend=False,
        hovermode='closest',
        dragmode=False,
        margin=dict(t=40, b=50, l=50, r=20),
        xaxis=dict(tickformat='.0%', fixedrange=True),
        yaxis=dict(autorange='reversed', fixedrange=True),
    )
    return fig


# =============================================================================
# Country standings — choropleth map
# =============================================================================

def choropleth_chart(rates: pd.DataFrame, country_codes: dict[str, str]) -> go.Figure:
    """World map coloured by obesity rate.

    Country names are translated to ISO-3 codes through *country_codes*.
    Countries without a code are left off the map (and logged); countries
    without data show in the plain land colour.
    """
    rates = rates.assign(code=rates['country'].map(country_codes))
    unmatched = rates.loc[rates['code'].isna(), 'country']
    if len(unmatched) > 0:
        logger.warning(
            "No map code for %d countries, left off the map: %s",
            len(unmatched), ", ".join(sorted(unmatched.astype(str))),
        )
    mapped = rates.dropna(subset=['code'])

    fig = go.Figure()
    if len(mapped) > 0:
        fig.add_trace(go.Choropleth(
            locations=mapped['code'],
            locationmode='ISO-3',
            z=mapped['obesity_rate'],
            zmin=0,
            colorscale=RATE_COLOR_SCALE,
            colorbar=dict(title=dict(text="Obesity rate"), tickformat='.0%'),
            marker_line_color='white',
            marker_line_width=0.5,
            hovertext=_hover_text(mapped),
            hoverinfo='text',
        ))
    else:
        _no_data_annotation(fig)

    fig.update_layout(
        title="Obesity rate around the world",
        height=FIGURE_HEIGHT,
        dragmode=False,
        margin=dict(t=40, b=0, l=0, r=0),
        geo=dict(
            showframe=False,
            showcoastlines=False,
            showland=True,
            landcolor=NO_DATA_COLOR,
            projection_type='natural earth',
        ),
    )
    return fig


# =============================================================================
# Trends — time series
# =============================================================================

def timeseries_chart(
    background: pd.DataFrame,
    overlay: pd.DataFrame,
    year: int | None = None,
) -> go.Figure:
    """One line per region, plus a bold line per highlighted country.

    A dotted vertical marker shows *year* when it lies within the plotted
    years.
    """
    fig = go.Figure()

    for region, rows in background.groupby('region', sort=True):
        fig.add_trace(go.Scatter(
            x=rows['year'],
            y=rows['obesity_rate'],
            mode='lines',
            name=str(region),
            line=dict(width=BACKGROUND_WIDTH),
            opacity=BACKGROUND_OPACITY,
            hovertemplate=f"{region}<br>%{{x}}: %{{y:.1%}}<extra></extra>",
        ))

    palette = px.colors.qualitative.Bold
    for i, (country, rows) in enumerate(overlay.groupby('country', sort=True)):
        fig.add_trace(go.Scatter(
            x=rows['year'],
            y=rows['obesity_rate'],
            mode='lines',
            name=str(country),
            line=dict(width=HIGHLIGHT_WIDTH, color=palette[i % len(palette)]),
            hovertemplate=f"<b>{country}</b><br>%{{x}}: %{{y:.1%}}<extra></extra>",
        ))

    if len(fig.data) == 0:
        _no_data_annotation(fig)
    elif year is not None:
        years = pd.concat([background['year'], overlay['year']])
        if years.min() <= year <= years.max():
            fig.add_vline(x=year, line_dash='dot', line_color='grey')

    fig.update_layout(
        title="Obesity rate over time",
        xaxis_title="Year",
        yaxis_title="Obesity rate",
        height=FIGURE_HEIGHT,
        hovermode='closest',
        dragmode=False,
        margin=dict(t=40, b=50, l=50, r=20),
        legend=dict(orientation="h", yanchor="top", y=-0.15, xanchor="center", x=0.5),
        xaxis=dict(fixedrange=True),
        yaxis=dict(tickformat='.0%', fixedrange=True),
    )
    return fig


# =============================================================================
# Associations — scatter plot
# =============================================================================

def trend_line(x: pd.Series, y: pd.Series) -> tuple[float, float] | None:
    """Least-squares ``(slope, intercept)`` over the finite pairs of *x*, *y*.

    Returns ``None`` when fewer than two finite pairs exist or all x values
    are equal, in which case no line can be drawn.
    """
    xs = pd.to_numeric(x, errors='coerce').to_numpy(dtype=float)
    ys = pd.to_numeric(y, errors='coerce').to_numpy(dtype=float)
    finite = np.isfinite(xs) & np.isfinite(ys)
    xs, ys = xs[finite], ys[finite]

    if len(xs) < MIN_TREND_POINTS or np.ptp(xs) == 0:
        return None
    try:
        slope, intercept = np.polyfit(xs, ys, 1)
    except (np.linalg.LinAlgError, ValueError):
        logger.debug("Trend line fit failed for %d points", len(xs), exc_info=True)
        return None
    return float(slope), float(intercept)


def scatter_chart(points: pd.DataFrame, regressor: str, grouper: str) -> go.Figure:
    """Obesity rate against the regressor rate, one point per country.

    Points are coloured by *grouper* (``'none'`` gives a single series) and
    a dashed least-squares trend line is drawn when it can be fitted.
    """
    rate_col = f'{regressor}_rate'
    x_label = REGRESSOR_LABELS.get(regressor, regressor)
    fig = go.Figure()

    if len(points) > 0:
        points = points.copy()
        points['hover_text'] = (
            "<b>" + points['country'].astype(str) + "</b><br>"
            + x_label + ": " + points[rate_col].apply(format_percentage) + "<br>"
            + "Obesity rate: " + points['obesity_rate'].apply(format_percentage) + "<br>"
            + "Year: " + points['year'].astype(str)
        )

        if grouper == GROUPER_NONE or grouper not in points.columns:
            groups = [(None, points)]
        else:
            groups = list(points.groupby(grouper, sort=True))

        for name, rows in groups:
            fig.add_trace(go.Scatter(
                x=rows[rate_col],
                y=rows['obesity_rate'],
                mode='markers',
                name=str(name) if name is not None else "Countries",
                marker=dict(size=9, opacity=0.8, line=dict(width=0.5, color='white')),
                hovertext=rows['hover_text'],
                hoverinfo='text',
                showlegend=name is not None,
            ))

        fit = trend_line(points[rate_col], points['obesity_rate'])
        if fit is not None:
            slope, intercept = fit
            x0, x1 = float(points[rate_col].min()), float(points[rate_col].max())
            fig.add_trace(go.Scatter(
                x=[x0, x1],
                y=[intercept + slope * x0, intercept + slope * x1],
                mode='lines',
                name="Linear fit",
                line=dict(width=2, dash='dash', color='black'),
                hovertemplate=f"Fit: y = {intercept:.3f} + {slope:.3f}·x<extra></extra>",
                showlegend=False,
            ))
    else:
        _no_data_annotation(fig)

    fig.update_layout(
        title=f"Obesity rate vs {x_label.lower()}",
        xaxis_title=x_label,
        yaxis_title="Obesity rate",
        height=FIGURE_HEIGHT,
        hovermode='closest',
        dragmode=False,
        margin=dict(t=40, b=50, l=50, r=20),
        legend=dict(title=dict(text=GROUPER_LABELS.get(grouper, ""))),
        xaxis=dict(tickformat='.0%', fixedrange=True),
        yaxis=dict(tickformat='.0%', fixedrange=True),
    )
    return fig
