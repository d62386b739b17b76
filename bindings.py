"""
Binding of dashboard inputs to dashboard outputs.

``BINDINGS`` lists, for every output, the inputs it depends on. An output
is a pure function of those inputs (plus the static data), so it only has
to be recomputed when one of them changes. Nothing here depends on the UI
framework; the Streamlit page feeds in widget values and displays the
results.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import pandas as pd
import plotly.graph_objects as go

from charts import bar_chart, choropleth_chart, scatter_chart, timeseries_chart
from constants import SMOKE_TEXT
from data import rate_data, scatter_data, timeseries_data

logger = logging.getLogger(__name__)

INPUT_IDS: tuple[str, ...] = (
    'sex',
    'year',
    'year_range',
    'region',
    'income',
    'highlight_country',
    'grouper',
    'regressor',
)

BINDINGS: dict[str, tuple[str, ...]] = {
    'bar_plot': ('region', 'year', 'income', 'sex'),
    'choropleth_plot': ('region', 'year', 'income', 'sex'),
    'ts_plot': ('year', 'sex', 'highlight_country', 'year_range'),
    'scatter_plot': ('region', 'year', 'income', 'sex', 'regressor', 'grouper'),
    'load': ('regressor',),
}

OUTPUT_IDS: tuple[str, ...] = tuple(BINDINGS)

Inputs = Mapping[str, Any]


def declared_inputs(output_id: str, inputs: Inputs) -> dict[str, Any]:
    """Restrict an input snapshot to the inputs *output_id* depends on.

    Raises
    ------
    KeyError
        If *output_id* is unknown or the snapshot lacks a declared input.
    """
    if output_id not in BINDINGS:
        raise KeyError(f"Unknown output: {output_id!r}")
    missing = [name for name in BINDINGS[output_id] if name not in inputs]
    if missing:
        raise KeyError(f"Output {output_id!r} needs inputs: {', '.join(missing)}")
    return {name: inputs[name] for name in BINDINGS[output_id]}


def outputs_to_refresh(previous: Inputs | None, current: Inputs) -> list[str]:
    """Outputs whose declared inputs differ between two snapshots.

    With no previous snapshot every output is due.
    """
    if previous is None:
        return list(OUTPUT_IDS)
    return [
        output_id for output_id, names in BINDINGS.items()
        if any(previous.get(name) != current.get(name) for name in names)
    ]


def help_text(regressor: str) -> str | None:
    """The smoking data note, shown only while smoking is the regressor."""
    if regressor == 'smoke':
        return SMOKE_TEXT
    return None


# =============================================================================
# Per-output renderers
# =============================================================================

def _bar_plot(inputs: Inputs, ob: pd.DataFrame, country_codes: dict[str, str]) -> go.Figure:
    rates = rate_data(ob, inputs['region'], inputs['year'], inputs['income'], inputs['sex'])
    return bar_chart(rates)


def _choropleth_plot(inputs: Inputs, ob: pd.DataFrame, country_codes: dict[str, str]) -> go.Figure:
    rates = rate_data(ob, inputs['region'], inputs['year'], inputs['income'], inputs['sex'])
    return choropleth_chart(rates, country_codes)


def _ts_plot(inputs: Inputs, ob: pd.DataFrame, country_codes: dict[str, str]) -> go.Figure:
    background, overlay = timeseries_data(
        ob, inputs['sex'], inputs['year_range'], inputs['highlight_country'],
    )
    return timeseries_chart(background, overlay, inputs['year'])


def _scatter_plot(inputs: Inputs, ob: pd.DataFrame, country_codes: dict[str, str]) -> go.Figure:
    points = scatter_data(
        ob,
        inputs['region'],
        inputs['year'],
        inputs['income'],
        inputs['sex'],
        inputs['regressor'],
        inputs['grouper'],
    )
    return scatter_chart(points, inputs['regressor'], inputs['grouper'])


def _load(inputs: Inputs, ob: pd.DataFrame, country_codes: dict[str, str]) -> str | None:
    return help_text(inputs['regressor'])


RENDERERS: dict[str, Callable[[Inputs, pd.DataFrame, dict[str, str]], Any]] = {
    'bar_plot': _bar_plot,
    'choropleth_plot': _choropleth_plot,
    'ts_plot': _ts_plot,
    'scatter_plot': _scatter_plot,
    'load': _load,
}


def render_output(
    output_id: str,
    inputs: Inputs,
    ob: pd.DataFrame,
    country_codes: dict[str, str],
) -> Any:
    """Compute one output from an input snapshot.

    Only the inputs declared in ``BINDINGS`` reach the renderer, so the
    result is fully determined by them.
    """
    selected = declared_inputs(output_id, inputs)
    logger.debug("Rendering %s with %s", output_id, selected)
    return RENDERERS[output_id](selected, ob, country_codes)


def render_all(
    inputs: Inputs,
    ob: pd.DataFrame,
    country_codes: dict[str, str],
    previous: Inputs | None = None,
    cached: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Render every output, reusing *cached* results whose inputs did not change."""
    cached = cached or {}
    due = set(outputs_to_refresh(previous, inputs))
    return {
        output_id: (
            render_output(output_id, inputs, ob, country_codes)
            if output_id in due or output_id not in cached
            else cached[output_id]
        )
        for output_id in OUTPUT_IDS
    }
