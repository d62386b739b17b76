"""
Obesity Explorer

A Streamlit dashboard for exploring adult obesity rates across countries,
sexes, regions and income groups between 1975 and 2016, alongside
smoking, education and unemployment indicators.

Visualizations:
1. Country standings - Choropleth map and bar chart of obesity rate per country
2. Trends - Regional obesity rate over time with highlighted countries
3. Associations - Scatter plot of obesity rate against a chosen indicator

Every chart is recomputed only when one of the inputs it depends on changes
(see ``bindings.BINDINGS``); results are kept per browser session.
"""

import logging

import streamlit as st

from bindings import render_all
from constants import (
    DEFAULT_HIGHLIGHT,
    FOOTER_TEXT,
    GROUPER_LABELS,
    HEADER_TEXT,
    REGRESSOR_LABELS,
    SEX_OPTIONS,
    YEAR_MAX,
    YEAR_MIN,
)
from data import data_locations, distinct_values, load_country_codes, load_data
from utils import query_params_for, validate_selection, widget_defaults

logger = logging.getLogger(__name__)

PLOT_CONFIG = {'displayModeBar': False, 'scrollZoom': False}

# ================================================================================
# PAGE CONFIGURATION
# ================================================================================
st.set_page_config(
    page_title="Obesity Explorer",
    layout="wide",
    initial_sidebar_state="expanded"
)

# ================================================================================
# MAIN APPLICATION
# ================================================================================
try:
    # ----------------------------------------------------------------------------
    # Data Preparation
    # ----------------------------------------------------------------------------
    ob_url, cydict_url = data_locations()
    ob = load_data(ob_url)
    country_codes = load_country_codes(cydict_url)

    all_regions = distinct_values(ob, 'region')
    all_income = distinct_values(ob, 'income')
    all_countries = distinct_values(ob, 'country')

    st.title("Obesity Dashboard", anchor=False)
    st.markdown(HEADER_TEXT)

    # ----------------------------------------------------------------------------
    # Selectors (in sidebar) - synced with URL query parameters
    # ----------------------------------------------------------------------------
    defaults = widget_defaults(st.query_params)

    with st.sidebar:
        st.header("Filters", anchor=False)

        selected_sex = st.radio(
            "Filter Sex:",
            options=SEX_OPTIONS,
            index=SEX_OPTIONS.index(defaults["sex"]),
            horizontal=True,
            key="sex",
        )

        selected_year = st.slider(
            "Filter Year:",
            min_value=YEAR_MIN,
            max_value=YEAR_MAX,
            value=defaults["year"],
            step=1,
            key="year",
        )

        selected_regions = st.multiselect(
            "Filter Region:",
            options=all_regions,
            default=all_regions,
            key="region",
        )

        selected_income = st.multiselect(
            "Filter Income Group:",
            options=all_income,
            default=all_income,
            key="income",
        )

        st.divider()
        st.markdown(FOOTER_TEXT)

    tab1, tab2, tab3 = st.tabs(["Country Standings", "Trends", "Associations"])

    # Charts sit above their own controls, so reserve their slots first
    with tab1:
        choropleth_slot = st.empty()
        bar_slot = st.empty()

    with tab2:
        ts_slot = st.empty()
        selected_year_range = st.slider(
            "Select Year Range:",
            min_value=YEAR_MIN,
            max_value=YEAR_MAX,
            value=defaults["year_range"],
            step=1,
            key="year_range",
        )
        selected_highlight = st.multiselect(
            "Highlight Countries:",
            options=all_countries,
            default=validate_selection(DEFAULT_HIGHLIGHT, all_countries),
            key="highlight_country",
        )

    with tab3:
        scatter_slot = st.empty()
        selected_grouper = st.selectbox(
            "Select Coloring Variable:",
            options=list(GROUPER_LABELS.keys()),
            format_func=lambda x: GROUPER_LABELS[x],
            index=list(GROUPER_LABELS.keys()).index(defaults["grouper"]),
            key="grouper",
        )
        selected_regressor = st.selectbox(
            "Select X-Axis Variable:",
            options=list(REGRESSOR_LABELS.keys()),
            format_func=lambda x: REGRESSOR_LABELS[x],
            index=list(REGRESSOR_LABELS.keys()).index(defaults["regressor"]),
            key="regressor",
        )
        load_slot = st.empty()

    # ----------------------------------------------------------------------------
    # Outputs - recompute only those whose inputs changed in this session
    # ----------------------------------------------------------------------------
    inputs = {
        'sex': selected_sex,
        'year': selected_year,
        'year_range': tuple(selected_year_range),
        'region': tuple(selected_regions),
        'income': tuple(selected_income),
        'highlight_country': tuple(selected_highlight),
        'grouper': selected_grouper,
        'regressor': selected_regressor,
    }

    # Update URL with current selections, only when they changed to prevent
    # unnecessary reruns
    new_params = query_params_for(inputs)
    if dict(st.query_params) != new_params:
        st.query_params.update(new_params)

    outputs = render_all(
        inputs,
        ob,
        country_codes,
        previous=st.session_state.get("previous_inputs"),
        cached=st.session_state.get("outputs"),
    )
    st.session_state["previous_inputs"] = inputs
    st.session_state["outputs"] = outputs

    choropleth_slot.plotly_chart(outputs['choropleth_plot'], width='stretch', config=PLOT_CONFIG)
    bar_slot.plotly_chart(outputs['bar_plot'], width='stretch', config=PLOT_CONFIG)
    ts_slot.plotly_chart(outputs['ts_plot'], width='stretch', config=PLOT_CONFIG)
    scatter_slot.plotly_chart(outputs['scatter_plot'], width='stretch', config=PLOT_CONFIG)
    if outputs['load']:
        load_slot.markdown(outputs['load'])

except FileNotFoundError as e:
    st.error(f"Data file not found: {e.filename}. Run prepare_data.py first.")
except ValueError as e:
    logger.exception("Invalid data file")
    st.error(f"The data file is invalid: {e}")
except Exception as e:
    import traceback
    st.error(f"An error occurred: {type(e).__name__}: {str(e)}")
    st.code(traceback.format_exc())
