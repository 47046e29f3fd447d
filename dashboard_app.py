# %%
# =============================================================================
# Streamlit Dashboard Application
# =============================================================================
import math
import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

# Import config, utilities, data processing, aggregation and navigation
import config_utils
import data_processing
import analysis
from navigation import (
    View, VIEW_TITLES, NavigationState, resolve_drill_down_papers, referenced_code_ids,
    describe_filter, back_label, list_title, toggle_code_selection,
)

logger = config_utils.logger # Use the logger from config_utils

TREND_COLORS = [
    '#1f77b4', '#ff7f0e', '#2ca02c', '#d62728', '#9467bd', '#8c564b',
    '#e377c2', '#7f7f7f', '#bcbd22', '#17becf'
]
TOTAL_COLOR = '#9ca3af'
# Zero counts stay dark; positive intensities run yellow -> orange -> red -> purple
HEATMAP_COLORSCALE = [
    [0.0, 'rgb(31, 41, 55)'],
    [0.0001, 'rgb(254, 240, 163)'],
    [0.3333, 'rgb(253, 184, 99)'],
    [0.6667, 'rgb(227, 74, 51)'],
    [1.0, 'rgb(120, 4, 108)'],
]


# --- Plotting Functions ---
def empty_figure(title, message):
    return go.Figure(layout=go.Layout(title=title, annotations=[go.layout.Annotation(text=message, showarrow=False)]))


def plot_distribution(distribution_df, title, color):
    """Bar chart of counts per dimension or per code, in the frame's order."""
    if distribution_df.empty:
        logger.warning(f"Cannot plot '{title}': distribution empty.")
        return empty_figure(title, "No data available")

    plot_df = distribution_df.assign(percent_label=(distribution_df['percent'] * 100).round(1))
    fig = px.bar(plot_df,
                 x='name',
                 y='count',
                 title=title,
                 hover_data={'total': True, 'percent_label': True, 'name': False},
                 labels={'name': '', 'count': 'Number of Systems', 'percent_label': 'Coverage (%)', 'total': 'Out of'},
                 height=560)
    fig.update_traces(marker_color=color)
    fig.update_layout(xaxis=dict(tickangle=-40, categoryorder='array', categoryarray=list(plot_df['name'])),
                      margin=dict(l=20, r=20, t=50, b=160))
    return fig


def plot_trends(series_df, code_ids, code_map, show_total, bin_size):
    """
    Area chart of the trend series. Returns the figure and the per-trace keys
    (a code id, or None for the total line) used to map clicks back to codes.
    """
    fig = go.Figure()
    trace_keys = []
    if show_total:
        fig.add_trace(go.Scatter(x=series_df['year_label'], y=series_df['total'], name="Total Systems",
                                 mode='lines+markers', fill='tozeroy', line=dict(color=TOTAL_COLOR)))
        trace_keys.append(None)
    for i, code_id in enumerate(code_ids):
        color = TREND_COLORS[i % len(TREND_COLORS)]
        fig.add_trace(go.Scatter(x=series_df['year_label'], y=series_df[code_id],
                                 name=analysis.code_label(code_map, code_id),
                                 mode='lines+markers', fill='tozeroy', line=dict(color=color)))
        trace_keys.append(code_id)

    fig.update_layout(title="Yearly Publication Trends",
                      xaxis_title=f"Year Bin ({bin_size}-year)",
                      yaxis_title="Number of Systems",
                      yaxis=dict(rangemode='tozero', tickformat=',d'),
                      hovermode='x unified',
                      height=560)
    return fig, trace_keys


def plot_cooccurrence_heatmap(result):
    """Heatmap of co-occurrence counts. Diagonal cells of a symmetric grid are left uncoloured."""
    row_labels = [f"{c['label']} ({int(result.row_totals[c['id']])})" for c in result.row_codes]
    col_labels = [c['label'] for c in result.col_codes]

    z, text, hover = [], [], []
    for row in result.row_codes:
        z_row, text_row, hover_row = [], [], []
        for col in result.col_codes:
            if result.is_diagonal(row['id'], col['id']):
                z_row.append(None)
                text_row.append("")
                hover_row.append("")
                continue
            cell = result.cell_summary(row['id'], col['id'])
            z_row.append(math.sqrt(analysis.cooccurrence_intensity(cell['count'], result.max_count)))
            text_row.append(str(cell['count']) if cell['count'] > 0 else "")
            hover_row.append(
                f"<b>{row['label']}</b> & <b>{col['label']}</b><br>"
                f"Co-occurrence count: {cell['count']}<br>"
                f"Total systems with '{row['label']}': {cell['total']}<br>"
                f"Share of co-occurrences for '{row['label']}': {cell['percent'] * 100:.1f}%"
            )
        z.append(z_row)
        text.append(text_row)
        hover.append(hover_row)

    fig = go.Figure(data=go.Heatmap(
        z=z, x=col_labels, y=row_labels, text=text, texttemplate="%{text}",
        hovertext=hover, hoverinfo='text', colorscale=HEATMAP_COLORSCALE,
        zmin=0, zmax=1, showscale=False, xgap=2, ygap=2,
    ))
    fig.update_layout(xaxis=dict(title=result.dimension_b, side='top', tickangle=-40),
                      yaxis=dict(title=result.dimension_a, autorange='reversed'),
                      height=max(420, 70 * len(row_labels) + 200),
                      margin=dict(l=20, r=20, t=120, b=20))
    return fig


def selected_points(event):
    """Points of a plotly selection event returned by st.plotly_chart(on_select='rerun')."""
    if not event:
        return []
    return event.get("selection", {}).get("points", []) or []


# --- Streamlit App Setup ---
logger.info("Setting up Streamlit application...")
st.set_page_config(layout="wide", page_title="Live Music Agents Taxonomy Explorer")


@st.cache_data # Cache the loaded dataset for the whole app session
def load_data_for_app(paper_codes_csv, metadata_csv, mapping_csv):
    """Loads the dataset. Raises on failure so a failed load is never cached."""
    logger.info("(Cache Check) Attempting to load data for app...")
    papers_df, codes_df = data_processing.load_dataset(paper_codes_csv, metadata_csv, mapping_csv)
    if papers_df is None or codes_df is None:
        logger.error("(Cache Check) Failed to load data for app.")
        raise RuntimeError("Failed to load or parse data.")
    logger.info("(Cache Check) Data loaded successfully for app.")
    return papers_df, codes_df


@st.cache_data # Taxonomy index is built once per load
def build_taxonomy_index(_codes_df):
    logger.info("(Cache Check) Building taxonomy index...")
    return {
        'aspects': data_processing.build_aspect_groups(_codes_df),
        'dimensions': data_processing.build_dimension_groups(_codes_df),
        'code_map': data_processing.build_code_map(_codes_df),
    }


def all_dimensions(taxonomy):
    """All dimension names, aspects in display order then dimensions sorted."""
    dims_by_aspect = taxonomy['dimensions']
    aspects = config_utils.ASPECT_ORDER + [a for a in dims_by_aspect if a not in config_utils.ASPECT_ORDER]
    return [dim for aspect in aspects for dim in dims_by_aspect.get(aspect, [])]


def code_option_label(code_map, code_counts):
    def _format(code_id):
        label = analysis.code_label(code_map, code_id)
        return f"{label} ({code_counts[code_id]})" if code_id in code_counts else label
    return _format


# --- Shared Widgets ---
def render_code_tags(state, codes, code_map, key_prefix):
    """Tag chips grouped by aspect; clicking one goes through the navigation state."""
    grouped = analysis.group_paper_codes(codes, code_map)
    if not grouped:
        st.caption("No codes assigned.")
        return
    for aspect, dimensions in grouped.items():
        st.markdown(f"**{aspect}**")
        for dimension, records in dimensions.items():
            cols = st.columns([2] + [1] * min(len(records), 4))
            cols[0].caption(dimension)
            for i, record in enumerate(records):
                cols[1 + i % 4].button(f"# {record['label']}", key=f"{key_prefix}_{record['id']}",
                                       on_click=state.click_code_tag, args=(record['id'],))


def render_paper_card(state, paper, code_map, key_prefix):
    with st.container(border=True):
        title_col, action_col = st.columns([5, 1])
        title_col.markdown(f"**{paper['title'] or 'Untitled'}**")
        year = paper['year'] if not pd.isna(paper['year']) else 'N/A'
        title_col.caption(f"{paper['venue'] or 'N/A'} • {year} • {paper['source_type']}")
        action_col.button("Details", key=f"{key_prefix}_open_{paper['id']}",
                          on_click=state.select_paper, args=(paper['id'],))
        with st.expander("Codes"):
            render_code_tags(state, paper['codes'], code_map, key_prefix=f"{key_prefix}_{paper['id']}")


# --- Sidebar ---
def render_sidebar(state, display_papers, codes_df, taxonomy):
    params = state.params
    code_map = taxonomy['code_map']
    st.sidebar.title("Live Music Agents")

    views = list(View)
    chosen_view = st.sidebar.radio("View", views, index=views.index(state.current_view),
                                   format_func=VIEW_TITLES.get, key=f"view_radio_{state.current_view.value}")
    if chosen_view is not state.current_view:
        state.select_view(chosen_view)
        st.rerun()

    source_type = st.sidebar.radio("Source type", config_utils.SOURCE_TYPE_OPTIONS,
                                   index=config_utils.SOURCE_TYPE_OPTIONS.index(params.source_type),
                                   format_func=lambda s: {'all': 'All', 'paper': 'Papers', 'video': 'Videos'}[s],
                                   horizontal=True)
    if source_type != params.source_type:
        params.source_type = source_type
        st.rerun()

    st.sidebar.markdown("---")
    if state.current_view is View.TRENDS:
        render_trend_controls(state, display_papers, codes_df, taxonomy)
    elif state.current_view is View.CO_OCCURRENCE:
        render_cooccurrence_controls(state, display_papers, codes_df, taxonomy)
    elif state.current_view is View.EXPLORER and params.explorer_selected_codes:
        st.sidebar.markdown("**Active tag filters**")
        st.sidebar.write(", ".join(analysis.code_label(code_map, c) for c in params.explorer_selected_codes))


def render_trend_controls(state, display_papers, codes_df, taxonomy):
    params = state.params
    code_map = taxonomy['code_map']
    dims_by_aspect = taxonomy['dimensions']
    st.sidebar.subheader("Trend settings")

    aspects = [a for a in config_utils.ASPECT_ORDER if a in dims_by_aspect] or list(dims_by_aspect)
    aspect = st.sidebar.selectbox("Aspect", aspects, index=aspects.index(params.trend_aspect) if params.trend_aspect in aspects else 0)
    if aspect != params.trend_aspect:
        params.select_trend_aspect(aspect, dims_by_aspect.get(aspect, []))
        st.rerun()

    dimension_options = [""] + dims_by_aspect.get(aspect, [])
    dimension = st.sidebar.selectbox("Dimension", dimension_options,
                                     index=dimension_options.index(params.trend_dimension) if params.trend_dimension in dimension_options else 0,
                                     format_func=lambda d: d or "Select a dimension")
    if dimension != params.trend_dimension:
        params.trend_dimension = dimension
        params.trend_code_ids = analysis.top_codes_for_dimension(display_papers, codes_df, dimension, config_utils.DEFAULT_TREND_CODE_COUNT) if dimension else []
        st.rerun()

    if params.trend_dimension:
        code_distribution = analysis.compute_code_distribution(display_papers, codes_df, params.trend_dimension)
        code_counts = dict(zip(code_distribution['id'], code_distribution['count']))
        options = list(code_distribution['id'])
        default = [c for c in params.trend_code_ids if c in options]
        selection = st.sidebar.multiselect("Codes", options, default=default,
                                           format_func=code_option_label(code_map, code_counts),
                                           key=f"trend_codes_{params.trend_dimension}_{'-'.join(map(str, default))}")
        if selection != default:
            params.trend_code_ids = selection
            st.rerun()
        select_col, clear_col = st.sidebar.columns(2)
        if select_col.button("Select all"):
            params.trend_code_ids = options
            st.rerun()
        if clear_col.button("Clear"):
            params.trend_code_ids = []
            st.rerun()

    bin_size = st.sidebar.number_input("Year bin size", min_value=config_utils.MIN_YEAR_BIN_SIZE,
                                       max_value=config_utils.MAX_YEAR_BIN_SIZE,
                                       value=config_utils.clamp_bin_size(params.year_bin_size), step=1)
    params.year_bin_size = int(bin_size)
    params.show_total_papers = st.sidebar.checkbox("Total Systems", value=params.show_total_papers)

    presets = config_utils.TREND_PRESETS.get(aspect, {})
    if presets:
        st.sidebar.markdown("**Presets**")
        for name, preset in presets.items():
            if st.sidebar.button(name, key=f"trend_preset_{aspect}_{name}"):
                dimension, code_ids, preset_bin_size = analysis.resolve_trend_preset(preset, display_papers, codes_df)
                params.trend_aspect = code_map_aspect_of_dimension(codes_df, dimension) or aspect
                params.trend_dimension = dimension
                params.trend_code_ids = code_ids
                params.year_bin_size = preset_bin_size
                st.rerun()
    else:
        st.sidebar.caption("No presets available for this aspect.")


def code_map_aspect_of_dimension(codes_df, dimension):
    matches = codes_df.loc[codes_df['dimension'] == dimension, 'aspect']
    return matches.iloc[0] if not matches.empty else None


def render_cooccurrence_controls(state, display_papers, codes_df, taxonomy):
    params = state.params
    code_map = taxonomy['code_map']
    st.sidebar.subheader("Co-occurrence settings")

    dimension_options = [""] + all_dimensions(taxonomy)
    def _dimension_index(dimension):
        return dimension_options.index(dimension) if dimension in dimension_options else 0

    dim_a = st.sidebar.selectbox("Rows (dimension 1)", dimension_options, index=_dimension_index(params.cooc_dimension_a),
                                 format_func=lambda d: d or "Select a dimension", key=f"cooc_a_{params.cooc_dimension_a}")
    dim_b = st.sidebar.selectbox("Columns (dimension 2)", dimension_options, index=_dimension_index(params.cooc_dimension_b),
                                 format_func=lambda d: d or "Select a dimension", key=f"cooc_b_{params.cooc_dimension_b}")
    if (dim_a, dim_b) != (params.cooc_dimension_a, params.cooc_dimension_b):
        params.cooc_dimension_a, params.cooc_dimension_b = dim_a, dim_b
        st.rerun()
    if st.sidebar.button("Swap axes"):
        params.swap_cooccurrence_dimensions()
        st.rerun()

    st.sidebar.markdown("**Data filters**")
    search_text = st.sidebar.text_input("Search titles", value=params.cooc_search_text, key=f"cooc_search_{params.cooc_search_text}")
    if search_text != params.cooc_search_text:
        params.cooc_search_text = search_text
        st.rerun()

    filter_dimension = st.sidebar.selectbox("Filter by codes of", dimension_options, format_func=lambda d: d or "Select a dimension")
    if filter_dimension:
        code_distribution = analysis.compute_code_distribution(display_papers, codes_df, filter_dimension)
        code_counts = dict(zip(code_distribution['id'], code_distribution['count']))
        for code_id in code_distribution['id']:
            checked = code_id in params.cooc_selected_codes
            if st.sidebar.checkbox(code_option_label(code_map, code_counts)(code_id), value=checked,
                                   key=f"cooc_code_{code_id}_{checked}") != checked:
                params.cooc_selected_codes = toggle_code_selection(params.cooc_selected_codes, int(code_id))
                st.rerun()
    if params.cooc_selected_codes:
        st.sidebar.caption("Requires all of: " + ", ".join(analysis.code_label(code_map, c) for c in params.cooc_selected_codes))
    if st.sidebar.button("Clear data filters"):
        params.clear_cooccurrence_filters()
        st.rerun()

    st.sidebar.markdown("**Presets**")
    for name, preset in config_utils.COOCCURRENCE_PRESETS.items():
        if st.sidebar.button(name, key=f"cooc_preset_{name}"):
            dim_a, dim_b, filter_code_ids = analysis.resolve_cooccurrence_preset(preset, codes_df)
            params.cooc_dimension_a, params.cooc_dimension_b = dim_a, dim_b
            params.cooc_selected_codes = filter_code_ids
            st.rerun()


# --- Views ---
def render_explorer(state, display_papers, codes_df, taxonomy):
    params = state.params
    code_map = taxonomy['code_map']
    st.header("System Explorer")

    search_text = st.text_input("Search by title...", value=params.explorer_search_text,
                                key=f"explorer_search_{params.explorer_search_text}")
    if search_text != params.explorer_search_text:
        params.explorer_search_text = search_text
        st.rerun()

    aspects = [a for a in config_utils.ASPECT_ORDER if a in taxonomy['dimensions']]
    if aspects:
        aspect = st.radio("Filter codes by aspect", aspects, horizontal=True)
        dimensions = taxonomy['dimensions'].get(aspect, [])
        cols = st.columns(min(len(dimensions), 4) or 1)
        for i, dimension in enumerate(dimensions):
            dim_code_ids = [int(c['id']) for c in analysis.codes_for_dimension(codes_df, dimension)]
            default = [c for c in params.explorer_selected_codes if c in dim_code_ids]
            selection = cols[i % len(cols)].multiselect(
                dimension, dim_code_ids, default=default,
                format_func=lambda c: analysis.code_label(code_map, c),
                key=f"explorer_dim_{dimension}_{'-'.join(map(str, default))}")
            if selection != default:
                others = [c for c in params.explorer_selected_codes if c not in dim_code_ids]
                params.explorer_selected_codes = others + selection
                st.rerun()

    if params.explorer_search_text or params.explorer_selected_codes:
        if st.button("Clear filters"):
            params.clear_explorer_filters()
            st.rerun()

    filtered = analysis.apply_paper_filters(display_papers, params.explorer_search_text, params.explorer_selected_codes)
    filtered = analysis.sort_papers_for_explorer(filtered)
    st.caption(list_title(len(filtered), params.source_type))
    if filtered.empty:
        st.info("No systems match the current filters.")
        return
    for paper in filtered.to_dict('records'):
        render_paper_card(state, paper, code_map, key_prefix="explorer")


def render_distribution(state, display_papers, codes_df, taxonomy):
    params = state.params
    st.header("Frequency Analysis")

    coverage = analysis.compute_aspect_coverage(display_papers, codes_df)
    cols = st.columns(len(coverage) or 1)
    for col, row in zip(cols, coverage.to_dict('records')):
        label = f"{row['aspect']} ({row['percent'] * 100:.0f}% coverage)"
        col.button(label, key=f"dist_aspect_{row['aspect']}", use_container_width=True,
                   type='primary' if row['aspect'] == params.distribution_aspect else 'secondary',
                   on_click=params.select_distribution_aspect, args=(row['aspect'],))

    color = config_utils.ASPECT_COLORS.get(params.distribution_aspect, config_utils.DEFAULT_ASPECT_COLOR)
    if params.distribution_dimension:
        if st.button(f"← All {params.distribution_aspect} Dimensions"):
            params.distribution_dimension = None
            st.rerun()
        chart_df = analysis.compute_code_distribution(display_papers, codes_df, params.distribution_dimension)
        title = params.distribution_dimension
        st.caption("Click a bar to see the systems with that code.")
    else:
        chart_df = analysis.compute_dimension_distribution(display_papers, codes_df, params.distribution_aspect)
        title = f"Dimensions of {params.distribution_aspect}"
        st.caption("Click a bar to drill down into its codes.")

    if chart_df.empty or display_papers.empty:
        st.info("No data available for this selection.")
        return
    event = st.plotly_chart(plot_distribution(chart_df, title, color), use_container_width=True,
                            on_select="rerun", selection_mode="points", key=f"dist_chart_{state.revision}_{title}")
    for point in selected_points(event):
        row = chart_df.iloc[point.get("point_index", 0)]
        if row['type'] == 'dimension':
            params.distribution_dimension = row['name']
        elif state.click_code_tag(int(row['id'])):
            logger.info(f"Distribution drill-down for code {row['id']}.")
        st.rerun()


def render_trends(state, display_papers, taxonomy):
    params = state.params
    code_map = taxonomy['code_map']
    st.header("Publication Trends")
    if not params.trend_code_ids and not params.show_total_papers:
        st.info('Select codes, or enable "Total Systems" in the sidebar.')
        return
    series = analysis.compute_trend_series(display_papers, params.trend_code_ids, params.year_bin_size)
    if series.empty:
        st.info("No publication years available for the current selection.")
        return

    fig, trace_keys = plot_trends(series, params.trend_code_ids, code_map, params.show_total_papers,
                                  config_utils.clamp_bin_size(params.year_bin_size))
    event = st.plotly_chart(fig, use_container_width=True, on_select="rerun", selection_mode="points",
                            key=f"trend_chart_{state.revision}")
    for point in selected_points(event):
        code_id = trace_keys[point.get("curve_number", 0)]
        row = series.iloc[point.get("point_index", 0)]
        value = row['total'] if code_id is None else row[code_id]
        if value > 0 and state.click_trend_point(code_id, int(row['year_bin'])):
            st.rerun()


def render_cooccurrence(state, display_papers, codes_df, taxonomy):
    params = state.params
    st.header("Co-occurrence Heatmap")
    cooc_papers = analysis.apply_paper_filters(display_papers, params.cooc_search_text, params.cooc_selected_codes)
    result = analysis.compute_cooccurrence(cooc_papers, codes_df, params.cooc_dimension_a, params.cooc_dimension_b)
    if result.is_empty:
        st.info("Please select dimensions for both axes to generate the heatmap.")
        return

    st.caption("Note: Row sums may exceed the total number of systems because multiple codes can be assigned within a single dimension.")
    st.plotly_chart(plot_cooccurrence_heatmap(result), use_container_width=True)
    st.caption("To list the systems behind a cell, pick the cell in \"Drill into a cell\" below and press \"Show systems\".")

    cells = [
        (row['id'], col['id'])
        for row in result.row_codes for col in result.col_codes
        if result.is_clickable(row['id'], col['id']) and (not result.is_symmetric or row['id'] < col['id'])
    ]
    if not cells:
        st.info("No co-occurrences for the current selection.")
        return
    cells.sort(key=lambda cell: -result.cell_summary(*cell)['count'])
    code_map = taxonomy['code_map']
    cell = st.selectbox("Drill into a cell", cells, format_func=lambda c: (
        f"{analysis.code_label(code_map, c[0])} & {analysis.code_label(code_map, c[1])} "
        f"({result.cell_summary(*c)['count']})"))
    st.button("Show systems", on_click=state.click_cooccurrence_cell, args=cell)


def render_about():
    st.header("About")
    st.markdown(f"""
    This dashboard explores a coded dataset of live music agent systems, drawn from research
    papers and demonstration videos. Every system is annotated with codes from a four-level taxonomy:
    **Aspect → Dimension → Code**, across the aspects *Usage Context*, *Interaction*, *Technology* and *Ecosystem*.

    * **Explorer**: search and filter systems by title and codes (all selected codes must be present).
    * **Frequency**: share of systems covering each dimension, and each code within a dimension.
    * **Trends**: number of systems per year bin for selected codes.
    * **Co-occurrence**: how often pairs of codes from two dimensions are assigned to the same system.

    Click any bar, point, cell or tag to list the underlying systems.
    See the accompanying paper: [{config_utils.PAPER_URL}]({config_utils.PAPER_URL})
    """)


def render_paper_list(state, papers_df, taxonomy):
    code_map = taxonomy['code_map']
    st.button(back_label(state), on_click=state.back)
    papers = resolve_drill_down_papers(papers_df, state)
    st.header(list_title(len(papers), state.params.source_type))
    st.markdown(describe_filter(state.active_filter, code_map))
    chip_ids = referenced_code_ids(state.active_filter)
    if chip_ids:
        cols = st.columns(len(chip_ids))
        for col, code_id in zip(cols, chip_ids):
            col.button(f"# {analysis.code_label(code_map, code_id)}", key=f"list_filter_tag_{code_id}",
                       on_click=state.click_code_tag, args=(code_id,))
    if papers.empty:
        st.info("No systems match this selection.")
        return
    for paper in papers.to_dict('records'):
        render_paper_card(state, paper, code_map, key_prefix="list")


def render_paper_detail(state, papers_df, taxonomy):
    code_map = taxonomy['code_map']
    st.button(back_label(state), on_click=state.back)
    matches = papers_df[papers_df['id'] == state.selected_paper_id]
    if matches.empty:
        st.warning(f"System {state.selected_paper_id} is not available.")
        return
    paper = matches.iloc[0].to_dict()

    st.header(paper['title'] or "Untitled")
    if paper['authors']:
        st.markdown(f"*{paper['authors']}*")
    year = paper['year'] if not pd.isna(paper['year']) else 'N/A'
    st.caption(f"{paper['venue'] or 'N/A'} • {year}")
    if paper['url'] and paper['source_type'] == 'paper':
        st.link_button("View Paper", paper['url'])

    embedded_url = None
    if paper['source_type'] == 'video':
        for url in [paper['url']] + paper['additional_resources']:
            if config_utils.youtube_video_id(url):
                embedded_url = url
                break
    if embedded_url:
        st.video(embedded_url)

    other_resources = [r for r in paper['additional_resources'] if r and r != embedded_url]
    if other_resources:
        st.subheader("Additional Resources")
        for resource in other_resources:
            st.markdown(f"- [{resource}]({resource})")

    st.subheader("Abstract")
    st.write(paper['abstract'] or "No abstract available.")
    st.subheader("Codes")
    render_code_tags(state, paper['codes'], code_map, key_prefix=f"detail_{paper['id']}")


# --- Streamlit App UI ---
# Load the dataset; any failure is blocking
try:
    papers_df_app, codes_df_app = load_data_for_app(config_utils.PAPER_CODES_CSV, config_utils.METADATA_CSV, config_utils.CODE_MAPPING_CSV)
except RuntimeError:
    st.error("Failed to load or parse data. Reload the page to try again.")
    st.subheader("Logs")
    log_content = "Could not read log file."
    try:
        with open(config_utils.LOG_FILE, 'r') as f:
            log_content = f.read()
    except Exception as log_e:
        log_content = f"Error reading log file {config_utils.LOG_FILE}: {log_e}\n\nCaptured logs during run:\n{config_utils.log_stream.getvalue()}"
    st.text_area("Log Output", log_content, height=300)
    st.stop()

taxonomy_app = build_taxonomy_index(codes_df_app)

if 'nav_state' not in st.session_state:
    st.session_state.nav_state = NavigationState()
nav_state = st.session_state.nav_state

display_papers_app = analysis.filter_by_source_type(papers_df_app, nav_state.params.source_type)
render_sidebar(nav_state, display_papers_app, codes_df_app, taxonomy_app)

# Detail page takes precedence over the drill-down list, which takes precedence over the view
if nav_state.display_mode == 'detail':
    render_paper_detail(nav_state, papers_df_app, taxonomy_app)
elif nav_state.display_mode == 'list':
    render_paper_list(nav_state, papers_df_app, taxonomy_app)
elif nav_state.current_view is View.EXPLORER:
    render_explorer(nav_state, display_papers_app, codes_df_app, taxonomy_app)
elif nav_state.current_view is View.DISTRIBUTION:
    render_distribution(nav_state, display_papers_app, codes_df_app, taxonomy_app)
elif nav_state.current_view is View.TRENDS:
    render_trends(nav_state, display_papers_app, taxonomy_app)
elif nav_state.current_view is View.CO_OCCURRENCE:
    render_cooccurrence(nav_state, display_papers_app, codes_df_app, taxonomy_app)
else:
    render_about()

st.markdown("---")
st.caption(f"{len(papers_df_app)} systems loaded • {len(codes_df_app)} codes • Session started {config_utils.CURRENT_DATE_STR}")
