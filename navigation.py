# %%
# =============================================================================
# Navigation / Filter State and Drill-down Resolution
# =============================================================================
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from config_utils import logger, ASPECT_ORDER, DEFAULT_YEAR_BIN_SIZE, clamp_bin_size
from analysis import (
    apply_paper_filters, code_label, filter_by_source_type, format_year_bin_label,
    paper_has_all_codes, year_bin_start,
)


class View(str, Enum):
    EXPLORER = 'EXPLORER'
    DISTRIBUTION = 'DISTRIBUTION'
    TRENDS = 'TRENDS'
    CO_OCCURRENCE = 'CO_OCCURRENCE'
    ABOUT = 'ABOUT'


VIEW_TITLES = {
    View.EXPLORER: "Explorer",
    View.DISTRIBUTION: "Frequency",
    View.TRENDS: "Trends",
    View.CO_OCCURRENCE: "Co-occurrence",
    View.ABOUT: "About",
}

# Views whose tag clicks open a drill-down list
CODE_FILTER_ORIGINS = (View.TRENDS, View.CO_OCCURRENCE, View.DISTRIBUTION)


# --- Drill-down Filters ---
@dataclass(frozen=True)
class CooccurrenceFilter:
    """Papers carrying both codes."""
    code_id_1: int
    code_id_2: int


@dataclass(frozen=True)
class TrendFilter:
    """Papers in one year bin, optionally restricted to one code (None means all papers)."""
    code_id: Optional[int]
    year_bin: int
    bin_size: int


@dataclass(frozen=True)
class CodeFilter:
    """Papers carrying one code; remembers the view the click came from."""
    code_id: int
    origin_view: View


PaperFilter = Union[CooccurrenceFilter, TrendFilter, CodeFilter]


def toggle_code_selection(selection, code_id):
    """Returns a new selection list with `code_id` added, or removed if already present."""
    if code_id in selection:
        return [c for c in selection if c != code_id]
    return list(selection) + [code_id]


@dataclass
class ViewParameters:
    """Per-view controls. They survive view switches and drill-downs."""
    source_type: str = 'all'
    explorer_search_text: str = ''
    explorer_selected_codes: list = field(default_factory=list)
    distribution_aspect: str = ASPECT_ORDER[0]
    distribution_dimension: Optional[str] = None
    trend_aspect: str = ASPECT_ORDER[0]
    trend_dimension: str = ''
    trend_code_ids: list = field(default_factory=list)
    year_bin_size: int = DEFAULT_YEAR_BIN_SIZE
    show_total_papers: bool = False
    cooc_dimension_a: str = ''
    cooc_dimension_b: str = ''
    cooc_search_text: str = ''
    cooc_selected_codes: list = field(default_factory=list)

    def select_distribution_aspect(self, aspect):
        self.distribution_aspect = aspect
        self.distribution_dimension = None

    def select_trend_aspect(self, aspect, aspect_dimensions):
        """Switches the Trends aspect; a dimension outside it is dropped with its codes."""
        self.trend_aspect = aspect
        if self.trend_dimension not in aspect_dimensions:
            self.trend_dimension = ''
            self.trend_code_ids = []

    def swap_cooccurrence_dimensions(self):
        self.cooc_dimension_a, self.cooc_dimension_b = self.cooc_dimension_b, self.cooc_dimension_a

    def clear_cooccurrence_filters(self):
        self.cooc_search_text = ''
        self.cooc_selected_codes = []

    def clear_explorer_filters(self):
        self.explorer_search_text = ''
        self.explorer_selected_codes = []


@dataclass
class NavigationState:
    """
    Session navigation: the active view, at most one drill-down filter and an optional
    selected paper. What is shown follows detail > drill-down list > view.
    Every accepted transition bumps `revision`.
    """
    current_view: View = View.EXPLORER
    active_filter: Optional[PaperFilter] = None
    selected_paper_id: Optional[int] = None
    params: ViewParameters = field(default_factory=ViewParameters)
    revision: int = 0

    @property
    def display_mode(self):
        if self.selected_paper_id is not None:
            return 'detail'
        if self.active_filter is not None:
            return 'list'
        return 'view'

    def _touch(self):
        self.revision += 1

    def select_view(self, view):
        self.current_view = View(view)
        self.active_filter = None
        self.selected_paper_id = None
        self._touch()
        logger.info(f"View switched to {self.current_view.value}.")

    def _can_drill_down_from(self, view):
        if self.current_view is not view or self.display_mode != 'view':
            logger.warning(f"Ignoring {VIEW_TITLES[view]} drill-down while showing {self.current_view.value} ({self.display_mode}).")
            return False
        return True

    def click_cooccurrence_cell(self, code_id_1, code_id_2):
        """Heatmap cell click -> list of papers carrying both codes. Diagonal cells are ignored."""
        if not self._can_drill_down_from(View.CO_OCCURRENCE):
            return False
        if code_id_1 == code_id_2:
            logger.warning(f"Ignoring click on diagonal cell for code {code_id_1}.")
            return False
        self.active_filter = CooccurrenceFilter(int(code_id_1), int(code_id_2))
        self._touch()
        return True

    def click_trend_point(self, code_id, year_bin):
        """Trend point click -> list of papers in that bin (and with that code, unless None)."""
        if not self._can_drill_down_from(View.TRENDS):
            return False
        code_id = None if code_id is None else int(code_id)
        self.active_filter = TrendFilter(code_id, int(year_bin), clamp_bin_size(self.params.year_bin_size))
        self._touch()
        return True

    def click_code_tag(self, code_id):
        """
        Tag click. The Explorer refines its own tag selection in place; the chart views
        open a drill-down list that remembers where it came from.
        """
        code_id = int(code_id)
        if self.current_view is View.EXPLORER:
            if code_id not in self.params.explorer_selected_codes:
                self.params.explorer_selected_codes = self.params.explorer_selected_codes + [code_id]
            self.active_filter = None
            self.selected_paper_id = None
            self._touch()
            return True
        if self.current_view not in CODE_FILTER_ORIGINS:
            logger.warning(f"Ignoring tag click for code {code_id} on {self.current_view.value}.")
            return False
        self.active_filter = CodeFilter(code_id, self.current_view)
        self.selected_paper_id = None
        self._touch()
        return True

    def select_paper(self, paper_id):
        """Opens the detail page; the active filter is kept for back navigation."""
        if self.current_view is View.ABOUT:
            logger.warning("Ignoring paper selection on the About page.")
            return False
        self.selected_paper_id = int(paper_id)
        self._touch()
        return True

    def back(self):
        if self.selected_paper_id is not None:
            self.selected_paper_id = None
        elif self.active_filter is not None:
            self.active_filter = None
        else:
            return False
        self._touch()
        return True


# --- Drill-down Resolution ---
def _rows_where(df, predicate):
    if df.empty:
        return df
    return df[df['codes'].map(predicate).astype(bool)]


def resolve_drill_down_papers(papers_df, state):
    """
    Re-applies the active filter to the paper collection it was drawn from.
    Co-occurrence filters issued on the co-occurrence view honour that view's search and
    tag selection; trend and code filters only honour the source type.
    """
    active_filter = state.active_filter
    display_papers = filter_by_source_type(papers_df, state.params.source_type)
    if active_filter is None:
        return display_papers.iloc[0:0]

    if isinstance(active_filter, CooccurrenceFilter):
        base = display_papers
        if state.current_view is View.CO_OCCURRENCE:
            base = apply_paper_filters(display_papers, state.params.cooc_search_text, state.params.cooc_selected_codes)
        pair = (active_filter.code_id_1, active_filter.code_id_2)
        return _rows_where(base, lambda codes: paper_has_all_codes(codes, pair))

    if isinstance(active_filter, TrendFilter):
        dated = display_papers[display_papers['year'].notna()]
        if dated.empty:
            return dated
        years = dated['year'].astype(int)
        min_year = int(years.min())
        in_bin = years.map(lambda y: year_bin_start(y, min_year, active_filter.bin_size)) == active_filter.year_bin
        matches = dated[in_bin.astype(bool)]
        if active_filter.code_id is None:
            return matches
        return _rows_where(matches, lambda codes: active_filter.code_id in codes)

    if isinstance(active_filter, CodeFilter):
        return _rows_where(display_papers, lambda codes: active_filter.code_id in codes)

    raise TypeError(f"Unsupported paper filter: {active_filter!r}")


# --- Drill-down Descriptions ---
def referenced_code_ids(active_filter):
    if isinstance(active_filter, CooccurrenceFilter):
        return [active_filter.code_id_1, active_filter.code_id_2]
    if isinstance(active_filter, TrendFilter):
        return [] if active_filter.code_id is None else [active_filter.code_id]
    if isinstance(active_filter, CodeFilter):
        return [active_filter.code_id]
    return []


def describe_filter(active_filter, code_map):
    """Human readable summary of a drill-down filter; unknown codes fall back to 'Code <id>'."""
    if isinstance(active_filter, CooccurrenceFilter):
        return (f'with "{code_label(code_map, active_filter.code_id_1)}" '
                f'and "{code_label(code_map, active_filter.code_id_2)}"')
    if isinstance(active_filter, TrendFilter):
        year_range = format_year_bin_label(active_filter.year_bin, active_filter.bin_size)
        if active_filter.code_id is None:
            return f'for "Total Systems" in year bin {year_range}'
        return f'for "{code_label(code_map, active_filter.code_id)}" in year bin {year_range}'
    if isinstance(active_filter, CodeFilter):
        return f'with tag "{code_label(code_map, active_filter.code_id)}"'
    return ""


def back_label(state):
    """Caption of the back button for the current display mode."""
    if state.display_mode == 'detail':
        if state.active_filter is not None:
            return "Back to List"
        return f"Back to {VIEW_TITLES[state.current_view]}"
    active_filter = state.active_filter
    if isinstance(active_filter, CooccurrenceFilter):
        return "Back to Heatmap"
    if isinstance(active_filter, TrendFilter):
        return "Back to Trends Chart"
    if isinstance(active_filter, CodeFilter):
        return {
            View.TRENDS: "Back to Trends Chart",
            View.CO_OCCURRENCE: "Back to Heatmap",
            View.DISTRIBUTION: "Back to Frequency Chart",
        }.get(active_filter.origin_view, "Back")
    return "Back"


def resource_noun(count, source_type):
    singular = {'paper': 'paper', 'video': 'video'}.get(source_type, 'system')
    return singular if count == 1 else f"{singular}s"


def list_title(count, source_type):
    return f"Showing {count} {resource_noun(count, source_type)}"
