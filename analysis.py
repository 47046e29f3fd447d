# %%
# =============================================================================
# Aggregation Engine: Filters, Co-occurrence, Trends, and Distribution
# =============================================================================
import numpy as np
import pandas as pd
from dataclasses import dataclass, field

# Import logger, constants and helpers from config_utils
from config_utils import (
    logger, ASPECT_ORDER, DIMENSION_ORDER, UNORDERED_DIMENSION_RANK, clamp_bin_size,
)


# --- Filtering Predicates ---
def paper_has_code(codes, code_id):
    return code_id in codes


def paper_has_all_codes(codes, code_ids):
    """Conjunctive tag test: True only if every id in `code_ids` is assigned."""
    return all(code_id in codes for code_id in code_ids)


def filter_by_source_type(df, source_type='all'):
    """Keeps papers of the requested source type ('paper' or 'video'); 'all' keeps everything."""
    if not source_type or source_type == 'all':
        return df
    return df[df['source_type'] == source_type]


def filter_by_title(df, search_text=''):
    """Case-insensitive substring match on the title. Empty search text matches all."""
    if not search_text:
        return df
    needle = search_text.lower()
    mask = df['title'].map(lambda title: needle in str(title).lower())
    return df[mask.astype(bool)]


def filter_by_codes(df, code_ids=()):
    """Keeps papers carrying all of `code_ids`. Empty selection matches all."""
    code_ids = list(code_ids or [])
    if not code_ids:
        return df
    mask = df['codes'].map(lambda codes: paper_has_all_codes(codes, code_ids))
    return df[mask.astype(bool)]


def apply_paper_filters(df, search_text='', code_ids=(), source_type='all'):
    """Combines source type, title search and tag selection by logical AND."""
    filtered = filter_by_source_type(df, source_type)
    filtered = filter_by_title(filtered, search_text)
    return filter_by_codes(filtered, code_ids)


def sort_papers_for_explorer(df):
    """Newest first; papers with unknown year sort as year 0. Ties keep input order."""
    if df.empty:
        return df
    sort_key = df['year'].fillna(0).astype(int)
    return df.assign(_sort_year=sort_key).sort_values('_sort_year', ascending=False, kind='stable').drop(columns='_sort_year')


# --- Taxonomy Lookups ---
def codes_for_dimension(codes_df, dimension, sort_by_id=True):
    """Returns the code records of one dimension, sorted by id unless `sort_by_id` is False."""
    if not dimension or codes_df is None or codes_df.empty:
        return []
    dim_codes = codes_df[codes_df['dimension'] == dimension]
    if sort_by_id:
        dim_codes = dim_codes.sort_values('id', kind='stable')
    return dim_codes.to_dict('records')


def code_label(code_map, code_id):
    """Label of a code, or a 'Code <id>' fallback for ids missing from the map."""
    record = code_map.get(code_id) if code_map else None
    if record is None:
        return f"Code {code_id}"
    return record['label']


def group_paper_codes(codes, code_map):
    """
    Groups a paper's codes for the detail page.
    Returns:
        dict: aspect -> dimension -> list of code records. Aspects follow ASPECT_ORDER
        (unknown aspects afterwards, sorted); dimensions are sorted; unknown ids are skipped.
    """
    grouped = {}
    for code_id in sorted(codes):
        record = code_map.get(code_id)
        if record is None:
            continue
        grouped.setdefault(record['aspect'], {}).setdefault(record['dimension'], []).append(record)

    aspect_sequence = ASPECT_ORDER + sorted(a for a in grouped if a not in ASPECT_ORDER)
    return {
        aspect: {dim: grouped[aspect][dim] for dim in sorted(grouped[aspect])}
        for aspect in aspect_sequence if aspect in grouped
    }


# --- Co-occurrence ---
@dataclass
class CooccurrenceResult:
    """
    Cross-tabulation of two dimensions.
    `counts`, `normalized` are indexed by row code id x column code id;
    `row_totals` counts papers carrying each row code regardless of column.
    """
    dimension_a: str
    dimension_b: str
    row_codes: list = field(default_factory=list)
    col_codes: list = field(default_factory=list)
    counts: pd.DataFrame = field(default_factory=pd.DataFrame)
    row_totals: pd.Series = field(default_factory=lambda: pd.Series(dtype=int))
    normalized: pd.DataFrame = field(default_factory=pd.DataFrame)
    max_count: int = 0
    is_symmetric: bool = False

    @property
    def is_empty(self):
        return not self.row_codes or not self.col_codes

    def is_diagonal(self, row_id, col_id):
        return self.is_symmetric and row_id == col_id

    def is_clickable(self, row_id, col_id):
        return not self.is_diagonal(row_id, col_id) and int(self.counts.at[row_id, col_id]) > 0

    def cell_summary(self, row_id, col_id):
        """Tooltip values for one cell: count, row total and share of the row's co-occurrences."""
        return {
            'count': int(self.counts.at[row_id, col_id]),
            'total': int(self.row_totals.get(row_id, 0)),
            'percent': float(self.normalized.at[row_id, col_id]),
        }


def code_membership_matrix(papers_df, code_ids):
    """papers x codes 0/1 matrix; column j is 1 where the paper carries code_ids[j]."""
    return np.array(
        [[1 if code_id in codes else 0 for code_id in code_ids] for codes in papers_df['codes']],
        dtype=int,
    ).reshape(len(papers_df), len(code_ids))


def compute_cooccurrence(papers_df, codes_df, dimension_a, dimension_b):
    """
    Counts papers carrying both codes for every (dimension_a code, dimension_b code) pair.
    When both dimensions are the same, only pairs with row id <= column id are counted and
    then mirrored; the diagonal is forced to zero and kept out of the row normalisation
    and of `max_count`.
    """
    row_codes = codes_for_dimension(codes_df, dimension_a)
    col_codes = codes_for_dimension(codes_df, dimension_b)
    if not row_codes or not col_codes:
        logger.info(f"Co-occurrence needs two dimensions with codes (got '{dimension_a}', '{dimension_b}').")
        return CooccurrenceResult(dimension_a, dimension_b)

    is_symmetric = dimension_a == dimension_b
    row_ids = [int(c['id']) for c in row_codes]
    col_ids = [int(c['id']) for c in col_codes]
    logger.info(f"Calculating co-occurrence for '{dimension_a}' x '{dimension_b}' over {len(papers_df)} papers...")

    row_membership = code_membership_matrix(papers_df, row_ids)
    col_membership = row_membership if is_symmetric else code_membership_matrix(papers_df, col_ids)

    row_totals = row_membership.sum(axis=0)
    counts = row_membership.T @ col_membership

    if is_symmetric:
        # ids are sorted ascending, so the upper triangle holds the row id <= column id pairs
        upper = np.triu(counts)
        counts = upper + np.triu(upper, k=1).T
        np.fill_diagonal(counts, 0)

    row_sums = counts.sum(axis=1, keepdims=True)
    normalized = np.divide(
        counts, row_sums,
        out=np.zeros(counts.shape, dtype=float),
        where=row_sums > 0,
    )
    max_count = int(counts.max()) if counts.size else 0

    logger.info(f"Co-occurrence complete. Max off-diagonal count: {max_count}.")
    return CooccurrenceResult(
        dimension_a=dimension_a,
        dimension_b=dimension_b,
        row_codes=row_codes,
        col_codes=col_codes,
        counts=pd.DataFrame(counts, index=row_ids, columns=col_ids),
        row_totals=pd.Series(row_totals, index=row_ids),
        normalized=pd.DataFrame(normalized, index=row_ids, columns=col_ids),
        max_count=max_count,
        is_symmetric=is_symmetric,
    )


def cooccurrence_intensity(count, max_count):
    """Share of the grid maximum, in [0, 1], used for colouring a cell."""
    if max_count <= 0:
        return 0.0
    return count / max_count


# --- Yearly Trends ---
def year_bin_start(year, min_year, bin_size):
    return ((year - min_year) // bin_size) * bin_size + min_year


def format_year_bin_label(year_bin, bin_size):
    if bin_size > 1:
        return f"{year_bin}-{year_bin + bin_size - 1}"
    return f"{year_bin}"


def compute_trend_series(papers_df, code_ids, bin_size):
    """
    Bins papers by year and counts, per bin, all papers ('total') and the papers
    carrying each selected code (one int column per code id).
    Every bin from the earliest to the latest known year is present, including empty
    ones. Papers without a year are ignored; no known years gives an empty frame.
    """
    bin_size = clamp_bin_size(bin_size)
    code_ids = list(dict.fromkeys(code_ids or []))
    columns = ['year_bin', 'year_label', 'total'] + code_ids

    dated = papers_df[papers_df['year'].notna()]
    if dated.empty:
        logger.info("No papers with a known year. Trend series is empty.")
        return pd.DataFrame(columns=columns)

    years = dated['year'].astype(int)
    min_year, max_year = int(years.min()), int(years.max())
    paper_bins = years.map(lambda y: year_bin_start(y, min_year, bin_size))

    series = pd.DataFrame({'year_bin': list(range(min_year, max_year + 1, bin_size))})
    series['year_label'] = series['year_bin'].map(lambda b: format_year_bin_label(b, bin_size))
    series['total'] = series['year_bin'].map(paper_bins.value_counts()).fillna(0).astype(int)
    for code_id in code_ids:
        has_code = dated['codes'].map(lambda codes: code_id in codes).astype(bool)
        series[code_id] = series['year_bin'].map(paper_bins[has_code].value_counts()).fillna(0).astype(int)

    logger.info(f"Trend series: {len(series)} bins of {bin_size} year(s) from {min_year} to {max_year}.")
    return series[columns]


# --- Distribution ---
def _percent(count, total):
    return count / total if total else 0.0


def _dimension_rank(name):
    return DIMENSION_ORDER.get(name, UNORDERED_DIMENSION_RANK)


def count_papers_with_any(papers_df, code_ids):
    """Number of papers carrying at least one of `code_ids` (each paper counted once)."""
    code_ids = frozenset(int(c) for c in code_ids)
    if papers_df.empty or not code_ids:
        return 0
    return int(papers_df['codes'].map(lambda codes: not code_ids.isdisjoint(codes)).sum())


def compute_dimension_distribution(papers_df, codes_df, aspect):
    """
    Per dimension of `aspect`: papers carrying at least one of its codes.
    Ordered by the curated dimension order; unknown dimensions go last, alphabetically.
    """
    total = len(papers_df)
    aspect_codes = codes_df[codes_df['aspect'] == aspect]
    rows = []
    for dimension in sorted(aspect_codes['dimension'].unique()):
        dim_ids = aspect_codes.loc[aspect_codes['dimension'] == dimension, 'id']
        count = count_papers_with_any(papers_df, dim_ids)
        rows.append({'name': dimension, 'count': count, 'total': total, 'percent': _percent(count, total), 'type': 'dimension'})

    distribution = pd.DataFrame(rows, columns=['name', 'count', 'total', 'percent', 'type'])
    if distribution.empty:
        logger.warning(f"No dimensions found for aspect '{aspect}'.")
        return distribution
    distribution['_rank'] = distribution['name'].map(_dimension_rank)
    return distribution.sort_values('_rank', kind='stable').drop(columns='_rank').reset_index(drop=True)


def compute_code_distribution(papers_df, codes_df, dimension):
    """Per code of `dimension`: papers carrying that exact code, most frequent first."""
    total = len(papers_df)
    rows = []
    for record in codes_for_dimension(codes_df, dimension, sort_by_id=False):
        count = count_papers_with_any(papers_df, [record['id']])
        rows.append({'id': int(record['id']), 'name': record['label'], 'count': count, 'total': total,
                     'percent': _percent(count, total), 'type': 'code'})

    distribution = pd.DataFrame(rows, columns=['id', 'name', 'count', 'total', 'percent', 'type'])
    return distribution.sort_values('count', ascending=False, kind='stable').reset_index(drop=True)


def compute_aspect_coverage(papers_df, codes_df):
    """Per aspect: papers carrying any code of that aspect (the distribution view's aspect menu)."""
    total = len(papers_df)
    aspects = ASPECT_ORDER + [a for a in dict.fromkeys(codes_df['aspect']) if a not in ASPECT_ORDER]
    rows = []
    for aspect in aspects:
        count = count_papers_with_any(papers_df, codes_df.loc[codes_df['aspect'] == aspect, 'id'])
        rows.append({'aspect': aspect, 'count': count, 'total': total, 'percent': _percent(count, total)})
    return pd.DataFrame(rows, columns=['aspect', 'count', 'total', 'percent'])


# --- Presets and Default Selections ---
def top_codes_for_dimension(papers_df, codes_df, dimension, n, exclude_labels=()):
    """Ids of the `n` most frequent codes of a dimension, ignoring `exclude_labels`."""
    distribution = compute_code_distribution(papers_df, codes_df, dimension)
    if distribution.empty:
        return []
    distribution = distribution[~distribution['name'].isin(list(exclude_labels))]
    return [int(code_id) for code_id in distribution['id'].head(n)]


def resolve_trend_preset(preset, papers_df, codes_df):
    """
    Turns a trend preset definition into concrete selections.
    Returns:
        tuple: (dimension, list of code ids, bin size)
    """
    dimension = preset['dimension']
    exclude = list(preset.get('exclude', []))
    if 'top' in preset:
        code_ids = top_codes_for_dimension(papers_df, codes_df, dimension, preset['top'], exclude)
    else:
        labels = preset.get('labels')
        code_ids = [
            int(record['id']) for record in codes_for_dimension(codes_df, dimension, sort_by_id=False)
            if record['label'] not in exclude and (labels is None or record['label'] in labels)
        ]
    if not code_ids:
        logger.warning(f"Trend preset for '{dimension}' matched no codes.")
    return dimension, code_ids, clamp_bin_size(preset.get('bin_size', 3))


def resolve_cooccurrence_preset(preset, codes_df):
    """
    Returns:
        tuple: (dimension_a, dimension_b, list of code ids for the co-occurrence data filter)
    """
    filter_code_ids = []
    filter_label = preset.get('filter_label')
    if filter_label:
        matches = codes_df[codes_df['label'] == filter_label]
        if matches.empty:
            logger.warning(f"Co-occurrence preset filter code '{filter_label}' not found.")
        else:
            filter_code_ids = [int(matches['id'].iloc[0])]
    return preset['dimension_a'], preset['dimension_b'], filter_code_ids
