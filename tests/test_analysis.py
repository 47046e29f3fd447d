"""
Aggregation engine tests: filters, co-occurrence, trends and distribution.
"""

import pandas as pd
import pytest

from analysis import (
    paper_has_all_codes, filter_by_source_type, filter_by_title, apply_paper_filters,
    sort_papers_for_explorer, codes_for_dimension, code_label, group_paper_codes,
    compute_cooccurrence, cooccurrence_intensity, year_bin_start, format_year_bin_label,
    compute_trend_series, count_papers_with_any, compute_dimension_distribution,
    compute_code_distribution, compute_aspect_coverage, top_codes_for_dimension,
    resolve_trend_preset, resolve_cooccurrence_preset,
)
from conftest import make_papers


class TestFilters:
    def test_has_all_codes_is_conjunctive(self):
        assert paper_has_all_codes(frozenset({1, 2, 3}), [1, 3])
        assert not paper_has_all_codes(frozenset({1, 2}), [1, 3])
        assert paper_has_all_codes(frozenset(), [])

    def test_source_type(self, papers_df):
        assert list(filter_by_source_type(papers_df, 'video')['id']) == [2]
        assert list(filter_by_source_type(papers_df, 'paper')['id']) == [1, 3, 4, 5]
        assert len(filter_by_source_type(papers_df, 'all')) == 5

    def test_title_search_is_case_insensitive(self, papers_df):
        assert list(filter_by_title(papers_df, 'JAZZ')['id']) == [2]
        assert len(filter_by_title(papers_df, '')) == 5

    def test_tag_selection_requires_every_code(self, papers_df):
        assert list(apply_paper_filters(papers_df, code_ids=[1, 2])['id']) == [2, 4]
        assert list(apply_paper_filters(papers_df, code_ids=[1, 2, 3])['id']) == [4]

    def test_filters_combine_with_and(self, papers_df):
        filtered = apply_paper_filters(papers_df, search_text='a', code_ids=[1], source_type='paper')
        assert list(filtered['id']) == [1, 4]

    def test_explorer_sort_newest_first_unknown_year_last(self, papers_df):
        assert list(sort_papers_for_explorer(papers_df)['id']) == [3, 5, 2, 1, 4]

    def test_explorer_sort_is_stable_for_equal_years(self):
        papers = make_papers([
            (1, 'A', 2020, 'paper', set()),
            (2, 'B', 2020, 'paper', set()),
            (3, 'C', None, 'paper', set()),
            (4, 'D', None, 'paper', set()),
        ])
        assert list(sort_papers_for_explorer(papers)['id']) == [1, 2, 3, 4]


class TestTaxonomyLookups:
    def test_codes_for_dimension_sorted_by_id(self, codes_df):
        shuffled = codes_df.iloc[::-1].reset_index(drop=True)
        assert [c['id'] for c in codes_for_dimension(shuffled, 'Use Purpose')] == [1, 2]
        assert [c['id'] for c in codes_for_dimension(shuffled, 'Use Purpose', sort_by_id=False)] == [2, 1]
        assert codes_for_dimension(codes_df, '') == []

    def test_code_label_falls_back_for_unknown_ids(self, code_map):
        assert code_label(code_map, 4) == 'Programming interface'
        assert code_label(code_map, 42) == 'Code 42'

    def test_group_paper_codes(self, code_map):
        grouped = group_paper_codes(frozenset({6, 3, 1, 99}), code_map)
        assert list(grouped) == ['Usage Context', 'Technology']
        assert list(grouped['Usage Context']) == ['Target User', 'Use Purpose']
        assert [c['id'] for c in grouped['Usage Context']['Use Purpose']] == [1]


class TestCooccurrence:
    def test_cross_dimension_counts(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df, codes_df, 'Use Purpose', 'Interface')
        assert not result.is_symmetric
        assert result.counts.loc[[1, 2], [4, 5]].values.tolist() == [[2, 0], [1, 1]]
        assert result.row_totals.to_dict() == {1: 3, 2: 3}
        assert result.max_count == 2
        assert result.normalized.at[2, 4] == pytest.approx(0.5)
        assert result.normalized.at[1, 4] == pytest.approx(1.0)

    def test_same_dimension_is_symmetric_with_zero_diagonal(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df, codes_df, 'Use Purpose', 'Use Purpose')
        assert result.is_symmetric
        assert result.counts.at[1, 2] == 2
        assert result.counts.at[2, 1] == 2
        assert result.counts.at[1, 1] == 0
        assert result.counts.at[2, 2] == 0
        assert (result.counts.values == result.counts.values.T).all()

    def test_diagonal_does_not_affect_max_or_normalisation(self, codes_df):
        # Code 1 alone on many papers would dominate a counted diagonal
        papers = make_papers([(i, f'P{i}', 2020, 'paper', {1}) for i in range(1, 6)]
                             + [(6, 'P6', 2020, 'paper', {1, 2})])
        result = compute_cooccurrence(papers, codes_df, 'Use Purpose', 'Use Purpose')
        assert result.max_count == 1
        assert result.normalized.at[1, 2] == pytest.approx(1.0)
        assert result.normalized.at[1, 1] == 0
        assert result.row_totals[1] == 6

    def test_diagonal_cells_are_not_clickable(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df, codes_df, 'Use Purpose', 'Use Purpose')
        assert result.is_diagonal(1, 1)
        assert not result.is_clickable(1, 1)
        assert result.is_clickable(1, 2)

    def test_zero_rows_normalise_to_zero(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df, codes_df, 'Model', 'Interface')
        assert result.counts.values.sum() == 0
        assert (result.normalized.values == 0).all()
        assert result.max_count == 0

    def test_missing_dimension_gives_empty_result(self, papers_df, codes_df):
        assert compute_cooccurrence(papers_df, codes_df, '', 'Interface').is_empty
        assert compute_cooccurrence(papers_df, codes_df, 'Use Purpose', 'Nope').is_empty

    def test_no_papers_gives_zero_grid(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df.iloc[0:0], codes_df, 'Use Purpose', 'Interface')
        assert not result.is_empty
        assert result.counts.values.sum() == 0

    def test_cell_summary(self, papers_df, codes_df):
        result = compute_cooccurrence(papers_df, codes_df, 'Use Purpose', 'Interface')
        assert result.cell_summary(2, 5) == {'count': 1, 'total': 3, 'percent': pytest.approx(0.5)}

    def test_intensity(self):
        assert cooccurrence_intensity(2, 4) == 0.5
        assert cooccurrence_intensity(0, 0) == 0.0


class TestTrends:
    def test_year_bins(self):
        assert year_bin_start(2010, 2010, 3) == 2010
        assert year_bin_start(2012, 2010, 3) == 2010
        assert year_bin_start(2013, 2010, 3) == 2013
        assert format_year_bin_label(2010, 3) == '2010-2012'
        assert format_year_bin_label(2010, 1) == '2010'

    def test_binned_counts(self, papers_df):
        series = compute_trend_series(papers_df, [1, 2], 3)
        assert list(series['year_bin']) == [2010, 2013]
        assert list(series['year_label']) == ['2010-2012', '2013-2015']
        assert list(series['total']) == [2, 2]
        assert list(series[1]) == [2, 0]
        assert list(series[2]) == [1, 1]

    def test_empty_bins_are_filled(self, papers_df):
        series = compute_trend_series(papers_df, [1], 1)
        assert list(series['year_bin']) == [2010, 2011, 2012, 2013, 2014]
        assert series.set_index('year_bin').at[2012, 'total'] == 0
        assert series.set_index('year_bin').at[2012, 1] == 0

    def test_unknown_years_are_ignored(self, papers_df):
        series = compute_trend_series(papers_df, [3], 10)
        assert list(series['total']) == [4]
        # Paper 4 carries code 3 but has no year
        assert list(series[3]) == [1]

    def test_no_known_years_gives_empty_series(self):
        papers = make_papers([(1, 'A', None, 'paper', {1})])
        series = compute_trend_series(papers, [1], 3)
        assert series.empty
        assert list(series.columns) == ['year_bin', 'year_label', 'total', 1]

    def test_out_of_range_bin_size_is_clamped(self, papers_df):
        assert len(compute_trend_series(papers_df, [], 0)) == 5
        assert len(compute_trend_series(papers_df, [], 50)) == 1


class TestDistribution:
    def test_papers_counted_once_per_dimension(self, papers_df):
        assert count_papers_with_any(papers_df, [1, 2]) == 4
        assert count_papers_with_any(papers_df, []) == 0

    def test_dimension_distribution_follows_curated_order(self, papers_df, codes_df):
        distribution = compute_dimension_distribution(papers_df, codes_df, 'Usage Context')
        assert list(distribution['name']) == ['Use Purpose', 'Target User']
        assert list(distribution['count']) == [4, 2]
        assert distribution.iloc[0]['percent'] == pytest.approx(0.8)
        assert set(distribution['type']) == {'dimension'}

    def test_unknown_dimensions_sort_last(self, papers_df, codes_df):
        extra = pd.DataFrame([(7, 'Usage Context', 'Aardvark Factor', 'Aardvark')], columns=codes_df.columns)
        distribution = compute_dimension_distribution(papers_df, pd.concat([codes_df, extra]), 'Usage Context')
        assert list(distribution['name']) == ['Use Purpose', 'Target User', 'Aardvark Factor']

    def test_code_distribution_most_frequent_first(self, papers_df, codes_df):
        distribution = compute_code_distribution(papers_df, codes_df, 'Interface')
        assert list(distribution['id']) == [4, 5]
        assert list(distribution['count']) == [2, 1]
        assert set(distribution['type']) == {'code'}

    def test_code_distribution_ties_keep_order(self, papers_df, codes_df):
        distribution = compute_code_distribution(papers_df, codes_df, 'Use Purpose')
        assert list(distribution['id']) == [1, 2]
        assert list(distribution['count']) == [3, 3]

    def test_empty_collection_has_zero_percent(self, papers_df, codes_df):
        distribution = compute_code_distribution(papers_df.iloc[0:0], codes_df, 'Interface')
        assert list(distribution['count']) == [0, 0]
        assert list(distribution['percent']) == [0.0, 0.0]

    def test_aspect_coverage(self, papers_df, codes_df):
        coverage = compute_aspect_coverage(papers_df, codes_df).set_index('aspect')
        assert coverage.loc['Usage Context', 'count'] == 4
        assert coverage.loc['Interaction', 'count'] == 3
        assert coverage.loc['Technology', 'count'] == 1
        assert coverage.loc['Ecosystem', 'count'] == 0


class TestPresets:
    def test_top_codes(self, papers_df, codes_df):
        assert top_codes_for_dimension(papers_df, codes_df, 'Interface', 1) == [4]
        assert top_codes_for_dimension(papers_df, codes_df, 'Interface', 3, ['Programming interface']) == [5]

    def test_trend_preset_by_labels(self, papers_df, codes_df):
        preset = {"dimension": "Interface", "labels": ["Embodied agent", "XR Interface"], "bin_size": 2}
        assert resolve_trend_preset(preset, papers_df, codes_df) == ("Interface", [5], 2)

    def test_trend_preset_by_exclusion(self, papers_df, codes_df):
        preset = {"dimension": "Use Purpose", "exclude": ["Education"], "bin_size": 3}
        assert resolve_trend_preset(preset, papers_df, codes_df) == ("Use Purpose", [1], 3)

    def test_trend_preset_by_frequency(self, papers_df, codes_df):
        preset = {"dimension": "Interface", "top": 1}
        assert resolve_trend_preset(preset, papers_df, codes_df) == ("Interface", [4], 3)

    def test_cooccurrence_preset_with_filter_code(self, codes_df):
        preset = {"dimension_a": "Use Purpose", "dimension_b": "Interface", "filter_label": "Musicians"}
        assert resolve_cooccurrence_preset(preset, codes_df) == ("Use Purpose", "Interface", [3])

    def test_cooccurrence_preset_unknown_filter_code(self, codes_df):
        preset = {"dimension_a": "Use Purpose", "dimension_b": "Interface", "filter_label": "Personalization"}
        assert resolve_cooccurrence_preset(preset, codes_df) == ("Use Purpose", "Interface", [])


class TestAggregationProperties:
    def test_row_total_is_at_least_largest_cell(self, papers_df, codes_df):
        for dim_a, dim_b in [('Use Purpose', 'Interface'), ('Use Purpose', 'Use Purpose'), ('Interface', 'Target User')]:
            result = compute_cooccurrence(papers_df, codes_df, dim_a, dim_b)
            for row_id in result.counts.index:
                assert result.row_totals[row_id] >= result.counts.loc[row_id].max()

    def test_bins_cover_every_step_between_min_and_max_year(self):
        papers = make_papers([
            (1, 'A', 2010, 'paper', {1}),
            (2, 'B', 2019, 'paper', {2}),
        ])
        series = compute_trend_series(papers, [1], 3)
        assert list(series['year_bin']) == [2010, 2013, 2016, 2019]
        assert list(series['total']) == [1, 0, 0, 1]

    def test_three_paper_trend_scenario(self):
        code_a, code_b, code_c = 1, 2, 3
        papers = make_papers([
            (1, 'P1', 2020, 'paper', {code_a, code_b}),
            (2, 'P2', 2020, 'paper', {code_b, code_c}),
            (3, 'P3', 2023, 'paper', {code_a}),
        ])
        series = compute_trend_series(papers, [code_a], 2).set_index('year_bin')
        assert list(series.index) == [2020, 2022]
        assert series[code_a].to_dict() == {2020: 1, 2022: 1}
        assert series['total'].to_dict() == {2020: 2, 2022: 1}

    def test_tag_filter_matches_superset_only(self):
        papers = make_papers([(1, 'A', 2020, 'paper', {1, 2, 3})])
        assert len(apply_paper_filters(papers, code_ids=[1, 2])) == 1
        assert apply_paper_filters(papers, code_ids=[1, 4]).empty

    def test_empty_filters_return_collection_unchanged(self, papers_df):
        filtered = apply_paper_filters(papers_df, search_text='', code_ids=[], source_type='all')
        assert list(filtered['id']) == list(papers_df['id'])
        assert filtered['id'].is_unique
