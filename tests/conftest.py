# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds the project root to sys.path so the flat modules import directly.
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from data_processing import PAPER_COLUMNS, CODE_COLUMNS, build_code_map  # noqa: E402


def make_papers(rows):
    """rows: (id, title, year, source_type, codes)"""
    records = [
        {
            'id': paper_id,
            'title': title,
            'url': f"https://example.org/{paper_id}",
            'venue': 'Video' if source_type == 'video' else 'NIME',
            'year': year,
            'abstract': None,
            'authors': None,
            'additional_resources': [],
            'source_type': source_type,
            'codes': frozenset(codes),
        }
        for paper_id, title, year, source_type, codes in rows
    ]
    df = pd.DataFrame(records, columns=PAPER_COLUMNS)
    df['year'] = df['year'].astype('Int64')
    return df


@pytest.fixture
def codes_df():
    return pd.DataFrame(
        [
            (1, 'Usage Context', 'Use Purpose', 'Performance'),
            (2, 'Usage Context', 'Use Purpose', 'Education'),
            (3, 'Usage Context', 'Target User', 'Musicians'),
            (4, 'Interaction', 'Interface', 'Programming interface'),
            (5, 'Interaction', 'Interface', 'Embodied agent'),
            (6, 'Technology', 'Model', 'Generative AI'),
        ],
        columns=CODE_COLUMNS,
    )


@pytest.fixture
def papers_df():
    return make_papers([
        (1, 'Live Coding Agent', 2010, 'paper', {1, 3, 4}),
        (2, 'Jazz Improviser', 2011, 'video', {1, 2, 4}),
        (3, 'Classroom Companion', 2014, 'paper', {2, 5}),
        (4, 'Drum Partner', None, 'paper', {1, 2, 3}),
        (5, 'Generative Accompanist', 2013, 'paper', {6}),
    ])


@pytest.fixture
def code_map(codes_df):
    return build_code_map(codes_df)
