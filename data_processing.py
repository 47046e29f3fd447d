# %%
# =============================================================================
# Data Loading, Preprocessing, and Taxonomy Index Functions
# =============================================================================
import pandas as pd
import os
import requests
from io import StringIO
from concurrent.futures import ThreadPoolExecutor
from tqdm import tqdm

# Import logger, constants and utility functions from config_utils
from config_utils import (
    logger, PAPER_CODES_CSV, METADATA_CSV, CODE_MAPPING_CSV, SENTINEL_CODES, REQUEST_TIMEOUT,
    clean_cell, parse_int_prefix, classify_source_type,
)

METADATA_COLUMNS = ['title', 'link', 'resource_1', 'resource_2', 'resource_3', 'venue', 'year', 'abstract', 'authors']
MAPPING_COLUMNS = ['id', 'old_aspect', 'aspect', 'old_dimension', 'dimension', 'old_code', 'label']
PAPER_COLUMNS = ['id', 'title', 'url', 'venue', 'year', 'abstract', 'authors', 'additional_resources', 'source_type', 'codes']
CODE_COLUMNS = ['id', 'aspect', 'dimension', 'label']


def _is_url(source):
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def _keep_bad_line(bad_line):
    # Rows with surplus fields keep their position; pandas drops the extras.
    return bad_line


def _fetch_remote_csv(url):
    """Downloads a remote CSV and returns it as a text buffer."""
    logger.info(f"Fetching {url}...")
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status() # Raise an exception for bad status codes
    except requests.exceptions.RequestException as e:
        logger.error(f"Error fetching {url}: {e}")
        raise
    response.encoding = "utf-8"
    return StringIO(response.text)


def _read_raw_csv(source, names=None):
    """
    Reads a CSV source (path, URL or buffer) as untyped strings.
    Blank lines are kept so row ordinals stay aligned with the source file.
    """
    if _is_url(source):
        source = _fetch_remote_csv(source)
    return pd.read_csv(
        source,
        header=None,
        names=names,
        index_col=False,
        dtype=str,
        keep_default_na=False, # 'NA' is a real code label
        skip_blank_lines=False,
        engine='python',
        on_bad_lines=_keep_bad_line,
        encoding='utf-8',
    )


# --- Source Parsers ---
def parse_paper_codes_csv(source):
    """
    Parses the tag-assignment table.
    Header row is `paper_id, tag_id_1, tag_id_2, ...`; each data row holds a paper id
    followed by `1` for every tag assigned to that paper.
    Returns:
        dict: paper id -> frozenset of tag ids.
    """
    logger.info(f"Parsing paper code assignments from {source}...")
    df_raw = _read_raw_csv(source)
    if df_raw.empty:
        logger.warning("Paper code table is empty.")
        return {}

    header = [clean_cell(h) for h in df_raw.iloc[0].tolist()]
    column_code_ids = []
    for cell in header[1:]:
        code_id = pd.to_numeric(cell, errors='coerce')
        # Non-numeric or zero header cells do not name a tag
        if pd.isna(code_id) or code_id != int(code_id) or int(code_id) == 0:
            column_code_ids.append(None)
        else:
            column_code_ids.append(int(code_id))

    paper_codes = {}
    skipped_rows = 0
    for _, row in df_raw.iloc[1:].iterrows():
        values = row.tolist()
        if all(clean_cell(v) == "" for v in values):
            continue # Blank line
        if len(values) < 2 or all(pd.isna(v) for v in values[1:]):
            skipped_rows += 1
            continue
        paper_id = parse_int_prefix(values[0])
        if paper_id is None:
            skipped_rows += 1
            continue
        codes = set()
        for code_id, cell in zip(column_code_ids, values[1:]):
            if code_id is not None and clean_cell(cell) == "1":
                codes.add(code_id)
        if paper_id in paper_codes:
            logger.warning(f"Duplicate paper id {paper_id} in code table. Using last occurrence.")
        paper_codes[paper_id] = frozenset(codes)

    if skipped_rows:
        logger.warning(f"Skipped {skipped_rows} malformed rows in paper code table.")
    logger.info(f"Parsed code assignments for {len(paper_codes)} papers ({len([c for c in column_code_ids if c])} tag columns).")
    return paper_codes


def parse_metadata_csv(source):
    """
    Parses the paper metadata table. The header row is ignored and the 1-based
    data row ordinal is the paper id. Blank rows are skipped, but still
    consume their id; rows with an empty title are kept.
    """
    logger.info(f"Parsing paper metadata from {source}...")
    df_raw = _read_raw_csv(source, names=METADATA_COLUMNS)
    df_raw = df_raw.iloc[1:].reset_index(drop=True)
    df_raw['id'] = df_raw.index + 1

    for col in tqdm(METADATA_COLUMNS, desc="Cleaning metadata columns"):
        df_raw[col] = df_raw[col].map(clean_cell)
    is_blank = (df_raw[METADATA_COLUMNS] == "").all(axis=1)
    df = df_raw[~is_blank].copy()
    missing_title = int((df['title'] == "").sum())
    if missing_title:
        logger.warning(f"{missing_title} metadata rows have no title.")

    df['year'] = df['year'].map(parse_int_prefix).astype('Int64')
    df['additional_resources'] = df[['resource_1', 'resource_2', 'resource_3']].apply(
        lambda r: [res for res in r.tolist() if res], axis=1, result_type='reduce'
    ) if not df.empty else pd.Series(dtype=object)
    df['source_type'] = [
        classify_source_type(venue, [link] + resources)
        for venue, link, resources in zip(df['venue'], df['link'], df['additional_resources'])
    ]
    # object dtype, so empty cells hold None rather than a string-dtype NaN
    for col in ('abstract', 'authors'):
        df[col] = pd.Series([s or None for s in df[col]], index=df.index, dtype=object)
    df = df.rename(columns={'link': 'url'})

    logger.info(f"Parsed metadata for {len(df)} papers ({(df['source_type'] == 'video').sum()} videos).")
    return df[['id', 'title', 'url', 'venue', 'year', 'abstract', 'authors', 'additional_resources', 'source_type']].reset_index(drop=True)


def parse_code_mapping_csv(source):
    """
    Parses the tag mapping table. Only the id and the new aspect/dimension/code
    columns are retained; rows with a non-numeric id are skipped.
    """
    logger.info(f"Parsing code mapping from {source}...")
    df_raw = _read_raw_csv(source, names=MAPPING_COLUMNS)
    df_raw = df_raw.iloc[1:].copy()
    for col in MAPPING_COLUMNS:
        df_raw[col] = df_raw[col].map(clean_cell)

    ids = df_raw['id'].map(parse_int_prefix)
    invalid = ids.isna()
    if invalid.any():
        logger.warning(f"Skipping {int(invalid.sum())} mapping rows with a non-numeric id.")
    df = df_raw[~invalid].copy()
    df['id'] = ids[~invalid].astype(int)

    logger.info(f"Parsed {len(df)} code mapping rows.")
    return df[CODE_COLUMNS].reset_index(drop=True)


def filter_sentinel_codes(codes_df):
    """Drops placeholder codes ('Other', 'NA') from the active tag set."""
    is_sentinel = codes_df['label'].isin(SENTINEL_CODES)
    if is_sentinel.any():
        logger.info(f"Excluding {int(is_sentinel.sum())} sentinel codes {SENTINEL_CODES}.")
    return codes_df[~is_sentinel].reset_index(drop=True)


def merge_papers(metadata_df, paper_codes):
    """
    Joins metadata with code assignments. Only ids present in both sources survive.
    Tag ids without a retained mapping stay on the paper and are ignored downstream.
    """
    in_both = metadata_df['id'].isin(list(paper_codes.keys()))
    dropped = int((~in_both).sum())
    if dropped:
        logger.info(f"{dropped} metadata rows have no code assignments and are excluded.")
    papers_df = metadata_df[in_both].copy()
    papers_df['codes'] = papers_df['id'].map(paper_codes)
    if papers_df.empty:
        papers_df['codes'] = pd.Series(dtype=object)
    return papers_df[PAPER_COLUMNS].reset_index(drop=True)


# --- Dataset Loading (concurrent fetch of the three sources) ---
def load_dataset(paper_codes_src=PAPER_CODES_CSV, metadata_src=METADATA_CSV, mapping_src=CODE_MAPPING_CSV):
    """
    Loads and merges the three dataset sources.
    The sources are fetched and parsed concurrently; the load waits for all of them
    and fails as a whole if any one fails.
    Returns:
        papers_df (pd.DataFrame): one row per paper, `codes` holds a frozenset of tag ids.
        codes_df (pd.DataFrame): active tag definitions (id, aspect, dimension, label).
        (None, None) on failure.
    """
    logger.info("Loading dataset...")
    for source in (paper_codes_src, metadata_src, mapping_src):
        if isinstance(source, str) and not _is_url(source) and not os.path.exists(source):
            logger.error(f"ERROR: Data file not found: {source}")
            return None, None

    try:
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="dataset-fetch") as executor:
            paper_codes_future = executor.submit(parse_paper_codes_csv, paper_codes_src)
            metadata_future = executor.submit(parse_metadata_csv, metadata_src)
            mapping_future = executor.submit(parse_code_mapping_csv, mapping_src)
            paper_codes = paper_codes_future.result()
            metadata_df = metadata_future.result()
            mapping_df = mapping_future.result()
    except Exception as e:
        logger.error(f"Failed to load or parse data: {e}", exc_info=True)
        return None, None

    codes_df = filter_sentinel_codes(mapping_df)
    papers_df = merge_papers(metadata_df, paper_codes)
    if papers_df.empty:
        logger.warning("No papers present in both metadata and code assignments.")
    logger.info(f"Dataset loaded: {len(papers_df)} papers, {len(codes_df)} codes.")
    return papers_df, codes_df


# --- Taxonomy Index ---
def build_aspect_groups(codes_df):
    """Groups code records by aspect, keeping input order within each group."""
    aspect_groups = {}
    for record in codes_df.to_dict('records'):
        aspect_groups.setdefault(record['aspect'], []).append(record)
    return aspect_groups


def build_dimension_groups(codes_df):
    """Maps each aspect to its distinct dimension names, sorted ascending."""
    dimension_groups = {}
    for record in codes_df.to_dict('records'):
        dimension_groups.setdefault(record['aspect'], set()).add(record['dimension'])
    return {aspect: sorted(dims) for aspect, dims in dimension_groups.items()}


def build_code_map(codes_df):
    return {int(record['id']): record for record in codes_df.to_dict('records')}
