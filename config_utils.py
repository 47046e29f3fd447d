# %%
# =============================================================================
# Configuration, Logging, and Utilities
# =============================================================================
import logging
import os
import re
import pandas as pd
from io import StringIO # Needed for logging

# --- General Configuration ---
DATA_DIR = "data"
PAPER_CODES_CSV = os.path.join(DATA_DIR, "paper_data.csv") # paper_id, tag_id_1, tag_id_2, ...
METADATA_CSV = os.path.join(DATA_DIR, "new_paper_metadata.csv") # Title, Link, Resources x3, Venue, Year, Abstract, Authors
CODE_MAPPING_CSV = os.path.join(DATA_DIR, "new_code_mapping.csv") # ID, Aspect, New Aspect, Dimension, New Dimension, Code, New Code
LOG_FILE = "live_music_agents_dashboard.log" # General log file
PAPER_URL = "http://arxiv.org/abs/2602.05064"
REQUEST_TIMEOUT = 30  # Seconds for remote CSV downloads

# --- Taxonomy Configuration ---
SENTINEL_CODES = ("Other", "NA") # Mapping labels dropped from the active tag set
VIDEO_HOSTS = ("youtube.com", "youtu.be")
SOURCE_TYPE_OPTIONS = ("all", "paper", "video")

ASPECT_ORDER = ["Usage Context", "Interaction", "Technology", "Ecosystem"]

# Curated display order for the distribution view
DIMENSION_ORDER = {
    # Usage Context
    "Use Purpose": 1, "Target User": 2, "Musical Context": 3, "Value Emphasis": 4,
    "Outcome Emphasis": 5, "User Role": 6, "Agent Role": 7, "Participant Topology": 8,
    # Interaction
    "Input Modality": 9, "Output Modality": 10, "Input Musical Element": 11,
    "Output Musical Element": 12, "Musical Outcome": 13, "Planning": 14,
    "Temporal Structure": 15, "Data Alignment": 16, "Interface": 17, "Control Mode": 18,
    "Control Scope": 19, "System Initiative": 20, "Agency Framing": 21,
    # Technology
    "Model": 22, "Learning Algorithm": 23, "Inference Objective": 24, "Adaptation": 25,
    "Technical Emphasis": 26, "Infrastructure": 27, "Runtime Requirements": 28, "Integration": 29,
    # Ecosystem
    "Sociocultural Factors": 30, "Policy Considerations": 31, "Economic Consequences": 32,
    "Musical-Societal Consequences": 33,
}
UNORDERED_DIMENSION_RANK = 999

ASPECT_COLORS = {
    "Usage Context": "#8b5cf6",
    "Interaction": "#ec4899",
    "Technology": "#3b82f6",
    "Ecosystem": "#22c55e",
}
DEFAULT_ASPECT_COLOR = "#6b7280"

# --- Trends Configuration ---
DEFAULT_YEAR_BIN_SIZE = 3
MIN_YEAR_BIN_SIZE = 1
MAX_YEAR_BIN_SIZE = 10
DEFAULT_TREND_CODE_COUNT = 3 # Codes pre-selected when a trend dimension is picked

# --- Preset Definitions ---
# Each trend preset selects codes of one dimension by explicit labels ("labels"),
# by every label except some ("exclude"), or by frequency ("top").
TREND_PRESETS = {
    "Usage Context": {
        "Top musical contexts": {"dimension": "Musical Context", "top": 4, "exclude": ["Non-specific"], "bin_size": 3},
        "Emerging musical contexts": {"dimension": "Musical Context", "labels": ["Live coding", "Traditional music", "Virtuosic practice"], "exclude": ["Non-specific"], "bin_size": 3},
        "Target users": {"dimension": "Target User", "labels": ["Musicians", "Novice users", "Audience"], "bin_size": 3},
    },
    "Interaction": {
        "Emerging interfaces": {"dimension": "Interface", "labels": ["Programming interface", "Embodied agent", "DJ gear", "XR Interface"], "bin_size": 3},
        "Planning methods": {"dimension": "Planning", "labels": ["User configuration", "Tailoring", "Score"], "bin_size": 3},
        "Temporal structure": {"dimension": "Temporal Structure", "labels": ["Dense parallel", "Sparse parallel", "Hybrid", "Turn-taking"], "bin_size": 3},
    },
    "Technology": {
        "AI model usage": {"dimension": "Model", "labels": ["Task-specific DNN", "Classical ML", "Shallow neural network", "Generative AI"], "bin_size": 3},
        "Adaptation": {"dimension": "Adaptation", "labels": ["Offline adaptation", "Online adaptation", "Continual adaptation"], "bin_size": 3},
        "Integration": {"dimension": "Integration", "exclude": ["NA"], "bin_size": 3},
    },
    "Ecosystem": {
        "Sociocultural factors": {"dimension": "Sociocultural Factors", "exclude": ["NA"], "bin_size": 3},
        "Emerging policy considerations": {"dimension": "Policy Considerations", "labels": ["Data privacy", "Integrity", "Personality rights"], "bin_size": 3},
    },
}

COOCCURRENCE_PRESETS = {
    "Purpose vs. value": {"dimension_a": "Use Purpose", "dimension_b": "Value Emphasis"},
    "User vs. agent roles": {"dimension_a": "User Role", "dimension_b": "Agent Role"},
    "Target user vs. user role": {"dimension_a": "Target User", "dimension_b": "User Role"},
    "Value vs. adaptation": {"dimension_a": "Value Emphasis", "dimension_b": "Adaptation"},
    "Learning vs. adaptation (personalization)": {"dimension_a": "Learning Algorithm", "dimension_b": "Adaptation", "filter_label": "Personalization"},
}


# --- Streamlit Log Handler (if needed for error display during loading) ---
log_stream = StringIO()

# --- Logging Setup ---
# Remove existing handlers if re-running cells in interactive environments
for handler in logging.root.handlers[:]:
    logging.root.removeHandler(handler)

logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(levelname)s - %(module)s - %(funcName)s - %(message)s',
                    handlers=[
                        logging.FileHandler(LOG_FILE, mode='w'), # Overwrite log file each run
                        logging.StreamHandler(), # Also print logs to console
                        logging.StreamHandler(log_stream) # Keep handler for error display in the app
                    ])

logger = logging.getLogger(__name__)

logger.info("Configuration and Logging Setup Complete.")

try:
    CURRENT_DATE_STR = pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')
except Exception: # Fallback if timestamp fails
    CURRENT_DATE_STR = "N/A"

# --- Utility Functions ---
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_YOUTUBE_ID_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def parse_int_prefix(s):
    """Parse the leading integer of a cell ('2021', ' 2021 (est.)'); None when there is none."""
    if s is None or (not isinstance(s, str) and pd.isna(s)):
        return None
    match = _LEADING_INT_RE.match(str(s))
    return int(match.group(1)) if match else None


def clean_cell(s):
    """Return a stripped string for a raw CSV cell, mapping NaN/None to ''."""
    if s is None or (not isinstance(s, str) and pd.isna(s)):
        return ""
    return str(s).strip()


def is_video_link(url):
    if not isinstance(url, str) or not url:
        return False
    return any(host in url for host in VIDEO_HOSTS)


def classify_source_type(venue, links):
    """
    'video' if the venue literally reads "video" (any case), or if there is no
    venue and one of the links points at a video host. Otherwise 'paper'.
    """
    venue = clean_cell(venue)
    if venue.lower() == "video":
        return "video"
    if not venue and any(is_video_link(link) for link in links):
        return "video"
    return "paper"


def youtube_video_id(url):
    """Extract the 11-character YouTube id from a watch/short/embed URL."""
    if not isinstance(url, str):
        return None
    match = _YOUTUBE_ID_RE.match(url)
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None


def clamp_bin_size(bin_size):
    """Coerce a year-bin width into [MIN_YEAR_BIN_SIZE, MAX_YEAR_BIN_SIZE]."""
    try:
        value = int(bin_size)
    except (TypeError, ValueError):
        logger.warning(f"Invalid year bin size '{bin_size}'. Using default {DEFAULT_YEAR_BIN_SIZE}.")
        return DEFAULT_YEAR_BIN_SIZE
    if value < MIN_YEAR_BIN_SIZE or value > MAX_YEAR_BIN_SIZE:
        clamped = min(max(value, MIN_YEAR_BIN_SIZE), MAX_YEAR_BIN_SIZE)
        logger.warning(f"Year bin size {value} out of range. Clamped to {clamped}.")
        return clamped
    return value
