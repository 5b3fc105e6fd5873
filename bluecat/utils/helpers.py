import re
from typing import Optional, Dict, List, Tuple

from bluecat.utils.languages import detect_language

# ===========================
# Title Normalization
# ===========================
TITLE_SYNONYMS = [
    (re.compile(r"\b4k\b"), "2160p"),
    (re.compile(r"\b(x264|avc|h\.264|x\.264)\b"), "h264"),
    (re.compile(r"\b(x265|hevc|h\.265|x\.265)\b"), "h265"),
    (re.compile(r"\b(vof|vf2)\b"), "vff"),
]


def normalize_title(title: str) -> str:
    if not title:
        return ""

    normalized = title.lower()
    for pattern, replacement in TITLE_SYNONYMS:
        normalized = pattern.sub(replacement, normalized)
    return normalized


# ===========================
# Size Formatting
# ===========================
BYTES_PER_GB = 1024 ** 3


def bytes_to_gb(size_bytes: Optional[int]) -> float:
    if not size_bytes:
        return 0.0
    return size_bytes / BYTES_PER_GB


def format_size(size_bytes: Optional[int]) -> str:
    return f"{bytes_to_gb(size_bytes):.2f} GB"


# ===========================
# File Name Parsing
# ===========================
RESOLUTION_PATTERN = re.compile(r"(4k|\d{3,4}p)", re.IGNORECASE)
CODEC_PATTERN = re.compile(r"(h.264|h.265|x.264|x.265|h264|h265|x264|x265|AV1|HEVC)", re.IGNORECASE)
SOURCE_PATTERN = re.compile(r"(BluRay|WEB-?DL|WEB|HDRip|DVDRip|BRRip)", re.IGNORECASE)


def parse_file_name(file_name: str) -> Dict[str, str]:
    resolution_match = RESOLUTION_PATTERN.search(file_name or "")
    codec_match = CODEC_PATTERN.search(file_name or "")
    source_match = SOURCE_PATTERN.search(file_name or "")
    language, language_emoji = detect_language(file_name)

    return {
        "resolution": resolution_match.group(0) if resolution_match else "?",
        "codec": codec_match.group(0) if codec_match else "?",
        "source": source_match.group(0) if source_match else "?",
        "language": language,
        "language_emoji": language_emoji,
    }


# ===========================
# Episode Formatting
# ===========================
def format_episode_tag(season: Optional[int], episode: Optional[int]) -> str:
    if season is None:
        return ""
    if episode is None:
        return f"S{season:02d}"
    return f"S{season:02d}E{episode:02d}"


# ===========================
# Source Names Formatting
# ===========================
def format_sources(source_names: List[str]) -> str:
    return " + ".join(source_names)


# ===========================
# Custom Keywords Merging
# ===========================
def merge_keywords(*keyword_maps: Dict[str, str]) -> Dict[str, str]:
    merged = {}
    for keyword_map in keyword_maps:
        if keyword_map:
            merged.update(keyword_map)
    return merged


def append_keyword(query: str, keyword: Optional[str]) -> str:
    if not keyword:
        return query
    return f"{query} {keyword}"


def split_catalog_id(content_id: str) -> Tuple[str, Optional[int], Optional[int]]:
    parts = content_id.replace(".json", "").split(":")
    catalog_id = parts[0]
    season = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else None
    episode = int(parts[2]) if len(parts) > 2 and parts[2].isdigit() else None
    return (catalog_id, season, episode)
