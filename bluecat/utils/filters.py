import re
from typing import List, Optional

from bluecat.core.models import TorrentCandidate, UserConfig
from bluecat.utils.helpers import normalize_title
from bluecat.utils.logger import scraper_logger

# ===========================
# Known Tokens Per Dimension
# ===========================
# A title that carries none of the known tokens of a dimension is not
# rejected by that dimension's allow-list.
KNOWN_RESOLUTIONS = re.compile(r"\b(\d{3,4}p)\b")
KNOWN_CODECS = re.compile(r"\b(h264|h265|av1|vp9|xvid|divx)\b")
KNOWN_LANGUAGES = re.compile(
    r"\b(multi|french|truefrench|vff|vfq|vfi|vf|vostfr|vo|english|eng|spanish|german|italian)\b"
)


# ===========================
# Allow-List Matching
# ===========================
def normalize_allow_list(allow_list: List[str]) -> List[str]:
    return [normalize_title(token) for token in allow_list if token]


def allow_list_index(text: str, allow_list: List[str]) -> Optional[int]:
    normalized = normalize_title(text)
    for index, token in enumerate(normalize_allow_list(allow_list)):
        if token in normalized:
            return index
    return None


def passes_allow_list(text: str, allow_list: List[str], known_tokens: re.Pattern) -> bool:
    if not allow_list:
        return True

    if allow_list_index(text, allow_list) is not None:
        return True

    return known_tokens.search(normalize_title(text)) is None


def passes_allow_lists(title: str, config: UserConfig, language_hint: Optional[str] = None) -> bool:
    language_text = f"{title} {language_hint}" if language_hint else title

    return (
        passes_allow_list(title, config.resolutions, KNOWN_RESOLUTIONS)
        and passes_allow_list(language_text, config.languages, KNOWN_LANGUAGES)
        and passes_allow_list(title, config.codecs, KNOWN_CODECS)
    )


# ===========================
# Candidate Filtering
# ===========================
def filter_candidates(candidates: List[TorrentCandidate], config: UserConfig) -> List[TorrentCandidate]:
    filtered = [
        candidate for candidate in candidates
        if passes_allow_lists(candidate.title, config, candidate.language)
    ]
    if len(filtered) != len(candidates):
        scraper_logger.debug(f"Allow-list filter: {len(candidates)} → {len(filtered)}")
    return filtered


def file_passes_allow_lists(file_name: str, torrent_title: str, config: UserConfig) -> bool:
    """Checks a debrid file against the allow-lists.

    Each dimension is read from the file name first, and from the torrent
    title when the file name does not carry that information.
    """
    dimensions = (
        (config.resolutions, KNOWN_RESOLUTIONS),
        (config.languages, KNOWN_LANGUAGES),
        (config.codecs, KNOWN_CODECS),
    )

    for allow_list, known_tokens in dimensions:
        if not allow_list:
            continue
        source = file_name if known_tokens.search(normalize_title(file_name)) else torrent_title
        if not passes_allow_list(source, allow_list, known_tokens):
            return False
    return True
