import re
from functools import lru_cache
from typing import NamedTuple, Optional, Tuple, List, Pattern

from bluecat.core.models import Category, MediaKind
from bluecat.utils.helpers import normalize_title

# ===========================
# Pattern Templates
# ===========================
# <S> and <E> are replaced with the requested season and episode numbers.
SEP = r"[\s._-]*"

EPISODE_PATTERNS = (
    r"\bs0*<S>" + SEP + r"e0*<E>(?!\d)",
    r"\b(season|saison)" + SEP + r"0*<S>" + SEP + r"(episode|ep|e)" + SEP + r"0*<E>(?!\d)",
    r"(?<!\d)0*<S>x0*<E>(?!\d)",
)

COMPLETE_INDICATOR = r"\b(complete|integrale?|collection)\b"

SEASON_PATTERNS = (
    r"\bs0*<S>(?![\de])",
    r"\b(season|saison)" + SEP + r"0*<S>(?!\d)",
)

SEASON_EPISODE_EXCLUSIONS = (
    r"\bs0*<S>" + SEP + r"e\d{1,3}",
    r"(?<!\d)0*<S>x\d{1,3}(?!\d)",
    r"\b(season|saison)" + SEP + r"0*<S>" + SEP + r"(episode|ep)\b",
)

SERIES_PATTERNS = (
    COMPLETE_INDICATOR,
    r"\bintegral\b",
    r"\bseries?" + SEP + r"complete\b",
    r"\b(season|saison)" + SEP + r"0*1" + SEP + r"-",
    r"\bs0*1-s\d",
    r"\btoutes\b.*\bsaisons\b",
    r"\bmulti\b.*\bseasons?\b",
)

SPECIFIC_NOTATIONS = (
    r"(?<![-\d])\bs\d{1,2}(e\d{1,3})?\b(?!" + r"[\s._]*-)",
    r"\b(season|saison)" + SEP + r"\d{1,2}(?!\d)(?![\s._]*-)",
    r"(?<!\d)\d{1,2}x\d{1,3}(?!\d)",
)


# ===========================
# Classification Rule
# ===========================
class ClassificationRule(NamedTuple):
    category: Category
    needs_season: bool
    needs_episode: bool
    patterns: Tuple[str, ...]
    exclusions: Tuple[str, ...]


SERIES_RULES = (
    ClassificationRule(Category.episode, True, True, EPISODE_PATTERNS, (COMPLETE_INDICATOR,)),
    ClassificationRule(Category.complete_season, True, False, SEASON_PATTERNS, SEASON_EPISODE_EXCLUSIONS),
    ClassificationRule(Category.complete_series, False, False, SERIES_PATTERNS, SPECIFIC_NOTATIONS),
)


# ===========================
# Pattern Compilation
# ===========================
def _expand(template: str, season: Optional[int], episode: Optional[int]) -> str:
    expanded = template
    if season is not None:
        expanded = expanded.replace("<S>", str(season))
    if episode is not None:
        expanded = expanded.replace("<E>", str(episode))
    return expanded


@lru_cache(maxsize=256)
def compile_rules(season: Optional[int], episode: Optional[int]) -> List[Tuple[Category, List[Pattern], List[Pattern]]]:
    compiled = []
    for rule in SERIES_RULES:
        if rule.needs_season and season is None:
            continue
        if rule.needs_episode and episode is None:
            continue

        patterns = [re.compile(_expand(p, season, episode), re.IGNORECASE) for p in rule.patterns]
        exclusions = [re.compile(_expand(p, season, episode), re.IGNORECASE) for p in rule.exclusions]
        compiled.append((rule.category, patterns, exclusions))
    return compiled


# ===========================
# Classification
# ===========================
def classify(title: str, media_kind: MediaKind, season: Optional[int] = None, episode: Optional[int] = None) -> Optional[Category]:
    if media_kind == MediaKind.movie:
        return Category.movie

    normalized = normalize_title(title)

    for category, patterns, exclusions in compile_rules(season, episode):
        if not any(p.search(normalized) for p in patterns):
            continue
        if any(p.search(normalized) for p in exclusions):
            continue
        return category

    return None


def matches_episode(file_name: str, season: Optional[int], episode: Optional[int]) -> bool:
    if season is None or episode is None:
        return True

    normalized = normalize_title(file_name)
    for template in EPISODE_PATTERNS:
        if re.search(_expand(template, season, episode), normalized, re.IGNORECASE):
            return True
    return False
