import math
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from bluecat.core.models import TorrentCandidate, UserConfig
from bluecat.utils.filters import allow_list_index, normalize_allow_list
from bluecat.utils.helpers import bytes_to_gb, normalize_title

# ===========================
# Score Constants
# ===========================
MAX_SEEDERS = 100
SEEDER_WEIGHT = 0.5
SIZE_MIN_GB = 0.1
SIZE_MAX_GB = 20.0
SIZE_TARGET_GB = 5.0
SIZE_MAX_SCORE = 20.0
RECENCY_MAX_SCORE = 15.0
RECENCY_DECAY_DAYS = 30.0
RESOLUTION_BONUS = 2.0
LANGUAGE_BONUS = 2.0
CODEC_BONUS = 1.5

UNMATCHED_PRIORITY = math.inf

# ===========================
# Title Quality Tokens
# ===========================
# First matching tier wins within each table.
QUALITY_BONUSES = [
    (re.compile(r"\b(remux|untouched)\b"), 10),
    (re.compile(r"\b(bluray|blu-ray|web-dl|webdl)\b"), 8),
    (re.compile(r"\b(webrip|hdtv)\b"), 6),
    (re.compile(r"\b(dvdrip|tvrip)\b"), 3),
]

QUALITY_PENALTIES = [
    (re.compile(r"\b(cam|camrip|hdcam|ts|tc|telesync|telecine)\b"), -20),
    (re.compile(r"\b(screener|dvdscr|scr)\b"), -15),
    (re.compile(r"\b(workprint|r5)\b"), -10),
]


# ===========================
# Allow-List Priority
# ===========================
def priority_index(title: str, allow_list) -> float:
    index = allow_list_index(title, allow_list)
    return UNMATCHED_PRIORITY if index is None else index


def priority_key(candidate: TorrentCandidate, config: UserConfig) -> Tuple[float, float, float]:
    language_text = f"{candidate.title} {candidate.language}" if candidate.language else candidate.title
    return (
        priority_index(candidate.title, config.resolutions),
        priority_index(language_text, config.languages),
        priority_index(candidate.title, config.codecs),
    )


def rank_key(candidate: TorrentCandidate, config: UserConfig) -> Tuple[float, float, float, float]:
    return priority_key(candidate, config) + (-candidate.score,)


# ===========================
# Continuous Quality Score
# ===========================
def seeder_score(seeders: Optional[int]) -> float:
    return min(max(seeders or 0, 0), MAX_SEEDERS) * SEEDER_WEIGHT


def size_score(size_bytes: Optional[int]) -> float:
    size_gb = bytes_to_gb(size_bytes)
    if size_gb < SIZE_MIN_GB or size_gb > SIZE_MAX_GB:
        return 0.0
    return max(SIZE_MAX_SCORE - abs(size_gb - SIZE_TARGET_GB), 0.0)


def recency_score(uploaded_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    if uploaded_at is None:
        return 0.0

    now = now or datetime.now(timezone.utc)
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)

    days = (now - uploaded_at).total_seconds() / 86400
    return max(RECENCY_MAX_SCORE - days / RECENCY_DECAY_DAYS, 0.0)


def title_score(title: str) -> float:
    lowered = (title or "").lower()
    score = 0.0

    for pattern, bonus in QUALITY_BONUSES:
        if pattern.search(lowered):
            score += bonus
            break

    for pattern, penalty in QUALITY_PENALTIES:
        if pattern.search(lowered):
            score += penalty
            break

    return score


def preference_score(title: str, config: UserConfig) -> float:
    normalized = normalize_title(title)
    score = 0.0

    for allow_list, weight in (
        (config.resolutions, RESOLUTION_BONUS),
        (config.languages, LANGUAGE_BONUS),
        (config.codecs, CODEC_BONUS),
    ):
        tokens = normalize_allow_list(allow_list)
        for index, token in enumerate(tokens):
            if token in normalized:
                score += (len(tokens) - index) * weight

    return score


def quality_score(candidate: TorrentCandidate, config: UserConfig, now: Optional[datetime] = None) -> float:
    score = (
        seeder_score(candidate.seeder_count)
        + size_score(candidate.size_bytes)
        + recency_score(candidate.uploaded_at, now)
        + title_score(candidate.title)
        + preference_score(candidate.title, config)
    )
    return round(score, 2)
