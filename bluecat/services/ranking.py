from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from bluecat.core.models import (
    Category, Magnet, MediaKind, SearchResult, SeriesPriority, TorrentCandidate, UserConfig
)
from bluecat.utils.logger import stream_logger
from bluecat.utils.filters import filter_candidates
from bluecat.utils.quality import quality_score, rank_key

# ===========================
# Series Priority Policies
# ===========================
SERIES_PRIORITY_ORDERS = {
    "specific_first": (Category.episode, Category.complete_season, Category.complete_series),
    "broadest_first": (Category.complete_series, Category.complete_season, Category.episode),
}

HashResolver = Callable[[TorrentCandidate], Awaitable[Optional[str]]]


# ===========================
# Merge
# ===========================
def merge_results(results: Iterable[SearchResult]) -> SearchResult:
    merged = SearchResult.empty()
    for result in results:
        merged = merged.merge(result)
    return merged


# ===========================
# Selection
# ===========================
def select_candidates(result: SearchResult, media_kind: MediaKind, priority: SeriesPriority, target: int) -> List[TorrentCandidate]:
    if media_kind == MediaKind.movie:
        return list(result.movie)

    selected: List[TorrentCandidate] = []
    for category in SERIES_PRIORITY_ORDERS[priority]:
        remaining = target - len(selected)
        if remaining <= 0:
            break

        taken = result.get(category)[:remaining]
        selected.extend(taken)
        stream_logger.debug(f"Selected {len(taken)} {category.value} (total: {len(selected)}/{target})")

    return selected


# ===========================
# Ranking
# ===========================
def rank_candidates(candidates: List[TorrentCandidate], config: UserConfig) -> List[TorrentCandidate]:
    return sorted(candidates, key=lambda c: rank_key(c, config))


# ===========================
# Per-User Preferences
# ===========================
def apply_preferences(result: SearchResult, config: UserConfig, now: Optional[datetime] = None) -> SearchResult:
    """Filters, scores and orders a shared search result for one user.

    Candidates are copied so the cached result is left untouched.
    """
    prepared = SearchResult.empty()
    for category in Category:
        scored = [
            candidate.model_copy(update={"score": quality_score(candidate, config, now)})
            for candidate in filter_candidates(result.get(category), config)
        ]
        prepared.get(category).extend(rank_candidates(scored, config))
    return prepared


# ===========================
# Deduplication
# ===========================
async def deduplicate(candidates: List[TorrentCandidate], resolve_hash: HashResolver, limit: Optional[int] = None) -> List[Magnet]:
    magnets: Dict[str, Magnet] = {}

    for candidate in candidates:
        content_hash = candidate.content_hash or await resolve_hash(candidate)
        if not content_hash:
            stream_logger.debug(f"Skipping {candidate.title} (no hash)")
            continue

        content_hash = content_hash.lower()
        candidate.content_hash = content_hash

        existing = magnets.get(content_hash)
        if existing is not None:
            existing.add_source(candidate.source_name)
            stream_logger.debug(f"Hash collision: {existing.title} ({' + '.join(existing.source_names)})")
            continue

        magnets[content_hash] = Magnet(
            content_hash=content_hash,
            title=candidate.title,
            source_name=candidate.source_name,
            source_names=[candidate.source_name],
            size_bytes=candidate.size_bytes
        )

    unique = list(magnets.values())
    if limit is not None:
        unique = unique[:limit]

    stream_logger.info(f"Deduplicated {len(candidates)} candidates into {len(unique)} magnets")
    return unique
