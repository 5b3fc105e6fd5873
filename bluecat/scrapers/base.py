from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from bluecat.config.settings import settings
from bluecat.core.errors import TransportError
from bluecat.core.models import (
    MediaKind, MediaQuery, ResolvedMetadata, SearchResult, TorrentCandidate, UserConfig
)
from bluecat.utils.classifier import classify
from bluecat.utils.helpers import append_keyword, merge_keywords
from bluecat.utils.logger import scraper_logger


def custom_keyword(catalog_id: str, config: UserConfig) -> Optional[str]:
    return merge_keywords(settings.get_custom_keywords(), config.custom_keywords).get(catalog_id)


# ===========================
# Base Searcher Class
# ===========================
class BaseSearcher(ABC):

    SOURCE_NAME = ""

    @abstractmethod
    async def fetch_by_text(self, search_title: str, query: MediaQuery, config: UserConfig) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def to_candidate(self, item: Dict[str, Any], query: MediaQuery) -> Optional[TorrentCandidate]:
        pass

    def is_enabled(self, config: UserConfig) -> bool:
        return True

    async def fetch_by_id(self, metadata: ResolvedMetadata, query: MediaQuery, config: UserConfig) -> List[Dict[str, Any]]:
        return []

    async def resolve_hash(self, candidate: TorrentCandidate) -> Optional[str]:
        return candidate.content_hash

    # ===========================
    # Query Building
    # ===========================
    def build_search_title(self, title: str, metadata: ResolvedMetadata, query: MediaQuery, config: UserConfig) -> str:
        search_title = title
        if metadata.media_kind == MediaKind.movie and metadata.year:
            search_title = f"{title} {metadata.year}"

        keyword = custom_keyword(query.catalog_id, config)
        if keyword:
            scraper_logger.debug(f"[{self.SOURCE_NAME}] Custom keyword for {query.catalog_id}: {keyword}")
        return append_keyword(search_title, keyword)

    # ===========================
    # Search Flow
    # ===========================
    async def search(self, metadata: ResolvedMetadata, query: MediaQuery, config: UserConfig) -> SearchResult:
        if not self.is_enabled(config):
            scraper_logger.debug(f"[{self.SOURCE_NAME}] Disabled")
            return SearchResult.empty()

        try:
            items = await self.fetch_by_id(metadata, query, config)
            if items:
                scraper_logger.debug(f"[{self.SOURCE_NAME}] {len(items)} results by id")
            else:
                search_title = self.build_search_title(metadata.title, metadata, query, config)
                items = await self.fetch_by_text(search_title, query, config)

                alternate = metadata.alternate_title
                if not items and alternate and alternate.lower() != metadata.title.lower():
                    scraper_logger.debug(f"[{self.SOURCE_NAME}] No results, trying '{alternate}'")
                    search_title = self.build_search_title(alternate, metadata, query, config)
                    items = await self.fetch_by_text(search_title, query, config)
        except (TransportError, ValueError) as e:
            scraper_logger.error(f"[{self.SOURCE_NAME}] Search error: {type(e).__name__}")
            return SearchResult.empty()

        result = self.build_result(items, query)
        scraper_logger.info(
            f"[{self.SOURCE_NAME}] {len(items)} results → "
            f"series: {len(result.complete_series)}, seasons: {len(result.complete_season)}, "
            f"episodes: {len(result.episode)}, movies: {len(result.movie)}"
        )
        return result

    def build_result(self, items: List[Dict[str, Any]], query: MediaQuery) -> SearchResult:
        result = SearchResult.empty()
        for item in items:
            candidate = self.to_candidate(item, query)
            if candidate is not None:
                result.add(candidate)
        return result

    def classify_item(self, title: str, query: MediaQuery):
        return classify(title, query.media_kind, query.season, query.episode)

    # ===========================
    # Parsing Helpers
    # ===========================
    @staticmethod
    def parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None

    @staticmethod
    def parse_int(value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
