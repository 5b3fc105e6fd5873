from typing import Any, Dict, List, Optional

from bluecat.config.settings import settings
from bluecat.core.models import MediaKind, MediaQuery, TorrentCandidate, UserConfig
from bluecat.scrapers.base import BaseSearcher
from bluecat.utils.http_client import HTTPClient, http_client
from bluecat.utils.logger import scraper_logger

# ===========================
# Sharewood Subcategories
# ===========================
SUBCATEGORIES = {
    MediaKind.movie: [9, 11],
    MediaKind.series: [10, 12],
}


# ===========================
# Sharewood Searcher Class
# ===========================
class SharewoodSearcher(BaseSearcher):

    SOURCE_NAME = "SW"
    BASE_URL = settings.SHAREWOOD_API_URL

    def __init__(self, client: HTTPClient = http_client):
        self.client = client

    def is_enabled(self, config: UserConfig) -> bool:
        return bool(config.sharewood_passkey)

    async def fetch_by_text(self, search_title: str, query: MediaQuery, config: UserConfig) -> List[Dict[str, Any]]:
        params = [
            ("name", search_title),
            ("category", 1),
        ] + [("subcategory_id", subcategory) for subcategory in SUBCATEGORIES[query.media_kind]]

        scraper_logger.debug(f"[SW] Text search: '{search_title}'")
        response = await self.client.get(
            f"{self.BASE_URL}/{config.sharewood_passkey}/search",
            params=params,
            source=self.SOURCE_NAME,
            timeout=settings.SEARCH_TIMEOUT,
            max_retries=settings.HTTP_MAX_RETRIES
        )
        items = response.json()
        return items if isinstance(items, list) else []

    def to_candidate(self, item: Dict[str, Any], query: MediaQuery) -> Optional[TorrentCandidate]:
        name = item.get("name")
        if not name or item.get("id") is None:
            return None

        category = self.classify_item(name, query)
        if category is None:
            return None

        info_hash = item.get("info_hash")
        return TorrentCandidate(
            external_id=str(item["id"]),
            content_hash=info_hash.lower() if info_hash else None,
            title=name,
            size_bytes=self.parse_int(item.get("size")),
            seeder_count=self.parse_int(item.get("seeders")),
            uploaded_at=self.parse_datetime(item.get("created_at")),
            source_name=self.SOURCE_NAME,
            category=category,
            language=item.get("language") or None
        )


# ===========================
# Singleton Instance
# ===========================
sharewood_searcher = SharewoodSearcher()
