from typing import Optional, Dict, Any, List
from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # ===========================
    # Addon Customization
    # ===========================
    ADDON_ID: Optional[str] = "community.bluecat"
    ADDON_NAME: Optional[str] = "BlueCat"
    ADDON_VERSION: str = "1.0.0"
    USER_AGENT: str = "BlueCat/1.0"

    # ===========================
    # Server Configuration
    # ===========================
    PORT: Optional[int] = 7000

    # ===========================
    # Cache Configuration
    # ===========================
    CACHE_MAX_SIZE: int = 10000
    METADATA_CACHE_TTL: int = 2592000
    SEARCH_CACHE_TTL: int = 21600
    AVAILABILITY_CACHE_TTL: int = 300
    MAGNET_CACHE_TTL: int = 172800
    HASH_CACHE_TTL: int = 43200
    READY_HASH_CACHE_TTL: int = 604800
    FILES_CACHE_TTL: int = 21600
    LINK_CACHE_TTL: int = 3600
    UNLOCK_RESULT_TTL: int = 300

    # ===========================
    # Rate Limiter Configuration
    # ===========================
    DEBRID_RATE_LIMIT: int = 12
    DEBRID_RATE_WINDOW: float = 1.0
    DEBRID_QUEUE_SIZE: int = 100

    # ===========================
    # Circuit Breaker Configuration
    # ===========================
    CIRCUIT_BREAKER_THRESHOLD: int = 5
    CIRCUIT_BREAKER_TIMEOUT: float = 30.0

    # ===========================
    # HTTP Timeout Configuration
    # ===========================
    HTTP_TIMEOUT: int = 10
    METADATA_TIMEOUT: int = 8
    SEARCH_TIMEOUT: int = 12
    DEBRID_TIMEOUT: int = 15
    UNLOCK_TIMEOUT: int = 10

    # ===========================
    # HTTP Retry Configuration
    # ===========================
    HTTP_MAX_RETRIES: int = 3
    METADATA_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE: float = 1.0
    HTTP_BACKOFF_MAX: float = 15.0

    # ===========================
    # AllDebrid Configuration
    # ===========================
    ALLDEBRID_API_URL: str = "https://api.alldebrid.com/v4"
    ALLDEBRID_STATUS_URL: str = "https://api.alldebrid.com/v4.1"

    # ===========================
    # Magnet Cleanup Configuration
    # ===========================
    MAGNET_CLEANUP_MAX_COUNT: int = 100
    MAGNET_CLEANUP_DELETE_COUNT: int = 20
    MAGNET_CLEANUP_DELAY: float = 60.0

    # ===========================
    # TMDB Configuration
    # ===========================
    TMDB_API_URL: str = "https://api.themoviedb.org/3"

    # ===========================
    # Indexer Configuration
    # ===========================
    YGG_API_URL: str = "https://yggapi.eu"
    SHAREWOOD_API_URL: str = "https://www.sharewood.tv/api"
    CUSTOM_SEARCH_KEYWORDS: Optional[str] = ""

    # ===========================
    # Stream Selection Configuration
    # ===========================
    DEFAULT_FILES_TO_SHOW: int = 2
    CANDIDATE_MULTIPLIER: int = 2
    DEFAULT_SERIES_PRIORITY: str = "broadest_first"

    # ===========================
    # Proxy Configuration
    # ===========================
    PROXY_URL: Optional[str] = None

    # ===========================
    # Security Configuration
    # ===========================
    ACCESS_KEY: Optional[str] = ""

    # ===========================
    # Logging Configuration
    # ===========================
    LOG_LEVEL: Optional[str] = "INFO"
    LOG_FILE: Optional[str] = None

    # ===========================
    # Field Validators
    # ===========================
    @field_validator("ALLDEBRID_API_URL", "ALLDEBRID_STATUS_URL", "TMDB_API_URL", "YGG_API_URL", "SHAREWOOD_API_URL", "PROXY_URL")
    @classmethod
    def normalize_urls(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("DEFAULT_SERIES_PRIORITY")
    @classmethod
    def validate_series_priority(cls, v):
        if v not in ("specific_first", "broadest_first"):
            raise ValueError(f"Unknown series priority: {v}")
        return v

    # ===========================
    # Computed Properties
    # ===========================
    @computed_field
    @property
    def ADDON_MANIFEST(self) -> Dict[str, Any]:
        return {
            "id": self.ADDON_ID,
            "name": self.ADDON_NAME,
            "version": self.ADDON_VERSION,
            "description": "Stremio addon resolving torrent indexers to debrid streams",
            "catalogs": [],
            "resources": ["stream"],
            "types": ["movie", "series"],
            "idPrefixes": ["tt"],
            "behaviorHints": {
                "configurable": True
            }
        }

    def get_access_keys(self) -> List[str]:
        if not self.ACCESS_KEY:
            return []
        return [key.strip() for key in self.ACCESS_KEY.split(",") if key.strip()]

    def get_custom_keywords(self) -> Dict[str, str]:
        keywords = {}
        if not self.CUSTOM_SEARCH_KEYWORDS:
            return keywords

        for pair in self.CUSTOM_SEARCH_KEYWORDS.split(","):
            if "=" not in pair:
                continue
            catalog_id, keyword = pair.split("=", 1)
            if catalog_id.strip() and keyword.strip():
                keywords[catalog_id.strip()] = keyword.strip()
        return keywords


# ===========================
# Settings Instance
# ===========================
settings = Settings()
