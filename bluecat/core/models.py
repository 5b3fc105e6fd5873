import json
from base64 import urlsafe_b64encode, urlsafe_b64decode
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bluecat.core.errors import InvalidTokenError


# ===========================
# Enumerations
# ===========================
class MediaKind(str, Enum):
    movie = "movie"
    series = "series"


class Category(str, Enum):
    complete_series = "complete_series"
    complete_season = "complete_season"
    episode = "episode"
    movie = "movie"


SeriesPriority = Literal["specific_first", "broadest_first"]


# ===========================
# Query & Metadata
# ===========================
class MediaQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    catalog_id: str
    media_kind: MediaKind
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def is_series(self) -> bool:
        return self.media_kind == MediaKind.series


class ResolvedMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    alternate_title: str = ""
    year: Optional[int] = None
    media_kind: MediaKind
    tmdb_id: Optional[int] = None


# ===========================
# Search Candidates
# ===========================
class TorrentCandidate(BaseModel):
    external_id: str
    content_hash: Optional[str] = None
    title: str
    size_bytes: Optional[int] = None
    seeder_count: Optional[int] = None
    uploaded_at: Optional[datetime] = None
    source_name: str
    category: Category
    language: Optional[str] = None
    score: float = 0.0


class SearchResult(BaseModel):
    complete_series: List[TorrentCandidate] = Field(default_factory=list)
    complete_season: List[TorrentCandidate] = Field(default_factory=list)
    episode: List[TorrentCandidate] = Field(default_factory=list)
    movie: List[TorrentCandidate] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SearchResult":
        return cls()

    def get(self, category: Category) -> List[TorrentCandidate]:
        return getattr(self, category.value)

    def add(self, candidate: TorrentCandidate):
        self.get(candidate.category).append(candidate)

    def merge(self, other: "SearchResult") -> "SearchResult":
        merged = SearchResult()
        for category in Category:
            merged.get(category).extend(self.get(category))
            merged.get(category).extend(other.get(category))
        return merged

    @property
    def total(self) -> int:
        return sum(len(self.get(category)) for category in Category)

    @property
    def is_empty(self) -> bool:
        return self.total == 0


# ===========================
# Debrid Objects
# ===========================
class Magnet(BaseModel):
    content_hash: str
    title: str
    source_name: str
    source_names: List[str] = Field(default_factory=list)
    size_bytes: Optional[int] = None

    def add_source(self, source_name: str):
        if source_name not in self.source_names:
            self.source_names.append(source_name)


class DebridMagnetStatus(BaseModel):
    content_hash: str
    debrid_id: Optional[str] = None
    display_name: str = ""
    size_bytes: int = 0
    ready: bool = False
    source_name: str = ""
    source_names: List[str] = Field(default_factory=list)


class VideoFile(BaseModel):
    name: str
    size_bytes: int = 0
    debrid_link: str
    source_name: str = ""


# ===========================
# Unlock Token
# ===========================
class UnlockToken(BaseModel):
    file_name: str
    debrid_link: str
    source_name: str
    size_bytes: int = 0

    def encode(self) -> str:
        payload = json.dumps(self.model_dump(), separators=(",", ":")).encode("utf-8")
        return urlsafe_b64encode(payload).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "UnlockToken":
        if not token:
            raise InvalidTokenError("Empty token")

        padded = token + "=" * (-len(token) % 4)
        try:
            payload = urlsafe_b64decode(padded.encode("ascii"))
            return cls.model_validate(json.loads(payload.decode("utf-8")))
        except (ValueError, UnicodeError, ValidationError) as e:
            raise InvalidTokenError(f"Malformed token: {type(e).__name__}") from e


# ===========================
# Stream Output
# ===========================
class StreamDescriptor(BaseModel):
    name: str
    title: str
    url: str

    def to_stremio(self) -> Dict[str, str]:
        return {"name": self.name, "title": self.title, "url": self.url}


# ===========================
# User Configuration
# ===========================
class UserConfig(BaseModel):
    tmdb_api_key: str
    alldebrid_api_key: str
    sharewood_passkey: Optional[str] = None
    resolutions: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    codecs: List[str] = Field(default_factory=list)
    files_to_show: int = Field(default=2, ge=1)
    series_priority: SeriesPriority = "broadest_first"
    custom_keywords: Dict[str, str] = Field(default_factory=dict)
    names: List[str] = Field(default_factory=list)
    access_key: Optional[str] = None

    @field_validator("tmdb_api_key", "alldebrid_api_key")
    @classmethod
    def require_key(cls, v):
        if not v or not v.strip():
            raise ValueError("API key must not be empty")
        return v.strip()

    @field_validator("resolutions", "languages", "codecs")
    @classmethod
    def lowercase_allow_list(cls, v):
        return [item.strip().lower() for item in v if item and item.strip()]
