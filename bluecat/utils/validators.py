import binascii
import hmac
import json
from base64 import b64decode, b64encode
from typing import Optional, Dict, Any

from pydantic import ValidationError

from bluecat.config.settings import settings
from bluecat.core.errors import AccessDeniedError, InvalidConfigError
from bluecat.core.models import MediaKind, MediaQuery, UserConfig
from bluecat.utils.helpers import split_catalog_id
from bluecat.utils.logger import api_logger

# ===========================
# Legacy Configuration Keys
# ===========================
LEGACY_KEYS = {
    "TMDB_API_KEY": "tmdb_api_key",
    "API_KEY_ALLEDBRID": "alldebrid_api_key",
    "API_KEY_ALLDEBRID": "alldebrid_api_key",
    "SHAREWOOD_PASSKEY": "sharewood_passkey",
    "RES_TO_SHOW": "resolutions",
    "LANG_TO_SHOW": "languages",
    "CODECS_TO_SHOW": "codecs",
    "FILES_TO_SHOW": "files_to_show",
    "NAMES": "names",
    "ACCESS_KEY": "access_key",
}


# ===========================
# Configuration Encoding
# ===========================
def encode_config_to_base64(config: Dict[str, Any]) -> str:
    return b64encode(json.dumps(config).encode()).decode()


def decode_config(config_base64: Optional[str]) -> Dict[str, Any]:
    if not config_base64:
        raise InvalidConfigError("Empty config")

    standard = config_base64.replace("-", "+").replace("_", "/")
    standard += "=" * (-len(standard) % 4)

    try:
        decoded_str = b64decode(standard, validate=True).decode("utf-8")
        config_dict = json.loads(decoded_str)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        api_logger.debug(f"Config decoding failed: {type(e).__name__}")
        raise InvalidConfigError(f"Invalid configuration: {type(e).__name__}") from e

    if not isinstance(config_dict, dict):
        raise InvalidConfigError("Config is not an object")

    return config_dict


# ===========================
# Configuration Validation
# ===========================
def validate_config(config_base64: Optional[str]) -> UserConfig:
    config_dict = decode_config(config_base64)

    normalized = {}
    for key, value in config_dict.items():
        normalized[LEGACY_KEYS.get(key, key)] = value

    normalized.setdefault("files_to_show", settings.DEFAULT_FILES_TO_SHOW)
    normalized.setdefault("series_priority", settings.DEFAULT_SERIES_PRIORITY)

    try:
        config = UserConfig.model_validate(normalized)
    except ValidationError as e:
        fields = ", ".join(str(error["loc"][0]) for error in e.errors() if error.get("loc"))
        api_logger.debug(f"Config validation failed: {fields}")
        raise InvalidConfigError(f"Invalid configuration fields: {fields}") from e

    api_logger.debug("Configuration validated successfully")
    return config


# ===========================
# Media Query Extraction
# ===========================
def extract_media_query(content_type: str, content_id: str) -> MediaQuery:
    catalog_id, season, episode = split_catalog_id(content_id)

    if not catalog_id.startswith("tt"):
        raise InvalidConfigError(f"Unsupported catalog id: {catalog_id}")

    try:
        media_kind = MediaKind(content_type)
    except ValueError as e:
        raise InvalidConfigError(f"Unsupported content type: {content_type}") from e

    if media_kind == MediaKind.movie:
        return MediaQuery(catalog_id=catalog_id, media_kind=media_kind)

    return MediaQuery(catalog_id=catalog_id, media_kind=media_kind, season=season, episode=episode)


# ===========================
# Access Control
# ===========================
def require_access_key(config: UserConfig):
    allowed = settings.get_access_keys()
    if not allowed:
        return

    provided = (config.access_key or "").strip()
    if not provided:
        api_logger.debug("Access denied: no access key")
        raise AccessDeniedError("Access key required", 401)

    if not any(hmac.compare_digest(provided.encode(), key.encode()) for key in allowed):
        api_logger.debug("Access denied: wrong access key")
        raise AccessDeniedError("Invalid access key", 403)
