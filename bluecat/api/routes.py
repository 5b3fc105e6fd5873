import time
from enum import Enum

from fastapi import APIRouter, Request, Path
from fastapi.responses import JSONResponse, RedirectResponse

from bluecat.config.settings import settings
from bluecat.core.errors import AccessDeniedError, InvalidConfigError, InvalidTokenError, TransportError
from bluecat.services.stream import stream_service
from bluecat.utils.logger import api_logger
from bluecat.utils.rate_limit import debrid_circuit_breaker, debrid_rate_limiter
from bluecat.utils.validators import extract_media_query, require_access_key, validate_config


# ===========================
# Router Instance
# ===========================
router = APIRouter()


# ===========================
# Content Type Enum
# ===========================
class ContentType(str, Enum):
    movie = "movie"
    series = "series"


# ===========================
# Configuration Fields
# ===========================
CONFIG_FIELDS = {
    "tmdb_api_key": {"type": "string", "required": True},
    "alldebrid_api_key": {"type": "string", "required": True},
    "sharewood_passkey": {"type": "string", "required": False},
    "resolutions": {"type": "list", "required": False, "example": ["2160p", "1080p", "720p"]},
    "languages": {"type": "list", "required": False, "example": ["multi", "vff", "vostfr"]},
    "codecs": {"type": "list", "required": False, "example": ["h265", "h264"]},
    "files_to_show": {"type": "integer", "required": False, "default": settings.DEFAULT_FILES_TO_SHOW},
    "series_priority": {
        "type": "string",
        "required": False,
        "default": settings.DEFAULT_SERIES_PRIORITY,
        "choices": ["specific_first", "broadest_first"]
    },
    "custom_keywords": {"type": "object", "required": False, "example": {"tt0903747": "VOSTFR"}},
    "names": {"type": "list", "required": False},
    "access_key": {"type": "string", "required": False},
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ===========================
# Web Interface Endpoints
# ===========================
@router.get("/", summary="Home", description="Redirects to the configuration page")
async def root():
    return RedirectResponse("/configure")


@router.get("/configure", summary="Configuration", description="Describes the base64 configuration fields")
async def configure():
    return JSONResponse(content={
        "name": settings.ADDON_NAME,
        "version": settings.ADDON_VERSION,
        "encoding": "base64(json)",
        "fields": CONFIG_FIELDS
    })


@router.get("/access-config", summary="Access status", description="Checks if an access key is required")
async def get_access_config():
    return JSONResponse(content={
        "access_key_required": bool(settings.get_access_keys())
    })


# ===========================
# Stremio Addon Endpoints
# ===========================
@router.get("/{b64config}/manifest.json", summary="Stremio Manifest", description="Returns addon metadata for installation")
async def get_manifest(
    b64config: str = Path(..., description="Base64 encoded configuration")
):
    try:
        require_access_key(validate_config(b64config))
    except InvalidConfigError as e:
        api_logger.debug(f"Manifest with invalid config: {e}")
        return error_response(400, str(e))
    except AccessDeniedError as e:
        return error_response(e.status_code, str(e))

    return JSONResponse(content=settings.ADDON_MANIFEST)


@router.get("/{b64config}/stream/{content_type}/{content_id}",
            summary="Get streams",
            description="Returns available streams for the requested content")
async def get_streams(
    request: Request,
    b64config: str = Path(..., description="Base64 encoded configuration"),
    content_type: ContentType = Path(..., description="Content type"),
    content_id: str = Path(..., description="Content identifier")
):
    try:
        config = validate_config(b64config)
        require_access_key(config)
        query = extract_media_query(content_type.value, content_id)
    except InvalidConfigError as e:
        api_logger.debug(f"Invalid stream request: {e}")
        return error_response(400, str(e))
    except AccessDeniedError as e:
        return error_response(e.status_code, str(e))

    api_logger.debug(f"Stream: {content_type.value}/{content_id.replace('.json', '')}")

    base_url = str(request.base_url).rstrip("/")
    streams = await stream_service.resolve_streams(query, config, base_url=base_url, b64config=b64config)

    return JSONResponse(content={
        "streams": [stream.to_stremio() for stream in streams],
        "cacheMaxAge": 1
    })


@router.get("/{b64config}/unlock/{token}",
            summary="Unlock link",
            description="Unlocks a debrid file link and redirects to it")
async def unlock(
    b64config: str = Path(..., description="Base64 encoded configuration"),
    token: str = Path(..., description="Unlock token")
):
    start_time = time.time()
    try:
        config = validate_config(b64config)
        require_access_key(config)
        unlocked = await stream_service.unlock_token(token, config)
    except (InvalidConfigError, InvalidTokenError) as e:
        api_logger.debug(f"Invalid unlock request: {type(e).__name__}")
        return error_response(400, str(e))
    except AccessDeniedError as e:
        return error_response(e.status_code, str(e))
    except TransportError as e:
        api_logger.error(f"Unlock failed: {e.kind.value}")
        return error_response(502, "Failed to unlock file")

    api_logger.info(f"Unlocked in {(time.time() - start_time) * 1000:.0f}ms")
    return RedirectResponse(unlocked, status_code=302)


# ===========================
# Health Check Endpoint
# ===========================
@router.get("/health",
            summary="Health check",
            description="Returns the current health status of the service")
async def health_check():
    health_status = {
        "status": "healthy",
        "version": settings.ADDON_VERSION,
        "timestamp": int(time.time()),
        "checks": {}
    }

    health_status["checks"]["server"] = {
        "status": "ok",
        "message": "Addon server running"
    }

    limiter = debrid_rate_limiter.status()
    health_status["checks"]["rate_limiter"] = {
        "status": "ok" if limiter["queued"] < limiter["max_queue_size"] else "saturated",
        **limiter
    }

    breaker = debrid_circuit_breaker.status()
    health_status["checks"]["circuit_breaker"] = {
        "status": "ok" if breaker["state"] == "closed" else breaker["state"],
        **breaker
    }
    if breaker["state"] != "closed":
        health_status["status"] = "degraded"

    health_status["checks"]["cache"] = stream_service.get_stats()

    return health_status
