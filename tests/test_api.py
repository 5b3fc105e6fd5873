"""Tests for the HTTP routes."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from bluecat.config.settings import settings
from bluecat.core.errors import ErrorKind, InvalidTokenError, TransportError
from bluecat.core.models import StreamDescriptor
from bluecat.main import app, redact_path
from bluecat.services.stream import stream_service
from bluecat.utils.validators import encode_config_to_base64

_CONFIG = encode_config_to_base64({"tmdb_api_key": "tmdb", "alldebrid_api_key": "ad"})


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


class TestConfigurationRoutes:
    def test_root_redirects_to_configure(self, client: TestClient) -> None:
        response = client.get("/", follow_redirects=False)
        assert response.status_code in (302, 307)
        assert response.headers["location"] == "/configure"

    def test_configure_lists_fields(self, client: TestClient) -> None:
        fields = client.get("/configure").json()["fields"]
        assert fields["alldebrid_api_key"]["required"] is True
        assert "series_priority" in fields

    def test_manifest(self, client: TestClient) -> None:
        manifest = client.get(f"/{_CONFIG}/manifest.json").json()
        assert manifest["types"] == ["movie", "series"]
        assert manifest["idPrefixes"] == ["tt"]

    def test_manifest_with_invalid_config(self, client: TestClient) -> None:
        assert client.get("/bm90IGpzb24/manifest.json").status_code == 400


class TestStreamRoute:
    def test_returns_streams(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        resolve = AsyncMock(return_value=[StreamDescriptor(name="BlueCat", title="Heat", url="http://x/unlock/t")])
        monkeypatch.setattr(stream_service, "resolve_streams", resolve)

        response = client.get(f"/{_CONFIG}/stream/series/tt0903747:1:2.json")

        assert response.status_code == 200
        assert response.json() == {
            "streams": [{"name": "BlueCat", "title": "Heat", "url": "http://x/unlock/t"}],
            "cacheMaxAge": 1,
        }
        query = resolve.await_args.args[0]
        assert (query.catalog_id, query.season, query.episode) == ("tt0903747", 1, 2)

    def test_invalid_config_is_400(self, client: TestClient) -> None:
        response = client.get("/bm90IGpzb24/stream/movie/tt0113277.json")
        assert response.status_code == 400
        assert "error" in response.json()

    def test_non_imdb_id_is_400(self, client: TestClient) -> None:
        assert client.get(f"/{_CONFIG}/stream/movie/kitsu:1.json").status_code == 400


class TestUnlockRoute:
    def test_redirects_to_unlocked_link(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(stream_service, "unlock_token", AsyncMock(return_value="https://cdn.example/heat.mkv"))

        response = client.get(f"/{_CONFIG}/unlock/token", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://cdn.example/heat.mkv"

    def test_bad_token_is_400(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(stream_service, "unlock_token", AsyncMock(side_effect=InvalidTokenError("Malformed token")))
        assert client.get(f"/{_CONFIG}/unlock/token", follow_redirects=False).status_code == 400

    def test_upstream_failure_is_502(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            stream_service, "unlock_token", AsyncMock(side_effect=TransportError(ErrorKind.UPSTREAM, "down"))
        )
        assert client.get(f"/{_CONFIG}/unlock/token", follow_redirects=False).status_code == 502


class TestHealthRoute:
    def test_reports_guards_and_cache(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] in ("healthy", "degraded")
        assert body["checks"]["circuit_breaker"]["name"] == "alldebrid"
        assert "in_window" in body["checks"]["rate_limiter"]
        assert "metadata" in body["checks"]["cache"]


class TestAccessKey:
    @pytest.fixture(autouse=True)
    def _require_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "ACCESS_KEY", "s3cret, other")
        monkeypatch.setattr(stream_service, "resolve_streams", AsyncMock(return_value=[]))
        monkeypatch.setattr(stream_service, "unlock_token", AsyncMock(return_value="https://cdn.example/heat.mkv"))

    @pytest.mark.parametrize("path", ["stream/movie/tt0113277.json", "unlock/token", "manifest.json"])
    def test_missing_key_is_401(self, client: TestClient, path: str) -> None:
        assert client.get(f"/{_CONFIG}/{path}", follow_redirects=False).status_code == 401

    @pytest.mark.parametrize("path", ["stream/movie/tt0113277.json", "unlock/token", "manifest.json"])
    def test_wrong_key_is_403(self, client: TestClient, path: str) -> None:
        config = encode_config_to_base64({"tmdb_api_key": "tmdb", "alldebrid_api_key": "ad", "access_key": "nope"})
        assert client.get(f"/{config}/{path}", follow_redirects=False).status_code == 403

    def test_any_listed_key_is_accepted(self, client: TestClient) -> None:
        config = encode_config_to_base64({"tmdb_api_key": "tmdb", "alldebrid_api_key": "ad", "ACCESS_KEY": "other"})
        assert client.get(f"/{config}/stream/movie/tt0113277.json").status_code == 200
        assert client.get(f"/{config}/unlock/token", follow_redirects=False).status_code == 302

    def test_access_config_reports_requirement(self, client: TestClient) -> None:
        assert client.get("/access-config").json() == {"access_key_required": True}

    def test_open_without_server_key(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "ACCESS_KEY", "")
        assert client.get(f"/{_CONFIG}/stream/movie/tt0113277.json").status_code == 200
        assert client.get("/access-config").json() == {"access_key_required": False}


class TestRedactPath:
    def test_config_segment_is_hidden(self) -> None:
        assert redact_path(f"/{_CONFIG}/stream/movie/tt0111161.json") == "/***/stream/movie/tt0111161.json"

    def test_public_paths_are_kept(self) -> None:
        assert redact_path("/health") == "/health"
        assert redact_path("/configure") == "/configure"
        assert redact_path("/") == "/"
