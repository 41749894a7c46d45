"""Tests for the lifestory web API endpoints."""

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from lifestory.core.errors import AssetOperationError
from lifestory.core.library import ShowLibrary
from lifestory.web.app import create_app


@pytest.fixture
def app(test_settings, library):
    """Flask test app over an in-memory asset store."""
    application = create_app(settings=test_settings, library=library)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def series_id(client):
    r = client.post("/api/series", json={"title": "Trip", "episodeCount": 2})
    return r.get_json()["series"]["id"]


def _file(data=b"bytes", name="a.png"):
    return (io.BytesIO(data), name)


def _post_files(client, url, field, files):
    return client.post(url, data={field: files}, content_type="multipart/form-data")


def _media_ids(client, series_id, index=0):
    series = client.get(f"/api/series/{series_id}").get_json()
    return [m["id"] for m in series["episodes"][index]["media"]]


# ---------------------------------------------------------------------------
# Health + series CRUD
# ---------------------------------------------------------------------------

class TestSeriesEndpoints:
    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        assert r.get_json()["status"] == "ok"

    def test_list_starts_empty(self, client):
        r = client.get("/api/series")
        assert r.status_code == 200
        assert r.get_json() == []

    def test_create(self, client):
        r = client.post("/api/series", json={"title": "Trip", "episodeCount": 2})
        assert r.status_code == 200
        data = r.get_json()
        assert data["success"] is True
        assert data["series"]["title"] == "Trip"
        assert data["series"]["episodeCount"] == 2
        assert [e["title"] for e in data["series"]["episodes"]] == ["Episode 1", "Episode 2"]

    def test_create_with_defaults(self, client):
        series = client.post("/api/series", json={}).get_json()["series"]
        assert series["title"] == "Untitled Series"
        assert series["episodeCount"] == 1

    def test_create_with_bad_count(self, client):
        r = client.post("/api/series", json={"episodeCount": "lots"})
        assert r.status_code == 400
        assert "error" in r.get_json()

    def test_get(self, client, series_id):
        r = client.get(f"/api/series/{series_id}")
        assert r.status_code == 200
        assert r.get_json()["id"] == series_id

    def test_get_not_found(self, client):
        r = client.get("/api/series/nonexistent")
        assert r.status_code == 404
        assert r.get_json()["error"] == "Series not found"

    def test_update_episode_count(self, client, series_id):
        r = client.put(f"/api/series/{series_id}", json={"episodeCount": 1, "title": "Day Trip"})
        assert r.status_code == 200
        series = r.get_json()["series"]
        assert series["title"] == "Day Trip"
        assert len(series["episodes"]) == 1

    def test_update_ignores_unknown_keys(self, client, series_id):
        r = client.put(f"/api/series/{series_id}", json={"id": "hijack"})
        assert r.status_code == 200
        assert r.get_json()["series"]["id"] == series_id

    def test_update_not_found(self, client):
        r = client.put("/api/series/nonexistent", json={"title": "x"})
        assert r.status_code == 404

    def test_delete(self, client, series_id):
        _post_files(client, f"/api/series/{series_id}/upload/media/0", "media", [_file()])
        r = client.delete(f"/api/series/{series_id}")
        assert r.status_code == 200
        assert r.get_json() == {"success": True, "assetsDeleted": 1}
        assert client.get(f"/api/series/{series_id}").status_code == 404

    def test_delete_not_found(self, client):
        assert client.delete("/api/series/nonexistent").status_code == 404


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

class TestUploadEndpoints:
    def test_series_thumbnail(self, client, series_id, fake_store):
        r = _post_files(
            client, f"/api/series/{series_id}/upload/thumbnail", "thumbnail", _file(b"img")
        )
        assert r.status_code == 200
        data = r.get_json()
        assert data["success"] is True
        assert data["filename"].startswith("series-thumbnails/")
        assert data["url"] == f"mem://{data['filename']}"
        assert fake_store.objects[data["filename"]] == b"img"

    def test_episode_thumbnail(self, client, series_id):
        r = _post_files(
            client, f"/api/series/{series_id}/upload/thumbnail/1", "thumbnail", _file()
        )
        assert r.status_code == 200
        series = client.get(f"/api/series/{series_id}").get_json()
        assert series["episodes"][1]["thumbnail"] == r.get_json()["url"]

    def test_thumbnail_missing_file(self, client, series_id):
        r = client.post(f"/api/series/{series_id}/upload/thumbnail/0")
        assert r.status_code == 400
        assert r.get_json()["error"] == "No file uploaded"

    @pytest.mark.parametrize("index", ["5", "-1", "abc"])
    def test_invalid_episode_index(self, client, series_id, index, fake_store):
        r = _post_files(
            client, f"/api/series/{series_id}/upload/thumbnail/{index}", "thumbnail", _file()
        )
        assert r.status_code == 400
        assert r.get_json()["error"] == "Invalid episode index"
        assert fake_store.objects == {}

    def test_unknown_series(self, client):
        r = _post_files(client, "/api/series/nonexistent/upload/thumbnail/0", "thumbnail", _file())
        assert r.status_code == 404

    def test_media(self, client, series_id):
        r = _post_files(
            client,
            f"/api/series/{series_id}/upload/media/0",
            "media",
            [_file(name="clip.mp4"), _file(name="pic.png")],
        )
        assert r.status_code == 200
        files = r.get_json()["files"]
        assert [f["type"] for f in files] == ["video", "image"]
        assert [f["originalName"] for f in files] == ["clip.mp4", "pic.png"]
        assert _media_ids(client, series_id) == [f["id"] for f in files]

    def test_media_without_files(self, client, series_id):
        r = client.post(f"/api/series/{series_id}/upload/media/0")
        assert r.status_code == 400
        assert r.get_json()["error"] == "No files uploaded"

    def test_music(self, client, series_id):
        r = _post_files(
            client, f"/api/series/{series_id}/upload/music/0", "music", _file(name="song.mp3")
        )
        assert r.status_code == 200
        data = r.get_json()
        assert data["originalName"] == "song.mp3"
        assert data["filename"].startswith("music/")

        episode = client.get(f"/api/series/{series_id}").get_json()["episodes"][0]
        assert episode["music"] == data["url"]
        assert episode["musicOriginalName"] == "song.mp3"

    def test_storage_failure_is_500(self, client, series_id, fake_store):
        fake_store.put = MagicMock(side_effect=AssetOperationError("Upload of a.png failed"))
        r = _post_files(
            client, f"/api/series/{series_id}/upload/thumbnail/0", "thumbnail", _file()
        )
        assert r.status_code == 500
        assert r.get_json()["error"] == "Upload of a.png failed"

    def test_requests_are_appended_to_web_log(self, client, test_settings):
        client.get("/api/health")
        web_log = Path(test_settings.logs_dir) / "web.log"
        assert "GET /api/health 200" in web_log.read_text(encoding="utf-8")

    def test_unexpected_error_is_logged(self, client, series_id, fake_store, test_settings):
        fake_store.fail_puts_after = 0
        r = _post_files(client, f"/api/series/{series_id}/upload/media/0", "media", [_file()])
        assert r.status_code == 500
        assert r.get_json() == {"error": "Internal server error"}
        error_log = Path(test_settings.logs_dir) / "web_errors.log"
        assert "storage unavailable" in error_log.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Music + media management
# ---------------------------------------------------------------------------

class TestMediaManagement:
    def test_delete_music(self, client, series_id, fake_store):
        stored = _post_files(
            client, f"/api/series/{series_id}/upload/music/0", "music", _file(name="s.mp3")
        ).get_json()
        r = client.delete(f"/api/series/{series_id}/music/0")
        assert r.status_code == 200
        assert r.get_json() == {"success": True}
        assert fake_store.deleted == [stored["filename"]]

    def test_delete_music_when_absent(self, client, series_id):
        assert client.delete(f"/api/series/{series_id}/music/0").status_code == 200

    def test_delete_media(self, client, series_id):
        _post_files(client, f"/api/series/{series_id}/upload/media/0", "media", [_file()])
        (media_id,) = _media_ids(client, series_id)
        r = client.delete(f"/api/series/{series_id}/media/0/{media_id}")
        assert r.status_code == 200
        assert _media_ids(client, series_id) == []

    def test_delete_media_not_found(self, client, series_id):
        r = client.delete(f"/api/series/{series_id}/media/0/nope")
        assert r.status_code == 404
        assert r.get_json()["error"] == "Media not found"

    def test_reorder(self, client, series_id):
        _post_files(
            client,
            f"/api/series/{series_id}/upload/media/0",
            "media",
            [_file(name="a.png"), _file(name="b.png"), _file(name="c.png")],
        )
        a, b, c = _media_ids(client, series_id)
        r = client.post(f"/api/series/{series_id}/media/0/reorder", json={"mediaIds": [c, a]})
        assert r.status_code == 200
        assert [m["id"] for m in r.get_json()["media"]] == [c, a, b]
        assert _media_ids(client, series_id) == [c, a, b]

    def test_reorder_requires_array(self, client, series_id):
        r = client.post(f"/api/series/{series_id}/media/0/reorder", json={"mediaIds": "a,b"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "mediaIds must be an array"


# ---------------------------------------------------------------------------
# Legacy single-show routes
# ---------------------------------------------------------------------------

class TestLegacyEndpoints:
    def test_get_show_default(self, client):
        r = client.get("/api/show")
        assert r.status_code == 200
        data = r.get_json()
        assert data["showTitle"] == "The Story of My Life"
        assert data["episodeCount"] == 1

    def test_save_show(self, client):
        r = client.post("/api/show", json={"showTitle": "Mine", "episodeCount": 2})
        assert r.status_code == 200
        data = r.get_json()
        assert data["success"] is True
        assert data["data"]["showTitle"] == "Mine"
        assert client.get("/api/show").get_json() == data["data"]

    def test_legacy_upload_without_series(self, client):
        r = _post_files(client, "/api/upload/thumbnail/0", "thumbnail", _file())
        assert r.status_code == 400
        assert r.get_json()["error"] == "No series found"

    def test_legacy_routes_use_first_series(self, client, series_id):
        client.post("/api/series", json={"title": "Second"})

        r = _post_files(client, "/api/upload/media/1", "media", [_file(name="a.png")])
        assert r.status_code == 200
        (media_id,) = _media_ids(client, series_id, index=1)

        r = _post_files(client, "/api/upload/music/1", "music", _file(name="s.mp3"))
        assert r.status_code == 200
        assert client.delete("/api/music/1").status_code == 200

        r = client.post("/api/media/1/reorder", json={"mediaIds": [media_id]})
        assert r.status_code == 200
        assert client.delete(f"/api/media/1/{media_id}").status_code == 200
        assert _media_ids(client, series_id, index=1) == []


# ---------------------------------------------------------------------------
# Local file serving
# ---------------------------------------------------------------------------

class TestLocalUploads:
    def test_uploaded_file_is_served(self, test_settings):
        app = create_app(settings=test_settings, library=ShowLibrary.from_settings(test_settings))
        client = app.test_client()

        r = _post_files(client, "/api/upload/thumbnail/0", "thumbnail", _file(b"png-bytes"))
        assert r.status_code == 200
        url = r.get_json()["url"]
        assert url.startswith("/uploads/thumbnails/")

        served = client.get(url)
        assert served.status_code == 200
        assert served.data == b"png-bytes"

    def test_missing_file_is_json_404(self, test_settings):
        client = create_app(settings=test_settings).test_client()
        r = client.get("/uploads/thumbnails/missing.png")
        assert r.status_code == 404
        assert "error" in r.get_json()
