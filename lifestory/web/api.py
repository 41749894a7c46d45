"""API blueprint for the lifestory web app."""

import logging
from datetime import UTC, datetime

from flask import Blueprint, current_app, jsonify, request

from lifestory import __version__
from lifestory.core.errors import (
    AssetOperationError,
    InvalidIndexError,
    InvalidInputError,
    NotFoundError,
)
from lifestory.core.library import ShowLibrary, Upload

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

# JSON body key -> ShowLibrary.update_series keyword
_SERIES_FIELDS = {
    "title": "title",
    "description": "description",
    "episodeCount": "episode_count",
    "episodes": "episodes",
}


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@api_bp.errorhandler(NotFoundError)
def _not_found(e):
    return jsonify({"error": str(e)}), 404


@api_bp.errorhandler(InvalidIndexError)
@api_bp.errorhandler(InvalidInputError)
def _bad_request(e):
    return jsonify({"error": str(e)}), 400


@api_bp.errorhandler(AssetOperationError)
def _storage_failure(e):
    logger.error("Asset storage failure: %s", e)
    return jsonify({"error": str(e)}), 500


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_library() -> ShowLibrary:
    return current_app.config["library"]


def _parse_index(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise InvalidIndexError("Invalid episode index") from None


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _upload(field: str) -> Upload | None:
    file = request.files.get(field)
    if file is None or not file.filename:
        return None
    return Upload(filename=file.filename, data=file.read(), content_type=file.mimetype)


def _uploads(field: str) -> list[Upload]:
    return [
        Upload(filename=f.filename, data=f.read(), content_type=f.mimetype)
        for f in request.files.getlist(field)
        if f.filename
    ]


def _stored_response(stored, **extra):
    return jsonify({"success": True, "filename": stored.key, "url": stored.url, **extra})


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@api_bp.route("/health")
def health():
    """Health check for monitoring and proxy verification."""
    return jsonify(
        {
            "status": "ok",
            "time": datetime.now(UTC).isoformat(),
            "version": __version__,
        }
    )


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------


@api_bp.route("/series")
def list_series():
    return jsonify([s.to_json() for s in _get_library().list_series()])


@api_bp.route("/series", methods=["POST"])
def create_series():
    body = _json_body()
    series = _get_library().create_series(
        title=body.get("title"),
        description=body.get("description"),
        episode_count=body.get("episodeCount"),
    )
    return jsonify({"success": True, "series": series.to_json()})


@api_bp.route("/series/<series_id>")
def get_series(series_id: str):
    return jsonify(_get_library().get_series(series_id).to_json())


@api_bp.route("/series/<series_id>", methods=["PUT"])
def update_series(series_id: str):
    body = _json_body()
    changes = {kwarg: body[key] for key, kwarg in _SERIES_FIELDS.items() if key in body}
    series = _get_library().update_series(series_id, **changes)
    return jsonify({"success": True, "series": series.to_json()})


@api_bp.route("/series/<series_id>", methods=["DELETE"])
def delete_series(series_id: str):
    deleted = _get_library().delete_series(series_id)
    return jsonify({"success": True, "assetsDeleted": deleted})


@api_bp.route("/series/<series_id>/upload/thumbnail", methods=["POST"])
def upload_series_thumbnail(series_id: str):
    stored = _get_library().upload_series_thumbnail(series_id, _upload("thumbnail"))
    return _stored_response(stored)


# ---------------------------------------------------------------------------
# Episode assets. The legacy routes (no series id) act on the first series.
# ---------------------------------------------------------------------------


@api_bp.route("/series/<series_id>/upload/thumbnail/<episode_index>", methods=["POST"])
@api_bp.route("/upload/thumbnail/<episode_index>", methods=["POST"])
def upload_episode_thumbnail(episode_index: str, series_id: str | None = None):
    upload = _upload("thumbnail")
    stored = _get_library().upload_episode_thumbnail(
        series_id, _parse_index(episode_index), upload
    )
    return _stored_response(stored)


@api_bp.route("/series/<series_id>/upload/media/<episode_index>", methods=["POST"])
@api_bp.route("/upload/media/<episode_index>", methods=["POST"])
def upload_media(episode_index: str, series_id: str | None = None):
    uploads = _uploads("media")
    added = _get_library().upload_media(series_id, _parse_index(episode_index), uploads)
    return jsonify({"success": True, "files": [item.to_json() for item in added]})


@api_bp.route("/series/<series_id>/upload/music/<episode_index>", methods=["POST"])
@api_bp.route("/upload/music/<episode_index>", methods=["POST"])
def upload_music(episode_index: str, series_id: str | None = None):
    upload = _upload("music")
    stored = _get_library().upload_episode_music(
        series_id, _parse_index(episode_index), upload
    )
    return _stored_response(stored, originalName=upload.filename)


@api_bp.route("/series/<series_id>/music/<episode_index>", methods=["DELETE"])
@api_bp.route("/music/<episode_index>", methods=["DELETE"])
def delete_music(episode_index: str, series_id: str | None = None):
    _get_library().delete_episode_music(series_id, _parse_index(episode_index))
    return jsonify({"success": True})


@api_bp.route("/series/<series_id>/media/<episode_index>/<media_id>", methods=["DELETE"])
@api_bp.route("/media/<episode_index>/<media_id>", methods=["DELETE"])
def delete_media(episode_index: str, media_id: str, series_id: str | None = None):
    _get_library().delete_media(series_id, _parse_index(episode_index), media_id)
    return jsonify({"success": True})


@api_bp.route("/series/<series_id>/media/<episode_index>/reorder", methods=["POST"])
@api_bp.route("/media/<episode_index>/reorder", methods=["POST"])
def reorder_media(episode_index: str, series_id: str | None = None):
    media_ids = _json_body().get("mediaIds")
    if not isinstance(media_ids, list):
        raise InvalidInputError("mediaIds must be an array")
    media = _get_library().reorder_media(series_id, _parse_index(episode_index), media_ids)
    return jsonify({"success": True, "media": [item.to_json() for item in media]})


# ---------------------------------------------------------------------------
# Legacy single-show document
# ---------------------------------------------------------------------------


@api_bp.route("/show")
def get_show():
    return jsonify(_get_library().get_legacy_show())


@api_bp.route("/show", methods=["POST"])
def save_show():
    body = _json_body()
    data = _get_library().save_legacy_show(
        show_title=body.get("showTitle"),
        episode_count=body.get("episodeCount"),
        episodes=body.get("episodes"),
    )
    return jsonify({"success": True, "data": data})
