"""Flask application factory for the lifestory web app."""

import logging
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path

from flask import Flask, g, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from lifestory.config import get_settings
from lifestory.core.library import ShowLibrary
from lifestory.web.api import api_bp

logger = logging.getLogger(__name__)


def create_app(settings=None, library: ShowLibrary | None = None) -> Flask:
    """Create and configure the Flask app.

    Args:
        settings: Optional Settings override (used in tests).
        library: Optional ShowLibrary override (used in tests).
    """
    app = Flask(__name__)

    if settings is None:
        settings = get_settings()
    if library is None:
        library = ShowLibrary.from_settings(settings)

    app.config["settings"] = settings
    app.config["library"] = library

    if library.documents.initialize():
        logger.info("Initialized show data at %s", library.documents.path)

    logs_dir = settings.logs_dir
    Path(logs_dir).mkdir(parents=True, exist_ok=True)

    app.register_blueprint(api_bp, url_prefix="/api")

    if settings.storage_backend == "local":
        uploads_root = Path(settings.uploads_dir).resolve()
        prefix = "/" + settings.uploads_url_prefix.strip("/")

        @app.route(f"{prefix}/<path:filename>")
        def uploaded_file(filename: str):
            """Serve locally stored assets."""
            return send_from_directory(uploads_root, filename)

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Global exception handler for unhandled errors."""
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code

        rule = "=" * 80
        _append_log(
            logs_dir,
            "web_errors.log",
            f"\n{rule}\n"
            f"Timestamp: {_timestamp()}\n"
            f"Method: {request.method}\n"
            f"Path: {request.path}\n"
            f"Error: {e}\n"
            f"Traceback:\n{traceback.format_exc()}"
            f"{rule}\n",
        )
        logger.exception("Unhandled exception in request")
        return jsonify({"error": "Internal server error"}), 500

    @app.before_request
    def _start_timer():
        g.start_time = time.monotonic()

    @app.after_request
    def _log_request(response):
        duration_ms = (time.monotonic() - getattr(g, "start_time", time.monotonic())) * 1000
        line = f"{request.method} {request.path} {response.status_code} {duration_ms:.0f}ms"
        logger.info(line)
        _append_log(logs_dir, "web.log", f"{_timestamp()} {line}\n")
        return response

    return app


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _append_log(logs_dir: str, name: str, text: str) -> None:
    """Append ``text`` to a log file under ``logs_dir``; write errors are logged."""
    try:
        with open(Path(logs_dir) / name, "a", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        logger.warning("Could not write %s: %s", name, e)
