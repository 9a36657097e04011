"""Flask application factory for the AudioRemux JSON API.

The app serves no pages; every response, errors included, is JSON.
"""

import atexit
import tempfile
from pathlib import Path

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from audioremux.process import process_registry

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024 * 1024

_shutdown_hook_registered = False


def _register_shutdown_hook() -> None:
    global _shutdown_hook_registered
    if not _shutdown_hook_registered:
        atexit.register(process_registry.terminate_all)
        _shutdown_hook_registered = True


def create_app(
    work_dir: Path | None = None,
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> Flask:
    """Build the API app; uploads and job outputs live under ``work_dir``."""
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="audioremux_"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload_bytes

    from audioremux.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({"error": error.description}), error.code

    _register_shutdown_hook()
    return app
