"""Single-page app serving.

Production serves the built bundle from ``DIST_DIR`` and answers unknown paths
with ``index.html`` (client-side routing). Development forwards every
unmatched request to the frontend dev server, which owns live reloading.
"""
from pathlib import Path

import requests
from flask import Blueprint, Response, current_app, jsonify, request, send_from_directory
from loguru import logger
from werkzeug.security import safe_join

from config import PROVIDER_TIMEOUT

spa_bp = Blueprint("spa", __name__)

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
# Hop-by-hop headers plus the ones requests/Werkzeug recompute
_SKIP_REQUEST_HEADERS = {"host", "connection", "keep-alive", "transfer-encoding",
                         "upgrade", "proxy-connection", "content-length"}
_SKIP_RESPONSE_HEADERS = {"connection", "keep-alive", "transfer-encoding",
                          "content-encoding", "content-length"}


@spa_bp.route("/", defaults={"path": ""}, methods=_ALL_METHODS)
@spa_bp.route("/<path:path>", methods=_ALL_METHODS)
def serve_spa(path):
    if not current_app.config["PRODUCTION"]:
        return _proxy_to_dev_server(path)
    if request.method not in ("GET", "HEAD"):
        return jsonify({"error": "Not found"}), 404

    dist_dir = Path(current_app.config["DIST_DIR"])
    if path:
        candidate = safe_join(str(dist_dir), path)
        if candidate and Path(candidate).is_file():
            return send_from_directory(dist_dir, path)

    if not (dist_dir / "index.html").is_file():
        logger.error("Frontend build not found in {}", dist_dir)
        return jsonify({"error": "Frontend build not found"}), 404
    return send_from_directory(dist_dir, "index.html")


def _proxy_to_dev_server(path):
    target = f"{current_app.config['DEV_SERVER_URL']}/{path}"
    if request.query_string:
        target = f"{target}?{request.query_string.decode('latin-1')}"
    headers = {k: v for k, v in request.headers if k.lower() not in _SKIP_REQUEST_HEADERS}

    try:
        upstream = requests.request(
            request.method,
            target,
            headers=headers,
            data=request.get_data(),
            stream=True,
            allow_redirects=False,
            timeout=PROVIDER_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.warning("Dev server unavailable at {}: {}", target, e)
        return jsonify({"error": "Dev server unavailable"}), 502

    response_headers = [
        (k, v) for k, v in upstream.headers.items()
        if k.lower() not in _SKIP_RESPONSE_HEADERS
    ]
    return Response(
        upstream.iter_content(chunk_size=8192),
        status=upstream.status_code,
        headers=response_headers,
    )
