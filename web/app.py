"""Flask backend: Google OAuth/Drive passthrough plus the single-page app."""
import time
from urllib.parse import urlparse

from flask import Flask, g, jsonify, request
from flask_talisman import Talisman
from loguru import logger

from config import (
    APP_VERSION, DIST_DIR, MAX_CONTENT_LENGTH, OAUTH_CALLBACK_PATHS,
    get_app_url, get_dev_server_url, get_google_credentials, get_port, is_production,
)
from core.drive import DriveClient
from core.google_auth import GoogleOAuth

# Firebase (Auth + Firestore) and Google endpoints the SPA talks to directly
_CSP = {
    "default-src": "'self'",
    "script-src": ["'self'", "'unsafe-inline'", "'unsafe-eval'",
                   "apis.google.com", "www.gstatic.com"],
    "style-src": ["'self'", "'unsafe-inline'", "fonts.googleapis.com"],
    "font-src": ["'self'", "data:", "fonts.gstatic.com"],
    "img-src": ["'self'", "data:", "blob:", "https:"],
    "connect-src": ["'self'", "*.googleapis.com", "*.firebaseio.com",
                    "wss://*.firebaseio.com", "*.cloudfunctions.net", "ws:", "wss:"],
    "frame-src": ["'self'", "*.firebaseapp.com", "accounts.google.com"],
    "object-src": "'none'",
    "base-uri": "'self'",
}


def _allowed_hosts(port, app_url):
    hosts = {
        f"127.0.0.1:{port}", f"localhost:{port}",
        "127.0.0.1", "localhost",
    }
    external = urlparse(app_url).netloc
    if external:
        hosts.add(external)
    return hosts


def create_app(environ=None):
    """Build the backend. *environ* overrides ``os.environ`` (tests)."""
    production = is_production(environ)
    port = get_port(environ)
    app_url = get_app_url(environ)
    logger.info("Creating PromptMetal backend v{} ({})", APP_VERSION,
                "production" if production else "development")

    app = Flask(__name__, template_folder="templates")
    app.config.update(
        MAX_CONTENT_LENGTH=MAX_CONTENT_LENGTH,
        PRODUCTION=production,
        PORT=port,
        APP_URL=app_url,
        DIST_DIR=DIST_DIR,
        DEV_SERVER_URL=get_dev_server_url(environ),
    )

    Talisman(
        app,
        content_security_policy=_CSP,
        force_https=False,
        strict_transport_security=False,
        session_cookie_secure=production,
        frame_options="SAMEORIGIN",
    )

    # Shared Google collaborators (accessed via current_app in blueprints)
    client_id, client_secret = get_google_credentials(environ)
    app.oauth = GoogleOAuth(client_id, client_secret, f"{app_url}{OAUTH_CALLBACK_PATHS[0]}")
    app.drive_factory = DriveClient
    if not app.oauth.configured:
        logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; Drive features disabled")

    allowed_hosts = _allowed_hosts(port, app_url)

    # --- Request logging ---
    @app.before_request
    def _log_request():
        g.request_start = time.time()

    @app.after_request
    def _after_request(response):
        duration = time.time() - getattr(g, "request_start", time.time())
        if request.path.startswith(("/api/", "/auth/")):
            logger.info(
                "{} {} {} {:.0f}ms",
                request.method, request.path, response.status_code,
                duration * 1000,
            )
        return response

    @app.teardown_appcontext
    def _close_drive(exc):
        drive = g.pop("drive", None)
        if drive is not None:
            drive.close()

    # --- Host header validation (prevent DNS rebinding) ---
    @app.before_request
    def _validate_host():
        if request.path.startswith("/api/") and request.host not in allowed_hosts:
            return jsonify({"error": "Invalid host"}), 403

    # --- Health check ---
    @app.route("/healthz")
    def healthz():
        return jsonify({
            "status": "ok",
            "version": APP_VERSION,
            "oauth_configured": app.oauth.configured,
        })

    # --- Register Blueprints ---
    from web.blueprints.auth import auth_bp
    from web.blueprints.drive import drive_bp
    from web.blueprints.spa import spa_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(drive_bp)
    app.register_blueprint(spa_bp)

    return app
