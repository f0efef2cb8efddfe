"""Shared helpers for the OAuth and Drive blueprints."""

from flask import current_app, g, jsonify, request

from config import ACCESS_COOKIE, REFRESH_COOKIE

NOT_CONNECTED = "Not connected to Google Drive"


def session_tokens():
    """Return ``(refresh_token, access_token)`` from the session cookies."""
    return request.cookies.get(REFRESH_COOKIE), request.cookies.get(ACCESS_COOKIE)


def has_session():
    refresh_token, access_token = session_tokens()
    return bool(refresh_token or access_token)


def cookie_options():
    """HTTP-only everywhere; Secure + cross-site only in production."""
    production = current_app.config.get("PRODUCTION", False)
    return {
        "httponly": True,
        "secure": production,
        "samesite": "None" if production else "Lax",
        "path": "/",
    }


def require_drive():
    """Build a Drive client for the caller's session.

    Returns (drive, None) on success or (None, error_response) when the
    request carries no session cookie.
    """
    refresh_token, access_token = session_tokens()
    if not refresh_token and not access_token:
        return None, (jsonify({"error": NOT_CONNECTED}), 401)
    drive = current_app.drive_factory(
        current_app.oauth, refresh_token=refresh_token, access_token=access_token,
    )
    # Closed when the app context tears down (see web/app.py)
    g.drive = drive
    return drive, None
