"""Google OAuth API: consent URL, callback, session status, profile, logout."""
from flask import Blueprint, current_app, jsonify, make_response, render_template, request
from loguru import logger

from config import (
    ACCESS_COOKIE, REFRESH_COOKIE, SESSION_MAX_AGE,
    ACCESS_TOKEN_DEFAULT_AGE, ACCESS_TOKEN_MIN_AGE,
)
from web.blueprints._utils import cookie_options, has_session, session_tokens

auth_bp = Blueprint("auth", __name__)

_OAUTH_SUCCESS = "OAUTH_AUTH_SUCCESS"
_OAUTH_ERROR = "OAUTH_AUTH_ERROR"


def _callback_page(message, text):
    return render_template("oauth_callback.html", message=message, text=text)


@auth_bp.route("/api/auth/google/url")
def auth_url():
    oauth = current_app.oauth
    if not oauth.configured:
        return jsonify({
            "error": "Google OAuth não configurado. Defina GOOGLE_CLIENT_ID e GOOGLE_CLIENT_SECRET.",
        }), 500
    return jsonify({"url": oauth.authorization_url()})


@auth_bp.route("/auth/google/callback")
@auth_bp.route("/api/auth/google/callback")
def oauth_callback():
    code = request.args.get("code", "")
    try:
        tokens = current_app.oauth.exchange_code(code)
    except Exception:
        logger.exception("Error exchanging code for tokens")
        page = _callback_page(
            {"type": _OAUTH_ERROR, "message": "Erro na autenticação com Google."},
            "Falha na autenticação. Feche esta janela e tente novamente.",
        )
        return page, 500

    resp = make_response(_callback_page(
        {"type": _OAUTH_SUCCESS},
        "Autenticação concluída com sucesso. Esta janela fechará automaticamente.",
    ))
    options = cookie_options()
    if tokens.access_token:
        max_age = ACCESS_TOKEN_DEFAULT_AGE
        if tokens.expires_in:
            max_age = max(ACCESS_TOKEN_MIN_AGE, tokens.expires_in)
        resp.set_cookie(ACCESS_COOKIE, tokens.access_token, max_age=max_age, **options)
    if tokens.refresh_token:
        resp.set_cookie(REFRESH_COOKIE, tokens.refresh_token, max_age=SESSION_MAX_AGE, **options)
    logger.info("Google account connected (refresh token: {})", bool(tokens.refresh_token))
    return resp


@auth_bp.route("/api/auth/google/status")
def auth_status():
    # Cookie presence only; the token is not validated against Google
    connected = has_session()
    return jsonify({"connected": connected, "isAuthenticated": connected})


@auth_bp.route("/api/auth/google/user")
def auth_user():
    refresh_token, access_token = session_tokens()
    if not refresh_token and not access_token:
        return jsonify({"error": "Sessão Google não encontrada"}), 401

    oauth = current_app.oauth
    try:
        if refresh_token:
            access_token = oauth.refresh_access_token(refresh_token)
        profile = oauth.fetch_user(access_token)
    except Exception:
        logger.exception("Failed to load Google user profile")
        return jsonify({"error": "Não foi possível obter dados do usuário Google"}), 500

    email = str(profile.get("email") or "").strip().lower()
    if not email:
        return jsonify({"error": "E-mail da conta Google não disponível"}), 404
    return jsonify({
        "email": email,
        "name": profile.get("name"),
        "picture": profile.get("picture"),
    })


@auth_bp.route("/api/auth/google/logout", methods=["POST"])
def logout():
    resp = jsonify({"success": True})
    options = cookie_options()
    for name in (REFRESH_COOKIE, ACCESS_COOKIE):
        resp.delete_cookie(name, **options)
    return resp
