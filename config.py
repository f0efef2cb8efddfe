"""Shared configuration for the PromptMetal desktop shell and backend."""
import os
import sys
from pathlib import Path

import keyring
from keyring.errors import KeyringError

APP_NAME = "PromptMetal"
APP_VERSION = "1.0.0"
BUILD_DATE = "2026-10-18"

# Paths
BASE_DIR = Path(__file__).parent

# Data directory: per-user application support for the bundled app, else project-relative
_is_bundled = getattr(sys, "frozen", False)
if _is_bundled:
    if sys.platform == "darwin":
        DATA_DIR = Path.home() / "Library" / "Application Support" / APP_NAME
    elif sys.platform == "win32":
        DATA_DIR = Path(os.environ.get("APPDATA", Path.home())) / APP_NAME
    else:
        DATA_DIR = Path.home() / ".promptmetal"
    DIST_DIR = Path(getattr(sys, "_MEIPASS", BASE_DIR)) / "dist"
else:
    DATA_DIR = BASE_DIR / "data"
    DIST_DIR = BASE_DIR / "dist"

# Owner-only access: the webview profile holds the Google session cookies
DATA_DIR.mkdir(parents=True, exist_ok=True)
try:
    os.chmod(DATA_DIR, 0o700)
except OSError:
    pass

LOGS_DIR = DATA_DIR / "logs"
WEBVIEW_STORAGE_DIR = DATA_DIR / "webview"

# Web server
WEB_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50 MB (base64 document uploads)
DEFAULT_DEV_SERVER_URL = "http://localhost:5173"

# Startup handshake
STARTUP_TIMEOUT = 30.0  # seconds until the backend must accept connections
PROBE_INTERVAL = 0.25
PROBE_ATTEMPT_TIMEOUT = 1.0
STOP_TIMEOUT = 5.0  # grace period between terminate and kill

# Window
WINDOW_WIDTH = 1400
WINDOW_HEIGHT = 900
WINDOW_MIN_SIZE = (1100, 700)
AUTH_WINDOW_WIDTH = 520
AUTH_WINDOW_HEIGHT = 700

# Google OAuth / Drive
PROVIDER_TIMEOUT = 30  # seconds per outbound Google call
GOOGLE_CONSENT_HOST = "accounts.google.com"
OAUTH_CALLBACK_PATHS = ("/auth/google/callback", "/api/auth/google/callback")
GOOGLE_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
]
BACKUP_FOLDER_NAME = "PromptMetal Backups"
DOCUMENTS_FOLDER_NAME = "PromptMetal Documents"
BACKUP_RETENTION = 3

# Session cookies (no server-side session store)
REFRESH_COOKIE = "google_refresh_token"
ACCESS_COOKIE = "google_access_token"
SESSION_MAX_AGE = 30 * 24 * 60 * 60
ACCESS_TOKEN_MIN_AGE = 60
ACCESS_TOKEN_DEFAULT_AGE = 60 * 60

# Keychain entry for the OAuth client secret
KEYRING_SERVICE = APP_NAME
KEYRING_SECRET_ENTRY = "google_client_secret"


def _env(environ):
    return os.environ if environ is None else environ


def get_port(environ=None):
    """Port the backend binds and the prober checks (``PORT``, default 3000)."""
    raw = _env(environ).get("PORT", "")
    if not raw:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer, got {raw!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"PORT out of range: {port}")
    return port


def is_production(environ=None):
    env = _env(environ)
    mode = env.get("NODE_ENV") or env.get("APP_ENV") or ""
    return mode.strip().lower() == "production"


def get_app_url(environ=None):
    """Externally visible base URL.

    Both the OAuth redirect URI and the desktop window load from it, so the
    session cookies set by the callback are sent by the window.
    """
    env = _env(environ)
    url = (env.get("APP_URL") or "").strip().rstrip("/")
    return url or f"http://localhost:{get_port(env)}"


def get_dev_server_url(environ=None):
    url = (_env(environ).get("DEV_SERVER_URL") or "").strip().rstrip("/")
    return url or DEFAULT_DEV_SERVER_URL


def get_dev_command(environ=None):
    """Shell command that runs the backend in development mode."""
    cmd = (_env(environ).get("PROMPTMETAL_DEV_COMMAND") or "").strip()
    return cmd or f'"{sys.executable}" -m web.server --reload'


def is_packaged(environ=None):
    return _is_bundled or _env(environ).get("PROMPTMETAL_PACKAGED") == "1"


def get_google_credentials(environ=None):
    """Return ``(client_id, client_secret)``.

    The secret comes from ``GOOGLE_CLIENT_SECRET`` or, failing that, the OS
    keychain. Either value may be empty when OAuth is not configured.
    """
    env = _env(environ)
    client_id = (env.get("GOOGLE_CLIENT_ID") or "").strip()
    client_secret = (env.get("GOOGLE_CLIENT_SECRET") or "").strip()
    if not client_secret:
        try:
            client_secret = keyring.get_password(KEYRING_SERVICE, KEYRING_SECRET_ENTRY) or ""
        except KeyringError:
            client_secret = ""
    return client_id, client_secret


def save_google_client_secret(secret):
    """Store the OAuth client secret in the OS keychain."""
    keyring.set_password(KEYRING_SERVICE, KEYRING_SECRET_ENTRY, secret)
