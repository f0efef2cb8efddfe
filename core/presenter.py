"""Native window bound to the backend's root URL.

The page gets no host access beyond :class:`DesktopAPI`. Links that would
open a new window are handed to the OS browser instead of navigating inside
the app, except the Google consent page: it opens in an app-owned child
window so the callback's session cookies land in the app's own profile.
"""
import json
import webbrowser
from urllib.parse import urlparse

import webview
from loguru import logger

from config import (
    APP_NAME, APP_VERSION, WEBVIEW_STORAGE_DIR,
    WINDOW_WIDTH, WINDOW_HEIGHT, WINDOW_MIN_SIZE,
    AUTH_WINDOW_WIDTH, AUTH_WINDOW_HEIGHT,
    GOOGLE_CONSENT_HOST, OAUTH_CALLBACK_PATHS,
)

_EXTERNAL_SCHEMES = {"http", "https", "mailto"}

# Installed on every page load. window.open() never creates an in-app window
# directly: consent URLs go to open_auth_window and get back a hidden iframe's
# window as the popup handle (real ``closed`` and a valid MessageEvent source);
# everything else goes to the OS browser.
_NEW_WINDOW_INTERCEPTOR = """
(function () {
  if (window.__promptmetalOpenPatched) { return; }
  window.__promptmetalOpenPatched = true;
  var pending = null;

  window.__promptmetalAuthFinished = function (message) {
    if (!pending) { return; }
    var frame = pending;
    pending = null;
    if (message) {
      window.dispatchEvent(new MessageEvent('message', {
        data: message, origin: window.location.origin, source: frame.contentWindow
      }));
    }
    frame.remove();
  };

  window.open = function (url) {
    if (!url || !window.pywebview || !window.pywebview.api) { return null; }
    var absolute = new URL(url, window.location.href).href;
    if (new URL(absolute).hostname !== '%(consent_host)s') {
      window.pywebview.api.open_external(absolute);
      return null;
    }
    if (pending) { pending.remove(); }
    var frame = document.createElement('iframe');
    frame.style.display = 'none';
    document.body.appendChild(frame);
    pending = frame;
    var handle = frame.contentWindow;
    handle.close = function () {
      window.pywebview.api.close_auth_window();
      window.__promptmetalAuthFinished(null);
    };
    handle.focus = function () {};
    window.pywebview.api.open_auth_window(absolute);
    return handle;
  };
})();
""" % {"consent_host": GOOGLE_CONSENT_HOST}

# Set by the callback page (web/templates/oauth_callback.html)
_READ_OAUTH_MESSAGE = "window.__promptmetalOAuthMessage || null"


def configure_webview():
    """Global pywebview settings applied before any window exists."""
    webview.settings["OPEN_EXTERNAL_LINKS_IN_BROWSER"] = True
    webview.settings["ALLOW_FILE_URLS"] = False


def is_consent_url(url):
    parsed = urlparse(str(url))
    return parsed.scheme == "https" and parsed.hostname == GOOGLE_CONSENT_HOST


def is_callback_url(url):
    return urlparse(str(url or "")).path in OAUTH_CALLBACK_PATHS


class DesktopAPI:
    """Methods callable from JS via window.pywebview.api.*

    Keep this surface narrow: everything public here is reachable from the
    loaded page.
    """

    def __init__(self, presenter=None):
        self._presenter = presenter

    def open_external(self, url):
        """Open *url* in the system's default handler."""
        scheme = urlparse(str(url)).scheme.lower()
        if scheme not in _EXTERNAL_SCHEMES:
            logger.warning("Refused to open external URL with scheme '{}'", scheme)
            return False
        webbrowser.open(str(url))
        return True

    def open_auth_window(self, url):
        """Open the Google consent page in an app-owned child window."""
        if self._presenter is None or not is_consent_url(url):
            logger.warning("Refused to open auth window for {}", url)
            return False
        self._presenter.open_auth_window(str(url))
        return True

    def close_auth_window(self):
        if self._presenter is not None:
            self._presenter.close_auth_window()

    def get_version(self):
        return APP_VERSION


class WindowPresenter:
    """Owns the application window and, during sign-in, the consent window."""

    def __init__(self, url, title=APP_NAME, api=None):
        self.url = url
        self.title = title
        self.api = api or DesktopAPI(self)
        self.window = None
        self.auth_window = None
        self._maximized = False
        self._shown = False

    def open(self):
        """Create the window (hidden until its first load completes)."""
        if self.window is not None:
            return self.window

        window = webview.create_window(
            self.title,
            url=self.url,
            width=WINDOW_WIDTH,
            height=WINDOW_HEIGHT,
            min_size=WINDOW_MIN_SIZE,
            fullscreen=False,
            hidden=True,
            js_api=self.api,
        )
        self.window = window
        self._maximized = False
        self._shown = False

        window.events.loaded += lambda: self._on_loaded(window)
        window.events.maximized += lambda: self._set_maximized(window, True)
        window.events.restored += lambda: self._set_maximized(window, False)
        window.events.closed += lambda: self._on_closed(window)
        logger.info("Window created for {}", self.url)
        return window

    def activate(self):
        """Recreate the window when the app is re-activated with none open."""
        if webview.windows:
            return None
        self.window = None
        return self.open()

    def run(self, debug=False):
        """Enter the GUI loop; returns once every window has closed."""
        WEBVIEW_STORAGE_DIR.mkdir(parents=True, exist_ok=True)
        webview.start(
            debug=debug,
            private_mode=False,
            storage_path=str(WEBVIEW_STORAGE_DIR),
        )

    # -- sign-in window -------------------------------------------------------

    def open_auth_window(self, url):
        """Show the consent page; a previous consent window is replaced."""
        self.close_auth_window()
        child = webview.create_window(
            f"{self.title} - Google",
            url=url,
            width=AUTH_WINDOW_WIDTH,
            height=AUTH_WINDOW_HEIGHT,
        )
        self.auth_window = child
        child.events.loaded += lambda: self._on_auth_loaded(child)
        child.events.closed += lambda: self._on_auth_closed(child)
        logger.info("Google sign-in window opened")
        return child

    def close_auth_window(self):
        child, self.auth_window = self.auth_window, None
        if child is not None:
            child.destroy()

    def _on_auth_loaded(self, child):
        if child is not self.auth_window or not is_callback_url(child.get_current_url()):
            return
        message = child.evaluate_js(_READ_OAUTH_MESSAGE)
        logger.info("Google sign-in finished: {}", (message or {}).get("type"))
        self.auth_window = None
        self._finish_auth(message)
        child.destroy()

    def _on_auth_closed(self, child):
        # Closed by the user before reaching the callback
        if child is self.auth_window:
            self.auth_window = None
            self._finish_auth(None)

    def _finish_auth(self, message):
        if self.window is not None:
            self.window.evaluate_js(f"window.__promptmetalAuthFinished({json.dumps(message)})")

    # -- window events --------------------------------------------------------

    def _on_loaded(self, window):
        window.evaluate_js(_NEW_WINDOW_INTERCEPTOR)
        if self._shown or window is not self.window:
            return
        self._shown = True
        # First paint: always start from a normal (non-maximized) frame
        if self._maximized:
            window.restore()
            self._maximized = False
        window.show()
        logger.debug("Window shown")

    def _set_maximized(self, window, value):
        if window is self.window:
            self._maximized = value

    def _on_closed(self, window):
        if window is self.window:
            self.window = None
            logger.info("Window closed")
