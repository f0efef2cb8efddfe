"""Desktop launcher -- runs the backend and opens it in a native window.

Startup handshake:
  1. Start the backend (forked child when packaged, dev command otherwise)
  2. Probe its port until it accepts connections; give up after STARTUP_TIMEOUT
  3. Open the window on the app URL (same base as the OAuth redirect URI)
  4. Stop the backend on every exit path (window closed, quit signal, atexit)
"""
import argparse
import atexit
import getpass
import multiprocessing
import signal
import sys
import time

from loguru import logger

from config import (
    APP_VERSION, STARTUP_TIMEOUT, WEB_HOST,
    get_app_url, get_port, is_packaged, save_google_client_secret,
)
from core.errors import StartupTimeout
from core.logging_setup import setup_logging
from core.presenter import WindowPresenter, configure_webview
from core.prober import wait_for_ready
from core.supervisor import ServerSupervisor

# --- Startup Timing ---

_startup_t0 = time.monotonic()


def _log_timing(stage):
    """Log elapsed time since startup for diagnostics."""
    elapsed = time.monotonic() - _startup_t0
    logger.info("Startup [{:.2f}s] {}", elapsed, stage)


def window_url(environ=None):
    """Same base as the OAuth redirect URI, so callback cookies reach the window."""
    return f"{get_app_url(environ)}/"


def _register_shutdown(supervisor):
    """Stop the backend on process exit and on SIGTERM/SIGINT.

    The handler never stops the backend itself: it runs on the main thread,
    possibly inside ``start()``. Exiting unwinds ``with supervisor``, and a
    signal landing mid-start is deferred until the process is tracked.
    """
    atexit.register(supervisor.stop)

    def _signal_handler(signum, frame):
        logger.info("Received signal {}, shutting down", signum)
        if supervisor.starting:
            supervisor.request_stop()
            return
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


_activate_observer = None


def _register_activate_observer(presenter):
    """Reopen the window when the Dock icon re-activates a windowless app (macOS)."""
    global _activate_observer
    try:
        from AppKit import NSNotificationCenter
        from Foundation import NSObject

        class ActivateObserver(NSObject):
            def handleActivate_(self, notification):
                presenter.activate()

        observer = ActivateObserver.alloc().init()
        NSNotificationCenter.defaultCenter().addObserver_selector_name_object_(
            observer,
            "handleActivate:",
            "NSApplicationDidBecomeActiveNotification",
            None,
        )
        _activate_observer = observer  # prevent GC
        logger.debug("Activate observer registered")
    except ImportError:
        logger.debug("AppKit not available, skipping activate observer")


def _store_client_secret():
    secret = getpass.getpass("Google OAuth client secret: ").strip()
    if not secret:
        print("No secret entered; nothing stored.")
        return 1
    save_google_client_secret(secret)
    print("Client secret stored in the system keychain.")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="promptmetal", description="PromptMetal desktop app")
    parser.add_argument("--store-client-secret", action="store_true",
                        help="save the Google OAuth client secret in the keychain and exit")
    parser.add_argument("--debug", action="store_true", help="enable the web inspector")
    args = parser.parse_args(argv)

    if args.store_client_secret:
        return _store_client_secret()

    setup_logging("desktop.log")
    _log_timing(f"PromptMetal v{APP_VERSION} starting")

    port = get_port()
    supervisor = ServerSupervisor(packaged=is_packaged(), port=port)
    _register_shutdown(supervisor)

    with supervisor:
        supervisor.start()
        if supervisor.stop_requested:
            logger.info("Shutdown requested during startup")
            return 0
        _log_timing("Backend process started")

        try:
            wait_for_ready(WEB_HOST, port, timeout=STARTUP_TIMEOUT)
        except StartupTimeout as e:
            logger.error("Startup failed: {}", e)
            return 1
        _log_timing("Backend is ready")

        configure_webview()
        presenter = WindowPresenter(window_url())
        presenter.open()
        _register_activate_observer(presenter)
        _log_timing("Starting pywebview event loop")
        presenter.run(debug=args.debug)

    logger.info("All windows closed, exiting")
    return 0


if __name__ == "__main__":
    multiprocessing.freeze_support()
    sys.exit(main())
