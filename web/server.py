"""Backend process entry point.

Packaged builds fork :func:`run_packaged`; development runs
``python -m web.server --reload`` through the shell.
"""
import argparse
import os
import signal
import sys

from loguru import logger

from config import WEB_HOST, get_port
from core.logging_setup import setup_logging


def _register_shutdown():
    """Turn SIGTERM/SIGINT into a clean interpreter exit."""
    def _signal_handler(signum, frame):
        logger.info("Backend received signal {}, shutting down", signum)
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


def serve(host, port, app=None):
    """Serve the backend until interrupted (threaded Werkzeug server)."""
    from werkzeug.serving import make_server
    from web.app import create_app

    app = app or create_app()
    server = make_server(host, port, app, threaded=True)
    logger.info("Server running on http://{}:{}", host, port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
        logger.info("Server stopped")


def run_packaged(environ, host=WEB_HOST):
    """multiprocessing target: apply the supervisor's environment, then serve."""
    os.environ.update(environ)
    setup_logging("server.log")
    _register_shutdown()
    serve(host, get_port())


def main(argv=None):
    parser = argparse.ArgumentParser(prog="promptmetal-server", description="PromptMetal backend")
    parser.add_argument("--host", default=os.environ.get("HOST", WEB_HOST))
    parser.add_argument("--port", type=int, default=None, help="defaults to $PORT or 3000")
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    args = parser.parse_args(argv)

    port = args.port or get_port()
    setup_logging("server.log")

    if args.reload:
        from werkzeug.serving import run_simple
        from web.app import create_app

        run_simple(args.host, port, create_app(), use_reloader=True, threaded=True)
        return 0

    _register_shutdown()
    serve(args.host, port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
