"""TCP readiness probe used while the backend process is starting.

Polls at a fixed interval: the awaited condition (a local process binding its
port) either resolves quickly or not at all, so there is no backoff growth and
no jitter.
"""
import socket
import time

from loguru import logger

from config import PROBE_ATTEMPT_TIMEOUT, PROBE_INTERVAL, STARTUP_TIMEOUT
from core.errors import StartupTimeout

# Lower bound for a single connect attempt once the budget is nearly spent
_MIN_ATTEMPT_TIMEOUT = 0.05


def probe_once(host, port, timeout=PROBE_ATTEMPT_TIMEOUT):
    """Return True if a TCP connection to (host, port) succeeds.

    The probe socket is closed on every outcome.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def wait_for_ready(host, port, timeout=STARTUP_TIMEOUT, interval=PROBE_INTERVAL,
                   attempt_timeout=PROBE_ATTEMPT_TIMEOUT):
    """Block until (host, port) accepts connections.

    Returns the elapsed time in seconds. Raises :class:`StartupTimeout` once
    *timeout* seconds have passed since the first attempt; the failure is
    reported no later than one *interval* after the deadline.
    """
    start = time.monotonic()
    deadline = start + timeout
    attempts = 0
    while True:
        attempts += 1
        remaining = deadline - time.monotonic()
        per_attempt = max(min(attempt_timeout, remaining), _MIN_ATTEMPT_TIMEOUT)
        if probe_once(host, port, per_attempt):
            elapsed = time.monotonic() - start
            logger.debug("Port {} ready after {} attempt(s) in {:.2f}s", port, attempts, elapsed)
            return elapsed

        now = time.monotonic()
        if now >= deadline:
            logger.debug("Port {} still closed after {} attempt(s)", port, attempts)
            raise StartupTimeout(port, timeout)
        time.sleep(min(interval, deadline - now))
