"""Lifecycle owner for the single backend process.

Packaged builds fork the backend as a ``multiprocessing`` child running
:func:`web.server.run_packaged`; development runs the dev command through a
shell in the project root so the Werkzeug reloader can restart it.
"""
import multiprocessing
import os
import signal
import subprocess
import threading

from loguru import logger

from config import BASE_DIR, STOP_TIMEOUT, WEB_HOST, get_dev_command

_POSIX = os.name == "posix"


class _ShellProcess:
    """Development backend started through the shell."""

    def __init__(self, popen, group):
        self._popen = popen
        self._group = group

    @property
    def pid(self):
        return self._popen.pid

    def exit_code(self):
        return self._popen.poll()

    def wait(self, timeout=None):
        """Return the exit code, or None if still running after *timeout*."""
        try:
            return self._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def _signal(self, sig):
        if self._group:
            # The shell's children (reloader, server) share its process group
            try:
                os.killpg(self._popen.pid, sig)
            except ProcessLookupError:
                pass
        elif sig == signal.SIGTERM:
            self._popen.terminate()
        else:
            self._popen.kill()

    def terminate(self):
        self._signal(signal.SIGTERM)

    def kill(self):
        self._signal(signal.SIGKILL if _POSIX else signal.SIGTERM)


class _ForkedProcess:
    """Packaged backend running as a multiprocessing child."""

    def __init__(self, process):
        self._process = process

    @property
    def pid(self):
        return self._process.pid

    def exit_code(self):
        return self._process.exitcode

    def wait(self, timeout=None):
        self._process.join(timeout)
        return self._process.exitcode

    def terminate(self):
        self._process.terminate()

    def kill(self):
        self._process.kill()


class ServerSupervisor:
    """Start, watch and stop exactly one backend process.

    ``stop()`` is idempotent and safe to call from ``atexit``, ``with`` blocks
    and other threads. Signal handlers must not call it (the lock is not
    reentrant); they use ``request_stop()`` while ``starting`` is set.
    """

    def __init__(self, packaged, port, host=WEB_HOST, dev_command=None,
                 stop_timeout=STOP_TIMEOUT, watch_exit=True):
        self.packaged = packaged
        self.port = port
        self.host = host
        self.dev_command = dev_command or get_dev_command()
        self.stop_timeout = stop_timeout
        self.watch_exit = watch_exit
        self._handle = None
        self._lock = threading.Lock()
        self._starting = False
        self._stop_requested = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    @property
    def running(self):
        handle = self._handle
        return handle is not None and handle.exit_code() is None

    @property
    def pid(self):
        handle = self._handle
        return handle.pid if handle is not None else None

    @property
    def starting(self):
        """True while ``start()`` is creating the process."""
        return self._starting

    @property
    def stop_requested(self):
        return self._stop_requested

    def request_stop(self):
        """Signal-handler safe: only records the request, takes no lock."""
        self._stop_requested = True

    def start(self):
        self._starting = True
        try:
            with self._lock:
                if self._handle is not None:
                    raise RuntimeError(f"Backend already running (pid {self._handle.pid})")
                if self.packaged:
                    handle = self._fork()
                else:
                    handle = self._spawn()
                self._handle = handle
        finally:
            self._starting = False

        logger.info("Backend started in {} mode (pid {}, port {})",
                    "packaged" if self.packaged else "development", handle.pid, self.port)
        if self.watch_exit:
            threading.Thread(
                target=self._watch, args=(handle,), name="backend-watch", daemon=True,
            ).start()
        return handle.pid

    def stop(self, timeout=None):
        """Terminate the tracked backend, force-killing it after *timeout*."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return
        if handle.exit_code() is not None:
            logger.debug("Backend (pid {}) already exited", handle.pid)
            return

        timeout = self.stop_timeout if timeout is None else timeout
        logger.info("Stopping backend (pid {})", handle.pid)
        handle.terminate()
        code = handle.wait(timeout)
        if code is None:
            logger.warning("Backend did not exit within {:.1f}s, killing", timeout)
            handle.kill()
            code = handle.wait(timeout)
        logger.info("Backend stopped (exit code {})", code)

    # -- internal -------------------------------------------------------------

    def _fork(self):
        from web.server import run_packaged

        environ = {"NODE_ENV": "production", "PORT": str(self.port)}
        process = multiprocessing.Process(
            target=run_packaged,
            args=(environ, self.host),
            name="promptmetal-backend",
        )
        process.start()
        return _ForkedProcess(process)

    def _spawn(self):
        env = dict(os.environ, PORT=str(self.port))
        popen = subprocess.Popen(
            self.dev_command,
            shell=True,
            cwd=BASE_DIR,
            env=env,
            start_new_session=_POSIX,
        )
        return _ShellProcess(popen, group=_POSIX)

    def _watch(self, handle):
        code = handle.wait()
        with self._lock:
            requested = self._handle is not handle
            if not requested:
                self._handle = None
        if requested:
            return
        if code:
            logger.warning("Backend exited unexpectedly with code {}", code)
        else:
            logger.info("Backend exited with code {}", code)
