"""Run coroutines from blocking code.

The file-like interface of [RemoteObject][obspec_stream.RemoteObject] is
synchronous while transports are asynchronous. A runner bridges the two.

- [BackgroundLoopRunner][obspec_stream.runners.BackgroundLoopRunner] owns one
  long-lived event loop on a daemon thread. Blocking calls submit their
  coroutine to it and wait for the result. This is the default.
- [EphemeralRunner][obspec_stream.runners.EphemeralRunner] creates a fresh
  event loop for every call with [asyncio.run][]. It needs no extra thread but
  pays the loop start-up cost on each call and cannot be used from a thread
  that is already running an event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundLoopRunner:
    """
    Run coroutines on a persistent event loop owned by a daemon thread.

    The loop and its thread are started lazily on the first call to
    [`run()`][obspec_stream.runners.BackgroundLoopRunner.run]. Many threads may
    call `run()` concurrently; their coroutines are interleaved on the same
    loop.

    Examples
    --------

    ```python
    runner = BackgroundLoopRunner()
    meta = runner.run(transport.head_object("my-bucket", "data.bin"))
    runner.close()
    ```
    """

    def __init__(self, name: str = "obspec-stream-loop") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        """Whether the background loop has been started and not closed."""
        return self._thread is not None and self._thread.is_alive()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=self._serve, args=(loop,), name=self._name, daemon=True
                )
                thread.start()
                self._loop = loop
                self._thread = thread
                logger.debug("started background event loop thread %s", self._name)
            return self._loop

    @staticmethod
    def _serve(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """
        Run `coro` on the background loop and block until it completes.

        Raises
        ------
        RuntimeError
            If called from the background loop's own thread. Blocking there
            would deadlock the loop.
        """
        if threading.current_thread() is self._thread:
            coro.close()
            raise RuntimeError(
                "cannot block on the background event loop from inside that loop; "
                "await the asynchronous method instead"
            )
        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        return future.result()

    def close(self) -> None:
        """Stop the background loop and wait for its thread to exit."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not threading.current_thread():
            thread.join()
        logger.debug("stopped background event loop thread %s", self._name)

    def __enter__(self) -> "BackgroundLoopRunner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class EphemeralRunner:
    """
    Run each coroutine on a new event loop created with [asyncio.run][].

    The caller's thread is blocked for the whole call and the loop is torn
    down when the coroutine finishes.
    """

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """
        Run `coro` on a fresh event loop.

        Raises
        ------
        RuntimeError
            If the calling thread is already running an event loop. A nested
            loop cannot be created there.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        coro.close()
        raise RuntimeError(
            "EphemeralRunner cannot start an event loop from a thread that is "
            "already running one; use BackgroundLoopRunner or await the "
            "asynchronous method instead"
        )


_default_runner: BackgroundLoopRunner | None = None
_default_runner_lock = threading.Lock()


def get_default_runner() -> BackgroundLoopRunner:
    """Return the process-wide [BackgroundLoopRunner][obspec_stream.runners.BackgroundLoopRunner]."""
    global _default_runner
    with _default_runner_lock:
        if _default_runner is None:
            _default_runner = BackgroundLoopRunner()
        return _default_runner


__all__ = ["BackgroundLoopRunner", "EphemeralRunner", "get_default_runner"]
