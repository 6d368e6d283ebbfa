from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List

from curl_cffi import Curl, CurlError

from .errors import InternalError, ProgrammerError

logger = logging.getLogger(__name__)


class TransportLibrary:
    """Reference-counted, process-wide libcurl state shared by all scrapers.

    The first acquire() initializes the library: it probes the libcurl version
    and seeds a pool of easy handles. The last release() tears it down and
    closes every pooled handle. Both transitions happen under one lock, so
    scrapers may be created and closed from any thread.

    Scrapes borrow a handle through handle(); it is reset and returned to the
    pool afterwards, so no two concurrent transfers ever share a handle.
    """

    def __init__(self, handle_factory: Callable[[], Any] = Curl) -> None:
        self._handle_factory = handle_factory
        self._lock = threading.Lock()
        self._refcount = 0
        self._idle: List[Any] = []
        self._version = ""

    def acquire(self) -> None:
        with self._lock:
            if self._refcount == 0:
                self._initialize()
            self._refcount += 1

    def release(self) -> None:
        with self._lock:
            if self._refcount == 0:
                raise ProgrammerError("TransportLibrary.release() called more times than acquire()")
            self._refcount -= 1
            if self._refcount == 0:
                self._teardown()

    @property
    def refcount(self) -> int:
        with self._lock:
            return self._refcount

    @property
    def idle_handles(self) -> int:
        with self._lock:
            return len(self._idle)

    @property
    def version(self) -> str:
        with self._lock:
            return self._version

    @contextmanager
    def handle(self) -> Iterator[Any]:
        """Borrow an easy handle for the duration of one transfer."""
        with self._lock:
            if self._refcount == 0:
                raise ProgrammerError("TransportLibrary used before acquire()")
            curl = self._idle.pop() if self._idle else None
        if curl is None:
            curl = self._new_handle()

        try:
            yield curl
        finally:
            curl.reset()
            with self._lock:
                if self._refcount > 0:
                    self._idle.append(curl)
                    curl = None
            if curl is not None:
                curl.close()

    def _new_handle(self) -> Any:
        try:
            return self._handle_factory()
        except CurlError as exc:
            raise InternalError(f"curl_easy_init failed: {exc}") from exc

    # Callers hold self._lock.
    def _initialize(self) -> None:
        probe = self._new_handle()
        raw = probe.version()
        self._version = raw.decode("ascii", "replace") if isinstance(raw, bytes) else str(raw)
        self._idle.append(probe)
        logger.debug("Initialized transport library: %s", self._version)

    def _teardown(self) -> None:
        idle, self._idle = self._idle, []
        for curl in idle:
            curl.close()
        logger.debug("Released transport library, closed %d handle(s)", len(idle))


default_library = TransportLibrary()
