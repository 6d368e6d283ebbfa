from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional

from .base import BaseParser, BaseScraper
from .errors import InvalidInputError, ProgrammerError
from .models import Metrics, Target

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[str, Metrics], None]
ErrorCallback = Callable[[str, Exception], None]


def scrape_url(hostname: str) -> str:
    return f"http://{hostname}/rpc/Switch.GetStatus?id=0"


class PollerState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Poller:
    """Polls every registered target once per period until stopped.

    Each tick fans out one unit of work per target onto a bounded thread pool
    (scrape, check, parse, then exactly one of the success or error callbacks)
    and waits for all of them before sleeping out the rest of the period. The
    sleep waits on a condition variable so stop() cuts it short. A tick that
    overruns the period is followed immediately by the next one; missed ticks
    are never replayed.

    The target set is frozen once the poller has been started. stop() never
    cancels in-flight scrapes: it prevents the next tick and wakes the sleep.
    """

    def __init__(
        self,
        scraper: BaseScraper,
        parser: BaseParser,
        period: float,
        success_callback: Optional[SuccessCallback] = None,
        error_callback: Optional[ErrorCallback] = None,
        verbose: bool = False,
        max_workers: Optional[int] = None,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self._scraper = scraper
        self._parser = parser
        self._period = period
        self._success_callback = success_callback
        self._error_callback = error_callback
        self._verbose = verbose
        self._max_workers = max_workers
        self._time_func = time_func

        self._targets: List[Target] = []

        # One lock guards the state, the loop flag and the interruptible sleep.
        # Reentrant so stop() cannot deadlock when a signal handler runs it on
        # a thread that already holds the lock.
        self._lock = threading.RLock()
        self._cv = threading.Condition(self._lock)
        self._state = PollerState.STOPPED
        self._started = False
        self._loop_active = False
        self._thread: Optional[threading.Thread] = None

    @property
    def targets(self) -> List[Target]:
        return list(self._targets)

    @property
    def state(self) -> PollerState:
        with self._lock:
            return self._state

    def add_target(self, name: str, hostname: str) -> None:
        """Register a target. Must be called before the first start()/run()."""
        with self._lock:
            if self._started:
                raise ProgrammerError("Poller.add_target must be called before Poller.start")
            if any(t.name == name for t in self._targets):
                raise ProgrammerError(f'Duplicate target name "{name}"')
            self._targets.append(Target(name=name, hostname=hostname))

    def is_running(self) -> bool:
        with self._lock:
            return self._state is PollerState.RUNNING

    def start(self) -> None:
        """Enter RUNNING and drive the tick loop on a background thread."""
        self._enter_running()
        self._thread = threading.Thread(target=self._loop, name="poller", daemon=True)
        self._thread.start()

    def run(self) -> None:
        """Enter RUNNING and drive the tick loop on the calling thread until stopped."""
        self._enter_running()
        self._loop()

    def stop(self) -> None:
        """Leave RUNNING. Idempotent and non-blocking; safe from signal handlers."""
        with self._cv:
            if self._state is PollerState.STOPPED:
                return
            self._state = PollerState.STOPPED
            self._cv.notify_all()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop started by start() to exit. Returns False on timeout."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _enter_running(self) -> None:
        with self._cv:
            # A stopped loop may still be draining its last tick.
            self._cv.wait_for(lambda: self._state is PollerState.RUNNING or not self._loop_active)
            if self._state is PollerState.RUNNING:
                raise ProgrammerError("Poller started twice without first run being stopped")
            self._state = PollerState.RUNNING
            self._started = True
            self._loop_active = True

    def _loop(self) -> None:
        logger.info("Entered run loop, will poll every %.3fs", self._period)
        workers = self._max_workers or max(1, len(self._targets))
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="poller-target") as executor:
                while True:
                    tick_start = self._time_func()
                    if not self.is_running():
                        break

                    self._tick(executor)

                    delay = self._period - (self._time_func() - tick_start)
                    if delay > 0:
                        with self._cv:
                            self._cv.wait_for(lambda: self._state is PollerState.STOPPED, timeout=delay)
        finally:
            with self._cv:
                self._state = PollerState.STOPPED
                self._loop_active = False
                self._cv.notify_all()
        logger.info("Exited run loop")

    def _tick(self, executor: ThreadPoolExecutor) -> None:
        futures: List[Future] = [executor.submit(self._process_target, target) for target in self._targets]
        wait(futures)
        for target, future in zip(self._targets, futures):
            exc = future.exception()
            if exc is not None:
                logger.error('Unhandled error while processing target "%s": %r', target.name, exc)

    def _process_target(self, target: Target) -> None:
        try:
            metrics = self._retrieve_metrics(target)
        except Exception as exc:  # noqa: BLE001
            logger.error('Failed to retrieve metrics for target "%s": %s', target.name, exc)
            if self._error_callback:
                self._error_callback(target.name, exc)
            return

        if self._success_callback:
            self._success_callback(target.name, metrics)
        if self._verbose:
            logger.info('Got successful response for target "%s": %s', target.name, metrics.debug_string())

    def _retrieve_metrics(self, target: Target) -> Metrics:
        url = scrape_url(target.hostname)
        response = self._scraper.scrape(url)
        if response.status_code != 200:
            raise InvalidInputError(f"Got HTTP response code {response.status_code} for {url}")
        if response.media_type != "application/json":
            raise InvalidInputError(
                f'Response content type "{response.content_type}" is not supported, from {url}'
            )
        return self._parser.parse(response.body)
