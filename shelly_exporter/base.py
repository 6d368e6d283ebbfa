from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Metrics, RawResponse


class BaseScraper(ABC):
    """Abstract base class for one blocking HTTP request/response cycle.

    Implementations must be safe to call from several threads at once: the
    poller scrapes every target of a tick concurrently with one instance.
    """

    @abstractmethod
    def scrape(self, url: str) -> RawResponse:
        """Fetch url and return the raw response, raising ExporterError on failure."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Human-readable transport version, for diagnostics only."""

    def close(self) -> None:
        """Release resources held by the scraper."""

    def __enter__(self) -> "BaseScraper":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class BaseParser(ABC):
    """Abstract base class turning a response body into device metrics."""

    @abstractmethod
    def parse(self, body: bytes) -> Metrics:
        ...

    @property
    @abstractmethod
    def version(self) -> str:
        ...
