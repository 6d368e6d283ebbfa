from __future__ import annotations

import logging
import weakref
from typing import Optional

from curl_cffi import CurlError, CurlOpt
from curl_cffi.curl import CURL_WRITEFUNC_ERROR

from .base import BaseScraper
from .errors import TransportError
from .models import RawResponse
from .response_parser import HttpResponseParser
from .transport import TransportLibrary, default_library

logger = logging.getLogger(__name__)

USER_AGENT = "Shelly Plug Metrics Exporter"


class CurlScraper(BaseScraper):
    """Scraper performing one libcurl GET per call.

    Header lines and body chunks are streamed from the libcurl callbacks into
    an HttpResponseParser; a rejected chunk aborts the transfer right away.
    When the transfer fails after the parser rejected something, the parser's
    error is raised rather than libcurl's generic write error.

    Creating a scraper acquires the shared TransportLibrary; close() (or the
    context manager, or garbage collection) releases it exactly once.
    """

    def __init__(
        self,
        verbose: bool = False,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        library: Optional[TransportLibrary] = None,
    ) -> None:
        self._verbose = verbose
        self._timeout_ms = int(timeout * 1000)
        self._connect_timeout_ms = int(connect_timeout * 1000)
        self._library = library if library is not None else default_library
        self._library.acquire()
        self._finalizer = weakref.finalize(self, self._library.release)

    def close(self) -> None:
        self._finalizer()

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def version(self) -> str:
        return self._library.version

    def scrape(self, url: str) -> RawResponse:
        parser = HttpResponseParser()

        def on_header(data: bytes) -> int:
            return len(data) if parser.feed_header(data) else CURL_WRITEFUNC_ERROR

        def on_body(data: bytes) -> int:
            return len(data) if parser.feed_body(data) else CURL_WRITEFUNC_ERROR

        with self._library.handle() as curl:
            curl.setopt(CurlOpt.URL, url)
            curl.setopt(CurlOpt.USERAGENT, USER_AGENT)
            curl.setopt(CurlOpt.VERBOSE, 1 if self._verbose else 0)
            curl.setopt(CurlOpt.FOLLOWLOCATION, 0)
            curl.setopt(CurlOpt.NOSIGNAL, 1)
            curl.setopt(CurlOpt.TIMEOUT_MS, self._timeout_ms)
            curl.setopt(CurlOpt.CONNECTTIMEOUT_MS, self._connect_timeout_ms)
            curl.setopt(CurlOpt.HEADERFUNCTION, on_header)
            curl.setopt(CurlOpt.WRITEFUNCTION, on_body)

            try:
                curl.perform()
            except CurlError as exc:
                if parser.error is not None:
                    raise parser.error from exc
                raise TransportError(str(exc)) from exc

        response = parser.result()
        logger.debug("Scraped %s: %d %s (%s)", url, response.status_code, response.status_text, response.content_type)
        return response
