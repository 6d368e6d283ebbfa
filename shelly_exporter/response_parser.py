from __future__ import annotations

import logging
import re
from typing import Optional, Union

from .errors import InvalidInputError
from .models import RawResponse

logger = logging.getLogger(__name__)

_STATUS_LINE = re.compile(r"^HTTP/(\d)\.(\d)\s+(\d+)\s+([^\r\n]+)", re.ASCII)


class HttpResponseParser:
    """Incremental parser for one HTTP response delivered by a streaming transport.

    The transport calls feed_header() once per header line (status line first,
    in wire order) and feed_body() for every body chunk. Each call returns
    True to accept the data or False to ask the transport to abort the
    transfer. The first fatal error is kept in ``error``; once it is set every
    later delivery is rejected.

    ``content_length`` is a hint only. The body is whatever the transport
    actually delivered, regardless of what the header announced.
    """

    def __init__(self) -> None:
        self.status_code: Optional[int] = None
        self.status_text = ""
        self.content_length = 0
        self.content_type = ""
        self.error: Optional[InvalidInputError] = None
        self._body = bytearray()

    def feed_header(self, data: Union[bytes, str]) -> bool:
        """Consume one header line. Blank lines are accepted and ignored."""
        if self.error is not None:
            return False

        line = data.decode("iso-8859-1") if isinstance(data, bytes) else data
        line = line.strip()
        if not line:
            return True

        try:
            if self.status_code is None:
                self._parse_status_line(line)
            else:
                self._parse_header_line(line)
        except InvalidInputError as exc:
            self.error = exc
            return False
        return True

    def feed_body(self, chunk: bytes) -> bool:
        """Append one body chunk in arrival order."""
        if self.error is not None:
            return False
        self._body += chunk
        return True

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def result(self) -> RawResponse:
        """Build the response once both streams are exhausted.

        Raises the recorded parse error if there is one, otherwise
        InvalidInputError when the status or content type never arrived.
        """
        if self.error is not None:
            raise self.error
        if not self.status_code or not self.status_text:
            raise InvalidInputError("Missing status or status code")
        if not self.content_type:
            raise InvalidInputError("Missing content type")

        if self.content_length and self.content_length != len(self._body):
            logger.debug(
                "Received %d body bytes, content-length announced %d",
                len(self._body),
                self.content_length,
            )
        return RawResponse(
            status_code=self.status_code,
            status_text=self.status_text,
            content_type=self.content_type,
            body=self.body,
        )

    def _parse_status_line(self, line: str) -> None:
        match = _STATUS_LINE.match(line)
        if match is None:
            raise InvalidInputError(f"Invalid header: {line}")
        self.status_code = int(match.group(3))
        self.status_text = match.group(4).strip()

    def _parse_header_line(self, line: str) -> None:
        if ":" not in line:
            raise InvalidInputError(f"Failed to parse header line: {line}")
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "content-type":
            self.content_type = value.lower()
        elif key == "content-length":
            if not value.isdecimal():
                raise InvalidInputError(f"Unable to parse content length value: {value}")
            self.content_length = int(value)
