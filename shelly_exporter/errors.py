from __future__ import annotations


class ExporterError(Exception):
    """Base class for every error raised by the exporter."""


class InvalidInputError(ExporterError, ValueError):
    """Malformed or unsupported data: bad HTTP framing, status, content or config."""


class NotFoundFieldError(ExporterError):
    """A required field is absent from a device payload."""


class TransportError(ExporterError):
    """The HTTP transport failed (connection refused, DNS, TLS, timeout...)."""


class InternalError(ExporterError):
    """Unexpected internal state, e.g. the transport could not create a handle."""


class ProgrammerError(ExporterError, RuntimeError):
    """An API was used out of contract (illegal state transition, duplicate target)."""
