from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Target:
    name: str
    hostname: str


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    status_text: str
    content_type: str
    body: bytes = b""

    @property
    def media_type(self) -> str:
        """Content type without parameters, e.g. ``application/json`` for ``application/json; charset=utf-8``."""
        return self.content_type.split(";", 1)[0].strip()


@dataclass(frozen=True)
class Metrics:
    power: float
    voltage: float
    current: float
    temperature_c: float
    temperature_f: float

    def debug_string(self) -> str:
        return (
            f"Metrics{{power={self.power}, voltage={self.voltage}, current={self.current}, "
            f"temperature_c={self.temperature_c}, temperature_f={self.temperature_f}}}"
        )
