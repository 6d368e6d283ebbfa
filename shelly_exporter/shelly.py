from __future__ import annotations

import json
from typing import Any, Dict

from .base import BaseParser
from .errors import InvalidInputError, NotFoundFieldError
from .models import Metrics


class ShellyParser(BaseParser):
    """Parses the JSON body of a Shelly ``Switch.GetStatus`` RPC call.

    Expected shape (extra fields are ignored)::

        {"apower": 115.0, "voltage": 230.0, "current": 0.5,
         "temperature": {"tC": 28.0, "tF": 82.4}}
    """

    @property
    def version(self) -> str:
        return f"json {json.__version__}"

    def parse(self, body: bytes) -> Metrics:
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidInputError(f"Failed to parse JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise InvalidInputError(f"JSON payload is not an object: {_dump(payload)}")

        voltage = _get_number_field(payload, "voltage")
        power = _get_number_field(payload, "apower")
        current = _get_number_field(payload, "current")
        temperature = _get_object_field(payload, "temperature")
        return Metrics(
            power=power,
            voltage=voltage,
            current=current,
            temperature_c=_get_number_field(temperature, "tC"),
            temperature_f=_get_number_field(temperature, "tF"),
        )


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _get_field(parent: Dict[str, Any], field: str) -> Any:
    if field not in parent:
        raise NotFoundFieldError(f'Missing JSON field "{field}" in: {_dump(parent)}')
    return parent[field]


def _get_object_field(parent: Dict[str, Any], field: str) -> Dict[str, Any]:
    value = _get_field(parent, field)
    if not isinstance(value, dict):
        raise InvalidInputError(f'JSON field "{field}" is not an object: {_dump(parent)}')
    return value


def _get_number_field(parent: Dict[str, Any], field: str) -> float:
    value = _get_field(parent, field)
    # bool is an int subclass but JSON true/false are not numbers
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f'JSON field "{field}" is not a number: {_dump(parent)}')
    return float(value)
