from __future__ import annotations

import json
from typing import Any, List

from .errors import InvalidInputError
from .models import Target


def load_targets(path: str) -> List[Target]:
    """Load targets from a JSON object mapping target name to hostname.

    Example file::

        {"kitchen": "192.168.1.10", "office": "shelly-office.lan"}
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except OSError as exc:
        raise InvalidInputError(f"Failed to open file: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Failed to parse file as JSON: {exc}") from exc
    return parse_targets(config)


def parse_targets(config: Any) -> List[Target]:
    if not isinstance(config, dict):
        raise InvalidInputError("Top-level configuration is not an object")

    targets: List[Target] = []
    for name, hostname in config.items():
        if not isinstance(hostname, str):
            raise InvalidInputError(f'Value for "{name}" is not a string')
        targets.append(Target(name=name, hostname=hostname))
    return targets
