from __future__ import annotations

import json
import os

from pydantic import ValidationError

from .models import DesiredConfiguration


class ConfigLoadError(Exception):
    """Input document missing, unreadable or malformed."""


def load_config(path: str) -> DesiredConfiguration:
    if os.path.isdir(path):
        raise ConfigLoadError(f"Config path '{path}' is a directory.")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Config file '{path}' not found.") from e
    except OSError as e:
        raise ConfigLoadError(f"Cannot read config file '{path}': {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Config file '{path}' is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigLoadError(f"Config file '{path}' is not valid UTF-8: {e}") from e
    return parse_config(raw, source=path)


def parse_config(raw: object, source: str = "<memory>") -> DesiredConfiguration:
    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Config '{source}' must be a JSON object, got {type(raw).__name__}.")
    try:
        return DesiredConfiguration.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigLoadError(f"Config '{source}' is invalid: {problems}") from e
