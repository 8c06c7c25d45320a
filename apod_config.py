# apod_config.py

"""Configuration for the APOD fetcher.

The user config lives in a small JSON file, ``~/.apod``::

    {"api_key": "<your api.nasa.gov key>", "image_dir": "/home/me/Pictures/apod"}

Both fields are optional. A missing or unreadable file never stops a run; the
defaults below take over and a warning is logged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from apod_errors import ConfigParseError

logger = logging.getLogger("apod.config")


# --- Constants: The Pillars of the Operation ---
class Config:
    """Centralized constants for the APOD fetcher."""
    APOD_URL: str = "https://api.nasa.gov/planetary/apod"
    DEFAULT_API_KEY: str = "DEMO_KEY"
    DEFAULT_IMAGE_DIR: Path = Path(".")
    CONFIG_FILENAME: str = ".apod"
    DEFAULT_TIMEOUT: int = 30  # seconds, applied to both requests
    USER_AGENT: str = "I CAN HAZ STARS?"
    CHUNK_SIZE: int = 8192


@dataclass(frozen=True)
class Configuration:
    api_key: str = Config.DEFAULT_API_KEY
    image_dir: Path = Config.DEFAULT_IMAGE_DIR


def default_config_path() -> Path | None:
    """Returns ``~/.apod``, or None when the home directory cannot be resolved."""
    try:
        return Path.home() / Config.CONFIG_FILENAME
    except RuntimeError:
        logger.debug("Home directory could not be resolved; no config file will be read.")
        return None


def _string_field(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        logger.warning(f"Config field '{key}' must be a string, got {type(value).__name__}; using default.")
        return None
    if not value.strip():
        logger.warning(f"Config field '{key}' is empty; using default.")
        return None
    return value


def parse_config(text: str) -> Configuration:
    """Parses the JSON text of a config file into a Configuration.

    Fields that are absent, empty or not strings fall back to their defaults one by
    one; unknown fields are ignored. Raises ConfigParseError when the text is
    not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"Unable to parse config: {e}") from e
    if not isinstance(data, dict):
        raise ConfigParseError(f"Unable to parse config: expected a JSON object, got {type(data).__name__}")

    api_key = _string_field(data, "api_key")
    image_dir = _string_field(data, "image_dir")

    if api_key is None:
        logger.warning(f"No api key found in config. Using {Config.DEFAULT_API_KEY}")
        api_key = Config.DEFAULT_API_KEY

    return Configuration(
        api_key=api_key,
        image_dir=Path(image_dir) if image_dir is not None else Config.DEFAULT_IMAGE_DIR,
    )


def load_config(path: Path | None = None) -> Configuration:
    """Loads the user configuration, falling back to defaults on any problem.

    ``path`` defaults to ``~/.apod``. A missing file is normal and only logged
    at debug level; an unreadable or malformed file is reported as a warning.
    """
    if path is None:
        path = default_config_path()
    if path is None:
        return Configuration()

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"No config file at {path}; using defaults.")
        logger.warning(f"No api key found in config. Using {Config.DEFAULT_API_KEY}")
        return Configuration()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Unable to read config {path}: {e}. Using defaults.")
        return Configuration()

    try:
        config = parse_config(text)
    except ConfigParseError as e:
        logger.warning(f"{e}. Using defaults.")
        return Configuration()

    logger.debug(f"Loaded config from {path}: image_dir={config.image_dir}")
    return config
