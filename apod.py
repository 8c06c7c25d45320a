#!/usr/bin/env python3

"""APOD Fetcher
------------
Downloads NASA's Astronomy Picture of the Day.

Reads an API key and target directory from ``~/.apod`` (falling back to
DEMO_KEY and the current directory), fetches today's metadata from
api.nasa.gov, skips days whose media is not an image (videos), and saves the
high-resolution image as ``<date>_<name from url>`` in the target directory.
The written path is printed on stdout, so the script composes with cron jobs
and wallpaper setters.
"""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import requests
from colorama import Back, Fore, Style, init
from tqdm import tqdm

from apod_config import Config, Configuration, load_config
from apod_errors import ApodError, NetworkError, ParseError, StorageError

# --- Initialize Colorama ---
init(autoreset=True)


# --- Configure Colored Logging ---
class ColoredFormatter(logging.Formatter):
    """Custom logging formatter with colors."""
    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.GREEN,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formats the log record with appropriate colors."""
        log_fmt = (
            f"%(asctime)s - {self.COLORS.get(record.levelname, Fore.WHITE)}"
            f"%(levelname)s{Style.RESET_ALL} - %(message)s"
        )
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d %H:%M:%S")
        return formatter.format(record)


# stdout is reserved for the saved path; everything else goes to stderr.
logger = logging.getLogger("apod")
logger.propagate = False
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter())
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

for noisy in ("urllib3", "requests"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


# --- User Feedback Functions ---
def print_success(text: str) -> None:
    """Logs a success message."""
    logger.info(f"{Fore.GREEN}✓ {text}{Style.RESET_ALL}")


def print_warning(text: str) -> None:
    """Logs a warning message."""
    logger.warning(f"{Fore.YELLOW}! {text}{Style.RESET_ALL}")


def print_error(text: str) -> None:
    """Logs an error message."""
    logger.error(f"{Fore.RED}✗ {text}{Style.RESET_ALL}")


def print_info(text: str) -> None:
    """Logs an informational message. stdout stays reserved for the saved path."""
    logger.info(f"{Fore.CYAN}➤ {text}{Style.RESET_ALL}")


# --- Data Classes ---
@dataclass(frozen=True)
class PictureMetadata:
    media_type: str
    url: str
    hdurl: str | None = None
    date: str | None = None
    title: str | None = None
    explanation: str | None = None
    copyright: str | None = None

    @classmethod
    def from_json(cls, payload: Any) -> PictureMetadata:
        """Builds a record from a decoded APOD response.

        ``media_type`` and ``url`` must be strings; everything else is optional
        and extra fields (service_version, thumbnail_url, ...) are ignored.
        Raises ParseError otherwise.
        """
        if not isinstance(payload, dict):
            raise ParseError(f"Error parsing metadata: expected a JSON object, got {type(payload).__name__}")

        for required in ("media_type", "url"):
            if not isinstance(payload.get(required), str):
                raise ParseError(f"Error parsing metadata: missing or invalid field '{required}'")

        optional: dict[str, str | None] = {}
        for key in ("hdurl", "date", "title", "explanation", "copyright"):
            value = payload.get(key)
            if value is not None and not isinstance(value, str):
                raise ParseError(f"Error parsing metadata: field '{key}' must be a string")
            optional[key] = value

        if optional["date"] is not None:
            try:
                datetime.date.fromisoformat(optional["date"])
            except ValueError as e:
                raise ParseError(f"Error parsing metadata: invalid date '{optional['date']}'") from e

        return cls(media_type=payload["media_type"], url=payload["url"], **optional)


# --- HTTP ---
def build_session() -> requests.Session:
    """Creates the session shared by both requests. No retries are mounted."""
    session = requests.Session()
    session.headers.update({"User-Agent": Config.USER_AGENT})
    return session


def _network_error(e: requests.RequestException, what: str, url: str) -> NetworkError:
    response = getattr(e, "response", None)
    if response is None:
        return NetworkError(f"{what}: {e}", url=url)

    status = response.status_code
    message = f"{what}: HTTP {status} {response.reason or ''}".rstrip()
    if status == 429:
        message += " (rate limit exceeded; set your own api_key in ~/.apod)"
    return NetworkError(message, url=url, status_code=status)


def fetch_metadata(
    session: requests.Session,
    api_key: str,
    endpoint: str = Config.APOD_URL,
    timeout: float = Config.DEFAULT_TIMEOUT,
) -> PictureMetadata:
    """Fetches and parses today's APOD metadata.

    Raises NetworkError for transport failures and non-2xx responses, and
    ParseError when the body is not a usable metadata object.
    """
    logger.info("Fetching today's picture metadata...")
    try:
        response = session.get(
            endpoint,
            params={"api_key": api_key},
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
    # The request URL carries the api key, so errors only name the endpoint.
    except requests.RequestException as e:
        raise _network_error(e, "Error fetching metadata", endpoint) from e

    try:
        payload = response.json()
    except ValueError as e:
        raise ParseError(f"Error parsing metadata: {e}", url=endpoint) from e

    metadata = PictureMetadata.from_json(payload)
    logger.debug(f"Metadata: media_type={metadata.media_type} date={metadata.date} url={metadata.url}")
    return metadata


def select_image_url(meta: PictureMetadata) -> str | None:
    """Returns the URL to download, or None when the day's media is not an image."""
    if meta.media_type != "image":
        return None
    return meta.hdurl or meta.url


# --- Utility Functions ---
def image_filename(url: str, date: str | None = None) -> str:
    """Names the file after the URL's last path segment, prefixed with the date.

    >>> image_filename("https://apod.nasa.gov/apod/image/2103/Neowise%20Tails.jpg", "2021-03-08")
    '2021-03-08_Neowise Tails.jpg'
    """
    segment = unquote(urlparse(url).path.rsplit("/", 1)[-1]).replace("/", "_").replace("\\", "_")
    if not segment:
        return date or "apod"
    return f"{date}_{segment}" if date else segment


def download_image(
    session: requests.Session,
    url: str,
    target_dir: Path | str,
    date: str | None = None,
    timeout: float = Config.DEFAULT_TIMEOUT,
) -> Path:
    """Downloads ``url`` into ``target_dir`` and returns the written path.

    The directory is created when missing. An existing file of the same name is
    replaced only once the whole body has arrived. Raises NetworkError or
    StorageError.
    """
    target_dir = Path(target_dir)
    file_path = target_dir / image_filename(url, date)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Unable to create image directory {target_dir}: {e}") from e

    logger.info(f"Fetching image: {url}")
    # The target is only replaced once the whole body is on disk.
    part_path: Path | None = None
    try:
        with session.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            try:
                total = int(response.headers.get("content-length", 0)) or None
            except ValueError:
                total = None

            with tempfile.NamedTemporaryFile(
                dir=target_dir, prefix=f".{file_path.name}.", suffix=".part", delete=False
            ) as f, tqdm(
                total=total,
                desc=f"{Fore.BLUE}🔭 {file_path.name}{Style.RESET_ALL}",
                unit="B",
                unit_scale=True,
                ncols=100,
                leave=False,
                disable=None,
            ) as progress:
                part_path = Path(f.name)
                for chunk in response.iter_content(Config.CHUNK_SIZE):
                    f.write(chunk)
                    progress.update(len(chunk))

        os.replace(part_path, file_path)
        part_path = None
    # RequestException derives from OSError, so it has to be caught first.
    except requests.RequestException as e:
        raise _network_error(e, "Error fetching image", url) from e
    except OSError as e:
        raise StorageError(f"Unable to write image data to {file_path}: {e}", url=url) from e
    finally:
        if part_path is not None:
            part_path.unlink(missing_ok=True)

    return file_path


# --- Pipeline ---
def run(
    config: Configuration,
    session: requests.Session,
    timeout: float = Config.DEFAULT_TIMEOUT,
) -> Path | None:
    """Fetch, filter and download. Returns None when there is no image today."""
    metadata = fetch_metadata(session, config.api_key, timeout=timeout)
    print_info(f"{metadata.date or 'Today'}: {metadata.title or 'untitled'}")

    image_url = select_image_url(metadata)
    if image_url is None:
        print_warning(f"Media type is '{metadata.media_type}', no image to download today.")
        return None

    return download_image(session, image_url, config.image_dir, date=metadata.date, timeout=timeout)


# --- Command-Line Argument Parsing ---
def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download NASA's Astronomy Picture of the Day.",
        epilog="Config file (JSON): {\"api_key\": \"...\", \"image_dir\": \"...\"}",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file to read instead of ~/.apod.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=Config.DEFAULT_TIMEOUT,
        help="Timeout in seconds for each HTTP request.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    args = parser.parse_args(argv)
    if args.timeout <= 0:
        parser.error("--timeout must be positive")
    return args


def main(argv: list[str] | None = None) -> None:
    """Runs the pipeline from the command line.

    Exits 0 when the image was saved or there was nothing to download, 1 on
    any fetch, parse or write failure and 130 when interrupted.
    """
    args = parse_arguments(argv)
    logger.setLevel(getattr(logging, args.log_level))

    config = load_config(args.config)

    try:
        with build_session() as session:
            file_path = run(config, session, timeout=args.timeout)
    except ApodError as e:
        print_error(str(e))
        logger.debug(f"Failure traceback: {e}", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        print_warning("Interrupted.")
        sys.exit(130)

    if file_path is not None:
        print_success(f"Saved {file_path}")
        print(file_path)


if __name__ == "__main__":
    main()
