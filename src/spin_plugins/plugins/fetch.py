"""Fetch manifests and package artifacts from URLs."""

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from spin_plugins import __version__

from .errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = f"spin-plugins/{__version__}"


def is_file_url(url: str) -> bool:
    return urlparse(url).scheme == "file"


def file_url_path(url: str) -> Path:
    return Path(unquote(urlparse(url).path))


def fetch_bytes(url: str, timeout: float = 60.0) -> bytes:
    """Fetch the content at ``url``.

    Supports ``http``, ``https`` and ``file`` URLs.

    Raises:
        NotFoundError: If the resource does not exist (HTTP 404 or missing file).
        TransportError: On any other network or filesystem failure.
    """
    if is_file_url(url):
        path = file_url_path(url)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"No file found at {path}") from None
        except OSError as e:
            raise TransportError(f"Failed to read {path}: {e}") from e

    logger.debug(f"Fetching {url}")
    try:
        with httpx.Client(
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            resp = client.get(url)
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to fetch {url}: {e}") from e

    if resp.status_code == 404:
        raise NotFoundError(f"Nothing found at {url} (HTTP 404)")
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TransportError(f"Failed to fetch {url}: HTTP {resp.status_code}") from e
    return resp.content
