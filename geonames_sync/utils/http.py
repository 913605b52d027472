"""
HTTP utilities for the supply pipeline.

Streams remote files to disk with retry on transient failures and guarantees that
an interrupted transfer leaves no partial file behind.
"""

import hashlib
from pathlib import Path
from typing import Optional

import httpx
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from loguru import logger

from geonames_sync.exceptions import DownloadError


DEFAULT_HEADERS = {
    "User-Agent": "geonames-sync/1.0 (+https://www.geonames.org/)",
    "Accept": "*/*",
    "Accept-Encoding": "identity",
}

CHUNK_SIZE = 1024 * 1024


class TransientHTTPError(Exception):
    """Server-side failure worth retrying (5xx, 429)."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def _stream_to_file(client: httpx.Client, url: str, part_path: Path) -> str:
    """Write the response body to part_path and return its MD5."""
    digest = hashlib.md5()

    with client.stream("GET", url, headers=DEFAULT_HEADERS) as response:
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientHTTPError(
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise DownloadError(
                f"HTTP {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
            )

        expected = response.headers.get("Content-Length")
        if response.headers.get("Content-Encoding", "identity") != "identity":
            # Content-Length counts the encoded body, iter_bytes yields it decoded
            expected = None

        written = 0
        with open(part_path, "wb") as f:
            for chunk in response.iter_bytes(CHUNK_SIZE):
                f.write(chunk)
                digest.update(chunk)
                written += len(chunk)

    if expected is not None and int(expected) != written:
        raise DownloadError(
            f"Incomplete download of {url}: {written} of {expected} bytes",
            url=url,
        )

    return digest.hexdigest()


def stream_download(
    url: str,
    dest_path: Path,
    timeout: int = 60,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    client: Optional[httpx.Client] = None,
) -> Path:
    """
    Download a URL to dest_path.

    The body is written to "<dest_path>.part" and renamed once complete.
    Timeouts, connection errors, 5xx and 429 responses are retried with
    exponential backoff.

    Args:
        url: URL to download
        dest_path: Final file path
        timeout: Request timeout in seconds
        max_retries: Total number of attempts
        retry_delay: Backoff multiplier in seconds
        client: Optional preconfigured httpx client

    Returns:
        Path to the downloaded file

    Raises:
        DownloadError: On 4xx responses, incomplete bodies, or once retries are exhausted
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    part_path = dest_path.with_name(dest_path.name + ".part")

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout, follow_redirects=True)

    logger.info(f"Downloading {url} to {dest_path}")

    retrying = Retrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=retry_delay, min=retry_delay, max=60),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError, TransientHTTPError)),
        reraise=True,
    )

    try:
        for attempt in retrying:
            with attempt:
                file_hash = _stream_to_file(client, url, part_path)
        part_path.replace(dest_path)
    except DownloadError:
        raise
    except (httpx.HTTPError, TransientHTTPError) as e:
        raise DownloadError(f"Failed to download {url}: {e}", url=url) from e
    finally:
        # Covers errors and KeyboardInterrupt alike
        if part_path.exists():
            part_path.unlink()
        if owns_client:
            client.close()

    logger.info(f"Downloaded {dest_path.stat().st_size:,} bytes (MD5: {file_hash})")
    return dest_path
