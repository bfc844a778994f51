"""Source loader: turn a source reference into raw image bytes.

A reference is an ``http(s)://`` URL, a ``file://`` URL, a filesystem path,
or a base64 payload (optionally as a ``data:`` URI). Loading is I/O only;
decoding is left to the optimizer.
"""

import asyncio
import base64
import binascii
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from imageoptimize.core.constants import DEFAULT_FETCH_TIMEOUT
from imageoptimize.core.exceptions import SourceFetchError
from imageoptimize.utils.logging import get_logger

logger = get_logger(__name__)


def is_url(reference: str) -> bool:
    return urlparse(reference).scheme in ("http", "https")


def _as_path(reference: str) -> Optional[Path]:
    """Filesystem path for ``file://`` URLs and existing paths, else None."""
    parsed = urlparse(reference)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    if len(reference) < 4096:
        path = Path(reference).expanduser()
        try:
            if path.exists():
                return path
        except OSError:
            return None
    return None


def decode_base64(reference: str) -> bytes:
    """Decode a base64 payload or ``data:`` URI.

    Raises:
        SourceFetchError: If the payload is not valid base64
    """
    payload = reference.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    payload = "".join(payload.split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise SourceFetchError(
            "Source is neither a URL, an existing file nor valid base64",
            details={"source_kind": "base64"},
        )
    if not data:
        raise SourceFetchError("Source payload is empty", details={"source_kind": "base64"})
    return data


async def fetch_url(
    url: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """Download a source over HTTP(S).

    Args:
        url: http or https URL
        timeout: Request timeout in seconds
        client: Optional shared client (a private one is created otherwise)

    Raises:
        SourceFetchError: On transport errors or non-2xx responses
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    try:
        response = await client.get(url)
    except httpx.TimeoutException:
        raise SourceFetchError(
            f"Fetching source timed out after {timeout:g}s",
            details={"source_kind": "url", "timeout_seconds": timeout},
        )
    except httpx.HTTPError as e:
        raise SourceFetchError(
            f"Failed to fetch source: {type(e).__name__}",
            details={"source_kind": "url"},
        )
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise SourceFetchError(
            f"Source request returned HTTP {response.status_code}",
            details={"source_kind": "url", "status_code": response.status_code},
        )

    logger.debug("Source fetched", size=len(response.content), status=response.status_code)
    return response.content


async def read_file(path: Path) -> bytes:
    """Read a local source off the event loop thread."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, path.read_bytes)
    except OSError as e:
        raise SourceFetchError(
            f"Failed to read source file: {e.strerror or type(e).__name__}",
            details={"source_kind": "file"},
        )


async def load_source(
    reference: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """Load source bytes from a URL, a file or a base64 payload.

    Args:
        reference: Source reference
        timeout: HTTP timeout in seconds
        client: Optional shared HTTP client

    Returns:
        Raw source bytes

    Raises:
        SourceFetchError: When the source cannot be obtained
    """
    if is_url(reference):
        return await fetch_url(reference, timeout=timeout, client=client)

    path = _as_path(reference)
    if path is not None:
        return await read_file(path)

    return decode_base64(reference)
