"""Base API client: HTTP session ownership and the error taxonomy."""

import asyncio
import json
import logging

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds


class ApiClientError(Exception):
    """Base class for every failure raised by an API client."""


class NetworkError(ApiClientError):
    """The platform could not be reached (connection failure, timeout)."""


class ApiError(ApiClientError):
    """The platform answered but reported the request as failed."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"{method}: {error}")
        self.method = method
        self.error = error


class DecodeError(ApiClientError):
    """The response body was not the JSON object the platform promises."""


async def safe_json(resp: aiohttp.ClientResponse) -> dict | list | None:
    """Safely parse JSON from response, returning None on error.

    This handles common error cases:
    - HTML error pages (ContentTypeError)
    - Malformed JSON (JSONDecodeError)
    - Bodies that are not valid UTF-8 (UnicodeDecodeError)
    - Empty responses

    Args:
        resp: aiohttp response object

    Returns:
        Parsed JSON data or None if parsing failed
    """
    try:
        return await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to parse JSON response: {e}")
        return None


class BaseApiClient:
    """Owns a lazily created aiohttp session shared by all requests."""

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=DEFAULT_TIMEOUT)
            connector = aiohttp.TCPConnector(limit=50)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            try:
                await self._session.close()
                # Give the connector a moment so aiohttp doesn't warn about unclosed transports
                await asyncio.sleep(0.1)
            except RuntimeError as e:
                # Session may be attached to a different event loop
                if "attached to a different loop" in str(e):
                    logger.debug(f"Session attached to different loop, skipping close: {e}")
                else:
                    raise
            finally:
                self._session = None

