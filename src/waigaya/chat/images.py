"""Download Slack-hosted images and inline them as data: URLs.

Slack file URLs answer with a redirect to a CDN URL that already embeds a
short-lived token. Redirects are therefore followed by hand: the bot token goes
only to Slack, never to the redirect target.
"""

import asyncio
import base64
import logging

import aiohttp

from .models import ImageData

logger = logging.getLogger(__name__)

# Tried in order; the first one that yields image bytes wins
FILE_URL_KEYS = (
    "url_private_download",
    "thumb_720",
    "thumb_480",
    "thumb_360",
    "url_private",
)


def candidate_urls(file: dict) -> list[str]:
    """Download URLs for a Slack file object, best quality first."""
    return [file[key] for key in FILE_URL_KEYS if file.get(key)]


def is_image_file(file: dict) -> bool:
    return (file.get("mimetype") or "").startswith("image/")


def _effective_mime(content_type: str, declared: str) -> str:
    if content_type.startswith("image/"):
        return content_type.split(";", 1)[0].strip()
    return declared


class ImageResolver:
    """Fetches Slack files through the two-hop download and encodes them."""

    def __init__(self, session_factory) -> None:
        # Callable returning the current aiohttp session (the API client's)
        self._session_factory = session_factory

    async def fetch_image_as_data_url(self, bot_token: str, url: str, mimetype: str) -> str | None:
        """Return ``data:<mime>;base64,...`` for ``url`` or None on any failure."""
        session: aiohttp.ClientSession = self._session_factory()
        headers = {"Authorization": f"Bearer {bot_token}"}
        try:
            async with session.get(url, headers=headers, allow_redirects=False) as resp:
                if 300 <= resp.status < 400:
                    location = resp.headers.get("Location")
                    if not location:
                        logger.warning(f"Image redirect without Location: status={resp.status}")
                        return None
                    logger.debug(f"Image redirect target: {location[:80]}")
                    # Second hop carries no Authorization header
                    async with session.get(location) as img_resp:
                        if not 200 <= img_resp.status < 300:
                            logger.warning(
                                f"Image download from redirect failed: status={img_resp.status}"
                            )
                            return None
                        return await self._encode(img_resp, location, mimetype)

                if 200 <= resp.status < 300:
                    return await self._encode(resp, url, mimetype)

                logger.warning(f"Image download failed: status={resp.status}")
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Image download error for {url[:80]}: {e}")
            return None

    @staticmethod
    async def _encode(resp: aiohttp.ClientResponse, url: str, mimetype: str) -> str | None:
        content_type = resp.headers.get("Content-Type", "")
        if "text/html" in content_type:
            # Slack serves an HTML login/error page when the token isn't accepted
            logger.warning(f"Image URL returned HTML instead of image bytes: {url[:80]}")
            return None
        body = await resp.read()
        encoded = base64.b64encode(body).decode("ascii")
        return f"data:{_effective_mime(content_type, mimetype)};base64,{encoded}"

    async def resolve_file(self, bot_token: str, file: dict) -> ImageData | None:
        """Try each candidate URL of a file until one works."""
        mimetype = file.get("mimetype") or ""
        for url in candidate_urls(file):
            data_url = await self.fetch_image_as_data_url(bot_token, url, mimetype)
            if data_url:
                return ImageData(data_url=data_url, name=file.get("name"))
        logger.warning(f"Could not fetch image from any URL: name={file.get('name')}")
        return None

    async def resolve_files(self, bot_token: str, files: list[dict]) -> list[ImageData]:
        """Resolve the image attachments of a message, skipping the ones that fail."""
        images = []
        for file in files:
            if not isinstance(file, dict) or not is_image_file(file):
                continue
            image = await self.resolve_file(bot_token, file)
            if image is not None:
                images.append(image)
        return images
