"""
Channel lister
Lists recent videos of a TikTok or Facebook channel through Apify actors
"""

from typing import List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
from loguru import logger

from channel_transcriber.errors import ConfigurationError, EmptyResultError, UpstreamError
from channel_transcriber.models import Platform, VideoRecord
from channel_transcriber.processor.normalizer import is_facebook_video_post, normalize_item

TIKTOK_MARKERS = ("tiktok.com",)
FACEBOOK_MARKERS = ("facebook.com", "fb.com")


def detect_platform(channel_url: str) -> Platform:
    """Resolve the platform of a channel URL

    Args:
        channel_url: channel URL as typed by the operator

    Returns:
        platform variant

    Raises:
        ConfigurationError: the URL matches no supported platform
    """
    lowered = channel_url.strip().lower()
    if any(marker in lowered for marker in TIKTOK_MARKERS):
        return Platform.TIKTOK
    if any(marker in lowered for marker in FACEBOOK_MARKERS):
        return Platform.FACEBOOK
    raise ConfigurationError(
        "Unsupported URL. Please enter a TikTok or Facebook channel URL."
    )


def extract_tiktok_handle(channel_url: str) -> str:
    """Extract the profile handle from a TikTok channel URL

    https://www.tiktok.com/@someone/video/1 -> someone
    @someone -> someone
    """
    handle = channel_url.strip()
    path = handle.split("?", 1)[0].split("#", 1)[0]
    segments = [part for part in path.split("/") if part.startswith("@") and len(part) > 1]
    if segments:
        return segments[-1][1:]
    return handle[1:] if handle.startswith("@") else handle


def _error_message(response: httpx.Response) -> str:
    """Pull the service's own error message out of a failed response"""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return response.reason_phrase or f"HTTP {response.status_code}"


class ChannelLister:
    """Apify-backed channel lister"""

    def __init__(
        self,
        tiktok_actor_url: str,
        facebook_actor_url: str,
        uid_lookup_url: str = "",
        timeout: float = 300,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the lister

        Args:
            tiktok_actor_url: run-sync-get-dataset-items URL of the TikTok actor
            facebook_actor_url: run-sync-get-dataset-items URL of the Facebook actor
            uid_lookup_url: service converting numeric Facebook ids to usernames
            timeout: request timeout in seconds (actors run synchronously)
            transport: optional httpx transport, used by tests
        """
        self.tiktok_actor_url = tiktok_actor_url
        self.facebook_actor_url = facebook_actor_url
        self.uid_lookup_url = uid_lookup_url
        self.timeout = timeout
        self.transport = transport

        logger.info("Channel lister initialized")

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self.transport
        )

    async def list_videos(
        self,
        token: str,
        channel_url: str,
        limit: int
    ) -> List[VideoRecord]:
        """List the most recent videos of a channel

        Args:
            token: Apify API token
            channel_url: TikTok or Facebook channel URL
            limit: maximum number of videos

        Returns:
            normalized video records in the order the actor returned them

        Raises:
            ConfigurationError: missing token/URL, bad limit or unsupported URL
            UpstreamError: the actor call failed or returned malformed data
            EmptyResultError: no usable videos were found
        """
        if not token:
            raise ConfigurationError("Apify API token is required.")
        if not channel_url or not channel_url.strip():
            raise ConfigurationError("Channel URL is required.")
        if not isinstance(limit, int) or limit < 1:
            raise ConfigurationError(f"Result limit must be a positive integer, got {limit!r}.")

        platform = detect_platform(channel_url)
        logger.info(f"Scanning {platform.value} channel: {channel_url} (limit={limit})")

        if platform == Platform.TIKTOK:
            return await self._list_tiktok(token, channel_url, limit)
        return await self._list_facebook(token, channel_url, limit)

    async def _list_tiktok(self, token: str, channel_url: str, limit: int) -> List[VideoRecord]:
        handle = extract_tiktok_handle(channel_url)
        body = {
            "profiles": [handle],
            "resultsPerPage": limit,
            "profileScrapeSections": ["videos"],
            "profileSorting": "latest",
            "excludePinnedPosts": False,
            "shouldDownloadVideos": False,
            "shouldDownloadCovers": False,
            "shouldDownloadSubtitles": False,
            "shouldDownloadSlideshowImages": False,
            "shouldDownloadAvatars": False,
        }

        raw_items = await self._run_actor(self.tiktok_actor_url, token, body)
        videos = [normalize_item(Platform.TIKTOK, item) for item in raw_items]

        logger.info(f"TikTok scan of @{handle} returned {len(videos)} videos")
        return videos

    async def _list_facebook(self, token: str, channel_url: str, limit: int) -> List[VideoRecord]:
        profile_url = await self.resolve_facebook_url(channel_url)
        body = {
            "profileUrls": [profile_url.strip()],
            "maxResults": limit,
        }

        raw_items = await self._run_actor(self.facebook_actor_url, token, body)
        videos = [
            normalize_item(Platform.FACEBOOK, item)
            for item in raw_items if is_facebook_video_post(item)
        ]

        if not videos:
            raise EmptyResultError(
                "The scraper ran successfully, but no video posts were found in the results. "
                "The page might not have recent videos or they may not be publicly accessible."
            )

        skipped = len(raw_items) - len(videos)
        if skipped:
            logger.debug(f"Skipped {skipped} Facebook items without a post id or URL")

        logger.info(f"Facebook scan of {profile_url} returned {len(videos)} videos")
        return videos

    async def _run_actor(self, actor_url: str, token: str, body: dict) -> list:
        """Run an actor synchronously and return its dataset items"""
        try:
            async with self._client() as client:
                response = await client.post(
                    actor_url,
                    params={"token": token},
                    json=body
                )
        except httpx.HTTPError as e:
            logger.error(f"Apify request failed: {e}")
            raise UpstreamError(f"Apify request failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.error(f"Apify API error: HTTP {response.status_code}, {message}")
            raise UpstreamError(f"Apify API Error: {message}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Apify returned a response that is not valid JSON.") from e

        if not isinstance(data, list):
            raise UpstreamError("Apify returned data in an unexpected format.")
        if not data:
            raise EmptyResultError("Apify found no videos for this channel.")

        return data

    async def resolve_facebook_url(self, channel_url: str) -> str:
        """Convert a profile.php?id=<uid> URL to a username URL

        Best effort: any failure is logged and the original URL is returned.
        """
        try:
            parsed = urlparse(channel_url.strip())
            if "profile.php" not in parsed.path:
                return channel_url
            uid = parse_qs(parsed.query).get("id", [""])[0]
            if not uid or not self.uid_lookup_url:
                return channel_url

            async with self._client(timeout=30.0) as client:
                response = await client.post(self.uid_lookup_url, data={"uid": uid})

            if not response.is_success:
                logger.warning(
                    f"Could not convert Facebook UID {uid}: HTTP {response.status_code}. "
                    f"Using the original URL"
                )
                return channel_url

            data = response.json()
            username = data.get("username") if isinstance(data, dict) else None
            if isinstance(username, str) and username.strip():
                resolved = f"https://www.facebook.com/{username.strip()}"
                logger.info(f"Resolved Facebook UID {uid} -> {resolved}")
                return resolved

        except Exception as e:
            logger.warning(f"Facebook UID conversion failed, using the original URL: {e}")

        return channel_url
