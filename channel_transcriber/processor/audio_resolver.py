"""
Audio resolver
Downloads the operator-supplied audio file of a video
"""

from typing import Optional

import httpx
from loguru import logger

from channel_transcriber.errors import AudioDownloadError
from channel_transcriber.models import AudioPayload

DEFAULT_MIME_TYPE = "audio/mpeg"


class AudioResolver:
    """Fetches audio bytes from a direct URL"""

    def __init__(
        self,
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the resolver

        Args:
            timeout: download timeout in seconds
            transport: optional httpx transport, used by tests
        """
        self.timeout = timeout
        self.transport = transport

        logger.info(f"Audio resolver initialized: timeout={timeout}s")

    async def fetch(self, audio_url: str) -> AudioPayload:
        """Download an audio file

        Args:
            audio_url: direct URL of the audio file

        Returns:
            audio bytes and their MIME type

        Raises:
            AudioDownloadError: network error or non-2xx response
        """
        logger.debug(f"Downloading audio: {audio_url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport
            ) as client:
                response = await client.get(audio_url)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.error(f"Audio download failed: {audio_url} - {e}")
            raise AudioDownloadError(
                "Could not download the audio file. The URL may be invalid or unreachable."
            ) from e

        content_type = response.headers.get("content-type", "")
        mime_type = content_type.split(";", 1)[0].strip().lower()

        if not mime_type:
            logger.warning(f"No content type for {audio_url}, assuming {DEFAULT_MIME_TYPE}")
            mime_type = DEFAULT_MIME_TYPE
        elif not mime_type.startswith("audio/"):
            # Still forwarded; the transcriber decides whether it can read it
            logger.warning(f"Fetched file might not be audio: {audio_url} (type: {mime_type})")

        payload = AudioPayload(data=response.content, mime_type=mime_type, url=audio_url)
        logger.info(f"Audio downloaded: {audio_url} ({payload.size} bytes, {mime_type})")
        return payload
