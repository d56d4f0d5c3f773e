"""
Transcriber
Speech-to-text through the Google Gemini API
"""

import re
from typing import Any, Callable, Optional

from google import genai
from google.genai import types
from loguru import logger

from channel_transcriber.errors import (
    ConfigurationError,
    CredentialError,
    QuotaError,
    UpstreamError,
)
from channel_transcriber.models import AudioPayload

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_LANGUAGE = "Vietnamese"
DEFAULT_PROMPT = (
    "Transcribe the speech in this audio file into {language} text exactly as spoken. "
    "Return only the spoken content, without any introduction, commentary or notes."
)

_QUOTA_PATTERN = re.compile(r"rate limit|quota", re.IGNORECASE)
_CREDENTIAL_PATTERN = re.compile(r"api[_ ]key[_ ]invalid|invalid api key", re.IGNORECASE)


def classify_error(message: str) -> UpstreamError:
    """Turn a raw provider failure message into a typed error

    Quota errors are checked before credential errors, so a message that
    mentions both a 429 and a 400 is reported as a quota problem.
    """
    if "429" in message or _QUOTA_PATTERN.search(message):
        return QuotaError(
            "Google AI quota reached (usually 15 requests/minute). "
            "Please wait a moment and try again."
        )
    if _CREDENTIAL_PATTERN.search(message) or "400" in message:
        return CredentialError("The Google AI API key is invalid. Please check your key.")
    return UpstreamError(message)


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


class GeminiTranscriber:
    """Gemini speech-to-text client"""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        prompt: str = DEFAULT_PROMPT,
        client_factory: Optional[Callable[[str], Any]] = None
    ):
        """Initialize the transcriber

        Args:
            model: Gemini model name
            language: target transcription language
            prompt: instruction template, may reference {language}
            client_factory: builds a genai client from an API key
        """
        self.model = model
        self.language = language
        self.prompt = prompt
        self.client_factory = client_factory or _default_client_factory

        logger.info(f"Gemini transcriber initialized: model={model}, language={language}")

    @property
    def instruction(self) -> str:
        return self.prompt.format(language=self.language)

    async def transcribe(self, api_key: str, audio: AudioPayload) -> str:
        """Transcribe one audio payload

        Args:
            api_key: Google AI API key
            audio: audio bytes and MIME type

        Returns:
            transcript text

        Raises:
            ConfigurationError: no API key
            QuotaError: rate limit or quota exhausted
            CredentialError: the API key was rejected
            UpstreamError: empty transcript or any other provider failure
        """
        if not api_key:
            raise ConfigurationError("Google AI API key is required.")

        logger.debug(f"Transcribing {audio.size} bytes ({audio.mime_type}) with {self.model}")

        try:
            client = self.client_factory(api_key)
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=[
                    self.instruction,
                    types.Part.from_bytes(data=audio.data, mime_type=audio.mime_type),
                ],
            )
        except Exception as e:
            message = str(e) or "Unknown error while calling Gemini."
            logger.error(f"Gemini transcription failed: {message}")
            raise classify_error(message) from e

        transcript = (getattr(response, "text", None) or "").strip()
        if not transcript:
            raise UpstreamError("Gemini returned no transcript.")

        logger.info(f"Transcription complete: {len(transcript)} characters")
        return transcript
