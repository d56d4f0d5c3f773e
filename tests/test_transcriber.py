import asyncio

import pytest

from channel_transcriber.errors import (
    ConfigurationError,
    CredentialError,
    QuotaError,
    UpstreamError,
)
from channel_transcriber.models import AudioPayload
from channel_transcriber.processor.transcriber import GeminiTranscriber, classify_error


class _Response:
    def __init__(self, text):
        self.text = text


class _FakeModels:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return _Response(self.outcome)


class _FakeAio:
    def __init__(self, models):
        self.models = models


class _FakeClient:
    def __init__(self, outcome):
        self.aio = _FakeAio(_FakeModels(outcome))


class _Factory:
    def __init__(self, outcome):
        self.client = _FakeClient(outcome)
        self.keys = []

    def __call__(self, api_key):
        self.keys.append(api_key)
        return self.client


AUDIO = AudioPayload(data=b"ID3", mime_type="audio/mpeg", url="https://cdn.test/a.mp3")


def test_transcribe_returns_text_and_sends_instruction():
    factory = _Factory("  xin chào  ")
    transcriber = GeminiTranscriber(model="gemini-test", language="Vietnamese", client_factory=factory)

    text = asyncio.run(transcriber.transcribe("key-1", AUDIO))

    assert text == "xin chào"
    assert factory.keys == ["key-1"]
    call = factory.client.aio.models.calls[0]
    assert call["model"] == "gemini-test"
    instruction, part = call["contents"]
    assert "Vietnamese" in instruction
    assert part.inline_data.mime_type == "audio/mpeg"
    assert part.inline_data.data == b"ID3"


def test_missing_key_is_rejected_before_any_call():
    factory = _Factory("text")

    with pytest.raises(ConfigurationError):
        asyncio.run(GeminiTranscriber(client_factory=factory).transcribe("", AUDIO))

    assert factory.keys == []


@pytest.mark.parametrize("text", ["", None, "   "])
def test_empty_transcript_is_a_generic_failure(text):
    transcriber = GeminiTranscriber(client_factory=_Factory(text))

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(transcriber.transcribe("key", AUDIO))

    assert type(excinfo.value) is UpstreamError


@pytest.mark.parametrize("message, error_type", [
    ("429 RESOURCE_EXHAUSTED. Quota exceeded for metric", QuotaError),
    ("Rate Limit reached", QuotaError),
    ("You exceeded your current QUOTA", QuotaError),
    ("400 INVALID_ARGUMENT. API key not valid. reason: API_KEY_INVALID", CredentialError),
    ("Invalid API key supplied", CredentialError),
    ("400 Bad Request", CredentialError),
])
def test_provider_failures_are_classified(message, error_type):
    transcriber = GeminiTranscriber(client_factory=_Factory(RuntimeError(message)))

    with pytest.raises(error_type):
        asyncio.run(transcriber.transcribe("key", AUDIO))


def test_other_failures_forward_the_message():
    transcriber = GeminiTranscriber(client_factory=_Factory(RuntimeError("503 model overloaded")))

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(transcriber.transcribe("key", AUDIO))

    assert type(excinfo.value) is UpstreamError
    assert str(excinfo.value) == "503 model overloaded"


def test_quota_message_differs_from_generic_failure():
    quota = classify_error("429 Too Many Requests")
    generic = classify_error("something broke")

    assert isinstance(quota, QuotaError)
    assert not isinstance(generic, (QuotaError, CredentialError))
    assert str(quota) != str(generic)
    assert "quota" in str(quota).lower()


def test_quota_wins_over_credential_markers():
    assert isinstance(classify_error("400 then 429"), QuotaError)
