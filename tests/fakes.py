"""Test doubles for the pipeline collaborators."""

from channel_transcriber.errors import AudioDownloadError, UpstreamError
from channel_transcriber.models import AudioPayload, VideoRecord


def make_video(key: str, author: str = "Author") -> VideoRecord:
    return VideoRecord(
        id=key,
        source_url=f"https://www.tiktok.com/@someone/video/{key}",
        description=f"video {key}",
        author_name="someone",
        author_display_name=author,
    )


class FakeLister:
    def __init__(self, videos=None, error=None):
        self.videos = list(videos or [])
        self.error = error
        self.calls = []

    async def list_videos(self, token, channel_url, limit):
        self.calls.append((token, channel_url, limit))
        if self.error is not None:
            raise self.error
        return list(self.videos)


class FakeResolver:
    """Returns fixed bytes; audio URLs listed in `failing` raise AudioDownloadError."""

    def __init__(self, failing=(), on_fetch=None):
        self.failing = set(failing)
        self.on_fetch = on_fetch
        self.gate = None
        self.calls = []

    async def fetch(self, audio_url):
        self.calls.append(audio_url)
        if self.gate is not None:
            await self.gate.wait()
        if self.on_fetch is not None:
            self.on_fetch(audio_url)
        if audio_url in self.failing:
            raise AudioDownloadError("Could not download the audio file.")
        return AudioPayload(data=b"ID3" + audio_url.encode(), mime_type="audio/mpeg", url=audio_url)


class FakeTranscriber:
    """Maps audio URL -> transcript; URLs missing from `texts` fail."""

    def __init__(self, texts=None, on_call=None):
        self.texts = dict(texts or {})
        self.on_call = on_call
        self.calls = []

    async def transcribe(self, api_key, audio):
        self.calls.append((api_key, audio.url))
        if self.on_call is not None:
            self.on_call(len(self.calls), audio)
        if audio.url not in self.texts:
            raise UpstreamError(f"no transcript for {audio.url}")
        return self.texts[audio.url]


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
