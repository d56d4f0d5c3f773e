"""
Pipeline controller
Drives the scan -> match -> transcribe workflow and the per-video state machine
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from channel_transcriber.errors import ChannelTranscriberError, PipelineStateError
from channel_transcriber.models import (
    ProcessSummary,
    Stage,
    TranscriptEntry,
    TranscriptStatus,
    VideoRecord,
)
from channel_transcriber.processor import store as keys
from channel_transcriber.processor.audio_resolver import AudioResolver
from channel_transcriber.processor.channel_lister import ChannelLister
from channel_transcriber.processor.store import KeyValueStore
from channel_transcriber.processor.transcriber import GeminiTranscriber

DOWNLOADING_MESSAGE = "Downloading audio..."
TRANSCRIBING_MESSAGE = "Transcribing with AI..."
READY_MESSAGE = "Ready."


class PipelineController:
    """Workflow state machine

    Holds the scanned videos and the ephemeral per-video states in memory.
    Credentials, audio assignments and finished transcripts live in the
    key-value store and survive restarts.
    """

    def __init__(
        self,
        lister: ChannelLister,
        resolver: AudioResolver,
        transcriber: GeminiTranscriber,
        store: KeyValueStore,
        request_delay: float = 6.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """Initialize the controller

        Args:
            lister: channel lister
            resolver: audio downloader
            transcriber: speech-to-text client
            store: durable key-value store
            request_delay: pause between transcription requests (seconds)
            sleep: coroutine used for the pause
        """
        self.lister = lister
        self.resolver = resolver
        self.transcriber = transcriber
        self.store = store
        self.request_delay = request_delay
        self._sleep = sleep

        self.stage = Stage.SCAN
        self.status = READY_MESSAGE
        self.videos: List[VideoRecord] = []
        self.is_processing = False

        self._states: Dict[str, TranscriptEntry] = {}
        self._retrying: Set[str] = set()
        self._stop_requested = False

        logger.info(f"Pipeline controller initialized: request_delay={request_delay}s")

    # ------------------------------------------------------------------
    # Durable state
    # ------------------------------------------------------------------

    @property
    def apify_token(self) -> str:
        return self.store.get(keys.APIFY_TOKEN, "") or ""

    @property
    def google_api_key(self) -> str:
        return self.store.get(keys.GOOGLE_API_KEY, "") or ""

    def set_credentials(
        self,
        apify_token: Optional[str] = None,
        google_api_key: Optional[str] = None
    ):
        """Store either or both credentials; None leaves a value untouched"""
        if apify_token is not None:
            self.store.set(keys.APIFY_TOKEN, apify_token.strip())
            logger.info("Apify token updated")
        if google_api_key is not None:
            self.store.set(keys.GOOGLE_API_KEY, google_api_key.strip())
            logger.info("Google AI API key updated")

    @property
    def audio_links(self) -> Dict[str, str]:
        return self.store.get(keys.AUDIO_LINKS, {}) or {}

    @property
    def transcript_cache(self) -> Dict[str, str]:
        return self.store.get(keys.TRANSCRIPT_CACHE, {}) or {}

    def assign_audio(self, source_url: str, audio_url: str):
        """Attach an audio URL to a video; an empty URL removes the assignment"""
        links = self.audio_links
        audio_url = (audio_url or "").strip()

        if audio_url:
            links[source_url] = audio_url
        else:
            links.pop(source_url, None)

        self.store.set(keys.AUDIO_LINKS, links)
        logger.debug(f"Audio assignment for {source_url}: {audio_url or '(cleared)'}")

    def _cache_transcript(self, source_url: str, transcript: str):
        cache = self.transcript_cache
        cache[source_url] = transcript
        self.store.set(keys.TRANSCRIPT_CACHE, cache)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def find_video(self, source_url: str) -> Optional[VideoRecord]:
        for video in self.videos:
            if video.source_url == source_url:
                return video
        return None

    def eligible_videos(self) -> List[VideoRecord]:
        """Videos with an audio URL and no cached transcript, in scan order"""
        links = self.audio_links
        cache = self.transcript_cache
        return [
            video for video in self.videos
            if links.get(video.source_url) and video.source_url not in cache
        ]

    def transcript_state(self, source_url: str) -> TranscriptEntry:
        """Current state of one video

        A running attempt wins over the cache; a cached transcript counts as
        success even when no attempt ran in this session.
        """
        entry = self._states.get(source_url)
        if entry and entry.status == TranscriptStatus.LOADING:
            return TranscriptEntry(entry.status, entry.text)

        cache = self.transcript_cache
        if source_url in cache:
            return TranscriptEntry(TranscriptStatus.SUCCESS, cache[source_url])

        if entry:
            return TranscriptEntry(entry.status, entry.text)
        if self.audio_links.get(source_url):
            return TranscriptEntry(TranscriptStatus.MATCHED, "Waiting for transcription...")
        return TranscriptEntry(TranscriptStatus.IDLE, "")

    @property
    def matched_count(self) -> int:
        links = self.audio_links
        return sum(1 for video in self.videos if links.get(video.source_url))

    @property
    def completed_count(self) -> int:
        cache = self.transcript_cache
        return sum(1 for video in self.videos if video.source_url in cache)

    # ------------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------------

    def _ensure_idle(self, action: str):
        if self.is_processing:
            raise PipelineStateError(f"Cannot {action} while processing is running.")
        if self._retrying:
            raise PipelineStateError(f"Cannot {action} while a retry is in progress.")

    async def scan(self, channel_url: str, limit: int) -> List[VideoRecord]:
        """Step 1: list the channel's videos and move to matching

        Raises:
            PipelineStateError: called from the results stage or while busy
            ChannelTranscriberError: propagated from the lister after the
                failure has been recorded in the status line
        """
        self._ensure_idle("scan")
        if self.stage == Stage.RESULTS:
            raise PipelineStateError("Go back to matching or reset before scanning again.")

        self.is_processing = True
        self.status = "Step 1: scanning channel..."

        try:
            videos = await self.lister.list_videos(self.apify_token, channel_url, limit)
        except ChannelTranscriberError as e:
            self.status = f"Scan error: {e}"
            logger.error(self.status)
            raise
        finally:
            self.is_processing = False

        self.videos = list(videos)
        self.stage = Stage.MATCH
        self.status = (
            f"Scan succeeded! Found {len(self.videos)} videos. "
            f"Continue with audio matching."
        )
        logger.info(self.status)
        return self.videos

    def back_to_matching(self):
        """Step 3 -> step 2"""
        self._ensure_idle("go back")
        if self.stage != Stage.RESULTS:
            raise PipelineStateError(f"Cannot go back to matching from stage '{self.stage.value}'.")
        self.stage = Stage.MATCH
        self.status = "Back to audio matching."

    def reset(self):
        """Clear the session; the transcript cache and credentials are kept"""
        self._ensure_idle("reset")
        self.videos = []
        self._states = {}
        self.store.set(keys.AUDIO_LINKS, {})
        self.stage = Stage.SCAN
        self.status = READY_MESSAGE
        logger.info("Session cleared")

    def request_stop(self):
        """Ask the running loop to stop before its next item"""
        self._stop_requested = True
        if self.is_processing:
            self.status = "Stop requested..."
        logger.info("Stop requested")

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def transcribe_all(self) -> ProcessSummary:
        """Step 3: transcribe every eligible video one at a time

        Returns:
            run summary
        """
        return await self.run_loop(self.begin_run())

    def begin_run(self) -> List[VideoRecord]:
        """Enter the results stage and claim the controller for a run

        Synchronous so a caller that schedules run_loop() as a background
        task holds the processing flag, and a stop request made before the
        task starts is kept.

        Returns:
            eligible videos, to be passed to run_loop()

        Raises:
            PipelineStateError: no scan yet, a run or a retry in progress
        """
        self._ensure_idle("start transcription")
        if self.stage == Stage.SCAN:
            raise PipelineStateError("Scan a channel before starting transcription.")

        self._stop_requested = False
        self.stage = Stage.RESULTS
        videos = self.eligible_videos()
        if videos:
            self.is_processing = True
            self.status = "Starting transcription. Requests are spaced out to respect the API rate limit."
        return videos

    async def run_loop(self, videos: List[VideoRecord]) -> ProcessSummary:
        """Process the videos claimed by begin_run()"""
        summary = ProcessSummary(total=len(videos))

        if not videos:
            summary.message = "Done. No new videos with an audio URL to transcribe."
            self.status = summary.message
            logger.info(summary.message)
            return summary

        logger.info(f"Transcribing {len(videos)} videos")
        start_time = time.monotonic()

        try:
            for index, video in enumerate(videos):
                if self._stop_requested:
                    summary.cancelled = True
                    break

                self.status = (
                    f"Processing {index + 1}/{len(videos)}: {video.author_display_name}"
                )
                audio_url = self.audio_links.get(video.source_url, "")
                error = await self._process_one(video.source_url, audio_url)

                summary.processed += 1
                if error is None:
                    summary.success += 1
                else:
                    summary.failed += 1
                    summary.failures[video.source_url] = error

                is_last = index == len(videos) - 1
                if not is_last and not self._stop_requested:
                    await self._sleep(self.request_delay)
        finally:
            self.is_processing = False
            summary.duration = time.monotonic() - start_time

        if summary.cancelled:
            summary.message = (
                f"Stopped by user. {summary.success} succeeded, {summary.failed} failed."
            )
        else:
            summary.message = (
                f"Done! {summary.success} succeeded, {summary.failed} failed."
            )
        self.status = summary.message
        logger.info(f"{summary.message} ({summary.duration:.1f}s)")
        return summary

    async def retry(self, source_url: str) -> TranscriptEntry:
        """Re-run download and transcription for a single video

        Raises:
            PipelineStateError: unknown video, main loop running, or the same
                video is already being retried
        """
        if self.find_video(source_url) is None:
            raise PipelineStateError(f"Unknown video: {source_url}")
        if self.is_processing:
            raise PipelineStateError("Cannot retry while the transcription run is in progress.")
        if source_url in self._retrying:
            raise PipelineStateError(f"Retry already in progress: {source_url}")

        audio_url = self.audio_links.get(source_url, "")
        if not audio_url:
            self._states[source_url] = TranscriptEntry(
                TranscriptStatus.ERROR, "Error: No audio URL found."
            )
            return self.transcript_state(source_url)

        self._retrying.add(source_url)
        try:
            logger.info(f"Retrying {source_url}")
            await self._process_one(source_url, audio_url)
        finally:
            self._retrying.discard(source_url)

        return self.transcript_state(source_url)

    async def _process_one(self, source_url: str, audio_url: str) -> Optional[str]:
        """Download then transcribe one video

        Returns:
            None on success, otherwise the error message
        """
        self._states[source_url] = TranscriptEntry(TranscriptStatus.LOADING, DOWNLOADING_MESSAGE)

        try:
            audio = await self.resolver.fetch(audio_url)
            self._states[source_url] = TranscriptEntry(TranscriptStatus.LOADING, TRANSCRIBING_MESSAGE)

            transcript = await self.transcriber.transcribe(self.google_api_key, audio)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            self._states[source_url] = TranscriptEntry(TranscriptStatus.ERROR, f"Error: {message}")
            logger.error(f"Transcription failed: {source_url} - {message}")
            return message

        self._states[source_url] = TranscriptEntry(TranscriptStatus.SUCCESS, transcript)
        self._cache_transcript(source_url, transcript)
        logger.info(f"Transcribed: {source_url}")
        return None
