"""
API endpoints
Operator actions of the three-step workflow
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, Field

from channel_transcriber.errors import (
    ChannelTranscriberError,
    ConfigurationError,
    EmptyResultError,
    PipelineStateError,
)
from channel_transcriber.models import TranscriptStatus
from channel_transcriber.processor.exporter import transcripts_csv, video_urls_csv

router = APIRouter()

# Global controller reference (set in main.py)
controller = None
_background_task: Optional[asyncio.Task] = None


def set_controller(ctrl):
    """Set the controller instance"""
    global controller, _background_task
    controller = ctrl
    _background_task = None


def _require_controller():
    if controller is None:
        raise HTTPException(status_code=500, detail="Controller not initialized")
    return controller


def _log_task_result(task: asyncio.Task):
    """Done-callback for the background run"""
    if task.cancelled():
        logger.warning("Background transcription was cancelled")
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Background transcription failed: {error!r}")
    else:
        logger.info(f"Background transcription finished: {task.result().message}")


def _http_error(error: ChannelTranscriberError) -> HTTPException:
    """Map a pipeline error to an HTTP error"""
    if isinstance(error, ConfigurationError):
        status_code = 400
    elif isinstance(error, PipelineStateError):
        status_code = 409
    elif isinstance(error, EmptyResultError):
        status_code = 404
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=str(error))


class ActionResponse(BaseModel):
    """Generic action response"""
    success: bool
    message: str
    data: Optional[dict] = None


class CredentialsRequest(BaseModel):
    """Credential update; omitted fields are left unchanged"""
    apify_token: Optional[str] = None
    google_api_key: Optional[str] = None


class ScanRequest(BaseModel):
    """Scan request"""
    channel_url: str
    limit: int = Field(20, ge=1, le=200)


class AudioAssignmentRequest(BaseModel):
    """Audio URL for one video; empty clears it"""
    source_url: str
    audio_url: str = ""


class RetryRequest(BaseModel):
    """Retry one video"""
    source_url: str


class TranscriptInfo(BaseModel):
    """Per-video transcript state"""
    status: str
    text: str


class VideoItem(BaseModel):
    """One row of the workflow table"""
    video: dict
    audio_url: str
    transcript: TranscriptInfo


class StateResponse(BaseModel):
    """Full workflow state"""
    stage: str
    status: str
    is_processing: bool
    has_apify_token: bool
    has_google_api_key: bool
    video_count: int
    matched_count: int
    completed_count: int
    eligible_count: int
    videos: List[VideoItem]


def _state_response(ctrl) -> StateResponse:
    links = ctrl.audio_links
    items = []
    for video in ctrl.videos:
        entry = ctrl.transcript_state(video.source_url)
        items.append(VideoItem(
            video=video.to_dict(),
            audio_url=links.get(video.source_url, ""),
            transcript=TranscriptInfo(status=entry.status.value, text=entry.text)
        ))

    return StateResponse(
        stage=ctrl.stage.value,
        status=ctrl.status,
        is_processing=ctrl.is_processing,
        has_apify_token=bool(ctrl.apify_token),
        has_google_api_key=bool(ctrl.google_api_key),
        video_count=len(ctrl.videos),
        matched_count=ctrl.matched_count,
        completed_count=ctrl.completed_count,
        eligible_count=len(ctrl.eligible_videos()),
        videos=items
    )


@router.get("/api/state", response_model=StateResponse)
async def get_state():
    """Current stage, counters and per-video rows"""
    return _state_response(_require_controller())


@router.put("/api/credentials", response_model=ActionResponse)
async def update_credentials(request: CredentialsRequest):
    """Store the Apify token and/or the Google AI key"""
    ctrl = _require_controller()
    ctrl.set_credentials(
        apify_token=request.apify_token,
        google_api_key=request.google_api_key
    )
    return ActionResponse(
        success=True,
        message="Credentials saved",
        data={
            "has_apify_token": bool(ctrl.apify_token),
            "has_google_api_key": bool(ctrl.google_api_key)
        }
    )


@router.post("/api/scan", response_model=ActionResponse)
async def scan_channel(request: ScanRequest):
    """Step 1: scan a channel"""
    ctrl = _require_controller()
    logger.info(f"Scan request: {request.channel_url} (limit={request.limit})")

    try:
        videos = await ctrl.scan(request.channel_url, request.limit)
    except ChannelTranscriberError as e:
        raise _http_error(e)

    return ActionResponse(
        success=True,
        message=ctrl.status,
        data={"count": len(videos), "stage": ctrl.stage.value}
    )


@router.put("/api/audio", response_model=ActionResponse)
async def assign_audio(request: AudioAssignmentRequest):
    """Step 2: attach an audio URL to a video"""
    ctrl = _require_controller()
    if ctrl.find_video(request.source_url) is None:
        raise HTTPException(status_code=404, detail=f"Unknown video: {request.source_url}")

    ctrl.assign_audio(request.source_url, request.audio_url)
    return ActionResponse(
        success=True,
        message="Audio URL saved" if request.audio_url.strip() else "Audio URL cleared",
        data={"matched_count": ctrl.matched_count}
    )


@router.post("/api/transcribe", response_model=ActionResponse)
async def transcribe():
    """Step 3: transcribe all eligible videos and wait for the result"""
    ctrl = _require_controller()
    logger.info("Transcription request received")

    try:
        summary = await ctrl.transcribe_all()
    except ChannelTranscriberError as e:
        raise _http_error(e)

    return ActionResponse(success=True, message=summary.message, data=summary.to_dict())


@router.post("/api/transcribe/async", response_model=ActionResponse)
async def transcribe_async():
    """Step 3 in the background (returns immediately)"""
    global _background_task
    ctrl = _require_controller()

    if _background_task is not None and not _background_task.done():
        raise HTTPException(status_code=409, detail="Processing is already running")

    # Claim the run before scheduling so an early /api/stop is honoured
    try:
        videos = ctrl.begin_run()
    except ChannelTranscriberError as e:
        raise _http_error(e)

    eligible = len(videos)
    _background_task = asyncio.create_task(ctrl.run_loop(videos))
    _background_task.add_done_callback(_log_task_result)
    logger.info(f"Background transcription started: {eligible} videos")

    return ActionResponse(
        success=True,
        message="Background transcription started",
        data={"eligible": eligible}
    )


@router.post("/api/stop", response_model=ActionResponse)
async def stop():
    """Stop the running transcription before its next video"""
    ctrl = _require_controller()
    ctrl.request_stop()
    return ActionResponse(success=True, message=ctrl.status)


@router.post("/api/retry", response_model=ActionResponse)
async def retry(request: RetryRequest):
    """Re-run one video"""
    ctrl = _require_controller()

    try:
        entry = await ctrl.retry(request.source_url)
    except ChannelTranscriberError as e:
        raise _http_error(e)

    return ActionResponse(
        success=entry.status == TranscriptStatus.SUCCESS,
        message=entry.text,
        data={"source_url": request.source_url, "status": entry.status.value}
    )


@router.post("/api/back", response_model=ActionResponse)
async def back_to_matching():
    """Results -> matching"""
    ctrl = _require_controller()
    try:
        ctrl.back_to_matching()
    except ChannelTranscriberError as e:
        raise _http_error(e)
    return ActionResponse(success=True, message=ctrl.status, data={"stage": ctrl.stage.value})


@router.post("/api/reset", response_model=ActionResponse)
async def reset():
    """Clear the session"""
    ctrl = _require_controller()
    try:
        ctrl.reset()
    except ChannelTranscriberError as e:
        raise _http_error(e)
    return ActionResponse(success=True, message=ctrl.status, data={"stage": ctrl.stage.value})


@router.get("/api/export/transcripts.csv")
async def export_transcripts():
    """CSV of all finished transcripts"""
    ctrl = _require_controller()
    content = transcripts_csv(ctrl.videos, ctrl.transcript_cache)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="transcripts.csv"'}
    )


@router.get("/api/export/video-urls.csv")
async def export_video_urls():
    """CSV of the scanned video URLs"""
    ctrl = _require_controller()
    content = video_urls_csv(ctrl.videos)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="video_urls.csv"'}
    )


@router.get("/health")
async def health_check():
    """Health check"""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "controller_ready": controller is not None
    }
