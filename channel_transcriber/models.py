"""
Data models
Shared records passed between the lister, the pipeline and the API
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    """Supported channel platforms"""
    TIKTOK = "tiktok"
    FACEBOOK = "facebook"


class Stage(str, Enum):
    """Workflow stage: scan -> match -> results"""
    SCAN = "scan"
    MATCH = "match"
    RESULTS = "results"


class TranscriptStatus(str, Enum):
    """Per-video transcription status"""
    IDLE = "idle"
    MATCHED = "matched"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class MediaInfo:
    """Video dimensions and length"""
    duration: float = 0.0      # seconds
    height: int = 0
    width: int = 0


@dataclass(frozen=True)
class AudioTrack:
    """Background audio metadata"""
    name: str = "N/A"
    author: str = "N/A"
    is_original: bool = False


@dataclass(frozen=True)
class VideoRecord:
    """One video discovered by a channel scan"""
    id: str                           # unique within a scan
    source_url: str                   # canonical video page URL, join key
    description: str = ""
    created_at: int = 0               # epoch milliseconds
    author_name: str = "Unknown"
    author_display_name: str = "Unknown"
    author_avatar_url: str = ""
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    play_count: int = 0
    media: MediaInfo = field(default_factory=MediaInfo)
    audio_track: AudioTrack = field(default_factory=AudioTrack)

    @property
    def created_at_iso(self) -> str:
        """Creation time as an ISO-8601 UTC string"""
        moment = datetime.fromtimestamp(self.created_at / 1000, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at_iso"] = self.created_at_iso
        return data


@dataclass
class TranscriptEntry:
    """Ephemeral transcription state of one video"""
    status: TranscriptStatus
    text: str = ""             # progress message, transcript or error message


@dataclass
class AudioPayload:
    """Downloaded audio bytes"""
    data: bytes
    mime_type: str
    url: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ProcessSummary:
    """Outcome of one sequential transcription run"""
    total: int = 0             # eligible videos
    processed: int = 0         # attempts that finished, success or failure
    success: int = 0
    failed: int = 0
    cancelled: bool = False
    message: str = ""
    failures: dict = field(default_factory=dict)  # source_url -> error message
    duration: Optional[float] = None               # seconds

    def to_dict(self) -> dict:
        return asdict(self)
