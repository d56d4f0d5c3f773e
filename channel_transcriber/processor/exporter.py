"""
CSV exporter
Tabular views of the scanned videos and their transcripts
"""

import csv
import io
from typing import Dict, Iterable, List

from channel_transcriber.models import VideoRecord
from channel_transcriber.utils import format_duration

TRANSCRIPT_COLUMNS = [
    "id",
    "video_url",
    "description",
    "created_at",
    "author_name",
    "author_display_name",
    "likes",
    "comments",
    "shares",
    "plays",
    "duration",
    "width",
    "height",
    "audio_name",
    "audio_author",
    "audio_original",
    "transcript",
]

# Excel needs a BOM to detect UTF-8
BOM = "\ufeff"


def _write(rows: Iterable[List], header: List[str], bom: bool) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return (BOM if bom else "") + buffer.getvalue()


def transcripts_csv(
    videos: List[VideoRecord],
    transcripts: Dict[str, str],
    bom: bool = True
) -> str:
    """One row per video that has a finished transcript

    Args:
        videos: scanned videos, in scan order
        transcripts: source_url -> transcript
        bom: prefix a UTF-8 byte order mark

    Returns:
        CSV text
    """
    rows = []
    for video in videos:
        transcript = transcripts.get(video.source_url)
        if transcript is None:
            continue
        rows.append([
            video.id,
            video.source_url,
            video.description,
            video.created_at_iso,
            video.author_name,
            video.author_display_name,
            video.like_count,
            video.comment_count,
            video.share_count,
            video.play_count,
            format_duration(video.media.duration),
            video.media.width,
            video.media.height,
            video.audio_track.name,
            video.audio_track.author,
            "yes" if video.audio_track.is_original else "no",
            transcript,
        ])
    return _write(rows, TRANSCRIPT_COLUMNS, bom)


def video_urls_csv(videos: List[VideoRecord], bom: bool = True) -> str:
    """Just the video URLs, for fetching audio links elsewhere"""
    return _write(([video.source_url] for video in videos), ["video_url"], bom)
