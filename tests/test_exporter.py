import csv
import io

from channel_transcriber.models import AudioTrack, MediaInfo, VideoRecord
from channel_transcriber.processor.exporter import (
    BOM,
    TRANSCRIPT_COLUMNS,
    transcripts_csv,
    video_urls_csv,
)


def _rows(text):
    return list(csv.reader(io.StringIO(text.lstrip(BOM))))


VIDEOS = [
    VideoRecord(
        id="1",
        source_url="https://www.tiktok.com/@chef/video/1",
        description='Phở, "bò" tái',
        created_at=1700000000000,
        author_name="chef",
        author_display_name="Chef Nam",
        like_count=10,
        media=MediaInfo(duration=75, height=1024, width=576),
        audio_track=AudioTrack(name="original sound", author="Chef Nam", is_original=True),
    ),
    VideoRecord(id="2", source_url="https://www.tiktok.com/@chef/video/2"),
]


def test_transcripts_csv_only_includes_finished_videos():
    text = transcripts_csv(VIDEOS, {"https://www.tiktok.com/@chef/video/1": "xin chào\ncác bạn"})

    assert text.startswith(BOM)
    header, *rows = _rows(text)
    assert header == TRANSCRIPT_COLUMNS
    assert len(rows) == 1
    row = dict(zip(header, rows[0]))
    assert row["description"] == 'Phở, "bò" tái'
    assert row["created_at"] == "2023-11-14T22:13:20.000Z"
    assert row["duration"] == "1:15"
    assert row["audio_original"] == "yes"
    assert row["transcript"] == "xin chào\ncác bạn"


def test_video_urls_csv():
    text = video_urls_csv(VIDEOS, bom=False)

    assert _rows(text) == [
        ["video_url"],
        ["https://www.tiktok.com/@chef/video/1"],
        ["https://www.tiktok.com/@chef/video/2"],
    ]
