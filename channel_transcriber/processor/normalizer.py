"""
Response normalizers
Map raw scraper items of each platform into VideoRecord
"""

import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from channel_transcriber.models import AudioTrack, MediaInfo, Platform, VideoRecord


def _pick(item: Any, key: str, default: Any = None) -> Any:
    """Return item[key], falling back to default when the key is missing or null"""
    if not isinstance(item, dict):
        return default
    value = item.get(key)
    return default if value is None else value


def _number(value: Any, default: float = 0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _count(item: Any, key: str) -> int:
    return max(0, int(_number(_pick(item, key, 0))))


def _tiktok_created_at(item: dict) -> int:
    """Epoch milliseconds of a TikTok item

    The actor sends createTime in epoch seconds next to createTimeISO;
    the ISO string wins when it parses.
    """
    iso = _pick(item, "createTimeISO", "")
    if isinstance(iso, str) and iso:
        try:
            moment = datetime.fromisoformat(iso.replace("Z", "+00:00"))
        except ValueError:
            moment = None
        if moment is not None:
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=timezone.utc)
            return int(moment.timestamp() * 1000)
    return int(_number(_pick(item, "createTime", 0)) * 1000)


def map_tiktok_item(item: dict) -> VideoRecord:
    """Map one item of the TikTok actor response

    Args:
        item: raw dataset item

    Returns:
        normalized video record
    """
    author = _pick(item, "authorMeta", {})
    video_meta = _pick(item, "videoMeta", {})
    music = _pick(item, "musicMeta", {})

    source_url = str(_pick(item, "webVideoUrl", ""))
    author_name = str(_pick(author, "name", "Unknown"))

    return VideoRecord(
        id=str(_pick(item, "id", "") or source_url or f"fallback-{uuid.uuid4().hex}"),
        source_url=source_url,
        description=str(_pick(item, "text", "")),
        created_at=_tiktok_created_at(item),
        author_name=author_name,
        author_display_name=str(_pick(author, "nickName", author_name)),
        author_avatar_url=str(_pick(author, "avatar", "")),
        like_count=_count(item, "diggCount"),
        comment_count=_count(item, "commentCount"),
        share_count=_count(item, "shareCount"),
        play_count=_count(item, "playCount"),
        media=MediaInfo(
            duration=_number(_pick(video_meta, "duration", 0)),
            height=int(_number(_pick(video_meta, "height", 0))),
            width=int(_number(_pick(video_meta, "width", 0))),
        ),
        audio_track=AudioTrack(
            name=str(_pick(music, "musicName", "N/A")),
            author=str(_pick(music, "musicAuthor", "N/A")),
            is_original=bool(_pick(music, "musicOriginal", False)),
        ),
    )


def facebook_post_url(item: dict) -> str:
    """Shareable URL of a Facebook post, '' when none is present"""
    return str(_pick(item, "shareable_url", "") or _pick(item, "playback_video/permalink_url", ""))


def is_facebook_video_post(item: Any) -> bool:
    """A usable Facebook item has a post/video id and a post URL"""
    if not isinstance(item, dict):
        return False
    has_id = bool(item.get("video_id") or item.get("post_id"))
    return has_id and bool(facebook_post_url(item))


def map_facebook_item(item: dict) -> VideoRecord:
    """Map one item of the Facebook page actor response

    The Facebook actor returns a flat object with slash-separated keys
    (e.g. "video_owner/name"). Reactions are counted as likes.

    Args:
        item: raw dataset item

    Returns:
        normalized video record
    """
    creation_time = _number(_pick(item, "creation_time", 0))
    created_at = int(creation_time * 1000) if creation_time else int(time.time() * 1000)
    post_url = facebook_post_url(item)
    owner = str(_pick(item, "video_owner/name", "Unknown"))
    duration_ms = _number(_pick(item, "playable_duration_in_ms", 0))

    return VideoRecord(
        id=str(_pick(item, "video_id", "") or _pick(item, "post_id", "") or post_url),
        source_url=post_url,
        description=str(_pick(item, "message", "")),
        created_at=created_at,
        author_name=owner,
        author_display_name=owner,
        author_avatar_url=str(_pick(item, "video_owner/profile_pic_url", "")),
        like_count=_count(item, "reactions_count"),
        comment_count=_count(item, "comments_count"),
        share_count=_count(item, "shares_count"),
        play_count=_count(item, "views_count"),
        media=MediaInfo(
            duration=duration_ms / 1000 if duration_ms else 0.0,
            height=int(_number(_pick(item, "playback_video/height", 0))),
            width=int(_number(_pick(item, "playback_video/width", 0))),
        ),
        audio_track=AudioTrack(
            name=str(_pick(item, "track_title", "N/A")),
            author=str(_pick(item, "video_owner/name", "N/A")),
            is_original=bool(_pick(item, "is_original_audio_on_facebook", False)),
        ),
    )


MAPPERS: Dict[Platform, Callable[[dict], VideoRecord]] = {
    Platform.TIKTOK: map_tiktok_item,
    Platform.FACEBOOK: map_facebook_item,
}


def normalize_item(platform: Platform, item: dict) -> VideoRecord:
    """Dispatch a raw item to its platform mapper"""
    return MAPPERS[platform](item)
