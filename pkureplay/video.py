"""
Video resolution.

LectureDetail.sub_content is a JSON document stored as a string inside the
JSON response. Decoding happens in two stages:

1. the outer envelope (typed, done by the API client)
2. a best-effort decode of sub_content into an optional Playback

A missing, empty or malformed sub_content means "no recording available",
never an error.
"""

from __future__ import annotations

import json
import logging
from typing import Optional
from urllib.parse import urlparse

from pkureplay.errors import ParseError
from pkureplay.model import LectureDetail, Playback, ResolvedVideo, VideoFormat

logger = logging.getLogger(__name__)

SEGMENTED_EXTENSION = ".m3u8"


def parse_playback(sub_content: Optional[str]) -> Optional[Playback]:
    """
    Strict decode of sub_content.

    Returns None when there is nothing to decode or no save_playback entry.
    Raises ParseError when sub_content is not a JSON object.
    """
    if sub_content is None or not sub_content.strip():
        return None

    try:
        data = json.loads(sub_content)
    except (json.JSONDecodeError, RecursionError) as e:
        raise ParseError(f"sub_content is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"sub_content is a JSON {type(data).__name__}, expected an object")

    save_playback = data.get("save_playback")
    if not isinstance(save_playback, dict):
        return None

    contents = save_playback.get("contents")
    if not isinstance(contents, str) or not contents.strip():
        return None

    return Playback(
        contents=contents.strip(),
        contents_duration=str(save_playback.get("contents_duration") or ""),
        is_m3u8=str(save_playback.get("is_m3u8") or ""),
    )


def decode_playback(sub_content: Optional[str]) -> Optional[Playback]:
    """
    Best-effort wrapper around parse_playback: parse errors are logged, not raised.
    """
    try:
        return parse_playback(sub_content)
    except ParseError as e:
        logger.warning("Failed to parse video content: %s", e)
        return None


def video_format(url: str) -> VideoFormat:
    try:
        path = urlparse(url).path
    except ValueError:
        # e.g. an unbalanced "[" in the host
        path = url.split("?", 1)[0].split("#", 1)[0]
    if path.lower().endswith(SEGMENTED_EXTENSION):
        return VideoFormat.SEGMENTED
    return VideoFormat.PROGRESSIVE


def resolve(detail: Optional[LectureDetail]) -> Optional[ResolvedVideo]:
    """
    Return the playable video of a lecture, or None if it has no recording.
    """
    if detail is None:
        return None
    playback = decode_playback(detail.sub_content)
    if playback is None:
        return None
    return ResolvedVideo(url=playback.contents, format=video_format(playback.contents))


class VideoResolver:
    """
    Object seam around resolve() so the orchestrator can be given another resolver.
    """

    def resolve(self, detail: Optional[LectureDetail]) -> Optional[ResolvedVideo]:
        return resolve(detail)
