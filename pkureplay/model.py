"""
Central data model definitions used across the project.

This module defines the canonical structure of credentials, locations,
lectures and resolved videos so that:
- all modules share the same field names
- upstream JSON is decoded in exactly one place (the from_api constructors)
- the API client, resolver and UI layers stay free of raw dict access
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, List, TypeVar

T = TypeVar("T")


def _safe_str(x: Any) -> str:
    return "" if x is None else str(x).strip()


def _safe_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Credential:
    """
    The header pair every upstream request needs.

    Replace-only: a new login produces a new Credential.
    """

    authorization: str
    cookie: str

    def headers(self) -> dict[str, str]:
        return {"authorization": self.authorization, "cookie": self.cookie}


@dataclass
class Building:
    building_id: int
    building_name: str

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Building":
        return cls(
            building_id=_safe_int(raw.get("building_id")),
            building_name=_safe_str(raw.get("building_name")),
        )


@dataclass
class Location:
    """
    One campus and the teaching buildings it contains.
    """

    campus_id: int
    campus_name: str
    buildings: List[Building] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Location":
        building_list = raw.get("building_list") or []
        return cls(
            campus_id=_safe_int(raw.get("campus_id")),
            campus_name=_safe_str(raw.get("campus_name")),
            buildings=[Building.from_api(b) for b in building_list if isinstance(b, dict)],
        )


@dataclass
class LectureSummary:
    """
    Represents one scheduled session on a given day (one row of the schedule).
    """

    lecture_id: str
    sub_id: str
    title: str
    lecturer_name: str
    room_name: str
    begin_timestamp: str
    end_timestamp: str

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "LectureSummary":
        return cls(
            lecture_id=_safe_str(raw.get("id")),
            sub_id=_safe_str(raw.get("sub_id")),
            title=_safe_str(raw.get("title")),
            lecturer_name=_safe_str(raw.get("lecturer_name")),
            room_name=_safe_str(raw.get("room_name")),
            begin_timestamp=_safe_str(raw.get("course_begin")),
            end_timestamp=_safe_str(raw.get("course_over")),
        )


@dataclass
class TimeSlot:
    """
    A schedule period (e.g. "第一节") grouping the lectures that start in it.
    """

    name: str
    lectures: List[LectureSummary] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "TimeSlot":
        courses = raw.get("list") or []
        return cls(
            name=_safe_str(raw.get("name")),
            lectures=[LectureSummary.from_api(c) for c in courses if isinstance(c, dict)],
        )


@dataclass
class LectureDetail:
    """
    Detail record of one lecture session.

    sub_content is a JSON document encoded as a string; it may be missing,
    empty or malformed when no recording exists.
    """

    title: str
    lecturer_name: str
    room_name: str
    begin_timestamp: str
    sub_content: Optional[str] = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "LectureDetail":
        sub_content = raw.get("sub_content")
        return cls(
            title=_safe_str(raw.get("title")),
            lecturer_name=_safe_str(raw.get("lecturer_name")),
            room_name=_safe_str(raw.get("room_name")),
            begin_timestamp=_safe_str(raw.get("course_begin")),
            sub_content=sub_content if isinstance(sub_content, str) else None,
        )


@dataclass
class Playback:
    """
    The save_playback entry decoded out of LectureDetail.sub_content.
    """

    contents: str
    contents_duration: str = ""
    is_m3u8: str = ""


class VideoFormat(Enum):
    PROGRESSIVE = "mp4"
    SEGMENTED = "m3u8"


@dataclass(frozen=True)
class ResolvedVideo:
    url: str
    format: VideoFormat

    @property
    def is_segmented(self) -> bool:
        return self.format is VideoFormat.SEGMENTED


@dataclass
class Envelope(Generic[T]):
    """
    The {code, msg, total, list} wrapper shared by every upstream response.
    """

    code: int
    message: str
    total: Any
    payload: T
