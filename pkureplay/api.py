"""
Upstream REST client.

Three fixed endpoints, all answering with the same envelope:

    {"code": 0, "msg": "...", "total": ..., "list": [...]}

- locations:      campuses and their teaching buildings
- schedule:       the lectures of one day, grouped in time slots
- lecture detail: one lecture session, including the nested video JSON

No retries happen here: every failure propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Optional, TypeVar

import requests

from pkureplay.errors import ApplicationError, TransportError
from pkureplay.model import Credential, Envelope, LectureDetail, Location, TimeSlot

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Endpoints & fixed parameters
# ---------------------------------------------------------------------------

LOCATIONS_URL = "https://onlineroomse.pku.edu.cn/courseapi/v2/schedule/search-building"
SCHEDULE_URL = "https://onlineroomse.pku.edu.cn/courseapi/v2/course-live/search-live-course-list"
DETAIL_URL = "https://yjapise.pku.edu.cn/courseapi/v2/schedule/search-live-course-list"

LOCATIONS_PARAMS = {"need_format": "1", "tenant": "1"}
SCHEDULE_PARAMS = {
    "need_time_quantum": "1",
    "unique_course": "1",
    "with_sub_duration": "1",
    "tenant": "226",
    "course_student_type": "",
    "sub_live_status": "",
    "with_sub_data": "1",
}
DETAIL_PARAMS = {
    "all": "1",
    "with_sub_data": "1",
    "with_room_data": "1",
    "show_all": "1",
    "show_delete": "2",
}

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/141.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "accept": "application/json, text/plain, */*",
    "accept-language": "zh-CN,zh;q=0.9",
    "cache-control": "no-cache",
    "pragma": "no-cache",
    "user-agent": USER_AGENT,
}

DEFAULT_TIMEOUT = 30


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ApiClient:
    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def authenticated_get(self, url: str, params: dict[str, Any], credential: Credential) -> Envelope[list]:
        """
        GET url with the credential headers and unwrap the response envelope.

        Raises TransportError for a non-2xx status, a network failure or a
        non-JSON body, and ApplicationError when the envelope code is non-zero.
        """
        headers = dict(DEFAULT_HEADERS)
        headers.update(credential.headers())

        logger.debug("GET %s %s", url, params)
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(None, f"HTTP request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise TransportError(resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(resp.status_code, "Response is not valid JSON") from e
        if not isinstance(data, dict):
            raise TransportError(resp.status_code, "Response is not a JSON object")

        try:
            code = int(data.get("code", -1))
        except (TypeError, ValueError):
            code = -1
        message = str(data.get("msg") or "")
        if code != 0:
            raise ApplicationError(message, code=code)

        items = data.get("list")
        return Envelope(code=code, message=message, total=data.get("total"), payload=list(items or []))

    def _typed(self, envelope: Envelope[list], decode: Callable[[dict[str, Any]], T]) -> Envelope[list[T]]:
        payload = [decode(item) for item in envelope.payload if isinstance(item, dict)]
        return Envelope(code=envelope.code, message=envelope.message, total=envelope.total, payload=payload)

    def fetch_locations(self, credential: Credential) -> Envelope[list[Location]]:
        env = self.authenticated_get(LOCATIONS_URL, dict(LOCATIONS_PARAMS), credential)
        return self._typed(env, Location.from_api)

    def fetch_schedule(
        self, credential: Credential, day: date, building_id: Optional[int] = None
    ) -> Envelope[list[TimeSlot]]:
        """
        Fetch the lectures of one day. building_id=None means all buildings.
        """
        params = dict(SCHEDULE_PARAMS)
        params["search_time"] = day.strftime("%Y-%m-%d")
        if building_id is not None:
            params["building_in"] = str(building_id)
        env = self.authenticated_get(SCHEDULE_URL, params, credential)
        return self._typed(env, TimeSlot.from_api)

    def fetch_lecture_detail(self, credential: Credential, lecture_id: str, sub_id: str) -> Envelope[list[LectureDetail]]:
        if not lecture_id or not sub_id:
            raise ValueError("lecture_id and sub_id are both required")
        params = dict(DETAIL_PARAMS)
        params["course_id"] = str(lecture_id)
        params["sub_id"] = str(sub_id)
        env = self.authenticated_get(DETAIL_URL, params, credential)
        return self._typed(env, LectureDetail.from_api)
