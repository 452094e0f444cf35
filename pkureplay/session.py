"""
Session orchestration.

One run walks through these stages, each depending on the previous one:

    NEED_CREDENTIAL -> HAVE_CREDENTIAL -> LOCATIONS_FETCHED -> SCHEDULE_FETCHED
        -> LECTURE_SELECTED -> VIDEO_RESOLVED -> (DOWNLOADING) -> DONE

Terminal outcomes besides DONE:
- NO_MATCH:     the (filtered) lecture list is empty
- NO_RECORDING: the lecture has no playable video
- FAILED:       an API call failed; authorization failures clear the stored credential first

The store, API client and resolver are passed in, so tests can use fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

from pkureplay import download as dl
from pkureplay.api import ApiClient
from pkureplay.credentials import require_valid
from pkureplay.errors import (
    ApiError,
    ExtractionError,
    PkuReplayError,
    ValidationError,
)
from pkureplay.model import (
    Credential,
    LectureDetail,
    LectureSummary,
    Location,
    ResolvedVideo,
    TimeSlot,
)
from pkureplay.video import VideoResolver

logger = logging.getLogger(__name__)


class Stage(Enum):
    NEED_CREDENTIAL = "need-credential"
    HAVE_CREDENTIAL = "have-credential"
    LOCATIONS_FETCHED = "locations-fetched"
    SCHEDULE_FETCHED = "schedule-fetched"
    LECTURE_SELECTED = "lecture-selected"
    VIDEO_RESOLVED = "video-resolved"
    DOWNLOADING = "downloading"
    DONE = "done"
    NO_MATCH = "no-match"
    NO_RECORDING = "no-recording"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({Stage.DONE, Stage.NO_MATCH, Stage.NO_RECORDING, Stage.FAILED})


class Store(Protocol):
    def save(self, credential: Credential) -> None: ...

    def load(self) -> Optional[Credential]: ...

    def invalidate(self) -> None: ...


class CredentialUnavailable(PkuReplayError):
    pass


# ---------------------------------------------------------------------------
# Lecture list helpers
# ---------------------------------------------------------------------------


def flatten_time_slots(time_slots: list[TimeSlot]) -> list[LectureSummary]:
    out: list[LectureSummary] = []
    for slot in time_slots:
        out.extend(slot.lectures)
    return out


def filter_lectures(lectures: list[LectureSummary], term: Optional[str]) -> list[LectureSummary]:
    """
    Case-insensitive substring search over title, lecturer and room.

    A blank term keeps everything; order is preserved.
    """
    query = (term or "").strip().lower()
    if not query:
        return list(lectures)
    return [
        lec
        for lec in lectures
        if query in lec.title.lower() or query in lec.lecturer_name.lower() or query in lec.room_name.lower()
    ]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


@dataclass
class SessionResult:
    stage: Stage
    lectures: list[LectureSummary] = field(default_factory=list)
    lecture: Optional[LectureSummary] = None
    detail: Optional[LectureDetail] = None
    video: Optional[ResolvedVideo] = None
    error: Optional[BaseException] = None


class SessionOrchestrator:
    def __init__(
        self,
        store: Store,
        client: Optional[ApiClient] = None,
        resolver: Optional[VideoResolver] = None,
    ) -> None:
        self.store = store
        self.client = client if client is not None else ApiClient()
        self.resolver = resolver if resolver is not None else VideoResolver()

        self.stage = Stage.NEED_CREDENTIAL
        self.credential: Optional[Credential] = None
        self.confirmed = False
        self.locations: list[Location] = []
        self.lectures: list[LectureSummary] = []
        self.lecture: Optional[LectureSummary] = None
        self.detail: Optional[LectureDetail] = None
        self.video: Optional[ResolvedVideo] = None
        self.error: Optional[BaseException] = None

    # -- credential ---------------------------------------------------------

    def saved_credential(self) -> Optional[Credential]:
        return self.store.load()

    def use_credential(self, credential: Credential) -> Credential:
        """
        Validate the credential and make it the one used for this run.
        """
        self.credential = require_valid(credential)
        self.confirmed = False
        self.stage = Stage.HAVE_CREDENTIAL
        return self.credential

    def acquire_credential(
        self,
        provider: Callable[[], Credential],
        use_saved: bool = True,
        max_attempts: int = 3,
    ) -> Credential:
        """
        Take the stored credential if allowed, otherwise ask provider until it
        returns a valid one. Bad input is logged and asked again.
        """
        if use_saved:
            saved = self.store.load()
            if saved is not None:
                return self.use_credential(saved)

        last_error: Optional[Exception] = None
        for attempt in range(1, max_attempts + 1):
            try:
                return self.use_credential(provider())
            except (ExtractionError, ValidationError) as e:
                last_error = e
                logger.warning("credential attempt %d/%d rejected: %s", attempt, max_attempts, e)

        self.stage = Stage.FAILED
        self.error = CredentialUnavailable(f"No valid credential after {max_attempts} attempts: {last_error}")
        raise self.error

    def _require_credential(self) -> Credential:
        if self.credential is None:
            raise CredentialUnavailable("No credential: call acquire_credential() first")
        return self.credential

    def _fail(self, error: ApiError) -> None:
        self.stage = Stage.FAILED
        self.error = error
        if error.is_authorization_failure:
            logger.warning("credential rejected by the server, clearing it")
            self.store.invalidate()

    def _confirm(self) -> None:
        # First successful call: the credential works, not just parses
        if not self.confirmed and self.credential is not None:
            self.store.save(self.credential)
            self.confirmed = True

    # -- pipeline -------------------------------------------------------------

    def fetch_locations(self) -> list[Location]:
        credential = self._require_credential()
        try:
            env = self.client.fetch_locations(credential)
        except ApiError as e:
            self._fail(e)
            raise
        self._confirm()
        self.locations = env.payload
        self.stage = Stage.LOCATIONS_FETCHED
        return self.locations

    def fetch_schedule(self, day: date, building_id: Optional[int] = None) -> list[LectureSummary]:
        """
        Fetch one day's lectures and flatten the time slots into one ordered list.
        """
        credential = self._require_credential()
        try:
            env = self.client.fetch_schedule(credential, day, building_id)
        except ApiError as e:
            self._fail(e)
            raise
        self._confirm()
        self.lectures = flatten_time_slots(env.payload)
        self.stage = Stage.SCHEDULE_FETCHED
        if not self.lectures:
            self.stage = Stage.NO_MATCH
        return self.lectures

    def search(self, term: Optional[str]) -> list[LectureSummary]:
        found = filter_lectures(self.lectures, term)
        if not found:
            self.stage = Stage.NO_MATCH
        return found

    def select_lecture(self, lecture: LectureSummary) -> None:
        self.lecture = lecture
        self.stage = Stage.LECTURE_SELECTED

    def resolve_video(self) -> Optional[ResolvedVideo]:
        """
        Fetch the selected lecture's detail and resolve its video.

        Returns None (stage NO_RECORDING) when there is no recording.
        """
        credential = self._require_credential()
        if self.lecture is None:
            raise PkuReplayError("No lecture selected")
        try:
            env = self.client.fetch_lecture_detail(credential, self.lecture.lecture_id, self.lecture.sub_id)
        except ApiError as e:
            self._fail(e)
            raise
        self._confirm()

        self.detail = env.payload[0] if env.payload else None
        self.video = self.resolver.resolve(self.detail)
        if self.video is None:
            self.stage = Stage.NO_RECORDING
            return None
        self.stage = Stage.VIDEO_RESOLVED
        return self.video

    def download(
        self,
        transcode: bool = True,
        download_dir: str | Path | None = None,
        on_progress: Optional[dl.ProgressCallback] = None,
    ) -> Optional[Path]:
        """
        Download the resolved video. Segmented videos go through ffmpeg when
        transcode is set, otherwise the raw playlist is saved.

        Returns the written path, or None if ffmpeg failed.
        """
        credential = self._require_credential()
        if self.video is None or self.detail is None:
            raise PkuReplayError("No resolved video to download")

        dest = dl.destination_for(self.detail, self.video, transcode, download_dir)
        self.stage = Stage.DOWNLOADING
        try:
            if self.video.is_segmented and transcode:
                ok = dl.run_ffmpeg(dl.build_ffmpeg_command(credential, self.video.url, dest))
                if not ok:
                    self.stage = Stage.FAILED
                    return None
            else:
                dl.download_file(self.video.url, dest, credential, on_progress=on_progress)
        except ApiError as e:
            self._fail(e)
            raise
        except OSError as e:
            self.stage = Stage.FAILED
            self.error = e
            raise
        self.stage = Stage.DONE
        return dest

    def finish(self) -> None:
        if self.stage not in TERMINAL_STAGES:
            self.stage = Stage.DONE

    # -- whole pipeline ---------------------------------------------------------

    def _result(self, lectures: Optional[list[LectureSummary]] = None) -> SessionResult:
        return SessionResult(
            stage=self.stage,
            lectures=list(lectures if lectures is not None else self.lectures),
            lecture=self.lecture,
            detail=self.detail,
            video=self.video,
            error=self.error,
        )

    def run(
        self,
        day: date,
        building_id: Optional[int] = None,
        search: Optional[str] = None,
        choose: Optional[Callable[[list[LectureSummary]], LectureSummary]] = None,
    ) -> SessionResult:
        """
        Run locations -> schedule -> detail -> resolve with the current credential.

        API failures end in stage FAILED and are returned, not raised.
        choose picks the lecture out of the filtered list (default: the first).
        """
        self._require_credential()
        found: list[LectureSummary] = []
        try:
            self.fetch_locations()
            self.fetch_schedule(day, building_id)
            found = self.search(search)
            if not found:
                self.stage = Stage.NO_MATCH
                return self._result(found)

            picker = choose if choose is not None else (lambda items: items[0])
            self.select_lecture(picker(found))
            self.resolve_video()
        except ApiError as e:
            logger.info("session failed at %s: %s", self.stage.value, e)
        return self._result(found)
