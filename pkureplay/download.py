"""
Downloading and file naming.

- progressive (mp4) videos are streamed straight to disk with requests
- segmented (m3u8) videos are either handed to ffmpeg, which fetches and
  muxes all segments into one mp4, or saved as the raw playlist file

Extension policy: the file is labelled by what is actually written to it,
so a raw playlist download ends in .m3u8 and only real video ends in .mp4.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import requests

from pkureplay.api import USER_AGENT
from pkureplay.errors import TransportError
from pkureplay.model import Credential, LectureDetail, ResolvedVideo

logger = logging.getLogger(__name__)

DOWNLOAD_DIRNAME = "pku-download"
CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, Optional[int]], None]


def default_download_dir() -> Path:
    return Path.cwd() / DOWNLOAD_DIRNAME


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_timestamp(timestamp: str | int) -> str:
    """
    Convert a unix timestamp (seconds) to 'YYYY/MM/DD HH:MM' in local time.

    Unparseable input is returned unchanged.
    """
    try:
        dt = datetime.fromtimestamp(int(timestamp))
    except (TypeError, ValueError, OverflowError, OSError):
        return str(timestamp)
    return dt.strftime("%Y/%m/%d %H:%M")


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.2f} {units[i]}"


def sanitize_filename(name: str) -> str:
    cleaned = re.sub(r'[<>:"/\\|?*]', "_", name)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned[:200]


def extension_for(video: ResolvedVideo, transcode: bool) -> str:
    if video.is_segmented and not transcode:
        return "m3u8"
    return "mp4"


def video_filename(detail: LectureDetail, extension: str) -> str:
    """
    Build '<date>_<title>_<lecturer>.<ext>', e.g. '2025-09-26_高等数学_张三.mp4'.
    """
    day = format_timestamp(detail.begin_timestamp).split(" ")[0].replace("/", "-")
    title = sanitize_filename(detail.title or "lecture")
    lecturer = sanitize_filename(detail.lecturer_name or "unknown")
    return f"{day}_{title}_{lecturer}.{extension}"


def destination_for(
    detail: LectureDetail, video: ResolvedVideo, transcode: bool, download_dir: str | Path | None = None
) -> Path:
    base = Path(download_dir) if download_dir is not None else default_download_dir()
    return base / video_filename(detail, extension_for(video, transcode))


# ---------------------------------------------------------------------------
# Direct download
# ---------------------------------------------------------------------------


def download_file(
    url: str,
    destination: str | Path,
    credential: Optional[Credential] = None,
    on_progress: Optional[ProgressCallback] = None,
    session: Optional[requests.Session] = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """
    Stream url to destination and return the number of bytes written.

    on_progress(downloaded, total) is called after every chunk; total is None
    when the server sends no content-length. The response and the file are
    closed on every exit path; a partial file is left in place on error.
    """
    # requests.get opens and closes a throwaway session of its own
    http = session if session is not None else requests
    headers = {"user-agent": USER_AGENT}
    if credential is not None:
        headers.update(credential.headers())

    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)

    try:
        resp = http.get(url, headers=headers, stream=True, timeout=30)
    except requests.RequestException as e:
        raise TransportError(None, f"Download failed: {e}") from e

    with resp:
        if not 200 <= resp.status_code < 300:
            raise TransportError(resp.status_code)

        try:
            total: Optional[int] = int(resp.headers.get("content-length", 0)) or None
        except ValueError:
            total = None

        downloaded = 0
        with dest.open("wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)
                if on_progress is not None:
                    on_progress(downloaded, total)

    logger.info("downloaded %s (%s)", dest, format_file_size(downloaded))
    return downloaded


# ---------------------------------------------------------------------------
# ffmpeg (segmented streams)
# ---------------------------------------------------------------------------


def build_ffmpeg_command(credential: Credential, url: str, destination: str | Path) -> list[str]:
    return [
        "ffmpeg",
        "-headers",
        f"Authorization: {credential.authorization}",
        "-headers",
        f"Cookie: {credential.cookie}",
        "-i",
        url,
        "-c",
        "copy",
        str(destination),
    ]


def format_ffmpeg_command(command: list[str]) -> str:
    """
    Render the command so it can be copied into a shell.
    """
    return " ".join(shlex.quote(part) for part in command)


def format_curl_command(url: str, destination: str | Path) -> str:
    return f"curl -o {shlex.quote(str(destination))} {shlex.quote(url)}"


def run_ffmpeg(command: list[str]) -> bool:
    """
    Run ffmpeg with its output suppressed. Returns True on exit code 0.
    """
    Path(command[-1]).parent.mkdir(parents=True, exist_ok=True)
    try:
        proc = subprocess.run(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except FileNotFoundError:
        logger.error("ffmpeg was not found, please install it first")
        return False
    if proc.returncode != 0:
        logger.error("ffmpeg exited with code %s", proc.returncode)
        return False
    return True
