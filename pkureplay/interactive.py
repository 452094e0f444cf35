"""
Interactive mode.

Walks the user through one session:

    credential -> building -> date -> search -> pick lecture -> video URL -> (download)

All the work happens in SessionOrchestrator; this module only prompts and prints.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from pkureplay import download as dl
from pkureplay.credentials import credential_from_parts, extract_credential
from pkureplay.errors import ApiError, ExtractionError, PkuReplayError, ValidationError
from pkureplay.model import Credential, LectureSummary, Location
from pkureplay.session import CredentialUnavailable, SessionOrchestrator, Stage

console = Console()

MAX_LIST = 50


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    return console.input(msg)


def _confirm(msg: str, default: bool) -> bool:
    hint = "[Y/n]" if default else "[y/N]"
    answer = _prompt(f"{msg} {hint}: ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def _pick_number(msg: str, count: int, allow_blank: bool = False) -> Optional[int]:
    """
    Ask for a number in 1..count. Returns None on blank input if allowed.
    """
    while True:
        pick = _prompt(msg).strip()
        if not pick and allow_blank:
            return None
        if not pick.isdigit():
            _println("Not a number.")
            continue
        i = int(pick)
        if not (1 <= i <= count):
            _println("Out of range.")
            continue
        return i


# ---------------------------------------------------------------------------
# Credential input
# ---------------------------------------------------------------------------


def _read_multiline(msg: str) -> str:
    """
    Read pasted text until an empty line (curl commands span many lines).
    """
    _println(msg)
    lines: list[str] = []
    while True:
        line = _prompt("")
        if not line.strip():
            if lines:
                break
            continue
        lines.append(line)
    return "\n".join(lines)


def prompt_credential() -> Credential:
    """
    Ask for a credential: paste a curl command or type both headers.

    Raises ExtractionError / ValidationError on bad input so the caller can ask again.
    """
    choice = _prompt(
        "\nHow do you want to log in?\n"
        "[1] Paste a curl command (devtools -> Copy as cURL)\n"
        "[2] Enter Authorization and Cookie manually\n"
        "Select: "
    ).strip()

    if choice == "2":
        authorization = _prompt("Authorization (Bearer token): ").strip()
        if authorization and not authorization.startswith("Bearer "):
            authorization = f"Bearer {authorization}"
        cookie = _prompt("Cookie: ").strip()
        return credential_from_parts(authorization, cookie)

    raw = _read_multiline("Paste the curl command, then press Enter on an empty line:")
    return extract_credential(raw)


def _credential_provider() -> Credential:
    try:
        return prompt_credential()
    except (ExtractionError, ValidationError) as e:
        _println(f"[red]Parse failed:[/] {e}")
        raise


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _choose_building(locations: list[Location]) -> Optional[int]:
    """
    Return a building_id, or None for all buildings.
    """
    options: list[tuple[Optional[int], str, str]] = [(None, "All buildings", "")]
    for loc in locations:
        for b in loc.buildings:
            options.append((b.building_id, b.building_name, loc.campus_name))

    table = Table(title="Buildings", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Building")
    table.add_column("Campus", style="magenta")
    for i, (_, name, campus) in enumerate(options, start=1):
        table.add_row(str(i), name, campus)
    console.print(table)

    i = _pick_number("Choose building [blank = all]: ", len(options), allow_blank=True)
    if i is None:
        return None
    return options[i - 1][0]


def _choose_date() -> date:
    today = date.today().isoformat()
    while True:
        raw = _prompt(f"Date (YYYY-MM-DD) [{today}]: ").strip() or today
        try:
            return datetime.strptime(raw, "%Y-%m-%d").date()
        except ValueError:
            _println("Invalid date, please use YYYY-MM-DD.")


def _lecture_table(lectures: list[LectureSummary]) -> Table:
    table = Table(title=f"Lectures ({len(lectures)})", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Course", style="bold cyan")
    table.add_column("Lecturer", style="magenta")
    table.add_column("Time")
    table.add_column("Room", style="green")
    for i, lec in enumerate(lectures, start=1):
        when = f"{dl.format_timestamp(lec.begin_timestamp)} ~ {dl.format_timestamp(lec.end_timestamp)}"
        table.add_row(str(i), lec.title, lec.lecturer_name, when, lec.room_name)
    return table


def _download_with_progress(session: SessionOrchestrator, transcode: bool, download_dir: Path) -> None:
    video = session.video
    assert video is not None

    if video.is_segmented and transcode:
        with console.status("Downloading with ffmpeg..."):
            dest = session.download(transcode=True, download_dir=download_dir)
        if dest is None:
            _println("[red]Download failed.[/] Check that ffmpeg is installed and the URL is valid.")
        else:
            _println(f"[green]Saved:[/] {dest}")
        return

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console,
    )
    with progress:
        task = progress.add_task("Downloading...", total=None)

        def on_progress(done: int, total: Optional[int]) -> None:
            progress.update(task, completed=done, total=total)

        dest = session.download(transcode=False, download_dir=download_dir, on_progress=on_progress)

    assert dest is not None
    _println(f"[green]Saved:[/] {dest} ({dl.format_file_size(dest.stat().st_size)})")
    if video.is_segmented:
        _println("Note: open the .m3u8 file with a player, or convert it to mp4 with ffmpeg.")


def _show_commands(session: SessionOrchestrator, download_dir: Path) -> None:
    video, detail, credential = session.video, session.detail, session.credential
    assert video is not None and detail is not None and credential is not None

    if video.is_segmented:
        dest = dl.destination_for(detail, video, transcode=True, download_dir=download_dir)
        cmd = dl.format_ffmpeg_command(dl.build_ffmpeg_command(credential, video.url, dest))
        console.print(Panel(cmd, title="ffmpeg download command"))
        _println("The -headers options carry the credential to every segment and key request.")
    else:
        dest = dl.destination_for(detail, video, transcode=False, download_dir=download_dir)
        console.print(Panel(dl.format_curl_command(video.url, dest.name), title="Download link"))


def run_interactive(session: SessionOrchestrator, download_dir: Optional[Path] = None) -> int:
    """
    Interactive session. Returns the process exit code.
    """
    download_dir = download_dir if download_dir is not None else dl.default_download_dir()
    _println("\n=== PKU course replay ===")

    # Step 1: credential
    saved = session.saved_credential()
    use_saved = saved is not None and _confirm("Found a saved credential, use it?", default=True)
    try:
        session.acquire_credential(_credential_provider, use_saved=use_saved)
    except CredentialUnavailable as e:
        _println(f"[red]{e}[/]")
        return 1

    try:
        # Step 2: buildings
        with console.status("Fetching buildings..."):
            locations = session.fetch_locations()
        building_id = _choose_building(locations)

        # Step 3: date + schedule
        day = _choose_date()
        with console.status("Fetching lectures..."):
            lectures = session.fetch_schedule(day, building_id)
        if not lectures:
            _println("No lectures found for that day.")
            return 0
        _println(f"Found {len(lectures)} lectures. Use the search if the list is long.")

        # Step 4: search + pick
        term = _prompt("Search (title / lecturer / room) [blank = all]: ").strip()
        found = session.search(term)
        if not found:
            _println(f'No lectures match "{term}".')
            return 0
        shown = found[:MAX_LIST]
        console.print(_lecture_table(shown))
        if len(found) > MAX_LIST:
            _println(f"... and {len(found) - MAX_LIST} more, refine the search to see them")
        i = _pick_number("Choose lecture: ", len(shown))
        assert i is not None
        session.select_lecture(shown[i - 1])

        # Step 5: resolve
        with console.status("Fetching video address..."):
            video = session.resolve_video()
    except ApiError as e:
        if e.is_authorization_failure:
            _println("[yellow]Credential expired, please log in again next time.[/]")
        _println(f"[red]Request failed:[/] {e}")
        return 1

    if video is None or session.detail is None:
        _println("[red]No video found, this lecture probably has no replay.[/]")
        return 1

    detail = session.detail
    console.print(Panel(video.url, title="Video URL"))
    _println(f"[green]Course:[/]   {detail.title}")
    _println(f"[green]Lecturer:[/] {detail.lecturer_name}")
    _println(f"[green]Time:[/]     {dl.format_timestamp(detail.begin_timestamp)}")
    _println(f"[green]Room:[/]     {detail.room_name}")
    _println(f"[green]Type:[/]     {video.format.value.upper()}")

    # Step 6: download
    if not _confirm("Download the video now?", default=False):
        _show_commands(session, download_dir)
        session.finish()
        return 0

    transcode = True
    if video.is_segmented:
        choice = _prompt(
            "\n[1] Download with ffmpeg (recommended, merges segments into mp4)\n"
            "[2] Download the raw m3u8 playlist\n"
            "Select: "
        ).strip()
        transcode = choice != "2"

    try:
        _download_with_progress(session, transcode, download_dir)
    except (PkuReplayError, OSError) as e:
        _println(f"[red]Download failed:[/] {e}")
        return 1

    return 0 if session.stage is Stage.DONE else 1
