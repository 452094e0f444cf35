"""
CLI (Command Line Interface).

This module provides quick terminal commands next to the interactive mode, e.g.:

    pkureplay interactive
    pkureplay login [curl.txt]          (reads stdin when no file is given)
    pkureplay logout
    pkureplay buildings
    pkureplay lectures --date 2025-09-26 --building 3 --search algebra
    pkureplay resolve <lecture_id> <sub_id>
    pkureplay download <lecture_id> <sub_id> [--dir DIR] [--raw]

Note:
- The interactive UI lives in pkureplay/interactive.py
- Non-interactive commands use the saved credential (run login first)
- Plain text output, errors exit with code 1
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from rich.logging import RichHandler

from pkureplay import download as dl
from pkureplay.credentials import extract_credential
from pkureplay.errors import ApiError, PkuReplayError
from pkureplay.model import LectureSummary
from pkureplay.session import SessionOrchestrator, Stage
from pkureplay.storage import CredentialStore, MemoryCredentialStore

logger = logging.getLogger("pkureplay")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
    )


def _parse_date(text: str) -> date:
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date {text!r}, expected YYYY-MM-DD") from e


def _session(args: argparse.Namespace) -> SessionOrchestrator:
    if args.no_save:
        return SessionOrchestrator(MemoryCredentialStore())
    return SessionOrchestrator(CredentialStore(args.auth_file))


def _saved_session(args: argparse.Namespace) -> SessionOrchestrator | None:
    """
    Session using the saved credential, or None (with a message) if there is none.
    """
    session = _session(args)
    credential = session.saved_credential()
    if credential is None:
        print("No saved credential. Run 'pkureplay login' or 'pkureplay interactive' first.")
        return None
    session.use_credential(credential)
    return session


def _lecture_line(lec: LectureSummary) -> str:
    when = f"{dl.format_timestamp(lec.begin_timestamp)} ~ {dl.format_timestamp(lec.end_timestamp)}"
    return f"{lec.lecture_id} {lec.sub_id} | {lec.title} | {lec.lecturer_name} | {when} | {lec.room_name}"


def _cmd_login(args: argparse.Namespace) -> int:
    """
    Extract the credential from a curl command, check it against the API, save it.
    """
    if args.file:
        raw = Path(args.file).read_text(encoding="utf-8")
    else:
        raw = sys.stdin.read()

    session = _session(args)
    session.use_credential(extract_credential(raw))
    session.fetch_locations()  # saves the credential on success
    if args.no_save:
        print("Login ok (not saved).")
    else:
        print(f"Login ok, credential saved to {session.store.path}")
    return 0


def _cmd_logout(args: argparse.Namespace) -> int:
    store = CredentialStore(args.auth_file)
    store.invalidate()
    print("Saved credential removed.")
    return 0


def _cmd_buildings(args: argparse.Namespace) -> int:
    session = _saved_session(args)
    if session is None:
        return 1
    for loc in session.fetch_locations():
        for b in loc.buildings:
            print(f"{b.building_id} | {b.building_name} | {loc.campus_name}")
    return 0


def _cmd_lectures(args: argparse.Namespace) -> int:
    session = _saved_session(args)
    if session is None:
        return 1
    session.fetch_schedule(args.date, args.building)
    found = session.search(args.search)
    if not found:
        print("No results.")
        return 0
    for lec in found:
        print(_lecture_line(lec))
    return 0


def _resolve(args: argparse.Namespace) -> SessionOrchestrator | None:
    session = _saved_session(args)
    if session is None:
        return None
    session.select_lecture(
        LectureSummary(
            lecture_id=args.lecture_id,
            sub_id=args.sub_id,
            title="",
            lecturer_name="",
            room_name="",
            begin_timestamp="",
            end_timestamp="",
        )
    )
    if session.resolve_video() is None:
        print("No video found, this lecture probably has no replay.")
        return None
    return session


def _cmd_resolve(args: argparse.Namespace) -> int:
    session = _resolve(args)
    if session is None or session.video is None:
        return 1
    print(f"{session.video.format.value} {session.video.url}")
    return 0


def _cmd_download(args: argparse.Namespace) -> int:
    session = _resolve(args)
    if session is None:
        return 1

    def on_progress(done: int, total: int | None) -> None:
        if total:
            print(f"\r{dl.format_file_size(done)} / {dl.format_file_size(total)}", end="", flush=True)

    dest = session.download(transcode=not args.raw, download_dir=args.dir, on_progress=on_progress)
    print()
    if dest is None or session.stage is not Stage.DONE:
        print("Download failed.")
        return 1
    print(f"Saved: {dest}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="pkureplay", description="PKU course replay CLI")
    parser.add_argument("--auth-file", type=str, default=None, help="Credential file (default: ./.pku-cli-auth.json)")
    parser.add_argument(
        "--no-save", action="store_true", help="Keep the credential in memory only (no credential file is read or written)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_inter = sub.add_parser("interactive", help="Interactive mode")
    p_inter.add_argument("--dir", type=Path, default=None, help="Download directory (default: ./pku-download)")

    p_login = sub.add_parser("login", help="Save the credential from a curl command")
    p_login.add_argument("file", nargs="?", default=None, help="File with the curl command (default: stdin)")

    sub.add_parser("logout", help="Remove the saved credential")
    sub.add_parser("buildings", help="List campuses and buildings")

    p_lectures = sub.add_parser("lectures", help="List the lectures of one day")
    p_lectures.add_argument("--date", type=_parse_date, default=date.today(), help="YYYY-MM-DD (default: today)")
    p_lectures.add_argument("--building", type=int, default=None, help="Building id (default: all)")
    p_lectures.add_argument("--search", type=str, default="", help="Filter by title, lecturer or room")

    p_resolve = sub.add_parser("resolve", help="Print the video URL of a lecture")
    p_resolve.add_argument("lecture_id", type=str)
    p_resolve.add_argument("sub_id", type=str)

    p_download = sub.add_parser("download", help="Download the video of a lecture")
    p_download.add_argument("lecture_id", type=str)
    p_download.add_argument("sub_id", type=str)
    p_download.add_argument("--dir", type=Path, default=None, help="Download directory (default: ./pku-download)")
    p_download.add_argument("--raw", action="store_true", help="Save m3u8 playlists as-is instead of using ffmpeg")

    return parser


COMMANDS = {
    "login": _cmd_login,
    "logout": _cmd_logout,
    "buildings": _cmd_buildings,
    "lectures": _cmd_lectures,
    "resolve": _cmd_resolve,
    "download": _cmd_download,
}


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "interactive":
        from pkureplay.interactive import run_interactive

        raise SystemExit(run_interactive(_session(args), download_dir=args.dir))

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        raise SystemExit(handler(args))
    except ApiError as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        if e.is_authorization_failure:
            print("Credential expired, run 'pkureplay login' again.")
        print(f"Request failed: {e}")
        raise SystemExit(1)
    except (PkuReplayError, OSError) as e:
        print(f"Error: {e}")
        raise SystemExit(1)
