"""
Tests for CLI entry points.

These tests focus on:
- argument validation and exit codes
- commands that need a saved credential fail cleanly without one
- credential file handling through --auth-file (never the real working directory file)
"""

import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from fakes import FakeResponse, FakeSession, envelope

from pkureplay.api import LOCATIONS_URL
from pkureplay.cli import _session, build_parser, main
from pkureplay.model import Credential
from pkureplay.storage import CredentialStore, MemoryCredentialStore

CURL = "curl 'https://x' -H 'authorization: Bearer tok' -b 'JWTUser=1'"
LOCATIONS = [{"campus_id": 1, "campus_name": "Yanyuan", "building_list": []}]


class TestCLI(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.auth = Path(self._tmp.name) / "auth.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
            main(["--auth-file", str(self.auth), *argv])
        return ctx.exception.code, out.getvalue()

    def test_command_is_required(self) -> None:
        with self.assertRaises(SystemExit) as ctx, redirect_stdout(io.StringIO()), mock.patch("sys.stderr"):
            main([])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_lectures_bad_date(self) -> None:
        with self.assertRaises(SystemExit) as ctx, mock.patch("sys.stderr"):
            main(["lectures", "--date", "26.09.2025"])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_lectures_without_credential(self) -> None:
        code, out = self._run("lectures", "--date", "2025-09-26")
        self.assertEqual(code, 1)
        self.assertIn("No saved credential", out)

    def test_resolve_without_credential(self) -> None:
        code, _ = self._run("resolve", "100", "200")
        self.assertEqual(code, 1)

    def test_logout_removes_saved_credential(self) -> None:
        CredentialStore(self.auth).save(Credential("Bearer tok", "c=1"))
        code, _ = self._run("logout")
        self.assertEqual(code, 0)
        self.assertFalse(self.auth.exists())

        # logout twice is fine
        code, _ = self._run("logout")
        self.assertEqual(code, 0)

    def test_login_with_incomplete_curl(self) -> None:
        curl = Path(self._tmp.name) / "curl.txt"
        curl.write_text("curl 'https://x' -H 'authorization: Bearer tok'", encoding="utf-8")
        code, out = self._run("login", str(curl))
        self.assertEqual(code, 1)
        self.assertIn("Cookie", out)
        self.assertFalse(self.auth.exists())

    def _write_curl(self) -> Path:
        curl = Path(self._tmp.name) / "curl.txt"
        curl.write_text(CURL, encoding="utf-8")
        return curl

    def test_login_saves_credential_after_successful_call(self) -> None:
        http = FakeSession({LOCATIONS_URL: FakeResponse(json_data=envelope(LOCATIONS))})
        with mock.patch("pkureplay.api.requests.Session", return_value=http):
            code, out = self._run("login", str(self._write_curl()))

        self.assertEqual(code, 0)
        self.assertIn("Login ok", out)
        self.assertEqual(http.urls(), [LOCATIONS_URL])
        self.assertEqual(CredentialStore(self.auth).load(), Credential("Bearer tok", "JWTUser=1"))

    def test_login_rejected_saves_nothing(self) -> None:
        http = FakeSession({LOCATIONS_URL: FakeResponse(status_code=401)})
        with mock.patch("pkureplay.api.requests.Session", return_value=http):
            code, out = self._run("login", str(self._write_curl()))

        self.assertEqual(code, 1)
        self.assertIn("Credential expired", out)
        self.assertFalse(self.auth.exists())

    def test_login_no_save(self) -> None:
        http = FakeSession({LOCATIONS_URL: FakeResponse(json_data=envelope(LOCATIONS))})
        with mock.patch("pkureplay.api.requests.Session", return_value=http):
            code, out = self._run("--no-save", "login", str(self._write_curl()))

        self.assertEqual(code, 0)
        self.assertIn("not saved", out)
        self.assertFalse(self.auth.exists())

    def test_no_save_uses_memory_store(self) -> None:
        args = build_parser().parse_args(["--no-save", "interactive"])
        self.assertIsInstance(_session(args).store, MemoryCredentialStore)
        args = build_parser().parse_args(["--auth-file", str(self.auth), "interactive"])
        self.assertIsInstance(_session(args).store, CredentialStore)

    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args(["lectures", "--building", "3", "--search", "algebra"])
        self.assertEqual(args.building, 3)
        self.assertEqual(args.search, "algebra")
        self.assertIsNone(args.auth_file)


if __name__ == "__main__":
    unittest.main()
