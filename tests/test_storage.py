"""
Unit tests for the credential store.

Storage contract:
- save() then load() returns the same credential
- missing/empty file -> None
- corrupted file -> None and the file is cleared
- invalidate() never raises
- JSON schema: {"authorization": ..., "cookie": ...}
"""

import json
import os
import tempfile
import unittest
from pathlib import Path

from pkureplay.errors import ValidationError
from pkureplay.model import Credential
from pkureplay.storage import AUTH_FILENAME, CredentialStore, MemoryCredentialStore, default_auth_path

CRED = Credential(authorization="Bearer tok.en", cookie="JWTUser=1; login_cmc_id=2")


class TestCredentialStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / AUTH_FILENAME
        self.store = CredentialStore(self.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_load_missing_file_returns_none(self) -> None:
        self.assertIsNone(self.store.load())

    def test_save_and_load_roundtrip(self) -> None:
        self.store.save(CRED)
        self.assertEqual(self.store.load(), CRED)

        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data, {"authorization": CRED.authorization, "cookie": CRED.cookie})

    def test_save_overwrites(self) -> None:
        self.store.save(CRED)
        other = Credential(authorization="Bearer other", cookie="x=y")
        self.store.save(other)
        self.assertEqual(self.store.load(), other)

    def test_garbage_returns_none_and_clears_file(self) -> None:
        self.path.write_bytes(b"\x00not json{{{")
        self.assertIsNone(self.store.load())
        self.assertFalse(self.path.exists())

    def test_wrong_shape_is_treated_as_corrupted(self) -> None:
        self.path.write_text(json.dumps(["Bearer x", "c"]), encoding="utf-8")
        self.assertIsNone(self.store.load())
        self.assertFalse(self.path.exists())

    def test_invalid_format_returns_none(self) -> None:
        self.path.write_text(json.dumps({"authorization": "token-without-prefix", "cookie": "c"}), encoding="utf-8")
        self.assertIsNone(self.store.load())

    def test_empty_file_returns_none(self) -> None:
        self.path.write_text("", encoding="utf-8")
        self.assertIsNone(self.store.load())

    def test_save_refuses_invalid_credential(self) -> None:
        with self.assertRaises(ValidationError):
            self.store.save(Credential(authorization="Bearer x", cookie=""))
        self.assertFalse(self.path.exists())

    def test_invalidate(self) -> None:
        self.store.save(CRED)
        self.store.invalidate()
        self.assertFalse(self.path.exists())
        self.assertIsNone(self.store.load())
        # second call on a missing file must not raise
        self.store.invalidate()

    def test_default_path_is_in_working_directory(self) -> None:
        cwd = os.getcwd()
        try:
            os.chdir(self._tmp.name)
            self.assertEqual(default_auth_path().resolve(), self.path.resolve())
        finally:
            os.chdir(cwd)


class TestMemoryCredentialStore(unittest.TestCase):
    def test_roundtrip_and_invalidate(self) -> None:
        store = MemoryCredentialStore()
        self.assertIsNone(store.load())
        store.save(CRED)
        self.assertEqual(store.load(), CRED)
        store.invalidate()
        store.invalidate()
        self.assertIsNone(store.load())
        self.assertEqual(store.invalidations, 2)


if __name__ == "__main__":
    unittest.main()
