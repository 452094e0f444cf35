"""
Persistent storage for the login credential.

This module manages the file:

    .pku-cli-auth.json   (in the current working directory)

with the schema {"authorization": "Bearer ...", "cookie": "..."}.

Storage contract:
- load() never crashes: missing, empty or invalid content -> None
- undecodable content is cleared so the next run starts clean
- invalidate() can always be called blindly after an authorization failure
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pkureplay.credentials import require_valid, validate_credential
from pkureplay.model import Credential

logger = logging.getLogger(__name__)

AUTH_FILENAME = ".pku-cli-auth.json"


def default_auth_path() -> Path:
    """
    Return the default credential file path, relative to the working directory.

    Using a function instead of a constant makes testing easier,
    because the working directory is resolved at call time.
    """
    return Path.cwd() / AUTH_FILENAME


class CredentialStore:
    """
    JSON-file backed credential store.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else default_auth_path()

    def save(self, credential: Credential) -> None:
        """
        Overwrite the stored credential. Invalid credentials are refused.
        """
        require_valid(credential)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"authorization": credential.authorization, "cookie": credential.cookie}
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("credential saved to %s", self.path)

    def load(self) -> Optional[Credential]:
        # First run: file does not exist yet
        if not self.path.exists():
            return None

        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("credential file %s is unreadable (%s), clearing it", self.path, e)
            self.invalidate()
            return None

        # invalidate() leaves nothing behind, but an empty file is still "absent"
        if not text.strip():
            return None

        try:
            data = json.loads(text)
            credential = Credential(authorization=data["authorization"], cookie=data["cookie"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("credential file %s is corrupted (%s), clearing it", self.path, e)
            self.invalidate()
            return None

        if not validate_credential(credential):
            logger.info("stored credential has an invalid format, ignoring it")
            return None
        return credential

    def invalidate(self) -> None:
        try:
            self.path.unlink()
            logger.debug("credential file %s removed", self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("could not remove credential file %s: %s", self.path, e)


class MemoryCredentialStore:
    """
    Same interface as CredentialStore, kept in memory only.

    Used for --no-save runs and as a test double.
    """

    def __init__(self, credential: Optional[Credential] = None) -> None:
        self.credential = credential
        self.saves = 0
        self.invalidations = 0

    def save(self, credential: Credential) -> None:
        self.credential = require_valid(credential)
        self.saves += 1

    def load(self) -> Optional[Credential]:
        if not validate_credential(self.credential):
            return None
        return self.credential

    def invalidate(self) -> None:
        self.credential = None
        self.invalidations += 1
