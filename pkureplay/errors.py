"""
Error types.

- ExtractionError / ValidationError: bad credential input, recoverable by asking again
- TransportError: non-2xx (or no) HTTP response
- ApplicationError: HTTP succeeded but the envelope code is non-zero
- ParseError: malformed nested video JSON (callers treat it as "no recording")
"""

from __future__ import annotations

from typing import Iterable, Optional

AUTH_STATUS_CODES = (401, 403)
AUTH_MESSAGE_MARKERS = ("Unauthorized", "Forbidden")


class PkuReplayError(Exception):
    """Base class for every error raised by this package."""


class ExtractionError(PkuReplayError):
    def __init__(self, missing_fields: Iterable[str]) -> None:
        # keep Authorization before Cookie regardless of input order
        order = {"Authorization": 0, "Cookie": 1}
        self.missing_fields = frozenset(missing_fields)
        names = sorted(self.missing_fields, key=lambda n: order.get(n, 99))
        super().__init__(
            f"Could not extract {' and '.join(names)} from the request.\n"
            "Hints:\n"
            "1. the command must contain -H 'authorization: Bearer xxx'\n"
            "2. it must contain -b 'cookie...' or -H 'cookie: xxx'\n"
            "3. if pasting does not work, enter both values manually"
        )


class ValidationError(PkuReplayError):
    pass


class ParseError(PkuReplayError):
    pass


class ApiError(PkuReplayError):
    """Common base of the two API failure kinds."""

    status_code: Optional[int] = None

    @property
    def is_authorization_failure(self) -> bool:
        if self.status_code in AUTH_STATUS_CODES:
            return True
        text = str(self)
        return any(marker in text for marker in AUTH_MESSAGE_MARKERS)


class TransportError(ApiError):
    def __init__(self, status_code: Optional[int], message: str = "") -> None:
        self.status_code = status_code
        if not message:
            message = f"HTTP error! status: {status_code}"
        super().__init__(message)


class ApplicationError(ApiError):
    def __init__(self, message: str, code: Optional[int] = None) -> None:
        self.code = code
        super().__init__(message or f"API returned code {code}")


def is_authorization_failure(error: BaseException) -> bool:
    return isinstance(error, ApiError) and error.is_authorization_failure
