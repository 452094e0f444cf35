"""
Credential extraction (pasted curl command -> Credential).

The user copies a request from the browser devtools ("Copy as cURL") and
pastes it. We only need two headers out of it:

    -H 'authorization: Bearer <token>'
    -b '<cookie>'   or   -H 'cookie: <cookie>'

Each pattern is a named ExtractionRule. Rules are tried in order and the
first one that matches wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from pkureplay.errors import ExtractionError, ValidationError
from pkureplay.model import Credential

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    pattern: re.Pattern[str]

    def apply(self, text: str) -> Optional[str]:
        """
        Return the stripped first capture group, or None if the rule does not match.
        """
        m = self.pattern.search(text)
        if not m or not m.group(1):
            return None
        value = m.group(1).strip()
        return value or None


def _header_rule(name: str, flag: str, quote: str, header: str, value: str) -> ExtractionRule:
    # flag 'value' / flag "value", the header name is case-insensitive
    pattern = rf"{flag}\s+{quote}{header}:\s*{value}([^{quote}]+){quote}"
    return ExtractionRule(name, re.compile(pattern, re.IGNORECASE))


def _flag_rule(name: str, flag: str, quote: str) -> ExtractionRule:
    return ExtractionRule(name, re.compile(rf"{flag}\s+{quote}([^{quote}]+){quote}"))


AUTHORIZATION_RULES: tuple[ExtractionRule, ...] = (
    _header_rule("short-header-single-quote", "-H", "'", "authorization", r"Bearer\s+"),
    _header_rule("short-header-double-quote", "-H", '"', "authorization", r"Bearer\s+"),
    _header_rule("long-header-single-quote", "--header", "'", "authorization", r"Bearer\s+"),
    _header_rule("long-header-double-quote", "--header", '"', "authorization", r"Bearer\s+"),
)

COOKIE_RULES: tuple[ExtractionRule, ...] = (
    _flag_rule("short-cookie-single-quote", "-b", "'"),
    _flag_rule("short-cookie-double-quote", "-b", '"'),
    _flag_rule("long-cookie-single-quote", "--cookie", "'"),
    _flag_rule("long-cookie-double-quote", "--cookie", '"'),
    _header_rule("short-header-single-quote", "-H", "'", "cookie", ""),
    _header_rule("short-header-double-quote", "-H", '"', "cookie", ""),
    _header_rule("long-header-single-quote", "--header", "'", "cookie", ""),
    _header_rule("long-header-double-quote", "--header", '"', "cookie", ""),
)


def normalize_command(raw: str) -> str:
    """
    Turn a multi-line pasted command into one logical line.
    """
    text = re.sub(r"\\\s*\n\s*", " ", raw)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def first_match(rules: Sequence[ExtractionRule], text: str) -> Optional[str]:
    for rule in rules:
        value = rule.apply(text)
        if value:
            logger.debug("matched rule %s", rule.name)
            return value
    return None


def extract_credential(raw_request: str) -> Credential:
    """
    Extract the authorization/cookie pair from a pasted curl command.

    Raises ExtractionError naming every header that could not be found.
    """
    text = normalize_command(raw_request or "")

    token = first_match(AUTHORIZATION_RULES, text)
    cookie = first_match(COOKIE_RULES, text)

    missing: list[str] = []
    if not token:
        missing.append("Authorization")
    if not cookie:
        missing.append("Cookie")
    if missing:
        raise ExtractionError(missing)

    return Credential(authorization=f"{BEARER_PREFIX}{token}", cookie=cookie or "")


def validate_credential(credential: Optional[Credential]) -> bool:
    if credential is None:
        return False
    auth = credential.authorization
    return (
        isinstance(auth, str)
        and auth.startswith(BEARER_PREFIX)
        and bool(auth[len(BEARER_PREFIX):].strip())
        and isinstance(credential.cookie, str)
        and bool(credential.cookie.strip())
    )


def require_valid(credential: Optional[Credential]) -> Credential:
    if not validate_credential(credential):
        raise ValidationError("Credential format is invalid: expected 'Bearer <token>' and a non-empty cookie")
    assert credential is not None
    return credential


def credential_from_parts(authorization: str, cookie: str) -> Credential:
    """
    Build a Credential from manually entered values.
    """
    return require_valid(Credential(authorization=(authorization or "").strip(), cookie=(cookie or "").strip()))
