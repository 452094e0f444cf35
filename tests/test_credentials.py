"""
Unit tests for credential extraction from pasted curl commands.

Extraction contract:
- quote style (single/double) and line continuations do not matter
- rules are tried in order, first match wins
- missing headers are named exactly in ExtractionError.missing_fields
"""

import unittest

from pkureplay.credentials import (
    AUTHORIZATION_RULES,
    COOKIE_RULES,
    credential_from_parts,
    extract_credential,
    normalize_command,
    validate_credential,
)
from pkureplay.errors import ExtractionError, ValidationError
from pkureplay.model import Credential

TOKEN = "eyJhbGciOiJIUzI1NiJ9.eyJ1aWQiOjF9.sig"
COOKIE = "JWTUser=abc%3D; login_cmc_id=42"

MULTILINE_SINGLE = (
    "curl 'https://onlineroomse.pku.edu.cn/courseapi/v2/schedule/search-building?need_format=1&tenant=1' \\\n"
    "  -H 'accept: application/json, text/plain, */*' \\\n"
    f"  -H 'authorization: Bearer {TOKEN}' \\\n"
    f"  -b '{COOKIE}' \\\n"
    "  -H 'user-agent: Mozilla/5.0 (X11; Linux x86_64)'"
)

ONELINE_DOUBLE = (
    'curl "https://onlineroomse.pku.edu.cn/x" '
    f'--header "Authorization: Bearer {TOKEN}" '
    f'--header "Cookie: {COOKIE}" --compressed'
)


class TestExtract(unittest.TestCase):
    def test_multiline_single_quotes(self) -> None:
        c = extract_credential(MULTILINE_SINGLE)
        self.assertEqual(c, Credential(authorization=f"Bearer {TOKEN}", cookie=COOKIE))

    def test_oneline_double_quotes_long_flags(self) -> None:
        c = extract_credential(ONELINE_DOUBLE)
        self.assertEqual(c, Credential(authorization=f"Bearer {TOKEN}", cookie=COOKIE))

    def test_quote_style_and_wrapping_do_not_matter(self) -> None:
        variants = [
            f"curl 'u' -H 'authorization: Bearer {TOKEN}' -H 'cookie: {COOKIE}'",
            f'curl "u" \\\n -H "authorization: Bearer {TOKEN}" \\\n -b "{COOKIE}"',
            f"curl 'u' \\\n\t--header 'authorization:Bearer {TOKEN}' \\\n\t--cookie '{COOKIE}'",
        ]
        for text in variants:
            with self.subTest(text=text):
                c = extract_credential(text)
                self.assertEqual(c.authorization, f"Bearer {TOKEN}")
                self.assertEqual(c.cookie, COOKIE)

    def test_missing_cookie(self) -> None:
        with self.assertRaises(ExtractionError) as ctx:
            extract_credential(f"curl 'u' -H 'authorization: Bearer {TOKEN}'")
        self.assertEqual(ctx.exception.missing_fields, {"Cookie"})
        self.assertIn("Cookie", str(ctx.exception))
        self.assertNotIn("Authorization and", str(ctx.exception))

    def test_missing_both(self) -> None:
        with self.assertRaises(ExtractionError) as ctx:
            extract_credential("curl 'https://example.com' -H 'accept: */*'")
        self.assertEqual(ctx.exception.missing_fields, {"Authorization", "Cookie"})
        self.assertIn("Authorization and Cookie", str(ctx.exception))

    def test_empty_input(self) -> None:
        with self.assertRaises(ExtractionError) as ctx:
            extract_credential("")
        self.assertEqual(ctx.exception.missing_fields, {"Authorization", "Cookie"})

    def test_cookie_flag_wins_over_cookie_header(self) -> None:
        text = f"curl 'u' -H 'cookie: second=2' -H 'authorization: Bearer {TOKEN}' -b 'first=1'"
        self.assertEqual(extract_credential(text).cookie, "first=1")


class TestRules(unittest.TestCase):
    def test_each_authorization_rule(self) -> None:
        samples = {
            "short-header-single-quote": f"-H 'authorization: Bearer {TOKEN}'",
            "short-header-double-quote": f'-H "authorization: Bearer {TOKEN}"',
            "long-header-single-quote": f"--header 'AUTHORIZATION: Bearer {TOKEN}'",
            "long-header-double-quote": f'--header "Authorization: Bearer {TOKEN}"',
        }
        for rule in AUTHORIZATION_RULES:
            with self.subTest(rule=rule.name):
                self.assertEqual(rule.apply(samples[rule.name]), TOKEN)

    def test_each_cookie_rule(self) -> None:
        samples = {
            "short-cookie-single-quote": f"-b '{COOKIE}'",
            "short-cookie-double-quote": f'-b "{COOKIE}"',
            "long-cookie-single-quote": f"--cookie '{COOKIE}'",
            "long-cookie-double-quote": f'--cookie "{COOKIE}"',
            "short-header-single-quote": f"-H 'cookie: {COOKIE}'",
            "short-header-double-quote": f'-H "Cookie: {COOKIE}"',
            "long-header-single-quote": f"--header 'cookie: {COOKIE}'",
            "long-header-double-quote": f'--header "COOKIE: {COOKIE}"',
        }
        self.assertEqual(len(COOKIE_RULES), len(samples))
        for rule in COOKIE_RULES:
            with self.subTest(rule=rule.name):
                self.assertEqual(rule.apply(samples[rule.name]), COOKIE)

    def test_rule_without_match_returns_none(self) -> None:
        self.assertIsNone(AUTHORIZATION_RULES[0].apply("-H 'accept: */*'"))

    def test_normalize_collapses_continuations(self) -> None:
        self.assertEqual(normalize_command("curl 'u' \\\n   -H 'a: b'\n\n  -b 'c'"), "curl 'u' -H 'a: b' -b 'c'")


class TestValidate(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertTrue(validate_credential(Credential("Bearer abc", "a=b")))

    def test_invalid(self) -> None:
        self.assertFalse(validate_credential(None))
        self.assertFalse(validate_credential(Credential("abc", "a=b")))
        self.assertFalse(validate_credential(Credential("Bearer ", "a=b")))
        self.assertFalse(validate_credential(Credential("Bearer abc", "")))
        self.assertFalse(validate_credential(Credential("Bearer abc", "   ")))

    def test_credential_from_parts(self) -> None:
        c = credential_from_parts("  Bearer abc ", " a=b ")
        self.assertEqual(c, Credential("Bearer abc", "a=b"))
        with self.assertRaises(ValidationError):
            credential_from_parts("abc", "a=b")


if __name__ == "__main__":
    unittest.main()
