"""
Unit tests for webhook signature validation.

Signatures are HMACs over the exact body bytes; anything missing, malformed
or mismatched is rejected.
"""

import hashlib
import hmac

import pytest

from messenger_webhooks.webhooks.signature import (
    LEGACY_SIGNATURE_HEADER,
    SIGNATURE_HEADER,
    compute_signature,
    constant_time_equals,
    pick_signature_header,
    validate_signature,
)

pytestmark = pytest.mark.unit

SECRET = "test_app_secret"
BODY = b'{"object":"page","entry":[]}'


def _sign(body: bytes, secret: str = SECRET, algorithm: str = "sha256") -> str:
    digest = hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"


class TestComputeSignature:
    def test_matches_hmac_sha256(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
        assert compute_signature(SECRET, BODY) == expected

    def test_str_body_is_utf8_encoded(self):
        body = '{"text":"héllo"}'
        assert compute_signature(SECRET, body) == compute_signature(SECRET, body.encode("utf-8"))


class TestValidateSignature:
    def test_round_trip(self):
        assert validate_signature(SECRET, BODY, _sign(BODY)) is True

    def test_sha1_header_is_accepted(self):
        assert validate_signature(SECRET, BODY, _sign(BODY, algorithm="sha1")) is True

    def test_uppercase_algorithm_and_digest_are_accepted(self):
        header = _sign(BODY)
        algorithm, digest = header.split("=", 1)
        assert validate_signature(SECRET, BODY, f"{algorithm.upper()}={digest.upper()}") is True

    def test_any_changed_hex_character_fails(self):
        header = _sign(BODY)
        prefix_len = len("sha256=")
        for i in range(prefix_len, len(header)):
            replacement = "0" if header[i] != "0" else "1"
            tampered = header[:i] + replacement + header[i + 1:]
            assert validate_signature(SECRET, BODY, tampered) is False

    def test_modified_body_fails(self):
        assert validate_signature(SECRET, BODY + b" ", _sign(BODY)) is False

    def test_wrong_secret_fails(self):
        assert validate_signature(SECRET, BODY, _sign(BODY, secret="other")) is False

    @pytest.mark.parametrize("header", [None, "", "sha256", "abcdef", "md5=abcdef", "sha512=abcdef"])
    def test_missing_or_malformed_header_fails(self, header):
        assert validate_signature(SECRET, BODY, header) is False

    def test_empty_secret_fails_even_with_matching_signature(self):
        assert validate_signature("", BODY, _sign(BODY, secret="")) is False

    def test_truncated_digest_fails(self):
        assert validate_signature(SECRET, BODY, _sign(BODY)[:-2]) is False


class TestHelpers:
    def test_constant_time_equals(self):
        assert constant_time_equals("abc", "abc") is True
        assert constant_time_equals("abc", "abd") is False
        assert constant_time_equals("abc", "abcd") is False

    def test_prefers_sha256_header(self):
        headers = {SIGNATURE_HEADER: "sha256=aa", LEGACY_SIGNATURE_HEADER: "sha1=bb"}
        assert pick_signature_header(headers) == "sha256=aa"

    def test_falls_back_to_legacy_header(self):
        assert pick_signature_header({LEGACY_SIGNATURE_HEADER: "sha1=bb"}) == "sha1=bb"

    def test_no_header(self):
        assert pick_signature_header({}) is None
