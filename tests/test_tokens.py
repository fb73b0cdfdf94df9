#!/usr/bin/env python3
"""
API key issuance tests.
"""

import base64
import json
import re
import sys
from pathlib import Path

import jwt
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from tinydeploy.tokens import build_claims, is_well_formed, issue, issue_pair  # noqa: E402

SECRET = "f" * 64
NOW = 1_700_000_000
BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")


def _decode_segment(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


class TestIssueStructure:
    @pytest.mark.parametrize("role", ["anon", "service_role"])
    def test_three_base64url_segments(self, role):
        token = issue(role, SECRET, NOW)

        segments = token.split(".")
        assert len(segments) == 3
        for segment in segments:
            assert BASE64URL.match(segment)
            assert "=" not in segment and "+" not in segment and "/" not in segment

    def test_header_is_hs256_jwt(self):
        header = _decode_segment(issue("anon", SECRET, NOW).split(".")[0])

        assert header == {"alg": "HS256", "typ": "JWT"}

    def test_claims(self):
        claims = _decode_segment(issue("service_role", SECRET, NOW).split(".")[1])

        assert claims == {
            "role": "service_role",
            "iss": "supabase",
            "ref": "default",
            "aud": "authenticated",
            "iat": NOW,
            "exp": NOW + 315360000,
        }

    def test_signature_verifies_with_shared_secret(self):
        token = issue("anon", SECRET, NOW)

        decoded = jwt.decode(
            token,
            SECRET,
            algorithms=["HS256"],
            audience="authenticated",
            options={"verify_exp": False, "verify_iat": False},
        )
        assert decoded["role"] == "anon"

    def test_signature_rejects_other_secret(self):
        token = issue("anon", SECRET, NOW)

        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, "0" * 64, algorithms=["HS256"], audience="authenticated",
                       options={"verify_exp": False, "verify_iat": False})


class TestIssueDeterminism:
    def test_same_inputs_same_token(self):
        assert issue("anon", SECRET, NOW) == issue("anon", SECRET, NOW)

    def test_different_epoch_different_token(self):
        assert issue("anon", SECRET, NOW) != issue("anon", SECRET, NOW + 1)

    def test_pair_shares_issued_at(self):
        pair = issue_pair(SECRET, NOW)

        anon = _decode_segment(pair["ANON_KEY"].split(".")[1])
        service = _decode_segment(pair["SERVICE_ROLE_KEY"].split(".")[1])
        assert anon["iat"] == service["iat"] == NOW
        assert anon["role"] == "anon"
        assert service["role"] == "service_role"

    def test_build_claims_expiry(self):
        assert build_claims("anon", 10)["exp"] == 10 + 315360000


class TestIsWellFormed:
    @pytest.mark.parametrize("token", ["a.b.c", "x.y.z.w", issue("anon", SECRET, NOW)])
    def test_accepts_dotted(self, token):
        assert is_well_formed(token) is True

    @pytest.mark.parametrize("token", ["", None, "deadbeef" * 4, "a.b"])
    def test_rejects_legacy(self, token):
        assert is_well_formed(token) is False
