#!/usr/bin/env python3
"""
API key issuance.

ANON_KEY and SERVICE_ROLE_KEY are long-lived HS256 JWTs signed with
JWT_SECRET. PostgREST and GoTrue reject plain random strings, so older
installs that stored random values get them replaced, while keys that
already look like JWTs are kept byte-for-byte across runs.
"""

from __future__ import annotations

import jwt

from .config_constants import (
    ANON_ROLE,
    SERVICE_ROLE,
    TOKEN_AUDIENCE,
    TOKEN_ISSUER,
    TOKEN_LIFETIME_SECONDS,
    TOKEN_REF,
)

TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}


def build_claims(role: str, now: int) -> dict:
    return {
        "role": role,
        "iss": TOKEN_ISSUER,
        "ref": TOKEN_REF,
        "aud": TOKEN_AUDIENCE,
        "iat": now,
        "exp": now + TOKEN_LIFETIME_SECONDS,
    }


def issue(role: str, shared_secret: str, now: int) -> str:
    """
    Issue a signed token for role.

    Deterministic for fixed (role, shared_secret, now).
    """
    return jwt.encode(
        build_claims(role, int(now)),
        shared_secret,
        algorithm="HS256",
        headers=TOKEN_HEADER,
    )


def issue_pair(shared_secret: str, now: int) -> dict[str, str]:
    """Issue the anon and service_role keys with a shared issued-at."""
    return {
        "ANON_KEY": issue(ANON_ROLE, shared_secret, now),
        "SERVICE_ROLE_KEY": issue(SERVICE_ROLE, shared_secret, now),
    }


def is_well_formed(token: str | None) -> bool:
    """Structural check only: at least three dot-separated segments."""
    return bool(token) and token.count(".") >= 2
