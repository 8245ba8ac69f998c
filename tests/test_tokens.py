"""Unit tests for auth/tokens.py -- token issue, verify, and extraction.

Covers:
  - issue/verify round trip yields the user's id as subject
  - expired, tampered, foreign-key, and missing tokens are rejected
  - TokenExpired is still a TokenInvalid for callers that only care about validity
  - header and cookie extraction, header wins even when it is not a Bearer token
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from starlette.requests import Request

from auth.errors import TokenExpired, TokenInvalid, TokenMissing
from auth.models import User
from auth.tokens import TokenService, extract_token

SECRET = "x" * 32


@pytest.fixture
def tokens():
    return TokenService(SECRET, expire_seconds=3600)


@pytest.fixture
def user():
    return User(id=7, name="Alice", email="alice@example.com", password_hash="$2b$04$" + "a" * 53)


def _request(headers=None, cookies=None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


def test_verify_returns_subject_immediately_after_issue(tokens, user):
    claims = tokens.verify(tokens.issue(user))
    assert claims.subject == user.id
    assert claims.email == user.email
    assert claims.expires_at - claims.issued_at == timedelta(seconds=3600)


def test_expired_token_is_rejected(tokens, user):
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = tokens.issue(user, now=issued)
    with pytest.raises(TokenExpired):
        tokens.verify(token)


def test_expired_is_a_kind_of_invalid(tokens, user):
    token = tokens.issue(user, now=datetime.now(timezone.utc) - timedelta(hours=2))
    with pytest.raises(TokenInvalid):
        tokens.verify(token)


def test_tampered_token_is_rejected(tokens, user):
    token = tokens.issue(user)
    head, payload, sig = token.split(".")
    tampered = ".".join([head, payload, sig[:-2] + ("AA" if not sig.endswith("AA") else "BB")])
    with pytest.raises(TokenInvalid) as excinfo:
        tokens.verify(tampered)
    assert not isinstance(excinfo.value, TokenExpired)


def test_token_signed_with_other_key_is_rejected(user):
    token = TokenService("y" * 32).issue(user)
    with pytest.raises(TokenInvalid):
        TokenService(SECRET).verify(token)


def test_garbage_token_is_rejected(tokens):
    with pytest.raises(TokenInvalid):
        tokens.verify("not.a.token")


def test_token_without_subject_is_rejected(tokens):
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"exp": exp}, SECRET, algorithm="HS256")
    with pytest.raises(TokenInvalid):
        tokens.verify(token)


@pytest.mark.parametrize("value", [None, ""])
def test_missing_token(tokens, value):
    with pytest.raises(TokenMissing):
        tokens.verify(value)


def test_unsaved_user_cannot_get_a_token(tokens):
    with pytest.raises(ValueError):
        tokens.issue(User(name="N", email="n@example.com", password_hash="h"))


def test_extract_bearer_header():
    assert extract_token(_request(headers={"Authorization": "Bearer abc.def.ghi"})) == "abc.def.ghi"


def test_extract_bare_header():
    assert extract_token(_request(headers={"Authorization": "abc.def.ghi"})) == "abc.def.ghi"


def test_extract_cookie():
    assert extract_token(_request(cookies={"token": "abc.def.ghi"})) == "abc.def.ghi"


def test_header_wins_over_cookie():
    req = _request(headers={"Authorization": "Bearer from-header"}, cookies={"token": "from-cookie"})
    assert extract_token(req) == "from-header"


def test_extract_nothing():
    assert extract_token(_request()) is None


@pytest.mark.parametrize("header", ["Basic abc", "Token abc"])
def test_other_scheme_is_returned_whole(tokens, header):
    req = _request(headers={"Authorization": header}, cookies={"token": "from-cookie"})
    assert extract_token(req) == header
    with pytest.raises(TokenInvalid):
        tokens.verify(extract_token(req))


def test_empty_bearer_still_wins_over_cookie(tokens, user):
    req = _request(headers={"Authorization": "Bearer "}, cookies={"token": tokens.issue(user)})
    assert extract_token(req) == "Bearer"
    with pytest.raises(TokenInvalid):
        tokens.verify(extract_token(req))
