"""Unit tests for core/config.py -- secret and option validation."""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD = "k" * 32


def test_debug_generates_missing_secrets():
    s = Settings(debug=True, secret_key="", session_secret="")
    assert len(s.secret_key) >= 32
    assert len(s.session_secret) >= 32
    assert s.secret_key != s.session_secret


def test_production_requires_secrets():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="", session_secret=GOOD)


def test_short_secret_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=False, secret_key="short", session_secret=GOOD)


def test_unknown_session_backend_rejected():
    with pytest.raises(ValidationError, match="SESSION_BACKEND"):
        Settings(debug=True, session_backend="redis")


def test_defaults():
    s = Settings(debug=False, secret_key=GOOD, session_secret=GOOD, _env_file=None)
    assert s.token_expire_seconds == 3600
    assert s.session_cookie_name == "stockroom_session"
    assert s.port == 4000
