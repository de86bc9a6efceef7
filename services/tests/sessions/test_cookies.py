"""Tests for Fernet-sealed session cookies."""

import time
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet

from riverwatch.sessions.cookies import SessionCookieCodec, derive_key


@pytest.fixture
def codec():
    return SessionCookieCodec("test-session-secret", ttl_seconds=3600)


class TestSessionCookieCodec:
    def test_seal_and_open(self, codec):
        sealed = codec.seal("session-abc")

        assert "session-abc" not in sealed
        assert codec.open(sealed) == "session-abc"

    def test_sealing_is_randomized(self, codec):
        assert codec.seal("session-abc") != codec.seal("session-abc")

    def test_missing_cookie(self, codec):
        assert codec.open(None) is None
        assert codec.open("") is None

    def test_tampered_cookie_rejected(self, codec):
        sealed = codec.seal("session-abc")
        flipped = sealed[:-5] + ("A" if sealed[-5] != "A" else "B") + sealed[-4:]

        assert codec.open(flipped) is None

    def test_garbage_rejected(self, codec):
        assert codec.open("not-a-fernet-token") is None
        assert codec.open("café") is None

    def test_other_secret_rejected(self, codec):
        other = SessionCookieCodec("another-secret", ttl_seconds=3600)
        assert codec.open(other.seal("session-abc")) is None

    def test_stale_cookie_rejected(self, codec):
        sealed = codec.seal("session-abc")

        with patch("time.time", return_value=time.time() + 3601):
            assert codec.open(sealed) is None

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            SessionCookieCodec("", ttl_seconds=3600)

    def test_derived_key_is_valid_fernet_key(self):
        key = derive_key("short")
        Fernet(key)
        assert derive_key("short") == key
        assert derive_key("other") != key
