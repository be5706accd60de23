"""Tests for bearer session tokens."""

import pytest

from keepwise.auth import issue_session_token, resolve_owner, verify_session_token
from keepwise.errors import AuthenticationError

SECRET = "test-secret"


def test_round_trip():
    token = issue_session_token("user1", SECRET, ttl_seconds=60)
    assert verify_session_token(token, SECRET) == "user1"


def test_expired():
    token = issue_session_token("user1", SECRET, ttl_seconds=60, now=1000)
    with pytest.raises(AuthenticationError, match="expired"):
        verify_session_token(token, SECRET, now=2000)


def test_wrong_secret():
    token = issue_session_token("user1", SECRET)
    with pytest.raises(AuthenticationError, match="Invalid"):
        verify_session_token(token, "other-secret")


def test_tampered_payload():
    token = issue_session_token("user1", SECRET)
    forged = issue_session_token("admin", "other-secret").split(".")[0]
    signature = token.split(".")[1]
    with pytest.raises(AuthenticationError):
        verify_session_token(f"{forged}.{signature}", SECRET)


@pytest.mark.parametrize("token", ["", "garbage", "a.b", "..."])
def test_malformed(token):
    with pytest.raises(AuthenticationError):
        verify_session_token(token, SECRET)


def test_non_ascii_signature_is_rejected():
    token = issue_session_token("user1", SECRET)
    payload = token.split(".")[0]
    with pytest.raises(AuthenticationError, match="Invalid"):
        verify_session_token(f"{payload}.\u00e9\u00e9", SECRET)
    with pytest.raises(AuthenticationError):
        resolve_owner("Bearer abc.\u00e9\u00e9", SECRET)


def test_owner_required():
    with pytest.raises(ValueError):
        issue_session_token("", SECRET)


class TestResolveOwner:

    def test_bearer_header(self):
        token = issue_session_token("user1", SECRET)
        assert resolve_owner(f"Bearer {token}", SECRET) == "user1"

    @pytest.mark.parametrize("header", [None, "", "Bearer ", "Basic abc", "token"])
    def test_missing_or_wrong_scheme(self, header):
        with pytest.raises(AuthenticationError):
            resolve_owner(header, SECRET)
