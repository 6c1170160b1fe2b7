# tests/test_auth_service.py
from __future__ import annotations

import pytest
import requests

from courierboard.services.auth_service import AuthError, SupabaseAuth

URL = "https://demo.supabase.co"
TOKEN_BODY = {
    "access_token": "tok-1",
    "refresh_token": "ref-1",
    "user": {"id": "u-1", "email": "ops@example.com"},
}


@pytest.fixture()
def auth(http):
    return SupabaseAuth(URL, "anon-key", http=http)


def test_sign_in_stores_the_session_and_notifies(auth, http):
    seen = []
    auth.on_change(seen.append)
    http.queue(200, TOKEN_BODY)

    session = auth.sign_in(" ops@example.com ", "pw")

    call = http.calls[0]
    assert call["url"] == f"{URL}/auth/v1/token?grant_type=password"
    assert call["json"] == {"email": "ops@example.com", "password": "pw"}
    assert session.user_id == "u-1"
    assert auth.get_session() == session
    assert auth.access_token() == "tok-1"
    assert seen == [session]


def test_sign_in_error_keeps_signed_out(auth, http):
    http.queue(400, {"error_description": "Invalid login credentials"})
    with pytest.raises(AuthError, match="Invalid login credentials"):
        auth.sign_in("ops@example.com", "bad")
    assert auth.get_session() is None
    assert not auth.signed_in


def test_sign_in_without_token_is_an_error(auth, http):
    http.queue(200, {"user": {"id": "u-1"}})
    with pytest.raises(AuthError):
        auth.sign_in("ops@example.com", "pw")


def test_sign_up_posts_credentials(auth, http):
    http.queue(200, {"id": "u-2"})
    auth.sign_up("new@example.com", "pw")
    assert http.calls[0]["url"] == f"{URL}/auth/v1/signup"
    assert auth.get_session() is None


def test_sign_out_clears_session_even_if_logout_fails(auth, http):
    http.queue(200, TOKEN_BODY)
    auth.sign_in("ops@example.com", "pw")
    seen = []
    unsubscribe = auth.on_change(seen.append)
    http.responses.append(requests.ConnectionError("offline"))

    auth.sign_out()

    assert auth.get_session() is None
    assert seen == [None]
    assert http.calls[-1]["headers"]["Authorization"] == "Bearer tok-1"

    unsubscribe()
    http.queue(200, TOKEN_BODY)
    auth.sign_in("ops@example.com", "pw")
    assert seen == [None]


def test_sign_out_without_session_is_a_noop(auth, http):
    auth.sign_out()
    assert http.calls == []


def _signed_in(auth, http, body=TOKEN_BODY):
    http.queue(200, body)
    auth.sign_in("ops@example.com", "pw")


def test_refresh_swaps_in_a_new_access_token(auth, http):
    _signed_in(auth, http)
    seen = []
    auth.on_change(seen.append)
    http.queue(200, {**TOKEN_BODY, "access_token": "tok-2", "refresh_token": "ref-2"})

    assert auth.refresh("tok-1") is True

    call = http.calls[-1]
    assert call["url"] == f"{URL}/auth/v1/token?grant_type=refresh_token"
    assert call["json"] == {"refresh_token": "ref-1"}
    assert auth.access_token() == "tok-2"
    assert auth.get_session().refresh_token == "ref-2"
    assert [s.access_token for s in seen] == ["tok-2"]


def test_refresh_is_skipped_when_the_token_already_moved_on(auth, http):
    _signed_in(auth, http)
    calls = len(http.calls)
    assert auth.refresh("some-older-token") is True
    assert len(http.calls) == calls


def test_refresh_without_a_refresh_token_fails(auth, http):
    _signed_in(auth, http, {"access_token": "tok-1", "user": {"id": "u-1"}})
    calls = len(http.calls)
    assert auth.refresh("tok-1") is False
    assert len(http.calls) == calls
    assert auth.access_token() == "tok-1"


def test_rejected_refresh_keeps_the_session_for_the_caller_to_end(auth, http):
    _signed_in(auth, http)
    http.queue(400, {"error_description": "Invalid Refresh Token"})
    assert auth.refresh("tok-1") is False
    assert auth.access_token() == "tok-1"


def test_refresh_when_signed_out_does_nothing(auth, http):
    assert auth.refresh() is False
    assert http.calls == []
