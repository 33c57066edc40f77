import base64

import pytest

from cadence import spotify_utils
from cadence.exceptions import AuthError, InvalidInput, UpstreamError
from cadence.tests.conftest import FakeResponse  # type: ignore


@pytest.fixture
def spotify_creds(settings):
    settings.SPOTIFY_CLIENT_ID = "client"
    settings.SPOTIFY_CLIENT_SECRET = "secret"
    return settings


def test_exchange_code_posts_basic_auth(spotify_creds, stub_requests):
    calls = stub_requests(post=FakeResponse(200, {"access_token": "abc", "expires_in": 3600}))

    data = spotify_utils.exchange_code_for_token("the-code", "http://localhost/cb")

    assert data["access_token"] == "abc"
    verb, url, kwargs = calls[0]
    assert (verb, url) == ("POST", spotify_utils.TOKEN_URL)
    assert kwargs["headers"]["Authorization"] == "Basic " + base64.b64encode(b"client:secret").decode()
    assert kwargs["data"] == {"grant_type": "authorization_code", "code": "the-code",
                              "redirect_uri": "http://localhost/cb"}


def test_exchange_code_without_credentials(settings, stub_requests):
    settings.SPOTIFY_CLIENT_ID = ""
    settings.SPOTIFY_CLIENT_SECRET = ""
    calls = stub_requests()
    with pytest.raises(AuthError, match="credentials not configured"):
        spotify_utils.exchange_code_for_token("code", "http://localhost/cb")
    assert calls == []


@pytest.mark.parametrize("code,redirect", [("", "http://x"), ("code", "")])
def test_exchange_code_requires_code_and_redirect(spotify_creds, code, redirect):
    with pytest.raises(AuthError):
        spotify_utils.exchange_code_for_token(code, redirect)


def test_exchange_code_rejected_upstream(spotify_creds, stub_requests):
    stub_requests(post=FakeResponse(400, {"error": "invalid_grant", "error_description": "Invalid authorization code"}))
    with pytest.raises(AuthError, match="invalid_grant - Invalid authorization code"):
        spotify_utils.exchange_code_for_token("bad", "http://localhost/cb")


def test_search_action_builds_query(stub_requests):
    body = {"tracks": {"items": [{"id": "1"}]}}
    calls = stub_requests(get=FakeResponse(200, body))

    status, out = spotify_utils.call_action("tok", "search", {"query": "run fast"})

    assert (status, out) == (200, body)
    verb, url, kwargs = calls[0]
    assert url == "https://api.spotify.com/v1/search"
    assert kwargs["params"] == {"q": "run fast", "type": "track", "limit": 20}
    assert kwargs["headers"] == {"Authorization": "Bearer tok"}


@pytest.mark.parametrize(
    "action,verb,path",
    [("play", "PUT", "/me/player/play"), ("pause", "PUT", "/me/player/pause"), ("next", "POST", "/me/player/next")],
)
def test_player_actions_report_success(stub_requests, action, verb, path):
    calls = stub_requests(request=FakeResponse(204))
    status, out = spotify_utils.call_action("tok", action, {"uris": ["spotify:track:1"]})
    assert (status, out) == (200, {"success": True})
    assert calls[0][0] == verb
    assert calls[0][1] == spotify_utils.API_BASE + path
    if action == "play":
        assert calls[0][2]["json"] == {"uris": ["spotify:track:1"]}
    else:
        assert "json" not in calls[0][2]


def test_player_action_failure_is_not_success(stub_requests):
    stub_requests(request=FakeResponse(404, {"error": {"status": 404, "message": "No active device"}}))
    assert spotify_utils.call_action("tok", "pause") == (200, {"success": False})


def test_current_with_nothing_playing(stub_requests):
    stub_requests(get=FakeResponse(204))
    assert spotify_utils.call_action("tok", "current") == (200, {})


def test_upstream_error_status_is_passed_through(stub_requests):
    err = {"error": {"status": 401, "message": "The access token expired"}}
    stub_requests(get=FakeResponse(401, err))
    assert spotify_utils.call_action("tok", "audio-features", {"track_id": "t1"}) == (401, err)


@pytest.mark.parametrize(
    "token,action,data",
    [("", "search", {"query": "x"}), ("tok", "shuffle", {}), ("tok", "search", {}), ("tok", "audio-features", {})],
)
def test_call_action_rejects_bad_requests(token, action, data):
    with pytest.raises(InvalidInput):
        spotify_utils.call_action(token, action, data)


def test_get_tempo_and_search_helpers(stub_requests):
    stub_requests(get=lambda url, kwargs: (
        FakeResponse(200, {"tempo": 178.9}) if "audio-features" in url
        else FakeResponse(200, {"tracks": {"items": [{"id": "a"}]}})
    ))
    assert spotify_utils.get_tempo("tok", "a") == 178.9
    assert spotify_utils.get_audio_features("tok", "a") == {"tempo": 178.9}
    assert spotify_utils.search_tracks("tok", "q", limit=5) == [{"id": "a"}]


def test_get_tempo_raises_upstream_error(stub_requests):
    stub_requests(get=FakeResponse(429, {"error": {"status": 429, "message": "API rate limit exceeded"}}))
    with pytest.raises(UpstreamError) as excinfo:
        spotify_utils.get_tempo("tok", "a")
    assert excinfo.value.status_code == 429
    assert "rate limit" in str(excinfo.value)
