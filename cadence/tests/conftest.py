# tests/conftest.py
import random

import pytest

from cadence.models import Track


def _track(tid, tempo, **kw):
    """Track helper; tempo may be None for 'unknown'."""
    return Track(id=tid, title=kw.pop("title", f"Song {tid}"), tempo=tempo, duration=kw.pop("duration", 200), **kw)


class FakeResponse:
    """Just enough of requests.Response for spotify_utils."""

    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    @property
    def content(self):
        return b"" if self._payload is None and not self.text else b"x"

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def make_track():
    return _track


@pytest.fixture
def catalog():
    # tempos from the ranking example: 183, 160, 179, 177 against 180
    return [_track("a", 183), _track("b", 160), _track("c", 179), _track("d", 177)]


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def spotify_item():
    """
    Usage:
      spotify_item("id1", name="Song", duration_ms=200000)
    """
    def _make(tid, name=None, duration_ms=200000, artists=("Artist",)):
        return {
            "id": tid,
            "name": name or f"Track {tid}",
            "uri": f"spotify:track:{tid}",
            "duration_ms": duration_ms,
            "artists": [{"name": a} for a in artists],
            "album": {"name": "Album X", "images": [{"url": "https://img/cover.jpg"}]},
        }
    return _make


@pytest.fixture
def stub_requests(monkeypatch):
    """
    Replace requests.get/post/request inside spotify_utils with recorders.

    Usage:
      calls = stub_requests(get=FakeResponse(...), post=..., request=...)
      calls -> list of (verb, url, kwargs)
    """
    def _set(get=None, post=None, request=None):
        from cadence import spotify_utils

        calls = []

        def _pick(resp, *args):
            return resp(*args) if callable(resp) else resp

        def _get(url, **kwargs):
            calls.append(("GET", url, kwargs))
            return _pick(get, url, kwargs)

        def _post(url, **kwargs):
            calls.append(("POST", url, kwargs))
            return _pick(post, url, kwargs)

        def _request(method, url, **kwargs):
            calls.append((method, url, kwargs))
            return _pick(request, url, kwargs)

        monkeypatch.setattr(spotify_utils.requests, "get", _get)
        monkeypatch.setattr(spotify_utils.requests, "post", _post)
        monkeypatch.setattr(spotify_utils.requests, "request", _request)
        return calls
    return _set


@pytest.fixture
def stub_spotify(monkeypatch):
    """
    Patch the matcher-facing Spotify helpers.

    Usage:
      stub_spotify(search=lambda token, q, limit: [...], tempo=lambda token, tid: 180.0)
      stub_spotify(features=lambda token, tid: {"tempo": 180.0, "energy": 0.8})
    """
    def _set(search=None, tempo=None, features=None):
        from cadence import spotify_utils
        if search is not None:
            monkeypatch.setattr(spotify_utils, "search_tracks", search, raising=True)
        if tempo is not None:
            monkeypatch.setattr(spotify_utils, "get_tempo", tempo, raising=True)
        if features is not None:
            monkeypatch.setattr(spotify_utils, "get_audio_features", features, raising=True)
    return _set
