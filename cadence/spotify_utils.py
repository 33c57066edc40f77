import base64
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests
from django.conf import settings

from .exceptions import AuthError, InvalidInput, UpstreamError

log = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE = "https://api.spotify.com/v1"

# actions that only report whether Spotify accepted the command
PLAYER_ACTIONS = {
    "play": ("PUT", "/me/player/play"),
    "pause": ("PUT", "/me/player/pause"),
    "next": ("POST", "/me/player/next"),
}
DATA_ACTIONS = {"search", "current", "audio-features"}
ACTIONS = set(PLAYER_ACTIONS) | DATA_ACTIONS


def _timeout() -> int:
    return getattr(settings, "SPOTIFY_TIMEOUT", 15)

def _basic_auth_header(client_id: str, client_secret: str) -> str:
    b = f"{client_id}:{client_secret}".encode()
    return "Basic " + base64.b64encode(b).decode()

def _bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

def _json_or_empty(resp: requests.Response) -> Any:
    # 204 from currently-playing / player endpoints has no body
    if resp.status_code == 204 or not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {"error": resp.text}


# -------------------------------
# OAuth code -> token
# -------------------------------
def exchange_code_for_token(code: str, redirect_uri: str) -> Dict[str, Any]:
    """Trade an authorization code for an access token (Spotify JSON returned as-is)."""
    client_id = getattr(settings, "SPOTIFY_CLIENT_ID", "")
    client_secret = getattr(settings, "SPOTIFY_CLIENT_SECRET", "")
    log.info("Token exchange: client_id=%s client_secret=%s",
             "set" if client_id else "missing", "set" if client_secret else "missing")

    if not client_id or not client_secret:
        raise AuthError(
            "Spotify credentials not configured. Please set SPOTIFY_CLIENT_ID "
            "and SPOTIFY_CLIENT_SECRET environment variables."
        )
    if not code:
        raise AuthError("Authorization code is required")
    if not redirect_uri:
        raise AuthError("Redirect URI is required")

    resp = requests.post(
        TOKEN_URL,
        headers={
            "Authorization": _basic_auth_header(client_id, client_secret),
            "Content-Type": "application/x-www-form-urlencoded",
        },
        data={"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri},
        timeout=_timeout(),
    )
    data = _json_or_empty(resp)
    log.info("Token exchange: Spotify answered %s", resp.status_code)
    if not resp.ok:
        err = data.get("error", "Unknown error") if isinstance(data, dict) else "Unknown error"
        desc = data.get("error_description", "") if isinstance(data, dict) else ""
        raise AuthError(f"Spotify API error: {err} - {desc}")
    return data


# -------------------------------
# Tagged action proxy
# -------------------------------
def call_action(access_token: str, action: str, data: Optional[Dict[str, Any]] = None) -> Tuple[int, Any]:
    """
    Forward one tagged action to the Web API.
    Returns (status, body): player actions give {"success": bool} with 200,
    data actions give Spotify's JSON with Spotify's status.
    """
    if not access_token:
        raise InvalidInput("Access token is required")
    if action not in ACTIONS:
        raise InvalidInput(f"Invalid action: {action!r}")
    data = data or {}
    headers = _bearer(access_token)

    if action in PLAYER_ACTIONS:
        method, path = PLAYER_ACTIONS[action]
        kwargs = {"json": data} if action == "play" else {}
        resp = requests.request(method, API_BASE + path, headers=headers, timeout=_timeout(), **kwargs)
        return 200, {"success": resp.ok}

    if action == "search":
        if not data.get("query"):
            raise InvalidInput("search needs data.query")
        resp = requests.get(
            f"{API_BASE}/search",
            headers=headers,
            params={"q": data["query"], "type": data.get("type", "track"), "limit": data.get("limit", 20)},
            timeout=_timeout(),
        )
    elif action == "current":
        resp = requests.get(f"{API_BASE}/me/player/currently-playing", headers=headers, timeout=_timeout())
    else:  # audio-features
        track_id = data.get("track_id")
        if not track_id:
            raise InvalidInput("audio-features needs data.track_id")
        resp = requests.get(f"{API_BASE}/audio-features/{track_id}", headers=headers, timeout=_timeout())

    if resp.status_code == 204:
        # currently-playing with nothing playing
        return 200, {}
    return resp.status_code, _json_or_empty(resp)


# -------------------------------
# Helpers used by the matcher
# -------------------------------
def _raise_for_upstream(status: int, body: Any, what: str) -> None:
    if 200 <= status < 300:
        return
    msg = body.get("error") if isinstance(body, dict) else None
    if isinstance(msg, dict):
        msg = msg.get("message")
    raise UpstreamError(f"{what} failed: {msg or status}", status_code=status, body=body)

def search_tracks(access_token: str, query: str, limit: int = 50) -> List[Dict[str, Any]]:
    status, body = call_action(access_token, "search", {"query": query, "type": "track", "limit": limit})
    _raise_for_upstream(status, body, "search")
    return ((body or {}).get("tracks") or {}).get("items") or []

def get_audio_features(access_token: str, track_id: str) -> Dict[str, Any]:
    status, body = call_action(access_token, "audio-features", {"track_id": track_id})
    _raise_for_upstream(status, body, f"audio-features {track_id}")
    return body or {}

def get_tempo(access_token: str, track_id: str) -> Optional[float]:
    tempo = get_audio_features(access_token, track_id).get("tempo")
    return float(tempo) if tempo else None
