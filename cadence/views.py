import logging

import requests
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import matcher_engine, session, spotify_utils
from .exceptions import AuthError, InvalidInput, UpstreamError
from .models import TargetPace
from .pace import QUICK_PACE_OPTIONS
from .serializers import (
    GenerateRequestSerializer,
    MatchRequestSerializer,
    OptimizeRequestSerializer,
    PaceRequestSerializer,
    SearchRequestSerializer,
    SimulateRequestSerializer,
    SpotifyAuthRequestSerializer,
    SpotifyProxyRequestSerializer,
)

log = logging.getLogger(__name__)


def _notice(title: str, description: str, variant: str = "default") -> dict:
    return {"title": title, "description": description, "variant": variant}

def _invalid(exc: InvalidInput) -> Response:
    return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


class HelpAPIView(APIView):
    """GET describes the endpoint; subclasses implement POST."""
    HELP_CONTENT: dict = {}

    def get(self, request):
        return Response(self.HELP_CONTENT)


class PaceAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/pace/",
        "method": "POST",
        "message": "POST a pace (min/mile) to get the target cadence, or a BPM to get the matching pace.",
        "required": {
            "pace": "String 'm:ss' per mile, e.g. '8:00'. Send this or 'bpm'.",
            "bpm": "Integer 120-200. Send this or 'pace'.",
        },
        "quick_options": QUICK_PACE_OPTIONS,
        "example_request": {"pace": "8:00"},
        "curl_example": "curl -X POST http://localhost:8000/api/pace/ -H 'Content-Type: application/json' -d '{\"pace\": \"8:00\"}'",
    }

    def post(self, request):
        serializer = PaceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            if serializer.validated_data.get("pace"):
                target = TargetPace.from_pace(serializer.validated_data["pace"])
            else:
                target = TargetPace.from_bpm(serializer.validated_data["bpm"])
        except InvalidInput as exc:
            return _invalid(exc)
        return Response(target.to_dict())


class TrackMatchAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/match/",
        "method": "POST",
        "message": "POST a target BPM and tracks with known tempos; tracks come back closest tempo first.",
        "required": {
            "target_bpm": "Number >= 0.",
            "tracks": "List of {id, title, artist, album, tempo, duration}. Tracks without tempo are dropped.",
        },
        "optional": {"dedupe": "Boolean (default true). Drop repeated ids, first one wins."},
        "example_request": {
            "target_bpm": 180,
            "tracks": [{"id": "a", "title": "Thunder Runner", "tempo": 183},
                       {"id": "b", "title": "Pace Perfect", "tempo": 179}],
        },
    }

    def post(self, request):
        serializer = MatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            out = matcher_engine.rank_catalog(data["tracks"], data["target_bpm"], dedupe=data["dedupe"])
        except InvalidInput as exc:
            return _invalid(exc)
        return Response(out)


class SpotifyAuthAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/spotify/auth/",
        "method": "POST",
        "message": "Exchange a Spotify authorization code for an access token.",
        "required": {"code": "Authorization code from the Spotify redirect.",
                     "redirect_uri": "The same redirect URI used to request the code."},
    }

    def post(self, request):
        serializer = SpotifyAuthRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        redirect_uri = serializer.validated_data["redirect_uri"] or settings.SPOTIFY_REDIRECT_URI
        try:
            token = spotify_utils.exchange_code_for_token(serializer.validated_data["code"], redirect_uri)
        except AuthError as exc:
            log.warning("Token exchange failed: %s", exc)
            return Response({"error": str(exc), "details": repr(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except requests.RequestException as exc:
            log.exception("Token exchange request failed")
            return Response({"error": str(exc), "details": repr(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(token)


class SpotifyProxyAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/spotify/",
        "method": "POST",
        "message": "Forward one action to the Spotify Web API with the caller's access token.",
        "required": {
            "access_token": "Spotify user access token.",
            "action": "One of: " + ", ".join(sorted(spotify_utils.ACTIONS)) + ".",
        },
        "optional": {
            "data": "Action payload: search {query, type, limit}; play {uris}; audio-features {track_id}.",
        },
        "example_request": {"access_token": "<token>", "action": "search", "data": {"query": "running"}},
    }

    def post(self, request):
        serializer = SpotifyProxyRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            upstream_status, body = spotify_utils.call_action(data["access_token"], data["action"], data["data"])
        except InvalidInput as exc:
            return _invalid(exc)
        except Exception as exc:
            log.exception("Spotify %s failed", data["action"])
            return Response({"error": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        if upstream_status >= 400 and not (isinstance(body, dict) and "error" in body):
            body = {"error": body or f"Spotify returned {upstream_status}"}
        return Response(body, status=upstream_status)


class TrackSearchAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/spotify/search/",
        "method": "POST",
        "message": "Search Spotify tracks; with target_bpm the results are ranked by tempo closeness.",
        "required": {"access_token": "Spotify user access token.", "query": "Search text."},
        "optional": {"target_bpm": "Number. Drops tracks without tempo and ranks the rest.",
                     "limit": "1-50 (default 50)."},
    }

    def post(self, request):
        serializer = SearchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        overrides = {"SEARCH_LIMIT": data.get("limit", settings.SEARCH_LIMIT),
                     "TEMPO_LOOKUP_WORKERS": settings.TEMPO_LOOKUP_WORKERS}
        try:
            out = matcher_engine.search_and_rank(data["access_token"], data["query"], data["target_bpm"], **overrides)
        except InvalidInput as exc:
            return _invalid(exc)
        except UpstreamError as exc:
            log.warning("Search failed: %s", exc)
            return Response(
                {"error": str(exc),
                 "notice": _notice("Search failed", "Unable to search tracks. Please try again.", "destructive")},
                status=exc.status_code,
            )
        except requests.RequestException as exc:
            log.exception("Search request failed")
            return Response(
                {"error": str(exc),
                 "notice": _notice("Search failed", "Unable to search tracks. Please try again.", "destructive")},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if not out["tracks"]:
            out["notice"] = _notice("No results found", "Try searching with different keywords.")
        return Response(out)


class PlaylistOptimizeAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/playlist/optimize/",
        "method": "POST",
        "message": "Reorder a playlist by tempo match; tempos are fetched from Spotify audio-features.",
        "required": {"access_token": "Spotify user access token.", "target_bpm": "Number >= 0.",
                     "tracks": "Playlist tracks in current order (at least id)."},
    }

    def post(self, request):
        serializer = OptimizeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            out = matcher_engine.optimize_playlist(
                data["access_token"], data["tracks"], data["target_bpm"],
                TEMPO_LOOKUP_WORKERS=settings.TEMPO_LOOKUP_WORKERS,
            )
        except InvalidInput as exc:
            return _invalid(exc)
        except Exception as exc:
            log.exception("Playlist optimization failed")
            return Response(
                {"error": str(exc),
                 "notice": _notice("Optimization failed", "Unable to optimize playlist. Please try again.",
                                   "destructive")},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        out["notice"] = _notice("Playlist optimized", "Tracks reordered by BPM match for better sync.")
        return Response(out)


class PlaylistGenerateAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/playlist/generate/",
        "method": "POST",
        "message": "Build a playlist for a target BPM from Spotify genre searches, filtered by energy level.",
        "required": {"access_token": "Spotify user access token.", "target_bpm": "Number >= 0."},
        "optional": {
            "genres": "List from: " + ", ".join(matcher_engine.GENRES) + " (default ['pop']).",
            "energy": "One of: low (steady), medium (moderate), high (default medium).",
            "size": "1-50 tracks (default 20).",
        },
        "example_request": {"access_token": "<token>", "target_bpm": 175, "genres": ["rock", "indie"],
                            "energy": "high"},
    }

    def post(self, request):
        serializer = GenerateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        overrides = {"SEARCH_LIMIT": settings.SEARCH_LIMIT,
                     "TEMPO_LOOKUP_WORKERS": settings.TEMPO_LOOKUP_WORKERS,
                     "PLAYLIST_SIZE": data.get("size", settings.PLAYLIST_SIZE)}
        try:
            out = matcher_engine.generate_playlist(
                data["access_token"], data["target_bpm"], data["genres"], energy=data["energy"], **overrides
            )
        except InvalidInput as exc:
            return _invalid(exc)
        except UpstreamError as exc:
            log.warning("Playlist generation failed: %s", exc)
            return Response(
                {"error": str(exc),
                 "notice": _notice("Generation failed", "Unable to generate playlist. Please try again.",
                                   "destructive")},
                status=exc.status_code,
            )
        except requests.RequestException as exc:
            log.exception("Playlist generation request failed")
            return Response(
                {"error": str(exc),
                 "notice": _notice("Generation failed", "Unable to generate playlist. Please try again.",
                                   "destructive")},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if not out["tracks"]:
            out["notice"] = _notice("No tracks matched", "Try more genres or a different energy level.")
        else:
            out["notice"] = _notice("Playlist generated", f"{len(out['tracks'])} tracks near {data['target_bpm']:g} BPM.")
        return Response(out)


class SessionSimulateAPIView(HelpAPIView):
    HELP_CONTENT = {
        "endpoint": "/api/session/simulate/",
        "method": "POST",
        "message": "Run a simulated session for N one-second ticks and return the final metrics.",
        "required": {"target_bpm": "Integer 120-200.", "ticks": "Seconds of running to simulate."},
        "optional": {
            "pause_after": "Pause once after this many ticks.",
            "paused_ticks": "Ticks that elapse while paused (they change nothing).",
            "seed": "Integer seed for repeatable output.",
            "tracks": "Playlist to play along; starts at the closest tempo.",
        },
        "example_request": {"target_bpm": 180, "ticks": 600, "seed": 7},
    }

    def post(self, request):
        serializer = SimulateRequestSerializer(
            data=request.data, context={"max_ticks": settings.SIMULATE_MAX_TICKS}
        )
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            snap = session.simulate(
                data["target_bpm"],
                data["ticks"],
                pause_after=data["pause_after"],
                paused_ticks=data["paused_ticks"],
                seed=data["seed"],
                tracks=data["tracks"],
            )
        except InvalidInput as exc:
            return _invalid(exc)
        return Response(snap.to_dict())
