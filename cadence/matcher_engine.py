# matcher_engine.py
"""
Tempo matcher: put the tracks whose tempo sits closest to the runner's target
cadence first.

- Tracks with unknown/zero tempo are dropped
- Ranking is a stable sort on |tempo - target| (ties keep catalog order)
- Tempos come from an injected lookup (Spotify audio-features in production),
  resolved concurrently; a failed lookup only drops that one track
- Returns JSON-friendly dicts with 'tracks' and 'meta', like the other engines

Env:
    SEARCH_LIMIT, TEMPO_LOOKUP_WORKERS, PLAYLIST_SIZE
"""

from __future__ import annotations
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

# Import module so tests can monkeypatch cadence.spotify_utils.search_tracks / get_tempo / get_audio_features
from . import spotify_utils
from .exceptions import InvalidInput
from .models import Track
from .pace import match_quality

log = logging.getLogger(__name__)

TrackLike = Union[Track, Dict[str, Any]]
TempoLookup = Callable[[str], Optional[float]]


# -------------------------------
# Config (override via kwargs)
# -------------------------------
DEFAULTS = dict(
    SEARCH_LIMIT=int(os.getenv("SEARCH_LIMIT", "50")),
    TEMPO_LOOKUP_WORKERS=int(os.getenv("TEMPO_LOOKUP_WORKERS", "8")),
    PLAYLIST_SIZE=int(os.getenv("PLAYLIST_SIZE", "20")),
)

GENRES = ("pop", "rock", "electronic", "hip-hop", "indie", "classical")

# Spotify audio-features energy (0..1) accepted for each level; upper bound exclusive except for "high"
ENERGY_LEVELS = {
    "low": (0.0, 0.4),
    "medium": (0.4, 0.7),
    "high": (0.7, 1.0),
}


# -------------------------------
# Small utilities
# -------------------------------
def _field(track: TrackLike, name: str):
    if isinstance(track, dict):
        return track.get(name)
    return getattr(track, name, None)

def _tempo(track: TrackLike) -> float:
    t = _field(track, "tempo")
    try:
        t = float(t)
    except (TypeError, ValueError):
        return 0.0
    return t if math.isfinite(t) and t > 0 else 0.0

def _check_target(target_bpm: float) -> float:
    try:
        target = float(target_bpm)
    except (TypeError, ValueError):
        raise InvalidInput(f"target BPM must be a number, got {target_bpm!r}")
    if not math.isfinite(target) or target < 0:
        raise InvalidInput(f"target BPM must be >= 0, got {target_bpm}")
    return target


# -------------------------------
# Pure ranking
# -------------------------------
def rank_by_tempo(tracks: Iterable[TrackLike], target_bpm: float) -> List[TrackLike]:
    target = _check_target(target_bpm)
    known = [t for t in tracks if _tempo(t) > 0]
    # list.sort is stable, so equal distances keep catalog order
    known.sort(key=lambda t: abs(_tempo(t) - target))
    return known


def dedupe_by_id(tracks: Iterable[TrackLike]) -> List[TrackLike]:
    seen = set()
    out = []
    for t in tracks:
        key = _field(t, "id")
        if key in seen:
            continue
        seen.add(key)
        out.append(t)
    return out


def find_best_track(tracks: Iterable[TrackLike], target_bpm: float) -> Optional[TrackLike]:
    ranked = rank_by_tempo(tracks, target_bpm)
    return ranked[0] if ranked else None


# -------------------------------
# Tempo lookup (concurrent, failure isolated)
# -------------------------------
def lookup_tempos(
    tracks: Sequence[Track],
    tempo_lookup: TempoLookup,
    max_workers: int = 8,
) -> Tuple[List[Track], List[str]]:
    """
    Resolve every track's tempo through tempo_lookup(track_id).
    Returns (tracks with tempo attached, in input order; ids whose lookup raised).
    """
    if not tracks:
        return [], []

    results: Dict[int, Optional[float]] = {}
    failed: List[str] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tracks)))) as executor:
        future_map = {executor.submit(tempo_lookup, t.id): i for i, t in enumerate(tracks)}
        for future in as_completed(future_map):
            i = future_map[future]
            try:
                results[i] = future.result()
            except Exception as exc:
                log.warning("Tempo lookup failed for %s: %s", tracks[i].id, exc)
                failed.append(tracks[i].id)

    resolved = [t.with_tempo(results[i]) for i, t in enumerate(tracks) if i in results]
    # as_completed order is arbitrary; report failures in catalog order
    order = {t.id: i for i, t in enumerate(tracks)}
    failed.sort(key=lambda tid: order.get(tid, 0))
    return resolved, failed


def _track_payload(track: Track, target: float) -> Dict[str, Any]:
    row = track.to_dict()
    if track.has_tempo:
        row["match_quality"] = match_quality(track.tempo, target)
        row["tempo_diff"] = round(abs(track.tempo - target), 2)
    return row


def rank_with_tempo_lookup(
    tracks: Iterable[Track],
    target_bpm: float,
    tempo_lookup: TempoLookup,
    **overrides,
) -> Dict[str, Any]:
    """
    Returns: {"tracks": [...], "meta": {...}}
    """
    cfg = {**DEFAULTS, **overrides}
    target = _check_target(target_bpm)

    tracks = list(tracks)
    unique = dedupe_by_id(tracks)
    resolved, failed = lookup_tempos(unique, tempo_lookup, int(cfg["TEMPO_LOOKUP_WORKERS"]))
    ranked = rank_by_tempo(resolved, target)

    return {
        "tracks": [_track_payload(t, target) for t in ranked],
        "meta": {
            "target_bpm": target_bpm,
            "failed": failed,
            "counts": {
                "fetched": len(tracks),
                "dedup": len(unique),
                "with_tempo": sum(1 for t in resolved if t.has_tempo),
                "failed": len(failed),
                "returned": len(ranked),
            },
        },
    }


def rank_catalog(tracks: Iterable[Track], target_bpm: float, dedupe: bool = True) -> Dict[str, Any]:
    """Rank tracks whose tempo is already known (no lookups)."""
    target = _check_target(target_bpm)
    tracks = list(tracks)
    unique = dedupe_by_id(tracks) if dedupe else tracks
    ranked = rank_by_tempo(unique, target)
    return {
        "tracks": [_track_payload(t, target) for t in ranked],
        "meta": {
            "target_bpm": target_bpm,
            "counts": {"fetched": len(tracks), "dedup": len(unique), "returned": len(ranked)},
        },
    }


# -------------------------------
# Spotify-backed flows
# -------------------------------
def _spotify_tempo_lookup(access_token: str) -> TempoLookup:
    def _lookup(track_id: str) -> Optional[float]:
        return spotify_utils.get_tempo(access_token, track_id)
    return _lookup


def search_and_rank(access_token: str, query: str, target_bpm: Optional[float] = None, **overrides) -> Dict[str, Any]:
    """
    Search Spotify; with a target BPM, attach tempos and rank by closeness.
    Without one, the search order is kept.
    """
    cfg = {**DEFAULTS, **overrides}
    items = spotify_utils.search_tracks(access_token, query, limit=int(cfg["SEARCH_LIMIT"]))
    tracks = [Track.from_spotify(it) for it in items if it and it.get("id")]
    log.info("Search %r returned %d tracks", query, len(tracks))

    if target_bpm is None or not tracks:
        return {
            "tracks": [t.to_dict() for t in tracks],
            "meta": {"query": query, "target_bpm": target_bpm,
                     "counts": {"fetched": len(tracks), "returned": len(tracks)}},
        }

    out = rank_with_tempo_lookup(tracks, target_bpm, _spotify_tempo_lookup(access_token), **cfg)
    out["meta"]["query"] = query
    return out


def optimize_playlist(access_token: str, tracks: Iterable[Track], target_bpm: float, **overrides) -> Dict[str, Any]:
    """Reorder an existing playlist by tempo match; tracks without a tempo drop out."""
    return rank_with_tempo_lookup(tracks, target_bpm, _spotify_tempo_lookup(access_token), **overrides)


def _energy_matches(energy: Optional[float], level: str) -> bool:
    if energy is None:
        return True
    low, high = ENERGY_LEVELS[level]
    if level == "high":
        return low <= energy <= high
    return low <= energy < high


def generate_playlist(
    access_token: str,
    target_bpm: float,
    genres: Sequence[str] = ("pop",),
    energy: str = "medium",
    **overrides,
) -> Dict[str, Any]:
    """
    Build a running playlist from scratch.

    - One Spotify search per genre (query: genre:"<name>")
    - Dedupe across genres, first genre wins
    - Tempo and energy from audio-features, looked up concurrently
    - Tracks whose energy is outside the chosen level drop out (unknown energy stays)
    - Ranked by tempo closeness, cut to PLAYLIST_SIZE

    Returns: {"tracks": [...], "meta": {...}}
    """
    cfg = {**DEFAULTS, **overrides}
    target = _check_target(target_bpm)
    genres = list(dict.fromkeys(genres))
    if not genres:
        raise InvalidInput("pick at least one genre")
    unknown = [g for g in genres if g not in GENRES]
    if unknown:
        raise InvalidInput(f"unknown genre(s): {', '.join(unknown)}")
    if energy not in ENERGY_LEVELS:
        raise InvalidInput(f"energy must be one of {', '.join(ENERGY_LEVELS)}, got {energy!r}")

    fetched: List[Track] = []
    genre_of: Dict[str, str] = {}
    for genre in genres:
        items = spotify_utils.search_tracks(access_token, f'genre:"{genre}"', limit=int(cfg["SEARCH_LIMIT"]))
        for it in items:
            if not it or not it.get("id"):
                continue
            fetched.append(Track.from_spotify(it))
            genre_of.setdefault(it["id"], genre)
    unique = dedupe_by_id(fetched)
    log.info("Generate: %d tracks from %s, %d unique", len(fetched), genres, len(unique))

    # dict writes from worker threads; each id is written once
    energies: Dict[str, Optional[float]] = {}

    def _lookup(track_id: str) -> Optional[float]:
        feats = spotify_utils.get_audio_features(access_token, track_id)
        e = feats.get("energy")
        energies[track_id] = float(e) if e is not None else None
        tempo = feats.get("tempo")
        return float(tempo) if tempo else None

    resolved, failed = lookup_tempos(unique, _lookup, int(cfg["TEMPO_LOOKUP_WORKERS"]))
    kept = [t for t in resolved if _energy_matches(energies.get(t.id), energy)]
    ranked = rank_by_tempo(kept, target)[: int(cfg["PLAYLIST_SIZE"])]

    rows = []
    for t in ranked:
        row = _track_payload(t, target)
        row["genre"] = genre_of.get(t.id)
        row["energy"] = energies.get(t.id)
        rows.append(row)

    return {
        "tracks": rows,
        "meta": {
            "target_bpm": target_bpm,
            "genres": genres,
            "energy": energy,
            "failed": failed,
            "counts": {
                "fetched": len(fetched),
                "dedup": len(unique),
                "with_tempo": sum(1 for t in resolved if t.has_tempo),
                "failed": len(failed),
                "energy_match": len(kept),
                "returned": len(ranked),
            },
        },
    }
