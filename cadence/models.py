"""
Plain in-memory records. Nothing here is persisted: targets, playlists and
sessions live only as long as the request or the session object that owns them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from . import pace
from .exceptions import InvalidInput


@dataclass(frozen=True)
class Track:
    id: str
    title: str = ""
    artist: str = ""
    album: str = ""
    tempo: Optional[float] = None
    duration: float = 0          # seconds
    cover_url: Optional[str] = None
    uri: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise InvalidInput("track id is required")
        if self.duration is None or self.duration < 0:
            raise InvalidInput(f"track duration must be >= 0, got {self.duration}")

    @property
    def has_tempo(self) -> bool:
        return bool(self.tempo) and self.tempo > 0

    def with_tempo(self, tempo: Optional[float]) -> "Track":
        return replace(self, tempo=tempo)

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "Track":
        tempo = row.get("tempo", row.get("bpm"))
        return cls(
            id=str(row.get("id") or ""),
            title=row.get("title") or row.get("name") or "",
            artist=row.get("artist") or "",
            album=row.get("album") or "",
            tempo=float(tempo) if tempo is not None else None,
            duration=float(row.get("duration") or 0),
            cover_url=row.get("cover_url"),
            uri=row.get("uri"),
        )

    @classmethod
    def from_spotify(cls, item: Dict[str, Any], tempo: Optional[float] = None) -> "Track":
        album = item.get("album") or {}
        images = album.get("images") or []
        artists = item.get("artists") or []
        return cls(
            id=item["id"],
            title=item.get("name", ""),
            artist=", ".join(a.get("name", "") for a in artists if a.get("name")),
            album=album.get("name", ""),
            tempo=tempo,
            duration=(item.get("duration_ms") or 0) / 1000,
            cover_url=images[0]["url"] if images else None,
            uri=item.get("uri"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["duration_str"] = pace.format_duration(self.duration)
        return out


@dataclass
class Playlist:
    """Ordered tracks; insertion order is playback order."""
    tracks: List[Track] = field(default_factory=list)

    @classmethod
    def of(cls, tracks: Iterable[Track]) -> "Playlist":
        pl = cls()
        for t in tracks:
            pl.add(t)
        return pl

    def __len__(self):
        return len(self.tracks)

    def __iter__(self):
        return iter(self.tracks)

    def __contains__(self, track_id) -> bool:
        return any(t.id == track_id for t in self.tracks)

    @property
    def track_ids(self) -> List[str]:
        return [t.id for t in self.tracks]

    def add(self, track: Track) -> bool:
        """Append unless already present; False means it was a duplicate."""
        if track.id in self:
            return False
        self.tracks.append(track)
        return True

    def remove(self, track_id: str) -> Optional[Track]:
        for i, t in enumerate(self.tracks):
            if t.id == track_id:
                return self.tracks.pop(i)
        return None

    def index_of(self, track_id: str) -> int:
        for i, t in enumerate(self.tracks):
            if t.id == track_id:
                return i
        return -1

    @property
    def total_duration(self) -> float:
        return sum(t.duration for t in self.tracks)

    @property
    def total_minutes(self) -> int:
        return int(round(self.total_duration / 60))


@dataclass(frozen=True)
class TargetPace:
    bpm: int
    pace: str

    def __post_init__(self):
        if not pace.MIN_BPM <= self.bpm <= pace.MAX_BPM:
            raise InvalidInput(f"bpm must be in [{pace.MIN_BPM}, {pace.MAX_BPM}], got {self.bpm}")

    @classmethod
    def from_pace(cls, text: str) -> "TargetPace":
        minutes, seconds = pace.parse_pace(text)
        return cls(bpm=pace.pace_to_bpm(minutes, seconds), pace=pace.format_pace_parts(minutes, seconds))

    @classmethod
    def from_bpm(cls, bpm: int) -> "TargetPace":
        if isinstance(bpm, bool) or int(bpm) != bpm:
            raise InvalidInput(f"bpm must be a whole number, got {bpm!r}")
        return cls(bpm=int(bpm), pace=pace.pace_string_for_bpm(bpm))

    @property
    def speed_mph(self) -> float:
        return pace.speed_mph_for_bpm(self.bpm)

    def to_dict(self) -> Dict[str, Any]:
        return {"bpm": self.bpm, "pace": self.pace, "speed_mph": round(self.speed_mph, 2)}


@dataclass(frozen=True)
class SessionSnapshot:
    state: str
    target_bpm: int
    elapsed: int
    distance: float
    cadence: int
    current_pace: str
    current_track: Optional[Track] = None
    track_position: int = 0

    @property
    def sync_quality(self) -> str:
        return pace.match_quality(self.cadence, self.target_bpm)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "target_bpm": self.target_bpm,
            "elapsed": self.elapsed,
            "elapsed_str": pace.format_elapsed(self.elapsed),
            "distance": round(self.distance, 4),
            "distance_str": f"{self.distance:.2f}",
            "cadence": self.cadence,
            "current_pace": self.current_pace,
            "sync_quality": self.sync_quality,
            "sync_score": pace.sync_score(self.cadence, self.target_bpm),
            "current_track": self.current_track.to_dict() if self.current_track else None,
            "track_position": self.track_position,
        }
