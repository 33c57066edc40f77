# pace.py
"""
Pace <-> cadence conversion (min/mile vs steps per minute).

Linear model anchored at 180 spm for a 7.5 mph (8:00/mile) runner:
    bpm = 180 * speed_mph / 7.5      (clamped to 120..200)

Also holds the pace string helpers and the match-quality ladder used to
label how close a track's tempo is to the runner's target.
"""

from __future__ import annotations

import math
from typing import Tuple

from .exceptions import InvalidInput

# -------------------------------
# Constants
# -------------------------------
BASELINE_BPM = 180
BASELINE_SPEED_MPH = 7.5

MIN_BPM = 120
MAX_BPM = 200

# (max |track - target|, label), checked in order; anything past the last row is "poor"
MATCH_QUALITY_LADDER = (
    (1, "perfect"),
    (3, "excellent"),
    (5, "good"),
    (8, "fair"),
)
WORST_QUALITY = "poor"

QUICK_PACE_OPTIONS = [
    {"label": "Easy", "pace": "9:00", "bpm": 160},
    {"label": "Moderate", "pace": "8:00", "bpm": 175},
    {"label": "Tempo", "pace": "7:00", "bpm": 185},
    {"label": "Fast", "pace": "6:00", "bpm": 195},
]


# -------------------------------
# Small utilities
# -------------------------------
def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))

def clamp_bpm(bpm: float) -> int:
    return max(MIN_BPM, min(MAX_BPM, int(bpm)))

def _check_finite(**values) -> None:
    for name, v in values.items():
        try:
            ok = math.isfinite(v)
        except TypeError:
            raise InvalidInput(f"{name} must be a number, got {v!r}")
        if not ok:
            raise InvalidInput(f"{name} must be finite, got {v}")


# -------------------------------
# Conversion
# -------------------------------
def pace_to_bpm(minutes: float, seconds: float = 0) -> int:
    """Target cadence for a pace of ``minutes:seconds`` per mile, clamped to 120..200."""
    _check_finite(minutes=minutes, seconds=seconds)
    if minutes < 0:
        raise InvalidInput(f"minutes must be >= 0, got {minutes}")
    if not 0 <= seconds < 60:
        raise InvalidInput(f"seconds must be in [0, 60), got {seconds}")
    total_minutes = minutes + seconds / 60
    if total_minutes <= 0:
        raise InvalidInput("pace must be longer than 0:00")

    speed_mph = 60 / total_minutes
    return clamp_bpm(_round_half_up(BASELINE_BPM * speed_mph / BASELINE_SPEED_MPH))


def speed_mph_for_bpm(bpm: float) -> float:
    _check_finite(bpm=bpm)
    if bpm <= 0:
        raise InvalidInput(f"bpm must be positive, got {bpm}")
    return bpm / BASELINE_BPM * BASELINE_SPEED_MPH


def bpm_to_pace(bpm: float) -> Tuple[int, int]:
    """Inverse of pace_to_bpm; returns (minutes, seconds) per mile. Not clamped."""
    pace_minutes = 60 / speed_mph_for_bpm(bpm)
    if not math.isfinite(pace_minutes):
        raise InvalidInput(f"bpm {bpm} is too small to convert to a pace")
    return split_minutes(pace_minutes)


def split_minutes(pace_minutes: float) -> Tuple[int, int]:
    minutes = int(math.floor(pace_minutes))
    seconds = _round_half_up((pace_minutes - minutes) * 60)
    if seconds >= 60:
        minutes, seconds = minutes + 1, seconds - 60
    return max(0, minutes), max(0, seconds)


# -------------------------------
# Pace strings
# -------------------------------
def parse_pace(text: str) -> Tuple[int, int]:
    """
    "8:00" -> (8, 0); "8" -> (8, 0).
    Raises InvalidInput for anything that isn't a positive m:ss pace.
    """
    s = (text or "").strip()
    if not s:
        raise InvalidInput("pace is required (format m:ss)")
    parts = s.split(":")
    if len(parts) > 2 or not all(p.strip().isdigit() for p in parts):
        raise InvalidInput(f"pace must look like m:ss, got {text!r}")
    minutes = int(parts[0])
    seconds = int(parts[1]) if len(parts) == 2 else 0
    if seconds >= 60:
        raise InvalidInput(f"seconds must be below 60, got {seconds}")
    if minutes == 0 and seconds == 0:
        raise InvalidInput("pace must be longer than 0:00")
    return minutes, seconds


def format_pace_parts(minutes: int, seconds: int) -> str:
    return f"{minutes}:{seconds:02d}"

def format_pace(pace_minutes: float) -> str:
    return format_pace_parts(*split_minutes(pace_minutes))

def pace_string_for_bpm(bpm: float) -> str:
    return format_pace_parts(*bpm_to_pace(bpm))


def format_elapsed(seconds: int) -> str:
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"

def format_duration(seconds: float) -> str:
    mins, secs = divmod(int(seconds), 60)
    return f"{mins}:{secs:02d}"


# -------------------------------
# Match quality
# -------------------------------
def match_quality(track_bpm: float, target_bpm: float) -> str:
    diff = abs(track_bpm - target_bpm)
    for limit, label in MATCH_QUALITY_LADDER:
        if diff <= limit:
            return label
    return WORST_QUALITY


def sync_score(current_bpm: float, target_bpm: float) -> int:
    """0..100 gauge; every BPM off target costs 5 points."""
    return int(max(0, 100 - abs(current_bpm - target_bpm) * 5))
