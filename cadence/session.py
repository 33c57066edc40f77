# session.py
"""
Simulated running session.

RunningSession walks idle -> running <-> paused -> stopped. While running, one
tick per second advances elapsed time, distance (from the target cadence's
speed, +-5%) and a jittered cadence (target +-3, clamped 120..200). An
attached PlaybackQueue moves the current track's position along with it.

Ticks come either from a Ticker (background thread, real time) or from the
caller (interval=None), which is how tests and the simulate endpoint drive it.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Iterable, Optional

from . import pace
from .exceptions import InvalidInput, SessionStateError
from .matcher_engine import find_best_track
from .models import Playlist, SessionSnapshot, Track

log = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"
STOPPED = "stopped"

CADENCE_JITTER = 3
DISTANCE_JITTER = (0.95, 1.05)


class Ticker:
    """Calls `callback` every `interval` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "session-ticker"):
        if interval <= 0:
            raise InvalidInput(f"tick interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        # wait() returns True as soon as cancel() sets the event
        while not self._stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                log.exception("Ticker %s callback failed; stopping", self.name)
                return

    def cancel(self) -> None:
        self._stop.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=max(1.0, self.interval * 2))
        self._thread = None


class PlaybackQueue:
    """Where we are in the playlist; no audio, just positions."""

    def __init__(self, playlist: Playlist):
        self.playlist = playlist
        self.index = 0 if len(playlist) else -1
        self.position = 0

    @property
    def current(self) -> Optional[Track]:
        if 0 <= self.index < len(self.playlist):
            return self.playlist.tracks[self.index]
        return None

    @property
    def progress(self) -> float:
        t = self.current
        if not t or not t.duration:
            return 0.0
        return self.position / t.duration * 100

    def load(self, track_id: str) -> Track:
        i = self.playlist.index_of(track_id)
        if i < 0:
            raise InvalidInput(f"track {track_id!r} is not in the playlist")
        self.index, self.position = i, 0
        return self.current

    def _step(self, delta: int) -> Optional[Track]:
        if not len(self.playlist):
            return None
        self.index = (self.index + delta) % len(self.playlist)
        self.position = 0
        return self.current

    def next(self) -> Optional[Track]:
        return self._step(1)

    def previous(self) -> Optional[Track]:
        return self._step(-1)

    def advance(self, seconds: int = 1) -> None:
        for _ in range(seconds):
            t = self.current
            if t is None:
                return
            self.position = min(self.position + 1, int(t.duration))
            if self.position >= int(t.duration):
                self.next()

    def start_for_bpm(self, target_bpm: float) -> Optional[Track]:
        best = find_best_track(self.playlist.tracks, target_bpm)
        if best is None:
            return None
        return self.load(best.id)


class RunningSession:
    """
    One run. Use once: after stop() build a new session for the next run.

        with RunningSession(180, interval=1.0) as s:
            s.start()
            ...
        # leaving the block stops the session and its ticker
    """

    def __init__(
        self,
        target_bpm: int,
        interval: Optional[float] = None,
        rng: Optional[random.Random] = None,
        playback: Optional[PlaybackQueue] = None,
    ):
        if not pace.MIN_BPM <= target_bpm <= pace.MAX_BPM:
            raise InvalidInput(f"target bpm must be in [{pace.MIN_BPM}, {pace.MAX_BPM}], got {target_bpm}")
        self.target_bpm = int(target_bpm)
        self.interval = interval
        self.rng = rng or random.Random()
        self.playback = playback
        self._speed_mph = pace.speed_mph_for_bpm(self.target_bpm)
        self._lock = threading.Lock()
        self._ticker: Optional[Ticker] = None

        self.state = IDLE
        self.elapsed = 0
        self.distance = 0.0
        self.cadence = self.target_bpm

    # -- context manager: every exit path cancels the ticker
    def __enter__(self) -> "RunningSession":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    @classmethod
    def live(cls, target_bpm: int, interval: Optional[float] = None, **kwargs) -> "RunningSession":
        """Session ticked in real time; interval defaults to settings.SESSION_TICK_SECONDS."""
        if interval is None:
            from django.conf import settings
            interval = getattr(settings, "SESSION_TICK_SECONDS", 1.0)
        return cls(target_bpm, interval=interval, **kwargs)

    # -- transitions
    # Ticker swaps happen under the lock together with the state change;
    # joining the replaced ticker happens after the lock is released.
    def start(self) -> None:
        with self._lock:
            if self.state != IDLE:
                raise SessionStateError(f"cannot start a session that is {self.state}")
            self.elapsed, self.distance, self.cadence = 0, 0.0, self.target_bpm
            self.state = RUNNING
            old = self._swap_ticker(self._new_ticker())
        log.info("Session started at %d bpm", self.target_bpm)
        self._cancel(old)

    def pause(self) -> None:
        with self._lock:
            if self.state != RUNNING:
                raise SessionStateError(f"cannot pause a session that is {self.state}")
            self.state = PAUSED
            old = self._swap_ticker(None)
        self._cancel(old)

    def resume(self) -> None:
        with self._lock:
            if self.state != PAUSED:
                raise SessionStateError(f"cannot resume a session that is {self.state}")
            self.state = RUNNING
            old = self._swap_ticker(self._new_ticker())
        self._cancel(old)

    def toggle_pause(self) -> None:
        if self.state == PAUSED:
            self.resume()
        else:
            self.pause()

    def stop(self) -> SessionSnapshot:
        with self._lock:
            if self.state != STOPPED:
                log.info("Session stopped after %ds, %.2f mi", self.elapsed, self.distance)
            self.state = STOPPED
            old = self._swap_ticker(None)
        self._cancel(old)
        return self.snapshot()

    # -- ticking
    def tick(self) -> bool:
        """Advance one simulated second; ignored unless running."""
        with self._lock:
            if self.state != RUNNING:
                return False
            self.elapsed += 1
            jitter = self.rng.uniform(-CADENCE_JITTER, CADENCE_JITTER)
            self.cadence = pace.clamp_bpm(round(self.target_bpm + jitter))
            self.distance += self._speed_mph / 3600 * self.rng.uniform(*DISTANCE_JITTER)
            if self.playback is not None:
                self.playback.advance(1)
            return True

    def _new_ticker(self) -> Optional[Ticker]:
        if self.interval is None:
            return None
        return Ticker(self.interval, self.tick, name=f"session-ticker-{id(self):x}")

    def _swap_ticker(self, ticker: Optional[Ticker]) -> Optional[Ticker]:
        # caller holds self._lock
        old, self._ticker = self._ticker, ticker
        if ticker is not None:
            ticker.start()
        return old

    @staticmethod
    def _cancel(ticker: Optional[Ticker]) -> None:
        if ticker is not None:
            ticker.cancel()

    @property
    def ticker_alive(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive

    # -- derived values
    @property
    def current_pace(self) -> str:
        if self.distance <= 0:
            return "0:00"
        return pace.format_pace(self.elapsed / self.distance / 60)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            track = self.playback.current if self.playback else None
            return SessionSnapshot(
                state=self.state,
                target_bpm=self.target_bpm,
                elapsed=self.elapsed,
                distance=self.distance,
                cadence=self.cadence,
                current_pace=self.current_pace,
                current_track=track,
                track_position=self.playback.position if self.playback else 0,
            )


def simulate(
    target_bpm: int,
    ticks: int,
    pause_after: Optional[int] = None,
    paused_ticks: int = 0,
    seed: Optional[int] = None,
    tracks: Optional[Iterable[Track]] = None,
) -> SessionSnapshot:
    """Run a manually ticked session to completion and return where it ended."""
    if ticks < 0 or paused_ticks < 0:
        raise InvalidInput("ticks must be >= 0")
    playback = None
    if tracks:
        playback = PlaybackQueue(Playlist.of(tracks))
        playback.start_for_bpm(target_bpm)

    with RunningSession(target_bpm, rng=random.Random(seed), playback=playback) as session:
        session.start()
        for i in range(ticks):
            if pause_after is not None and i == pause_after:
                session.pause()
                for _ in range(paused_ticks):
                    session.tick()
                session.resume()
            session.tick()
        return session.stop()
