import threading
import time

import pytest

from cadence import pace
from cadence.exceptions import InvalidInput, SessionStateError
from cadence.models import Playlist
from cadence.session import PAUSED, RUNNING, STOPPED, PlaybackQueue, RunningSession, Ticker, simulate


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_ten_ticks_then_stop(seeded_rng):
    s = RunningSession(180, rng=seeded_rng)
    s.start()
    for _ in range(10):
        assert s.tick()
    snap = s.stop()

    assert snap.state == STOPPED
    assert snap.elapsed == 10
    assert snap.distance > 0
    # 7.5 mph +-5% for 10 s
    assert 7.5 / 360 * 0.95 <= snap.distance <= 7.5 / 360 * 1.05
    assert 177 <= snap.cadence <= 183


def test_current_pace_tracks_target(seeded_rng):
    s = RunningSession(180, rng=seeded_rng)
    assert s.current_pace == "0:00"
    s.start()
    assert s.current_pace == "0:00"
    for _ in range(60):
        s.tick()
    minutes, seconds = pace.parse_pace(s.current_pace)
    # 8:00/mile target, distance jitter keeps it within ~5%
    assert 7 * 60 + 30 <= minutes * 60 + seconds <= 8 * 60 + 30


def test_paused_ticks_change_nothing(seeded_rng):
    s = RunningSession(170, rng=seeded_rng)
    s.start()
    for _ in range(3):
        s.tick()
    s.pause()
    before = s.snapshot()
    for _ in range(5):
        assert not s.tick()
    after = s.snapshot()
    assert (after.elapsed, after.distance) == (before.elapsed, before.distance)
    assert after.state == PAUSED

    s.toggle_pause()
    assert s.state == RUNNING
    s.tick()
    assert s.snapshot().elapsed == 4


def test_cadence_is_clamped_near_range_edges(seeded_rng):
    s = RunningSession(200, rng=seeded_rng)
    s.start()
    for _ in range(50):
        s.tick()
        assert 197 <= s.cadence <= 200


def test_illegal_transitions():
    s = RunningSession(180)
    with pytest.raises(SessionStateError):
        s.pause()
    with pytest.raises(SessionStateError):
        s.resume()
    s.start()
    with pytest.raises(SessionStateError):
        s.start()
    s.stop()
    s.stop()  # idempotent
    with pytest.raises(SessionStateError):
        s.start()
    assert not s.tick()


def test_target_out_of_range():
    with pytest.raises(InvalidInput):
        RunningSession(100)


def test_ticker_drives_session_and_stop_cancels_it():
    s = RunningSession(180, interval=0.01)
    s.start()
    assert s.ticker_alive
    assert _wait_for(lambda: s.elapsed >= 3)
    snap = s.stop()
    assert not s.ticker_alive
    time.sleep(0.05)
    assert s.elapsed == snap.elapsed


def test_pause_cancels_ticker_and_resume_restarts_it():
    s = RunningSession(180, interval=0.01)
    s.start()
    assert _wait_for(lambda: s.elapsed >= 1)
    s.pause()
    assert not s.ticker_alive
    frozen = s.elapsed
    time.sleep(0.05)
    assert s.elapsed == frozen
    s.resume()
    assert _wait_for(lambda: s.elapsed > frozen)
    s.stop()


def test_context_exit_cancels_ticker_on_error():
    with pytest.raises(RuntimeError):
        with RunningSession(180, interval=0.01) as s:
            s.start()
            raise RuntimeError("component torn down")
    assert s.state == STOPPED
    assert not s.ticker_alive


def test_ticker_rejects_bad_interval():
    with pytest.raises(InvalidInput):
        Ticker(0, lambda: None)


def test_playback_queue_advances_and_wraps(make_track):
    q = PlaybackQueue(Playlist.of([make_track("a", 170, duration=3), make_track("b", 181, duration=2)]))
    assert q.current.id == "a"
    q.advance(2)
    assert (q.current.id, q.position) == ("a", 2)
    assert q.progress == pytest.approx(200 / 3)
    q.advance(1)
    assert (q.current.id, q.position) == ("b", 0)
    q.advance(2)
    assert q.current.id == "a"
    assert q.previous().id == "b"
    assert q.next().id == "a"


def test_playback_queue_starts_on_best_tempo(make_track):
    q = PlaybackQueue(Playlist.of([make_track("a", 150), make_track("b", 178), make_track("c", None)]))
    assert q.start_for_bpm(180).id == "b"
    with pytest.raises(InvalidInput):
        q.load("missing")


def test_empty_playback_queue():
    q = PlaybackQueue(Playlist())
    assert q.current is None
    assert q.next() is None
    q.advance(5)
    assert q.start_for_bpm(180) is None


def test_session_moves_playback_along(seeded_rng, make_track):
    q = PlaybackQueue(Playlist.of([make_track("a", 180, duration=5), make_track("b", 175, duration=5)]))
    s = RunningSession(180, rng=seeded_rng, playback=q)
    s.start()
    for _ in range(7):
        s.tick()
    snap = s.snapshot()
    assert snap.current_track.id == "b"
    assert snap.track_position == 2


def test_simulate_with_pause_is_repeatable(make_track):
    a = simulate(180, 10, pause_after=5, paused_ticks=10, seed=7)
    b = simulate(180, 10, pause_after=5, paused_ticks=10, seed=7)
    assert a.elapsed == 10
    assert a == b
    assert a.to_dict()["elapsed_str"] == "0:10"

    with_tracks = simulate(165, 3, seed=1, tracks=[make_track("slow", 150), make_track("near", 166)])
    assert with_tracks.current_track.id == "near"
    assert with_tracks.track_position == 3


def test_simulate_rejects_negative_ticks():
    with pytest.raises(InvalidInput):
        simulate(180, -1)


def _live_tickers(session):
    name = f"session-ticker-{id(session):x}"
    return [t for t in threading.enumerate() if t.name == name and t.is_alive()]


def test_resume_racing_pause_leaves_no_orphan_ticker():
    s = RunningSession(180, interval=0.01)
    s.start()
    first = s._ticker
    cancel_first = first.cancel

    def _resume_then_cancel():
        # another thread resumes before pause() gets to cancel its ticker
        s.resume()
        cancel_first()

    first.cancel = _resume_then_cancel
    s.pause()

    assert s.state == RUNNING
    assert not first.is_alive
    assert s.ticker_alive
    s.stop()
    assert not s.ticker_alive
    assert _live_tickers(s) == []


def test_concurrent_toggling_then_stop_cancels_every_ticker():
    s = RunningSession(180, interval=0.001)
    s.start()

    def _flip():
        for _ in range(50):
            try:
                s.toggle_pause()
            except SessionStateError:
                pass

    workers = [threading.Thread(target=_flip) for _ in range(4)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()
    s.stop()
    assert s.state == STOPPED
    assert _live_tickers(s) == []


def test_live_session_uses_configured_tick(settings):
    settings.SESSION_TICK_SECONDS = 0.01
    s = RunningSession.live(180)
    assert s.interval == 0.01
    with s:
        s.start()
        assert s.ticker_alive
        assert _wait_for(lambda: s.elapsed >= 2)
    assert not s.ticker_alive
    assert RunningSession.live(180, interval=0.5).interval == 0.5
