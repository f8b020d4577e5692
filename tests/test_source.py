"""Tests for melee_realtime.source."""

import pytest

from melee_realtime.source import FrameSource


def test_replay_publishes_in_order(settings, make_entry):
    """Start, each frame, then end."""
    source = FrameSource()
    events = []
    source.game_start.subscribe(lambda s: events.append(("start", s)))
    source.player_frame.subscribe(lambda f: events.append(("frame", f.frame)))
    source.game_end.subscribe(lambda s: events.append(("end", s)))

    source.replay(settings, [make_entry(f) for f in (1, 2, 3)])
    assert events == [
        ("start", settings), ("frame", 1), ("frame", 2), ("frame", 3), ("end", settings),
    ]


def test_frames_must_increase(settings, make_entry):
    """Repeated frame numbers raise within a game."""
    source = FrameSource()
    source.start_game(settings)
    source.push_frame(make_entry(5))
    with pytest.raises(ValueError, match="strictly increasing"):
        source.push_frame(make_entry(5))

    # A new game starts the ordering over
    source.start_game(settings)
    source.push_frame(make_entry(1))


def test_close_stops_dispatch(settings, make_entry):
    """Nothing is dispatched after close."""
    source = FrameSource()
    frames = []
    source.player_frame.subscribe(frames.append)
    source.close()
    source.start_game(settings)
    source.push_frame(make_entry(1))
    assert frames == []


def test_end_game_stops_frame_dispatch(settings, make_entry):
    """Frames pushed after end_game are dropped until the next game starts."""
    source = FrameSource()
    frames = []
    source.player_frame.subscribe(lambda f: frames.append(f.frame))

    source.start_game(settings)
    source.push_frame(make_entry(1))
    source.end_game()
    source.push_frame(make_entry(2))
    assert frames == [1]

    source.start_game(settings)
    source.push_frame(make_entry(1))
    assert frames == [1, 1]


def test_frames_before_start_are_dropped(make_entry):
    """No game has started, so nothing is dispatched."""
    source = FrameSource()
    frames = []
    source.player_frame.subscribe(frames.append)
    source.push_frame(make_entry(1))
    assert frames == []
