"""Tests for melee_realtime.combos."""

from melee_realtime.action_states import COMBO_STRING_RESET_FRAMES
from melee_realtime.combos import ComboEvents, handle_combo_compute
from melee_realtime.conversions import PlayerConversionState
from melee_realtime.frames import ParticipantPair, with_previous_frame
from melee_realtime.records import ComboEvent
from melee_realtime.source import FrameSource

FALL = 29
FAIR = 66
DAMAGE = 75
DOWN = 183
COMMAND_GRABBED = 266


def _events(frames):
    state = PlayerConversionState()
    out = []
    for prev, cur in with_previous_frame(frames):
        for kind, record in handle_combo_compute(state, ParticipantPair(0, 1), prev, cur):
            out.append((cur.frame, kind, record))
    return state, out


def test_start_extend_end(make_entry):
    """Start and extend on the opening hit, end once the opponent has been free too long."""
    frames = [make_entry(1, p0={"state": FAIR, "counter": 1.0})]
    frames.append(make_entry(2, p0={"state": FAIR, "counter": 2.0, "lal": 14},
                             p1={"state": DAMAGE, "percent": 10.0}))
    frames += [make_entry(f, p1={"state": FALL, "percent": 10.0}) for f in range(3, 60)]
    state, events = _events(frames)

    kinds = [(f, k) for f, k, _ in events]
    # The opening hit starts the combo, then extends it with its first move
    assert kinds[:2] == [(2, ComboEvent.START), (2, ComboEvent.EXTEND)]
    end_frame = 2 + COMBO_STRING_RESET_FRAMES + 1
    assert kinds[2] == (end_frame, ComboEvent.END)
    assert len(events) == 3
    record = events[2][2]
    assert record.end_frame == end_frame
    assert record.end_percent == 10.0
    assert state.conversion is None


def test_downed_opponent_keeps_combo_alive(make_entry):
    """Lying on the ground doesn't advance the combo counter."""
    frames = [make_entry(1), make_entry(2, p1={"state": DAMAGE, "percent": 10.0})]
    frames += [make_entry(f, p1={"state": DOWN, "percent": 10.0}) for f in range(3, 100)]
    state, events = _events(frames)
    assert [k for _, k, _ in events] == [ComboEvent.START, ComboEvent.EXTEND]
    assert state.reset_counter == 0


def test_command_grab_starts_combo(make_entry):
    """Command grabs open a combo without landing a move."""
    frames = [make_entry(1), make_entry(2, p1={"state": COMMAND_GRABBED})]
    state, events = _events(frames)
    assert [k for _, k, _ in events] == [ComboEvent.START]
    assert state.conversion.moves == []


def test_combo_kill(make_entry):
    """A stock loss ends the combo as a kill."""
    frames = [
        make_entry(1),
        make_entry(2, p1={"state": DAMAGE, "percent": 90.0}),
        make_entry(3, p1={"state": 0, "percent": 0.0, "stocks": 3}),
    ]
    _, events = _events(frames)
    assert events[-1][1] == ComboEvent.END
    assert events[-1][2].did_kill


def test_combo_events_streams(settings, make_entry):
    """ComboEvents publishes combo events and closed conversions from one feed."""
    frames = [make_entry(1, p0={"state": FAIR, "counter": 1.0})]
    frames.append(make_entry(2, p0={"state": FAIR, "counter": 2.0, "lal": 14},
                             p1={"state": DAMAGE, "percent": 10.0}))
    frames += [make_entry(f, p1={"state": FALL, "percent": 10.0}) for f in range(3, 60)]
    frames.append(make_entry(60, p1={"state": 0, "percent": 0.0, "stocks": 3}))

    source = FrameSource()
    combo = ComboEvents(source)
    seen = []
    for kind in ComboEvent:
        combo.stream(kind).subscribe(lambda p, kind=kind: seen.append((kind, p.record.end_frame)))
    source.replay(settings, frames)

    combo_end = 2 + COMBO_STRING_RESET_FRAMES + 1
    assert seen == [
        (ComboEvent.START, None),
        (ComboEvent.EXTEND, None),
        (ComboEvent.END, combo_end),
        # The conversion stays open while the opponent is airborne, until the kill
        (ComboEvent.CONVERSION, 60),
    ]
    assert len(combo.records) == 1
    assert len(combo.conversions.records) == 1


def test_combo_events_reset_on_game_start(settings, make_entry):
    """A new game clears both the combo and conversion registries."""
    combo = ComboEvents()
    combo.start_game(settings)
    combo.process_frame(make_entry(1), make_entry(2, p1={"state": DAMAGE, "percent": 4.0}))
    assert len(combo.records) == 1
    assert len(combo.conversions.records) == 1

    combo.start_game(settings)
    assert combo.records == []
    assert combo.conversions.records == []
