"""Tests for melee_realtime.replay, using stand-in peppi-py objects."""

from types import SimpleNamespace

import pyarrow as pa
import pytest

pytest.importorskip("peppi_py")

from melee_realtime.replay import extract_player_frames, game_settings  # noqa: E402


def _port(states, percents, stocks, state_age=None):
    post = SimpleNamespace(
        state=pa.array(states, type=pa.uint16()),
        percent=pa.array(percents, type=pa.float32()),
        stocks=pa.array(stocks, type=pa.uint8()),
        last_attack_landed=pa.array([None] * len(states), type=pa.uint8()),
        state_age=pa.array(state_age, type=pa.float32()) if state_age is not None else None,
    )
    return SimpleNamespace(leader=SimpleNamespace(post=post))


def _game():
    frames = SimpleNamespace(
        id=pa.array([-123, -122, -121], type=pa.int32()),
        ports=[
            _port([14, 14, 66], [0.0, 0.0, 0.0], [4, 4, 4], state_age=[1.0, 2.0, 1.0]),
            None,
            _port([14, 75, 75], [0.0, 9.0, 9.0], [4, 4, 4]),
            None,
        ],
    )
    start = SimpleNamespace(
        stage=31,
        players=[
            SimpleNamespace(port=SimpleNamespace(value=0), character=2, type=SimpleNamespace(name="HUMAN"),
                            name_tag="", netplay=SimpleNamespace(code="EG#0", name="EG")),
            None,
            SimpleNamespace(port=SimpleNamespace(value=2), character=9, type=SimpleNamespace(name="CPU"),
                            name_tag="AAA", netplay=None),
            None,
        ],
    )
    return SimpleNamespace(frames=frames, start=start)


def test_extract_player_frames_columns():
    """Post-frame columns come out under the frame table names."""
    df = extract_player_frames(_game(), 0)
    assert list(df["frame"]) == [-123, -122, -121]
    assert list(df["state"]) == [14, 14, 66]
    assert list(df["state_age"]) == [1.0, 2.0, 1.0]
    assert df["last_attack_landed"].isna().all()


def test_extract_player_frames_empty_port():
    """An unused port gives an empty frame."""
    assert extract_player_frames(_game(), 1).empty


def test_extract_player_frames_without_state_age():
    """Old replays have no state_age column data."""
    df = extract_player_frames(_game(), 2)
    assert df["state_age"].isna().all()


def test_game_settings_indexes_active_ports():
    """Player indices follow the active ports in order."""
    settings = game_settings(_game())
    assert [p.player_index for p in settings.players] == [0, 1]
    assert [p.port for p in settings.players] == [0, 2]
    fox, marth = settings.players
    assert fox.netplay_code == "EG#0"
    assert fox.name_tag is None
    assert marth.is_cpu
    assert marth.name_tag == "AAA"
    assert settings.stage_id == 31
