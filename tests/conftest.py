"""Shared pytest fixtures for melee-realtime tests.

Frames are built synthetically: player 0 attacks, player 1 defends, unless
a test says otherwise.
"""

import pytest

from melee_realtime.frames import FrameEntry, GameSettings, PlayerFrame, PlayerSettings
from melee_realtime.records import ConversionRecord, MoveLanded

WAIT = 14          # standing, in control
FALL = 29          # airborne, not in control
FAIR = 66
DAMAGE = 75        # hitstun
GRABBED = 223
DEAD = 0


def _player(frame: int, idx: int, **kw) -> PlayerFrame:
    return PlayerFrame(
        frame=frame,
        player_index=idx,
        action_state_id=kw.get("state", WAIT),
        action_state_counter=kw.get("counter"),
        percent=kw.get("percent", 0.0),
        stocks_remaining=kw.get("stocks", 4),
        last_attack_landed=kw.get("lal"),
    )


def build_entry(frame: int, p0: dict | None = None, p1: dict | None = None) -> FrameEntry:
    return FrameEntry(frame=frame, players={
        0: _player(frame, 0, **(p0 or {})),
        1: _player(frame, 1, **(p1 or {})),
    })


def build_punish_frames(last_frame: int = 60) -> list[FrameEntry]:
    """Frames 1-3 neutral, frame 4 a 5% fair, 5-6 hitstun, 7+ opponent standing."""
    frames = []
    for f in range(1, last_frame + 1):
        if f <= 3:
            frames.append(build_entry(f))
        elif f <= 6:
            frames.append(build_entry(
                f,
                p0={"state": FAIR, "counter": float(f - 3), "lal": 14},
                p1={"state": DAMAGE, "percent": 5.0},
            ))
        else:
            frames.append(build_entry(f, p1={"state": WAIT, "percent": 5.0}))
    return frames


@pytest.fixture
def make_entry():
    """Factory: make_entry(frame, p0={...}, p1={...}) -> FrameEntry."""
    return build_entry


@pytest.fixture
def punish_frames():
    return build_punish_frames()


@pytest.fixture
def settings():
    """1v1: Fox (index 0, port 1, human) vs Marth (index 1, port 2, human)."""
    return GameSettings(players=(
        PlayerSettings(player_index=0, port=1, character_id=2, name_tag="EG", netplay_code="EG#0"),
        PlayerSettings(player_index=1, port=2, character_id=9, netplay_code="BIRD#254"),
    ), stage_id=31)


@pytest.fixture
def make_record():
    """Factory for closed records: make_record(moves=[(move_id, damage), ...], ...)."""
    def _make(moves=(), player_index=0, opponent_index=1, did_kill=False, start_frame=10, end_frame=100):
        record = ConversionRecord(
            player_index=player_index,
            opponent_index=opponent_index,
            start_frame=start_frame,
            start_percent=0.0,
            current_percent=0.0,
            did_kill=did_kill,
        )
        for i, (move_id, damage) in enumerate(moves):
            record.moves.append(MoveLanded(frame=start_frame + i, move_id=move_id, hit_count=1, damage=damage))
        record.current_percent = record.total_damage
        record.end_frame = end_frame
        record.end_percent = record.total_damage
        return record
    return _make
