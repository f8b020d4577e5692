"""Frame snapshots, game settings, and helpers for pairing consecutive frames.

A ``FrameEntry`` holds one post-frame ``PlayerFrame`` per player for a
single tick. Snapshots are immutable once built; the conversion and combo
adapters only ever read them.

Typical usage:
    from melee_realtime.frames import frames_from_dataframes, with_previous_frame

    frames = frames_from_dataframes(player_dfs)
    for prev, cur in with_previous_frame(frames):
        ...
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator

import pandas as pd

from melee_realtime.enums import character_name

# Columns read from per-player frame DataFrames
REQUIRED_COLUMNS = ("frame", "state", "percent", "stocks")
OPTIONAL_COLUMNS = ("state_age", "last_attack_landed")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlayerFrame:
    """Post-frame state of one player on one tick."""
    frame: int
    player_index: int
    action_state_id: int
    action_state_counter: float | None = None   # frames spent in the current state
    percent: float | None = None
    stocks_remaining: int | None = None
    last_attack_landed: int | None = None


@dataclass(frozen=True)
class FrameEntry:
    """All players' post-frame state for one tick."""
    frame: int
    players: dict[int, PlayerFrame] = field(default_factory=dict)


@dataclass(frozen=True)
class PlayerSettings:
    player_index: int
    port: int
    character_id: int | None = None
    player_type: str = "HUMAN"       # HUMAN / CPU / DEMO
    name_tag: str | None = None
    netplay_code: str | None = None
    netplay_name: str | None = None

    @property
    def character(self) -> str | None:
        return character_name(self.character_id) if self.character_id is not None else None

    @property
    def is_cpu(self) -> bool:
        return self.player_type.upper() == "CPU"

    @property
    def tags(self) -> list[str]:
        """Every identifying string for the player, most specific first."""
        return [t for t in (self.netplay_code, self.netplay_name, self.name_tag) if t]


@dataclass(frozen=True)
class GameSettings:
    """Roster for one game, as established at game start."""
    players: tuple[PlayerSettings, ...] = ()
    stage_id: int | None = None

    def player(self, player_index: int) -> PlayerSettings | None:
        for p in self.players:
            if p.player_index == player_index:
                return p
        return None


@dataclass(frozen=True)
class ParticipantPair:
    """One directional punish relationship: player_index hits opponent_index."""
    player_index: int
    opponent_index: int


# ---------------------------------------------------------------------------
# Roster helpers
# ---------------------------------------------------------------------------

def singles_player_permutations(settings: GameSettings) -> list[ParticipantPair]:
    """Both orientations of the two players in a singles game.

    Returns an empty list for any game that is not exactly 1v1.
    """
    if len(settings.players) != 2:
        return []
    p0, p1 = settings.players
    return [
        ParticipantPair(p0.player_index, p1.player_index),
        ParticipantPair(p1.player_index, p0.player_index),
    ]


# ---------------------------------------------------------------------------
# Frame pairing
# ---------------------------------------------------------------------------

def with_previous_frame(frames: Iterable[FrameEntry]) -> Iterator[tuple[FrameEntry, FrameEntry]]:
    """Yield (previous, current) pairs from an ordered frame sequence."""
    prev = None
    for frame in frames:
        if prev is not None:
            yield prev, frame
        prev = frame


def has_player_count(frame: FrameEntry, count: int = 2) -> bool:
    return len(frame.players) == count


# ---------------------------------------------------------------------------
# DataFrame conversion
# ---------------------------------------------------------------------------

def _optional_int(value) -> int | None:
    return None if value is None or pd.isna(value) else int(value)


def _optional_float(value) -> float | None:
    return None if value is None or pd.isna(value) else float(value)


def frames_from_dataframes(player_dfs: dict[int, pd.DataFrame]) -> list[FrameEntry]:
    """Build FrameEntry objects from per-player frame DataFrames.

    Args:
        player_dfs: Dict mapping player_index -> DataFrame with at least
            frame, state, percent and stocks columns (state_age and
            last_attack_landed are used when present).

    Returns:
        FrameEntry list sorted by frame. Rows with a missing state are
        dropped, so a frame only lists players that have data for it.
    """
    stacked = []
    for idx, df in player_dfs.items():
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Player {idx} frame data is missing columns: {missing}")
        cols = list(REQUIRED_COLUMNS) + [c for c in OPTIONAL_COLUMNS if c in df.columns]
        part = df[cols].copy()
        for c in OPTIONAL_COLUMNS:
            if c not in part.columns:
                part[c] = None
        part["player_index"] = idx
        stacked.append(part[part["state"].notna()])

    if not stacked:
        return []

    combined = pd.concat(stacked, ignore_index=True)
    entries = []
    for frame_id, group in combined.groupby("frame", sort=True):
        players = {}
        for row in group.itertuples(index=False):
            players[int(row.player_index)] = PlayerFrame(
                frame=int(frame_id),
                player_index=int(row.player_index),
                action_state_id=int(row.state),
                action_state_counter=_optional_float(row.state_age),
                percent=_optional_float(row.percent),
                stocks_remaining=_optional_int(row.stocks),
                last_attack_landed=_optional_int(row.last_attack_landed),
            )
        entries.append(FrameEntry(frame=int(frame_id), players=players))
    return entries
