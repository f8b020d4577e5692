"""Load .slp replays into frame snapshots and game settings.

Decoding is done by peppi-py; this module only selects the post-frame
columns the conversion and combo detectors need and reshapes them.
"""

from pathlib import Path

import numpy as np
import pandas as pd
import pyarrow as pa
from peppi_py import read_slippi

from melee_realtime.frames import FrameEntry, GameSettings, PlayerSettings, frames_from_dataframes


def _arrow_to_numpy(arr: pa.Array) -> np.ndarray:
    """Convert a PyArrow array to numpy, handling nulls."""
    if arr.null_count == 0:
        return arr.to_numpy(zero_copy_only=False)
    # For arrays with nulls, convert to pandas (which handles nullable dtypes)
    return arr.to_pandas().values


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def _enum_name(value, default: str) -> str:
    if value is None:
        return default
    return value.name if hasattr(value, "name") else str(value)


def extract_player_frames(game, port_slot: int) -> pd.DataFrame:
    """Extract the post-frame columns for one port into a DataFrame.

    Args:
        game: A peppi-py game object from read_slippi().
        port_slot: The raw port slot (0-3) in game.frames.ports.

    Returns:
        DataFrame with frame, state, state_age, percent, stocks and
        last_attack_landed columns. Empty if the port has no data.
    """
    port_data = game.frames.ports[port_slot]
    if port_data is None or port_data.leader is None:
        return pd.DataFrame()

    post = port_data.leader.post
    data = {
        "frame": _arrow_to_numpy(game.frames.id),
        "state": _arrow_to_numpy(post.state),
        "percent": _arrow_to_numpy(post.percent),
        "stocks": _arrow_to_numpy(post.stocks),
        "last_attack_landed": _arrow_to_numpy(post.last_attack_landed),
    }
    # state_age is missing from replays older than Slippi 0.2.0
    data["state_age"] = _arrow_to_numpy(post.state_age) if post.state_age is not None else None
    return pd.DataFrame(data)


def game_settings(game) -> GameSettings:
    """Build the roster for a peppi-py game from its start block.

    Player indices are assigned in port order among active ports.
    """
    start = game.start
    active_players = [(i, p) for i, p in enumerate(start.players) if p is not None]
    players = []
    for idx, (slot, player) in enumerate(active_players):
        netplay = player.netplay
        players.append(PlayerSettings(
            player_index=idx,
            port=_enum_value(player.port) if player.port is not None else slot,
            character_id=player.character,
            player_type=_enum_name(player.type, "HUMAN"),
            name_tag=player.name_tag or None,
            netplay_code=netplay.code if netplay and netplay.code else None,
            netplay_name=netplay.name if netplay and netplay.name else None,
        ))
    return GameSettings(players=tuple(players), stage_id=start.stage)


def read_replay(filepath: str | Path) -> tuple[GameSettings, list[FrameEntry]]:
    """Read a .slp file into its roster and ordered frame snapshots.

    Returns:
        (settings, frames) where frames is sorted by frame index.
    """
    game = read_slippi(str(Path(filepath)))
    settings = game_settings(game)

    active_slots = [i for i, p in enumerate(game.start.players) if p is not None]
    player_dfs = {}
    for idx, slot in enumerate(active_slots):
        df = extract_player_frames(game, slot)
        if len(df) > 0:
            player_dfs[idx] = df

    return settings, frames_from_dataframes(player_dfs)
