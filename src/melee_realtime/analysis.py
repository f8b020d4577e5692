"""Batch conversion analysis over whole replays, as pandas DataFrames.

Runs the same frame-by-frame detector used for live streams over a finished
game, then classifies how each conversion opened.

Typical usage:
    from melee_realtime.analysis import classify_openings, conversions_to_dataframe, detect_conversions
    from melee_realtime.replay import read_replay

    settings, frames = read_replay("game.slp")
    df = conversions_to_dataframe(classify_openings(detect_conversions(settings, frames)))

    # Multi-game: across a replay directory
    all_conversions = analyze_conversions("replays")
"""

import logging
from itertools import groupby
from pathlib import Path
from typing import Iterable

import pandas as pd

from melee_realtime.conversions import ConversionEvents
from melee_realtime.enums import character_name
from melee_realtime.frames import FrameEntry, GameSettings
from melee_realtime.moves import move_name
from melee_realtime.records import ConversionRecord
from melee_realtime.source import FrameSource

logger = logging.getLogger(__name__)


def detect_conversions(
    settings: GameSettings,
    frames: Iterable[FrameEntry],
    include_open: bool = False,
) -> list[ConversionRecord]:
    """Run conversion detection over a recorded game.

    Args:
        settings: Game roster. Games that are not 1v1 yield no conversions.
        frames: Frames in increasing order.
        include_open: Also return the conversion still open at game end
            (its end_frame stays None).

    Returns:
        Records in the order they closed (open ones last, by start frame).
    """
    source = FrameSource()
    detector = ConversionEvents(source)
    closed = []
    with detector.end.subscribe(lambda payload: closed.append(payload.record)):
        source.replay(settings, frames)
    detector.detach()

    if include_open:
        closed.extend(r for r in detector.records if r.is_open)
    return closed


def classify_openings(records: list[ConversionRecord]) -> list[ConversionRecord]:
    """Set opening_type on records still marked "unknown".

    Conversions that start on the same frame are trades. Otherwise a
    conversion that starts before the opponent's latest conversion has
    ended is a counter-attack, and anything else is a neutral win.
    Records are updated in place and returned for chaining.
    """
    pending = sorted((r for r in records if r.opening_type == "unknown"), key=lambda r: r.start_frame)
    last_end_frame_by_player: dict[int, int | None] = {}

    for _, group in groupby(pending, key=lambda r: r.start_frame):
        group = list(group)
        is_trade = len(group) >= 2
        for record in group:
            last_end_frame_by_player[record.player_index] = record.end_frame
            if is_trade:
                record.opening_type = "trade"
                continue
            opp_end_frame = last_end_frame_by_player.get(record.opponent_index)
            is_counter = opp_end_frame is not None and opp_end_frame > record.start_frame
            record.opening_type = "counter-attack" if is_counter else "neutral-win"

    return records


def conversions_to_dataframe(
    records: list[ConversionRecord],
    settings: GameSettings | None = None,
) -> pd.DataFrame:
    """One row per conversion.

    Columns: player_index, opponent_index, start_frame, end_frame,
    start_pct, end_pct, damage, num_moves, num_hits, started_by, ended_by,
    killed, opening_type, hit_moves, hit_frames (plus character and
    opp_character when settings are given).
    """
    rows = []
    for r in records:
        end_pct = r.end_percent if r.end_percent is not None else r.current_percent
        row = {
            "player_index": r.player_index,
            "opponent_index": r.opponent_index,
            "start_frame": r.start_frame,
            "end_frame": r.end_frame,
            "start_pct": round(r.start_percent, 1),
            "end_pct": round(end_pct, 1),
            "damage": round(r.total_damage, 1),
            "num_moves": len(r.moves),
            "num_hits": sum(m.hit_count for m in r.moves),
            "started_by": move_name(r.moves[0].move_id) if r.moves else None,
            "ended_by": move_name(r.moves[-1].move_id) if r.moves else None,
            "killed": r.did_kill,
            "opening_type": r.opening_type,
            "hit_moves": [move_name(m.move_id) for m in r.moves],
            "hit_frames": [m.frame for m in r.moves],
        }
        if settings is not None:
            me = settings.player(r.player_index)
            opp = settings.player(r.opponent_index)
            row["character"] = character_name(me.character_id) if me else None
            row["opp_character"] = character_name(opp.character_id) if opp else None
        rows.append(row)
    return pd.DataFrame(rows)


def analyze_conversions(replay_root: str | Path) -> pd.DataFrame:
    """Detect and classify conversions across all 1v1 replays under a directory.

    Returns:
        DataFrame from conversions_to_dataframe() with a filename column,
        or an empty DataFrame if nothing was found.
    """
    from melee_realtime.replay import read_replay

    all_conversions = []
    errors = []

    for slp_file in sorted(Path(replay_root).rglob("*.slp")):
        try:
            settings, frames = read_replay(slp_file)
        except Exception as e:
            errors.append({"filename": slp_file.name, "error": str(e)})
            continue
        if len(settings.players) != 2:
            continue

        records = classify_openings(detect_conversions(settings, frames))
        df = conversions_to_dataframe(records, settings)
        if len(df) > 0:
            df["filename"] = slp_file.name
            all_conversions.append(df)

    if errors:
        print(f"Warning: {len(errors)} file(s) failed to parse:")
        for err in errors:
            print(f"  {err['filename']}: {err['error']}")

    if not all_conversions:
        return pd.DataFrame()

    result = pd.concat(all_conversions, ignore_index=True)
    logger.info(f"Found {len(result)} conversion(s) in {len(all_conversions)} game(s)")
    return result
