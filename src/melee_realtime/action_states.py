"""
Melee action state groupings and the per-frame predicates built on them.

Sources:
- slippi-js (project-slippi/slippi-js): State enum ranges in common.ts
- py-slippi (hohav/py-slippi): ActionState IntEnum from slippi/id.py

Only the common action states (0-340) are classified here. Character-specific
states that overlap the command-grab ranges are excluded where they are known
to be something else (e.g. DK's barrel wait).

Usage:
    from melee_realtime.action_states import is_damaged, is_in_control
    is_damaged(75)      # True  (DAMAGE_HI_1)
    is_in_control(14)   # True  (WAIT)
"""

import pandas as pd

# =============================================================================
# Timers (in frames, 60 per second)
# =============================================================================

PUNISH_RESET_FRAMES = 45
COMBO_STRING_RESET_FRAMES = 45

# =============================================================================
# Range boundaries (inclusive unless noted)
# =============================================================================

DYING_START, DYING_END = 0, 10                      # DeadDown .. DeadUpFallHitCameraIce
GROUNDED_CONTROL_START, GROUNDED_CONTROL_END = 14, 24  # Wait .. KneeBend
SQUAT_START, SQUAT_END = 39, 41                      # Squat .. SquatRv
GROUND_ATTACK_START, GROUND_ATTACK_END = 44, 64      # start is exclusive
DAMAGE_START, DAMAGE_END = 75, 91                    # DamageHi1 .. DamageFlyRoll
DAMAGE_FALL = 38
DOWN_START, DOWN_END = 183, 198                      # DownBoundU .. DownSpotD
JAB_RESET_UP, JAB_RESET_DOWN = 185, 193              # DownDamageU / DownDamageD
TECH_START, TECH_END = 199, 204                      # Passive .. PassiveCeil
GRAB = 212
CAPTURE_START, CAPTURE_END = 223, 232                # CapturePulledHi .. CaptureCut
COMMAND_GRAB_RANGE1 = (266, 304)
COMMAND_GRAB_RANGE2 = (327, 338)
BARREL_WAIT = 293

# =============================================================================
# Category sets
# =============================================================================

ACTION_STATE_CATEGORIES: dict[str, set[int]] = {
    "dying": set(range(DYING_START, DYING_END + 1)),
    "grounded_control": set(range(GROUNDED_CONTROL_START, GROUNDED_CONTROL_END + 1)),
    "squat": set(range(SQUAT_START, SQUAT_END + 1)),
    "ground_attack": set(range(GROUND_ATTACK_START + 1, GROUND_ATTACK_END + 1)),
    "damage": set(range(DAMAGE_START, DAMAGE_END + 1)) | {DAMAGE_FALL, JAB_RESET_UP, JAB_RESET_DOWN},
    "down": set(range(DOWN_START, DOWN_END + 1)),
    "tech": set(range(TECH_START, TECH_END + 1)) | {JAB_RESET_UP, JAB_RESET_DOWN},
    "grab": {GRAB},
    "grabbed": set(range(CAPTURE_START, CAPTURE_END + 1)),
    "command_grabbed": (
        set(range(COMMAND_GRAB_RANGE1[0], COMMAND_GRAB_RANGE1[1] + 1))
        | set(range(COMMAND_GRAB_RANGE2[0], COMMAND_GRAB_RANGE2[1] + 1))
    ) - {BARREL_WAIT},
}

ACTION_STATE_CATEGORIES["in_control"] = (
    ACTION_STATE_CATEGORIES["grounded_control"]
    | ACTION_STATE_CATEGORIES["squat"]
    | ACTION_STATE_CATEGORIES["ground_attack"]
    | ACTION_STATE_CATEGORIES["grab"]
)


# ---------------------------------------------------------------------------
# State predicates
# ---------------------------------------------------------------------------

def is_dead(state: int | None) -> bool:
    return state in ACTION_STATE_CATEGORIES["dying"]


def is_damaged(state: int | None) -> bool:
    """Hitstun, tumble, or a jab reset on the ground."""
    return state in ACTION_STATE_CATEGORIES["damage"]


def is_grabbed(state: int | None) -> bool:
    return state in ACTION_STATE_CATEGORIES["grabbed"]


def is_command_grabbed(state: int | None) -> bool:
    """Held by a character-specific grab (Bowser side-B, Kirby inhale, ...)."""
    return state in ACTION_STATE_CATEGORIES["command_grabbed"]


def is_teching(state: int | None) -> bool:
    return state in ACTION_STATE_CATEGORIES["tech"]


def is_down(state: int | None) -> bool:
    return state in ACTION_STATE_CATEGORIES["down"]


def is_in_control(state: int | None) -> bool:
    """True when the player is grounded and free to act.

    Covers standing/walking/dashing, crouching, grounded attacks and
    standing grab. Aerial states are not counted as control because the
    opponent may still be drifting out of a punish.
    """
    return state in ACTION_STATE_CATEGORIES["in_control"]


# ---------------------------------------------------------------------------
# Frame-pair predicates
# ---------------------------------------------------------------------------

def resolve_percent(value: float | None) -> float:
    """Resolve an optional percent to a number.

    Percent is absent on very old replays and NaN when it comes out of a
    nullable DataFrame column. Both resolve to 0.0.
    """
    if value is None or pd.isna(value):
        return 0.0
    return float(value)


def calc_damage_taken(frame, prev_frame) -> float:
    """Percent gained between two frames of the same player.

    Negative when the percent resets on a new stock.
    """
    return resolve_percent(frame.percent) - resolve_percent(prev_frame.percent)


def did_lose_stock(frame, prev_frame) -> bool:
    """True if the player's stock count dropped between the two frames."""
    if frame is None or prev_frame is None:
        return False
    if frame.stocks_remaining is None or prev_frame.stocks_remaining is None:
        return False
    return prev_frame.stocks_remaining - frame.stocks_remaining > 0
