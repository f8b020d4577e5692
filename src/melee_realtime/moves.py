"""Move ID mappings for the last_attack_landed field in Slippi frame data.

These are NOT action state IDs; they are a separate ID system for attack types.
Source: slippi-js moves.json (project-slippi/slippi-js)
"""

MOVE_NAMES = {
    1: "Misc",
    2: "Jab",
    3: "Jab 2",
    4: "Jab 3",
    5: "Rapid Jabs",
    6: "Dash Attack",
    7: "F-tilt",
    8: "U-tilt",
    9: "D-tilt",
    10: "F-smash",
    11: "U-smash",
    12: "D-smash",
    13: "Nair",
    14: "Fair",
    15: "Bair",
    16: "Uair",
    17: "Dair",
    18: "Neutral B",
    19: "Side B",
    20: "Up B",
    21: "Down B",
    50: "Getup Attack",
    51: "Getup Attack (Slow)",
    52: "Pummel",
    53: "F-throw",
    54: "B-throw",
    55: "U-throw",
    56: "D-throw",
    61: "Edge Attack (Slow)",
    62: "Edge Attack",
}

PUMMEL = 52
UP_THROW = 55


def move_name(move_id: int | None) -> str:
    """Resolve a move ID (from last_attack_landed) to a human-readable name."""
    if move_id is None:
        return "Unknown"
    return MOVE_NAMES.get(move_id, f"Unknown ({move_id})")
