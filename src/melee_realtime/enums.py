"""Melee character ID mappings used by roster-based combo criteria.

Character IDs in the game start block are the external IDs below.
Criteria accept either the numeric ID or the name.
"""

CHARACTER_NAMES = {
    0: "Captain Falcon",
    1: "Donkey Kong",
    2: "Fox",
    3: "Mr. Game & Watch",
    4: "Kirby",
    5: "Bowser",
    6: "Link",
    7: "Luigi",
    8: "Mario",
    9: "Marth",
    10: "Mewtwo",
    11: "Ness",
    12: "Peach",
    13: "Pikachu",
    14: "Ice Climbers",
    15: "Jigglypuff",
    16: "Samus",
    17: "Yoshi",
    18: "Zelda",
    19: "Sheik",
    20: "Falco",
    21: "Young Link",
    22: "Dr. Mario",
    23: "Roy",
    24: "Pichu",
    25: "Ganondorf",
}

# Reverse lookup, lower-cased
_NAME_TO_ID = {v.lower(): k for k, v in CHARACTER_NAMES.items()}

ICE_CLIMBERS = 14
# Characters whose up-throw/pummel loops are usually chain grabs, not combos
CHAIN_GRABBERS = (9, 12, 13, 22)  # Marth, Peach, Pikachu, Dr. Mario


def character_name(char_id: int) -> str:
    """Resolve a game start character ID to its name."""
    return CHARACTER_NAMES.get(char_id, f"Unknown ({char_id})")


def character_id(value: int | str) -> int:
    """Resolve a character ID or name (case-insensitive) to an ID."""
    if isinstance(value, bool):
        raise ValueError(f"Unknown character: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return _NAME_TO_ID[value.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown character: {value!r}") from None
