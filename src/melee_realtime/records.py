"""Conversion/combo records and the payloads published for them."""

from dataclasses import dataclass, field
from enum import Enum

from melee_realtime.frames import GameSettings
from melee_realtime.moves import move_name


class ComboEvent(str, Enum):
    """Event kinds published by the combo and conversion detectors."""
    START = "combo-start"
    EXTEND = "combo-extend"
    END = "combo-end"
    CONVERSION = "conversion"


@dataclass
class MoveLanded:
    """One distinct attack inside a conversion; multi-hit moves aggregate here."""
    frame: int
    move_id: int | None
    hit_count: int = 0
    damage: float = 0.0

    @property
    def name(self) -> str:
        return move_name(self.move_id)


@dataclass
class ConversionRecord:
    """A punish by ``player_index`` on ``opponent_index``.

    Open (mutable) while ``end_frame`` is None. The detector that opened it
    sets ``end_frame`` and ``end_percent`` together when it closes, and
    never touches it again.
    """
    player_index: int
    opponent_index: int
    start_frame: int
    start_percent: float
    current_percent: float
    end_frame: int | None = None
    end_percent: float | None = None
    moves: list[MoveLanded] = field(default_factory=list)
    did_kill: bool = False
    opening_type: str = "unknown"

    @property
    def is_open(self) -> bool:
        return self.end_frame is None

    @property
    def total_damage(self) -> float:
        """Damage accumulated over every landed hit."""
        return sum(m.damage for m in self.moves)

    def to_dict(self) -> dict:
        return {
            "player_index": self.player_index,
            "opponent_index": self.opponent_index,
            "start_frame": self.start_frame,
            "end_frame": self.end_frame,
            "start_percent": self.start_percent,
            "current_percent": self.current_percent,
            "end_percent": self.end_percent,
            "moves": [
                {"frame": m.frame, "move_id": m.move_id, "hit_count": m.hit_count, "damage": m.damage}
                for m in self.moves
            ],
            "did_kill": self.did_kill,
            "opening_type": self.opening_type,
        }


@dataclass(frozen=True)
class ConversionEventPayload:
    """What a conversion/combo stream publishes: the record plus the roster."""
    record: ConversionRecord
    settings: GameSettings | None = None
