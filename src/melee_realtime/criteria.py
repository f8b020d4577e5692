"""Criteria for keeping or dropping combo/conversion records.

Every field of ``ComboCriteria`` is one independent check; a record passes
when it satisfies all of them. Fields left at their ``DEFAULT_CRITERIA``
value pass everything except empty (zero-move) records.

Criteria can be given inline or as a ``$``-prefixed variable name that is
looked up in the event manager's variable table. ``CriteriaRef`` is the
parsed form:

    LiteralCriteria(ComboCriteria(kills_only=True))
    VariableKey("$strong")
    NoCriteria()           # the "none" string, pass everything
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator
from pydantic.dataclasses import dataclass

from melee_realtime.enums import CHAIN_GRABBERS, ICE_CLIMBERS, character_id
from melee_realtime.frames import GameSettings
from melee_realtime.moves import PUMMEL, UP_THROW
from melee_realtime.records import ConversionRecord

VARIABLE_PREFIX = "$"
NO_CRITERIA = "none"

# Consecutive pummels from Ice Climbers that count as wobbling
WOBBLE_PUMMELS = 8
# Share of up-throws/pummels above which a chain grabber's combo is a chain grab
CHAIN_GRAB_RATIO = 0.8

FROZEN_CONFIG = ConfigDict(extra="forbid", frozen=True)


class ConfigError(ValueError):
    """Raised when an event or criteria configuration is malformed."""


def config_error(err: ValidationError) -> ConfigError:
    """Flatten a pydantic ValidationError into a single ConfigError."""
    details = []
    for e in err.errors():
        where = ".".join(str(part) for part in e["loc"])
        details.append(f"{where}: {e['msg']}" if where else e["msg"])
    return ConfigError("; ".join(details))


class ComboCriteria(BaseModel):
    model_config = FROZEN_CONFIG

    min_damage: float = 0.0
    max_damage: float | None = None
    min_moves: int = 1
    kills_only: StrictBool = False
    characters: tuple[int, ...] = ()          # attacker character IDs; empty = any
    ports: tuple[int, ...] = ()               # attacker ports; empty = any
    name_tags: tuple[str, ...] = ()           # attacker tags; empty = any
    fuzzy_name_tag_matching: StrictBool = True
    exclude_cpus: StrictBool = False
    exclude_chain_grabs: StrictBool = False
    chain_grabbers: tuple[int, ...] = CHAIN_GRABBERS
    exclude_wobbles: StrictBool = False
    large_hit_threshold: float | None = None  # max share of damage from one move
    per_character_min_damage: dict[int, float] = Field(default_factory=dict)

    @field_validator("min_damage", "max_damage", "min_moves", "large_hit_threshold", mode="before")
    @classmethod
    def _reject_bools(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be a number, not true/false")
        return value

    @field_validator("characters", "chain_grabbers", mode="before")
    @classmethod
    def _character_ids(cls, value: Any) -> tuple[int, ...]:
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("must be a list of character names or IDs")
        return tuple(character_id(v) for v in value)

    @field_validator("per_character_min_damage", mode="before")
    @classmethod
    def _character_keys(cls, value: Any) -> dict:
        if not isinstance(value, Mapping):
            raise ValueError("must map character names or IDs to a damage")
        return {character_id(k): v for k, v in value.items()}

    def merged(self, overrides: "Mapping | ComboCriteria") -> "ComboCriteria":
        """Return a copy with ``overrides`` applied on top.

        Raises:
            ConfigError: if the overrides are not a mapping of valid fields.
        """
        if isinstance(overrides, ComboCriteria):
            return overrides
        if not isinstance(overrides, Mapping):
            raise ConfigError(f"Criteria must be a mapping, got {type(overrides).__name__}")
        try:
            return ComboCriteria.model_validate({**self.model_dump(), **overrides})
        except ValidationError as e:
            raise config_error(e) from e


DEFAULT_CRITERIA = ComboCriteria()


# ---------------------------------------------------------------------------
# Criteria references
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiteralCriteria:
    criteria: ComboCriteria


@dataclass(frozen=True)
class VariableKey:
    name: str


@dataclass(frozen=True)
class NoCriteria:
    pass


CriteriaRef = LiteralCriteria | VariableKey | NoCriteria


def parse_criteria_ref(value) -> CriteriaRef:
    """Parse the ``criteria`` entry of an event filter.

    Accepts a criteria mapping, a ComboCriteria, ``"none"``, or a
    ``$``-prefixed variable name. Any other string is rejected.
    """
    if isinstance(value, (LiteralCriteria, VariableKey, NoCriteria)):
        return value
    if isinstance(value, ComboCriteria):
        return LiteralCriteria(value)
    if isinstance(value, str):
        if value == NO_CRITERIA:
            return NoCriteria()
        if value.startswith(VARIABLE_PREFIX) and len(value) > 1:
            return VariableKey(value)
        raise ConfigError(
            f"Criteria string {value!r} must be {NO_CRITERIA!r} or a "
            f"{VARIABLE_PREFIX!r}-prefixed variable name"
        )
    return LiteralCriteria(DEFAULT_CRITERIA.merged(value))


def resolve_criteria(
    ref: CriteriaRef,
    variables: Mapping | None = None,
    strict: bool = False,
) -> ComboCriteria | None:
    """Resolve a criteria reference against the variable table.

    Returns None when no filtering should be applied: for ``NoCriteria``,
    and for a variable missing from the table (fail-open). With
    ``strict=True`` a missing variable raises ConfigError instead.
    """
    if isinstance(ref, NoCriteria):
        return None
    if isinstance(ref, LiteralCriteria):
        return ref.criteria

    variables = variables or {}
    if ref.name not in variables or variables[ref.name] is None:
        if strict:
            raise ConfigError(f"Criteria variable {ref.name!r} is not defined")
        return None
    return DEFAULT_CRITERIA.merged(variables[ref.name])


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

def _matches_name_tag(criteria, player) -> bool:
    if not criteria.name_tags:
        return True
    if player is None:
        return False
    tags = [t.lower() for t in player.tags]
    for wanted in criteria.name_tags:
        wanted = wanted.lower()
        if criteria.fuzzy_name_tag_matching:
            if any(wanted in t for t in tags):
                return True
        elif wanted in tags:
            return True
    return False


def _is_wobble(record: ConversionRecord) -> bool:
    run = 0
    for move in record.moves:
        run = run + 1 if move.move_id == PUMMEL else 0
        if run >= WOBBLE_PUMMELS:
            return True
    return False


def _is_chain_grab(record: ConversionRecord) -> bool:
    if not record.moves:
        return False
    grabs = sum(1 for m in record.moves if m.move_id in (UP_THROW, PUMMEL))
    return grabs / len(record.moves) >= CHAIN_GRAB_RATIO


def _has_large_single_hit(criteria, record: ConversionRecord) -> bool:
    total = record.total_damage
    if criteria.large_hit_threshold is None or total <= 0:
        return False
    return any(m.damage / total >= criteria.large_hit_threshold for m in record.moves)


def check_combo(
    criteria: ComboCriteria,
    record: ConversionRecord,
    settings: GameSettings | None = None,
) -> bool:
    """True if the record satisfies every configured criterion.

    Roster-based checks (characters, ports, tags, CPUs, chain grabs,
    wobbles, per-character damage) need ``settings``; without them a
    record only passes those checks when the criterion is unset.
    """
    damage = record.total_damage
    if damage < criteria.min_damage:
        return False
    if criteria.max_damage is not None and damage > criteria.max_damage:
        return False
    if len(record.moves) < criteria.min_moves:
        return False
    if criteria.kills_only and not record.did_kill:
        return False
    if _has_large_single_hit(criteria, record):
        return False

    player = settings.player(record.player_index) if settings is not None else None
    char = player.character_id if player is not None else None

    if criteria.characters and char not in criteria.characters:
        return False
    if criteria.ports and (player is None or player.port not in criteria.ports):
        return False
    if not _matches_name_tag(criteria, player):
        return False
    if criteria.exclude_cpus and player is not None and player.is_cpu:
        return False
    if criteria.exclude_chain_grabs and char in criteria.chain_grabbers and _is_chain_grab(record):
        return False
    if criteria.exclude_wobbles and char == ICE_CLIMBERS and _is_wobble(record):
        return False
    if char is not None and damage < criteria.per_character_min_damage.get(char, 0.0):
        return False
    return True
