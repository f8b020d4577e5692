"""Declarative event subscriptions over combo and conversion streams.

A config lists the events a caller wants, each with an id, an event type,
and an optional filter:

    config = parse_config({
        "events": [
            {"id": "kills", "type": "conversion", "filter": {"criteria": {"kills_only": True}}},
            {"id": "p1-big", "type": "combo-end",
             "filter": {"player_index": "player", "criteria": "$strong"}},
        ],
        "variables": {"player_index": 0, "$strong": {"min_damage": 40}},
    })
    manager = EventManager(ComboEvents(source))
    manager.events(config).subscribe(lambda e: print(e.id, e.payload.record))

Player filters:
    "any"                       no filtering
    0 / [0, 1]                  attacker index is one of these
    "player" / "opponent"       attacker / victim is ``variables["player_index"]``
    {"index": 0, "match": "either"}
                                ``match`` is "player" (attacker, default),
                                "opponent" (victim) or "either" side

Criteria filters only apply to combo-end and conversion events; see
``melee_realtime.criteria`` for the accepted forms. A ``$`` variable missing
from the table passes every event unless the manager is strict.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from melee_realtime.criteria import (
    FROZEN_CONFIG,
    ConfigError,
    CriteriaRef,
    check_combo,
    config_error,
    parse_criteria_ref,
    resolve_criteria,
)
from melee_realtime.records import ComboEvent, ConversionEventPayload
from melee_realtime.stream import Observable, merge

logger = logging.getLogger(__name__)

PLAYER_INDEX_VARIABLE = "player_index"
PLAYER_REF = "player"
CRITERIA_EVENTS = (ComboEvent.END, ComboEvent.CONVERSION)


class PlayerMatch(str, Enum):
    PLAYER = "player"        # the attacker
    OPPONENT = "opponent"    # the one being punished
    EITHER = "either"


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class PlayerFilter(BaseModel):
    """Indices to match and which side of the record to match them on.

    ``indices`` may contain the string "player", resolved from the variable
    table when the stream is built. Configs spell the field ``index``.
    """
    model_config = FROZEN_CONFIG

    indices: tuple[int | str, ...] = Field(validation_alias=AliasChoices("index", "indices"))
    match: PlayerMatch = PlayerMatch.PLAYER

    @field_validator("indices", mode="before")
    @classmethod
    def _as_indices(cls, value: Any) -> tuple:
        if _is_index(value) or value == PLAYER_REF:
            return (value,)
        if isinstance(value, (list, tuple)) and value and all(_is_index(v) or v == PLAYER_REF for v in value):
            return tuple(value)
        raise ValueError(f"player index must be an int, a list of ints or 'player', got {value!r}")

    def resolve(self, variables: Mapping | None) -> frozenset[int]:
        resolved = set()
        for idx in self.indices:
            if idx == PLAYER_REF:
                if not variables or variables.get(PLAYER_INDEX_VARIABLE) is None:
                    raise ConfigError(
                        f"Player filter refers to the player but {PLAYER_INDEX_VARIABLE!r} "
                        "is not set in variables"
                    )
                resolved.add(int(variables[PLAYER_INDEX_VARIABLE]))
            else:
                resolved.add(idx)
        return frozenset(resolved)

    def matches(self, payload: ConversionEventPayload, indices: frozenset[int]) -> bool:
        record = payload.record
        if self.match == PlayerMatch.PLAYER:
            return record.player_index in indices
        if self.match == PlayerMatch.OPPONENT:
            return record.opponent_index in indices
        return record.player_index in indices or record.opponent_index in indices


class EventFilter(BaseModel):
    model_config = FROZEN_CONFIG

    player_index: PlayerFilter | None = None
    criteria: CriteriaRef | None = None

    @field_validator("player_index", mode="before")
    @classmethod
    def _player_filter_shorthand(cls, value: Any) -> Any:
        if value is None or value == "any":
            return None
        if value == "opponent":
            return PlayerFilter(indices=(PLAYER_REF,), match=PlayerMatch.OPPONENT)
        if isinstance(value, (Mapping, PlayerFilter)):
            return value
        return {"index": value}

    @field_validator("criteria", mode="before")
    @classmethod
    def _criteria_ref(cls, value: Any) -> CriteriaRef | None:
        return None if value is None else parse_criteria_ref(value)


class EventSubscription(BaseModel):
    model_config = FROZEN_CONFIG

    id: str = Field(min_length=1)
    type: ComboEvent
    filter: EventFilter = Field(default_factory=EventFilter)

    @field_validator("filter", mode="before")
    @classmethod
    def _empty_filter(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _criteria_on_complete_records(self) -> "EventSubscription":
        if self.filter.criteria is not None and self.type not in CRITERIA_EVENTS:
            raise ValueError("criteria filters only apply to combo-end and conversion events")
        return self

    @property
    def player_filter(self) -> PlayerFilter | None:
        return self.filter.player_index

    @property
    def criteria(self) -> CriteriaRef | None:
        return self.filter.criteria


class EventManagerConfig(BaseModel):
    model_config = FROZEN_CONFIG

    events: tuple[EventSubscription, ...] = ()
    variables: dict[str, Any] = Field(default_factory=dict)

    @field_validator("events", mode="before")
    @classmethod
    def _events_list(cls, value: Any) -> Any:
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError("must be a list")
        return value

    @field_validator("variables", mode="before")
    @classmethod
    def _variables_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _unique_ids(self) -> "EventManagerConfig":
        seen = set()
        for event in self.events:
            if event.id in seen:
                raise ValueError(f"duplicate event id {event.id!r}")
            seen.add(event.id)
        return self


@dataclass(frozen=True)
class EventEmit:
    """One tagged emission of the merged output stream."""
    id: str
    type: ComboEvent
    payload: ConversionEventPayload


def parse_config(config: Mapping | EventManagerConfig) -> EventManagerConfig:
    """Validate a JSON-like config into an EventManagerConfig.

    Raises:
        ConfigError: on any malformed entry or duplicate event id.
    """
    if isinstance(config, EventManagerConfig):
        return config
    if not isinstance(config, Mapping):
        raise ConfigError(f"Config must be a mapping, got {type(config).__name__}")
    try:
        return EventManagerConfig.model_validate(dict(config))
    except ValidationError as e:
        raise config_error(e) from e


# ---------------------------------------------------------------------------
# Stream construction
# ---------------------------------------------------------------------------

def handle_player_index_filter(
    base: Observable[ConversionEventPayload],
    event: EventSubscription,
    variables: Mapping | None = None,
) -> Observable[ConversionEventPayload]:
    if event.player_filter is None:
        return base
    player_filter = event.player_filter
    indices = player_filter.resolve(variables)
    return base.filter(lambda payload: player_filter.matches(payload, indices))


def handle_combo_filter(
    base: Observable[ConversionEventPayload],
    event: EventSubscription,
    variables: Mapping | None = None,
    strict_variables: bool = False,
) -> Observable[ConversionEventPayload]:
    if event.criteria is None:
        return base
    criteria = resolve_criteria(event.criteria, variables, strict=strict_variables)
    if criteria is None:
        logger.debug(f"Event {event.id!r}: no criteria to apply, passing every event")
        return base
    return base.filter(lambda payload: check_combo(criteria, payload.record, payload.settings))


def read_combo_config(
    combo,
    config: Mapping | EventManagerConfig,
    strict_variables: bool = False,
) -> Observable[EventEmit]:
    """Build one merged, tagged stream for every event in the config.

    Args:
        combo: Anything with a ``stream(kind)`` method returning the raw
            payload stream for a ComboEvent, e.g. ComboEvents.
        config: Config mapping or an already parsed EventManagerConfig.
        strict_variables: Raise ConfigError for undefined ``$`` variables
            instead of passing every event.

    Raises:
        ConfigError: while building, never once events flow.
    """
    config = parse_config(config)
    observables = []
    for event in config.events:
        base = handle_player_index_filter(combo.stream(event.type), event, config.variables)
        if event.type in CRITERIA_EVENTS:
            base = handle_combo_filter(base, event, config.variables, strict_variables)
        observables.append(base.map(
            lambda payload, event=event: EventEmit(id=event.id, type=event.type, payload=payload)
        ))
    logger.debug(f"Built {len(observables)} event stream(s)")
    return merge(*observables)


class EventManager:
    """Turns configs into output streams over one combo event source."""

    def __init__(self, combo, strict_variables: bool = False):
        self.combo = combo
        self.strict_variables = strict_variables

    def events(self, config: Mapping | EventManagerConfig) -> Observable[EventEmit]:
        return read_combo_config(self.combo, config, strict_variables=self.strict_variables)
