"""Realtime Melee punish detection and event filtering."""

from melee_realtime.action_states import (
    ACTION_STATE_CATEGORIES,
    COMBO_STRING_RESET_FRAMES,
    PUNISH_RESET_FRAMES,
    calc_damage_taken,
    did_lose_stock,
    is_damaged,
    is_grabbed,
    is_in_control,
    resolve_percent,
)
from melee_realtime.analysis import (
    analyze_conversions,
    classify_openings,
    conversions_to_dataframe,
    detect_conversions,
)
from melee_realtime.combos import ComboEvents, handle_combo_compute
from melee_realtime.conversions import (
    ConversionEvents,
    PlayerConversionState,
    handle_conversion_compute,
)
from melee_realtime.criteria import (
    DEFAULT_CRITERIA,
    ComboCriteria,
    ConfigError,
    LiteralCriteria,
    NoCriteria,
    VariableKey,
    check_combo,
)
from melee_realtime.frames import (
    FrameEntry,
    GameSettings,
    ParticipantPair,
    PlayerFrame,
    PlayerSettings,
    frames_from_dataframes,
    singles_player_permutations,
    with_previous_frame,
)
from melee_realtime.manager import EventEmit, EventManager, parse_config, read_combo_config
from melee_realtime.moves import MOVE_NAMES, move_name
from melee_realtime.records import ComboEvent, ConversionEventPayload, ConversionRecord, MoveLanded
from melee_realtime.source import FrameSource
from melee_realtime.stream import Observable, Subject, Subscription, merge
