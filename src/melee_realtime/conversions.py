"""Conversion (punish) detection, one frame pair at a time.

A conversion starts the first frame the opponent is in hitstun or grabbed
and ends when the opponent loses a stock, or once they have been back in
control for more than ``PUNISH_RESET_FRAMES`` frames without being hit
again. Each distinct attack that deals damage during the conversion is
recorded as a ``MoveLanded``; hits from one continuous attack (drill,
multi-hit aerials) aggregate into a single entry.

Typical usage:
    from melee_realtime import ConversionEvents, FrameSource

    source = FrameSource()
    conversions = ConversionEvents(source)
    conversions.end.subscribe(lambda p: print(p.record.total_damage))
    source.replay(settings, frames)
"""

import logging
import threading
from dataclasses import dataclass

from melee_realtime.action_states import (
    PUNISH_RESET_FRAMES,
    calc_damage_taken,
    did_lose_stock,
    is_damaged,
    is_grabbed,
    is_in_control,
    resolve_percent,
)
from melee_realtime.frames import (
    FrameEntry,
    GameSettings,
    ParticipantPair,
    has_player_count,
    singles_player_permutations,
)
from melee_realtime.records import ComboEvent, ConversionEventPayload, ConversionRecord, MoveLanded
from melee_realtime.stream import Observable, Subject, Subscription

logger = logging.getLogger(__name__)


@dataclass
class PlayerConversionState:
    """Per-pair cursor. At most one open conversion at a time."""
    conversion: ConversionRecord | None = None
    move: MoveLanded | None = None
    reset_counter: int = 0
    last_hit_animation: int | None = None


def _frames_for(pair: ParticipantPair, prev_frame: FrameEntry, latest_frame: FrameEntry):
    return (
        latest_frame.players[pair.player_index],
        prev_frame.players[pair.player_index],
        latest_frame.players[pair.opponent_index],
        prev_frame.players[pair.opponent_index],
    )


def update_last_hit_animation(state, player_frame, prev_player_frame) -> None:
    """Clear the last-hit marker once the attacker's move is over.

    The move is over when the action state changed since the hit, or when
    the action state counter went backwards (the same move started again,
    e.g. two jabs in a row). Old replays have no counter; None never
    compares as a reset.
    """
    action_changed_since_hit = player_frame.action_state_id != state.last_hit_animation
    counter = player_frame.action_state_counter
    prev_counter = prev_player_frame.action_state_counter
    counter_reset = counter is not None and prev_counter is not None and counter < prev_counter
    if action_changed_since_hit or counter_reset:
        state.last_hit_animation = None


def register_hit(state, player_frame, prev_player_frame, damage_taken: float) -> bool:
    """Fold a damaging hit into the open record.

    Returns True if the hit started a new move.
    """
    new_move = False
    if state.last_hit_animation is None:
        state.move = MoveLanded(frame=player_frame.frame, move_id=player_frame.last_attack_landed)
        state.conversion.moves.append(state.move)
        new_move = True

    if state.move is not None:
        state.move.hit_count += 1
        state.move.damage += damage_taken

    # On a trade the previous frame's state is the one that connected
    state.last_hit_animation = prev_player_frame.action_state_id
    return new_move


def handle_conversion_compute(
    state: PlayerConversionState,
    pair: ParticipantPair,
    prev_frame: FrameEntry,
    latest_frame: FrameEntry,
    conversions: list[ConversionRecord] | None = None,
    reset_frames: int = PUNISH_RESET_FRAMES,
) -> ConversionRecord | None:
    """Advance one pair's conversion state by one frame.

    Args:
        state: The pair's mutable cursor; updated in place.
        pair: Which player is punishing which.
        prev_frame: Frame before ``latest_frame``; both must contain both players.
        latest_frame: The frame being processed.
        conversions: If given, newly opened records are appended to it.
        reset_frames: Frames the opponent may stay in control before the
            conversion ends.

    Returns:
        The record if the conversion terminated on this frame, else None.
    """
    player_frame, prev_player_frame, opponent_frame, prev_opponent_frame = _frames_for(
        pair, prev_frame, latest_frame
    )

    opnt_is_damaged = is_damaged(opponent_frame.action_state_id)
    opnt_is_grabbed = is_grabbed(opponent_frame.action_state_id)
    opnt_damage_taken = calc_damage_taken(opponent_frame, prev_opponent_frame)

    update_last_hit_animation(state, player_frame, prev_player_frame)

    if opnt_is_damaged or opnt_is_grabbed:
        if state.conversion is None:
            state.conversion = ConversionRecord(
                player_index=pair.player_index,
                opponent_index=pair.opponent_index,
                start_frame=player_frame.frame,
                start_percent=resolve_percent(prev_opponent_frame.percent),
                current_percent=resolve_percent(opponent_frame.percent),
            )
            if conversions is not None:
                conversions.append(state.conversion)

        if opnt_damage_taken > 0:
            register_hit(state, player_frame, prev_player_frame, opnt_damage_taken)

    if state.conversion is None:
        return None

    opnt_in_control = is_in_control(opponent_frame.action_state_id)
    opnt_did_lose_stock = did_lose_stock(opponent_frame, prev_opponent_frame)

    if not opnt_did_lose_stock:
        state.conversion.current_percent = resolve_percent(opponent_frame.percent)

    if opnt_is_damaged or opnt_is_grabbed:
        state.reset_counter = 0

    # Start counting when the opponent gets back to an actionable state,
    # and keep counting once started
    if (state.reset_counter == 0 and opnt_in_control) or state.reset_counter > 0:
        state.reset_counter += 1

    should_terminate = False
    if opnt_did_lose_stock:
        state.conversion.did_kill = True
        should_terminate = True
    if state.reset_counter > reset_frames:
        should_terminate = True

    if not should_terminate:
        return None

    conversion = state.conversion
    conversion.end_frame = player_frame.frame
    conversion.end_percent = resolve_percent(prev_opponent_frame.percent)
    state.conversion = None
    state.move = None
    # Pair state is empty again
    state.reset_counter = 0
    state.last_hit_animation = None
    return conversion


# ---------------------------------------------------------------------------
# Stream adapters
# ---------------------------------------------------------------------------

class PairTracker:
    """Owns one state per ordered player pair and drives it frame by frame.

    Subclasses supply the state type, the per-pair step and the output
    subjects. Roster changes and frame processing are serialised by one
    lock, so frames never see a half-reset registry.
    """

    state_type = PlayerConversionState

    def __init__(self, source=None):
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._prev_frame: FrameEntry | None = None
        self.settings: GameSettings | None = None
        self.player_permutations: list[ParticipantPair] = []
        self._tracked_indices: frozenset[int] = frozenset()
        self.records: list[ConversionRecord] = []
        self._state: dict[ParticipantPair, PlayerConversionState] = {}
        if source is not None:
            self.attach(source)

    # -- wiring -------------------------------------------------------------

    def attach(self, source) -> None:
        """Follow a FrameSource's game start and frame notifications."""
        self._subscriptions.append(source.game_start.subscribe(self.start_game))
        self._subscriptions.append(
            source.player_frame.filter(has_player_count).subscribe(self._on_frame)
        )

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def _on_frame(self, frame: FrameEntry) -> None:
        with self._lock:
            prev, self._prev_frame = self._prev_frame, frame
            if prev is not None:
                self.process_frame(prev, frame)

    # -- registry -----------------------------------------------------------

    def state_for(self, pair: ParticipantPair):
        return self._state.get(pair)

    def reset_state(self) -> None:
        with self._lock:
            self.player_permutations = []
            self._tracked_indices = frozenset()
            self._state = {}
            self.records = []
            self._prev_frame = None

    def set_player_permutations(self, permutations: list[ParticipantPair]) -> None:
        with self._lock:
            self.player_permutations = list(permutations)
            self._tracked_indices = frozenset(
                idx for pair in self.player_permutations for idx in (pair.player_index, pair.opponent_index)
            )
            for pair in self.player_permutations:
                self._state[pair] = self.state_type()

    def start_game(self, settings: GameSettings) -> None:
        """Replace the registry for a new roster. Only 1v1 games are tracked."""
        with self._lock:
            self.reset_state()
            self.settings = settings
            if len(settings.players) != 2:
                logger.debug(f"Not tracking game with {len(settings.players)} player(s)")
                return
            self.set_player_permutations(singles_player_permutations(settings))

    # -- processing ---------------------------------------------------------

    def process_frame(self, prev_frame: FrameEntry, latest_frame: FrameEntry) -> None:
        """Step every tracked pair once, publishing in permutation order."""
        if not (has_player_count(prev_frame) and has_player_count(latest_frame)):
            return
        with self._lock:
            for frame in (prev_frame, latest_frame):
                self._check_roster(frame)
            for pair in self.player_permutations:
                state = self._state[pair]
                for kind, record in self._step(state, pair, prev_frame, latest_frame):
                    self._subject(kind).next(ConversionEventPayload(record, self.settings))

    def _check_roster(self, frame: FrameEntry) -> None:
        missing = self._tracked_indices.difference(frame.players)
        if missing:
            raise ValueError(
                f"Frame {frame.frame} has players {sorted(frame.players)} but the roster "
                f"tracks {sorted(self._tracked_indices)}"
            )

    def _step(self, state, pair, prev_frame, latest_frame) -> list[tuple[ComboEvent, ConversionRecord]]:
        raise NotImplementedError

    def _subject(self, kind: ComboEvent) -> Subject:
        raise NotImplementedError


class ConversionEvents(PairTracker):
    """Publishes every closed conversion on ``end``."""

    def __init__(self, source=None, reset_frames: int = PUNISH_RESET_FRAMES):
        self.reset_frames = reset_frames
        self._end: Subject[ConversionEventPayload] = Subject()
        super().__init__(source)

    @property
    def end(self) -> Observable[ConversionEventPayload]:
        return self._end.as_observable()

    def _step(self, state, pair, prev_frame, latest_frame):
        terminated = handle_conversion_compute(
            state, pair, prev_frame, latest_frame, self.records, self.reset_frames
        )
        return [(ComboEvent.CONVERSION, terminated)] if terminated is not None else []

    def _subject(self, kind: ComboEvent) -> Subject:
        return self._end
