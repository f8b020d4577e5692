"""Combo detection: stricter than conversions, with start/extend/end events.

A combo uses the same hit bookkeeping as a conversion, but the reset
counter only pauses while the opponent is hit, grabbed, teching, downed or
dying, and otherwise runs every frame. That ends a combo as soon as the
opponent has been free (including in the air) for more than
``COMBO_STRING_RESET_FRAMES`` frames.

``ComboEvents`` also runs a ``ConversionEvents`` on the same frames and
exposes it as ``conversion``, so one object feeds every event kind the
event manager understands.
"""

from melee_realtime.action_states import (
    COMBO_STRING_RESET_FRAMES,
    PUNISH_RESET_FRAMES,
    calc_damage_taken,
    did_lose_stock,
    is_command_grabbed,
    is_damaged,
    is_dead,
    is_down,
    is_grabbed,
    is_teching,
    resolve_percent,
)
from melee_realtime.conversions import (
    ConversionEvents,
    PairTracker,
    PlayerConversionState,
    _frames_for,
    register_hit,
    update_last_hit_animation,
)
from melee_realtime.frames import FrameEntry, GameSettings, ParticipantPair
from melee_realtime.records import ComboEvent, ConversionEventPayload, ConversionRecord
from melee_realtime.stream import Observable, Subject


def handle_combo_compute(
    state: PlayerConversionState,
    pair: ParticipantPair,
    prev_frame: FrameEntry,
    latest_frame: FrameEntry,
    combos: list[ConversionRecord] | None = None,
    reset_frames: int = COMBO_STRING_RESET_FRAMES,
) -> list[tuple[ComboEvent, ConversionRecord]]:
    """Advance one pair's combo state by one frame.

    Returns:
        The events raised on this frame, in order: START if the combo
        opened this frame, then EXTEND for a new move, then END if it closed.
    """
    player_frame, prev_player_frame, opponent_frame, prev_opponent_frame = _frames_for(
        pair, prev_frame, latest_frame
    )
    events = []

    opnt_is_damaged = is_damaged(opponent_frame.action_state_id)
    opnt_is_grabbed = is_grabbed(opponent_frame.action_state_id)
    opnt_is_command_grabbed = is_command_grabbed(opponent_frame.action_state_id)
    opnt_damage_taken = calc_damage_taken(opponent_frame, prev_opponent_frame)

    update_last_hit_animation(state, player_frame, prev_player_frame)

    if opnt_is_damaged or opnt_is_grabbed or opnt_is_command_grabbed:
        if state.conversion is None:
            state.conversion = ConversionRecord(
                player_index=pair.player_index,
                opponent_index=pair.opponent_index,
                start_frame=player_frame.frame,
                start_percent=resolve_percent(prev_opponent_frame.percent),
                current_percent=resolve_percent(opponent_frame.percent),
            )
            if combos is not None:
                combos.append(state.conversion)
            events.append((ComboEvent.START, state.conversion))

        if opnt_damage_taken > 0:
            if register_hit(state, player_frame, prev_player_frame, opnt_damage_taken):
                events.append((ComboEvent.EXTEND, state.conversion))

    if state.conversion is None:
        return events

    opnt_did_lose_stock = did_lose_stock(opponent_frame, prev_opponent_frame)
    if not opnt_did_lose_stock:
        state.conversion.current_percent = resolve_percent(opponent_frame.percent)

    action = opponent_frame.action_state_id
    if (
        opnt_is_damaged
        or opnt_is_grabbed
        or opnt_is_command_grabbed
        or is_teching(action)
        or is_down(action)
        or is_dead(action)
    ):
        state.reset_counter = 0
    else:
        state.reset_counter += 1

    should_terminate = False
    if opnt_did_lose_stock:
        state.conversion.did_kill = True
        should_terminate = True
    if state.reset_counter > reset_frames:
        should_terminate = True

    if should_terminate:
        combo = state.conversion
        combo.end_frame = player_frame.frame
        combo.end_percent = resolve_percent(prev_opponent_frame.percent)
        state.conversion = None
        state.move = None
        state.reset_counter = 0
        state.last_hit_animation = None
        events.append((ComboEvent.END, combo))

    return events


class ComboEvents(PairTracker):
    """Publishes combo ``start``/``extend``/``end`` and closed ``conversion`` events."""

    def __init__(
        self,
        source=None,
        reset_frames: int = COMBO_STRING_RESET_FRAMES,
        conversion_reset_frames: int = PUNISH_RESET_FRAMES,
    ):
        self.reset_frames = reset_frames
        self._subjects = {
            ComboEvent.START: Subject(),
            ComboEvent.EXTEND: Subject(),
            ComboEvent.END: Subject(),
        }
        self._conversions = ConversionEvents(reset_frames=conversion_reset_frames)
        super().__init__(source)

    @property
    def start(self) -> Observable[ConversionEventPayload]:
        return self._subjects[ComboEvent.START].as_observable()

    @property
    def extend(self) -> Observable[ConversionEventPayload]:
        return self._subjects[ComboEvent.EXTEND].as_observable()

    @property
    def end(self) -> Observable[ConversionEventPayload]:
        return self._subjects[ComboEvent.END].as_observable()

    @property
    def conversion(self) -> Observable[ConversionEventPayload]:
        return self._conversions.end

    @property
    def conversions(self) -> ConversionEvents:
        return self._conversions

    def stream(self, kind: ComboEvent) -> Observable[ConversionEventPayload]:
        """Raw stream for an event kind."""
        if kind == ComboEvent.CONVERSION:
            return self.conversion
        return self._subjects[ComboEvent(kind)].as_observable()

    def start_game(self, settings: GameSettings) -> None:
        with self._lock:
            super().start_game(settings)
            self._conversions.start_game(settings)

    def process_frame(self, prev_frame: FrameEntry, latest_frame: FrameEntry) -> None:
        with self._lock:
            super().process_frame(prev_frame, latest_frame)
            self._conversions.process_frame(prev_frame, latest_frame)

    def _step(self, state, pair, prev_frame, latest_frame):
        return handle_combo_compute(state, pair, prev_frame, latest_frame, self.records, self.reset_frames)

    def _subject(self, kind: ComboEvent) -> Subject:
        return self._subjects[kind]
