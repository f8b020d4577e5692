"""Live frame source: the roster and frame feed for a sequence of games.

Detectors subscribe to ``game_start`` (roster establishment) and
``player_frame`` (one ``FrameEntry`` per tick). A replay, a Dolphin
connection or a test can drive the source through the same three calls.
"""

import logging
from typing import Iterable

from melee_realtime.frames import FrameEntry, GameSettings
from melee_realtime.stream import Observable, Subject

logger = logging.getLogger(__name__)


class FrameSource:
    """Publishes game start, per-frame and game end notifications."""

    def __init__(self):
        self._game_start: Subject[GameSettings] = Subject()
        self._player_frame: Subject[FrameEntry] = Subject()
        self._game_end: Subject[GameSettings] = Subject()
        self.settings: GameSettings | None = None
        self._last_frame: int | None = None
        self._in_game = False

    @property
    def game_start(self) -> Observable[GameSettings]:
        return self._game_start.as_observable()

    @property
    def player_frame(self) -> Observable[FrameEntry]:
        return self._player_frame.as_observable()

    @property
    def game_end(self) -> Observable[GameSettings]:
        return self._game_end.as_observable()

    def start_game(self, settings: GameSettings) -> None:
        self.settings = settings
        self._last_frame = None
        self._in_game = True
        logger.debug(f"Game start with {len(settings.players)} player(s)")
        self._game_start.next(settings)

    def push_frame(self, frame: FrameEntry) -> None:
        """Publish one tick. Frames must arrive in increasing frame order.

        Frames pushed outside a game (before start_game or after end_game)
        are dropped.
        """
        if not self._in_game:
            logger.debug(f"Dropping frame {frame.frame} outside a game")
            return
        if self._last_frame is not None and frame.frame <= self._last_frame:
            raise ValueError(
                f"Frame {frame.frame} arrived after frame {self._last_frame}; "
                "frames must be strictly increasing within a game"
            )
        self._last_frame = frame.frame
        self._player_frame.next(frame)

    def end_game(self) -> None:
        """Stop frame dispatch for the current game and announce its end."""
        self._in_game = False
        self._last_frame = None
        self._game_end.next(self.settings)

    def close(self) -> None:
        """End the feed. Every subscriber is released and nothing else is dispatched."""
        for subject in (self._game_start, self._player_frame, self._game_end):
            subject.complete()

    def replay(self, settings: GameSettings, frames: Iterable[FrameEntry]) -> None:
        """Push a whole recorded game through the source."""
        self.start_game(settings)
        count = 0
        for frame in frames:
            self.push_frame(frame)
            count += 1
        self.end_game()
        logger.debug(f"Replayed {count} frame(s)")
