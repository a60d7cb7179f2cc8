"""Turn-by-turn state machine tying the board, rules, and computer together."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol
import logging
import random

from .ai import NoLegalMove, OpponentConfig, OpponentPolicy, RandomSource
from .game import Board, InvalidMove, Line, Player, is_draw, other, winner, winning_lines

logger = logging.getLogger(__name__)

HUMAN_MARK: Player = "X"
COMPUTER_MARK: Player = "O"
DEFAULT_DELAY_MS = 500


class Mode(str, Enum):
    HUMAN_VS_HUMAN = "human"
    HUMAN_VS_COMPUTER = "computer"


@dataclass(frozen=True)
class Outcome:
    """Terminal result; ``winner`` is None for a draw."""

    winner: Optional[Player]
    result: str  # "win", "lose" or "draw", seen from the human side

    @property
    def drawn(self) -> bool:
        return self.winner is None


@dataclass
class Statistics:
    wins: int = 0
    losses: int = 0
    draws: int = 0

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def win_rate(self) -> int:
        """Whole-number win percentage; 0 before any game has finished."""
        if not self.total:
            return 0
        return round(self.wins / self.total * 100)

    def reset(self) -> None:
        self.wins = self.losses = self.draws = 0


@dataclass
class GameState:
    board: Board = field(default_factory=Board)
    mover: Player = "X"
    active: bool = True
    first_mover: Player = "X"
    game_count: int = 0
    human_mark: Player = HUMAN_MARK
    outcome: Optional[Outcome] = None


# ---- presentation ports ----


class GameListener:
    """Receives notifications from :class:`TurnController`; override what you need."""

    def on_turn_changed(self, mover: Player, label: str) -> None:
        pass

    def on_game_over(self, outcome: Outcome) -> None:
        pass

    def on_stats_changed(self, stats: Statistics) -> None:
        pass

    def on_winning_lines(self, lines: List[Line]) -> None:
        pass


class Scheduler(Protocol):
    def after(self, delay_ms: int, callback: Callable[[], None]) -> None: ...


class ImmediateScheduler:
    """Runs deferred callbacks right away; handy for tests and scripts."""

    def __init__(self) -> None:
        self.delays: List[int] = []

    def after(self, delay_ms: int, callback: Callable[[], None]) -> None:
        self.delays.append(delay_ms)
        callback()


# ---- controller ----


class TurnController:
    """Owns one session's game state and statistics.

    Human input arrives through :meth:`submit_move`; computer turns are
    requested from ``scheduler`` and re-checked when they fire, because a
    restart or mode switch may have happened in the meantime.
    """

    def __init__(
        self,
        mode: Mode = Mode.HUMAN_VS_COMPUTER,
        config: Optional[OpponentConfig] = None,
        scheduler: Optional[Scheduler] = None,
        listener: Optional[GameListener] = None,
        rng: Optional[RandomSource] = None,
        delay_ms: int = DEFAULT_DELAY_MS,
    ) -> None:
        self.mode = Mode(mode)
        self.policy = OpponentPolicy(
            config=config or OpponentConfig(), rng=rng or random.random
        )
        self.scheduler: Scheduler = scheduler or ImmediateScheduler()
        self.listener = listener or GameListener()
        self.delay_ms = delay_ms
        self.state = GameState()
        self.stats = Statistics()
        # bumped on every restart so stale computer turns can tell
        self._epoch = 0
        self._start_game()

    # ---- derived values ----

    @property
    def computer_mark(self) -> Optional[Player]:
        if self.mode is Mode.HUMAN_VS_COMPUTER:
            return other(self.state.human_mark)
        return None

    @property
    def computer_pending(self) -> bool:
        return self.state.active and self.state.mover == self.computer_mark

    def turn_label(self) -> str:
        mover = self.state.mover
        if self.mode is Mode.HUMAN_VS_COMPUTER:
            if mover == self.state.human_mark:
                return f"Your turn ({mover})"
            return f"Computer's turn ({mover})"
        return f"Player {mover}'s turn"

    # ---- operations ----

    def submit_move(self, index: int) -> bool:
        """Play ``index`` for the human mover; False if the move was ignored."""
        if not self.state.active:
            return False
        if self.state.mover == self.computer_mark:
            return False
        try:
            self._apply_move(index)
        except InvalidMove:
            return False
        return True

    def restart(self) -> None:
        self.state.game_count += 1
        self._start_game()

    def reset_statistics(self) -> None:
        self.stats.reset()
        self.state.game_count = 0
        self.listener.on_stats_changed(self.stats)

    def restart_and_reset(self) -> None:
        """Zero the statistics and begin again from the first game."""
        self.reset_statistics()
        self._start_game()

    def set_mode(self, mode: Mode) -> None:
        self.mode = Mode(mode)
        self.restart()

    # ---- internals ----

    def _start_game(self) -> None:
        count = self.state.game_count
        first = "X" if count % 2 == 0 else "O"
        self._epoch += 1
        self.state = GameState(
            first_mover=first,
            mover=first,
            game_count=count,
            human_mark=HUMAN_MARK,
        )
        logger.debug("Game %d started, %s opens (%s)", count, first, self.mode.value)
        self.listener.on_turn_changed(self.state.mover, self.turn_label())
        self._schedule_computer_turn()

    def _apply_move(self, index: int) -> None:
        state = self.state
        mover = state.mover
        state.board.place(index, mover)

        won = winner(state.board)
        if won is not None:
            if self.mode is Mode.HUMAN_VS_HUMAN or won == state.human_mark:
                self.stats.wins += 1
                result = "win"
            else:
                self.stats.losses += 1
                result = "lose"
            self._finish(Outcome(winner=won, result=result))
            self.listener.on_winning_lines(winning_lines(state.board))
            return

        if is_draw(state.board):
            self.stats.draws += 1
            self._finish(Outcome(winner=None, result="draw"))
            return

        state.mover = other(mover)
        self.listener.on_turn_changed(state.mover, self.turn_label())
        self._schedule_computer_turn()

    def _finish(self, outcome: Outcome) -> None:
        self.state.active = False
        self.state.outcome = outcome
        logger.info(
            "Game %d over: %s", self.state.game_count, outcome.winner or "draw"
        )
        self.listener.on_game_over(outcome)
        self.listener.on_stats_changed(self.stats)

    def _schedule_computer_turn(self) -> None:
        if not self.computer_pending:
            return
        epoch = self._epoch
        self.scheduler.after(self.delay_ms, lambda: self._computer_turn(epoch))

    def _computer_turn(self, epoch: int) -> None:
        if epoch != self._epoch or not self.computer_pending:
            return
        mover = self.state.mover
        try:
            index = self.policy.choose_move(self.state.board, mover)
        except NoLegalMove:
            logger.error(
                "Computer (%s) has no legal move in game %d; scoring it a draw",
                mover,
                self.state.game_count,
            )
            self.stats.draws += 1
            self._finish(Outcome(winner=None, result="draw"))
            return
        self._apply_move(index)
