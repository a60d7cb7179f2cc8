"""Minimax search and the blended-difficulty computer opponent."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, List, Optional, Sequence, Tuple
import random

from .game import EMPTY, WINNING_LINES, Board, Player, other, winner


RandomSource = Callable[[], float]


class NoLegalMove(RuntimeError):
    """Raised when a move is requested from a board with no empty cells."""


# ---- shortcuts ----


def _completing_index(cells: Sequence[str], player: Player) -> Optional[int]:
    """Empty cell that would give ``player`` three in a line, if any."""
    for a, b, c in WINNING_LINES:
        trio = [cells[a], cells[b], cells[c]]
        if trio.count(player) == 2 and trio.count(EMPTY) == 1:
            return (a, b, c)[trio.index(EMPTY)]
    return None


# ---- core search ----


@lru_cache(maxsize=None)
def _minimax(cells: Tuple[str, ...], to_move: Player, maximizer: Player) -> int:
    """Score of ``cells`` for ``maximizer``, counting depth from this position.

    A win on this very position is worth 10; every ply further away moves the
    score one step toward zero, so quicker wins and slower losses rank higher.
    """
    won = winner(cells)
    if won is not None:
        return 10 if won == maximizer else -10
    if EMPTY not in cells:
        return 0

    scores: List[int] = []
    for i, c in enumerate(cells):
        if c != EMPTY:
            continue
        child = cells[:i] + (to_move,) + cells[i + 1 :]
        score = _minimax(child, other(to_move), maximizer)
        if score > 0:
            score -= 1
        elif score < 0:
            score += 1
        scores.append(score)
    return max(scores) if to_move == maximizer else min(scores)


def best_move(board: Board, mover: Player) -> int:
    """Game-theoretically optimal cell for ``mover``; the board is left untouched."""
    cells = board.cells
    if EMPTY not in cells:
        raise NoLegalMove("Board is full")

    # 1) Take a win, 2) block the opponent's win
    shortcut = _completing_index(cells, mover)
    if shortcut is None:
        shortcut = _completing_index(cells, other(mover))
    if shortcut is not None:
        return shortcut

    # 3) Full search, lowest index wins ties
    best_score: Optional[int] = None
    best_index = -1
    for i, c in enumerate(cells):
        if c != EMPTY:
            continue
        child = cells[:i] + (mover,) + cells[i + 1 :]
        score = _minimax(child, other(mover), mover)
        if best_score is None or score > best_score:
            best_score, best_index = score, i
    return best_index


# ---- policy ----


@dataclass
class OpponentConfig:
    """Fraction of computer moves that are optimal rather than random."""

    optimal_probability: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 <= self.optimal_probability <= 1.0:
            raise ValueError(
                f"optimal_probability must be within [0, 1], "
                f"got {self.optimal_probability}"
            )


@dataclass
class OpponentPolicy:
    """Computer player mixing minimax with uniformly random moves.

    Each move flips one biased coin: below ``optimal_probability`` the move
    comes from :func:`best_move`, otherwise from the empty cells at random.
    ``rng`` is swappable so tests can pin both draws.
    """

    config: OpponentConfig = field(default_factory=OpponentConfig)
    rng: RandomSource = field(default=random.random, repr=False)

    def choose_move(self, board: Board, mover: Player) -> int:
        empties = list(board.empty_indices())
        if not empties:
            raise NoLegalMove("No empty cell left to play")

        if self.rng() < self.config.optimal_probability:
            move = best_move(board, mover)
        else:
            move = self._random_index(empties)

        if move not in empties:
            move = self._random_index(empties)
        return move

    def _random_index(self, empties: List[int]) -> int:
        pick = int(self.rng() * len(empties))
        return empties[min(max(pick, 0), len(empties) - 1)]
