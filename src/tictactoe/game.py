"""Board model and rules for classic 3x3 tic-tac-toe."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple, Union

Player = str  # "X" or "O"
Line = Tuple[int, int, int]

EMPTY = " "
# spellings of an empty cell accepted from callers
EMPTY_ALIASES: Tuple[str, ...] = ("", ".", EMPTY)
MARKS: Tuple[Player, Player] = ("X", "O")

WINNING_LINES: Tuple[Line, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


class InvalidMove(ValueError):
    """Raised when a mark cannot be placed on the requested cell."""


def other(player: Player) -> Player:
    return "O" if player == "X" else "X"


# ---------- Board ----------


@dataclass
class Board:
    # 'X', 'O', or ' ' (space) for empty
    _cells: List[str] = field(
        default_factory=lambda: [EMPTY] * 9, init=False
    )

    @property
    def cells(self) -> Tuple[str, ...]:
        return tuple(self._cells)

    def __getitem__(self, index: int) -> str:
        return self._cells[index]

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def is_empty(self, index: int) -> bool:
        return 0 <= index < 9 and self._cells[index] == EMPTY

    def is_full(self) -> bool:
        return all(c != EMPTY for c in self._cells)

    def move_count(self) -> int:
        return sum(1 for c in self._cells if c != EMPTY)

    def empty_indices(self) -> Iterator[int]:
        return (i for i, c in enumerate(self._cells) if c == EMPTY)

    def place(self, index: int, mark: Player) -> None:
        if mark not in MARKS:
            raise InvalidMove(f"Unknown mark {mark!r}")
        if not 0 <= index < 9:
            raise InvalidMove(f"Cell index {index} is off the board")
        if self._cells[index] != EMPTY:
            raise InvalidMove("Cell already occupied")
        self._cells[index] = mark

    def clone(self) -> "Board":
        board = Board()
        board._cells = self._cells.copy()
        return board

    @classmethod
    def from_cells(cls, cells: Sequence[str]) -> "Board":
        """Build a board from 9 cells; '' and '.' are read as empty."""
        if len(cells) != 9:
            raise InvalidMove("A board needs exactly 9 cells")
        board = cls()
        for index, value in enumerate(cells):
            if value in EMPTY_ALIASES:
                continue
            board.place(index, value)
        return board


# ---------- Rules ----------

BoardLike = Union[Board, Sequence[str]]


def _cells_of(board: BoardLike) -> Sequence[str]:
    if isinstance(board, Board):
        return board.cells
    if len(board) != 9:
        raise InvalidMove("A board needs exactly 9 cells")
    return tuple(EMPTY if c in EMPTY_ALIASES else c for c in board)


def winning_lines(board: BoardLike) -> List[Line]:
    """Every line whose three cells hold the same mark."""
    cells = _cells_of(board)
    return [
        (a, b, c)
        for a, b, c in WINNING_LINES
        if cells[a] != EMPTY and cells[a] == cells[b] == cells[c]
    ]


def winner(board: BoardLike) -> Optional[Player]:
    cells = _cells_of(board)
    for a, b, c in WINNING_LINES:
        v = cells[a]
        if v != EMPTY and v == cells[b] == cells[c]:
            return v
    return None


def is_draw(board: BoardLike) -> bool:
    cells = _cells_of(board)
    return winner(cells) is None and all(c != EMPTY for c in cells)
