"""Tic-tac-toe package exposing the board, computer opponent, and web application."""

from .ai import OpponentConfig, OpponentPolicy, best_move
from .controller import Mode, TurnController
from .game import Board
from .ui import app

__all__ = [
    "Board",
    "Mode",
    "OpponentConfig",
    "OpponentPolicy",
    "TurnController",
    "app",
    "best_move",
]
