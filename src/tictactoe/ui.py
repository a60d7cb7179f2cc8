"""FastAPI-powered web UI for playing tic-tac-toe in the browser."""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import OpponentConfig
from .controller import GameListener, Mode, Outcome, Statistics, TurnController
from .game import EMPTY, Line, Player

logger = logging.getLogger(__name__)

COMPUTER_DELAY_MS: int = int(os.environ.get("TICTACTOE_COMPUTER_DELAY_MS", "500"))
DEFAULT_OPTIMAL_PROBABILITY: float = float(
    os.environ.get("TICTACTOE_OPTIMAL_PROBABILITY", "0.5")
)


class RequestScheduler:
    """Holds computer turns requested during a call until the endpoint runs them."""

    def __init__(self) -> None:
        self.pending: List[Tuple[int, Callable[[], None]]] = []

    def after(self, delay_ms: int, callback: Callable[[], None]) -> None:
        self.pending.append((delay_ms, callback))

    def drain(self) -> List[Tuple[int, Callable[[], None]]]:
        pending, self.pending = self.pending, []
        return pending


@dataclass
class SessionView(GameListener):
    """Last values pushed by the controller, as the page will render them."""

    status: str = ""
    winning_lines: List[Line] = field(default_factory=list)
    outcome: Optional[Outcome] = None

    def on_turn_changed(self, mover: Player, label: str) -> None:
        self.status = label
        self.winning_lines = []
        self.outcome = None

    def on_game_over(self, outcome: Outcome) -> None:
        self.outcome = outcome
        if outcome.drawn:
            self.status = "Game ended in a draw"
        else:
            self.status = f"Player {outcome.winner} wins"

    def on_winning_lines(self, lines: List[Line]) -> None:
        self.winning_lines = list(lines)

    def on_stats_changed(self, stats: Statistics) -> None:
        logger.debug(
            "Stats now %d/%d/%d", stats.wins, stats.losses, stats.draws
        )


@dataclass
class GameSession:
    """Container for one browser's controller and its pending computer turns."""

    controller: TurnController
    view: SessionView
    scheduler: RequestScheduler
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="Tic-Tac-Toe", description="Tic-tac-toe played in the browser")


class NewGameRequest(BaseModel):
    """Request payload for starting a new session."""

    model_config = ConfigDict(populate_by_name=True)

    mode: Mode = Mode.HUMAN_VS_COMPUTER
    optimal_probability: Optional[float] = Field(
        default=None,
        alias="optimalProbability",
        description="Share of computer moves taken from minimax",
    )

    @field_validator("optimal_probability")
    @classmethod
    def ensure_probability(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0.0 <= value <= 1.0:
            raise ValueError("optimalProbability must be between 0 and 1")
        return value


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    index: int = Field(ge=0, le=8)


class ModeRequest(BaseModel):
    mode: Mode


def _create_session(mode: Mode, optimal_probability: float) -> Tuple[str, GameSession]:
    """Create a new game session and register it for later access."""

    view = SessionView()
    scheduler = RequestScheduler()
    controller = TurnController(
        mode=mode,
        config=OpponentConfig(optimal_probability=optimal_probability),
        scheduler=scheduler,
        listener=view,
        delay_ms=COMPUTER_DELAY_MS,
    )
    session = GameSession(controller=controller, view=view, scheduler=scheduler)
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    logger.info(
        "Session %s created (%s, optimal=%.2f)", session_id, mode.value, optimal_probability
    )
    return session_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _run_deferred(session: GameSession, delay_ms: int, callback: Callable[[], None]) -> None:
    time.sleep(max(0.0, delay_ms / 1000.0))
    with session.lock:
        callback()
        follow_ups = session.scheduler.drain()
    for next_delay, next_callback in follow_ups:
        _run_deferred(session, next_delay, next_callback)


def _dispatch(session: GameSession, background_tasks: BackgroundTasks) -> None:
    with session.lock:
        pending = session.scheduler.drain()
    for delay_ms, callback in pending:
        background_tasks.add_task(_run_deferred, session, delay_ms, callback)


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        controller = session.controller
        state = controller.state
        stats = controller.stats
        outcome = state.outcome
        return {
            "id": game_id,
            "mode": controller.mode.value,
            "cells": [c if c != EMPTY else "" for c in state.board],
            "currentPlayer": state.mover,
            "active": state.active,
            "firstMover": state.first_mover,
            "humanMark": state.human_mark,
            "gameCount": state.game_count,
            "status": session.view.status,
            "winner": outcome.winner if outcome else None,
            "drawn": bool(outcome and outcome.drawn),
            "result": outcome.result if outcome else None,
            "winningLines": [list(line) for line in session.view.winning_lines],
            "stats": {
                "wins": stats.wins,
                "losses": stats.losses,
                "draws": stats.draws,
                "winRate": stats.win_rate,
            },
            "computerPending": controller.computer_pending,
        }


@app.post("/api/game")
def create_game(
    request: NewGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    probability = request.optimal_probability
    if probability is None:
        probability = DEFAULT_OPTIMAL_PROBABILITY
    game_id, session = _create_session(request.mode, probability)
    _dispatch(session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        accepted = session.controller.submit_move(request.index)
    _dispatch(session, background_tasks)
    state = _serialize_session(game_id, session)
    state["accepted"] = accepted
    return state


@app.post("/api/game/{game_id}/restart")
def restart_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.controller.restart()
    _dispatch(session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/reset-stats")
def reset_stats(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    """Fresh board plus zeroed statistics, the page's "Restart" button."""
    session = _get_session(game_id)
    with session.lock:
        session.controller.restart_and_reset()
    _dispatch(session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/mode")
def change_mode(
    game_id: str, request: ModeRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.controller.set_mode(request.mode)
    _dispatch(session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Tic-Tac-Toe</title>
    <style>
      :root {
        color-scheme: light;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        --bg: radial-gradient(circle at top, #f2f5ff, #dbe0ff 40%, #cfd8ff 70%);
        --panel: rgba(255, 255, 255, 0.92);
        --ink: #13203a;
        --cell: #f6f8ff;
        --x: #2f6fed;
        --o: #e2515b;
        --win: #ffe58a;
      }
      body.dark {
        color-scheme: dark;
        --bg: radial-gradient(circle at top, #1d2540, #121829 60%);
        --panel: rgba(24, 31, 52, 0.94);
        --ink: #e7ecff;
        --cell: #222b48;
        --win: #6b5a17;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        background: var(--bg);
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem 3rem;
        color: var(--ink);
        transition: background 0.4s ease;
      }
      main {
        background: var(--panel);
        border-radius: 18px;
        box-shadow: 0 20px 40px rgba(34, 47, 79, 0.16);
        padding: clamp(1.5rem, 4vw, 2.5rem);
        width: min(480px, 100%);
      }
      h1 {
        margin: 0 0 1rem;
        text-align: center;
        letter-spacing: 0.06em;
      }
      .toolbar {
        display: flex;
        justify-content: space-between;
        align-items: center;
        gap: 1rem;
        margin-bottom: 1rem;
      }
      #status {
        text-align: center;
        font-weight: 600;
        min-height: 1.5em;
      }
      #game-board {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 8px;
        margin: 1rem auto;
        width: min(330px, 100%);
      }
      .cell {
        aspect-ratio: 1;
        border: none;
        border-radius: 12px;
        background: var(--cell);
        font-size: 2.6rem;
        font-weight: 700;
        cursor: pointer;
        color: var(--ink);
      }
      .cell.x {
        color: var(--x);
      }
      .cell.o {
        color: var(--o);
      }
      .cell.winning-cell {
        background: var(--win);
      }
      .stats {
        display: grid;
        grid-template-columns: repeat(4, 1fr);
        text-align: center;
        gap: 0.5rem;
        margin-top: 1rem;
      }
      .stats span {
        display: block;
        font-size: 1.4rem;
        font-weight: 700;
      }
      button.action {
        padding: 0.55rem 1.1rem;
        border-radius: 999px;
        border: none;
        background: #2f6fed;
        color: #fff;
        font-weight: 600;
        cursor: pointer;
      }
      #overlay {
        position: fixed;
        inset: 0;
        background: rgba(10, 16, 32, 0.55);
        display: none;
        align-items: center;
        justify-content: center;
      }
      #overlay.show {
        display: flex;
      }
      #result-panel {
        background: var(--panel);
        padding: 2rem 2.5rem;
        border-radius: 16px;
        text-align: center;
      }
      .win-message {
        color: #1f9d55;
      }
      .lose-message {
        color: #e2515b;
      }
      .draw-message {
        color: #8a6d1d;
      }
    </style>
  </head>
  <body>
    <main>
      <h1>Tic-Tac-Toe</h1>
      <div class="toolbar">
        <div>
          <label><input type="radio" name="mode" value="human" /> Two players</label>
          <label><input type="radio" name="mode" value="computer" checked /> vs Computer</label>
        </div>
        <button id="theme-btn" class="action" type="button">Dark</button>
      </div>
      <div id="status"></div>
      <div id="game-board"></div>
      <div class="toolbar">
        <button id="restart-btn" class="action" type="button">Restart</button>
      </div>
      <section class="stats">
        <div>Wins<span id="wins-value">0</span></div>
        <div>Losses<span id="losses-value">0</span></div>
        <div>Draws<span id="draws-value">0</span></div>
        <div>Win rate<span id="win-rate-value">0%</span></div>
      </section>
    </main>
    <div id="overlay">
      <div id="result-panel">
        <h2 id="result-message"></h2>
        <button id="play-again-btn" class="action" type="button">Play again</button>
      </div>
    </div>
    <script>
      const boardEl = document.getElementById('game-board');
      const statusEl = document.getElementById('status');
      const overlay = document.getElementById('overlay');
      const resultMessage = document.getElementById('result-message');
      const themeButton = document.getElementById('theme-btn');
      const RESULT_TEXT = {
        win: ['Congratulations! You Win!', 'win-message'],
        lose: ['Sorry! You Lost!', 'lose-message'],
        draw: ["It's a Draw!", 'draw-message'],
      };

      let gameId = null;
      let gameState = null;
      let pollHandle = null;

      const cells = [];
      for (let i = 0; i < 9; i++) {
        const cell = document.createElement('button');
        cell.className = 'cell';
        cell.type = 'button';
        cell.dataset.index = String(i);
        cell.addEventListener('click', () => post(`/api/game/${gameId}/move`, { index: i }));
        boardEl.appendChild(cell);
        cells.push(cell);
      }

      function render() {
        if (!gameState) return;
        const highlighted = new Set(gameState.winningLines.flat());
        gameState.cells.forEach((mark, i) => {
          cells[i].textContent = mark;
          cells[i].className = 'cell';
          if (mark) cells[i].classList.add(mark.toLowerCase());
          if (highlighted.has(i)) cells[i].classList.add('winning-cell');
        });
        statusEl.textContent = gameState.status;
        document.getElementById('wins-value').textContent = gameState.stats.wins;
        document.getElementById('losses-value').textContent = gameState.stats.losses;
        document.getElementById('draws-value').textContent = gameState.stats.draws;
        document.getElementById('win-rate-value').textContent = `${gameState.stats.winRate}%`;
        if (gameState.result) {
          const [text, css] = RESULT_TEXT[gameState.result];
          resultMessage.textContent = text;
          resultMessage.className = css;
          overlay.classList.add('show');
        } else {
          overlay.classList.remove('show');
        }
        schedulePoll();
      }

      function schedulePoll() {
        if (pollHandle) window.clearTimeout(pollHandle);
        pollHandle = null;
        if (gameState && gameState.computerPending) {
          pollHandle = window.setTimeout(refresh, 300);
        }
      }

      async function post(url, body) {
        const response = await fetch(url, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify(body || {}),
        });
        if (response.ok) {
          gameState = await response.json();
          render();
        }
      }

      async function refresh() {
        const response = await fetch(`/api/game/${gameId}`);
        if (response.ok) {
          gameState = await response.json();
          render();
        }
      }

      async function startSession(mode) {
        const response = await fetch('/api/game', {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ mode }),
        });
        gameState = await response.json();
        gameId = gameState.id;
        render();
      }

      document.querySelectorAll('input[name="mode"]').forEach((radio) => {
        radio.addEventListener('change', () => post(`/api/game/${gameId}/mode`, { mode: radio.value }));
      });
      document.getElementById('play-again-btn').addEventListener('click', () => post(`/api/game/${gameId}/restart`));
      document.getElementById('restart-btn').addEventListener('click', () => post(`/api/game/${gameId}/reset-stats`));
      themeButton.addEventListener('click', () => {
        const dark = document.body.classList.toggle('dark');
        themeButton.textContent = dark ? 'Light' : 'Dark';
      });

      startSession('computer');
    </script>
  </body>
</html>
"""
