"""Tests for the turn controller state machine."""

import logging

from tictactoe.ai import NoLegalMove, OpponentConfig
from tictactoe.controller import (
    GameListener,
    ImmediateScheduler,
    Mode,
    TurnController,
)


class Recorder(GameListener):
    def __init__(self):
        self.turns = []
        self.outcomes = []
        self.stats = []
        self.lines = []

    def on_turn_changed(self, mover, label):
        self.turns.append((mover, label))

    def on_game_over(self, outcome):
        self.outcomes.append(outcome)

    def on_stats_changed(self, stats):
        self.stats.append((stats.wins, stats.losses, stats.draws))

    def on_winning_lines(self, lines):
        self.lines.append(lines)


class DeferredScheduler:
    """Keeps callbacks until the test fires them."""

    def __init__(self):
        self.calls = []

    def after(self, delay_ms, callback):
        self.calls.append((delay_ms, callback))

    def fire(self, position=0):
        _, callback = self.calls.pop(position)
        callback()


def _human_game(listener=None):
    return TurnController(mode=Mode.HUMAN_VS_HUMAN, listener=listener)


def _computer_game(scheduler=None, probability=1.0, listener=None):
    return TurnController(
        mode=Mode.HUMAN_VS_COMPUTER,
        config=OpponentConfig(optimal_probability=probability),
        scheduler=scheduler or ImmediateScheduler(),
        listener=listener,
        rng=lambda: 0.0,
    )


def test_two_player_top_row_win():
    recorder = Recorder()
    controller = _human_game(recorder)
    for index in (0, 4, 1, 3, 2):
        assert controller.submit_move(index)

    assert not controller.state.active
    assert controller.state.outcome.winner == "X"
    assert controller.stats.wins == 1
    assert recorder.lines == [[(0, 1, 2)]]
    assert recorder.stats[-1] == (1, 0, 0)
    assert recorder.turns[0] == ("X", "Player X's turn")
    assert recorder.turns[1] == ("O", "Player O's turn")


def test_two_player_draw_counts_draw():
    controller = _human_game()
    for index in (0, 1, 2, 4, 3, 5, 7, 6, 8):
        controller.submit_move(index)
    assert controller.state.outcome.drawn
    assert controller.state.outcome.result == "draw"
    assert controller.stats.draws == 1


def test_rejected_moves_change_nothing():
    controller = _human_game()
    assert controller.submit_move(4)
    assert not controller.submit_move(4)
    assert not controller.submit_move(9)
    assert controller.state.mover == "O"
    assert controller.state.board.move_count() == 1

    for index in (0, 3, 1, 5, 2):
        controller.submit_move(index)
    assert not controller.state.active
    assert not controller.submit_move(8)


def test_computer_replies_after_human_move():
    scheduler = ImmediateScheduler()
    controller = _computer_game(scheduler)
    assert controller.submit_move(0)
    assert controller.state.board[4] == "O"
    assert controller.state.mover == "X"
    assert scheduler.delays == [500]


def test_human_cannot_move_for_computer():
    scheduler = DeferredScheduler()
    controller = _computer_game(scheduler)
    controller.submit_move(0)
    assert controller.computer_pending
    assert not controller.submit_move(1)

    scheduler.fire()
    assert controller.state.board.move_count() == 2
    assert not controller.computer_pending


def test_computer_win_counts_as_loss():
    recorder = Recorder()
    controller = _computer_game(listener=recorder)
    for index in (0, 1, 5):
        controller.submit_move(index)

    assert controller.state.outcome.winner == "O"
    assert controller.state.outcome.result == "lose"
    assert controller.stats.losses == 1
    assert controller.stats.wins == 0
    assert recorder.lines == [[(2, 4, 6)]]


def test_stale_computer_turn_ignored_after_restart():
    scheduler = DeferredScheduler()
    controller = _computer_game(scheduler)
    controller.submit_move(0)
    controller.restart()  # computer opens the second game
    assert len(scheduler.calls) == 2

    scheduler.fire(0)
    assert controller.state.board.move_count() == 0
    scheduler.fire(0)
    assert controller.state.board.move_count() == 1
    assert controller.state.mover == "X"


def test_restart_alternates_first_mover():
    scheduler = DeferredScheduler()
    controller = _computer_game(scheduler)
    openers = [controller.state.first_mover]
    for _ in range(4):
        controller.restart()
        openers.append(controller.state.first_mover)
    assert openers == ["X", "O", "X", "O", "X"]
    assert controller.state.game_count == 4
    # one computer turn requested for each game the computer opened
    assert len(scheduler.calls) == 2


def test_restart_keeps_statistics_and_reset_clears_them():
    controller = _human_game()
    for index in (0, 4, 1, 3, 2):
        controller.submit_move(index)
    controller.restart()
    assert controller.stats.wins == 1
    assert controller.state.active

    controller.reset_statistics()
    assert controller.stats.total == 0
    assert controller.state.game_count == 0


def test_restart_and_reset_starts_from_first_game():
    controller = _human_game()
    controller.restart()
    assert controller.state.first_mover == "O"
    controller.restart_and_reset()
    assert controller.state.first_mover == "X"
    assert controller.state.game_count == 0


def test_replay_reproduces_outcome():
    controller = _computer_game()
    results = []
    for _ in range(2):
        controller.restart_and_reset()
        for index in (0, 1, 5):
            controller.submit_move(index)
        results.append((controller.state.outcome, controller.state.board.cells))
    assert results[0] == results[1]


def test_set_mode_restarts():
    controller = _computer_game(DeferredScheduler())
    controller.submit_move(4)
    controller.set_mode(Mode.HUMAN_VS_HUMAN)
    assert controller.mode is Mode.HUMAN_VS_HUMAN
    assert controller.state.board.move_count() == 0
    assert controller.computer_mark is None
    assert controller.turn_label() == "Player O's turn"


def test_no_legal_move_is_logged_and_scored_draw(caplog):
    scheduler = DeferredScheduler()
    controller = _computer_game(scheduler)
    controller.submit_move(0)

    def broken(board, mover):
        raise NoLegalMove("none")

    controller.policy.choose_move = broken
    with caplog.at_level(logging.ERROR, logger="tictactoe.controller"):
        scheduler.fire()

    assert not controller.state.active
    assert controller.state.outcome.drawn
    assert controller.stats.draws == 1
    assert "no legal move" in caplog.text


def test_win_rate_rounds_percentage():
    controller = _human_game()
    assert controller.stats.win_rate == 0
    controller.stats.wins = 1
    controller.stats.draws = 2
    assert controller.stats.win_rate == 33
