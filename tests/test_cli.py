"""Tests for the text frontend."""

from __future__ import annotations

from typing import Iterable

import pytest

from seabattle import cli
from seabattle.engine.board import Board, ShotOutcome
from seabattle.engine.grid import Coordinate
from seabattle.engine.match import MatchController, Screen, Shot, Side, TurnReport
from seabattle.settings import Difficulty, GameSettings


def _scripted(answers: Iterable[str]):
    pending = iter(answers)
    return lambda prompt: next(pending)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("A5", Coordinate(4, 0)),
        ("j10", Coordinate(9, 9)),
        (" 3 7 ", Coordinate(7, 3)),
        ("0 4", Coordinate(4, 0)),
    ],
)
def test_coordinate_from_input(text: str, expected: Coordinate) -> None:
    assert cli.coordinate_from_input(text, 10) == expected


@pytest.mark.parametrize("text", ["", "K1", "A11", "A", "A0", "3", "x y", "10 0"])
def test_coordinate_from_input_rejects_bad_text(text: str) -> None:
    with pytest.raises(ValueError):
        cli.coordinate_from_input(text, 10)


def test_format_coordinate_uses_row_letters() -> None:
    assert cli.format_coordinate(Coordinate(4, 0)) == "A5"
    assert cli.format_coordinate(Coordinate(0, 14)) == "O1"


def test_format_board_hides_ships_on_enemy_view() -> None:
    board = Board(size=6)
    board.place(0, 0, 2, vertical=False)
    board.receive_shot(0, 0)
    board.receive_shot(5, 5)

    own = cli.format_board(board, show_ships=True).splitlines()
    enemy = cli.format_board(board, show_ships=False).splitlines()

    assert len(own) == 7
    assert own[1].split("|")[1].split() == ["X", "S", ".", ".", ".", "."]
    assert enemy[1].split("|")[1].split() == ["X", ".", ".", ".", ".", "."]
    assert enemy[6].split("|")[1].split()[-1] == "o"

    board.receive_shot(1, 0)
    sunk = cli.format_board(board, show_ships=False).splitlines()
    assert sunk[1].split("|")[1].split()[:2] == ["#", "#"]


def test_describe_turn_lists_every_shot() -> None:
    report = TurnReport(
        accepted=True,
        player_shot=Shot(Side.PLAYER, Coordinate(1, 2), ShotOutcome.MISS),
        opponent_shots=[Shot(Side.OPPONENT, Coordinate(0, 0), ShotOutcome.SUNK)],
    )
    assert cli.describe_turn(report) == [
        "You fired at C2: miss",
        "The enemy fired at A1: sunk",
    ]
    assert cli.describe_turn(TurnReport(accepted=False)) == []
    assert cli.format_stats(MatchController(rng_seed=1)).endswith("Accuracy: -")


def test_parser_reads_game_options() -> None:
    args = cli.build_parser().parse_args(
        ["--seed", "4", "--ai-level", "2", "--grid-size", "8", "--ship-set", "3,2,2"]
    )
    assert args.seed == 4
    assert args.ai_level == 2
    assert args.grid_size == 8
    assert args.ship_set == (3, 2, 2)
    assert not args.telemetry


def test_settings_screen_then_exit(capsys: pytest.CaptureFixture[str]) -> None:
    match = MatchController(rng_seed=1)

    cli.play(match, ask=_scripted(["2", "2", "-1", "9", "", "3"]))

    assert match.screen is Screen.EXIT
    assert match.settings.grid_size == 11
    assert match.settings.ai_level is Difficulty.HUNT_TARGET
    assert "Please pick 1, 2 or 3." in capsys.readouterr().out


def test_manual_placement_auto_then_quit(capsys: pytest.CaptureFixture[str]) -> None:
    match = MatchController(GameSettings(grid_size=6, ship_set=(2,)), rng_seed=2)

    with pytest.raises(SystemExit, match="Goodbye!"):
        cli.play(match, ask=_scripted(["1", "2", "r", "zz", "auto", "q"]))

    assert match.screen is Screen.PLAYING
    assert match.player_board.is_fleet_complete((2,))
    out = capsys.readouterr().out
    assert "Invalid coordinate" in out
    assert "Enemy Waters:" in out


def test_random_game_played_to_the_end(capsys: pytest.CaptureFixture[str]) -> None:
    settings = GameSettings(grid_size=6, ship_set=(2,))
    twin = MatchController(settings, rng_seed=5)
    twin.open_new_game()
    twin.choose_random_placement()
    targets = [cli.format_coordinate(c) for c in twin.opponent_board.ships[0].coordinates()]

    match = MatchController(settings, rng_seed=5)
    cli.play(match, ask=_scripted(["1", "1", *targets, "3"]))

    assert match.winner is Side.PLAYER
    assert match.screen is Screen.EXIT
    assert "Congratulations, you won!" in capsys.readouterr().out


def test_main_builds_match_from_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SEABATTLE_AI_LEVEL", "SEABATTLE_GRID_SIZE", "SEABATTLE_SHIP_SET"):
        monkeypatch.delenv(name, raising=False)
    played: list[MatchController] = []
    monkeypatch.setattr(cli, "play", played.append)

    cli.main(["--seed", "3", "--grid-size", "8", "--ship-set", "3,2"])

    assert len(played) == 1
    match = played[0]
    assert type(match) is MatchController
    assert match.settings.grid_size == 8
    assert match.settings.ship_set == (3, 2)
    assert match.opponent_board.size == 8


def test_main_rejects_invalid_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "play", lambda match: None)
    with pytest.raises(SystemExit):
        cli.main(["--grid-size", "20"])


def test_main_reports_bad_environment_values(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("SEABATTLE_GRID_SIZE", "ten")
    monkeypatch.setattr(cli, "play", lambda match: None)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2
    assert "grid_size" in capsys.readouterr().err


def test_log_level_is_restricted_to_known_levels() -> None:
    parser = cli.build_parser()
    assert parser.parse_args(["--log-level", "debug"]).log_level == "DEBUG"
    with pytest.raises(SystemExit):
        parser.parse_args(["--log-level", "chatty"])
