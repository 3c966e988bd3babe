"""Simple command-line driver for playing SeaBattle against the computer."""

from __future__ import annotations

import argparse
from typing import Callable, Sequence

from pydantic import ValidationError

from seabattle.engine.board import Board
from seabattle.engine.grid import Coordinate
from seabattle.engine.instrumented_match import InstrumentedMatchController
from seabattle.engine.match import MatchController, Screen, Side, TurnReport
from seabattle.settings import GameSettings, parse_ship_set
from seabattle.telemetry import TelemetryConfig, configure_logging, init_telemetry

ROW_LABELS = "ABCDEFGHIJKLMNO"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

InputFn = Callable[[str], str]


def coordinate_from_input(text: str, size: int) -> Coordinate:
    """Parse ``A5`` (row letter, column number) or ``row col`` (both zero-based)."""
    cleaned = text.strip().upper()
    if not cleaned:
        raise ValueError("Empty coordinate.")
    labels = ROW_LABELS[:size]
    if cleaned[0].isalpha():
        if cleaned[0] not in labels:
            raise ValueError(f"Row must be between A and {labels[-1]}.")
        y = labels.index(cleaned[0])
        try:
            x = int(cleaned[1:]) - 1
        except ValueError as exc:
            raise ValueError(f"Column must be a number between 1 and {size}.") from exc
    else:
        parts = cleaned.split()
        if len(parts) != 2:
            raise ValueError("Use formats like A5 or 'row col' such as '3 7'.")
        try:
            y, x = map(int, parts)
        except ValueError as exc:
            raise ValueError("Coordinates must be whole numbers.") from exc
    if x not in range(size) or y not in range(size):
        raise ValueError(f"Coordinates must be within the {size}x{size} board.")
    return Coordinate(x, y)


def format_coordinate(coord: Coordinate) -> str:
    return f"{ROW_LABELS[coord.y]}{coord.x + 1}"


def format_board(board: Board, show_ships: bool) -> str:
    header = "    " + " ".join(f"{col + 1:>2}" for col in range(board.size))
    rows = [header]
    for y in range(board.size):
        symbols = []
        for x in range(board.size):
            if board.is_sunk_cell(x, y):
                symbol = "#"
            elif board.is_hit_cell(x, y):
                symbol = "X"
            elif board.is_miss_cell(x, y):
                symbol = "o"
            elif show_ships and board.is_ship_cell(x, y):
                symbol = "S"
            else:
                symbol = "."
            symbols.append(f"{symbol:>2}")
        rows.append(f"{ROW_LABELS[y]} |" + " ".join(symbols))
    return "\n".join(rows)


def describe_turn(report: TurnReport) -> list[str]:
    lines = []
    for shot in [report.player_shot, *report.opponent_shots]:
        if shot is None:
            continue
        who = "You" if shot.side is Side.PLAYER else "The enemy"
        lines.append(f"{who} fired at {format_coordinate(shot.coord)}: {shot.outcome.value}")
    return lines


def format_stats(match: MatchController) -> str:
    stats = match.stats
    accuracy = "-" if stats.accuracy is None else f"{stats.accuracy:.1f}%"
    return (
        f"Shots: {stats.shots}   Hits: {stats.hits}   "
        f"Misses: {stats.misses}   Accuracy: {accuracy}"
    )


def _settings_screen(match: MatchController, ask: InputFn) -> None:
    match.open_settings()
    options = ("ai_level", "grid_size", "ship_set")
    while match.screen is Screen.SETTINGS:
        described = match.settings.describe()
        for idx, name in enumerate(options, start=1):
            print(f"  {idx}) {name}: {described[name]}")
        raw = ask("Setting to change (1-3, prefix '-' to go back a step) or Enter to return: ")
        raw = raw.strip()
        if not raw:
            match.close_settings()
            continue
        step = -1 if raw.startswith("-") else 1
        try:
            name = options[int(raw.lstrip("-")) - 1]
        except (ValueError, IndexError):
            print("Please pick 1, 2 or 3.")
            continue
        try:
            match.change_setting(name, step)
        except ValidationError as exc:
            print(f"That setting does not fit the current fleet: {exc.errors()[0]['msg']}")


def _manual_placement(match: MatchController, ask: InputFn) -> None:
    while match.screen is Screen.PLACING and match.ships_remaining:
        print("\nCurrent layout:")
        print(format_board(match.player_board, show_ships=True))
        orientation = "vertical" if match.placing_vertical else "horizontal"
        length = match.current_ship_length
        raw = ask(
            f"Place ship of length {length} ({orientation}). "
            "Coordinate (A5 or 'row col'), 'r' to rotate, 'auto' for random, 'q' for menu: "
        ).strip()
        if raw.lower() == "q":
            match.back_to_menu()
            return
        if raw.lower() == "r":
            match.toggle_orientation()
            continue
        if raw.lower() == "auto":
            match.randomize_placement()
            break
        try:
            coord = coordinate_from_input(raw, match.player_board.size)
        except ValueError as exc:
            print(f"Invalid coordinate: {exc}")
            continue
        if not match.place_next_ship(coord.x, coord.y):
            print("Ship cannot be placed there (out of bounds or touching another ship).")
    match.start_battle()


def _battle(match: MatchController, ask: InputFn) -> None:
    while match.screen is Screen.PLAYING and not match.game_over:
        print("\nYour Board:")
        print(format_board(match.player_board, show_ships=True))
        print("\nEnemy Waters:")
        print(format_board(match.opponent_board, show_ships=False))
        print(format_stats(match))
        if match.show_hint:
            print("Hint: try firing in a checkerboard pattern to find ships!")

        raw = ask("Enter target as A5 or 'row col' (e.g. '0 4'), or 'q' to quit: ").strip()
        if raw.lower() == "q":
            raise SystemExit("Goodbye!")
        try:
            coord = coordinate_from_input(raw, match.opponent_board.size)
        except ValueError as exc:
            print(f"Invalid input: {exc}")
            continue
        report = match.player_fire(coord.x, coord.y)
        if not report.accepted:
            print("That cell has already been targeted. Choose another.")
            continue
        for line in describe_turn(report):
            print(line)

    if match.winner is Side.PLAYER:
        print("\nCongratulations, you won!")
    else:
        print("\nThe enemy won this time. Better luck next battle!")
    print(format_stats(match))
    match.acknowledge_game_over()


def play(match: MatchController, ask: InputFn = input) -> None:
    print("Welcome to SeaBattle!\n")
    while match.screen is not Screen.EXIT:
        raw = ask("[1] New game  [2] Settings  [3] Exit: ").strip()
        if raw == "1":
            match.open_new_game()
            choice = ask("[1] Random placement  [2] Manual placement  [Enter] Back: ").strip()
            if choice == "1":
                match.choose_random_placement()
                print("\nYour ships have been positioned automatically.")
            elif choice == "2":
                match.choose_manual_placement()
                _manual_placement(match, ask)
            else:
                match.back_to_menu()
                continue
            if match.screen is Screen.PLAYING:
                _battle(match, ask)
        elif raw == "2":
            _settings_screen(match, ask)
        elif raw == "3":
            match.exit()
        else:
            print("Please choose 1, 2 or 3.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play SeaBattle via the CLI.")
    parser.add_argument(
        "--seed", type=int, default=None, help="Optional RNG seed for reproducibility."
    )
    parser.add_argument(
        "--ai-level", type=int, choices=(1, 2), default=None, help="1 = random, 2 = hunt/target."
    )
    parser.add_argument("--grid-size", type=int, default=None, help="Board size, 6 to 15.")
    parser.add_argument(
        "--ship-set", type=parse_ship_set, default=None, help="Comma separated ship lengths."
    )
    parser.add_argument(
        "--telemetry", action="store_true", help="Initialise OpenTelemetry from the environment."
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="WARNING",
        help="Console log level.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        key: value
        for key, value in (
            ("ai_level", args.ai_level),
            ("grid_size", args.grid_size),
            ("ship_set", args.ship_set),
        )
        if value is not None
    }
    try:
        settings = GameSettings.from_env(**overrides)
    except ValidationError as exc:
        parser.error(str(exc))

    configure_logging(args.log_level)
    if args.telemetry:
        init_telemetry(TelemetryConfig.from_env(log_level=args.log_level))
        match: MatchController = InstrumentedMatchController(settings, rng_seed=args.seed)
    else:
        match = MatchController(settings, rng_seed=args.seed)
    play(match)


if __name__ == "__main__":
    main()
