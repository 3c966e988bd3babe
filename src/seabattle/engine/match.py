"""Match controller: screen flow, turn sequencing and win detection."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum

from seabattle.settings import GameSettings
from seabattle.telemetry import get_counter, get_tracer

from .board import Board, ShotOutcome, create_board
from .grid import Coordinate
from .ship import Orientation, ship_cells
from .targeting import Opponent

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.match")

MOVE_COUNTER = get_counter(
    "seabattle_engine_moves",
    description="Shots fired in a match, by side and outcome",
)

HINT_AFTER_MISSES = 5


class Screen(Enum):
    """Screens the presentation layer can show."""

    MENU = "menu"
    SETTINGS = "settings"
    PLACING_CHOICE = "placing_choice"
    PLACING = "placing"
    PLAYING = "playing"
    EXIT = "exit"


class Side(Enum):
    """The two sides of a match."""

    PLAYER = "player"
    OPPONENT = "opponent"


@dataclass
class PlayerStats:
    """Shot statistics for the human side."""

    shots: int = 0
    hits: int = 0
    misses: int = 0
    consecutive_misses: int = 0

    def record(self, hit: bool) -> None:
        self.shots += 1
        if hit:
            self.hits += 1
            self.consecutive_misses = 0
        else:
            self.misses += 1
            self.consecutive_misses += 1

    @property
    def accuracy(self) -> float | None:
        """Hit percentage, or ``None`` before the first shot."""
        if self.shots == 0:
            return None
        return 100.0 * self.hits / self.shots


@dataclass(frozen=True)
class Shot:
    side: Side
    coord: Coordinate
    outcome: ShotOutcome


@dataclass
class TurnReport:
    """What happened after the player pulled the trigger."""

    accepted: bool
    player_shot: Shot | None = None
    opponent_shots: list[Shot] = field(default_factory=list)
    winner: Side | None = None


@dataclass(frozen=True)
class PlacementPreview:
    """Cells a pending ship would cover and whether it may go there."""

    cells: tuple[Coordinate, ...]
    valid: bool


@dataclass(frozen=True)
class MatchState:
    """Immutable snapshot of the controller for presentation code."""

    screen: Screen
    player_turn: bool
    game_over: bool
    winner: Side | None
    ships_remaining: tuple[int, ...]
    placing_vertical: bool
    stats: PlayerStats
    status: str
    show_hint: bool


class MatchController:
    """Owns both boards and the opponent, and sequences a match.

    Each call to :meth:`reset` replaces the boards, the opponent state and the
    statistics wholesale, so nothing carries over between matches.
    """

    def __init__(self, settings: GameSettings | None = None, rng_seed: int | None = None) -> None:
        self.settings = settings or GameSettings()
        self._rng = random.Random(rng_seed)
        self.opponent = Opponent(random.Random(self._rng.getrandbits(32)))
        self.screen: Screen = Screen.MENU
        self.player_board: Board
        self.opponent_board: Board
        self.player_turn = True
        self.game_over = False
        self.winner: Side | None = None
        self.stats = PlayerStats()
        self.placing_vertical = False
        self._placement_index = 0
        self.reset()

    # -- navigation ------------------------------------------------------

    def _go(self, screen: Screen) -> None:
        logger.debug("screen_change", extra={"from": self.screen.value, "to": screen.value})
        self.screen = screen

    def open_new_game(self) -> bool:
        if self.screen is not Screen.MENU:
            return False
        self._go(Screen.PLACING_CHOICE)
        return True

    def open_settings(self) -> bool:
        if self.screen is not Screen.MENU:
            return False
        self._go(Screen.SETTINGS)
        return True

    def close_settings(self) -> bool:
        if self.screen is not Screen.SETTINGS:
            return False
        self._go(Screen.MENU)
        return True

    def back_to_menu(self) -> bool:
        """Abandon placement and return to the menu."""
        if self.screen not in (Screen.PLACING_CHOICE, Screen.PLACING):
            return False
        self._go(Screen.MENU)
        return True

    def exit(self) -> None:
        self._go(Screen.EXIT)

    def change_setting(self, name: str, step: int = 1) -> GameSettings:
        """Cycle one setting on the settings screen; takes effect on the next reset."""
        cyclers = {
            "ai_level": self.settings.cycle_ai_level,
            "grid_size": self.settings.cycle_grid_size,
            "ship_set": self.settings.cycle_ship_set,
        }
        if name not in cyclers:
            raise ValueError(f"Unknown setting {name!r}.")
        if self.screen is Screen.SETTINGS:
            self.settings = cyclers[name](step)
            logger.info("setting_changed", extra={"setting": name, **self.settings.describe()})
        return self.settings

    # -- setup -----------------------------------------------------------

    def reset(self) -> None:
        """Start a fresh match with the current settings."""
        self.player_board = create_board(True, self.settings, owner=Side.PLAYER.value)
        self.opponent_board = create_board(
            False, self.settings, self._rng, owner=Side.OPPONENT.value
        )
        self._complete_fleet(self.opponent_board, retries_used=1)
        self.opponent.reset()
        self.player_turn = True
        self.game_over = False
        self.winner = None
        self.stats = PlayerStats()
        self.placing_vertical = False
        self._placement_index = 0
        logger.info(
            "match_reset",
            extra={
                "grid_size": self.settings.grid_size,
                "ai_level": int(self.settings.ai_level),
                "ships": len(self.settings.ship_set),
            },
        )

    def _complete_fleet(self, board: Board, retries_used: int = 0) -> None:
        """Re-roll a random layout until the whole fleet fits or retries run out."""
        lengths = self.settings.ship_set
        attempts = self.settings.placement_attempts
        tries = retries_used
        while not board.is_fleet_complete(lengths) and tries < self.settings.placement_retries:
            board.place_random_fleet(lengths, self._rng, max_attempts=attempts)
            tries += 1
        if not board.is_fleet_complete(lengths):
            logger.warning(
                "fleet_incomplete",
                extra={
                    "owner": board.owner,
                    "placed": len(board.ships),
                    "expected": len(lengths),
                },
            )

    def choose_random_placement(self) -> bool:
        if self.screen is not Screen.PLACING_CHOICE:
            return False
        self.reset()
        self._random_layout()
        self._go(Screen.PLAYING)
        return True

    def choose_manual_placement(self) -> bool:
        if self.screen is not Screen.PLACING_CHOICE:
            return False
        self.reset()
        self._go(Screen.PLACING)
        return True

    @property
    def ships_remaining(self) -> tuple[int, ...]:
        return tuple(self.settings.ship_set[self._placement_index :])

    @property
    def current_ship_length(self) -> int | None:
        remaining = self.ships_remaining
        return remaining[0] if remaining else None

    def toggle_orientation(self) -> bool:
        """Flip the orientation of the next ship; only while placing."""
        if self.screen is not Screen.PLACING:
            return False
        self.placing_vertical = not self.placing_vertical
        return self.placing_vertical

    def placement_preview(self, x: int, y: int) -> PlacementPreview | None:
        """Describe where the next ship would land if placed at ``(x, y)``."""
        length = self.current_ship_length
        if length is None:
            return None
        run = ship_cells(Coordinate(x, y), length, Orientation.from_vertical(self.placing_vertical))
        visible = tuple(c for c in run if self.player_board.grid.in_bounds(c.x, c.y))
        valid = self.player_board.can_place(x, y, length, self.placing_vertical)
        return PlacementPreview(cells=visible, valid=valid)

    def place_next_ship(self, x: int, y: int) -> bool:
        """Place the next ship of the fleet at ``(x, y)`` if the spot is legal."""
        length = self.current_ship_length
        if self.screen is not Screen.PLACING or length is None:
            return False
        if not self.player_board.can_place(x, y, length, self.placing_vertical):
            logger.debug("manual_placement_rejected", extra={"x": x, "y": y, "length": length})
            return False
        self.player_board.place(x, y, length, self.placing_vertical)
        self._placement_index += 1
        return True

    def randomize_placement(self) -> bool:
        """Lay out the whole player fleet at random, replacing manual progress."""
        if self.screen is not Screen.PLACING:
            return False
        self._random_layout()
        return True

    def _random_layout(self) -> None:
        self.player_board.place_random_fleet(
            self.settings.ship_set, self._rng, max_attempts=self.settings.placement_attempts
        )
        self._complete_fleet(self.player_board, retries_used=1)
        self._placement_index = len(self.settings.ship_set)

    def start_battle(self) -> bool:
        if self.screen is not Screen.PLACING or self.ships_remaining:
            return False
        self._go(Screen.PLAYING)
        return True

    # -- play ------------------------------------------------------------

    def player_fire(self, x: int, y: int) -> TurnReport:
        """Fire at the opponent's board and let the opponent answer on a miss."""
        if self.screen is not Screen.PLAYING or self.game_over or not self.player_turn:
            return TurnReport(accepted=False)

        with tracer.start_as_current_span("match.player_fire") as span:
            span.set_attribute("x", x)
            span.set_attribute("y", y)
            outcome = self.opponent_board.resolve_shot(x, y)
            shot = Shot(Side.PLAYER, Coordinate(x, y), outcome)
            if outcome.is_rejected:
                span.set_attribute("rejected", True)
                return TurnReport(accepted=False, player_shot=shot)

            report = TurnReport(accepted=True, player_shot=shot)
            self._record(shot)
            self.stats.record(outcome.is_hit)

            if self.opponent_board.all_sunk():
                self._finish(Side.PLAYER)
            elif not outcome.is_hit:
                self.player_turn = False
                self._opponent_turn(report)
            report.winner = self.winner
            span.set_attribute("outcome", outcome.value)
            return report

    def _opponent_turn(self, report: TurnReport) -> None:
        """Let the opponent fire until it misses or wins.

        Every hit consumes a ship cell, so the loop cannot run more often than
        there are cells on the board.
        """
        board = self.player_board
        for _ in range(board.size * board.size):
            coord = self.opponent.get_move(board, self.settings.ai_level)
            outcome = board.resolve_shot(coord.x, coord.y)
            shot = Shot(Side.OPPONENT, coord, outcome)
            report.opponent_shots.append(shot)
            self._record(shot)
            if board.all_sunk():
                self._finish(Side.OPPONENT)
                return
            if not outcome.is_hit:
                break
        self.player_turn = True

    def _record(self, shot: Shot) -> None:
        MOVE_COUNTER.add(1, attributes={"side": shot.side.value, "outcome": shot.outcome.value})

    def _finish(self, winner: Side) -> None:
        self.game_over = True
        self.winner = winner
        logger.info(
            "match_finished",
            extra={"winner": winner.value, "player_shots": self.stats.shots},
        )

    def acknowledge_game_over(self) -> bool:
        if self.screen is not Screen.PLAYING or not self.game_over:
            return False
        self._go(Screen.MENU)
        return True

    # -- queries ---------------------------------------------------------

    @property
    def status(self) -> str:
        if self.game_over:
            return "game_over"
        return "player_turn" if self.player_turn else "opponent_turn"

    @property
    def show_hint(self) -> bool:
        """Suggest a checkerboard sweep after a run of misses."""
        return (
            self.stats.consecutive_misses >= HINT_AFTER_MISSES
            and not self.game_over
            and self.player_turn
        )

    def get_state(self) -> MatchState:
        return MatchState(
            screen=self.screen,
            player_turn=self.player_turn,
            game_over=self.game_over,
            winner=self.winner,
            ships_remaining=self.ships_remaining,
            placing_vertical=self.placing_vertical,
            stats=PlayerStats(**vars(self.stats)),
            status=self.status,
            show_hint=self.show_hint,
        )
