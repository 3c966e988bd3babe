"""Single-side board: grid, fleet placement and shot resolution."""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Sequence

from seabattle.settings import DEFAULT_PLACEMENT_ATTEMPTS, GameSettings
from seabattle.telemetry import get_counter, get_tracer

from .grid import CellState, Coordinate, Grid
from .ship import Orientation, Ship, ship_cells

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.board")

PLACEMENT_COUNTER = get_counter(
    "seabattle_engine_ship_placements",
    description="Ships committed to a board, by placement mode",
)

EXHAUSTED_COUNTER = get_counter(
    "seabattle_engine_placement_exhausted",
    description="Ships skipped because random placement ran out of attempts",
)

SHOT_COUNTER = get_counter(
    "seabattle_engine_shots",
    description="Shots received by a board",
)


class ShotOutcome(Enum):
    """Result of resolving one shot against a board."""

    MISS = "miss"
    HIT = "hit"
    SUNK = "sunk"
    ALREADY_SHOT = "already_shot"
    OUT_OF_BOUNDS = "out_of_bounds"

    @property
    def is_hit(self) -> bool:
        return self in (ShotOutcome.HIT, ShotOutcome.SUNK)

    @property
    def is_rejected(self) -> bool:
        """True when the shot had no effect on the board."""
        return self in (ShotOutcome.ALREADY_SHOT, ShotOutcome.OUT_OF_BOUNDS)


class Board:
    """One side's waters: a grid plus the fleet placed on it."""

    def __init__(self, size: int = 10, reveal_ships: bool = False, owner: str = "unknown") -> None:
        self.grid = Grid(size)
        self.reveal_ships = reveal_ships
        self.owner = owner
        self._ships: list[Ship] = []

    @property
    def size(self) -> int:
        return self.grid.size

    @property
    def ships(self) -> tuple[Ship, ...]:
        return tuple(self._ships)

    # -- placement -------------------------------------------------------

    def is_area_free(self, x: int, y: int) -> bool:
        """True when neither the cell nor any of its 8 neighbours holds a ship."""
        if self.grid.get(x, y) is CellState.SHIP:
            return False
        return all(
            self.grid.get(n.x, n.y) is not CellState.SHIP for n in self.grid.neighbours(x, y)
        )

    def _segment_is_clear(self, coord: Coordinate) -> bool:
        return (
            self.grid.in_bounds(coord.x, coord.y)
            and self.grid.get(coord.x, coord.y) is CellState.EMPTY
            and self.is_area_free(coord.x, coord.y)
        )

    def can_place(self, x: int, y: int, length: int, vertical: bool) -> bool:
        """Check whether a ship fits at ``(x, y)`` without touching another."""
        if length < 1:
            return False
        run = ship_cells(Coordinate(x, y), length, Orientation.from_vertical(vertical))
        return all(self._segment_is_clear(coord) for coord in run)

    def place(self, x: int, y: int, length: int, vertical: bool) -> Ship:
        """Commit a ship without validation; call :meth:`can_place` first."""
        ship = Ship(length, Coordinate(x, y), Orientation.from_vertical(vertical))
        self._commit(ship, mode="manual")
        return ship

    def _commit(self, ship: Ship, mode: str) -> None:
        for coord in ship.coordinates():
            self.grid.set(coord.x, coord.y, CellState.SHIP)
        self._ships.append(ship)
        PLACEMENT_COUNTER.add(1, attributes={"mode": mode, "owner": self.owner})
        logger.debug(
            "ship_placed",
            extra={
                "owner": self.owner,
                "length": ship.length,
                "orientation": ship.orientation.name,
                "x": ship.start.x,
                "y": ship.start.y,
                "mode": mode,
            },
        )

    def place_random_fleet(
        self,
        lengths: Sequence[int],
        rng: random.Random,
        max_attempts: int = DEFAULT_PLACEMENT_ATTEMPTS,
    ) -> list[int]:
        """Clear the board and randomly place one ship per length, in order.

        Each length gets ``max_attempts`` random orientation/anchor picks. A
        length that never fits is skipped; the skipped lengths are returned.
        """
        with tracer.start_as_current_span("board.place_random_fleet") as span:
            span.set_attribute("board.owner", self.owner)
            span.set_attribute("board.size", self.size)
            span.set_attribute("fleet.ships", len(lengths))
            self.clear()
            skipped: list[int] = []
            for length in lengths:
                attempts = 0
                placed = False
                while not placed and attempts < max_attempts:
                    orientation = rng.choice((Orientation.VERTICAL, Orientation.HORIZONTAL))
                    anchor = Coordinate(rng.randrange(self.size), rng.randrange(self.size))
                    run = ship_cells(anchor, length, orientation)
                    if all(self._segment_is_clear(coord) for coord in run):
                        self._commit(Ship(length, anchor, orientation), mode="random")
                        placed = True
                    attempts += 1
                if not placed:
                    skipped.append(length)
                    EXHAUSTED_COUNTER.add(1, attributes={"owner": self.owner, "length": length})
                    logger.warning(
                        "ship_placement_exhausted",
                        extra={"owner": self.owner, "length": length, "attempts": attempts},
                    )
            span.set_attribute("fleet.skipped", len(skipped))
            return skipped

    def clear(self) -> None:
        """Wipe every cell back to empty and drop the fleet."""
        self.grid.clear()
        self._ships.clear()

    def is_fleet_complete(self, lengths: Sequence[int]) -> bool:
        """True when the placed ships match ``lengths`` exactly, in any order."""
        return sorted(ship.length for ship in self._ships) == sorted(lengths)

    # -- shots -----------------------------------------------------------

    def resolve_shot(self, x: int, y: int) -> ShotOutcome:
        """Apply a shot and report what it did.

        Out-of-bounds and repeated shots leave the board untouched.
        """
        with tracer.start_as_current_span("board.resolve_shot") as span:
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            span.set_attribute("board.owner", self.owner)
            outcome = self._apply_shot(x, y)
            span.set_attribute("shot.outcome", outcome.value)
            SHOT_COUNTER.add(1, attributes={"outcome": outcome.value, "owner": self.owner})
            return outcome

    def _apply_shot(self, x: int, y: int) -> ShotOutcome:
        if not self.grid.in_bounds(x, y):
            logger.warning("shot_out_of_bounds", extra={"x": x, "y": y, "owner": self.owner})
            return ShotOutcome.OUT_OF_BOUNDS

        state = self.grid.get(x, y)
        if state is CellState.EMPTY:
            self.grid.set(x, y, CellState.MISS)
            logger.info("shot_miss", extra={"x": x, "y": y, "owner": self.owner})
            return ShotOutcome.MISS
        if state is CellState.SHIP:
            self.grid.set(x, y, CellState.HIT)
            ship = self.ship_at(x, y)
            if ship is None:
                # A ship cell that no ship claims; still counts as a hit.
                logger.error("shot_hit_orphan_cell", extra={"x": x, "y": y, "owner": self.owner})
                return ShotOutcome.HIT
            ship.register_hit()
            sunk = ship.is_sunk()
            logger.info(
                "shot_sunk" if sunk else "shot_hit",
                extra={"x": x, "y": y, "length": ship.length, "owner": self.owner},
            )
            return ShotOutcome.SUNK if sunk else ShotOutcome.HIT

        logger.info(
            "shot_repeated",
            extra={"x": x, "y": y, "state": state.name, "owner": self.owner},
        )
        return ShotOutcome.ALREADY_SHOT

    def receive_shot(self, x: int, y: int) -> bool:
        """Apply a shot and return whether it hit a ship.

        Repeated and out-of-bounds shots read as misses without any effect.
        """
        return self.resolve_shot(x, y).is_hit

    # -- queries ---------------------------------------------------------

    def ship_at(self, x: int, y: int) -> Ship | None:
        coord = Coordinate(x, y)
        for ship in self._ships:
            if ship.occupies(coord):
                return ship
        return None

    def is_shot_cell(self, x: int, y: int) -> bool:
        return self.grid.get(x, y).is_shot

    def is_hit_cell(self, x: int, y: int) -> bool:
        return self.grid.get(x, y) is CellState.HIT

    def is_miss_cell(self, x: int, y: int) -> bool:
        return self.grid.get(x, y) is CellState.MISS

    def is_ship_cell(self, x: int, y: int) -> bool:
        return self.grid.get(x, y) is CellState.SHIP

    def is_sunk_cell(self, x: int, y: int) -> bool:
        ship = self.ship_at(x, y)
        return ship is not None and ship.is_sunk()

    def all_sunk(self) -> bool:
        """True when every ship has been sunk (vacuously true for an empty fleet)."""
        return all(ship.is_sunk() for ship in self._ships)

    def unshot_cells(self) -> list[Coordinate]:
        """Coordinates not yet fired at, row-major."""
        return self.grid.coordinates_with(CellState.EMPTY, CellState.SHIP)

    def hit_cells(self) -> list[Coordinate]:
        return self.grid.coordinates_with(CellState.HIT)

    def __repr__(self) -> str:
        return f"Board(owner={self.owner!r}, size={self.size}, ships={len(self._ships)})"


def create_board(
    reveal_ships: bool,
    settings: GameSettings,
    rng: random.Random | None = None,
    owner: str = "unknown",
) -> Board:
    """Build a board for ``settings``.

    Revealed boards belong to the human side and start empty so the fleet can
    be placed by hand; hidden boards are populated at random straight away.
    """
    board = Board(size=settings.grid_size, reveal_ships=reveal_ships, owner=owner)
    if not reveal_ships:
        board.place_random_fleet(
            settings.ship_set, rng or random.Random(), max_attempts=settings.placement_attempts
        )
    return board
