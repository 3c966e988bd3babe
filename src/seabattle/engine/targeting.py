"""Opponent targeting: random fire and the hunt/target heuristic."""

from __future__ import annotations

import logging
import random
from collections import deque

from seabattle.settings import Difficulty
from seabattle.telemetry import get_counter

from .board import Board
from .grid import Coordinate

logger = logging.getLogger(__name__)

MOVE_COUNTER = get_counter(
    "seabattle_opponent_moves",
    description="Targets chosen by the opponent, by difficulty and source",
)

FALLBACK_MOVE = Coordinate(0, 0)

# East, west, south, north. The order decides which neighbour of a hit is
# tried first.
DIRECTIONS: tuple[tuple[int, int], ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))


class Opponent:
    """Chooses where the computer player fires next.

    The hunt/target mode keeps a FIFO of candidate cells. Whenever it runs
    dry it is rebuilt from every hit currently on the board, so no "anchor"
    hit is remembered between derivations.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._targets: deque[Coordinate] = deque()

    @property
    def pending_targets(self) -> tuple[Coordinate, ...]:
        return tuple(self._targets)

    def reset(self) -> None:
        self._targets.clear()

    def get_move(self, board: Board, difficulty: int | Difficulty) -> Coordinate:
        """Return the next cell to fire at on ``board``.

        Returns ``(0, 0)`` when every cell has already been shot; callers
        treat that as a no-op move.
        """
        try:
            level = Difficulty(difficulty)
        except ValueError as exc:
            raise ValueError(f"Unknown difficulty {difficulty!r}.") from exc

        if level is Difficulty.RANDOM:
            move, source = self._random_move(board), "random"
        else:
            move, source = self._hunt_target_move(board)
        MOVE_COUNTER.add(1, attributes={"difficulty": int(level), "source": source})
        logger.debug(
            "opponent_move",
            extra={"x": move.x, "y": move.y, "difficulty": int(level), "source": source},
        )
        return move

    def _random_move(self, board: Board) -> Coordinate:
        candidates = board.unshot_cells()
        if not candidates:
            return FALLBACK_MOVE
        return self._rng.choice(candidates)

    def _hunt_target_move(self, board: Board) -> tuple[Coordinate, str]:
        queued = self._next_queued(board)
        if queued is not None:
            return queued, "queue"

        self._derive_targets(board)
        queued = self._next_queued(board)
        if queued is not None:
            return queued, "target"

        return self._sweep_move(board), "sweep"

    def _next_queued(self, board: Board) -> Coordinate | None:
        while self._targets:
            coord = self._targets.popleft()
            # Stale entries: shot since they were queued.
            if not board.is_shot_cell(coord.x, coord.y):
                return coord
        return None

    def _derive_targets(self, board: Board) -> None:
        """Queue the unshot cardinal neighbours of every hit, row by row."""
        seen: set[Coordinate] = set()
        for hit in board.hit_cells():
            for dx, dy in DIRECTIONS:
                coord = hit.offset(dx, dy)
                if coord in seen or not board.grid.in_bounds(coord.x, coord.y):
                    continue
                if board.is_shot_cell(coord.x, coord.y):
                    continue
                seen.add(coord)
                self._targets.append(coord)
        if self._targets:
            logger.debug("opponent_targets_derived", extra={"count": len(self._targets)})

    def _sweep_move(self, board: Board) -> Coordinate:
        unshot = board.unshot_cells()
        if not unshot:
            return FALLBACK_MOVE
        parity = [coord for coord in unshot if (coord.x + coord.y) % 2 == 0]
        return self._rng.choice(parity or unshot)
