"""Square cell grid underlying every board."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

import numpy as np
import numpy.typing as npt

GridArray = npt.NDArray[np.int8]


@dataclass(frozen=True)
class Coordinate:
    """Immutable board coordinate; ``x`` is the column, ``y`` the row."""

    x: int
    y: int

    def offset(self, dx: int, dy: int) -> Coordinate:
        return Coordinate(self.x + dx, self.y + dy)


class CellState(IntEnum):
    """Contents of a single cell."""

    EMPTY = 0
    SHIP = 1
    MISS = 2
    HIT = 3

    @property
    def is_shot(self) -> bool:
        return self in (CellState.MISS, CellState.HIT)


class Grid:
    """N×N array of :class:`CellState` values with bounds checking.

    Cells are stored row-major in a numpy array, so ``_cells[y, x]`` holds the
    state of column ``x`` in row ``y``.
    """

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("Grid size must be positive.")
        self.size = size
        self._cells: GridArray = np.full((size, size), CellState.EMPTY, dtype=np.int8)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def _check(self, x: int, y: int) -> None:
        if not self.in_bounds(x, y):
            raise IndexError(f"Cell ({x}, {y}) is outside a {self.size}x{self.size} grid.")

    def get(self, x: int, y: int) -> CellState:
        self._check(x, y)
        return CellState(int(self._cells[y, x]))

    def set(self, x: int, y: int, state: CellState) -> None:
        self._check(x, y)
        self._cells[y, x] = state

    def clear(self) -> None:
        self._cells.fill(CellState.EMPTY)

    def coordinates_with(self, *states: CellState) -> list[Coordinate]:
        """Return the coordinates whose state is one of ``states``, row-major."""
        mask = np.isin(self._cells, [int(state) for state in states])
        return [Coordinate(int(x), int(y)) for y, x in np.argwhere(mask)]

    def count(self, state: CellState) -> int:
        return int(np.count_nonzero(self._cells == state))

    def neighbours(self, x: int, y: int) -> Iterator[Coordinate]:
        """Yield the in-bounds Moore neighbourhood of a cell, excluding the cell."""
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                nx, ny = x + dx, y + dy
                if self.in_bounds(nx, ny):
                    yield Coordinate(nx, ny)

    def as_array(self) -> GridArray:
        """Return a read-only copy of the raw cell values."""
        view = self._cells.copy()
        view.flags.writeable = False
        return view

    def __repr__(self) -> str:
        return f"Grid(size={self.size})"
