"""Ship domain model for the SeaBattle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .grid import Coordinate


class Orientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def from_vertical(cls, vertical: bool) -> Orientation:
        return cls.VERTICAL if vertical else cls.HORIZONTAL

    @property
    def step(self) -> tuple[int, int]:
        """Offset between consecutive segments as ``(dx, dy)``."""
        return (0, 1) if self is Orientation.VERTICAL else (1, 0)


def ship_cells(start: Coordinate, length: int, orientation: Orientation) -> list[Coordinate]:
    """Return the run of ``length`` cells starting at ``start``.

    The run is not bounds checked; callers validate it against a grid.
    """
    dx, dy = orientation.step
    return [start.offset(dx * i, dy * i) for i in range(length)]


@dataclass
class Ship:
    """A placed ship: its cells never change, only the hit counter does."""

    length: int
    start: Coordinate
    orientation: Orientation
    hits: int = field(default=0, init=False)
    _coordinates: tuple[Coordinate, ...] = field(init=False, repr=False)
    _coordinate_set: frozenset[Coordinate] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.length < 1:
            raise ValueError("Ship length must be at least 1.")
        self._coordinates = tuple(ship_cells(self.start, self.length, self.orientation))
        self._coordinate_set = frozenset(self._coordinates)

    def coordinates(self) -> list[Coordinate]:
        """Return the ordered list of coordinates occupied by this ship."""
        return list(self._coordinates)

    def occupies(self, coord: Coordinate) -> bool:
        return coord in self._coordinate_set

    def register_hit(self) -> None:
        """Count one more hit, never beyond the ship's length."""
        if self.hits < self.length:
            self.hits += 1

    def is_sunk(self) -> bool:
        return self.hits == self.length

    def overlaps(self, other: Ship) -> bool:
        """Return True if any coordinate overlaps with another ship."""
        return bool(self._coordinate_set & other._coordinate_set)
