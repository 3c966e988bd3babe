"""Game settings consumed by the engine.

Settings are immutable: the settings screen produces a new value through the
``cycle_*`` helpers and every component receives the value it should use at
construction time.
"""

from __future__ import annotations

import os
from enum import IntEnum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_GRID_SIZE = 6
MAX_GRID_SIZE = 15
DEFAULT_PLACEMENT_ATTEMPTS = 1000

SHIP_SET_PRESETS: tuple[tuple[int, ...], ...] = (
    (5, 4, 3, 3, 2),
    (4, 3, 3, 2, 2, 2),
    (3, 3, 2, 2, 2, 1, 1),
)

_SETTINGS_ENV = {
    "ai_level": "SEABATTLE_AI_LEVEL",
    "grid_size": "SEABATTLE_GRID_SIZE",
    "ship_set": "SEABATTLE_SHIP_SET",
    "placement_attempts": "SEABATTLE_PLACEMENT_ATTEMPTS",
    "placement_retries": "SEABATTLE_PLACEMENT_RETRIES",
}


class Difficulty(IntEnum):
    """Opponent targeting strategies."""

    RANDOM = 1
    HUNT_TARGET = 2


class GameSettings(BaseModel):
    """Configuration for one match: opponent level, grid size and fleet."""

    model_config = ConfigDict(frozen=True)

    ai_level: Difficulty = Difficulty.RANDOM
    grid_size: int = Field(default=10, ge=MIN_GRID_SIZE, le=MAX_GRID_SIZE)
    ship_set: tuple[int, ...] = SHIP_SET_PRESETS[0]
    placement_attempts: int = Field(default=DEFAULT_PLACEMENT_ATTEMPTS, ge=1)
    placement_retries: int = Field(default=10, ge=1)

    @field_validator("ai_level", mode="before")
    @classmethod
    def _coerce_ai_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value)
        return value

    @field_validator("ship_set", mode="before")
    @classmethod
    def _split_ship_set(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_ship_set(value)
        return value

    @field_validator("ship_set")
    @classmethod
    def _check_ship_set(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("ship_set must contain at least one ship")
        if any(length < 1 for length in value):
            raise ValueError("ship lengths must be positive")
        return value

    @model_validator(mode="after")
    def _check_ships_fit(self) -> "GameSettings":
        longest = max(self.ship_set)
        if longest > self.grid_size:
            raise ValueError(
                f"ship of length {longest} does not fit a {self.grid_size}x{self.grid_size} grid"
            )
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "GameSettings":
        """Construct settings from ``SEABATTLE_*`` environment variables."""

        data: dict[str, Any] = {}
        for field, env_name in _SETTINGS_ENV.items():
            value = os.getenv(env_name)
            if value:
                data[field] = value.strip()
        data.update(overrides)
        return cls(**data)

    def _revalidated(self, **changes: Any) -> "GameSettings":
        return type(self).model_validate({**self.model_dump(), **changes})

    def cycle_ai_level(self, step: int = 1) -> "GameSettings":
        """Step through the difficulty levels, wrapping at both ends."""
        levels = list(Difficulty)
        idx = (levels.index(self.ai_level) + step) % len(levels)
        return self._revalidated(ai_level=levels[idx])

    def cycle_grid_size(self, step: int = 1) -> "GameSettings":
        """Grow or shrink the grid by ``step``, wrapping between 6 and 15."""
        span = MAX_GRID_SIZE - MIN_GRID_SIZE + 1
        size = MIN_GRID_SIZE + (self.grid_size - MIN_GRID_SIZE + step) % span
        return self._revalidated(grid_size=size)

    def cycle_ship_set(self, step: int = 1) -> "GameSettings":
        """Move to the next fleet preset; custom fleets restart at the first preset."""
        if self.ship_set in SHIP_SET_PRESETS:
            idx = (SHIP_SET_PRESETS.index(self.ship_set) + step) % len(SHIP_SET_PRESETS)
        else:
            idx = 0
        return self._revalidated(ship_set=SHIP_SET_PRESETS[idx])

    def describe(self) -> dict[str, str]:
        """Human readable values for a settings screen."""
        return {
            "ai_level": "Simple" if self.ai_level is Difficulty.RANDOM else "Smart",
            "grid_size": f"{self.grid_size}x{self.grid_size}",
            "ship_set": "[" + ",".join(str(length) for length in self.ship_set) + "]",
        }


def parse_ship_set(text: str) -> tuple[int, ...]:
    """Parse ``"5,4,3"`` (or space separated) into a tuple of lengths."""
    parts = text.replace(",", " ").split()
    try:
        return tuple(int(part) for part in parts)
    except ValueError as exc:
        raise ValueError(f"Invalid ship set {text!r}; use comma separated lengths.") from exc


@lru_cache(maxsize=1)
def load_settings() -> GameSettings:
    """Load and cache game settings from the environment."""

    return GameSettings.from_env()
