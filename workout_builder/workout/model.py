"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

BlockKind = Literal["steady", "warmup", "cooldown", "ramp", "freeride"]
SportType = Literal["bike", "run"]

BLOCK_KINDS: tuple[BlockKind, ...] = ("steady", "warmup", "cooldown", "ramp", "freeride")
RAMP_KINDS: frozenset[str] = frozenset({"warmup", "cooldown", "ramp"})


@dataclass(frozen=True)
class Block:
    id: str
    kind: BlockKind
    duration_sec: int
    power_start: float
    power_end: float | None = None
    cadence_rpm: int | None = None
    text: str | None = None

    @property
    def end_power(self) -> float:
        return self.power_end if self.power_end is not None else self.power_start

    @property
    def is_ramp(self) -> bool:
        return self.power_end is not None and abs(self.power_end - self.power_start) > 1e-9


@dataclass(frozen=True)
class RepeatGroup:
    id: str
    repeat_count: int
    blocks: tuple[Block, ...]

    @property
    def iteration_duration_sec(self) -> int:
        return sum(block.duration_sec for block in self.blocks)

    @property
    def duration_sec(self) -> int:
        return self.iteration_duration_sec * self.repeat_count


WorkoutItem = Union[Block, RepeatGroup]


@dataclass(frozen=True)
class WorkoutMeta:
    name: str = "New Workout"
    author: str = ""
    category: str = ""
    description: str = ""
    sport_type: SportType = "bike"
    # Derived from the items and the current FTP; rewritten by the editor.
    duration_sec: int = 0
    tss: int = 0
    intensity_factor: float = 0.0
    normalized_power: int = 0


@dataclass(frozen=True)
class Workout:
    meta: WorkoutMeta = field(default_factory=WorkoutMeta)
    items: tuple[WorkoutItem, ...] = ()

    @property
    def total_duration_sec(self) -> int:
        return sum(item.duration_sec for item in self.items)
