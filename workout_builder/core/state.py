"""Editor configuration and drag-session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from workout_builder.core.geometry import SnapConfig
from workout_builder.workout.model import Workout

DurationMode = Literal["fixed", "auto"]
EditorMode = Literal["idle", "dragging"]
DragHandle = Literal["duration", "power-start", "power-end", "power"]

DRAG_HANDLES: tuple[DragHandle, ...] = ("duration", "power-start", "power-end", "power")

DEFAULT_FTP_WATTS = 200
DEFAULT_TARGET_DURATION_SEC = 3600


@dataclass(frozen=True)
class EditorConfig:
    ftp_watts: int = DEFAULT_FTP_WATTS
    snap: SnapConfig = field(default_factory=SnapConfig)
    target_duration_sec: int = DEFAULT_TARGET_DURATION_SEC
    duration_mode: DurationMode = "auto"


@dataclass(frozen=True)
class EditSession:
    """Frozen pre-drag baseline; every pointer move is computed from it."""

    block_id: str
    handle: DragHandle
    start_x: float
    start_y: float
    pixels_per_second: float
    pixels_per_percent: float
    start_duration_sec: int
    start_power: float
    start_power_end: float | None
    baseline: Workout
