"""Block defaults and built-in interval presets inspired by common power sessions."""

from __future__ import annotations

from dataclasses import dataclass

from workout_builder.workout.model import BLOCK_KINDS, Block, BlockKind, RepeatGroup
from workout_builder.workout.tree import clamp_repeat_count, new_id


@dataclass(frozen=True)
class BlockDefaults:
    duration_sec: int
    power_start: float
    power_end: float | None = None


DEFAULT_BLOCK_VALUES: dict[BlockKind, BlockDefaults] = {
    "steady": BlockDefaults(300, 0.75),
    "warmup": BlockDefaults(300, 0.45, 0.75),
    "cooldown": BlockDefaults(300, 0.65, 0.40),
    "ramp": BlockDefaults(60, 0.75, 1.05),
    "freeride": BlockDefaults(300, 0.50),
}


@dataclass(frozen=True)
class PresetStep:
    duration_sec: int
    power: float


@dataclass(frozen=True)
class IntervalPreset:
    key: str
    name: str
    description: str
    steps: tuple[PresetStep, ...]
    repeat_count: int

    @property
    def duration_sec(self) -> int:
        return sum(step.duration_sec for step in self.steps) * self.repeat_count


INTERVAL_PRESETS: tuple[IntervalPreset, ...] = (
    IntervalPreset(
        key="30_30",
        name="30/30s",
        description="VO2max micro-intervals",
        steps=(PresetStep(30, 1.20), PresetStep(30, 0.50)),
        repeat_count=8,
    ),
    IntervalPreset(
        key="40_20",
        name="40/20s",
        description="High-intensity short intervals",
        steps=(PresetStep(40, 1.20), PresetStep(20, 0.50)),
        repeat_count=8,
    ),
    IntervalPreset(
        key="60_60",
        name="60/60s",
        description="Classic VO2max intervals",
        steps=(PresetStep(60, 1.15), PresetStep(60, 0.45)),
        repeat_count=6,
    ),
    IntervalPreset(
        key="3min_on_off",
        name="3min ON/OFF",
        description="Threshold development",
        steps=(PresetStep(180, 1.05), PresetStep(180, 0.55)),
        repeat_count=4,
    ),
    IntervalPreset(
        key="tabata",
        name="Tabata",
        description="20s max effort / 15s rest",
        steps=(PresetStep(20, 1.50), PresetStep(15, 0.45)),
        repeat_count=8,
    ),
    IntervalPreset(
        key="over_unders",
        name="Over-Unders",
        description="Lactate clearance",
        steps=(PresetStep(120, 0.95), PresetStep(60, 1.10)),
        repeat_count=4,
    ),
    IntervalPreset(
        key="sweetspot_10",
        name="Sweet Spot 10min",
        description="SST with short recovery",
        steps=(PresetStep(600, 0.90), PresetStep(120, 0.50)),
        repeat_count=3,
    ),
    IntervalPreset(
        key="pyramid",
        name="Pyramid",
        description="1-2-3-2-1 min intervals",
        steps=(
            PresetStep(60, 1.10),
            PresetStep(60, 0.50),
            PresetStep(120, 1.10),
            PresetStep(60, 0.50),
            PresetStep(180, 1.10),
            PresetStep(60, 0.50),
            PresetStep(120, 1.10),
            PresetStep(60, 0.50),
            PresetStep(60, 1.10),
            PresetStep(60, 0.50),
        ),
        repeat_count=1,
    ),
    IntervalPreset(
        key="billat_30_30",
        name="Billat 30/30",
        description="Classic VO2max protocol",
        steps=(PresetStep(30, 1.15), PresetStep(30, 0.55)),
        repeat_count=12,
    ),
    IntervalPreset(
        key="tempo_blocks",
        name="Tempo Blocks",
        description="Steady tempo efforts",
        steps=(PresetStep(600, 0.85), PresetStep(120, 0.50)),
        repeat_count=3,
    ),
)


def list_presets() -> tuple[IntervalPreset, ...]:
    return INTERVAL_PRESETS


def get_preset(key: str) -> IntervalPreset | None:
    return next((preset for preset in INTERVAL_PRESETS if preset.key == key), None)


def create_block(kind: BlockKind, **overrides: object) -> Block:
    if kind not in BLOCK_KINDS:
        raise ValueError(f"Unknown block kind '{kind}'")
    defaults = DEFAULT_BLOCK_VALUES[kind]
    values: dict[str, object] = {
        "duration_sec": defaults.duration_sec,
        "power_start": defaults.power_start,
        "power_end": defaults.power_end,
    }
    values.update(overrides)
    return Block(id=new_id(), kind=kind, **values)


def build_interval_group(steps: tuple[PresetStep, ...], repeat_count: int) -> RepeatGroup:
    if not steps:
        raise ValueError("Interval set must contain at least one step")
    return RepeatGroup(
        id=new_id(),
        repeat_count=clamp_repeat_count(repeat_count),
        blocks=tuple(
            create_block("steady", duration_sec=step.duration_sec, power_start=step.power)
            for step in steps
        ),
    )
