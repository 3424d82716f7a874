"""Training-load metrics derived from a workout tree and an FTP reference.

Normalized Power here treats each block's effective power as instantaneous
power: ``NP = sqrt(sum(d * p^2) / sum(d)) * FTP``. It is not the rolling
30-second average used by ride-file analysis tools, and TSS/IF in the editor
are defined against this approximation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from workout_builder.core.geometry import lerp
from workout_builder.workout.model import RAMP_KINDS, Block, WorkoutItem
from workout_builder.workout.tree import flatten

FREERIDE_POWER_ESTIMATE = 0.50


@dataclass(frozen=True)
class PowerZone:
    name: str
    color: str
    min_power: float
    max_power: float | None


POWER_ZONES: tuple[PowerZone, ...] = (
    PowerZone("recovery", "#808080", 0.00, 0.55),
    PowerZone("endurance", "#0088ff", 0.55, 0.75),
    PowerZone("tempo", "#00cc44", 0.75, 0.90),
    PowerZone("threshold", "#ffcc00", 0.90, 1.05),
    PowerZone("vo2max", "#ff6600", 1.05, 1.20),
    PowerZone("anaerobic", "#ff0000", 1.20, None),
)


@dataclass(frozen=True)
class WorkoutMetrics:
    duration_sec: int = 0
    tss: int = 0
    intensity_factor: float = 0.0
    normalized_power: int = 0
    kilojoules: int = 0


def effective_power(block: Block) -> float:
    if block.kind == "freeride":
        return FREERIDE_POWER_ESTIMATE
    if block.kind in RAMP_KINDS or block.is_ramp:
        return (block.power_start + block.end_power) / 2
    return block.power_start


def block_tss(duration_sec: float, power: float) -> float:
    """TSS of a constant effort: one hour at FTP scores 100."""
    return duration_sec * power * power / 36


@lru_cache(maxsize=128)
def compute_metrics(items: tuple[WorkoutItem, ...], ftp: int) -> WorkoutMetrics:
    total_duration = 0
    weighted_power_sum = 0.0
    tss_sum = 0.0
    work_sum = 0.0

    for block in flatten(items):
        power = effective_power(block)
        total_duration += block.duration_sec
        weighted_power_sum += block.duration_sec * power * power
        tss_sum += block_tss(block.duration_sec, power)
        work_sum += power * ftp * block.duration_sec

    normalized_power = 0
    if total_duration > 0:
        normalized_power = int(round(math.sqrt(weighted_power_sum / total_duration) * ftp))
    intensity_factor = normalized_power / ftp if ftp > 0 else 0.0

    return WorkoutMetrics(
        duration_sec=total_duration,
        tss=int(round(tss_sum)),
        intensity_factor=intensity_factor,
        normalized_power=normalized_power,
        kilojoules=int(round(work_sum / 1000)),
    )


def zone_index_for_power(power: float) -> int:
    for index in range(len(POWER_ZONES) - 1, -1, -1):
        if power >= POWER_ZONES[index].min_power:
            return index
    return 0


def zone_for_power(power: float) -> PowerZone:
    return POWER_ZONES[zone_index_for_power(power)]


@lru_cache(maxsize=128)
def zone_distribution(items: tuple[WorkoutItem, ...]) -> tuple[int, ...]:
    """Seconds spent in each power zone; ramps are bucketed second by second."""
    seconds = [0] * len(POWER_ZONES)
    for block in flatten(items):
        if block.kind == "freeride":
            continue
        if block.is_ramp:
            for t in range(block.duration_sec):
                power = lerp(block.power_start, block.end_power, t / block.duration_sec)
                seconds[zone_index_for_power(power)] += 1
        else:
            seconds[zone_index_for_power(block.power_start)] += block.duration_sec
    return tuple(seconds)
