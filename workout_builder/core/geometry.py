"""Pixel-to-value conversions, snapping and hard bounds for drag edits."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal

MIN_DURATION_SEC = 15
MAX_DRAG_DURATION_SEC = 7200
MIN_POWER = 0.20
MAX_POWER = 2.00
MIN_CADENCE_RPM = 30
MAX_CADENCE_RPM = 150
MIN_FTP_WATTS = 50
MAX_FTP_WATTS = 500
MIN_TARGET_DURATION_SEC = 300
MAX_TARGET_DURATION_SEC = 28800
MAX_TEXT_LENGTH = 250

DURATION_SNAP_TOLERANCE_SEC = 5.0
POWER_SNAP_TOLERANCE = 0.02

# Float slack so 0.57 counts as "within 0.02" of 0.55.
_EPSILON = 1e-9

SnapKind = Literal["duration", "power"]


@dataclass(frozen=True)
class DurationSnap:
    increment: int = 15
    thresholds: tuple[int, ...] = (30, 60, 90, 120, 180, 300, 600, 900, 1200, 1800, 3600)


@dataclass(frozen=True)
class PowerSnap:
    increment: float = 0.05
    zones: tuple[float, ...] = (0.55, 0.75, 0.90, 1.05, 1.20, 1.50)


@dataclass(frozen=True)
class SnapConfig:
    enabled: bool = True
    duration: DurationSnap = field(default_factory=DurationSnap)
    power: PowerSnap = field(default_factory=PowerSnap)


DEFAULT_SNAP_CONFIG = SnapConfig()


def pixels_to_duration(delta_px: float, pixels_per_second: float) -> float:
    if pixels_per_second <= 0:
        return 0.0
    return delta_px / pixels_per_second


def pixels_to_power(delta_px: float, pixels_per_percent: float) -> float:
    """Convert a vertical pixel delta (positive = up) into an FTP fraction."""
    if pixels_per_percent <= 0:
        return 0.0
    return delta_px / pixels_per_percent / 100.0


def snap_to_increment(value: float, increment: float) -> float:
    if increment <= 0 or not math.isfinite(value):
        return value
    # Half rounds up, never to even.
    steps = math.floor(value / increment + 0.5)
    return round(steps * increment, 6)


def _nearest_within(value: float, candidates: tuple[float, ...], tolerance: float) -> float | None:
    best: float | None = None
    for candidate in candidates:
        distance = abs(value - candidate)
        if distance <= tolerance + _EPSILON and (best is None or distance < abs(value - best)):
            best = candidate
    return best


def snap_duration(value: float, config: DurationSnap = DEFAULT_SNAP_CONFIG.duration) -> float:
    threshold = _nearest_within(
        value, tuple(float(t) for t in config.thresholds), DURATION_SNAP_TOLERANCE_SEC
    )
    if threshold is not None:
        return threshold
    return snap_to_increment(value, config.increment)


def snap_power(value: float, config: PowerSnap = DEFAULT_SNAP_CONFIG.power) -> float:
    boundary = _nearest_within(value, config.zones, POWER_SNAP_TOLERANCE)
    if boundary is not None:
        return boundary
    return snap_to_increment(value, config.increment)


def apply_snap(value: float, kind: SnapKind, config: SnapConfig = DEFAULT_SNAP_CONFIG) -> float:
    if not config.enabled:
        return value
    if kind == "duration":
        return snap_duration(value, config.duration)
    return snap_power(value, config.power)


def clamp(value: float, low: float, high: float) -> float:
    # NaN would pass through min/max unchanged.
    if math.isnan(value):
        return low
    return min(max(value, low), high)


def clamp_duration(value: float, maximum: float | None = None) -> int:
    upper = maximum if maximum is not None else math.inf
    clamped = clamp(value, MIN_DURATION_SEC, upper)
    if math.isinf(clamped):
        return MIN_DURATION_SEC
    return int(round(clamped))


def clamp_power(value: float) -> float:
    return round(clamp(value, MIN_POWER, MAX_POWER), 4)


def clamp_cadence(value: float | None) -> int | None:
    if value is None:
        return None
    return int(round(clamp(value, MIN_CADENCE_RPM, MAX_CADENCE_RPM)))


def clamp_ftp(value: float) -> int:
    return int(round(clamp(value, MIN_FTP_WATTS, MAX_FTP_WATTS)))


def clamp_target_duration(value: float) -> int:
    return int(round(clamp(value, MIN_TARGET_DURATION_SEC, MAX_TARGET_DURATION_SEC)))


def clamp_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text[:MAX_TEXT_LENGTH] or None


def snap_and_clamp_duration(
    value: float, config: SnapConfig = DEFAULT_SNAP_CONFIG, maximum: float | None = None
) -> int:
    return clamp_duration(apply_snap(value, "duration", config), maximum)


def snap_and_clamp_power(value: float, config: SnapConfig = DEFAULT_SNAP_CONFIG) -> float:
    return clamp_power(apply_snap(value, "power", config))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t
