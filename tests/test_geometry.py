from __future__ import annotations

import pytest

from workout_builder.core import geometry
from workout_builder.core.geometry import SnapConfig


def test_snap_duration_rounds_to_increment() -> None:
    assert geometry.snap_duration(67) == 60
    assert geometry.snap_duration(68) == 75
    assert geometry.snap_duration(247) == 240


def test_snap_duration_prefers_nearby_threshold() -> None:
    assert geometry.snap_duration(58) == 60
    assert geometry.snap_duration(184) == 180
    assert geometry.snap_duration(1796) == 1800


def test_snap_power_prefers_zone_boundary() -> None:
    assert geometry.snap_power(0.74) == pytest.approx(0.75)
    assert geometry.snap_power(1.19) == pytest.approx(1.20)
    assert geometry.snap_power(0.62) == pytest.approx(0.60)
    assert geometry.snap_power(0.63) == pytest.approx(0.65)


def test_snapping_is_idempotent() -> None:
    for seconds in range(15, 4000, 7):
        once = geometry.snap_duration(seconds)
        assert geometry.snap_duration(once) == once

    for pct in range(20, 200, 3):
        once = geometry.snap_power(pct / 100.0)
        assert geometry.snap_power(once) == once


def test_apply_snap_disabled_passes_value_through() -> None:
    config = SnapConfig(enabled=False)
    assert geometry.apply_snap(67.0, "duration", config) == 67.0
    assert geometry.apply_snap(0.63, "power", config) == 0.63


def test_clamps_hold_bounds() -> None:
    assert geometry.clamp_duration(5) == geometry.MIN_DURATION_SEC
    assert geometry.clamp_duration(9000, geometry.MAX_DRAG_DURATION_SEC) == 7200
    assert geometry.clamp_duration(9000) == 9000
    assert geometry.clamp_power(3.0) == geometry.MAX_POWER
    assert geometry.clamp_power(0.1) == geometry.MIN_POWER
    assert geometry.clamp_cadence(None) is None
    assert geometry.clamp_cadence(200) == 150
    assert geometry.clamp_ftp(20) == 50
    assert geometry.clamp_ftp(900) == 500
    assert geometry.clamp_target_duration(100) == 300
    assert geometry.clamp_target_duration(40000) == 28800


def test_clamp_text_trims_and_truncates() -> None:
    assert geometry.clamp_text(None) is None
    assert geometry.clamp_text("   ") is None
    assert geometry.clamp_text("  spin up  ") == "spin up"
    assert len(geometry.clamp_text("x" * 300) or "") == geometry.MAX_TEXT_LENGTH


def test_pixel_conversions() -> None:
    assert geometry.pixels_to_duration(30, 0.5) == 60
    assert geometry.pixels_to_duration(30, 0) == 0
    assert geometry.pixels_to_power(20, 2.0) == pytest.approx(0.10)
    assert geometry.pixels_to_power(-20, 2.0) == pytest.approx(-0.10)
    assert geometry.pixels_to_power(20, -1.0) == 0


def test_snap_and_clamp_combines_both_steps() -> None:
    assert geometry.snap_and_clamp_duration(3, geometry.DEFAULT_SNAP_CONFIG) == 15
    assert geometry.snap_and_clamp_duration(9000, geometry.DEFAULT_SNAP_CONFIG, 7200) == 7200
    assert geometry.snap_and_clamp_power(2.4) == geometry.MAX_POWER


def test_clamps_map_nan_to_lower_bound() -> None:
    nan = float("nan")

    assert geometry.clamp_power(nan) == geometry.MIN_POWER
    assert geometry.clamp_duration(nan) == geometry.MIN_DURATION_SEC
    assert geometry.clamp_duration(float("inf")) == geometry.MIN_DURATION_SEC
    assert geometry.clamp_cadence(nan) == geometry.MIN_CADENCE_RPM
    assert geometry.snap_and_clamp_power(nan) == geometry.MIN_POWER
    assert geometry.snap_and_clamp_duration(nan) == geometry.MIN_DURATION_SEC
