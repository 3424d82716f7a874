"""Workout editing engine: owns the tree, configuration, selection and drags."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from typing import Callable, Hashable, Iterable

from workout_builder.core import geometry
from workout_builder.core.geometry import SnapConfig
from workout_builder.core.history import DEFAULT_CAPACITY, History
from workout_builder.core.metrics import WorkoutMetrics, compute_metrics, zone_distribution
from workout_builder.core.state import (
    DRAG_HANDLES,
    DragHandle,
    DurationMode,
    EditorConfig,
    EditorMode,
    EditSession,
)
from workout_builder.workout import tree
from workout_builder.workout.model import (
    BLOCK_KINDS,
    Block,
    BlockKind,
    RepeatGroup,
    Workout,
    WorkoutItem,
    WorkoutMeta,
)
from workout_builder.workout.presets import (
    PresetStep,
    build_interval_group,
    create_block,
    get_preset,
)

logger = logging.getLogger(__name__)

FIXED_MODE_MIN_DURATION_SEC = 60
AUTO_FIT_STEP_SEC = 300
NUDGE_DURATION_SEC = (15, 60)
NUDGE_POWER = (0.05, 0.10)
DEFAULT_REPEAT_COUNT = 4

_BLOCK_FIELDS = frozenset(
    {"kind", "duration_sec", "power_start", "power_end", "cadence_rpm", "text"}
)
_META_FIELDS = frozenset({"name", "author", "category", "description", "sport_type"})


def _to_float(value: object) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip())


def auto_fit_target(used_duration_sec: int) -> int:
    """Round content up to the next 5 minutes, within the target bounds."""
    rounded = math.ceil(used_duration_sec / AUTO_FIT_STEP_SEC) * AUTO_FIT_STEP_SEC
    return geometry.clamp_target_duration(rounded)


def same_content(a: Workout, b: Workout) -> bool:
    """Compare what the user edited, ignoring the FTP-derived meta fields."""
    return a.items == b.items and _editable_meta(a.meta) == _editable_meta(b.meta)


def _editable_meta(meta: WorkoutMeta) -> WorkoutMeta:
    return replace(meta, duration_sec=0, tss=0, intensity_factor=0.0, normalized_power=0)


def normalize_block(block: Block) -> Block:
    if block.kind not in BLOCK_KINDS:
        raise ValueError(f"Unknown block kind '{block.kind}'")
    return replace(
        block,
        duration_sec=geometry.clamp_duration(block.duration_sec),
        power_start=geometry.clamp_power(block.power_start),
        power_end=None if block.power_end is None else geometry.clamp_power(block.power_end),
        cadence_rpm=geometry.clamp_cadence(block.cadence_rpm),
        text=geometry.clamp_text(block.text),
    )


def normalize_items(items: Iterable[WorkoutItem]) -> tuple[WorkoutItem, ...]:
    """Clamp every value into bounds, drop empty groups and re-id duplicates."""
    seen: set[str] = set()

    def _unique(block_or_group_id: str) -> str:
        item_id = block_or_group_id
        while not item_id or item_id in seen:
            item_id = tree.new_id()
        seen.add(item_id)
        return item_id

    out: list[WorkoutItem] = []
    for item in items:
        if isinstance(item, RepeatGroup):
            if not item.blocks:
                continue
            group_id = _unique(item.id)
            children = tuple(
                replace(normalize_block(block), id=_unique(block.id)) for block in item.blocks
            )
            out.append(
                RepeatGroup(
                    id=group_id,
                    repeat_count=tree.clamp_repeat_count(item.repeat_count),
                    blocks=children,
                )
            )
        else:
            out.append(replace(normalize_block(item), id=_unique(item.id)))
    return tuple(out)


class WorkoutEditor:
    def __init__(
        self,
        config: EditorConfig | None = None,
        *,
        history_capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        base = config or EditorConfig()
        self._config = replace(
            base,
            ftp_watts=geometry.clamp_ftp(base.ftp_watts),
            target_duration_sec=geometry.clamp_target_duration(base.target_duration_sec),
        )
        self._workout = Workout()
        self._selected: list[str] = []
        self._session: EditSession | None = None
        self._history: History[Workout] = History(
            capacity=history_capacity, equals=same_content, clock=clock
        )
        self._metrics = WorkoutMetrics()
        self._refresh_metrics()
        self._history.reset(self._workout)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def workout(self) -> Workout:
        return self._workout

    @property
    def items(self) -> tuple[WorkoutItem, ...]:
        return self._workout.items

    @property
    def config(self) -> EditorConfig:
        return self._config

    @property
    def ftp_watts(self) -> int:
        return self._config.ftp_watts

    @property
    def target_duration_sec(self) -> int:
        return self._config.target_duration_sec

    @property
    def duration_mode(self) -> DurationMode:
        return self._config.duration_mode

    @property
    def metrics(self) -> WorkoutMetrics:
        return self._metrics

    @property
    def zone_distribution(self) -> tuple[int, ...]:
        return zone_distribution(self._workout.items)

    @property
    def used_duration_sec(self) -> int:
        return tree.total_duration(self._workout.items)

    @property
    def remaining_duration_sec(self) -> int:
        return self._config.target_duration_sec - self.used_duration_sec

    @property
    def selected_ids(self) -> tuple[str, ...]:
        return tuple(self._selected)

    @property
    def selected_block(self) -> Block | None:
        if len(self._selected) != 1:
            return None
        return tree.find_block(self._workout.items, self._selected[0])

    @property
    def mode(self) -> EditorMode:
        return "dragging" if self._session is not None else "idle"

    @property
    def session(self) -> EditSession | None:
        return self._session

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # ------------------------------------------------------------------
    # Load / configuration
    # ------------------------------------------------------------------

    def load(self, workout: Workout) -> None:
        self._session = None
        self._selected = []
        self._workout = replace(workout, items=normalize_items(workout.items))
        self._refresh_metrics()
        self._settle()
        self._history.reset(self._workout)
        logger.debug("Loaded workout %r with %d items", workout.meta.name, len(self.items))

    def set_ftp(self, ftp_watts: int) -> bool:
        ftp = geometry.clamp_ftp(ftp_watts)
        if ftp == self._config.ftp_watts:
            return False
        self._config = replace(self._config, ftp_watts=ftp)
        self._refresh_metrics()
        return True

    def set_snap_config(self, snap: SnapConfig) -> None:
        self._config = replace(self._config, snap=snap)

    def toggle_snap(self) -> bool:
        snap = replace(self._config.snap, enabled=not self._config.snap.enabled)
        self._config = replace(self._config, snap=snap)
        return snap.enabled

    def set_target_duration(self, duration_sec: int) -> None:
        # A manually chosen target pins the workout length.
        self._config = replace(
            self._config,
            target_duration_sec=geometry.clamp_target_duration(duration_sec),
            duration_mode="fixed",
        )

    def set_duration_mode(self, mode: DurationMode) -> None:
        if mode not in ("fixed", "auto"):
            raise ValueError(f"Unknown duration mode '{mode}'")
        self._config = replace(self._config, duration_mode=mode)
        if mode == "auto":
            self._settle()

    def toggle_duration_mode(self) -> DurationMode:
        self.set_duration_mode("auto" if self.duration_mode == "fixed" else "fixed")
        return self.duration_mode

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------

    def add_block(self, kind: BlockKind, index: int | None = None) -> bool:
        block = create_block(kind)
        if self.duration_mode == "fixed":
            remaining = self.remaining_duration_sec
            if remaining <= 0:
                logger.debug("Refused to add %s block: no remaining capacity", kind)
                return False
            if block.duration_sec > remaining:
                block = replace(
                    block, duration_sec=max(FIXED_MODE_MIN_DURATION_SEC, remaining)
                )
        return self._apply(tree.insert(self.items, block, index), select=[block.id])

    def add_interval_set(
        self, steps: Iterable[PresetStep], repeat_count: int, index: int | None = None
    ) -> bool:
        group = build_interval_group(tuple(steps), repeat_count)
        group = replace(group, blocks=tuple(normalize_block(b) for b in group.blocks))
        items = tree.insert(self.items, group, index)
        self._extend_fixed_target(tree.total_duration(items))
        return self._apply(items, select=[group.id])

    def add_preset(self, key: str, index: int | None = None) -> bool:
        preset = get_preset(key)
        if preset is None:
            logger.debug("Unknown interval preset %r", key)
            return False
        return self.add_interval_set(preset.steps, preset.repeat_count, index)

    def update_block(self, block_id: str, **changes: object) -> bool:
        block = tree.find_block(self.items, block_id)
        if block is None:
            self._check_fields(changes, _BLOCK_FIELDS)
            logger.debug("update_block ignored unknown id %s", block_id)
            return False
        updated = self._edit_block(block, changes)
        return self._apply(tree.replace_block(self.items, updated))

    def delete_block(self, item_id: str) -> bool:
        return self._apply(tree.delete(self.items, item_id))

    def delete_selected(self) -> bool:
        items = self.items
        for item_id in self._selected:
            items = tree.delete(items, item_id)
        changed = self._apply(items)
        self._selected = []
        return changed

    def duplicate_block(self, item_id: str) -> bool:
        items, copy_id = tree.duplicate(self.items, item_id)
        if copy_id is None:
            return False
        if self.duration_mode == "fixed" and tree.total_duration(items) > self.target_duration_sec:
            logger.debug("Refused to duplicate %s: exceeds fixed target", item_id)
            return False
        return self._apply(items, select=[copy_id])

    def move_block(self, item_id: str, new_index: int) -> bool:
        return self._apply(tree.move(self.items, item_id, new_index))

    def create_repeat_group(
        self, item_ids: Iterable[str], repeat_count: int = DEFAULT_REPEAT_COUNT
    ) -> bool:
        ids = list(item_ids)
        items, group_id = tree.group(self.items, ids, repeat_count)
        if group_id is None:
            logger.debug("Refused to group %s", ids)
            return False
        self._extend_fixed_target(tree.total_duration(items))
        return self._apply(items, select=[group_id])

    def ungroup_repeat(self, group_id: str) -> bool:
        items, child_ids = tree.ungroup(self.items, group_id)
        return self._apply(items, select=child_ids)

    def update_repeat_count(self, group_id: str, count: int) -> bool:
        items = tree.set_repeat_count(self.items, group_id, count)
        if items is self.items:
            return False
        # Repeat counts are never truncated; a fixed target grows instead.
        self._extend_fixed_target(tree.total_duration(items))
        return self._apply(items)

    def set_workout_meta(self, **fields: object) -> bool:
        self._check_fields(fields, _META_FIELDS)
        if "sport_type" in fields and fields["sport_type"] not in ("bike", "run"):
            raise ValueError(f"Unknown sport type '{fields['sport_type']}'")
        values = {key: str(value) for key, value in fields.items()}
        meta = replace(self._workout.meta, **values)
        if meta == self._workout.meta:
            return False
        self._workout = replace(self._workout, meta=meta)
        return self._commit()

    def clear_workout(self) -> bool:
        self._session = None
        if not self.items and self._workout.meta == WorkoutMeta():
            return False
        self._workout = Workout()
        self._selected = []
        self._refresh_metrics()
        self._settle()
        return self._commit()

    # ------------------------------------------------------------------
    # Keyboard nudges
    # ------------------------------------------------------------------

    def nudge_duration(self, direction: int, *, large: bool = False) -> bool:
        block = self.selected_block
        if block is None:
            return False
        step = NUDGE_DURATION_SEC[1] if large else NUDGE_DURATION_SEC[0]
        candidate = block.duration_sec + (step if direction > 0 else -step)
        # Blocks loaded above the drag ceiling keep their length range.
        maximum = (
            geometry.MAX_DRAG_DURATION_SEC
            if block.duration_sec <= geometry.MAX_DRAG_DURATION_SEC
            else None
        )
        duration = geometry.snap_and_clamp_duration(candidate, self._config.snap, maximum)
        updated = self._edit_block(block, {"duration_sec": duration})
        return self._apply(
            tree.replace_block(self.items, updated),
            coalesce_key=("nudge-duration", block.id),
        )

    def nudge_power(self, direction: int, *, large: bool = False) -> bool:
        block = self.selected_block
        if block is None:
            return False
        step = NUDGE_POWER[1] if large else NUDGE_POWER[0]
        delta = step if direction > 0 else -step
        snap = self._config.snap
        changes: dict[str, object] = {
            "power_start": geometry.snap_and_clamp_power(block.power_start + delta, snap)
        }
        if block.power_end is not None:
            changes["power_end"] = geometry.snap_and_clamp_power(block.power_end + delta, snap)
        updated = self._edit_block(block, changes)
        return self._apply(
            tree.replace_block(self.items, updated),
            coalesce_key=("nudge-power", block.id),
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_block(self, item_id: str, additive: bool = False) -> None:
        if tree.find_item(self.items, item_id) is None:
            return
        if not additive:
            self._selected = [item_id]
        elif item_id in self._selected:
            self._selected.remove(item_id)
        else:
            self._selected.append(item_id)

    def select_range(self, from_id: str, to_id: str) -> None:
        ids = tree.all_ids(self.items)
        if from_id not in ids or to_id not in ids:
            return
        start, end = sorted((ids.index(from_id), ids.index(to_id)))
        self._selected = ids[start : end + 1]

    def clear_selection(self) -> None:
        self._selected = []

    def select_all(self) -> None:
        self._selected = tree.all_ids(self.items)

    # ------------------------------------------------------------------
    # Drag lifecycle
    # ------------------------------------------------------------------

    def begin_drag(
        self,
        block_id: str,
        handle: DragHandle,
        x: float,
        y: float,
        *,
        pixels_per_second: float,
        pixels_per_percent: float,
    ) -> bool:
        if handle not in DRAG_HANDLES:
            raise ValueError(f"Unknown drag handle '{handle}'")
        if self._session is not None:
            logger.debug("begin_drag ignored: a drag is already in progress")
            return False
        block = tree.find_block(self.items, block_id)
        if block is None:
            return False
        if block_id not in self._selected:
            self.select_block(block_id)
        self._session = EditSession(
            block_id=block_id,
            handle=handle,
            start_x=x,
            start_y=y,
            pixels_per_second=pixels_per_second,
            pixels_per_percent=pixels_per_percent,
            start_duration_sec=block.duration_sec,
            start_power=block.power_start,
            start_power_end=block.power_end,
            baseline=self._workout,
        )
        return True

    def drag_to(self, x: float, y: float) -> bool:
        session = self._session
        if session is None:
            return False
        block = tree.find_block(self.items, session.block_id)
        if block is None:
            return False

        snap = self._config.snap
        changes: dict[str, object]
        if session.handle == "duration":
            delta_sec = geometry.pixels_to_duration(x - session.start_x, session.pixels_per_second)
            changes = {
                "duration_sec": geometry.snap_and_clamp_duration(
                    session.start_duration_sec + delta_sec,
                    snap,
                    geometry.MAX_DRAG_DURATION_SEC,
                )
            }
        else:
            # Screen y grows downwards; dragging up raises power.
            delta = geometry.pixels_to_power(session.start_y - y, session.pixels_per_percent)
            start = session.start_power
            end = session.start_power_end
            if session.handle == "power":
                changes = {
                    "power_start": geometry.snap_and_clamp_power(start + delta, snap),
                    "power_end": None
                    if end is None
                    else geometry.snap_and_clamp_power(end + delta, snap),
                }
            elif session.handle == "power-start":
                changes = {
                    "power_start": geometry.snap_and_clamp_power(start + delta, snap),
                    "power_end": end if end is not None else start,
                }
            else:
                base_end = end if end is not None else start
                changes = {"power_end": geometry.snap_and_clamp_power(base_end + delta, snap)}

        updated = self._edit_block(block, changes)
        return self._set_items(tree.replace_block(self.items, updated))

    def end_drag(self) -> bool:
        if self._session is None:
            return False
        self._session = None
        self._settle()
        return self._commit()

    def cancel_drag(self) -> bool:
        session = self._session
        if session is None:
            return False
        self._session = None
        self._workout = session.baseline
        self._refresh_metrics()
        self._prune_selection()
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        if self._session is not None:
            return False
        return self._restore(self._history.undo())

    def redo(self) -> bool:
        if self._session is not None:
            return False
        return self._restore(self._history.redo())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_fields(fields: dict[str, object], allowed: frozenset[str]) -> None:
        unknown = set(fields) - allowed
        if unknown:
            raise TypeError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    def _edit_block(self, block: Block, changes: dict[str, object]) -> Block:
        self._check_fields(changes, _BLOCK_FIELDS)
        values: dict[str, object] = {}
        if "kind" in changes:
            if changes["kind"] not in BLOCK_KINDS:
                raise ValueError(f"Unknown block kind '{changes['kind']}'")
            values["kind"] = changes["kind"]
        if "duration_sec" in changes:
            requested = geometry.clamp_duration(_to_float(changes["duration_sec"]))
            values["duration_sec"] = self._cap_duration(block, requested)
        if "power_start" in changes:
            values["power_start"] = geometry.clamp_power(_to_float(changes["power_start"]))
        if "power_end" in changes:
            end = changes["power_end"]
            values["power_end"] = None if end is None else geometry.clamp_power(_to_float(end))
        if "cadence_rpm" in changes:
            cadence = changes["cadence_rpm"]
            values["cadence_rpm"] = geometry.clamp_cadence(
                None if cadence is None else _to_float(cadence)
            )
        if "text" in changes:
            text = changes["text"]
            values["text"] = geometry.clamp_text(None if text is None else str(text))
        return replace(block, **values)

    def _cap_duration(self, block: Block, requested: int) -> int:
        if self.duration_mode != "fixed":
            return requested
        parent = tree.find_parent(self.items, block.id)
        multiplier = parent.repeat_count if parent is not None else 1
        used = self.used_duration_sec
        target = self.target_duration_sec
        if used + (requested - block.duration_sec) * multiplier <= target:
            return requested
        capacity = block.duration_sec + (target - used) // multiplier
        capped = min(requested, max(FIXED_MODE_MIN_DURATION_SEC, capacity))
        logger.debug(
            "Capped %s duration %ss -> %ss (fixed target %ss)", block.id, requested, capped, target
        )
        return capped

    def _extend_fixed_target(self, total_after_sec: int) -> None:
        if self.duration_mode != "fixed" or total_after_sec <= self.target_duration_sec:
            return
        target = geometry.clamp_target_duration(total_after_sec)
        logger.debug("Extending fixed target %ss -> %ss", self.target_duration_sec, target)
        self._config = replace(self._config, target_duration_sec=target)

    def _set_items(self, items: tuple[WorkoutItem, ...]) -> bool:
        if items is self._workout.items:
            return False
        self._workout = replace(self._workout, items=items)
        self._refresh_metrics()
        return True

    def _apply(
        self,
        items: tuple[WorkoutItem, ...],
        *,
        select: list[str] | None = None,
        coalesce_key: Hashable | None = None,
    ) -> bool:
        if not self._set_items(items):
            return False
        if select is not None:
            self._selected = list(select)
        self._prune_selection()
        self._settle()
        self._commit(coalesce_key)
        return True

    def _refresh_metrics(self) -> None:
        metrics = compute_metrics(self._workout.items, self._config.ftp_watts)
        self._metrics = metrics
        meta = replace(
            self._workout.meta,
            duration_sec=metrics.duration_sec,
            tss=metrics.tss,
            intensity_factor=metrics.intensity_factor,
            normalized_power=metrics.normalized_power,
        )
        if meta != self._workout.meta:
            self._workout = replace(self._workout, meta=meta)

    def _settle(self) -> None:
        if self.duration_mode != "auto" or self._session is not None:
            return
        target = auto_fit_target(self.used_duration_sec)
        if target != self._config.target_duration_sec:
            logger.debug("Auto-fit target %ss -> %ss", self._config.target_duration_sec, target)
            self._config = replace(self._config, target_duration_sec=target)

    def _commit(self, coalesce_key: Hashable | None = None) -> bool:
        return self._history.commit(self._workout, coalesce_key)

    def _prune_selection(self) -> None:
        known = set(tree.all_ids(self.items))
        self._selected = [item_id for item_id in self._selected if item_id in known]

    def _restore(self, snapshot: Workout | None) -> bool:
        if snapshot is None:
            return False
        self._workout = snapshot
        self._refresh_metrics()
        self._prune_selection()
        self._settle()
        return True
