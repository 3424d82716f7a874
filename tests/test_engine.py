from __future__ import annotations

import pytest

from workout_builder.core.engine import WorkoutEditor, auto_fit_target
from workout_builder.core.state import EditorConfig
from workout_builder.workout import tree
from workout_builder.workout.model import Block, RepeatGroup, Workout, WorkoutMeta


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _fixed(target_sec: int) -> WorkoutEditor:
    return WorkoutEditor(EditorConfig(target_duration_sec=target_sec, duration_mode="fixed"))


def _block(editor: WorkoutEditor, index: int) -> Block:
    item = editor.items[index]
    assert isinstance(item, Block)
    return item


def test_new_editor_is_empty_with_default_target() -> None:
    editor = WorkoutEditor()

    assert editor.items == ()
    assert editor.target_duration_sec == 3600
    assert editor.duration_mode == "auto"
    assert editor.mode == "idle"
    assert not editor.can_undo


def test_add_block_uses_kind_defaults_and_selects_it() -> None:
    editor = WorkoutEditor()

    assert editor.add_block("warmup")

    block = _block(editor, 0)
    assert block.duration_sec == 300
    assert block.power_start == pytest.approx(0.45)
    assert block.power_end == pytest.approx(0.75)
    assert editor.selected_ids == (block.id,)
    assert editor.can_undo


def test_auto_mode_fits_target_to_content() -> None:
    editor = WorkoutEditor()

    editor.add_block("steady")
    assert editor.target_duration_sec == 300

    editor.add_preset("30_30")
    assert editor.used_duration_sec == 780
    assert editor.target_duration_sec == 900
    assert auto_fit_target(0) == 300
    assert auto_fit_target(100_000) == 28800


def test_fixed_mode_refuses_add_when_full() -> None:
    editor = _fixed(600)
    editor.add_block("steady")
    editor.add_block("steady")

    assert editor.remaining_duration_sec == 0
    assert editor.add_block("steady") is False
    assert len(editor.items) == 2


def test_fixed_mode_caps_new_block_to_remaining() -> None:
    editor = _fixed(400)
    editor.add_block("steady")

    editor.add_block("steady")

    assert _block(editor, 1).duration_sec == 100
    assert editor.used_duration_sec == editor.target_duration_sec


def test_fixed_mode_caps_duration_edit() -> None:
    editor = _fixed(600)
    editor.add_block("steady")
    block_id = _block(editor, 0).id

    editor.update_block(block_id, duration_sec=900)

    assert _block(editor, 0).duration_sec == 600


def test_fixed_mode_refuses_duplicate_over_target() -> None:
    editor = _fixed(600)
    editor.add_block("steady")
    editor.add_block("steady")

    assert editor.duplicate_block(_block(editor, 0).id) is False
    assert len(editor.items) == 2


def test_repeat_count_growth_extends_fixed_target() -> None:
    editor = _fixed(600)
    editor.add_block("steady")
    editor.create_repeat_group([_block(editor, 0).id], 2)
    group = editor.items[0]
    assert isinstance(group, RepeatGroup)

    assert editor.update_repeat_count(group.id, 4)

    updated = editor.items[0]
    assert isinstance(updated, RepeatGroup)
    assert updated.repeat_count == 4
    assert editor.target_duration_sec == 1200
    assert editor.duration_mode == "fixed"


def test_update_block_clamps_and_rejects_unknown_fields() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id

    editor.update_block(block_id, power_start=5.0, cadence_rpm=10, text="  go  ")

    block = _block(editor, 0)
    assert block.power_start == 2.0
    assert block.cadence_rpm == 30
    assert block.text == "go"
    with pytest.raises(TypeError):
        editor.update_block(block_id, watts=200)
    assert editor.update_block("missing", duration_sec=60) is False


def test_metrics_follow_edits_and_ftp() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    editor.update_block(_block(editor, 0).id, duration_sec=3600, power_start=1.0)

    assert editor.metrics.normalized_power == 200
    assert editor.metrics.tss == 100
    assert editor.workout.meta.tss == 100

    assert editor.set_ftp(250)
    assert editor.metrics.normalized_power == 250
    assert editor.metrics.intensity_factor == pytest.approx(1.0)
    assert editor.set_ftp(250) is False


def test_duration_drag_lifecycle() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id

    assert editor.begin_drag(
        block_id, "duration", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0
    )
    assert editor.mode == "dragging"
    assert editor.begin_drag(
        block_id, "power", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0
    ) is False

    editor.drag_to(300, 0)
    assert _block(editor, 0).duration_sec == 600
    assert editor.undo() is False

    assert editor.end_drag()
    assert editor.mode == "idle"
    assert editor.target_duration_sec == 600

    assert editor.undo()
    assert _block(editor, 0).duration_sec == 300


def test_drag_computes_from_baseline_not_last_move() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id
    editor.begin_drag(block_id, "duration", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0)

    editor.drag_to(300, 0)
    editor.drag_to(300, 0)

    assert _block(editor, 0).duration_sec == 600
    editor.end_drag()


def test_power_drag_shifts_level_and_cancel_restores() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id
    history_before = editor.can_redo, editor.can_undo

    editor.begin_drag(block_id, "power", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0)
    editor.drag_to(0, -20)

    dragged = _block(editor, 0)
    assert dragged.power_start == pytest.approx(0.85)
    assert dragged.power_end is None

    assert editor.cancel_drag()
    assert editor.mode == "idle"
    assert _block(editor, 0).power_start == pytest.approx(0.75)
    assert (editor.can_redo, editor.can_undo) == history_before


def test_power_end_drag_turns_block_into_ramp() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id

    editor.begin_drag(block_id, "power-end", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0)
    editor.drag_to(0, -20)
    editor.end_drag()

    block = _block(editor, 0)
    assert block.power_start == pytest.approx(0.75)
    assert block.power_end == pytest.approx(0.85)
    assert block.is_ramp


def test_begin_drag_rejects_unknown_handle() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")

    with pytest.raises(ValueError):
        editor.begin_drag(
            _block(editor, 0).id, "width", 0, 0, pixels_per_second=1.0, pixels_per_percent=1.0
        )


def test_group_and_ungroup_update_selection() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    editor.add_block("ramp")
    first, second = _block(editor, 0).id, _block(editor, 1).id

    assert editor.create_repeat_group([first, second], 3)
    group = editor.items[0]
    assert isinstance(group, RepeatGroup)
    assert editor.selected_ids == (group.id,)
    assert editor.used_duration_sec == 3 * 360

    child_id = group.blocks[0].id
    assert editor.create_repeat_group([child_id]) is False

    assert editor.ungroup_repeat(group.id)
    assert len(editor.items) == 2
    assert editor.selected_ids == tuple(item.id for item in editor.items)


def test_selection_operations() -> None:
    editor = WorkoutEditor()
    for _ in range(3):
        editor.add_block("steady")
    ids = [item.id for item in editor.items]

    editor.select_block(ids[0])
    editor.select_block(ids[2], additive=True)
    assert editor.selected_ids == (ids[0], ids[2])

    editor.select_block(ids[0], additive=True)
    assert editor.selected_ids == (ids[2],)

    editor.select_range(ids[0], ids[2])
    assert editor.selected_ids == tuple(ids)

    editor.select_block("missing")
    assert editor.selected_ids == tuple(ids)

    editor.clear_selection()
    assert editor.selected_ids == ()
    editor.select_all()
    assert len(editor.selected_ids) == 3


def test_delete_selected_is_one_undo_step() -> None:
    editor = WorkoutEditor()
    for _ in range(3):
        editor.add_block("steady")
    editor.select_all()

    assert editor.delete_selected()
    assert editor.items == ()
    assert editor.selected_ids == ()

    assert editor.undo()
    assert len(editor.items) == 3
    assert editor.redo()
    assert editor.items == ()


def test_nudges_snap_and_coalesce() -> None:
    clock = FakeClock()
    editor = WorkoutEditor(clock=clock)
    editor.add_block("steady")

    assert editor.nudge_duration(1)
    clock.now = 0.1
    assert editor.nudge_duration(1)
    assert _block(editor, 0).duration_sec == 330

    editor.undo()
    assert _block(editor, 0).duration_sec == 300

    editor.select_block(_block(editor, 0).id)
    assert editor.nudge_power(1)
    assert _block(editor, 0).power_start == pytest.approx(0.80)
    assert editor.nudge_power(-1, large=True)
    assert _block(editor, 0).power_start == pytest.approx(0.70)


def test_nudge_without_single_selection_is_noop() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    editor.clear_selection()

    assert editor.nudge_duration(1) is False
    assert editor.nudge_power(1) is False


def test_load_normalizes_and_resets_history() -> None:
    workout = Workout(
        meta=WorkoutMeta(name="Imported"),
        items=(
            Block(id="a", kind="steady", duration_sec=5, power_start=3.0),
            Block(id="a", kind="steady", duration_sec=60, power_start=0.1),
            RepeatGroup(id="g", repeat_count=0, blocks=()),
            RepeatGroup(id="h", repeat_count=120, blocks=(Block("b", "ramp", 60, 0.5, 0.9),)),
        ),
    )
    editor = WorkoutEditor()
    editor.add_block("steady")

    editor.load(workout)

    assert len(editor.items) == 3
    first, second, group = editor.items
    assert isinstance(first, Block) and isinstance(second, Block)
    assert first.duration_sec == 15
    assert first.power_start == 2.0
    assert second.power_start == 0.2
    assert first.id != second.id
    assert isinstance(group, RepeatGroup)
    assert group.repeat_count == 99
    assert editor.workout.meta.name == "Imported"
    assert not editor.can_undo


def test_duration_mode_and_target() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")

    editor.set_target_duration(5400)
    assert editor.duration_mode == "fixed"
    assert editor.target_duration_sec == 5400

    assert editor.toggle_duration_mode() == "auto"
    assert editor.target_duration_sec == 300
    with pytest.raises(ValueError):
        editor.set_duration_mode("elastic")


def test_meta_and_clear() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")

    assert editor.set_workout_meta(name="Sweet spot", sport_type="run")
    assert editor.workout.meta.name == "Sweet spot"
    with pytest.raises(ValueError):
        editor.set_workout_meta(sport_type="swim")

    assert editor.clear_workout()
    assert editor.items == ()
    assert editor.workout.meta.name == "New Workout"
    assert editor.undo()
    assert editor.workout.meta.name == "Sweet spot"


def test_toggle_snap_affects_drags() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    assert editor.toggle_snap() is False

    block_id = _block(editor, 0).id
    editor.begin_drag(block_id, "duration", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0)
    editor.drag_to(67, 0)
    editor.end_drag()

    assert _block(editor, 0).duration_sec == 367


def test_nan_input_is_clamped_into_bounds() -> None:
    editor = WorkoutEditor()
    editor.load(Workout(items=(Block("a", "steady", 60, float("nan")),)))

    assert _block(editor, 0).power_start == 0.2
    assert editor.metrics.normalized_power == 40

    editor.update_block("a", power_start="nan", duration_sec=float("nan"))

    block = _block(editor, 0)
    assert block.power_start == 0.2
    assert block.duration_sec == 15


def test_nudge_burst_back_to_start_adds_no_history() -> None:
    clock = FakeClock()
    editor = WorkoutEditor(clock=clock)
    editor.add_block("steady")
    before = editor.items

    editor.nudge_power(1)
    clock.now = 0.1
    editor.nudge_power(-1)

    assert editor.items == before
    assert editor.undo()
    assert editor.items == ()


def test_ftp_change_does_not_leak_into_history() -> None:
    editor = WorkoutEditor()
    editor.add_block("steady")
    block_id = _block(editor, 0).id
    editor.set_ftp(250)

    editor.begin_drag(block_id, "duration", 0, 0, pixels_per_second=1.0, pixels_per_percent=2.0)
    assert editor.end_drag() is False

    assert editor.undo()
    assert editor.items == ()
    assert not editor.can_undo


def test_duration_nudge_keeps_long_loaded_block() -> None:
    editor = WorkoutEditor()
    editor.load(Workout(items=(Block("long", "steady", 9000, 0.6),)))
    editor.select_block("long")

    editor.nudge_duration(-1)
    assert _block(editor, 0).duration_sec == 8985

    editor.load(Workout(items=(Block("short", "steady", 7200, 0.6),)))
    editor.select_block("short")
    editor.nudge_duration(1)
    assert _block(editor, 0).duration_sec == 7200


def test_blocks_stay_in_bounds_after_edits() -> None:
    editor = WorkoutEditor()
    editor.load(
        Workout(
            items=(
                Block("a", "steady", 3, 5.0),
                RepeatGroup("g", 3, (Block("b", "ramp", 60, 0.1, 9.0),)),
            )
        )
    )
    editor.add_block("warmup")
    warmup_id = editor.selected_ids[0]

    editor.begin_drag("a", "duration", 0, 0, pixels_per_second=0.1, pixels_per_percent=1.0)
    editor.drag_to(1_000_000, 0)
    editor.end_drag()
    editor.begin_drag("b", "power-end", 0, 0, pixels_per_second=1.0, pixels_per_percent=1.0)
    editor.drag_to(0, 5000)
    editor.end_drag()
    editor.begin_drag(warmup_id, "power", 0, 0, pixels_per_second=1.0, pixels_per_percent=0.5)
    editor.drag_to(0, -5000)
    editor.end_drag()
    editor.update_block("b", duration_sec=-40, power_start=-1.0)
    editor.select_block("b")
    for _ in range(10):
        editor.nudge_power(-1, large=True)
        editor.nudge_duration(-1, large=True)

    for block in tree.flatten(editor.items):
        assert block.duration_sec >= 15
        assert 0.2 <= block.power_start <= 2.0
        assert block.power_end is None or 0.2 <= block.power_end <= 2.0
    assert _block(editor, 0).duration_sec == 7200
