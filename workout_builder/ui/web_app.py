"""NiceGUI web editor for structured workouts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, cast

from nicegui import ui

from workout_builder.core.engine import WorkoutEditor
from workout_builder.core.metrics import POWER_ZONES, effective_power
from workout_builder.core.state import EditorConfig
from workout_builder.workout import tree
from workout_builder.workout.formatting import (
    format_duration,
    format_power,
    format_power_range,
    parse_duration,
)
from workout_builder.workout.model import BLOCK_KINDS, Block, RepeatGroup
from workout_builder.workout.parser import WorkoutParseError, dump_workout, load_workout
from workout_builder.workout.presets import list_presets

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_PATH = Path("data/workouts/workout.json")


def chart_points(editor: WorkoutEditor) -> list[list[float]]:
    """Power profile as ``[minutes, watts]`` pairs, two points per block."""
    points: list[list[float]] = []
    elapsed = 0
    ftp = editor.ftp_watts
    for block in tree.flatten(editor.items):
        if block.kind == "freeride":
            start = end = effective_power(block)
        else:
            start, end = block.power_start, block.end_power
        points.append([round(elapsed / 60.0, 3), round(start * ftp)])
        elapsed += block.duration_sec
        points.append([round(elapsed / 60.0, 3), round(end * ftp)])
    return points


def save_workout(editor: WorkoutEditor, path: str | Path) -> Path | None:
    try:
        return dump_workout(editor.workout, path)
    except OSError as exc:
        logger.warning("Unable to save %s: %s", path, exc)
        return None


def _block_caption(block: Block, ftp_watts: int) -> str:
    if block.is_ramp:
        power = format_power_range(block.power_start, block.end_power, ftp_watts)
    else:
        power = format_power(block.power_start, ftp_watts)
    return f"{block.kind} {format_duration(block.duration_sec)} @ {power}"


def run_web_ui(*, host: str = "127.0.0.1", port: int = 8088, ftp_watts: int = 200) -> int:
    editor = WorkoutEditor(EditorConfig(ftp_watts=ftp_watts))
    preset_options = {preset.key: preset.name for preset in list_presets()}
    last_clicked: str | None = None

    with ui.column().classes("w-full gap-3"):
        with ui.row().classes("w-full items-end gap-2"):
            name_input = ui.input("Workout name", value=editor.workout.meta.name)
            ftp_input = ui.number("FTP (W)", value=editor.ftp_watts, min=50, max=500)
            target_input = ui.input("Target (h:mm:ss)", value=format_duration(3600))
            mode_switch = ui.switch("Fixed duration", value=editor.duration_mode == "fixed")
            snap_switch = ui.switch("Snap", value=editor.config.snap.enabled)

        with ui.row().classes("w-full items-center gap-2"):
            for kind in BLOCK_KINDS:
                ui.button(f"+ {kind}", on_click=lambda _, k=kind: on_add_block(k))
            preset_select = ui.select(preset_options, label="Intervals").classes("min-w-[180px]")
            add_preset_btn = ui.button("Add intervals")

        with ui.row().classes("w-full items-center gap-2"):
            undo_btn = ui.button("Undo")
            redo_btn = ui.button("Redo")
            duplicate_btn = ui.button("Duplicate")
            delete_btn = ui.button("Delete").props("color=negative")
            group_btn = ui.button("Repeat x4")
            ungroup_btn = ui.button("Ungroup")
            clear_btn = ui.button("Clear").props("outline")

        metrics_label = ui.label("").classes("text-sm font-semibold")
        duration_label = ui.label("").classes("text-sm")

        chart = ui.echart(
            {
                "tooltip": {"trigger": "axis"},
                "xAxis": {"type": "value", "name": "min", "min": 0},
                "yAxis": {"type": "value", "name": "W", "min": 0},
                "series": [
                    {"type": "line", "data": [], "symbol": "none", "areaStyle": {"opacity": 0.4}}
                ],
                "grid": {"left": 50, "right": 20, "top": 30, "bottom": 40},
            }
        ).classes("w-full h-64")

        items_column = ui.column().classes("w-full gap-1")

        with ui.card().classes("w-full"):
            ui.label("Selected block").classes("text-base font-medium")
            with ui.row().classes("w-full items-end gap-2"):
                duration_input = ui.input("Duration (m:ss)")
                power_input = ui.number("Power %", min=20, max=200)
                power_end_input = ui.number("End power %", min=20, max=200)
                cadence_input = ui.number("Cadence rpm", min=30, max=150)
                text_input = ui.input("Text")
                apply_btn = ui.button("Apply")
            with ui.row().classes("gap-2"):
                ui.button("-15s", on_click=lambda: on_nudge_duration(-1))
                ui.button("+15s", on_click=lambda: on_nudge_duration(1))
                ui.button("-5%", on_click=lambda: on_nudge_power(-1))
                ui.button("+5%", on_click=lambda: on_nudge_power(1))
                repeat_input = ui.number("Repeats", min=1, max=99)
                repeat_btn = ui.button("Set repeats")

        zones_label = ui.label("").classes("text-xs whitespace-pre")

        with ui.row().classes("w-full items-end gap-2"):
            path_input = ui.input("File", value=str(DEFAULT_EXPORT_PATH)).classes("min-w-[320px]")
            load_btn = ui.button("Load")
            save_btn = ui.button("Save").props("color=primary")

    def refresh_chart() -> None:
        options = cast(dict[str, Any], chart.options)
        options["series"][0]["data"] = chart_points(editor)
        chart.update()

    def refresh_items() -> None:
        selected = set(editor.selected_ids)
        items_column.clear()
        with items_column:
            for item in editor.items:
                if isinstance(item, RepeatGroup):
                    caption = (
                        f"{item.repeat_count}x repeat | "
                        f"{format_duration(item.duration_sec)}"
                    )
                    render_row(item.id, caption, item.id in selected, indent=False)
                    for block in item.blocks:
                        render_row(
                            block.id,
                            _block_caption(block, editor.ftp_watts),
                            block.id in selected,
                            indent=True,
                        )
                else:
                    render_row(
                        item.id,
                        _block_caption(item, editor.ftp_watts),
                        item.id in selected,
                        indent=False,
                    )

    def render_row(item_id: str, caption: str, selected: bool, *, indent: bool) -> None:
        classes = "w-full cursor-pointer px-2 py-1"
        if indent:
            classes += " ml-6"
        if selected:
            classes += " ring-2 ring-cyan-400"
        with ui.card().classes(classes) as card:
            ui.label(caption).classes("text-sm")

        def on_pick(event: Any, picked: str = item_id) -> None:
            nonlocal last_clicked
            args = getattr(event, "args", None) or {}
            if args.get("shiftKey") and last_clicked is not None:
                editor.select_range(last_clicked, picked)
            else:
                additive = bool(args.get("ctrlKey") or args.get("metaKey"))
                editor.select_block(picked, additive=additive)
            last_clicked = picked
            refresh_ui()

        card.on("click", on_pick, ["shiftKey", "ctrlKey", "metaKey"])

    def refresh_selection_form() -> None:
        block = editor.selected_block
        if block is None:
            for field in (power_input, power_end_input, cadence_input):
                field.value = None
            duration_input.value = ""
            text_input.value = ""
        else:
            duration_input.value = format_duration(block.duration_sec)
            power_input.value = round(block.power_start * 100)
            power_end_input.value = (
                round(block.power_end * 100) if block.power_end is not None else None
            )
            cadence_input.value = block.cadence_rpm
            text_input.value = block.text or ""
        group = _selected_group()
        repeat_input.value = group.repeat_count if group is not None else None

    def refresh_ui() -> None:
        metrics = editor.metrics
        metrics_label.text = (
            f"TSS {metrics.tss} | IF {metrics.intensity_factor:.2f} | "
            f"NP {metrics.normalized_power} W | {metrics.kilojoules} kJ"
        )
        duration_label.text = (
            f"{format_duration(editor.used_duration_sec)} of "
            f"{format_duration(editor.target_duration_sec)} ({editor.duration_mode})"
        )
        total = sum(editor.zone_distribution) or 1
        zones_label.text = "\n".join(
            f"{zone.name:<10} {format_duration(seconds):>8} {seconds / total * 100:5.1f}%"
            for zone, seconds in zip(POWER_ZONES, editor.zone_distribution)
        )
        target_input.value = format_duration(editor.target_duration_sec)
        mode_switch.value = editor.duration_mode == "fixed"
        undo_btn.set_enabled(editor.can_undo)
        redo_btn.set_enabled(editor.can_redo)
        refresh_chart()
        refresh_items()
        refresh_selection_form()

    def _selected_group() -> RepeatGroup | None:
        if len(editor.selected_ids) != 1:
            return None
        item = tree.find_item(editor.items, editor.selected_ids[0])
        return item if isinstance(item, RepeatGroup) else None

    def on_add_block(kind: str) -> None:
        if not editor.add_block(cast(Any, kind)):
            ui.notify("No remaining time in the fixed target", color="negative")
        refresh_ui()

    def on_add_preset() -> None:
        key = preset_select.value
        if not key:
            ui.notify("Pick an interval preset first", color="negative")
            return
        editor.add_preset(str(key))
        refresh_ui()

    def on_duplicate() -> None:
        if len(editor.selected_ids) != 1:
            ui.notify("Select one item to duplicate", color="negative")
            return
        if not editor.duplicate_block(editor.selected_ids[0]):
            ui.notify("Duplicate would exceed the fixed target", color="negative")
        refresh_ui()

    def on_group() -> None:
        if not editor.create_repeat_group(editor.selected_ids):
            ui.notify("Only top-level blocks can be grouped", color="negative")
        refresh_ui()

    def on_ungroup() -> None:
        group = _selected_group()
        if group is not None:
            editor.ungroup_repeat(group.id)
        refresh_ui()

    def on_set_repeats() -> None:
        group = _selected_group()
        if group is None or repeat_input.value is None:
            return
        editor.update_repeat_count(group.id, int(repeat_input.value))
        refresh_ui()

    def on_apply_block() -> None:
        block = editor.selected_block
        if block is None:
            return
        changes: dict[str, object] = {
            "duration_sec": parse_duration(str(duration_input.value or "")) or block.duration_sec,
            "text": text_input.value or None,
            "cadence_rpm": cadence_input.value,
        }
        if power_input.value is not None:
            changes["power_start"] = float(power_input.value) / 100.0
        changes["power_end"] = (
            None if power_end_input.value is None else float(power_end_input.value) / 100.0
        )
        editor.update_block(block.id, **changes)
        refresh_ui()

    def on_nudge_duration(direction: int, large: bool = False) -> None:
        editor.nudge_duration(direction, large=large)
        refresh_ui()

    def on_nudge_power(direction: int, large: bool = False) -> None:
        editor.nudge_power(direction, large=large)
        refresh_ui()

    def on_undo() -> None:
        editor.undo()
        refresh_ui()

    def on_redo() -> None:
        editor.redo()
        refresh_ui()

    def on_delete() -> None:
        editor.delete_selected()
        refresh_ui()

    def on_clear() -> None:
        editor.clear_workout()
        refresh_ui()

    def on_ftp_change() -> None:
        if ftp_input.value is not None:
            editor.set_ftp(int(ftp_input.value))
        refresh_ui()

    def on_target_change() -> None:
        seconds = parse_duration(str(target_input.value or ""))
        if seconds > 0 and seconds != editor.target_duration_sec:
            editor.set_target_duration(seconds)
        refresh_ui()

    def on_mode_change() -> None:
        editor.set_duration_mode("fixed" if mode_switch.value else "auto")
        refresh_ui()

    def on_snap_change() -> None:
        if bool(snap_switch.value) != editor.config.snap.enabled:
            editor.toggle_snap()

    def on_name_change() -> None:
        editor.set_workout_meta(name=str(name_input.value or "").strip() or "New Workout")

    def on_load() -> None:
        try:
            workout = load_workout(str(path_input.value))
        except (OSError, WorkoutParseError) as exc:
            logger.warning("Unable to load %s: %s", path_input.value, exc)
            ui.notify(f"Load failed: {exc}", color="negative")
            return
        editor.load(workout)
        name_input.value = editor.workout.meta.name
        ui.notify(f"Loaded {editor.workout.meta.name}", color="positive")
        refresh_ui()

    def on_save() -> None:
        saved = save_workout(editor, str(path_input.value))
        if saved is None:
            ui.notify("Save failed, see the log for details", color="negative")
            return
        ui.notify(f"Saved to {saved}", color="positive")

    def on_key(event: Any) -> None:
        if not event.action.keydown:
            return
        key = event.key
        large = bool(event.modifiers.shift)
        if event.modifiers.ctrl or event.modifiers.meta:
            if key.name in ("z", "Z"):
                if event.modifiers.shift:
                    on_redo()
                else:
                    on_undo()
            elif key.name in ("y", "Y"):
                on_redo()
            elif key.name in ("d", "D"):
                on_duplicate()
            elif key.name in ("a", "A"):
                editor.select_all()
                refresh_ui()
            return
        if key.arrow_left:
            on_nudge_duration(-1, large)
        elif key.arrow_right:
            on_nudge_duration(1, large)
        elif key.arrow_up:
            on_nudge_power(1, large)
        elif key.arrow_down:
            on_nudge_power(-1, large)
        elif key.delete or key.backspace:
            on_delete()
        elif key.escape:
            editor.clear_selection()
            refresh_ui()

    ftp_input.on_value_change(lambda _: on_ftp_change())
    target_input.on("blur", lambda _: on_target_change())
    mode_switch.on_value_change(lambda _: on_mode_change())
    snap_switch.on_value_change(lambda _: on_snap_change())
    name_input.on("blur", lambda _: on_name_change())
    add_preset_btn.on_click(on_add_preset)
    undo_btn.on_click(on_undo)
    redo_btn.on_click(on_redo)
    duplicate_btn.on_click(on_duplicate)
    delete_btn.on_click(on_delete)
    group_btn.on_click(on_group)
    ungroup_btn.on_click(on_ungroup)
    clear_btn.on_click(on_clear)
    apply_btn.on_click(on_apply_block)
    repeat_btn.on_click(on_set_repeats)
    load_btn.on_click(on_load)
    save_btn.on_click(on_save)
    ui.keyboard(on_key=on_key, ignore=["input", "select", "button", "textarea"])

    refresh_ui()
    ui.run(host=host, port=port, reload=False, title="Workout Builder")
    return 0
