"""Workout file loader and writer (JSON/CSV)."""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import Any, cast

from workout_builder.workout.model import (
    BLOCK_KINDS,
    Block,
    BlockKind,
    RepeatGroup,
    SportType,
    Workout,
    WorkoutItem,
    WorkoutMeta,
)
from workout_builder.workout.tree import new_id


class WorkoutParseError(ValueError):
    """Raised when a workout file is invalid."""


_META_KEYS = ("name", "author", "category", "description")


def load_workout(path: str | Path) -> Workout:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix == ".json":
        return _load_json(file_path)
    if suffix == ".csv":
        return _load_csv(file_path)
    raise WorkoutParseError(
        f"Unsupported workout format '{file_path.suffix}'. Use .json or .csv"
    )


def _load_json(path: Path) -> Workout:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise WorkoutParseError(f"Invalid JSON: {exc}") from exc
    return workout_from_dict(data, default_name=path.stem)


def workout_from_dict(data: object, *, default_name: str = "New Workout") -> Workout:
    if not isinstance(data, dict):
        raise WorkoutParseError("Workout JSON must be an object")

    meta_values: dict[str, str] = {}
    for key in _META_KEYS:
        raw = data.get(key)
        if raw is None:
            continue
        if not isinstance(raw, str):
            raise WorkoutParseError(f"Workout field '{key}' must be a string")
        meta_values[key] = raw.strip()
    if not meta_values.get("name"):
        meta_values["name"] = default_name

    sport_type = data.get("sport_type", "bike")
    if sport_type not in ("bike", "run"):
        raise WorkoutParseError("Workout field 'sport_type' must be 'bike' or 'run'")

    items_obj = data.get("items")
    if not isinstance(items_obj, list):
        raise WorkoutParseError("Workout field 'items' must be an array")

    items: list[WorkoutItem] = []
    for i, raw in enumerate(items_obj):
        if not isinstance(raw, dict):
            raise WorkoutParseError(f"Item {i + 1}: must be an object")
        if "repeat" in raw:
            items.append(_build_group(raw, label=f"Item {i + 1}"))
        else:
            items.append(_build_block(raw, label=f"Item {i + 1}"))

    return Workout(
        meta=WorkoutMeta(sport_type=cast(SportType, sport_type), **meta_values),
        items=tuple(items),
    )


def _load_csv(path: Path) -> Workout:
    rows: list[WorkoutItem] = []
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        fields = set(reader.fieldnames or [])
        required = {"kind", "duration_sec", "power_start"}
        if not required.issubset(fields):
            raise WorkoutParseError(
                "CSV must contain headers: kind,duration_sec,power_start[,power_end,"
                "cadence_rpm,text]"
            )

        for i, row in enumerate(reader):
            rows.append(_build_block(row, label=f"Row {i + 1}"))

    return Workout(meta=WorkoutMeta(name=path.stem), items=tuple(rows))


def _build_group(raw: dict[str, Any], *, label: str) -> RepeatGroup:
    repeat_count = _parse_int_field(raw=raw.get("repeat"), field_name="repeat", label=label)
    if repeat_count <= 0:
        raise WorkoutParseError(f"{label}: repeat must be > 0")
    blocks_obj = raw.get("blocks")
    if not isinstance(blocks_obj, list) or not blocks_obj:
        raise WorkoutParseError(f"{label}: repeat group needs a non-empty 'blocks' array")

    blocks: list[Block] = []
    for j, child in enumerate(blocks_obj):
        child_label = f"{label}, block {j + 1}"
        if not isinstance(child, dict):
            raise WorkoutParseError(f"{child_label}: must be an object")
        if "repeat" in child:
            raise WorkoutParseError(f"{child_label}: repeat groups cannot be nested")
        blocks.append(_build_block(child, label=child_label))

    return RepeatGroup(
        id=_parse_id(raw.get("id")),
        repeat_count=repeat_count,
        blocks=tuple(blocks),
    )


def _build_block(raw: dict[str, Any], *, label: str) -> Block:
    kind_obj = raw.get("kind", "steady")
    kind = (str(kind_obj).strip().lower() if kind_obj is not None else "") or "steady"
    if kind not in BLOCK_KINDS:
        raise WorkoutParseError(f"{label}: unknown block kind '{kind_obj}'")

    duration_sec = _parse_int_field(
        raw=raw.get("duration_sec"), field_name="duration_sec", label=label
    )
    if duration_sec <= 0:
        raise WorkoutParseError(f"{label}: duration_sec must be > 0")

    power_start = _parse_float_field(
        raw=raw.get("power_start"), field_name="power_start", label=label
    )
    if power_start <= 0:
        raise WorkoutParseError(f"{label}: power_start must be > 0")

    power_end = _parse_optional_float_field(
        raw=raw.get("power_end"), field_name="power_end", label=label
    )
    if power_end is not None and power_end <= 0:
        raise WorkoutParseError(f"{label}: power_end must be > 0")

    cadence_rpm = _parse_optional_int_field(
        raw=raw.get("cadence_rpm"), field_name="cadence_rpm", label=label
    )
    if cadence_rpm is not None and cadence_rpm <= 0:
        raise WorkoutParseError(f"{label}: cadence_rpm must be > 0")

    text_obj = raw.get("text")
    text: str | None
    if text_obj is None:
        text = None
    else:
        text = str(text_obj).strip() or None

    return Block(
        id=_parse_id(raw.get("id")),
        kind=cast(BlockKind, kind),
        duration_sec=duration_sec,
        power_start=power_start,
        power_end=power_end,
        cadence_rpm=cadence_rpm,
        text=text,
    )


def _parse_id(raw: object) -> str:
    if raw is None or str(raw).strip() == "":
        return new_id()
    return str(raw).strip()


def _parse_int_field(*, raw: object, field_name: str, label: str) -> int:
    if raw is None:
        raise WorkoutParseError(f"{label}: invalid {field_name}")
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise WorkoutParseError(f"{label}: invalid {field_name}") from exc


def _parse_float_field(*, raw: object, field_name: str, label: str) -> float:
    if raw is None:
        raise WorkoutParseError(f"{label}: invalid {field_name}")
    try:
        value = float(str(raw).strip())
    except ValueError as exc:
        raise WorkoutParseError(f"{label}: invalid {field_name}") from exc
    if not math.isfinite(value):
        raise WorkoutParseError(f"{label}: {field_name} must be a finite number")
    return value


def _parse_optional_int_field(*, raw: object, field_name: str, label: str) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip() == "":
        return None
    return _parse_int_field(raw=raw, field_name=field_name, label=label)


def _parse_optional_float_field(*, raw: object, field_name: str, label: str) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip() == "":
        return None
    return _parse_float_field(raw=raw, field_name=field_name, label=label)


def _block_to_dict(block: Block) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": block.id,
        "kind": block.kind,
        "duration_sec": int(block.duration_sec),
        "power_start": block.power_start,
    }
    if block.power_end is not None:
        payload["power_end"] = block.power_end
    if block.cadence_rpm is not None:
        payload["cadence_rpm"] = block.cadence_rpm
    if block.text is not None:
        payload["text"] = block.text
    return payload


def workout_to_dict(workout: Workout) -> dict[str, Any]:
    items: list[dict[str, Any]] = []
    for item in workout.items:
        if isinstance(item, RepeatGroup):
            items.append(
                {
                    "id": item.id,
                    "repeat": item.repeat_count,
                    "blocks": [_block_to_dict(block) for block in item.blocks],
                }
            )
        else:
            items.append(_block_to_dict(item))
    meta = workout.meta
    return {
        "name": meta.name,
        "author": meta.author,
        "category": meta.category,
        "description": meta.description,
        "sport_type": meta.sport_type,
        "duration_sec": meta.duration_sec,
        "tss": meta.tss,
        "intensity_factor": round(meta.intensity_factor, 2),
        "normalized_power": meta.normalized_power,
        "items": items,
    }


def dump_workout(workout: Workout, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(
        json.dumps(workout_to_dict(workout), ensure_ascii=True, indent=2), encoding="utf-8"
    )
    return out
