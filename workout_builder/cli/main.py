"""Terminal CLI entrypoint for the workout builder."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from workout_builder.core.engine import WorkoutEditor
from workout_builder.core.metrics import POWER_ZONES
from workout_builder.core.state import DEFAULT_FTP_WATTS, EditorConfig
from workout_builder.workout.formatting import format_duration, format_power
from workout_builder.workout.parser import WorkoutParseError, dump_workout, load_workout
from workout_builder.workout.presets import get_preset, list_presets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Structured workout builder")
    parser.add_argument(
        "--summary",
        metavar="FILE",
        default=None,
        help="Print metrics and zone distribution for a .json/.csv workout",
    )
    parser.add_argument("--presets", action="store_true", help="List built-in interval presets")
    parser.add_argument(
        "--preset",
        default=None,
        help="Build a warmup + preset + cooldown workout from the given preset key",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Output .json path for --preset",
    )
    parser.add_argument(
        "--ftp",
        type=int,
        default=DEFAULT_FTP_WATTS,
        help="FTP in watts used for metrics (50-500)",
    )
    parser.add_argument(
        "--ui-web",
        action="store_true",
        help="Launch the web workout editor (NiceGUI)",
    )
    parser.add_argument(
        "--web-host",
        default="127.0.0.1",
        help="Host bind for --ui-web",
    )
    parser.add_argument(
        "--web-port",
        type=int,
        default=8088,
        help="Port for --ui-web",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def print_summary(editor: WorkoutEditor) -> None:
    workout = editor.workout
    metrics = editor.metrics
    print(f"{workout.meta.name} ({len(workout.items)} items)")
    print(
        f"Duration: {format_duration(metrics.duration_sec)} | TSS: {metrics.tss} | "
        f"IF: {metrics.intensity_factor:.2f} | NP: {metrics.normalized_power} W | "
        f"Work: {metrics.kilojoules} kJ"
    )
    total = sum(editor.zone_distribution)
    for zone, seconds in zip(POWER_ZONES, editor.zone_distribution):
        pct = (seconds / total * 100.0) if total else 0.0
        print(f"  {zone.name:<10} {format_duration(seconds):>8} {pct:5.1f}%")


def run_summary(path: str, ftp_watts: int) -> int:
    try:
        workout = load_workout(path)
    except (OSError, WorkoutParseError) as exc:
        logger.error("Unable to load %s: %s", path, exc)
        return 1
    editor = WorkoutEditor(EditorConfig(ftp_watts=ftp_watts))
    editor.load(workout)
    print_summary(editor)
    return 0


def run_list_presets(ftp_watts: int) -> int:
    for preset in list_presets():
        steps = " / ".join(
            f"{step.duration_sec}s@{format_power(step.power, ftp_watts)}" for step in preset.steps
        )
        print(
            f"{preset.key:<14} {preset.name:<18} {preset.repeat_count:>2}x [{steps}] "
            f"{format_duration(preset.duration_sec)}"
        )
    return 0


def run_build_preset(key: str, out: str | None, ftp_watts: int) -> int:
    preset = get_preset(key)
    if preset is None:
        print(f"Unknown preset '{key}'. Use --presets to list them.")
        return 1

    editor = WorkoutEditor(EditorConfig(ftp_watts=ftp_watts))
    editor.set_workout_meta(name=preset.name, category="Intervals", description=preset.description)
    editor.add_block("warmup")
    editor.add_preset(preset.key)
    editor.add_block("cooldown")
    print_summary(editor)

    if out is not None:
        saved = dump_workout(editor.workout, Path(out))
        print(f"Saved to {saved}")
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.ui_web:
        from workout_builder.ui.web_app import run_web_ui

        return run_web_ui(host=args.web_host, port=args.web_port, ftp_watts=args.ftp)
    if args.presets:
        return run_list_presets(args.ftp)
    if args.preset is not None:
        return run_build_preset(args.preset, args.out, args.ftp)
    if args.summary is not None:
        return run_summary(args.summary, args.ftp)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
