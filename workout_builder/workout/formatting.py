"""Human-readable durations and power targets."""

from __future__ import annotations


def format_duration(total_seconds: int) -> str:
    minutes, seconds = divmod(max(0, int(total_seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:d}:{seconds:02d}"


def parse_duration(text: str) -> int:
    """Parse ``h:mm:ss``, ``m:ss`` or plain seconds; unparseable input gives 0."""
    parts = text.strip().split(":")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return 0
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return numbers[0] if numbers else 0


def format_power(power: float, ftp_watts: int | None = None) -> str:
    if ftp_watts:
        return f"{round(power * ftp_watts):d}W"
    return f"{round(power * 100):d}%"


def format_power_range(power_start: float, power_end: float, ftp_watts: int | None = None) -> str:
    if ftp_watts:
        return f"{round(power_start * ftp_watts):d}-{round(power_end * ftp_watts):d}W"
    return f"{round(power_start * 100):d}-{round(power_end * 100):d}%"
