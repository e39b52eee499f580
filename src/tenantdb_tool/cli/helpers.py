"""Pure formatting helpers for CLI output."""

from __future__ import annotations


def fmt_size(b: int | None) -> str:
    """Format bytes as human-readable size for table output."""
    if not b:
        return "-"
    units = [("TB", 1 << 40), ("GB", 1 << 30), ("MB", 1 << 20), ("KB", 1 << 10)]
    for suffix, threshold in units:
        if b >= threshold:
            value = b / threshold
            return f"{value:.0f} {suffix}" if value >= 10 else f"{value:.1f} {suffix}"
    return f"{b}B"


def fmt_duration_ms(ms: float) -> str:
    """Format a duration in milliseconds: 850ms, 1.25s, 2m 05s."""
    if ms < 1000:
        return f"{ms:.0f}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def mask_secret(value: str | None) -> str:
    if value is None:
        return "not set"
    return "***"
