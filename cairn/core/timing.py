"""Memory measurement and duration/size formatting helpers for cairn builds."""

import tracemalloc


def current_memory() -> int:
    """Return the currently traced allocation size in bytes.

    Returns 0 when tracemalloc is not tracing.
    """
    if not tracemalloc.is_tracing():
        return 0
    current, _peak = tracemalloc.get_traced_memory()
    return current


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Examples:
        0.042 -> "42 ms"
        0.5 -> "0.50s"
        65.3 -> "1m 5.3s"
        3661.0 -> "1h 1m 1.0s"
    """
    if seconds < 0.1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.2f}s"

    minutes = int(seconds // 60)
    remaining = seconds % 60

    if minutes < 60:
        return f"{minutes}m {remaining:.1f}s"

    hours = minutes // 60
    minutes = minutes % 60
    return f"{hours}h {minutes}m {remaining:.1f}s"


def format_memory(size: int) -> str:
    """Format a byte count (possibly negative) as a short human string.

    Examples:
        512 -> "512 B"
        2048 -> "2.0 KB"
        -3145728 -> "-3.0 MB"
    """
    sign = "-" if size < 0 else ""
    value = float(abs(size))
    for unit in ("B", "KB", "MB"):
        if value < 1024 or unit == "MB":
            if unit == "B":
                return f"{sign}{int(value)} B"
            return f"{sign}{value:.1f} {unit}"
        value /= 1024
    return f"{sign}{value:.1f} MB"
