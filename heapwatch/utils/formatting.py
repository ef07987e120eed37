"""
Human-readable formatting for byte counts, rates and ratios in reports.
"""

_UNITS = ['B', 'KB', 'MB', 'GB', 'TB']


def format_bytes(num_bytes: float) -> str:
    """
    Format a (possibly negative or fractional) byte count with binary units.

    Values are rounded to two decimals with trailing zeros dropped:
    1536 -> "1.5 KB", -2097152 -> "-2 MB", 0 -> "0 B".
    """
    if num_bytes == 0:
        return '0 B'

    magnitude = abs(num_bytes)
    index = 0
    while magnitude >= 1024 and index < len(_UNITS) - 1:
        magnitude /= 1024
        index += 1
    value = round(num_bytes / (1024 ** index), 2)
    if value == int(value):
        text = str(int(value))
    else:
        text = f"{value:.2f}".rstrip('0').rstrip('.')
    return f"{text} {_UNITS[index]}"


def format_rate(bytes_per_second: float) -> str:
    """format_bytes with a per-second suffix."""
    return f"{format_bytes(bytes_per_second)}/s"


def format_percent(ratio: float) -> str:
    """0.85 -> "85.0%"."""
    return f"{ratio * 100:.1f}%"


__all__ = ['format_bytes', 'format_rate', 'format_percent']
