from decimal import ROUND_HALF_UP, Decimal
import math


def round_half_up(value, digits):
    """Round a number to a fixed number of decimals, halves away from zero.
    The builtin round() uses banker's rounding, which would turn e.g. 0.125 into 0.12.
    Args:
        value (float): the number to round
        digits (int): number of decimals to keep
    Return:
        the rounded float, or value itself if it is not finite
    """
    if not math.isfinite(value):
        return value
    exponent = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))

def format_bytes(num_bytes):
    """Format a byte count as a human readable string using 1024 based units,
    eg. 1536 ↦ '1.5 KB'.
    Args:
        num_bytes (int): size in bytes
    Return:
        the formatted string, 'N/A' for negative or non-numeric input
    """
    if isinstance(num_bytes, bool) or not isinstance(num_bytes, (int, float)):
        return "N/A"
    if math.isnan(num_bytes) or num_bytes < 0:
        return "N/A"

    units = ["B", "KB", "MB", "GB", "TB"]
    value = num_bytes
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1

    return f"{value:.1f} {units[unit_index]}"
