from decimal import InvalidOperation
import math

from telemetry.exceptions import ComputationError
from telemetry_models import DerivedResourceMetrics
from utils import round_half_up


# Raw memory readings are in kilobytes
KB_PER_GB = 1024 * 1024


def derive(snapshot):
    """Compute GB values and memory usage percentage from a validated snapshot.
    Pure function: the same snapshot always yields an equal result.

    Args:
        snapshot (HardwareSnapshot): a validated hardware reading
    Return:
        a DerivedResourceMetrics model
    Raises:
        ComputationError: if any derived value is not finite or too large
            to compute, eg. when total memory is 0
    """
    total_kb = snapshot.memory_total_kb
    used_kb = snapshot.memory_used_kb

    try:
        total_gb = round_half_up(total_kb / KB_PER_GB, 2)
        used_gb = round_half_up(used_kb / KB_PER_GB, 2)
        percentage = round_half_up(used_kb / total_kb * 100, 1) if total_kb else math.nan
    except (OverflowError, InvalidOperation) as e:
        raise ComputationError(
            f"Invalid memory calculations: values out of range "
            f"(memoryUsedKB={used_kb}, memoryTotalKB={total_kb})"
        ) from e

    values = {
        "total_memory_gb": total_gb,
        "used_memory_gb": used_gb,
        "memory_usage_percentage": percentage
    }
    invalid = [name for name, value in values.items() if not math.isfinite(value)]
    if invalid:
        raise ComputationError(
            f"Invalid memory calculations: non-finite {', '.join(invalid)} "
            f"(memoryUsedKB={used_kb}, memoryTotalKB={total_kb})"
        )

    if not 0 <= percentage <= 100:
        raise ComputationError(f"Invalid memory calculations: usage percentage {percentage} outside [0, 100]")

    return DerivedResourceMetrics(**values)
