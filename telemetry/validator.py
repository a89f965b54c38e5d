import logging
from collections.abc import Mapping

from pydantic import TypeAdapter, ValidationError

from telemetry.exceptions import DataError
from telemetry_models import GpuSnapshot, HardwareSnapshot


logger = logging.getLogger()

REQUIRED_HARDWARE_FIELDS = (
    "cpuCoreCount",
    "cpuBrandLabel",
    "memoryTotalKB",
    "memoryUsedKB",
    "platformLabel",
)

_gpu_adapter = TypeAdapter(GpuSnapshot)


def _is_integer(value):
    # bool is a subclass of int but never a valid count or size
    return isinstance(value, int) and not isinstance(value, bool)

def _is_label(value):
    return isinstance(value, str) and len(value.strip()) > 0

def validate_hardware(raw):
    """Check a raw hardware payload and build a HardwareSnapshot from it.

    Rules are checked in a fixed order and the first violation is reported;
    nothing is returned for a payload breaking any rule.

    Args:
        raw (Mapping): unstructured payload from a telemetry source
    Return:
        a HardwareSnapshot model
    Raises:
        DataError: naming the rule, the offending field and its value
    """
    if not isinstance(raw, Mapping):
        raise DataError(
            f"Invalid hardware information format: expected a mapping, got {type(raw).__name__}",
            rule="format",
            value=raw
        )

    for field in REQUIRED_HARDWARE_FIELDS:
        if field not in raw:
            raise DataError(f"Missing required field '{field}'", rule="required", field=field)

    cpu_count = raw["cpuCoreCount"]
    if not _is_integer(cpu_count) or cpu_count <= 0:
        raise DataError(
            f"Invalid CPU count: 'cpuCoreCount' must be a positive integer, got {cpu_count!r}",
            rule="cpu_count",
            field="cpuCoreCount",
            value=cpu_count
        )

    cpu_brand = raw["cpuBrandLabel"]
    if not _is_label(cpu_brand):
        raise DataError(
            f"Invalid CPU brand information: 'cpuBrandLabel' must be a non-empty string, got {cpu_brand!r}",
            rule="cpu_brand",
            field="cpuBrandLabel",
            value=cpu_brand
        )

    mem_total = raw["memoryTotalKB"]
    if not _is_integer(mem_total) or mem_total < 0:
        raise DataError(
            f"Invalid total memory value: 'memoryTotalKB' must be a non-negative integer, got {mem_total!r}",
            rule="memory_total",
            field="memoryTotalKB",
            value=mem_total
        )

    mem_used = raw["memoryUsedKB"]
    if not _is_integer(mem_used) or mem_used < 0:
        raise DataError(
            f"Invalid used memory value: 'memoryUsedKB' must be a non-negative integer, got {mem_used!r}",
            rule="memory_used",
            field="memoryUsedKB",
            value=mem_used
        )

    if mem_used > mem_total:
        raise DataError(
            f"Used memory exceeds total memory: memoryUsedKB={mem_used} > memoryTotalKB={mem_total}",
            rule="memory_bounds",
            field="memoryUsedKB",
            value=mem_used
        )

    platform_label = raw["platformLabel"]
    if not _is_label(platform_label):
        raise DataError(
            f"Invalid platform information: 'platformLabel' must be a non-empty string, got {platform_label!r}",
            rule="platform",
            field="platformLabel",
            value=platform_label
        )

    return HardwareSnapshot(
        cpu_core_count=cpu_count,
        cpu_brand_label=cpu_brand,
        memory_total_kb=mem_total,
        memory_used_kb=mem_used,
        platform_label=platform_label
    )

def validate_gpu(raw):
    """Check a raw GPU payload against the vendor models.
    A 'None' payload is a valid reading meaning no GPU is present.

    Args:
        raw (Mapping): unstructured payload from a telemetry source
    Return:
        one of the GpuSnapshot models
    Raises:
        DataError: describing the first offending field
    """
    if not isinstance(raw, Mapping):
        raise DataError(
            f"Invalid GPU information format: expected a mapping, got {type(raw).__name__}",
            rule="format",
            value=raw
        )

    try:
        return _gpu_adapter.validate_python(dict(raw))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        logger.debug("GPU payload rejected: %s", e)
        raise DataError(
            f"Invalid GPU information: {field}: {first['msg']} (got {first.get('input')!r})",
            rule="gpu_schema",
            field=field,
            value=first.get("input")
        ) from e
