from freezegun import freeze_time
import pytest

from telemetry.exceptions import DataError
from telemetry.validator import REQUIRED_HARDWARE_FIELDS, validate_hardware, validate_gpu
from telemetry_models import AmdGpu, AppleGpu, HardwareSnapshot, NoGpu, NvidiaGpu



@freeze_time("2024-03-01T12:00:00")
def test_valid_snapshot(raw_snapshot):
    """A valid payload should be turned into a timestamped HardwareSnapshot."""
    snapshot = validate_hardware(raw_snapshot)

    assert isinstance(snapshot, HardwareSnapshot)
    assert snapshot.cpu_core_count == 8
    assert snapshot.cpu_brand_label == "Intel Core i7"
    assert snapshot.memory_total_kb == 16 * 1024 * 1024
    assert snapshot.memory_used_kb == 8 * 1024 * 1024
    assert snapshot.platform_label == "darwin"
    assert snapshot.timestamp == 1709294400.0

def test_snapshot_is_immutable(raw_snapshot):
    snapshot = validate_hardware(raw_snapshot)
    with pytest.raises(Exception):
        snapshot.cpu_core_count = 4

@pytest.mark.parametrize("raw", [None, 42, "cpu", ["cpuCoreCount"]])
def test_non_mapping_rejected(raw):
    with pytest.raises(DataError, match="Invalid hardware information format") as e:
        validate_hardware(raw)
    assert e.value.rule == "format"

@pytest.mark.parametrize("field", REQUIRED_HARDWARE_FIELDS)
def test_missing_field_named(raw_snapshot, field):
    """Any missing required field should be named in the rejection."""
    del raw_snapshot[field]
    with pytest.raises(DataError) as e:
        validate_hardware(raw_snapshot)

    assert field in str(e.value)
    assert e.value.rule == "required"
    assert e.value.field == field

def test_first_missing_field_reported(raw_snapshot):
    del raw_snapshot["memoryUsedKB"]
    del raw_snapshot["cpuBrandLabel"]
    with pytest.raises(DataError) as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "cpuBrandLabel"

@pytest.mark.parametrize("value", [0, -2, 2.5, True, "8", None])
def test_invalid_cpu_count(raw_snapshot, value):
    raw_snapshot["cpuCoreCount"] = value
    with pytest.raises(DataError, match="CPU count") as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "cpuCoreCount"
    assert e.value.value == value

@pytest.mark.parametrize("value", ["", "   ", None, 7])
def test_invalid_cpu_brand(raw_snapshot, value):
    raw_snapshot["cpuBrandLabel"] = value
    with pytest.raises(DataError, match="CPU brand") as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "cpuBrandLabel"

@pytest.mark.parametrize("value", [-1, 1.5, "16GB", None])
def test_invalid_total_memory(raw_snapshot, value):
    raw_snapshot["memoryTotalKB"] = value
    with pytest.raises(DataError, match="total memory") as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "memoryTotalKB"

@pytest.mark.parametrize("value", [-1, 0.5, False])
def test_invalid_used_memory(raw_snapshot, value):
    raw_snapshot["memoryUsedKB"] = value
    with pytest.raises(DataError, match="used memory") as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "memoryUsedKB"

def test_used_memory_exceeds_total(raw_snapshot):
    raw_snapshot["memoryUsedKB"] = raw_snapshot["memoryTotalKB"] + 1
    with pytest.raises(DataError, match="exceed") as e:
        validate_hardware(raw_snapshot)
    assert e.value.rule == "memory_bounds"

@pytest.mark.parametrize("value", ["", " \t", None])
def test_invalid_platform(raw_snapshot, value):
    raw_snapshot["platformLabel"] = value
    with pytest.raises(DataError, match="platform") as e:
        validate_hardware(raw_snapshot)
    assert e.value.field == "platformLabel"

def test_rules_fail_fast_in_order(raw_snapshot):
    """With several violations only the first rule in order is reported."""
    raw_snapshot["cpuCoreCount"] = 0
    raw_snapshot["memoryUsedKB"] = raw_snapshot["memoryTotalKB"] * 2
    raw_snapshot["platformLabel"] = ""
    with pytest.raises(DataError) as e:
        validate_hardware(raw_snapshot)
    assert e.value.rule == "cpu_count"

def test_zero_total_memory_is_valid(raw_snapshot):
    """Zero memory passes validation, it is rejected when deriving metrics."""
    raw_snapshot["memoryTotalKB"] = 0
    raw_snapshot["memoryUsedKB"] = 0
    assert validate_hardware(raw_snapshot).memory_total_kb == 0


def test_no_gpu_is_valid():
    gpu = validate_gpu({"gpu_type": "None", "memory_total_mb": 0})
    assert isinstance(gpu, NoGpu)
    assert not gpu.is_available
    assert gpu.status_label == "Not Available"
    assert gpu.memory_used_mb is None
    assert gpu.utilization_percent is None

def test_nvidia_gpu(nvidia_payload):
    gpu = validate_gpu(nvidia_payload)
    assert isinstance(gpu, NvidiaGpu)
    assert gpu.is_available
    assert gpu.cuda_version == "12.2"
    assert gpu.compute_capability == "8.6"

def test_apple_and_amd_gpu():
    assert isinstance(validate_gpu({"gpu_type": "Apple", "memory_total_mb": 8192}), AppleGpu)
    amd = validate_gpu({"gpu_type": "Amd", "memory_total_mb": 16368, "temperature_c": 55})
    assert isinstance(amd, AmdGpu)
    assert amd.temperature_c == 55

@pytest.mark.parametrize("payload", [
    {"gpu_type": "None", "memory_total_mb": 512},
    {"gpu_type": "Intel", "memory_total_mb": 512},
    {"memory_total_mb": 512},
    {"gpu_type": "Apple", "memory_total_mb": -1},
    {"gpu_type": "Apple", "memory_total_mb": 8192, "utilization_percent": 101},
    {"gpu_type": "Nvidia", "memory_total_mb": 8192, "power_usage_w": -5},
    {"gpu_type": "Apple", "memory_total_mb": 8192, "cuda_version": "12.2"},
])
def test_invalid_gpu_payload(payload):
    with pytest.raises(DataError, match="Invalid GPU information") as e:
        validate_gpu(payload)
    assert e.value.rule == "gpu_schema"

def test_non_mapping_gpu_payload():
    with pytest.raises(DataError, match="format"):
        validate_gpu("Nvidia")
