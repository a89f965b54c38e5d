import threading

import pytest

from telemetry import simulation
from telemetry.base_source import TelemetrySource


@pytest.fixture
def raw_snapshot():
    """A valid raw hardware payload: 8 cores, 16GB memory of which 8GB used."""
    return {
        "cpuCoreCount": 8,
        "cpuBrandLabel": "Intel Core i7",
        "memoryTotalKB": 16 * 1024 * 1024,
        "memoryUsedKB": 8 * 1024 * 1024,
        "platformLabel": "darwin"
    }

@pytest.fixture
def nvidia_payload():
    return {
        "gpu_type": "Nvidia",
        "memory_total_mb": 8192,
        "memory_used_mb": 4500,
        "memory_free_mb": 3692,
        "temperature_c": 70,
        "power_usage_w": 120.5,
        "utilization_percent": 62,
        "cuda_version": "12.2",
        "driver_version": "535.104.05",
        "compute_capability": "8.6"
    }

@pytest.fixture
def simulation_config():
    """A private SimulationConfig, leaving the process-wide one alone."""
    return simulation.SimulationConfig()

@pytest.fixture(autouse=True)
def reset_process_simulation():
    # Tests must not leak toggles into each other
    yield
    simulation.SIMULATION.test_mode_enabled = False
    simulation.SIMULATION.error_injection_enabled = False


class FakeSource(TelemetrySource):
    """Returns queued payloads or raises queued exceptions, recording calls.
    The last queued item is repeated once the queue runs out.
    """

    def __init__(self, hardware=None, gpu=None):
        self.hardware = list(hardware or [])
        self.gpu = list(gpu or [])
        self.hardware_calls = 0
        self.gpu_calls = 0

    @staticmethod
    def _next(queue):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def fetch_hardware_snapshot(self):
        self.hardware_calls += 1
        return self._next(self.hardware)

    def fetch_gpu_snapshot(self):
        self.gpu_calls += 1
        return self._next(self.gpu)


class BlockingFetch:
    """A fetch function that blocks until released, to hold a cycle in flight."""

    def __init__(self, payload):
        self.payload = payload
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def __call__(self):
        self.calls += 1
        self.entered.set()
        assert self.release.wait(timeout=5), "blocking fetch was never released"
        return self.payload


@pytest.fixture
def fake_source():
    return FakeSource

@pytest.fixture
def blocking_fetch():
    return BlockingFetch
