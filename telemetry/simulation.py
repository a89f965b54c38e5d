"""Test mode and error injection for telemetry sources.

SimulationHarness wraps a real TelemetrySource and consults a SimulationConfig
on every fetch: with error injection enabled every fetch fails with a fixed
ConnectivityError, with test mode enabled fixed fixture payloads are returned
instead of reading the machine, otherwise the call is passed on unchanged.

SIMULATION is the process-wide config used by harnesses created without one.
It is never reset implicitly: whoever enables a toggle is responsible for
disabling it again.
"""
import copy
import logging

from pydantic import BaseModel, ConfigDict

from telemetry.base_source import TelemetrySource
from telemetry.exceptions import ConnectivityError
from telemetry.system_source import SystemTelemetrySource


logger = logging.getLogger()

SIMULATED_HARDWARE_ERROR = "Simulated hardware error"
SIMULATED_GPU_ERROR = "Simulated GPU error"

# 8 cores, 16GB of memory of which 8GB in use
FIXTURE_HARDWARE_SNAPSHOT = {
    "cpuCoreCount": 8,
    "cpuBrandLabel": "Test CPU",
    "memoryTotalKB": 16 * 1024 * 1024,
    "memoryUsedKB": 8 * 1024 * 1024,
    "platformLabel": "test"
}

FIXTURE_GPU_SNAPSHOT = {
    "gpu_type": "Apple",
    "memory_total_mb": 8192,
    "memory_used_mb": 2048,
    "memory_free_mb": 6144,
    "temperature_c": 45.0,
    "power_usage_w": 15.0,
    "utilization_percent": 30.0
}


class SimulationConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    test_mode_enabled: bool = False
    error_injection_enabled: bool = False


SIMULATION = SimulationConfig()


def set_test_mode(enabled, config=None):
    config = SIMULATION if config is None else config
    config.test_mode_enabled = enabled
    logger.info("Test mode set to: %s", enabled)

def set_error_injection(enabled, config=None):
    config = SIMULATION if config is None else config
    config.error_injection_enabled = enabled
    logger.info("Error injection set to: %s", enabled)

def is_test_mode(config=None):
    return (SIMULATION if config is None else config).test_mode_enabled

def is_error_injection(config=None):
    return (SIMULATION if config is None else config).error_injection_enabled


class SimulationHarness(TelemetrySource):
    """A TelemetrySource routing fetches through the simulation toggles.

    Args:
        source (TelemetrySource): the source used when simulation is off.
            Defaults to reading the local machine.
        config (SimulationConfig): the toggles to consult. Defaults to the
            process-wide SIMULATION.
    """

    def __init__(self, source=None, config=None):
        self.source = SystemTelemetrySource() if source is None else source
        self.config = SIMULATION if config is None else config

    def set_test_mode(self, enabled):
        set_test_mode(enabled, self.config)

    def set_error_injection(self, enabled):
        set_error_injection(enabled, self.config)

    @property
    def test_mode(self):
        return self.config.test_mode_enabled

    @property
    def error_injection(self):
        return self.config.error_injection_enabled

    def fetch_hardware_snapshot(self):
        if self.config.error_injection_enabled:
            raise ConnectivityError(SIMULATED_HARDWARE_ERROR)
        if self.config.test_mode_enabled:
            return copy.deepcopy(FIXTURE_HARDWARE_SNAPSHOT)
        return self.source.fetch_hardware_snapshot()

    def fetch_gpu_snapshot(self):
        if self.config.error_injection_enabled:
            raise ConnectivityError(SIMULATED_GPU_ERROR)
        if self.config.test_mode_enabled:
            return copy.deepcopy(FIXTURE_GPU_SNAPSHOT)
        return self.source.fetch_gpu_snapshot()
