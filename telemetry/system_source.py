from telemetry import hw_stats
from telemetry.base_source import TelemetrySource


class SystemTelemetrySource(TelemetrySource):
    """Reads the local machine via psutil and the GPU vendor libraries."""

    def fetch_hardware_snapshot(self):
        return hw_stats.get_hardware_snapshot()

    def fetch_gpu_snapshot(self):
        return hw_stats.get_gpu_snapshot()
