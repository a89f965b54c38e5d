# Abstract base class for telemetry sources.
# A source returns unvalidated payloads; validation is left to the Poller.

class TelemetrySource:

    def fetch_hardware_snapshot(self):
        raise NotImplementedError

    def fetch_gpu_snapshot(self):
        raise NotImplementedError
