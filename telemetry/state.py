import logging
import threading
from typing import Any, Callable, NamedTuple, Optional

from telemetry.exceptions import TelemetryError
from telemetry.poller import Phase, create_gpu_poller, create_hardware_poller
from telemetry.simulation import SimulationConfig, SimulationHarness


logger = logging.getLogger()


class PollerView(NamedTuple):
    phase: Phase
    current: Optional[Any]
    last_error: Optional[TelemetryError]
    refresh: Callable[[], bool]


class GpuInfoView(NamedTuple):
    loading: bool
    data: Optional[Any]
    error: Optional[TelemetryError]
    refresh: Callable[[], bool]


class StateExposer:
    """Read-only view over a Poller for the presentation layer.
    The view is rebuilt on every state change of the poller and pushed to
    any callbacks registered with on_change().
    """

    def __init__(self, poller):
        self.poller = poller
        self._callbacks = []
        self._lock = threading.Lock()
        self._state = poller.state
        self._view = self._build_view(poller.state)
        self._unsubscribe = poller.subscribe(self._on_state)

    def _build_view(self, state):
        return PollerView(state.phase, state.current, state.last_error, self.poller.refresh)

    def _on_state(self, state):
        view = self._build_view(state)
        with self._lock:
            self._state, self._view = state, view
            callbacks = list(self._callbacks)

        for callback in callbacks:
            callback(view)

    @property
    def view(self):
        return self._view

    def on_change(self, callback):
        with self._lock:
            self._callbacks.append(callback)

    def refresh(self):
        return self.poller.refresh()

    def close(self):
        """Detach from the poller and stop it."""
        self._unsubscribe()
        self.poller.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def phase(self):
        return self._view.phase

    @property
    def current(self):
        return self._view.current

    @property
    def last_error(self):
        return self._view.last_error


class GpuInfoExposer(StateExposer):

    def _build_view(self, state):
        loading = state.phase in (Phase.IDLE, Phase.LOADING)
        return GpuInfoView(loading, state.current, state.last_error, self.poller.refresh)

    @property
    def loading(self):
        return self._view.loading

    @property
    def data(self):
        return self._view.data

    @property
    def error(self):
        return self._view.error

    @property
    def phase(self):
        return self._state.phase

    @property
    def current(self):
        return self._view.data

    @property
    def last_error(self):
        return self._view.error


def use_poller(interval=None, source=None, auto_schedule=None):
    """Start a hardware poller and return a StateExposer over it.

    Args:
        interval (float): seconds between readings, defaults to the configured refresh_interval
        source (TelemetrySource): defaults to a SimulationHarness over the local
            machine, following the process-wide simulation toggles
    Return:
        a started StateExposer; view is {phase, current, last_error, refresh}
    """
    source = SimulationHarness() if source is None else source
    exposer = StateExposer(create_hardware_poller(source, interval=interval, auto_schedule=auto_schedule))
    exposer.poller.start()
    return exposer

def gpu_info(test_mode=False, interval=None, source=None, auto_schedule=None):
    """Start an independent GPU poller and return a GpuInfoExposer over it.

    Args:
        test_mode (bool): read fixture data instead of the GPU. Uses a private
            simulation config, the process-wide toggles are left untouched.
        interval (float): seconds between readings, defaults to the configured gpu_refresh_interval
        source (TelemetrySource): overrides the default source
    Return:
        a started GpuInfoExposer; view is {loading, data, error, refresh}
    """
    if source is None:
        config = SimulationConfig(test_mode_enabled=True) if test_mode else None
        source = SimulationHarness(config=config)

    exposer = GpuInfoExposer(create_gpu_poller(source, interval=interval, auto_schedule=auto_schedule))
    exposer.poller.start()
    return exposer
