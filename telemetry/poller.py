import enum
import logging
import threading
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator

import telemetry
from telemetry import metrics, validator
from telemetry.exceptions import ComputationError, ConnectivityError, DataError, TelemetryError
from telemetry_models import HardwareReading


logger = logging.getLogger()


class Phase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class PollingState(BaseModel):
    """Immutable state of a Poller. A new instance replaces the old one on
    every transition. current is kept through loading and error phases so the
    last good reading stays available alongside a new error.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    phase: Phase = Phase.IDLE
    current: Optional[Any] = None
    last_error: Optional[TelemetryError] = None

    @model_validator(mode="after")
    def _check_phase(self):
        if self.phase == Phase.READY and (self.current is None or self.last_error is not None):
            raise ValueError("ready state requires a current reading and no error")
        if self.phase == Phase.ERROR and self.last_error is None:
            raise ValueError("error state requires an error")
        return self


class Poller:
    """Runs fetch-validate-derive cycles, on start, on a timer and on demand.

    At most one cycle runs at a time: a refresh requested while a cycle is in
    flight, whether scheduled or manual, is dropped and the caller sees the
    result of the running cycle instead. Failures never propagate to the
    caller; they are recorded in the state as ConnectivityError (fetch),
    DataError (validate) or ComputationError (derive).

    Args:
        fetch (callable): returns a raw payload
        validate (callable): turns a raw payload into a model, raises DataError
        derive (callable): optional, computes the stored value from the validated model
        interval (float): seconds between scheduled cycles, 0 to disable
        auto_schedule (bool): whether to schedule cycles at all. Defaults to
            False in a test context, see telemetry.is_test_context()
        name (str): label used in log and error messages
    """

    def __init__(self, fetch, validate, derive=None, interval=0, auto_schedule=None, name="telemetry"):
        if interval < 0:
            raise ValueError(f"polling interval must be non-negative, got {interval}")

        self.fetch = fetch
        self.validate = validate
        self.derive = derive
        self.interval = interval
        self.auto_schedule = not telemetry.is_test_context() if auto_schedule is None else auto_schedule
        self.name = name

        self._state = PollingState()
        self._listeners = []
        self._lock = threading.Lock()
        self._in_flight = False
        self._started = False
        self._torn_down = False
        self._timer = None

    @property
    def state(self):
        return self._state

    @property
    def in_flight(self):
        return self._in_flight

    @property
    def torn_down(self):
        return self._torn_down

    @property
    def scheduled(self):
        """Whether cycles are repeated on a timer."""
        return self.auto_schedule and self.interval > 0

    def subscribe(self, callback):
        """Register a callable to receive every new PollingState.
        Return:
            a function removing the callback again
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def start(self):
        """Run the first cycle in the calling thread, then start the schedule."""
        with self._lock:
            if self._torn_down:
                raise RuntimeError(f"{self.name} poller has been stopped")
            if self._started:
                raise RuntimeError(f"{self.name} poller already started")
            self._started = True

        logger.debug("Starting %s poller, interval: %ss", self.name, self.interval if self.scheduled else None)
        self._run_cycle()
        self._schedule_next()
        return self

    def refresh(self):
        """Run one cycle outside the schedule.
        Return:
            True if a cycle was run, False if it was coalesced into one
            already in flight or the poller is stopped
        """
        return self._run_cycle()

    def stop(self):
        """Cancel the schedule. A cycle still in flight finishes but its
        result is discarded.
        """
        with self._lock:
            self._torn_down = True
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()
        logger.debug("Stopped %s poller", self.name)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _run_cycle(self):
        with self._lock:
            if self._torn_down:
                return False
            if self._in_flight:
                logger.debug("%s cycle already in flight, skipping refresh", self.name)
                return False
            self._in_flight = True

        try:
            self._commit(PollingState(phase=Phase.LOADING, current=self._state.current))
            try:
                current = self._execute()
            except TelemetryError as e:
                self._log_failure(e)
                self._commit(PollingState(phase=Phase.ERROR, current=self._state.current, last_error=e))
            else:
                self._commit(PollingState(phase=Phase.READY, current=current))
        finally:
            with self._lock:
                self._in_flight = False

        return True

    def _execute(self):
        """Fetch, validate and derive, tagging any failure with its stage."""
        try:
            raw = self.fetch()
        except ConnectivityError:
            raise
        except Exception as e:
            raise ConnectivityError(f"Failed to retrieve {self.name} information: {e}") from e

        try:
            value = self.validate(raw)
        except DataError:
            raise
        except Exception as e:
            raise DataError(f"Invalid {self.name} information: {e}", value=raw) from e

        if self.derive is None:
            return value

        try:
            return self.derive(value)
        except ComputationError:
            raise
        except Exception as e:
            raise ComputationError(f"Failed to compute {self.name} metrics: {e}") from e

    def _commit(self, state):
        with self._lock:
            # results of a cycle finishing after stop() are dropped
            if self._torn_down:
                return
            self._state = state
            listeners = list(self._listeners)

        for callback in listeners:
            try:
                callback(state)
            except Exception:
                logger.exception("%s state listener failed", self.name)

    def _log_failure(self, error):
        # Connectivity errors are expected to clear by the next tick
        if isinstance(error, ConnectivityError):
            logger.warning("%s poller: connectivity error: %s", self.name, error)
        else:
            logger.error("%s poller: %s error: %s", self.name, error.kind, error)

    def _schedule_next(self):
        if not self.scheduled:
            return

        with self._lock:
            if self._torn_down:
                return
            self._timer = threading.Timer(self.interval, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def _tick(self):
        self._run_cycle()
        self._schedule_next()


def _read_hardware(snapshot):
    return HardwareReading(snapshot=snapshot, metrics=metrics.derive(snapshot))

def create_hardware_poller(source, interval=None, auto_schedule=None):
    """Poller storing a HardwareReading per cycle.
    Args:
        source (TelemetrySource): where to fetch raw readings from
        interval (float): seconds between readings, defaults to the configured refresh_interval
    """
    if interval is None:
        interval = telemetry.CONFIG["telemetry"]["refresh_interval"]

    return Poller(
        fetch=source.fetch_hardware_snapshot,
        validate=validator.validate_hardware,
        derive=_read_hardware,
        interval=interval,
        auto_schedule=auto_schedule,
        name="hardware"
    )

def create_gpu_poller(source, interval=None, auto_schedule=None):
    """Poller storing a GpuSnapshot per cycle."""
    if interval is None:
        interval = telemetry.CONFIG["telemetry"]["gpu_refresh_interval"]

    return Poller(
        fetch=source.fetch_gpu_snapshot,
        validate=validator.validate_gpu,
        interval=interval,
        auto_schedule=auto_schedule,
        name="GPU"
    )
