import logging
from typing import Literal, Optional

from pydantic import BaseModel

from telemetry.exceptions import ConnectivityError
from telemetry.simulation import SimulationHarness
from telemetry.validator import validate_gpu


logger = logging.getLogger()


class SelfTestResult(BaseModel):
    name: str
    status: Literal["passed", "failed"]
    details: Optional[str] = None
    error: Optional[str] = None

    @property
    def passed(self):
        return self.status == "passed"


def _check_gpu_detection(harness):
    gpu = validate_gpu(harness.fetch_gpu_snapshot())
    details = f"Detected: {gpu.gpu_type} with {gpu.memory_total_mb}MB VRAM"
    if getattr(gpu, "cuda_version", None):
        details += f", CUDA {gpu.cuda_version}"
    if getattr(gpu, "driver_version", None):
        details += f", Driver {gpu.driver_version}"

    has_gpu = gpu.is_available and gpu.memory_total_mb > 0
    return has_gpu, details

def _check_test_mode(harness):
    harness.set_test_mode(True)
    enabled = harness.test_mode
    return enabled, f"Test mode is {'enabled' if enabled else 'disabled'}"

def _check_error_injection(harness):
    harness.set_error_injection(True)
    try:
        harness.fetch_gpu_snapshot()
    except ConnectivityError:
        return True, "Error injection succeeded"
    return False, "Error injection failed - no error was raised"


SELF_TESTS = (
    ("Basic GPU Detection", _check_gpu_detection),
    ("Test Mode", _check_test_mode),
    ("Error Injection", _check_error_injection),
)


def run_self_tests(harness=None):
    """Run the GPU diagnostics checks in order: a plain detection, enabling
    test mode, and enabling error injection. Both simulation toggles are
    disabled again afterwards.

    Args:
        harness (SimulationHarness): the harness to exercise, defaults to one
            over the local machine using the process-wide toggles
    Return:
        a list of SelfTestResult models, one per check
    """
    harness = SimulationHarness() if harness is None else harness
    results = []
    try:
        for name, check in SELF_TESTS:
            try:
                passed, details = check(harness)
            except Exception as e:
                logger.warning("Self test '%s' raised: %s", name, e)
                results.append(SelfTestResult(name=name, status="failed", error=str(e)))
                continue

            results.append(SelfTestResult(name=name, status="passed" if passed else "failed", details=details))
            logger.info("Self test '%s': %s", name, results[-1].status)
    finally:
        harness.set_error_injection(False)
        harness.set_test_mode(False)

    return results
