import argparse
import logging
import sys
import time

import telemetry
from telemetry import diagnostics, simulation, state
from utils import format_bytes


logger = logging.getLogger()


def log_hardware_view(view):
    """State change callback: log the latest hardware reading or error."""
    if view.phase == state.Phase.READY:
        snapshot, metrics = view.current.snapshot, view.current.metrics
        logger.info(
            "CPU: %s (%d cores) | RAM: %s / %s (%.1f%%) | %s",
            snapshot.cpu_brand_label,
            snapshot.cpu_core_count,
            format_bytes(snapshot.memory_used_kb * 1024),
            format_bytes(snapshot.memory_total_kb * 1024),
            metrics.memory_usage_percentage,
            snapshot.platform_label
        )
    elif view.phase == state.Phase.ERROR:
        # The last good reading, if any, is still in view.current
        logger.info("Hardware reading failed: %s", view.last_error)

def log_gpu_view(view):
    if view.loading:
        return
    if view.error is not None:
        logger.info("GPU reading failed: %s", view.error)
        return

    gpu = view.data
    if not gpu.is_available:
        logger.info("GPU: %s", gpu.status_label)
        return

    used = f"{gpu.memory_used_mb}MB / " if gpu.memory_used_mb is not None else ""
    logger.info(
        "GPU: %s | VRAM: %s%sMB | utilization: %s%% | temperature: %s°C",
        gpu.gpu_type,
        used,
        gpu.memory_total_mb,
        gpu.utilization_percent,
        gpu.temperature_c
    )

def interval_arg(value):
    interval = float(value)
    if interval < 0:
        raise argparse.ArgumentTypeError(f"interval must be non-negative, got {value}")
    return interval

def run_self_tests():
    results = diagnostics.run_self_tests()
    for result in results:
        print(f"[{result.status.upper()}] {result.name}: {result.details or result.error}")
    return 0 if all(result.passed for result in results) else 1

def main(argv=None):
    parser = argparse.ArgumentParser(description="Local hardware monitor")
    parser.add_argument(
        "--interval",
        type=interval_arg,
        default=telemetry.CONFIG["telemetry"]["refresh_interval"],
        help="seconds between readings, 0 for a single reading."
    )
    parser.add_argument("--gpu", action="store_true", help="monitor the GPU as well.")
    parser.add_argument("--test-mode", action="store_true", help="use fixture data instead of reading the machine.")
    parser.add_argument("--inject-errors", action="store_true", help="make every reading fail.")
    parser.add_argument("--self-test", action="store_true", help="run the GPU diagnostics checks and exit.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format=telemetry.CONFIG["logging"]["format"],
        level=telemetry.CONFIG["logging"]["level"]
    )

    if args.self_test:
        return run_self_tests()

    if args.test_mode:
        simulation.set_test_mode(True)
    if args.inject_errors:
        simulation.set_error_injection(True)

    exposers = []
    try:
        hardware = state.use_poller(interval=args.interval, auto_schedule=True)
        log_hardware_view(hardware.view)
        hardware.on_change(log_hardware_view)
        exposers.append(hardware)

        if args.gpu:
            gpu = state.gpu_info(interval=args.interval, auto_schedule=True)
            log_gpu_view(gpu.view)
            gpu.on_change(log_gpu_view)
            exposers.append(gpu)

        if args.interval > 0:
            logger.info("Polling started...")
            logger.info("Ctrl-C to exit")
            while True:
                time.sleep(1)

    except KeyboardInterrupt:
        print()
        logger.info("Stopping")

    finally:
        for exposer in exposers:
            exposer.close()
        simulation.set_error_injection(False)
        simulation.set_test_mode(False)

    return 0


if __name__ == "__main__":
    sys.exit(main())
