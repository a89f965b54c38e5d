import atexit
import logging
import os
import platform
import re
import subprocess

import psutil
import pynvml

# The amdsmi module is importable only if the AMD SMI library is installed.
# https://rocm.docs.amd.com/projects/amdsmi/en/latest/install/install.html
try:
    import amdsmi
    AMDSMI_IMPORTED = True
except (ImportError, KeyError):
    AMDSMI_IMPORTED = False

from telemetry.exceptions import DummyAmdSmiException


GPU_DEVICE_HANDLE_LOADED = False
handle_config = None

logger = logging.getLogger()

# Payload returned when no GPU can be monitored
NO_GPU_PAYLOAD = {"gpu_type": "None", "memory_total_mb": 0}

APPLE_MODEL_PATTERN = re.compile(r"Apple M\d+(?: Pro| Max| Ultra)?")


def try_get_gpu_handle():
    """Try to get a GPU handle, probing AMD, Nvidia and Apple Silicon in that order.

    Return:
        a (vendor, handle) tuple for the first device found, else None
    """
    logger.info("Attempting to initialize GPU monitoring...")
    if AMDSMI_IMPORTED:
        try:
            logger.info("Checking if an AMD device can be initialized...")
            amdsmi.amdsmi_init()
            handle = amdsmi.amdsmi_get_processor_handles()[0]
            atexit.register(amdsmi.amdsmi_shut_down)
            logger.info("Success!")
            return "AMD", handle
        except (amdsmi.AmdSmiException, DummyAmdSmiException, IndexError):
            logger.warning("AMD SMI initialization failed.")
    else:
        logger.info("amdsmi library not detected.")

    try:
        logger.info("Checking if an Nvidia device can be initialized...")
        pynvml.nvmlInit()
        handle = pynvml.nvmlDeviceGetHandleByIndex(0)
        atexit.register(pynvml.nvmlShutdown)
        logger.info("Success!")
        return "NVIDIA", handle
    except pynvml.NVMLError_LibraryNotFound:
        logger.warning("NVIDIA Management Library (NVML) not detected.")
    except pynvml.NVMLError:
        logger.warning("NVML initialization failed.")

    if platform.system() == "Darwin" and platform.machine() == "arm64":
        logger.info("Checking for an Apple Silicon GPU...")
        handle = _get_apple_gpu_handle()
        if handle:
            logger.info("Success!")
            return "APPLE", handle
        logger.warning("No Apple Silicon GPU found.")

    logger.warning("Couldn't initialize GPU, Disabling GPU tracking.")
    return None

def get_hardware_snapshot():
    """Collect a raw CPU and memory reading. Memory values are in kilobytes.
    No checks are made here: values the system can't report are passed on
    as-is for the validator to reject.

    Return:
        a dict with cpuCoreCount, cpuBrandLabel, memoryTotalKB, memoryUsedKB
        and platformLabel keys
    """
    mem = psutil.virtual_memory()
    return {
        "cpuCoreCount": psutil.cpu_count(logical=True) or 0,
        "cpuBrandLabel": _get_cpu_brand(),
        "memoryTotalKB": int(mem.total // 1024),
        "memoryUsedKB": int(mem.used // 1024),
        "platformLabel": platform.system().lower()
    }

def get_gpu_snapshot():
    """Collect a raw GPU reading.

    On first call, tries to initialize a GPU handle using
    try_get_gpu_handle(). Subsequent calls will use the cached handle.

    Return:
        a dict with a gpu_type key and the fields the vendor reports
    """
    # initialize a device handle on first call
    global handle_config, GPU_DEVICE_HANDLE_LOADED
    if not GPU_DEVICE_HANDLE_LOADED:
        handle_config = try_get_gpu_handle()
        GPU_DEVICE_HANDLE_LOADED = True

    # Return an empty reading if no GPU handle could be obtained
    if not handle_config:
        return dict(NO_GPU_PAYLOAD)

    gpu_vendor, handle = handle_config
    if gpu_vendor == "NVIDIA":
        return _get_nvidia_gpu_info(handle)
    if gpu_vendor == "APPLE":
        return _get_apple_gpu_info(handle)

    return _get_radeon_gpu_info(handle)

def _get_cpu_brand():
    """CPU model name, eg. 'Intel(R) Core(TM) i7-9750H CPU @ 2.60GHz'.
    platform.processor() only returns the architecture on most Linux systems,
    so read /proc/cpuinfo or sysctl where available.

    Return:
        the brand string, empty if it couldn't be determined
    """
    system = platform.system()
    if system == "Linux" and os.path.exists("/proc/cpuinfo"):
        with open("/proc/cpuinfo") as f:
            for line in f:
                key, _, value = line.partition(":")
                if key.strip() in ("model name", "Model", "Hardware"):
                    return value.strip()
    elif system == "Darwin":
        try:
            result = subprocess.run(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                capture_output=True, text=True, timeout=5
            )
            if result.returncode == 0 and result.stdout.strip():
                return result.stdout.strip()
        except (OSError, subprocess.TimeoutExpired):
            logger.debug("sysctl not available")

    return platform.processor().strip()

def _to_mb(num_bytes):
    return int(num_bytes / 1024**2)

def _number_or_none(value):
    # vendor libraries report unsupported readings as strings like "N/A"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value

def _get_nvidia_gpu_info(handle):
    """Get Nvidia GPU usage statistics using Nvidia management libary (NVML).
    https://pypi.org/project/nvidia-ml-py/
    https://docs.nvidia.com/deploy/nvml-api/index.html

    Return:
        a raw Nvidia GPU payload
    """
    mem_info = pynvml.nvmlDeviceGetMemoryInfo(handle)
    util_info = pynvml.nvmlDeviceGetUtilizationRates(handle)
    temp_info = pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU)

    # Power readings aren't supported on all boards
    try:
        power = pynvml.nvmlDeviceGetPowerUsage(handle) / 1000  # mW
    except pynvml.NVMLError:
        power = None

    driver_version = pynvml.nvmlSystemGetDriverVersion()
    if isinstance(driver_version, bytes):
        driver_version = driver_version.decode()

    # eg. 12020 ↦ 12.2
    cuda = pynvml.nvmlSystemGetCudaDriverVersion()
    major, minor = pynvml.nvmlDeviceGetCudaComputeCapability(handle)

    return {
        "gpu_type": "Nvidia",
        "memory_total_mb": _to_mb(mem_info.total),
        "memory_used_mb": _to_mb(mem_info.used),
        "memory_free_mb": _to_mb(mem_info.free),
        "temperature_c": temp_info,
        "power_usage_w": power,
        "utilization_percent": util_info.gpu,
        "cuda_version": f"{cuda // 1000}.{(cuda % 1000) // 10}",
        "driver_version": driver_version,
        "compute_capability": f"{major}.{minor}"
    }

def _get_radeon_gpu_info(handle):
    """Get GPU usage statistics using amdsmi management library.
    https://rocm.docs.amd.com/projects/amdsmi/en/latest/reference/amdsmi-py-api.html

    Return:
        a raw AMD GPU payload
    """
    gpu_metrics = amdsmi.amdsmi_get_gpu_metrics_info(handle)
    mem_info = amdsmi.amdsmi_get_gpu_vram_usage(handle)

    total = int(mem_info["vram_total"])
    used = int(mem_info["vram_used"])
    return {
        "gpu_type": "Amd",
        "memory_total_mb": total,
        "memory_used_mb": used,
        "memory_free_mb": max(total - used, 0),
        "temperature_c": _number_or_none(gpu_metrics.get("temperature_vrgfx")),
        "power_usage_w": _number_or_none(gpu_metrics.get("average_socket_power")),
        "utilization_percent": _number_or_none(gpu_metrics.get("average_gfx_activity"))
    }

def _get_apple_gpu_handle():
    """Look up the Apple Silicon GPU through the IO registry.

    Return:
        a dict of the GPU model name and memory size, or None
    """
    try:
        result = subprocess.run(
            ["ioreg", "-l", "-w0", "-r", "-c", "AGXAccelerator", "-d", "1"],
            capture_output=True, text=True, timeout=10
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Failed to execute ioreg: %s", e)
        return None

    if result.returncode != 0:
        logger.warning("ioreg command failed: %s", result.stderr.strip())
        return None

    return parse_ioreg_output(result.stdout)

def parse_ioreg_output(output):
    """Parse the model name and GPU memory size from ioreg output.
    Apple Silicon uses unified memory: if ioreg doesn't report a dedicated
    size, system memory is used instead.

    Args:
        output (str): ioreg output for the AGXAccelerator class
    Return:
        a dict with name and memory_total_mb keys, or None if no Apple GPU is listed
    """
    match = APPLE_MODEL_PATTERN.search(output)
    if not match:
        return None

    memory_mb = None
    for line in output.splitlines():
        if "gpu-memory-total-size" in line:
            _, _, value = line.partition("=")
            try:
                memory_mb = int(value.strip())
            except ValueError:
                pass
            break

    if memory_mb is None:
        memory_mb = _to_mb(psutil.virtual_memory().total)

    logger.info("Found GPU - name: %s, memory: %dMB", match.group(0), memory_mb)
    return {"name": match.group(0), "memory_total_mb": memory_mb}

def parse_powermetrics_output(output):
    """Parse GPU utilization, power and temperature from powermetrics output.

    Return:
        a (utilization, power, temperature) tuple, None for missing readings
    """
    readings = {"GPU Active": None, "GPU Power": None, "GPU die temperature": None}
    for line in output.splitlines():
        for label in readings:
            if label in line and readings[label] is None:
                value = line.split(":", 1)[-1].strip()
                number = re.match(r"[\d.]+", value)
                if number:
                    readings[label] = float(number.group(0))

    return readings["GPU Active"], readings["GPU Power"], readings["GPU die temperature"]

def _get_apple_gpu_info(handle):
    """Get Apple Silicon GPU statistics. Live readings come from powermetrics,
    which requires elevated privileges; without them only the static
    memory size is reported.

    Return:
        a raw Apple GPU payload
    """
    utilization = power = temperature = None
    try:
        result = subprocess.run(
            ["powermetrics", "--samplers", "gpu_power", "-i", "1000", "-n", "1"],
            capture_output=True, text=True, timeout=10
        )
        if result.returncode == 0:
            utilization, power, temperature = parse_powermetrics_output(result.stdout)
        else:
            logger.debug("powermetrics command failed: %s", result.stderr.strip())
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("powermetrics not available: %s", e)

    return {
        "gpu_type": "Apple",
        "memory_total_mb": handle["memory_total_mb"],
        "temperature_c": temperature,
        "power_usage_w": power,
        "utilization_percent": utilization
    }
