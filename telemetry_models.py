import time
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt


# Validated hardware reading. Field aliases match the raw payload keys
# produced by a telemetry source.
class HardwareSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cpu_core_count: int = Field(alias="cpuCoreCount", gt=0, strict=True)
    cpu_brand_label: str = Field(alias="cpuBrandLabel", min_length=1)
    memory_total_kb: int = Field(alias="memoryTotalKB", ge=0, strict=True)
    memory_used_kb: int = Field(alias="memoryUsedKB", ge=0, strict=True)
    platform_label: str = Field(alias="platformLabel", min_length=1)
    timestamp: float = Field(default_factory=lambda: time.time())  # UNIX timestamp in seconds

# Human facing values computed from a HardwareSnapshot
class DerivedResourceMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_memory_gb: float = Field(ge=0)
    used_memory_gb: float = Field(ge=0)
    memory_usage_percentage: float = Field(ge=0, le=100)

# A snapshot together with its derived metrics; the unit a hardware Poller stores
class HardwareReading(BaseModel):
    model_config = ConfigDict(frozen=True)

    snapshot: HardwareSnapshot
    metrics: DerivedResourceMetrics


# GPU readings. One model per vendor, each accepting only the fields
# that vendor reports. Sizes in MB.
class _GpuModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    memory_total_mb: NonNegativeInt = 0
    memory_used_mb: Optional[NonNegativeInt] = None
    memory_free_mb: Optional[NonNegativeInt] = None
    temperature_c: Optional[NonNegativeFloat] = None
    power_usage_w: Optional[NonNegativeFloat] = None
    utilization_percent: Optional[float] = Field(default=None, ge=0, le=100)

    @property
    def is_available(self):
        return self.gpu_type != "None"

    @property
    def status_label(self):
        return "Available" if self.is_available else "Not Available"


class NoGpu(_GpuModel):
    gpu_type: Literal["None"] = "None"
    memory_total_mb: int = Field(default=0, ge=0, le=0)

class AppleGpu(_GpuModel):
    gpu_type: Literal["Apple"] = "Apple"

class AmdGpu(_GpuModel):
    gpu_type: Literal["Amd"] = "Amd"

class NvidiaGpu(_GpuModel):
    gpu_type: Literal["Nvidia"] = "Nvidia"
    cuda_version: Optional[str] = None
    driver_version: Optional[str] = None
    compute_capability: Optional[str] = None


GpuSnapshot = Annotated[
    Union[NoGpu, AppleGpu, NvidiaGpu, AmdGpu],
    Field(discriminator="gpu_type")
]
