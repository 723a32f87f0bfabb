"""Static GPU catalog used for hardware recommendations."""

from dataclasses import dataclass

from llm_mem_estimator.core.models import EfficiencyTier


@dataclass(frozen=True)
class GPUSpec:
    """A GPU model available for recommendation."""

    id: str
    name: str
    memory_size: float  # GB per card
    price: float  # USD per card
    efficiency: EfficiencyTier
    architecture: str = ""


GPU_CATALOG: tuple[GPUSpec, ...] = (
    GPUSpec("rtx-4090", "RTX 4090", 24, 1599, EfficiencyTier.HIGH, "Ada Lovelace"),
    GPUSpec("rtx-4080", "RTX 4080", 16, 1199, EfficiencyTier.HIGH, "Ada Lovelace"),
    GPUSpec("rtx-3090", "RTX 3090", 24, 999, EfficiencyTier.MEDIUM, "Ampere"),
    GPUSpec("a100-40gb", "A100 40GB", 40, 10000, EfficiencyTier.HIGH, "Ampere"),
    GPUSpec("a100-80gb", "A100 80GB", 80, 15000, EfficiencyTier.HIGH, "Ampere"),
    GPUSpec("h100", "H100", 80, 25000, EfficiencyTier.HIGH, "Hopper"),
    GPUSpec("v100", "V100", 32, 8000, EfficiencyTier.MEDIUM, "Volta"),
)


def get_gpu(gpu_id: str) -> GPUSpec | None:
    """Look up a catalog entry by id."""
    return next((gpu for gpu in GPU_CATALOG if gpu.id == gpu_id), None)
