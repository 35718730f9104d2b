"""Grain quality analysis behind a pluggable analyzer; the default one simulates results."""

import random
from dataclasses import dataclass, field
from typing import Protocol

# Grain types accepted by POST /images/process (case-sensitive).
GRAIN_TYPES: tuple[str, ...] = (
    "Soja",
    "Milho",
    "Trigo",
    "Arroz",
    "Feijão",
    "Café",
    "Aveia",
    "Cevada",
    "Sorgo",
    "Girassol",
)

DEFECT_KINDS: tuple[str, ...] = ("broken", "damaged", "discolored", "foreignMatter")


class InvalidGrainTypeError(Exception):
    """Raised when the grain type is not one of GRAIN_TYPES."""

    def __init__(self, grain_type: str) -> None:
        self.grain_type = grain_type
        super().__init__(f"Invalid grain type: {grain_type!r}")


@dataclass
class GrainAnalysisResult:
    """Counts and percentages produced for one sample image."""

    grain_type: str
    total_grains: int
    healthy_grains: int
    defective_grains: int
    defects_breakdown: dict[str, int] = field(default_factory=dict)
    purity_percentage: float = 0.0
    impurity_percentage: float = 0.0


class GrainAnalyzer(Protocol):
    """Anything that turns an image reference and grain type into a GrainAnalysisResult."""

    def analyze(self, image_ref: str, grain_type: str) -> GrainAnalysisResult: ...


def is_valid_grain_type(grain_type: str) -> bool:
    return grain_type in GRAIN_TYPES


class RandomGrainAnalyzer:
    """
    Simulated analyzer: plausible random counts, no image processing.

    - total grains in [200, 700)
    - 85-95% healthy
    - defects split 20-50% broken, 20-50% damaged, 10-30% discolored,
      10-30% foreign matter; the rounding remainder goes to broken so the
      breakdown always sums to defective_grains
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def analyze(self, image_ref: str, grain_type: str) -> GrainAnalysisResult:
        if not is_valid_grain_type(grain_type):
            raise InvalidGrainTypeError(grain_type)

        rng = self.rng
        total = rng.randrange(200, 700)
        healthy = int(total * (0.85 + rng.random() * 0.10))
        defective = total - healthy

        breakdown = {
            "broken": int(defective * (0.2 + rng.random() * 0.3)),
            "damaged": int(defective * (0.2 + rng.random() * 0.3)),
            "discolored": int(defective * (0.1 + rng.random() * 0.2)),
            "foreignMatter": int(defective * (0.1 + rng.random() * 0.2)),
        }
        remainder = defective - sum(breakdown.values())
        if breakdown["broken"] + remainder >= 0:
            breakdown["broken"] += remainder
        else:
            # Shares can add up to more than 100%; trim the excess from the largest buckets.
            for kind in sorted(breakdown, key=breakdown.__getitem__, reverse=True):
                take = min(breakdown[kind], -remainder)
                breakdown[kind] -= take
                remainder += take
                if remainder == 0:
                    break

        return GrainAnalysisResult(
            grain_type=grain_type,
            total_grains=total,
            healthy_grains=healthy,
            defective_grains=defective,
            defects_breakdown=breakdown,
            purity_percentage=round(healthy / total * 100, 2),
            impurity_percentage=round(defective / total * 100, 2),
        )
