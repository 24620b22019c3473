# src/spectraseg/contracts/params.py
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidConfiguration

# -------------------------
# Selector de métrica
# -------------------------
class DistanceFamily(str, Enum):
    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"
    CHEBYSHEV = "chebyshev"
    SPECTRAL_ANGLE = "spectral_angle"
    NORMALIZED_EUCLIDEAN = "normalized_euclidean"

class DistanceKind(str, Enum):
    """Cómo se reduce un segmento antes de comparar."""
    MEAN = "mean"
    STATISTICAL = "statistical"

class DistanceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)
    family: DistanceFamily = DistanceFamily.EUCLIDEAN
    kind: DistanceKind = DistanceKind.MEAN
    weights: Optional[Tuple[float, ...]] = None  # solo normalized_euclidean

    @field_validator("weights")
    @classmethod
    def _non_negative(cls, v: Optional[Tuple[float, ...]]) -> Optional[Tuple[float, ...]]:
        if v is None:
            return v
        if not v:
            raise ValueError("weights no puede ser vacío")
        if any(w < 0 for w in v):
            raise ValueError("weights debe ser no negativo")
        return v


_P = TypeVar("_P", bound="_Params")

class _Params(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def parse(cls: Type[_P], data: "Mapping[str, Any] | _P | None" = None) -> _P:
        """Construye y valida; convierte errores de pydantic en InvalidConfiguration."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as e:
            raise InvalidConfiguration(f"{cls.__name__}: {e}") from e

# -------------------------
# Bundles por algoritmo
# -------------------------
class IsodataParams(_Params):
    number_of_cluster_centers: int = Field(0, ge=0)  # <10 -> auto-dimensionado
    cluster_distance_threshold: float = Field(0.0, ge=0.0)
    cluster_size_threshold: int = Field(0, ge=0)
    spectral_distance: DistanceSpec = DistanceSpec()
    cluster_distance: DistanceSpec = DistanceSpec()
    seed: Optional[int] = None

class BestMergeParams(_Params):
    segment_merge_threshold: float = Field(0.0, ge=0.0)
    number_of_iterations: int = Field(10, ge=1)
    spectral_distance: DistanceSpec = DistanceSpec()

class GraphMergeParams(_Params):
    segment_merge_threshold: float = Field(0.0, ge=0.0)
    spectral_distance: DistanceSpec = DistanceSpec()

class SequentialCouplingParams(_Params):
    segment_homogeneity_threshold: float = Field(0.0, ge=0.0)
    variance_threshold_before_merge: float = Field(0.0, ge=0.0)
    variance_threshold_after_merge: float = Field(0.0, ge=0.0)
    spectral_distance: DistanceSpec = DistanceSpec()


__all__ = [
    "DistanceFamily", "DistanceKind", "DistanceSpec",
    "IsodataParams", "BestMergeParams", "GraphMergeParams", "SequentialCouplingParams",
]
