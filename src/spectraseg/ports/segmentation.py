# src/spectraseg/ports/segmentation.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..contracts.segments import SegmentCollection

@dataclass(frozen=True)
class SegmentationResult:
    """Partición final + resumen de la ejecución."""
    collection: SegmentCollection
    method: str
    rounds: int          # rondas/iteraciones del bucle de convergencia
    merges: int
    splits: int
    converged: bool      # False si se agotó el presupuesto de iteraciones
    elapsed_s: float

    @property
    def number_of_segments(self) -> int:
        return self.collection.count()

@runtime_checkable
class SegmentationPort(Protocol):
    """
    Algoritmo de segmentación: muta la colección hasta una partición estable
    y reporta la terminación.
    """
    @property
    def collection(self) -> SegmentCollection: ...
    def execute(self) -> SegmentationResult: ...

__all__ = ["SegmentationPort", "SegmentationResult"]
