# src/spectraseg/services/segmentation_base.py
from __future__ import annotations

"""
Andamiaje común de los algoritmos de segmentación/clustering.

Todos comparten las mismas primitivas (SegmentCollection + SpectralDistance)
y sólo difieren en la política de orden de merges. Pipeline:
  VALIDATE PARAMS → BUILD/CHECK COLLECTION → compute_result() → RESULT

Los parámetros se validan en el constructor, antes de leer el raster.
"""

import time
from typing import Any, Generic, Mapping, Optional, Type, TypeVar

from loguru import logger

from ..contracts.errors import IncompatibleRaster
from ..contracts.params import DistanceSpec
from ..contracts.segments import SegmentCollection
from ..ports.segmentation import SegmentationResult
from .distance import SpectralDistance

P = TypeVar("P")


class SpectralSegmentation(Generic[P]):
    """
    Base de los algoritmos. Subclases definen `method`, `params_type` y
    `compute_result()`; este último muta `self.collection` in-place y
    actualiza los contadores rounds/merges/splits/converged.
    """

    method: str = "segmentation"
    params_type: Type[Any]

    def __init__(
        self,
        raster: Any,
        params: "Mapping[str, Any] | P | None" = None,
        *,
        collection: Optional[SegmentCollection] = None,
    ):
        self.params: P = self.params_type.parse(params)
        self.raster = raster
        self._collection = collection
        if collection is not None:
            expected = (raster.number_of_rows, raster.number_of_columns, raster.number_of_bands)
            got = (collection.number_of_rows, collection.number_of_columns, collection.number_of_bands)
            if expected != got:
                raise IncompatibleRaster(f"colección {got} no corresponde al raster {expected}")
        self.rounds = 0
        self.merges = 0
        self.splits = 0
        self.converged = False
        self._result: Optional[SegmentationResult] = None

    # --------- colaboradores ---------
    @property
    def collection(self) -> SegmentCollection:
        # perezosa: la partición una-celda-por-segmento se arma al ejecutar
        if self._collection is None:
            self._collection = SegmentCollection(self.raster)
        return self._collection

    def _distance(self, spec: DistanceSpec) -> SpectralDistance:
        return SpectralDistance(spec, int(self.raster.number_of_bands))

    @property
    def number_of_cells(self) -> int:
        return int(self.raster.number_of_rows) * int(self.raster.number_of_columns)

    # --------- API principal ---------
    def execute(self) -> SegmentationResult:
        if self._result is not None:
            return self._result
        t0 = time.perf_counter()
        logger.info(
            f"{self.method}: {self.raster.number_of_rows}x{self.raster.number_of_columns}"
            f"x{self.raster.number_of_bands} celdas/bandas"
        )
        self.compute_result()
        elapsed = time.perf_counter() - t0
        self._result = SegmentationResult(
            collection=self.collection,
            method=self.method,
            rounds=self.rounds,
            merges=self.merges,
            splits=self.splits,
            converged=self.converged,
            elapsed_s=elapsed,
        )
        logger.info(
            f"{self.method}: {self.collection.count()} segmentos, {self.merges} merges, "
            f"{self.rounds} rondas, convergió={self.converged} ({elapsed:.2f}s)"
        )
        return self._result

    def compute_result(self) -> None:
        raise NotImplementedError

    # --------- primitivas contadas ---------
    def _merge(self, target, other) -> None:
        if target == other:
            return
        self.collection.merge_segments(target, other)
        self.merges += 1


__all__ = ["SpectralSegmentation"]
