# src/spectraseg/services/best_merge_service.py
from __future__ import annotations

"""
Segmentación best-merge: en cada iteración se contraen los pares de
segmentos vecinos con menor costo (distancia entre agregados), de mejor a
peor, mientras el costo actual siga bajo el umbral. Termina al agotar
`number_of_iterations` o cuando una iteración no hace merges.
"""

import heapq
from typing import Any, List, Mapping, Optional, Set, Tuple

from loguru import logger

from ..contracts.params import BestMergeParams
from ..contracts.segments import SegmentCollection
from .segmentation_base import SpectralSegmentation


class BestMergeSegmentation(SpectralSegmentation[BestMergeParams]):
    method = "best_merge"
    params_type = BestMergeParams

    def __init__(
        self,
        raster: Any,
        params: "Mapping[str, Any] | BestMergeParams | None" = None,
        *,
        collection: Optional[SegmentCollection] = None,
    ):
        super().__init__(raster, params, collection=collection)
        self._spectral = self._distance(self.params.spectral_distance)

    def compute_result(self) -> None:
        for _ in range(self.params.number_of_iterations):
            self.rounds += 1
            done = self._iterate()
            logger.debug(f"best_merge: iteración {self.rounds}: {done} merges, {self.collection.count()} segmentos")
            if done == 0:
                self.converged = True
                return
        logger.info(f"best_merge: presupuesto de {self.params.number_of_iterations} iteraciones agotado")

    def _iterate(self) -> int:
        col = self.collection
        threshold = self.params.segment_merge_threshold
        heap: List[Tuple[float, int, int]] = []
        for a, b in col.adjacent_pairs():
            d = self._spectral.segments(a, b)
            if d < threshold:
                heap.append((d, a.id, b.id))
        heapq.heapify(heap)

        # un segmento participa en a lo más un merge por iteración
        touched: Set[int] = set()
        segments = {s.id: s for s in col.segments()}
        done = 0
        while heap:
            _, ida, idb = heapq.heappop(heap)
            if ida in touched or idb in touched:
                continue
            a, b = segments[ida], segments[idb]
            if not (col.contains(a) and col.contains(b)):
                continue
            if self._spectral.segments(a, b) < threshold:
                self._merge(a, b)
                touched.update((ida, idb))
                done += 1
        return done


__all__ = ["BestMergeSegmentation"]
