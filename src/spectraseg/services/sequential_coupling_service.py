# src/spectraseg/services/sequential_coupling_service.py
from __future__ import annotations

"""
Segmentación por acoplamiento secuencial: recorrido fila-mayor; cada celda
se une al segmento vecino ya visitado (arriba o izquierda) que sea
homogéneo antes y después del merge hipotético.
"""

from typing import Any, List, Mapping, Optional, Tuple

import numpy as np
from loguru import logger

from ..contracts.params import SequentialCouplingParams
from ..contracts.segments import Segment, SegmentCollection, SegmentStats
from .segmentation_base import SpectralSegmentation


class SequentialCouplingSegmentation(SpectralSegmentation[SequentialCouplingParams]):
    method = "sequential_coupling"
    params_type = SequentialCouplingParams

    def __init__(
        self,
        raster: Any,
        params: "Mapping[str, Any] | SequentialCouplingParams | None" = None,
        *,
        collection: Optional[SegmentCollection] = None,
    ):
        super().__init__(raster, params, collection=collection)
        self._spectral = self._distance(self.params.spectral_distance)

    def is_admissible(self, candidate: Segment, cell: SegmentStats) -> Tuple[bool, float]:
        """(admisible, distancia) de unir `cell` a `candidate`."""
        p = self.params
        stats = candidate.stats
        if float(np.max(stats.variance)) > p.variance_threshold_before_merge:
            return False, np.inf
        d = self._spectral.segments(stats, cell)
        if not d < p.segment_homogeneity_threshold:
            return False, d
        after = stats.merged(cell)
        if float(np.max(after.variance)) > p.variance_threshold_after_merge:
            return False, d
        return True, d

    def compute_result(self) -> None:
        col = self.collection
        self.rounds = 1
        for r in range(col.number_of_rows):
            for c in range(col.number_of_columns):
                current = col.get_segment(r, c)
                cell = current.stats
                best: Optional[Segment] = None
                best_d = np.inf
                candidates: List[Segment] = []
                if r > 0:
                    candidates.append(col.get_segment(r - 1, c))
                if c > 0:
                    candidates.append(col.get_segment(r, c - 1))
                for cand in candidates:
                    if cand == current:
                        continue
                    ok, d = self.is_admissible(cand, cell)
                    # arriba primero: en empate gana el primero
                    if ok and d < best_d:
                        best, best_d = cand, d
                if best is not None:
                    col.merge_cell(best, r, c)
                    self.merges += 1
            logger.debug(f"sequential_coupling: fila {r}: {col.count()} segmentos")
        self.converged = True


__all__ = ["SequentialCouplingSegmentation"]
