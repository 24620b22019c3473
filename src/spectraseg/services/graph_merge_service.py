# src/spectraseg/services/graph_merge_service.py
from __future__ import annotations

"""
Segmentación por grafo: la imagen como grafo de segmentos vecinos con
peso = similitud 1 / (1 + distancia). Las aristas se procesan en orden
descendente de peso; los extremos se resuelven a su segmento dueño actual
y se contraen si la distancia actual queda bajo el umbral. Una sola pasada.
"""

from typing import Any, List, Mapping, Optional, Tuple

from loguru import logger

from ..contracts.params import GraphMergeParams
from ..contracts.segments import SegmentCollection
from .segmentation_base import SpectralSegmentation


def edge_weight(distance: float) -> float:
    return 1.0 / (1.0 + distance)


class GraphBasedMergeSegmentation(SpectralSegmentation[GraphMergeParams]):
    method = "graph_merge"
    params_type = GraphMergeParams

    def __init__(
        self,
        raster: Any,
        params: "Mapping[str, Any] | GraphMergeParams | None" = None,
        *,
        collection: Optional[SegmentCollection] = None,
    ):
        super().__init__(raster, params, collection=collection)
        self._spectral = self._distance(self.params.spectral_distance)

    def build_graph(self) -> List[Tuple[float, Tuple[int, int], Tuple[int, int]]]:
        """
        Aristas (peso, celda_a, celda_b) entre segmentos vecinos, ya ordenadas.
        Cada segmento se representa por su primera celda (fila-mayor) para
        poder resolver su dueño tras merges previos.
        """
        col = self.collection
        edges = []
        for a, b in col.adjacent_pairs():
            w = edge_weight(self._spectral.segments(a, b))
            edges.append((w, a.id, b.id, col.representative(a), col.representative(b)))
        # desc. por peso; empates por par de ids ascendente
        edges.sort(key=lambda e: (-e[0], e[1], e[2]))
        return [(w, ca, cb) for w, _, _, ca, cb in edges]

    def compute_result(self) -> None:
        col = self.collection
        threshold = self.params.segment_merge_threshold
        edges = self.build_graph()
        logger.debug(f"graph_merge: {len(edges)} aristas")
        self.rounds = 1
        for _, (ra, ca), (rb, cb) in edges:
            a = col.get_segment(ra, ca)
            b = col.get_segment(rb, cb)
            if a == b:
                continue
            if self._spectral.segments(a, b) < threshold:
                self._merge(a, b)
        self.converged = True


__all__ = ["GraphBasedMergeSegmentation", "edge_weight"]
