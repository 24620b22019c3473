# src/spectraseg/services/isodata_service.py
from __future__ import annotations

"""
Clustering ISODATA sobre la partición de segmentos.

Fases (secuenciales, sólo la 4 itera):
  1) create_initial_clusters: media/desv. global por banda → K centros
     gaussianos (K auto-dimensionado si el configurado es < 10)
  2) assign_clusters: cada celda (o cada segmento provisto) al centro más
     cercano; un segmento de salida por índice de centro
  3) eliminate_clusters: descarta centros; clusters pequeños se parten en celdas
  4) merge_clusters: rondas de merges por umbral hasta una ronda sin merges
"""

import math
from typing import Any, List, Mapping, Optional

import numpy as np
from loguru import logger

from ..contracts.errors import IncompatibleRaster, InvalidConfiguration
from ..contracts.params import IsodataParams
from ..contracts.segments import Segment, SegmentCollection
from .segmentation_base import SpectralSegmentation

AUTO_SIZE_FLOOR = 10


def working_cluster_count(configured: int, rows: int, cols: int) -> int:
    """K efectivo: < 10 → clamp(round(sqrt(rows*cols)), 10, rows*cols)."""
    if configured >= AUTO_SIZE_FLOOR:
        return configured
    cells = rows * cols
    return min(max(AUTO_SIZE_FLOOR, int(round(math.sqrt(cells)))), cells)


class IsodataClustering(SpectralSegmentation[IsodataParams]):
    method = "isodata"
    params_type = IsodataParams

    def __init__(
        self,
        raster: Any,
        params: "Mapping[str, Any] | IsodataParams | None" = None,
        *,
        collection: Optional[SegmentCollection] = None,
        initial_centers: Optional[np.ndarray] = None,
    ):
        super().__init__(raster, params, collection=collection)
        p = self.params
        self._spectral = self._distance(p.spectral_distance)
        self._cluster_distance = self._distance(p.cluster_distance)
        self._initial_centers: Optional[np.ndarray] = None
        if initial_centers is not None:
            c = np.asarray(initial_centers, dtype=np.float64)
            if c.ndim != 2 or c.shape[0] < 1:
                raise InvalidConfiguration(f"initial_centers debe ser (K, bands), llegó {c.shape}")
            if c.shape[1] != raster.number_of_bands:
                raise IncompatibleRaster(
                    f"initial_centers tiene {c.shape[1]} bandas, el raster {raster.number_of_bands}"
                )
            self._initial_centers = c
            self.number_of_cluster_centers = c.shape[0]
        else:
            self.number_of_cluster_centers = working_cluster_count(
                p.number_of_cluster_centers, raster.number_of_rows, raster.number_of_columns
            )
        self.cluster_centers: Optional[np.ndarray] = None

    # --------- pipeline ---------
    def compute_result(self) -> None:
        self.create_initial_clusters()
        self.assign_clusters()
        self.eliminate_clusters()
        self.merge_clusters()

    # --------- fase 1 ---------
    def create_initial_clusters(self) -> np.ndarray:
        if self._initial_centers is not None:
            self.cluster_centers = self._initial_centers.copy()
            logger.info(f"isodata: {len(self.cluster_centers)} centros provistos")
            return self.cluster_centers

        values = self.collection.values  # (N, bands), misma lectura que la colección
        mean = values.mean(axis=0)
        std = values.std(axis=0)  # desviación poblacional (ddof=0)
        flat = np.flatnonzero(std == 0)
        if flat.size:
            logger.warning(f"isodata: bandas sin varianza {flat.tolist()}; centros = media global")

        rng = np.random.default_rng(self.params.seed)
        # centro-mayor: cada banda de cada centro se muestrea independiente
        self.cluster_centers = rng.normal(
            loc=mean, scale=std, size=(self.number_of_cluster_centers, values.shape[1])
        )
        self.cluster_centers[:, flat] = mean[flat]
        logger.info(
            f"isodata: {self.number_of_cluster_centers} centros iniciales "
            f"(configurado={self.params.number_of_cluster_centers}, seed={self.params.seed})"
        )
        return self.cluster_centers

    # --------- fase 2 ---------
    def assign_clusters(self) -> None:
        if self.cluster_centers is None:
            raise RuntimeError("assign_clusters requiere create_initial_clusters()")
        if self.collection.count() < self.collection.number_of_cells:
            self._merge_segments_to_clusters()
        else:
            self._merge_values_to_clusters()
        logger.info(f"isodata: asignación → {self.collection.count()} segmentos")

    def _merge_values_to_clusters(self) -> None:
        # cada cluster queda en el segmento de su primera celda (orden fila-mayor)
        col = self.collection
        nearest = self._spectral.nearest(col.values, self.cluster_centers)
        self.merges += col.merge_by_key(nearest)

    def _merge_segments_to_clusters(self) -> None:
        col = self.collection
        clusters: List[Optional[Segment]] = [None] * len(self.cluster_centers)
        for segment in col.segments():
            if not col.contains(segment):
                continue
            best_k, best_d = 0, math.inf
            for k, center in enumerate(self.cluster_centers):
                dist = self._spectral.segment_to_vector(segment, center)
                if dist < best_d:
                    best_k, best_d = k, dist
            if clusters[best_k] is None:
                clusters[best_k] = segment
            else:
                self._merge(clusters[best_k], segment)

    # --------- fase 3 ---------
    def eliminate_clusters(self) -> None:
        self.cluster_centers = None
        col = self.collection
        threshold = self.params.cluster_size_threshold
        for segment in col.segments():
            if col.contains(segment) and segment.count < threshold:
                col.split_segment(segment)
                self.splits += 1
        logger.info(
            f"isodata: eliminación (umbral={threshold}) → {self.splits} clusters partidos, "
            f"{col.count()} segmentos"
        )

    # --------- fase 4 ---------
    def merge_clusters(self) -> None:
        col = self.collection
        threshold = self.params.cluster_distance_threshold
        merged = True
        while merged:
            merged = False
            self.rounds += 1
            segments = col.segments()
            before = len(segments)
            first = 0
            while first < len(segments) - 1:
                second = len(segments) - 1
                while second > first:
                    dist = self._cluster_distance.segments(segments[first], segments[second])
                    if abs(dist) < threshold:
                        self._merge(segments[first], segments[second])
                        del segments[second]
                        merged = True
                    second -= 1
                first += 1
            logger.debug(f"isodata: ronda {self.rounds}: {before} → {col.count()} segmentos")
        self.converged = True


__all__ = ["IsodataClustering", "working_cluster_count", "AUTO_SIZE_FLOOR"]
