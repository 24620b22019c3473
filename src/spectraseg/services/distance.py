# src/spectraseg/services/distance.py
from __future__ import annotations

"""
Distancias espectrales (sin estado).

La familia se resuelve UNA vez al construir `SpectralDistance` (enum → función);
en los bucles calientes no hay despacho por subclase. Los segmentos se comparan
por sus estadísticos agregados, costo O(bands) sin importar su tamaño.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import numpy as np

from ..contracts.errors import IncompatibleRaster
from ..contracts.params import DistanceFamily, DistanceKind, DistanceSpec
from ..contracts.segments import Segment, SegmentStats

_EPS = 1e-12
_CHUNK = 65536

Operand = Union[Segment, SegmentStats, np.ndarray]


# ----------------------
# Kernels por familia (vector de diferencias -> escalar)
# ----------------------

def _euclidean(diff: np.ndarray, w: np.ndarray) -> np.ndarray:
    return np.sqrt(np.sum(diff * diff, axis=-1))

def _manhattan(diff: np.ndarray, w: np.ndarray) -> np.ndarray:
    return np.sum(np.abs(diff), axis=-1)

def _chebyshev(diff: np.ndarray, w: np.ndarray) -> np.ndarray:
    return np.max(np.abs(diff), axis=-1)

def _normalized_euclidean(diff: np.ndarray, w: np.ndarray) -> np.ndarray:
    return np.sqrt(np.sum(w * diff * diff, axis=-1))

_DIFF_KERNELS: dict[DistanceFamily, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    DistanceFamily.EUCLIDEAN: _euclidean,
    DistanceFamily.MANHATTAN: _manhattan,
    DistanceFamily.CHEBYSHEV: _chebyshev,
    DistanceFamily.NORMALIZED_EUCLIDEAN: _normalized_euclidean,
}


def _spectral_angle(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Ángulo (rad) entre vectores; dos ceros -> 0, uno solo cero -> pi/2."""
    na = np.linalg.norm(a, axis=-1)
    nb = np.linalg.norm(b, axis=-1)
    dot = np.sum(a * b, axis=-1)
    denom = na * nb
    cos = np.divide(dot, denom, out=np.ones_like(dot, dtype=np.float64), where=denom > 0)
    ang = np.arccos(np.clip(cos, -1.0, 1.0))
    one_zero = (denom <= 0) & ((na > 0) | (nb > 0))
    return np.where(one_zero, np.pi / 2.0, ang)


# ----------------------
# Servicio
# ----------------------

@dataclass
class SpectralDistance:
    """
    Distancia configurable entre vectores espectrales, segmentos o ambos.
    - simétrica, no negativa, distance(x, x) == 0
    - vectores de largo != number_of_bands -> IncompatibleRaster
    """
    spec: DistanceSpec
    number_of_bands: int
    _weights: np.ndarray = field(init=False, repr=False)
    _kernel: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = field(init=False, repr=False)

    def __post_init__(self):
        if self.number_of_bands < 1:
            raise IncompatibleRaster("number_of_bands debe ser >= 1")
        if self.spec.weights is not None:
            if len(self.spec.weights) != self.number_of_bands:
                raise IncompatibleRaster(
                    f"weights tiene {len(self.spec.weights)} valores para {self.number_of_bands} bandas"
                )
            self._weights = np.asarray(self.spec.weights, dtype=np.float64)
        else:
            self._weights = np.ones(self.number_of_bands, dtype=np.float64)
        # None => ángulo espectral (necesita ambos vectores, no la diferencia)
        self._kernel = _DIFF_KERNELS.get(self.spec.family)

    # ------ API pública ------
    def vectors(self, a, b) -> float:
        return self._compare(self._vector(a), self._vector(b), None)

    def segment_to_vector(self, segment: Union[Segment, SegmentStats], vector) -> float:
        st = self._stats(segment)
        v = self._vector(vector)
        scale = None
        if self.spec.kind is DistanceKind.STATISTICAL:
            scale = np.sqrt(st.variance + _EPS)
        return self._compare(st.mean, v, scale)

    def segments(self, first: Union[Segment, SegmentStats], second: Union[Segment, SegmentStats]) -> float:
        s1, s2 = self._stats(first), self._stats(second)
        scale = None
        if self.spec.kind is DistanceKind.STATISTICAL:
            pooled = (s1.variance * s1.count + s2.variance * s2.count) / (s1.count + s2.count)
            scale = np.sqrt(pooled + _EPS)
        return self._compare(s1.mean, s2.mean, scale)

    def distance(self, a: Operand, b: Operand) -> float:
        """Despacho genérico según el tipo de los operandos."""
        a_seg = isinstance(a, (Segment, SegmentStats))
        b_seg = isinstance(b, (Segment, SegmentStats))
        if a_seg and b_seg:
            return self.segments(a, b)  # type: ignore[arg-type]
        if a_seg:
            return self.segment_to_vector(a, b)  # type: ignore[arg-type]
        if b_seg:
            return self.segment_to_vector(b, a)  # type: ignore[arg-type]
        return self.vectors(a, b)

    __call__ = distance

    def pairwise(self, points: np.ndarray, centers: np.ndarray) -> np.ndarray:
        """
        Matriz (N, K) de distancias punto-centro, vectorizada por bloques.

        Cada punto es una celda suelta, así que `kind` no aplica aquí: con
        varianza cero la escala estadística es la misma en todas las bandas
        y para todos los centros, por lo que el argmin coincide con el de
        `segment_to_vector` sobre segmentos de una celda.
        """
        p, c = self._points_and_centers(points, centers)
        out = np.empty((p.shape[0], c.shape[0]), dtype=np.float64)
        for start in range(0, p.shape[0], _CHUNK):
            block = p[start:start + _CHUNK, np.newaxis, :]
            out[start:start + _CHUNK] = self._compare_many(block, c[np.newaxis, :, :], None)
        return out

    def nearest(self, points: np.ndarray, centers: np.ndarray) -> np.ndarray:
        """Índice del centro más cercano por punto (empate: el primero), sin la matriz (N, K)."""
        p, c = self._points_and_centers(points, centers)
        out = np.empty(p.shape[0], dtype=np.int64)
        step = max(1, _CHUNK // max(1, c.shape[0]))
        for start in range(0, p.shape[0], step):
            block = p[start:start + step, np.newaxis, :]
            d = self._compare_many(block, c[np.newaxis, :, :], None)
            out[start:start + step] = np.argmin(d, axis=1)
        return out

    # ------ internos ------
    def _points_and_centers(self, points, centers):
        p = np.asarray(points, dtype=np.float64)
        c = np.asarray(centers, dtype=np.float64)
        if p.ndim != 2 or p.shape[1] != self.number_of_bands:
            raise IncompatibleRaster(f"points {p.shape} no es (N, {self.number_of_bands})")
        if c.ndim != 2 or c.shape[1] != self.number_of_bands:
            raise IncompatibleRaster(f"centers {c.shape} no es (K, {self.number_of_bands})")
        return p, c

    def _compare(self, a: np.ndarray, b: np.ndarray, scale: Optional[np.ndarray]) -> float:
        if np.array_equal(a, b):
            return 0.0
        return float(self._compare_many(a, b, scale))

    def _compare_many(self, a: np.ndarray, b: np.ndarray, scale: Optional[np.ndarray]) -> np.ndarray:
        if self._kernel is None:
            return _spectral_angle(a, b)
        diff = a - b
        if scale is not None:
            diff = diff / scale
        return self._kernel(diff, self._weights)

    def _vector(self, v) -> np.ndarray:
        arr = np.asarray(v, dtype=np.float64).reshape(-1)
        if arr.shape[0] != self.number_of_bands:
            raise IncompatibleRaster(
                f"vector de {arr.shape[0]} valores, se esperaban {self.number_of_bands} bandas"
            )
        return arr

    def _stats(self, s: Union[Segment, SegmentStats]) -> SegmentStats:
        st = s.stats if isinstance(s, Segment) else s
        if st.sum.shape[0] != self.number_of_bands:
            raise IncompatibleRaster(
                f"segmento con {st.sum.shape[0]} bandas, se esperaban {self.number_of_bands}"
            )
        return st


__all__ = ["SpectralDistance"]
