# src/spectraseg/contracts/segments.py
from __future__ import annotations

"""
Partición del raster en segmentos.

Arena de segmentos direccionados por id entero estable + mapa celda→id
(array indexado por la coordenada aplanada r*cols+c). Conteo, sumas y
sumas de cuadrados viven en arrays numpy indexados por id (crecen al
crear ids nuevos en split). Los segmentos de una sola celda no guardan
lista de miembros: su celda es `_first[id]`. El merge reescribe las
entradas del mapa y retira el id absorbido; los ids nunca se reutilizan,
así un handle viejo queda detectable con `contains()`.

Invariantes (en todo momento):
  A) cada celda pertenece exactamente a un segmento vivo,
  B) ningún par de segmentos vivos comparte celdas,
  C) tras merge(a, b) las celdas de b son de a y b ya no se resuelve.
"""

from array import array
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .errors import IncompatibleRaster, InvalidSegment, OutOfRange, SegmentationError
from .raster import raster_cells

_GROWTH = 1.5


# ----------------------
# Estadísticos agregados
# ----------------------

@dataclass(frozen=True)
class SegmentStats:
    """Conteo + suma y suma de cuadrados por banda (re-suma exacta en merge)."""
    count: int
    sum: np.ndarray
    sum_sq: np.ndarray

    @staticmethod
    def of_vector(v: np.ndarray) -> "SegmentStats":
        v = np.asarray(v, dtype=np.float64)
        return SegmentStats(1, v.copy(), v * v)

    @property
    def mean(self) -> np.ndarray:
        return self.sum / self.count

    @property
    def variance(self) -> np.ndarray:
        m = self.mean
        return np.maximum(self.sum_sq / self.count - m * m, 0.0)

    @property
    def std(self) -> np.ndarray:
        return np.sqrt(self.variance)

    def merged(self, other: "SegmentStats") -> "SegmentStats":
        """Estadísticos de la unión hipotética (no muta nada)."""
        return SegmentStats(self.count + other.count, self.sum + other.sum, self.sum_sq + other.sum_sq)


class Segment:
    """
    Handle liviano a un segmento de una colección.
    Sólo es válido mientras `collection.contains(handle)`.
    """
    __slots__ = ("collection", "id")

    def __init__(self, collection: "SegmentCollection", segment_id: int):
        self.collection = collection
        self.id = segment_id

    @property
    def stats(self) -> SegmentStats:
        return self.collection._stats_of(self)

    @property
    def count(self) -> int:
        return self.collection._size_of(self)

    @property
    def mean(self) -> np.ndarray:
        return self.stats.mean

    @property
    def variance(self) -> np.ndarray:
        return self.stats.variance

    def cells(self) -> List[Tuple[int, int]]:
        return self.collection.cells(self)

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, Segment)
                and other.collection is self.collection and other.id == self.id)

    def __hash__(self) -> int:
        return hash((id(self.collection), self.id))

    def __repr__(self) -> str:
        return f"Segment(id={self.id})"


def _as_members(cells: np.ndarray) -> array:
    out = array("q")
    out.frombytes(np.ascontiguousarray(cells, dtype=np.int64).tobytes())
    return out


def _grow(arr: np.ndarray, capacity: int) -> np.ndarray:
    out = np.zeros((capacity,) + arr.shape[1:], dtype=arr.dtype)
    out[: len(arr)] = arr
    return out


# ----------------------
# Colección
# ----------------------

class SegmentCollection:
    """
    Dueña de la partición completa del raster. Único componente que muta
    la pertenencia celda→segmento.
    """

    def __init__(self, raster: Any, labels: Optional[np.ndarray] = None):
        self.number_of_rows: int = int(raster.number_of_rows)
        self.number_of_columns: int = int(raster.number_of_columns)
        self.number_of_bands: int = int(raster.number_of_bands)
        self._values = raster_cells(raster)  # (N, bands) float64
        self._values.setflags(write=False)
        n = self.number_of_rows * self.number_of_columns

        # mapa celda→id y arena por id (capacidad inicial = número de celdas)
        self._owner = np.empty(n, dtype=np.int64)
        self._first = np.zeros(n, dtype=np.int64)
        self._count = np.zeros(n, dtype=np.int64)
        self._sum = np.zeros((n, self.number_of_bands), dtype=np.float64)
        self._sum_sq = np.zeros((n, self.number_of_bands), dtype=np.float64)
        self._alive = np.zeros(n, dtype=bool)
        self._members: Dict[int, array] = {}  # sólo segmentos de más de una celda
        self._next_id = 0
        self._live = 0

        if labels is None:
            cells = np.arange(n, dtype=np.int64)
            self._owner[:] = cells
            self._first[:] = cells
            self._count[:] = 1
            self._sum[:] = self._values
            self._sum_sq[:] = self._values * self._values
            self._alive[:] = True
            self._next_id = self._live = n
        else:
            lab = np.asarray(labels)
            if lab.shape != (self.number_of_rows, self.number_of_columns):
                raise IncompatibleRaster(
                    f"labels {lab.shape} no coincide con el raster "
                    f"{(self.number_of_rows, self.number_of_columns)}"
                )
            flat = lab.reshape(-1)
            # un segmento por etiqueta distinta, en orden de primera aparición
            _, first, inverse, counts = np.unique(
                flat, return_index=True, return_inverse=True, return_counts=True
            )
            order = np.argsort(inverse.reshape(-1), kind="stable")
            groups = np.split(order, np.cumsum(counts)[:-1])
            for g in np.argsort(first, kind="stable"):
                self._new_segment(groups[g])

    @classmethod
    def from_labels(cls, raster: Any, labels: np.ndarray) -> "SegmentCollection":
        """Partición preexistente: un segmento por etiqueta distinta."""
        return cls(raster, labels=labels)

    # --------- consultas ---------
    @property
    def number_of_cells(self) -> int:
        return self.number_of_rows * self.number_of_columns

    @property
    def values(self) -> np.ndarray:
        """Matriz (rows*cols, bands) de solo lectura, orden fila-mayor."""
        return self._values

    def count(self) -> int:
        return self._live

    def __len__(self) -> int:
        return self.count()

    def contains(self, segment: Segment) -> bool:
        return (isinstance(segment, Segment)
                and segment.collection is self
                and 0 <= segment.id < self._next_id
                and bool(self._alive[segment.id]))

    def __contains__(self, segment: object) -> bool:
        return self.contains(segment)  # type: ignore[arg-type]

    def segments(self) -> List[Segment]:
        """Snapshot materializado de los segmentos vivos (orden de creación)."""
        return [Segment(self, int(sid)) for sid in self._live_ids()]

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments())

    def get_segment(self, row: int, col: int) -> Segment:
        return Segment(self, int(self._owner[self._flat(row, col)]))

    def cell_values(self, row: int, col: int) -> np.ndarray:
        return self._values[self._flat(row, col)]

    def cells(self, segment: Segment) -> List[Tuple[int, int]]:
        self._require(segment)
        cols = self.number_of_columns
        return [divmod(int(c), cols) for c in np.sort(self._member_cells(segment.id))]

    def representative(self, segment: Segment) -> Tuple[int, int]:
        """Una celda (fila, columna) del segmento, sin recorrer sus miembros."""
        self._require(segment)
        return divmod(int(self._first[segment.id]), self.number_of_columns)

    def neighbors(self, segment: Segment) -> List[Segment]:
        """Segmentos vivos 4-adyacentes, ordenados por id."""
        self._require(segment)
        rows, cols = self.number_of_rows, self.number_of_columns
        r, c = np.divmod(self._member_cells(segment.id), cols)
        found = []
        for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            rr, cc = r + dr, c + dc
            ok = (rr >= 0) & (rr < rows) & (cc >= 0) & (cc < cols)
            found.append(self._owner[rr[ok] * cols + cc[ok]])
        ids = np.unique(np.concatenate(found))
        return [Segment(self, int(sid)) for sid in ids[ids != segment.id]]

    def adjacent_pairs(self) -> List[Tuple[Segment, Segment]]:
        """Pares no ordenados (id menor primero) de segmentos vivos adyacentes."""
        grid = self._owner.reshape(self.number_of_rows, self.number_of_columns)
        a = np.concatenate([grid[:, :-1].ravel(), grid[:-1, :].ravel()])
        b = np.concatenate([grid[:, 1:].ravel(), grid[1:, :].ravel()])
        diff = a != b
        if not diff.any():
            return []
        lo = np.minimum(a[diff], b[diff])
        hi = np.maximum(a[diff], b[diff])
        pairs = np.unique(np.stack([lo, hi], axis=1), axis=0)
        return [(Segment(self, int(x)), Segment(self, int(y))) for x, y in pairs]

    def labels(self) -> np.ndarray:
        """Etiquetas densas 0..count-1 (orden de iteración), forma (rows, cols)."""
        lut = np.full(self._next_id, -1, dtype=np.int32)
        ids = self._live_ids()
        lut[ids] = np.arange(ids.size, dtype=np.int32)
        return lut[self._owner].reshape(self.number_of_rows, self.number_of_columns)

    # --------- mutaciones ---------
    def merge_segments(self, target: Segment, other: Segment) -> None:
        """Absorbe pertenencia y estadísticos de `other` en `target`."""
        self._require(target)
        self._require(other)
        if target.id == other.id:
            return
        tid, oid = target.id, other.id
        members = self._members.get(tid)
        if members is None:
            members = self._members[tid] = array("q", [int(self._first[tid])])
        moved = self._members.pop(oid, None)
        if moved is None:
            cell = int(self._first[oid])
            self._owner[cell] = tid
            members.append(cell)
        else:
            self._owner[np.frombuffer(moved, dtype=np.int64)] = tid
            members.extend(moved)
        self._count[tid] += self._count[oid]
        self._sum[tid] += self._sum[oid]
        self._sum_sq[tid] += self._sum_sq[oid]
        self._retire(np.array([oid]))

    def merge_cell(self, target: Segment, row: int, col: int) -> None:
        """Absorbe la celda (row, col) junto con el segmento que la posee."""
        self._require(target)
        owner = self.get_segment(row, col)
        if owner.id != target.id:
            self.merge_segments(target, owner)

    def merge_by_key(self, keys: np.ndarray) -> int:
        """
        Une en un solo segmento todas las celdas que comparten clave.

        `keys` trae una clave por celda (orden fila-mayor o forma (rows, cols)).
        El destino de cada clave es el segmento dueño de su primera celda, como
        si se hiciera `merge_cell(destino, r, c)` celda por celda. Cada segmento
        vivo debe caer entero en una sola clave. Devuelve cuántos segmentos
        fueron absorbidos.
        """
        key = np.asarray(keys).reshape(-1)
        if key.shape[0] != self.number_of_cells:
            raise IncompatibleRaster(f"{key.shape[0]} claves para {self.number_of_cells} celdas")
        _, first, inv = np.unique(key, return_index=True, return_inverse=True)
        inv = inv.reshape(-1)
        owner = self._owner
        seg_key = np.empty(self._next_id, dtype=inv.dtype)
        seg_key[owner] = inv
        if np.any(seg_key[owner] != inv):
            raise SegmentationError("un segmento abarca más de una clave")

        targets = owner[first]
        new_owner = targets[inv]
        absorbed = np.unique(owner[owner != new_owner])
        if absorbed.size == 0:
            return 0

        groups = len(first)
        counts = np.bincount(inv, minlength=groups)
        sums = np.empty((groups, self.number_of_bands), dtype=np.float64)
        sums_sq = np.empty_like(sums)
        for b in range(self.number_of_bands):
            v = self._values[:, b]
            sums[:, b] = np.bincount(inv, weights=v, minlength=groups)
            sums_sq[:, b] = np.bincount(inv, weights=v * v, minlength=groups)

        for sid in absorbed.tolist():
            self._members.pop(sid, None)
        self._retire(absorbed)
        self._owner[:] = new_owner
        self._count[targets] = counts
        self._sum[targets] = sums
        self._sum_sq[targets] = sums_sq
        order = np.argsort(inv, kind="stable")
        for tid, cells in zip(targets.tolist(), np.split(order, np.cumsum(counts)[:-1])):
            if cells.size > 1:
                self._members[tid] = _as_members(cells)
        return int(absorbed.size)

    def split_segment(self, segment: Segment) -> List[Segment]:
        """Reemplaza el segmento por un segmento nuevo por celda miembro."""
        self._require(segment)
        sid = segment.id
        cells = np.sort(self._member_cells(sid))
        self._members.pop(sid, None)
        self._retire(np.array([sid]))

        k = cells.size
        self._reserve(k)
        ids = np.arange(self._next_id, self._next_id + k, dtype=np.int64)
        self._next_id += k
        vals = self._values[cells]
        self._owner[cells] = ids
        self._first[ids] = cells
        self._count[ids] = 1
        self._sum[ids] = vals
        self._sum_sq[ids] = vals * vals
        self._alive[ids] = True
        self._live += k
        return [Segment(self, int(i)) for i in ids]

    # --------- verificación ---------
    def check_integrity(self) -> None:
        """Verifica invariantes A/B/C; lanza SegmentationError si alguno falla."""
        top = self._next_id
        ids = self._live_ids()
        if ids.size != self._live:
            raise SegmentationError(f"conteo de vivos {self._live} != {ids.size}")
        if np.any(self._owner < 0) or np.any(self._owner >= top) or not np.all(self._alive[self._owner]):
            raise SegmentationError("celda asignada a un segmento no vivo")
        owned = np.bincount(self._owner, minlength=top)
        if np.any(owned != self._count[:top]):
            raise SegmentationError("conteos no coinciden con el mapa celda→segmento")
        for sid, members in self._members.items():
            cells = np.frombuffer(members, dtype=np.int64)
            if not self._alive[sid] or cells.size != self._count[sid] or np.any(self._owner[cells] != sid):
                raise SegmentationError(f"segmento {sid}: miembros inconsistentes")
        singles = ids[~np.isin(ids, np.fromiter(self._members, dtype=np.int64, count=len(self._members)))]
        if np.any(self._count[singles] != 1) or np.any(self._owner[self._first[singles]] != singles):
            raise SegmentationError("segmento unitario inconsistente")

    # --------- internos ---------
    def _live_ids(self) -> np.ndarray:
        return np.flatnonzero(self._alive[: self._next_id])

    def _member_cells(self, sid: int) -> np.ndarray:
        members = self._members.get(sid)
        if members is None:
            return self._first[sid : sid + 1].copy()
        return np.frombuffer(members, dtype=np.int64).copy()

    def _reserve(self, extra: int) -> None:
        need = self._next_id + extra
        capacity = len(self._count)
        if need <= capacity:
            return
        capacity = max(need, int(capacity * _GROWTH) + 1)
        self._first = _grow(self._first, capacity)
        self._count = _grow(self._count, capacity)
        self._sum = _grow(self._sum, capacity)
        self._sum_sq = _grow(self._sum_sq, capacity)
        self._alive = _grow(self._alive, capacity)

    def _retire(self, ids: np.ndarray) -> None:
        self._alive[ids] = False
        self._count[ids] = 0
        self._live -= int(ids.size)

    def _new_segment(self, cells: np.ndarray) -> Segment:
        cells = np.asarray(cells, dtype=np.int64)
        self._reserve(1)
        sid = self._next_id
        self._next_id += 1
        vals = self._values[cells]
        self._owner[cells] = sid
        self._first[sid] = cells[0]
        self._count[sid] = cells.size
        self._sum[sid] = vals.sum(axis=0)
        self._sum_sq[sid] = (vals * vals).sum(axis=0)
        self._alive[sid] = True
        self._live += 1
        if cells.size > 1:
            self._members[sid] = _as_members(cells)
        return Segment(self, sid)

    def _size_of(self, segment: Segment) -> int:
        self._require(segment)
        return int(self._count[segment.id])

    def _stats_of(self, segment: Segment) -> SegmentStats:
        # copias: las filas de la arena se mutan in-place en merges posteriores
        self._require(segment)
        sid = segment.id
        return SegmentStats(int(self._count[sid]), self._sum[sid].copy(), self._sum_sq[sid].copy())

    def _require(self, segment: Segment) -> None:
        if not self.contains(segment):
            raise InvalidSegment(f"{segment!r} no está vivo en esta colección")

    def _flat(self, row: int, col: int) -> int:
        if not (0 <= row < self.number_of_rows and 0 <= col < self.number_of_columns):
            raise OutOfRange(
                f"celda ({row}, {col}) fuera de {self.number_of_rows}x{self.number_of_columns}"
            )
        return row * self.number_of_columns + col


__all__ = ["SegmentStats", "Segment", "SegmentCollection"]
