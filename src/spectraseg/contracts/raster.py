# src/spectraseg/contracts/raster.py

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .errors import IncompatibleRaster, OutOfRange

GeoTransform = Tuple[float, float, float, float, float, float]
DTypeStr = Literal["uint8","uint16","int16","uint32","int32","float32","float64"]

# ---------- Formato numérico (fijo para todo el raster) ----------
class RasterFormat(str, Enum):
    INTEGER = "integer"
    FLOATING = "floating"

    @staticmethod
    def from_dtype(dtype: Any) -> "RasterFormat":
        kind = np.dtype(dtype).kind
        if kind in ("i", "u", "b"):
            return RasterFormat.INTEGER
        if kind == "f":
            return RasterFormat.FLOATING
        raise IncompatibleRaster(f"dtype {dtype} no soportado para datos espectrales")

# ---------- Perfil (transform/crs solo se transportan, no se interpretan) ----------
@dataclass(frozen=True)
class RasterProfile:
    count: int
    dtype: DTypeStr
    width: int
    height: int
    transform: Optional[GeoTransform] = None
    crs: Optional[str] = None  # WKT o "EPSG:xxxx", opaco para el núcleo
    nodata: Optional[float] = None

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.count, self.height, self.width)

    def with_count(self, count: int, dtype: DTypeStr | None = None) -> "RasterProfile":
        return RasterProfile(count, dtype or self.dtype, self.width, self.height,
                             self.transform, self.crs, self.nodata)

# ---------- Raster espectral en memoria ----------
@dataclass(frozen=True)
class SpectralRaster:
    """
    Raster multibanda en memoria, datos (bands, rows, cols).
    Implementa RasterAccessorPort. Un array 2D se promueve a una banda.
    """
    data: "npt.NDArray[Any]"  # type: ignore[valid-type]
    profile: RasterProfile

    def __post_init__(self):
        arr = np.asarray(self.data)
        if arr.ndim == 2:
            arr = arr[np.newaxis, ...]
        if arr.ndim != 3:
            raise IncompatibleRaster(f"Se esperaba array 2D o 3D, llegó ndim={arr.ndim}")
        if arr.shape != self.profile.shape:
            raise IncompatibleRaster(
                f"Forma del array {arr.shape} no coincide con el perfil {self.profile.shape}"
            )
        if min(arr.shape) < 1:
            raise IncompatibleRaster("El raster debe tener al menos 1 fila, 1 columna y 1 banda")
        RasterFormat.from_dtype(arr.dtype)
        # Bloquea mutaciones accidentales sobre los datos
        arr = arr.view()
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

    @staticmethod
    def from_array(arr: "npt.ArrayLike", *, transform: Optional[GeoTransform] = None,
                   crs: Optional[str] = None, nodata: Optional[float] = None) -> "SpectralRaster":
        a = np.asarray(arr)
        if a.ndim == 2:
            a = a[np.newaxis, ...]
        if a.ndim != 3:
            raise IncompatibleRaster(f"Se esperaba array 2D o 3D, llegó ndim={a.ndim}")
        count, height, width = a.shape
        profile = RasterProfile(count=count, dtype=str(a.dtype), width=width, height=height,  # type: ignore[arg-type]
                                transform=transform, crs=crs, nodata=nodata)
        return SpectralRaster(a, profile)

    # --- RasterAccessorPort ---
    @property
    def number_of_rows(self) -> int:
        return self.profile.height

    @property
    def number_of_columns(self) -> int:
        return self.profile.width

    @property
    def number_of_bands(self) -> int:
        return self.profile.count

    @property
    def format(self) -> RasterFormat:
        return RasterFormat.from_dtype(self.data.dtype)

    def get_value(self, row: int, col: int, band: int) -> float:
        self._check_cell(row, col)
        if not 0 <= band < self.number_of_bands:
            raise OutOfRange(f"banda {band} fuera de [0, {self.number_of_bands})")
        return self.data[band, row, col].item()

    def get_values(self, row: int, col: int) -> np.ndarray:
        self._check_cell(row, col)
        return self.data[:, row, col]

    def as_array(self) -> np.ndarray:
        return self.data

    def _check_cell(self, row: int, col: int) -> None:
        if not (0 <= row < self.number_of_rows and 0 <= col < self.number_of_columns):
            raise OutOfRange(
                f"celda ({row}, {col}) fuera de {self.number_of_rows}x{self.number_of_columns}"
            )


def raster_cells(raster: Any) -> np.ndarray:
    """
    Matriz (rows*cols, bands) float64 en orden fila-mayor.
    Usa as_array() si el accesor lo ofrece. Si no, recorre las celdas una vez con
    get_values(), o con get_value() banda a banda cuando sólo expone eso.
    """
    rows, cols, bands = raster.number_of_rows, raster.number_of_columns, raster.number_of_bands
    if rows < 1 or cols < 1 or bands < 1:
        raise IncompatibleRaster(f"Extensión inválida: {rows}x{cols}x{bands}")
    as_array = getattr(raster, "as_array", None)
    if callable(as_array):
        arr = np.asarray(as_array(), dtype=np.float64)
        if arr.shape != (bands, rows, cols):
            raise IncompatibleRaster(f"as_array() devolvió {arr.shape}, se esperaba {(bands, rows, cols)}")
        return arr.reshape(bands, rows * cols).T.copy()
    get_values = getattr(raster, "get_values", None)
    out = np.empty((rows * cols, bands), dtype=np.float64)
    for r in range(rows):
        for c in range(cols):
            if callable(get_values):
                v = np.asarray(get_values(r, c), dtype=np.float64)
            else:
                v = np.fromiter((raster.get_value(r, c, b) for b in range(bands)), dtype=np.float64, count=bands)
            if v.shape != (bands,):
                raise IncompatibleRaster(f"get_values({r}, {c}) devolvió {v.shape}, se esperaba ({bands},)")
            out[r * cols + c] = v
    return out


__all__ = [
    "GeoTransform", "DTypeStr", "RasterFormat", "RasterProfile", "SpectralRaster", "raster_cells",
]
