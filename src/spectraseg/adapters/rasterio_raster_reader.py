# src/spectraseg/adapters/rasterio_raster_reader.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import os
import numpy as np
import rasterio
from rasterio.transform import Affine

from ..contracts.raster import SpectralRaster, RasterProfile, GeoTransform, DTypeStr
from ..contracts.errors import IncompatibleRaster
from ..ports.raster_read import RasterReaderPort

_DTYPE_MAP = {
    np.dtype("uint8"): "uint8",
    np.dtype("uint16"): "uint16",
    np.dtype("int16"): "int16",
    np.dtype("uint32"): "uint32",
    np.dtype("int32"): "int32",
    np.dtype("float32"): "float32",
    np.dtype("float64"): "float64",
}


def _np_to_dtype_str(dt: np.dtype) -> DTypeStr:
    try:
        return _DTYPE_MAP[np.dtype(dt)]  # type: ignore[return-value]
    except KeyError as e:
        raise IncompatibleRaster(f"dtype {dt} no soportado") from e


def _affine_to_gt(a: Affine) -> GeoTransform:
    return (a.c, a.a, a.b, a.f, a.d, a.e)


def _crs_to_str(crs_obj) -> str | None:
    """CRS de rasterio → texto opaco ('EPSG:xxxx' si se puede, si no WKT)."""
    if not crs_obj:
        return None
    epsg = crs_obj.to_epsg()
    if epsg is not None:
        return f"EPSG:{int(epsg)}"
    return crs_obj.to_wkt() or None


@dataclass(frozen=True)
class RasterioRasterReader(RasterReaderPort):
    """Lector de raster multibanda vía rasterio.

    Regla: `read()` devuelve un **SpectralRaster** con las bandas pedidas
    (1-based como en rasterio) o todas si `bands` es None.
    """

    def read(self, uri: str, bands: Tuple[int, ...] | None = None) -> SpectralRaster:
        with rasterio.open(uri) as ds:
            idx = list(bands) if bands else list(range(1, ds.count + 1))
            arr = ds.read(idx)
            profile = RasterProfile(
                count=len(idx),
                dtype=_np_to_dtype_str(arr.dtype),
                width=ds.width,
                height=ds.height,
                transform=_affine_to_gt(ds.transform),
                crs=_crs_to_str(ds.crs),
                nodata=float(ds.nodata) if ds.nodata is not None else None,
            )
            return SpectralRaster(arr, profile)

    def profile(self, uri: str) -> RasterProfile:
        with rasterio.open(uri) as ds:
            return RasterProfile(
                count=ds.count,
                dtype=_np_to_dtype_str(np.dtype(ds.dtypes[0])),
                width=ds.width,
                height=ds.height,
                transform=_affine_to_gt(ds.transform),
                crs=_crs_to_str(ds.crs),
                nodata=float(ds.nodata) if ds.nodata is not None else None,
            )

    def exists(self, uri: str) -> bool:
        return os.path.exists(uri)


__all__ = ["RasterioRasterReader"]
