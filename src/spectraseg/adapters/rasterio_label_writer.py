# src/spectraseg/adapters/rasterio_label_writer.py
from __future__ import annotations

import os
from typing import Optional

import numpy as np
import rasterio
from rasterio.transform import Affine

from ..contracts.raster import RasterProfile
from ..contracts.segments import SegmentCollection
from ..ports.raster_write import LabelWriterPort


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(path)
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


class RasterioLabelWriter(LabelWriterPort):
    """Escribe la partición como GeoTIFF int32 de una banda (id denso por segmento)."""

    def write_labels(self, uri: str, collection: SegmentCollection, profile: RasterProfile, *, compress: Optional[str] = None) -> str:
        _ensure_dir(uri)
        labels = collection.labels().astype(np.int32, copy=False)
        if labels.shape != (profile.height, profile.width):
            raise ValueError(f"labels {labels.shape} no coincide con el perfil {(profile.height, profile.width)}")
        compress = (compress or "DEFLATE").upper()
        out = {
            "driver": "GTiff",
            "height": profile.height,
            "width": profile.width,
            "count": 1,
            "dtype": "int32",
            "compress": compress,
        }
        if profile.transform is not None:
            x0, px, rx, y0, ry, py = profile.transform
            out["transform"] = Affine(px, rx, x0, ry, py, y0)
        if profile.crs:
            out["crs"] = profile.crs
        with rasterio.open(uri, "w", **out) as dst:
            dst.write(labels, 1)
        return uri

    def mkdirs(self, uri: str) -> None:
        _ensure_dir(uri)


__all__ = ["RasterioLabelWriter"]
