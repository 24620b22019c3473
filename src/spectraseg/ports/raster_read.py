# src/spectraseg/ports/raster_read.py
from __future__ import annotations

from typing import Protocol, runtime_checkable, Tuple
from ..contracts.raster import SpectralRaster, RasterProfile

URI = str

@runtime_checkable
class RasterReaderPort(Protocol):
    """
    Lector de raster genérico (GeoTIFF/COG, etc.).
    Reglas: devuelve SIEMPRE un SpectralRaster con todas las bandas pedidas.
    """
    def read(self, uri: URI, bands: Tuple[int, ...] | None = None) -> SpectralRaster: ...
    def profile(self, uri: URI) -> RasterProfile: ...
    def exists(self, uri: URI) -> bool: ...

__all__ = ["RasterReaderPort", "URI"]
