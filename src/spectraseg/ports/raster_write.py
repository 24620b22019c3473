# src/spectraseg/ports/raster_write.py
from __future__ import annotations

from typing import Protocol, runtime_checkable, Optional
from ..contracts.raster import RasterProfile
from ..contracts.segments import SegmentCollection

URI = str

@runtime_checkable
class LabelWriterPort(Protocol):
    """
    Escritor del resultado: raster de etiquetas (un id por segmento).
    """
    def write_labels(self, uri: URI, collection: SegmentCollection, profile: RasterProfile, *, compress: Optional[str] = None) -> URI: ...
    def mkdirs(self, uri: URI) -> None: ...

__all__ = ["LabelWriterPort", "URI"]
