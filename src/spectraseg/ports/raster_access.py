from __future__ import annotations

from typing import Protocol, runtime_checkable

@runtime_checkable
class RasterAccessorPort(Protocol):
    """
    Acceso de solo lectura a un raster multibanda.
    Reglas: extensiones >= 1; índices 0-based; coordenadas fuera -> OutOfRange.
    Mínimo exigido: extensiones + get_value. Un accesor puede ofrecer además
    get_values(row, col) o as_array() (bands, rows, cols) para lecturas rápidas.
    """
    @property
    def number_of_rows(self) -> int: ...
    @property
    def number_of_columns(self) -> int: ...
    @property
    def number_of_bands(self) -> int: ...
    def get_value(self, row: int, col: int, band: int) -> float: ...

__all__ = ["RasterAccessorPort"]
