# src/spectraseg/ports/exporters.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

import pandas as pd

URI = str

@runtime_checkable
class TableExporterPort(Protocol):
    """
    Exporta una tabla (estadísticos por segmento) a un destino.
    Adapter típico: CSV.
    """
    def export(self, table: pd.DataFrame, out_uri: URI) -> URI: ...

__all__ = ["TableExporterPort", "URI"]
