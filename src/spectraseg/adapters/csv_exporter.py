## `src/spectraseg/adapters/csv_exporter.py`

from __future__ import annotations

import os

import pandas as pd

from ..ports.exporters import TableExporterPort

class CSVExporter(TableExporterPort):
    """Exporter mínimo: escribe la tabla de segmentos como CSV (sin índice)."""

    def __init__(self, float_format: str | None = "%.6f"):
        self.float_format = float_format

    def export(self, table: pd.DataFrame, out_uri: str) -> str:
        os.makedirs(os.path.dirname(out_uri) or ".", exist_ok=True)
        table.to_csv(out_uri, index=False, float_format=self.float_format, encoding="utf-8")
        return out_uri
