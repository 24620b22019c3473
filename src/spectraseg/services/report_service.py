# src/spectraseg/services/report_service.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from ..contracts.segments import SegmentCollection

@dataclass
class SegmentReportService:
    """
    Tabla de estadísticos por segmento (puro dominio, sin I/O).
    Una fila por segmento vivo, en el mismo orden que `collection.labels()`.
    """
    band_names: Optional[Sequence[str]] = None

    def _names(self, bands: int) -> list[str]:
        if self.band_names is None:
            return [f"b{i + 1}" for i in range(bands)]
        if len(self.band_names) != bands:
            raise ValueError(f"band_names tiene {len(self.band_names)} nombres para {bands} bandas")
        return list(self.band_names)

    def table(self, collection: SegmentCollection) -> pd.DataFrame:
        names = self._names(collection.number_of_bands)
        segments = collection.segments()
        counts = np.array([s.count for s in segments], dtype=np.int64)
        means = np.array([s.mean for s in segments]).reshape(len(segments), -1)
        variances = np.array([s.variance for s in segments]).reshape(len(segments), -1)

        df = pd.DataFrame({"label": np.arange(len(segments), dtype=np.int32), "count": counts})
        for i, n in enumerate(names):
            df[f"mean_{n}"] = means[:, i]
        for i, n in enumerate(names):
            df[f"var_{n}"] = variances[:, i]
        df["percent"] = df["count"] / float(collection.number_of_cells) * 100.0
        return df

    def summary(self, collection: SegmentCollection) -> dict:
        df = self.table(collection)
        return {
            "segments": int(len(df)),
            "cells": int(df["count"].sum()),
            "min_size": int(df["count"].min()),
            "max_size": int(df["count"].max()),
            "mean_size": float(df["count"].mean()),
        }


__all__ = ["SegmentReportService"]
