# src/spectraseg/contracts/errors.py
from __future__ import annotations

"""
Errores de dominio de la segmentación.

Se lanzan de forma síncrona en la llamada que detecta el problema; nunca se
reintentan internamente. Heredan además de la excepción builtin más cercana
para que el código cliente pueda capturarlas sin conocer este módulo.
"""


class SegmentationError(Exception):
    """Base de todos los errores del paquete."""


class InvalidConfiguration(SegmentationError, ValueError):
    """Parámetros negativos/fuera de rango. Se lanza antes de tocar el raster."""


class OutOfRange(SegmentationError, IndexError):
    """Coordenadas (fila, columna, banda) fuera de la extensión del raster."""


class InvalidSegment(SegmentationError, LookupError):
    """La operación apunta a un segmento que ya no está vivo."""


class IncompatibleRaster(SegmentationError, ValueError):
    """Número de bandas (o forma) no coincide con lo esperado."""


__all__ = [
    "SegmentationError",
    "InvalidConfiguration",
    "OutOfRange",
    "InvalidSegment",
    "IncompatibleRaster",
]
