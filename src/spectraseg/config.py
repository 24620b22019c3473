# src/spectraseg/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Mapping

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts.params import (
    BestMergeParams,
    GraphMergeParams,
    IsodataParams,
    SequentialCouplingParams,
)

MethodName = Literal["isodata", "best_merge", "graph_merge", "sequential_coupling"]

# Alias de CLI -> nombre canónico
METHOD_ALIASES: Mapping[str, MethodName] = MappingProxyType({
    "isodata": "isodata",
    "best-merge": "best_merge",
    "best_merge": "best_merge",
    "graph-merge": "graph_merge",
    "graph_merge": "graph_merge",
    "sequential": "sequential_coupling",
    "sequential-coupling": "sequential_coupling",
    "sequential_coupling": "sequential_coupling",
})

class Settings(BaseSettings):
    """
    Config unificada del proyecto. No toca disco.
    Debe ser construida y provista por composition/di.py (CLI).
    Los servicios reciben SOLO los bundles de parámetros, nunca Settings.
    """
    model_config = SettingsConfigDict(
        frozen=True,
        env_file=".env",
        env_prefix="SEG_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    # --- básicos ---
    project_root: Path = Path(".")
    output_dir: Path = Path("work/segments")
    log_level: str = "INFO"
    default_method: MethodName = "isodata"

    # --- parámetros por defecto de cada algoritmo ---
    isodata: IsodataParams = Field(default_factory=IsodataParams)
    best_merge: BestMergeParams = Field(default_factory=BestMergeParams)
    graph_merge: GraphMergeParams = Field(default_factory=GraphMergeParams)
    sequential_coupling: SequentialCouplingParams = Field(default_factory=SequentialCouplingParams)

    # ----------------------------
    # Normalizadores / validadores
    # ----------------------------
    @field_validator("project_root", mode="before")
    @classmethod
    def _abs_root(cls, v: Path | str) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("output_dir", mode="after")
    @classmethod
    def _rel_to_root(cls, p: Path, info) -> Path:
        root: Path = info.data.get("project_root") or Path(".").resolve()
        return p if p.is_absolute() else (root / p)

    @field_validator("log_level", mode="before")
    @classmethod
    def _level(cls, v: str) -> str:
        v2 = str(v).strip().upper()
        if v2 not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level inválido: {v}")
        return v2

    @field_validator("default_method", mode="before")
    @classmethod
    def _method(cls, v: str) -> str:
        return METHOD_ALIASES.get(str(v).strip().lower(), v)  # type: ignore[return-value]

    # ----------------------------
    # Helpers puros (sin side-effects)
    # ----------------------------
    def params_for(self, method: str):
        name = resolve_method(method)
        return getattr(self, name)

    def out_path(self, stem: str, suffix: str = ".tif") -> Path:
        """Resuelve ruta de salida bajo output_dir (no crea carpetas)."""
        return (self.output_dir / f"{stem}{suffix}").resolve()


def resolve_method(name: str) -> MethodName:
    try:
        return METHOD_ALIASES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Método desconocido: {name}. Opciones: {sorted(set(METHOD_ALIASES.values()))}") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Instancia cacheada. Úsala SOLO desde composition/di.py o CLI.
    Prohibido usarla en services/ (dominio). Para tests, recuerda limpiar:
        get_settings.cache_clear()
    """
    return Settings()
