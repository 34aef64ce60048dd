from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


@dataclass
class Settings:
    storage_root: Path
    width_in: float
    height_in: float
    dpi: int
    persist_runs: bool
    log_level: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    root = Path(os.getenv("GRAMVIZ_STORAGE_ROOT", "runs")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return Settings(
        storage_root=root,
        width_in=float(os.getenv("GRAMVIZ_WIDTH_IN", "7.0")),
        height_in=float(os.getenv("GRAMVIZ_HEIGHT_IN", "5.0")),
        dpi=int(os.getenv("GRAMVIZ_DPI", "100")),
        persist_runs=os.getenv("GRAMVIZ_PERSIST_RUNS", "1") != "0",
        log_level=os.getenv("GRAMVIZ_LOG_LEVEL", "INFO").upper(),
    )
