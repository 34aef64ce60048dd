from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


class AuditLogger:
    """Persist render artifacts for later inspection."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def persist(
        self,
        run_inputs: Dict[str, Any],
        layers: List[Dict[str, Any]],
        cells: Dict[str, Any],
        diagnostics: List[Dict[str, Any]],
        png: Optional[bytes] = None,
    ) -> Path:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        run_dir = self.root / run_id
        run_dir.mkdir(parents=True, exist_ok=False)

        self._write_json(run_dir / "inputs.json", run_inputs)
        self._write_json(run_dir / "layers.json", layers)
        self._write_json(run_dir / "cells.json", cells)
        self._write_json(run_dir / "diagnostics.json", diagnostics)
        if png:
            (run_dir / "plot.png").write_bytes(png)
        return run_dir

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
