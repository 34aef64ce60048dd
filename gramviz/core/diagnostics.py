from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DiagnosticKind(str, Enum):
    removed_rows = "removed_rows"
    nonlinear_coord = "nonlinear_coord"
    scale_range = "scale_range"
    stage = "stage"


@dataclass
class Diagnostic:
    kind: DiagnosticKind
    stage: str
    layer: Optional[int] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    msg: str = ""
    ts: float = field(default_factory=lambda: time.time())


class DiagnosticLog:
    """Append-only store for per-render diagnostics."""

    def __init__(self, records: Optional[List[Diagnostic]] = None) -> None:
        self.records: List[Diagnostic] = list(records or [])

    def append(self, record: Diagnostic) -> None:
        self.records.append(record)

    def record(self, kind: DiagnosticKind, stage: str, layer: Optional[int] = None, msg: str = "", **detail: Any) -> Diagnostic:
        entry = Diagnostic(kind=kind, stage=stage, layer=layer, detail=detail, msg=msg)
        self.append(entry)
        return entry

    def copy(self) -> "DiagnosticLog":
        return DiagnosticLog(self.records)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [rec for rec in self.records if rec.kind == kind]

    def removed_rows(self, layer: Optional[int] = None) -> int:
        return sum(
            int(rec.detail.get("count", 0))
            for rec in self.of_kind(DiagnosticKind.removed_rows)
            if layer is None or rec.layer == layer
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "total": len(self.records),
            "by_kind": {k.value: sum(1 for rec in self.records if rec.kind == k) for k in DiagnosticKind},
        }

    def to_json(self) -> List[Dict[str, Any]]:
        out = []
        for rec in self.records:
            payload = asdict(rec)
            payload["kind"] = rec.kind.value
            out.append(payload)
        return out

    def __len__(self) -> int:
        return len(self.records)
