from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PlotRequest(BaseModel):
    spec: Dict[str, Any]
    data: Optional[List[Dict[str, Any]]] = Field(None, description="Records replacing spec.data when given.")
    png: bool = False
    persist: Optional[bool] = None


class LayerSummaryModel(BaseModel):
    index: int
    geom: str
    stat: str
    rows: int
    columns: List[str]


class ScaleSummaryModel(BaseModel):
    aesthetic: str
    kind: str
    discrete: bool
    limits: List[Any]
    trans: str


class BuildResponse(BaseModel):
    layers: List[LayerSummaryModel]
    panels: int
    position_ranges: Dict[str, List[List[float]]]
    scales: List[ScaleSummaryModel]
    diagnostics: Dict[str, Any]


class DiagnosticModel(BaseModel):
    kind: str
    stage: str
    layer: Optional[int] = None
    msg: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)
    ts: float


class RenderResponse(BaseModel):
    cells: Dict[str, Any]
    diagnostics: List[DiagnosticModel]
    removed_rows: int
    alt_text: str
    png_base64: Optional[str] = None
    audit_path: Optional[str] = Field(None, description="Filesystem path to persisted artifacts.")
