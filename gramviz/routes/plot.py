from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException

from ..core.errors import GramvizError
from ..core.settings import Settings, get_settings
from ..devices.agg import draw_png
from ..pipeline.build import BuildResult, build
from ..pipeline.render import render
from ..schemas.plot import BuildResponse, PlotRequest, RenderResponse
from ..services import alt_text, derive_spec
from ..utils.audit import AuditLogger

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/plot", tags=["plot"])


def _build(request: PlotRequest) -> BuildResult:
    data: Optional[pd.DataFrame] = pd.DataFrame(request.data) if request.data is not None else None
    try:
        spec = derive_spec(request.spec, data)
        return build(spec)
    except GramvizError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _canvas(request: PlotRequest, settings: Settings) -> Tuple[float, float, int]:
    canvas: Dict[str, Any] = request.spec.get("canvas") or {}
    return (
        float(canvas.get("width_in", settings.width_in)),
        float(canvas.get("height_in", settings.height_in)),
        int(canvas.get("dpi", settings.dpi)),
    )


@router.post("/build", response_model=BuildResponse)
def build_plot(request: PlotRequest) -> BuildResponse:
    built = _build(request)
    return BuildResponse.model_validate(built.summary())


@router.post("/render", response_model=RenderResponse)
def render_plot(request: PlotRequest, settings: Settings = Depends(get_settings)) -> RenderResponse:
    built = _build(request)
    try:
        table = render(built)
    except GramvizError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    png = None
    if request.png:
        width_in, height_in, dpi = _canvas(request, settings)
        png = draw_png(table, width_in, height_in, dpi)

    cells = table.to_dict()
    diagnostics = table.diagnostics.to_json()
    audit_path = None
    persist = settings.persist_runs if request.persist is None else request.persist
    if persist:
        audit_path = AuditLogger(settings.storage_root).persist(
            run_inputs={"spec": request.spec, "rows": None if request.data is None else len(request.data)},
            layers=built.summary()["layers"],
            cells=cells,
            diagnostics=diagnostics,
            png=png,
        )
        LOGGER.info("render persisted to %s", audit_path)

    payload = {
        "cells": cells,
        "diagnostics": diagnostics,
        "removed_rows": table.diagnostics.removed_rows(),
        "alt_text": alt_text(built),
        "png_base64": base64.b64encode(png).decode("ascii") if png else None,
        "audit_path": str(audit_path) if audit_path else None,
    }
    return RenderResponse.model_validate(payload)
