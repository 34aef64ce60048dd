"""Build pipeline: turn a specification into per-layer tables with trained scales.

Stage order:

1. layer data, panel assignment, start-phase aesthetics (plus ``group``)
2. scale transforms, position training on raw data, position mapping
3. statistics, after-stat aesthetics, missing position scales
4. geom setup, position adjustments
5. position retraining, panel parameters, remapping
6. non-position scale training and mapping, after-scale defaults
7. statistic then facet finalisation, scales frozen
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from ..components.scales import ScaleSet, TrainedScale
from ..core.diagnostics import DiagnosticKind, DiagnosticLog
from ..core.table import check_table
from .layer import Layer, LayerParams, geom_blank
from .layout import Layout
from .plot import Specification

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Dict[str, Any]], None]


@dataclass
class BuildResult:
    data: Tuple[pd.DataFrame, ...]
    layers: Tuple[Layer, ...]
    layer_params: Tuple[LayerParams, ...]
    layout: Layout
    scales: ScaleSet
    labels: Dict[str, Any]
    spec: Specification
    diagnostics: DiagnosticLog

    def layer_data(self, index: int = 0) -> pd.DataFrame:
        return self.data[index]

    def summary(self) -> Dict[str, Any]:
        return {
            "layers": [
                {
                    "index": i,
                    "geom": layer.geom.call,
                    "stat": layer.stat.call,
                    "rows": int(len(data)),
                    "columns": [str(col) for col in data.columns],
                }
                for i, (layer, data) in enumerate(zip(self.layers, self.data))
            ],
            "panels": len(self.layout.panel_ids()),
            "position_ranges": self.layout.range_summary(),
            "scales": self.scales.summary(),
            "diagnostics": self.diagnostics.summary(),
        }


def build(spec: Specification, progress_callback: Optional[ProgressCallback] = None) -> BuildResult:
    """Run every build stage over ``spec``; the specification itself is left untouched."""

    def emit(event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(event, payload or {})
        except Exception:
            LOGGER.exception("progress callback failed on '%s'", event)

    spec.validate()
    layers: Tuple[Layer, ...] = spec.layers or (geom_blank(),)
    diagnostics = DiagnosticLog()
    scales = ScaleSet(TrainedScale(scale) for scale in spec.scales)
    layout = Layout(spec.coord, spec.facet)
    params = [item.new_params(i, spec.mapping) for i, item in enumerate(layers)]
    emit("build_start", {"layers": len(layers), "facet": spec.facet.call, "coord": spec.coord.call})

    def checkpoint(stage: str, data: List[pd.DataFrame], require_group: bool = True) -> None:
        for frame in data:
            if not frame.empty:
                check_table(frame, stage, require_group=require_group)
        rows = [int(len(frame)) for frame in data]
        diagnostics.record(DiagnosticKind.stage, stage, msg=f"{stage} done", rows=rows)
        LOGGER.debug("%s: rows per layer %s", stage, rows)
        emit("stage", {"stage": stage, "rows": rows})

    def snapshot(phase: str) -> None:
        ranges = layout.range_summary()
        diagnostics.record(DiagnosticKind.scale_range, phase, msg=f"position ranges ({phase})", **ranges)
        emit("scale_range", {"phase": phase, **ranges})

    data = [item.layer_data(spec.data) for item in layers]
    data = layout.setup(data, spec.data)
    checkpoint("setup", data, require_group=False)

    data = [item.compute_aesthetics(frame, lp, scales) for item, frame, lp in zip(layers, data, params)]
    checkpoint("compute_aesthetics", data)

    data = [scales.transform_df(frame) for frame in data]
    layout.train_position(data, scales.find("x"), scales.find("y"))
    snapshot("pre_stat")
    data = layout.map_position(data)
    checkpoint("map_position", data)

    computed = []
    for item, frame, lp in zip(layers, data, params):
        removed = item.stat.incomplete_rows(frame, lp.stat_params) if not frame.empty else 0
        if removed:
            diagnostics.record(
                DiagnosticKind.removed_rows,
                "compute_statistic",
                lp.index,
                f"removed {removed} rows with missing values before the statistic",
                count=removed,
                stat=item.stat.call,
            )
        computed.append(item.compute_statistic(frame, layout, lp))
    data = computed
    checkpoint("compute_statistic", data)

    data = [item.map_statistic(frame, lp, scales) for item, frame, lp in zip(layers, data, params)]
    scales.add_missing(("x", "y"))
    checkpoint("map_statistic", data)

    data = [item.compute_geom_1(frame, lp) for item, frame, lp in zip(layers, data, params)]
    checkpoint("compute_geom_1", data)
    data = [item.compute_position(frame, layout, lp) for item, frame, lp in zip(layers, data, params)]
    checkpoint("compute_position", data)

    layout.reset_scales()
    layout.train_position(data, scales.find("x"), scales.find("y"))
    snapshot("retrained")
    layout.setup_panel_params()
    data = layout.map_position(data)
    checkpoint("retrain_position", data)

    npscales = scales.non_position_scales()
    if len(npscales):
        for frame in data:
            npscales.train_df(frame)
        data = [npscales.map_df(frame) for frame in data]
    data = [item.compute_geom_2(frame, lp) for item, frame, lp in zip(layers, data, params)]
    checkpoint("compute_geom_2", data)

    data = [item.finish_statistics(frame, lp) for item, frame, lp in zip(layers, data, params)]
    data = layout.finish_data(data)
    checkpoint("finish", data)

    scales.freeze()
    layout.freeze()
    result = BuildResult(
        data=tuple(data),
        layers=tuple(layers),
        layer_params=tuple(params),
        layout=layout,
        scales=scales,
        labels=spec.make_labels(),
        spec=spec,
        diagnostics=diagnostics,
    )
    emit("build_done", {"panels": len(layout.panel_ids()), "rows": [int(len(frame)) for frame in data]})
    return result
