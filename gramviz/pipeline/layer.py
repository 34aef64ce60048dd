"""Layers.

A layer binds a data source, a mapping, a statistic, a geom and a position
adjustment. The layer itself is a shared, immutable component; everything a build
learns about it (the computed mapping, the parameters the statistic and geom settle
on) lives in the :class:`LayerParams` created for that build.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

import pandas as pd

from ..components.keys import as_key_glyph
from ..components.registry import GEOM_DEFAULTS, lookup
from ..components.scales import ScaleSet
from ..core.diagnostics import DiagnosticKind, DiagnosticLog
from ..core.errors import GramvizWarning, LinearCoordWarning
from ..core.proto import Proto
from ..core.table import PANEL, add_group
from ..graphics.primitives import Primitive
from .aes import (
    AFTER_SCALE,
    AFTER_STAT,
    START,
    Aes,
    Expr,
    check_required_aesthetics,
    evaluate_mapping,
    stage_of,
    standardise_aes_name,
)

LOGGER = logging.getLogger(__name__)


@dataclass
class LayerParams:
    """Per-build state of one layer."""

    index: int
    mapping: Aes
    stat_params: Dict[str, Any] = field(default_factory=dict)
    geom_params: Dict[str, Any] = field(default_factory=dict)
    aes_params: Dict[str, Any] = field(default_factory=dict)
    position_params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "mapping": {name: repr(value) if isinstance(value, Expr) else value for name, value in self.mapping.items()},
            "stat_params": dict(self.stat_params),
            "geom_params": dict(self.geom_params),
            "aes_params": dict(self.aes_params),
        }


def _is_constant(value: Any) -> bool:
    return not isinstance(value, (Expr, tuple))


class Layer(Proto):
    call = "layer"
    geom: Any = None
    stat: Any = None
    position: Any = None
    mapping: Any = None
    data: Any = None
    inherit_aes = True
    geom_params: Mapping[str, Any] = {}
    stat_params: Mapping[str, Any] = {}
    aes_params: Mapping[str, Any] = {}
    key_glyph: Any = None
    show_legend: Optional[bool] = None
    name: Optional[str] = None

    def computed_mapping(self, plot_mapping: Optional[Mapping[str, Any]] = None) -> Aes:
        mapping = Aes(self.mapping or {})
        if self.inherit_aes and plot_mapping:
            mapping = Aes(plot_mapping) | mapping
        # Aesthetics set as constants win over mapped ones.
        return mapping.without(self.aes_params)

    def new_params(self, index: int, plot_mapping: Optional[Mapping[str, Any]] = None) -> LayerParams:
        return LayerParams(
            index=index,
            mapping=self.computed_mapping(plot_mapping),
            stat_params=dict(self.stat_params),
            geom_params=dict(self.geom_params),
            aes_params=dict(self.aes_params),
        )

    def validate(self, plot_mapping: Optional[Mapping[str, Any]] = None) -> None:
        """Check required aesthetics before any data is touched."""

        mapping = self.computed_mapping(plot_mapping)
        available = set(mapping) | set(self.aes_params)
        check_required_aesthetics(self.stat.required_aes, available | set(self.stat_params), self.stat.call)
        provided = available | set(self.stat.default_aes) | set(self.stat.provides)
        check_required_aesthetics(self.geom.required_aes, provided, self.geom.call)

    def layer_data(self, plot_data: Optional[pd.DataFrame]) -> pd.DataFrame:
        if self.data is None:
            data = plot_data
        elif callable(self.data):
            data = self.data(plot_data.copy() if plot_data is not None else pd.DataFrame())
        else:
            data = self.data
        if data is None:
            return pd.DataFrame()
        return data.copy()

    def compute_aesthetics(self, data: pd.DataFrame, layer_params: LayerParams, scales: ScaleSet) -> pd.DataFrame:
        aesthetics = layer_params.mapping.at_stage(START)
        if data.empty and len(aesthetics) and all(_is_constant(value) for value in aesthetics.values()):
            # A layer made only of constants draws a single element.
            data = pd.DataFrame({PANEL: [1]})
        evaled = evaluate_mapping(aesthetics, data, START)
        evaled[PANEL] = data[PANEL].to_numpy() if PANEL in data.columns else 1
        evaled = add_group(evaled.reset_index(drop=True))
        scales.add_defaults(evaled, aesthetics)
        return evaled

    def compute_statistic(self, data: pd.DataFrame, layout: Any, layer_params: LayerParams) -> pd.DataFrame:
        if data.empty:
            return data
        params = self.stat.setup_params(data, layer_params.stat_params)
        layer_params.stat_params = params
        data = self.stat.setup_data(data, params)
        return self.stat.compute_layer(data, params, layout)

    def map_statistic(self, data: pd.DataFrame, layer_params: LayerParams, scales: ScaleSet) -> pd.DataFrame:
        if data.empty:
            return data
        new: Dict[str, Any] = {
            name: value
            for name, value in self.stat.default_aes.items()
            if stage_of(value) == AFTER_STAT and name not in layer_params.mapping
        }
        new.update(layer_params.mapping.at_stage(AFTER_STAT))
        data = data.drop(columns=[col for col in self.stat.dropped_aes if col in data.columns])
        if not new:
            return data
        evaled = evaluate_mapping(new, data, AFTER_STAT)
        scales.add_defaults(evaled, new)
        if self.stat.retransform:
            evaled = scales.transform_df(evaled)
        out = data.copy()
        for name in evaled.columns:
            out[name] = evaled[name].to_numpy()
        return out

    def compute_geom_1(self, data: pd.DataFrame, layer_params: LayerParams) -> pd.DataFrame:
        if data.empty:
            return data
        check_required_aesthetics(
            self.geom.required_aes, list(data.columns) + list(layer_params.aes_params), self.geom.call
        )
        params = self.geom.setup_params(data, layer_params.geom_params)
        layer_params.geom_params = params
        return self.geom.setup_data(data, params)

    def compute_position(self, data: pd.DataFrame, layout: Any, layer_params: LayerParams) -> pd.DataFrame:
        if data.empty:
            return data
        params = self.position.setup_params(data)
        layer_params.position_params = params
        data = self.position.setup_data(data, params)
        return self.position.compute_layer(data, params, layout)

    def compute_geom_2(self, data: pd.DataFrame, layer_params: LayerParams) -> pd.DataFrame:
        if data.empty:
            return data
        modifiers = layer_params.mapping.at_stage(AFTER_SCALE)
        return self.geom.use_defaults(data, layer_params.aes_params, modifiers)

    def finish_statistics(self, data: pd.DataFrame, layer_params: LayerParams) -> pd.DataFrame:
        return self.stat.finish_layer(data, layer_params.stat_params)

    def draw_geom(
        self,
        data: pd.DataFrame,
        layout: Any,
        coord: Any,
        layer_params: LayerParams,
        diagnostics: DiagnosticLog,
    ) -> Dict[int, Primitive]:
        if self.geom.requires_linear_coord and not coord.is_linear():
            message = f"{self.geom.call} only works with linear coordinate systems; the result may be incorrect"
            warnings.warn(message, LinearCoordWarning, stacklevel=2)
            diagnostics.record(DiagnosticKind.nonlinear_coord, "draw", layer_params.index, message, geom=self.geom.call)
        before = len(data)
        data = self.geom.handle_na(data, layer_params.geom_params)
        removed = before - len(data)
        if removed:
            LOGGER.debug("layer %d: %s dropped %d incomplete rows", layer_params.index, self.geom.call, removed)
            diagnostics.record(
                DiagnosticKind.removed_rows,
                "draw",
                layer_params.index,
                f"removed {removed} rows with missing values before drawing",
                count=removed,
                geom=self.geom.call,
            )
        return self.geom.draw_layer(data, layer_params.geom_params, layout, coord)


def _split_params(geom: Any, stat: Any, params: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    params = {standardise_aes_name(name): value for name, value in params.items()}
    aesthetics = set(geom.aesthetics())
    aes_params = {name: value for name, value in params.items() if name in aesthetics}
    geom_params = {name: value for name, value in params.items() if name in geom.parameters}
    stat_params = {name: value for name, value in params.items() if name in stat.parameters}
    unknown = sorted(set(params) - set(aes_params) - set(geom_params) - set(stat_params))
    if unknown:
        warnings.warn(f"Ignoring unknown parameters: {', '.join(unknown)}", GramvizWarning, stacklevel=3)
    return {"aes_params": aes_params, "geom_params": geom_params, "stat_params": stat_params}


def layer(
    geom: Any,
    stat: Any = None,
    position: Any = None,
    mapping: Optional[Mapping[str, Any]] = None,
    data: Any = None,
    params: Optional[Mapping[str, Any]] = None,
    inherit_aes: bool = True,
    show_legend: Optional[bool] = None,
    key_glyph: Any = None,
    name: Optional[str] = None,
) -> Layer:
    """Create a layer; components may be given by name or as instances."""

    default_stat, default_position = GEOM_DEFAULTS.get(geom if isinstance(geom, str) else "", ("identity", "identity"))
    geom = lookup("geom", geom)
    stat = lookup("stat", stat if stat is not None else default_stat)
    position = lookup("position", position if position is not None else default_position)
    split = _split_params(geom, stat, params or {})
    stat.validate_params(split["stat_params"])
    geom.validate_params(split["geom_params"])
    if key_glyph is not None:
        key_glyph = as_key_glyph(key_glyph)
    if callable(key_glyph):
        key_glyph = staticmethod(key_glyph)
    if callable(data) and not isinstance(data, pd.DataFrame):
        data = staticmethod(data)
    return Layer(
        geom=geom,
        stat=stat,
        position=position,
        mapping=Aes(mapping) if mapping is not None else None,
        data=data,
        inherit_aes=inherit_aes,
        show_legend=show_legend,
        key_glyph=key_glyph,
        name=name,
        **split,
    )


def _geom_layer(geom_name: str) -> Callable[..., Layer]:
    def make(
        mapping: Optional[Mapping[str, Any]] = None,
        data: Any = None,
        stat: Any = None,
        position: Any = None,
        inherit_aes: bool = True,
        show_legend: Optional[bool] = None,
        key_glyph: Any = None,
        **params: Any,
    ) -> Layer:
        return layer(
            geom_name,
            stat=stat,
            position=position,
            mapping=mapping,
            data=data,
            params=params,
            inherit_aes=inherit_aes,
            show_legend=show_legend,
            key_glyph=key_glyph,
        )

    make.__name__ = f"geom_{geom_name}"
    make.__doc__ = f"Layer drawing with the '{geom_name}' geom."
    return make


geom_blank = _geom_layer("blank")
geom_point = _geom_layer("point")
geom_path = _geom_layer("path")
geom_line = _geom_layer("line")
geom_polygon = _geom_layer("polygon")
geom_rect = _geom_layer("rect")
geom_bar = _geom_layer("bar")
geom_col = _geom_layer("col")
geom_histogram = _geom_layer("histogram")
geom_text = _geom_layer("text")
geom_raster = _geom_layer("raster")
geom_linerange = _geom_layer("linerange")
geom_pointrange = _geom_layer("pointrange")
