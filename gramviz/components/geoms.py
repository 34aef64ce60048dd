from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.proto import Proto, delegate
from ..core.table import GROUP, PANEL, remove_missing, resolution
from ..graphics.primitives import Group, Lines, Points, Polygons, Primitive, Rects, Segments, Texts, empty
from ..pipeline.aes import AFTER_SCALE, as_column, evaluate_mapping
from .coords import coord_munch
from .keys import (
    draw_key_blank,
    draw_key_path,
    draw_key_point,
    draw_key_pointrange,
    draw_key_polygon,
    draw_key_rect,
    draw_key_text,
    draw_key_vpath,
)

# Millimetres to points; sizes and line widths are given in millimetres.
PT = 72.27 / 25.4


def _column(data: pd.DataFrame, name: str) -> Any:
    if name not in data.columns:
        return None
    return data[name].to_numpy()


def _gp(data: pd.DataFrame, names: Sequence[str]) -> Dict[str, Any]:
    return {name: _column(data, name) for name in names if name in data.columns}


def _first_per_group(data: pd.DataFrame) -> pd.DataFrame:
    return data.drop_duplicates(GROUP, keep="first")


class Geom(Proto):
    """Geometric encoding: turns a fully mapped table into primitives."""

    call = "geom"
    required_aes: Sequence[str] = ()
    non_missing_aes: Sequence[str] = ()
    optional_aes: Sequence[str] = ()
    default_aes: Mapping[str, Any] = {}
    parameters: Sequence[str] = ("na_rm",)
    requires_linear_coord = False
    draw_key = staticmethod(draw_key_point)

    def validate_params(self, params: Mapping[str, Any]) -> None:
        return None

    def aesthetics(self) -> List[str]:
        names = [alt for req in self.required_aes for alt in req.split("|")]
        names += list(self.default_aes) + list(self.optional_aes) + [GROUP]
        return list(dict.fromkeys(names))

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(params)

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def use_defaults(
        self,
        data: pd.DataFrame,
        params: Optional[Mapping[str, Any]] = None,
        modifiers: Optional[Mapping[str, Any]] = None,
    ) -> pd.DataFrame:
        """Fill unmapped aesthetics from defaults, then constants, then after_scale modifiers."""

        out = data.copy()
        for name, value in self.default_aes.items():
            if name not in out.columns:
                out[name] = value
        accepted = set(self.aesthetics())
        for name, value in (params or {}).items():
            if name in accepted:
                out[name] = as_column(value, out, name) if not np.isscalar(value) else value
        if modifiers and not out.empty:
            modified = evaluate_mapping(modifiers, out, AFTER_SCALE)
            for name in modified.columns:
                out[name] = modified[name]
        return out

    def handle_na(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        required = [alt for req in self.required_aes for alt in req.split("|")]
        return remove_missing(
            data,
            required + list(self.non_missing_aes),
            na_rm=bool(params.get("na_rm", False)),
            name=self.call,
        )

    def draw_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any, coord: Any) -> Dict[int, Primitive]:
        """One primitive subtree per panel of the layout, in panel order."""

        drawn: Dict[int, Primitive] = {}
        for panel in layout.panel_ids():
            part = data[data[PANEL] == panel].reset_index(drop=True) if not data.empty else data
            if part.empty:
                drawn[panel] = empty(f"{self.call}-empty")
            else:
                drawn[panel] = self.draw_panel(part, layout.panel_params[panel], coord, params)
        return drawn

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        children = [
            self.draw_group(part.reset_index(drop=True), panel_params, coord, params)
            for _, part in data.groupby(GROUP, sort=True)
        ]
        return Group(children, name=self.call)

    def draw_group(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        raise NotImplementedError(f"{self.call} does not implement draw_group or draw_panel")


class GeomBlank(Geom):
    call = "geom_blank"
    draw_key = staticmethod(draw_key_blank)

    def handle_na(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        return empty(self.call)


class GeomPoint(Geom):
    call = "geom_point"
    required_aes = ("x", "y")
    non_missing_aes = ("size", "shape", "colour")
    default_aes = {"shape": "o", "colour": "black", "size": 1.5, "fill": None, "alpha": None, "stroke": 0.5}

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        coords = coord.transform(data, panel_params)
        return Points(
            coords["x"], coords["y"], gp=_gp(coords, ("shape", "colour", "fill", "size", "alpha", "stroke")), name=self.call
        )


class GeomPath(Geom):
    call = "geom_path"
    required_aes = ("x", "y")
    non_missing_aes = ("linewidth", "colour", "linetype")
    default_aes = {"colour": "black", "linewidth": 0.5, "linetype": "solid", "alpha": None}
    draw_key = staticmethod(draw_key_path)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        sizes = data.groupby(GROUP)[GROUP].transform("size")
        data = data[sizes >= 2].reset_index(drop=True)
        if data.empty:
            return empty(self.call)
        munched = coord_munch(coord, data, panel_params)
        styles = _first_per_group(munched)
        return Lines(
            munched["x"],
            munched["y"],
            munched[GROUP],
            gp=_gp(styles, ("colour", "linewidth", "linetype", "alpha")),
            name=self.call,
        )


class GeomLine(GeomPath):
    call = "geom_line"

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data.sort_values([PANEL, GROUP, "x"], kind="mergesort").reset_index(drop=True)


class GeomPolygon(Geom):
    call = "geom_polygon"
    required_aes = ("x", "y")
    default_aes = {"colour": None, "fill": "grey20", "linewidth": 0.5, "linetype": "solid", "alpha": None}
    draw_key = staticmethod(draw_key_polygon)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        munched = coord_munch(coord, data, panel_params, is_closed=True)
        styles = _first_per_group(munched)
        return Polygons(
            munched["x"],
            munched["y"],
            munched[GROUP],
            gp=_gp(styles, ("colour", "fill", "linewidth", "linetype", "alpha")),
            name=self.call,
        )


def _rect_to_poly(data: pd.DataFrame) -> pd.DataFrame:
    """Five-vertex closed polygons, one group per rectangle."""

    n = len(data)
    corners_x = np.stack([data["xmin"], data["xmin"], data["xmax"], data["xmax"], data["xmin"]], axis=1).ravel()
    corners_y = np.stack([data["ymax"], data["ymin"], data["ymin"], data["ymax"], data["ymax"]], axis=1).ravel()
    polys = data.drop(columns=["xmin", "xmax", "ymin", "ymax", "x", "y"], errors="ignore")
    polys = polys.loc[polys.index.repeat(5)].reset_index(drop=True)
    polys["x"] = corners_x.astype(float)
    polys["y"] = corners_y.astype(float)
    polys[GROUP] = np.repeat(np.arange(1, n + 1), 5)
    return polys


class GeomRect(Geom):
    call = "geom_rect"
    required_aes = ("xmin", "xmax", "ymin", "ymax")
    default_aes = {"colour": None, "fill": "grey35", "linewidth": 0.5, "linetype": "solid", "alpha": None}
    draw_key = staticmethod(draw_key_polygon)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        if not coord.is_linear():
            polys = _rect_to_poly(data)
            return delegate(GeomPolygon, self).draw_panel(polys, panel_params, coord, params)
        coords = coord.transform(data, panel_params)
        left = np.minimum(coords["xmin"], coords["xmax"])
        bottom = np.minimum(coords["ymin"], coords["ymax"])
        return Rects(
            left,
            bottom,
            np.abs(coords["xmax"] - coords["xmin"]),
            np.abs(coords["ymax"] - coords["ymin"]),
            gp=_gp(coords, ("colour", "fill", "linewidth", "linetype", "alpha")),
            name=self.call,
        )


class GeomBar(GeomRect):
    call = "geom_bar"
    required_aes = ("x", "y")
    non_missing_aes = ("xmin", "xmax", "ymin", "ymax")
    parameters = ("na_rm", "width", "just")

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        data = data.copy()
        if "width" not in data.columns:
            width = params.get("width")
            data["width"] = width if width is not None else resolution(data["x"], zero=False) * 0.9
        just = float(params.get("just", 0.5))
        y = data["y"].to_numpy(dtype=float)
        x = data["x"].to_numpy(dtype=float)
        width = data["width"].to_numpy(dtype=float)
        data["ymin"] = np.minimum(y, 0.0)
        data["ymax"] = np.maximum(y, 0.0)
        data["xmin"] = x - width * just
        data["xmax"] = x + width * (1 - just)
        return data.drop(columns=["width"])


class GeomCol(GeomBar):
    call = "geom_col"


class GeomRaster(GeomRect):
    call = "geom_raster"
    required_aes = ("x", "y")
    default_aes = {"fill": "grey20", "alpha": None}
    requires_linear_coord = True
    draw_key = staticmethod(draw_key_rect)

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        w = resolution(data["x"], zero=False)
        h = resolution(data["y"], zero=False)
        return data.assign(
            xmin=data["x"] - w / 2, xmax=data["x"] + w / 2, ymin=data["y"] - h / 2, ymax=data["y"] + h / 2
        )


class GeomText(Geom):
    call = "geom_text"
    required_aes = ("x", "y", "label")
    default_aes = {
        "colour": "black",
        "size": 3.88,
        "angle": 0.0,
        "hjust": 0.5,
        "vjust": 0.5,
        "alpha": None,
        "family": "",
    }
    draw_key = staticmethod(draw_key_text)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        coords = coord.transform(data, panel_params)
        gp = _gp(coords, ("colour", "angle", "hjust", "vjust", "alpha", "family"))
        gp["fontsize"] = coords["size"].to_numpy(dtype=float) * PT
        return Texts(coords["x"], coords["y"], coords["label"].astype(str), gp=gp, name=self.call)


class GeomLinerange(Geom):
    call = "geom_linerange"
    required_aes = ("x", "ymin", "ymax")
    default_aes = {"colour": "black", "linewidth": 0.5, "linetype": "solid", "alpha": None}
    draw_key = staticmethod(draw_key_vpath)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        if coord.is_linear():
            coords = coord.transform(data, panel_params)
            if "ymin" not in coords.columns:
                # Flipped coordinates move the range onto the horizontal axis.
                return Segments(
                    coords["xmin"], coords["y"], coords["xmax"], coords["y"],
                    gp=_gp(coords, ("colour", "linewidth", "linetype", "alpha")), name=self.call,
                )
            return Segments(
                coords["x"], coords["ymin"], coords["x"], coords["ymax"],
                gp=_gp(coords, ("colour", "linewidth", "linetype", "alpha")), name=self.call,
            )
        ends = data.drop(columns=["y"], errors="ignore")
        ends = ends.loc[ends.index.repeat(2)].reset_index(drop=True)
        ends["y"] = np.column_stack([data["ymin"], data["ymax"]]).ravel().astype(float)
        ends[GROUP] = np.repeat(np.arange(1, len(data) + 1), 2)
        return delegate(GeomPath, self).draw_panel(ends, panel_params, coord, params)


class GeomPointrange(Geom):
    call = "geom_pointrange"
    required_aes = ("x", "y", "ymin", "ymax")
    default_aes = {
        "colour": "black",
        "size": 0.5,
        "linewidth": 0.5,
        "linetype": "solid",
        "shape": "o",
        "fill": None,
        "alpha": None,
        "stroke": 1.0,
    }
    parameters = ("na_rm", "fatten")
    draw_key = staticmethod(draw_key_pointrange)

    def draw_panel(self, data: pd.DataFrame, panel_params: Any, coord: Any, params: Mapping[str, Any]) -> Primitive:
        fatten = float(params.get("fatten", 4.0))
        points = data.assign(size=data["size"].to_numpy(dtype=float) * fatten)
        return Group(
            [
                delegate(GeomLinerange, self).draw_panel(data, panel_params, coord, params),
                delegate(GeomPoint, self).draw_panel(points, panel_params, coord, params),
            ],
            name=self.call,
        )
