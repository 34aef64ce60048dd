"""Coordinate systems.

A coord turns trained position scales into per-panel parameters (visible ranges and
breaks), transforms positional columns into panel-relative (0-1) coordinates, and
draws the panel decorations that depend on the coordinate geometry (background,
grid lines, axes).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.errors import SpecificationError
from ..core.proto import Proto, delegate
from ..core.table import GROUP, split_apply
from ..core.theme import Theme
from ..graphics.cells import text_height, text_width
from ..graphics.primitives import Group, Lines, Primitive, Rects, Segments, Texts, empty
from .scales import X_AESTHETICS, Y_AESTHETICS, TrainedScale

_LABEL_GAP = 2.2


@dataclass
class PanelParams:
    """Visible ranges and breaks of one panel."""

    x_range: Tuple[float, float]
    y_range: Tuple[float, float]
    x: Dict[str, Any] = field(default_factory=dict)
    y: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def swapped(self) -> "PanelParams":
        return replace(self, x_range=self.y_range, y_range=self.x_range, x=self.y, y=self.x)

    def to_dict(self) -> Dict[str, Any]:
        def _info(info: Mapping[str, Any]) -> Dict[str, Any]:
            return {
                key: (np.asarray(value).tolist() if isinstance(value, (np.ndarray, list, tuple)) else value)
                for key, value in info.items()
            }

        return {
            "x_range": list(self.x_range),
            "y_range": list(self.y_range),
            "x": _info(self.x),
            "y": _info(self.y),
        }


@dataclass
class AxisGrob:
    """An axis drawing plus the extent (in points) it needs across its side."""

    content: Primitive
    size: float


def rescale(values: Any, source: Tuple[float, float], target: Tuple[float, float] = (0.0, 1.0)) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    low, high = source
    span = high - low
    if span == 0:
        return np.full(values.shape, (target[0] + target[1]) / 2)
    with np.errstate(invalid="ignore"):
        out = target[0] + (values - low) / span * (target[1] - target[0])
    out = np.where(values == np.inf, target[1], out)
    return np.where(values == -np.inf, target[0], out)


def draw_axis(positions: Sequence[float], labels: Sequence[str], side: str, theme: Theme) -> AxisGrob:
    """Ticks and tick labels for one panel side, in the axis cell's own coordinates."""

    positions = np.asarray(positions, dtype=float)
    text_el = theme.element("axis.text")
    ticks_el = theme.element("axis.ticks")
    tick_len = float(theme.get("axis.ticks.length", 2.75)) if ticks_el is not None else 0.0
    fontsize = theme.font_size("axis.text")
    horizontal = side in ("top", "bottom")
    if text_el is None or not len(labels):
        extent = 0.0
    elif horizontal:
        extent = max(text_height(label, fontsize) for label in labels)
    else:
        extent = max(text_width(label, fontsize) for label in labels)
    total = tick_len + (_LABEL_GAP + extent if extent else 0.0)
    if total <= 0 or not len(positions):
        return AxisGrob(empty(f"axis-{side}"), 0.0)

    tick = tick_len / total
    label_at = (tick_len + _LABEL_GAP) / total
    children: List[Primitive] = []
    n = len(positions)
    # "near" is the edge touching the panel.
    near, sign = {"bottom": (1.0, -1), "top": (0.0, 1), "left": (1.0, -1), "right": (0.0, 1)}[side]
    if ticks_el is not None and tick > 0:
        gp = {"colour": ticks_el.get("colour", "#333333"), "linewidth": ticks_el.get("linewidth", 0.5)}
        far = near + sign * tick
        if horizontal:
            children.append(Segments(positions, [near] * n, positions, [far] * n, gp=gp, name="axis-ticks"))
        else:
            children.append(Segments([near] * n, positions, [far] * n, positions, gp=gp, name="axis-ticks"))
    if text_el is not None and extent:
        gp = {"colour": text_el.get("colour", "#4D4D4D"), "fontsize": fontsize}
        at = near + sign * label_at
        if horizontal:
            gp.update(hjust=0.5, vjust=1.0 if side == "bottom" else 0.0)
            children.append(Texts(positions, [at] * n, list(labels), gp=gp, name="axis-labels"))
        else:
            gp.update(hjust=1.0 if side == "left" else 0.0, vjust=0.5)
            children.append(Texts([at] * n, positions, list(labels), gp=gp, name="axis-labels"))
    return AxisGrob(Group(children, name=f"axis-{side}"), total)


def _grid_lines(values: np.ndarray, vertical: bool, element: Optional[Mapping[str, Any]], name: str) -> Optional[Primitive]:
    if element is None or not len(values):
        return None
    n = len(values)
    gp = {"colour": element.get("colour", "white"), "linewidth": element.get("linewidth", 0.5)}
    if vertical:
        return Segments(values, [0.0] * n, values, [1.0] * n, gp=gp, name=name)
    return Segments([0.0] * n, values, [1.0] * n, values, gp=gp, name=name)


def _background(theme: Theme) -> Optional[Primitive]:
    element = theme.element("panel.background")
    if element is None:
        return None
    gp = {"fill": element.get("fill"), "colour": element.get("colour")}
    return Rects([0.0], [0.0], [1.0], [1.0], gp=gp, name="panel-background")


def _close_poly(data: pd.DataFrame) -> pd.DataFrame:
    if GROUP not in data.columns:
        return pd.concat([data, data.iloc[[0]]], ignore_index=True)
    return split_apply(data, [GROUP], lambda part: pd.concat([part, part.iloc[[0]]], ignore_index=True))


def coord_munch(
    coord: "Coord",
    data: pd.DataFrame,
    panel_params: PanelParams,
    segment_length: float = 0.01,
    is_closed: bool = False,
) -> pd.DataFrame:
    """Transform a path, first splitting it into short pieces under non-linear coords."""

    if coord.is_linear() or data.empty:
        return coord.transform(data, panel_params)
    if is_closed:
        data = _close_poly(data)
    x = data["x"].to_numpy(dtype=float)
    y = data["y"].to_numpy(dtype=float)
    xspan = (panel_params.x_range[1] - panel_params.x_range[0]) or 1.0
    yspan = (panel_params.y_range[1] - panel_params.y_range[0]) or 1.0
    with np.errstate(invalid="ignore"):
        dist = np.hypot(np.diff(x) / xspan, np.diff(y) / yspan)
    if GROUP in data.columns:
        groups = data[GROUP].to_numpy()
        dist[groups[1:] != groups[:-1]] = np.nan
    pieces = np.where(np.isfinite(dist), np.maximum(np.ceil(dist / segment_length), 1), 1).astype(int)
    pieces = np.append(pieces, 1)
    index = np.repeat(np.arange(len(data)), pieces)
    fraction = np.concatenate([np.arange(k) / k for k in pieces])
    following = np.minimum(index + 1, len(data) - 1)
    munched = data.iloc[index].reset_index(drop=True)
    munched["x"] = x[index] + fraction * (x[following] - x[index])
    munched["y"] = y[index] + fraction * (y[following] - y[index])
    return coord.transform(munched, panel_params)


class Coord(Proto):
    call = "coord"
    limits: Mapping[str, Any] = {}
    expand = True
    clip = "on"

    def validate_params(self) -> None:
        for key, value in self.limits.items():
            if value is not None and len(value) != 2:
                raise SpecificationError(f"{type(self).__name__}: {key}lim must have exactly two values")

    def is_linear(self) -> bool:
        return False

    def setup_params(self, data: Sequence[pd.DataFrame]) -> Dict[str, Any]:
        return {"expand": self.expand}

    def setup_data(self, data: List[pd.DataFrame], params: Mapping[str, Any]) -> List[pd.DataFrame]:
        return data

    def setup_layout(self, layout: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return layout

    def labels(self, labels: Dict[str, Any], panel_params: Optional[PanelParams] = None) -> Dict[str, Any]:
        return labels

    def _view(self, scale: TrainedScale, limits: Any, expand: Any) -> Tuple[Tuple[float, float], Dict[str, Any]]:
        if scale.is_discrete():
            continuous_range = scale.dimension(expand=expand)
        else:
            user = None
            if limits is not None:
                values = np.asarray(scale.transform(pd.Series(list(limits), dtype=object)), dtype=float)
                user = (float(np.nanmin(values)), float(np.nanmax(values)))
            continuous_range = scale.dimension(expand=expand, limits=user)
        return continuous_range, scale.break_info(continuous_range)

    def setup_panel_params(self, scale_x: TrainedScale, scale_y: TrainedScale, params: Mapping[str, Any]) -> PanelParams:
        expand = None if params.get("expand", self.expand) else (0.0, 0.0)
        x_range, x_info = self._view(scale_x, self.limits.get("x"), expand)
        y_range, y_info = self._view(scale_y, self.limits.get("y"), expand)
        return PanelParams(x_range=x_range, y_range=y_range, x=x_info, y=y_info)

    def transform(self, data: pd.DataFrame, panel_params: PanelParams) -> pd.DataFrame:
        raise NotImplementedError

    def render_bg(self, panel_params: PanelParams, theme: Theme) -> Primitive:
        raise NotImplementedError

    def render_fg(self, panel_params: PanelParams, theme: Theme) -> Primitive:
        return empty("panel-foreground")

    def render_axis_h(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        raise NotImplementedError

    def render_axis_v(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        raise NotImplementedError


class CoordCartesian(Coord):
    call = "coord_cartesian"

    def is_linear(self) -> bool:
        return True

    def transform(self, data: pd.DataFrame, panel_params: PanelParams) -> pd.DataFrame:
        out = data.copy()
        for column in out.columns:
            if column in X_AESTHETICS:
                out[column] = rescale(out[column], panel_params.x_range)
            elif column in Y_AESTHETICS:
                out[column] = rescale(out[column], panel_params.y_range)
        return out

    def render_bg(self, panel_params: PanelParams, theme: Theme) -> Primitive:
        x_major = rescale(panel_params.x.get("major", []), panel_params.x_range)
        y_major = rescale(panel_params.y.get("major", []), panel_params.y_range)
        x_minor = rescale(panel_params.x.get("minor", []), panel_params.x_range)
        y_minor = rescale(panel_params.y.get("minor", []), panel_params.y_range)
        minor = theme.element("panel.grid.minor")
        major = theme.element("panel.grid.major")
        return Group(
            [
                _background(theme),
                _grid_lines(y_minor, False, minor, "grid-minor-y"),
                _grid_lines(x_minor, True, minor, "grid-minor-x"),
                _grid_lines(y_major, False, major, "grid-major-y"),
                _grid_lines(x_major, True, major, "grid-major-x"),
            ],
            name="panel-bg",
        )

    def render_axis_h(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        positions = rescale(panel_params.x.get("major", []), panel_params.x_range)
        return {
            "bottom": draw_axis(positions, panel_params.x.get("labels", []), "bottom", theme),
            "top": AxisGrob(empty("axis-top"), 0.0),
        }

    def render_axis_v(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        positions = rescale(panel_params.y.get("major", []), panel_params.y_range)
        return {
            "left": draw_axis(positions, panel_params.y.get("labels", []), "left", theme),
            "right": AxisGrob(empty("axis-right"), 0.0),
        }


def _flip_columns(data: pd.DataFrame) -> pd.DataFrame:
    pairs = dict(zip(X_AESTHETICS, Y_AESTHETICS))
    pairs.update({y: x for x, y in pairs.items()})
    return data.rename(columns={column: pairs[column] for column in data.columns if column in pairs})


class CoordFlip(CoordCartesian):
    call = "coord_flip"

    def setup_panel_params(self, scale_x: TrainedScale, scale_y: TrainedScale, params: Mapping[str, Any]) -> PanelParams:
        return delegate(CoordCartesian, self).setup_panel_params(scale_x, scale_y, params).swapped()

    def transform(self, data: pd.DataFrame, panel_params: PanelParams) -> pd.DataFrame:
        return delegate(CoordCartesian, self).transform(_flip_columns(data), panel_params)

    def labels(self, labels: Dict[str, Any], panel_params: Optional[PanelParams] = None) -> Dict[str, Any]:
        out = dict(labels)
        out["x"], out["y"] = labels.get("y"), labels.get("x")
        return out


class CoordPolar(Coord):
    call = "coord_polar"
    theta = "x"
    start = 0.0
    direction = 1

    def validate_params(self) -> None:
        delegate(Coord, self).validate_params()
        if self.theta not in ("x", "y"):
            raise SpecificationError(f"coord_polar: theta must be 'x' or 'y', got {self.theta!r}")
        if self.direction not in (1, -1):
            raise SpecificationError("coord_polar: direction must be 1 or -1")

    @property
    def r(self) -> str:
        return "y" if self.theta == "x" else "x"

    def setup_panel_params(self, scale_x: TrainedScale, scale_y: TrainedScale, params: Mapping[str, Any]) -> PanelParams:
        views = {}
        for aes, scale in (("x", scale_x), ("y", scale_y)):
            if aes == self.theta:
                expand = (0.0, 0.5) if scale.is_discrete() else (0.0, 0.0)
            else:
                expand = (0.0, 0.0)
            views[aes] = self._view(scale, self.limits.get(aes), expand)
        panel_params = PanelParams(
            x_range=views["x"][0], y_range=views["y"][0], x=views["x"][1], y=views["y"][1]
        )
        panel_params.extra.update(theta=self.theta, r=self.r)
        return panel_params

    def _ranges(self, panel_params: PanelParams) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        if self.theta == "x":
            return panel_params.x_range, panel_params.y_range
        return panel_params.y_range, panel_params.x_range

    def _theta(self, values: Any, theta_range: Tuple[float, float]) -> np.ndarray:
        angle = rescale(values, theta_range, (0.0, 2 * np.pi))
        return np.mod(angle + self.start, 2 * np.pi) * self.direction

    def transform(self, data: pd.DataFrame, panel_params: PanelParams) -> pd.DataFrame:
        out = data.copy()
        if out.empty or "x" not in out.columns or "y" not in out.columns:
            return out
        theta_range, r_range = self._ranges(panel_params)
        r = rescale(out[self.r], r_range, (0.0, 0.4))
        theta = self._theta(out[self.theta], theta_range)
        out["r"] = r
        out["theta"] = theta
        out["x"] = r * np.sin(theta) + 0.5
        out["y"] = r * np.cos(theta) + 0.5
        return out

    def _breaks(self, panel_params: PanelParams, which: str) -> Dict[str, Any]:
        return panel_params.x if which == "x" else panel_params.y

    def render_bg(self, panel_params: PanelParams, theme: Theme) -> Primitive:
        theta_range, r_range = self._ranges(panel_params)
        theta_info = self._breaks(panel_params, self.theta)
        r_info = self._breaks(panel_params, self.r)
        children: List[Optional[Primitive]] = [_background(theme)]
        major = theme.element("panel.grid.major")
        if major is not None:
            gp = {"colour": major.get("colour", "white"), "linewidth": major.get("linewidth", 0.5)}
            angles = self._theta(theta_info.get("major", []), theta_range)
            if len(angles):
                n = len(angles)
                children.append(
                    Segments([0.5] * n, [0.5] * n, 0.5 + 0.45 * np.sin(angles), 0.5 + 0.45 * np.cos(angles), gp=gp, name="grid-theta")
                )
            radii = rescale(r_info.get("major", []), r_range, (0.0, 0.4))
            circle = np.linspace(0, 2 * np.pi, 100)
            xs, ys, ids = [], [], []
            for i, radius in enumerate(radii):
                xs.extend(0.5 + radius * np.sin(circle))
                ys.extend(0.5 + radius * np.cos(circle))
                ids.extend([i + 1] * len(circle))
            if ids:
                children.append(Lines(xs, ys, ids, gp=gp, name="grid-r"))
        return Group(children, name="panel-bg")

    def render_fg(self, panel_params: PanelParams, theme: Theme) -> Primitive:
        text_el = theme.element("axis.text")
        theta_range, _ = self._ranges(panel_params)
        info = self._breaks(panel_params, self.theta)
        major = np.asarray(info.get("major", []), dtype=float)
        labels = list(info.get("labels", []))
        if text_el is None or not len(major):
            return empty("panel-foreground")
        angles = self._theta(major, theta_range)
        # The first and last break coincide when the theta range is a full turn.
        if len(angles) > 1 and np.isclose(np.mod(angles[-1] - angles[0], 2 * np.pi), 0):
            labels[0] = f"{labels[-1]}/{labels[0]}"
            angles, labels = angles[:-1], labels[:-1]
        gp = {"colour": text_el.get("colour", "#4D4D4D"), "fontsize": theme.font_size("axis.text"), "hjust": 0.5, "vjust": 0.5}
        return Texts(0.5 + 0.45 * np.sin(angles), 0.5 + 0.45 * np.cos(angles), labels, gp=gp, name="axis-theta")

    def render_axis_h(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        return {"bottom": AxisGrob(empty("axis-bottom"), 0.0), "top": AxisGrob(empty("axis-top"), 0.0)}

    def render_axis_v(self, panel_params: PanelParams, theme: Theme) -> Dict[str, AxisGrob]:
        _, r_range = self._ranges(panel_params)
        info = self._breaks(panel_params, self.r)
        positions = rescale(info.get("major", []), r_range, (0.0, 0.4)) + 0.5
        return {
            "left": draw_axis(positions, info.get("labels", []), "left", theme),
            "right": AxisGrob(empty("axis-right"), 0.0),
        }

    def labels(self, labels: Dict[str, Any], panel_params: Optional[PanelParams] = None) -> Dict[str, Any]:
        if self.theta == "y":
            out = dict(labels)
            out["x"], out["y"] = labels.get("y"), labels.get("x")
            return out
        return labels


def coord_cartesian(xlim: Any = None, ylim: Any = None, expand: bool = True) -> Coord:
    coord = CoordCartesian(limits={"x": xlim, "y": ylim}, expand=expand)
    coord.validate_params()
    return coord


def coord_flip(xlim: Any = None, ylim: Any = None, expand: bool = True) -> Coord:
    coord = CoordFlip(limits={"x": xlim, "y": ylim}, expand=expand)
    coord.validate_params()
    return coord


def coord_polar(theta: str = "x", start: float = 0.0, direction: int = 1) -> Coord:
    coord = CoordPolar(theta=theta, start=start, direction=direction)
    coord.validate_params()
    return coord
