"""Legend key glyphs.

A key glyph draws one legend key from a one-row table of aesthetic values, the layer's
geom parameters and the key size in points. Coordinates are relative to the key cell.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

import numpy as np
import pandas as pd

from ..core.errors import SpecificationError
from ..graphics.primitives import Group, Points, Primitive, Rects, Segments, Texts, empty


def _value(data: pd.DataFrame, name: str, default: Any = None) -> Any:
    if data.empty or name not in data.columns:
        return default
    value = data[name].iloc[0]
    if value is None:
        return default
    if isinstance(value, float) and np.isnan(value):
        return default
    return value


def _line_gp(data: pd.DataFrame) -> Dict[str, Any]:
    return {
        "colour": _value(data, "colour", "black"),
        "linewidth": _value(data, "linewidth", 0.5),
        "linetype": _value(data, "linetype", "solid"),
        "alpha": _value(data, "alpha"),
    }


def draw_key_point(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    gp = {
        "shape": _value(data, "shape", "o"),
        "colour": _value(data, "colour", "black"),
        "fill": _value(data, "fill"),
        "size": _value(data, "size", 1.5),
        "stroke": _value(data, "stroke", 0.5),
        "alpha": _value(data, "alpha"),
    }
    return Points(x=[0.5], y=[0.5], gp=gp, name="key-point")


def draw_key_path(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    return Segments(x0=[0.1], y0=[0.5], x1=[0.9], y1=[0.5], gp=_line_gp(data), name="key-path")


def draw_key_vpath(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    return Segments(x0=[0.5], y0=[0.1], x1=[0.5], y1=[0.9], gp=_line_gp(data), name="key-vpath")


def draw_key_rect(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    gp = {
        "fill": _value(data, "fill", _value(data, "colour", "grey20")),
        "colour": None,
        "alpha": _value(data, "alpha"),
    }
    return Rects(x=[0.0], y=[0.0], width=[1.0], height=[1.0], gp=gp, name="key-rect")


def draw_key_polygon(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    linewidth = float(_value(data, "linewidth", 0.0) or 0.0)
    inset = min(linewidth / max(size, 1e-9), 0.25) + 0.05
    gp = {
        "fill": _value(data, "fill", "grey20"),
        "colour": _value(data, "colour"),
        "linewidth": linewidth,
        "linetype": _value(data, "linetype", "solid"),
        "alpha": _value(data, "alpha"),
    }
    return Rects(
        x=[inset], y=[inset], width=[1 - 2 * inset], height=[1 - 2 * inset], gp=gp, name="key-polygon"
    )


def draw_key_text(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    gp = {
        "colour": _value(data, "colour", "black"),
        "fontsize": float(_value(data, "size", 3.88)) * 72.27 / 25.4,
        "family": _value(data, "family", ""),
        "angle": _value(data, "angle", 0.0),
        "alpha": _value(data, "alpha"),
    }
    return Texts(x=[0.5], y=[0.5], label=[str(_value(data, "label", "a"))], gp=gp, name="key-text")


def draw_key_blank(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    return empty("key-blank")


def draw_key_pointrange(data: pd.DataFrame, params: Mapping[str, Any], size: float) -> Primitive:
    return Group([draw_key_vpath(data, params, size), draw_key_point(data, params, size)], name="key-pointrange")


KEY_GLYPHS: Dict[str, Callable[[pd.DataFrame, Mapping[str, Any], float], Primitive]] = {
    "point": draw_key_point,
    "path": draw_key_path,
    "vpath": draw_key_vpath,
    "rect": draw_key_rect,
    "polygon": draw_key_polygon,
    "text": draw_key_text,
    "blank": draw_key_blank,
    "pointrange": draw_key_pointrange,
    "linerange": draw_key_vpath,
}


def as_key_glyph(value: Any) -> Callable[..., Primitive]:
    if callable(value):
        return value
    try:
        return KEY_GLYPHS[str(value)]
    except KeyError:
        raise SpecificationError(f"unknown key glyph '{value}'; expected one of {sorted(KEY_GLYPHS)}") from None
