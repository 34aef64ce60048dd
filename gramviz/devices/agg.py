"""Reference drawing device: a layout table of cells to PNG bytes with matplotlib Agg.

Every cell holding a primitive tree gets its own axes spanning the cell, with data
coordinates 0-1 on both axes. Nested cell tables are laid out inside their cell.
"""

from __future__ import annotations

import io
import logging
import math
import re
from typing import Any, List, Optional, Tuple

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure
from matplotlib.patches import Polygon, Rectangle

from ..graphics.cells import CellTable, resolve_sizes
from ..graphics.primitives import Group, Lines, Points, Polygons, Primitive, Rects, Segments, Texts

LOGGER = logging.getLogger(__name__)

PT_PER_MM = 72.27 / 25.4
_GREY = re.compile(r"^gr[ae]y(\d{1,3})$")
_LINETYPES = {
    "solid": "-",
    "dashed": "--",
    "dotted": ":",
    "dashdot": "-.",
    "longdash": (0, (10, 3)),
    "twodash": (0, (6, 2, 2, 2)),
    "blank": "None",
}

Extent = Tuple[float, float, float, float]


def _pick(value: Any, i: int, default: Any = None) -> Any:
    if isinstance(value, (tuple, list, np.ndarray)):
        if not len(value):
            return default
        value = value[i % len(value)]
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return default
    return value


def _colour(value: Any, alpha: Any = None) -> Any:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "none"
    if isinstance(value, str):
        match = _GREY.match(value.lower())
        if match:
            value = str(min(int(match.group(1)), 100) / 100.0)
    return to_rgba(value, alpha=None if alpha is None else float(alpha))


def _linetype(value: Any) -> Any:
    if isinstance(value, (int, np.integer)):
        return list(_LINETYPES.values())[int(value) % len(_LINETYPES)]
    return _LINETYPES.get(str(value), "-")


def _lw(value: Any) -> float:
    return float(value if value is not None else 0.5) * PT_PER_MM


def _family(value: Any) -> str:
    if value in (None, "", "sans"):
        return "sans-serif"
    return str(value)


def _align(hjust: float, vjust: float) -> Tuple[str, str]:
    ha = "left" if hjust <= 0.25 else "right" if hjust >= 0.75 else "center"
    va = "bottom" if vjust <= 0.25 else "top" if vjust >= 0.75 else "center"
    return ha, va


class AggDevice:
    """Draw cell tables on a matplotlib Agg canvas."""

    def __init__(self, width_in: float = 7.0, height_in: float = 5.0, dpi: int = 100) -> None:
        self.width_in = width_in
        self.height_in = height_in
        self.dpi = dpi
        self._zorder = 0

    def draw(self, table: CellTable) -> bytes:
        figure = Figure(figsize=(self.width_in, self.height_in), dpi=self.dpi)
        FigureCanvasAgg(figure)
        total = (self.width_in * 72.0, self.height_in * 72.0)
        self._zorder = 0
        self._draw_table(figure, table, (0.0, 0.0, total[0], total[1]), total)
        buffer = io.BytesIO()
        figure.savefig(buffer, format="png", dpi=self.dpi)
        LOGGER.debug("drew %s at %.1fx%.1f in (%d dpi)", table.name, self.width_in, self.height_in, self.dpi)
        return buffer.getvalue()

    def _draw_table(self, figure: Figure, table: CellTable, extent: Extent, total: Tuple[float, float]) -> None:
        # extent is (left, top, width, height) in points, measured from the top-left corner.
        left, top, width, height = extent
        widths = resolve_sizes(table.widths, width)
        heights = resolve_sizes(table.heights, height)
        col_edges = np.concatenate([[0.0], np.cumsum(widths)]) + left
        row_edges = np.concatenate([[0.0], np.cumsum(heights)]) + top
        for cell in table.draw_order():
            cell_extent = (
                col_edges[cell.l - 1],
                row_edges[cell.t - 1],
                col_edges[cell.r] - col_edges[cell.l - 1],
                row_edges[cell.b] - row_edges[cell.t - 1],
            )
            if cell_extent[2] <= 0 or cell_extent[3] <= 0:
                continue
            if isinstance(cell.content, CellTable):
                self._draw_table(figure, cell.content, cell_extent, total)
            else:
                self._draw_cell(figure, cell.content, cell_extent, total, cell.clip)

    def _draw_cell(self, figure: Figure, content: Primitive, extent: Extent, total: Tuple[float, float], clip: bool) -> None:
        left, top, width, height = extent
        rect = [left / total[0], 1.0 - (top + height) / total[1], width / total[0], height / total[1]]
        ax = figure.add_axes(rect)
        ax.set_xlim(0.0, 1.0)
        ax.set_ylim(0.0, 1.0)
        ax.set_autoscale_on(False)
        ax.set_axis_off()
        ax.patch.set_visible(False)
        self._zorder += 1
        ax.set_zorder(self._zorder)
        for artist in self._draw_primitive(ax, content):
            artist.set_clip_on(clip)

    def _draw_primitive(self, ax: Any, grob: Primitive) -> List[Any]:
        if isinstance(grob, Group):
            artists: List[Any] = []
            for child in grob.children:
                artists.extend(self._draw_primitive(ax, child))
            return artists
        if grob.is_empty():
            return []
        handler = {
            Points: self._points,
            Lines: self._lines,
            Segments: self._segments,
            Polygons: self._polygons,
            Rects: self._rects,
            Texts: self._texts,
        }.get(type(grob))
        if handler is None:
            raise TypeError(f"no drawing routine for primitive {type(grob).__name__}")
        return handler(ax, grob)

    def _points(self, ax: Any, grob: Points) -> List[Any]:
        gp = grob.gp
        artists = []
        for i, (x, y) in enumerate(zip(grob.x, grob.y)):
            alpha = _pick(gp.get("alpha"), i)
            size = float(_pick(gp.get("size"), i, 1.5)) * PT_PER_MM
            artists.extend(
                ax.plot(
                    [x],
                    [y],
                    linestyle="None",
                    marker=_pick(gp.get("shape"), i, "o"),
                    markersize=size,
                    markerfacecolor=_colour(_pick(gp.get("fill"), i, _pick(gp.get("colour"), i, "black")), alpha),
                    markeredgecolor=_colour(_pick(gp.get("colour"), i, "black"), alpha),
                    markeredgewidth=float(_pick(gp.get("stroke"), i, 0.5)),
                )
            )
        return artists

    def _lines(self, ax: Any, grob: Lines) -> List[Any]:
        gp = grob.gp
        ids = np.asarray(grob.id)
        x, y = np.asarray(grob.x, dtype=float), np.asarray(grob.y, dtype=float)
        artists = []
        for i, line_id in enumerate(dict.fromkeys(ids.tolist())):
            rows = ids == line_id
            artists.extend(
                ax.plot(
                    x[rows],
                    y[rows],
                    color=_colour(_pick(gp.get("colour"), i, "black"), _pick(gp.get("alpha"), i)),
                    linewidth=_lw(_pick(gp.get("linewidth"), i, 0.5)),
                    linestyle=_linetype(_pick(gp.get("linetype"), i, "solid")),
                )
            )
        return artists

    def _segments(self, ax: Any, grob: Segments) -> List[Any]:
        gp = grob.gp
        n = grob.size()
        lines = [[(grob.x0[i], grob.y0[i]), (grob.x1[i], grob.y1[i])] for i in range(n)]
        collection = LineCollection(
            lines,
            colors=[_colour(_pick(gp.get("colour"), i, "black"), _pick(gp.get("alpha"), i)) for i in range(n)],
            linewidths=[_lw(_pick(gp.get("linewidth"), i, 0.5)) for i in range(n)],
            linestyles=[_linetype(_pick(gp.get("linetype"), i, "solid")) for i in range(n)],
        )
        ax.add_collection(collection)
        return [collection]

    def _polygons(self, ax: Any, grob: Polygons) -> List[Any]:
        gp = grob.gp
        ids = np.asarray(grob.id)
        xy = np.column_stack([np.asarray(grob.x, dtype=float), np.asarray(grob.y, dtype=float)])
        artists = []
        for i, poly_id in enumerate(dict.fromkeys(ids.tolist())):
            alpha = _pick(gp.get("alpha"), i)
            patch = Polygon(
                xy[ids == poly_id],
                closed=True,
                facecolor=_colour(_pick(gp.get("fill"), i), alpha),
                edgecolor=_colour(_pick(gp.get("colour"), i)),
                linewidth=_lw(_pick(gp.get("linewidth"), i, 0.5)),
                linestyle=_linetype(_pick(gp.get("linetype"), i, "solid")),
            )
            ax.add_patch(patch)
            artists.append(patch)
        return artists

    def _rects(self, ax: Any, grob: Rects) -> List[Any]:
        gp = grob.gp
        artists = []
        for i in range(grob.size()):
            alpha = _pick(gp.get("alpha"), i)
            patch = Rectangle(
                (grob.x[i], grob.y[i]),
                grob.width[i],
                grob.height[i],
                facecolor=_colour(_pick(gp.get("fill"), i), alpha),
                edgecolor=_colour(_pick(gp.get("colour"), i)),
                linewidth=_lw(_pick(gp.get("linewidth"), i, 0.5)),
                linestyle=_linetype(_pick(gp.get("linetype"), i, "solid")),
            )
            ax.add_patch(patch)
            artists.append(patch)
        return artists

    def _texts(self, ax: Any, grob: Texts) -> List[Any]:
        gp = grob.gp
        artists = []
        for i, (x, y, label) in enumerate(zip(grob.x, grob.y, grob.label)):
            ha, va = _align(float(_pick(gp.get("hjust"), i, 0.5)), float(_pick(gp.get("vjust"), i, 0.5)))
            artists.append(
                ax.text(
                    x,
                    y,
                    str(label),
                    ha=ha,
                    va=va,
                    rotation=float(_pick(gp.get("angle"), i, 0.0)),
                    fontsize=float(_pick(gp.get("fontsize"), i, 11.0)),
                    color=_colour(_pick(gp.get("colour"), i, "black"), _pick(gp.get("alpha"), i)),
                    family=_family(_pick(gp.get("family"), i)),
                )
            )
        return artists


def draw_png(table: CellTable, width_in: float = 7.0, height_in: float = 5.0, dpi: int = 100, path: Optional[str] = None) -> bytes:
    """Draw ``table`` to PNG bytes; also write them to ``path`` when given."""

    data = AggDevice(width_in, height_in, dpi).draw(table)
    if path is not None:
        with open(path, "wb") as handle:
            handle.write(data)
    return data
