"""Render pipeline: turn a build result into a layout table of graphical cells.

Rendering only reads the build output. Statistics and position adjustments are
never re-run; the only work left is primitive generation, panel and legend
assembly and adornment (titles, background, margins).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ..components.guides import assemble_guides, build_guides
from ..core.diagnostics import DiagnosticKind, DiagnosticLog
from ..core.table import check_table
from ..core.theme import Theme
from ..graphics.cells import CellTable, null, pt, text_height
from ..graphics.primitives import Group, Rects, Texts
from .build import BuildResult

LOGGER = logging.getLogger(__name__)

_TITLE_PAD = 5.5


def render(
    built: BuildResult,
    diagnostics: Optional[DiagnosticLog] = None,
    progress_callback: Optional[Callable[[str, Dict[str, Any]], None]] = None,
) -> CellTable:
    """Render ``built``; the returned table carries the diagnostic log in ``.diagnostics``."""

    def emit(event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(event, payload or {})
        except Exception:
            LOGGER.exception("progress callback failed on '%s'", event)

    diagnostics = diagnostics if diagnostics is not None else built.diagnostics.copy()
    theme = built.spec.theme
    layout = built.layout
    coord = layout.coord

    grobs = []
    for item, data, lp in zip(built.layers, built.data, built.layer_params):
        if not data.empty:
            check_table(data, "render")
        grobs.append(item.draw_geom(data, layout, coord, lp, diagnostics))
    emit("render_layers", {"layers": len(grobs)})

    panels = {}
    for panel in layout.panel_ids():
        panel_params = layout.panel_params[panel]
        children = [coord.render_bg(panel_params, theme)]
        children.extend(layer_grobs[panel] for layer_grobs in grobs)
        children.append(coord.render_fg(panel_params, theme))
        panels[panel] = Group(children, name=f"panel-{panel}")
    table = layout.render(panels, built.labels, theme)
    emit("render_panels", {"panels": len(panels)})

    legends = build_guides(built.scales, list(zip(built.layers, built.layer_params)), built.labels, built.spec.guides)
    boxes = assemble_guides(legends, theme)
    for position, box in boxes.items():
        _add_guide_box(table, box, position, theme)
    emit("render_guides", {"guides": len(legends), "positions": sorted(boxes)})

    _add_titles(table, built.labels, theme)
    _add_background(table, theme)

    removed = diagnostics.removed_rows()
    diagnostics.record(
        DiagnosticKind.stage,
        "render",
        msg="render done",
        cells=len(table.cells),
        removed_rows=removed,
    )
    table.diagnostics = diagnostics
    emit("render_done", {"cells": len(table.cells), "removed_rows": removed})
    return table


def _add_guide_box(table: CellTable, box: CellTable, position: str, theme: Theme) -> None:
    spacing = pt(float(theme.get("legend.box.spacing", 11.0)))
    nrow, ncol = table.dim
    name = f"guide-box-{position}"
    if position == "right":
        table.add_cols([spacing, pt(box.width_pt())], -1)
        table.add_cell(box, 1, table.dim[1], b=nrow, z=float("inf"), name=name)
    elif position == "left":
        table.add_cols([pt(box.width_pt()), spacing], 0)
        table.add_cell(box, 1, 1, b=nrow, z=float("inf"), name=name)
    elif position == "bottom":
        table.add_rows([spacing, pt(box.height_pt())], -1)
        table.add_cell(box, table.dim[0], 1, r=ncol, z=float("inf"), name=name)
    elif position == "top":
        table.add_rows([pt(box.height_pt()), spacing], 0)
        table.add_cell(box, 1, 1, r=ncol, z=float("inf"), name=name)
    else:
        x, y = theme.get("legend.position.inside", [0.95, 0.95])
        holder = CellTable(
            [null(x), pt(box.width_pt()), null(1.0 - x)],
            [null(1.0 - y), pt(box.height_pt()), null(y)],
            name="guide-box-inside-holder",
        )
        holder.add_cell(box, 2, 2, name="guides")
        table.add_cell(holder, 1, 1, b=nrow, r=ncol, z=float("inf"), name=name)


def _add_titles(table: CellTable, labels: Mapping[str, Any], theme: Theme) -> None:
    # Rows are prepended, so the subtitle goes in before the title.
    for key, pos in (("subtitle", 0), ("title", 0), ("caption", -1)):
        text = labels.get(key)
        element = theme.element(f"plot.{key}")
        if text in (None, "") or element is None:
            continue
        fontsize = theme.font_size(f"plot.{key}")
        hjust = float(element.get("hjust", 0.0))
        table.add_rows([pt(text_height(text, fontsize) + _TITLE_PAD)], pos)
        row = 1 if pos == 0 else table.dim[0]
        gp = {"colour": element.get("colour", "black"), "fontsize": fontsize, "hjust": hjust, "vjust": 0.5}
        table.add_cell(Texts([hjust], [0.5], [str(text)], gp=gp, name=key), row, 1, r=table.dim[1], name=key)

    tag = labels.get("tag")
    element = theme.element("plot.tag")
    if tag not in (None, "") and element is not None:
        fontsize = theme.font_size("plot.tag")
        table.add_rows([pt(text_height(tag, fontsize) + _TITLE_PAD)], 0)
        gp = {"colour": element.get("colour", "black"), "fontsize": fontsize, "hjust": 0.0, "vjust": 0.5}
        table.add_cell(Texts([0.0], [0.5], [str(tag)], gp=gp, name="tag"), 1, 1, name="tag")


def _add_background(table: CellTable, theme: Theme) -> None:
    top, right, bottom, left = (float(v) for v in theme.get("plot.margin", [5.5, 5.5, 5.5, 5.5]))
    table.add_rows([pt(top)], 0).add_rows([pt(bottom)], -1)
    table.add_cols([pt(left)], 0).add_cols([pt(right)], -1)
    element = theme.element("plot.background")
    if element is None:
        return
    nrow, ncol = table.dim
    gp = {"fill": element.get("fill"), "colour": element.get("colour")}
    background = Rects([0.0], [0.0], [1.0], [1.0], gp=gp, name="plot-background")
    table.add_cell(background, 1, 1, b=nrow, r=ncol, z=float("-inf"), name="background")
