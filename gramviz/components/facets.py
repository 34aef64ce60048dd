"""Faceting strategies.

A facet computes the panel layout (one row per panel with its grid position and the
index of the x/y scale it uses), maps every layer row onto a panel, trains the
per-panel position scales and finally arranges the drawn panels, axes and strips
into a :class:`~gramviz.graphics.cells.CellTable`.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.errors import SpecificationError
from ..core.proto import Proto, delegate
from ..core.table import PANEL
from ..core.theme import Theme
from ..graphics.cells import CellTable, null, pt, text_height
from ..graphics.primitives import Group, Primitive, Rects, Texts, empty
from .coords import AxisGrob, Coord, PanelParams
from .scales import X_AESTHETICS, Y_AESTHETICS, TrainedScale

LAYOUT_COLUMNS = (PANEL, "ROW", "COL", "SCALE_X", "SCALE_Y")
SCALES = ("fixed", "free", "free_x", "free_y")

_STRIP_PAD = 4.4


def _key(value: Any) -> Hashable:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return value


def _levels(values: pd.Series) -> List[Any]:
    if isinstance(values.dtype, pd.CategoricalDtype):
        return [level for level in values.cat.categories if level in set(values.dropna())]
    unique = pd.unique(values.dropna())
    try:
        return sorted(unique)
    except TypeError:
        return sorted(unique, key=str)


def combine_vars(data: Sequence[pd.DataFrame], facets: Sequence[str], drop: bool = True) -> pd.DataFrame:
    """Sorted unique combinations of the facet variables across all layer tables."""

    if not facets:
        return pd.DataFrame()
    complete = [df for df in data if df is not None and all(var in df.columns for var in facets)]
    if not complete:
        raise SpecificationError(
            f"At least one layer must contain all faceting variables: {', '.join(facets)}"
        )
    combos = pd.concat([df[list(facets)] for df in complete], ignore_index=True).drop_duplicates()
    if not drop:
        grids = [_levels(combos[var]) for var in facets]
        index = pd.MultiIndex.from_product(grids, names=list(facets))
        return index.to_frame(index=False)
    sort_keys = []
    for var in facets:
        order = {level: i for i, level in enumerate(_levels(combos[var]))}
        sort_keys.append(combos[var].map(order))
    order = np.lexsort([keys.to_numpy() for keys in reversed(sort_keys)])
    return combos.iloc[order].reset_index(drop=True)


def map_facet_data(data: pd.DataFrame, layout: pd.DataFrame, facets: Sequence[str]) -> pd.DataFrame:
    """Attach ``PANEL`` by the row's facet values.

    Tables lacking some facet variables are repeated for every value of the missing
    ones, so they show up in each of those panels.
    """

    if data is None:
        return data
    if data.empty:
        return data.assign(**{PANEL: pd.Series(dtype=int)})
    missing = [var for var in facets if var not in data.columns]
    if missing:
        extra = layout[missing].drop_duplicates().reset_index(drop=True)
        data = extra.merge(data, how="cross")
    lookup = {
        tuple(_key(v) for v in row): panel
        for row, panel in zip(layout[list(facets)].itertuples(index=False, name=None), layout[PANEL])
    }
    panels = [
        lookup.get(tuple(_key(v) for v in combo))
        for combo in data[list(facets)].itertuples(index=False, name=None)
    ]
    out = data.reset_index(drop=True)
    out[PANEL] = pd.array(panels, dtype="Int64")
    out = out[out[PANEL].notna()].reset_index(drop=True)
    out[PANEL] = out[PANEL].astype(int)
    return out


def wrap_dims(n: int, nrow: Optional[int] = None, ncol: Optional[int] = None) -> Tuple[int, int]:
    if nrow is None and ncol is None:
        if n <= 3:
            rows, cols = n, 1
        elif n <= 6:
            rows, cols = (n + 1) // 2, 2
        elif n <= 12:
            rows, cols = (n + 2) // 3, 3
        else:
            rows = math.ceil(math.sqrt(n))
            cols = math.ceil(n / rows)
        # Transposed so that few panels are laid out side by side.
        nrow, ncol = cols, rows
    elif ncol is None:
        ncol = math.ceil(n / nrow)
    elif nrow is None:
        nrow = math.ceil(n / ncol)
    if nrow * ncol < n:
        raise SpecificationError(f"need {n} panels, but together nrow and ncol give only {nrow * ncol}")
    return nrow, ncol


def _strip(label: str, theme: Theme, horizontal: bool = True) -> Tuple[Primitive, float]:
    text_el = theme.element("strip.text")
    if text_el is None:
        return empty("strip"), 0.0
    fontsize = theme.font_size("strip.text")
    background = theme.element("strip.background")
    children: List[Optional[Primitive]] = []
    if background is not None:
        children.append(
            Rects([0.0], [0.0], [1.0], [1.0], gp={"fill": background.get("fill"), "colour": background.get("colour")}, name="strip-background")
        )
    gp = {"colour": text_el.get("colour", "#1A1A1A"), "fontsize": fontsize, "hjust": 0.5, "vjust": 0.5, "angle": 0.0 if horizontal else -90.0}
    children.append(Texts([0.5], [0.5], [label], gp=gp, name="strip-text"))
    return Group(children, name="strip"), text_height(label, fontsize) + 2 * _STRIP_PAD


class Facet(Proto):
    """Panel layout strategy."""

    call = "facet"
    shrink = True
    scales = "fixed"

    def validate_params(self) -> None:
        if self.scales not in SCALES:
            raise SpecificationError(f"{self.call}: scales must be one of {SCALES}, got {self.scales!r}")

    def free(self) -> Dict[str, bool]:
        return {
            "x": self.scales in ("free", "free_x"),
            "y": self.scales in ("free", "free_y"),
        }

    def vars(self) -> List[str]:
        return []

    def setup_params(self, data: Sequence[pd.DataFrame]) -> Dict[str, Any]:
        return {"free": self.free(), "facets": self.vars()}

    def setup_data(self, data: List[pd.DataFrame], params: Mapping[str, Any]) -> List[pd.DataFrame]:
        return data

    def compute_layout(self, data: Sequence[pd.DataFrame], params: Mapping[str, Any]) -> pd.DataFrame:
        raise NotImplementedError

    def map_data(self, data: pd.DataFrame, layout: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return map_facet_data(data, layout, params["facets"])

    def init_scales(
        self, layout: pd.DataFrame, x_scale: Optional[TrainedScale], y_scale: Optional[TrainedScale], params: Mapping[str, Any]
    ) -> Dict[str, List[TrainedScale]]:
        scales: Dict[str, List[TrainedScale]] = {}
        if x_scale is not None:
            scales["x"] = [x_scale.clone() for _ in range(int(layout["SCALE_X"].max()))]
        if y_scale is not None:
            scales["y"] = [y_scale.clone() for _ in range(int(layout["SCALE_Y"].max()))]
        return scales

    def train_scales(
        self,
        x_scales: Optional[List[TrainedScale]],
        y_scales: Optional[List[TrainedScale]],
        layout: pd.DataFrame,
        data: Sequence[pd.DataFrame],
        params: Mapping[str, Any],
    ) -> None:
        for layer_data in data:
            if layer_data is None or layer_data.empty:
                continue
            match = layout.set_index(PANEL).loc[layer_data[PANEL].to_numpy()]
            for scales, index_col, family in ((x_scales, "SCALE_X", X_AESTHETICS), (y_scales, "SCALE_Y", Y_AESTHETICS)):
                if not scales:
                    continue
                columns = [col for col in layer_data.columns if col in family]
                if not columns:
                    continue
                index = match[index_col].to_numpy()
                for i, scale in enumerate(scales, start=1):
                    rows = index == i
                    if not rows.any():
                        continue
                    for column in columns:
                        scale.train(layer_data.loc[rows, column])

    def finish_data(
        self,
        data: pd.DataFrame,
        layout: pd.DataFrame,
        x_scales: Optional[List[TrainedScale]],
        y_scales: Optional[List[TrainedScale]],
        params: Mapping[str, Any],
    ) -> pd.DataFrame:
        return data

    def strip_labels(self, layout: pd.DataFrame, variables: Sequence[str]) -> List[str]:
        labels = []
        for _, row in layout.iterrows():
            labels.append(", ".join(str(row[var]) for var in variables))
        return labels

    def draw_panels(
        self,
        panels: Mapping[int, Primitive],
        layout: pd.DataFrame,
        panel_params: Mapping[int, PanelParams],
        coord: Coord,
        theme: Theme,
        params: Mapping[str, Any],
    ) -> CellTable:
        return _assemble(panels, layout, panel_params, coord, theme, params.get("free", self.free()), {}, {}, {})


def _assemble(
    panels: Mapping[int, Primitive],
    layout: pd.DataFrame,
    panel_params: Mapping[int, PanelParams],
    coord: Coord,
    theme: Theme,
    free: Mapping[str, bool],
    top_strips: Mapping[int, str],
    col_strips: Mapping[int, str],
    row_strips: Mapping[int, str],
) -> CellTable:
    """Arrange panels on a grid.

    Each panel slot is four table rows (strip, panel, axis, spacing) by four table
    columns (axis, panel, strip, spacing); unused rows and columns have zero size.
    """

    nrow = int(layout["ROW"].max())
    ncol = int(layout["COL"].max())
    occupied = {(int(r), int(c)) for r, c in zip(layout["ROW"], layout["COL"])}
    spacing = float(theme.get("panel.spacing", 5.5))

    axes_b: Dict[Tuple[int, int], AxisGrob] = {}
    axes_l: Dict[Tuple[int, int], AxisGrob] = {}
    strips_t: Dict[Tuple[int, int], Tuple[Primitive, float]] = {}
    strips_r: Dict[int, Tuple[Primitive, float]] = {}
    for _, row in layout.iterrows():
        panel, r, c = int(row[PANEL]), int(row["ROW"]), int(row["COL"])
        params = panel_params[panel]
        if free.get("x") or (r + 1, c) not in occupied:
            axes_b[(r, c)] = coord.render_axis_h(params, theme)["bottom"]
        if free.get("y") or c == 1:
            axes_l[(r, c)] = coord.render_axis_v(params, theme)["left"]
        if panel in top_strips:
            strips_t[(r, c)] = _strip(top_strips[panel], theme)
        elif r == 1 and c in col_strips:
            strips_t[(r, c)] = _strip(col_strips[c], theme)
        if c == ncol and r in row_strips:
            strips_r[r] = _strip(row_strips[r], theme, horizontal=False)

    heights = []
    for r in range(1, nrow + 1):
        strip_h = max((strips_t[(r, c)][1] for c in range(1, ncol + 1) if (r, c) in strips_t), default=0.0)
        axis_h = max((axes_b[(r, c)].size for c in range(1, ncol + 1) if (r, c) in axes_b), default=0.0)
        heights += [pt(strip_h), null(1.0), pt(axis_h)]
        if r < nrow:
            heights.append(pt(spacing))
    widths = []
    for c in range(1, ncol + 1):
        axis_w = max((axes_l[(r, c)].size for r in range(1, nrow + 1) if (r, c) in axes_l), default=0.0)
        strip_w = max((strip[1] for r, strip in strips_r.items()), default=0.0) if c == ncol else 0.0
        widths += [pt(axis_w), null(1.0), pt(strip_w)]
        if c < ncol:
            widths.append(pt(spacing))

    table = CellTable(widths, heights, name="panels")
    for _, row in layout.iterrows():
        panel, r, c = int(row[PANEL]), int(row["ROW"]), int(row["COL"])
        top = (r - 1) * 4 + 1
        left = (c - 1) * 4 + 1
        table.add_cell(panels[panel], top + 1, left + 1, z=1, name=f"panel-{r}-{c}", clip=coord.clip == "on")
        if (r, c) in axes_b:
            table.add_cell(axes_b[(r, c)].content, top + 2, left + 1, z=3, name=f"axis-b-{r}-{c}")
        if (r, c) in axes_l:
            table.add_cell(axes_l[(r, c)].content, top + 1, left, z=3, name=f"axis-l-{r}-{c}")
        if (r, c) in strips_t:
            table.add_cell(strips_t[(r, c)][0], top, left + 1, z=2, name=f"strip-t-{r}-{c}")
        if c == ncol and r in strips_r:
            table.add_cell(strips_r[r][0], top + 1, left + 2, z=2, name=f"strip-r-{r}")
    return table


class FacetNull(Facet):
    call = "facet_null"

    def compute_layout(self, data: Sequence[pd.DataFrame], params: Mapping[str, Any]) -> pd.DataFrame:
        return pd.DataFrame({PANEL: [1], "ROW": [1], "COL": [1], "SCALE_X": [1], "SCALE_Y": [1]})

    def map_data(self, data: pd.DataFrame, layout: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data is None:
            return data
        return data.assign(**{PANEL: np.ones(len(data), dtype=int)})


class FacetWrap(Facet):
    """Wrap a 1d ribbon of panels into 2d."""

    call = "facet_wrap"
    facets: Tuple[str, ...] = ()
    nrow: Optional[int] = None
    ncol: Optional[int] = None
    dir = "h"
    drop = True

    def validate_params(self) -> None:
        delegate(Facet, self).validate_params()
        if not self.facets:
            raise SpecificationError("facet_wrap needs at least one faceting variable")
        for name in ("nrow", "ncol"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, (int, np.integer)) or value < 1):
                raise SpecificationError(f"facet_wrap: {name} must be a positive integer, got {value!r}")
        if self.dir not in ("h", "v"):
            raise SpecificationError("facet_wrap: dir must be 'h' or 'v'")

    def vars(self) -> List[str]:
        return list(self.facets)

    def compute_layout(self, data: Sequence[pd.DataFrame], params: Mapping[str, Any]) -> pd.DataFrame:
        base = combine_vars(data, self.vars(), drop=self.drop)
        n = len(base)
        nrow, ncol = wrap_dims(n, self.nrow, self.ncol)
        index = np.arange(n)
        if self.dir == "h":
            rows, cols = index // ncol + 1, index % ncol + 1
        else:
            rows, cols = index % nrow + 1, index // nrow + 1
        free = params["free"]
        panels = index + 1
        layout = pd.DataFrame(
            {
                PANEL: panels,
                "ROW": rows,
                "COL": cols,
                "SCALE_X": panels if free["x"] else np.ones(n, dtype=int),
                "SCALE_Y": panels if free["y"] else np.ones(n, dtype=int),
            }
        )
        return pd.concat([layout, base], axis=1)

    def draw_panels(
        self,
        panels: Mapping[int, Primitive],
        layout: pd.DataFrame,
        panel_params: Mapping[int, PanelParams],
        coord: Coord,
        theme: Theme,
        params: Mapping[str, Any],
    ) -> CellTable:
        labels = dict(zip(layout[PANEL].astype(int), self.strip_labels(layout, self.vars())))
        return _assemble(panels, layout, panel_params, coord, theme, params["free"], labels, {}, {})


class FacetGrid(Facet):
    """Panels on a rows x cols grid of facet variables."""

    call = "facet_grid"
    rows: Tuple[str, ...] = ()
    cols: Tuple[str, ...] = ()

    def validate_params(self) -> None:
        delegate(Facet, self).validate_params()
        if not self.rows and not self.cols:
            raise SpecificationError("facet_grid needs row or column faceting variables")
        overlap = set(self.rows) & set(self.cols)
        if overlap:
            raise SpecificationError(f"facet_grid: variables used for both rows and columns: {sorted(overlap)}")

    def vars(self) -> List[str]:
        return list(self.rows) + list(self.cols)

    def compute_layout(self, data: Sequence[pd.DataFrame], params: Mapping[str, Any]) -> pd.DataFrame:
        row_base = combine_vars(data, self.rows)
        col_base = combine_vars(data, self.cols)
        n_rows = max(len(row_base), 1)
        n_cols = max(len(col_base), 1)
        rows = np.repeat(np.arange(1, n_rows + 1), n_cols)
        cols = np.tile(np.arange(1, n_cols + 1), n_rows)
        free = params["free"]
        layout = pd.DataFrame(
            {
                PANEL: np.arange(1, n_rows * n_cols + 1),
                "ROW": rows,
                "COL": cols,
                "SCALE_X": cols if free["x"] else np.ones(len(cols), dtype=int),
                "SCALE_Y": rows if free["y"] else np.ones(len(rows), dtype=int),
            }
        )
        if len(row_base):
            layout = pd.concat([layout, row_base.iloc[rows - 1].reset_index(drop=True)], axis=1)
        if len(col_base):
            layout = pd.concat([layout, col_base.iloc[cols - 1].reset_index(drop=True)], axis=1)
        return layout

    def draw_panels(
        self,
        panels: Mapping[int, Primitive],
        layout: pd.DataFrame,
        panel_params: Mapping[int, PanelParams],
        coord: Coord,
        theme: Theme,
        params: Mapping[str, Any],
    ) -> CellTable:
        first_row = layout[layout["ROW"] == 1]
        last_col = layout[layout["COL"] == layout["COL"].max()]
        col_strips = dict(zip(first_row["COL"].astype(int), self.strip_labels(first_row, self.cols))) if self.cols else {}
        row_strips = dict(zip(last_col["ROW"].astype(int), self.strip_labels(last_col, self.rows))) if self.rows else {}
        return _assemble(panels, layout, panel_params, coord, theme, params["free"], {}, col_strips, row_strips)


def _as_vars(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.replace("~", "+").split("+") if part.strip() and part.strip() != ".")
    return tuple(value)


def facet_null() -> Facet:
    return FacetNull()


def facet_wrap(
    facets: Any,
    nrow: Optional[int] = None,
    ncol: Optional[int] = None,
    scales: str = "fixed",
    dir: str = "h",
    drop: bool = True,
) -> Facet:
    facet = FacetWrap(facets=_as_vars(facets), nrow=nrow, ncol=ncol, scales=scales, dir=dir, drop=drop)
    facet.validate_params()
    return facet


def facet_grid(rows: Any = None, cols: Any = None, scales: str = "fixed") -> Facet:
    facet = FacetGrid(rows=_as_vars(rows), cols=_as_vars(cols), scales=scales)
    facet.validate_params()
    return facet
