"""Layout: the per-build pairing of a coordinate system and a facet.

The layout owns everything panel-shaped during one build: the panel table computed
by the facet, the per-panel position scales (one per ``SCALE_X``/``SCALE_Y`` index)
and the panel parameters the coordinate system derives from them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..components.coords import Coord, PanelParams
from ..components.facets import LAYOUT_COLUMNS, Facet
from ..components.scales import X_AESTHETICS, Y_AESTHETICS, TrainedScale
from ..core.errors import TableContractError
from ..core.table import PANEL
from ..core.theme import Theme
from ..graphics.cells import CellTable, pt, text_height
from ..graphics.primitives import Primitive, Texts

LOGGER = logging.getLogger(__name__)

_TITLE_MARGIN = 2.75


class Layout:
    def __init__(self, coord: Coord, facet: Facet) -> None:
        self.coord = coord
        self.facet = facet
        self.coord_params: Dict[str, Any] = {}
        self.facet_params: Dict[str, Any] = {}
        self.layout: Optional[pd.DataFrame] = None
        self.panel_scales_x: Optional[List[TrainedScale]] = None
        self.panel_scales_y: Optional[List[TrainedScale]] = None
        self.panel_params: Dict[int, PanelParams] = {}

    def setup(self, data: Sequence[pd.DataFrame], plot_data: Optional[pd.DataFrame] = None) -> List[pd.DataFrame]:
        """Compute the panel layout and attach ``PANEL`` to every layer table."""

        frames = [plot_data if plot_data is not None else pd.DataFrame()] + list(data)
        self.facet_params = self.facet.setup_params(frames)
        frames = self.facet.setup_data(frames, self.facet_params)
        self.coord_params = self.coord.setup_params(frames)
        frames = self.coord.setup_data(frames, self.coord_params)
        layout = self.facet.compute_layout(frames, self.facet_params)
        layout = self.coord.setup_layout(layout, self.coord_params)
        missing = [column for column in LAYOUT_COLUMNS if column not in layout.columns]
        if missing:
            raise TableContractError(f"{self.facet.call} layout is missing column(s): {', '.join(missing)}")
        self.layout = layout.reset_index(drop=True)
        LOGGER.debug("layout has %d panel(s)", len(self.layout))
        return [self.facet.map_data(frame, self.layout, self.facet_params) for frame in frames[1:]]

    def panel_ids(self) -> List[int]:
        return [int(panel) for panel in self.layout[PANEL]]

    def train_position(
        self, data: Sequence[pd.DataFrame], x_scale: Optional[TrainedScale], y_scale: Optional[TrainedScale]
    ) -> None:
        if self.panel_scales_x is None and x_scale is not None:
            self.panel_scales_x = self.facet.init_scales(self.layout, x_scale, None, self.facet_params)["x"]
        if self.panel_scales_y is None and y_scale is not None:
            self.panel_scales_y = self.facet.init_scales(self.layout, None, y_scale, self.facet_params)["y"]
        self.facet.train_scales(self.panel_scales_x, self.panel_scales_y, self.layout, data, self.facet_params)

    def map_position(self, data: Sequence[pd.DataFrame]) -> List[pd.DataFrame]:
        return [self._map_layer(frame) for frame in data]

    def _map_layer(self, data: pd.DataFrame) -> pd.DataFrame:
        if data.empty:
            return data
        match = self.layout.set_index(PANEL).loc[data[PANEL].to_numpy()]
        out = data.copy()
        for scales, index_col, family in (
            (self.panel_scales_x, "SCALE_X", X_AESTHETICS),
            (self.panel_scales_y, "SCALE_Y", Y_AESTHETICS),
        ):
            if not scales:
                continue
            index = match[index_col].to_numpy()
            for column in [col for col in data.columns if col in family]:
                mapped = np.full(len(data), np.nan)
                for i, scale in enumerate(scales, start=1):
                    rows = index == i
                    if rows.any():
                        mapped[rows] = np.asarray(scale.map(data.loc[rows, column]), dtype=float)
                out[column] = mapped
        return out

    def reset_scales(self) -> None:
        for scale in (self.panel_scales_x or []) + (self.panel_scales_y or []):
            scale.reset()

    def setup_panel_params(self) -> None:
        self.panel_params = {}
        for _, row in self.layout.iterrows():
            scale_x = self.panel_scales_x[int(row["SCALE_X"]) - 1]
            scale_y = self.panel_scales_y[int(row["SCALE_Y"]) - 1]
            self.panel_params[int(row[PANEL])] = self.coord.setup_panel_params(scale_x, scale_y, self.coord_params)

    def finish_data(self, data: Sequence[pd.DataFrame]) -> List[pd.DataFrame]:
        return [
            self.facet.finish_data(frame, self.layout, self.panel_scales_x, self.panel_scales_y, self.facet_params)
            for frame in data
        ]

    def get_scales(self, panel: int) -> Dict[str, Optional[TrainedScale]]:
        row = self.layout[self.layout[PANEL] == panel].iloc[0]
        return {
            "x": self.panel_scales_x[int(row["SCALE_X"]) - 1] if self.panel_scales_x else None,
            "y": self.panel_scales_y[int(row["SCALE_Y"]) - 1] if self.panel_scales_y else None,
        }

    def freeze(self) -> None:
        for scale in (self.panel_scales_x or []) + (self.panel_scales_y or []):
            scale.freeze()

    def range_summary(self) -> Dict[str, List[List[float]]]:
        """Unexpanded continuous range of every panel scale."""

        return {
            "x": [list(scale.dimension(expand=(0.0, 0.0))) for scale in self.panel_scales_x or []],
            "y": [list(scale.dimension(expand=(0.0, 0.0))) for scale in self.panel_scales_y or []],
        }

    def resolve_label(self, aesthetic: str, labels: Mapping[str, Any]) -> Any:
        scales = self.panel_scales_x if aesthetic == "x" else self.panel_scales_y
        fallback = labels.get(aesthetic)
        if not scales:
            return fallback
        return scales[0].make_title(fallback)

    def render(self, panels: Mapping[int, Primitive], labels: Mapping[str, Any], theme: Theme) -> CellTable:
        """Facet panels plus the axis titles."""

        table = self.facet.draw_panels(panels, self.layout, self.panel_params, self.coord, theme, self.facet_params)
        titles = self.coord.labels(
            {"x": self.resolve_label("x", labels), "y": self.resolve_label("y", labels)},
            self.panel_params.get(1),
        )
        element = theme.element("axis.title")
        if element is None:
            return table
        fontsize = theme.font_size("axis.title")
        gp = {"colour": element.get("colour", "black"), "fontsize": fontsize, "hjust": 0.5, "vjust": 0.5}
        xlab, ylab = titles.get("x"), titles.get("y")
        if xlab not in (None, ""):
            table.add_rows([pt(text_height(xlab, fontsize) + _TITLE_MARGIN)], -1)
            nrow, ncol = table.dim
            table.add_cell(Texts([0.5], [0.5], [str(xlab)], gp=gp, name="xlab"), nrow, 1, r=ncol, name="xlab-b")
        if ylab not in (None, ""):
            rows = table.dim[0] - (1 if xlab not in (None, "") else 0)
            table.add_cols([pt(text_height(ylab, fontsize) + _TITLE_MARGIN)], 0)
            table.add_cell(
                Texts([0.5], [0.5], [str(ylab)], gp={**gp, "angle": 90.0}, name="ylab"), 1, 1, b=rows, name="ylab-l"
            )
        return table
