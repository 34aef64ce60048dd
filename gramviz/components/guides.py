"""Legends.

Every non-position scale that asks for a guide trains one from its breaks. Guides
whose title, labels, direction and kind agree are merged, so a single legend can
show several aesthetics driven by the same variable. Each merged legend then asks
every layer that uses one of its aesthetics for a key glyph per key and overlays
them. Legends are finally packed into one box per legend position.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.errors import GramvizWarning, SpecificationError
from ..core.proto import Proto, delegate
from ..core.theme import LEGEND_POSITIONS, Theme
from ..graphics.cells import CellTable, pt, text_height, text_width
from ..graphics.primitives import Group, Primitive, Rects, Segments, Texts
from ..pipeline.aes import AFTER_SCALE
from .keys import as_key_glyph
from .scales import ScaleSet, TrainedScale

LOGGER = logging.getLogger(__name__)

_GAP = 5.5


def _key_frame(scale: TrainedScale, aesthetic: str) -> Optional[pd.DataFrame]:
    breaks = scale.get_breaks()
    if breaks is None or len(breaks) == 0:
        return None
    if scale.is_discrete():
        values = pd.Series(list(breaks), dtype=object)
    else:
        values = pd.Series(np.asarray(breaks, dtype=float))
    labels = scale.get_labels(breaks)
    return pd.DataFrame({aesthetic: scale.map(values), ".value": list(values), ".label": labels})


def _text(label: Any, element: Mapping[str, Any], fontsize: float, name: str, hjust: float = 0.0) -> Primitive:
    gp = {"colour": element.get("colour", "black"), "fontsize": fontsize, "hjust": hjust, "vjust": 0.5}
    return Texts([hjust], [0.5], [str(label)], gp=gp, name=name)


def _title(params: Mapping[str, Any], theme: Theme) -> Tuple[Optional[Primitive], float, float]:
    element = theme.element("legend.title")
    title = params.get("title")
    if element is None or title is None or title == "":
        return None, 0.0, 0.0
    fontsize = theme.font_size("legend.title")
    return _text(title, element, fontsize, "title"), text_width(title, fontsize), text_height(title, fontsize)


class Guide(Proto):
    """A legend-like guide trained from one scale."""

    call = "guide"
    name = "guide"
    title: Any = None
    position: Optional[str] = None
    direction: Optional[str] = None
    reverse = False
    order = 0

    def validate_params(self) -> None:
        if self.position is not None and self.position not in LEGEND_POSITIONS:
            raise SpecificationError(f"{self.call}: position must be one of {LEGEND_POSITIONS}, got {self.position!r}")
        if self.direction not in (None, "horizontal", "vertical"):
            raise SpecificationError(f"{self.call}: direction must be 'horizontal' or 'vertical'")

    def train(self, scale: TrainedScale, aesthetic: str, title: Any) -> Optional[Dict[str, Any]]:
        key = _key_frame(scale, aesthetic)
        if key is None:
            return None
        if self.reverse:
            key = key.iloc[::-1].reset_index(drop=True)
        title = self.title if self.title is not None else title
        return {
            "title": title,
            "key": key,
            "aesthetics": [aesthetic],
            "name": self.name,
            "position": self.position,
            "direction": self.direction,
            "order": int(self.order),
            "hash": (str(title), tuple(key[".label"]), self.direction, self.name),
            "layers": [],
        }

    def merge(self, params: Dict[str, Any], other: Mapping[str, Any]) -> Dict[str, Any]:
        merged = dict(params)
        key = params["key"].copy()
        for aesthetic in other["aesthetics"]:
            if aesthetic not in key.columns:
                key[aesthetic] = other["key"][aesthetic].to_numpy()
        merged["key"] = key
        merged["aesthetics"] = list(dict.fromkeys(list(params["aesthetics"]) + list(other["aesthetics"])))
        return merged

    def matched_aes(self, params: Mapping[str, Any], layer: Any, layer_params: Any) -> List[str]:
        mapped = set(layer_params.mapping) | set(layer.stat.default_aes)
        drawable = set(layer.geom.aesthetics())
        return [aes for aes in params["aesthetics"] if aes in mapped and aes in drawable]

    def include_layer(self, matched: Sequence[str], layer: Any) -> bool:
        if layer.show_legend is None:
            return bool(matched)
        return bool(layer.show_legend)

    def process_layers(self, params: Dict[str, Any], layers: Sequence[Tuple[Any, Any]]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def draw(self, params: Mapping[str, Any], theme: Theme, direction: str) -> CellTable:
        raise NotImplementedError


class GuideLegend(Guide):
    call = "guide_legend"
    name = "legend"

    def process_layers(self, params: Dict[str, Any], layers: Sequence[Tuple[Any, Any]]) -> Optional[Dict[str, Any]]:
        decor = []
        for layer, layer_params in layers:
            matched = self.matched_aes(params, layer, layer_params)
            if not self.include_layer(matched, layer):
                continue
            key = params["key"][matched] if matched else pd.DataFrame(index=params["key"].index)
            modifiers = {
                name: value for name, value in layer_params.mapping.at_stage(AFTER_SCALE).items() if name in matched
            }
            data = layer.geom.use_defaults(key.reset_index(drop=True), layer_params.aes_params, modifiers)
            glyph = as_key_glyph(layer.key_glyph) if layer.key_glyph is not None else layer.geom.draw_key
            decor.append(
                {
                    "layer": layer_params.index,
                    "draw_key": glyph,
                    "data": data,
                    "params": {**layer_params.geom_params, **layer_params.aes_params},
                }
            )
        if not decor:
            return None
        out = dict(params)
        out["layers"] = decor
        return out

    def build_keys(self, params: Mapping[str, Any], theme: Theme, size: float) -> List[Primitive]:
        """One composite key per legend entry, the layers' glyphs drawn in layer order."""

        background = theme.element("legend.key")
        keys = []
        for i in range(len(params["key"])):
            children: List[Optional[Primitive]] = []
            if background is not None:
                children.append(
                    Rects([0.0], [0.0], [1.0], [1.0], gp={"fill": background.get("fill"), "colour": background.get("colour")}, name="key-background")
                )
            for decor in params["layers"]:
                row = decor["data"].iloc[[i]].reset_index(drop=True)
                children.append(decor["draw_key"](row, decor["params"], size))
            keys.append(Group(children, name=f"key-{i + 1}"))
        return keys

    def draw(self, params: Mapping[str, Any], theme: Theme, direction: str) -> CellTable:
        size = float(theme.get("legend.key.size", 17.28))
        text_el = theme.element("legend.text") or {}
        fontsize = theme.font_size("legend.text")
        labels = list(params["key"][".label"])
        keys = self.build_keys(params, theme, size)
        title, title_w, title_h = _title(params, theme)

        label_w = [text_width(label, fontsize) for label in labels]
        if direction == "vertical":
            widths = [pt(size), pt(_GAP), pt(max(max(label_w, default=0.0), title_w - size - _GAP, 0.0))]
            heights = [pt(title_h), pt(_GAP if title is not None else 0.0)] + [pt(size)] * len(keys)
            table = CellTable(widths, heights, name="legend")
            for i, key in enumerate(keys):
                table.add_cell(key, 3 + i, 1, name=f"key-{i + 1}")
                table.add_cell(_text(labels[i], text_el, fontsize, f"label-{i + 1}"), 3 + i, 3, name=f"label-{i + 1}")
        else:
            widths = []
            for i, width in enumerate(label_w):
                widths += [pt(size), pt(_GAP / 2), pt(width)]
                if i < len(label_w) - 1:
                    widths.append(pt(_GAP))
            heights = [pt(title_h), pt(_GAP if title is not None else 0.0), pt(size)]
            table = CellTable(widths, heights, name="legend")
            for i, key in enumerate(keys):
                table.add_cell(key, 3, 1 + 4 * i, name=f"key-{i + 1}")
                table.add_cell(_text(labels[i], text_el, fontsize, f"label-{i + 1}"), 3, 3 + 4 * i, name=f"label-{i + 1}")
        if title is not None:
            table.add_cell(title, 1, 1, r=len(table.widths), name="title")
        return table


class GuideColourbar(Guide):
    call = "guide_colourbar"
    name = "colourbar"
    nbin = 20
    bar_length = 5.0

    def validate_params(self) -> None:
        delegate(Guide, self).validate_params()
        if not isinstance(self.nbin, (int, np.integer)) or self.nbin < 2:
            raise SpecificationError(f"{self.call}: nbin must be an integer of at least 2")

    def train(self, scale: TrainedScale, aesthetic: str, title: Any) -> Optional[Dict[str, Any]]:
        if scale.is_discrete():
            warnings.warn(f"colourbar guide needs a continuous scale; dropping the guide for '{aesthetic}'.", GramvizWarning, stacklevel=2)
            return None
        limits = scale.get_limits()
        if limits is None:
            return None
        params = delegate(Guide, self).train(scale, aesthetic, title)
        if params is None:
            return None
        low, high = limits
        values = np.linspace(low, high, int(self.nbin))
        params["bar"] = pd.DataFrame({"value": values, "colour": scale.map(values)})
        params["limits"] = (float(low), float(high))
        return params

    def merge(self, params: Dict[str, Any], other: Mapping[str, Any]) -> Dict[str, Any]:
        merged = dict(params)
        merged["aesthetics"] = list(dict.fromkeys(list(params["aesthetics"]) + list(other["aesthetics"])))
        return merged

    def process_layers(self, params: Dict[str, Any], layers: Sequence[Tuple[Any, Any]]) -> Optional[Dict[str, Any]]:
        used = [
            layer_params.index
            for layer, layer_params in layers
            if self.include_layer(self.matched_aes(params, layer, layer_params), layer)
        ]
        if not used:
            return None
        out = dict(params)
        out["layers"] = used
        return out

    def draw(self, params: Mapping[str, Any], theme: Theme, direction: str) -> CellTable:
        size = float(theme.get("legend.key.size", 17.28))
        text_el = theme.element("legend.text") or {}
        fontsize = theme.font_size("legend.text")
        title, title_w, title_h = _title(params, theme)
        low, high = params["limits"]
        span = (high - low) or 1.0
        positions = (np.asarray(params["key"][".value"], dtype=float) - low) / span
        labels = list(params["key"][".label"])
        bar = params["bar"]
        n = len(bar)
        step = 1.0 / n
        ticks_gp = {"colour": "white", "linewidth": 0.5}
        label_gp = {"colour": text_el.get("colour", "black"), "fontsize": fontsize}
        if direction == "vertical":
            rects = Rects([0.0] * n, np.arange(n) * step, [1.0] * n, [step] * n, gp={"fill": list(bar["colour"]), "colour": None}, name="bar")
            ticks = Segments([0.0] * len(positions), positions, [0.2] * len(positions), positions, gp=ticks_gp, name="ticks")
            texts = Texts([0.0] * len(positions), positions, labels, gp={**label_gp, "hjust": 0.0, "vjust": 0.5}, name="labels")
            label_w = max((text_width(label, fontsize) for label in labels), default=0.0)
            widths = [pt(size), pt(_GAP), pt(max(label_w, title_w - size - _GAP, 0.0))]
            heights = [pt(title_h), pt(_GAP if title is not None else 0.0), pt(size * self.bar_length)]
            table = CellTable(widths, heights, name="colourbar")
            table.add_cell(Group([rects, ticks], name="bar"), 3, 1, name="bar")
            table.add_cell(texts, 3, 3, name="labels")
        else:
            rects = Rects(np.arange(n) * step, [0.0] * n, [step] * n, [1.0] * n, gp={"fill": list(bar["colour"]), "colour": None}, name="bar")
            ticks = Segments(positions, [0.0] * len(positions), positions, [0.2] * len(positions), gp=ticks_gp, name="ticks")
            texts = Texts(positions, [1.0] * len(positions), labels, gp={**label_gp, "hjust": 0.5, "vjust": 1.0}, name="labels")
            widths = [pt(max(size * self.bar_length, title_w))]
            heights = [pt(title_h), pt(_GAP if title is not None else 0.0), pt(size), pt(text_height("0", fontsize))]
            table = CellTable(widths, heights, name="colourbar")
            table.add_cell(Group([rects, ticks], name="bar"), 3, 1, name="bar")
            table.add_cell(texts, 4, 1, name="labels")
        if title is not None:
            table.add_cell(title, 1, 1, r=len(table.widths), name="title")
        return table


class GuideNone(Guide):
    call = "guide_none"
    name = "none"

    def train(self, scale: TrainedScale, aesthetic: str, title: Any) -> Optional[Dict[str, Any]]:
        return None


def guide_legend(**params: Any) -> Guide:
    guide = GuideLegend(**params)
    guide.validate_params()
    return guide


def guide_colourbar(**params: Any) -> Guide:
    guide = GuideColourbar(**params)
    guide.validate_params()
    return guide


def guide_none() -> Guide:
    return GuideNone()


GUIDES = {
    "legend": GuideLegend,
    "colourbar": GuideColourbar,
    "colorbar": GuideColourbar,
    "none": GuideNone,
    "axis": GuideNone,
}


def as_guide(value: Any) -> Guide:
    if isinstance(value, Guide):
        return value
    if value is None or value is False:
        return GuideNone()
    try:
        return GUIDES[str(value)]()
    except KeyError:
        raise SpecificationError(f"unknown guide '{value}'; expected one of {sorted(GUIDES)}") from None


def build_guides(
    scales: ScaleSet,
    layers: Sequence[Tuple[Any, Any]],
    labels: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
) -> List[Tuple[Guide, Dict[str, Any]]]:
    """Train, merge and resolve the legends of every non-position scale."""

    overrides = overrides or {}
    trained: List[Tuple[Guide, Dict[str, Any]]] = []
    for scale in scales.non_position_scales():
        aesthetic = scale.aesthetics[0]
        guide = as_guide(overrides.get(aesthetic, scale.scale.guide))
        params = guide.train(scale, aesthetic, scale.make_title(labels.get(aesthetic, aesthetic)))
        if params is not None:
            trained.append((guide, params))

    merged: Dict[Any, Tuple[Guide, Dict[str, Any]]] = {}
    for guide, params in trained:
        if params["hash"] in merged:
            first, first_params = merged[params["hash"]]
            merged[params["hash"]] = (first, first.merge(first_params, params))
        else:
            merged[params["hash"]] = (guide, params)

    resolved = []
    for guide, params in merged.values():
        processed = guide.process_layers(params, layers)
        if processed is None:
            LOGGER.debug("dropping %s for %s: no layer uses it", guide.call, params["aesthetics"])
            continue
        resolved.append((guide, processed))
    return sorted(resolved, key=lambda item: item[1]["order"])


def assemble_guides(guides: Sequence[Tuple[Guide, Mapping[str, Any]]], theme: Theme) -> Dict[str, CellTable]:
    """One guide box per legend position, legends stacked along the box direction."""

    default = theme.get("legend.position", "right")
    spacing = float(theme.get("legend.spacing", 11.0))
    margin = float(theme.get("legend.margin", 5.5))
    by_position: Dict[str, List[CellTable]] = {}
    for guide, params in guides:
        position = params.get("position") or default
        if position == "none":
            continue
        direction = params.get("direction") or ("horizontal" if position in ("top", "bottom") else "vertical")
        by_position.setdefault(position, []).append(guide.draw(params, theme, direction))

    boxes = {}
    for position, tables in by_position.items():
        horizontal = position in ("top", "bottom")
        if horizontal:
            widths = []
            for i, table in enumerate(tables):
                widths.append(pt(table.width_pt()))
                if i < len(tables) - 1:
                    widths.append(pt(spacing))
            box = CellTable(widths, [pt(max(table.height_pt() for table in tables))], name=f"guide-box-{position}")
            for i, table in enumerate(tables):
                box.add_cell(table, 1, 1 + 2 * i, name=f"guides-{i + 1}")
        else:
            heights = []
            for i, table in enumerate(tables):
                heights.append(pt(table.height_pt()))
                if i < len(tables) - 1:
                    heights.append(pt(spacing))
            box = CellTable([pt(max(table.width_pt() for table in tables))], heights, name=f"guide-box-{position}")
            for i, table in enumerate(tables):
                box.add_cell(table, 1 + 2 * i, 1, name=f"guides-{i + 1}")
        box.add_rows([pt(margin)], 0).add_rows([pt(margin)], -1)
        box.add_cols([pt(margin)], 0).add_cols([pt(margin)], -1)
        boxes[position] = box
    return boxes
