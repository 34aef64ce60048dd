"""The plot specification.

A :class:`Specification` is an immutable value: adding a layer, scale, coordinate
system, facet, theme, labels or guides with ``+`` returns a new specification and
never touches the old one. Builds work on private state derived from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from ..components.coords import Coord, coord_cartesian
from ..components.facets import Facet, facet_null
from ..components.guides import as_guide
from ..components.scales import Scale, ScaleSet, TrainedScale
from ..core.errors import SpecificationError
from ..core.theme import LEGEND_POSITIONS, Theme
from .aes import Aes, Expr, label_of, standardise_aes_name
from .layer import Layer


class Labels(dict):
    """Plot and axis labels added with ``+``."""


class Guides(dict):
    """Per-aesthetic guide overrides added with ``+``."""


def labs(**labels: Any) -> Labels:
    return Labels({standardise_aes_name(name): value for name, value in labels.items()})


def xlab(label: Any) -> Labels:
    return Labels(x=label)


def ylab(label: Any) -> Labels:
    return Labels(y=label)


def ggtitle(title: Any, subtitle: Any = None) -> Labels:
    out = Labels(title=title)
    if subtitle is not None:
        out["subtitle"] = subtitle
    return out


def guides(**overrides: Any) -> Guides:
    return Guides({standardise_aes_name(name): value for name, value in overrides.items()})


@dataclass(frozen=True, eq=False)
class Specification:
    layers: Tuple[Layer, ...] = ()
    data: Optional[pd.DataFrame] = None
    mapping: Aes = field(default_factory=Aes)
    scales: Tuple[Scale, ...] = ()
    coord: Coord = field(default_factory=coord_cartesian)
    facet: Facet = field(default_factory=facet_null)
    labels: Mapping[str, Any] = field(default_factory=dict)
    theme: Theme = field(default_factory=Theme)
    guides: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "layers", tuple(self.layers))
        object.__setattr__(self, "scales", tuple(self.scales))
        object.__setattr__(self, "mapping", Aes(self.mapping))
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        object.__setattr__(self, "guides", MappingProxyType(dict(self.guides)))

    def validate(self) -> "Specification":
        """Raise SpecificationError for anything that would fail before data is touched."""

        for i, item in enumerate(self.layers):
            if not isinstance(item, Layer):
                raise SpecificationError(f"layer {i} is not a Layer: {item!r}")
            item.validate(self.mapping)
        if self.data is not None and not isinstance(self.data, pd.DataFrame):
            raise SpecificationError("plot data must be a pandas DataFrame")
        position = self.theme.get("legend.position", "right")
        if position not in LEGEND_POSITIONS:
            raise SpecificationError(f"legend.position must be one of {LEGEND_POSITIONS}, got {position!r}")
        for guide in self.guides.values():
            as_guide(guide)
        return self

    def add(self, other: Any) -> "Specification":
        if other is None:
            return self
        if isinstance(other, (list, tuple)):
            spec = self
            for item in other:
                spec = spec.add(item)
            return spec
        if isinstance(other, Layer):
            return replace(self, layers=self.layers + (other,))
        if isinstance(other, Scale):
            scale_set = ScaleSet(TrainedScale(scale) for scale in self.scales)
            scale_set.add(other)
            return replace(self, scales=tuple(trained.scale for trained in scale_set))
        if isinstance(other, Coord):
            return replace(self, coord=other)
        if isinstance(other, Facet):
            return replace(self, facet=other)
        if isinstance(other, Theme):
            return replace(self, theme=other)
        if isinstance(other, Labels):
            return replace(self, labels={**self.labels, **other})
        if isinstance(other, Guides):
            return replace(self, guides={**self.guides, **other})
        if isinstance(other, Aes):
            return replace(self, mapping=self.mapping | other)
        raise SpecificationError(f"cannot add {type(other).__name__} to a plot specification")

    __add__ = add

    def make_labels(self) -> Dict[str, Any]:
        """Default labels from the mappings, overridden by the labels set explicitly."""

        labels: Dict[str, Any] = {name: _default_label(name, value) for name, value in self.mapping.items()}
        for item in self.layers:
            mapping = item.computed_mapping(self.mapping)
            defaults = {name: value for name, value in item.stat.default_aes.items() if isinstance(value, Expr)}
            for name, value in {**defaults, **mapping}.items():
                labels.setdefault(name, _default_label(name, value))
        labels.update(self.labels)
        return labels


def _default_label(name: str, value: Any) -> str:
    return label_of(value) if isinstance(value, Expr) else name


def specification(data: Optional[pd.DataFrame] = None, mapping: Optional[Mapping[str, Any]] = None) -> Specification:
    """Start an empty specification over ``data`` with a plot-level mapping."""

    return Specification(data=data, mapping=Aes(mapping or {}))
