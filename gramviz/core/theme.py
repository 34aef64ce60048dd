from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

# Element properties are plain mappings; an element set to None is blank.
THEME_DEFAULTS: Dict[str, Any] = {
    "base_size": 11.0,
    "family": "sans",
    "plot.background": {"fill": "white", "colour": "white"},
    "plot.margin": [5.5, 5.5, 5.5, 5.5],
    "plot.title": {"size": 13.2, "colour": "black", "hjust": 0.0},
    "plot.subtitle": {"size": 11.0, "colour": "black", "hjust": 0.0},
    "plot.caption": {"size": 8.8, "colour": "black", "hjust": 1.0},
    "plot.tag": {"size": 13.2, "colour": "black", "hjust": 0.0},
    "panel.background": {"fill": "#EBEBEB", "colour": None},
    "panel.grid.major": {"colour": "white", "linewidth": 0.5},
    "panel.grid.minor": {"colour": "white", "linewidth": 0.25},
    "panel.spacing": 5.5,
    "axis.text": {"colour": "#4D4D4D", "size": 8.8},
    "axis.ticks": {"colour": "#333333", "linewidth": 0.5},
    "axis.ticks.length": 2.75,
    "axis.title": {"colour": "black", "size": 11.0},
    "strip.background": {"fill": "#D9D9D9", "colour": None},
    "strip.text": {"colour": "#1A1A1A", "size": 8.8},
    "legend.position": "right",
    "legend.position.inside": [0.95, 0.95],
    "legend.key": {"fill": "#F2F2F2", "colour": None},
    "legend.key.size": 17.28,
    "legend.text": {"size": 8.8, "colour": "black"},
    "legend.title": {"size": 11.0, "colour": "black"},
    "legend.spacing": 11.0,
    "legend.margin": 5.5,
    "legend.box.spacing": 11.0,
}

LEGEND_POSITIONS = ("right", "left", "top", "bottom", "inside", "none")


def _deep_merge(base: Dict[str, Any], upd: Mapping[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in (upd or {}).items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


class Theme:
    """Read-only theme lookup over the defaults plus user overrides."""

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None) -> None:
        self._elements = _deep_merge(THEME_DEFAULTS, overrides or {})

    def get(self, name: str, default: Any = None) -> Any:
        return deepcopy(self._elements.get(name, default))

    def element(self, name: str) -> Optional[Dict[str, Any]]:
        """Return an element's properties, or None when the element is blank."""
        value = self._elements.get(name)
        if value is None:
            return None
        return dict(value)

    def prop(self, name: str, key: str, default: Any = None) -> Any:
        element = self.element(name)
        if element is None:
            return default
        value = element.get(key)
        return default if value is None else value

    def font_size(self, name: str) -> float:
        return float(self.prop(name, "size", self._elements["base_size"]))

    def merged(self, overrides: Mapping[str, Any]) -> "Theme":
        return Theme(_deep_merge(self._elements, overrides))

    def to_dict(self) -> Dict[str, Any]:
        return deepcopy(self._elements)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Theme) and self._elements == other._elements

    def __repr__(self) -> str:
        return f"Theme(position={self._elements.get('legend.position')!r})"
