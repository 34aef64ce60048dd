"""Name lookup for the built-in components.

Declarative documents and the layer constructors refer to components by name;
``lookup(role, name, **params)`` resolves a name to a component instance.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

from ..core.errors import SpecificationError
from ..core.proto import Proto
from . import coords, facets, geoms, guides, keys, positions, scales, stats

GEOMS: Dict[str, Callable[..., Any]] = {
    "blank": geoms.GeomBlank,
    "point": geoms.GeomPoint,
    "path": geoms.GeomPath,
    "line": geoms.GeomLine,
    "polygon": geoms.GeomPolygon,
    "rect": geoms.GeomRect,
    "bar": geoms.GeomBar,
    "col": geoms.GeomCol,
    "histogram": geoms.GeomBar,
    "text": geoms.GeomText,
    "raster": geoms.GeomRaster,
    "linerange": geoms.GeomLinerange,
    "pointrange": geoms.GeomPointrange,
}

# Default statistic and position adjustment of each geom name.
GEOM_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "bar": ("count", "stack"),
    "col": ("identity", "stack"),
    "histogram": ("bin", "stack"),
}

STATS: Dict[str, Callable[..., Any]] = {
    "identity": stats.StatIdentity,
    "count": stats.StatCount,
    "bin": stats.StatBin,
    "summary": stats.StatSummary,
}

POSITIONS: Dict[str, Callable[..., Any]] = {
    "identity": positions.position_identity,
    "stack": positions.position_stack,
    "fill": positions.position_fill,
    "dodge": positions.position_dodge,
    "jitter": positions.position_jitter,
    "nudge": positions.position_nudge,
}

COORDS: Dict[str, Callable[..., Any]] = {
    "cartesian": coords.coord_cartesian,
    "flip": coords.coord_flip,
    "polar": coords.coord_polar,
}

FACETS: Dict[str, Callable[..., Any]] = {
    "null": facets.facet_null,
    "wrap": facets.facet_wrap,
    "grid": facets.facet_grid,
}

GUIDES: Dict[str, Callable[..., Any]] = {
    "legend": guides.guide_legend,
    "colourbar": guides.guide_colourbar,
    "colorbar": guides.guide_colourbar,
    "none": guides.guide_none,
}

SCALES: Dict[str, Callable[..., Any]] = {
    name[len("scale_"):]: getattr(scales, name)
    for name in dir(scales)
    if name.startswith("scale_") and callable(getattr(scales, name))
}

REGISTRY: Dict[str, Dict[str, Callable[..., Any]]] = {
    "geom": GEOMS,
    "stat": STATS,
    "position": POSITIONS,
    "coord": COORDS,
    "facet": FACETS,
    "guide": GUIDES,
    "scale": SCALES,
    "key": {name: (lambda glyph=glyph: glyph) for name, glyph in keys.KEY_GLYPHS.items()},
}


def names(role: str) -> List[str]:
    return sorted(_table(role))


def _table(role: str) -> Dict[str, Callable[..., Any]]:
    try:
        return REGISTRY[role]
    except KeyError:
        raise SpecificationError(f"unknown component role '{role}'; expected one of {sorted(REGISTRY)}") from None


def lookup(role: str, name: Any, /, **params: Any) -> Any:
    """Resolve ``name`` to a ``role`` component; component instances pass through."""

    if isinstance(name, Proto):
        return name
    table = _table(role)
    key = str(name).replace("color", "colour") if role == "scale" else str(name)
    factory = table.get(key)
    if factory is None:
        raise SpecificationError(f"unknown {role} '{name}'; expected one of {sorted(table)}")
    try:
        return factory(**params)
    except TypeError as exc:
        raise SpecificationError(f"invalid parameters for {role} '{name}': {exc}") from exc
