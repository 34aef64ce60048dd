"""Palettes map scale domains onto output values.

Discrete palettes take a level count and return that many values; continuous palettes
take values rescaled to ``[0, 1]`` and return one output per value (``None`` for missing).
"""

from __future__ import annotations

import warnings
from typing import Any, Callable, List, Optional, Sequence, Tuple

import matplotlib
import numpy as np
from matplotlib.colors import LinearSegmentedColormap, to_hex, to_rgba

from ..core.errors import GramvizWarning, SpecificationError

SHAPES = ("o", "^", "s", "+", "x", "D")
LINETYPES = ("solid", "dashed", "dotted", "dashdot", "longdash", "twodash")

DiscretePalette = Callable[[int], List[Any]]
ContinuousPalette = Callable[[np.ndarray], List[Any]]


def hue_pal(name: str = "tab10") -> DiscretePalette:
    def palette(n: int) -> List[str]:
        cmap = matplotlib.colormaps[name]
        size = getattr(cmap, "N", 256)
        if n <= size and size <= 20:
            return [to_hex(cmap(i)) for i in range(n)]
        # Qualitative maps are too short: spread the levels over the hue wheel.
        wheel = matplotlib.colormaps["hsv"]
        return [to_hex(wheel(i / max(n, 1))) for i in range(n)]

    return palette


def cmap_pal(name: str) -> DiscretePalette:
    def palette(n: int) -> List[str]:
        cmap = matplotlib.colormaps[name].resampled(max(n, 1))
        return [to_hex(cmap(i)) for i in range(n)]

    return palette


def gradient_pal(low: str = "#132B43", high: str = "#56B1F7") -> ContinuousPalette:
    cmap = LinearSegmentedColormap.from_list("gradient", [to_rgba(low), to_rgba(high)])
    return cmap_gradient_pal(cmap)


def cmap_gradient_pal(cmap: Any) -> ContinuousPalette:
    if isinstance(cmap, str):
        cmap = matplotlib.colormaps[cmap]

    def palette(x: np.ndarray) -> List[Optional[str]]:
        x = np.asarray(x, dtype=float)
        return [to_hex(cmap(float(v))) if np.isfinite(v) else None for v in x]

    return palette


def rescale_pal(range: Tuple[float, float] = (0.1, 1.0)) -> ContinuousPalette:
    low, high = range

    def palette(x: np.ndarray) -> List[Optional[float]]:
        x = np.asarray(x, dtype=float)
        return [float(low + v * (high - low)) if np.isfinite(v) else None for v in x]

    return palette


def area_pal(range: Tuple[float, float] = (1.0, 6.0)) -> ContinuousPalette:
    inner = rescale_pal(range)

    def palette(x: np.ndarray) -> List[Optional[float]]:
        with np.errstate(invalid="ignore"):
            return inner(np.sqrt(np.asarray(x, dtype=float)))

    return palette


def _fixed_pal(values: Sequence[Any], kind: str) -> DiscretePalette:
    def palette(n: int) -> List[Any]:
        if n > len(values):
            warnings.warn(
                f"The {kind} palette can deal with a maximum of {len(values)} discrete values; "
                f"{n - len(values)} level(s) will be shown as missing.",
                GramvizWarning,
                stacklevel=2,
            )
        return list(values[:n]) + [None] * max(n - len(values), 0)

    return palette


def shape_pal() -> DiscretePalette:
    return _fixed_pal(SHAPES, "shape")


def linetype_pal() -> DiscretePalette:
    return _fixed_pal(LINETYPES, "linetype")


def discrete_rescale_pal(range: Tuple[float, float] = (1.0, 6.0)) -> DiscretePalette:
    def palette(n: int) -> List[float]:
        if n == 1:
            return [float(range[1])]
        return [float(v) for v in np.linspace(range[0], range[1], n)]

    return palette


def manual_pal(values: Sequence[Any]) -> DiscretePalette:
    values = list(values)

    def palette(n: int) -> List[Any]:
        if n > len(values):
            raise SpecificationError(f"Insufficient values in manual scale. {n} needed but only {len(values)} provided.")
        return values[:n]

    return palette


def identity_pal() -> Callable[[Any], Any]:
    return lambda x: x
