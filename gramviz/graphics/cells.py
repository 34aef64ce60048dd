"""Layout table of graphical cells.

A :class:`CellTable` is a grid whose rows and columns have computed sizes. Each cell
occupies an inclusive, 1-based ``[t, b] x [l, r]`` span and holds a primitive tree or a
nested table. Inserting rows or columns shifts the cells below or to the right, and
stretches the cells that span the insertion point.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .primitives import Primitive

PT = "pt"
NULL = "null"


@dataclass(frozen=True)
class Size:
    value: float
    unit: str = PT

    @property
    def is_null(self) -> bool:
        return self.unit == NULL

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "unit": self.unit}


def pt(value: float) -> Size:
    return Size(float(value), PT)


def null(value: float = 1.0) -> Size:
    return Size(float(value), NULL)


def text_width(label: Any, fontsize: float) -> float:
    lines = str(label).split("\n")
    return 0.6 * fontsize * max((len(line) for line in lines), default=0)


def text_height(label: Any, fontsize: float) -> float:
    return 1.2 * fontsize * (str(label).count("\n") + 1)


def resolve_sizes(sizes: Sequence[Size], total: float) -> List[float]:
    """Absolute sizes in points; null units share whatever ``total`` leaves over."""

    fixed = sum(size.value for size in sizes if not size.is_null)
    relative = sum(size.value for size in sizes if size.is_null)
    remaining = max(total - fixed, 0.0)
    out: List[float] = []
    for size in sizes:
        if size.is_null:
            out.append(remaining * size.value / relative if relative > 0 else 0.0)
        else:
            out.append(size.value)
    return out


Content = Union[Primitive, "CellTable"]


@dataclass
class Cell:
    name: str
    t: int
    l: int
    b: int
    r: int
    z: float
    content: Content
    clip: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "t": self.t,
            "l": self.l,
            "b": self.b,
            "r": self.r,
            "z": self.z if math.isfinite(self.z) else str(self.z),
            "clip": self.clip,
            "content": self.content.to_dict(),
        }


class CellTable:
    """Grid of named cells consumed by a drawing device."""

    def __init__(
        self,
        widths: Optional[Sequence[Size]] = None,
        heights: Optional[Sequence[Size]] = None,
        name: str = "layout",
    ) -> None:
        self.widths: List[Size] = list(widths or [])
        self.heights: List[Size] = list(heights or [])
        self.cells: List[Cell] = []
        self.name = name
        self.diagnostics: Any = None

    @property
    def dim(self) -> Tuple[int, int]:
        return len(self.heights), len(self.widths)

    def add_cell(
        self,
        content: Content,
        t: int,
        l: int,
        b: Optional[int] = None,
        r: Optional[int] = None,
        z: Optional[float] = None,
        name: str = "cell",
        clip: bool = False,
    ) -> Cell:
        nrow, ncol = self.dim
        b = t if b is None else b
        r = l if r is None else r
        if not (1 <= t <= b <= nrow and 1 <= l <= r <= ncol):
            raise IndexError(f"cell '{name}' span t={t} b={b} l={l} r={r} is outside a {nrow}x{ncol} table")
        if z is None:
            finite = [cell.z for cell in self.cells if math.isfinite(cell.z)]
            z = (max(finite) + 1) if finite else 1
        cell = Cell(name=name, t=t, l=l, b=b, r=r, z=z, content=content, clip=clip)
        self.cells.append(cell)
        return cell

    def add_rows(self, heights: Iterable[Size], pos: int = -1) -> "CellTable":
        """Insert rows after row ``pos``; ``0`` prepends, ``-1`` appends."""

        heights = list(heights)
        n = len(heights)
        if pos < 0:
            pos = len(self.heights) + 1 + pos
        self.heights[pos:pos] = heights
        for cell in self.cells:
            if cell.t > pos:
                cell.t += n
            if cell.b > pos:
                cell.b += n
        return self

    def add_cols(self, widths: Iterable[Size], pos: int = -1) -> "CellTable":
        """Insert columns after column ``pos``; ``0`` prepends, ``-1`` appends."""

        widths = list(widths)
        n = len(widths)
        if pos < 0:
            pos = len(self.widths) + 1 + pos
        self.widths[pos:pos] = widths
        for cell in self.cells:
            if cell.l > pos:
                cell.l += n
            if cell.r > pos:
                cell.r += n
        return self

    def find(self, prefix: str) -> List[Cell]:
        return [cell for cell in self.cells if cell.name == prefix or cell.name.startswith(prefix + "-")]

    def names(self) -> List[str]:
        return [cell.name for cell in self.cells]

    def draw_order(self) -> List[Cell]:
        return sorted(self.cells, key=lambda cell: cell.z)

    def width_pt(self) -> float:
        return sum(size.value for size in self.widths if not size.is_null)

    def height_pt(self) -> float:
        return sum(size.value for size in self.heights if not size.is_null)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "cell_table",
            "name": self.name,
            "widths": [size.to_dict() for size in self.widths],
            "heights": [size.to_dict() for size in self.heights],
            "cells": [cell.to_dict() for cell in self.cells],
        }

    def __repr__(self) -> str:
        nrow, ncol = self.dim
        return f"CellTable({self.name!r}, {nrow}x{ncol}, cells={len(self.cells)})"
