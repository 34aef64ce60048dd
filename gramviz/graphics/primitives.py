"""Graphical primitive tree.

Primitives are backend-agnostic: coordinates are normalised (0-1) within the cell or
panel that holds them, and styling is carried separately in ``gp`` (colour, fill,
alpha, linewidth, linetype, size, shape, fontsize, family, angle, hjust, vjust).
Style values are either a scalar shared by every element or one value per element.
Children of a :class:`Group` are drawn in order, so order is z-order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple

import numpy as np


def _vec(values: Any) -> Tuple[Any, ...]:
    arr = np.asarray(values)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    return tuple(arr.tolist())


def _style(gp: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    frozen: Dict[str, Any] = {}
    for key, value in (gp or {}).items():
        if isinstance(value, (list, tuple, np.ndarray)) or hasattr(value, "to_numpy"):
            frozen[key] = _vec(value)
        else:
            frozen[key] = value
    return MappingProxyType(frozen)


def _plain(gp: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: (list(value) if isinstance(value, tuple) else value) for key, value in gp.items()}


class Primitive:
    """Base class of every drawable element."""

    kind = "primitive"

    def walk(self) -> Iterator["Primitive"]:
        yield self

    def size(self) -> int:
        return 0

    def is_empty(self) -> bool:
        return self.size() == 0

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True, eq=False)
class _Shape(Primitive):
    def __post_init__(self) -> None:
        for name in self._vectors:
            object.__setattr__(self, name, _vec(getattr(self, name)))
        object.__setattr__(self, "gp", _style(self.gp))

    _vectors: Tuple[str, ...] = field(default=(), init=False, repr=False)

    def size(self) -> int:
        return len(getattr(self, self._vectors[0])) if self._vectors else 0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind, "name": self.name}
        for vector in self._vectors:
            payload[vector] = list(getattr(self, vector))
        payload["gp"] = _plain(self.gp)
        return payload


@dataclass(frozen=True, eq=False)
class Points(_Shape):
    x: Any = ()
    y: Any = ()
    gp: Any = None
    name: str = "points"
    kind = "points"
    _vectors: Tuple[str, ...] = field(default=("x", "y"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Lines(_Shape):
    """Polylines; consecutive rows sharing an ``id`` form one line."""

    x: Any = ()
    y: Any = ()
    id: Any = ()
    gp: Any = None
    name: str = "lines"
    kind = "lines"
    _vectors: Tuple[str, ...] = field(default=("x", "y", "id"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Segments(_Shape):
    x0: Any = ()
    y0: Any = ()
    x1: Any = ()
    y1: Any = ()
    gp: Any = None
    name: str = "segments"
    kind = "segments"
    _vectors: Tuple[str, ...] = field(default=("x0", "y0", "x1", "y1"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Polygons(_Shape):
    x: Any = ()
    y: Any = ()
    id: Any = ()
    gp: Any = None
    name: str = "polygons"
    kind = "polygons"
    _vectors: Tuple[str, ...] = field(default=("x", "y", "id"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Rects(_Shape):
    """Axis-aligned rectangles anchored at their left-bottom corner."""

    x: Any = ()
    y: Any = ()
    width: Any = ()
    height: Any = ()
    gp: Any = None
    name: str = "rects"
    kind = "rects"
    _vectors: Tuple[str, ...] = field(default=("x", "y", "width", "height"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Texts(_Shape):
    x: Any = ()
    y: Any = ()
    label: Any = ()
    gp: Any = None
    name: str = "texts"
    kind = "texts"
    _vectors: Tuple[str, ...] = field(default=("x", "y", "label"), init=False, repr=False)


@dataclass(frozen=True, eq=False)
class Group(Primitive):
    """Ordered collection of primitives."""

    children: Sequence[Primitive] = ()
    name: str = "group"
    kind = "group"

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(child for child in self.children if child is not None))

    def walk(self) -> Iterator[Primitive]:
        for child in self.children:
            yield from child.walk()

    def size(self) -> int:
        return sum(child.size() for child in self.children)

    def find(self, name: str) -> Iterator[Primitive]:
        for child in self.children:
            if getattr(child, "name", None) == name:
                yield child
            if isinstance(child, Group):
                yield from child.find(name)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "name": self.name, "children": [child.to_dict() for child in self.children]}


def empty(name: str = "empty") -> Group:
    return Group((), name=name)
