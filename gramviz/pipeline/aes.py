"""Aesthetic mappings and their two-phase evaluation.

A mapping value is either a constant, a sequence with one value per row, or an
expression over table columns. Expressions are parsed once, validated against a
whitelist of syntax and functions, and evaluated per phase:

* ``start``: against the layer table before the statistic runs;
* ``after_stat``: against the statistic's output (``after_stat("count / max(count)")``);
* ``after_scale``: against mapped aesthetic values while encoding defaults are filled
  (``after_scale("colour")``).

Before each evaluation the expression's referenced columns are checked against the
table of that phase, so an ``after_stat`` expression naming a pre-statistic column
fails with a clear message instead of a key error.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional

import numpy as np
import pandas as pd

from ..core.errors import AestheticEvaluationError, SpecificationError

START = "start"
AFTER_STAT = "after_stat"
AFTER_SCALE = "after_scale"

_ALIASES = {
    "color": "colour",
    "pch": "shape",
    "cex": "size",
    "lty": "linetype",
    "lwd": "linewidth",
    "srt": "angle",
    "adj": "hjust",
    "bg": "fill",
    "fg": "colour",
    "min": "ymin",
    "max": "ymax",
}


def standardise_aes_name(name: str) -> str:
    name = _ALIASES.get(name, name)
    return name.replace("color", "colour")


def _reduce(fn):
    def apply(values):
        return fn(np.asarray(values, dtype=float))

    return apply


def _as_str(values):
    if isinstance(values, pd.Series):
        return values.astype(str)
    return str(values)


def _factor(values):
    if isinstance(values, pd.Series):
        if isinstance(values.dtype, pd.CategoricalDtype):
            return values
        return values.astype("category")
    return pd.Categorical([values])


_FUNCTIONS: Dict[str, Any] = {
    "log": np.log,
    "log10": np.log10,
    "log2": np.log2,
    "exp": np.exp,
    "sqrt": np.sqrt,
    "abs": np.abs,
    "round": np.round,
    "floor": np.floor,
    "ceil": np.ceil,
    "sin": np.sin,
    "cos": np.cos,
    "min": _reduce(np.nanmin),
    "max": _reduce(np.nanmax),
    "sum": _reduce(np.nansum),
    "mean": _reduce(np.nanmean),
    "median": _reduce(np.nanmedian),
    "str": _as_str,
    "factor": _factor,
}

_CONSTANTS: Dict[str, Any] = {"pi": float(np.pi)}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Tuple,
    ast.List,
    ast.operator,
    ast.unaryop,
    ast.cmpop,
)

_BACKTICK = re.compile(r"`([^`]+)`")


def _validate_tree(tree: ast.AST, source: str) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise AestheticEvaluationError(
                f"unsupported syntax '{type(node).__name__}' in aesthetic expression '{source}'"
            )
        if isinstance(node, ast.Compare) and len(node.ops) != 1:
            raise AestheticEvaluationError(f"chained comparisons are not supported: '{source}'")
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
                raise AestheticEvaluationError(f"unknown function in aesthetic expression '{source}'")
            if node.keywords:
                raise AestheticEvaluationError(f"keyword arguments are not supported: '{source}'")


@dataclass(frozen=True)
class Expr:
    """A column expression evaluated in one pipeline phase."""

    source: str
    stage: str = START
    _code: Any = field(default=None, init=False, repr=False, compare=False)
    _columns: Dict[str, str] = field(default_factory=dict, init=False, repr=False, compare=False)
    _direct: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        quoted: Dict[str, str] = {}

        def _placeholder(match: "re.Match[str]") -> str:
            key = f"_bt_{len(quoted)}_"
            quoted[key] = match.group(1)
            return key

        text = _BACKTICK.sub(_placeholder, self.source.strip())
        try:
            tree = ast.parse(text, mode="eval")
        except SyntaxError:
            # Not an expression: a bare column name such as "Sales Amount".
            object.__setattr__(self, "_direct", True)
            object.__setattr__(self, "_columns", {self.source: self.source})
            return
        _validate_tree(tree, self.source)
        columns: Dict[str, str] = {}
        for node in ast.walk(tree):
            if isinstance(node, ast.Name) and node.id not in _FUNCTIONS and node.id not in _CONSTANTS:
                columns[node.id] = quoted.get(node.id, node.id)
        object.__setattr__(self, "_code", compile(tree, "<aes>", "eval"))
        object.__setattr__(self, "_columns", columns)
        if isinstance(tree.body, ast.Name) and tree.body.id in columns:
            object.__setattr__(self, "_direct", True)
            object.__setattr__(self, "_columns", {columns[tree.body.id]: columns[tree.body.id]})

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self._columns.values())

    @property
    def label(self) -> str:
        return self.source

    def check(self, columns: Iterable[str], phase: Optional[str] = None) -> None:
        available = set(columns)
        missing = sorted(name for name in self.names if name not in available)
        if missing:
            raise AestheticEvaluationError(
                f"aesthetic expression '{self.source}' (phase '{phase or self.stage}') "
                f"references column(s) not present in that phase: {', '.join(missing)}"
            )

    def evaluate(self, data: pd.DataFrame, phase: Optional[str] = None) -> pd.Series:
        self.check(data.columns, phase)
        if self._direct:
            return data[next(iter(self.names))]
        namespace: Dict[str, Any] = dict(_FUNCTIONS)
        namespace.update(_CONSTANTS)
        for key, column in self._columns.items():
            namespace[key] = data[column]
        try:
            value = eval(self._code, {"__builtins__": {}}, namespace)
        except (ArithmeticError, TypeError, ValueError, KeyError) as exc:
            raise AestheticEvaluationError(f"failed to evaluate '{self.source}': {exc}") from exc
        return as_column(value, data, self.source)


def after_stat(source: str) -> Expr:
    return Expr(source, AFTER_STAT)


def after_scale(source: str) -> Expr:
    return Expr(source, AFTER_SCALE)


def as_column(value: Any, data: pd.DataFrame, source: str = "") -> pd.Series:
    n = len(data)
    if isinstance(value, pd.Series):
        if len(value) != n:
            raise AestheticEvaluationError(f"'{source}' produced {len(value)} values for {n} rows")
        return pd.Series(value.array, index=data.index)
    if isinstance(value, pd.Categorical):
        if len(value) == 1 and n != 1:
            return pd.Series(pd.Categorical(list(value) * n, categories=value.categories), index=data.index)
        if len(value) != n:
            raise AestheticEvaluationError(f"'{source}' produced {len(value)} values for {n} rows")
        return pd.Series(value, index=data.index)
    arr = np.asarray(value)
    if arr.ndim == 0:
        return pd.Series(np.repeat(arr, n), index=data.index)
    if arr.ndim == 1 and len(arr) == n:
        return pd.Series(arr, index=data.index)
    raise AestheticEvaluationError(f"aesthetic '{source}' has {len(arr)} values but the table has {n} rows")


def _normalise_value(value: Any) -> Any:
    if isinstance(value, str):
        return Expr(value)
    if isinstance(value, (pd.Series, np.ndarray, list)):
        return tuple(np.asarray(value).tolist())
    return value


def stage_of(value: Any) -> str:
    if isinstance(value, Expr):
        return value.stage
    return START


class Aes(Mapping[str, Any]):
    """Immutable mapping from aesthetic names to column expressions or constants."""

    def __init__(self, mapping: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        items: Dict[str, Any] = {}
        for key, value in {**dict(mapping or {}), **kwargs}.items():
            items[standardise_aes_name(key)] = _normalise_value(value)
        self._items = items

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._items) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, repr(v)) for k, v in self._items.items())))

    def __or__(self, other: Mapping[str, Any]) -> "Aes":
        merged = dict(self._items)
        merged.update(Aes(other)._items)
        return Aes(merged)

    def __repr__(self) -> str:
        parts = ", ".join(f"{key}={label_of(value)!r}" for key, value in self._items.items())
        return f"aes({parts})"

    def without(self, names: Iterable[str]) -> "Aes":
        drop = set(names)
        return Aes({k: v for k, v in self._items.items() if k not in drop})

    def at_stage(self, stage: str) -> "Aes":
        return Aes({k: v for k, v in self._items.items() if stage_of(v) == stage})


def aes(**kwargs: Any) -> Aes:
    return Aes(kwargs)


def label_of(value: Any) -> str:
    if isinstance(value, Expr):
        return value.label
    if isinstance(value, tuple):
        return "<values>"
    return str(value)


def evaluate_value(value: Any, data: pd.DataFrame, phase: str, name: str = "") -> pd.Series:
    if isinstance(value, Expr):
        return value.evaluate(data, phase)
    if isinstance(value, tuple):
        if len(value) != len(data):
            raise AestheticEvaluationError(
                f"aesthetic '{name}' has {len(value)} values but the table has {len(data)} rows"
            )
        return pd.Series(list(value), index=data.index)
    return as_column(value, data, name)


def evaluate_mapping(mapping: Mapping[str, Any], data: pd.DataFrame, phase: str) -> pd.DataFrame:
    """Evaluate every aesthetic of ``mapping`` against ``data``; returns the new columns."""

    for name, value in mapping.items():
        if isinstance(value, Expr):
            value.check(data.columns, phase)
    columns = {name: evaluate_value(value, data, phase, name) for name, value in mapping.items()}
    return pd.DataFrame(columns, index=data.index)


def check_required_aesthetics(required: Iterable[str], present: Iterable[str], name: str) -> None:
    """Raise when a requirement is unmet; ``"x|y"`` is met by either alternative."""

    available = set(present)
    missing = [req for req in required if not any(alt in available for alt in req.split("|"))]
    if missing:
        shown = ", ".join(req.replace("|", " or ") for req in missing)
        raise SpecificationError(f"{name} requires the following missing aesthetics: {shown}")
