"""Scales: per-aesthetic mappings from data values to output values.

A :class:`Scale` is an immutable description (aesthetics, palette, limits, breaks,
transform). Everything learned from data lives in a :class:`ScaleState` created per
render; :class:`TrainedScale` pairs the two and is what the build pipeline trains,
maps with and finally freezes. A :class:`ScaleSet` holds the trained scales of one
render.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.errors import GramvizWarning, ScaleFrozenError, SpecificationError
from ..core.proto import Proto, delegate
from ..core.table import is_discrete
from .palettes import (
    area_pal,
    cmap_gradient_pal,
    cmap_pal,
    discrete_rescale_pal,
    gradient_pal,
    hue_pal,
    linetype_pal,
    manual_pal,
    rescale_pal,
    shape_pal,
)
from .transforms import Trans, as_trans

LOGGER = logging.getLogger(__name__)

X_AESTHETICS = (
    "x", "xmin", "xmax", "xend", "xintercept", "xmin_final", "xmax_final", "xlower", "xmiddle", "xupper", "x0",
)
Y_AESTHETICS = (
    "y", "ymin", "ymax", "yend", "yintercept", "ymin_final", "ymax_final", "lower", "middle", "upper", "y0",
)
POSITION_AESTHETICS = X_AESTHETICS + Y_AESTHETICS

_CONTINUOUS_EXPAND = (0.05, 0.0)
_DISCRETE_EXPAND = (0.0, 0.6)


def position_family(aesthetic: str) -> Optional[str]:
    if aesthetic in X_AESTHETICS:
        return "x"
    if aesthetic in Y_AESTHETICS:
        return "y"
    return None


# -- out-of-bounds handling -----------------------------------------------------------


def censor(x: np.ndarray, limits: Tuple[float, float]) -> np.ndarray:
    """Replace finite values outside ``limits`` with NaN."""
    x = np.asarray(x, dtype=float).copy()
    low, high = limits
    with np.errstate(invalid="ignore"):
        outside = np.isfinite(x) & ((x < low) | (x > high))
    x[outside] = np.nan
    return x


def squish(x: np.ndarray, limits: Tuple[float, float]) -> np.ndarray:
    """Move finite values outside ``limits`` onto the nearest limit."""
    x = np.asarray(x, dtype=float).copy()
    finite = np.isfinite(x)
    x[finite] = np.clip(x[finite], limits[0], limits[1])
    return x


def keep(x: np.ndarray, limits: Tuple[float, float]) -> np.ndarray:
    return np.asarray(x, dtype=float)


OOB = {"censor": censor, "squish": squish, "keep": keep}


def as_oob(value: Any) -> staticmethod:
    if isinstance(value, staticmethod):
        return value
    if callable(value):
        return staticmethod(value)
    try:
        return staticmethod(OOB[str(value)])
    except KeyError:
        raise SpecificationError(f"unknown out-of-bounds policy '{value}'; expected one of {sorted(OOB)}") from None


def expand_range(limits: Tuple[float, float], mult: Tuple[float, float], add: Tuple[float, float]) -> Tuple[float, float]:
    low, high = float(limits[0]), float(limits[1])
    if not (np.isfinite(low) and np.isfinite(high)):
        return (low, high)
    if low == high:
        return (low - 0.5, high + 0.5)
    width = high - low
    return (low - width * mult[0] - add[0], high + width * mult[1] + add[1])


def _expansion(expand: Sequence[float]) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    values = [float(v) for v in expand]
    if len(values) == 2:
        values = values + values
    return (values[0], values[2]), (values[1], values[3])


# -- ranges and state ---------------------------------------------------------------


def _as_series(values: Any) -> pd.Series:
    if isinstance(values, pd.Series):
        return values
    if isinstance(values, (pd.Categorical, np.ndarray)):
        return pd.Series(values)
    if np.ndim(values) == 0:
        return pd.Series([values])
    return pd.Series(list(values))


def _sort_levels(levels: List[Any]) -> List[Any]:
    try:
        return sorted(levels)
    except TypeError:
        return sorted(levels, key=str)


class ContinuousRange:
    def __init__(self, limits: Optional[Tuple[float, float]] = None) -> None:
        self.range = limits

    def train(self, values: Any) -> None:
        series = _as_series(values)
        if is_discrete(series) and not pd.api.types.is_bool_dtype(series.dtype):
            raise SpecificationError("Discrete values supplied to a continuous scale.")
        arr = series.to_numpy(dtype=float, na_value=np.nan)
        arr = arr[np.isfinite(arr)]
        if arr.size == 0:
            return
        low, high = float(arr.min()), float(arr.max())
        if self.range is not None:
            low, high = min(low, self.range[0]), max(high, self.range[1])
        self.range = (low, high)

    def reset(self) -> None:
        self.range = None

    def copy(self) -> "ContinuousRange":
        return ContinuousRange(self.range)


class DiscreteRange:
    def __init__(self, levels: Optional[List[Any]] = None, ordered: bool = False) -> None:
        self.range = levels
        self.ordered = ordered

    def train(self, values: Any) -> None:
        series = _as_series(values)
        categorical = isinstance(series.dtype, pd.CategoricalDtype)
        if categorical:
            observed = set(series.dropna().unique())
            new = [level for level in series.cat.categories if level in observed]
        else:
            new = list(pd.unique(series.dropna()))
        if not new:
            return
        combined = list(self.range or [])
        for level in new:
            if level not in combined:
                combined.append(level)
        self.ordered = self.ordered or categorical
        self.range = combined if self.ordered else _sort_levels(combined)

    def reset(self) -> None:
        self.range = None

    def copy(self) -> "DiscreteRange":
        return DiscreteRange(list(self.range) if self.range is not None else None, self.ordered)


@dataclass
class ScaleState:
    """Everything a scale learns during one render."""

    range: Any
    range_c: Optional[ContinuousRange] = None
    after_stat: bool = False
    frozen: bool = False

    def copy(self) -> "ScaleState":
        return ScaleState(
            range=self.range.copy(),
            range_c=self.range_c.copy() if self.range_c is not None else None,
            after_stat=self.after_stat,
            frozen=self.frozen,
        )


# -- scale prototypes ---------------------------------------------------------------


class Scale(Proto):
    aesthetics: Tuple[str, ...] = ()
    call = "scale"
    name: Any = None
    breaks: Any = None
    minor_breaks: Any = None
    labels: Any = None
    limits: Any = None
    expand: Any = None
    n_breaks = 5
    na_value: Any = None
    guide: Any = "legend"
    position: Optional[str] = None
    trans: Any = "identity"
    is_position = False

    def validate_params(self) -> None:
        if not self.aesthetics:
            raise SpecificationError(f"{self.call}: a scale needs at least one aesthetic")
        if self.n_breaks is not None and (not isinstance(self.n_breaks, (int, np.integer)) or self.n_breaks <= 0):
            raise SpecificationError(f"{self.call}: n_breaks must be a positive integer, got {self.n_breaks!r}")
        if self.expand is not None:
            if len(self.expand) not in (2, 4):
                raise SpecificationError(f"{self.call}: expand must have 2 or 4 values")
            if any(float(v) < 0 for v in self.expand):
                raise SpecificationError(f"{self.call}: expand values must be non-negative")
        if self.limits is not None and not isinstance(self.limits, (tuple, list)):
            raise SpecificationError(f"{self.call}: limits must be a sequence")
        if (
            isinstance(self.breaks, (tuple, list))
            and isinstance(self.labels, (tuple, list))
            and len(self.breaks) != len(self.labels)
        ):
            raise SpecificationError(f"{self.call}: breaks and labels have different lengths")
        as_trans(self.trans)

    def new_state(self) -> ScaleState:
        return ScaleState(range=ContinuousRange())

    def is_discrete(self) -> bool:
        return False

    def get_trans(self) -> Trans:
        return as_trans(self.trans)

    def transform(self, values: Any) -> Any:
        return self.get_trans().transform(values)

    def inverse(self, values: Any) -> Any:
        return self.get_trans().inverse(values)

    def train(self, state: ScaleState, values: Any) -> None:
        state.range.train(values)

    def reset(self, state: ScaleState) -> None:
        state.range.reset()

    def default_expand(self) -> Tuple[float, float]:
        return _CONTINUOUS_EXPAND

    def make_title(self, fallback: Any = None) -> Any:
        return fallback if self.name is None else self.name

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        raise NotImplementedError

    def get_limits(self, state: ScaleState) -> Any:
        raise NotImplementedError

    def get_breaks(self, state: ScaleState, limits: Any = None) -> Any:
        raise NotImplementedError

    def get_breaks_minor(self, state: ScaleState, breaks: Any, limits: Any = None) -> Any:
        return []

    def get_labels(self, state: ScaleState, breaks: Any) -> List[str]:
        raise NotImplementedError

    def dimension(self, state: ScaleState, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        raise NotImplementedError


class ScaleContinuous(Scale):
    call = "continuous_scale"
    oob = staticmethod(censor)
    palette = staticmethod(gradient_pal())
    na_value: Any = "grey50"
    rescale_limits: Any = None

    def get_limits(self, state: ScaleState) -> Optional[Tuple[float, float]]:
        trained = state.range.range
        if self.limits is None:
            return trained
        user = self.transform(pd.Series([np.nan if v is None else v for v in self.limits], dtype=object))
        user = np.asarray(user, dtype=float)
        if trained is not None:
            user = np.where(np.isnan(user), np.asarray(trained, dtype=float), user)
        if np.isnan(user).any():
            return None
        return (float(min(user)), float(max(user)))

    def _scaled(self, state: ScaleState, values: Any) -> np.ndarray:
        x = np.asarray(_as_series(values).to_numpy(dtype=float, na_value=np.nan), dtype=float)
        limits = self.get_limits(state)
        if limits is None:
            return np.full(x.shape, np.nan)
        low, high = limits
        with np.errstate(invalid="ignore", divide="ignore"):
            scaled = (x - low) / (high - low) if high != low else np.where(np.isfinite(x), 0.5, np.nan)
        return self.oob(scaled, (0.0, 1.0))

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        mapped = self.palette(self._scaled(state, values))
        return np.array([self.na_value if v is None else v for v in mapped], dtype=object)

    def get_breaks(self, state: ScaleState, limits: Any = None) -> np.ndarray:
        limits = limits if limits is not None else self.get_limits(state)
        if limits is None or self.breaks == ():
            return np.array([], dtype=float)
        trans = self.get_trans()
        if self.breaks is None:
            breaks = trans.breaks(limits, self.n_breaks or 5)
        else:
            breaks = np.asarray(trans.transform(pd.Series(list(self.breaks), dtype=object)), dtype=float)
        low, high = min(limits), max(limits)
        tol = (high - low) * 1e-10
        return breaks[np.isfinite(breaks) & (breaks >= low - tol) & (breaks <= high + tol)]

    def get_breaks_minor(self, state: ScaleState, breaks: Any, limits: Any = None) -> np.ndarray:
        limits = limits if limits is not None else self.get_limits(state)
        if limits is None or self.minor_breaks == ():
            return np.array([], dtype=float)
        if self.minor_breaks is not None:
            minor = np.asarray(self.transform(pd.Series(list(self.minor_breaks), dtype=object)), dtype=float)
            return minor[(minor >= min(limits)) & (minor <= max(limits))]
        return self.get_trans().minor_breaks(np.asarray(breaks, dtype=float), limits)

    def get_labels(self, state: ScaleState, breaks: Any) -> List[str]:
        breaks = np.asarray(breaks, dtype=float)
        if self.labels is None:
            return self.get_trans().format(breaks)
        labels = [str(label) for label in self.labels]
        if self.breaks is None or self.breaks == ():
            return labels[: len(breaks)]
        source = np.asarray(self.transform(pd.Series(list(self.breaks), dtype=object)), dtype=float)
        return [labels[int(np.argmin(np.abs(source - b)))] for b in breaks]

    def dimension(self, state: ScaleState, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        limits = limits if limits is not None else self.get_limits(state)
        if limits is None:
            return (0.0, 1.0)
        mult, add = _expansion(expand if expand is not None else (self.expand or self.default_expand()))
        return expand_range(limits, mult, add)


class ScaleContinuousPosition(ScaleContinuous):
    call = "continuous_position_scale"
    is_position = True
    na_value: Any = np.nan
    guide: Any = "axis"
    palette = staticmethod(lambda x: x)

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        x = np.asarray(_as_series(values).to_numpy(dtype=float, na_value=np.nan), dtype=float)
        limits = self.get_limits(state)
        if limits is None:
            return x
        mapped = self.oob(x, limits)
        return np.where(np.isnan(mapped), self.na_value, mapped)


class ScaleDiscrete(Scale):
    call = "discrete_scale"
    palette = staticmethod(hue_pal())
    values: Any = None
    na_value: Any = "grey50"

    def new_state(self) -> ScaleState:
        return ScaleState(range=DiscreteRange())

    def is_discrete(self) -> bool:
        return True

    def transform(self, values: Any) -> Any:
        return values

    def inverse(self, values: Any) -> Any:
        return values

    def default_expand(self) -> Tuple[float, float]:
        return _DISCRETE_EXPAND

    def get_limits(self, state: ScaleState) -> List[Any]:
        if self.limits is not None:
            return list(self.limits)
        return list(state.range.range or [])

    def _lookup(self, state: ScaleState) -> Dict[Any, Any]:
        limits = self.get_limits(state)
        if isinstance(self.values, Mapping):
            return {level: self.values.get(level, self.values.get(str(level), self.na_value)) for level in limits}
        palette = manual_pal(self.values) if self.values is not None else self.palette
        return dict(zip(limits, palette(len(limits))))

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        lookup = self._lookup(state)
        out = []
        for value in _as_series(values):
            mapped = lookup.get(value) if not _is_missing(value) else None
            out.append(self.na_value if mapped is None else mapped)
        return np.array(out, dtype=object)

    def get_breaks(self, state: ScaleState, limits: Any = None) -> List[Any]:
        limits = limits if limits is not None else self.get_limits(state)
        if self.breaks == ():
            return []
        if self.breaks is None:
            return list(limits)
        return [level for level in self.breaks if level in set(limits)]

    def get_labels(self, state: ScaleState, breaks: Any) -> List[str]:
        if self.labels is None:
            return [str(level) for level in breaks]
        if isinstance(self.labels, Mapping):
            return [str(self.labels.get(level, level)) for level in breaks]
        source = list(self.breaks) if self.breaks not in (None, ()) else self.get_limits(state)
        named = dict(zip(source, self.labels))
        return [str(named.get(level, level)) for level in breaks]

    def dimension(self, state: ScaleState, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        n = len(limits if limits is not None else self.get_limits(state))
        return (1.0, float(max(n, 1)))


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


class ScaleDiscretePosition(ScaleDiscrete):
    call = "discrete_position_scale"
    is_position = True
    na_value: Any = np.nan
    guide: Any = "axis"

    def new_state(self) -> ScaleState:
        return ScaleState(range=DiscreteRange(), range_c=ContinuousRange())

    def train(self, state: ScaleState, values: Any) -> None:
        series = _as_series(values)
        if is_discrete(series):
            state.range.train(series)
        else:
            state.range_c.train(series)

    def reset(self, state: ScaleState) -> None:
        # Levels survive the post-statistic reset; only continuous positions retrain.
        state.range_c.reset()

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        series = _as_series(values)
        if not is_discrete(series):
            return series.to_numpy(dtype=float, na_value=np.nan)
        index = {level: float(i + 1) for i, level in enumerate(self.get_limits(state))}
        return np.array([index.get(value, self.na_value) for value in series], dtype=float)

    def dimension(self, state: ScaleState, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        levels = limits if limits is not None else self.get_limits(state)
        bounds: List[float] = []
        if levels:
            bounds.extend([1.0, float(len(levels))])
        if state.range_c is not None and state.range_c.range is not None:
            bounds.extend(state.range_c.range)
        if not bounds:
            return (0.0, 1.0)
        mult, add = _expansion(expand if expand is not None else (self.expand or self.default_expand()))
        return expand_range((min(bounds), max(bounds)), mult, add)


class ScaleBinned(ScaleContinuous):
    call = "binned_scale"

    def _edges(self, state: ScaleState) -> Optional[np.ndarray]:
        limits = self.get_limits(state)
        if limits is None:
            return None
        inner = self.get_breaks(state, limits)
        return np.unique(np.concatenate([[limits[0]], inner, [limits[1]]]))

    def _midpoints(self, state: ScaleState, values: Any) -> np.ndarray:
        x = np.asarray(_as_series(values).to_numpy(dtype=float, na_value=np.nan), dtype=float)
        edges = self._edges(state)
        if edges is None or len(edges) < 2:
            return x
        x = self.oob(x, (edges[0], edges[-1]))
        idx = np.searchsorted(edges, x, side="left")
        idx = np.clip(idx, 1, len(edges) - 1)
        mids = (edges[idx - 1] + edges[idx]) / 2
        return np.where(np.isfinite(x), mids, np.nan)

    def get_breaks(self, state: ScaleState, limits: Any = None) -> np.ndarray:
        breaks = delegate(ScaleContinuous, self).get_breaks(state, limits)
        limits = limits if limits is not None else self.get_limits(state)
        if limits is None:
            return breaks
        return breaks[(breaks > min(limits)) & (breaks < max(limits))]

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        mids = self._midpoints(state, values)
        limits = self.get_limits(state)
        if limits is None:
            return np.full(mids.shape, self.na_value, dtype=object)
        low, high = limits
        with np.errstate(invalid="ignore", divide="ignore"):
            rescaled = (mids - low) / (high - low) if high != low else np.full(mids.shape, 0.5)
        mapped = self.palette(rescaled)
        return np.array([self.na_value if v is None else v for v in mapped], dtype=object)


class ScaleBinnedPosition(ScaleBinned):
    call = "binned_position_scale"
    is_position = True
    na_value: Any = np.nan
    guide: Any = "axis"
    palette = staticmethod(lambda x: x)

    def reset(self, state: ScaleState) -> None:
        state.after_stat = True
        state.range.reset()

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        if state.after_stat:
            return np.asarray(_as_series(values).to_numpy(dtype=float, na_value=np.nan), dtype=float)
        return self._midpoints(state, values)


class ScaleIdentity(Scale):
    call = "identity_scale"
    guide: Any = "none"

    def new_state(self) -> ScaleState:
        return ScaleState(range=DiscreteRange())

    def transform(self, values: Any) -> Any:
        return values

    def train(self, state: ScaleState, values: Any) -> None:
        if self.guide != "none":
            state.range.train(values)

    def map(self, state: ScaleState, values: Any) -> np.ndarray:
        return np.asarray(_as_series(values).to_numpy(), dtype=object)

    def get_limits(self, state: ScaleState) -> List[Any]:
        return list(state.range.range or [])

    def get_breaks(self, state: ScaleState, limits: Any = None) -> List[Any]:
        return list(limits if limits is not None else self.get_limits(state))

    def get_labels(self, state: ScaleState, breaks: Any) -> List[str]:
        return [str(value) for value in breaks]

    def is_discrete(self) -> bool:
        return True

    def dimension(self, state: ScaleState, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        return (0.0, 1.0)


# -- trained scales -----------------------------------------------------------------


class TrainedScale:
    """A scale definition bound to the state it accumulates during one render."""

    def __init__(self, scale: Scale, state: Optional[ScaleState] = None) -> None:
        self.scale = scale
        self.state = state if state is not None else scale.new_state()

    @property
    def aesthetics(self) -> Tuple[str, ...]:
        return tuple(self.scale.aesthetics)

    @property
    def is_position(self) -> bool:
        return bool(self.scale.is_position)

    def _check_open(self, action: str) -> None:
        if self.state.frozen:
            raise ScaleFrozenError(
                f"cannot {action} scale for '{self.aesthetics[0]}': the build has completed and scales are read-only"
            )

    def train(self, values: Any) -> None:
        self._check_open("train")
        self.scale.train(self.state, values)

    def reset(self) -> None:
        self._check_open("reset")
        self.scale.reset(self.state)

    def map(self, values: Any) -> np.ndarray:
        return self.scale.map(self.state, values)

    def transform(self, values: Any) -> Any:
        return self.scale.transform(values)

    def inverse(self, values: Any) -> Any:
        return self.scale.inverse(values)

    def columns_in(self, data: pd.DataFrame) -> List[str]:
        return [aes for aes in self.aesthetics if aes in data.columns]

    def train_df(self, data: pd.DataFrame) -> None:
        for column in self.columns_in(data):
            self.train(data[column])

    def map_df(self, data: pd.DataFrame) -> Dict[str, np.ndarray]:
        return {column: self.map(data[column]) for column in self.columns_in(data)}

    def transform_df(self, data: pd.DataFrame) -> Dict[str, Any]:
        if self.scale.is_discrete() or self.scale.get_trans().name == "identity":
            return {}
        return {column: self.transform(data[column]) for column in self.columns_in(data)}

    def get_limits(self) -> Any:
        return self.scale.get_limits(self.state)

    def get_breaks(self, limits: Any = None) -> Any:
        return self.scale.get_breaks(self.state, limits)

    def get_breaks_minor(self, breaks: Any = None, limits: Any = None) -> Any:
        if breaks is None:
            breaks = self.get_breaks(limits)
        return self.scale.get_breaks_minor(self.state, breaks, limits)

    def get_labels(self, breaks: Any = None) -> List[str]:
        if breaks is None:
            breaks = self.get_breaks()
        return self.scale.get_labels(self.state, breaks)

    def dimension(self, expand: Any = None, limits: Any = None) -> Tuple[float, float]:
        return self.scale.dimension(self.state, expand, limits)

    def is_discrete(self) -> bool:
        return self.scale.is_discrete()

    def is_empty(self) -> bool:
        empty_c = self.state.range_c is None or self.state.range_c.range is None
        return self.state.range.range is None and empty_c and self.scale.limits is None

    def make_title(self, fallback: Any = None) -> Any:
        return self.scale.make_title(fallback)

    def clone(self) -> "TrainedScale":
        """A fresh, untrained copy sharing the same definition."""
        return TrainedScale(self.scale)

    def snapshot(self) -> "TrainedScale":
        return TrainedScale(self.scale, self.state.copy())

    def freeze(self) -> None:
        self.state.frozen = True

    def break_info(self, continuous_range: Tuple[float, float]) -> Dict[str, Any]:
        """Axis breaks for a panel whose visible range is ``continuous_range``."""

        low, high = min(continuous_range), max(continuous_range)
        if self.is_discrete():
            breaks = self.get_breaks()
            major = np.asarray(self.map(pd.Series(breaks, dtype=object)), dtype=float) if breaks else np.array([])
            labels = self.get_labels(breaks)
            minor = np.array([], dtype=float)
        else:
            limits = self.get_limits() if self.scale.limits is not None else None
            breaks = np.asarray(self.get_breaks(limits if limits is not None else (low, high)), dtype=float)
            major = breaks
            labels = self.get_labels(breaks)
            minor = np.asarray(self.get_breaks_minor(breaks, (low, high)), dtype=float)
        inside = (major >= low) & (major <= high) if len(major) else np.array([], dtype=bool)
        return {
            "range": (low, high),
            "major": major[inside] if len(major) else major,
            "labels": [label for label, keep_it in zip(labels, inside) if keep_it],
            "minor": minor,
        }

    def __repr__(self) -> str:
        return f"<TrainedScale {self.scale.call} {self.aesthetics[0] if self.aesthetics else '?'} limits={self.get_limits()!r}>"


class ScaleSet:
    """The trained scales of one render, keyed by aesthetic."""

    def __init__(self, scales: Iterable[TrainedScale] = ()) -> None:
        self.scales: List[TrainedScale] = list(scales)

    def __iter__(self) -> Iterator[TrainedScale]:
        return iter(self.scales)

    def __len__(self) -> int:
        return len(self.scales)

    def find(self, aesthetic: str) -> Optional[TrainedScale]:
        for scale in self.scales:
            if aesthetic in scale.aesthetics:
                return scale
        return None

    def has_scale(self, aesthetic: str) -> bool:
        return self.find(aesthetic) is not None

    def input(self) -> List[str]:
        return [aes for scale in self.scales for aes in scale.aesthetics]

    def add(self, scale: Any) -> TrainedScale:
        trained = scale if isinstance(scale, TrainedScale) else TrainedScale(scale)
        clashing = [s for s in self.scales if set(s.aesthetics) & set(trained.aesthetics)]
        if clashing:
            aes = trained.aesthetics[0]
            warnings.warn(
                f"Scale for '{aes}' is already present. Adding another scale for '{aes}', "
                "which will replace the existing scale.",
                GramvizWarning,
                stacklevel=2,
            )
            self.scales = [s for s in self.scales if s not in clashing]
        self.scales.append(trained)
        return trained

    def non_position_scales(self) -> "ScaleSet":
        return ScaleSet(scale for scale in self.scales if not scale.is_position)

    def position_scales(self) -> "ScaleSet":
        return ScaleSet(scale for scale in self.scales if scale.is_position)

    def add_defaults(self, data: pd.DataFrame, aesthetics: Iterable[str]) -> None:
        """Add a default scale for every aesthetic without one, chosen from the column type."""

        for aes in aesthetics:
            if aes not in data.columns or self.has_scale(aes):
                continue
            family = position_family(aes) or aes
            scale = default_scale(family, data[aes])
            if scale is not None:
                LOGGER.debug("adding default %s for '%s'", scale.call, family)
                self.scales.append(TrainedScale(scale))

    def add_missing(self, aesthetics: Iterable[str] = ("x", "y")) -> None:
        for aes in aesthetics:
            if not self.has_scale(aes):
                self.scales.append(TrainedScale(scale_x_continuous() if aes == "x" else scale_y_continuous()))

    def transform_df(self, data: pd.DataFrame) -> pd.DataFrame:
        if data.empty:
            return data
        columns: Dict[str, Any] = {}
        for scale in self.scales:
            columns.update(scale.transform_df(data))
        if not columns:
            return data
        out = data.copy()
        for name, values in columns.items():
            out[name] = np.asarray(values, dtype=float)
        return out

    def train_df(self, data: pd.DataFrame) -> None:
        if data.empty:
            return
        for scale in self.scales:
            scale.train_df(data)

    def map_df(self, data: pd.DataFrame) -> pd.DataFrame:
        if data.empty:
            return data
        out = data.copy()
        for scale in self.scales:
            for name, values in scale.map_df(data).items():
                out[name] = values
        return out

    def freeze(self) -> None:
        for scale in self.scales:
            scale.freeze()

    def summary(self) -> List[Dict[str, Any]]:
        rows = []
        for scale in self.scales:
            limits = scale.get_limits()
            if isinstance(limits, tuple):
                limits = [float(v) for v in limits]
            rows.append(
                {
                    "aesthetic": scale.aesthetics[0],
                    "kind": scale.scale.call,
                    "discrete": scale.is_discrete(),
                    "limits": [str(v) if not isinstance(v, (int, float)) else v for v in (limits or [])],
                    "trans": scale.scale.get_trans().name,
                }
            )
        return rows


# -- constructors -------------------------------------------------------------------


def _make(klass: type, **params: Any) -> Scale:
    for key in ("breaks", "minor_breaks", "labels", "limits"):
        if isinstance(params.get(key), np.ndarray):
            params[key] = params[key].tolist()
    if "oob" in params:
        params["oob"] = as_oob(params["oob"])
    if "palette" in params and not isinstance(params["palette"], staticmethod):
        params["palette"] = staticmethod(params["palette"])
    scale = klass(**params)
    scale.validate_params()
    return scale


def continuous_scale(aesthetics: Sequence[str], palette: Any, **params: Any) -> Scale:
    return _make(ScaleContinuous, aesthetics=tuple(aesthetics), palette=palette, **params)


def discrete_scale(aesthetics: Sequence[str], palette: Any, **params: Any) -> Scale:
    return _make(ScaleDiscrete, aesthetics=tuple(aesthetics), palette=palette, **params)


def scale_x_continuous(**params: Any) -> Scale:
    return _make(ScaleContinuousPosition, aesthetics=X_AESTHETICS, call="scale_x_continuous", **params)


def scale_y_continuous(**params: Any) -> Scale:
    return _make(ScaleContinuousPosition, aesthetics=Y_AESTHETICS, call="scale_y_continuous", **params)


def scale_x_log10(**params: Any) -> Scale:
    return scale_x_continuous(trans="log10", **params)


def scale_y_log10(**params: Any) -> Scale:
    return scale_y_continuous(trans="log10", **params)


def scale_x_sqrt(**params: Any) -> Scale:
    return scale_x_continuous(trans="sqrt", **params)


def scale_y_sqrt(**params: Any) -> Scale:
    return scale_y_continuous(trans="sqrt", **params)


def scale_x_reverse(**params: Any) -> Scale:
    return scale_x_continuous(trans="reverse", **params)


def scale_y_reverse(**params: Any) -> Scale:
    return scale_y_continuous(trans="reverse", **params)


def scale_x_datetime(**params: Any) -> Scale:
    return scale_x_continuous(trans="datetime", **params)


def scale_y_datetime(**params: Any) -> Scale:
    return scale_y_continuous(trans="datetime", **params)


def scale_x_discrete(**params: Any) -> Scale:
    return _make(ScaleDiscretePosition, aesthetics=X_AESTHETICS, call="scale_x_discrete", **params)


def scale_y_discrete(**params: Any) -> Scale:
    return _make(ScaleDiscretePosition, aesthetics=Y_AESTHETICS, call="scale_y_discrete", **params)


def scale_x_binned(**params: Any) -> Scale:
    return _make(ScaleBinnedPosition, aesthetics=X_AESTHETICS, call="scale_x_binned", **params)


def scale_y_binned(**params: Any) -> Scale:
    return _make(ScaleBinnedPosition, aesthetics=Y_AESTHETICS, call="scale_y_binned", **params)


def scale_colour_hue(aesthetics: Sequence[str] = ("colour",), **params: Any) -> Scale:
    return _make(ScaleDiscrete, aesthetics=tuple(aesthetics), palette=hue_pal(), call="scale_colour_hue", **params)


def scale_fill_hue(**params: Any) -> Scale:
    return scale_colour_hue(aesthetics=("fill",), **params)


def scale_colour_gradient(
    aesthetics: Sequence[str] = ("colour",), low: str = "#132B43", high: str = "#56B1F7", **params: Any
) -> Scale:
    params.setdefault("guide", "colourbar")
    return _make(
        ScaleContinuous, aesthetics=tuple(aesthetics), palette=gradient_pal(low, high), call="scale_colour_gradient", **params
    )


def scale_fill_gradient(**params: Any) -> Scale:
    return scale_colour_gradient(aesthetics=("fill",), **params)


def scale_colour_viridis_d(aesthetics: Sequence[str] = ("colour",), option: str = "viridis", **params: Any) -> Scale:
    return _make(ScaleDiscrete, aesthetics=tuple(aesthetics), palette=cmap_pal(option), call="scale_colour_viridis_d", **params)


def scale_fill_viridis_d(**params: Any) -> Scale:
    return scale_colour_viridis_d(aesthetics=("fill",), **params)


def scale_colour_viridis_c(aesthetics: Sequence[str] = ("colour",), option: str = "viridis", **params: Any) -> Scale:
    params.setdefault("guide", "colourbar")
    return _make(
        ScaleContinuous, aesthetics=tuple(aesthetics), palette=cmap_gradient_pal(option), call="scale_colour_viridis_c", **params
    )


def scale_fill_viridis_c(**params: Any) -> Scale:
    return scale_colour_viridis_c(aesthetics=("fill",), **params)


def scale_colour_steps(
    aesthetics: Sequence[str] = ("colour",), low: str = "#132B43", high: str = "#56B1F7", **params: Any
) -> Scale:
    return _make(ScaleBinned, aesthetics=tuple(aesthetics), palette=gradient_pal(low, high), call="scale_colour_steps", **params)


def scale_fill_steps(**params: Any) -> Scale:
    return scale_colour_steps(aesthetics=("fill",), **params)


def scale_colour_manual(values: Any, aesthetics: Sequence[str] = ("colour",), **params: Any) -> Scale:
    if not isinstance(values, Mapping):
        values = list(values)
    return _make(ScaleDiscrete, aesthetics=tuple(aesthetics), values=values, call="scale_colour_manual", **params)


def scale_fill_manual(values: Any, **params: Any) -> Scale:
    return scale_colour_manual(values, aesthetics=("fill",), **params)


def scale_colour_identity(aesthetics: Sequence[str] = ("colour",), **params: Any) -> Scale:
    return _make(ScaleIdentity, aesthetics=tuple(aesthetics), call="scale_colour_identity", **params)


def scale_fill_identity(**params: Any) -> Scale:
    return scale_colour_identity(aesthetics=("fill",), **params)


def scale_size(range: Tuple[float, float] = (1.0, 6.0), **params: Any) -> Scale:
    return _make(ScaleContinuous, aesthetics=("size",), palette=area_pal(range), na_value=np.nan, call="scale_size", **params)


def scale_size_discrete(range: Tuple[float, float] = (2.0, 6.0), **params: Any) -> Scale:
    return _make(
        ScaleDiscrete, aesthetics=("size",), palette=discrete_rescale_pal(range), na_value=np.nan, call="scale_size_discrete", **params
    )


def scale_alpha(range: Tuple[float, float] = (0.1, 1.0), **params: Any) -> Scale:
    return _make(ScaleContinuous, aesthetics=("alpha",), palette=rescale_pal(range), na_value=np.nan, call="scale_alpha", **params)


def scale_alpha_discrete(range: Tuple[float, float] = (0.1, 1.0), **params: Any) -> Scale:
    return _make(
        ScaleDiscrete, aesthetics=("alpha",), palette=discrete_rescale_pal(range), na_value=np.nan, call="scale_alpha_discrete", **params
    )


def scale_linewidth(range: Tuple[float, float] = (1.0, 6.0), **params: Any) -> Scale:
    return _make(ScaleContinuous, aesthetics=("linewidth",), palette=rescale_pal(range), na_value=np.nan, call="scale_linewidth", **params)


def scale_shape(**params: Any) -> Scale:
    return _make(ScaleDiscrete, aesthetics=("shape",), palette=shape_pal(), na_value=None, call="scale_shape", **params)


def scale_linetype(**params: Any) -> Scale:
    return _make(ScaleDiscrete, aesthetics=("linetype",), palette=linetype_pal(), na_value=None, call="scale_linetype", **params)


def default_scale(aesthetic: str, values: pd.Series) -> Optional[Scale]:
    """The scale used for ``aesthetic`` when none was specified."""

    datetime = pd.api.types.is_datetime64_any_dtype(values.dtype)
    discrete = is_discrete(values) and not datetime
    if aesthetic in ("x", "y"):
        if datetime:
            return scale_x_datetime() if aesthetic == "x" else scale_y_datetime()
        if discrete:
            return scale_x_discrete() if aesthetic == "x" else scale_y_discrete()
        return scale_x_continuous() if aesthetic == "x" else scale_y_continuous()
    if aesthetic in ("colour", "fill"):
        if discrete:
            return scale_colour_hue(aesthetics=(aesthetic,))
        return scale_colour_gradient(aesthetics=(aesthetic,), trans="datetime" if datetime else "identity")
    if aesthetic == "size":
        return scale_size_discrete() if discrete else scale_size()
    if aesthetic == "alpha":
        return scale_alpha_discrete() if discrete else scale_alpha()
    if aesthetic == "linewidth":
        return scale_linewidth()
    if aesthetic in ("shape", "linetype"):
        if not discrete:
            raise SpecificationError(f"A continuous variable cannot be mapped to the {aesthetic} aesthetic.")
        return scale_shape() if aesthetic == "shape" else scale_linetype()
    return None
