from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from matplotlib.ticker import MaxNLocator

from ..core.errors import SpecificationError

_EPOCH = pd.Timestamp("1970-01-01")


def _numeric(values: Any) -> np.ndarray:
    if isinstance(values, pd.Series):
        return pd.to_numeric(values, errors="coerce").to_numpy(dtype=float, na_value=np.nan)
    return np.asarray(values, dtype=float)


def _quiet(fn: Callable[[np.ndarray], np.ndarray]) -> Callable[[Any], np.ndarray]:
    def apply(values: Any) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return fn(_numeric(values))

    return apply


def _to_seconds(values: Any) -> np.ndarray:
    if isinstance(values, pd.Series) and pd.api.types.is_numeric_dtype(values.dtype):
        return _numeric(values)
    stamps = pd.to_datetime(pd.Series(values), errors="coerce")
    if getattr(stamps.dt, "tz", None) is not None:
        stamps = stamps.dt.tz_convert(None)
    return ((stamps - _EPOCH) / pd.Timedelta(seconds=1)).to_numpy(dtype=float, na_value=np.nan)


def _from_seconds(values: Any) -> np.ndarray:
    return pd.to_datetime(_numeric(values), unit="s").to_numpy()


def format_number(value: Any) -> str:
    if value is None or (isinstance(value, float) and not np.isfinite(value)):
        return ""
    if isinstance(value, (float, np.floating)):
        if float(value).is_integer() and abs(value) < 1e15:
            return str(int(value))
        return f"{float(value):.6g}"
    return str(value)


def _format_dates(values: Sequence[Any]) -> List[str]:
    stamps = pd.to_datetime(pd.Series(list(values)))
    with_time = bool(((stamps - stamps.dt.normalize()) != pd.Timedelta(0)).any())
    pattern = "%Y-%m-%d %H:%M" if with_time else "%Y-%m-%d"
    return [stamp.strftime(pattern) for stamp in stamps]


@dataclass(frozen=True)
class Trans:
    """A named invertible transformation applied to continuous scale values."""

    name: str
    transform: Callable[[Any], np.ndarray]
    inverse: Callable[[Any], Any]
    domain: Tuple[float, float] = (-np.inf, np.inf)

    def breaks(self, limits: Tuple[float, float], n: int = 5) -> np.ndarray:
        """Breaks in transformed space for transformed ``limits``."""

        low, high = float(limits[0]), float(limits[1])
        if not (np.isfinite(low) and np.isfinite(high)):
            return np.array([], dtype=float)
        if low == high:
            return np.array([low])
        low, high = min(low, high), max(low, high)
        locator = MaxNLocator(nbins=n, steps=[1, 2, 2.5, 5, 10])
        ticks = np.asarray(locator.tick_values(low, high), dtype=float)
        tol = (high - low) * 1e-10
        return ticks[(ticks >= low - tol) & (ticks <= high + tol)]

    def minor_breaks(self, major: np.ndarray, limits: Tuple[float, float]) -> np.ndarray:
        if len(major) < 2:
            return np.array([], dtype=float)
        step = float(major[1] - major[0])
        low, high = min(limits), max(limits)
        extended = np.concatenate([[major[0] - step], major, [major[-1] + step]])
        mids = (extended[:-1] + extended[1:]) / 2
        return mids[(mids >= low) & (mids <= high)]

    def format(self, breaks: np.ndarray) -> List[str]:
        values = self.inverse(np.asarray(breaks, dtype=float))
        if self.name == "datetime":
            return _format_dates(values)
        return [format_number(float(value)) for value in np.asarray(values, dtype=float)]

    def __repr__(self) -> str:
        return f"Trans({self.name!r})"


_log10 = Trans("log10", _quiet(np.log10), _quiet(lambda x: np.power(10.0, x)), (1e-300, np.inf))

TRANSFORMS: Dict[str, Trans] = {
    "identity": Trans("identity", _numeric, _numeric),
    "log10": _log10,
    "log2": Trans("log2", _quiet(np.log2), _quiet(lambda x: np.power(2.0, x)), (1e-300, np.inf)),
    "log": Trans("log", _quiet(np.log), _quiet(np.exp), (1e-300, np.inf)),
    "sqrt": Trans("sqrt", _quiet(np.sqrt), _quiet(np.square), (0.0, np.inf)),
    "reverse": Trans("reverse", _quiet(np.negative), _quiet(np.negative)),
    "exp": Trans("exp", _quiet(np.exp), _quiet(np.log)),
    "datetime": Trans("datetime", _to_seconds, _from_seconds),
}


def as_trans(value: Any) -> Trans:
    if isinstance(value, Trans):
        return value
    if value is None:
        return TRANSFORMS["identity"]
    try:
        return TRANSFORMS[str(value)]
    except KeyError:
        raise SpecificationError(
            f"unknown transformation '{value}'; expected one of {sorted(TRANSFORMS)}"
        ) from None
