from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np
import pandas as pd

from ..core.errors import SpecificationError
from ..core.proto import Proto
from ..core.table import GROUP, PANEL, count_missing, remove_missing, resolution, split_apply
from ..pipeline.aes import after_stat, check_required_aesthetics

LOGGER = logging.getLogger(__name__)


class Stat(Proto):
    """Statistical transformation of a layer's table.

    The layer table is split by panel and then by group; ``compute_group`` sees one
    partition at a time. Columns the computation does not return are carried over
    when they are constant within the partition, so ``PANEL`` and ``group`` always
    survive.
    """

    call = "stat"
    required_aes: Tuple[str, ...] = ()
    non_missing_aes: Tuple[str, ...] = ()
    optional_aes: Tuple[str, ...] = ()
    default_aes: Mapping[str, Any] = {}
    provides: Tuple[str, ...] = ()
    dropped_aes: Tuple[str, ...] = ()
    parameters: Tuple[str, ...] = ("na_rm",)
    retransform = True

    def validate_params(self, params: Mapping[str, Any]) -> None:
        return None

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(params)

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def incomplete_rows(self, data: pd.DataFrame, params: Mapping[str, Any]) -> int:
        """Rows compute_layer will drop for missing or non-finite required values."""
        present = [aes for req in self.required_aes for aes in req.split("|")]
        return count_missing(data, present + list(self.non_missing_aes), finite=True)

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        check_required_aesthetics(self.required_aes, list(data.columns) + list(params), self.call)
        present = [aes for req in self.required_aes for aes in req.split("|")]
        data = remove_missing(
            data,
            present + list(self.non_missing_aes),
            na_rm=bool(params.get("na_rm", False)),
            name=self.call,
            finite=True,
        )
        return split_apply(
            data,
            [PANEL],
            lambda part: self.compute_panel(part, layout.get_scales(int(part[PANEL].iloc[0])), params),
        )

    def compute_panel(self, data: pd.DataFrame, scales: Mapping[str, Any], params: Mapping[str, Any]) -> pd.DataFrame:
        def one_group(old: pd.DataFrame) -> pd.DataFrame:
            new = self.compute_group(old, scales, params)
            if new is None or new.empty:
                return new
            new = new.reset_index(drop=True)
            carried = [
                col for col in old.columns
                if col not in new.columns and old[col].nunique(dropna=False) <= 1
            ]
            for col in carried:
                new[col] = pd.Series([old[col].iloc[0]] * len(new), dtype=old[col].dtype)
            return new

        return split_apply(data, [GROUP], one_group)

    def compute_group(self, data: pd.DataFrame, scales: Mapping[str, Any], params: Mapping[str, Any]) -> pd.DataFrame:
        raise NotImplementedError(f"{self.call} does not implement compute_group")

    def finish_layer(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data


class StatIdentity(Stat):
    call = "stat_identity"

    def incomplete_rows(self, data: pd.DataFrame, params: Mapping[str, Any]) -> int:
        return 0

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        return data


class StatCount(Stat):
    call = "stat_count"
    required_aes = ("x",)
    default_aes = {"y": after_stat("count"), "weight": 1}
    provides = ("count", "prop", "width", "y")
    dropped_aes = ("weight",)
    parameters = ("na_rm", "width")

    def validate_params(self, params: Mapping[str, Any]) -> None:
        width = params.get("width")
        if width is not None and float(width) <= 0:
            raise SpecificationError(f"{self.call}: width must be positive, got {width!r}")

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> Dict[str, Any]:
        if "y" in data.columns:
            raise SpecificationError(f"{self.call} must only have an x aesthetic (y is computed)")
        return dict(params)

    def compute_group(self, data: pd.DataFrame, scales: Mapping[str, Any], params: Mapping[str, Any]) -> pd.DataFrame:
        weight = data["weight"] if "weight" in data.columns else pd.Series(1.0, index=data.index)
        weight = pd.to_numeric(weight, errors="coerce").fillna(0.0)
        counts = weight.groupby(data["x"].to_numpy(), sort=True).sum()
        x = counts.index.to_numpy(dtype=float)
        width = params.get("width")
        if width is None:
            width = resolution(x, zero=False) * 0.9
        total = float(counts.sum())
        return pd.DataFrame(
            {
                "count": counts.to_numpy(dtype=float),
                "prop": counts.to_numpy(dtype=float) / total if total else np.nan,
                "x": x,
                "width": float(width),
                "flipped_aes": False,
            }
        )


def _bin_edges(
    x_range: Tuple[float, float],
    bins: int = 30,
    binwidth: Any = None,
    center: Any = None,
    boundary: Any = None,
) -> np.ndarray:
    low, high = x_range
    if binwidth is None:
        if high == low:
            binwidth = 0.1
        elif bins == 1:
            binwidth = high - low
            boundary = low if boundary is None and center is None else boundary
        else:
            binwidth = (high - low) / (bins - 1)
    binwidth = float(binwidth)
    if boundary is None:
        boundary = binwidth / 2 if center is None else float(center) - binwidth / 2
    shift = np.floor((low - float(boundary)) / binwidth)
    origin = float(boundary) + shift * binwidth
    max_x = high + (1 - 1e-8) * binwidth
    if (max_x - origin) / binwidth > 1e6:
        raise SpecificationError("The number of histogram bins must be less than 1,000,000.")
    edges = np.arange(origin, max_x, binwidth)
    if len(edges) == 1:
        edges = np.array([edges[0], edges[0] + binwidth])
    return edges


def _bin_counts(x: np.ndarray, weight: np.ndarray, edges: np.ndarray, closed: str) -> np.ndarray:
    fuzz = 1e-8 * float(np.median(np.diff(edges)))
    shifted = edges.copy()
    if closed == "right":
        shifted[1:] += fuzz
        shifted[0] -= fuzz
        index = np.searchsorted(shifted, x, side="left") - 1
    else:
        shifted[:-1] -= fuzz
        shifted[-1] += fuzz
        index = np.searchsorted(shifted, x, side="right") - 1
    valid = (index >= 0) & (index < len(edges) - 1)
    return np.bincount(index[valid], weights=weight[valid], minlength=len(edges) - 1)


class StatBin(Stat):
    call = "stat_bin"
    required_aes = ("x",)
    default_aes = {"y": after_stat("count"), "weight": 1}
    provides = ("count", "density", "ncount", "ndensity", "width", "xmin", "xmax", "y")
    dropped_aes = ("weight",)
    parameters = ("na_rm", "bins", "binwidth", "center", "boundary", "breaks", "closed", "pad")

    def validate_params(self, params: Mapping[str, Any]) -> None:
        bins = params.get("bins")
        if bins is not None and (not isinstance(bins, (int, np.integer)) or bins < 1):
            raise SpecificationError(f"{self.call}: bins must be a positive integer, got {bins!r}")
        binwidth = params.get("binwidth")
        if binwidth is not None and float(binwidth) <= 0:
            raise SpecificationError(f"{self.call}: binwidth must be positive, got {binwidth!r}")
        if params.get("closed", "right") not in ("left", "right"):
            raise SpecificationError(f"{self.call}: closed must be 'left' or 'right'")
        if params.get("center") is not None and params.get("boundary") is not None:
            raise SpecificationError(f"{self.call}: only one of boundary and center may be specified")

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> Dict[str, Any]:
        if "y" in data.columns:
            raise SpecificationError(f"{self.call} must only have an x aesthetic (y is computed)")
        out = dict(params)
        if out.get("breaks") is None and out.get("binwidth") is None and out.get("bins") is None:
            LOGGER.info("%s using bins = 30; pick a better value with binwidth", self.call)
            out["bins"] = 30
        return out

    def compute_group(self, data: pd.DataFrame, scales: Mapping[str, Any], params: Mapping[str, Any]) -> pd.DataFrame:
        x = data["x"].to_numpy(dtype=float)
        weight = (
            pd.to_numeric(data["weight"], errors="coerce").fillna(0.0).to_numpy(dtype=float)
            if "weight" in data.columns
            else np.ones(len(data))
        )
        if params.get("breaks") is not None:
            edges = np.sort(np.asarray(scales["x"].transform(pd.Series(list(params["breaks"]))), dtype=float))
        else:
            edges = _bin_edges(
                scales["x"].dimension(expand=(0.0, 0.0)),
                bins=int(params.get("bins") or 30),
                binwidth=params.get("binwidth"),
                center=params.get("center"),
                boundary=params.get("boundary"),
            )
        counts = _bin_counts(x, weight, edges, params.get("closed", "right"))
        widths = np.diff(edges)
        xmin, xmax = edges[:-1], edges[1:]
        if params.get("pad", False):
            counts = np.concatenate([[0.0], counts, [0.0]])
            widths = np.concatenate([[widths[0]], widths, [widths[-1]]])
            xmin = np.concatenate([[xmin[0] - widths[0]], xmin, [xmax[-1]]])
            xmax = xmin + widths
        total = counts.sum()
        density = counts / widths / total if total else np.zeros_like(counts)
        return pd.DataFrame(
            {
                "count": counts,
                "x": (xmin + xmax) / 2,
                "xmin": xmin,
                "xmax": xmax,
                "width": widths,
                "density": density,
                "ncount": counts / counts.max() if counts.max() else counts,
                "ndensity": density / density.max() if density.max() else density,
                "flipped_aes": False,
            }
        )


def _mean_se(values: np.ndarray, mult: float = 1.0) -> Tuple[float, float, float]:
    mean = float(np.mean(values))
    se = float(np.std(values, ddof=1) / np.sqrt(len(values))) if len(values) > 1 else 0.0
    return mean, mean - mult * se, mean + mult * se


def _mean_sdl(values: np.ndarray, mult: float = 2.0) -> Tuple[float, float, float]:
    mean = float(np.mean(values))
    sd = float(np.std(values, ddof=1)) if len(values) > 1 else 0.0
    return mean, mean - mult * sd, mean + mult * sd


def _median_hilow(values: np.ndarray, mult: float = 0.95) -> Tuple[float, float, float]:
    tail = (1 - mult) / 2
    return float(np.median(values)), float(np.quantile(values, tail)), float(np.quantile(values, 1 - tail))


def _range(values: np.ndarray, mult: float = 1.0) -> Tuple[float, float, float]:
    return float(np.mean(values)), float(np.min(values)), float(np.max(values))


SUMMARY_FUNCTIONS = {
    "mean_se": (_mean_se, 1.0),
    "mean_sdl": (_mean_sdl, 2.0),
    "median_hilow": (_median_hilow, 0.95),
    "mean_range": (_range, 1.0),
}


class StatSummary(Stat):
    call = "stat_summary"
    required_aes = ("x", "y")
    provides = ("ymin", "ymax")
    parameters = ("na_rm", "fun_data", "mult")

    def validate_params(self, params: Mapping[str, Any]) -> None:
        fun = params.get("fun_data", "mean_se")
        if fun not in SUMMARY_FUNCTIONS:
            raise SpecificationError(f"{self.call}: unknown fun_data '{fun}'; expected one of {sorted(SUMMARY_FUNCTIONS)}")

    def compute_group(self, data: pd.DataFrame, scales: Mapping[str, Any], params: Mapping[str, Any]) -> pd.DataFrame:
        fun, default_mult = SUMMARY_FUNCTIONS[params.get("fun_data", "mean_se")]
        mult = float(params.get("mult", default_mult))
        rows: List[Dict[str, float]] = []
        for x, part in data.groupby("x", sort=True):
            y, ymin, ymax = fun(part["y"].to_numpy(dtype=float), mult)
            rows.append({"x": float(x), "y": y, "ymin": ymin, "ymax": ymax})
        return pd.DataFrame(rows, columns=["x", "y", "ymin", "ymax"])


def stat_identity() -> Stat:
    return StatIdentity()


def stat_count() -> Stat:
    return StatCount()


def stat_bin() -> Stat:
    return StatBin()


def stat_summary() -> Stat:
    return StatSummary()
