from __future__ import annotations

import warnings
from typing import Callable, Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import MissingValueWarning, TableContractError

PANEL = "PANEL"
GROUP = "group"
NO_GROUP = -1

_NEVER_GROUPED = (PANEL, "label")


def is_discrete(series: pd.Series) -> bool:
    dtype = series.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        return True
    if pd.api.types.is_bool_dtype(dtype):
        return True
    return pd.api.types.is_object_dtype(dtype) or pd.api.types.is_string_dtype(dtype)


def check_table(data: pd.DataFrame, stage: str, require_group: bool = True) -> None:
    """Validate the mandatory panel/group columns at a stage boundary."""

    required = [PANEL, GROUP] if require_group else [PANEL]
    missing = [column for column in required if column not in data.columns]
    if missing:
        raise TableContractError(f"[{stage}] table is missing mandatory column(s): {', '.join(missing)}")
    for column in required:
        if data[column].isna().any():
            raise TableContractError(f"[{stage}] mandatory column '{column}' contains missing values")


def interaction_id(frame: pd.DataFrame) -> np.ndarray:
    """Dense 1-based ids for the sorted unique combinations of the frame's columns."""

    if frame.shape[1] == 0:
        return np.ones(len(frame), dtype=int)
    grouped = frame.groupby(list(frame.columns), sort=True, dropna=False, observed=True)
    return grouped.ngroup().to_numpy().astype(int) + 1


def add_group(data: pd.DataFrame) -> pd.DataFrame:
    out = data.copy()
    if out.empty:
        if GROUP not in out.columns:
            out[GROUP] = pd.Series(dtype=int)
        return out
    if GROUP in out.columns:
        out[GROUP] = interaction_id(out[[GROUP]])
        return out
    discrete = [col for col in out.columns if col not in _NEVER_GROUPED and is_discrete(out[col])]
    if discrete:
        out[GROUP] = interaction_id(out[discrete])
    else:
        out[GROUP] = NO_GROUP
    return out


def split_apply(
    data: pd.DataFrame,
    keys: Iterable[str],
    fn: Callable[[pd.DataFrame], Optional[pd.DataFrame]],
) -> pd.DataFrame:
    """Apply ``fn`` per partition and concatenate the results in partition order.

    Partitions are visited in sorted key order; partitions whose result is empty are
    skipped. The output is identical to processing the partitions one by one in that
    order, so the loop can be swapped for any order-preserving map.
    """

    keys = list(keys)
    if data.empty:
        return data.copy()
    pieces: List[pd.DataFrame] = []
    for _, part in data.groupby(keys, sort=True, dropna=False):
        result = fn(part.reset_index(drop=True))
        if result is None or len(result) == 0:
            continue
        pieces.append(result)
    if not pieces:
        return data.iloc[0:0].copy()
    return pd.concat(pieces, ignore_index=True, sort=False)


def _complete(series: pd.Series, finite: bool) -> np.ndarray:
    if pd.api.types.is_numeric_dtype(series.dtype) and not pd.api.types.is_bool_dtype(series.dtype):
        values = series.to_numpy(dtype=float, na_value=np.nan)
        return np.isfinite(values) if finite else ~np.isnan(values)
    return series.notna().to_numpy()


def _keep_mask(data: pd.DataFrame, variables: Iterable[str], finite: bool) -> Optional[np.ndarray]:
    present = [var for var in variables if var in data.columns]
    if not present or data.empty:
        return None
    return np.logical_and.reduce([_complete(data[var], finite) for var in present])


def count_missing(data: pd.DataFrame, variables: Iterable[str], finite: bool = False) -> int:
    keep = _keep_mask(data, variables, finite)
    return 0 if keep is None else int((~keep).sum())


def remove_missing(
    data: pd.DataFrame,
    variables: Iterable[str],
    na_rm: bool = False,
    name: str = "",
    finite: bool = False,
) -> pd.DataFrame:
    """Drop rows with missing (or non-finite) values in ``variables``."""

    keep = _keep_mask(data, variables, finite)
    if keep is None:
        return data
    removed = int((~keep).sum())
    if removed == 0:
        return data
    if not na_rm:
        what = "non-finite" if finite else "missing"
        where = f" ({name})" if name else ""
        warnings.warn(
            f"Removed {removed} rows containing {what} values or values outside the scale range{where}.",
            MissingValueWarning,
            stacklevel=3,
        )
    return data.loc[keep].reset_index(drop=True)


def constant_columns(data: pd.DataFrame) -> List[str]:
    """Columns holding a single value across all rows of ``data``."""

    return [col for col in data.columns if data[col].nunique(dropna=False) <= 1]


def resolution(values: object, zero: bool = True) -> float:
    """Smallest gap between distinct values; 1 for integer-valued (mapped discrete) data."""

    arr = np.asarray(values, dtype=float)
    arr = np.unique(arr[np.isfinite(arr)])
    if arr.size and np.allclose(arr, np.round(arr)):
        return 1.0
    if zero:
        arr = np.unique(np.append(arr, 0.0))
    if arr.size < 2:
        return 1.0
    return float(np.min(np.diff(arr)))
