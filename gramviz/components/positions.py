from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from ..core.errors import SpecificationError
from ..core.proto import Proto, delegate
from ..core.table import GROUP, PANEL, remove_missing, resolution, split_apply
from ..pipeline.aes import check_required_aesthetics
from .scales import X_AESTHETICS, Y_AESTHETICS


class Position(Proto):
    """Overlap adjustment applied after the geom has set up its columns."""

    call = "position"
    required_aes: tuple = ()

    def validate_params(self) -> None:
        return None

    def setup_params(self, data: pd.DataFrame) -> Dict[str, Any]:
        return {}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        check_required_aesthetics(self.required_aes, data.columns, self.call)
        return data

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        return split_apply(
            data,
            [PANEL],
            lambda part: self.compute_panel(part, params, layout.get_scales(int(part[PANEL].iloc[0]))),
        )

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Mapping[str, Any]) -> pd.DataFrame:
        raise NotImplementedError(f"{self.call} does not implement compute_panel")


class PositionIdentity(Position):
    call = "position_identity"

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        return data


def _collide(
    data: pd.DataFrame,
    width: Optional[float],
    strategy: Callable[[pd.DataFrame], pd.DataFrame],
    reverse: bool = False,
) -> pd.DataFrame:
    """Apply ``strategy`` to every set of rows sharing an x interval; keeps row order."""

    data = data.copy()
    if width is not None:
        if "xmin" not in data.columns or "xmax" not in data.columns:
            data["xmin"] = data["x"] - width / 2
            data["xmax"] = data["x"] + width / 2
    elif "xmin" not in data.columns or "xmax" not in data.columns:
        data["xmin"] = data["x"]
        data["xmax"] = data["x"]
    data["_row"] = np.arange(len(data))
    order = data[GROUP] if reverse else -data[GROUP]
    data = data.assign(_order=order.to_numpy()).sort_values(["xmin", "_order"], kind="mergesort")
    pieces = [strategy(part) for _, part in data.groupby("xmin", sort=True)]
    out = pd.concat(pieces) if pieces else data
    return out.sort_values("_row").drop(columns=["_row", "_order"]).reset_index(drop=True)


def _stack(df: pd.DataFrame, vjust: float, fill: bool) -> pd.DataFrame:
    df = df.copy()
    y = df["y"].fillna(0.0).to_numpy(dtype=float) if "y" in df.columns else np.zeros(len(df))
    heights = np.concatenate([[0.0], np.cumsum(y)])
    if fill and heights[-1] != 0:
        heights = heights / abs(heights[-1])
    if "ymin" in df.columns and "ymax" in df.columns:
        max_is_lower = (df["ymax"] < df["ymin"]).to_numpy()
    else:
        max_is_lower = np.zeros(len(df), dtype=bool)
    ymin = np.minimum(heights[:-1], heights[1:])
    ymax = np.maximum(heights[:-1], heights[1:])
    df["y"] = (1 - vjust) * heights[:-1] + vjust * heights[1:]
    df["ymin"] = np.where(max_is_lower, ymax, ymin)
    df["ymax"] = np.where(max_is_lower, ymin, ymax)
    return df


class PositionStack(Position):
    call = "position_stack"
    vjust = 1.0
    reverse = False
    fill = False

    def validate_params(self) -> None:
        if not 0.0 <= float(self.vjust) <= 1.0:
            raise SpecificationError(f"{self.call}: vjust must be between 0 and 1, got {self.vjust!r}")

    def setup_params(self, data: pd.DataFrame) -> Dict[str, Any]:
        if "ymax" in data.columns:
            var = "ymax"
        elif "y" in data.columns:
            var = "y"
        else:
            var = None
        return {"var": var, "fill": self.fill, "vjust": float(self.vjust), "reverse": bool(self.reverse)}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        data = delegate(Position, self).setup_data(data, params)
        if params.get("var") is None:
            return data
        data = data.copy()
        if params["var"] == "y":
            data["ymax"] = data["y"]
        elif "ymin" in data.columns:
            data["ymax"] = np.where(data["ymax"] == 0, data["ymin"], data["ymax"]).astype(float)
        return remove_missing(data, ["x", "xmin", "xmax", "y"], name=self.call)

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Mapping[str, Any]) -> pd.DataFrame:
        if params.get("var") is None or data.empty:
            return data
        negative = (data["ymax"] < 0).to_numpy()

        def strategy(part: pd.DataFrame) -> pd.DataFrame:
            return _stack(part, params["vjust"], params["fill"])

        pieces = []
        if negative.any():
            pieces.append(_collide(data.loc[negative], None, strategy, params["reverse"]).assign(_row=np.flatnonzero(negative)))
        if not negative.all():
            pieces.append(_collide(data.loc[~negative], None, strategy, params["reverse"]).assign(_row=np.flatnonzero(~negative)))
        return pd.concat(pieces).sort_values("_row").drop(columns="_row").reset_index(drop=True)


class PositionFill(PositionStack):
    call = "position_fill"
    fill = True


class PositionDodge(Position):
    call = "position_dodge"
    width: Optional[float] = None
    preserve = "total"

    def validate_params(self) -> None:
        if self.width is not None and float(self.width) < 0:
            raise SpecificationError(f"{self.call}: width must be non-negative, got {self.width!r}")
        if self.preserve not in ("total", "single"):
            raise SpecificationError(f"{self.call}: preserve must be 'total' or 'single'")

    def setup_params(self, data: pd.DataFrame) -> Dict[str, Any]:
        n = None
        if self.preserve == "single" and not data.empty:
            key = "xmin" if "xmin" in data.columns else "x"
            n = int(data.groupby([PANEL, key])[GROUP].nunique().max())
        return {"width": self.width, "n": n}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if "x" not in data.columns and {"xmin", "xmax"} <= set(data.columns):
            data = data.assign(x=(data["xmin"] + data["xmax"]) / 2)
        return delegate(Position, self).setup_data(data, params)

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Mapping[str, Any]) -> pd.DataFrame:
        width = params.get("width")
        n = params.get("n")

        def dodge(df: pd.DataFrame) -> pd.DataFrame:
            groups = np.sort(df[GROUP].unique())
            count = n or len(groups)
            if count == 1:
                return df
            df = df.copy()
            d_width = float((df["xmax"] - df["xmin"]).max())
            dodge_width = width if width is not None else d_width
            index = np.searchsorted(groups, df[GROUP].to_numpy()) + 1
            df["x"] = df["x"] + dodge_width * ((index - 0.5) / count - 0.5)
            df["xmin"] = df["x"] - d_width / count / 2
            df["xmax"] = df["x"] + d_width / count / 2
            return df

        if "ymax" not in data.columns and "y" in data.columns:
            out = _collide(data.assign(ymax=data["y"]), width, dodge)
            return out.assign(y=out["ymax"]).drop(columns="ymax")
        return _collide(data, width, dodge)


class PositionJitter(Position):
    call = "position_jitter"
    width: Optional[float] = None
    height: Optional[float] = None
    seed: Optional[int] = None

    def validate_params(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if value is not None and float(value) < 0:
                raise SpecificationError(f"{self.call}: {name} must be non-negative, got {value!r}")

    def setup_params(self, data: pd.DataFrame) -> Dict[str, Any]:
        width = self.width
        height = self.height
        if width is None:
            width = 0.4 * resolution(data["x"], zero=False) if "x" in data.columns else 0.0
        if height is None:
            height = 0.4 * resolution(data["y"], zero=False) if "y" in data.columns else 0.0
        return {"width": float(width), "height": float(height), "seed": self.seed}

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        if data.empty:
            return data
        rng = np.random.default_rng(params["seed"])
        x_jit = rng.uniform(-params["width"], params["width"], len(data))
        y_jit = rng.uniform(-params["height"], params["height"], len(data))
        out = data.copy()
        for column in out.columns:
            if column in X_AESTHETICS:
                out[column] = out[column].to_numpy(dtype=float) + x_jit
            elif column in Y_AESTHETICS:
                out[column] = out[column].to_numpy(dtype=float) + y_jit
        return out


class PositionNudge(Position):
    call = "position_nudge"
    x = 0.0
    y = 0.0

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], layout: Any) -> pd.DataFrame:
        out = data.copy()
        for column in out.columns:
            if column in X_AESTHETICS:
                out[column] = out[column].to_numpy(dtype=float) + float(self.x)
            elif column in Y_AESTHETICS:
                out[column] = out[column].to_numpy(dtype=float) + float(self.y)
        return out


def _checked(position: Position) -> Position:
    position.validate_params()
    return position


def position_identity() -> Position:
    return PositionIdentity()


def position_stack(vjust: float = 1.0, reverse: bool = False) -> Position:
    return _checked(PositionStack(vjust=vjust, reverse=reverse))


def position_fill(vjust: float = 1.0, reverse: bool = False) -> Position:
    return _checked(PositionFill(vjust=vjust, reverse=reverse))


def position_dodge(width: Optional[float] = None, preserve: str = "total") -> Position:
    return _checked(PositionDodge(width=width, preserve=preserve))


def position_jitter(width: Optional[float] = None, height: Optional[float] = None, seed: Optional[int] = None) -> Position:
    if seed is None:
        seed = int(np.random.default_rng().integers(1, 2**31 - 1))
    return _checked(PositionJitter(width=width, height=height, seed=seed))


def position_nudge(x: float = 0.0, y: float = 0.0) -> Position:
    return _checked(PositionNudge(x=x, y=y))
