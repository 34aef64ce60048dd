import numpy as np
import pandas as pd
import pytest

from gramviz import (
    aes,
    build,
    geom_col,
    geom_point,
    position_dodge,
    position_fill,
    position_jitter,
    position_nudge,
    position_stack,
    specification,
)
from gramviz.core.errors import SpecificationError


def _bars():
    return pd.DataFrame({"g": ["a", "a", "b"], "v": [1.0, 2.0, 3.0], "k": ["p", "q", "p"]})


def test_stack_puts_first_group_on_top():
    built = build(specification(_bars(), aes(x="g", y="v", fill="k")) + geom_col())
    out = built.layer_data(0)
    at_a = out[out["x"] == 1.0].set_index("group")
    assert at_a.loc[1, "ymin"] == 2.0
    assert at_a.loc[1, "ymax"] == 3.0
    assert at_a.loc[2, "ymin"] == 0.0
    assert at_a.loc[2, "ymax"] == 2.0
    assert built.layout.panel_scales_y[0].get_limits() == (0.0, 3.0)
    assert at_a.loc[1, "y"] == 3.0


def test_stack_splits_negative_values():
    data = pd.DataFrame({"g": ["a", "a"], "v": [2.0, -1.0], "k": ["p", "q"]})
    out = build(specification(data, aes(x="g", y="v", fill="k")) + geom_col()).layer_data(0)
    assert sorted(out["ymin"].tolist()) == [-1.0, 0.0]
    assert sorted(out["ymax"].tolist()) == [0.0, 2.0]


def test_fill_normalises_each_stack():
    built = build(specification(_bars(), aes(x="g", y="v", fill="k")) + geom_col(position=position_fill()))
    out = built.layer_data(0)
    assert out.groupby("x")["ymax"].max().tolist() == [1.0, 1.0]
    assert out[out["x"] == 1.0]["ymin"].min() == 0.0


def test_dodge_places_groups_side_by_side():
    built = build(specification(_bars(), aes(x="g", y="v", fill="k")) + geom_col(position="dodge"))
    out = built.layer_data(0)
    at_a = out[out["xmin"] < 1.5].sort_values("x")
    assert at_a["x"].tolist() == pytest.approx([0.775, 1.225])
    assert (at_a["xmax"] - at_a["xmin"]).tolist() == pytest.approx([0.45, 0.45])
    lone = out[out["xmin"] >= 1.5]
    assert lone["x"].tolist() == pytest.approx([2.0])


def test_jitter_is_repeatable_and_bounded():
    data = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": [1.0, 1.0, 2.0, 2.0]})
    spec = specification(data, aes(x="x", y="y")) + geom_point(position=position_jitter(width=0.2, height=0))
    first = build(spec).layer_data(0)
    second = build(spec).layer_data(0)
    assert first["x"].tolist() == second["x"].tolist()
    assert np.all(np.abs(first["x"] - data["x"]) <= 0.2)
    assert first["y"].tolist() == data["y"].tolist()


def test_jitter_draws_a_seed_once():
    jitter = position_jitter()
    assert jitter.seed is not None
    assert position_jitter(seed=7).seed == 7


def test_nudge_shifts_positions():
    data = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    out = build(specification(data, aes(x="x", y="y")) + geom_point(position=position_nudge(y=0.5))).layer_data(0)
    assert out["y"].tolist() == [1.5, 2.5]
    assert out["x"].tolist() == [1.0, 2.0]


def test_position_parameter_validation():
    with pytest.raises(SpecificationError):
        position_stack(vjust=2.0)
    with pytest.raises(SpecificationError):
        position_dodge(preserve="all")
    with pytest.raises(SpecificationError):
        position_jitter(width=-1)
