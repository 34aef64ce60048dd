import numpy as np
import pandas as pd
import pytest

from gramviz.components.scales import (
    ScaleSet,
    TrainedScale,
    default_scale,
    scale_colour_gradient,
    scale_colour_hue,
    scale_colour_manual,
    scale_shape,
    scale_x_binned,
    scale_x_continuous,
    scale_x_discrete,
    scale_x_log10,
    scale_y_continuous,
)
from gramviz.core.errors import GramvizWarning, ScaleFrozenError, SpecificationError


def _trained(scale, *batches):
    trained = TrainedScale(scale)
    for values in batches:
        trained.train(pd.Series(values))
    return trained


def test_continuous_limits_censor_values_outside():
    trained = _trained(scale_x_continuous(limits=(0, 3)), [1.0, 5.0])
    assert trained.get_limits() == (0.0, 3.0)
    mapped = trained.map(pd.Series([1.0, 2.0, 4.0]))
    assert mapped[:2].tolist() == [1.0, 2.0]
    assert np.isnan(mapped[2])


def test_squish_moves_values_onto_the_limit():
    trained = _trained(scale_x_continuous(limits=(0, 3), oob="squish"), [1.0, 5.0])
    assert trained.map(pd.Series([4.0, -1.0])).tolist() == [3.0, 0.0]


def test_half_open_limits_use_the_trained_range():
    trained = _trained(scale_y_continuous(limits=(None, 10)), [2.0, 4.0])
    assert trained.get_limits() == (2.0, 10.0)


def test_discrete_position_maps_levels_to_integers():
    trained = _trained(scale_x_discrete(), ["b", "a", "c"])
    assert trained.get_limits() == ["a", "b", "c"]
    assert trained.map(pd.Series(["c", "a"])).tolist() == [3.0, 1.0]


def test_discrete_position_keeps_levels_across_reset():
    trained = _trained(scale_x_discrete(), ["b", "a", "c"])
    trained.reset()
    assert trained.get_limits() == ["a", "b", "c"]
    trained.train(pd.Series([0.6, 3.4]))
    assert trained.dimension(expand=(0, 0)) == (0.6, 3.4)


def test_categorical_levels_keep_their_order():
    values = pd.Series(pd.Categorical(["lo", "hi", "lo"], categories=["lo", "hi"]))
    assert _trained(scale_x_discrete(), values).get_limits() == ["lo", "hi"]


def test_hue_scale_maps_levels_and_missing():
    trained = _trained(scale_colour_hue(), ["a", "b"])
    mapped = trained.map(pd.Series(["a", None, "b"]))
    assert mapped[0] == "#1f77b4"
    assert mapped[1] == "grey50"
    assert mapped[2] != mapped[0]


def test_manual_scale_by_name_and_by_position():
    named = _trained(scale_colour_manual({"a": "red", "b": "blue"}), ["a", "b"])
    assert named.map(pd.Series(["b", "a"])).tolist() == ["blue", "red"]
    short = _trained(scale_colour_manual(["red"]), ["a", "b"])
    with pytest.raises(SpecificationError, match="Insufficient values"):
        short.map(pd.Series(["a"]))


def test_shape_palette_warns_when_levels_run_out():
    trained = _trained(scale_shape(), list("abcdefg"))
    with pytest.warns(GramvizWarning, match="maximum of 6"):
        mapped = trained.map(pd.Series(list("abcdefg")))
    assert mapped[0] == "o"
    assert mapped[-1] is None


def test_gradient_maps_range_ends_to_palette_ends():
    trained = _trained(scale_colour_gradient(), [0.0, 10.0])
    mapped = trained.map(pd.Series([0.0, 10.0, np.nan]))
    assert mapped.tolist() == ["#132b43", "#56b1f7", "grey50"]


def test_log_transform_and_labels():
    trained = TrainedScale(scale_x_log10())
    transformed = trained.transform_df(pd.DataFrame({"x": [1.0, 10.0, 100.0]}))
    assert np.allclose(transformed["x"], [0.0, 1.0, 2.0])
    assert trained.get_labels(np.array([0.0, 1.0, 2.0])) == ["1", "10", "100"]


def test_frozen_scale_rejects_training_but_still_maps():
    trained = _trained(scale_x_continuous(), [1.0, 2.0])
    trained.freeze()
    with pytest.raises(ScaleFrozenError):
        trained.train(pd.Series([3.0]))
    with pytest.raises(ScaleFrozenError):
        trained.reset()
    assert trained.map(pd.Series([1.5])).tolist() == [1.5]


def test_snapshot_is_independent():
    trained = _trained(scale_x_continuous(), [1.0, 2.0])
    snap = trained.snapshot()
    trained.train(pd.Series([10.0]))
    assert snap.get_limits() == (1.0, 2.0)
    assert trained.get_limits() == (1.0, 10.0)


def test_scale_set_replaces_with_warning():
    scales = ScaleSet()
    scales.add(scale_x_continuous())
    with pytest.warns(GramvizWarning, match="already present"):
        scales.add(scale_x_discrete())
    assert len(scales) == 1
    assert scales.find("xmin").is_discrete()


def test_default_scales_follow_column_type():
    assert default_scale("x", pd.Series(["a", "b"])).call == "scale_x_discrete"
    assert default_scale("y", pd.Series([1.0, 2.0])).call == "scale_y_continuous"
    assert default_scale("colour", pd.Series([1.0, 2.0])).call == "scale_colour_gradient"
    assert default_scale("label", pd.Series(["a"])) is None
    with pytest.raises(SpecificationError, match="shape"):
        default_scale("shape", pd.Series([1.0, 2.0]))


def test_invalid_scale_parameters():
    with pytest.raises(SpecificationError):
        scale_x_continuous(expand=(-1, 0))
    with pytest.raises(SpecificationError):
        scale_x_continuous(n_breaks=0)
    with pytest.raises(SpecificationError):
        scale_x_continuous(breaks=[1, 2], labels=["one"])
    with pytest.raises(SpecificationError):
        scale_x_continuous(trans="cubic")
    with pytest.raises(SpecificationError):
        scale_x_continuous(oob="wrap")


def test_summary_rows():
    scales = ScaleSet([_trained(scale_x_continuous(), [1.0, 3.0]), _trained(scale_colour_hue(), ["a"])])
    rows = scales.summary()
    assert rows[0] == {
        "aesthetic": "x",
        "kind": "scale_x_continuous",
        "discrete": False,
        "limits": [1.0, 3.0],
        "trans": "identity",
    }
    assert rows[1]["limits"] == ["a"]
    assert rows[1]["discrete"] is True


def test_binned_position_maps_values_to_bin_midpoints():
    trained = _trained(scale_x_binned(), [0.1, 4.0])
    mapped = trained.map(pd.Series([0.1, 0.5, 2.2, 3.9, 4.0]))
    assert mapped.tolist() == pytest.approx([0.55, 0.55, 2.5, 3.5, 3.5])


def test_binned_position_passes_values_through_after_reset():
    trained = _trained(scale_x_binned(), [0.1, 4.0])
    trained.reset()
    assert trained.map(pd.Series([0.7, 2.2])).tolist() == [0.7, 2.2]
