import numpy as np
import pandas as pd
import pytest

from gramviz import aes, after_stat, build, geom_bar, geom_histogram, geom_pointrange, specification
from gramviz.components.scales import TrainedScale, scale_x_continuous
from gramviz.components.stats import Stat, StatBin, StatCount, StatSummary
from gramviz.core.errors import SpecificationError
from gramviz.core.proto import proto


def test_count_per_x():
    data = pd.DataFrame({"x": [1.0, 1.0, 2.0], "PANEL": [1, 1, 1], "group": [-1, -1, -1]})
    out = StatCount().compute_group(data, {}, {})
    assert out["x"].tolist() == [1.0, 2.0]
    assert out["count"].tolist() == [2.0, 1.0]
    assert np.allclose(out["prop"], [2 / 3, 1 / 3])
    assert out["width"].iloc[0] == pytest.approx(0.9)


def test_count_uses_weights():
    data = pd.DataFrame({"x": [1.0, 1.0, 2.0], "weight": [2.0, 3.0, 1.0]})
    assert StatCount().compute_group(data, {}, {})["count"].tolist() == [5.0, 1.0]


def test_count_rejects_y():
    with pytest.raises(SpecificationError, match="only have an x"):
        StatCount().setup_params(pd.DataFrame({"x": [1], "y": [1]}), {})


def test_bin_edges_cover_the_range():
    scale = TrainedScale(scale_x_continuous())
    scale.train(pd.Series([0.0, 10.0]))
    data = pd.DataFrame({"x": np.linspace(0.0, 10.0, 21)})
    out = StatBin().compute_group(data, {"x": scale}, {"bins": 5})
    assert len(out) == 5
    assert out["count"].sum() == 21
    assert out["xmin"].iloc[0] <= 0.0
    assert out["xmax"].iloc[-1] >= 10.0
    assert out["ncount"].max() == 1.0
    assert np.allclose((out["density"] * out["width"]).sum(), 1.0)


def test_bin_parameter_validation():
    with pytest.raises(SpecificationError):
        StatBin().validate_params({"bins": 0})
    with pytest.raises(SpecificationError):
        StatBin().validate_params({"center": 0.0, "boundary": 0.5})
    with pytest.raises(SpecificationError):
        StatBin().validate_params({"closed": "both"})


def test_incomplete_rows_counts_non_finite_required_values():
    data = pd.DataFrame({"x": [1.0, np.nan, np.inf, 2.0]})
    assert StatBin().incomplete_rows(data, {}) == 2


def test_summary_mean_se():
    data = pd.DataFrame({"x": [1.0, 1.0, 2.0, 2.0], "y": [1.0, 3.0, 2.0, 2.0]})
    out = StatSummary().compute_group(data, {}, {})
    assert out["y"].tolist() == [2.0, 2.0]
    assert out["ymin"].tolist() == pytest.approx([1.0, 2.0])
    assert out["ymax"].tolist() == pytest.approx([3.0, 2.0])


def test_unknown_summary_function():
    with pytest.raises(SpecificationError, match="fun_data"):
        StatSummary().validate_params({"fun_data": "mode"})


def test_bar_layer_counts_levels():
    data = pd.DataFrame({"g": ["a", "b", "a", "c", "a"]})
    built = build(specification(data, aes(x="g")) + geom_bar())
    out = built.layer_data(0).sort_values("x")
    assert out["x"].tolist() == [1.0, 2.0, 3.0]
    assert out["count"].tolist() == [3.0, 1.0, 1.0]
    assert out["y"].tolist() == out["count"].tolist()
    assert out["ymax"].tolist() == [3.0, 1.0, 1.0]


def test_after_stat_mapping_uses_computed_columns():
    data = pd.DataFrame({"g": ["a", "b", "a", "a"]})
    grouped = build(specification(data) + geom_bar(aes(x="g", y=after_stat("prop"), group=1)))
    out = grouped.layer_data(0).sort_values("x")
    assert out["y"].tolist() == pytest.approx([0.75, 0.25])

    # Proportions are computed within each group.
    built = build(specification(data) + geom_bar(aes(x="g", y=after_stat("prop"))))
    assert built.layer_data(0)["y"].tolist() == [1.0, 1.0]
    assert built.labels["y"] == "prop"


def test_histogram_layer():
    data = pd.DataFrame({"v": np.arange(20, dtype=float)})
    built = build(specification(data, aes(x="v")) + geom_histogram(bins=4))
    out = built.layer_data(0)
    assert len(out) == 4
    assert out["count"].sum() == 20
    assert built.labels["y"] == "count"


def test_summary_layer_with_pointrange():
    data = pd.DataFrame({"g": ["a", "a", "b", "b"], "v": [1.0, 3.0, 5.0, 7.0]})
    built = build(specification(data, aes(x="g", y="v")) + geom_pointrange(stat="summary", fun_data="mean_range"))
    out = built.layer_data(0).sort_values("x")
    assert out["y"].tolist() == [2.0, 6.0]
    assert out["ymin"].tolist() == [1.0, 5.0]
    assert out["ymax"].tolist() == [3.0, 7.0]


class _Panels:
    def get_scales(self, panel):
        return {}


def test_partitioned_statistic_matches_a_whole_table_computation():
    stat = proto("StatDoubled", Stat, compute_group=lambda self, data, scales, params: data.assign(y=data["y"] * 2))
    data = pd.DataFrame(
        {
            "PANEL": [2, 1, 1, 2, 1],
            "group": [1, 2, 1, 2, 1],
            "x": [1.0, 2.0, 3.0, 4.0, 5.0],
            "y": [10.0, 20.0, 30.0, 40.0, 50.0],
        }
    )
    out = stat.compute_layer(data, {}, _Panels()).reset_index(drop=True)
    whole = data.assign(y=data["y"] * 2).sort_values(["PANEL", "group"], kind="stable").reset_index(drop=True)
    pd.testing.assert_frame_equal(out[list(whole.columns)], whole, check_dtype=False)
