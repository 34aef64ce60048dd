import numpy as np
import pandas as pd
import pytest

from gramviz import (
    aes,
    build,
    geom_blank,
    geom_col,
    geom_line,
    geom_point,
    labs,
    scale_x_binned,
    scale_x_continuous,
    scale_x_discrete,
    specification,
)
from gramviz.core.diagnostics import DiagnosticKind
from gramviz.core.errors import (
    AestheticEvaluationError,
    MissingValueWarning,
    ScaleFrozenError,
    SpecificationError,
    TableContractError,
)
from gramviz.core.proto import proto
from gramviz.core.table import GROUP, NO_GROUP, PANEL
from gramviz.components.stats import StatIdentity


def _points():
    return pd.DataFrame({"a": [1.0, 2.0, 3.0, 4.0, 5.0], "b": [2.0, 4.0, 6.0, 8.0, 10.0]})


def test_single_layer_single_panel():
    built = build(specification(_points(), aes(x="a", y="b")) + geom_point())
    out = built.layer_data(0)
    assert len(out) == 5
    assert set(out[PANEL]) == {1}
    assert set(out[GROUP]) == {NO_GROUP}
    assert out["x"].tolist() == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert {"colour", "size", "shape"} <= set(out.columns)


def test_discrete_position_maps_to_level_indices():
    data = pd.DataFrame({"g": ["c", "a", "b", "a", "c"], "v": [1.0, 2.0, 3.0, 4.0, 5.0]})
    spec = specification(data, aes(x="g", y="v")) + geom_point() + scale_x_discrete()
    out = build(spec).layer_data(0)
    assert set(out["x"]) <= {1.0, 2.0, 3.0}
    assert out["x"].tolist() == [3.0, 1.0, 2.0, 1.0, 3.0]


def test_censored_rows_are_kept_until_drawing():
    spec = specification(_points(), aes(x="a", y="b")) + geom_point() + scale_x_continuous(limits=(0, 3))
    built = build(spec)
    out = built.layer_data(0)
    assert len(out) == 5
    assert int(out["x"].isna().sum()) == 2
    assert built.diagnostics.removed_rows() == 0


def test_every_stage_is_recorded_in_order():
    built = build(specification(_points(), aes(x="a", y="b")) + geom_point())
    stages = [rec.stage for rec in built.diagnostics.of_kind(DiagnosticKind.stage)]
    assert stages == [
        "setup",
        "compute_aesthetics",
        "map_position",
        "compute_statistic",
        "map_statistic",
        "compute_geom_1",
        "compute_position",
        "retrain_position",
        "compute_geom_2",
        "finish",
    ]


def test_position_ranges_before_and_after_statistics():
    data = pd.DataFrame({"g": ["a", "a", "a", "b"]})
    built = build(specification(data, aes(x="g")) + geom_point(stat="count"))
    ranges = {rec.stage: rec.detail for rec in built.diagnostics.of_kind(DiagnosticKind.scale_range)}
    assert set(ranges) == {"pre_stat", "retrained"}
    assert ranges["pre_stat"]["y"] == []
    assert ranges["retrained"]["y"] == [[1.0, 3.0]]


def test_build_is_repeatable_and_leaves_the_specification_alone():
    data = _points()
    spec = specification(data, aes(x="a", y="b", colour="b")) + geom_point() + geom_line()
    first = build(spec)
    second = build(spec)
    for left, right in zip(first.data, second.data):
        pd.testing.assert_frame_equal(left, right)
    assert first.summary()["position_ranges"] == second.summary()["position_ranges"]
    pd.testing.assert_frame_equal(data, _points())
    assert list(spec.data.columns) == ["a", "b"]
    assert len(spec.scales) == 0


def test_scales_are_frozen_after_build():
    built = build(specification(_points(), aes(x="a", y="b", colour="b")) + geom_point())
    with pytest.raises(ScaleFrozenError):
        built.scales.find("colour").train(pd.Series([100.0]))
    with pytest.raises(ScaleFrozenError):
        built.layout.panel_scales_x[0].reset()


def test_constant_only_layer_draws_one_row():
    built = build(specification() + geom_point(aes(x=1, y=2)))
    out = built.layer_data(0)
    assert len(out) == 1
    assert out["x"].tolist() == [1.0]


def test_plot_without_layers_uses_a_blank_layer():
    built = build(specification(_points(), aes(x="a", y="b")))
    assert built.layers[0].geom.call == "geom_blank"
    assert built.layout.range_summary()["x"] == [[1.0, 5.0]]


def test_empty_layer_passes_through():
    empty = pd.DataFrame({"a": pd.Series(dtype=float), "b": pd.Series(dtype=float)})
    spec = specification(_points(), aes(x="a", y="b")) + geom_point() + geom_point(data=empty)
    built = build(spec)
    assert len(built.layer_data(1)) == 0
    assert len(built.layer_data(0)) == 5


def test_layer_data_function_receives_plot_data():
    spec = specification(_points(), aes(x="a", y="b")) + geom_point(data=lambda df: df[df["a"] > 3])
    assert len(build(spec).layer_data(0)) == 2


def test_missing_column_names_the_phase():
    spec = specification(_points(), aes(x="a", y="nope")) + geom_point()
    with pytest.raises(AestheticEvaluationError, match="start"):
        build(spec)


def test_missing_required_aesthetic_fails_before_data_work():
    spec = specification(_points(), aes(x="a")) + geom_point()
    with pytest.raises(SpecificationError, match="y"):
        build(spec)


def test_statistic_that_drops_group_breaks_the_contract():
    broken = proto(
        "StatBroken",
        StatIdentity,
        compute_layer=lambda self, data, params, layout: data.drop(columns=[GROUP]),
    )
    spec = specification(_points(), aes(x="a", y="b")) + geom_point(stat=broken)
    with pytest.raises(TableContractError, match="compute_statistic"):
        build(spec)


def test_statistic_removals_are_counted():
    data = pd.DataFrame({"v": [1.0, 2.0, np.nan, 4.0]})
    with pytest.warns(MissingValueWarning):
        built = build(specification(data, aes(x="v")) + geom_point(stat="bin", bins=2))
    assert built.diagnostics.removed_rows(0) == 1
    record = built.diagnostics.of_kind(DiagnosticKind.removed_rows)[0]
    assert record.stage == "compute_statistic"
    assert record.detail["stat"] == "stat_bin"


def test_labels_default_to_mapping_sources():
    spec = specification(_points(), aes(x="a", y="b * 2")) + geom_point() + labs(x="Alpha", title="T")
    labels = build(spec).labels
    assert labels["x"] == "Alpha"
    assert labels["y"] == "b * 2"
    assert labels["title"] == "T"


def test_progress_events():
    events = []
    build(specification(_points(), aes(x="a", y="b")) + geom_point(), progress_callback=lambda e, p: events.append(e))
    assert events[0] == "build_start"
    assert events[-1] == "build_done"
    assert events.count("scale_range") == 2


def test_failing_progress_callback_does_not_stop_the_build():
    def explode(event, payload):
        raise RuntimeError("boom")

    built = build(specification(_points(), aes(x="a", y="b")) + geom_point(), progress_callback=explode)
    assert len(built.layer_data(0)) == 5


def test_blank_layer_trains_scales_only():
    spec = specification(_points(), aes(x="a", y="b")) + geom_point() + geom_blank(aes(x=10, y=0))
    ranges = build(spec).layout.range_summary()
    assert ranges["x"] == [[1.0, 10.0]]
    assert ranges["y"] == [[0.0, 10.0]]


def test_binned_position_scale_places_points_at_bin_midpoints():
    data = pd.DataFrame({"a": [0.1, 0.5, 2.2, 3.9, 4.0], "b": [1.0, 2.0, 3.0, 4.0, 5.0]})
    built = build(specification(data, aes(x="a", y="b")) + geom_point() + scale_x_binned())
    assert built.layer_data(0)["x"].tolist() == pytest.approx([0.55, 0.55, 2.5, 3.5, 3.5])


def test_stacking_widens_the_retrained_range():
    data = pd.DataFrame({"g": ["a", "a"], "v": [2.0, 3.0], "k": ["p", "q"]})
    built = build(specification(data, aes(x="g", y="v", fill="k")) + geom_col())
    ranges = {rec.stage: rec.detail for rec in built.diagnostics.of_kind(DiagnosticKind.scale_range)}
    (pre_low, pre_high), = ranges["pre_stat"]["y"]
    (low, high), = ranges["retrained"]["y"]
    assert (pre_low, pre_high) == (2.0, 3.0)
    assert low <= pre_low and high >= pre_high
    assert low <= 5.0 <= high
    assert built.layer_data(0)["ymax"].max() == 5.0
