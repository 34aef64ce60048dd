import pandas as pd
import pytest

from gramviz import aes, build, facet_grid, facet_wrap, geom_point, render, specification
from gramviz.components.facets import combine_vars, wrap_dims
from gramviz.core.errors import SpecificationError
from gramviz.core.table import PANEL


def _grouped():
    return pd.DataFrame(
        {
            "g": ["a", "a", "b", "b", "c", "c"],
            "h": ["u", "v", "u", "v", "u", "v"],
            "x": [1.0, 2.0, 10.0, 20.0, 5.0, 6.0],
            "y": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        }
    )


def test_wrap_dims():
    assert wrap_dims(1) == (1, 1)
    assert wrap_dims(3) == (1, 3)
    assert wrap_dims(4) == (2, 2)
    assert wrap_dims(5) == (2, 3)
    assert wrap_dims(5, nrow=1) == (1, 5)
    assert wrap_dims(5, ncol=2) == (3, 2)
    with pytest.raises(SpecificationError, match="need 5 panels"):
        wrap_dims(5, nrow=1, ncol=2)


def test_combine_vars_sorts_levels():
    data = [pd.DataFrame({"g": ["b", "a", "b"]}), pd.DataFrame({"g": ["c"]})]
    assert combine_vars(data, ["g"])["g"].tolist() == ["a", "b", "c"]
    with pytest.raises(SpecificationError, match="faceting variables"):
        combine_vars([pd.DataFrame({"x": [1]})], ["g"])


def test_wrap_layout_and_panel_assignment():
    built = build(specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_wrap("g"))
    layout = built.layout.layout
    assert layout[PANEL].tolist() == [1, 2, 3]
    assert layout["ROW"].tolist() == [1, 1, 1]
    assert layout["COL"].tolist() == [1, 2, 3]
    assert layout["g"].tolist() == ["a", "b", "c"]
    out = built.layer_data(0)
    assert out.groupby(PANEL).size().tolist() == [2, 2, 2]
    assert set(out.loc[out[PANEL] == 2, "x"]) == {10.0, 20.0}


def test_fixed_scales_share_one_range():
    built = build(specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_wrap("g"))
    assert built.layout.range_summary()["x"] == [[1.0, 20.0]]
    assert set(built.layout.layout["SCALE_X"]) == {1}


def test_free_x_scales_train_per_panel():
    spec = specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_wrap("g", scales="free_x")
    built = build(spec)
    ranges = built.layout.range_summary()
    assert ranges["x"] == [[1.0, 2.0], [10.0, 20.0], [5.0, 6.0]]
    assert ranges["y"] == [[1.0, 6.0]]
    assert built.layout.layout["SCALE_X"].tolist() == [1, 2, 3]


def test_layer_without_facet_variable_shows_in_every_panel():
    extra = pd.DataFrame({"x": [3.0], "y": [3.0]})
    spec = specification(_grouped(), aes(x="x", y="y")) + geom_point() + geom_point(data=extra) + facet_wrap("g")
    out = build(spec).layer_data(1)
    assert sorted(out[PANEL].tolist()) == [1, 2, 3]


def test_grid_layout():
    built = build(specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_grid(rows="h", cols="g"))
    layout = built.layout.layout
    assert len(layout) == 6
    assert layout["ROW"].tolist() == [1, 1, 1, 2, 2, 2]
    assert layout["COL"].tolist() == [1, 2, 3, 1, 2, 3]
    assert layout["h"].tolist() == ["u", "u", "u", "v", "v", "v"]
    out = built.layer_data(0)
    assert len(out) == 6
    assert sorted(out[PANEL].tolist()) == [1, 2, 3, 4, 5, 6]


def test_grid_accepts_formula_strings():
    facet = facet_grid("h ~ .")
    assert facet.rows == ("h",)
    assert facet.cols == ()


def test_wrap_cells_are_named_by_grid_position():
    table = render(build(specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_wrap("g")))
    names = table.names()
    for c in (1, 2, 3):
        assert f"panel-1-{c}" in names
        assert f"strip-t-1-{c}" in names
        assert f"axis-b-1-{c}" in names
    assert "axis-l-1-1" in names
    assert "axis-l-1-2" not in names


def test_free_y_draws_every_left_axis():
    spec = specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_wrap("g", scales="free_y")
    names = render(build(spec)).names()
    assert {"axis-l-1-1", "axis-l-1-2", "axis-l-1-3"} <= set(names)


def test_grid_strips():
    table = render(build(specification(_grouped(), aes(x="x", y="y")) + geom_point() + facet_grid(rows="h", cols="g")))
    assert len(table.find("strip-t")) == 3
    assert [cell.name for cell in table.find("strip-r")] == ["strip-r-1", "strip-r-2"]
    assert len(table.find("panel")) == 6


def test_facet_validation():
    with pytest.raises(SpecificationError):
        facet_wrap([])
    with pytest.raises(SpecificationError):
        facet_wrap("g", nrow=0)
    with pytest.raises(SpecificationError):
        facet_wrap("g", scales="loose")
    with pytest.raises(SpecificationError):
        facet_grid()
    with pytest.raises(SpecificationError, match="both rows and columns"):
        facet_grid(rows="g", cols="g")
