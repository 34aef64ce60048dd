import math

import pandas as pd
import pytest

from gramviz import (
    Theme,
    aes,
    build,
    coord_flip,
    coord_polar,
    geom_line,
    geom_point,
    geom_raster,
    guide_legend,
    guides,
    labs,
    render,
    scale_colour_steps,
    scale_x_continuous,
    specification,
)
from gramviz.components.keys import draw_key_point
from gramviz.core.diagnostics import DiagnosticKind
from gramviz.core.errors import LinearCoordWarning, MissingValueWarning


def _series():
    return pd.DataFrame(
        {
            "x": [1.0, 2.0, 3.0, 1.0, 2.0, 3.0],
            "y": [1.0, 3.0, 2.0, 2.0, 1.0, 3.0],
            "k": ["p", "p", "p", "q", "q", "q"],
        }
    )


def _legend_box(table, position="right"):
    boxes = table.find(f"guide-box-{position}")
    assert len(boxes) == 1
    return boxes[0].content


def test_shared_colour_gives_one_legend_with_both_glyphs():
    spec = specification(_series(), aes(x="x", y="y", colour="k")) + geom_point() + geom_line()
    box = _legend_box(render(build(spec)))
    legends = box.find("guides")
    assert [cell.name for cell in legends] == ["guides-1"]
    legend = legends[0].content
    keys = legend.find("key")
    assert len(keys) == 2
    for cell in keys:
        assert len(list(cell.content.find("key-point"))) == 1
        assert len(list(cell.content.find("key-path"))) == 1
    assert [cell.content.label for cell in legend.find("label")] == [("p",), ("q",)]


def test_colour_and_shape_on_one_variable_merge():
    spec = specification(_series(), aes(x="x", y="y", colour="k", shape="k")) + geom_point()
    box = _legend_box(render(build(spec)))
    assert len(box.find("guides")) == 1


def test_continuous_colour_draws_a_colourbar():
    spec = specification(_series(), aes(x="x", y="y", colour="y")) + geom_point()
    box = _legend_box(render(build(spec)))
    assert box.find("guides")[0].content.name == "colourbar"


def test_censored_rows_are_dropped_when_drawing():
    spec = specification(_series(), aes(x="x", y="y")) + geom_point() + scale_x_continuous(limits=(0, 2))
    built = build(spec)
    with pytest.warns(MissingValueWarning):
        table = render(built)
    assert table.diagnostics.removed_rows() == 2
    record = table.diagnostics.of_kind(DiagnosticKind.removed_rows)[0]
    assert record.stage == "draw"
    assert record.detail["geom"] == "geom_point"
    assert built.diagnostics.removed_rows() == 0


def test_raster_on_polar_warns_and_still_renders():
    grid = pd.DataFrame({"x": [1.0, 2.0, 1.0, 2.0], "y": [1.0, 1.0, 2.0, 2.0], "v": [1.0, 2.0, 3.0, 4.0]})
    spec = specification(grid, aes(x="x", y="y", fill="v")) + geom_raster() + coord_polar()
    with pytest.warns(LinearCoordWarning):
        table = render(build(spec))
    records = table.diagnostics.of_kind(DiagnosticKind.nonlinear_coord)
    assert len(records) == 1
    assert records[0].detail["geom"] == "geom_raster"
    assert "panel-1-1" in table.names()


def test_empty_layer_renders():
    empty = pd.DataFrame({"x": pd.Series(dtype=float), "y": pd.Series(dtype=float)})
    spec = specification(_series(), aes(x="x", y="y")) + geom_point() + geom_point(data=empty)
    table = render(build(spec))
    assert table.diagnostics.removed_rows() == 0
    assert "panel-1-1" in table.names()


def test_titles_and_axis_labels():
    spec = (
        specification(_series(), aes(x="x", y="y"))
        + geom_point()
        + labs(title="Title", subtitle="Sub", caption="Cap", tag="A", x="Across")
    )
    table = render(build(spec))
    names = table.names()
    for name in ("title", "subtitle", "caption", "tag", "xlab-b", "ylab-l"):
        assert name in names
    title = table.find("title")[0]
    subtitle = table.find("subtitle")[0]
    caption = table.find("caption")[0]
    assert title.t < subtitle.t < caption.t
    assert table.find("xlab-b")[0].content.label == ("Across",)


def test_flipped_coordinates_swap_axis_titles():
    spec = specification(_series(), aes(x="x", y="y")) + geom_point() + labs(x="Across", y="Up") + coord_flip()
    table = render(build(spec))
    assert table.find("xlab-b")[0].content.label == ("Up",)
    assert table.find("ylab-l")[0].content.label == ("Across",)


def test_background_is_drawn_first():
    table = render(build(specification(_series(), aes(x="x", y="y")) + geom_point()))
    background = table.find("background")[0]
    assert background.z == -math.inf
    assert table.draw_order()[0] is background
    assert (background.t, background.l) == (1, 1)
    assert (background.b, background.r) == table.dim


@pytest.mark.parametrize("position", ["left", "top", "bottom", "inside"])
def test_legend_positions(position):
    spec = (
        specification(_series(), aes(x="x", y="y", colour="k"))
        + geom_point()
        + Theme({"legend.position": position})
    )
    table = render(build(spec))
    _legend_box(table, position)
    assert not table.find("guide-box-right")


def test_horizontal_legend_at_the_bottom():
    spec = specification(_series(), aes(x="x", y="y", colour="k")) + geom_point() + Theme({"legend.position": "bottom"})
    legend = _legend_box(render(build(spec)), "bottom").find("guides")[0].content
    first, second = legend.find("key")
    assert first.t == second.t
    assert first.l < second.l


def test_legend_can_be_hidden():
    base = specification(_series(), aes(x="x", y="y", colour="k")) + geom_point()
    hidden = render(build(base + Theme({"legend.position": "none"})))
    assert not hidden.find("guide-box")
    suppressed = render(build(base + guides(colour="none")))
    assert not suppressed.find("guide-box")


def test_guide_position_overrides_theme():
    spec = (
        specification(_series(), aes(x="x", y="y", colour="k"))
        + geom_point()
        + guides(colour=guide_legend(position="top"))
    )
    table = render(build(spec))
    _legend_box(table, "top")


def test_render_does_not_change_the_build():
    built = build(specification(_series(), aes(x="x", y="y", colour="k")) + geom_point())
    before = built.layer_data(0).copy()
    render(built)
    render(built)
    pd.testing.assert_frame_equal(before, built.layer_data(0))


def test_render_stage_is_recorded():
    events = []
    table = render(
        build(specification(_series(), aes(x="x", y="y")) + geom_point()),
        progress_callback=lambda event, payload: events.append(event),
    )
    stages = [rec.stage for rec in table.diagnostics.of_kind(DiagnosticKind.stage)]
    assert stages[-1] == "render"
    assert events == ["render_layers", "render_panels", "render_guides", "render_done"]
    assert table.to_dict()["type"] == "cell_table"


def test_steps_colour_scale_draws_a_legend_of_bins():
    spec = specification(_series(), aes(x="x", y="y", colour="y")) + geom_point() + scale_colour_steps()
    legend = _legend_box(render(build(spec))).find("guides")[0].content
    assert legend.name == "legend"
    keys = legend.find("key")
    assert len(keys) == 3
    colours = [next(cell.content.find("key-point")).gp["colour"] for cell in keys]
    assert len(set(colours)) == 3


def test_key_glyph_receives_a_one_row_table():
    seen = []

    def glyph(data, params, size):
        seen.append(data)
        return draw_key_point(data, params, size)

    spec = specification(_series(), aes(x="x", y="y", colour="k")) + geom_point(key_glyph=glyph)
    render(build(spec))
    assert len(seen) == 2
    assert all(isinstance(frame, pd.DataFrame) and len(frame) == 1 for frame in seen)
    assert seen[0]["colour"].iloc[0] != seen[1]["colour"].iloc[0]
