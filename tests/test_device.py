import pandas as pd

from gramviz import aes, build, draw_png, facet_wrap, geom_bar, geom_point, labs, render, specification


def _table():
    data = pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [3.0, 1.0, 2.0], "k": ["a", "b", "a"]})
    spec = specification(data, aes(x="x", y="y", colour="k")) + geom_point() + labs(title="Points")
    return render(build(spec))


def test_png_bytes():
    png = draw_png(_table(), width_in=4, height_in=3, dpi=50)
    assert png.startswith(b"\x89PNG")


def test_png_is_written_to_path(tmp_path):
    target = tmp_path / "plot.png"
    png = draw_png(_table(), width_in=4, height_in=3, dpi=50, path=str(target))
    assert target.read_bytes() == png


def test_faceted_bars_draw():
    data = pd.DataFrame({"g": ["a", "b", "a", "b"], "f": ["u", "u", "v", "v"]})
    table = render(build(specification(data, aes(x="g", fill="f")) + geom_bar() + facet_wrap("f")))
    assert draw_png(table, width_in=5, height_in=3, dpi=40).startswith(b"\x89PNG")
