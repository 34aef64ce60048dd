import json

import pandas as pd
import pytest

from gramviz import build, lookup
from gramviz.core.errors import SpecificationError
from gramviz.services import TableLoader, alt_text, derive_spec, load_table, validate_spec
from gramviz.utils.audit import AuditLogger


def _document():
    return {
        "data": {"g": ["a", "b", "a"], "v": [1.0, 2.0, 3.0]},
        "mapping": {"x": "g", "y": "v"},
        "layers": [{"geom": "point"}, {"geom": "col", "mapping": {"fill": "g"}, "params": {"alpha": 0.5}}],
        "labels": {"title": "Totals"},
    }


def test_validate_fills_defaults():
    doc = validate_spec({"layers": [{"geom": "point"}]})
    assert doc["coord"] == {"name": "cartesian", "params": {}}
    assert doc["facet"]["name"] == "null"
    assert doc["canvas"]["dpi"] == 100


@pytest.mark.parametrize(
    "document, message",
    [
        ({"layers": []}, "non-empty"),
        ({"layers": [{"stat": "count"}]}, "missing 'geom'"),
        ({"layers": [{"geom": "violin"}]}, "unsupported"),
        ({"layers": [{"geom": "point", "stat": "density"}]}, "stat 'density'"),
        ({"layers": [{"geom": "point"}], "coord": {"name": "map"}}, "spec.coord.name"),
        ({"layers": [{"geom": "point"}], "mapping": {"x": {"later": "x"}}}, "after_stat"),
        ({"layers": [{"geom": "point"}], "theme": {"legend.position": "middle"}}, "legend.position"),
    ],
)
def test_validate_rejects_bad_documents(document, message):
    with pytest.raises(SpecificationError, match=message):
        validate_spec(document)


def test_derive_builds_a_specification():
    spec = derive_spec(_document())
    assert [item.geom.call for item in spec.layers] == ["geom_point", "geom_col"]
    assert spec.layers[1].aes_params["alpha"] == 0.5
    assert spec.labels["title"] == "Totals"
    built = build(spec)
    assert len(built.layer_data(1)) == 3


def test_derive_with_components_and_staged_mapping():
    document = {
        "data": [{"g": "a"}, {"g": "b"}, {"g": "a"}],
        "layers": [{"geom": "bar", "mapping": {"x": "g", "y": {"after_stat": "prop"}, "group": 1}}],
        "facet": {"name": "wrap", "params": {"facets": "g"}},
        "scales": [{"aesthetic": "y", "kind": "continuous", "params": {"name": "Share"}}],
    }
    spec = derive_spec(document)
    assert spec.facet.call == "facet_wrap"
    built = build(spec)
    assert len(built.layout.panel_ids()) == 2
    assert built.layout.resolve_label("y", built.labels) == "Share"


def test_scale_title_in_document_params():
    document = {
        "data": [{"a": 1, "b": 2}],
        "layers": [{"geom": "point", "mapping": {"x": "a", "y": "b"}}],
        "scales": [{"aesthetic": "x", "kind": "continuous", "params": {"name": "A"}}],
    }
    built = build(derive_spec(document))
    assert built.layout.resolve_label("x", built.labels) == "A"


def test_lookup_passes_a_name_parameter_to_the_component():
    assert lookup("scale", "x_continuous", name="Across").name == "Across"


def test_explicit_data_replaces_document_data():
    data = pd.DataFrame({"g": ["x"], "v": [9.0]})
    built = build(derive_spec(_document(), data))
    assert len(built.layer_data(0)) == 1


def test_alt_text_describes_the_plot():
    text = alt_text(build(derive_spec(_document())))
    assert text.startswith('2-layer plot titled "Totals" in 1 panel.')
    assert "point of 3 rows" in text
    assert "fill: 2 levels (a, b)" in text


def test_loader_reads_csv_and_json(tmp_path):
    csv_path = tmp_path / "sales.csv"
    csv_path.write_text("day,amount\n2024-01-01,3\n2024-01-02,5\n", encoding="utf-8")
    loaded = TableLoader().load(csv_path)
    assert loaded.name == "sales"
    assert pd.api.types.is_datetime64_any_dtype(loaded.dataframe["day"])

    json_path = tmp_path / "points.json"
    json_path.write_text(json.dumps([{"x": 1, "y": 2}, {"x": 3, "y": 4}]), encoding="utf-8")
    assert load_table(json_path)["y"].tolist() == [2, 4]


def test_loader_finds_the_header_row_in_a_workbook(tmp_path):
    path = tmp_path / "report.xlsx"
    raw = pd.DataFrame([["Quarterly report", None], ["region", "amount"], ["north", "10"], ["south", "12"]])
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        raw.to_excel(writer, sheet_name="data", header=False, index=False)
    loaded = TableLoader().load(path)
    assert loaded.header_row == 1
    assert list(loaded.dataframe.columns) == ["region", "amount"]
    assert loaded.dataframe["amount"].tolist() == [10, 12]


def test_loader_rejects_unknown_files(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("x", encoding="utf-8")
    with pytest.raises(SpecificationError, match="unsupported"):
        load_table(path)


def test_audit_logger_writes_artifacts(tmp_path):
    run_dir = AuditLogger(tmp_path / "runs").persist(
        run_inputs={"spec": {"layers": []}},
        layers=[{"index": 0}],
        cells={"type": "cell_table"},
        diagnostics=[],
        png=b"\x89PNG",
    )
    assert json.loads((run_dir / "inputs.json").read_text(encoding="utf-8")) == {"spec": {"layers": []}}
    assert (run_dir / "plot.png").read_bytes() == b"\x89PNG"
    assert {p.name for p in run_dir.iterdir()} == {"inputs.json", "layers.json", "cells.json", "diagnostics.json", "plot.png"}
