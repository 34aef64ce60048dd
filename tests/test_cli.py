import json

import pytest

from gramviz.cli import main
from gramviz.core.settings import get_settings


@pytest.fixture(autouse=True)
def storage(tmp_path, monkeypatch):
    monkeypatch.setenv("GRAMVIZ_STORAGE_ROOT", str(tmp_path / "runs"))
    get_settings.cache_clear()
    yield tmp_path / "runs"
    get_settings.cache_clear()


def _write_spec(tmp_path, document):
    path = tmp_path / "plot.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)


def test_cli_writes_png_and_run(tmp_path, storage):
    spec = _write_spec(
        tmp_path,
        {"data": {"a": [1, 2, 3], "b": [3, 1, 2]}, "mapping": {"x": "a", "y": "b"}, "layers": [{"geom": "line"}]},
    )
    out = tmp_path / "out.png"
    main([spec, "--out", str(out)])
    assert out.read_bytes().startswith(b"\x89PNG")
    runs = list(storage.iterdir())
    assert len(runs) == 1
    assert (runs[0] / "cells.json").exists()


def test_cli_reads_table_file(tmp_path, storage):
    csv_path = tmp_path / "points.csv"
    csv_path.write_text("a,b\n1,2\n2,4\n", encoding="utf-8")
    spec = _write_spec(tmp_path, {"mapping": {"x": "a", "y": "b"}, "layers": [{"geom": "point"}]})
    out = tmp_path / "out.png"
    main([spec, "--data", str(csv_path), "--out", str(out), "--no-audit"])
    assert out.exists()
    assert not any(storage.iterdir())


def test_cli_exits_on_a_bad_document(tmp_path):
    spec = _write_spec(tmp_path, {"layers": [{"geom": "violin"}]})
    with pytest.raises(SystemExit) as excinfo:
        main([spec, "--out", str(tmp_path / "out.png"), "--no-audit"])
    assert excinfo.value.code == 1
