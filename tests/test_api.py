import base64

import pytest
from fastapi.testclient import TestClient

from gramviz.core.settings import get_settings
from gramviz.main import app

_SPEC = {
    "mapping": {"x": "a", "y": "b"},
    "layers": [{"geom": "point", "mapping": {"colour": "k"}}],
    "labels": {"title": "Scatter"},
}
_DATA = [
    {"a": 1.0, "b": 2.0, "k": "p"},
    {"a": 2.0, "b": 3.0, "k": "q"},
    {"a": 3.0, "b": None, "k": "p"},
]


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("GRAMVIZ_STORAGE_ROOT", str(tmp_path / "runs"))
    get_settings.cache_clear()
    yield TestClient(app)
    get_settings.cache_clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_build_summary(client):
    resp = client.post("/plot/build", json={"spec": _SPEC, "data": _DATA})
    assert resp.status_code == 200
    body = resp.json()
    assert body["panels"] == 1
    assert body["layers"][0]["geom"] == "geom_point"
    assert body["layers"][0]["rows"] == 3
    assert body["position_ranges"]["x"] == [[1.0, 3.0]]


def test_render_without_persisting(client, tmp_path):
    resp = client.post("/plot/render", json={"spec": _SPEC, "data": _DATA, "png": True, "persist": False})
    assert resp.status_code == 200
    body = resp.json()
    assert body["removed_rows"] == 1
    assert base64.b64decode(body["png_base64"]).startswith(b"\x89PNG")
    assert body["audit_path"] is None
    assert "Scatter" in body["alt_text"]
    assert any(diag["kind"] == "removed_rows" and diag["stage"] == "draw" for diag in body["diagnostics"])


def test_render_persists_runs(client, tmp_path):
    data = [row for row in _DATA if row["b"] is not None]
    resp = client.post("/plot/render", json={"spec": _SPEC, "data": data})
    assert resp.status_code == 200
    body = resp.json()
    assert body["png_base64"] is None
    assert body["audit_path"].startswith(str(tmp_path / "runs"))
    assert (tmp_path / "runs").exists()


def test_bad_documents_are_client_errors(client):
    resp = client.post("/plot/build", json={"spec": {"layers": [{"geom": "violin"}]}})
    assert resp.status_code == 400
    resp = client.post("/plot/build", json={"spec": {"mapping": {"x": "a"}, "layers": [{"geom": "point"}]}, "data": _DATA})
    assert resp.status_code == 400
    assert "y" in resp.json()["detail"]
