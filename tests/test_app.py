import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text


def _prepare_client(tmp_path, monkeypatch, *, root_marker="/", raise_server_exceptions=True):
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)

    upload_dir = tmp_path / "uploads"
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("UPLOAD_DIR", str(upload_dir))
    monkeypatch.setenv("DB_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("ENABLE_ORPHAN_SWEEP", "false")
    monkeypatch.setenv("ROOT_PATH_MARKER", root_marker)

    # Reload modules so configuration changes take effect cleanly.
    module_order = [
        "file_registry.config",
        "file_registry.core.metrics",
        "file_registry.db",
        "file_registry.storage",
        "file_registry.records",
        "file_registry.registry",
        "file_registry.cleaner",
        "file_registry.api.routes",
        "file_registry.main",
    ]

    for module_name in module_order:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    main = sys.modules["file_registry.main"]

    test_client = TestClient(main.app, raise_server_exceptions=raise_server_exceptions)
    test_client.upload_dir = upload_dir  # type: ignore[attr-defined]
    return test_client


@pytest.fixture
def client(tmp_path, monkeypatch):
    test_client = _prepare_client(tmp_path, monkeypatch)
    with test_client as c:
        yield c


def _upload(client, filename="a.txt", content=b"hello", **fields):
    return client.post("/upload", files={"file": (filename, content, "text/plain")}, data=fields)


def _blobs(client):
    return sorted(p for p in client.upload_dir.iterdir() if p.is_file())  # type: ignore[attr-defined]


def test_upload_defaults_name_and_path(client):
    response = _upload(client)
    assert response.status_code == 200
    payload = response.json()
    assert set(payload) == {"id", "name", "path", "size"}
    assert payload["name"] == "a.txt"
    assert payload["path"] == "/"
    assert payload["size"] == 5
    assert payload["id"]


def test_upload_with_name_and_path(client):
    response = _upload(client, "report.pdf", b"%PDF-1.4", name="Q3 report", path="/finance/2024")
    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "Q3 report"
    assert payload["path"] == "/finance/2024"
    assert payload["size"] == 8


def test_upload_blank_fields_fall_back_to_defaults(client):
    payload = _upload(client, "b.txt", b"x", name="", path="").json()
    assert payload["name"] == "b.txt"
    assert payload["path"] == "/"


def test_upload_uses_configured_root_marker(tmp_path, monkeypatch):
    with _prepare_client(tmp_path, monkeypatch, root_marker="root") as c:
        assert _upload(c).json()["path"] == "root"


def test_upload_without_file_is_bad_request(client):
    response = client.post("/upload", data={"name": "nothing"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing file"}
    assert _blobs(client) == []


def test_upload_ids_are_unique(client):
    ids = {_upload(client, f"f{i}.txt", b"data").json()["id"] for i in range(10)}
    assert len(ids) == 10


def test_upload_writes_blob_to_storage_root(client):
    _upload(client, content=b"stored bytes")
    blobs = _blobs(client)
    assert len(blobs) == 1
    assert blobs[0].read_bytes() == b"stored bytes"
    # Storage names are server-assigned, not the client filename
    assert blobs[0].name != "a.txt"


def test_list_empty_registry(client):
    response = client.get("/files")
    assert response.status_code == 200
    assert response.json() == []


def test_list_returns_records_without_storage_location(client):
    first = _upload(client, "one.txt", b"1").json()
    second = _upload(client, "two.txt", b"22", path="/docs").json()

    response = client.get("/files")
    assert response.status_code == 200
    rows = {row["id"]: row for row in response.json()}
    assert set(rows) == {first["id"], second["id"]}

    row = rows[second["id"]]
    assert row["name"] == "two.txt"
    assert row["original_name"] == "two.txt"
    assert row["path"] == "/docs"
    assert row["size"] == 2
    assert row["created_at"]
    assert "storage_location" not in row


def test_download_streams_content_with_original_name(client):
    created = _upload(client, "notes.txt", b"hello world", name="My notes").json()

    response = client.get(f"/file/{created['id']}")
    assert response.status_code == 200
    assert response.content == b"hello world"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment")
    assert 'filename="notes.txt"' in disposition


def test_download_unknown_id_is_not_found(client):
    response = client.get("/file/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_download_with_missing_blob_is_server_error(client):
    created = _upload(client).json()
    for blob in _blobs(client):
        blob.unlink()

    response = client.get(f"/file/{created['id']}")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to get file"}


def test_delete_then_get_and_delete_again(client):
    created = _upload(client).json()

    response = client.delete(f"/files/{created['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "File deleted successfully"}
    assert _blobs(client) == []

    assert client.get(f"/file/{created['id']}").status_code == 404
    second = client.delete(f"/files/{created['id']}")
    assert second.status_code == 404
    assert second.json() == {"error": "File not found"}


def test_delete_unknown_id_is_not_found(client):
    response = client.delete("/files/never-created")
    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_delete_with_missing_blob_reports_failure_after_removing_record(client):
    created = _upload(client).json()
    for blob in _blobs(client):
        blob.unlink()

    response = client.delete(f"/files/{created['id']}")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to delete file"}
    # The row is gone even though the request failed
    assert client.get("/files").json() == []
    assert client.delete(f"/files/{created['id']}").status_code == 404


def test_move_updates_only_path(client):
    created = _upload(client, "move.txt", b"abc", name="mover").json()
    before = {row["id"]: row for row in client.get("/files").json()}[created["id"]]

    response = client.patch(f"/files/{created['id']}/move", json={"path": "/archive"})
    assert response.status_code == 200
    assert response.json() == {"message": "File moved successfully"}

    after = {row["id"]: row for row in client.get("/files").json()}[created["id"]]
    assert after["path"] == "/archive"
    assert {k: v for k, v in after.items() if k != "path"} == {
        k: v for k, v in before.items() if k != "path"
    }
    # The bytes are untouched by a move
    assert client.get(f"/file/{created['id']}").content == b"abc"


def test_move_unknown_id_is_not_found(client):
    response = client.patch("/files/ghost/move", json={"path": "/elsewhere"})
    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_move_without_path_is_bad_request(client):
    created = _upload(client).json()
    response = client.patch(f"/files/{created['id']}/move", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request"}


def test_record_store_failure_on_upload_leaves_orphaned_blob(client):
    db = sys.modules["file_registry.db"]
    with db.engine.begin() as conn:
        conn.execute(text("DROP TABLE files"))

    response = _upload(client, content=b"orphan")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to upload file"}
    blobs = _blobs(client)
    assert len(blobs) == 1
    assert blobs[0].read_bytes() == b"orphan"


def test_list_failure_hides_internal_detail(client):
    db = sys.modules["file_registry.db"]
    with db.engine.begin() as conn:
        conn.execute(text("DROP TABLE files"))

    response = client.get("/files")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to get files"}


def test_metrics_counts_operations(client):
    created = _upload(client, content=b"12345").json()
    _upload(client, "b.txt", b"xyz")
    client.get(f"/file/{created['id']}")
    client.patch(f"/files/{created['id']}/move", json={"path": "/x"})
    client.delete(f"/files/{created['id']}")

    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "no-store, no-cache, must-revalidate"
    data = response.json()
    assert data["uploads"] == 2
    assert data["bytes_uploaded"] == 8
    assert data["downloads"] == 1
    assert data["moved"] == 1
    assert data["deleted"] == 1
    assert data["total_files"] == 1
    assert data["total_bytes"] == 3


def test_blob_vanishing_before_streaming_returns_json_error(tmp_path, monkeypatch):
    with _prepare_client(tmp_path, monkeypatch, raise_server_exceptions=False) as c:
        created = _upload(c, content=b"short lived").json()

        storage = sys.modules["file_registry.storage"]
        original_resolve = storage.blob_store.resolve

        def resolve_then_remove(location):
            path = original_resolve(location)
            path.unlink()  # A concurrent delete wins the race
            return path

        monkeypatch.setattr(storage.blob_store, "resolve", resolve_then_remove)

        response = c.get(f"/file/{created['id']}")
        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"error": "Internal server error"}


def test_created_at_is_returned_for_new_uploads(client):
    created = _upload(client).json()
    [row] = client.get("/files").json()
    assert row["id"] == created["id"]
    assert row["created_at"]


def test_metrics_failure_hides_internal_detail(client):
    db = sys.modules["file_registry.db"]
    with db.engine.begin() as conn:
        conn.execute(text("DROP TABLE files"))

    response = client.get("/metrics")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to get metrics"}
