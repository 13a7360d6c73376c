"""Tests for the HTTP API."""

import logging
import time

import pytest
import yaml
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from sheetgraph.web import app as app_module

from conftest import SAMPLE_GRAPH, FakeTranslator


@pytest.fixture
def client(tmp_path, monkeypatch, analyzer):
    monkeypatch.setenv("SG_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("SG_CLEANUP_INTERVAL", "0.05")
    monkeypatch.setattr(app_module, "build_analyzer", lambda config: analyzer)
    monkeypatch.setattr(app_module, "build_translator", lambda config: FakeTranslator())
    with TestClient(app_module.app) as client:
        yield client


@pytest.fixture
def sid(client):
    return client.post("/api/sessions/register").json()["session_id"]


@pytest.fixture
def loaded(client, sid, sample_tables):
    response = client.post(f"/api/sessions/{sid}/dataset", json={"graph": SAMPLE_GRAPH, "tables": sample_tables})
    assert response.status_code == 200
    return sid


class TestServer:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["analyzer"] is True
        assert body["translator"] is True

    def test_register(self, client):
        body = client.post("/api/sessions/register").json()
        assert len(body["session_id"]) == 8
        assert body["start_ts"] > 0

    def test_unknown_session(self, client):
        assert client.get("/api/sessions/nope/graph").status_code == 404

    def test_expired_session_workspaces_are_swept(self, client, sid):
        assert client.get(f"/api/sessions/{sid}/graph").status_code == 200
        assert sid in app_module.store.workspaces

        app_module.session_manager.session_ttl = -1
        for _ in range(100):
            if sid not in app_module.store.workspaces:
                break
            time.sleep(0.02)

        assert sid not in app_module.store.workspaces
        assert client.get(f"/api/sessions/{sid}/graph").status_code == 404

    def test_recent_logs_newest_first(self, client, caplog):
        caplog.set_level(logging.INFO)
        first = client.post("/api/sessions/register").json()["session_id"]
        second = client.post("/api/sessions/register").json()["session_id"]

        messages = [r["message"] for r in client.get("/api/logs").json()["records"]]
        assert messages.index(f"Session registered: {second}") < messages.index(f"Session registered: {first}")


class TestAnalyze:
    def test_analyze_then_cache_hit(self, client, sid, analyzer, sample_tables):
        response = client.post(f"/api/sessions/{sid}/analyze", json={"tables": sample_tables})
        assert response.status_code == 200
        body = response.json()
        assert body["cached"] is False
        assert body["graph"] == SAMPLE_GRAPH
        assert body["progress"][-1] == {"message": "Analysis complete!", "level": "info"}

        body = client.post(f"/api/sessions/{sid}/analyze", json={"tables": sample_tables}).json()
        assert body["cached"] is True
        assert len(analyzer.calls) == 1

    def test_invalid_depth(self, client, sid, sample_tables):
        response = client.post(f"/api/sessions/{sid}/analyze", json={"tables": sample_tables, "depth": "medium"})
        assert response.status_code == 400

    def test_collaborator_failure(self, client, sid, analyzer, sample_tables):
        analyzer.error = RuntimeError("model overloaded")
        response = client.post(f"/api/sessions/{sid}/analyze", json={"tables": sample_tables})
        assert response.status_code == 502
        assert response.json()["detail"] == "model overloaded"

    def test_cancel_without_analysis(self, client, sid):
        assert client.post(f"/api/sessions/{sid}/analyze/cancel").json() == {"cancelled": False}


class TestGraphEdits:
    def test_edit_before_dataset(self, client, sid):
        assert client.get(f"/api/sessions/{sid}/graph").json()["graph"] is None
        response = client.post(f"/api/sessions/{sid}/nodes/sheet_sales/rename", json={"label": "x"})
        assert response.status_code == 409

    def test_malformed_dataset(self, client, sid):
        response = client.post(f"/api/sessions/{sid}/dataset", json={"graph": {"nodes": []}})
        assert response.status_code == 422

    def test_rename_undo_redo(self, client, loaded):
        body = client.post(f"/api/sessions/{loaded}/nodes/sheet_sales/rename", json={"label": "Q3"}).json()
        assert body["changed"] is True
        assert body["graph"]["nodes"][0]["label"] == "Q3"

        body = client.post(f"/api/sessions/{loaded}/undo").json()
        assert body["graph"] == SAMPLE_GRAPH
        assert body["can_redo"] is True

        body = client.post(f"/api/sessions/{loaded}/redo").json()
        assert body["graph"]["nodes"][0]["label"] == "Q3"

    def test_links(self, client, loaded):
        body = client.post(
            f"/api/sessions/{loaded}/links",
            json={"source": "sheet_sales", "target": "formula_sales_c2"},
        ).json()
        assert body["link"]["label"] == "RELATED_TO"

        response = client.post(
            f"/api/sessions/{loaded}/links",
            json={"source": "sheet_sales", "target": "ghost", "strict": True},
        )
        assert response.status_code == 422

        body = client.delete(f"/api/sessions/{loaded}/links/{body['link']['id']}").json()
        assert body["graph"]["links"] == SAMPLE_GRAPH["links"]

    def test_tags(self, client, loaded):
        url = f"/api/sessions/{loaded}/tags"

        body = client.put(url, json={"owner_id": "formula_sales_c2", "tags": ["KPI"]}).json()
        assert "tag_kpi" in [n["id"] for n in body["graph"]["nodes"]]

        body = client.put(url, json={"owner_type": "Column", "sheet_name": "Sales", "address": "B", "tags": ["money"]}).json()
        assert "column_sales_b" in [n["id"] for n in body["graph"]["nodes"]]

        assert client.put(url, json={"tags": ["x"]}).status_code == 400
        assert client.put(url, json={"owner_id": "ghost", "tags": ["x"]}).status_code == 404
        assert client.put(url, json={"owner_type": "Planet", "sheet_name": "Sales", "tags": ["x"]}).status_code == 400

    def test_items_and_nodes(self, client, loaded):
        base = f"/api/sessions/{loaded}"
        assert client.put(f"{base}/items", json={"item": {"label": "no id"}}).status_code == 400

        client.post(f"{base}/nodes", json={"node": {"id": "a1", "type": "Analysis", "label": "Check"}})
        assert client.post(f"{base}/nodes", json={"node": {"id": "a1", "type": "Analysis", "label": "Dup"}}).status_code == 422

        body = client.put(f"{base}/items", json={"item": {"id": "a1", "type": "Analysis", "label": "Margin"}}).json()
        assert body["graph"]["nodes"][-1]["label"] == "Margin"

        body = client.delete(f"{base}/nodes/a1").json()
        assert len(body["graph"]["nodes"]) == len(SAMPLE_GRAPH["nodes"])


class TestTablesAndViews:
    def test_table_views(self, client, loaded):
        base = f"/api/sessions/{loaded}/tables"

        table = client.post(f"{base}/0/filter", json={"column_index": 1, "operator": ">", "value": "3"}).json()["table"]
        assert [row[1]["value"] for row in table["rows"][1:]] == [5, "7"]

        table = client.post(f"{base}/0/sort", json={"column_index": 1, "direction": "desc"}).json()["table"]
        assert [row[1]["value"] for row in table["rows"][1:]] == ["7", 5]

        body = client.post(f"{base}/0/pivot", json={"group_column_index": 0, "value_column_index": 1}).json()
        assert body["index"] == 1
        assert body["table"]["rows"][1][1]["value"] == 12

        assert len(client.get(base).json()["tables"]) == 2
        assert client.post(f"{base}/5/sort", json={"column_index": 0}).status_code == 404

    def test_invalid_direction_and_aggregation(self, client, loaded):
        base = f"/api/sessions/{loaded}/tables"
        assert client.post(f"{base}/0/sort", json={"column_index": 1, "direction": "DESC"}).status_code == 400
        response = client.post(
            f"{base}/0/pivot", json={"group_column_index": 0, "value_column_index": 1, "aggregation": "median"}
        )
        assert response.status_code == 400

    def test_reset_tables(self, client, loaded, sample_tables):
        base = f"/api/sessions/{loaded}/tables"
        client.post(f"{base}/0/filter", json={"column_index": 0, "operator": "==", "value": "east"})
        client.post(f"{base}/0/pivot", json={"group_column_index": 0, "value_column_index": 1})

        assert client.post(f"{base}/reset").json()["tables"] == sample_tables
        assert client.get(base).json()["tables"] == sample_tables

    def test_export(self, client, loaded, sample_tables):
        response = client.get(f"/api/sessions/{loaded}/export", params={"format": "yaml"})
        assert response.headers["content-type"].startswith("application/x-yaml")
        assert yaml.safe_load(response.text) == {"graph": SAMPLE_GRAPH, "tables": sample_tables}

        response = client.get(f"/api/sessions/{loaded}/export")
        assert response.json()["graph"] == SAMPLE_GRAPH

        assert client.get(f"/api/sessions/{loaded}/export", params={"format": "xml"}).status_code == 400

    def test_query_and_translate(self, client, loaded):
        query = client.post("/api/translate", json={"question": "which formulas exist?"}).json()["query"]
        results = client.post(f"/api/sessions/{loaded}/query", json={"query": query}).json()["results"]
        assert results[0]["f.label"] == "Total"


class TestWebSocket:
    def test_ping(self, client, sid):
        with client.websocket_connect(f"/ws?session_id={sid}") as ws:
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong", "message": "ping"}

    def test_rejects_unknown_session(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?session_id=nope"):
                pass
