"""
Tests: HTTP API and CLI entry point.

Run with:
    pytest agreement_assembly/tests/test_api.py -v
"""

import base64
import io
import json

import pytest
from docx import Document
from fastapi.testclient import TestClient

from agreement_assembly.api import app
from agreement_assembly.api.routes import get_assembly_service
from agreement_assembly.config import Settings
from agreement_assembly.main import main
from agreement_assembly.services.assembly_service import AssemblyService


@pytest.fixture
def client(repository):
    service = AssemblyService(repository=repository, settings=Settings(exhibit_fetch_backoff_seconds=0))
    app.dependency_overrides[get_assembly_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _body(template, **overrides):
    body = {
        "template_base64": base64.b64encode(template).decode(),
        "configuration": {
            "kind": "single",
            "migration_type": "Messaging",
            "segment": {"category": "messaging", "combination_name": "Slack to Teams",
                        "number_of_users": "100", "duration_months": 12},
        },
        "breakdown": {"user_cost": 12000, "migration_cost": 300, "total_cost": 5000,
                      "tier": {"name": "Standard"}},
        "client": {"client_name": "Jane Doe", "company": "Acme Corp", "effective_date": "2026-01-31"},
        "discount": {"percent": 10},
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestExhibits:
    def test_list(self, client, catalog):
        response = client.get("/api/exhibits")
        assert response.status_code == 200
        assert [e["id"] for e in response.json()] == [e.id for e in catalog]


class TestAssemble:
    def test_assemble(self, client, agreement_template):
        response = client.post("/api/agreements/assemble", json=_body(agreement_template))
        assert response.status_code == 200
        data = response.json()
        assert data["exhibit_ids"] == ["stt-std-inc", "stt-std-not"]
        assert len(data["document_hash"]) == 64
        doc = Document(io.BytesIO(base64.b64decode(data["document_base64"])))
        assert "This agreement is made with Acme Corp (the Client)." in [p.text for p in doc.paragraphs]

    def test_missing_template(self, client, agreement_template):
        body = _body(agreement_template)
        del body["template_base64"]
        response = client.post("/api/agreements/assemble", json=body)
        assert response.status_code == 400

    def test_invalid_base64(self, client, agreement_template):
        response = client.post("/api/agreements/assemble",
                               json=_body(agreement_template, template_base64="%%%not-base64%%%"))
        assert response.status_code == 400

    def test_critical_token_missing(self, client, agreement_template):
        body = _body(agreement_template, client={"client_name": "Jane Doe"})
        response = client.post("/api/agreements/assemble", json=body)
        assert response.status_code == 422
        assert response.json()["detail"]["tokens"] == ["Company_Name"]

    def test_unreadable_template(self, client):
        response = client.post("/api/agreements/assemble", json=_body(b"plain text, not a docx"))
        assert response.status_code == 502

    def test_unknown_configuration_kind(self, client, agreement_template):
        body = _body(agreement_template, configuration={"kind": "bundle"})
        assert client.post("/api/agreements/assemble", json=body).status_code == 422


class TestCli:
    def test_run_from_request_file(self, tmp_path, monkeypatch, agreement_template, make_docx, read_docx):
        monkeypatch.setattr("agreement_assembly.main.setup_logging", lambda level: None)
        (tmp_path / "template.docx").write_bytes(agreement_template)
        (tmp_path / "std-inc.docx").write_bytes(make_docx(["Standard features"]))
        request = {
            "template_path": "template.docx",
            "configuration": _body(agreement_template)["configuration"],
            "breakdown": {"user_cost": 12000, "total_cost": 5000, "tier": {"name": "Standard"}},
            "client": {"client_name": "Jane Doe", "company": "Acme Corp"},
            "exhibits": [{
                "id": "stt-std-inc",
                "name": "Slack to Teams Standard Plan - Standard Include",
                "category": "messaging",
                "combinations": ["slack-to-teams-standard-include"],
                "plan_type": "Standard",
                "path": "std-inc.docx",
            }],
        }
        request_path = tmp_path / "request.json"
        request_path.write_text(json.dumps(request), encoding="utf-8")
        output = tmp_path / "out" / "agreement.docx"
        output.parent.mkdir()

        assert main([str(request_path), "-o", str(output)]) == 0
        lines = read_docx(output.read_bytes())
        assert "Standard features" in lines
        assert "Exhibit 1 - INCLUDED IN MIGRATION" in lines

    def test_request_required(self):
        with pytest.raises(SystemExit):
            main([])
