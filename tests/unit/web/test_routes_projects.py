"""Tests for optruth.web.routes.projects - Project dashboard routes."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from optruth.sync.facade import ProjectRegistry
from optruth.sync.persistence import InMemoryProjectStore
from optruth.web.app import create_app
from optruth.web.dependencies import get_registry
from optruth.web.routes import projects


class BrokenStore(InMemoryProjectStore):
    """Reads work, writes are rejected."""

    async def update(self, project_id, partial):
        raise RuntimeError("store unavailable")


@pytest.fixture
def store():
    return InMemoryProjectStore()


@pytest.fixture
def registry(store):
    return ProjectRegistry(store=store)


@pytest.fixture
def app(registry):
    """Create test FastAPI app with projects router."""
    test_app = FastAPI()
    test_app.include_router(projects.router)
    test_app.dependency_overrides[get_registry] = lambda: registry
    return test_app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


def _add_paint(client, project_id="proj-1"):
    response = client.post(
        f"/api/projects/{project_id}/materials",
        json={"name": "Paint", "quantity": "4", "unit": "gal", "unit_price": "60"},
    )
    assert response.status_code == 201
    return response.json()["material"]


class TestReads:
    def test_financial_summary_for_new_project(self, client):
        response = client.get("/api/projects/proj-1/financial-summary")

        assert response.status_code == 200
        data = response.json()
        assert data["grand_total"] == "0.00"
        assert data["is_draft"] is True
        assert data["currency"] == "CAD"

    def test_materials_list_with_badges(self, client):
        _add_paint(client)

        response = client.get("/api/projects/proj-1/materials")

        assert response.status_code == 200
        (row,) = response.json()
        assert row["material"]["name"] == "Paint"
        assert row["badge"]["short_label"] == "EDIT"
        assert len(row["history"]) == 1

    def test_health_score(self, client):
        response = client.get("/api/projects/proj-1/health-score")

        assert response.status_code == 200
        assert 0 <= response.json()["score"] <= 100

    def test_truth_matrix(self, client):
        response = client.get("/api/projects/proj-1/truth-matrix")

        assert response.status_code == 200
        data = response.json()
        assert data["pillars"][0]["id"] == "confirmed_area"
        assert data["conflict_count"] == 0


class TestWrites:
    def test_add_material_persists(self, client, store):
        material = _add_paint(client)

        assert material["source"] == "manual_override"
        assert material["total_price"] == "240"
        summary = client.get("/api/projects/proj-1/financial-summary").json()
        assert summary["material_cost"] == "240.00"

    def test_add_material_validation(self, client):
        response = client.post(
            "/api/projects/proj-1/materials",
            json={"name": "", "quantity": "4"},
        )

        assert response.status_code == 422

    def test_update_material(self, client):
        material = _add_paint(client)

        response = client.patch(
            f"/api/projects/proj-1/materials/{material['id']}",
            json={"field": "quantity", "value": "5"},
        )

        assert response.status_code == 200
        assert response.json()["material"]["quantity"] == "5"

    def test_update_rejects_bad_field(self, client):
        material = _add_paint(client)

        response = client.patch(
            f"/api/projects/proj-1/materials/{material['id']}",
            json={"field": "unit", "value": "litres"},
        )

        assert response.status_code == 400
        assert "not editable" in response.json()["detail"]

    def test_update_unknown_material(self, client):
        response = client.patch(
            "/api/projects/proj-1/materials/mat-missing",
            json={"field": "quantity", "value": "5"},
        )

        assert response.status_code == 404

    def test_remove_material(self, client):
        material = _add_paint(client)

        first = client.delete(f"/api/projects/proj-1/materials/{material['id']}")
        second = client.delete(f"/api/projects/proj-1/materials/{material['id']}")

        assert first.json() == {"success": True, "removed": True}
        assert second.json() == {"success": True, "removed": False}
        assert client.get("/api/projects/proj-1/materials").json() == []

    def test_finalize(self, client, store):
        _add_paint(client)

        response = client.post("/api/projects/proj-1/finalize")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "project_id": "proj-1",
            "is_draft": False,
            "grand_total": "271.20",
        }
        assert store._records["proj-1"]["is_draft"] is False


class TestPersistenceFailures:
    @pytest.fixture
    def store(self):
        return BrokenStore()

    def test_write_answers_502_and_keeps_change(self, client):
        response = client.post(
            "/api/projects/proj-1/materials",
            json={"name": "Paint", "quantity": "4", "unit": "gal", "unit_price": "60"},
        )

        assert response.status_code == 502
        materials = client.get("/api/projects/proj-1/materials").json()
        assert [m["material"]["name"] for m in materials] == ["Paint"]

    def test_finalize_answers_502(self, client):
        response = client.post("/api/projects/proj-1/finalize")

        assert response.status_code == 502
        summary = client.get("/api/projects/proj-1/financial-summary").json()
        assert summary["is_draft"] is False


class TestApp:
    @pytest.fixture
    def app(self, registry):
        test_app = create_app(init_database=False)
        test_app.dependency_overrides[get_registry] = lambda: registry
        return test_app

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        response = client.get("/api/projects/proj-1/health-score")

        assert response.headers["X-Request-ID"]
