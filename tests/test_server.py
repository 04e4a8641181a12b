"""Tests for the REST API."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import make_record

from autoab_db.config import Settings
from autoab_db.server import create_app

USER = {"X-User-Id": "alice"}
ADMIN = {"X-User-Id": "root", "X-User-Role": "superAdmin"}


@pytest.fixture()
def client(tmp_path: Path):
    settings = Settings(db_path=str(tmp_path / "api.duckdb"))
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def seed(client: TestClient, *records: dict) -> None:
    response = client.post("/api/disease/bulk-import", json={"entries": list(records)})
    assert response.status_code == 200, response.text


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "records": 0}


def test_listing_paginates_and_echoes_filters(client: TestClient) -> None:
    seed(client, *[make_record(disease=f"Disease {i:02d}") for i in range(1, 26)])

    response = client.get("/api/disease", params={"page": 2, "limit": 10, "bogus": "x"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 25, "pages": 3}
    assert body["data"][0]["disease"] == "Disease 11"
    assert body["appliedFilters"]["sortBy"] == "disease"
    assert "bogus" not in body["appliedFilters"]


def test_listing_ranks_priority_first(client: TestClient) -> None:
    seed(
        client,
        make_record(disease="Alpha"),
        make_record(disease="Zeta", priority="9"),
        make_record(disease="Beta", priority=1),
    )

    body = client.get("/api/disease", params={"sortBy": "disease"}).json()

    assert [r["disease"] for r in body["data"]] == ["Zeta", "Beta", "Alpha"]


def test_search_endpoints(client: TestClient) -> None:
    seed(
        client,
        make_record(disease="Sjögren Syndrome", autoantibody="Anti-Ro52"),
        make_record(disease="Myositis", autoantibody="Anti-SSA"),
    )

    quick = client.get("/api/disease/search", params={"q": "ro52"}).json()
    assert quick["count"] == 2
    assert quick["searchTerm"] == "ro52"

    advanced = client.get(
        "/api/disease/advanced-search", params={"q": "myositis", "includeStats": "true"}
    ).json()
    assert advanced["data"][0]["relevanceScore"] == 10
    assert advanced["data"][0]["matchedFields"] == ["disease"]
    assert advanced["stats"]["totalMatches"] == 1

    assert client.get("/api/disease/search").status_code == 400
    assert client.get("/api/disease/advanced-search", params={"q": "m"}).status_code == 400


def test_unique_values_reject_unknown_fields(client: TestClient) -> None:
    seed(client, make_record())

    ok = client.get("/api/disease/unique/autoantibody")
    assert ok.json()["data"] == ["Anti-dsDNA"]

    bad = client.get("/api/disease/unique/notAField")
    assert bad.status_code == 400
    assert bad.json()["success"] is False
    assert "notAField" in bad.json()["message"]


def test_record_crud_round_trip(client: TestClient) -> None:
    created = client.post("/api/disease", json=make_record(priority=4))
    assert created.status_code == 201
    record_id = created.json()["data"]["id"]

    fetched = client.get(f"/api/disease/{record_id}").json()
    assert fetched["data"]["priority"] == 4
    assert fetched["relatedEntries"] == []

    updated = client.put(f"/api/disease/{record_id}", json={"type": "IgG"}).json()
    assert updated["data"]["type"] == "IgG"
    assert updated["data"]["disease"] == "Systemic Lupus Erythematosus"

    assert client.delete(f"/api/disease/{record_id}").status_code == 200
    missing = client.get(f"/api/disease/{record_id}")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Entry not found"}


def test_create_validation_error_payload(client: TestClient) -> None:
    response = client.post("/api/disease", json={"disease": "SLE"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "UniProt ID is required" in body["errors"]


def test_bulk_import_partial_failure_is_207(client: TestClient) -> None:
    response = client.post(
        "/api/disease/bulk-import",
        json={"entries": [make_record(id="dup"), make_record(id="dup")]},
    )

    assert response.status_code == 207
    body = response.json()
    assert body["success"] is True
    assert body["data"]["inserted"] == 1
    assert body["data"]["failed"] == 1


def test_csv_export(client: TestClient) -> None:
    seed(client, make_record(), make_record(autoantibody="Anti-Sm"))

    response = client.get("/api/disease/export", params={"format": "csv", "autoantibody": "anti-sm"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert len(lines) == 2
    assert "Anti-Sm" in lines[1]


def test_submissions_require_a_caller(client: TestClient) -> None:
    response = client.post("/api/submissions", json=make_record())
    assert response.status_code == 401
    assert response.json()["success"] is False

    created = client.post("/api/submissions", json=make_record(), headers=USER)
    assert created.status_code == 201
    submission_id = created.json()["data"]["id"]

    approved = client.post(
        f"/api/submissions/{submission_id}/approve",
        json={"reviewNote": "ok"},
        headers=ADMIN,
    )
    assert approved.status_code == 200
    assert approved.json()["data"]["submission"]["reviewNote"] == "ok"

    again = client.post(f"/api/submissions/{submission_id}/approve", headers=ADMIN)
    assert again.status_code == 400
    assert client.get("/api/disease").json()["pagination"]["total"] == 1

    listing = client.get("/api/submissions", params={"status": "approved"}, headers=USER).json()
    assert listing["pagination"]["total"] == 1


def test_biomarker_endpoints(client: TestClient) -> None:
    rows = [{"Autoantibody": "Anti-Ro52", "Disease": "Sjögren Syndrome"}]

    assert client.post("/api/biomarkers/import", json={"rows": rows}).status_code == 401
    imported = client.post("/api/biomarkers/import", json={"rows": rows}, headers=USER)
    assert imported.json()["data"]["inserted"] == 1

    assert [b["name"] for b in client.get("/api/biomarkers", params={"search": "sjögren"}).json()] == ["Anti-Ro52"]
    assert len(client.post("/api/biomarkers/bulk", json={"names": ["ANTI-RO52"]}).json()) == 1
    assert client.post("/api/biomarkers/bulk", json={}).status_code == 400

    exported = client.get("/api/biomarkers/export", headers=USER).json()
    assert exported["data"][0]["Autoantibody"] == "Anti-Ro52"


def test_article_endpoints(client: TestClient) -> None:
    body = {"title": "Ro52 Review", "content": "Text", "author": "Chen", "doi": "10.5555/ro52"}

    created = client.post("/api/articles", json=body, headers=USER)
    assert created.status_code == 201
    article = created.json()["data"]["article"]
    assert article["slug"] == "ro52-review"

    assert client.post("/api/articles", json=body, headers=USER).status_code == 409
    draft = client.get("/api/articles/public/ro52-review").json()["data"]["article"]
    assert draft["views"] == 0

    client.put(f"/api/articles/{article['id']}/publish", headers=USER)
    public = client.get("/api/articles/public/ro52-review").json()["data"]["article"]
    assert public["views"] == 1

    listing = client.get("/api/articles/public").json()["data"]
    assert listing["pagination"]["totalArticles"] == 1
    assert "content" not in listing["articles"][0]
