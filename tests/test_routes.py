# tests/test_routes.py
import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from realty import crud
from realty.events import EventBus
from realty.main import create_app
from realty.services import build_services


@pytest.fixture
def api(services):
    return TestClient(create_app(services, start_scheduler=False))


@pytest.fixture
def listed(catalog, ref):
    catalog.add("p1", minutes=1, title="Sunny flat", price=90000, bedrooms=2, status="ACTIVE",
                agentId=ref.agents[0], cityId=ref.sofia, propertyTypeId=ref.apartment)
    catalog.add("p2", minutes=2, title="Family house", price=250000, bedrooms=4, isFeatured=True,
                agentId=ref.agents[1], cityId=ref.plovdiv, propertyTypeId=ref.house)
    return ref


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_search_returns_enriched_page(api, listed):
    r = api.get("/properties/search", params={"min_bedrooms": 1, "size": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["degraded"] is False
    assert body["page"]["totalCount"] == 2
    assert body["page"]["totalPages"] == 2
    item = body["page"]["items"][0]
    assert item["id"] == "p2"
    assert item["cityName"] == "Plovdiv"
    assert item["agentName"] == "Agent 1"


def test_degraded_search_answers_503_with_payload(api, catalog, listed):
    catalog.fail = requests.ConnectionError("refused")
    r = api.get("/properties/search", params={"text": "flat"})
    assert r.status_code == 503
    body = r.json()
    assert body["degraded"] is True
    assert body["page"]["items"] == []
    assert "unreachable" in body["error"]


def test_rejected_create_passes_reason_through(api, catalog, ref):
    catalog.reject = (422, {"message": "Agent is not allowed to list in this city"})
    r = api.post("/properties", json={"title": "Loft", "price": 1000, "agentId": ref.agents[0],
                                      "cityId": ref.sofia, "propertyTypeId": ref.apartment})
    assert r.status_code == 422
    assert r.json()["detail"] == "Agent is not allowed to list in this city"


def test_create_adjusts_agent_count(api, ref, db):
    r = api.post("/properties", json={"title": "Loft", "price": 1000, "agentId": ref.agents[0],
                                      "cityId": ref.sofia, "propertyTypeId": ref.apartment})
    assert r.status_code == 201
    assert r.json()["status"] == "DRAFT"
    assert r.json()["categoryName"] == "Apartment"
    db.expire_all()
    assert crud.get_agent(db, ref.agents[0]).total_listings == 1


def test_missing_property_is_404(api):
    assert api.get("/properties/nope").status_code == 404
    assert api.delete("/properties/nope").status_code == 404


def test_catalog_unavailable_on_single_read_is_503(api, catalog):
    catalog.fail = requests.Timeout("slow")
    assert api.get("/properties/p1").status_code == 503


def test_inquiry_created(api, listed):
    r = api.post("/properties/p1/inquiries",
                 json={"contactName": "Maria", "contactEmail": "maria@example.com", "message": "Hi"})
    assert r.status_code == 201
    assert r.json()["status"] == "NEW"
    assert r.json()["agentId"] == listed.agents[0]

    r = api.post("/properties/ghost/inquiries",
                 json={"contactName": "Maria", "contactEmail": "maria@example.com", "message": "Hi"})
    assert r.status_code == 404


def test_agent_endpoints(api, listed):
    r = api.get(f"/agents/{listed.agents[0]}/properties")
    assert r.status_code == 200
    assert [i["id"] for i in r.json()["page"]["items"]] == ["p1"]
    assert api.get("/agents/ghost").status_code == 404
    assert api.get("/agents/statistics").json()["totalAgents"] == 2


def test_admin_reconcile_and_cache(api, listed, db):
    r = api.post("/admin/reconcile")
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"
    assert r.json()["updated"] == 2

    api.get("/cities")
    assert "cities" in api.get("/admin/cache").json()["entries"]
    assert api.delete("/admin/cache").json() == {"status": "cleared"}
    assert api.get("/admin/cache").json()["entries"] == []


def test_responses_use_camel_case_throughout(api, catalog, listed):
    body = api.get("/properties/search", params={"min_bedrooms": 1}).json()
    assert set(body["page"]) == {"items", "totalCount", "index", "size", "totalPages"}
    assert "primaryImageUrl" in body["page"]["items"][0]

    report = api.post("/admin/ratings").json()
    assert "startedAt" in report and "started_at" not in report
    assert "inFlight" in api.get("/admin/cache").json()["stats"]

    catalog.fail = requests.ConnectionError("refused")
    degraded = api.get("/properties/search", params={"min_bedrooms": 1}).json()
    assert degraded["page"]["totalCount"] == 0


def test_startup_creates_tables_on_the_services_database(tmp_path, client, cache):
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}", connect_args={"check_same_thread": False})
    svc = build_services(session_factory=sessionmaker(bind=engine), client=client, cache=cache,
                         events=EventBus(max_workers=1))
    assert inspect(engine).get_table_names() == []

    with TestClient(create_app(svc, start_scheduler=False)) as api:
        assert api.get("/cities").json() == []

    assert {"agents", "cities", "inquiries"} <= set(inspect(engine).get_table_names())
    engine.dispose()
