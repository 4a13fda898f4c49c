# tests/conftest.py
import json
import threading
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import urlparse

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from realty import crud
from realty.cache import NamedCache
from realty.catalog_client import CatalogClient
from realty.db import Base
from realty.events import EventBus
from realty.services import build_services

CATALOG_URL = "http://catalog.test"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = "" if payload is None else json.dumps(payload)
        self.reason = ""

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeCatalogService:
    """Drop-in for requests.Session that serves an in-memory catalog."""

    prefix = "/api/v1/properties"

    def __init__(self):
        self.headers = {}
        self.records = {}
        self.calls = []
        self.fail = None
        self.fail_agents = {}
        self.agent_errors = {}
        self.reject = None
        self.delay = 0
        self._lock = threading.Lock()
        self._seq = 0

    def add(self, id, minutes=0, **fields):
        record = {"id": id, "createdAt": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
                  "status": "ACTIVE", "isFeatured": False, "imageUrls": []}
        record.update(fields)
        self.records[id] = record
        return record

    def list_calls(self):
        return [c for c in self.calls if c[0] == "GET" and c[1] == ""]

    def request(self, method, url, params=None, json=None, timeout=None):
        path = urlparse(url).path[len(self.prefix):]
        with self._lock:
            self.calls.append((method, path, params))
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        if method == "GET":
            return self._get(path, params or {})
        if method == "POST":
            if self.reject:
                return FakeResponse(*self.reject)
            with self._lock:
                self._seq += 1
                new_id = f"new-{self._seq}"
            record = dict(json, id=new_id, createdAt=(BASE_TIME + timedelta(days=1)).isoformat())
            self.records[new_id] = record
            return FakeResponse(201, record)
        if method == "PUT":
            record = self.records.get(path.lstrip("/"))
            if record is None:
                return FakeResponse(404, {"message": "not found"})
            record.update(json)
            return FakeResponse(200, record)
        if method == "DELETE":
            if self.records.pop(path.lstrip("/"), None) is None:
                return FakeResponse(404, {"message": "not found"})
            return FakeResponse(204)
        return FakeResponse(405)

    def _get(self, path, params):
        records = list(self.records.values())
        if path == "":
            return FakeResponse(200, [r for r in records if self._matches(r, params)])
        if path == "/featured":
            return FakeResponse(200, [r for r in records if r.get("isFeatured")])
        if path.startswith("/agent/"):
            agent_id = path[len("/agent/"):]
            if agent_id in self.fail_agents:
                raise self.fail_agents[agent_id]
            if agent_id in self.agent_errors:
                return FakeResponse(*self.agent_errors[agent_id])
            return FakeResponse(200, [r for r in records if r.get("agentId") == agent_id])
        record = self.records.get(path.lstrip("/"))
        if record is None:
            return FakeResponse(404, {"message": "not found"})
        return FakeResponse(200, record)

    @staticmethod
    def _matches(record, params):
        text = params.get("search")
        if text:
            blob = " ".join(filter(None, [record.get("title"), record.get("description")])).lower()
            if text.lower() not in blob:
                return False
        if params.get("cityId") and record.get("cityId") != params["cityId"]:
            return False
        if params.get("propertyTypeId") and record.get("propertyTypeId") != params["propertyTypeId"]:
            return False
        if params.get("maxPrice") is not None:
            if record.get("price") is None or record["price"] > params["maxPrice"]:
                return False
        return True


def seed_reference(db, agents=2):
    sofia = crud.create_city(db, "Sofia")
    plovdiv = crud.create_city(db, "Plovdiv")
    apartment = crud.create_property_type(db, "Apartment")
    house = crud.create_property_type(db, "House")
    agent_rows = []
    for n in range(agents):
        user = crud.create_user(db, f"Agent {n}", f"agent{n}@example.com", role="AGENT")
        agent_rows.append(crud.create_agent(db, user.id, license_number=f"LIC-{n:03d}",
                                            experience_years=n, profile_picture_url=f"https://img.test/{n}.jpg"))
    return SimpleNamespace(sofia=sofia.id, plovdiv=plovdiv.id, apartment=apartment.id, house=house.id,
                           agents=[a.id for a in agent_rows])


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'reference.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    return lambda agents=2: seed_reference(db, agents=agents)


@pytest.fixture
def ref(seed):
    return seed()


@pytest.fixture
def catalog():
    return FakeCatalogService()


@pytest.fixture
def cache():
    return NamedCache()


@pytest.fixture
def client(catalog, cache):
    return CatalogClient(base_url=CATALOG_URL, timeout_seconds=2, cache=cache, session=catalog)


@pytest.fixture
def services(session_factory, client, cache):
    svc = build_services(session_factory=session_factory, client=client, cache=cache, events=EventBus(max_workers=2))
    yield svc
    svc.events.shutdown(wait=True)
