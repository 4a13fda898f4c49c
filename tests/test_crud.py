# tests/test_crud.py
from decimal import Decimal

from realty import crud


def test_create_and_get_agent(db):
    user = crud.create_user(db, "Elena Petrova", "elena@example.com", role="AGENT")
    agent = crud.create_agent(db, user.id, license_number="LIC-900", experience_years=6)

    obj = crud.get_agent(db, agent.id)
    assert obj is not None
    assert obj.name == "Elena Petrova"
    assert obj.email == "elena@example.com"
    assert obj.total_listings == 0
    assert crud.get_agent(db, "nope") is None


def test_by_ids_returns_only_known_rows(db, ref):
    found = crud.get_agents_by_ids(db, [ref.agents[0], "ghost", None, ref.agents[0]])
    assert list(found) == [ref.agents[0]]
    assert crud.get_cities_by_ids(db, []) == {}
    types = crud.get_property_types_by_ids(db, [ref.apartment, ref.house])
    assert {t.name for t in types.values()} == {"Apartment", "House"}


def test_adjust_listing_count_never_goes_negative(db, ref):
    agent_id = ref.agents[0]
    assert crud.adjust_agent_listing_count(db, agent_id, +2) == 2
    assert crud.adjust_agent_listing_count(db, agent_id, -5) == 0
    assert crud.adjust_agent_listing_count(db, "ghost", 1) is None


def test_agent_statistics(db, ref):
    crud.set_agent_listing_count(db, ref.agents[0], 3)
    crud.set_agent_listing_count(db, ref.agents[1], 4)
    crud.set_agent_rating(db, ref.agents[1], Decimal("4.50"))

    stats = crud.agent_statistics(db)

    assert stats == {"total_agents": 2, "average_rating": 2.25, "total_listings": 7}


def test_reference_lists_are_sorted_by_name(db, ref):
    assert [c.name for c in crud.list_cities(db)] == ["Plovdiv", "Sofia"]
    assert [t.name for t in crud.list_property_types(db)] == ["Apartment", "House"]
