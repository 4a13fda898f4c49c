# realty/enrichment.py
"""Joins catalog records with locally owned reference data.

The join is two-phase: collect the distinct agent, city and category ids of
the whole batch, resolve each set with a single query, then merge in memory.
A record whose references do not resolve keeps empty enrichment fields and
stays in the result, in its original position.
"""
from typing import Callable, Dict, List, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import crud
from .schemas import CatalogRecord, EnrichedRecord
from .utils import logger


class EnrichmentEngine:

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def enrich(self, record: CatalogRecord) -> EnrichedRecord:
        return self.enrich_all([record])[0]

    def enrich_all(self, records: Sequence[CatalogRecord]) -> List[EnrichedRecord]:
        if not records:
            return []
        agents, cities, categories = self._resolve(records)
        out = []
        for record in records:
            try:
                out.append(self._join(record, agents, cities, categories))
            except (TypeError, ValueError) as e:
                logger.error("Error enriching property %s: %s", record.id, e)
                out.append(EnrichedRecord(**record.model_dump()))
        return out

    def _resolve(self, records: Sequence[CatalogRecord]):
        agent_ids = {r.agent_id for r in records if r.agent_id}
        city_ids = {r.city_id for r in records if r.city_id}
        type_ids = {r.property_type_id for r in records if r.property_type_id}
        db = self.session_factory()
        try:
            agents = crud.get_agents_by_ids(db, agent_ids)
            cities = crud.get_cities_by_ids(db, city_ids)
            categories = crud.get_property_types_by_ids(db, type_ids)
            snapshot = (
                {k: _agent_fields(a) for k, a in agents.items()},
                {k: c.name for k, c in cities.items()},
                {k: t.name for k, t in categories.items()},
            )
        except SQLAlchemyError as e:
            # reference store unavailable: serve every record unenriched
            logger.error("Reference lookup failed, returning %d unenriched records: %s", len(records), e)
            return {}, {}, {}
        finally:
            db.close()
        for missing in sorted(agent_ids - snapshot[0].keys()):
            logger.warning("Agent not found for enrichment: %s", missing)
        for missing in sorted(city_ids - snapshot[1].keys()):
            logger.warning("City not found for enrichment: %s", missing)
        return snapshot

    @staticmethod
    def _join(record: CatalogRecord, agents: Dict, cities: Dict, categories: Dict) -> EnrichedRecord:
        data = record.model_dump()
        data.update(agents.get(record.agent_id, {}))
        data["city_name"] = cities.get(record.city_id)
        data["category_name"] = categories.get(record.property_type_id)
        return EnrichedRecord(**data)


def _agent_fields(agent) -> Dict:
    return {
        "agent_name": agent.name,
        "agent_email": agent.email,
        "agent_profile_picture_url": agent.profile_picture_url,
        "agent_rating": float(agent.rating) if agent.rating is not None else None,
        "agent_total_listings": agent.total_listings,
    }
