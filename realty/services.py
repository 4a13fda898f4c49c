# realty/services.py
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, schemas
from .cache import CATEGORIES, CITIES, STATISTICS, NamedCache
from .catalog_client import CatalogClient
from .db import Base, SessionLocal
from .enrichment import EnrichmentEngine
from .events import EventBus, InquiryCreated, register_inquiry_listeners
from .reconciliation import COUNTED_STATUSES, RatingRecalculationJob, ReconciliationJob
from .search import SearchEngine
from .utils import logger


class ListingService:
    """Single-record reads and the write path to the catalog service.

    Remote rejections propagate unchanged to the caller that issued the
    write. Cache invalidation happens inside the client.
    """

    def __init__(self, client: CatalogClient, enrichment: EnrichmentEngine,
                 session_factory: Callable[[], Session]):
        self.client = client
        self.enrichment = enrichment
        self.session_factory = session_factory

    def get(self, record_id: str) -> Optional[schemas.EnrichedRecord]:
        record = self.client.get_by_id(record_id)
        if record is None:
            return None
        return self.enrichment.enrich(record)

    def create(self, payload: schemas.CatalogRecordCreate) -> schemas.EnrichedRecord:
        record = self.client.create(payload)
        logger.info("Created property %s for agent %s", record.id, record.agent_id)
        if record.status is None or record.status in COUNTED_STATUSES:
            self._adjust_count(record.agent_id, +1)
        return self.enrichment.enrich(record)

    def update(self, record_id: str, patch: schemas.CatalogRecordUpdate) -> Optional[schemas.EnrichedRecord]:
        record = self.client.update(record_id, patch)
        if record is None:
            return None
        logger.info("Updated property %s", record_id)
        return self.enrichment.enrich(record)

    def delete(self, record_id: str) -> bool:
        existing = self.client.get_by_id(record_id)
        if existing is None:
            return False
        if not self.client.delete(record_id, agent_id=existing.agent_id):
            return False
        logger.info("Deleted property %s", record_id)
        if existing.status is None or existing.status in COUNTED_STATUSES:
            self._adjust_count(existing.agent_id, -1)
        return True

    def _adjust_count(self, agent_id: Optional[str], delta: int) -> None:
        # best effort; the reconciliation job corrects any drift
        if not agent_id:
            return
        db = self.session_factory()
        try:
            crud.adjust_agent_listing_count(db, agent_id, delta)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not adjust listing count for agent %s: %s", agent_id, e)
        finally:
            db.close()


class ReferenceService:
    """Cached reads of local reference collections."""

    def __init__(self, session_factory: Callable[[], Session], cache: NamedCache):
        self.session_factory = session_factory
        self.cache = cache

    def _read(self, fn):
        db = self.session_factory()
        try:
            return fn(db)
        finally:
            db.close()

    def cities(self) -> List[schemas.CityOut]:
        return self.cache.get_or_load(CITIES, lambda: self._read(
            lambda db: [schemas.CityOut.model_validate(c) for c in crud.list_cities(db)]))

    def categories(self) -> List[schemas.CategoryOut]:
        return self.cache.get_or_load(CATEGORIES, lambda: self._read(
            lambda db: [schemas.CategoryOut.model_validate(t) for t in crud.list_property_types(db)]))

    def agent(self, agent_id: str) -> Optional[schemas.AgentOut]:
        def load(db):
            obj = crud.get_agent(db, agent_id)
            return schemas.AgentOut.model_validate(obj) if obj else None
        return self._read(load)

    def statistics(self) -> schemas.AgentStatistics:
        return self.cache.get_or_load(STATISTICS, lambda: self._read(
            lambda db: schemas.AgentStatistics(**crud.agent_statistics(db))))


class InquiryService:

    def __init__(self, session_factory: Callable[[], Session], client: CatalogClient, bus: EventBus):
        self.session_factory = session_factory
        self.client = client
        self.bus = bus

    def create_inquiry(self, property_id: str, payload: schemas.InquiryCreate) -> Optional[schemas.InquiryOut]:
        """Persist an inquiry for an existing listing; None if the listing is unknown."""
        record = self.client.get_by_id(property_id)
        if record is None:
            return None
        db = self.session_factory()
        try:
            obj = crud.create_inquiry(db, property_id, record.agent_id, payload.model_dump())
            agent = crud.get_agent(db, record.agent_id) if record.agent_id else None
            out = schemas.InquiryOut.model_validate(obj)
            agent_email = agent.email if agent else None
        finally:
            db.close()
        self.bus.publish(InquiryCreated(
            inquiry_id=out.id, property_id=property_id, property_title=record.title,
            agent_id=record.agent_id, agent_email=agent_email,
            contact_name=out.contact_name, contact_email=out.contact_email, message=out.message,
        ))
        return out


@dataclass
class Services:
    cache: NamedCache
    client: CatalogClient
    enrichment: EnrichmentEngine
    search: SearchEngine
    listings: ListingService
    reference: ReferenceService
    inquiries: InquiryService
    reconciliation: ReconciliationJob
    ratings: RatingRecalculationJob
    events: EventBus
    session_factory: Callable[[], Session] = SessionLocal

    def create_tables(self) -> None:
        """Create the reference tables on the database this wiring uses."""
        db = self.session_factory()
        try:
            Base.metadata.create_all(bind=db.get_bind())
        finally:
            db.close()

    def close(self) -> None:
        self.events.shutdown(wait=False)


def build_services(session_factory: Callable[[], Session] = SessionLocal,
                   client: Optional[CatalogClient] = None,
                   cache: Optional[NamedCache] = None,
                   events: Optional[EventBus] = None) -> Services:
    cache = cache or NamedCache()
    if client is None:
        client = CatalogClient(cache=cache)
    elif getattr(client, "cache", None) is None:
        client.cache = cache
    events = events or EventBus()
    register_inquiry_listeners(events, cache)
    enrichment = EnrichmentEngine(session_factory)
    return Services(
        cache=cache,
        client=client,
        enrichment=enrichment,
        search=SearchEngine(client, cache, enrichment),
        listings=ListingService(client, enrichment, session_factory),
        reference=ReferenceService(session_factory, cache),
        inquiries=InquiryService(session_factory, client, events),
        reconciliation=ReconciliationJob(session_factory, cache, client),
        ratings=RatingRecalculationJob(session_factory, cache),
        events=events,
        session_factory=session_factory,
    )
