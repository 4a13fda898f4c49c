# realty/reconciliation.py
"""
Scheduled correction of the derived agent columns.

`ReconciliationJob` recounts each agent's ACTIVE and DRAFT listings against
the catalog service; `RatingRecalculationJob` recomputes agent ratings from
the reconciled counts. Both run per agent, commit each correction on its own,
and never create or delete agents. A failure on one agent is tallied and the
batch moves on.
"""
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .cache import STATISTICS, NamedCache, agent_listings_key
from .catalog_client import CatalogClient
from .exceptions import CatalogError, TransportError
from .schemas import ListingStatus, ReconciliationReport
from .search import agent_records
from .utils import env_int, logger, retry

COUNTED_STATUSES = frozenset({ListingStatus.ACTIVE, ListingStatus.DRAFT})
MAX_RATING = Decimal("5.00")


class JobState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class _AgentBatchJob(ABC):
    name = "batch"

    def __init__(self, session_factory: Callable[[], Session], cache: NamedCache):
        self.session_factory = session_factory
        self.cache = cache
        self.state = JobState.IDLE
        self.last_report: Optional[ReconciliationReport] = None
        self._running = threading.Lock()

    def run(self) -> Optional[ReconciliationReport]:
        """Run one pass. Returns None when a pass is already RUNNING."""
        if not self._running.acquire(blocking=False):
            logger.info("%s triggered while RUNNING; ignoring trigger", self.name)
            return None
        try:
            self.state = JobState.RUNNING
            report = ReconciliationReport(job=self.name, status=JobState.RUNNING.value,
                                          started_at=datetime.now(timezone.utc))
            logger.info("Starting %s", self.name)
            try:
                self._run(report)
            except Exception as e:
                logger.exception("%s aborted: %s", self.name, e)
                report.status = JobState.FAILED.value
                report.error = str(e)
            else:
                report.status = JobState.COMPLETED.value
            report.finished_at = datetime.now(timezone.utc)
            self.state = JobState(report.status)
            self.last_report = report
            logger.info("%s %s: updated=%d unchanged=%d failed=%d", self.name, report.status,
                        report.updated, report.unchanged, report.failed)
            return report
        finally:
            self.state = JobState.IDLE
            self._running.release()

    def _agent_ids(self):
        db = self.session_factory()
        try:
            return [a.id for a in crud.list_agents(db)]
        finally:
            db.close()

    @abstractmethod
    def _run(self, report: ReconciliationReport) -> None:
        """Process every agent, tallying into `report`."""


class ReconciliationJob(_AgentBatchJob):
    """Corrects `Agent.total_listings` from the catalog service."""
    name = "listing-count reconciliation"

    def __init__(self, session_factory, cache, client: CatalogClient,
                 retry_tries: Optional[int] = None, retry_delay: Optional[float] = None):
        super().__init__(session_factory, cache)
        self.client = client
        self.retry_tries = retry_tries if retry_tries is not None else env_int("RECONCILE_RETRY_TRIES", 3)
        self.retry_delay = retry_delay if retry_delay is not None else env_int("RECONCILE_RETRY_DELAY", 1)

    def remote_count(self, agent_id: str) -> int:
        fetch = retry(TransportError, tries=self.retry_tries, delay=self.retry_delay)(self.client.list_by_agent)
        records = agent_records(self.client, self.cache, agent_id, fetch=fetch)
        # a record without a status is treated as active, as the catalog does
        return sum(1 for r in records if r.status is None or r.status in COUNTED_STATUSES)

    def _run(self, report: ReconciliationReport) -> None:
        for agent_id in self._agent_ids():
            try:
                count = self.remote_count(agent_id)
            except CatalogError as e:
                logger.warning("Could not reconcile agent %s: %s", agent_id, e)
                report.failed += 1
                continue
            try:
                changed = self._correct(agent_id, count)
            except SQLAlchemyError as e:
                logger.warning("Could not store listing count for agent %s: %s", agent_id, e)
                report.failed += 1
                continue
            if changed:
                report.updated += 1
            else:
                report.unchanged += 1

    def _correct(self, agent_id: str, count: int) -> bool:
        db = self.session_factory()
        try:
            agent = crud.get_agent(db, agent_id)
            if agent is None or agent.total_listings == count:
                return False
            logger.info("Agent %s listing count %s -> %s", agent_id, agent.total_listings, count)
            crud.set_agent_listing_count(db, agent_id, count)
        finally:
            db.close()
        self.cache.invalidate(agent_listings_key(agent_id))
        self.cache.invalidate(STATISTICS)
        return True


def compute_rating(total_listings: int, experience_years: Optional[int]) -> Decimal:
    raw = Decimal("3.0") + Decimal("0.1") * total_listings + Decimal("0.05") * (experience_years or 0)
    return min(MAX_RATING, raw).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class RatingRecalculationJob(_AgentBatchJob):
    """Recomputes `Agent.rating` from listing count and experience."""
    name = "agent rating recalculation"

    def _run(self, report: ReconciliationReport) -> None:
        for agent_id in self._agent_ids():
            db = self.session_factory()
            try:
                agent = crud.get_agent(db, agent_id)
                if agent is None or not agent.total_listings:
                    report.unchanged += 1
                    continue
                rating = compute_rating(agent.total_listings, agent.experience_years)
                if agent.rating is not None and Decimal(agent.rating) == rating:
                    report.unchanged += 1
                    continue
                crud.set_agent_rating(db, agent_id, rating)
                report.updated += 1
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Could not recalculate rating for agent %s: %s", agent_id, e)
                report.failed += 1
            finally:
                db.close()
        if report.updated:
            self.cache.invalidate(STATISTICS)
