# realty/search.py
"""
Search over the remote catalog.

Criteria the catalog service understands (text, city, category, max price)
are pushed down as a single `list_all` call. Anything else is answered from
the cached full-catalog snapshot and filtered here. Either way results are
sorted newest first (ties by id), paginated, and only the page is enriched.
"""
from typing import Callable, List, Optional, Sequence, Tuple

from .cache import ALL_CATALOG, FEATURED_CATALOG, NamedCache, agent_listings_key
from .catalog_client import CatalogClient
from .enrichment import EnrichmentEngine
from .exceptions import CatalogError, RemoteFault, TransportError
from .schemas import CatalogRecord, Page, PageRequest, SearchCriteria, SearchResult
from .utils import logger


def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle in haystack.lower()


def _at_least(value, bound) -> bool:
    return value is not None and value >= bound


def _at_most(value, bound) -> bool:
    return value is not None and value <= bound


def matches(record: CatalogRecord, criteria: SearchCriteria) -> bool:
    """True when `record` satisfies every predicate set on `criteria`.

    A missing field on the record never satisfies a predicate on that field.
    """
    c = criteria
    if c.text is not None:
        term = c.text.lower()
        if not (_contains(record.title, term) or _contains(record.description, term)):
            return False
    if c.city_id is not None and record.city_id != c.city_id:
        return False
    if c.category_id is not None and record.property_type_id != c.category_id:
        return False
    if c.min_price is not None and not _at_least(record.price, c.min_price):
        return False
    if c.max_price is not None and not _at_most(record.price, c.max_price):
        return False
    if c.min_bedrooms is not None and not _at_least(record.bedrooms, c.min_bedrooms):
        return False
    if c.min_bathrooms is not None and not _at_least(record.bathrooms, c.min_bathrooms):
        return False
    if c.min_area is not None and not _at_least(record.square_feet, c.min_area):
        return False
    if c.max_area is not None and not _at_most(record.square_feet, c.max_area):
        return False
    if c.featured is not None and record.is_featured != c.featured:
        return False
    return True


def agent_records(client: CatalogClient, cache: NamedCache, agent_id: str,
                  fetch: Optional[Callable[[str], List[CatalogRecord]]] = None) -> List[CatalogRecord]:
    """Records of one agent.

    A server error on the per-agent endpoint falls back to the full-catalog
    snapshot filtered by agent. Transport errors propagate.
    """
    try:
        return (fetch or client.list_by_agent)(agent_id)
    except RemoteFault as e:
        logger.warning("Agent endpoint failed for %s, filtering the full catalog instead: %s", agent_id, e)
        return [r for r in cache.get_or_load(ALL_CATALOG, client.list_all) if r.agent_id == agent_id]


def sort_records(records: Sequence[CatalogRecord]) -> List[CatalogRecord]:
    """Newest first, ties by id ascending; undated records go last."""
    by_id = sorted(records, key=lambda r: r.id)
    dated = [r for r in by_id if r.created_at is not None]
    undated = [r for r in by_id if r.created_at is None]
    # list.sort is stable with reverse=True, so the id order survives ties
    dated.sort(key=lambda r: r.created_at, reverse=True)
    return dated + undated


def paginate(records: Sequence, page: PageRequest) -> Tuple[list, int]:
    total = len(records)
    start = page.index * page.size
    if start >= total:
        return [], total
    return list(records[start:min(start + page.size, total)]), total


class SearchEngine:

    def __init__(self, client: CatalogClient, cache: NamedCache, enrichment: EnrichmentEngine):
        self.client = client
        self.cache = cache
        self.enrichment = enrichment

    def search(self, criteria: SearchCriteria, page: PageRequest = PageRequest()) -> SearchResult:
        criteria = criteria.normalized()
        push_down = criteria.is_push_down()
        logger.debug("Search %s via %s", criteria, "push-down" if push_down else "in-memory filter")
        try:
            if push_down:
                records = self.client.list_all(criteria.to_filter())
            else:
                records = [r for r in self._all_records() if matches(r, criteria)]
        except CatalogError as e:
            return self._degraded(page, e)
        return self._page(records, page)

    def featured(self, page: PageRequest = PageRequest()) -> SearchResult:
        return self._snapshot(FEATURED_CATALOG, self.client.list_featured, page)

    def agent_listings(self, agent_id: str, page: PageRequest = PageRequest()) -> SearchResult:
        return self._snapshot(agent_listings_key(agent_id),
                              lambda: agent_records(self.client, self.cache, agent_id), page)

    def _all_records(self) -> List[CatalogRecord]:
        return self.cache.get_or_load(ALL_CATALOG, self.client.list_all)

    def _snapshot(self, name: str, loader: Callable[[], List[CatalogRecord]], page: PageRequest) -> SearchResult:
        try:
            records = self.cache.get_or_load(name, loader)
        except CatalogError as e:
            return self._degraded(page, e)
        return self._page(records, page)

    def _page(self, records: Sequence[CatalogRecord], page: PageRequest) -> SearchResult:
        items, total = paginate(sort_records(records), page)
        return SearchResult(page=Page(items=self.enrichment.enrich_all(items),
                                      total_count=total, index=page.index, size=page.size))

    @staticmethod
    def _degraded(page: PageRequest, error: CatalogError) -> SearchResult:
        kind = "unreachable" if isinstance(error, TransportError) else "failed"
        logger.error("Catalog service %s, returning degraded result: %s", kind, error)
        return SearchResult.degraded_empty(page, f"Catalog service {kind}: {error}")
