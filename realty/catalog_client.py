# realty/catalog_client.py
import os
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from .cache import CATALOG_SNAPSHOTS, NamedCache, agent_listings_key
from .exceptions import RemoteFault, RemoteRejection, TransportError
from .schemas import CatalogFilter, CatalogRecord, CatalogRecordCreate, CatalogRecordUpdate
from .utils import logger

load_dotenv()
CATALOG_SERVICE_URL = os.getenv("CATALOG_SERVICE_URL", "http://localhost:8083")
CATALOG_TIMEOUT_SECONDS = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "10"))


class CatalogClient:
    """
    Client for the remote property catalog service.

    Every call is a single blocking HTTP request bounded by `timeout_seconds`.
    Failures surface as `TransportError` (unreachable, timeout) or a
    `RemoteError` subclass (`RemoteRejection` for 4xx, `RemoteFault` for 5xx).
    A 404 on a single-record call is not an error: `get_by_id`/`update`
    return None and `delete` returns False. The client never retries.

    When a cache is attached, every successful write invalidates the catalog
    snapshots and the per-agent entries of the agents involved.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        cache: Optional[NamedCache] = None,
        session: Optional[requests.Session] = None,
        api_prefix: str = "/api/v1/properties",
    ) -> None:
        self.base_url: str = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout_seconds: float = timeout_seconds or CATALOG_TIMEOUT_SECONDS
        self.cache = cache
        self.api_prefix = api_prefix
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    # ---- Internal helpers ----
    def _url(self, path: str = "") -> str:
        return f"{self.base_url}{self.api_prefix}{path}"

    def _request(self, method: str, path: str = "", *, params=None, json=None) -> requests.Response:
        url = self._url(path)
        logger.debug("Catalog %s %s params=%s", method, url, params)
        try:
            return self.session.request(method, url, params=params, json=json, timeout=self.timeout_seconds)
        except requests.Timeout as e:
            logger.warning("Catalog %s %s timed out after %ss", method, url, self.timeout_seconds)
            raise TransportError(f"Timeout calling catalog service: {e}") from e
        except requests.RequestException as e:
            logger.warning("Catalog %s %s unreachable: %s", method, url, e)
            raise TransportError(f"Catalog service unreachable: {e}") from e

    @staticmethod
    def _reason(response: requests.Response) -> str:
        # Surface server-provided error payloads when available
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason or ""
        if isinstance(payload, dict):
            for key in ("message", "detail", "error"):
                if payload.get(key):
                    return str(payload[key])
        return str(payload)

    def _raise_for_status(self, response: requests.Response) -> None:
        if 200 <= response.status_code < 300:
            return
        reason = self._reason(response)
        logger.warning("Catalog service answered HTTP %s: %s", response.status_code, reason)
        if response.status_code >= 500:
            raise RemoteFault(response.status_code, reason)
        raise RemoteRejection(response.status_code, reason)

    def _json(self, response: requests.Response) -> Any:
        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteFault(response.status_code, f"Invalid JSON response: {exc}") from exc

    @staticmethod
    def _record(payload: Dict[str, Any]) -> CatalogRecord:
        try:
            return CatalogRecord.model_validate(payload)
        except ValidationError as exc:
            raise RemoteFault(200, f"Unexpected response schema: {exc}") from exc

    def _records(self, payload: Any) -> List[CatalogRecord]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise RemoteFault(200, f"Expected a list of records, got {type(payload).__name__}")
        records = []
        for item in payload:
            try:
                records.append(CatalogRecord.model_validate(item))
            except ValidationError as exc:
                # one bad item must not sink the whole listing
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("Skipping malformed catalog record %s: %s", item_id, exc)
        return records

    def _after_write(self, *agent_ids: Optional[str]) -> None:
        if self.cache is None:
            return
        self.cache.invalidate_many(CATALOG_SNAPSHOTS)
        for agent_id in {a for a in agent_ids if a}:
            self.cache.invalidate(agent_listings_key(agent_id))

    # ---- Reads ----
    def list_all(self, filter: Optional[CatalogFilter] = None) -> List[CatalogRecord]:
        params = filter.to_params() if filter else None
        return self._records(self._json(self._request("GET", params=params or None)))

    def get_by_id(self, record_id: str) -> Optional[CatalogRecord]:
        response = self._request("GET", f"/{record_id}")
        if response.status_code == 404:
            return None
        return self._record(self._json(response))

    def list_featured(self) -> List[CatalogRecord]:
        return self._records(self._json(self._request("GET", "/featured")))

    def list_by_agent(self, agent_id: str) -> List[CatalogRecord]:
        return self._records(self._json(self._request("GET", f"/agent/{agent_id}")))

    # ---- Writes ----
    def create(self, payload: CatalogRecordCreate) -> CatalogRecord:
        record = self._record(self._json(self._request("POST", json=payload.to_wire())))
        self._after_write(payload.agent_id, record.agent_id)
        return record

    def update(self, record_id: str, patch: CatalogRecordUpdate) -> Optional[CatalogRecord]:
        response = self._request("PUT", f"/{record_id}", json=patch.to_wire(exclude_unset=True))
        if response.status_code == 404:
            return None
        record = self._record(self._json(response))
        self._after_write(record.agent_id)
        return record

    def delete(self, record_id: str, agent_id: Optional[str] = None) -> bool:
        response = self._request("DELETE", f"/{record_id}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response)
        self._after_write(agent_id)
        return True
