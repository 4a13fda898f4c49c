# realty/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from typing import List, Optional
from .. import schemas
from ..exceptions import RemoteFault, RemoteRejection, TransportError
from ..services import Services
from ..utils import logger

router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def _call_catalog(fn, *args):
    try:
        return fn(*args)
    except RemoteRejection as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)
    except RemoteFault as e:
        raise HTTPException(status_code=502, detail=f"Catalog service error: {e.reason}")
    except TransportError as e:
        raise HTTPException(status_code=503, detail=f"Catalog service unavailable: {e}")


def _result(result: schemas.SearchResult):
    if result.degraded:
        return JSONResponse(status_code=503, content=result.model_dump(mode="json", by_alias=True))
    return result


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/properties/search", response_model=schemas.SearchResult)
def search_properties(
    text: Optional[str] = Query(None),
    city_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    max_price: Optional[float] = Query(None),
    min_price: Optional[float] = Query(None),
    min_bedrooms: Optional[int] = Query(None, ge=0),
    min_bathrooms: Optional[int] = Query(None, ge=0),
    min_area: Optional[int] = Query(None, ge=0),
    max_area: Optional[int] = Query(None, ge=0),
    featured: Optional[bool] = Query(None),
    page: int = Query(0, ge=0),
    size: int = Query(12, ge=1, le=100),
    services: Services = Depends(get_services),
):
    criteria = schemas.SearchCriteria(
        text=text, city_id=city_id, category_id=category_id, max_price=max_price,
        min_price=min_price, min_bedrooms=min_bedrooms, min_bathrooms=min_bathrooms,
        min_area=min_area, max_area=max_area, featured=featured,
    )
    return _result(services.search.search(criteria, schemas.PageRequest(index=page, size=size)))


@router.get("/properties/featured", response_model=schemas.SearchResult)
def featured_properties(page: int = Query(0, ge=0), size: int = Query(12, ge=1, le=100),
                        services: Services = Depends(get_services)):
    return _result(services.search.featured(schemas.PageRequest(index=page, size=size)))


@router.get("/properties/{property_id}", response_model=schemas.EnrichedRecord)
def get_property(property_id: str, services: Services = Depends(get_services)):
    obj = _call_catalog(services.listings.get, property_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Property not found")
    return obj


@router.post("/properties", response_model=schemas.EnrichedRecord, status_code=201)
def create_property(payload: schemas.CatalogRecordCreate, services: Services = Depends(get_services)):
    return _call_catalog(services.listings.create, payload)


@router.put("/properties/{property_id}", response_model=schemas.EnrichedRecord)
def update_property(property_id: str, payload: schemas.CatalogRecordUpdate,
                    services: Services = Depends(get_services)):
    obj = _call_catalog(services.listings.update, property_id, payload)
    if not obj:
        raise HTTPException(status_code=404, detail="Property not found")
    return obj


@router.delete("/properties/{property_id}")
def delete_property(property_id: str, services: Services = Depends(get_services)):
    if not _call_catalog(services.listings.delete, property_id):
        raise HTTPException(status_code=404, detail="Property not found")
    return {"status": "deleted"}


@router.post("/properties/{property_id}/inquiries", response_model=schemas.InquiryOut, status_code=201)
def create_inquiry(property_id: str, payload: schemas.InquiryCreate,
                   services: Services = Depends(get_services)):
    obj = _call_catalog(services.inquiries.create_inquiry, property_id, payload)
    if not obj:
        raise HTTPException(status_code=404, detail="Property not found")
    return obj


@router.get("/cities", response_model=List[schemas.CityOut])
def cities(services: Services = Depends(get_services)):
    return services.reference.cities()


@router.get("/categories", response_model=List[schemas.CategoryOut])
def categories(services: Services = Depends(get_services)):
    return services.reference.categories()


@router.get("/agents/statistics", response_model=schemas.AgentStatistics)
def agent_statistics(services: Services = Depends(get_services)):
    return services.reference.statistics()


@router.get("/agents/{agent_id}", response_model=schemas.AgentOut)
def get_agent(agent_id: str, services: Services = Depends(get_services)):
    obj = services.reference.agent(agent_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Agent not found")
    return obj


@router.get("/agents/{agent_id}/properties", response_model=schemas.SearchResult)
def agent_properties(agent_id: str, page: int = Query(0, ge=0), size: int = Query(12, ge=1, le=100),
                     services: Services = Depends(get_services)):
    if not services.reference.agent(agent_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    return _result(services.search.agent_listings(agent_id, schemas.PageRequest(index=page, size=size)))


@router.post("/admin/reconcile", response_model=Optional[schemas.ReconciliationReport])
def trigger_reconcile(services: Services = Depends(get_services)):
    report = services.reconciliation.run()
    if report is None:
        logger.info("Manual reconcile ignored: already running")
        raise HTTPException(status_code=409, detail="Reconciliation already running")
    return report


@router.post("/admin/ratings", response_model=Optional[schemas.ReconciliationReport])
def trigger_ratings(services: Services = Depends(get_services)):
    report = services.ratings.run()
    if report is None:
        raise HTTPException(status_code=409, detail="Rating recalculation already running")
    return report


@router.get("/admin/cache")
def cache_stats(services: Services = Depends(get_services)):
    stats = {to_camel(k): v for k, v in services.cache.stats().items()}
    return {"entries": services.cache.names(), "stats": stats}


@router.delete("/admin/cache")
def clear_cache(services: Services = Depends(get_services)):
    services.cache.invalidate_all()
    return {"status": "cleared"}
