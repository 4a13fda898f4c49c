# realty/schemas.py
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

PLACEHOLDER_IMAGE_URL = "https://images.unsplash.com/photo-1568605114967-8130f3a94e52?w=400&h=280&fit=crop&q=80"


class ListingStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ApiModel(BaseModel):
    """camelCase on the wire; Python code uses the field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CatalogModel(ApiModel):
    """Base for payloads exchanged with the catalog service."""

    def to_wire(self, exclude_unset: bool = False) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=exclude_unset, exclude_none=True)


class CatalogRecord(CatalogModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    status: Optional[ListingStatus] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[int] = None
    address: Optional[str] = None
    agent_id: Optional[str] = None
    city_id: Optional[str] = None
    property_type_id: Optional[str] = None
    is_featured: bool = False
    image_urls: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("is_featured", mode="before")
    @classmethod
    def null_flag_is_false(cls, value):
        return False if value is None else value

    @field_validator("image_urls", "features", mode="before")
    @classmethod
    def null_list_is_empty(cls, value):
        # the catalog sends null for an empty collection, and null entries inside it
        if value is None:
            return []
        if isinstance(value, list):
            return [v for v in value if v is not None]
        return value


class CatalogRecordCreate(CatalogModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: float = Field(..., gt=0)
    agent_id: str
    city_id: str
    property_type_id: str
    status: ListingStatus = ListingStatus.DRAFT
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, ge=0)
    address: Optional[str] = None
    is_featured: bool = False
    features: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)


class CatalogRecordUpdate(CatalogModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[float] = Field(None, gt=0)
    city_id: Optional[str] = None
    property_type_id: Optional[str] = None
    status: Optional[ListingStatus] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, ge=0)
    address: Optional[str] = None
    is_featured: Optional[bool] = None
    features: Optional[List[str]] = None
    image_urls: Optional[List[str]] = None


class CatalogFilter(BaseModel):
    """Predicates the catalog service evaluates itself."""
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    city_id: Optional[str] = None
    category_id: Optional[str] = None
    max_price: Optional[float] = None

    def to_params(self) -> dict:
        params = {
            "search": self.text,
            "cityId": self.city_id,
            "propertyTypeId": self.category_id,
            "maxPrice": self.max_price,
        }
        return {k: v for k, v in params.items() if v is not None}


PUSH_DOWN_FIELDS = frozenset({"text", "city_id", "category_id", "max_price"})


class SearchCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    city_id: Optional[str] = None
    category_id: Optional[str] = None
    max_price: Optional[float] = None
    min_price: Optional[float] = None
    min_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    min_area: Optional[int] = None
    max_area: Optional[int] = None
    featured: Optional[bool] = None

    def normalized(self) -> "SearchCriteria":
        """Strip text fields; blank strings mean "no predicate"."""
        updates = {}
        for name in ("text", "city_id", "category_id"):
            value = getattr(self, name)
            if value is not None:
                value = value.strip()
                updates[name] = value or None
        return self.model_copy(update=updates)

    def active_fields(self) -> frozenset:
        return frozenset(name for name, value in self if value is not None)

    def is_push_down(self) -> bool:
        return self.active_fields() <= PUSH_DOWN_FIELDS

    def to_filter(self) -> CatalogFilter:
        return CatalogFilter(text=self.text, city_id=self.city_id,
                             category_id=self.category_id, max_price=self.max_price)


class PageRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(0, ge=0)
    size: int = Field(12, ge=1, le=100)


class EnrichedRecord(CatalogRecord):
    city_name: Optional[str] = None
    category_name: Optional[str] = None
    agent_name: Optional[str] = None
    agent_email: Optional[str] = None
    agent_profile_picture_url: Optional[str] = None
    agent_rating: Optional[float] = None
    agent_total_listings: Optional[int] = None

    @computed_field(alias="primaryImageUrl")
    @property
    def primary_image_url(self) -> str:
        for url in self.image_urls:
            if url and url.strip():
                return url
        return PLACEHOLDER_IMAGE_URL


class Page(ApiModel):
    items: List[EnrichedRecord] = Field(default_factory=list)
    total_count: int = 0
    index: int = 0
    size: int = 12

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.size)


class SearchResult(ApiModel):
    page: Page
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def degraded_empty(cls, page: PageRequest, error: str) -> "SearchResult":
        return cls(page=Page(items=[], total_count=0, index=page.index, size=page.size),
                   degraded=True, error=error)


class ReconciliationReport(ApiModel):
    job: str
    status: str
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class CityOut(ApiModel):
    id: str
    name: str
    country: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CategoryOut(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AgentOut(ApiModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    license_number: Optional[str] = None
    bio: Optional[str] = None
    experience_years: int = 0
    rating: float = 0.0
    total_listings: int = 0
    profile_picture_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AgentStatistics(ApiModel):
    total_agents: int
    average_rating: float
    total_listings: int


class InquiryCreate(ApiModel):
    contact_name: str = Field(..., min_length=1, max_length=100)
    contact_email: str = Field(..., min_length=3, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=30)
    message: str = Field(..., min_length=1, max_length=2000)


class InquiryOut(InquiryCreate):
    id: str
    property_id: str
    agent_id: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
