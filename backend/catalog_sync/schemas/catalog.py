"""
Catalog schemas — catalog item rows and the wire record sent upstream.

CatalogItem mirrors one row of the catalog table. MappedRecord is the
validated, immutable record posted to the recommendation service.
Version: 1.0.0
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CatalogImage(BaseModel):
    url: Optional[str] = None
    alt: Optional[str] = None


class CatalogCategory(BaseModel):
    id: int
    name: Optional[str] = None
    slug: Optional[str] = None
    parent: Optional[int] = None


class CatalogAttribute(BaseModel):
    name: Optional[str] = None
    values: Union[List[str], str, None] = None
    visible: bool = True
    variation: bool = False


class CatalogItem(BaseModel):
    """One sellable item as stored in the host catalog."""
    id: int
    name: Optional[str] = None
    description: Optional[str] = None
    type: str = "simple"
    status: str = "publish"
    sku: Optional[str] = None
    price: Any = None
    regular_price: Any = None
    sale_price: Any = None
    currency: Optional[str] = None
    stock_quantity: Optional[int] = None
    in_stock: bool = True

    image: Optional[CatalogImage] = None
    gallery: List[CatalogImage] = []
    categories: List[CatalogCategory] = []
    attributes: List[CatalogAttribute] = []

    featured: bool = False
    catalog_visibility: Optional[str] = None
    virtual: bool = False
    downloadable: bool = False
    sold_individually: bool = False
    manage_stock: bool = False
    backorders: Optional[str] = None
    low_stock_amount: Optional[int] = None
    rating_count: int = 0
    average_rating: Optional[float] = None
    review_count: int = 0
    permalink: Optional[str] = None

    weight: Optional[str] = None
    length: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None

    custom_fields: Dict[str, Any] = {}

    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None

    @property
    def category_ids(self) -> List[int]:
        return [c.id for c in self.categories]


class RecordImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    alt: str = ""
    featured: bool = False


class MappedRecord(BaseModel):
    """Validated record in the recommendation service's wire format."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    external_id: str = Field(..., alias="externalId", min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    price: float
    currency: str
    sku: str
    categories: List[str] = []
    images: List[RecordImage] = []
    attributes: Dict[str, Any] = {}
    stock: Optional[int] = None
    status: str
    metadata: Dict[str, Any] = {}

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys; attributes always stay an object."""
        return self.model_dump(mode="json", by_alias=True)
