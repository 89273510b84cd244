"""
Item mapper — catalog item to validated recommendation-service record.

Build order:
    1. external id ("{tenant}_{item_id}")
    2. images (entries with a malformed URL are skipped; the primary is featured)
    3. category names
    4. attributes as name -> value, multi-values joined with ", "
    5. cleaned description
    6. metadata block
    7. optional post-processing hook (may rewrite any field)

Validation failures only drop the one record; the caller keeps going with
the rest of its batch.
Version: 1.0.0
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from catalog_sync.core.constants.sync import (
    PUBLISHABLE_STATUS,
    RECORD_STATUS_DRAFT,
    RECORD_STATUS_PUBLISHED,
)
from catalog_sync.core.exceptions import RecordValidationError
from catalog_sync.schemas.catalog import CatalogImage, CatalogItem, MappedRecord
from catalog_sync.utils.text_cleaning import clean_description, is_valid_url
from catalog_sync.utils.type_converters import is_numeric, to_float, to_price

logger = logging.getLogger("item_mapper")

# Rewrites the draft record (wire-shaped dict) before validation.
RecordHook = Callable[[Dict[str, Any], CatalogItem], Dict[str, Any]]


@dataclass
class MappingResult:
    item_id: int
    record: Optional[MappedRecord] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def error(self) -> Optional[RecordValidationError]:
        """The validation failure as a reportable error, None when mapping succeeded."""
        if self.ok:
            return None
        return RecordValidationError(self.item_id, self.errors)


def build_external_id(tenant_id: str, item_id: int | str) -> str:
    return f"{tenant_id}_{item_id}"


# ── Field builders ────────────────────────────────────────────────

def build_images(item: CatalogItem) -> List[Dict[str, Any]]:
    """Primary image first (featured), then gallery. Malformed URLs are skipped."""
    candidates: List[tuple[CatalogImage, bool]] = []
    if item.image is not None:
        candidates.append((item.image, True))
    candidates.extend((img, False) for img in item.gallery)

    images: List[Dict[str, Any]] = []
    for image, featured in candidates:
        if not is_valid_url(image.url):
            logger.info(f"Skipping image with invalid URL for item {item.id}: {image.url!r}")
            continue
        images.append({
            "url": image.url.strip(),
            "alt": image.alt or "",
            "featured": featured,
        })
    return images


def build_categories(item: CatalogItem) -> List[str]:
    return [c.name for c in item.categories if c.name]


def build_attributes(item: CatalogItem) -> Dict[str, str]:
    """Flatten attributes to name -> value. Always a dict, so it encodes as an object."""
    attributes: Dict[str, str] = {}
    for attr in item.attributes:
        if not attr.name or attr.values is None:
            continue
        if isinstance(attr.values, list):
            attributes[attr.name] = ", ".join(str(v) for v in attr.values)
        else:
            attributes[attr.name] = str(attr.values)
    return attributes


def build_metadata(item: CatalogItem, custom_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """Read-only auxiliary fields: platform ids, pricing, dimensions, timestamps."""
    metadata: Dict[str, Any] = {
        "catalog": {
            "id": item.id,
            "type": item.type,
            "featured": item.featured,
            "catalogVisibility": item.catalog_visibility,
            "virtual": item.virtual,
            "downloadable": item.downloadable,
            "soldIndividually": item.sold_individually,
            "manageStock": item.manage_stock,
            "backorders": item.backorders,
            "lowStockAmount": item.low_stock_amount,
            "ratingCount": item.rating_count,
            "averageRating": item.average_rating,
            "reviewCount": item.review_count,
            "url": item.permalink,
            "dateCreated": item.created_at.isoformat() if item.created_at else None,
            "dateModified": item.modified_at.isoformat() if item.modified_at else None,
            "regularPrice": to_float(item.regular_price) or 0.0,
            "salePrice": to_float(item.sale_price),
            "inStock": item.in_stock,
            "weight": item.weight,
            "dimensions": {
                "length": item.length,
                "width": item.width,
                "height": item.height,
            },
        }
    }

    custom = {name: item.custom_fields[name] for name in custom_fields if name in item.custom_fields}
    if custom:
        metadata["custom"] = custom
    return metadata


# ── Validation ────────────────────────────────────────────────────

def validate_record(data: Dict[str, Any]) -> List[str]:
    """Check a draft record against the service's requirements. Empty list means valid."""
    errors: List[str] = []

    if not str(data.get("externalId") or "").strip():
        errors.append("externalId is required")
    if not str(data.get("name") or "").strip():
        errors.append("name is required")
    if not is_numeric(data.get("price")):
        errors.append("price is required and must be numeric")

    if "categories" in data and not isinstance(data["categories"], list):
        errors.append("categories must be an array")
    if "images" in data and not isinstance(data["images"], list):
        errors.append("images must be an array")
    if "attributes" in data:
        attributes = data["attributes"]
        if isinstance(attributes, (list, tuple)):
            errors.append("attributes must be an object, not an array")
        elif not isinstance(attributes, Mapping):
            errors.append("attributes must be an object")

    if isinstance(data.get("images"), list):
        for index, image in enumerate(data["images"]):
            if not isinstance(image, Mapping) or not image.get("url"):
                errors.append(f"images[{index}] must have a url field")
            elif not is_valid_url(image["url"]):
                errors.append(f"images[{index}].url must be a valid URL")

    return errors


# ── Mapper ────────────────────────────────────────────────────────

class ItemMapper:
    """Turns CatalogItems into MappedRecords."""

    def __init__(
        self,
        tenant_id: str,
        default_currency: str = "USD",
        custom_fields: Iterable[str] = (),
        hook: Optional[RecordHook] = None,
    ) -> None:
        self._tenant_id = tenant_id
        self._default_currency = default_currency
        self._custom_fields = list(custom_fields)
        self._hook = hook

    def external_id_for(self, item_id: int | str) -> str:
        return build_external_id(self._tenant_id, item_id)

    def build_draft(self, item: CatalogItem) -> Dict[str, Any]:
        """Wire-shaped dict before the hook and validation run."""
        external_id = self.external_id_for(item.id)
        images = build_images(item)
        categories = build_categories(item)
        attributes = build_attributes(item)
        description = clean_description(item.description)
        metadata = build_metadata(item, self._custom_fields)

        return {
            "externalId": external_id,
            "name": item.name or "",
            "description": description,
            "price": to_price(item.price),
            "currency": item.currency or self._default_currency,
            "sku": item.sku or external_id,
            "categories": categories,
            "images": images,
            "attributes": attributes,
            "stock": item.stock_quantity,
            "status": RECORD_STATUS_PUBLISHED if item.status == PUBLISHABLE_STATUS else RECORD_STATUS_DRAFT,
            "metadata": metadata,
        }

    def map(self, item: CatalogItem) -> MappingResult:
        draft = self.build_draft(item)

        if self._hook is not None:
            draft = self._hook(draft, item)

        errors = validate_record(draft)
        if errors:
            logger.warning(f"Item {item.id} failed validation: {errors}")
            return MappingResult(item_id=item.id, errors=errors)

        try:
            record = MappedRecord.model_validate(draft)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            logger.warning(f"Item {item.id} failed validation: {errors}")
            return MappingResult(item_id=item.id, errors=errors)

        return MappingResult(item_id=item.id, record=record)
