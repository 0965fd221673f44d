"""Pydantic schemas for Shopify payloads and API responses.

Inbound payloads (webhook bodies, REST collection items) are validated here
before anything touches the store. The parse helpers turn JSON decoding and
validation failures into MalformedPayloadError so callers only deal with one
error type.
"""

import json
from datetime import date as date_type, datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import MalformedPayloadError


PayloadT = TypeVar("PayloadT", bound=BaseModel)


# =============================================================================
# SHOPIFY PAYLOADS
# =============================================================================
# WHAT: Typed views of the REST Admin API / webhook JSON we consume
# WHY: Shopify sends prices as strings ("19.99"); Decimal parsing rejects
#      garbage instead of coercing it to 0. Bounds match the BigInteger and
#      Numeric(18, 4) columns so out-of-range values fail validation, not the write

MAX_SHOPIFY_ID = 2**63 - 1


class ShopifyPayload(BaseModel):
    """Base for Shopify records: ignore the many fields we do not store."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(gt=0, le=MAX_SHOPIFY_ID, description="Shopify numeric id (REST API)")


class ShopifyOrderPayload(ShopifyPayload):
    """Order as delivered by orders/create webhooks and /orders.json."""

    total_price: Decimal = Field(ge=0, max_digits=18, decimal_places=4)
    currency: str = Field(min_length=1)
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _blank_created_at_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("created_at")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored columns are naive UTC, matching the rest of the schema
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)


class ShopifyVariantPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=4)


class ShopifyProductPayload(ShopifyPayload):
    title: str
    variants: List[ShopifyVariantPayload] = Field(default_factory=list)

    @property
    def price(self) -> Optional[Decimal]:
        """Representative price: the first variant's, None without variants."""
        if not self.variants:
            return None
        return self.variants[0].price


class ShopifyCustomerPayload(ShopifyPayload):
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    total_spent: Decimal = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=4)

    @field_validator("total_spent", mode="before")
    @classmethod
    def _missing_total_is_zero(cls, value: Any) -> Any:
        # Shopify omits/nulls total_spent for customers without orders
        if value is None or value == "":
            return Decimal("0")
        return value


# =============================================================================
# PARSE HELPERS
# =============================================================================

def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_record(model: Type[PayloadT], data: Any) -> PayloadT:
    """Validate one decoded JSON object against a payload model.

    Raises:
        MalformedPayloadError: when the object does not satisfy the model
    """
    external_id = data.get("id") if isinstance(data, dict) else None
    if not isinstance(data, dict):
        raise MalformedPayloadError(
            f"Expected a JSON object, got {type(data).__name__}",
            external_id=external_id,
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedPayloadError(
            f"Invalid {model.__name__}: {_summarize(exc)}",
            external_id=external_id,
            errors=exc.errors(include_url=False),
        ) from exc


def parse_json_body(raw_body: bytes) -> Any:
    """Decode a raw request body, which must already be signature-checked."""
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedPayloadError(f"Invalid JSON payload: {exc}") from exc


# =============================================================================
# API RESPONSES
# =============================================================================
# Field aliases keep the camelCase contract the dashboard already consumes.

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class SyncCountsResponse(CamelModel):
    """Per-kind counts returned by the sync trigger."""

    message: str
    products: int = 0
    customers: int = 0
    orders: int = 0
    skipped: int = Field(default=0, description="Items skipped as malformed")


class MetricsOverviewResponse(CamelModel):
    total_customers: int = Field(alias="totalCustomers")
    total_orders: int = Field(alias="totalOrders")
    total_revenue: float = Field(alias="totalRevenue")


class OrdersByDatePoint(CamelModel):
    date: date_type
    orders: int
    revenue: float


class TopCustomerResponse(CamelModel):
    id: UUID
    shopify_customer_id: int = Field(alias="shopifyCustomerId")
    email: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    total_spent: float = Field(alias="totalSpent")
