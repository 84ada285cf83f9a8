"""Content metadata models.

Mirrors the catalog service's content shape, plus subscription plans so a
plan upgrade can flow through the same purchase machinery.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field

from streamgate.models.purchase import AccessPeriod

if TYPE_CHECKING:
    from streamgate.models.settings import PlanDefinition


class ContentType(str, Enum):
    """Kind of purchasable content."""

    MOVIE = "movie"
    SERIES = "series"
    PLAN = "plan"


class ContentMetadata(BaseModel):
    """Pricing-relevant metadata for one piece of content."""

    content_id: str = Field(..., description="Content identifier")
    title: str = Field(default="", description="Display title")
    content_type: ContentType = Field(default=ContentType.MOVIE, description="movie, series or plan")
    view_price: Optional[Decimal] = Field(None, description="Per-view price")
    download_price: Optional[Decimal] = Field(None, description="Download price")
    price: Optional[Decimal] = Field(None, description="Generic price field")
    currency: Optional[str] = Field(None, description="ISO 4217 currency code")
    total_episodes: Optional[int] = Field(None, description="Episode count for series")
    access_period: Optional[AccessPeriod] = Field(None, description="Period a plan grants")

    @property
    def is_series(self) -> bool:
        return self.content_type == ContentType.SERIES

    @classmethod
    def from_catalog(cls, payload: dict[str, Any]) -> "ContentMetadata":
        """Build from a catalog response body (camelCase fields).

        Accepts either the bare content object or a ``{"data": {...}}`` wrapper.
        """
        data = payload["data"] if isinstance(payload.get("data"), dict) else payload
        content_id = data.get("id") or data.get("_id") or data.get("contentId")
        if content_id is None:
            raise ValueError("Catalog payload has no content id")

        raw_type = str(data.get("contentType") or "movie").lower()
        try:
            content_type = ContentType(raw_type)
        except ValueError:
            content_type = ContentType.MOVIE

        return cls(
            content_id=str(content_id),
            title=data.get("title") or "",
            content_type=content_type,
            view_price=data.get("viewPrice"),
            download_price=data.get("downloadPrice"),
            price=data.get("price"),
            currency=data.get("currency"),
            total_episodes=data.get("totalEpisodes"),
        )

    @classmethod
    def from_plan(cls, plan: "PlanDefinition") -> "ContentMetadata":
        """Treat a subscription plan as purchasable content."""
        return cls(
            content_id=plan.id,
            title=plan.name,
            content_type=ContentType.PLAN,
            view_price=plan.price,
            price=plan.price,
            currency=plan.currency,
            access_period=plan.period,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "content_id": "series-7",
                "title": "Kigali Nights",
                "content_type": "series",
                "view_price": "1000",
                "currency": "RWF",
                "total_episodes": 12,
            }
        }
