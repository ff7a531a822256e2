"""Pydantic data models: the shared business objects.

The pricing engine, the section validators, the aggregator and the MCP
server all exchange these models. Nothing here touches the database.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfitType(str, Enum):
    """Which margin of the pricing configuration applies to a line item."""

    SERVICE = "service"
    PRODUCT = "product"


class PricingConfig(BaseModel):
    """Per-studio pricing rules, all values expressed as percentages."""

    model_config = ConfigDict(frozen=True)

    utilidad_servicio: float = Field(ge=0, lt=100, description="Profit margin for services")
    utilidad_producto: float = Field(ge=0, lt=100, description="Profit margin for products")
    comision_venta: float = Field(ge=0, lt=100, description="Sales commission backed into the price")
    sobreprecio: float = Field(ge=0, lt=100, description="Discount headroom added on top of the safe price")


class PricingResult(BaseModel):
    """Computed profit and public price. Never stored on a catalog line item."""

    utilidad: float
    precio_publico: float


class QuoteLineInput(BaseModel):
    """A catalog item to be priced into a quote."""

    name: str
    cost: float = Field(ge=0)
    overhead: float = Field(default=0.0, ge=0)
    profit_type: ProfitType = ProfitType.SERVICE
    quantity: int = Field(default=1, ge=1)


class QuoteLine(BaseModel):
    """A quote line with its price frozen at materialization time."""

    name: str
    cost: float
    overhead: float
    profit_type: ProfitType
    quantity: int
    unit_profit: float
    unit_price: float
    line_total: float


class QuoteSnapshot(BaseModel):
    """A fully materialized quote. Later config changes never alter it."""

    lines: list[QuoteLine]
    total_profit: float
    total_price: float
    pricing_config: PricingConfig
    safety_factor: float


class ValidationResult(BaseModel):
    """Output of one section validator."""

    is_valid: bool
    completion_percentage: int = Field(ge=0, le=100)
    completed_fields: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class SectionStatus(str, Enum):
    """Derived status of one setup section."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


class SetupSectionConfig(BaseModel):
    """Static catalog entry describing one configurable area of studio setup."""

    model_config = ConfigDict(frozen=True)

    section_id: str
    name: str
    description: str = ""
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = Field(default=(), description="Informational only, never enforced")
    weight: int = Field(gt=0)
    is_active: bool = True


class SetupSectionProgress(BaseModel):
    """Scored state of one section for one studio."""

    section_id: str
    name: str
    status: SectionStatus
    completion_percentage: int = Field(ge=0, le=100)
    completed_fields: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    last_updated_at: datetime


class StudioSetupStatus(BaseModel):
    """Aggregated setup completeness for one studio."""

    id: Optional[int] = None
    studio_id: str
    overall_progress: int = Field(ge=0, le=100)
    is_fully_configured: bool
    last_validated_at: datetime
    sections: list[SetupSectionProgress] = Field(default_factory=list)


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    ERROR = "error"


class AuditSource(str, Enum):
    MANUAL = "manual"
    AI = "ai"
    SYSTEM = "system"


class CatalogSummary(BaseModel):
    """How many catalog items a pricing change would re-price."""

    total_services: int
    services: int
    products: int
    requires_review: bool
