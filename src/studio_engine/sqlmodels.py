"""SQLAlchemy models for studio data and setup-progress storage.

Catalog services store only their raw cost inputs; public prices are
computed on read. Quote items are the exception and keep frozen prices.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Studio(Base):
    """A tenant studio with its identity and contact fields."""

    __tablename__ = "studios"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    slogan: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SocialLink(Base):
    __tablename__ = "social_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(100), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class PricingConfiguration(Base):
    """Pricing rules, in percentages. Updates supersede rows instead of deleting them."""

    __tablename__ = "pricing_configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False)
    utilidad_servicio: Mapped[float] = mapped_column(Float, nullable=False)
    utilidad_producto: Mapped[float] = mapped_column(Float, nullable=False)
    comision_venta: Mapped[float] = mapped_column(Float, nullable=False)
    sobreprecio: Mapped[float] = mapped_column(Float, nullable=False)
    descuento_maximo: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_pricing_studio_status", "studio_id", "status", "updated_at"),
    )


class CommercialTerm(Base):
    __tablename__ = "commercial_terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    discount_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    advance_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class CatalogService(Base):
    """A catalog line item. Price is never stored here."""

    __tablename__ = "catalog_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    overhead: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    profit_type: Mapped[str] = mapped_column(String(20), nullable=False, default="service")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class StudioItem(Base):
    """Simple per-studio records (business hours, payment methods, packages, team members)."""

    __tablename__ = "studio_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (
        Index("ix_studio_items_kind", "studio_id", "kind"),
    )


class SetupStatusRecord(Base):
    """One row per studio: the latest overall setup progress."""

    __tablename__ = "studio_setup_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), unique=True, nullable=False)
    overall_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_fully_configured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_validated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SectionProgressRecord(Base):
    """Per-section progress. Replaced wholesale on every validation run."""

    __tablename__ = "setup_section_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    setup_status_id: Mapped[int] = mapped_column(ForeignKey("studio_setup_status.id"), nullable=False, index=True)
    section_id: Mapped[str] = mapped_column(String(100), nullable=False)
    section_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_fields: Mapped[list] = mapped_column(JSON, default=list)
    missing_fields: Mapped[list] = mapped_column(JSON, default=list)
    errors: Mapped[list] = mapped_column(JSON, default=list)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SetupProgressLog(Base):
    __tablename__ = "setup_progress_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(String(64), nullable=False)
    section_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="system")
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_setup_log_studio_created", "studio_id", "created_at"),
    )


class Quote(Base):
    """A quote with the pricing configuration frozen at creation time."""

    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    studio_id: Mapped[str] = mapped_column(ForeignKey("studios.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    total_profit: Mapped[float] = mapped_column(Float, nullable=False)
    total_price: Mapped[float] = mapped_column(Float, nullable=False)
    pricing_config: Mapped[dict] = mapped_column(JSON, nullable=False)
    safety_factor: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cost: Mapped[float] = mapped_column(Float, nullable=False)
    overhead: Mapped[float] = mapped_column(Float, nullable=False)
    profit_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_profit: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    line_total: Mapped[float] = mapped_column(Float, nullable=False)
