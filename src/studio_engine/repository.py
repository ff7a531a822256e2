"""Persistence collaborator for pricing and setup validation.

Loads the nested studio snapshot the validators inspect, stores the setup
status graph, keeps pricing configuration history and freezes quotes.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .core.models import (
    AuditAction,
    AuditSource,
    CatalogSummary,
    PricingConfig,
    ProfitType,
    QuoteLineInput,
    QuoteSnapshot,
    SectionStatus,
    SetupSectionConfig,
    SetupSectionProgress,
    StudioSetupStatus,
)
from .core.pricing import (
    DEFAULT_PRICING_CONFIG,
    SAFETY_FACTOR,
    compute_pricing,
    differs_from_default,
    materialize_quote,
)
from .core.scoring import StudioNotFoundError, utcnow
from .core.sections import load_active_section_configs
from .db import StudioDatabase, get_database
from .sqlmodels import (
    CatalogService,
    CommercialTerm,
    PricingConfiguration,
    Quote,
    QuoteItem,
    SectionProgressRecord,
    SetupProgressLog,
    SetupStatusRecord,
    SocialLink,
    Studio,
    StudioItem,
)

logger = logging.getLogger(__name__)

# StudioItem.kind values and the snapshot keys they are exposed under.
ITEM_KINDS = {
    "business_hours": "business_hours",
    "payment_method": "payment_methods",
    "package": "packages",
    "team_member": "team_members",
}


def _to_pricing_config(row: PricingConfiguration) -> PricingConfig:
    return PricingConfig(
        utilidad_servicio=row.utilidad_servicio,
        utilidad_producto=row.utilidad_producto,
        comision_venta=row.comision_venta,
        sobreprecio=row.sobreprecio,
    )


class SqlStudioRepository:
    """Async SQLAlchemy implementation of the studio persistence collaborator."""

    def __init__(self, database: Optional[StudioDatabase] = None):
        self._database = database

    @property
    def database(self) -> StudioDatabase:
        return self._database or get_database()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self.database.sessions

    # ─── Snapshot ───────────────────────────────────────────────────────────

    async def load_studio_snapshot(self, studio_id: str) -> Optional[dict[str, Any]]:
        """Nested read of everything the section validators look at.

        Service prices are derived here from the active pricing configuration
        (or the default one) and never read from storage.
        """
        async with self.session_factory() as session:
            studio = await session.get(Studio, studio_id)
            if studio is None:
                return None

            pricing_row = await self._active_pricing_row(session, studio_id)
            socials = (await session.execute(
                select(SocialLink).where(SocialLink.studio_id == studio_id).order_by(SocialLink.id)
            )).scalars().all()
            terms = (await session.execute(
                select(CommercialTerm).where(CommercialTerm.studio_id == studio_id).order_by(CommercialTerm.id)
            )).scalars().all()
            services = (await session.execute(
                select(CatalogService).where(CatalogService.studio_id == studio_id).order_by(CatalogService.id)
            )).scalars().all()
            items = (await session.execute(
                select(StudioItem).where(StudioItem.studio_id == studio_id).order_by(StudioItem.id)
            )).scalars().all()

        configurations = []
        pricing_config: Optional[PricingConfig] = DEFAULT_PRICING_CONFIG
        if pricing_row is not None:
            configurations.append({
                "type": "pricing",
                "status": pricing_row.status,
                "values": {
                    "utilidad_servicio": pricing_row.utilidad_servicio,
                    "utilidad_producto": pricing_row.utilidad_producto,
                    "comision_venta": pricing_row.comision_venta,
                    "sobreprecio": pricing_row.sobreprecio,
                    "descuento_maximo": pricing_row.descuento_maximo,
                },
            })
            try:
                pricing_config = _to_pricing_config(pricing_row)
            except ValueError as exc:
                logger.warning("Studio %s has an unusable pricing configuration: %s", studio_id, exc)
                pricing_config = None

        snapshot: dict[str, Any] = {
            "id": studio.id,
            "name": studio.name,
            "slug": studio.slug,
            "logo_url": studio.logo_url,
            "slogan": studio.slogan,
            "description": studio.description,
            "email": studio.email,
            "phone": studio.phone,
            "address": studio.address,
            "website": studio.website,
            "social_links": [
                {"platform": s.platform, "url": s.url, "is_active": s.is_active} for s in socials
            ],
            "configurations": configurations,
            "commercial_terms": [
                {
                    "name": t.name,
                    "status": t.status,
                    "discount_percentage": t.discount_percentage,
                    "advance_percentage": t.advance_percentage,
                }
                for t in terms
            ],
            "services": [self._service_view(s, pricing_config) for s in services],
        }
        for key in ITEM_KINDS.values():
            snapshot[key] = []
        for item in items:
            key = ITEM_KINDS.get(item.kind)
            if key is not None and item.status == "active":
                snapshot[key].append({"label": item.label, "status": item.status})
        return snapshot

    @staticmethod
    def _service_view(row: CatalogService, config: Optional[PricingConfig]) -> dict[str, Any]:
        price = None
        profit = None
        if config is not None:
            try:
                result = compute_pricing(row.cost, row.overhead, row.profit_type, config)
                price, profit = result.precio_publico, result.utilidad
            except ValueError as exc:
                logger.warning("Could not price service %s: %s", row.id, exc)
        return {
            "id": row.id,
            "name": row.name,
            "status": row.status,
            "cost": row.cost,
            "overhead": row.overhead,
            "profit_type": row.profit_type,
            "profit": profit,
            "price": price,
        }

    async def load_active_section_configs(self) -> list[SetupSectionConfig]:
        return load_active_section_configs()

    # ─── Setup status ───────────────────────────────────────────────────────

    async def upsert_setup_status(
        self,
        studio_id: str,
        overall_progress: int,
        is_fully_configured: bool,
        validated_at: datetime,
    ) -> StudioSetupStatus:
        async with self.session_factory() as session:
            row = (await session.execute(
                select(SetupStatusRecord).where(SetupStatusRecord.studio_id == studio_id)
            )).scalar_one_or_none()
            if row:
                row.overall_progress = overall_progress
                row.is_fully_configured = is_fully_configured
                row.last_validated_at = validated_at
                row.updated_at = utcnow()
            else:
                row = SetupStatusRecord(
                    studio_id=studio_id,
                    overall_progress=overall_progress,
                    is_fully_configured=is_fully_configured,
                    last_validated_at=validated_at,
                    updated_at=utcnow(),
                )
                session.add(row)
            await session.commit()

            return StudioSetupStatus(
                id=row.id,
                studio_id=row.studio_id,
                overall_progress=row.overall_progress,
                is_fully_configured=row.is_fully_configured,
                last_validated_at=row.last_validated_at,
            )

    async def replace_section_progress(self, setup_status_id: int, sections: Iterable[SetupSectionProgress]) -> None:
        """Delete every section row of the status, then bulk insert, in one transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(SectionProgressRecord).where(SectionProgressRecord.setup_status_id == setup_status_id)
                )
                session.add_all([
                    SectionProgressRecord(
                        setup_status_id=setup_status_id,
                        section_id=s.section_id,
                        section_name=s.name,
                        status=s.status.value,
                        completion_percentage=s.completion_percentage,
                        completed_fields=list(s.completed_fields),
                        missing_fields=list(s.missing_fields),
                        errors=list(s.errors),
                        completed_at=s.completed_at,
                        last_updated_at=s.last_updated_at,
                    )
                    for s in sections
                ])

    async def get_setup_status(self, studio_id: str) -> Optional[StudioSetupStatus]:
        """The last persisted status with its sections, or None if never validated."""
        async with self.session_factory() as session:
            row = (await session.execute(
                select(SetupStatusRecord).where(SetupStatusRecord.studio_id == studio_id)
            )).scalar_one_or_none()
            if row is None:
                return None
            section_rows = (await session.execute(
                select(SectionProgressRecord)
                .where(SectionProgressRecord.setup_status_id == row.id)
                .order_by(SectionProgressRecord.id)
            )).scalars().all()

        return StudioSetupStatus(
            id=row.id,
            studio_id=row.studio_id,
            overall_progress=row.overall_progress,
            is_fully_configured=row.is_fully_configured,
            last_validated_at=row.last_validated_at,
            sections=[
                SetupSectionProgress(
                    section_id=r.section_id,
                    name=r.section_name,
                    status=SectionStatus(r.status),
                    completion_percentage=r.completion_percentage,
                    completed_fields=r.completed_fields or [],
                    missing_fields=r.missing_fields or [],
                    errors=r.errors or [],
                    completed_at=r.completed_at,
                    last_updated_at=r.last_updated_at,
                )
                for r in section_rows
            ],
        )

    async def append_audit_log(
        self,
        studio_id: str,
        action: AuditAction,
        source: AuditSource = AuditSource.SYSTEM,
        section_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        async with self.session_factory() as session:
            session.add(SetupProgressLog(
                studio_id=studio_id,
                section_id=section_id,
                action=AuditAction(action).value,
                source=AuditSource(source).value,
                details=details or {},
                created_at=utcnow(),
            ))
            await session.commit()

    async def get_audit_log(self, studio_id: str, limit: int = 50) -> list[dict]:
        async with self.session_factory() as session:
            rows = (await session.execute(
                select(SetupProgressLog)
                .where(SetupProgressLog.studio_id == studio_id)
                .order_by(SetupProgressLog.created_at.desc(), SetupProgressLog.id.desc())
                .limit(limit)
            )).scalars().all()

        return [
            {
                "action": r.action,
                "source": r.source,
                "section_id": r.section_id,
                "details": r.details,
                "created_at": r.created_at.isoformat(),
            }
            for r in rows
        ]

    # ─── Pricing configuration ──────────────────────────────────────────────

    @staticmethod
    async def _active_pricing_row(session: AsyncSession, studio_id: str) -> Optional[PricingConfiguration]:
        result = await session.execute(
            select(PricingConfiguration)
            .where(PricingConfiguration.studio_id == studio_id, PricingConfiguration.status == "active")
            .order_by(PricingConfiguration.updated_at.desc(), PricingConfiguration.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def load_active_pricing_config(self, studio_id: str) -> Optional[PricingConfig]:
        async with self.session_factory() as session:
            row = await self._active_pricing_row(session, studio_id)
        return _to_pricing_config(row) if row else None

    async def update_pricing_config(
        self,
        studio_id: str,
        config: PricingConfig,
        descuento_maximo: Optional[float] = None,
    ) -> PricingConfig:
        """Supersede the active configuration and make `config` the active one."""
        async with self.session_factory() as session:
            async with session.begin():
                if await session.get(Studio, studio_id) is None:
                    raise StudioNotFoundError(f"Studio not found: {studio_id}")
                await session.execute(
                    update(PricingConfiguration)
                    .where(PricingConfiguration.studio_id == studio_id, PricingConfiguration.status == "active")
                    .values(status="superseded")
                )
                session.add(PricingConfiguration(
                    studio_id=studio_id,
                    utilidad_servicio=config.utilidad_servicio,
                    utilidad_producto=config.utilidad_producto,
                    comision_venta=config.comision_venta,
                    sobreprecio=config.sobreprecio,
                    descuento_maximo=descuento_maximo,
                    status="active",
                    updated_at=utcnow(),
                ))
        logger.info("Pricing configuration updated for studio %s", studio_id)
        return config

    async def summarize_catalog(self, studio_id: str) -> CatalogSummary:
        """Count catalog items by profit type and flag whether prices differ from the defaults."""
        async with self.session_factory() as session:
            profit_types = (await session.execute(
                select(CatalogService.profit_type).where(CatalogService.studio_id == studio_id)
            )).scalars().all()
            row = await self._active_pricing_row(session, studio_id)

        counts = Counter(profit_types)
        total = len(profit_types)
        config = _to_pricing_config(row) if row else None
        return CatalogSummary(
            total_services=total,
            services=counts.get(ProfitType.SERVICE.value, 0),
            products=counts.get(ProfitType.PRODUCT.value, 0),
            requires_review=total > 0 and differs_from_default(config),
        )

    async def price_catalog(self, studio_id: str, safety_factor: float = SAFETY_FACTOR) -> list[dict]:
        """Computed view of the catalog with current prices."""
        async with self.session_factory() as session:
            if await session.get(Studio, studio_id) is None:
                raise StudioNotFoundError(f"Studio not found: {studio_id}")
            row = await self._active_pricing_row(session, studio_id)
            services = (await session.execute(
                select(CatalogService).where(CatalogService.studio_id == studio_id).order_by(CatalogService.id)
            )).scalars().all()

        config = _to_pricing_config(row) if row else DEFAULT_PRICING_CONFIG
        priced = []
        for s in services:
            result = compute_pricing(s.cost, s.overhead, s.profit_type, config, safety_factor=safety_factor)
            priced.append({
                "id": s.id,
                "name": s.name,
                "profit_type": s.profit_type,
                "status": s.status,
                "utilidad": result.utilidad,
                "precio_publico": result.precio_publico,
            })
        return priced

    # ─── Quotes ─────────────────────────────────────────────────────────────

    async def create_quote(
        self,
        studio_id: str,
        title: str,
        lines: Iterable[QuoteLineInput],
        safety_factor: float = SAFETY_FACTOR,
    ) -> tuple[int, QuoteSnapshot]:
        """Price the lines with the current configuration and store the frozen result."""
        config = await self.load_active_pricing_config(studio_id) or DEFAULT_PRICING_CONFIG
        snapshot = materialize_quote(lines, config, safety_factor=safety_factor)

        async with self.session_factory() as session:
            async with session.begin():
                if await session.get(Studio, studio_id) is None:
                    raise StudioNotFoundError(f"Studio not found: {studio_id}")
                quote = Quote(
                    studio_id=studio_id,
                    title=title,
                    total_profit=snapshot.total_profit,
                    total_price=snapshot.total_price,
                    pricing_config=snapshot.pricing_config.model_dump(),
                    safety_factor=snapshot.safety_factor,
                    created_at=utcnow(),
                )
                session.add(quote)
                await session.flush()
                session.add_all([
                    QuoteItem(
                        quote_id=quote.id,
                        name=line.name,
                        cost=line.cost,
                        overhead=line.overhead,
                        profit_type=line.profit_type.value,
                        quantity=line.quantity,
                        unit_profit=line.unit_profit,
                        unit_price=line.unit_price,
                        line_total=line.line_total,
                    )
                    for line in snapshot.lines
                ])
                quote_id = quote.id

        logger.info("Created quote %d for studio %s (total %.2f)", quote_id, studio_id, snapshot.total_price)
        return quote_id, snapshot

    async def get_quote(self, quote_id: int) -> Optional[dict]:
        """Read a quote back exactly as it was frozen."""
        async with self.session_factory() as session:
            quote = await session.get(Quote, quote_id)
            if quote is None:
                return None
            items = (await session.execute(
                select(QuoteItem).where(QuoteItem.quote_id == quote_id).order_by(QuoteItem.id)
            )).scalars().all()

        return {
            "id": quote.id,
            "studio_id": quote.studio_id,
            "title": quote.title,
            "total_profit": quote.total_profit,
            "total_price": quote.total_price,
            "pricing_config": quote.pricing_config,
            "safety_factor": quote.safety_factor,
            "created_at": quote.created_at.isoformat(),
            "items": [
                {
                    "name": i.name,
                    "profit_type": i.profit_type,
                    "quantity": i.quantity,
                    "unit_profit": i.unit_profit,
                    "unit_price": i.unit_price,
                    "line_total": i.line_total,
                }
                for i in items
            ],
        }
