# Shared fixtures for the pricing and setup-scoring tests.
# The in-memory repository stands in for the SQL persistence collaborator so
# aggregator behavior can be asserted without a database; the `database`
# and `repository` fixtures give SQL tests a fresh SQLite file each.

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studio_engine.core.models import PricingConfig, StudioSetupStatus
from studio_engine.core.sections import load_active_section_configs
from studio_engine.db import StudioDatabase
from studio_engine.repository import SqlStudioRepository
from studio_engine.sqlmodels import (
    CatalogService,
    CommercialTerm,
    PricingConfiguration,
    SocialLink,
    Studio,
    StudioItem,
)

SCENARIO_CONFIG = PricingConfig(utilidad_servicio=30, utilidad_producto=40, comision_venta=10, sobreprecio=10)


class InMemoryRepository:
    """Records every persistence call made by the aggregator."""

    def __init__(self, snapshots: dict[str, Any], configs=None, fail_audit: bool = False):
        self.snapshots = snapshots
        self.configs = list(configs) if configs is not None else load_active_section_configs()
        self.fail_audit = fail_audit
        self.statuses: dict[str, StudioSetupStatus] = {}
        self.sections: dict[int, list] = {}
        self.replace_calls = 0
        self.audit_log: list[dict] = []

    async def load_studio_snapshot(self, studio_id: str) -> Optional[dict]:
        return self.snapshots.get(studio_id)

    async def load_active_section_configs(self):
        return list(self.configs)

    async def upsert_setup_status(self, studio_id, overall_progress, is_fully_configured, validated_at):
        existing = self.statuses.get(studio_id)
        status_id = existing.id if existing else len(self.statuses) + 1
        status = StudioSetupStatus(
            id=status_id,
            studio_id=studio_id,
            overall_progress=overall_progress,
            is_fully_configured=is_fully_configured,
            last_validated_at=validated_at,
        )
        self.statuses[studio_id] = status
        return status

    async def replace_section_progress(self, setup_status_id, sections) -> None:
        self.replace_calls += 1
        self.sections[setup_status_id] = list(sections)

    async def append_audit_log(self, studio_id, action, source, section_id=None, details=None) -> None:
        if self.fail_audit:
            raise RuntimeError("audit table unavailable")
        self.audit_log.append({"studio_id": studio_id, "action": action, "source": source, "details": details})


def build_full_snapshot() -> dict[str, Any]:
    return {
        "id": "studio-1",
        "name": "Estudio Luz",
        "slug": "estudio-luz",
        "logo_url": "https://cdn.estudioluz.mx/logo.png",
        "slogan": "Capturing light",
        "description": "Wedding and event photography",
        "email": "hola@estudioluz.mx",
        "phone": "5512345678",
        "address": "Av. Reforma 100, CDMX",
        "website": "https://estudioluz.mx",
        "social_links": [
            {"platform": "instagram", "url": "https://instagram.com/estudioluz", "is_active": True},
            {"platform": "facebook", "url": "https://facebook.com/estudioluz", "is_active": True},
        ],
        "configurations": [
            {
                "type": "pricing",
                "status": "active",
                "values": {
                    "utilidad_servicio": 30,
                    "utilidad_producto": 40,
                    "comision_venta": 10,
                    "sobreprecio": 10,
                    "descuento_maximo": 10,
                },
            }
        ],
        "commercial_terms": [
            {"name": "Cash", "status": "active", "discount_percentage": 10, "advance_percentage": 50},
        ],
        "services": [
            {"name": f"Service {i}", "status": "active", "price": 1000.0 + i} for i in range(5)
        ],
        "business_hours": [{"label": "Mon-Fri 9-18", "status": "active"}],
        "payment_methods": [{"label": "Transfer", "status": "active"}],
        "packages": [{"label": "Wedding basic", "status": "active"}],
        "team_members": [{"label": "Ana", "status": "active"}],
    }


@pytest.fixture
def full_snapshot() -> dict[str, Any]:
    return copy.deepcopy(build_full_snapshot())


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[StudioDatabase]:
    """A fresh SQLite file with the schema created, disposed after the test."""
    db = StudioDatabase(f"sqlite+aiosqlite:///{tmp_path / 'studio.db'}")
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture
def repository(database: StudioDatabase) -> SqlStudioRepository:
    return SqlStudioRepository(database)


async def seed_studio(
    sessions: async_sessionmaker[AsyncSession],
    studio_id: str = "studio-1",
    pricing: Optional[dict[str, float]] = None,
) -> None:
    """Insert a fully configured studio with five priced services."""
    pricing = pricing if pricing is not None else {
        "utilidad_servicio": 30,
        "utilidad_producto": 40,
        "comision_venta": 10,
        "sobreprecio": 10,
        "descuento_maximo": 10,
    }
    async with sessions() as session:
        session.add(Studio(
            id=studio_id,
            name="Estudio Luz",
            slug=f"{studio_id}-luz",
            logo_url="https://cdn.estudioluz.mx/logo.png",
            slogan="Capturing light",
            description="Wedding and event photography",
            email="hola@estudioluz.mx",
            phone="5512345678",
            address="Av. Reforma 100, CDMX",
            website="https://estudioluz.mx",
        ))
        await session.flush()
        session.add_all([
            SocialLink(studio_id=studio_id, platform="instagram", url="https://instagram.com/estudioluz"),
            SocialLink(studio_id=studio_id, platform="facebook", url="https://facebook.com/estudioluz"),
            PricingConfiguration(studio_id=studio_id, status="active", **pricing),
            CommercialTerm(studio_id=studio_id, name="Cash", discount_percentage=10, advance_percentage=50),
            StudioItem(studio_id=studio_id, kind="business_hours", label="Mon-Fri 9-18"),
            StudioItem(studio_id=studio_id, kind="payment_method", label="Transfer"),
            StudioItem(studio_id=studio_id, kind="package", label="Wedding basic"),
            StudioItem(studio_id=studio_id, kind="team_member", label="Ana"),
        ])
        session.add_all([
            CatalogService(studio_id=studio_id, name=f"Service {i}", cost=1000.0, overhead=0.0, profit_type="service")
            for i in range(4)
        ])
        session.add(CatalogService(studio_id=studio_id, name="Photo album", cost=500.0, overhead=100.0, profit_type="product"))
        await session.commit()
