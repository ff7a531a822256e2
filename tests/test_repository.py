# Tests for the SQLite-backed repository: snapshot loading, setup-status
# persistence, pricing configuration history and frozen quotes.
# Each test gets a throwaway database file from the `database` fixture.

from __future__ import annotations

import pytest
from sqlalchemy import select

from studio_engine.core.models import PricingConfig, QuoteLineInput, SectionStatus
from studio_engine.core.pricing import compute_pricing
from studio_engine.core.scoring import SetupCompletenessAggregator, StudioNotFoundError
from studio_engine.sqlmodels import PricingConfiguration, SectionProgressRecord
from tests.conftest import SCENARIO_CONFIG, seed_studio

DEFAULT_VALUES = {
    "utilidad_servicio": 30,
    "utilidad_producto": 40,
    "comision_venta": 10,
    "sobreprecio": 5,
    "descuento_maximo": 10,
}


@pytest.mark.asyncio
async def test_snapshot_derives_service_prices(database, repository) -> None:
    await seed_studio(database.sessions)

    snapshot = await repository.load_studio_snapshot("studio-1")

    assert snapshot["slug"] == "studio-1-luz"
    assert len(snapshot["social_links"]) == 2
    assert snapshot["configurations"][0]["values"]["sobreprecio"] == 10
    assert snapshot["payment_methods"] == [{"label": "Transfer", "status": "active"}]
    assert [s["price"] for s in snapshot["services"][:4]] == [1660.39] * 4
    album = snapshot["services"][4]
    assert album["profit_type"] == "product"
    assert album["price"] == compute_pricing(500, 100, "product", SCENARIO_CONFIG).precio_publico


@pytest.mark.asyncio
async def test_missing_studio_has_no_snapshot(repository) -> None:
    assert await repository.load_studio_snapshot("ghost") is None


@pytest.mark.asyncio
async def test_validation_run_is_persisted_and_replaced(database, repository) -> None:
    await seed_studio(database.sessions)
    aggregator = SetupCompletenessAggregator(repository)

    first = await aggregator.run("studio-1")
    second = await aggregator.run("studio-1")
    stored = await repository.get_setup_status("studio-1")
    async with database.sessions() as session:
        rows = (await session.execute(select(SectionProgressRecord))).scalars().all()
    log = await repository.get_audit_log("studio-1")

    assert first.overall_progress == 91
    assert first.is_fully_configured is True
    assert second.id == first.id
    assert len(rows) == 12
    assert stored.overall_progress == 91
    assert [s.section_id for s in stored.sections] == [s.section_id for s in second.sections]
    by_id = {s.section_id: s for s in stored.sections}
    assert by_id["catalog_services"].status is SectionStatus.COMPLETED
    assert by_id["catalog_specialties"].missing_fields == ["catalog_specialties"]
    assert len(log) == 2
    assert log[0]["action"] == "completed"
    assert log[0]["details"]["overall_progress"] == 91


@pytest.mark.asyncio
async def test_setup_status_is_none_before_first_run(database, repository) -> None:
    await seed_studio(database.sessions)

    assert await repository.get_setup_status("studio-1") is None


@pytest.mark.asyncio
async def test_update_pricing_supersedes_previous_config(database, repository) -> None:
    new_config = PricingConfig(utilidad_servicio=35, utilidad_producto=45, comision_venta=8, sobreprecio=5)
    await seed_studio(database.sessions)

    await repository.update_pricing_config("studio-1", new_config, descuento_maximo=5)
    active = await repository.load_active_pricing_config("studio-1")
    async with database.sessions() as session:
        statuses = (await session.execute(
            select(PricingConfiguration.status).order_by(PricingConfiguration.id)
        )).scalars().all()

    assert active == new_config
    assert statuses == ["superseded", "active"]


@pytest.mark.asyncio
async def test_update_pricing_for_unknown_studio(repository) -> None:
    with pytest.raises(StudioNotFoundError):
        await repository.update_pricing_config("ghost", SCENARIO_CONFIG)


@pytest.mark.asyncio
async def test_quote_stays_frozen_after_pricing_change(database, repository) -> None:
    lines = [QuoteLineInput(name="Portrait session", cost=1000, quantity=2)]
    cheaper = PricingConfig(utilidad_servicio=20, utilidad_producto=30, comision_venta=5, sobreprecio=0)
    await seed_studio(database.sessions)

    quote_id, snapshot = await repository.create_quote("studio-1", "Family portraits", lines)
    before = await repository.price_catalog("studio-1")
    await repository.update_pricing_config("studio-1", cheaper)
    after = await repository.price_catalog("studio-1")
    stored = await repository.get_quote(quote_id)

    assert snapshot.total_price == 3320.78
    assert stored["total_price"] == 3320.78
    assert stored["items"][0]["unit_price"] == 1660.39
    assert stored["pricing_config"]["sobreprecio"] == 10
    assert before[0]["precio_publico"] == 1660.39
    assert after[0]["precio_publico"] < before[0]["precio_publico"]


@pytest.mark.asyncio
async def test_missing_quote_reads_as_none(repository) -> None:
    assert await repository.get_quote(404) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("pricing, requires_review", [(None, True), (DEFAULT_VALUES, False)])
async def test_catalog_summary(database, repository, pricing, requires_review: bool) -> None:
    await seed_studio(database.sessions, pricing=pricing)

    summary = await repository.summarize_catalog("studio-1")

    assert summary.total_services == 5
    assert summary.services == 4
    assert summary.products == 1
    assert summary.requires_review is requires_review


@pytest.mark.asyncio
async def test_empty_catalog_never_requires_review(repository) -> None:
    summary = await repository.summarize_catalog("studio-1")

    assert summary.total_services == 0
    assert summary.requires_review is False


@pytest.mark.asyncio
async def test_unusable_stored_commission_is_reported_not_raised(database, repository) -> None:
    await seed_studio(database.sessions, pricing=dict(DEFAULT_VALUES, comision_venta=100))

    snapshot = await repository.load_studio_snapshot("studio-1")
    status = await SetupCompletenessAggregator(repository).run("studio-1")

    assert all(s["price"] is None for s in snapshot["services"])
    by_id = {s.section_id: s for s in status.sections}
    assert by_id["business_pricing"].errors == ["Sales commission must be below 100%"]
    assert by_id["catalog_services"].status is SectionStatus.ERROR
    assert by_id["catalog_services"].completion_percentage == 25
