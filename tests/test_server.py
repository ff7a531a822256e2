# Tests for the MCP tool functions, called directly with the repository
# swapped for one over a temporary database.

from __future__ import annotations

import pytest

from studio_engine import server
from studio_engine.core.pricing import PricingConfigError
from studio_engine.core.scoring import SetupCompletenessAggregator
from tests.conftest import seed_studio


@pytest.fixture
def tools(repository, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("PRICING_SAFETY_FACTOR", raising=False)
    monkeypatch.setattr(server, "repository", repository)
    monkeypatch.setattr(server, "aggregator", SetupCompletenessAggregator(repository))
    return server


@pytest.mark.asyncio
async def test_compute_pricing_with_default_rules(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PRICING_SAFETY_FACTOR", raising=False)

    result = await server.studio_compute_pricing(cost=1000)

    assert result["pricing_config"]["sobreprecio"] == 5
    assert result["summary"].startswith("Public price $")


@pytest.mark.asyncio
async def test_safety_factor_is_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRICING_SAFETY_FACTOR", "0")
    with_env = await server.studio_compute_pricing(cost=1000)
    monkeypatch.delenv("PRICING_SAFETY_FACTOR")
    without_env = await server.studio_compute_pricing(cost=1000)

    assert with_env["precio_publico"] < without_env["precio_publico"]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["-0.5", "nan", "inf", "four percent"])
async def test_invalid_safety_factor_in_environment_fails(raw: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRICING_SAFETY_FACTOR", raw)

    with pytest.raises(PricingConfigError):
        await server.studio_compute_pricing(cost=1000)


@pytest.mark.asyncio
async def test_invalid_safety_factor_never_reaches_a_quote(database, tools, monkeypatch: pytest.MonkeyPatch) -> None:
    await seed_studio(database.sessions)
    monkeypatch.setenv("PRICING_SAFETY_FACTOR", "nan")

    with pytest.raises(PricingConfigError):
        await tools.studio_create_quote("studio-1", "Wedding", [{"name": "Coverage", "cost": 1000}])

    monkeypatch.delenv("PRICING_SAFETY_FACTOR")
    with pytest.raises(ValueError, match="Quote not found"):
        await tools.studio_get_quote(1)


@pytest.mark.asyncio
async def test_tools_against_a_seeded_studio(database, tools) -> None:
    await seed_studio(database.sessions)

    priced = await tools.studio_compute_pricing(cost=1000, studio_id="studio-1")
    never_run = await tools.studio_setup_status("studio-1")
    run = await tools.studio_run_setup_validation("studio-1")
    stored = await tools.studio_setup_status("studio-1")
    log = await tools.studio_setup_log("studio-1")
    quote = await tools.studio_create_quote(
        "studio-1", "Wedding", [{"name": "Coverage", "cost": 1000, "quantity": 2}]
    )
    fetched = await tools.studio_get_quote(quote["quote_id"])
    updated = await tools.studio_update_pricing("studio-1", 25, 35, 5, 0, descuento_maximo=5)
    catalog = await tools.studio_catalog_prices("studio-1")

    assert priced["precio_publico"] == 1660.39
    assert never_run["setup_status"] is None
    assert run["setup_status"]["overall_progress"] == 91
    assert "Remaining:" in run["summary"]
    assert stored["setup_status"]["overall_progress"] == 91
    assert log["count"] == 1
    assert log["entries"][0]["source"] == "manual"
    assert quote["quote"]["total_price"] == 3320.78
    assert fetched["total_price"] == 3320.78
    assert updated["catalog"]["requires_review"] is True
    assert catalog["count"] == 5
    assert catalog["items"][0]["precio_publico"] < 1660.39


@pytest.mark.asyncio
async def test_unknown_quote_is_an_error(tools) -> None:
    with pytest.raises(ValueError, match="Quote not found"):
        await tools.studio_get_quote(404)
