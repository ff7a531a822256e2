"""Studio Engine MCP Server.

FastMCP server exposing the pricing engine and setup-completeness scoring.
Run: studio-engine-mcp
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from .core.models import AuditSource, PricingConfig, QuoteLineInput
from .core.pricing import (
    DEFAULT_PRICING_CONFIG,
    SAFETY_FACTOR,
    PricingConfigError,
    check_safety_factor,
    compute_pricing,
    format_currency,
)
from .core.scoring import SetupCompletenessAggregator
from .db import close_db, init_db
from .repository import SqlStudioRepository

logger = logging.getLogger(__name__)

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False)
WRITES = ToolAnnotations(readOnlyHint=False, destructiveHint=False, idempotentHint=False, openWorldHint=False)

repository = SqlStudioRepository()
aggregator = SetupCompletenessAggregator(repository)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Initialize the database for the lifetime of the server."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info("Pricing safety factor: %s", _safety_factor())
    await init_db()
    try:
        yield
    finally:
        await close_db()


mcp = FastMCP(
    "Studio Engine",
    instructions="Compute public prices from a studio's pricing rules and score how complete a studio's setup is.",
    lifespan=lifespan,
)


def _safety_factor() -> float:
    """PRICING_SAFETY_FACTOR from the environment, or the built-in default."""
    raw = os.environ.get("PRICING_SAFETY_FACTOR", "")
    if not raw:
        return SAFETY_FACTOR
    try:
        value = float(raw)
    except ValueError:
        raise PricingConfigError(f"PRICING_SAFETY_FACTOR is not a number: {raw!r}") from None
    return check_safety_factor(value)


# ─── Pricing ─────────────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def studio_compute_pricing(
    cost: float,
    overhead: float = 0.0,
    profit_type: str = "service",
    studio_id: str = "",
) -> dict:
    """Profit and public price for one item, using the studio's active pricing rules.

    Args:
        cost: Raw cost of the item.
        overhead: Sum of fixed expenses attributed to the item. Default 0.
        profit_type: 'service' or 'product'. Default 'service'.
        studio_id: Studio whose rules apply. Leave empty for the default rules.
    """
    config = None
    if studio_id:
        config = await repository.load_active_pricing_config(studio_id)
    config = config or DEFAULT_PRICING_CONFIG

    result = compute_pricing(cost, overhead, profit_type, config, safety_factor=_safety_factor())
    return {
        "utilidad": result.utilidad,
        "precio_publico": result.precio_publico,
        "pricing_config": config.model_dump(),
        "summary": f"Public price {format_currency(result.precio_publico)} with profit {format_currency(result.utilidad)}",
    }


@mcp.tool(annotations=WRITES)
async def studio_update_pricing(
    studio_id: str,
    utilidad_servicio: float,
    utilidad_producto: float,
    comision_venta: float,
    sobreprecio: float,
    descuento_maximo: Optional[float] = None,
) -> dict:
    """Replace the studio's active pricing rules. The previous rules are kept as history.

    Args:
        studio_id: Studio to update.
        utilidad_servicio: Service profit margin, percent.
        utilidad_producto: Product profit margin, percent.
        comision_venta: Sales commission, percent.
        sobreprecio: Discount headroom, percent.
        descuento_maximo: Maximum discount salespeople may grant, percent.
    """
    config = PricingConfig(
        utilidad_servicio=utilidad_servicio,
        utilidad_producto=utilidad_producto,
        comision_venta=comision_venta,
        sobreprecio=sobreprecio,
    )
    await repository.update_pricing_config(studio_id, config, descuento_maximo=descuento_maximo)
    summary = await repository.summarize_catalog(studio_id)
    return {
        "pricing_config": config.model_dump(),
        "catalog": summary.model_dump(),
        "summary": (
            f"Pricing updated. {summary.total_services} catalog item(s) will show new prices."
            if summary.requires_review else "Pricing updated."
        ),
    }


@mcp.tool(annotations=READ_ONLY)
async def studio_catalog_prices(studio_id: str) -> dict:
    """Current public prices for every catalog item, computed on the fly.

    Args:
        studio_id: Studio whose catalog to price.
    """
    items = await repository.price_catalog(studio_id, safety_factor=_safety_factor())
    return {
        "studio_id": studio_id,
        "items": items,
        "count": len(items),
        "summary": f"{len(items)} catalog item(s) priced with the active rules.",
    }


@mcp.tool(annotations=WRITES)
async def studio_create_quote(studio_id: str, title: str, lines: list[dict]) -> dict:
    """Create a quote whose prices are frozen now and never recomputed.

    Args:
        studio_id: Studio issuing the quote.
        title: Quote title.
        lines: Items, each with name, cost, and optional overhead, profit_type and quantity.
    """
    parsed = [QuoteLineInput.model_validate(line) for line in lines]
    quote_id, snapshot = await repository.create_quote(studio_id, title, parsed, safety_factor=_safety_factor())
    return {
        "quote_id": quote_id,
        "quote": snapshot.model_dump(mode="json"),
        "summary": f"Quote {quote_id} total {format_currency(snapshot.total_price)}",
    }


@mcp.tool(annotations=READ_ONLY)
async def studio_get_quote(quote_id: int) -> dict:
    """Read a quote exactly as it was frozen.

    Args:
        quote_id: Quote identifier.
    """
    quote = await repository.get_quote(quote_id)
    if quote is None:
        raise ValueError(f"Quote not found: {quote_id}")
    return quote


# ─── Setup completeness ──────────────────────────────────────────────────────


@mcp.tool(annotations=WRITES)
async def studio_run_setup_validation(studio_id: str, source: str = "manual") -> dict:
    """Re-score every setup section of a studio and store the result.

    Args:
        studio_id: Studio to validate.
        source: Who triggered the run: 'manual', 'ai' or 'system'. Default 'manual'.
    """
    status = await aggregator.run(studio_id, source=AuditSource(source))
    pending = [s.name for s in status.sections if s.status.value != "completed"]
    return {
        "setup_status": status.model_dump(mode="json"),
        "summary": f"Setup {status.overall_progress}% complete."
        + (f" Remaining: {', '.join(pending)}." if pending else " All sections complete."),
    }


@mcp.tool(annotations=READ_ONLY)
async def studio_setup_status(studio_id: str) -> dict:
    """Last stored setup status of a studio, without re-validating.

    Args:
        studio_id: Studio to look up.
    """
    status = await repository.get_setup_status(studio_id)
    if status is None:
        return {"setup_status": None, "summary": "Studio has not been validated yet."}
    return {
        "setup_status": status.model_dump(mode="json"),
        "summary": f"Setup {status.overall_progress}% complete as of {status.last_validated_at.isoformat()}.",
    }


@mcp.tool(annotations=READ_ONLY)
async def studio_setup_log(studio_id: str, limit: int = 20) -> dict:
    """Recent setup validation runs for a studio.

    Args:
        studio_id: Studio to look up.
        limit: Maximum number of entries. Default 20.
    """
    entries = await repository.get_audit_log(studio_id, limit=limit)
    return {"studio_id": studio_id, "entries": entries, "count": len(entries)}


def main():
    """Entry point for the CLI command."""
    mcp.run()


if __name__ == "__main__":
    main()
