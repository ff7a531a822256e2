"""Pricing calculation engine.

Public prices are computed on the fly from a studio's pricing configuration;
catalog line items store only cost, overhead and profit type. Quotes are the
one exception: `materialize_quote` freezes computed prices at creation time so
historical quotes stay stable when the configuration changes later.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .models import PricingConfig, PricingResult, ProfitType, QuoteLine, QuoteLineInput, QuoteSnapshot

logger = logging.getLogger(__name__)

# Extra markup compensating the margin erosion seen when the maximum discount
# (sobreprecio) and the sales commission are applied together. Tied to the
# default commission/headroom values below: review it if those change.
SAFETY_FACTOR = 0.045

DEFAULT_PRICING_CONFIG = PricingConfig(
    utilidad_servicio=30,
    utilidad_producto=40,
    comision_venta=10,
    sobreprecio=5,
)

_CENT = Decimal("0.01")


class PricingConfigError(ValueError):
    """The pricing configuration cannot produce a finite price."""


def check_safety_factor(safety_factor: float) -> float:
    """Return `safety_factor` unchanged when it is finite and non-negative."""
    if not math.isfinite(safety_factor) or safety_factor < 0:
        raise PricingConfigError(f"safety_factor must be a finite number >= 0, got {safety_factor}")
    return safety_factor


def round_currency(value: float) -> float:
    """Round half-up to cents."""
    return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def compute_pricing(
    cost: float,
    overhead: float,
    profit_type: ProfitType | str,
    config: PricingConfig,
    *,
    safety_factor: float = SAFETY_FACTOR,
) -> PricingResult:
    """Compute profit and public price for one catalog item.

    1. margin = utilidad_servicio or utilidad_producto, as a fraction
    2. profit = cost * margin
    3. subtotal = cost + overhead + profit
    4. base price = subtotal / (1 - commission), so the margin survives the commission
    5. safe price = base price * (1 + safety_factor)
    6. public price = safe price * (1 + sobreprecio)

    Profit and public price are rounded half-up to cents. The result depends
    only on the inputs, so any cache must key on the full config.
    """
    if cost < 0 or overhead < 0:
        raise ValueError(f"cost and overhead must be non-negative, got cost={cost} overhead={overhead}")
    check_safety_factor(safety_factor)

    profit_type = ProfitType(profit_type)
    if profit_type is ProfitType.SERVICE:
        margin = config.utilidad_servicio / 100
    else:
        margin = config.utilidad_producto / 100

    commission = config.comision_venta / 100
    if commission >= 1:
        raise PricingConfigError(
            f"comision_venta must be below 100%, got {config.comision_venta}%; the price would be unbounded"
        )

    base_profit = cost * margin
    subtotal = cost + overhead + base_profit
    base_price = subtotal / (1 - commission)
    safe_price = base_price * (1 + safety_factor)
    public_price = safe_price * (1 + config.sobreprecio / 100)

    return PricingResult(
        utilidad=round_currency(base_profit),
        precio_publico=round_currency(public_price),
    )


def materialize_quote(
    lines: Iterable[QuoteLineInput],
    config: PricingConfig,
    *,
    safety_factor: float = SAFETY_FACTOR,
) -> QuoteSnapshot:
    """Price every line once and freeze the result together with the config used."""
    check_safety_factor(safety_factor)
    frozen: list[QuoteLine] = []
    total_profit = 0.0
    total_price = 0.0

    for line in lines:
        result = compute_pricing(line.cost, line.overhead, line.profit_type, config, safety_factor=safety_factor)
        line_total = round_currency(result.precio_publico * line.quantity)
        frozen.append(QuoteLine(
            name=line.name,
            cost=line.cost,
            overhead=line.overhead,
            profit_type=line.profit_type,
            quantity=line.quantity,
            unit_profit=result.utilidad,
            unit_price=result.precio_publico,
            line_total=line_total,
        ))
        total_profit += result.utilidad * line.quantity
        total_price += line_total

    logger.debug("Materialized quote with %d lines", len(frozen))
    return QuoteSnapshot(
        lines=frozen,
        total_profit=round_currency(total_profit),
        total_price=round_currency(total_price),
        pricing_config=config,
        safety_factor=safety_factor,
    )


def differs_from_default(config: PricingConfig | None) -> bool:
    """True when prices computed with `config` would differ from the default ones."""
    if config is None:
        return True
    return config != DEFAULT_PRICING_CONFIG


def format_currency(amount: float, include_decimals: bool = True) -> str:
    """Format an amount as Mexican pesos, e.g. `$1,660.39`."""
    quantum = _CENT if include_decimals else Decimal("1")
    value = Decimal(repr(amount)).quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    pattern = ",.2f" if include_decimals else ",.0f"
    return f"{sign}${format(abs(value), pattern)}"
