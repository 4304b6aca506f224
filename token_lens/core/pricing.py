"""
Pricing calculations and rate management.

Resolves model identifiers to per-million-token rates and computes costs.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional, Tuple

from .token_counter import TokenUsage

MTOK = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a model family."""
    family: str
    input_per_mtok: Decimal
    output_per_mtok: Decimal
    cache_write_per_mtok: Decimal
    cache_read_per_mtok: Decimal

    def __post_init__(self):
        """Validate rates are non-negative."""
        if not self.family:
            raise ValueError("family cannot be empty")
        for name in ("input_per_mtok", "output_per_mtok",
                     "cache_write_per_mtok", "cache_read_per_mtok"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")


@dataclass(frozen=True)
class PricingTable:
    """Static pricing table keyed by model family prefix."""
    prices: Dict[str, ModelPricing]

    def resolve(self, model: str) -> Tuple[Optional[ModelPricing], bool]:
        """Resolve pricing for a model id using longest-prefix matching.

        Versioned ids like "claude-sonnet-4-5-20250929" match the
        "claude-sonnet-4" family.

        Args:
            model: Model identifier

        Returns:
            (pricing, True) for a matched family, (None, False) otherwise
        """
        best: Optional[ModelPricing] = None
        for family, pricing in self.prices.items():
            if model.startswith(family) and (best is None or len(family) > len(best.family)):
                best = pricing
        return best, best is not None

    def is_known(self, model: str) -> bool:
        """True when the model id matches a family in this table."""
        return self.resolve(model)[1]

    def with_overrides(self, overrides: Mapping[str, ModelPricing]) -> "PricingTable":
        """Return a new table with families added or replaced."""
        prices = dict(self.prices)
        prices.update(overrides)
        return PricingTable(prices)


def _pricing(family: str, input_rate: str, output_rate: str,
             cache_write_rate: str, cache_read_rate: str) -> ModelPricing:
    return ModelPricing(
        family=family,
        input_per_mtok=Decimal(input_rate),
        output_per_mtok=Decimal(output_rate),
        cache_write_per_mtok=Decimal(cache_write_rate),
        cache_read_per_mtok=Decimal(cache_read_rate),
    )


# Fixed pricing table - no dynamic fetching, unknown families cost nothing
PRICING_TABLE = PricingTable({
    p.family: p for p in (
        _pricing("claude-opus-4", "15.00", "75.00", "18.75", "1.50"),
        _pricing("claude-sonnet-4", "3.00", "15.00", "3.75", "0.30"),
        _pricing("claude-haiku-4", "0.80", "4.00", "1.00", "0.08"),
        _pricing("claude-3-opus", "15.00", "75.00", "18.75", "1.50"),
        _pricing("claude-3-5-sonnet", "3.00", "15.00", "3.75", "0.30"),
        _pricing("claude-3-sonnet", "3.00", "15.00", "3.75", "0.30"),
        _pricing("claude-3-5-haiku", "0.80", "4.00", "1.00", "0.08"),
        _pricing("claude-3-haiku", "0.80", "4.00", "1.00", "0.08"),
    )
})


def calculate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate USD cost for model usage.

    Args:
        model: Model identifier
        usage: Token usage data
        table: Pricing table to resolve against

    Returns:
        Total cost in USD; exactly 0.0 for unrecognized models
    """
    pricing, found = table.resolve(model)
    if not found:
        return 0.0

    cost = (
        Decimal(usage.input_tokens) * pricing.input_per_mtok
        + Decimal(usage.output_tokens) * pricing.output_per_mtok
        + Decimal(usage.cache_creation_input_tokens) * pricing.cache_write_per_mtok
        + Decimal(usage.cache_read_input_tokens) * pricing.cache_read_per_mtok
    ) / MTOK

    return float(cost)
