"""
Commercial Rules — discount eligibility and per-GB rate fallbacks.
Config loaded from MongoDB via RulesConfigStore.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel

from agreement_assembly.rules.rules_config import CommercialConfig, RulesConfigStore

logger = logging.getLogger(__name__)


class DiscountDecision(BaseModel):
    """Outcome of discount gating for one total."""
    applied: bool = False
    percent: float = 0.0
    amount: float = 0.0
    total_before: float = 0.0
    total_after: float = 0.0
    violations: list[dict[str, Any]] = []


class CommercialRules:
    """Pricing constraints applied while resolving agreement tokens."""

    def __init__(self, config_store: Optional[RulesConfigStore] = None):
        self._config_store = config_store or RulesConfigStore()

    @property
    def config(self) -> CommercialConfig:
        return self._config_store.get_commercial_config()

    def validate_discount(self, total_cost: float, discount_percent: float) -> list[dict[str, Any]]:
        """
        Validate a discount against the commercial constraints.
        Returns list of violations: {rule, detail, severity}.
        An empty list means the discount may be materialized.
        """
        config = self.config
        threshold = config.minimum_discounted_total
        violations: list[dict[str, Any]] = []

        # ── Discount must be a positive percentage ───────
        if discount_percent <= 0:
            violations.append({
                "rule": "no_discount",
                "detail": f"Discount {discount_percent}% is not positive",
                "severity": "info",
            })

        # ── Discount limit ───────────────────────────────
        if discount_percent > config.maximum_discount_percent:
            violations.append({
                "rule": "discount_exceeded",
                "detail": (
                    f"Discount {discount_percent}% exceeds maximum "
                    f"{config.maximum_discount_percent}%"
                ),
                "severity": "medium",
            })

        # ── Pre-discount total floor ─────────────────────
        if total_cost < threshold:
            violations.append({
                "rule": "total_below_minimum",
                "detail": f"Total ${total_cost:,.2f} is below ${threshold:,.2f}",
                "severity": "medium",
            })

        # ── Post-discount total floor ────────────────────
        discounted = total_cost * (1 - discount_percent / 100)
        if 0 < discount_percent and discounted < threshold:
            violations.append({
                "rule": "discounted_total_below_minimum",
                "detail": (
                    f"Discounted total ${discounted:,.2f} would fall below "
                    f"${threshold:,.2f}"
                ),
                "severity": "medium",
            })

        return violations

    def evaluate_discount(self, total_cost: float, discount_percent: float) -> DiscountDecision:
        """Gate a discount; when any rule fails the discount is not applied at all."""
        violations = self.validate_discount(total_cost, discount_percent)
        if violations:
            if discount_percent > 0:
                logger.info(
                    f"Discount {discount_percent}% not applied: "
                    + "; ".join(v["rule"] for v in violations)
                )
            return DiscountDecision(
                total_before=total_cost,
                total_after=total_cost,
                violations=violations,
            )

        amount = total_cost * (discount_percent / 100)
        return DiscountDecision(
            applied=True,
            percent=discount_percent,
            amount=amount,
            total_before=total_cost,
            total_after=total_cost - amount,
        )

    def per_gb_fallback(self, tier_name: str, tier_per_gb: Optional[float]) -> tuple[float, str]:
        """Tier-configured per-GB rate, else the plan-name default table."""
        if tier_per_gb is not None and tier_per_gb > 0:
            return tier_per_gb, "tier"
        config = self.config
        plan_key = (tier_name or "").strip().lower()
        rate = config.per_gb_plan_defaults.get(plan_key, config.default_per_gb_rate)
        return rate, "plan_default"

    def instance_type_cost(self, instance_type: str) -> float:
        """Monthly cost of one server of the given instance type."""
        costs = self.config.instance_type_monthly_costs
        return costs.get((instance_type or "").strip().lower(), costs.get("standard", 0.0))
