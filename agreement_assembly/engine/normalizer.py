"""
Configuration Normalizer — flattens a single or composite pricing configuration
into the derived figures consumed by the token resolver.

Composite orders run their segments sequentially, so durations add up, while
the headline per-user rate is the highest of the per-category rates.
"""

from __future__ import annotations

import logging
from typing import Optional

from agreement_assembly.models.enums import Category, MigrationKind
from agreement_assembly.models.schemas import (
    CategoryBreakdown,
    CategoryFigures,
    CompositeMigration,
    CostBreakdown,
    NormalizedFigures,
    SegmentConfig,
    SingleMigration,
)
from agreement_assembly.rules.commercial_rules import CommercialRules

logger = logging.getLogger(__name__)

MIXED_INSTANCE_TYPE = "Mixed"


def _rate(cost: float, *units: float) -> float:
    denominator = 1.0
    for unit in units:
        denominator *= unit
    if denominator <= 0:
        return 0.0
    return cost / denominator


def _unique_names(segments: list[SegmentConfig]) -> list[str]:
    names: list[str] = []
    for seg in segments:
        if seg.combination_name and seg.combination_name not in names:
            names.append(seg.combination_name)
    return names


def _instance_type(segments: list[SegmentConfig]) -> str:
    types = {
        seg.instance_type.strip()
        for seg in segments
        if seg.instance_type.strip() and seg.number_of_instances > 0
    }
    if not types:
        types = {seg.instance_type.strip() for seg in segments if seg.instance_type.strip()}
    if len(types) == 1:
        return types.pop()
    if len(types) > 1:
        return MIXED_INSTANCE_TYPE
    return ""


def _category_figures(
    category: Category,
    segments: list[SegmentConfig],
    costs: CategoryBreakdown,
) -> CategoryFigures:
    users = sum(seg.number_of_users for seg in segments)
    duration = sum(seg.duration_months for seg in segments)
    return CategoryFigures(
        category=category,
        combination_names=_unique_names(segments),
        users=users,
        duration_months=duration,
        data_size_gb=sum(seg.data_size_gb for seg in segments),
        instances=sum(seg.number_of_instances for seg in segments),
        instance_type=_instance_type(segments),
        messages=sum(seg.message_count for seg in segments),
        user_cost=costs.user_cost,
        data_cost=costs.data_cost,
        migration_cost=costs.migration_cost,
        instance_cost=costs.instance_cost,
        total_cost=costs.total_cost,
        per_user_rate=_rate(costs.user_cost, users, duration),
    )


def _overall_as_category(breakdown: CostBreakdown) -> CategoryBreakdown:
    return CategoryBreakdown(
        user_cost=breakdown.user_cost,
        data_cost=breakdown.data_cost,
        migration_cost=breakdown.migration_cost,
        instance_cost=breakdown.instance_cost,
        total_cost=breakdown.total_cost,
    )


class ConfigurationNormalizer:
    """Derives flat figures; never raises for missing or non-numeric input."""

    def __init__(self, rules: Optional[CommercialRules] = None):
        self.rules = rules or CommercialRules()

    def normalize(
        self,
        config: SingleMigration | CompositeMigration,
        breakdown: CostBreakdown,
    ) -> NormalizedFigures:
        match config:
            case SingleMigration():
                figures = self._normalize_single(config, breakdown)
            case CompositeMigration():
                figures = self._normalize_composite(config, breakdown)
            case _:
                raise TypeError(f"Unsupported configuration type: {type(config).__name__}")

        rate, source = self._per_gb_rate(figures, breakdown)
        figures.per_gb_rate = rate
        figures.per_gb_rate_source = source

        logger.debug(
            f"Normalized {figures.migration_kind.value} configuration: "
            f"duration={figures.duration_months}, users={figures.users}, "
            f"per_user_rate={figures.per_user_rate:.4f}, per_gb_rate={rate:.2f} ({source})"
        )
        return figures

    # ── Single ───────────────────────────────────────────

    def _normalize_single(
        self, config: SingleMigration, breakdown: CostBreakdown
    ) -> NormalizedFigures:
        seg = config.segment
        costs = breakdown.categories.get(seg.category) or _overall_as_category(breakdown)
        category = _category_figures(seg.category, [seg], costs)

        return NormalizedFigures(
            migration_kind=MigrationKind.SINGLE,
            migration_type=config.migration_type,
            tier_name=breakdown.tier.name,
            combination_names=_unique_names([seg]),
            duration_months=max(1.0, seg.duration_months),
            users=seg.number_of_users,
            data_size_gb=seg.data_size_gb,
            messages=seg.message_count,
            instances=seg.number_of_instances,
            instance_type=seg.instance_type,
            user_cost=breakdown.user_cost,
            data_cost=breakdown.data_cost,
            migration_cost=breakdown.migration_cost,
            instance_cost=breakdown.instance_cost,
            total_cost=breakdown.effective_total(),
            per_user_rate=_rate(breakdown.user_cost, seg.number_of_users, seg.duration_months),
            categories={seg.category: category},
        )

    # ── Composite ────────────────────────────────────────

    def _normalize_composite(
        self, config: CompositeMigration, breakdown: CostBreakdown
    ) -> NormalizedFigures:
        present = config.categories()
        per_category: dict[Category, CategoryFigures] = {}
        for category in present:
            segments = [seg for seg in config.segments if seg.category == category]
            costs = breakdown.categories.get(category)
            if costs is None:
                # A one-category composite is priced by the overall figures
                costs = _overall_as_category(breakdown) if len(present) == 1 else CategoryBreakdown()
            per_category[category] = _category_figures(category, segments, costs)

        def summed(field: str) -> float:
            # Category breakdowns win over the overall figure, as in effective_total()
            if breakdown.categories:
                total = sum(getattr(fig, field) for fig in per_category.values())
                if total > 0:
                    return total
            return getattr(breakdown, field)

        per_user_rate = max((fig.per_user_rate for fig in per_category.values()), default=0.0)

        return NormalizedFigures(
            migration_kind=MigrationKind.COMPOSITE,
            migration_type=config.migration_type,
            tier_name=breakdown.tier.name,
            combination_names=_unique_names(config.segments),
            duration_months=max(1.0, sum(seg.duration_months for seg in config.segments)),
            users=sum(seg.number_of_users for seg in config.segments),
            data_size_gb=sum(seg.data_size_gb for seg in config.segments),
            messages=sum(seg.message_count for seg in config.segments),
            instances=sum(seg.number_of_instances for seg in config.segments),
            instance_type=_instance_type(config.segments),
            user_cost=summed("user_cost"),
            data_cost=summed("data_cost"),
            migration_cost=summed("migration_cost"),
            instance_cost=summed("instance_cost"),
            total_cost=breakdown.effective_total(),
            per_user_rate=per_user_rate,
            categories=per_category,
        )

    # ── Per-GB rate ──────────────────────────────────────

    def _per_gb_rate(self, figures: NormalizedFigures, breakdown: CostBreakdown) -> tuple[float, str]:
        if figures.migration_kind == MigrationKind.SINGLE:
            size, cost = figures.data_size_gb, figures.data_cost
        else:
            content = figures.categories.get(Category.CONTENT)
            size = content.data_size_gb if content else 0.0
            cost = content.data_cost if content else 0.0

        rate = _rate(cost, size) if size > 0 else 0.0
        if rate > 0:
            return rate, "content"
        return self.rules.per_gb_fallback(breakdown.tier.name, breakdown.tier.per_gb_cost)


def normalize(
    config: SingleMigration | CompositeMigration,
    breakdown: CostBreakdown,
    rules: Optional[CommercialRules] = None,
) -> NormalizedFigures:
    """Module-level shortcut for ``ConfigurationNormalizer(rules).normalize``."""
    return ConfigurationNormalizer(rules).normalize(config, breakdown)
