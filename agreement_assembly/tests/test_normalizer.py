"""
Tests: Configuration Normalizer.

Run with:
    pytest agreement_assembly/tests/test_normalizer.py -v
"""

import pytest

from agreement_assembly.engine.normalizer import MIXED_INSTANCE_TYPE, normalize
from agreement_assembly.models.enums import Category, MigrationKind
from agreement_assembly.models.schemas import (
    CategoryBreakdown,
    CompositeMigration,
    CostBreakdown,
    SegmentConfig,
    SingleMigration,
    Tier,
)


def _composite(*segments):
    return CompositeMigration(segments=list(segments))


class TestSingleMigration:
    def test_per_user_rate_and_duration(self):
        config = SingleMigration(
            migration_type="Messaging",
            segment=SegmentConfig(category=Category.MESSAGING, number_of_users=100, duration_months=12),
        )
        breakdown = CostBreakdown(user_cost=12000, migration_cost=300, total_cost=12300)
        figures = normalize(config, breakdown)
        assert figures.migration_kind == MigrationKind.SINGLE
        assert figures.duration_months == 12
        assert figures.per_user_rate == pytest.approx(10.0)
        assert figures.total_cost == 12300

    def test_zero_users_gives_zero_rate(self):
        config = SingleMigration(segment=SegmentConfig(number_of_users=0, duration_months=6))
        figures = normalize(config, CostBreakdown(user_cost=500))
        assert figures.per_user_rate == 0.0

    def test_duration_clamped_to_one(self):
        config = SingleMigration(segment=SegmentConfig(duration_months=0))
        assert normalize(config, CostBreakdown()).duration_months == 1.0

    def test_non_numeric_input_becomes_zero(self):
        segment = SegmentConfig(number_of_users="abc", duration_months=None, data_size_gb="$1,200")
        assert segment.number_of_users == 0
        assert segment.duration_months == 0.0
        assert segment.data_size_gb == 1200.0
        figures = normalize(SingleMigration(segment=segment), CostBreakdown(user_cost="n/a"))
        assert figures.per_user_rate == 0.0

    def test_single_uses_own_data_figures_for_per_gb_rate(self):
        config = SingleMigration(
            migration_type="Content",
            segment=SegmentConfig(category=Category.CONTENT, data_size_gb=200, duration_months=3),
        )
        figures = normalize(config, CostBreakdown(data_cost=500))
        assert figures.per_gb_rate == pytest.approx(2.5)
        assert figures.per_gb_rate_source == "content"


class TestPerGbFallback:
    def test_advanced_plan_default_when_no_data(self):
        config = SingleMigration(segment=SegmentConfig(category=Category.EMAIL, data_size_gb=0))
        figures = normalize(config, CostBreakdown(tier=Tier(name="Advanced")))
        assert figures.per_gb_rate == pytest.approx(1.80)
        assert figures.per_gb_rate_source == "plan_default"

    def test_tier_rate_preferred_over_plan_default(self):
        config = SingleMigration(segment=SegmentConfig(data_size_gb=0))
        figures = normalize(config, CostBreakdown(tier=Tier(name="Advanced", per_gb_cost=2.25)))
        assert figures.per_gb_rate == pytest.approx(2.25)
        assert figures.per_gb_rate_source == "tier"

    def test_unknown_plan_uses_default_rate(self):
        config = SingleMigration(segment=SegmentConfig())
        figures = normalize(config, CostBreakdown(tier=Tier(name="Platinum")))
        assert figures.per_gb_rate == pytest.approx(1.50)

    def test_composite_uses_content_category(self):
        config = _composite(
            SegmentConfig(category=Category.MESSAGING, number_of_users=10, duration_months=2),
            SegmentConfig(category=Category.CONTENT, number_of_users=5, duration_months=4, data_size_gb=100),
        )
        breakdown = CostBreakdown(
            categories={
                Category.MESSAGING: CategoryBreakdown(user_cost=400, total_cost=400),
                Category.CONTENT: CategoryBreakdown(user_cost=200, data_cost=150, total_cost=350),
            },
            tier=Tier(name="Standard"),
        )
        figures = normalize(config, breakdown)
        assert figures.per_gb_rate == pytest.approx(1.5)
        assert figures.per_gb_rate_source == "content"


class TestCompositeMigration:
    @pytest.fixture
    def config(self):
        return _composite(
            SegmentConfig(category=Category.MESSAGING, combination_name="Slack to Teams",
                          number_of_users=10, duration_months=2, message_count=5000,
                          number_of_instances=2, instance_type="Small"),
            SegmentConfig(category=Category.CONTENT, combination_name="Google MyDrive to Google MyDrive",
                          number_of_users=5, duration_months=4, data_size_gb=300,
                          number_of_instances=1, instance_type="Large"),
        )

    @pytest.fixture
    def breakdown(self):
        return CostBreakdown(
            total_cost=99999,
            categories={
                Category.MESSAGING: CategoryBreakdown(user_cost=400, instance_cost=100, total_cost=500),
                Category.CONTENT: CategoryBreakdown(user_cost=200, data_cost=450, total_cost=650),
            },
            tier=Tier(name="Advanced"),
        )

    def test_duration_is_sum_of_segments(self, config, breakdown):
        assert normalize(config, breakdown).duration_months == 6

    def test_per_user_rate_is_max_of_categories(self, config, breakdown):
        figures = normalize(config, breakdown)
        # messaging: 400 / (10 × 2) = 20; content: 200 / (5 × 4) = 10
        assert figures.categories[Category.MESSAGING].per_user_rate == pytest.approx(20.0)
        assert figures.categories[Category.CONTENT].per_user_rate == pytest.approx(10.0)
        assert figures.per_user_rate == pytest.approx(20.0)

    def test_totals_follow_category_breakdowns(self, config, breakdown):
        figures = normalize(config, breakdown)
        assert figures.total_cost == 1150
        assert breakdown.effective_total() == 1150

    def test_cost_components_summed_across_categories(self, config):
        breakdown = CostBreakdown(
            user_cost=300,
            instance_cost=500,
            total_cost=800,
            categories={
                Category.MESSAGING: CategoryBreakdown(user_cost=300, instance_cost=500, total_cost=800),
                Category.CONTENT: CategoryBreakdown(user_cost=150, data_cost=450, instance_cost=1000,
                                                    total_cost=1600),
            },
        )
        figures = normalize(config, breakdown)
        assert figures.instance_cost == 1500
        assert figures.user_cost == 450
        assert figures.data_cost == 450
        assert figures.total_cost == 2400

    def test_cost_components_fall_back_to_overall(self, config):
        figures = normalize(config, CostBreakdown(user_cost=700, instance_cost=250, total_cost=950))
        assert figures.user_cost == 700
        assert figures.instance_cost == 250

    def test_counts_summed(self, config, breakdown):
        figures = normalize(config, breakdown)
        assert figures.users == 15
        assert figures.data_size_gb == 300
        assert figures.messages == 5000
        assert figures.instances == 3

    def test_mixed_instance_types(self, config, breakdown):
        assert normalize(config, breakdown).instance_type == MIXED_INSTANCE_TYPE

    def test_common_instance_type_kept(self, breakdown):
        config = _composite(
            SegmentConfig(category=Category.MESSAGING, number_of_instances=1, instance_type="Standard"),
            SegmentConfig(category=Category.CONTENT, number_of_instances=2, instance_type="Standard"),
        )
        assert normalize(config, breakdown).instance_type == "Standard"

    def test_combination_names_in_segment_order(self, config, breakdown):
        figures = normalize(config, breakdown)
        assert figures.combination_names == ["Slack to Teams", "Google MyDrive to Google MyDrive"]

    def test_inputs_not_mutated(self, config, breakdown):
        before = (config.model_dump(), breakdown.model_dump())
        normalize(config, breakdown)
        assert (config.model_dump(), breakdown.model_dump()) == before

    def test_total_falls_back_to_overall_without_categories(self, config):
        figures = normalize(config, CostBreakdown(total_cost=4200))
        assert figures.total_cost == 4200

    def test_empty_composite_rejected(self):
        with pytest.raises(ValueError):
            CompositeMigration(segments=[])
