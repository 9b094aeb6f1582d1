"""
Tests: Commercial Rules and the rules config store.

Run with:
    pytest agreement_assembly/tests/test_rules.py -v
"""

import pytest

from agreement_assembly.rules.commercial_rules import CommercialRules
from agreement_assembly.rules.rules_config import CommercialConfig, ExhibitConfig, RulesConfigStore


class FakeCollection:
    def __init__(self, docs=None):
        self.docs = list(docs or [])
        self.updates = []

    def find_one(self, query):
        for doc in self.docs:
            if all(doc.get(k) == v for k, v in query.items()):
                return doc
        return None

    def update_one(self, query, update, upsert=False):
        self.updates.append((query, update, upsert))


class FakeDb(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


def _store_with(docs):
    store = RulesConfigStore()
    store._db = FakeDb({store.settings.rules_collection: FakeCollection(docs)})
    return store


@pytest.fixture
def rules():
    return CommercialRules()


class TestDiscountValidation:
    def test_valid_discount(self, rules):
        assert rules.validate_discount(5000, 10) == []

    def test_no_discount(self, rules):
        assert [v["rule"] for v in rules.validate_discount(5000, 0)] == ["no_discount"]

    def test_exceeds_maximum(self, rules):
        assert [v["rule"] for v in rules.validate_discount(100000, 20)] == ["discount_exceeded"]

    def test_below_minimum_total(self, rules):
        rules_hit = [v["rule"] for v in rules.validate_discount(2000, 10)]
        assert "total_below_minimum" in rules_hit
        assert "discounted_total_below_minimum" in rules_hit

    def test_discounted_total_below_minimum(self, rules):
        assert [v["rule"] for v in rules.validate_discount(2600, 10)] == ["discounted_total_below_minimum"]

    def test_evaluate_applied(self, rules):
        decision = rules.evaluate_discount(5000, 10)
        assert decision.applied
        assert decision.amount == pytest.approx(500)
        assert decision.total_after == pytest.approx(4500)

    def test_evaluate_rejected_keeps_total(self, rules):
        decision = rules.evaluate_discount(2600, 10)
        assert not decision.applied
        assert decision.amount == 0
        assert decision.total_after == 2600
        assert decision.violations


class TestRateFallbacks:
    @pytest.mark.parametrize("plan,rate", [("Basic", 1.0), ("standard", 1.5), ("ADVANCED", 1.8), ("", 1.5)])
    def test_plan_defaults(self, rules, plan, rate):
        assert rules.per_gb_fallback(plan, None) == (pytest.approx(rate), "plan_default")

    def test_tier_rate_wins(self, rules):
        assert rules.per_gb_fallback("Advanced", 2.0) == (2.0, "tier")

    @pytest.mark.parametrize("instance_type,cost", [
        ("Small", 500), ("Large", 2000), ("extra large", 3500), ("Mixed", 1000), ("", 1000),
    ])
    def test_instance_type_cost(self, rules, instance_type, cost):
        assert rules.instance_type_cost(instance_type) == cost


class TestRulesConfigStore:
    def test_defaults_in_mock_mode(self):
        store = RulesConfigStore()
        assert store.get_commercial_config() == CommercialConfig()
        assert store.get_exhibit_config().group_heading_fill == "D9E1F2"

    def test_loaded_from_database(self):
        store = _store_with([
            {"rule_type": "commercial", "config": {"maximum_discount_percent": 20}},
            {"rule_type": "exhibits", "config": {"category_order": ["content", "messaging"]}},
        ])
        assert store.get_commercial_config().maximum_discount_percent == 20
        assert store.get_commercial_config().minimum_discounted_total == 2500
        assert store.get_exhibit_config().category_order == ["content", "messaging"]
        assert CommercialRules(store).validate_discount(10000, 20) == []

    def test_config_cached(self):
        store = _store_with([{"rule_type": "commercial", "config": {"maximum_discount_percent": 12}}])
        first = store.get_commercial_config()
        store._db[store.settings.rules_collection].docs.clear()
        assert store.get_commercial_config() is first

    def test_update_config_invalidates_cache(self):
        store = _store_with([])
        store.get_exhibit_config()
        assert store.update_config("exhibits", {"group_heading_fill": "FFFFFF"})
        assert "exhibits" not in store._cache
        query, update, upsert = store._db[store.settings.rules_collection].updates[0]
        assert query == {"rule_type": "exhibits"}
        assert upsert is True

    def test_update_without_database(self):
        assert RulesConfigStore().update_config("exhibits", {}) is False

    def test_exhibit_config_defaults(self):
        config = ExhibitConfig()
        assert config.group_titles["Not Included"] == "Exhibit 2 - NOT INCLUDED IN MIGRATION FEATURES"
        assert config.critical_tokens == ["company_name", "client_name", "total_price"]
