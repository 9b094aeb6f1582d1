"""
Rules Config Store — loads/saves business rule configurations from MongoDB.

Company-level setting: rules are configured once by admin and cached.
Falls back to sensible defaults if MongoDB is empty or unreachable.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from agreement_assembly.config import get_settings

logger = logging.getLogger(__name__)


# ── Config models ────────────────────────────────────────

class CommercialConfig(BaseModel):
    """Discount gating and rate fallbacks."""
    minimum_discounted_total: float = 2500.0
    maximum_discount_percent: float = 15.0
    per_gb_plan_defaults: dict[str, float] = {
        "basic": 1.00,
        "standard": 1.50,
        "advanced": 1.80,
    }
    default_per_gb_rate: float = 1.50
    instance_type_monthly_costs: dict[str, float] = {
        "small": 500.0,
        "standard": 1000.0,
        "large": 2000.0,
        "extra large": 3500.0,
    }


class ExhibitConfig(BaseModel):
    """Exhibit ordering, grouping and critical template tokens."""
    category_order: list[str] = ["messaging", "content", "email"]
    group_titles: dict[str, str] = {
        "Included": "Exhibit 1 - INCLUDED IN MIGRATION",
        "Not Included": "Exhibit 2 - NOT INCLUDED IN MIGRATION FEATURES",
    }
    group_heading_fill: str = "D9E1F2"
    critical_tokens: list[str] = ["company_name", "client_name", "total_price"]


# ── Store class ──────────────────────────────────────────

class RulesConfigStore:
    """
    Loads rule configs from MongoDB. Falls back to defaults in mock mode,
    on first run, or when the database is unreachable.
    Cached after first load for the lifetime of the store.
    """

    def __init__(self):
        self.settings = get_settings()
        self._db = None
        self._cache: dict[str, BaseModel] = {}

    def _get_db(self):
        if self._db is not None or self.settings.mock_mode:
            return self._db
        try:
            from pymongo import MongoClient
            client = MongoClient(self.settings.mongodb_uri, serverSelectionTimeoutMS=2000)
            self._db = client[self.settings.mongodb_database]
        except Exception as e:
            logger.warning(f"MongoDB not available, using default rules: {e}")
            self._db = None
        return self._db

    def _load_config(self, rule_type: str, model_cls: type[BaseModel]) -> BaseModel:
        """Load from MongoDB or return defaults."""
        if rule_type in self._cache:
            return self._cache[rule_type]

        db = self._get_db()
        if db is not None:
            try:
                doc = db[self.settings.rules_collection].find_one({"rule_type": rule_type})
                if doc and "config" in doc:
                    config = model_cls(**doc["config"])
                    self._cache[rule_type] = config
                    return config
            except Exception as e:
                logger.warning(f"Failed loading {rule_type} rules from MongoDB: {e}")

        config = model_cls()
        self._cache[rule_type] = config
        return config

    def get_commercial_config(self) -> CommercialConfig:
        return self._load_config("commercial", CommercialConfig)  # type: ignore[return-value]

    def get_exhibit_config(self) -> ExhibitConfig:
        return self._load_config("exhibits", ExhibitConfig)  # type: ignore[return-value]

    def update_config(self, rule_type: str, config_dict: dict[str, Any]) -> bool:
        """Admin: save/update a rule config in MongoDB."""
        db = self._get_db()
        if db is None:
            logger.error("Cannot update rules config — MongoDB not available")
            return False

        db[self.settings.rules_collection].update_one(
            {"rule_type": rule_type},
            {"$set": {"rule_type": rule_type, "config": config_dict}},
            upsert=True,
        )
        self._cache.pop(rule_type, None)
        logger.info(f"Updated {rule_type} rules config in MongoDB")
        return True
