"""Rules — commercial gating and configuration store."""

from agreement_assembly.rules.commercial_rules import CommercialRules, DiscountDecision
from agreement_assembly.rules.rules_config import CommercialConfig, ExhibitConfig, RulesConfigStore

__all__ = [
    "CommercialRules",
    "DiscountDecision",
    "CommercialConfig",
    "ExhibitConfig",
    "RulesConfigStore",
]
