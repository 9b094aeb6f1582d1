"""
Token Resolver — turns normalized figures plus client/deal metadata into the
alias-rich token map consumed by the template renderer.

Every registered spelling of every field is emitted. A final validation pass
guarantees that no value is None, "null" or "undefined"; conditional tokens
(the discount group and per-category figures) may resolve to "".
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel

from agreement_assembly.engine.tokens import (
    ALL_FIELDS,
    CATEGORY_TOKEN_SUFFIXES,
    TokenField,
    TokenKind,
    lookup_field,
)
from agreement_assembly.models.enums import Category
from agreement_assembly.models.schemas import (
    CategoryFigures,
    ClientMeta,
    DealMeta,
    DiscountState,
    NormalizedFigures,
)
from agreement_assembly.rules.commercial_rules import CommercialRules, DiscountDecision
from agreement_assembly.utils.formatting import (
    add_months,
    format_count,
    format_currency,
    format_date_long,
    format_date_numeric,
    format_date_short,
    format_quantity,
    number_to_words,
    to_number,
)
from agreement_assembly.utils.hashing import reference_number

logger = logging.getLogger(__name__)

_MISSING_MARKERS = {"null", "undefined"}

DEMO_COMPANY = "Demo Company Inc."
DEMO_CLIENT = "Demo Client"
DEMO_EMAIL = "demo@example.com"


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip().lower() in _MISSING_MARKERS


def default_for(key: str, field: Optional[TokenField] = None) -> str:
    """Fallback display value inferred from a field's kind, else from the key name."""
    lowered = key.lower()
    if field is not None:
        if field.conditional or field.kind == TokenKind.DISCOUNT:
            return ""
        if field.kind == TokenKind.CURRENCY:
            return "$0.00"
        if field.kind == TokenKind.COUNT:
            return "0"
        if field.kind == TokenKind.DURATION:
            return "1"
        if field.kind == TokenKind.IDENTITY:
            if "company" in lowered:
                return DEMO_COMPANY
            if "email" in lowered:
                return DEMO_EMAIL
            return DEMO_CLIENT
        return "N/A"

    if "discount" in lowered:
        return ""
    if "company" in lowered:
        return DEMO_COMPANY
    if "email" in lowered:
        return DEMO_EMAIL
    if any(word in lowered for word in ("cost", "price", "amount", "total", "rate")):
        return "$0.00"
    if any(word in lowered for word in ("duration", "month")):
        return "1"
    if any(word in lowered for word in ("count", "users", "size", "instances", "messages", "number")):
        return "0"
    if "name" in lowered or "client" in lowered:
        return DEMO_CLIENT
    return "N/A"


class TokenResolution(BaseModel):
    """Token map plus what the resolver had to fill in."""
    tokens: dict[str, str]
    defaulted_fields: list[str] = []
    discount: DiscountDecision = DiscountDecision()


class TokenResolver:
    """Resolves template tokens. Pure apart from reading the rules config."""

    def __init__(self, rules: Optional[CommercialRules] = None):
        self.rules = rules or CommercialRules()

    def resolve(
        self,
        figures: NormalizedFigures,
        client: ClientMeta,
        deal: DealMeta,
        discount: DiscountState,
        template_name: str = "",
        extra: Optional[dict[str, Any]] = None,
        today: Optional[date] = None,
    ) -> dict[str, str]:
        return self.resolve_detailed(
            figures, client, deal, discount, template_name, extra, today
        ).tokens

    def resolve_detailed(
        self,
        figures: NormalizedFigures,
        client: ClientMeta,
        deal: DealMeta,
        discount: DiscountState,
        template_name: str = "",
        extra: Optional[dict[str, Any]] = None,
        today: Optional[date] = None,
    ) -> TokenResolution:
        decision = self.rules.evaluate_discount(figures.total_cost, discount.percent)
        values = self._field_values(figures, client, deal, decision, template_name, today)

        tokens: dict[str, Optional[str]] = {}
        for field in ALL_FIELDS:
            for spelling in field.spellings():
                tokens[spelling] = values.get(field.name)

        overridden: set[str] = set()
        if extra:
            overridden = self._apply_extra(tokens, extra)

        defaulted: list[str] = []
        for field in ALL_FIELDS:
            if field.name not in overridden and is_missing(values.get(field.name)):
                defaulted.append(field.name)

        resolved = self._validate(tokens)
        logger.info(
            f"Resolved {len(resolved)} tokens "
            f"(discount {'applied' if decision.applied else 'not applied'}, "
            f"{len(defaulted)} defaulted)"
        )
        return TokenResolution(tokens=resolved, defaulted_fields=defaulted, discount=decision)

    # ── Field values ─────────────────────────────────────

    def _field_values(
        self,
        figures: NormalizedFigures,
        client: ClientMeta,
        deal: DealMeta,
        decision: DiscountDecision,
        template_name: str,
        today: Optional[date],
    ) -> dict[str, Optional[str]]:
        effective = client.effective_date or today or date.today()
        months = max(1, int(round(figures.duration_months)))
        quote_id = client.quote_id.strip() or None
        instance_type = figures.instance_type or "Standard"

        values: dict[str, Optional[str]] = {
            "company_name": client.company.strip() or None,
            "client_name": client.client_name.strip() or None,
            "client_email": client.client_email.strip() or None,

            "users_count": format_count(figures.users),
            "users_cost": format_currency(figures.user_cost),
            "per_user_cost": format_currency(
                figures.user_cost / figures.users if figures.users > 0 else 0
            ),
            "per_user_rate": format_currency(figures.per_user_rate),

            "data_size": format_quantity(figures.data_size_gb),
            "data_cost": format_currency(figures.data_cost),
            "per_data_cost": format_currency(figures.per_gb_rate),

            "price_migration": format_currency(figures.migration_cost),
            "migration_type": figures.migration_type or None,
            "combination_name": ", ".join(figures.combination_names) or None,

            "number_of_instances": format_count(figures.instances),
            "instance_users": number_to_words(figures.instances),
            "instance_type": instance_type,
            "instance_cost": format_currency(figures.instance_cost),
            "instance_type_cost": format_currency(self.rules.instance_type_cost(instance_type)),

            "Duration_of_months": format_quantity(figures.duration_months),
            "messages": format_count(figures.messages),
            "plan_name": figures.tier_name or None,

            # A zero total is treated as unresolved so critical checks catch it
            "total_price": format_currency(figures.total_cost) if figures.total_cost > 0 else None,
            "final_total": format_currency(decision.total_after),

            "date": format_date_short(effective),
            "effective_date": format_date_long(effective),
            "start_date": format_date_numeric(effective),
            "end_date": format_date_numeric(add_months(effective, months)),

            "deal_id": deal.deal_id or None,
            "deal_name": deal.deal_name or None,
            "deal_amount": format_currency(deal.amount) if to_number(deal.amount) else None,
            "deal_stage": deal.stage or None,
            "deal_close_date": deal.close_date or None,
            "template_name": template_name or None,
            "agreement_id": reference_number(
                "AGR",
                seed="|".join([quote_id or "", client.company, client.client_name,
                               f"{figures.total_cost:.2f}", effective.isoformat()]),
            ),
            "quote_id": quote_id,
        }
        values.update(self._discount_values(decision))
        values.update(self._category_values(figures))
        return values

    @staticmethod
    def _discount_values(decision: DiscountDecision) -> dict[str, str]:
        if not decision.applied:
            return {
                "discount": "",
                "discount_percent": "",
                "discount_percent_with_parentheses": "",
                "discount_amount": "",
                "discount_text": "",
                "discount_line": "",
                "discount_label": "",
                "show_discount": "",
            }
        pct = format_quantity(decision.percent)
        amount = format_currency(decision.amount)
        return {
            "discount": f"{pct}%",
            "discount_percent": pct,
            "discount_percent_with_parentheses": f"({pct}%)",
            "discount_amount": amount,
            "discount_text": f"Discount ({pct}%)",
            "discount_line": f"Discount ({pct}%) - {amount}",
            "discount_label": "Discount",
            "show_discount": "true",
        }

    @staticmethod
    def _category_values(figures: NormalizedFigures) -> dict[str, str]:
        values: dict[str, str] = {}
        for category in Category:
            fig: Optional[CategoryFigures] = figures.categories.get(category)
            for suffix in CATEGORY_TOKEN_SUFFIXES:
                key = f"{category.value}_{suffix}"
                values[key] = _category_display(fig, suffix) if fig else ""
        return values

    # ── Caller-supplied tokens ───────────────────────────

    @staticmethod
    def _apply_extra(tokens: dict[str, Optional[str]], extra: dict[str, Any]) -> set[str]:
        """Merge caller tokens; returns the registered fields they set to a value."""
        overridden: set[str] = set()
        for raw_key, raw_value in extra.items():
            key = str(raw_key).strip().strip("{}").strip()
            if not key:
                continue
            value = None if is_missing(raw_value) else str(raw_value)
            field = lookup_field(key)

            if value is None or not value.strip():
                # Blank caller values never override a computed value
                if key not in tokens:
                    tokens[key] = value
                continue

            tokens[key] = value
            if field is not None:
                overridden.add(field.name)
                for spelling in field.spellings():
                    tokens[spelling] = value
        return overridden

    # ── Validation pass ──────────────────────────────────

    @staticmethod
    def _validate(tokens: dict[str, Optional[str]]) -> dict[str, str]:
        resolved: dict[str, str] = {}
        for key, value in tokens.items():
            if is_missing(value):
                fallback = default_for(key, lookup_field(key))
                logger.debug(f"Token '{key}' missing, defaulting to '{fallback}'")
                resolved[key] = fallback
            else:
                resolved[key] = str(value)
        return resolved


def _category_display(fig: CategoryFigures, suffix: str) -> str:
    if suffix == "users":
        return format_count(fig.users)
    if suffix == "duration":
        return format_quantity(fig.duration_months)
    if suffix == "data_size":
        return format_quantity(fig.data_size_gb)
    if suffix == "instances":
        return format_count(fig.instances)
    if suffix == "instance_type":
        return fig.instance_type
    if suffix == "combination_name":
        return ", ".join(fig.combination_names)
    return format_currency(getattr(fig, suffix))


def resolve(
    figures: NormalizedFigures,
    client: ClientMeta,
    deal: DealMeta,
    discount: DiscountState,
    rules: Optional[CommercialRules] = None,
) -> dict[str, str]:
    """Module-level shortcut for ``TokenResolver(rules).resolve``."""
    return TokenResolver(rules).resolve(figures, client, deal, discount)
