"""
Token registry — the semantic fields a template may reference, each with the
historical spellings templates use for it.

Templates in the wild spell the same placeholder many ways (``{{Company Name}}``,
``{{Company_Name}}``, ``{{companyName}}``). Every spelling listed here is
emitted verbatim in the token map, and ``canonical_key`` maps any other
spelling onto the same lookup key.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from agreement_assembly.models.enums import Category


class TokenKind(str, Enum):
    CURRENCY = "currency"
    COUNT = "count"
    DURATION = "duration"
    IDENTITY = "identity"
    TEXT = "text"
    DATE = "date"
    DISCOUNT = "discount"


class TokenField(BaseModel):
    """One semantic template field."""
    model_config = ConfigDict(frozen=True)

    name: str
    kind: TokenKind
    aliases: tuple[str, ...] = ()
    critical: bool = False
    conditional: bool = False  # may legitimately resolve to ""

    def spellings(self) -> tuple[str, ...]:
        if self.name in self.aliases:
            return self.aliases
        return (self.name, *self.aliases)


_BRACES = re.compile(r"^\{+|\}+$")
_CAMEL_1 = re.compile(r"([a-z0-9])([A-Z])")
_CAMEL_2 = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def canonical_key(raw: str) -> str:
    """
    Map any placeholder spelling to its canonical lookup key.

    >>> canonical_key("{{ Company Name }}")
    'company_name'
    >>> canonical_key("companyName")
    'company_name'
    """
    text = _BRACES.sub("", (raw or "").strip()).strip()
    text = _CAMEL_2.sub(r"\1_\2", text)
    text = _CAMEL_1.sub(r"\1_\2", text)
    text = _NON_ALNUM.sub("_", text.lower())
    return text.strip("_")


def _field(name: str, kind: TokenKind, *aliases: str, critical: bool = False,
           conditional: bool = False) -> TokenField:
    return TokenField(name=name, kind=kind, aliases=aliases, critical=critical,
                      conditional=conditional)


C, N, D, ID, T, DT, DS = (
    TokenKind.CURRENCY, TokenKind.COUNT, TokenKind.DURATION, TokenKind.IDENTITY,
    TokenKind.TEXT, TokenKind.DATE, TokenKind.DISCOUNT,
)

# ── Registry ─────────────────────────────────────────────

TOKEN_FIELDS: tuple[TokenField, ...] = (
    # Parties
    _field("company_name", ID, "Company Name", "Company_Name", "company name",
           "companyName", "Company", "company", critical=True),
    _field("client_name", ID, "clientName", "Client Name", "client", "name", critical=True),
    _field("client_email", ID, "email", "clientEmail"),

    # Users
    _field("users_count", N, "userscount", "users", "user_count", "userCount",
           "numberOfUsers", "number_of_users"),
    _field("users_cost", C, "user_cost", "userCost", "usersCost"),
    _field("per_user_cost", C, "user_rate"),
    _field("per_user_rate", C, "per_user_monthly_cost", "monthly_user_rate"),

    # Data
    _field("data_size", N, "dataSizeGB", "data_size_gb"),
    _field("data_cost", C, "price_data", "dataCost"),
    _field("per_data_cost", C, "per_gb_cost", "perGBCost", "per_gb_rate"),

    # Migration
    _field("price_migration", C, "migration_price", "migrationCost", "migration_cost"),
    _field("migration_type", T, "migration type", "migrationType", "migration"),
    _field("combination_name", T, "combination", "combinations", "combination_names"),

    # Instances
    _field("number_of_instances", N, "numberOfInstances", "instances"),
    _field("instance_users", T),
    _field("instance_type", T, "instanceType"),
    _field("instance_cost", C, "instanceCost", "instance_costs"),
    _field("instance_type_cost", C),

    # Duration / messages / plan
    _field("Duration_of_months", D, "Duration of months", "Suration_of_months",
           "duration_months", "duration", "months", "Duration"),
    _field("messages", N, "message", "message_count", "number_of_messages",
           "numberOfMessages", "messages_count"),
    _field("plan_name", T, "tier_name", "tierName", "planName", "plan"),

    # Totals
    _field("total_price", C, "total price", "totalPrice", "prices", "total",
           "price", "subtotal", "sub_total", critical=True),
    _field("final_total", C, "finalTotal", "total_after_discount", "total_price_discount"),

    # Dates
    _field("date", DT, "Date", "today"),
    _field("effective_date", DT, "Effective Date", "effectiveDate", "current_date",
           "currentDate", "generation_date"),
    _field("start_date", DT, "Start_date", "startdate", "project_start_date", "project_start"),
    _field("end_date", DT, "End_date", "enddate", "project_end_date", "project_end"),

    # Deal / documents
    _field("deal_id", T, "dealId"),
    _field("deal_name", T, "dealName"),
    _field("deal_amount", C, "dealAmount"),
    _field("deal_stage", T, "dealStage"),
    _field("deal_close_date", T, "dealCloseDate", "close_date"),
    _field("template_name", T, "templateName"),
    _field("agreement_id", T, "agreementId"),
    _field("quote_id", T, "quoteId"),

    # Discount group
    _field("discount", DS, "discount_display", conditional=True),
    _field("discount_percent", DS, "discount_percentage", "discount_percent_only", conditional=True),
    _field("discount_percent_with_parentheses", DS, conditional=True),
    _field("discount_amount", DS, "discountAmount", conditional=True),
    _field("discount_text", DS, conditional=True),
    _field("discount_line", DS, "discount_full_line", "discount_row", conditional=True),
    _field("discount_label", DS, conditional=True),
    _field("show_discount", DS, conditional=True),
)

CATEGORY_TOKEN_SUFFIXES: dict[str, TokenKind] = {
    "users": N,
    "duration": D,
    "data_size": N,
    "instances": N,
    "instance_type": T,
    "user_cost": C,
    "data_cost": C,
    "migration_cost": C,
    "instance_cost": C,
    "total_cost": C,
    "per_user_rate": C,
    "combination_name": T,
}

CATEGORY_FIELDS: tuple[TokenField, ...] = tuple(
    _field(f"{category.value}_{suffix}", kind, conditional=True)
    for category in Category
    for suffix, kind in CATEGORY_TOKEN_SUFFIXES.items()
)

ALL_FIELDS: tuple[TokenField, ...] = TOKEN_FIELDS + CATEGORY_FIELDS

_BY_NAME: dict[str, TokenField] = {f.name: f for f in ALL_FIELDS}
_BY_CANONICAL: dict[str, TokenField] = {
    canonical_key(spelling): f for f in ALL_FIELDS for spelling in f.spellings()
}


def field_named(name: str) -> TokenField:
    return _BY_NAME[name]


def lookup_field(spelling: str) -> Optional[TokenField]:
    """Registered field for any spelling of a placeholder, or None."""
    return _BY_CANONICAL.get(canonical_key(spelling))


def critical_keys(names: Optional[list[str]] = None) -> set[str]:
    """Canonical keys of every spelling of the critical fields."""
    if names is None:
        fields = [f for f in ALL_FIELDS if f.critical]
    else:
        fields = [f for f in ALL_FIELDS if f.name in names]
    return {canonical_key(s) for f in fields for s in f.spellings()}
