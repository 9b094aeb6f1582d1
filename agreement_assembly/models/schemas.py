"""
Data schemas for the agreement assembly engine.

Configuration and breakdown objects are owned by the calling session and are
passed by value; the engine never mutates them. Exhibit records are read-only
snapshots of the catalog fetched per request.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agreement_assembly.engine.exhibit_detect import infer_include_type
from agreement_assembly.utils.formatting import to_number

from .enums import Category, FallbackLevel, IncludeType, MigrationKind


def _lenient_number(value: Any) -> float:
    return to_number(value)


def _lenient_int(value: Any) -> int:
    return int(to_number(value))


# ── Pricing configuration ────────────────────────────────


class SegmentConfig(BaseModel):
    """One sub-migration of an order (a single combination within a category)."""
    category: Category = Category.CONTENT
    exhibit_id: str = ""
    combination_name: str = ""  # "Slack to Teams" or "slack-to-teams"
    number_of_users: int = 0
    number_of_instances: int = 0
    instance_type: str = ""
    duration_months: float = 0.0
    data_size_gb: float = 0.0
    message_count: int = 0

    @field_validator("number_of_users", "number_of_instances", "message_count", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> int:
        return _lenient_int(value)

    @field_validator("duration_months", "data_size_gb", mode="before")
    @classmethod
    def _coerce_float(cls, value: Any) -> float:
        return _lenient_number(value)

    @field_validator("instance_type", "exhibit_id", "combination_name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()


class SingleMigration(BaseModel):
    """A one-combination order; ``migration_type`` is its display label."""
    kind: Literal["single"] = "single"
    migration_type: str = "Messaging"
    segment: SegmentConfig = Field(default_factory=SegmentConfig)


class CompositeMigration(BaseModel):
    """A multi-combination order; segments run sequentially in the contract."""
    kind: Literal["composite"] = "composite"
    migration_type: str = "Multi combination"
    segments: list[SegmentConfig]

    @field_validator("segments")
    @classmethod
    def _at_least_one(cls, segments: list[SegmentConfig]) -> list[SegmentConfig]:
        if not segments:
            raise ValueError("a composite configuration needs at least one segment")
        return segments

    def categories(self) -> list[Category]:
        seen: list[Category] = []
        for seg in self.segments:
            if seg.category not in seen:
                seen.append(seg.category)
        return seen


PricingConfiguration = Annotated[
    Union[SingleMigration, CompositeMigration],
    Field(discriminator="kind"),
]


# ── Cost breakdown ───────────────────────────────────────


class Tier(BaseModel):
    """Pricing plan metadata. Immutable once a calculation is produced."""
    model_config = ConfigDict(frozen=True)

    name: str = "Standard"
    per_user_cost: float = 0.0
    per_gb_cost: Optional[float] = None
    managed_migration_cost: float = 0.0
    instance_base_cost: float = 0.0

    @field_validator("per_user_cost", "managed_migration_cost", "instance_base_cost", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return _lenient_number(value)

    @field_validator("per_gb_cost", mode="before")
    @classmethod
    def _coerce_optional(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        number = _lenient_number(value)
        return number if number > 0 else None


class CategoryBreakdown(BaseModel):
    user_cost: float = 0.0
    data_cost: float = 0.0
    migration_cost: float = 0.0
    instance_cost: float = 0.0
    total_cost: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return _lenient_number(value)


class CostBreakdown(BaseModel):
    """Overall figures plus optional per-category and per-combination breakdowns."""
    user_cost: float = 0.0
    data_cost: float = 0.0
    migration_cost: float = 0.0
    instance_cost: float = 0.0
    total_cost: float = 0.0
    tier: Tier = Field(default_factory=Tier)
    categories: dict[Category, CategoryBreakdown] = {}
    combinations: dict[str, CategoryBreakdown] = {}

    @field_validator("user_cost", "data_cost", "migration_cost", "instance_cost", "total_cost", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return _lenient_number(value)

    def effective_total(self) -> float:
        """Sum of category totals when present, else the overall total."""
        if self.categories:
            summed = sum(b.total_cost for b in self.categories.values())
            if summed > 0:
                return summed
        return self.total_cost

    def for_category(self, category: Category) -> CategoryBreakdown:
        return self.categories.get(category, CategoryBreakdown())


# ── Exhibits ─────────────────────────────────────────────


class ExhibitRecord(BaseModel):
    """A stored supplementary document (metadata only; bytes fetched separately)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    file_name: str = ""
    category: str = Category.CONTENT.value
    combinations: list[str] = []
    plan_type: Optional[str] = None
    include_type: Optional[IncludeType] = None
    display_order: int = 0
    is_required: bool = False
    keywords: list[str] = []

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> str:
        if isinstance(value, Category):
            return value.value
        return (str(value or "") or Category.CONTENT.value).strip().lower()

    @field_validator("plan_type", mode="before")
    @classmethod
    def _blank_plan(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("display_order", mode="before")
    @classmethod
    def _coerce_order(cls, value: Any) -> int:
        return _lenient_int(value)

    @model_validator(mode="before")
    @classmethod
    def _infer_include_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("include_type"):
            text = " ".join(
                str(data.get(key) or "") for key in ("name", "description", "file_name")
            )
            data = {**data, "include_type": infer_include_type(text)}
        return data

    @property
    def is_global(self) -> bool:
        """Tagged only with ``all``; a record that also names a combination is not global."""
        tags = [tag.strip().lower() for tag in self.combinations if tag.strip()]
        return bool(tags) and all(tag == "all" for tag in tags)

    @property
    def is_included(self) -> bool:
        return self.include_type != IncludeType.NOT_INCLUDED


# ── Client / deal metadata ───────────────────────────────


class ClientMeta(BaseModel):
    client_name: str = ""
    client_email: str = ""
    company: str = ""
    effective_date: Optional[date] = None
    quote_id: str = ""


class DealMeta(BaseModel):
    deal_id: str = ""
    deal_name: str = ""
    amount: str = ""
    stage: str = ""
    close_date: str = ""


class DiscountState(BaseModel):
    percent: float = 0.0

    @field_validator("percent", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return _lenient_number(value)


# ── Normalized figures ───────────────────────────────────


class CategoryFigures(BaseModel):
    """Derived figures for one category of a composite order."""
    category: Category
    combination_names: list[str] = []
    users: int = 0
    duration_months: float = 0.0
    data_size_gb: float = 0.0
    instances: int = 0
    instance_type: str = ""
    messages: int = 0
    user_cost: float = 0.0
    data_cost: float = 0.0
    migration_cost: float = 0.0
    instance_cost: float = 0.0
    total_cost: float = 0.0
    per_user_rate: float = 0.0


class NormalizedFigures(BaseModel):
    """Canonical flat figures derived from a configuration and its breakdown."""
    migration_kind: MigrationKind
    migration_type: str = ""
    tier_name: str = ""
    combination_names: list[str] = []
    duration_months: float = 1.0
    users: int = 0
    data_size_gb: float = 0.0
    messages: int = 0
    instances: int = 0
    instance_type: str = ""
    user_cost: float = 0.0
    data_cost: float = 0.0
    migration_cost: float = 0.0
    instance_cost: float = 0.0
    total_cost: float = 0.0
    per_user_rate: float = 0.0
    per_gb_rate: float = 0.0
    per_gb_rate_source: str = ""  # "content" | "tier" | "plan_default"
    categories: dict[Category, CategoryFigures] = {}


# ── Merge ────────────────────────────────────────────────


class MergeItem(BaseModel):
    document: bytes
    group_label: str
    exhibit_id: str = ""
    name: str = ""


class MergeManifest(BaseModel):
    """Ordered merge input; group labels only control heading insertion."""
    items: list[MergeItem] = []


class MergeOutcome(BaseModel):
    document: bytes
    merged_ids: list[str] = []
    skipped: list[str] = []
    warnings: list[str] = []


# ── Trace / request / result ─────────────────────────────


class TraceEvent(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stage: str
    action: str
    details: str = ""


class SelectionFallback(BaseModel):
    category: str
    base_key: str
    level: FallbackLevel
    exhibit_ids: list[str] = []


class AssemblyTrace(BaseModel):
    """Intermediate values of one assembly run, inspectable by tests and tooling."""
    events: list[TraceEvent] = []
    normalized: Optional[NormalizedFigures] = None
    token_map: dict[str, str] = {}
    selection_keys: list[str] = []
    fallbacks: list[SelectionFallback] = []
    duplicates_dropped: list[str] = []
    selected_ids: list[str] = []
    unresolved_tokens: list[str] = []
    skipped_exhibits: list[str] = []

    def add(self, stage: str, action: str, details: str = "") -> None:
        self.events.append(TraceEvent(stage=stage, action=action, details=details))


class AssemblyRequest(BaseModel):
    template_id: str = ""
    template_name: str = ""
    template_bytes: Optional[bytes] = None
    configuration: PricingConfiguration
    breakdown: CostBreakdown = Field(default_factory=CostBreakdown)
    client: ClientMeta = Field(default_factory=ClientMeta)
    deal: DealMeta = Field(default_factory=DealMeta)
    discount: DiscountState = Field(default_factory=DiscountState)
    selected_exhibit_ids: list[str] = []
    extra_tokens: dict[str, Any] = {}


class AssemblyResult(BaseModel):
    document: bytes
    document_hash: str = ""
    exhibit_ids: list[str] = []
    warnings: list[str] = []
    unresolved_tokens: list[str] = []
    skipped_exhibits: list[str] = []
    trace: AssemblyTrace = Field(default_factory=AssemblyTrace)
