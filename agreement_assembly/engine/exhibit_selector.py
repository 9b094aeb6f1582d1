"""
Exhibit Selector — picks, deduplicates and orders the exhibit documents that
follow the agreement body.

Selection works on base combination keys: a purchased combination pulls in
every variant (included and not-included) of that combination for the
purchased plan. When plan metadata is incomplete the selector walks a
fallback ladder instead of dropping the combination:

    plan match → category + key ignoring plan → the literally selected IDs

Each rung taken is logged and recorded on the trace.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from agreement_assembly.engine.exhibit_detect import base_combination_key, strip_inclusion_words
from agreement_assembly.models.enums import FallbackLevel
from agreement_assembly.models.schemas import (
    AssemblyTrace,
    ExhibitRecord,
    SegmentConfig,
    SelectionFallback,
    Tier,
)
from agreement_assembly.rules.rules_config import ExhibitConfig

logger = logging.getLogger(__name__)

SelectionKey = tuple[str, str]  # (category, base combination key)


def _record_keys(exhibit: ExhibitRecord, name_fallback: bool = True) -> set[SelectionKey]:
    """Selection keys of a record; untagged records fall back to their display name."""
    tags = [t for t in exhibit.combinations if t.strip()]
    if not tags and name_fallback:
        tags = [exhibit.name]
    keys = set()
    for tag in tags:
        key = base_combination_key(tag)
        if key and key != "all":
            keys.add((exhibit.category, key))
    return keys


def _plan_matches(exhibit: ExhibitRecord, tier_name: str) -> bool:
    # Exhibits without plan metadata apply to every plan
    if not exhibit.plan_type:
        return True
    return exhibit.plan_type.strip().lower() == tier_name.strip().lower()


def _catalog_order(exhibit: ExhibitRecord) -> tuple[int, str]:
    return (exhibit.display_order, exhibit.id)


def dedup_key(exhibit: ExhibitRecord) -> str:
    include = exhibit.include_type.value if exhibit.include_type else ""
    return f"{exhibit.category}|{strip_inclusion_words(exhibit.name)}|{include}"


class ExhibitSelector:
    """Deterministic exhibit selection for one agreement."""

    def __init__(self, config: Optional[ExhibitConfig] = None):
        self.config = config or ExhibitConfig()

    def sort_key(self, exhibit: ExhibitRecord) -> tuple:
        order = self.config.category_order
        rank = order.index(exhibit.category) if exhibit.category in order else len(order)
        return (
            0 if exhibit.is_included else 1,
            rank,
            exhibit.display_order,
            exhibit.name.lower(),
            exhibit.id,
        )

    def select(
        self,
        selected_ids: Iterable[str],
        segments: Iterable[SegmentConfig],
        tier: Tier | str,
        exhibits: Iterable[ExhibitRecord],
        trace: Optional[AssemblyTrace] = None,
    ) -> list[ExhibitRecord]:
        trace = trace if trace is not None else AssemblyTrace()
        tier_name = tier.name if isinstance(tier, Tier) else str(tier or "")
        catalog = list(exhibits)
        by_id = {e.id: e for e in catalog}

        # ── Selection keys ───────────────────────────────
        keys: set[SelectionKey] = set()
        literal_ids: dict[SelectionKey, list[str]] = defaultdict(list)
        explicit_globals: list[ExhibitRecord] = []

        def add_from_record(exhibit: ExhibitRecord) -> None:
            if exhibit.is_global:
                explicit_globals.append(exhibit)
                return
            for key in _record_keys(exhibit):
                keys.add(key)
                if exhibit.id not in literal_ids[key]:
                    literal_ids[key].append(exhibit.id)

        for exhibit_id in selected_ids:
            exhibit = by_id.get(exhibit_id)
            if exhibit is None:
                logger.warning(f"Selected exhibit '{exhibit_id}' is not in the catalog")
                trace.add("select", "unknown_exhibit", exhibit_id)
                continue
            add_from_record(exhibit)

        for seg in segments:
            if seg.combination_name:
                key = base_combination_key(seg.combination_name)
                if key:
                    keys.add((seg.category.value, key))
            if seg.exhibit_id:
                if seg.exhibit_id in by_id:
                    add_from_record(by_id[seg.exhibit_id])
                else:
                    key = base_combination_key(seg.exhibit_id)
                    if key:
                        keys.add((seg.category.value, key))

        trace.selection_keys = sorted(f"{cat}|{key}" for cat, key in keys)

        # ── Candidate index ──────────────────────────────
        index: dict[SelectionKey, list[ExhibitRecord]] = defaultdict(list)
        for exhibit in catalog:
            if exhibit.is_global:
                continue
            # Only curated combination tags make a record a candidate
            for key in _record_keys(exhibit, name_fallback=False):
                index[key].append(exhibit)

        # ── Expansion with fallback ladder ───────────────
        chosen: list[ExhibitRecord] = []
        for key in sorted(keys):
            category, base = key
            candidates = sorted(index.get(key, []), key=_catalog_order)
            matched = [e for e in candidates if _plan_matches(e, tier_name)]
            if matched:
                chosen.extend(matched)
                continue

            if candidates:
                level, picked = FallbackLevel.CATEGORY_MATCH, candidates
            else:
                picked = sorted(
                    (by_id[i] for i in literal_ids.get(key, []) if i in by_id),
                    key=_catalog_order,
                )
                level = FallbackLevel.SELECTED_ID if picked else FallbackLevel.UNRESOLVED

            ids = [e.id for e in picked]
            trace.fallbacks.append(
                SelectionFallback(category=category, base_key=base, level=level, exhibit_ids=ids)
            )
            trace.add("select", f"fallback_{level.value}", f"{category}|{base} -> {ids}")
            if level == FallbackLevel.UNRESOLVED:
                logger.warning(
                    f"No exhibit found for purchased combination '{base}' ({category}), "
                    f"plan '{tier_name}'"
                )
            else:
                logger.warning(
                    f"No '{tier_name}' exhibits for '{base}' ({category}); "
                    f"using {level.value} fallback: {ids}"
                )
            chosen.extend(picked)

        # ── Global add-ons ───────────────────────────────
        for exhibit in sorted(catalog, key=_catalog_order):
            if exhibit.is_global and exhibit.is_required and (
                not exhibit.plan_type or _plan_matches(exhibit, tier_name)
            ):
                chosen.append(exhibit)
        chosen.extend(sorted(explicit_globals, key=_catalog_order))

        # ── Dedup (first seen wins) + order ──────────────
        seen: set[str] = set()
        seen_ids: set[str] = set()
        result: list[ExhibitRecord] = []
        for exhibit in chosen:
            if exhibit.id in seen_ids:
                continue
            seen_ids.add(exhibit.id)
            key = dedup_key(exhibit)
            if key in seen:
                trace.duplicates_dropped.append(exhibit.id)
                logger.info(f"Dropping duplicate exhibit {exhibit.id} ({exhibit.name})")
                continue
            seen.add(key)
            result.append(exhibit)

        result.sort(key=self.sort_key)
        trace.selected_ids = [e.id for e in result]
        trace.add("select", "selected", f"{len(result)} exhibits for plan '{tier_name}'")
        logger.info(f"Selected {len(result)} exhibits from {len(catalog)} in catalog")
        return result


def select(
    selected_ids: Iterable[str],
    segments: Iterable[SegmentConfig],
    tier: Tier | str,
    exhibits: Iterable[ExhibitRecord],
    trace: Optional[AssemblyTrace] = None,
) -> list[ExhibitRecord]:
    """Module-level shortcut for ``ExhibitSelector().select``."""
    return ExhibitSelector().select(selected_ids, segments, tier, exhibits, trace)
