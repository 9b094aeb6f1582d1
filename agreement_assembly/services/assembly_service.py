"""
Assembly Service — orchestrates one agreement assembly.

    normalize → (resolve tokens ∥ list catalog + select exhibits)
              → critical-token check → render ∥ fetch exhibits → merge

Token resolution and exhibit selection run concurrently in worker threads;
exhibit files are fetched with bounded fan-out while the template renders.
Template substitution and merge are never retried. Cancelling the
assembly cancels any pending fetches.
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from datetime import date
from typing import Optional

from agreement_assembly.config import Settings, get_settings
from agreement_assembly.engine.exhibit_selector import ExhibitSelector
from agreement_assembly.engine.merge_engine import MergeEngine
from agreement_assembly.engine.normalizer import ConfigurationNormalizer
from agreement_assembly.engine.template_renderer import make_lookup, render, scan_placeholders
from agreement_assembly.engine.token_resolver import TokenResolution, TokenResolver
from agreement_assembly.engine.tokens import canonical_key, critical_keys, lookup_field
from agreement_assembly.errors import CriticalTokenError, MissingTemplateError, UnresolvedTokenWarning
from agreement_assembly.models.enums import GroupLabel
from agreement_assembly.models.schemas import (
    AssemblyRequest,
    AssemblyResult,
    AssemblyTrace,
    CompositeMigration,
    ExhibitRecord,
    MergeItem,
    MergeManifest,
    SegmentConfig,
)
from agreement_assembly.persistence.exhibit_repository import ExhibitRepository, get_exhibit_repository
from agreement_assembly.rules.commercial_rules import CommercialRules
from agreement_assembly.rules.rules_config import RulesConfigStore
from agreement_assembly.services.exhibit_fetcher import ExhibitFetcher
from agreement_assembly.services.file_service import TemplateStore
from agreement_assembly.utils.hashing import sha256_hash

logger = logging.getLogger(__name__)


def _segments(request: AssemblyRequest) -> list[SegmentConfig]:
    config = request.configuration
    if isinstance(config, CompositeMigration):
        return list(config.segments)
    return [config.segment]


class AssemblyService:
    """Produces a composite agreement document from an AssemblyRequest."""

    def __init__(
        self,
        repository: Optional[ExhibitRepository] = None,
        template_store: Optional[TemplateStore] = None,
        rules_store: Optional[RulesConfigStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository or get_exhibit_repository()
        self._template_store = template_store
        self.rules_store = rules_store or RulesConfigStore()

        commercial = CommercialRules(self.rules_store)
        self.exhibit_config = self.rules_store.get_exhibit_config()
        self.normalizer = ConfigurationNormalizer(commercial)
        self.resolver = TokenResolver(commercial)
        self.selector = ExhibitSelector(self.exhibit_config)
        self.merger = MergeEngine(self.exhibit_config)
        self.fetcher = ExhibitFetcher(self.repository, self.settings)

    @property
    def template_store(self) -> TemplateStore:
        if self._template_store is None:
            self._template_store = TemplateStore(self.settings)
        return self._template_store

    # ── Public API ───────────────────────────────────────

    def list_exhibits(self) -> list[ExhibitRecord]:
        return self.repository.list_exhibits()

    def assemble_sync(self, request: AssemblyRequest, today: Optional[date] = None) -> AssemblyResult:
        """Blocking wrapper for CLI callers."""
        return asyncio.run(self.assemble(request, today=today))

    async def assemble(self, request: AssemblyRequest, today: Optional[date] = None) -> AssemblyResult:
        trace = AssemblyTrace()
        template = self._load_template(request)
        trace.add("template", "loaded", f"{len(template)} bytes")

        # ── Normalize ────────────────────────────────────
        figures = self.normalizer.normalize(request.configuration, request.breakdown)
        trace.normalized = figures
        trace.add("normalize", "completed", f"kind={figures.migration_kind.value}")

        # ── Resolve tokens ∥ select exhibits ─────────────
        resolution, selected = await asyncio.gather(
            asyncio.to_thread(
                self.resolver.resolve_detailed,
                figures,
                request.client,
                request.deal,
                request.discount,
                request.template_name,
                request.extra_tokens,
                today,
            ),
            asyncio.to_thread(self._select_exhibits, request, trace),
        )
        trace.token_map = resolution.tokens
        trace.add("resolve", "completed", f"{len(resolution.tokens)} tokens")

        # ── Critical tokens ──────────────────────────────
        placeholders = await asyncio.to_thread(scan_placeholders, template)
        self._check_critical(placeholders, resolution)
        trace.add("validate", "critical_tokens_ok", f"{len(placeholders)} placeholders")

        # ── Render ∥ fetch ───────────────────────────────
        fetch_task = asyncio.create_task(self.fetcher.fetch_all(selected))
        try:
            rendered = await asyncio.to_thread(render, template, resolution.tokens)
        except BaseException:
            fetch_task.cancel()
            raise
        trace.add("render", "completed", f"{len(rendered.replaced)} replaced, {len(rendered.unresolved)} unresolved")

        result_warnings: list[str] = []
        if rendered.unresolved:
            trace.unresolved_tokens = rendered.unresolved
            message = f"Unresolved template tokens: {', '.join(rendered.unresolved)}"
            warnings.warn(message, UnresolvedTokenWarning, stacklevel=2)
            logger.warning(message)
            result_warnings.append(message)

        fetched = await fetch_task
        manifest = MergeManifest()
        for item in fetched:
            if not item.ok:
                trace.skipped_exhibits.append(item.record.id)
                result_warnings.append(f"Exhibit {item.record.id} ({item.record.name}) skipped: {item.error}")
                continue
            manifest.items.append(MergeItem(
                document=item.document,
                group_label=(GroupLabel.INCLUDED if item.record.is_included else GroupLabel.NOT_INCLUDED).value,
                exhibit_id=item.record.id,
                name=item.record.name,
            ))
        trace.add("fetch", "completed", f"{len(manifest.items)} fetched, {len(trace.skipped_exhibits)} skipped")

        # ── Merge ────────────────────────────────────────
        outcome = await asyncio.to_thread(self.merger.merge, rendered.document, manifest)
        trace.skipped_exhibits.extend(outcome.skipped)
        result_warnings.extend(outcome.warnings)
        trace.add("merge", "completed", f"{len(outcome.merged_ids)} exhibits merged")

        document_hash = sha256_hash(outcome.document)
        logger.info(
            f"Assembled agreement {document_hash[:12]}: "
            f"{len(outcome.merged_ids)} exhibits, {len(result_warnings)} warnings"
        )
        return AssemblyResult(
            document=outcome.document,
            document_hash=document_hash,
            exhibit_ids=outcome.merged_ids,
            warnings=result_warnings,
            unresolved_tokens=rendered.unresolved,
            skipped_exhibits=list(trace.skipped_exhibits),
            trace=trace,
        )

    # ── Steps ────────────────────────────────────────────

    def _load_template(self, request: AssemblyRequest) -> bytes:
        if request.template_bytes:
            return request.template_bytes
        if request.template_id:
            return self.template_store.load_template(request.template_id)
        raise MissingTemplateError("No template supplied: provide template bytes or a template id")

    def _select_exhibits(self, request: AssemblyRequest, trace: AssemblyTrace) -> list[ExhibitRecord]:
        catalog = self.repository.list_exhibits()
        trace.add("select", "catalog_loaded", f"{len(catalog)} exhibits")
        return self.selector.select(
            request.selected_exhibit_ids,
            _segments(request),
            request.breakdown.tier,
            catalog,
            trace,
        )

    def _check_critical(self, placeholders: list[str], resolution: TokenResolution) -> None:
        critical = critical_keys(self.exhibit_config.critical_tokens)
        lookup = make_lookup(resolution.tokens)
        missing = []
        for token in placeholders:
            if canonical_key(token) not in critical:
                continue
            value = lookup(token)
            field = lookup_field(token)
            defaulted = field is not None and field.name in resolution.defaulted_fields
            if value is None or not value.strip() or defaulted:
                missing.append(token)
        if missing:
            logger.error(f"Critical tokens unresolved: {missing}")
            raise CriticalTokenError(missing)
