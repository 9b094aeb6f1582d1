"""
API routes — thin HTTP layer that delegates to the assembly service.

Routes:
  GET  /health                   → API health check
  GET  /api/exhibits             → Exhibit catalog (metadata only)
  POST /api/agreements/assemble  → Assemble an agreement; returns base64 DOCX
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from agreement_assembly.config import get_settings
from agreement_assembly.errors import CriticalTokenError, MergeFailure, MissingTemplateError
from agreement_assembly.models.schemas import (
    AssemblyRequest,
    ClientMeta,
    CostBreakdown,
    DealMeta,
    DiscountState,
    ExhibitRecord,
    PricingConfiguration,
)
from agreement_assembly.services.assembly_service import AssemblyService

logger = logging.getLogger(__name__)

# ── Routers ──────────────────────────────────────────────
health_router = APIRouter()
exhibit_router = APIRouter()
agreement_router = APIRouter()


@lru_cache()
def get_assembly_service() -> AssemblyService:
    """Process-wide service instance; overridden in tests."""
    return AssemblyService()


# ── Request / response schemas ───────────────────────────
class AssembleRequestBody(BaseModel):
    template_id: str = ""
    template_name: str = ""
    template_base64: Optional[str] = None
    configuration: PricingConfiguration
    breakdown: CostBreakdown = Field(default_factory=CostBreakdown)
    client: ClientMeta = Field(default_factory=ClientMeta)
    deal: DealMeta = Field(default_factory=DealMeta)
    discount: DiscountState = Field(default_factory=DiscountState)
    selected_exhibit_ids: list[str] = []
    extra_tokens: dict[str, Any] = {}


class AssembleResponse(BaseModel):
    document_base64: str
    document_hash: str
    exhibit_ids: list[str] = []
    warnings: list[str] = []
    unresolved_tokens: list[str] = []
    skipped_exhibits: list[str] = []


# ── Health ───────────────────────────────────────────────

@health_router.get("/health")
async def health_check():
    settings = get_settings()
    return {
        "status": "ok",
        "app": settings.app_name,
        "mock_mode": settings.mock_mode,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Exhibits ─────────────────────────────────────────────

@exhibit_router.get("", response_model=list[ExhibitRecord])
async def list_exhibits(service: AssemblyService = Depends(get_assembly_service)):
    return service.list_exhibits()


# ── Assembly ─────────────────────────────────────────────

@agreement_router.post("/assemble", response_model=AssembleResponse)
async def assemble_agreement(
    body: AssembleRequestBody,
    service: AssemblyService = Depends(get_assembly_service),
):
    template_bytes = None
    if body.template_base64:
        try:
            template_bytes = base64.b64decode(body.template_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"template_base64 is not valid base64: {e}")

    request = AssemblyRequest(
        template_id=body.template_id,
        template_name=body.template_name,
        template_bytes=template_bytes,
        configuration=body.configuration,
        breakdown=body.breakdown,
        client=body.client,
        deal=body.deal,
        discount=body.discount,
        selected_exhibit_ids=body.selected_exhibit_ids,
        extra_tokens=body.extra_tokens,
    )

    try:
        result = await service.assemble(request)
    except MissingTemplateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CriticalTokenError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "tokens": e.tokens})
    except MergeFailure as e:
        logger.error(f"Agreement merge failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return AssembleResponse(
        document_base64=base64.b64encode(result.document).decode("ascii"),
        document_hash=result.document_hash,
        exhibit_ids=result.exhibit_ids,
        warnings=result.warnings,
        unresolved_tokens=result.unresolved_tokens,
        skipped_exhibits=result.skipped_exhibits,
    )
