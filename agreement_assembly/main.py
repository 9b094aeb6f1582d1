"""
Agreement Assembly — Main Entry Point

Assemble an agreement from a request file (CLI):
    python -m agreement_assembly request.json -o agreement.docx

Run as an API server:
    python -m agreement_assembly --serve
    # or: uvicorn agreement_assembly.api:app --reload --port 8000

Or import and run programmatically:
    from agreement_assembly.main import run
    result = run("path/to/request.json")

The request file is the JSON form of AssemblyRequest. Templates may be given
as ``template_path`` (relative to the request file), ``template_base64`` or
``template_id``. In mock mode, ``exhibits`` may list catalog records with a
``path`` to their DOCX so the in-memory catalog can be seeded.
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from agreement_assembly.config import get_settings
from agreement_assembly.models.schemas import AssemblyRequest, AssemblyResult, ExhibitRecord
from agreement_assembly.persistence.exhibit_repository import (
    ExhibitRepository,
    InMemoryExhibitRepository,
    get_exhibit_repository,
)
from agreement_assembly.services.assembly_service import AssemblyService
from agreement_assembly.utils.logger import setup_logging


def load_request(request_path: str) -> tuple[AssemblyRequest, Optional[ExhibitRepository]]:
    """Parse a request file; returns the request and a seeded catalog if one is embedded."""
    path = Path(request_path)
    data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))

    template_path = data.pop("template_path", None)
    template_b64 = data.pop("template_base64", None)
    if template_path:
        data["template_bytes"] = (path.parent / template_path).read_bytes()
    elif template_b64:
        data["template_bytes"] = base64.b64decode(template_b64)

    repository = None
    exhibits = data.pop("exhibits", None)
    if exhibits:
        repository = InMemoryExhibitRepository()
        for entry in exhibits:
            file_path = path.parent / entry.pop("path")
            repository.add(ExhibitRecord(**entry), file_path.read_bytes())

    return AssemblyRequest.model_validate(data), repository


def run(request_path: str, output: str = "") -> AssemblyResult:
    """Assemble one agreement and write it next to the request (or to ``output``)."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("  AGREEMENT ASSEMBLY")
    logger.info(f"  Mode: {'MOCK' if settings.mock_mode else 'LIVE'} | Started: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    request, repository = load_request(request_path)
    service = AssemblyService(repository=repository or get_exhibit_repository())
    result = service.assemble_sync(request)

    out_path = Path(output) if output else Path(request_path).with_suffix(".docx")
    out_path.write_bytes(result.document)

    _print_summary(result, out_path)
    return result


def _print_summary(result: AssemblyResult, out_path: Path) -> None:
    """Print a human-readable summary of the assembly."""
    logger = logging.getLogger(__name__)
    trace = result.trace

    logger.info("-" * 60)
    logger.info("  ASSEMBLY RESULT SUMMARY")
    logger.info("-" * 60)
    logger.info(f"  Output:         {out_path}")
    logger.info(f"  SHA-256:        {result.document_hash[:16]}...")
    if trace.normalized:
        logger.info(f"  Migration:      {trace.normalized.migration_type} ({trace.normalized.migration_kind.value})")
        logger.info(f"  Total Price:    ${trace.normalized.total_cost:,.2f}")
    logger.info(f"  Exhibits:       {len(result.exhibit_ids)} merged, {len(result.skipped_exhibits)} skipped")
    for fallback in trace.fallbacks:
        logger.info(f"  Fallback:       {fallback.category}|{fallback.base_key} → {fallback.level.value}")
    if result.unresolved_tokens:
        logger.info(f"  Unresolved:     {', '.join(result.unresolved_tokens)}")
    for warning in result.warnings:
        logger.info(f"  Warning:        {warning}")
    logger.info("-" * 60)

    logger.info(f"  Trace: {len(trace.events)} events")
    for event in trace.events:
        logger.info(f"    {event.stage} | {event.action} | {event.details}")


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the FastAPI server."""
    import uvicorn

    setup_logging(get_settings().log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("agreement_assembly.api:app", host=host, port=port, reload=get_settings().debug)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="agreement_assembly", description="Assemble an agreement document")
    parser.add_argument("request", nargs="?", help="request JSON file")
    parser.add_argument("-o", "--output", default="", help="output .docx path")
    parser.add_argument("--serve", action="store_true", help="run the HTTP API instead")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    if args.serve:
        serve(args.host, args.port)
        return 0
    if not args.request:
        parser.error("a request file is required unless --serve is given")
    run(args.request, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
