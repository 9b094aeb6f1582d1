"""
Template Renderer — substitutes ``{{token}}`` placeholders in a DOCX template.

Word splits typed text into runs at arbitrary points (spell-check, edits,
formatting), so a placeholder such as ``{{Company_Name}}`` is frequently spread
over several ``w:r`` elements. Substitution therefore works on the joined
paragraph text and splices the result back into the runs, keeping the
formatting of the run where each placeholder starts.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Callable, Iterator, Optional

from docx import Document
from docx.document import Document as DocumentObject
from docx.table import Table
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph
from pydantic import BaseModel

from agreement_assembly.engine.tokens import canonical_key
from agreement_assembly.errors import MergeFailure

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
# "{{Company_Name}By" → "{{Company_Name}} By"
MALFORMED_PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}(?=[A-Za-z])")


class RenderResult(BaseModel):
    document: bytes
    placeholders: list[str] = []
    replaced: list[str] = []
    unresolved: list[str] = []
    removed_rows: int = 0


# ── Document traversal ───────────────────────────────────


def load_document(data: bytes, what: str = "template") -> DocumentObject:
    """Open DOCX bytes; anything that is not a readable package is a MergeFailure."""
    if not data:
        raise MergeFailure(f"The {what} document is empty")
    try:
        return Document(io.BytesIO(data))
    except Exception as e:
        raise MergeFailure(f"The {what} document is not a readable DOCX package: {e}") from e


def save_document(doc: DocumentObject) -> bytes:
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _unique_cells(table: Table):
    """Cells of a table once each; merged cells repeat across row.cells."""
    pinned: dict[int, object] = {}  # keeps element proxies alive so ids stay stable
    for row in table.rows:
        for cell in row.cells:
            key = id(cell._tc)
            if key in pinned:
                continue
            pinned[key] = cell._tc
            yield cell


def _iter_tables(tables: list[Table]) -> Iterator[Table]:
    for table in tables:
        yield table
        for cell in _unique_cells(table):
            yield from _iter_tables(cell.tables)


def _container_paragraphs(container) -> Iterator[Paragraph]:
    yield from container.paragraphs
    for table in _iter_tables(container.tables):
        for cell in _unique_cells(table):
            yield from cell.paragraphs


def _header_footer_parts(doc: DocumentObject):
    for section in doc.sections:
        for part in (
            section.header, section.first_page_header, section.even_page_header,
            section.footer, section.first_page_footer, section.even_page_footer,
        ):
            # Linked parts belong to the previous section; touching them would add a definition
            if not part.is_linked_to_previous:
                yield part


def iter_paragraphs(doc: DocumentObject) -> Iterator[Paragraph]:
    """Body, nested table, header and footer paragraphs."""
    yield from _container_paragraphs(doc)
    for part in _header_footer_parts(doc):
        yield from _container_paragraphs(part)


# ── Run splicing ─────────────────────────────────────────


def _runs(paragraph: Paragraph) -> list:
    """Runs in document order, including the runs inside hyperlinks."""
    runs = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            runs.extend(item.runs)
        else:
            runs.append(item)
    return runs


def _splice(paragraph: Paragraph, spans: list[tuple[int, int, str]]) -> None:
    """Replace (start, end) spans of the joined run text, last span first."""
    runs = _runs(paragraph)
    offsets = []
    position = 0
    for run in runs:
        offsets.append(position)
        position += len(run.text)

    def run_at(char_index: int) -> int:
        for i in range(len(runs) - 1, -1, -1):
            if offsets[i] <= char_index:
                return i
        return 0

    for start, end, replacement in sorted(spans, reverse=True):
        si = run_at(start)
        ei = run_at(max(start, end - 1))
        s_off = start - offsets[si]
        e_off = end - offsets[ei]
        if si == ei:
            text = runs[si].text
            runs[si].text = text[:s_off] + replacement + text[e_off:]
            continue
        runs[si].text = runs[si].text[:s_off] + replacement
        for i in range(si + 1, ei):
            runs[i].text = ""
        runs[ei].text = runs[ei].text[e_off:]


def _paragraph_text(paragraph: Paragraph) -> str:
    return "".join(run.text for run in _runs(paragraph))


def _repair(paragraph: Paragraph) -> None:
    text = _paragraph_text(paragraph)
    spans = [
        (m.start(), m.end(), "{{" + m.group(1) + "}} ")
        for m in MALFORMED_PLACEHOLDER.finditer(text)
    ]
    if spans:
        logger.debug(f"Repairing {len(spans)} malformed placeholder(s) in: {text[:60]!r}")
        _splice(paragraph, spans)


def _substitute(
    paragraph: Paragraph,
    lookup: Callable[[str], Optional[str]],
    replaced: list[str],
    unresolved: list[str],
) -> None:
    text = _paragraph_text(paragraph)
    if "{{" not in text:
        return
    spans = []
    for match in PLACEHOLDER.finditer(text):
        token = match.group(1)
        value = lookup(token)
        if value is None:
            unresolved.append(token)
            continue
        replaced.append(token)
        spans.append((match.start(), match.end(), value))
    if spans:
        _splice(paragraph, spans)


# ── Public API ───────────────────────────────────────────


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def scan_placeholders(template_bytes: bytes) -> list[str]:
    """Every ``{{token}}`` in the template, in document order, without duplicates."""
    doc = load_document(template_bytes)
    found: list[str] = []
    for paragraph in iter_paragraphs(doc):
        text = MALFORMED_PLACEHOLDER.sub(lambda m: "{{" + m.group(1) + "}} ", _paragraph_text(paragraph))
        found.extend(m.group(1) for m in PLACEHOLDER.finditer(text))
    return _unique(found)


def make_lookup(token_map: dict[str, str]) -> Callable[[str], Optional[str]]:
    """Exact key first, then any spelling with the same canonical key."""
    canonical: dict[str, str] = {}
    for key, value in token_map.items():
        canonical.setdefault(canonical_key(key), value)

    def lookup(token: str) -> Optional[str]:
        if token in token_map:
            return token_map[token]
        return canonical.get(canonical_key(token))

    return lookup


def _row_text(row) -> str:
    seen: set[int] = set()
    parts = []
    for cell in row.cells:
        if id(cell._tc) in seen:
            continue
        seen.add(id(cell._tc))
        parts.append(cell.text)
    return " ".join(parts)


def _remove_discount_rows(doc: DocumentObject, placeholder_rows: dict[int, object]) -> int:
    """Drop discount rows and rows whose placeholders all resolved to nothing."""
    removed = 0
    for table in list(_iter_tables(doc.tables)):
        for row in list(table.rows):
            tr = row._tr
            text = _row_text(row)
            emptied = id(tr) in placeholder_rows and not text.strip()
            if "discount" not in text.lower() and not emptied:
                continue
            parent = tr.getparent()
            if parent is None or len(parent.findall(tr.tag)) <= 1:
                continue
            parent.remove(tr)
            removed += 1
    return removed


def render(
    template_bytes: bytes,
    token_map: dict[str, str],
    remove_discount_rows: Optional[bool] = None,
) -> RenderResult:
    """
    Substitute tokens in place.

    Unresolved placeholders are left intact and reported. Unless told
    otherwise, discount rows are removed when the token map carries no
    discount (``show_discount`` is empty).
    """
    doc = load_document(template_bytes)
    lookup = make_lookup(token_map)
    if remove_discount_rows is None:
        remove_discount_rows = not token_map.get("show_discount")

    placeholder_rows: dict[int, object] = {}
    if remove_discount_rows:
        for table in _iter_tables(doc.tables):
            for row in table.rows:
                if "{{" in _row_text(row):
                    placeholder_rows[id(row._tr)] = row._tr

    placeholders: list[str] = []
    replaced: list[str] = []
    unresolved: list[str] = []
    for paragraph in iter_paragraphs(doc):
        _repair(paragraph)
        placeholders.extend(m.group(1) for m in PLACEHOLDER.finditer(_paragraph_text(paragraph)))
        _substitute(paragraph, lookup, replaced, unresolved)

    removed = _remove_discount_rows(doc, placeholder_rows) if remove_discount_rows else 0

    result = RenderResult(
        document=save_document(doc),
        placeholders=_unique(placeholders),
        replaced=_unique(replaced),
        unresolved=_unique(unresolved),
        removed_rows=removed,
    )
    logger.info(
        f"Rendered template: {len(result.replaced)} tokens replaced, "
        f"{len(result.unresolved)} unresolved, {removed} rows removed"
    )
    return result
