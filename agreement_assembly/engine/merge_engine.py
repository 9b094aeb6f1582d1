"""
Document Merge Engine — appends exhibit documents to the rendered agreement.

Exhibits are reassembled structurally: the body elements of each exhibit
(paragraphs, tables, inline section breaks) are deep-copied into the base
body ahead of its final ``w:sectPr``. Images and hyperlinks are re-related
into the output package so their relationship ids resolve there. Manifest
order is preserved; group labels only decide where group headings go.
"""

from __future__ import annotations

import copy
import io
import logging
import re
from typing import Optional

from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from agreement_assembly.engine.template_renderer import load_document, save_document
from agreement_assembly.errors import ExhibitFetchError, MergeFailure
from agreement_assembly.models.schemas import MergeItem, MergeManifest, MergeOutcome
from agreement_assembly.rules.rules_config import ExhibitConfig

logger = logging.getLogger(__name__)

_R_ATTRS = (qn("r:embed"), qn("r:link"), qn("r:id"))
_SECTION_REFS = (qn("w:headerReference"), qn("w:footerReference"))

# Elements that follow w:shd inside w:pPr
_SHD_SUCCESSORS = (
    "w:tabs", "w:suppressAutoHyphens", "w:kinsoku", "w:wordWrap", "w:overflowPunct",
    "w:topLinePunct", "w:autoSpaceDE", "w:autoSpaceDN", "w:bidi", "w:adjustRightInd",
    "w:snapToGrid", "w:spacing", "w:ind", "w:contextualSpacing", "w:mirrorIndents",
    "w:suppressOverlap", "w:jc", "w:textDirection", "w:textAlignment",
    "w:textboxTightWrap", "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr",
    "w:sectPr", "w:pPrChange",
)


def _normalize_title(text: str) -> str:
    return re.sub(r"[^A-Z0-9]+", " ", (text or "").upper()).strip()


def _element_text(element) -> str:
    return "".join(t.text or "" for t in element.iter(qn("w:t")))


class MergeEngine:
    """Structural DOCX merge with python-docx."""

    def __init__(self, config: Optional[ExhibitConfig] = None):
        self.config = config or ExhibitConfig()

    def group_title(self, label: str) -> str:
        return self.config.group_titles.get(label, label.upper())

    def merge(self, base_document: bytes, manifest: MergeManifest) -> MergeOutcome:
        base = load_document(base_document, "base")
        body = base.element.body
        sect_pr = body.sectPr

        def insert(element) -> None:
            if sect_pr is not None:
                sect_pr.addprevious(element)
            else:
                body.append(element)

        merged: list[str] = []
        skipped: list[str] = []
        warnings: list[str] = []
        current_label: Optional[str] = None

        for position, item in enumerate(manifest.items):
            label = item.exhibit_id or item.name or f"#{position}"
            try:
                exhibit = self._open_exhibit(item)
            except ExhibitFetchError as e:
                logger.warning(str(e))
                skipped.append(label)
                warnings.append(str(e))
                continue

            insert(self._page_break())
            title = self.group_title(item.group_label)
            if item.group_label != current_label:
                insert(self._group_heading(base, title))
                current_label = item.group_label

            copied = self._copy_body(exhibit, base, title, warnings, label)
            for element in copied:
                insert(element)
            merged.append(label)
            logger.debug(f"Merged exhibit {label} ({len(copied)} elements)")

        try:
            document = save_document(base)
        except Exception as e:
            raise MergeFailure(f"Could not write merged document: {e}") from e

        logger.info(f"Merged {len(merged)} exhibits, skipped {len(skipped)}")
        return MergeOutcome(document=document, merged_ids=merged, skipped=skipped, warnings=warnings)

    # ── Helpers ──────────────────────────────────────────

    @staticmethod
    def _open_exhibit(item: MergeItem):
        try:
            return load_document(item.document, "exhibit")
        except MergeFailure as e:
            raise ExhibitFetchError(item.exhibit_id or item.name, str(e)) from e

    @staticmethod
    def _page_break():
        p = OxmlElement("w:p")
        r = OxmlElement("w:r")
        br = OxmlElement("w:br")
        br.set(qn("w:type"), "page")
        r.append(br)
        p.append(r)
        return p

    def _group_heading(self, base, title: str):
        """Centered, shaded, bold heading paragraph; detached so the caller places it."""
        try:
            paragraph = base.add_paragraph(style="Heading 1")
        except KeyError:
            paragraph = base.add_paragraph()
        run = paragraph.add_run(title)
        run.bold = True

        pPr = paragraph._p.get_or_add_pPr()
        shd = OxmlElement("w:shd")
        shd.set(qn("w:val"), "clear")
        shd.set(qn("w:color"), "auto")
        shd.set(qn("w:fill"), self.config.group_heading_fill)
        pPr.insert_element_before(shd, *_SHD_SUCCESSORS)
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER

        element = paragraph._p
        element.getparent().remove(element)
        return element

    def _copy_body(self, exhibit, base, title: str, warnings: list[str], label: str) -> list:
        children = [
            child for child in exhibit.element.body.iterchildren()
            if child.tag != qn("w:sectPr")
        ]
        children = self._drop_repeated_title(children, title)

        copied = []
        for child in children:
            element = copy.deepcopy(child)
            self._relink(element, exhibit.part, base.part, warnings, label)
            copied.append(element)
        return copied

    @staticmethod
    def _drop_repeated_title(children: list, title: str) -> list:
        """Drop an exhibit's leading paragraph when it repeats the group heading."""
        wanted = _normalize_title(title)
        bare = _normalize_title(re.sub(r"^\s*exhibit\s+\d+\s*-\s*", "", title, flags=re.IGNORECASE))
        for index, child in enumerate(children):
            if child.tag != qn("w:p"):
                return children
            text = _normalize_title(_element_text(child))
            if not text:
                continue
            if text in (wanted, bare):
                return children[:index] + children[index + 1:]
            return children
        return children

    @staticmethod
    def _relink(element, source_part, target_part, warnings: list[str], label: str) -> None:
        """Re-create each relationship a copied element references in the output package."""
        for node in list(element.iter()):
            for attr in _R_ATTRS:
                r_id = node.get(attr)
                if not r_id:
                    continue
                rel = source_part.rels.get(r_id)
                if rel is None:
                    del node.attrib[attr]
                    continue

                if rel.is_external:
                    new_id = target_part.relate_to(rel.target_ref, rel.reltype, is_external=True)
                    node.set(attr, new_id)
                elif rel.reltype == RT.IMAGE:
                    new_id, _ = target_part.get_or_add_image(io.BytesIO(rel.target_part.blob))
                    node.set(attr, new_id)
                elif node.tag in _SECTION_REFS:
                    # Inline section breaks keep their layout but not their headers
                    node.getparent().remove(node)
                else:
                    run = next((a for a in node.iterancestors(qn("w:r"))), None)
                    doomed = run if run is not None else node
                    if doomed.getparent() is not None:
                        doomed.getparent().remove(doomed)
                    message = f"Exhibit {label}: dropped unsupported embedded content ({rel.reltype.rsplit('/', 1)[-1]})"
                    logger.warning(message)
                    warnings.append(message)
                break


def merge(
    base_document: bytes,
    manifest: MergeManifest,
    config: Optional[ExhibitConfig] = None,
) -> MergeOutcome:
    """Module-level shortcut for ``MergeEngine(config).merge``."""
    return MergeEngine(config).merge(base_document, manifest)
