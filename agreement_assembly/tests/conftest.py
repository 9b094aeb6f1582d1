"""
Shared fixtures: small DOCX packages built with python-docx and an exhibit
catalog covering messaging and content combinations across plans.
"""

import base64
import io

import pytest
from docx import Document

from agreement_assembly.models.enums import Category
from agreement_assembly.models.schemas import ExhibitRecord
from agreement_assembly.persistence.exhibit_repository import InMemoryExhibitRepository

# 1×1 transparent PNG
PNG_1PX = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def build_docx(paragraphs=(), table=None, header=None, image=False):
    """
    paragraphs: strings, or lists of strings to force one run per piece.
    table: list of rows (list of cell strings).
    """
    doc = Document()
    for item in paragraphs:
        if isinstance(item, (list, tuple)):
            paragraph = doc.add_paragraph()
            for piece in item:
                paragraph.add_run(piece)
        else:
            doc.add_paragraph(item)
    if table:
        t = doc.add_table(rows=0, cols=len(table[0]))
        for row in table:
            cells = t.add_row().cells
            for i, value in enumerate(row):
                cells[i].text = value
    if header:
        doc.sections[0].header.paragraphs[0].text = header
    if image:
        doc.add_picture(io.BytesIO(PNG_1PX))
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def docx_text(data):
    """Body paragraphs and table cell text, one entry per paragraph."""
    doc = Document(io.BytesIO(data))
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            lines.append(" | ".join(cell.text for cell in row.cells))
    return lines


@pytest.fixture
def make_docx():
    return build_docx


@pytest.fixture
def read_docx():
    return docx_text


def _exhibit(exhibit_id, name, category, tag, plan, order, **extra):
    return ExhibitRecord(
        id=exhibit_id,
        name=name,
        category=category,
        combinations=[tag] if tag else [],
        plan_type=plan,
        display_order=order,
        **extra,
    )


@pytest.fixture
def catalog():
    messaging = Category.MESSAGING.value
    content = Category.CONTENT.value
    return [
        _exhibit("stt-basic-inc", "Slack to Teams Basic Plan - Basic Include", messaging,
                 "slack-to-teams-basic-include", "Basic", 10),
        _exhibit("stt-basic-not", "Slack to Teams Basic Plan - Basic Not Include", messaging,
                 "slack-to-teams-basic-notinclude", "Basic", 11),
        _exhibit("stt-std-inc", "Slack to Teams Standard Plan - Standard Include", messaging,
                 "slack-to-teams-standard-include", "Standard", 20),
        _exhibit("stt-std-not", "Slack to Teams Standard Plan - Standard Not Include", messaging,
                 "slack-to-teams-standard-notinclude", "Standard", 21),
        _exhibit("stt-adv-inc", "Slack to Teams Advanced Plan - Advanced Include", messaging,
                 "slack-to-teams-advanced-include", "Advanced", 30),
        _exhibit("stt-adv-not", "Slack to Teams Advanced Plan - Advanced Not Include", messaging,
                 "slack-to-teams-advanced-notinclude", "Advanced", 31),
        _exhibit("gmd-std-inc", "Google MyDrive to Google MyDrive Standard Plan - Standard Include", content,
                 "google-mydrive-to-google-mydrive-standard-include", "Standard", 20),
        _exhibit("gmd-std-not", "Google MyDrive to Google MyDrive Standard Plan - Standard Not Include", content,
                 "google-mydrive-to-google-mydrive-standard-notinclude", "Standard", 21),
    ]


@pytest.fixture
def repository(catalog):
    repo = InMemoryExhibitRepository()
    for record in catalog:
        repo.add(record, build_docx([f"{record.name} body"]))
    return repo


@pytest.fixture
def agreement_template():
    return build_docx(
        paragraphs=[
            "MIGRATION SERVICES AGREEMENT",
            ["This agreement is made with {{Comp", "any_Na", "me}} (the Client)."],
            "Prepared for {{clientName}} <{{email}}> on {{date}}.",
            "Migration: {{migration_type}} for {{users_count}} users over {{Duration_of_months}} months.",
        ],
        table=[
            ["Item", "Amount"],
            ["Users", "{{users_cost}}"],
            ["Migration", "{{price_migration}}"],
            ["Discount {{discount_percent_with_parentheses}}", "{{discount_amount}}"],
            ["Total", "{{total_price}}"],
            ["Due", "{{final_total}}"],
        ],
        header="Agreement {{agreement_id}}",
    )
