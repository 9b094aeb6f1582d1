"""
Tests: exhibit metadata detection and combination keys.

Run with:
    pytest agreement_assembly/tests/test_exhibit_detect.py -v
"""

import pytest

from agreement_assembly.engine.exhibit_detect import (
    base_combination_key,
    detect_from_filename,
    infer_include_type,
    slugify,
    strip_inclusion_words,
)
from agreement_assembly.models.enums import Category, IncludeType


class TestCombinationKeys:
    @pytest.mark.parametrize("tag,expected", [
        ("slack-to-teams-basic-include", "slack-to-teams"),
        ("slack-to-teams-standard-notinclude", "slack-to-teams"),
        ("Slack to Teams Standard Plan - Not Included", "slack-to-teams"),
        ("Slack to Teams", "slack-to-teams"),
        ("google-mydrive-to-google-mydrive-advanced-include", "google-mydrive-to-google-mydrive"),
        ("box_to_box", "box-to-box"),
        ("", ""),
    ])
    def test_base_key(self, tag, expected):
        assert base_combination_key(tag) == expected

    def test_slugify_strips_extension(self):
        assert slugify("Slack to Teams.docx") == "slack-to-teams"


class TestIncludeType:
    @pytest.mark.parametrize("text", [
        "Slack to Teams Standard Plan - Standard Not Include",
        "Features NOT INCLUDED in migration",
        "not-included",
        "Excluded items",
    ])
    def test_not_included(self, text):
        assert infer_include_type(text) == IncludeType.NOT_INCLUDED

    @pytest.mark.parametrize("text", ["Standard Include", "Included features", "Overview"])
    def test_included(self, text):
        assert infer_include_type(text) == IncludeType.INCLUDED

    def test_strip_inclusion_words(self):
        assert strip_inclusion_words("Slack to Teams - Not Included") == "slack to teams"
        assert strip_inclusion_words("Slack to Teams - Included") == "slack to teams"


class TestDetectFromFilename:
    def test_messaging_file(self):
        meta = detect_from_filename("Slack to Teams Standard Plan - Standard Not Include.docx")
        assert meta.combination == "slack-to-teams"
        assert meta.category == Category.MESSAGING
        assert meta.plan == "standard"
        assert meta.include_type == IncludeType.NOT_INCLUDED
        assert meta.name == "SLACK TO TEAMS Standard Plan - Standard Not Include"
        assert meta.display_order == 21

    def test_content_file(self):
        meta = detect_from_filename("box-to-box-advanced-include.docx")
        assert meta.combination == "box-to-box"
        assert meta.category == Category.CONTENT
        assert meta.plan == "advanced"
        assert meta.include_type == IncludeType.INCLUDED
        assert meta.display_order == 30
        assert "box" in meta.keywords

    def test_email_category_from_hint(self):
        meta = detect_from_filename("gmail-to-outlook-basic.docx")
        assert meta.category == Category.EMAIL
        assert meta.combination == "gmail-to-outlook"
        assert meta.include_type is None

    def test_unrecognised_file(self):
        meta = detect_from_filename("terms.docx")
        assert meta.combination == ""
        assert meta.name == "New Exhibit"
        assert meta.display_order == 999
