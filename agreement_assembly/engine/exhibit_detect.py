"""
Exhibit metadata detection.

Exhibit documents are curated by hand and uploaded with file names such as
``Slack to Teams Standard Plan - Standard Not Include.docx``. This module
derives catalog metadata (category, combination slug, plan, inclusion state,
display name, keywords, display order) from those names, and reduces
combination tags to their base key for selection.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel

from agreement_assembly.models.enums import Category, IncludeType

PLAN_NAMES = ("basic", "standard", "advanced", "premium", "enterprise")

# Tokens stripped from the end of a combination tag to get its base key
_SUFFIX_TOKENS = frozenset(
    PLAN_NAMES
    + (
        "plan", "not", "include", "included", "includes", "notinclude",
        "notincluded", "exclude", "excluded", "features",
    )
)

_NOT_INCLUDED_PATTERNS = (
    re.compile(r"not\s*-?\s*included", re.IGNORECASE),
    re.compile(r"not\s*-?\s*include(?!d)", re.IGNORECASE),
    re.compile(r"\bexcluded?\b", re.IGNORECASE),
)

# Every spelling of "(not) included" that may appear inside a display title
_INCLUSION_WORDS = re.compile(
    r"not\s*-?\s*included|not\s*-?\s*include|notincluded|notinclude|included|include|excluded",
    re.IGNORECASE,
)

MESSAGING_COMBINATIONS = {
    "slack-to-teams": "Slack to Teams",
    "slack-to-google-chat": "Slack to Google Chat",
    "slack-to-slack": "Slack to Slack",
    "teams-to-teams": "Teams to Teams",
}

CONTENT_COMBINATIONS = {
    "dropbox-to-mydrive": "Dropbox to MyDrive",
    "dropbox-to-sharedrive": "Dropbox to Shared Drive",
    "dropbox-to-sharepoint": "Dropbox to SharePoint",
    "dropbox-to-onedrive": "Dropbox to OneDrive",
    "dropbox-to-box": "Dropbox to Box",
    "dropbox-to-egnyte": "Dropbox to Egnyte",
    "box-to-box": "Box to Box",
    "box-to-dropbox": "Box to Dropbox",
    "box-to-sharefile": "Box to ShareFile",
    "box-to-aws-s3": "Box to AWS S3",
    "box-to-google-mydrive": "Box to Google MyDrive",
    "box-to-google-sharedrive": "Box to Google Shared Drive",
    "box-to-onedrive": "Box to OneDrive",
    "egnyte-to-google-sharedrive": "Egnyte to Google Shared Drive",
    "egnyte-to-sharepoint-online": "Egnyte to SharePoint Online",
    "egnyte-to-google-mydrive": "Egnyte to Google MyDrive",
    "google-sharedrive-to-egnyte": "Google Shared Drive to Egnyte",
    "google-sharedrive-to-google-sharedrive": "Google Shared Drive to Google Shared Drive",
    "google-sharedrive-to-onedrive": "Google Shared Drive to OneDrive",
    "google-sharedrive-to-sharepoint": "Google Shared Drive to SharePoint",
    "google-mydrive-to-dropbox": "Google MyDrive to Dropbox",
    "google-mydrive-to-egnyte": "Google MyDrive to Egnyte",
    "google-mydrive-to-onedrive": "Google MyDrive to OneDrive",
    "google-mydrive-to-sharepoint": "Google MyDrive to SharePoint",
    "google-mydrive-to-google-sharedrive": "Google MyDrive to Google Shared Drive",
    "google-mydrive-to-google-mydrive": "Google MyDrive to Google MyDrive",
    "sharefile-to-google-mydrive": "ShareFile to Google MyDrive",
    "sharefile-to-google-sharedrive": "ShareFile to Google Shared Drive",
    "sharefile-to-onedrive": "ShareFile to OneDrive",
    "sharefile-to-sharepoint": "ShareFile to SharePoint",
    "sharefile-to-sharefile": "ShareFile to ShareFile",
    "nfs-to-google": "NFS to Google",
    "nfs-to-microsoft": "NFS to Microsoft",
}

_MESSAGING_HINTS = ("slack", "teams", "chat", "messaging")
_EMAIL_HINTS = ("email", "gmail", "outlook")


class DetectedMetadata(BaseModel):
    combination: str = ""
    category: Category = Category.CONTENT
    plan: str = ""
    include_type: Optional[IncludeType] = None
    name: str = "New Exhibit"
    keywords: list[str] = []
    display_order: int = 999


def slugify(text: str) -> str:
    """``"Slack to Teams"`` / ``"slack_to_teams"`` → ``"slack-to-teams"``."""
    lowered = (text or "").strip().lower()
    lowered = re.sub(r"\.docx?$", "", lowered)
    return re.sub(r"[^a-z0-9]+", "-", lowered).strip("-")


def base_combination_key(tag: str) -> str:
    """
    Strip plan-name and inclusion-state suffixes from a combination tag.

    ``slack-to-teams-basic-include`` → ``slack-to-teams``
    ``Slack to Teams Standard Plan - Not Included`` → ``slack-to-teams``
    """
    parts = [p for p in slugify(tag).split("-") if p]
    while parts and parts[-1] in _SUFFIX_TOKENS:
        parts.pop()
    return "-".join(parts)


def infer_include_type(text: str) -> IncludeType:
    """Classify free text (name, description, file name) as included / not included."""
    lowered = (text or "").lower()
    if any(p.search(lowered) for p in _NOT_INCLUDED_PATTERNS):
        return IncludeType.NOT_INCLUDED
    return IncludeType.INCLUDED


def strip_inclusion_words(title: str) -> str:
    """Display title with every (not) included spelling removed, lower-cased."""
    stripped = _INCLUSION_WORDS.sub(" ", (title or "").lower())
    return re.sub(r"[^a-z0-9]+", " ", stripped).strip()


def detect_category(text: str) -> Category:
    lowered = (text or "").lower()
    if any(hint in lowered for hint in _MESSAGING_HINTS):
        return Category.MESSAGING
    if any(hint in lowered for hint in _EMAIL_HINTS):
        return Category.EMAIL
    return Category.CONTENT


def detect_plan(text: str) -> str:
    lowered = (text or "").lower()
    for plan in PLAN_NAMES:
        if re.search(rf"\b{plan}\b", lowered):
            return plan
    return ""


def combination_label(combination: str) -> str:
    known = {**MESSAGING_COMBINATIONS, **CONTENT_COMBINATIONS}
    if combination in known:
        return known[combination].upper()
    return " ".join(w.capitalize() for w in combination.split("-") if w)


def _detect_combination(slug: str) -> str:
    """Longest known combination slug contained in the file-name slug."""
    known = sorted(
        {**MESSAGING_COMBINATIONS, **CONTENT_COMBINATIONS},
        key=len,
        reverse=True,
    )
    for combo in known:
        if combo in slug:
            return combo
    base = base_combination_key(slug)
    if len(base) >= 3 and "-to-" in f"-{base}-":
        return base
    return ""


def _display_order(plan: str, include_type: Optional[IncludeType]) -> int:
    plan_order = {"basic": 1, "standard": 2, "advanced": 3}.get(plan)
    if plan_order is None:
        return 999
    type_order = 1 if include_type == IncludeType.NOT_INCLUDED else 0
    return plan_order * 10 + type_order


def _generate_name(combination: str, plan: str, include_type: Optional[IncludeType]) -> str:
    if not combination:
        return "New Exhibit"
    label = combination_label(combination)
    plan_label = plan.capitalize()
    type_label = ""
    if include_type == IncludeType.INCLUDED:
        type_label = "Include"
    elif include_type == IncludeType.NOT_INCLUDED:
        type_label = "Not Include"

    if plan and type_label:
        return f"{label} {plan_label} Plan - {plan_label} {type_label}"
    if plan:
        return f"{label} {plan_label} Plan"
    if type_label:
        return f"{label} - {type_label}"
    return label


def detect_from_filename(file_name: str) -> DetectedMetadata:
    """Derive exhibit catalog metadata from an uploaded file name."""
    slug = slugify(file_name)
    lowered = slug.replace("-", " ")

    include_type: Optional[IncludeType] = None
    if re.search(r"\b(include|included|notinclude|notincluded|excluded?)\b", lowered):
        include_type = infer_include_type(lowered)

    combination = _detect_combination(slug)
    category = Category.MESSAGING if combination in MESSAGING_COMBINATIONS else detect_category(lowered)
    plan = detect_plan(lowered)

    keywords: list[str] = []
    for word in [*combination.split("-"), category.value, plan, *slug.split("-")]:
        if word and len(word) > 2 and word not in ("to", "plan", "and") and word not in keywords:
            keywords.append(word)

    return DetectedMetadata(
        combination=combination,
        category=category,
        plan=plan,
        include_type=include_type,
        name=_generate_name(combination, plan, include_type),
        keywords=keywords[:10],
        display_order=_display_order(plan, include_type),
    )
