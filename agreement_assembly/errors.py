"""
Domain errors raised while assembling an agreement.

Fatal errors derive from AssemblyError; an unresolved non-critical token is a
warning, and a single exhibit fetch failure is recovered by skipping it.
"""

from __future__ import annotations


class AssemblyError(Exception):
    """Base class for agreement assembly failures."""


class MissingTemplateError(AssemblyError):
    """No base template was supplied, or the template id does not exist."""


class CriticalTokenError(AssemblyError):
    """A critical placeholder in the template has no usable value."""

    def __init__(self, tokens: list[str]):
        self.tokens = sorted(set(tokens))
        super().__init__(f"Critical template tokens could not be resolved: {', '.join(self.tokens)}")


class ExhibitFetchError(AssemblyError):
    """One exhibit could not be fetched or parsed. Recovered by skipping it."""

    def __init__(self, exhibit_id: str, reason: str = ""):
        self.exhibit_id = exhibit_id
        self.reason = reason
        super().__init__(f"Exhibit {exhibit_id} unavailable: {reason}" if reason else f"Exhibit {exhibit_id} unavailable")


class MergeFailure(AssemblyError):
    """The base document is not a readable DOCX package; no partial output."""


class UnresolvedTokenWarning(UserWarning):
    """Template placeholders that no resolver entry matched."""
