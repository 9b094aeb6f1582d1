from enum import Enum


class MigrationKind(str, Enum):
    SINGLE = "single"
    COMPOSITE = "composite"


class Category(str, Enum):
    MESSAGING = "messaging"
    CONTENT = "content"
    EMAIL = "email"


class IncludeType(str, Enum):
    INCLUDED = "included"
    NOT_INCLUDED = "notincluded"


class GroupLabel(str, Enum):
    INCLUDED = "Included"
    NOT_INCLUDED = "Not Included"


class FallbackLevel(str, Enum):
    PLAN_MATCH = "plan_match"
    CATEGORY_MATCH = "category_match"
    SELECTED_ID = "selected_id"
    UNRESOLVED = "unresolved"
