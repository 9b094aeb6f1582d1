from .mongo_client import MongoClient
from .exhibit_repository import (
    ExhibitRepository,
    InMemoryExhibitRepository,
    MongoExhibitRepository,
    get_exhibit_repository,
)

__all__ = [
    "MongoClient",
    "ExhibitRepository",
    "InMemoryExhibitRepository",
    "MongoExhibitRepository",
    "get_exhibit_repository",
]
