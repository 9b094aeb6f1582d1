from .assembly_service import AssemblyService
from .exhibit_fetcher import ExhibitFetcher
from .file_service import TemplateStore

__all__ = ["AssemblyService", "ExhibitFetcher", "TemplateStore"]
