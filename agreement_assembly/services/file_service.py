"""
File Service — template storage on the local filesystem.
Templates are addressed by id; ``<id>.docx`` under the templates directory.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from agreement_assembly.config import Settings, get_settings
from agreement_assembly.errors import MissingTemplateError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class TemplateStore:
    """Swappable template storage — local filesystem for now."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.backend = self.settings.storage_backend

        if self.backend == "local":
            self.base_path = Path(self.settings.local_storage_path) / self.settings.templates_dir
            self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, template_id: str) -> Path:
        name = template_id.removesuffix(".docx")
        if not _SAFE_ID.match(name):
            raise MissingTemplateError(f"Invalid template id: {template_id!r}")
        return self.base_path / f"{name}.docx"

    def save_template(self, template_id: str, file_bytes: bytes) -> str:
        """Save a template and return the stored path."""
        if self.backend != "local":
            raise NotImplementedError(f"Backend '{self.backend}' not implemented")
        path = self._path_for(template_id)
        path.write_bytes(file_bytes)
        logger.info(f"Saved template to {path}")
        return str(path)

    def load_template(self, template_id: str) -> bytes:
        """Load a template's content; MissingTemplateError if it does not exist."""
        if self.backend != "local":
            raise NotImplementedError(f"Backend '{self.backend}' not implemented")
        path = self._path_for(template_id)
        if not path.is_file():
            raise MissingTemplateError(f"Template '{template_id}' not found")
        return path.read_bytes()

    def list_templates(self) -> list[str]:
        """List stored template ids."""
        if self.backend != "local":
            raise NotImplementedError(f"Backend '{self.backend}' not implemented")
        return sorted(p.stem for p in self.base_path.glob("*.docx") if p.is_file())
