"""Base workflow template lookup by primary business type and mailbox provider."""

from __future__ import annotations

import logging
from pathlib import Path

from tenantforge.errors import SchemaNotFoundError
from tenantforge.placeholders import token_name

logger = logging.getLogger(__name__)

BUILTIN_DIR = Path(__file__).parent / "workflow_templates"


class TemplateStore:
    """Reads templates from a directory.

    A business-type specific file (``pools_spas.gmail.json``) takes
    precedence over the provider default (``gmail.json``).
    """

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory else BUILTIN_DIR

    def candidates(self, business_type: str, provider: str) -> list[Path]:
        slug = token_name(business_type).lower()
        return [
            self.directory / f"{slug}.{provider}.json",
            self.directory / f"{provider}.json",
        ]

    def select(self, business_type: str, provider: str) -> Path:
        for path in self.candidates(business_type, provider):
            if path.exists():
                logger.debug("Using template %s for %s/%s", path.name, business_type, provider)
                return path
        raise SchemaNotFoundError(business_type, f"{provider} workflow template")

    def load(self, business_type: str, provider: str) -> str:
        return self.select(business_type, provider).read_text()
