"""Schema loaders: one per layer, backed by an injected SchemaRegistry."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ValidationError

from tenantforge.errors import SchemaValidationError
from tenantforge.schemas.models import BehaviorSchema, ClassificationSchema, FolderSchema
from tenantforge.schemas.registry import SchemaRegistry

logger = logging.getLogger(__name__)


def _overlay_by_name(base: list[dict], overrides: list[dict], **base_defaults) -> list[dict]:
    """Overlay named entries onto a base list.

    Entries whose name matches a base entry (case-insensitively) replace
    the keys they define; others are appended in order.
    """
    result = [{**base_defaults, **entry} for entry in base]
    index = {
        str(entry.get("name", "")).casefold(): i for i, entry in enumerate(result)
    }
    for entry in overrides:
        key = str(entry.get("name", "")).casefold()
        if key and key in index:
            merged = dict(result[index[key]])
            merged.update(entry)
            result[index[key]] = merged
        else:
            index[key] = len(result)
            result.append(dict(entry))
    return result


def validation_problems(error: ValidationError) -> list[tuple[str, str]]:
    """Flatten a pydantic ValidationError into (field_path, message) pairs."""
    return [
        (".".join(str(part) for part in err["loc"]), err["msg"])
        for err in error.errors()
    ]


class _LayerLoader:
    layer = ""
    model: type[BaseModel]

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry
        self._cache: dict[str, BaseModel] = {}

    def load(self, business_type: str):
        """Load and validate this layer's schema for a business type.

        Raises:
            SchemaNotFoundError: unknown business type or missing layer.
            SchemaValidationError: malformed schema data.
        """
        canonical = self.registry.canonicalize(business_type)
        if canonical not in self._cache:
            raw = self._compose(canonical)
            raw["business_type"] = canonical
            try:
                self._cache[canonical] = self.model.model_validate(raw)
            except ValidationError as e:
                raise SchemaValidationError(f"{canonical}/{self.layer}", validation_problems(e)) from e
            logger.debug("Loaded %s schema for %s", self.layer, canonical)
        return self._cache[canonical]

    def _compose(self, business_type: str) -> dict:
        return self.registry.layer(business_type, self.layer)


class ClassificationLoader(_LayerLoader):
    """Layer 1: common categories overlaid with business-type rules."""

    layer = "classification"
    model = ClassificationSchema

    def _compose(self, business_type: str) -> dict:
        common = self.registry.common(self.layer)
        specific = self.registry.layer(business_type, self.layer)

        escalation = dict(common.get("escalation") or {})
        tiers = dict(escalation.get("tiers") or {})
        tiers.update((specific.get("escalation") or {}).get("tiers") or {})
        if tiers:
            escalation["tiers"] = tiers

        intents = dict(common.get("intents") or {})
        intents.update(specific.get("intents") or {})

        composed = {
            "categories": _overlay_by_name(
                common.get("categories") or [], specific.get("categories") or []
            ),
            "intents": intents,
        }
        if escalation:
            composed["escalation"] = escalation
        return composed


class BehaviorLoader(_LayerLoader):
    """Layer 2: reply voice, goals and category language."""

    layer = "behavior"
    model = BehaviorSchema


class FolderLoader(_LayerLoader):
    """Layer 3: common folder taxonomy extended per business type."""

    layer = "folders"
    model = FolderSchema

    def _compose(self, business_type: str) -> dict:
        common = self.registry.common(self.layer)
        specific = self.registry.layer(business_type, self.layer)
        return {
            "categories": _overlay_by_name(
                common.get("categories") or [],
                specific.get("categories") or [],
                common=True,
            ),
        }
