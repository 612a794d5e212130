"""Schema integration bridge: one entry point from tenant record to unified config."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from tenantforge.errors import CrossLayerConsistencyError, TenantConfigError
from tenantforge.merge import merge_behavior, merge_classification, merge_folders
from tenantforge.models import Manager, Supplier, TenantConfig, UnifiedTenantConfig, VoiceProfile
from tenantforge.schemas.loaders import BehaviorLoader, ClassificationLoader, FolderLoader
from tenantforge.schemas.models import ClassificationSchema, FolderSchema
from tenantforge.schemas.registry import SchemaRegistry
from tenantforge.voice import DEFAULT_MIN_CONFIDENCE, DEFAULT_MIN_SAMPLE_SIZE, fuse_voice

logger = logging.getLogger(__name__)

_TEAM_SLOT = re.compile(r"^\{\{(Manager|Supplier)(\d+)\}\}$")


def fill_team_slots(
    folders: FolderSchema,
    managers: Sequence[Manager],
    suppliers: Sequence[Supplier],
) -> FolderSchema:
    """Replace {{ManagerN}} / {{SupplierN}} subcategories with team names.

    Slots without a matching team member are dropped.
    """
    names = {
        "Manager": [m.name.strip() for m in managers],
        "Supplier": [s.name.strip() for s in suppliers],
    }
    categories = []
    for category in folders.categories:
        subcategories = []
        seen: set[str] = set()
        for sub in category.subcategories:
            match = _TEAM_SLOT.match(sub.name)
            if match:
                people = names[match.group(1)]
                position = int(match.group(2))
                if position > len(people):
                    continue
                sub = sub.model_copy(update={"name": people[position - 1]})
            if sub.name.casefold() in seen:
                continue
            seen.add(sub.name.casefold())
            subcategories.append(sub)
        categories.append(category.model_copy(update={"subcategories": subcategories}))
    return FolderSchema(business_type=folders.business_type, categories=categories)


def unresolved_categories(classification: ClassificationSchema, folders: FolderSchema) -> list[str]:
    """Category paths the classification layer routes to but the folder layer lacks.

    Covers primary categories, their secondary and tertiary entries
    ('Cat/Sub', 'Cat/Sub/Tert') and every intent target.
    """
    referenced: list[str] = []
    for category in classification.categories:
        referenced.append(category.name)
        referenced.extend(f"{category.name}/{sub}" for sub in category.secondary)
        for sub, tertiary in category.tertiary.items():
            referenced.extend(f"{category.name}/{sub}/{tert}" for tert in tertiary)
    referenced.extend(classification.intents.values())
    missing: list[str] = []
    for name in referenced:
        if not folders.has_path(name) and name not in missing:
            missing.append(name)
    return missing


class SchemaIntegrationBridge:
    """Loads, merges and cross-validates the three schema layers for a tenant."""

    def __init__(
        self,
        registry: SchemaRegistry,
        min_voice_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
        min_voice_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self.registry = registry
        self.classification_loader = ClassificationLoader(registry)
        self.behavior_loader = BehaviorLoader(registry)
        self.folder_loader = FolderLoader(registry)
        self.min_voice_sample_size = min_voice_sample_size
        self.min_voice_confidence = min_voice_confidence

    def resolve_selection(self, names: Sequence[str]) -> list[str]:
        """Canonicalize a business-type selection, keeping first occurrences in order."""
        selection: list[str] = []
        for name in names:
            canonical = self.registry.canonicalize(name)
            if canonical not in selection:
                selection.append(canonical)
        if not selection:
            raise TenantConfigError("business_types", "at least one business type is required")
        return selection

    def build(self, tenant: TenantConfig, voice_profile: VoiceProfile | None = None) -> UnifiedTenantConfig:
        """Build the unified configuration for one tenant.

        Raises:
            SchemaNotFoundError: a selected business type lacks a schema layer.
            SchemaValidationError: registry data is malformed.
            CrossLayerConsistencyError: classification references missing folder categories.
        """
        business_types = self.resolve_selection(tenant.business_types)

        classification = merge_classification(
            [self.classification_loader.load(bt) for bt in business_types], business_types
        )
        behavior = merge_behavior(
            [self.behavior_loader.load(bt) for bt in business_types], business_types
        )
        folders = merge_folders(
            [self.folder_loader.load(bt) for bt in business_types], business_types
        )
        folder_schema = fill_team_slots(folders.schema, tenant.managers, tenant.suppliers)

        unresolved = unresolved_categories(classification.schema, folder_schema)
        if unresolved:
            raise CrossLayerConsistencyError(unresolved)

        behavior_schema, voice_applied = fuse_voice(
            behavior.schema,
            voice_profile,
            self.min_voice_sample_size,
            self.min_voice_confidence,
        )

        notes = classification.notes + behavior.notes + folders.notes
        logger.info(
            "Built config for tenant %s (%s): %d categories, %d merge notes",
            tenant.tenant_id,
            ", ".join(business_types),
            len(folder_schema.categories),
            len(notes),
        )
        return UnifiedTenantConfig(
            tenant=tenant,
            business_types=business_types,
            classification=classification.schema,
            behavior=behavior_schema,
            folders=folder_schema,
            notes=notes,
            voice_applied=voice_applied,
        )
