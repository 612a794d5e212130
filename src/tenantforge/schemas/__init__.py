"""Per-business-type schema layers: classification, behavior, folders."""

from tenantforge.schemas.loaders import BehaviorLoader, ClassificationLoader, FolderLoader
from tenantforge.schemas.models import BehaviorSchema, ClassificationSchema, FolderSchema
from tenantforge.schemas.registry import SchemaRegistry

__all__ = [
    "BehaviorLoader",
    "BehaviorSchema",
    "ClassificationLoader",
    "ClassificationSchema",
    "FolderLoader",
    "FolderSchema",
    "SchemaRegistry",
]
