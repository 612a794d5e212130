"""Deterministic mergers combining per-business-type schemas."""

from tenantforge.merge.behavior import merge_behavior
from tenantforge.merge.classification import merge_classification
from tenantforge.merge.folders import merge_folders
from tenantforge.merge.text import MergeResult

__all__ = ["MergeResult", "merge_behavior", "merge_classification", "merge_folders"]
