"""Layer 3 merge: union folder hierarchies by category name."""

from __future__ import annotations

from collections.abc import Sequence

from tenantforge.merge.text import MergeResult, merged_name, order_by_selection, union_casefold
from tenantforge.models import MergeNote
from tenantforge.schemas.models import FolderCategory, FolderSchema


def _merge_subcategories(current: list[dict], category: FolderCategory) -> list[dict]:
    index = {sub["name"].casefold(): sub for sub in current}
    for sub in category.subcategories:
        existing = index.get(sub.name.casefold())
        if existing is None:
            entry = {"name": sub.name, "tertiary": union_casefold(sub.tertiary)}
            current.append(entry)
            index[sub.name.casefold()] = entry
        else:
            existing["tertiary"] = union_casefold(existing["tertiary"], sub.tertiary)
    return current


def merge_folders(
    schemas: Sequence[FolderSchema],
    business_types: Sequence[str],
) -> MergeResult[FolderSchema]:
    """Merge folder schemas in selection order.

    Categories are keyed case-insensitively so shared and common
    categories appear once; subcategory and tertiary lists are unioned
    by name. The first color seen for a category wins.
    """
    ordered = order_by_selection(schemas, business_types)
    notes: list[MergeNote] = []
    categories: dict[str, dict] = {}

    for schema in ordered:
        for category in schema.categories:
            key = category.name.casefold()
            current = categories.get(key)
            if current is None:
                current = {
                    "name": category.name,
                    "color": category.color,
                    "common": category.common,
                    "subcategories": [],
                }
                categories[key] = current
            else:
                current["common"] = current["common"] or category.common
                if current["color"] is None:
                    current["color"] = category.color
                elif category.color is not None and category.color != current["color"]:
                    notes.append(MergeNote(
                        layer="folders",
                        message=(
                            f"{category.name} color from {schema.business_type} ignored; "
                            f"keeping {current['color'].background}"
                        ),
                    ))
            _merge_subcategories(current["subcategories"], category)

    merged = FolderSchema(
        business_type=merged_name(business_types),
        categories=list(categories.values()),
    )
    return MergeResult(schema=merged, notes=notes)
