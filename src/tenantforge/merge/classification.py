"""Layer 1 merge: union categories, keywords and intents."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tenantforge.merge.text import (
    MergeResult,
    merged_name,
    order_by_selection,
    union_casefold,
)
from tenantforge.models import MergeNote
from tenantforge.schemas.models import (
    PRIORITY_ORDER,
    ClassificationCategory,
    ClassificationSchema,
)

logger = logging.getLogger(__name__)


def _more_urgent(a: str, b: str) -> str:
    return a if PRIORITY_ORDER.index(a) <= PRIORITY_ORDER.index(b) else b


def _merge_tertiary(
    existing: dict[str, list[str]], incoming: dict[str, list[str]]
) -> dict[str, list[str]]:
    result = {key: list(values) for key, values in existing.items()}
    keys = {key.casefold(): key for key in result}
    for key, values in incoming.items():
        target = keys.get(key.casefold())
        if target is None:
            keys[key.casefold()] = key
            result[key] = union_casefold(values)
        else:
            result[target] = union_casefold(result[target], values)
    return result


def _category_dict(schema: ClassificationSchema, category: ClassificationCategory) -> dict:
    return {
        "name": category.name,
        "priority": category.priority,
        "keywords": union_casefold(category.keywords),
        "phrases": union_casefold(category.phrases),
        "secondary": union_casefold(category.secondary),
        "tertiary": _merge_tertiary({}, category.tertiary),
        "sla_minutes": schema.effective_sla(category),
    }


def merge_classification(
    schemas: Sequence[ClassificationSchema],
    business_types: Sequence[str],
) -> MergeResult[ClassificationSchema]:
    """Merge classification schemas in selection order.

    Shared categories union their keywords, phrases and secondary and
    tertiary names, take the most urgent priority and the shortest SLA.
    When two business types map one intent to different categories the
    first selected wins and a MergeNote records the conflict.
    """
    ordered = order_by_selection(schemas, business_types)
    notes: list[MergeNote] = []

    categories: dict[str, dict] = {}
    for schema in ordered:
        for category in schema.categories:
            key = category.name.casefold()
            incoming = _category_dict(schema, category)
            current = categories.get(key)
            if current is None:
                categories[key] = incoming
                continue
            current["priority"] = _more_urgent(current["priority"], incoming["priority"])
            current["keywords"] = union_casefold(current["keywords"], incoming["keywords"])
            current["phrases"] = union_casefold(current["phrases"], incoming["phrases"])
            current["secondary"] = union_casefold(current["secondary"], incoming["secondary"])
            current["tertiary"] = _merge_tertiary(current["tertiary"], incoming["tertiary"])
            current["sla_minutes"] = min(current["sla_minutes"], incoming["sla_minutes"])

    intents: dict[str, str] = {}
    owners: dict[str, str] = {}
    for schema in ordered:
        for intent, target in schema.intents.items():
            existing = intents.get(intent)
            if existing is None:
                intents[intent] = target
                owners[intent] = schema.business_type
            elif existing.casefold() != target.casefold():
                message = (
                    f"Intent {intent} maps to {existing} for {owners[intent]} and to "
                    f"{target} for {schema.business_type}; keeping {existing}"
                )
                logger.info(message)
                notes.append(MergeNote(layer="classification", message=message))

    tiers: dict[str, int] = {}
    for schema in ordered:
        for tier in PRIORITY_ORDER:
            minutes = schema.escalation.sla_for(tier)
            tiers[tier] = min(tiers.get(tier, minutes), minutes)

    merged = ClassificationSchema(
        business_type=merged_name(business_types),
        categories=list(categories.values()),
        intents=intents,
        escalation={"tiers": tiers},
    )
    return MergeResult(schema=merged, notes=notes)
