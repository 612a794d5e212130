"""Layer 2 merge: blend voices, goals and category language."""

from __future__ import annotations

from collections.abc import Sequence

from tenantforge.merge.text import (
    MergeResult,
    human_join,
    join_unique_sentences,
    merged_name,
    normalize_sentence,
    order_by_selection,
)
from tenantforge.schemas.models import BehaviorSchema

MULTI_SERVICE_GOALS = (
    "Coordinate between {types} services when a customer's needs span more than one area.",
    "Let the customer know a single visit can cover {types} work when the job allows it.",
)


def _average(values: list[float]) -> float:
    return round(sum(values) / len(values), 3)


def _union_goals(groups: list[list[str]]) -> list[str]:
    seen: set[str] = set()
    goals: list[str] = []
    for group in groups:
        for goal in group:
            key = normalize_sentence(goal)
            if key and key not in seen:
                seen.add(key)
                goals.append(goal)
    return goals


def merge_behavior(
    schemas: Sequence[BehaviorSchema],
    business_types: Sequence[str],
) -> MergeResult[BehaviorSchema]:
    """Merge behavior schemas in selection order.

    Voice levels are averaged; the first selected tone leads, qualified
    with the multi-service expertise of all selected types. Fields that
    cannot be blended (the pricing flag) come from the first selection.
    """
    ordered = order_by_selection(schemas, business_types)
    primary = ordered[0]

    tone = primary.voice.tone
    goal_groups = [list(s.goals) for s in ordered]
    if len(ordered) > 1:
        types = human_join(list(business_types))
        tone = f"{tone} with multi-service expertise across {types}"
        goal_groups.append([goal.format(types=types) for goal in MULTI_SERVICE_GOALS])

    language: dict[str, str] = {}
    keys: dict[str, str] = {}
    for schema in ordered:
        for category, text in schema.category_language.items():
            target = keys.setdefault(category.casefold(), category)
            language[target] = join_unique_sentences(language.get(target, ""), text)

    merged = BehaviorSchema(
        business_type=merged_name(business_types),
        voice={
            "tone": tone,
            "empathy": _average([s.voice.empathy for s in ordered]),
            "formality": _average([s.voice.formality for s in ordered]),
            "directness": _average([s.voice.directness for s in ordered]),
        },
        goals=_union_goals(goal_groups),
        category_language=language,
        upsell=join_unique_sentences(*(s.upsell for s in ordered)),
        follow_up=join_unique_sentences(*(s.follow_up for s in ordered)),
        allow_pricing=primary.allow_pricing,
    )
    return MergeResult(schema=merged)
