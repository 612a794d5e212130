"""Tests for the classification merger."""

import pytest

from tenantforge.merge import merge_classification
from tenantforge.schemas.loaders import ClassificationLoader
from tenantforge.schemas.models import ClassificationSchema


@pytest.fixture
def load(registry):
    return ClassificationLoader(registry).load


def _schema(business_type, categories, intents=None, tiers=None):
    data = {"business_type": business_type, "categories": categories, "intents": intents or {}}
    if tiers:
        data["escalation"] = {"tiers": tiers}
    return ClassificationSchema.model_validate(data)


def test_single_type_keeps_categories(load):
    schema = load("Electrician")
    merged = merge_classification([schema], ["Electrician"]).schema
    assert [c.name for c in merged.categories] == [c.name for c in schema.categories]
    assert merged.intents == schema.intents


def test_merge_with_itself_is_idempotent(load):
    schema = load("Plumber")
    once = merge_classification([schema], ["Plumber"]).schema
    twice = merge_classification([schema, schema], ["Plumber", "Plumber"]).schema
    assert twice.categories == once.categories
    assert twice.intents == once.intents
    assert twice.escalation == once.escalation


def test_urgent_union(load):
    result = merge_classification([load("Electrician"), load("Plumber")], ["Electrician", "Plumber"])
    urgent = result.schema.category("URGENT")
    assert "No Power" in urgent.secondary
    assert "Burst Pipe" in urgent.secondary
    assert urgent.priority == "critical"
    assert urgent.sla_minutes == 15
    assert result.notes == []


def test_keywords_are_superset_without_duplicates(load):
    electrician, plumber = load("Electrician"), load("Plumber")
    merged = merge_classification([electrician, plumber], ["Electrician", "Plumber"]).schema
    for source in (electrician, plumber):
        for category in source.categories:
            merged_keywords = {k.casefold() for k in merged.category(category.name).keywords}
            assert {k.casefold() for k in category.keywords} <= merged_keywords
    keywords = [k.casefold() for k in merged.category("URGENT").keywords]
    assert keywords.count("emergency") == 1


def test_no_duplicate_category_names(load):
    merged = merge_classification(
        [load("Electrician"), load("Plumber"), load("HVAC")],
        ["Electrician", "Plumber", "HVAC"],
    ).schema
    names = [c.name.casefold() for c in merged.categories]
    assert len(names) == len(set(names))


def test_tertiary_union(load):
    merged = merge_classification([load("Electrician"), load("Plumber")], ["Electrician", "Plumber"]).schema
    service = merged.category("SERVICE")
    assert service.tertiary["Installations"] == ["EV Chargers", "Panel Upgrades", "Generators"]
    assert service.tertiary["Water Heaters"] == ["Tank", "Tankless"]
    assert merged.category("BANKING").tertiary["e-Transfer"] == ["Transfer Sent", "Transfer Received"]


def test_type_specific_categories_kept(load):
    merged = merge_classification([load("Electrician"), load("Pools & Spas")], ["Electrician", "Pools & Spas"]).schema
    assert merged.category("PERMITS") is not None
    assert merged.category("SEASONAL") is not None


def test_intent_conflict_first_selection_wins(load):
    result = merge_classification([load("HVAC"), load("Pools & Spas")], ["HVAC", "Pools & Spas"])
    assert result.schema.intents["ai.maintenance_request"] == "SERVICE"
    assert len(result.notes) == 1
    assert result.notes[0].layer == "classification"
    assert "ai.maintenance_request" in result.notes[0].message

    reversed_result = merge_classification([load("HVAC"), load("Pools & Spas")], ["Pools & Spas", "HVAC"])
    assert reversed_result.schema.intents["ai.maintenance_request"] == "SEASONAL"


def test_most_urgent_priority_and_shortest_sla():
    a = _schema("A", [{"name": "LEADS", "priority": "normal", "keywords": ["quote"]}])
    b = _schema("B", [{"name": "leads", "priority": "high", "sla_minutes": 90, "keywords": ["Quote", "bid"]}])
    merged = merge_classification([a, b], ["A", "B"]).schema
    leads = merged.category("LEADS")
    assert leads.name == "LEADS"
    assert leads.priority == "high"
    assert leads.sla_minutes == 90
    assert leads.keywords == ["quote", "bid"]


def test_escalation_tiers_take_minimum():
    a = _schema("A", [{"name": "X"}], tiers={"critical": 45, "high": 120})
    b = _schema("B", [{"name": "X"}], tiers={"critical": 30, "high": 300})
    merged = merge_classification([a, b], ["A", "B"]).schema
    assert merged.escalation.tiers["critical"] == 30
    assert merged.escalation.tiers["high"] == 120


def test_merged_name_follows_selection(load):
    merged = merge_classification([load("Plumber"), load("Electrician")], ["Electrician", "Plumber"]).schema
    assert merged.business_type == "Electrician + Plumber"
    assert merged.categories[-1].name == "PERMITS"


def test_empty_selection_rejected(load):
    with pytest.raises(ValueError):
        merge_classification([load("Plumber")], [])


def test_selection_without_schema_rejected(load):
    with pytest.raises(ValueError, match="HVAC"):
        merge_classification([load("Plumber")], ["Plumber", "HVAC"])
