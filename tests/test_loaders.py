"""Tests for the per-layer schema loaders."""

import pytest

from tenantforge.errors import SchemaNotFoundError, SchemaValidationError
from tenantforge.schemas.loaders import BehaviorLoader, ClassificationLoader, FolderLoader
from tenantforge.schemas.registry import SchemaRegistry


def _registry(**layers):
    behavior = {"voice": {"tone": "Plain"}}
    entry = {
        "classification": {"categories": [{"name": "MISC"}]},
        "behavior": behavior,
        "folders": {"categories": [{"name": "MISC"}]},
    }
    entry.update(layers)
    return SchemaRegistry(common={}, entries={"Builder": entry})


class TestClassificationLoader:
    def test_type_rules_overlay_common(self, registry):
        schema = ClassificationLoader(registry).load("Electrician")
        urgent = schema.category("URGENT")
        assert urgent.priority == "critical"
        assert "No Power" in urgent.secondary
        assert "Electrical Hazard" in urgent.secondary
        assert schema.effective_sla(urgent) == 15

    def test_common_categories_present(self, registry):
        schema = ClassificationLoader(registry).load("Plumber")
        banking = schema.category("banking")
        assert banking is not None
        assert banking.tertiary["e-Transfer"] == ["Transfer Sent", "Transfer Received"]
        assert schema.category("RECRUITMENT") is not None

    def test_intents_merged(self, registry):
        schema = ClassificationLoader(registry).load("Electrician")
        assert schema.intents["ai.permit_request"] == "PERMITS"
        assert schema.intents["ai.general"] == "MISC"

    def test_escalation_tiers_merged(self, registry):
        schema = ClassificationLoader(registry).load("Electrician")
        assert schema.escalation.sla_for("critical") == 30
        assert schema.escalation.sla_for("high") == 240

    def test_tier_sla_used_without_override(self, registry):
        schema = ClassificationLoader(registry).load("Electrician")
        assert schema.effective_sla(schema.category("SERVICE")) == 240

    def test_cached_and_alias_aware(self, registry):
        loader = ClassificationLoader(registry)
        assert loader.load("Electrician") is loader.load("electrical")

    def test_business_type_is_canonical(self, registry):
        assert ClassificationLoader(registry).load("pools and spas").business_type == "Pools & Spas"

    def test_unknown_type(self, registry):
        with pytest.raises(SchemaNotFoundError):
            ClassificationLoader(registry).load("Bakery")

    def test_empty_category_name_rejected(self):
        registry = _registry(classification={"categories": [{"name": "  "}]})
        with pytest.raises(SchemaValidationError) as exc_info:
            ClassificationLoader(registry).load("Builder")
        assert exc_info.value.source == "Builder/classification"

    def test_bad_priority_rejected(self):
        registry = _registry(classification={"categories": [{"name": "X", "priority": "whenever"}]})
        with pytest.raises(SchemaValidationError) as exc_info:
            ClassificationLoader(registry).load("Builder")
        paths = [path for path, _ in exc_info.value.problems]
        assert any("priority" in path for path in paths)


class TestBehaviorLoader:
    def test_static_voice(self, registry):
        schema = BehaviorLoader(registry).load("Electrician")
        assert schema.voice.empathy == pytest.approx(0.7)
        assert schema.voice_source == "default"
        assert schema.allow_pricing is False
        assert "URGENT" in schema.category_language

    def test_level_out_of_range(self):
        registry = _registry(behavior={"voice": {"tone": "Loud", "empathy": 1.5}})
        with pytest.raises(SchemaValidationError) as exc_info:
            BehaviorLoader(registry).load("Builder")
        assert ("voice.empathy" in [path for path, _ in exc_info.value.problems])

    def test_unknown_field_rejected(self):
        registry = _registry(behavior={"voice": {"tone": "Plain"}, "mood": "sunny"})
        with pytest.raises(SchemaValidationError):
            BehaviorLoader(registry).load("Builder")

    def test_missing_layer(self):
        registry = SchemaRegistry(common={}, entries={"Builder": {"folders": {}}})
        with pytest.raises(SchemaNotFoundError):
            BehaviorLoader(registry).load("Builder")


class TestFolderLoader:
    def test_common_color_kept_on_override(self, registry):
        schema = FolderLoader(registry).load("Electrician")
        urgent = schema.category("URGENT")
        assert urgent.color.background == "#fb4c2f"
        assert urgent.common is True
        assert [s.name for s in urgent.subcategories] == [
            "No Power", "Electrical Hazard", "Sparking Outlet", "Burning Smell",
        ]

    def test_type_categories_appended(self, registry):
        schema = FolderLoader(registry).load("Electrician")
        permits = schema.category("PERMITS")
        assert permits.common is False
        assert schema.categories[-1].name == "PERMITS"

    def test_team_slots_unfilled(self, registry):
        schema = FolderLoader(registry).load("Electrician")
        subs = [s.name for s in schema.category("MANAGER").subcategories]
        assert subs[0] == "Unassigned"
        assert "{{Manager1}}" in subs

    def test_tertiary_paths(self, registry):
        schema = FolderLoader(registry).load("Plumber")
        assert schema.has_path("SERVICE/Water Heaters/Tankless")
        assert schema.has_path("banking/e-transfer")
        assert not schema.has_path("SERVICE/Water Heaters/Boiler")
        assert not schema.has_path("GARAGE")

    def test_duplicate_subcategory_rejected(self):
        registry = _registry(folders={"categories": [{"name": "MISC", "subcategories": ["A", "a"]}]})
        with pytest.raises(SchemaValidationError):
            FolderLoader(registry).load("Builder")

    def test_bad_color_rejected(self):
        registry = _registry(folders={"categories": [
            {"name": "MISC", "color": {"background": "red", "text": "#ffffff"}},
        ]})
        with pytest.raises(SchemaValidationError):
            FolderLoader(registry).load("Builder")
