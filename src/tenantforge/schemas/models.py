"""Pydantic models for the three schema layers."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
HexColor = Annotated[str, StringConstraints(pattern=r"^#[0-9a-fA-F]{6}$")]
Level = Annotated[float, Field(ge=0.0, le=1.0)]
Priority = Literal["critical", "high", "normal", "low"]

PRIORITY_ORDER: tuple[str, ...] = ("critical", "high", "normal", "low")

DEFAULT_SLA_MINUTES: dict[str, int] = {
    "critical": 60,
    "high": 240,
    "normal": 1440,
    "low": 2880,
}


def _duplicates(names: list[str]) -> list[str]:
    seen: set[str] = set()
    dupes: list[str] = []
    for name in names:
        key = name.casefold()
        if key in seen:
            dupes.append(name)
        seen.add(key)
    return dupes


class _Schema(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Layer 1: classification
# ---------------------------------------------------------------------------

class ClassificationCategory(_Schema):
    name: Name
    priority: Priority = "normal"
    keywords: list[Name] = Field(default_factory=list)
    phrases: list[Name] = Field(default_factory=list)
    secondary: list[Name] = Field(default_factory=list)
    tertiary: dict[Name, list[Name]] = Field(default_factory=dict)
    sla_minutes: int | None = Field(default=None, gt=0)


class EscalationPolicy(_Schema):
    """Response-time SLA in minutes per priority tier."""

    tiers: dict[Priority, Annotated[int, Field(gt=0)]] = Field(
        default_factory=lambda: dict(DEFAULT_SLA_MINUTES)
    )

    def sla_for(self, priority: str) -> int:
        return self.tiers.get(priority, DEFAULT_SLA_MINUTES[priority])


class ClassificationSchema(_Schema):
    business_type: Name
    categories: list[ClassificationCategory] = Field(min_length=1)
    intents: dict[Name, Name] = Field(default_factory=dict)
    escalation: EscalationPolicy = Field(default_factory=EscalationPolicy)

    @model_validator(mode="after")
    def _unique_categories(self) -> ClassificationSchema:
        dupes = _duplicates([c.name for c in self.categories])
        if dupes:
            raise ValueError(f"duplicate category names: {', '.join(dupes)}")
        return self

    def category(self, name: str) -> ClassificationCategory | None:
        key = name.casefold()
        for category in self.categories:
            if category.name.casefold() == key:
                return category
        return None

    def effective_sla(self, category: ClassificationCategory) -> int:
        """SLA minutes for a category: its own override or its tier's."""
        if category.sla_minutes is not None:
            return category.sla_minutes
        return self.escalation.sla_for(category.priority)


# ---------------------------------------------------------------------------
# Layer 2: behavior
# ---------------------------------------------------------------------------

class VoiceDescriptor(_Schema):
    tone: Name
    empathy: Level = 0.5
    formality: Level = 0.5
    directness: Level = 0.5


class LearnedPhrase(_Schema):
    text: Name
    confidence: Level = 0.0
    context: str = ""
    frequency: int = Field(default=0, ge=0)


class LearnedExample(_Schema):
    subject: str = ""
    body: str = ""


class BehaviorSchema(_Schema):
    business_type: Name
    voice: VoiceDescriptor
    goals: list[Name] = Field(default_factory=list)
    category_language: dict[Name, str] = Field(default_factory=dict)
    upsell: str = ""
    follow_up: str = ""
    allow_pricing: bool = False
    voice_source: Literal["default", "profile"] = "default"
    learned_phrases: list[LearnedPhrase] = Field(default_factory=list)
    examples: dict[str, list[LearnedExample]] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Layer 3: folders
# ---------------------------------------------------------------------------

class LabelColor(_Schema):
    background: HexColor
    text: HexColor


class Subcategory(_Schema):
    name: Name
    tertiary: list[Name] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_tertiary(self) -> Subcategory:
        dupes = _duplicates(self.tertiary)
        if dupes:
            raise ValueError(f"duplicate tertiary names: {', '.join(dupes)}")
        return self


class FolderCategory(_Schema):
    name: Name
    color: LabelColor | None = None
    common: bool = False
    subcategories: list[Subcategory] = Field(default_factory=list)

    @field_validator("subcategories", mode="before")
    @classmethod
    def _expand_shorthand(cls, value):
        # Allow bare strings for subcategories without a tertiary level.
        if isinstance(value, list):
            return [{"name": v} if isinstance(v, str) else v for v in value]
        return value

    @model_validator(mode="after")
    def _unique_subcategories(self) -> FolderCategory:
        dupes = _duplicates([s.name for s in self.subcategories])
        if dupes:
            raise ValueError(f"duplicate subcategory names: {', '.join(dupes)}")
        return self

    def subcategory(self, name: str) -> Subcategory | None:
        key = name.casefold()
        for sub in self.subcategories:
            if sub.name.casefold() == key:
                return sub
        return None


class FolderSchema(_Schema):
    business_type: Name
    categories: list[FolderCategory] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_categories(self) -> FolderSchema:
        dupes = _duplicates([c.name for c in self.categories])
        if dupes:
            raise ValueError(f"duplicate category names: {', '.join(dupes)}")
        return self

    def category(self, name: str) -> FolderCategory | None:
        key = name.casefold()
        for category in self.categories:
            if category.name.casefold() == key:
                return category
        return None

    def paths(self) -> list[tuple[str, ...]]:
        """All category paths, parents before children, in schema order."""
        result: list[tuple[str, ...]] = []
        for category in self.categories:
            result.append((category.name,))
            for sub in category.subcategories:
                result.append((category.name, sub.name))
                for tertiary in sub.tertiary:
                    result.append((category.name, sub.name, tertiary))
        return result

    def has_path(self, path: str) -> bool:
        """Check a 'Category/Sub/Tertiary' reference, case-insensitively."""
        parts = [p.strip() for p in path.split("/")]
        category = self.category(parts[0])
        if category is None:
            return False
        if len(parts) == 1:
            return True
        sub = category.subcategory(parts[1])
        if sub is None:
            return False
        if len(parts) == 2:
            return True
        if len(parts) == 3:
            return parts[2].casefold() in (t.casefold() for t in sub.tertiary)
        return False
