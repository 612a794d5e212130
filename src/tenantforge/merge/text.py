"""Text helpers shared by the mergers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from tenantforge.models import MergeNote

T = TypeVar("T")

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class MergeResult(Generic[T]):
    schema: T
    notes: list[MergeNote] = field(default_factory=list)


def union_casefold(*groups: Iterable[str]) -> list[str]:
    """Order-preserving union, deduplicated case-insensitively (first spelling kept)."""
    seen: set[str] = set()
    result: list[str] = []
    for group in groups:
        for item in group:
            key = item.strip().casefold()
            if key and key not in seen:
                seen.add(key)
                result.append(item.strip())
    return result


def normalize_sentence(text: str) -> str:
    """Comparison key for goals: case, spacing and trailing punctuation ignored."""
    return _WHITESPACE.sub(" ", text).strip().rstrip(".!").casefold()


def split_sentences(text: str) -> list[str]:
    text = _WHITESPACE.sub(" ", text or "").strip()
    if not text:
        return []
    return [s for s in _SENTENCE_END.split(text) if s]


def join_unique_sentences(*texts: str) -> str:
    """Concatenate texts, dropping sentences already present verbatim."""
    seen: set[str] = set()
    sentences: list[str] = []
    for text in texts:
        for sentence in split_sentences(text):
            if sentence not in seen:
                seen.add(sentence)
                sentences.append(sentence)
    return " ".join(sentences)


def human_join(items: Sequence[str]) -> str:
    """'A', 'A and B', 'A, B and C'."""
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def order_by_selection(schemas: Sequence[T], business_types: Sequence[str]) -> list[T]:
    """Arrange schemas in selection order, one per selected business type."""
    if not business_types:
        raise ValueError("business_types must not be empty")
    by_type = {getattr(s, "business_type"): s for s in schemas}
    missing = [bt for bt in business_types if bt not in by_type]
    if missing:
        raise ValueError(f"No schema supplied for: {', '.join(missing)}")
    return [by_type[bt] for bt in business_types]


def merged_name(business_types: Sequence[str]) -> str:
    return " + ".join(business_types)
