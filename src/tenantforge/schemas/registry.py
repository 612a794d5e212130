"""Read-only registry of per-business-type schema definitions."""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Mapping
from pathlib import Path

import yaml

from tenantforge.errors import SchemaNotFoundError, SchemaValidationError

logger = logging.getLogger(__name__)

LAYERS = ("classification", "behavior", "folders")

BUILTIN_DIR = Path(__file__).parent / "data"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def business_type_key(name: str) -> str:
    """Normalize a business type name for lookup.

    Case, whitespace, punctuation and '&' vs 'and' are ignored, so
    'Pools & Spas', 'pools and spas' and 'POOLS-AND-SPAS' share a key.
    """
    text = name.casefold().replace("&", " and ")
    return _NON_ALNUM.sub("", text)


class SchemaRegistry:
    """Lookup of raw schema definitions keyed by canonical business type.

    ``common`` holds the category definitions shared by every business
    type; ``entries`` maps each canonical name to its layer definitions
    and aliases; ``fallbacks`` maps partially supported types to the
    canonical type whose schemas they borrow.
    """

    def __init__(
        self,
        common: Mapping,
        entries: Mapping[str, Mapping],
        fallbacks: Mapping[str, str] | None = None,
    ):
        self._common = copy.deepcopy(dict(common))
        self._entries = {name: copy.deepcopy(dict(entry)) for name, entry in entries.items()}
        self._keys: dict[str, str] = {}
        for name, entry in self._entries.items():
            self._keys[business_type_key(name)] = name
            for alias in entry.get("aliases", []) or []:
                self._keys.setdefault(business_type_key(alias), name)
        self._fallbacks: dict[str, str] = {}
        for name, target in (fallbacks or {}).items():
            if business_type_key(target) not in self._keys:
                raise SchemaValidationError("fallbacks", [(name, f"unknown target {target!r}")])
            self._fallbacks[business_type_key(name)] = self._keys[business_type_key(target)]

    @classmethod
    def from_directory(cls, path: str | Path) -> SchemaRegistry:
        """Load common.yaml and business/*.yaml from a registry directory."""
        root = Path(path)
        common_path = root / "common.yaml"
        common = _read_yaml(common_path) if common_path.exists() else {}

        entries: dict[str, dict] = {}
        for file in sorted((root / "business").glob("*.yaml")):
            data = _read_yaml(file)
            name = data.get("business_type")
            if not isinstance(name, str) or not name.strip():
                raise SchemaValidationError(file.name, [("business_type", "Field required")])
            entries[name.strip()] = data

        fallbacks = common.pop("fallbacks", None) or {}
        logger.debug("Loaded %d business types from %s", len(entries), root)
        return cls(common, entries, fallbacks)

    @classmethod
    def builtin(cls) -> SchemaRegistry:
        return cls.from_directory(BUILTIN_DIR)

    @property
    def business_types(self) -> list[str]:
        return list(self._entries)

    def aliases(self, business_type: str) -> list[str]:
        return list(self._entries[self.canonicalize(business_type)].get("aliases", []) or [])

    @property
    def fallbacks(self) -> dict[str, str]:
        return dict(self._fallbacks)

    def canonicalize(self, name: str) -> str:
        """Map any accepted name or synonym to its canonical business type.

        Raises:
            SchemaNotFoundError: the name is neither registered nor a configured fallback.
        """
        key = business_type_key(name or "")
        if key in self._keys:
            return self._keys[key]
        if key in self._fallbacks:
            target = self._fallbacks[key]
            logger.warning("Business type %r is partially supported; using %s schemas", name, target)
            return target
        raise SchemaNotFoundError(name)

    def common(self, layer: str) -> dict:
        return copy.deepcopy(self._common.get(layer) or {})

    def layer(self, business_type: str, layer: str) -> dict:
        """Raw definition of one layer for a canonical business type (a copy)."""
        entry = self._entries.get(business_type)
        if entry is None:
            raise SchemaNotFoundError(business_type)
        data = entry.get(layer)
        if data is None:
            raise SchemaNotFoundError(business_type, layer)
        return copy.deepcopy(data)


def _read_yaml(path: Path) -> dict:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise SchemaValidationError(path.name, [("", "top level must be a mapping")])
    return data
