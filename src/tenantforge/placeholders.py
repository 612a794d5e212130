"""Placeholder map generation: unified config to escaped token values."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Iterator, Mapping, Sequence

from tenantforge.credentials import looks_like_placeholder
from tenantforge.errors import CredentialResolutionError, PlaceholderCollisionError
from tenantforge.escaping import escape, sanitize_workflow_name
from tenantforge.merge.text import human_join
from tenantforge.models import PartialProvisioningWarning, ProviderKind, UnifiedTenantConfig
from tenantforge import prompts

logger = logging.getLogger(__name__)

TOKEN_OPEN = "<<<"
TOKEN_CLOSE = ">>>"

MAX_MANAGERS = 5
MAX_SUPPLIERS = 10

CREDENTIAL_TOKENS: dict[ProviderKind, str] = {
    ProviderKind.MAILBOX: "CRED_MAILBOX_ID",
    ProviderKind.REPLY_ENGINE: "CRED_REPLY_ENGINE_ID",
    ProviderKind.METRICS_STORE: "CRED_METRICS_STORE_ID",
}

_NON_TOKEN = re.compile(r"[^A-Z0-9]+")


def token(name: str) -> str:
    """Wrap a token name in the template delimiters."""
    return f"{TOKEN_OPEN}{name}{TOKEN_CLOSE}"


def token_name(text: str) -> str:
    """Upper-case, with every run of non-alphanumerics collapsed to '_'."""
    return _NON_TOKEN.sub("_", text.upper()).strip("_")


def folder_path(path: Sequence[str]) -> str:
    return "/".join(path)


def folder_token(path: Sequence[str] | str, disambiguate: bool = False) -> str:
    """Token name for a folder category path.

    With ``disambiguate``, a short stable digest of the raw path is
    appended so names that normalize alike still get distinct tokens.

    >>> folder_token(("URGENT", "No Power"))
    'LABEL_URGENT_NO_POWER_ID'
    """
    if isinstance(path, str):
        path = path.split("/")
    base = token_name("_".join(path))
    if disambiguate:
        digest = hashlib.sha1(folder_path(path).encode("utf-8")).hexdigest()[:6].upper()
        base = f"{base}_{digest}" if base else digest
    return f"LABEL_{base}_ID"


def folder_tokens(paths: Sequence[Sequence[str]]) -> dict[str, str]:
    """Deterministic token per folder path, in path order.

    A path whose token is already taken, or with a segment that has no
    ASCII letters or digits (e.g. a manager named in another script),
    gets the disambiguated form.
    """
    tokens: dict[str, str] = {}
    taken: set[str] = set()
    for path in paths:
        tok = folder_token(path)
        if tok in taken or any(not token_name(part) for part in path):
            tok = folder_token(path, disambiguate=True)
        tokens[folder_path(path)] = tok
        taken.add(tok)
    return tokens


class PlaceholderMap(Mapping[str, str]):
    """Token name to escaped value.

    Values are escaped exactly once, in ``add``. Adding a second value
    for a token that came from a different source raises
    PlaceholderCollisionError. Provisioning warnings ride along.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._sources: dict[str, str] = {}
        self.warnings: list[PartialProvisioningWarning] = []

    def add(self, name: str, raw: object, source: str | None = None) -> None:
        value = escape(raw)
        source = source or name
        if name in self._values and (self._sources[name] != source or self._values[name] != value):
            raise PlaceholderCollisionError(name, self._sources[name], source)
        self._values[name] = value
        self._sources[name] = source

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)


def _lookup_ci(mapping: Mapping[str, str], key: str) -> str:
    if key in mapping:
        return mapping[key]
    folded = key.casefold()
    for candidate, value in mapping.items():
        if candidate.casefold() == folded:
            return value
    return ""


def _credential_id(ids: Mapping, kind: ProviderKind, tenant_id: str) -> str:
    value = ids.get(kind) or ids.get(kind.value) or ""
    if not value:
        raise CredentialResolutionError(tenant_id, kind.value, "no credential id supplied")
    if looks_like_placeholder(value):
        raise CredentialResolutionError(tenant_id, kind.value, f"placeholder id {value!r}")
    return value


def _add_identity(placeholders: PlaceholderMap, config: UnifiedTenantConfig) -> None:
    tenant = config.tenant
    business = tenant.business
    contact = tenant.contact
    rules = tenant.rules
    fixed = {
        "TENANT_ID": tenant.tenant_id,
        "BUSINESS_NAME": business.name,
        "WORKFLOW_NAME": sanitize_workflow_name(business.name),
        "LEGAL_NAME": business.legal_name or business.name,
        "TAX_ID": business.tax_id,
        "BUSINESS_ADDRESS": business.address,
        "SERVICE_AREA": business.service_area,
        "TIMEZONE": business.timezone,
        "CURRENCY": business.currency,
        "EMAIL_DOMAIN": business.email_domain,
        "WEBSITE": business.website,
        "CONTACT_NAME": contact.name,
        "CONTACT_ROLE": contact.role,
        "CONTACT_EMAIL": contact.email,
        "AFTER_HOURS_PHONE": contact.after_hours_phone,
        "MAILBOX_PROVIDER": tenant.mailbox_provider,
        "BUSINESS_TYPES": human_join(config.business_types),
        "PRIMARY_BUSINESS_TYPE": config.primary_business_type,
        "SIGNATURE_BLOCK": prompts.signature_block(config),
        "REPLY_TONE": rules.tone or config.behavior.voice.tone,
        "RESPONSE_SLA": rules.sla,
        "ESCALATION_CONTACT": rules.escalation_contact or contact.name,
        "BUSINESS_HOURS": prompts.business_hours_text(config),
        "HOLIDAYS": ", ".join(rules.holidays),
        "LANGUAGE": rules.language,
        "ALLOW_PRICING": "true" if config.allow_pricing else "false",
        "PHONE_PROVIDER_SENDERS": ", ".join(rules.phone_provider_senders),
        "CRM_ALERT_SENDERS": ", ".join(rules.crm_alert_senders),
        "URGENT_KEYWORDS": ", ".join(rules.urgent_keywords),
    }
    for name, value in fixed.items():
        placeholders.add(name, value)


def _add_team(placeholders: PlaceholderMap, config: UnifiedTenantConfig) -> None:
    tenant = config.tenant
    placeholders.add("MANAGERS_TEXT", prompts.managers_text(config))
    placeholders.add("SUPPLIERS_TEXT", prompts.suppliers_text(config))
    placeholders.add("SERVICE_CATALOG_TEXT", prompts.services_text(config))

    for i in range(1, MAX_MANAGERS + 1):
        manager = tenant.managers[i - 1] if i <= len(tenant.managers) else None
        placeholders.add(f"MANAGER_{i}_NAME", manager.name if manager else "")
        placeholders.add(f"MANAGER_{i}_EMAIL", manager.email if manager else "")
        placeholders.add(f"MANAGER_{i}_ROLE", manager.role if manager else "")

    supplier_domains: dict[str, str] = {}
    for i in range(1, MAX_SUPPLIERS + 1):
        supplier = tenant.suppliers[i - 1] if i <= len(tenant.suppliers) else None
        placeholders.add(f"SUPPLIER_{i}_NAME", supplier.name if supplier else "")
        placeholders.add(f"SUPPLIER_{i}_EMAIL", supplier.email if supplier else "")
        placeholders.add(f"SUPPLIER_{i}_DOMAINS", ", ".join(supplier.domains) if supplier else "")
        if supplier:
            for domain in supplier.domains:
                supplier_domains.setdefault(domain.lower(), supplier.name)
    placeholders.add("SUPPLIER_DOMAINS", json.dumps(supplier_domains))


def _add_ai_layers(placeholders: PlaceholderMap, config: UnifiedTenantConfig) -> None:
    classification = config.classification
    behavior = config.behavior
    placeholders.add("AI_CLASSIFICATION_PROMPT", prompts.build_classification_prompt(config))
    placeholders.add("AI_REPLY_PROMPT", prompts.build_reply_prompt(config))
    placeholders.add("AI_INTENT_MAPPING", json.dumps(classification.intents))
    placeholders.add("AI_CATEGORIES", ", ".join(c.name for c in classification.categories))
    placeholders.add("BEHAVIOR_VOICE_TONE", behavior.voice.tone)
    placeholders.add("BEHAVIOR_GOALS", "\n".join(f"- {goal}" for goal in behavior.goals))
    placeholders.add("BEHAVIOR_UPSELL_TEXT", behavior.upsell)
    placeholders.add("BEHAVIOR_FOLLOWUP_TEXT", behavior.follow_up)
    placeholders.add("VOICE_SOURCE", behavior.voice_source)


def _add_folders(
    placeholders: PlaceholderMap,
    config: UnifiedTenantConfig,
    folder_ids: Mapping[str, str],
) -> None:
    label_map: dict[str, str] = {}
    for name, tok in folder_tokens(config.folders.paths()).items():
        label_id = _lookup_ci(folder_ids, name)
        placeholders.add(tok, label_id, source=name)
        if label_id:
            label_map[name] = label_id
        else:
            placeholders.warnings.append(PartialProvisioningWarning(category=name, token=tok))
    placeholders.add("LABEL_MAP", json.dumps(label_map))
    if placeholders.warnings:
        logger.warning(
            "%d folder categories have no provisioned id for tenant %s",
            len(placeholders.warnings),
            config.tenant.tenant_id,
        )


def generate_placeholders(
    config: UnifiedTenantConfig,
    credential_ids: Mapping,
    folder_ids: Mapping[str, str] | None = None,
) -> PlaceholderMap:
    """Flatten a unified config into a PlaceholderMap.

    Args:
        config: output of SchemaIntegrationBridge.build
        credential_ids: one id per ProviderKind (enum member or its value)
        folder_ids: external label id per folder path ('URGENT/No Power')

    Raises:
        CredentialResolutionError: a credential id is missing or a placeholder.
        PlaceholderCollisionError: one token is given two different values.
    """
    placeholders = PlaceholderMap()
    for kind, name in CREDENTIAL_TOKENS.items():
        placeholders.add(name, _credential_id(credential_ids, kind, config.tenant.tenant_id))
    _add_identity(placeholders, config)
    _add_team(placeholders, config)
    _add_ai_layers(placeholders, config)
    _add_folders(placeholders, config, folder_ids or {})
    return placeholders
