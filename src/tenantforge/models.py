"""Dataclasses for tenant records, voice profiles and build results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from tenantforge.errors import TenantConfigError

if TYPE_CHECKING:
    from tenantforge.schemas.models import BehaviorSchema, ClassificationSchema, FolderSchema

MAILBOX_PROVIDERS = ("gmail", "outlook")


class ProviderKind(str, Enum):
    MAILBOX = "mailbox"
    REPLY_ENGINE = "reply_engine"
    METRICS_STORE = "metrics_store"


@dataclass
class BusinessInfo:
    name: str
    legal_name: str = ""
    tax_id: str = ""
    address: str = ""
    service_area: str = ""
    timezone: str = "UTC"
    currency: str = "USD"
    email_domain: str = ""
    website: str = ""


@dataclass
class ContactInfo:
    name: str = ""
    role: str = ""
    email: str = ""
    after_hours_phone: str = ""


@dataclass
class Manager:
    name: str
    email: str = ""
    role: str = ""
    phone: str = ""
    department: str = ""


@dataclass
class Supplier:
    name: str
    email: str = ""
    domains: list[str] = field(default_factory=list)
    category: str = ""
    phone: str = ""
    contact_person: str = ""


@dataclass
class Service:
    name: str
    description: str = ""
    pricing_type: str = ""  # 'fixed' | 'hourly' | 'quote'
    price: float = 0.0
    category: str = ""


@dataclass
class BusinessHours:
    days: str  # e.g. 'Mon-Fri'
    open: str = ""
    close: str = ""


@dataclass
class BusinessRules:
    tone: str = ""
    sla: str = ""
    escalation_contact: str = ""
    business_hours: list[BusinessHours] = field(default_factory=list)
    holidays: list[str] = field(default_factory=list)
    language: str = "en"
    allow_pricing: bool | None = None  # None defers to the behavior schema
    phone_provider_senders: list[str] = field(default_factory=list)
    crm_alert_senders: list[str] = field(default_factory=list)
    urgent_keywords: list[str] = field(default_factory=list)


@dataclass
class TenantConfig:
    tenant_id: str
    business_types: list[str]
    business: BusinessInfo
    mailbox_provider: str = "gmail"
    contact: ContactInfo = field(default_factory=ContactInfo)
    managers: list[Manager] = field(default_factory=list)
    suppliers: list[Supplier] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)
    rules: BusinessRules = field(default_factory=BusinessRules)
    signature: str = ""


@dataclass
class SignaturePhrase:
    text: str
    confidence: float = 0.0
    context: str = ""
    frequency: int = 0


@dataclass
class ExampleReply:
    subject: str = ""
    body: str = ""


@dataclass
class VoiceProfile:
    """Reply style learned from a tenant's historical sent email."""

    empathy: float = 0.5
    formality: float = 0.5
    directness: float = 0.5
    confidence: float = 0.0
    sample_size: int = 0
    signature_phrases: list[SignaturePhrase] = field(default_factory=list)
    examples: dict[str, list[ExampleReply]] = field(default_factory=dict)


@dataclass(frozen=True)
class MergeNote:
    layer: str
    message: str


@dataclass(frozen=True)
class PartialProvisioningWarning:
    """A folder category received no external identifier."""

    category: str
    token: str

    def __str__(self) -> str:
        return f"No label id provisioned for {self.category!r}; {self.token} left empty"


@dataclass
class UnifiedTenantConfig:
    tenant: TenantConfig
    business_types: list[str]
    classification: ClassificationSchema
    behavior: BehaviorSchema
    folders: FolderSchema
    notes: list[MergeNote] = field(default_factory=list)
    voice_applied: bool = False

    @property
    def primary_business_type(self) -> str:
        return self.business_types[0]

    @property
    def allow_pricing(self) -> bool:
        if self.tenant.rules.allow_pricing is not None:
            return self.tenant.rules.allow_pricing
        return self.behavior.allow_pricing


def _from_dict(data_class: type, data: dict):
    from dacite import Config, DaciteError, DaciteFieldError, from_dict

    try:
        return from_dict(data_class=data_class, data=data, config=Config(cast=[float], strict=True))
    except DaciteFieldError as e:
        raise TenantConfigError(e.field_path or "", str(e)) from e
    except DaciteError as e:
        raise TenantConfigError("", str(e)) from e
    except (TypeError, ValueError) as e:
        raise TenantConfigError("", f"cannot convert value: {e}") from e


def tenant_from_dict(data: dict) -> TenantConfig:
    """Validate a raw tenant record and convert it to a TenantConfig.

    Raises:
        TenantConfigError: with the offending field path.
    """
    if not isinstance(data, dict):
        raise TenantConfigError("", "tenant record must be a mapping")
    tenant = _from_dict(TenantConfig, data)

    if not tenant.tenant_id.strip():
        raise TenantConfigError("tenant_id", "must not be empty")
    if not tenant.business_types:
        raise TenantConfigError("business_types", "at least one business type is required")
    if not tenant.business.name.strip():
        raise TenantConfigError("business.name", "must not be empty")
    if tenant.mailbox_provider not in MAILBOX_PROVIDERS:
        raise TenantConfigError(
            "mailbox_provider",
            f"expected one of {', '.join(MAILBOX_PROVIDERS)}, got {tenant.mailbox_provider!r}",
        )
    for i, manager in enumerate(tenant.managers):
        if not manager.name.strip():
            raise TenantConfigError(f"managers.{i}.name", "must not be empty")
    for i, supplier in enumerate(tenant.suppliers):
        if not supplier.name.strip():
            raise TenantConfigError(f"suppliers.{i}.name", "must not be empty")
    return tenant


def check_voice_profile(profile: VoiceProfile) -> VoiceProfile:
    """Reject voice metrics outside [0, 1] and negative sample sizes.

    Raises:
        TenantConfigError: with the offending field name.
    """
    for name in ("empathy", "formality", "directness", "confidence"):
        value = getattr(profile, name)
        if not 0.0 <= value <= 1.0:
            raise TenantConfigError(name, f"must be between 0 and 1, got {value}")
    if profile.sample_size < 0:
        raise TenantConfigError("sample_size", "must not be negative")
    for i, phrase in enumerate(profile.signature_phrases):
        if not 0.0 <= phrase.confidence <= 1.0:
            raise TenantConfigError(
                f"signature_phrases.{i}.confidence", f"must be between 0 and 1, got {phrase.confidence}"
            )
        if phrase.frequency < 0:
            raise TenantConfigError(f"signature_phrases.{i}.frequency", "must not be negative")
    return profile


def voice_profile_from_dict(data: dict) -> VoiceProfile:
    """Convert a raw voice profile record, rejecting metrics outside [0, 1]."""
    return check_voice_profile(_from_dict(VoiceProfile, data or {}))


def _read_yaml(path: str | Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_tenant(path: str | Path) -> TenantConfig:
    """Load a tenant record from a YAML (or JSON) file."""
    return tenant_from_dict(_read_yaml(path))


def load_voice_profile(path: str | Path) -> VoiceProfile:
    """Load a voice profile from a YAML (or JSON) file."""
    return voice_profile_from_dict(_read_yaml(path))
