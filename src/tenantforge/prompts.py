"""Prompt sections for the classification and reply-drafting nodes.

Each section is a pure function of the unified tenant config so it can be
tested on its own; the composed prompts join the non-empty sections.
"""

from __future__ import annotations

from tenantforge.merge.text import human_join
from tenantforge.models import UnifiedTenantConfig
from tenantforge.schemas.models import BehaviorSchema, ClassificationSchema

CLASSIFIER_ROLE = """You are the email classifier for {business_name}, a {business_types} business serving {service_area}.
Read each incoming email and assign exactly one primary category from the list below, plus a secondary and tertiary category when one applies."""

CLASSIFIER_OUTPUT = """Respond in JSON only:
{
  "primary_category": "one of the categories above",
  "secondary_category": "a listed subcategory or null",
  "tertiary_category": "a listed tertiary category or null",
  "intent": "one of the intents above",
  "confidence": 0.0 to 1.0,
  "ai_can_reply": true or false
}"""

REPLY_ROLE = """You draft email replies on behalf of {business_name} ({business_types}).
Write as a member of the team, in the voice described below. Never invent facts about schedules, prices or warranties."""

PRICING_ALLOWED = "You may quote prices from the service catalog when the customer asks."
PRICING_WITHHELD = "Do not quote prices. Offer to provide a written estimate instead."


def _level(value: float) -> str:
    if value < 0.34:
        return "low"
    if value < 0.67:
        return "moderate"
    return "high"


def format_minutes(minutes: int) -> str:
    """Human-readable SLA: '15 minutes', '1 hour', '2 days'."""
    if minutes % 1440 == 0 and minutes >= 2880:
        return f"{minutes // 1440} days"
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def _compose(*sections: str) -> str:
    return "\n\n".join(s.strip() for s in sections if s and s.strip())


# ---------------------------------------------------------------------------
# Shared sections
# ---------------------------------------------------------------------------

def signature_block(config: UnifiedTenantConfig) -> str:
    """Tenant signature, or one composed from contact details."""
    tenant = config.tenant
    if tenant.signature.strip():
        return tenant.signature.strip()
    lines = ["Best regards,"]
    if tenant.contact.name:
        lines.append(tenant.contact.name)
    lines.append(tenant.business.name)
    if tenant.contact.after_hours_phone:
        lines.append(tenant.contact.after_hours_phone)
    if tenant.business.website:
        lines.append(tenant.business.website)
    return "\n".join(lines)


def services_text(config: UnifiedTenantConfig) -> str:
    lines = []
    for service in config.tenant.services:
        line = f"- {service.name}"
        if service.description:
            line += f": {service.description}"
        if config.allow_pricing and service.price:
            unit = "/hr" if service.pricing_type == "hourly" else ""
            line += f" ({config.tenant.business.currency} {service.price:.2f}{unit})"
        lines.append(line)
    return "\n".join(lines)


def managers_text(config: UnifiedTenantConfig) -> str:
    lines = []
    for manager in config.tenant.managers:
        detail = ", ".join(x for x in (manager.role, manager.department) if x)
        line = manager.name + (f" ({detail})" if detail else "")
        if manager.email:
            line += f" <{manager.email}>"
        lines.append(line)
    return "\n".join(lines)


def suppliers_text(config: UnifiedTenantConfig) -> str:
    lines = []
    for supplier in config.tenant.suppliers:
        line = supplier.name
        if supplier.domains:
            line += f" ({', '.join(supplier.domains)})"
        elif supplier.email:
            line += f" <{supplier.email}>"
        lines.append(line)
    return "\n".join(lines)


def business_hours_text(config: UnifiedTenantConfig) -> str:
    return "; ".join(
        f"{h.days} {h.open}-{h.close}" if h.open and h.close else f"{h.days} closed"
        for h in config.tenant.rules.business_hours
    )


# ---------------------------------------------------------------------------
# Classification prompt sections
# ---------------------------------------------------------------------------

def classifier_role_section(config: UnifiedTenantConfig) -> str:
    business = config.tenant.business
    return CLASSIFIER_ROLE.format(
        business_name=business.name,
        business_types=human_join(config.business_types),
        service_area=business.service_area or "its local area",
    )


def category_table_section(schema: ClassificationSchema) -> str:
    """One block per primary category with keywords and subcategories."""
    blocks = ["CATEGORIES:"]
    for category in schema.categories:
        lines = [f"- {category.name} [{category.priority}]"]
        if category.keywords:
            lines.append(f"  Keywords: {', '.join(category.keywords)}")
        if category.phrases:
            lines.append(f"  Phrases: {'; '.join(category.phrases)}")
        if category.secondary:
            subs = []
            for sub in category.secondary:
                tertiary = next(
                    (v for k, v in category.tertiary.items() if k.casefold() == sub.casefold()),
                    [],
                )
                subs.append(f"{sub} ({', '.join(tertiary)})" if tertiary else sub)
            lines.append(f"  Subcategories: {', '.join(subs)}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def escalation_section(config: UnifiedTenantConfig) -> str:
    schema = config.classification
    rules = config.tenant.rules
    target = rules.escalation_contact or config.tenant.contact.name
    lines = ["ESCALATION RULES:"]
    for category in schema.categories:
        if category.priority not in ("critical", "high"):
            continue
        line = f"- {category.name}: respond within {format_minutes(schema.effective_sla(category))}"
        if target and category.priority == "critical":
            line += f" and notify {target}"
        lines.append(line)
    if rules.urgent_keywords:
        lines.append(f"- Always classify as URGENT when the email mentions: {', '.join(rules.urgent_keywords)}")
    if rules.sla:
        lines.append(f"- Standard response commitment: {rules.sla}")
    return "\n".join(lines) if len(lines) > 1 else ""


def intent_section(schema: ClassificationSchema) -> str:
    if not schema.intents:
        return ""
    lines = ["INTENT MAPPING:"]
    lines.extend(f"- {intent} -> {category}" for intent, category in schema.intents.items())
    return "\n".join(lines)


def team_section(config: UnifiedTenantConfig) -> str:
    parts = []
    managers = managers_text(config)
    if managers:
        parts.append("MANAGERS (route internal mail to MANAGER/<name>):\n" + managers)
    suppliers = suppliers_text(config)
    if suppliers:
        parts.append("SUPPLIERS (route vendor mail to SUPPLIERS/<name>):\n" + suppliers)
    return "\n\n".join(parts)


def special_senders_section(config: UnifiedTenantConfig) -> str:
    rules = config.tenant.rules
    lines = []
    if rules.phone_provider_senders:
        lines.append(f"- Emails from {', '.join(rules.phone_provider_senders)} are PHONE")
    if rules.crm_alert_senders:
        lines.append(f"- Emails from {', '.join(rules.crm_alert_senders)} are FORMSUB")
    if not lines:
        return ""
    return "SPECIAL SENDERS:\n" + "\n".join(lines)


def build_classification_prompt(config: UnifiedTenantConfig) -> str:
    return _compose(
        classifier_role_section(config),
        category_table_section(config.classification),
        escalation_section(config),
        intent_section(config.classification),
        team_section(config),
        special_senders_section(config),
        CLASSIFIER_OUTPUT,
    )


# ---------------------------------------------------------------------------
# Reply prompt sections
# ---------------------------------------------------------------------------

def reply_role_section(config: UnifiedTenantConfig) -> str:
    return REPLY_ROLE.format(
        business_name=config.tenant.business.name,
        business_types=human_join(config.business_types),
    )


def voice_section(behavior: BehaviorSchema, preferred_tone: str = "") -> str:
    """Describe tone and the three voice levels."""
    voice = behavior.voice
    lines = [
        "VOICE:",
        f"- Tone: {voice.tone}",
        f"- Empathy: {_level(voice.empathy)} ({voice.empathy:.2f})",
        f"- Formality: {_level(voice.formality)} ({voice.formality:.2f})",
        f"- Directness: {_level(voice.directness)} ({voice.directness:.2f})",
    ]
    if preferred_tone:
        lines.append(f"- Owner preference: {preferred_tone}")
    return "\n".join(lines)


def goals_section(behavior: BehaviorSchema) -> str:
    if not behavior.goals:
        return ""
    lines = ["GOALS:"]
    lines.extend(f"{i}. {goal}" for i, goal in enumerate(behavior.goals, 1))
    return "\n".join(lines)


def category_language_section(behavior: BehaviorSchema) -> str:
    if not behavior.category_language:
        return ""
    lines = ["CATEGORY GUIDANCE:"]
    lines.extend(f"- {category}: {text}" for category, text in behavior.category_language.items())
    return "\n".join(lines)


def policy_section(config: UnifiedTenantConfig) -> str:
    behavior = config.behavior
    lines = ["POLICIES:", f"- {PRICING_ALLOWED if config.allow_pricing else PRICING_WITHHELD}"]
    if behavior.upsell:
        lines.append(f"- Upsell: {behavior.upsell}")
    if behavior.follow_up:
        lines.append(f"- Follow-up: {behavior.follow_up}")
    hours = business_hours_text(config)
    if hours:
        lines.append(f"- Business hours: {hours}")
    if config.tenant.rules.holidays:
        lines.append(f"- Closed on: {', '.join(config.tenant.rules.holidays)}")
    if config.tenant.contact.after_hours_phone:
        lines.append(f"- After-hours emergencies: {config.tenant.contact.after_hours_phone}")
    return "\n".join(lines)


def services_section(config: UnifiedTenantConfig) -> str:
    text = services_text(config)
    return f"SERVICES:\n{text}" if text else ""


def learned_phrases_section(behavior: BehaviorSchema) -> str:
    if not behavior.learned_phrases:
        return ""
    lines = ["PHRASES THIS TEAM USES (work them in naturally):"]
    for phrase in behavior.learned_phrases:
        context = f" [{phrase.context}]" if phrase.context else ""
        lines.append(f'- "{phrase.text}"{context}')
    return "\n".join(lines)


def examples_section(behavior: BehaviorSchema) -> str:
    if not behavior.examples:
        return ""
    blocks = ["EXAMPLE REPLIES FROM THIS TEAM:"]
    for category, replies in behavior.examples.items():
        for reply in replies:
            blocks.append(f"[{category}] Subject: {reply.subject}\n{reply.body}")
    return "\n\n".join(blocks)


def signature_section(config: UnifiedTenantConfig) -> str:
    return "End every reply with this signature exactly:\n" + signature_block(config)


def build_reply_prompt(config: UnifiedTenantConfig) -> str:
    return _compose(
        reply_role_section(config),
        voice_section(config.behavior, config.tenant.rules.tone),
        goals_section(config.behavior),
        category_language_section(config.behavior),
        policy_section(config),
        services_section(config),
        learned_phrases_section(config.behavior),
        examples_section(config.behavior),
        signature_section(config),
    )
