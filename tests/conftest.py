"""Shared test fixtures."""

from __future__ import annotations

import sqlite3

import pytest

from tenantforge.bridge import SchemaIntegrationBridge
from tenantforge.database import init_db
from tenantforge.models import tenant_from_dict
from tenantforge.schemas.registry import SchemaRegistry


@pytest.fixture
def db():
    """In-memory SQLite database with schema initialized."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture(scope="session")
def registry():
    """The built-in schema registry."""
    return SchemaRegistry.builtin()


@pytest.fixture
def bridge(registry):
    return SchemaIntegrationBridge(registry)


@pytest.fixture
def mini_registry():
    """A one-type registry with exactly five flat folder categories."""
    names = ["URGENT", "SALES", "SUPPORT", "BANKING", "MISC"]
    return SchemaRegistry(
        common={},
        entries={
            "Alpha": {
                "aliases": ["Alpha Services"],
                "classification": {
                    "categories": [
                        {"name": name, "priority": "critical" if name == "URGENT" else "normal", "keywords": [name.lower()]}
                        for name in names
                    ],
                    "intents": {"ai.emergency_request": "URGENT", "ai.general": "MISC"},
                },
                "behavior": {
                    "voice": {"tone": "Plain", "empathy": 0.5, "formality": 0.5, "directness": 0.5},
                    "goals": ["Answer the question."],
                },
                "folders": {"categories": [{"name": name} for name in names]},
            },
        },
    )


@pytest.fixture
def tenant_data():
    """A realistic single-type tenant record."""
    return {
        "tenant_id": "tenant-001",
        "business_types": ["Electrician"],
        "mailbox_provider": "gmail",
        "business": {
            "name": "Bright Spark Electric",
            "legal_name": "Bright Spark Electric Ltd.",
            "address": "12 Main St, Hamilton, ON",
            "service_area": "Hamilton and Burlington",
            "timezone": "America/Toronto",
            "currency": "CAD",
            "email_domain": "brightspark.ca",
            "website": "https://brightspark.ca",
        },
        "contact": {
            "name": "Dana Reyes",
            "role": "Owner",
            "email": "dana@brightspark.ca",
            "after_hours_phone": "905-555-0100",
        },
        "managers": [
            {"name": "John", "email": "john@brightspark.ca", "role": "Operations Manager"},
        ],
        "suppliers": [
            {"name": "Acme Supply", "email": "orders@acmesupply.com", "domains": ["acmesupply.com"]},
        ],
        "services": [
            {"name": "Panel Upgrade", "description": "200A service upgrade", "pricing_type": "fixed", "price": 2400},
            {"name": "Service Call", "pricing_type": "hourly", "price": 125.0},
        ],
        "rules": {
            "sla": "Same business day",
            "escalation_contact": "Dana Reyes",
            "business_hours": [
                {"days": "Mon-Fri", "open": "08:00", "close": "17:00"},
                {"days": "Sat-Sun"},
            ],
            "holidays": ["2026-12-25"],
            "phone_provider_senders": ["voicemail@ringcentral.com"],
            "crm_alert_senders": ["alerts@servicetitan.com"],
            "urgent_keywords": ["sparks", "smoke"],
        },
    }


@pytest.fixture
def tenant(tenant_data):
    return tenant_from_dict(tenant_data)


@pytest.fixture
def credential_ids():
    return {
        "mailbox": "gm-8f3k2",
        "reply_engine": "oa-shared-77",
        "metrics_store": "pg-metrics-12",
    }


@pytest.fixture
def unified(bridge, tenant):
    """Unified config for the single-type Electrician tenant."""
    return bridge.build(tenant)
