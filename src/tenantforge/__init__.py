"""tenantforge: per-tenant email automation workflow builder."""

__version__ = "0.1.0"
