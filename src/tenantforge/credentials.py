"""Credential resolution: one opaque credential id per tenant and provider."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from tenantforge.errors import CredentialResolutionError, TenantForgeError
from tenantforge.models import ProviderKind

logger = logging.getLogger(__name__)

SHARED_PROVIDERS = (ProviderKind.REPLY_ENGINE, ProviderKind.METRICS_STORE)

_PLACEHOLDER_MARKERS = (
    "placeholder",
    "dummy",
    "changeme",
    "change-me",
    "configure",
    "your-",
    "your_",
    "example",
    "<<<",
    "{{",
)


def looks_like_placeholder(credential_id: str | None) -> bool:
    """True for empty ids and ids that are obviously not issued credentials."""
    if not credential_id or not credential_id.strip():
        return True
    lowered = credential_id.lower()
    return any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


@runtime_checkable
class CredentialResolver(Protocol):
    """Resolves the credential id a tenant's workflow should reference."""

    def resolve(self, tenant_id: str, provider: ProviderKind) -> str:
        """Return an issued credential id.

        Must be idempotent per (tenant_id, provider) until invalidated.

        Raises:
            CredentialResolutionError: no usable id is available.
        """
        ...


@runtime_checkable
class CredentialIssuer(Protocol):
    """External collaborator that issues a new credential id."""

    def issue(self, tenant_id: str, provider: ProviderKind) -> str:
        ...


def _checked(tenant_id: str, provider: ProviderKind, credential_id: str | None, origin: str) -> str:
    if looks_like_placeholder(credential_id):
        raise CredentialResolutionError(
            tenant_id, provider.value, f"{origin} returned placeholder id {credential_id!r}"
        )
    return credential_id.strip()


class StaticCredentialResolver:
    """Resolver backed by a fixed provider -> id mapping (offline renders)."""

    def __init__(self, ids: Mapping[str, str]):
        self.ids = {ProviderKind(k): v for k, v in ids.items()}

    def resolve(self, tenant_id: str, provider: ProviderKind) -> str:
        provider = ProviderKind(provider)
        if provider not in self.ids:
            raise CredentialResolutionError(tenant_id, provider.value)
        return _checked(tenant_id, provider, self.ids[provider], "static mapping")


class StoredCredentialResolver:
    """Resolver that reuses previously issued ids recorded in SQLite.

    Lookup order: configured shared id (reply engine, metrics store),
    the tenant's active stored id, then a fresh id from the issuer,
    which is recorded for next time.
    """

    def __init__(
        self,
        db: sqlite3.Connection,
        issuer: CredentialIssuer | None = None,
        shared: Mapping[str, str] | None = None,
    ):
        self.db = db
        self.issuer = issuer
        self.shared = {ProviderKind(k): v for k, v in (shared or {}).items() if v}

    def resolve(self, tenant_id: str, provider: ProviderKind) -> str:
        provider = ProviderKind(provider)

        if provider in SHARED_PROVIDERS and provider in self.shared:
            return _checked(tenant_id, provider, self.shared[provider], "shared config")

        row = self.db.execute(
            """SELECT credential_id FROM credential_map
               WHERE tenant_id = ? AND provider = ? AND status = 'active'""",
            (tenant_id, provider.value),
        ).fetchone()
        if row:
            logger.debug("Reusing %s credential for tenant %s", provider.value, tenant_id)
            return _checked(tenant_id, provider, row["credential_id"], "credential store")

        if self.issuer is None:
            raise CredentialResolutionError(tenant_id, provider.value, "no stored credential and no issuer")

        try:
            issued = self.issuer.issue(tenant_id, provider)
        except TenantForgeError:
            raise
        except Exception as e:
            raise CredentialResolutionError(tenant_id, provider.value, f"issuer failed: {e}") from e
        credential_id = _checked(tenant_id, provider, issued, "issuer")

        self.db.execute(
            "INSERT INTO credential_map (tenant_id, provider, credential_id) VALUES (?, ?, ?)",
            (tenant_id, provider.value, credential_id),
        )
        self.db.commit()
        logger.info("Issued new %s credential for tenant %s", provider.value, tenant_id)
        return credential_id

    def invalidate(self, tenant_id: str, provider: ProviderKind) -> bool:
        """Retire the active stored id. Returns True if one was retired."""
        cursor = self.db.execute(
            """UPDATE credential_map SET status = 'revoked', revoked_at = CURRENT_TIMESTAMP
               WHERE tenant_id = ? AND provider = ? AND status = 'active'""",
            (tenant_id, ProviderKind(provider).value),
        )
        self.db.commit()
        return cursor.rowcount > 0


def resolve_all(
    resolver: CredentialResolver,
    tenant_id: str,
    providers: Iterable[ProviderKind] = tuple(ProviderKind),
) -> dict[ProviderKind, str]:
    """Resolve every required provider, failing on the first unavailable one."""
    return {provider: resolver.resolve(tenant_id, provider) for provider in providers}
