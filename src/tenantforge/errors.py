"""Exception taxonomy for the build and deploy pipeline."""

from __future__ import annotations


class TenantForgeError(Exception):
    """Base class for all fatal pipeline errors."""


class SchemaNotFoundError(TenantForgeError, LookupError):
    """A business type has no registered schema for a layer."""

    def __init__(self, business_type: str, layer: str | None = None):
        self.business_type = business_type
        self.layer = layer
        if layer:
            msg = f"Unknown business type {business_type!r}: no {layer} schema registered"
        else:
            msg = f"Unknown business type {business_type!r}"
        super().__init__(msg)


class SchemaValidationError(TenantForgeError, ValueError):
    """Schema data failed structural validation.

    ``problems`` is a list of ``(field_path, message)`` tuples.
    """

    def __init__(self, source: str, problems: list[tuple[str, str]]):
        self.source = source
        self.problems = problems
        detail = "; ".join(f"{path}: {message}" for path, message in problems)
        super().__init__(f"Invalid schema {source}: {detail}")


class TenantConfigError(TenantForgeError, ValueError):
    """Tenant record is missing a field or has a wrong type."""

    def __init__(self, field_path: str, message: str):
        self.field_path = field_path
        super().__init__(f"Invalid tenant config at {field_path or '<root>'}: {message}")


class CrossLayerConsistencyError(TenantForgeError):
    """Merged classification references categories absent from the folder schema."""

    def __init__(self, unresolved: list[str]):
        self.unresolved = list(unresolved)
        super().__init__(
            "Classification references unknown folder categories: "
            + ", ".join(self.unresolved)
        )


class PlaceholderCollisionError(TenantForgeError, ValueError):
    """Two distinct values were generated for the same token."""

    def __init__(self, token: str, first: str, second: str):
        self.token = token
        self.first = first
        self.second = second
        super().__init__(f"Token {token} generated twice ({first!r} vs {second!r})")


class InjectionError(TenantForgeError):
    """Substituted template is not a well-formed document."""

    def __init__(self, message: str, offset: int = -1, context: str = "", document: str = ""):
        self.offset = offset
        self.context = context
        self.document = document
        if offset >= 0:
            message = f"{message} at offset {offset}: ...{context}..."
        super().__init__(message)


class CredentialResolutionError(TenantForgeError):
    """No usable credential id for a tenant and provider."""

    def __init__(self, tenant_id: str, provider: str, reason: str = "no credential available"):
        self.tenant_id = tenant_id
        self.provider = provider
        self.reason = reason
        super().__init__(f"Cannot resolve {provider} credential for tenant {tenant_id!r}: {reason}")


class DeploymentError(TenantForgeError):
    """The workflow engine rejected or could not receive a document."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
