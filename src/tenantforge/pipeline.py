"""Build-and-deploy orchestration for one tenant."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from tenantforge.bridge import SchemaIntegrationBridge
from tenantforge.config import Config
from tenantforge.credentials import CredentialResolver, resolve_all
from tenantforge.deployments import latest_deployment, record_deployment
from tenantforge.engine import WorkflowTransport
from tenantforge.errors import DeploymentError
from tenantforge.injector import inject
from tenantforge.models import (
    MergeNote,
    PartialProvisioningWarning,
    TenantConfig,
    UnifiedTenantConfig,
    VoiceProfile,
)
from tenantforge.placeholders import PlaceholderMap, generate_placeholders
from tenantforge.provisioning import LabelProvisioner
from tenantforge.schemas.registry import SchemaRegistry
from tenantforge.templates import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    document: dict
    config: UnifiedTenantConfig
    placeholders: PlaceholderMap
    warnings: list[PartialProvisioningWarning] = field(default_factory=list)
    notes: list[MergeNote] = field(default_factory=list)


@dataclass
class DeploymentResult:
    workflow_id: str
    version: int
    active: bool
    render: RenderResult

    @property
    def warnings(self) -> list[PartialProvisioningWarning]:
        return self.render.warnings


def bridge_from_config(config: Config) -> SchemaIntegrationBridge:
    """Bridge over the configured (or built-in) schema registry."""
    if config.registry.schemas_dir:
        registry = SchemaRegistry.from_directory(config.registry.schemas_dir)
    else:
        registry = SchemaRegistry.builtin()
    return SchemaIntegrationBridge(
        registry,
        min_voice_sample_size=config.voice.min_sample_size,
        min_voice_confidence=config.voice.min_confidence,
    )


class DeploymentPipeline:
    """Bridge -> credentials -> labels -> placeholders -> injector -> transport.

    Every step completes before anything is handed to the transport; a
    failure anywhere raises and nothing partial is deployed.
    """

    def __init__(
        self,
        bridge: SchemaIntegrationBridge,
        credentials: CredentialResolver,
        provisioner: LabelProvisioner,
        templates: TemplateStore | None = None,
        transport: WorkflowTransport | None = None,
        db: sqlite3.Connection | None = None,
    ):
        self.bridge = bridge
        self.credentials = credentials
        self.provisioner = provisioner
        self.templates = templates or TemplateStore()
        self.transport = transport
        self.db = db

    def render(self, tenant: TenantConfig, voice_profile: VoiceProfile | None = None) -> RenderResult:
        """Produce the validated workflow document without deploying it."""
        config = self.bridge.build(tenant, voice_profile)
        credential_ids = resolve_all(self.credentials, tenant.tenant_id)
        folder_ids = self.provisioner.provision(tenant.tenant_id, config.folders)
        placeholders = generate_placeholders(config, credential_ids, folder_ids)
        template = self.templates.load(config.primary_business_type, tenant.mailbox_provider)
        document = inject(template, placeholders, tenant.tenant_id)
        return RenderResult(
            document=document,
            config=config,
            placeholders=placeholders,
            warnings=list(placeholders.warnings),
            notes=list(config.notes),
        )

    def deploy(self, tenant: TenantConfig, voice_profile: VoiceProfile | None = None) -> DeploymentResult:
        """Render, then create or update the tenant's workflow (left inactive)."""
        if self.transport is None:
            raise DeploymentError("No deployment transport configured")

        result = self.render(tenant, voice_profile)
        previous = latest_deployment(self.db, tenant.tenant_id) if self.db is not None else None
        deployed = self.transport.deploy(
            result.document, previous["workflow_id"] if previous else None
        )

        version = 1
        if self.db is not None:
            version = record_deployment(
                self.db,
                tenant.tenant_id,
                deployed.workflow_id,
                result.config.business_types,
                active=deployed.active,
                warning_count=len(result.warnings),
            )
        logger.info(
            "Deployed tenant %s as workflow %s (version %d, %d warnings)",
            tenant.tenant_id,
            deployed.workflow_id,
            version,
            len(result.warnings),
        )
        return DeploymentResult(
            workflow_id=deployed.workflow_id,
            version=version,
            active=deployed.active,
            render=result,
        )
