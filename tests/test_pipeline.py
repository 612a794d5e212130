"""Tests for the build-and-deploy pipeline."""

from unittest.mock import MagicMock

import pytest

from tenantforge.config import Config, RegistryConfig, VoiceConfig
from tenantforge.credentials import StaticCredentialResolver
from tenantforge.deployments import list_deployments
from tenantforge.engine import DeployedWorkflow
from tenantforge.errors import CredentialResolutionError, DeploymentError, SchemaNotFoundError
from tenantforge.pipeline import DeploymentPipeline, bridge_from_config
from tenantforge.placeholders import folder_path
from tenantforge.provisioning import StaticLabelProvisioner


@pytest.fixture
def transport():
    transport = MagicMock()
    transport.deploy.side_effect = [
        DeployedWorkflow(workflow_id="wf-1"),
        DeployedWorkflow(workflow_id="wf-1"),
    ]
    return transport


@pytest.fixture
def pipeline(bridge, credential_ids, transport, db):
    return DeploymentPipeline(
        bridge=bridge,
        credentials=StaticCredentialResolver(credential_ids),
        provisioner=StaticLabelProvisioner({"URGENT": "Label_1", "MISC": "Label_2"}),
        transport=transport,
        db=db,
    )


class TestRender:
    def test_document_rendered(self, pipeline, tenant):
        result = pipeline.render(tenant)
        assert result.document["meta"]["tenantId"] == "tenant-001"
        assert result.config.business_types == ["Electrician"]
        assert result.placeholders["LABEL_URGENT_ID"] == "Label_1"

    def test_warnings_for_unprovisioned_paths(self, pipeline, tenant):
        result = pipeline.render(tenant)
        assert len(result.warnings) == len(result.config.folders.paths()) - 2
        assert "URGENT" not in [w.category for w in result.warnings]

    def test_fully_provisioned_has_no_warnings(self, bridge, credential_ids, tenant):
        config = bridge.build(tenant)
        ids = {folder_path(p): f"L{i}" for i, p in enumerate(config.folders.paths())}
        pipeline = DeploymentPipeline(
            bridge=bridge,
            credentials=StaticCredentialResolver(credential_ids),
            provisioner=StaticLabelProvisioner(ids),
        )
        assert pipeline.render(tenant).warnings == []

    def test_merge_notes_surface(self, pipeline, tenant):
        tenant.business_types = ["HVAC", "Pools & Spas"]
        result = pipeline.render(tenant)
        assert result.notes

    def test_outlook_template(self, pipeline, tenant):
        tenant.mailbox_provider = "outlook"
        result = pipeline.render(tenant)
        assert "microsoftOutlookOAuth2Api" in result.document["nodes"][0]["credentials"]


class TestDeploy:
    def test_records_versions(self, pipeline, tenant, transport, db):
        first = pipeline.deploy(tenant)
        second = pipeline.deploy(tenant)

        assert (first.version, second.version) == (1, 2)
        assert first.active is False
        assert transport.deploy.call_args_list[0].args[1] is None
        assert transport.deploy.call_args_list[1].args[1] == "wf-1"

        rows = list_deployments(db, "tenant-001")
        assert [r["version"] for r in rows] == [2, 1]
        assert rows[0]["business_types"] == ["Electrician"]
        assert rows[0]["warning_count"] == len(second.warnings)

    def test_no_transport(self, bridge, credential_ids, tenant):
        pipeline = DeploymentPipeline(
            bridge=bridge,
            credentials=StaticCredentialResolver(credential_ids),
            provisioner=StaticLabelProvisioner({}),
        )
        with pytest.raises(DeploymentError):
            pipeline.deploy(tenant)

    def test_nothing_deployed_on_failure(self, bridge, tenant, transport, db):
        pipeline = DeploymentPipeline(
            bridge=bridge,
            credentials=StaticCredentialResolver({"mailbox": "gm-1"}),
            provisioner=StaticLabelProvisioner({}),
            transport=transport,
            db=db,
        )
        with pytest.raises(CredentialResolutionError):
            pipeline.deploy(tenant)
        transport.deploy.assert_not_called()
        assert list_deployments(db) == []

    def test_unknown_business_type_not_deployed(self, pipeline, tenant, transport):
        tenant.business_types = ["Bakery"]
        with pytest.raises(SchemaNotFoundError):
            pipeline.deploy(tenant)
        transport.deploy.assert_not_called()


def test_bridge_from_config_uses_voice_thresholds():
    config = Config(voice=VoiceConfig(min_sample_size=12, min_confidence=0.8))
    bridge = bridge_from_config(config)
    assert bridge.min_voice_sample_size == 12
    assert bridge.min_voice_confidence == 0.8
    assert "Electrician" in bridge.registry.business_types


def test_bridge_from_config_custom_registry(tmp_path):
    (tmp_path / "business").mkdir()
    (tmp_path / "business" / "bakery.yaml").write_text("business_type: Bakery\n")
    bridge = bridge_from_config(Config(registry=RegistryConfig(schemas_dir=str(tmp_path))))
    assert bridge.registry.business_types == ["Bakery"]
