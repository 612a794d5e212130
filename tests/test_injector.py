"""Tests for template substitution and post-injection validation."""

import json
import logging
import re

import pytest

from tenantforge.errors import CredentialResolutionError, InjectionError
from tenantforge.escaping import escape
from tenantforge.injector import check_credentials, check_structure, inject, substitute
from tenantforge.placeholders import generate_placeholders
from tenantforge.templates import TemplateStore

TOKEN_RE = re.compile(r"<<<([A-Z0-9_]+)>>>")


def _template(name_token="<<<NAME>>>", cred="<<<CRED>>>"):
    return json.dumps({
        "name": name_token,
        "nodes": [
            {"name": "Trigger", "credentials": {"gmailOAuth2": {"id": cred}}},
            {"name": "Draft"},
        ],
        "connections": {"Trigger": {"main": [[{"node": "Draft", "type": "main", "index": 0}]]}},
    })


class TestSubstitute:
    def test_replaces_all_tokens(self):
        text, missing = substitute("<<<A>>>-<<<B>>>-<<<A>>>", {"A": "1", "B": "2"})
        assert text == "1-2-1"
        assert missing == []

    def test_values_not_rescanned(self):
        text, _ = substitute("<<<A>>>|<<<B>>>", {"A": "x<<<B>>>y", "B": "secret"})
        assert text == "xy|secret"

    def test_unknown_tokens_emptied(self):
        text, missing = substitute('"<<<NOPE>>>" "<<<NOPE>>>"', {})
        assert text == '"" ""'
        assert missing == ["NOPE"]

    def test_wrapped_keys_accepted(self):
        text, _ = substitute("<<<A>>>", {"<<<A>>>": "ok"})
        assert text == "ok"


class TestInject:
    def test_minimal_document(self):
        doc = inject(_template(), {"NAME": escape('Bob "The Builder"'), "CRED": "gm-1"})
        assert doc["name"] == 'Bob "The Builder"'
        assert doc["nodes"][0]["credentials"]["gmailOAuth2"]["id"] == "gm-1"

    def test_unbalanced_quote_reports_offset(self):
        template = '{"name": "<<<NAME>>>", "nodes": [{"name": "Trigger"}]}'
        with pytest.raises(InjectionError) as exc_info:
            inject(template, {"NAME": 'Bob "The Builder'})
        err = exc_info.value
        assert err.offset >= 0
        assert "The Builder" in err.document[max(0, err.offset - 10):err.offset + 20]
        assert "The Builder" in err.context
        assert err.document == '{"name": "Bob "The Builder", "nodes": [{"name": "Trigger"}]}'

    def test_unknown_token_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tenantforge.injector"):
            doc = inject(_template(name_token="<<<MISSING>>>"), {"CRED": "gm-1"})
        assert doc["name"] == ""
        assert "MISSING" in caplog.text

    def test_placeholder_credential_rejected(self):
        with pytest.raises(CredentialResolutionError):
            inject(_template(), {"NAME": "x", "CRED": "your-credential-id"}, tenant_id="t-1")

    def test_empty_credential_rejected(self):
        with pytest.raises(CredentialResolutionError):
            inject(_template(), {"NAME": "x"})


class TestCheckStructure:
    def test_requires_nodes(self):
        with pytest.raises(InjectionError, match="no nodes"):
            check_structure({"name": "x", "nodes": []})

    def test_requires_object(self):
        with pytest.raises(InjectionError):
            check_structure([1, 2])

    def test_duplicate_node_names(self):
        with pytest.raises(InjectionError, match="Duplicate"):
            check_structure({"nodes": [{"name": "A"}, {"name": "A"}]})

    def test_unknown_connection_target(self):
        doc = {
            "nodes": [{"name": "A"}],
            "connections": {"A": {"main": [[{"node": "Ghost", "type": "main", "index": 0}]]}},
        }
        with pytest.raises(InjectionError, match="Ghost"):
            check_structure(doc)

    def test_unknown_connection_source(self):
        with pytest.raises(InjectionError, match="Ghost"):
            check_structure({"nodes": [{"name": "A"}], "connections": {"Ghost": {}}})


class TestCheckCredentials:
    def test_consistent_ids(self):
        doc = {"nodes": [
            {"name": "A", "credentials": {"openAiApi": {"id": "oa-1"}}},
            {"name": "B", "credentials": {"openAiApi": {"id": "oa-1"}, "postgres": {"id": "pg-1"}}},
        ]}
        assert check_credentials(doc) == {"openAiApi": "oa-1", "postgres": "pg-1"}

    def test_conflicting_ids(self):
        doc = {"nodes": [
            {"name": "A", "credentials": {"openAiApi": {"id": "oa-1"}}},
            {"name": "B", "credentials": {"openAiApi": {"id": "oa-2"}}},
        ]}
        with pytest.raises(CredentialResolutionError, match="oa-2"):
            check_credentials(doc, "t-1")


@pytest.mark.parametrize("provider", ["gmail", "outlook"])
class TestBuiltinTemplates:
    def test_no_dangling_tokens(self, unified, credential_ids, provider):
        """Every token a template uses is produced by the generator."""
        placeholders = generate_placeholders(unified, credential_ids)
        template = TemplateStore().load("Electrician", provider)
        assert set(TOKEN_RE.findall(template)) <= set(placeholders)

    def test_injects_cleanly(self, bridge, tenant_data, credential_ids, provider):
        from tenantforge.models import tenant_from_dict

        tenant_data["mailbox_provider"] = provider
        tenant_data["business"]["name"] = 'Bob\'s "Best" Electric\\Plumbing'
        config = bridge.build(tenant_from_dict(tenant_data))
        placeholders = generate_placeholders(config, credential_ids, {"URGENT": "Label_1", "MISC": "Label_2"})
        template = TemplateStore().load("Electrician", provider)

        doc = inject(template, placeholders, "tenant-001")
        text = json.dumps(doc)
        assert "<<<" not in text
        assert doc["name"].startswith("Bob s Best Electric")
        assert doc["active"] is False
        assert doc["meta"]["tenantId"] == "tenant-001"
        ids = check_credentials(doc)
        assert set(ids.values()) == set(credential_ids.values())

        prompt_node = next(n for n in doc["nodes"] if n["name"] == "AI Classifier")
        assert "No Power" in prompt_node["parameters"]["options"]["systemMessage"]
