"""Template injection: substitute tokens, then prove the result is a valid workflow."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping

from tenantforge.credentials import looks_like_placeholder
from tenantforge.errors import CredentialResolutionError, InjectionError
from tenantforge.placeholders import TOKEN_CLOSE, TOKEN_OPEN

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 40

_TOKEN = re.compile(re.escape(TOKEN_OPEN) + r"([A-Za-z0-9_]+)" + re.escape(TOKEN_CLOSE))


def _bare(name: str) -> str:
    if name.startswith(TOKEN_OPEN) and name.endswith(TOKEN_CLOSE):
        return name[len(TOKEN_OPEN):-len(TOKEN_CLOSE)]
    return name


def substitute(template_text: str, placeholders: Mapping[str, str]) -> tuple[str, list[str]]:
    """Replace every token in one pass.

    Values are inserted as-is (they are already escaped) and are never
    rescanned; token syntax inside a value is dropped, so tenant data
    cannot introduce new tokens. Returns the text and the names of
    template tokens that had no value.
    """
    values = {_bare(name): _TOKEN.sub("", value) for name, value in placeholders.items()}
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        if name not in missing:
            missing.append(name)
        return ""

    return _TOKEN.sub(_replace, template_text), missing


def _parse(document: str, stage: str) -> object:
    try:
        return json.loads(document)
    except json.JSONDecodeError as e:
        start = max(0, e.pos - CONTEXT_CHARS)
        context = document[start:e.pos + CONTEXT_CHARS]
        raise InjectionError(
            f"{stage} document is not valid JSON ({e.msg})",
            offset=e.pos,
            context=context,
            document=document,
        ) from e


def check_structure(document: object) -> None:
    """Require a node list and connections that only reference existing nodes."""
    if not isinstance(document, dict):
        raise InjectionError("Workflow document must be a JSON object")
    nodes = document.get("nodes")
    if not isinstance(nodes, list) or not nodes:
        raise InjectionError("Workflow document has no nodes")

    names: set[str] = set()
    for i, node in enumerate(nodes):
        name = node.get("name") if isinstance(node, dict) else None
        if not isinstance(name, str) or not name:
            raise InjectionError(f"Node {i} has no name")
        if name in names:
            raise InjectionError(f"Duplicate node name {name!r}")
        names.add(name)

    connections = document.get("connections") or {}
    if not isinstance(connections, dict):
        raise InjectionError("Workflow connections must be an object")
    for source, outputs in connections.items():
        if source not in names:
            raise InjectionError(f"Connection from unknown node {source!r}")
        for branches in (outputs or {}).values():
            for branch in branches or []:
                for link in branch or []:
                    target = link.get("node") if isinstance(link, dict) else None
                    if target not in names:
                        raise InjectionError(f"Connection from {source!r} to unknown node {target!r}")


def check_credentials(document: dict, tenant_id: str = "") -> dict[str, str]:
    """Every credential block must hold a real id, one id per credential type.

    Returns credential type -> id.
    """
    seen: dict[str, str] = {}
    for node in document.get("nodes", []):
        for cred_type, ref in (node.get("credentials") or {}).items():
            cred_id = ref.get("id") if isinstance(ref, dict) else None
            if looks_like_placeholder(cred_id):
                raise CredentialResolutionError(
                    tenant_id, cred_type, f"node {node['name']!r} has placeholder id {cred_id!r}"
                )
            if seen.setdefault(cred_type, cred_id) != cred_id:
                raise CredentialResolutionError(
                    tenant_id,
                    cred_type,
                    f"node {node['name']!r} uses {cred_id!r} but another node uses {seen[cred_type]!r}",
                )
    return seen


def inject(template_text: str, placeholders: Mapping[str, str], tenant_id: str = "") -> dict:
    """Substitute placeholders into a workflow template and validate the result.

    Args:
        template_text: JSON template containing <<<NAME>>> tokens
        placeholders: token name -> already-escaped value
        tenant_id: used in error messages only

    Returns:
        The parsed workflow document.

    Raises:
        InjectionError: the result is not valid JSON or not a valid node graph.
        CredentialResolutionError: a credential block holds a placeholder id.
    """
    document, missing = substitute(template_text, placeholders)
    if missing:
        logger.warning("Template tokens without a value, left empty: %s", ", ".join(missing))

    parsed = _parse(document, "Injected")
    check_structure(parsed)
    check_credentials(parsed, tenant_id)

    serialized = json.dumps(parsed, ensure_ascii=False)
    reparsed = _parse(serialized, "Re-serialized")
    if _TOKEN.search(serialized):
        raise InjectionError("Unsubstituted token survived injection", document=serialized)
    return reparsed
