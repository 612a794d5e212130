"""Workflow engine HTTP client: the deployment transport."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from tenantforge.errors import DeploymentError

logger = logging.getLogger(__name__)

# Fields the engine's public API accepts on create/update.
WORKFLOW_FIELDS = ("name", "nodes", "connections", "settings")


@dataclass
class DeployedWorkflow:
    workflow_id: str
    active: bool = False


@runtime_checkable
class WorkflowTransport(Protocol):
    """Creates or updates a workflow in the target engine."""

    def deploy(self, document: dict, workflow_id: str | None = None) -> DeployedWorkflow:
        """Hand over a validated document; returns the engine id and state."""
        ...


class WorkflowEngineClient:
    """n8n-style REST API client for workflow create/update."""

    def __init__(
        self,
        base_url: str = "http://localhost:5678",
        api_key: str = "",
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.transport = transport

    def _request(self, method: str, path: str, payload: dict | None = None) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-N8N-API-KEY"] = self.api_key

        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                    return client.request(
                        method,
                        f"{self.base_url}/api/v1{path}",
                        json=payload,
                        headers=headers,
                    )
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt)
                    continue
                raise DeploymentError(
                    f"Failed to reach workflow engine at {self.base_url}: {e}"
                ) from e
        raise DeploymentError(f"Failed to reach workflow engine at {self.base_url}")

    @staticmethod
    def _check(resp: httpx.Response, action: str) -> dict:
        if resp.status_code >= 400:
            raise DeploymentError(
                f"Workflow engine rejected {action}: HTTP {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise DeploymentError(
                f"Workflow engine returned a non-JSON body for {action}: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e
        if not isinstance(data, dict):
            raise DeploymentError(
                f"Workflow engine returned an unexpected body for {action}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return data

    @staticmethod
    def _payload(document: dict) -> dict:
        return {key: document[key] for key in WORKFLOW_FIELDS if key in document}

    def workflow_exists(self, workflow_id: str) -> bool:
        resp = self._request("GET", f"/workflows/{workflow_id}")
        if resp.status_code == 404:
            return False
        self._check(resp, "workflow lookup")
        return True

    def create_workflow(self, document: dict) -> DeployedWorkflow:
        data = self._check(self._request("POST", "/workflows", self._payload(document)), "create")
        logger.info("Created workflow %s", data["id"])
        return DeployedWorkflow(workflow_id=str(data["id"]), active=bool(data.get("active", False)))

    def update_workflow(self, workflow_id: str, document: dict) -> DeployedWorkflow:
        data = self._check(
            self._request("PUT", f"/workflows/{workflow_id}", self._payload(document)), "update"
        )
        logger.info("Updated workflow %s", workflow_id)
        return DeployedWorkflow(
            workflow_id=str(data.get("id", workflow_id)),
            active=bool(data.get("active", False)),
        )

    def deploy(self, document: dict, workflow_id: str | None = None) -> DeployedWorkflow:
        """Update the tenant's existing workflow if it still exists, else create one."""
        if workflow_id and self.workflow_exists(workflow_id):
            return self.update_workflow(workflow_id, document)
        if workflow_id:
            logger.warning("Workflow %s no longer exists; creating a new one", workflow_id)
        return self.create_workflow(document)
