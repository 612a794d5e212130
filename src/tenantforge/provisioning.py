"""Label/folder provisioning: turn a folder schema into mailbox label ids."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import httpx

from tenantforge.placeholders import folder_path
from tenantforge.schemas.models import FolderSchema

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


@runtime_checkable
class LabelProvisioner(Protocol):
    """Creates (or finds) mailbox labels for every folder path."""

    def provision(self, tenant_id: str, folders: FolderSchema) -> dict[str, str]:
        """Return external id per folder path ('URGENT/No Power').

        Paths that could not be provisioned are simply absent; provisioning
        may partially succeed.
        """
        ...


class StaticLabelProvisioner:
    """Provisioner backed by a known path -> id mapping."""

    def __init__(self, ids: Mapping[str, str]):
        self.ids = {path.casefold(): label_id for path, label_id in ids.items() if label_id}

    def provision(self, tenant_id: str, folders: FolderSchema) -> dict[str, str]:
        result = {}
        for path in folders.paths():
            name = folder_path(path)
            if name.casefold() in self.ids:
                result[name] = self.ids[name.casefold()]
        return result


class GmailLabelProvisioner:
    """Creates nested Gmail labels through an authorized Gmail API service."""

    def __init__(self, service, user_id: str = "me"):
        self.service = service
        self.user_id = user_id

    def _existing_labels(self) -> dict[str, str]:
        result = self.service.users().labels().list(userId=self.user_id).execute()
        return {label["name"].casefold(): label["id"] for label in result.get("labels", [])}

    def provision(self, tenant_id: str, folders: FolderSchema) -> dict[str, str]:
        existing = self._existing_labels()
        ids: dict[str, str] = {}
        for path in folders.paths():
            name = folder_path(path)
            if name.casefold() in existing:
                ids[name] = existing[name.casefold()]
                continue

            body: dict = {
                "name": name,
                "labelListVisibility": "labelShow",
                "messageListVisibility": "show",
            }
            color = folders.category(path[0]).color
            if color is not None:
                body["color"] = {"backgroundColor": color.background, "textColor": color.text}

            try:
                created = (
                    self.service.users()
                    .labels()
                    .create(userId=self.user_id, body=body)
                    .execute()
                )
            except Exception as e:
                # Partial provisioning is reported downstream as a warning
                logger.warning("Could not create Gmail label %r for tenant %s: %s", name, tenant_id, e)
                continue
            ids[name] = created["id"]
            existing[name.casefold()] = created["id"]

        logger.info("Provisioned %d/%d Gmail labels for tenant %s", len(ids), len(folders.paths()), tenant_id)
        return ids


class OutlookFolderProvisioner:
    """Creates nested Outlook mail folders through Microsoft Graph.

    Takes an already-issued access token; token acquisition is handled
    by the OAuth flow elsewhere. A client passed in is left open for the
    caller; otherwise one is opened and closed per ``provision`` call.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GRAPH_BASE_URL,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Authorization": f"Bearer {access_token}"}

    def _children_url(self, parent_id: str | None) -> str:
        if parent_id is None:
            return f"{self.base_url}/me/mailFolders"
        return f"{self.base_url}/me/mailFolders/{parent_id}/childFolders"

    def _ensure_folder(self, client: httpx.Client, name: str, parent_id: str | None) -> str:
        url = self._children_url(parent_id)
        resp = client.get(url, headers=self.headers, params={"$top": 250})
        resp.raise_for_status()
        for folder in resp.json().get("value", []):
            if folder.get("displayName", "").casefold() == name.casefold():
                return folder["id"]
        resp = client.post(url, headers=self.headers, json={"displayName": name})
        resp.raise_for_status()
        return resp.json()["id"]

    def provision(self, tenant_id: str, folders: FolderSchema) -> dict[str, str]:
        if self.client is not None:
            return self._provision(self.client, tenant_id, folders)
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            return self._provision(client, tenant_id, folders)

    def _provision(self, client: httpx.Client, tenant_id: str, folders: FolderSchema) -> dict[str, str]:
        ids: dict[str, str] = {}
        for path in folders.paths():
            name = folder_path(path)
            parent_id = ids.get(folder_path(path[:-1])) if len(path) > 1 else None
            if len(path) > 1 and parent_id is None:
                logger.warning("Skipping Outlook folder %r: parent was not provisioned", name)
                continue
            try:
                ids[name] = self._ensure_folder(client, path[-1], parent_id)
            except (httpx.HTTPError, ValueError, KeyError) as e:
                logger.warning("Could not create Outlook folder %r for tenant %s: %s", name, tenant_id, e)
        logger.info("Provisioned %d/%d Outlook folders for tenant %s", len(ids), len(folders.paths()), tenant_id)
        return ids
