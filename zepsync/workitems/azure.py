"""Azure DevOps work item REST API field service."""

import logging
from typing import Any

import httpx

from zepsync.errors import AuthError, ConfigError, ConnectivityError
from zepsync.settings import ZepSyncSettings
from zepsync.workitems.base import FieldService

logger = logging.getLogger(__name__)

API_VERSION = "7.1"


class AzureDevOpsFieldService(FieldService):
    def __init__(self, settings: ZepSyncSettings, work_item_id: int) -> None:
        if not settings.azure_org_url:
            raise ConfigError("azure_org_url is required. Set ZEPSYNC_AZURE_ORG_URL or azure_org_url in your profile.")
        if not settings.azure_pat:
            raise ConfigError("azure_pat is required. Set ZEPSYNC_AZURE_PAT or azure_pat in your profile.")
        self._url = f"{settings.azure_org_url.rstrip('/')}/_apis/wit/workitems/{work_item_id}"
        self._auth = ("", settings.azure_pat.get_secret_value())
        self._timeout = settings.timeout
        self._fields: dict[str, Any] | None = None
        self.work_item_id = work_item_id

    def _request(self, method: str, **kwargs: Any) -> dict:
        try:
            response = httpx.request(
                method,
                self._url,
                params={"api-version": API_VERSION},
                auth=self._auth,
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TransportError as exc:
            raise ConnectivityError(f"Cannot connect to Azure DevOps at {self._url}: {exc}") from exc
        if response.status_code in (401, 203):
            # 203 is Azure DevOps' answer to an invalid PAT: a sign-in page
            raise AuthError("Azure DevOps rejected the personal access token. Check azure_pat.")
        response.raise_for_status()
        return response.json()

    def get_all_fields(self) -> dict[str, Any]:
        if self._fields is None:
            self._fields = dict(self._request("GET").get("fields", {}))
        return self._fields

    def get_field(self, name: str) -> Any:
        return self.get_all_fields().get(name)

    def set_field(self, name: str, value: Any) -> None:
        body = [{"op": "add", "path": f"/fields/{name}", "value": value}]
        node = self._request(
            "PATCH",
            json=body,
            headers={"Content-Type": "application/json-patch+json"},
        )
        self._fields = dict(node.get("fields", {})) if node.get("fields") else None
        logger.info("Updated field %s to %s on work item %s", name, value, self.work_item_id)
