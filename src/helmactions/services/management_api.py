"""HTTP client for the management API that owns apps, clusters and templates."""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from helmactions.errors import ActionLookupError, CredentialError, StateUpdateError
from helmactions.models import AppResource, ChartBundle, Cluster
from helmactions.services.credentials import load_kubeconfig


class ManagementApiClient:
    """Looks up and updates resources through the ``/v3`` REST API."""

    def __init__(
        self,
        server_url: str,
        token: Optional[str],
        project_id: str,
        logger,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        requests_module=requests,
    ):
        self.base_url = server_url.rstrip("/") + "/v3"
        self.token = token
        self.project_id = project_id
        self.logger = logger
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.requests = requests_module

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        effective_token = token or self.token
        if effective_token:
            headers["Authorization"] = f"Bearer {effective_token}"
        return headers

    def _app_url(self, app_id: str) -> str:
        return f"{self.base_url}/project/{quote(self.project_id, safe=':')}/apps/{quote(app_id, safe=':')}"

    def _get(self, url: str, label: str) -> Optional[Dict[str, Any]]:
        self.logger.debug("GET %s", url)
        try:
            response = self.requests.get(
                url,
                headers=self._headers(),
                verify=self.verify_ssl,
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except self.requests.RequestException as exc:
            raise ActionLookupError(f"Could not query {label}: {exc}") from exc
        except ValueError as exc:
            raise ActionLookupError(f"Invalid response while querying {label}: {exc}") from exc

    def get_app(self, app_id: str) -> Optional[AppResource]:
        data = self._get(self._app_url(app_id), f"application {app_id}")
        return AppResource.from_api(data) if data else None

    def get_cluster(self, cluster_id: str) -> Optional[Cluster]:
        data = self._get(f"{self.base_url}/clusters/{quote(cluster_id, safe='')}", f"cluster {cluster_id}")
        if not data:
            return None
        return Cluster(id=data.get("id", cluster_id), name=data.get("name", ""))

    def get_template_version(self, version_id: str) -> Optional[ChartBundle]:
        data = self._get(
            f"{self.base_url}/templateversions/{quote(version_id, safe='')}",
            f"template version {version_id}",
        )
        if not data:
            return None
        return ChartBundle(version_id=data.get("id", version_id), files=data.get("files") or {})

    def kube_config(self, cluster_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/clusters/{quote(cluster_id, safe='')}"
        self.logger.debug("POST %s?action=generateKubeconfig", url)
        try:
            response = self.requests.post(
                url,
                params={"action": "generateKubeconfig"},
                headers=self._headers(token),
                verify=self.verify_ssl,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except self.requests.RequestException as exc:
            raise CredentialError(f"Could not generate kubeconfig for cluster {cluster_id}: {exc}") from exc
        except ValueError as exc:
            raise CredentialError(f"Invalid kubeconfig response for cluster {cluster_id}: {exc}") from exc

        content = payload.get("config") if isinstance(payload, dict) else None
        if not content:
            raise CredentialError(f"Kubeconfig response for cluster {cluster_id} is empty.")
        return load_kubeconfig(content)

    def update_app(self, app_id: str, data: Dict[str, Any]) -> AppResource:
        url = self._app_url(app_id)
        self.logger.debug("PUT %s %s", url, data)
        try:
            response = self.requests.put(
                url,
                json=data,
                headers=self._headers(),
                verify=self.verify_ssl,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return AppResource.from_api(response.json())
        except self.requests.RequestException as exc:
            raise StateUpdateError(f"Could not update application {app_id}: {exc}") from exc
        except (ValueError, KeyError) as exc:
            raise StateUpdateError(f"Invalid response while updating application {app_id}: {exc}") from exc
