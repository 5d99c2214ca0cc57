"""Ephemeral kubeconfig provisioning for helmactions."""

import os
from typing import Any, Dict, Optional

import yaml

from helmactions.constants import FILE_MODE, KUBECONFIG_FILE
from helmactions.errors import ActionError, CredentialError
from helmactions.models import Cluster, ClusterCredentialBundle


class CredentialService:
    """Builds a per-action kubeconfig and writes it into the workspace.

    TLS verification is disabled on every cluster entry. The resulting file
    is only valid for the lifetime of the workspace it is written to.
    """

    CA_KEYS = ("certificate-authority", "certificate-authority-data")

    def __init__(self, kubeconfig_getter, logger):
        self.kubeconfig_getter = kubeconfig_getter
        self.logger = logger

    def build_bundle(self, cluster: Cluster, auth_token: Optional[str]) -> ClusterCredentialBundle:
        try:
            raw_config = self.kubeconfig_getter.kube_config(cluster.id, auth_token)
        except CredentialError:
            raise
        except ActionError as exc:
            raise CredentialError(f"Could not build credentials for cluster {cluster.id}: {exc}") from exc

        if not isinstance(raw_config, dict):
            raise CredentialError(f"Kubeconfig for cluster {cluster.id} must be a mapping.")

        for entry in raw_config.get("clusters") or []:
            cluster_data = entry.setdefault("cluster", {}) if isinstance(entry, dict) else None
            if not isinstance(cluster_data, dict):
                raise CredentialError(f"Kubeconfig for cluster {cluster.id} has an invalid cluster entry.")
            for key in self.CA_KEYS:
                cluster_data.pop(key, None)
            cluster_data["insecure-skip-tls-verify"] = True

        return ClusterCredentialBundle(cluster_id=cluster.id, raw_config=raw_config)

    def write_bundle(self, bundle: ClusterCredentialBundle, workspace_root: str) -> str:
        path = os.path.join(workspace_root, KUBECONFIG_FILE)

        try:
            content = yaml.safe_dump(bundle.raw_config, default_flow_style=False)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
        except (yaml.YAMLError, OSError) as exc:
            raise CredentialError(f"Could not write kubeconfig to '{path}': {exc}") from exc

        self.logger.debug("Wrote kubeconfig for cluster %s to %s", bundle.cluster_id, path)
        return path

    def provision(self, cluster: Cluster, auth_token: Optional[str], workspace_root: str) -> str:
        bundle = self.build_bundle(cluster, auth_token)
        return self.write_bundle(bundle, workspace_root)


def load_kubeconfig(content: str) -> Dict[str, Any]:
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise CredentialError(f"Invalid kubeconfig: {exc}") from exc

    if not isinstance(parsed, dict):
        raise CredentialError("Kubeconfig must contain a YAML mapping at the root.")
    return parsed
