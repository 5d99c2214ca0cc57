"""Shared domain models for helmactions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from helmactions.errors import ActionError


class ActionKind(str, Enum):
    UPGRADE = "upgrade"
    ROLLBACK = "rollback"


_PAYLOAD_KEYS = {
    ActionKind.UPGRADE: "externalId",
    ActionKind.ROLLBACK: "revision",
}


@dataclass(frozen=True)
class ActionRequest:
    """A lifecycle action requested on one application resource."""

    kind: ActionKind
    resource_id: str
    payload: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_body(cls, kind: str, resource_id: str, body: Optional[Mapping[str, Any]]) -> "ActionRequest":
        try:
            action_kind = ActionKind(kind)
        except ValueError as exc:
            raise ActionError(f"Unsupported action: {kind}") from exc

        key = _PAYLOAD_KEYS[action_kind]
        value = (body or {}).get(key)
        if value is None or str(value).strip() == "":
            raise ActionError(f"Action `{action_kind.value}` requires a non-empty `{key}` value.")

        return cls(kind=action_kind, resource_id=resource_id, payload={key: str(value)})

    @property
    def external_id(self) -> str:
        return self.payload["externalId"]

    @property
    def revision(self) -> str:
        return self.payload["revision"]


@dataclass(frozen=True)
class AppResource:
    """Read-only view of an application owned by the resource store."""

    id: str
    project_id: str
    install_namespace: str
    name: str
    external_id: Optional[str] = None

    @property
    def cluster_id(self) -> str:
        return self.project_id.split(":")[0]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AppResource":
        return cls(
            id=data["id"],
            project_id=data.get("projectId", ""),
            install_namespace=data.get("targetNamespace") or data.get("installNamespace") or "",
            name=data["name"],
            external_id=data.get("externalId"),
        )


@dataclass(frozen=True)
class Cluster:
    id: str
    name: str = ""


@dataclass(frozen=True)
class ClusterCredentialBundle:
    """Kubeconfig content generated for a single action."""

    cluster_id: str
    raw_config: Dict[str, Any]


@dataclass(frozen=True)
class ChartBundle:
    version_id: str
    files: Mapping[str, str]
