"""The AppScaler custom resource: its API group, its types and their dict form."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with one of its versions."""

    group: str
    version: str

    def api_version(self) -> str:
        """Return the ``apiVersion`` string used on the wire."""
        return f"{self.group}/{self.version}" if self.group else self.version


GROUP_VERSION = GroupVersion(group="api.operator.wissam.com", version="v1alpha1")
APPSCALER_KIND = "AppScaler"
APPSCALER_LIST_KIND = "AppScalerList"


class ScalerStatus(str, enum.Enum):
    """Outcome recorded in an AppScaler's status."""

    SUCCESS = "Success"
    FAILED = "Failed"


def _object(data: Any, kind: str) -> dict[str, Any]:
    """Return ``data`` (or an empty dict), checking its apiVersion and kind when present."""
    data = data or {}
    for key, expected in (("apiVersion", GROUP_VERSION.api_version()), ("kind", kind)):
        if data.get(key, expected) != expected:
            raise ValueError(f"unexpected {key} {data[key]!r}, expected {expected!r}")
    return data


@dataclass(frozen=True)
class NamespacedName:
    """A name qualified by its namespace."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "namespace": self.namespace}

    @classmethod
    def from_dict(cls, data: Any) -> NamespacedName:
        data = data or {}
        return cls(name=data.get("name") or "", namespace=data.get("namespace") or "")


@dataclass
class AppScalerSpec:
    """Desired state: a replica count applied to a set of deployments."""

    replicas: int = 0
    deployments: list[NamespacedName] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.replicas, bool) or not isinstance(self.replicas, int):
            raise ValueError(f"replicas must be an integer, got {self.replicas!r}")
        if not -(2**31) <= self.replicas < 2**31:
            raise ValueError(f"replicas {self.replicas} does not fit in 32 bits")

    def to_dict(self) -> dict[str, Any]:
        return {"replicas": self.replicas, "deployments": [d.to_dict() for d in self.deployments]}

    @classmethod
    def from_dict(cls, data: Any) -> AppScalerSpec:
        data = data or {}
        replicas = data.get("replicas")
        return cls(
            replicas=0 if replicas is None else replicas,
            deployments=[NamespacedName.from_dict(d) for d in data.get("deployments") or []],
        )


@dataclass
class AppScalerStatus:
    """Observed state: the outcome of the last scaling attempt, if any."""

    status: ScalerStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {} if self.status is None else {"status": ScalerStatus(self.status).value}

    @classmethod
    def from_dict(cls, data: Any) -> AppScalerStatus:
        value = (data or {}).get("status")
        if value in (None, ""):
            return cls()
        try:
            return cls(status=ScalerStatus(value))
        except ValueError:
            raise ValueError(f"unknown status {value!r}") from None


@dataclass
class AppScaler:
    """An AppScaler resource."""

    name: str = ""
    namespace: str = ""
    spec: AppScalerSpec = field(default_factory=AppScalerSpec)
    status: AppScalerStatus = field(default_factory=AppScalerStatus)

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(name=self.name, namespace=self.namespace)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": GROUP_VERSION.api_version(),
            "kind": APPSCALER_KIND,
            "metadata": {k: v for k, v in self.key.to_dict().items() if v},
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> AppScaler:
        data = _object(data, APPSCALER_KIND)
        key = NamespacedName.from_dict(data.get("metadata"))
        return cls(
            name=key.name,
            namespace=key.namespace,
            spec=AppScalerSpec.from_dict(data.get("spec")),
            status=AppScalerStatus.from_dict(data.get("status")),
        )


@dataclass
class AppScalerList:
    """A list of AppScaler resources."""

    items: list[AppScaler] = field(default_factory=list)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": GROUP_VERSION.api_version(),
            "kind": APPSCALER_LIST_KIND,
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Any) -> AppScalerList:
        items = _object(data, APPSCALER_LIST_KIND).get("items") or []
        return cls(items=[AppScaler.from_dict(i) for i in items])