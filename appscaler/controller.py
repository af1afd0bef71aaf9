"""Reconciler that scales a set of deployments to an AppScaler's replica count."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from appscaler.types import AppScaler, NamespacedName, ScalerStatus

logger = logging.getLogger("appscaler.controller_scaler")

REQUEUE_AFTER = 30.0


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""


@dataclass(frozen=True)
class Request:
    """Identifies the AppScaler to reconcile."""

    name: str
    namespace: str

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(name=self.name, namespace=self.namespace)


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile; ``requeue_after`` is in seconds, 0 for none."""

    requeue: bool = False
    requeue_after: float = 0.0


@dataclass
class Deployment:
    """The parts of a deployment the reconciler reads and writes."""

    name: str
    namespace: str
    replicas: int | None = None

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(name=self.name, namespace=self.namespace)


@runtime_checkable
class KubeClient(Protocol):
    """Access to the objects the reconciler works on; lookups raise NotFoundError."""

    def get_appscaler(self, key: NamespacedName) -> AppScaler: ...

    def get_deployment(self, key: NamespacedName) -> Deployment: ...

    def update_deployment(self, deployment: Deployment) -> None: ...

    def update_status(self, scaler: AppScaler) -> None: ...

    def list_appscalers(self) -> list[AppScaler]: ...


class InMemoryClient:
    """A KubeClient that keeps its objects in memory and hands out copies."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scalers: dict[NamespacedName, AppScaler] = {}
        self._deployments: dict[NamespacedName, Deployment] = {}

    @staticmethod
    def _lookup(store: dict, key: NamespacedName, what: str):
        try:
            return store[key]
        except KeyError:
            raise NotFoundError(f"{what} {key} not found") from None

    def add_appscaler(self, scaler: AppScaler) -> None:
        with self._lock:
            self._scalers[scaler.key] = copy.deepcopy(scaler)

    def add_deployment(self, deployment: Deployment) -> None:
        with self._lock:
            self._deployments[deployment.key] = copy.deepcopy(deployment)

    def delete_appscaler(self, key: NamespacedName) -> None:
        with self._lock:
            self._lookup(self._scalers, key, "appscaler")
            del self._scalers[key]

    def get_appscaler(self, key: NamespacedName) -> AppScaler:
        with self._lock:
            return copy.deepcopy(self._lookup(self._scalers, key, "appscaler"))

    def get_deployment(self, key: NamespacedName) -> Deployment:
        with self._lock:
            return copy.deepcopy(self._lookup(self._deployments, key, "deployment"))

    def update_deployment(self, deployment: Deployment) -> None:
        with self._lock:
            self._lookup(self._deployments, deployment.key, "deployment")
            self._deployments[deployment.key] = copy.deepcopy(deployment)

    def update_status(self, scaler: AppScaler) -> None:
        with self._lock:
            stored = self._lookup(self._scalers, scaler.key, "appscaler")
            stored.status = copy.deepcopy(scaler.status)

    def list_appscalers(self) -> list[AppScaler]:
        with self._lock:
            keys = sorted(self._scalers, key=lambda k: (k.namespace, k.name))
            return [copy.deepcopy(self._scalers[k]) for k in keys]


@dataclass
class AppScalerReconciler:
    """Drives deployments toward the replica count of an AppScaler."""

    client: KubeClient

    def reconcile(self, request: Request) -> Result:
        """Scale every listed deployment and record the outcome.

        A missing or unreadable AppScaler ends the reconcile quietly; any
        failure with a deployment or the status update is raised.
        """
        logger.info("Reconciling AppScaler %s", request.key)
        try:
            scaler = self.client.get_appscaler(request.key)
        except Exception:
            return Result()

        replicas = scaler.spec.replicas
        logger.info("Replicas %d", replicas)

        for target in scaler.spec.deployments:
            deployment = self.client.get_deployment(target)
            deployment.replicas = replicas
            try:
                self.client.update_deployment(deployment)
            except Exception:
                scaler.status.status = ScalerStatus.FAILED
                raise
            scaler.status.status = ScalerStatus.SUCCESS
            self.client.update_status(scaler)

        return Result(requeue_after=REQUEUE_AFTER)