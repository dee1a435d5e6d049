"""Kubernetes Core API wrapper: namespaces, pods, and pod logs on a build cluster."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client

from ci_chat_bot.clients import load_k8s_api_client
from ci_chat_bot.config import ConnectionConfig

log = structlog.get_logger()


class K8sCoreClient:
    """Wrapper around the Kubernetes Core V1 API for one cluster."""

    def __init__(self, cluster_name: str, connection: ConnectionConfig) -> None:
        self._cluster_name = cluster_name
        self._api_client = load_k8s_api_client(connection)
        self._api: k8s_client.CoreV1Api | None = None
        self._lock = threading.Lock()

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    def _get_api(self) -> k8s_client.CoreV1Api:
        with self._lock:
            if self._api is None:
                self._api = k8s_client.CoreV1Api(self._api_client)
            return self._api

    async def get_namespace(self, name: str) -> dict[str, Any]:
        """Return name, phase, and labels of a namespace."""
        api = self._get_api()
        try:
            ns = await asyncio.to_thread(api.read_namespace, name)
        except Exception:
            log.error("failed_to_get_namespace", cluster=self._cluster_name, namespace=name)
            raise

        return {
            "name": ns.metadata.name,
            "phase": ns.status.phase if ns.status else None,
            "labels": ns.metadata.labels or {},
        }

    async def list_pods(self, namespace: str, label_selector: str | None = None) -> list[dict[str, Any]]:
        """List pods in a namespace with phase and per-container readiness.

        Args:
            namespace: Namespace to list.
            label_selector: Optional Kubernetes label selector.
        """
        api = self._get_api()
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            pod_list = await asyncio.to_thread(api.list_namespaced_pod, namespace, **kwargs)
        except Exception:
            log.error("failed_to_list_pods", cluster=self._cluster_name, namespace=namespace)
            raise

        results: list[dict[str, Any]] = []
        for pod in pod_list.items:
            results.append(
                {
                    "name": pod.metadata.name,
                    "namespace": pod.metadata.namespace,
                    "phase": pod.status.phase,
                    "containers": [
                        {"name": cs.name, "ready": cs.ready, "restart_count": cs.restart_count}
                        for cs in (pod.status.container_statuses or [])
                    ],
                }
            )
        return results

    async def get_pod_logs(self, name: str, namespace: str, container: str | None = None) -> str:
        """Return the current log of a pod, optionally for a single container."""
        api = self._get_api()
        kwargs: dict[str, Any] = {}
        if container:
            kwargs["container"] = container
        try:
            return await asyncio.to_thread(api.read_namespaced_pod_log, name, namespace, **kwargs)
        except Exception:
            log.error("failed_to_read_pod_log", cluster=self._cluster_name, namespace=namespace, pod=name)
            raise
