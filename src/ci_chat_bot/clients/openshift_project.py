"""OpenShift project API wrapper (project.openshift.io/v1)."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client

from ci_chat_bot.clients import load_k8s_api_client
from ci_chat_bot.config import ConnectionConfig

log = structlog.get_logger()

PROJECT_GROUP = "project.openshift.io"
PROJECT_VERSION = "v1"


class ProjectClient:
    """Namespace lifecycle through OpenShift projects and project requests."""

    def __init__(self, cluster_name: str, connection: ConnectionConfig) -> None:
        self._cluster_name = cluster_name
        self._api_client = load_k8s_api_client(connection)
        self._api: k8s_client.CustomObjectsApi | None = None
        self._lock = threading.Lock()

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    def _get_api(self) -> k8s_client.CustomObjectsApi:
        with self._lock:
            if self._api is None:
                self._api = k8s_client.CustomObjectsApi(self._api_client)
            return self._api

    async def get_project(self, name: str) -> dict[str, Any]:
        """Return name, phase, and annotations of a project."""
        api = self._get_api()
        try:
            project = await asyncio.to_thread(
                api.get_cluster_custom_object,
                PROJECT_GROUP,
                PROJECT_VERSION,
                "projects",
                name,
            )
        except Exception:
            log.error("failed_to_get_project", cluster=self._cluster_name, project=name)
            raise

        metadata = project.get("metadata", {})
        return {
            "name": metadata.get("name", name),
            "phase": project.get("status", {}).get("phase"),
            "annotations": metadata.get("annotations") or {},
        }

    async def create_project(self, name: str, display_name: str = "", description: str = "") -> dict[str, Any]:
        """Request a new project. The server creates the namespace and its default role bindings."""
        body = {
            "apiVersion": f"{PROJECT_GROUP}/{PROJECT_VERSION}",
            "kind": "ProjectRequest",
            "metadata": {"name": name},
            "displayName": display_name,
            "description": description,
        }
        api = self._get_api()
        try:
            created = await asyncio.to_thread(
                api.create_cluster_custom_object,
                PROJECT_GROUP,
                PROJECT_VERSION,
                "projectrequests",
                body,
            )
        except Exception:
            log.error("failed_to_create_project", cluster=self._cluster_name, project=name)
            raise
        log.info("project_created", cluster=self._cluster_name, project=name)
        return created

    async def delete_project(self, name: str) -> None:
        api = self._get_api()
        try:
            await asyncio.to_thread(
                api.delete_cluster_custom_object,
                PROJECT_GROUP,
                PROJECT_VERSION,
                "projects",
                name,
            )
        except Exception:
            log.error("failed_to_delete_project", cluster=self._cluster_name, project=name)
            raise
        log.info("project_deleted", cluster=self._cluster_name, project=name)
