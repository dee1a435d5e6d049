"""Prow job queue client (prow.k8s.io/v1 ProwJobs)."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client

from ci_chat_bot.clients import load_k8s_api_client
from ci_chat_bot.config import DEFAULT_PROWJOB_NAMESPACE, ConnectionConfig

log = structlog.get_logger()

PROW_GROUP = "prow.k8s.io"
PROW_VERSION = "v1"
PROW_PLURAL = "prowjobs"


class ProwJobClient:
    """Create and inspect ProwJobs in the namespace prow watches."""

    def __init__(self, connection: ConnectionConfig, namespace: str = DEFAULT_PROWJOB_NAMESPACE) -> None:
        self._namespace = namespace
        self._api_client = load_k8s_api_client(connection)
        self._api: k8s_client.CustomObjectsApi | None = None
        self._lock = threading.Lock()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _get_api(self) -> k8s_client.CustomObjectsApi:
        with self._lock:
            if self._api is None:
                self._api = k8s_client.CustomObjectsApi(self._api_client)
            return self._api

    async def create_prow_job(self, job: dict[str, Any]) -> dict[str, Any]:
        """Submit a ProwJob. ``apiVersion`` and ``kind`` are filled in when missing."""
        body = {"apiVersion": f"{PROW_GROUP}/{PROW_VERSION}", "kind": "ProwJob", **job}
        api = self._get_api()
        try:
            created = await asyncio.to_thread(
                api.create_namespaced_custom_object,
                PROW_GROUP,
                PROW_VERSION,
                self._namespace,
                PROW_PLURAL,
                body,
            )
        except Exception:
            log.error("failed_to_create_prow_job", namespace=self._namespace)
            raise
        log.info("prow_job_created", namespace=self._namespace, name=created.get("metadata", {}).get("name"))
        return created

    async def get_prow_job(self, name: str) -> dict[str, Any]:
        api = self._get_api()
        try:
            return await asyncio.to_thread(
                api.get_namespaced_custom_object,
                PROW_GROUP,
                PROW_VERSION,
                self._namespace,
                PROW_PLURAL,
                name,
            )
        except Exception:
            log.error("failed_to_get_prow_job", namespace=self._namespace, name=name)
            raise

    async def list_prow_jobs(self, label_selector: str | None = None) -> list[dict[str, Any]]:
        """List ProwJobs, optionally filtered by label selector."""
        api = self._get_api()
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            job_list = await asyncio.to_thread(
                api.list_namespaced_custom_object,
                PROW_GROUP,
                PROW_VERSION,
                self._namespace,
                PROW_PLURAL,
                **kwargs,
            )
        except Exception:
            log.error("failed_to_list_prow_jobs", namespace=self._namespace)
            raise
        return list(job_list.get("items", []))
