"""OpenShift image API wrapper: image streams and their tags (image.openshift.io/v1)."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client

from ci_chat_bot.clients import load_k8s_api_client
from ci_chat_bot.config import ConnectionConfig

log = structlog.get_logger()

IMAGE_GROUP = "image.openshift.io"
IMAGE_VERSION = "v1"


class ImageClient:
    """Read access to image streams on one cluster (a build cluster or the release cluster)."""

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

    async def get_image_stream(self, namespace: str, name: str) -> dict[str, Any]:
        """Return an image stream with its tags flattened to ``{tag: latest image}``.

        Tags with no history are left out.
        """
        api = self._get_api()
        try:
            stream = await asyncio.to_thread(
                api.get_namespaced_custom_object,
                IMAGE_GROUP,
                IMAGE_VERSION,
                namespace,
                "imagestreams",
                name,
            )
        except Exception:
            log.error("failed_to_get_image_stream", cluster=self._cluster_name, namespace=namespace, name=name)
            raise

        tags: dict[str, str] = {}
        for tag in stream.get("status", {}).get("tags") or []:
            items = tag.get("items") or []
            if items:
                tags[tag["tag"]] = items[0].get("image", "")
        return {
            "name": stream.get("metadata", {}).get("name", name),
            "namespace": namespace,
            "public_repository": stream.get("status", {}).get("publicDockerImageRepository"),
            "tags": tags,
        }

    async def get_image_stream_tag(self, namespace: str, stream: str, tag: str) -> dict[str, Any]:
        """Return the image reference and creation time of ``stream:tag``."""
        api = self._get_api()
        name = f"{stream}:{tag}"
        try:
            ist = await asyncio.to_thread(
                api.get_namespaced_custom_object,
                IMAGE_GROUP,
                IMAGE_VERSION,
                namespace,
                "imagestreamtags",
                name,
            )
        except Exception:
            log.error("failed_to_get_image_stream_tag", cluster=self._cluster_name, namespace=namespace, name=name)
            raise

        image = ist.get("image", {})
        return {
            "name": name,
            "namespace": namespace,
            "image": image.get("dockerImageReference"),
            "digest": image.get("metadata", {}).get("name"),
            "created": image.get("metadata", {}).get("creationTimestamp"),
        }
