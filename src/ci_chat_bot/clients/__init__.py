"""Client wrappers for the core, OpenShift project, OpenShift image, and prow job APIs."""

from __future__ import annotations

from kubernetes import client as k8s_client

from ci_chat_bot.config import ConnectionConfig


def load_k8s_api_client(connection: ConnectionConfig) -> k8s_client.ApiClient:
    """Create an isolated Kubernetes API client for one resolved connection.

    The ApiClient gets its own Configuration object, so clients for different
    clusters never share auth headers or TLS settings. No request is sent.
    """
    return k8s_client.ApiClient(configuration=connection.to_client_configuration())
