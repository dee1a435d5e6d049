"""Shared test fixtures for all test modules."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import yaml

from ci_chat_bot.config import ConnectionConfig


def _make_kubeconfig(
    cluster: str = "east",
    server: str = "https://api.east.example.com:6443",
    token: str = "sha256~test-token",
    current_context: str | None = None,
) -> str:
    document = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": cluster,
                "cluster": {"server": server, "insecure-skip-tls-verify": True},
            }
        ],
        "users": [{"name": f"{cluster}-bot", "user": {"token": token}}],
        "contexts": [
            {
                "name": cluster,
                "context": {"cluster": cluster, "user": f"{cluster}-bot", "namespace": "ci"},
            }
        ],
        "current-context": current_context if current_context is not None else cluster,
    }
    return yaml.safe_dump(document)


@pytest.fixture
def make_kubeconfig() -> Callable[..., str]:
    """Factory for a single-context, token-authenticated kubeconfig document."""
    return _make_kubeconfig


@pytest.fixture
def kubeconfig_dir(tmp_path: Path) -> Path:
    """An empty directory standing in for /var/build-cluster-kubeconfigs."""
    directory = tmp_path / "build-cluster-kubeconfigs"
    directory.mkdir()
    return directory


@pytest.fixture
def write_kubeconfig(kubeconfig_dir: Path) -> Callable[..., Path]:
    """Factory that writes ``<cluster>.kubeconfig`` into the kubeconfig directory."""

    def _write(cluster: str, **kwargs: str) -> Path:
        path = kubeconfig_dir / f"{cluster}.kubeconfig"
        path.write_text(_make_kubeconfig(cluster=cluster, **kwargs))
        return path

    return _write


@pytest.fixture
def connection() -> ConnectionConfig:
    return ConnectionConfig(
        host="https://api.east.example.com:6443",
        context="east",
        bearer_token="Bearer sha256~test-token",
        verify_ssl=False,
    )

