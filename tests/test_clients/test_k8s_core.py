"""Tests for K8sCoreClient: namespace lookup, pod listing, pod logs, error handling."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from ci_chat_bot.clients.k8s_core import K8sCoreClient


def _make_mock_pod(
    name: str = "release-images-abc12",
    phase: str = "Running",
    ready: bool = True,
    restarts: int = 0,
) -> MagicMock:
    pod = MagicMock()
    pod.metadata.name = name
    pod.metadata.namespace = "ci-op-xyz"
    pod.status.phase = phase
    cs = MagicMock()
    cs.name = "test"
    cs.ready = ready
    cs.restart_count = restarts
    pod.status.container_statuses = [cs]
    return pod


@pytest.fixture
def client(connection) -> K8sCoreClient:
    return K8sCoreClient("east", connection)


class TestGetNamespace:
    async def test_returns_phase_and_labels(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        ns = MagicMock()
        ns.metadata.name = "ci-op-xyz"
        ns.metadata.labels = {"ci.openshift.io/ephemeral": "true"}
        ns.status.phase = "Active"
        mock_api.read_namespace.return_value = ns

        with patch.object(client, "_get_api", return_value=mock_api):
            result = await client.get_namespace("ci-op-xyz")

        mock_api.read_namespace.assert_called_once_with("ci-op-xyz")
        assert result == {"name": "ci-op-xyz", "phase": "Active", "labels": {"ci.openshift.io/ephemeral": "true"}}

    async def test_missing_labels(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        ns = MagicMock()
        ns.metadata.name = "default"
        ns.metadata.labels = None
        mock_api.read_namespace.return_value = ns

        with patch.object(client, "_get_api", return_value=mock_api):
            result = await client.get_namespace("default")

        assert result["labels"] == {}

    async def test_error_reraised(self, client: K8sCoreClient, not_found_error) -> None:
        mock_api = MagicMock()
        mock_api.read_namespace.side_effect = not_found_error

        with patch.object(client, "_get_api", return_value=mock_api), pytest.raises(Exception, match="Not Found"):
            await client.get_namespace("gone")


class TestListPods:
    async def test_returns_pod_summaries(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        mock_api.list_namespaced_pod.return_value.items = [
            _make_mock_pod(),
            _make_mock_pod(name="e2e-aws-xyz", phase="Failed", ready=False, restarts=3),
        ]

        with patch.object(client, "_get_api", return_value=mock_api):
            result = await client.list_pods("ci-op-xyz")

        mock_api.list_namespaced_pod.assert_called_once_with("ci-op-xyz")
        assert [p["name"] for p in result] == ["release-images-abc12", "e2e-aws-xyz"]
        assert result[1]["phase"] == "Failed"
        assert result[1]["containers"] == [{"name": "test", "ready": False, "restart_count": 3}]

    async def test_label_selector_forwarded(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        mock_api.list_namespaced_pod.return_value.items = []

        with patch.object(client, "_get_api", return_value=mock_api):
            await client.list_pods("ci-op-xyz", label_selector="created-by-ci=true")

        mock_api.list_namespaced_pod.assert_called_once_with("ci-op-xyz", label_selector="created-by-ci=true")

    async def test_no_container_statuses(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        pod = _make_mock_pod()
        pod.status.container_statuses = None
        mock_api.list_namespaced_pod.return_value.items = [pod]

        with patch.object(client, "_get_api", return_value=mock_api):
            result = await client.list_pods("ci-op-xyz")

        assert result[0]["containers"] == []

    async def test_error_reraised(self, client: K8sCoreClient, unavailable_error) -> None:
        mock_api = MagicMock()
        mock_api.list_namespaced_pod.side_effect = unavailable_error

        with (
            patch.object(client, "_get_api", return_value=mock_api),
            pytest.raises(Exception, match="Service Unavailable"),
        ):
            await client.list_pods("ci-op-xyz")


class TestGetPodLogs:
    async def test_returns_log_text(self, client: K8sCoreClient) -> None:
        mock_api = MagicMock()
        mock_api.read_namespaced_pod_log.return_value = "PASS\n"

        with patch.object(client, "_get_api", return_value=mock_api):
            result = await client.get_pod_logs("e2e-aws-xyz", "ci-op-xyz", container="test")

        mock_api.read_namespaced_pod_log.assert_called_once_with("e2e-aws-xyz", "ci-op-xyz", container="test")
        assert result == "PASS\n"

    async def test_error_reraised(self, client: K8sCoreClient, not_found_error) -> None:
        mock_api = MagicMock()
        mock_api.read_namespaced_pod_log.side_effect = not_found_error

        with patch.object(client, "_get_api", return_value=mock_api), pytest.raises(Exception, match="Not Found"):
            await client.get_pod_logs("gone", "ci-op-xyz")
