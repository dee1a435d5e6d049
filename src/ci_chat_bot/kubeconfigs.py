"""Build cluster discovery: kubeconfig filename matching, bundle construction, and directory scanning."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TypeVar

import structlog

from ci_chat_bot.clients.k8s_core import K8sCoreClient
from ci_chat_bot.clients.openshift_image import ImageClient
from ci_chat_bot.clients.openshift_project import ProjectClient
from ci_chat_bot.config import ConnectionConfig, parse_kubeconfig, resolve_connection
from ci_chat_bot.errors import ClientConstructionError, ClientKind, ClusterScanError

log = structlog.get_logger()

KUBECONFIG_SUFFIX = ".kubeconfig"

_T = TypeVar("_T")


@dataclass(frozen=True)
class BuildClusterClients:
    """All clients for one build cluster, built from a single kubeconfig."""

    name: str
    kubeconfig_path: str
    connection: ConnectionConfig
    core_client: K8sCoreClient
    project_client: ProjectClient
    image_client: ImageClient


BuildClusterMap = Mapping[str, BuildClusterClients]


def match_kubeconfig_name(filename: str) -> tuple[str, bool]:
    """Extract the cluster name from a ``<name>.kubeconfig`` filename.

    Returns ``(name, True)`` on a match and ``("", False)`` otherwise.
    """
    if not filename.endswith(KUBECONFIG_SUFFIX):
        return "", False
    name = filename[: -len(KUBECONFIG_SUFFIX)]
    if not name:
        return "", False
    return name, True


def _construct(
    cluster: str,
    kind: ClientKind,
    factory: Callable[[str, ConnectionConfig], _T],
    connection: ConnectionConfig,
) -> _T:
    try:
        return factory(cluster, connection)
    except Exception as exc:
        raise ClientConstructionError(cluster, kind, str(exc)) from exc


def build_cluster_clients(name: str, path: str, raw: bytes) -> BuildClusterClients:
    """Parse one kubeconfig and construct the core, project, and image clients for it.

    Raises:
        KubeconfigParseError: If ``raw`` is not a YAML mapping.
        KubeconfigResolveError: If no valid current context/cluster is present.
        ClientConstructionError: If any of the three clients fails to construct.
    """
    document = parse_kubeconfig(raw, name, path)
    connection = resolve_connection(document, name, path)

    return BuildClusterClients(
        name=name,
        kubeconfig_path=path,
        connection=connection,
        core_client=_construct(name, "core", K8sCoreClient, connection),
        project_client=_construct(name, "project", ProjectClient, connection),
        image_client=_construct(name, "image", ImageClient, connection),
    )


def read_build_cluster_kubeconfigs(location: str | Path) -> BuildClusterMap:
    """Scan ``location`` for ``<name>.kubeconfig`` files and build a client bundle for each.

    The scan is all-or-nothing: any unreadable directory or file, or any
    bundle that fails to build, aborts it and no map is returned. An empty
    directory yields an empty map. Subdirectories and files that do not
    match the naming pattern are ignored.

    Returns:
        A read-only mapping of cluster name to BuildClusterClients.

    Raises:
        BuildClusterError: On any failure; see the subclasses in ``ci_chat_bot.errors``.
    """
    location = Path(location)
    try:
        entries = sorted(location.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise ClusterScanError(str(location), str(exc)) from exc

    clusters: dict[str, BuildClusterClients] = {}
    for entry in entries:
        if entry.is_dir():
            continue
        name, matched = match_kubeconfig_name(entry.name)
        if not matched:
            continue

        if name in clusters:
            detail = f"cluster {name!r} is already defined by {clusters[name].kubeconfig_path}"
            raise ClusterScanError(str(entry), detail)

        try:
            raw = entry.read_bytes()
        except OSError as exc:
            raise ClusterScanError(str(entry), str(exc)) from exc

        clusters[name] = build_cluster_clients(name, str(entry), raw)
        log.info("build_cluster_loaded", cluster=name, host=clusters[name].connection.host)

    log.info("build_clusters_discovered", location=str(location), clusters=sorted(clusters))
    return MappingProxyType(clusters)
