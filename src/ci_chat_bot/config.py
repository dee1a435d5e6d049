"""Connection configuration, defaults, and environment variable overrides."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.config.config_exception import ConfigException
from kubernetes.config.kube_config import KubeConfigLoader

from ci_chat_bot.errors import KubeconfigParseError, KubeconfigResolveError, MissingBotTokenError

log = structlog.get_logger()

DEFAULT_CONFIG_RESOLVER = "http://config.ci.openshift.org/config"
DEFAULT_GITHUB_ENDPOINT = "https://api.github.com"
DEFAULT_BUILD_CLUSTER_KUBECONFIGS_LOCATION = "/var/build-cluster-kubeconfigs"
DEFAULT_PROWJOB_NAMESPACE = "ci"

BOT_TOKEN_ENV = "BOT_TOKEN"
AMBIENT_CONTEXT = "ambient"


@dataclass(frozen=True)
class ConnectionConfig:
    """Resolved endpoint, authentication, and TLS material for one cluster.

    Never mutated after parsing. Every client gets its own
    ``kubernetes.client.Configuration`` built from these fields.
    """

    host: str
    context: str = ""
    bearer_token: str | None = field(default=None, repr=False)
    ssl_ca_cert: str | None = None
    cert_file: str | None = None
    key_file: str | None = None
    verify_ssl: bool = True
    tls_server_name: str | None = None
    proxy: str | None = None
    refresh_api_key_hook: Callable[[Any], None] | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_client_configuration(cls, configuration: k8s_client.Configuration, context: str) -> ConnectionConfig:
        api_key = configuration.api_key or {}
        return cls(
            host=configuration.host,
            context=context,
            bearer_token=api_key.get("authorization"),
            ssl_ca_cert=configuration.ssl_ca_cert,
            cert_file=configuration.cert_file,
            key_file=configuration.key_file,
            verify_ssl=bool(configuration.verify_ssl),
            tls_server_name=getattr(configuration, "tls_server_name", None),
            proxy=configuration.proxy,
            refresh_api_key_hook=getattr(configuration, "refresh_api_key_hook", None),
        )

    def to_client_configuration(self) -> k8s_client.Configuration:
        """Build a fresh SDK configuration that no other client shares."""
        configuration = k8s_client.Configuration()
        configuration.host = self.host
        if self.bearer_token:
            configuration.api_key = {"authorization": self.bearer_token}
        configuration.ssl_ca_cert = self.ssl_ca_cert
        configuration.cert_file = self.cert_file
        configuration.key_file = self.key_file
        configuration.verify_ssl = self.verify_ssl
        if self.tls_server_name:
            configuration.tls_server_name = self.tls_server_name
        if self.proxy:
            configuration.proxy = self.proxy
        if self.refresh_api_key_hook is not None:
            configuration.refresh_api_key_hook = self.refresh_api_key_hook
        return configuration


def parse_kubeconfig(raw: bytes, cluster: str, path: str) -> dict[str, Any]:
    """Parse raw kubeconfig bytes into a generic mapping.

    Raises:
        KubeconfigParseError: If the bytes are not YAML or not a mapping.
    """
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise KubeconfigParseError(cluster, path, str(exc)) from exc

    if not isinstance(document, dict):
        kind = "empty document" if document is None else type(document).__name__
        raise KubeconfigParseError(cluster, path, f"expected a mapping, got {kind}")
    return document


def resolve_connection(document: dict[str, Any], cluster: str, path: str) -> ConnectionConfig:
    """Resolve a parsed kubeconfig into a ConnectionConfig using its current context.

    Relative certificate and key paths are resolved against the kubeconfig's directory.

    Raises:
        KubeconfigResolveError: If no valid current context, cluster, or user is present.
    """
    configuration = k8s_client.Configuration()
    try:
        loader = KubeConfigLoader(config_dict=document, config_base_path=str(Path(path).parent))
        loader.load_and_set(configuration)
    except ConfigException as exc:
        raise KubeconfigResolveError(cluster, path, str(exc)) from exc
    except (AttributeError, TypeError, KeyError, ValueError) as exc:
        # Sections of the wrong type, e.g. "contexts: nonsense".
        raise KubeconfigResolveError(cluster, path, f"malformed kubeconfig: {exc}") from exc

    context = loader.current_context["name"]
    return ConnectionConfig.from_client_configuration(configuration, context=context)


def load_connection_from_file(path: str | Path, cluster: str) -> ConnectionConfig:
    """Read, parse, and resolve a single kubeconfig file."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise KubeconfigParseError(cluster, str(path), f"unable to read file: {exc}") from exc
    document = parse_kubeconfig(raw, cluster, str(path))
    return resolve_connection(document, cluster, str(path))


def load_ambient_connection() -> ConnectionConfig:
    """Resolve the process's own cluster credential.

    Tries the in-cluster service account first, then the default kubeconfig
    (``KUBECONFIG`` or ``~/.kube/config``). Neither call touches the SDK's
    global default configuration.
    """
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        log.info("ambient_credential_loaded", source="in-cluster")
        return ConnectionConfig.from_client_configuration(configuration, context=AMBIENT_CONTEXT)
    except ConfigException:
        log.debug("in_cluster_credential_unavailable")

    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_kube_config(client_configuration=configuration)
    except (ConfigException, OSError, yaml.YAMLError) as exc:
        raise KubeconfigResolveError(AMBIENT_CONTEXT, "<default kubeconfig>", str(exc)) from exc
    log.info("ambient_credential_loaded", source="kubeconfig")
    return ConnectionConfig.from_client_configuration(configuration, context=AMBIENT_CONTEXT)


def get_bot_token() -> str:
    """Return the bot token from the environment.

    Raises:
        MissingBotTokenError: If ``BOT_TOKEN`` is unset or empty.
    """
    token = os.environ.get(BOT_TOKEN_ENV, "")
    if not token:
        msg = f"the environment variable {BOT_TOKEN_ENV} must be set"
        raise MissingBotTokenError(msg)
    return token
