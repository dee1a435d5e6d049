"""Error taxonomy for bootstrap, cluster discovery, and the bot loop."""

from __future__ import annotations

from typing import Literal

ClientKind = Literal["core", "project", "image"]


class BootstrapError(Exception):
    """Fatal startup error. The process exits before serving begins."""


class InvalidOptionError(BootstrapError):
    """A command-line option or environment value is unusable."""


class MissingBotTokenError(BootstrapError):
    """The bot authentication token is not set."""


class BuildClusterError(BootstrapError):
    """Base class for every failure while scanning build cluster kubeconfigs."""


class ClusterScanError(BuildClusterError):
    """The kubeconfig directory or one of its files could not be read."""

    def __init__(self, location: str, detail: str) -> None:
        self.location = location
        super().__init__(f"unable to access {location!r}: {detail}")


class KubeconfigParseError(BuildClusterError):
    """A kubeconfig file is not a well-formed YAML mapping."""

    def __init__(self, cluster: str, path: str, detail: str) -> None:
        self.cluster = cluster
        self.path = path
        super().__init__(f"could not parse kubeconfig {path!r} for cluster {cluster!r}: {detail}")


class KubeconfigResolveError(BuildClusterError):
    """A kubeconfig parsed but has no usable current context, cluster, or user."""

    def __init__(self, cluster: str, path: str, detail: str) -> None:
        self.cluster = cluster
        self.path = path
        super().__init__(f"could not resolve cluster configuration from {path!r} for {cluster!r}: {detail}")


class ClientConstructionError(BuildClusterError):
    """One of the typed clients of a build cluster bundle failed to construct."""

    def __init__(self, cluster: str, client: ClientKind, detail: str) -> None:
        self.cluster = cluster
        self.client = client
        super().__init__(f"unable to create {client} client for cluster {cluster!r}: {detail}")


class ReleaseClusterError(BootstrapError):
    """The release cluster connection or its image client could not be set up."""


class ManagerStartError(BootstrapError):
    """The job manager failed to load its initial configuration."""


class WatchSetupError(Exception):
    """The filesystem watch facility could not be created. Non-fatal."""


class ConfigResolverError(RuntimeError):
    """A ci-operator configuration lookup failed."""


class BotError(Exception):
    """Error raised out of the chat bot, classified where it originates."""

    retriable: bool = False


class RetriableBotError(BotError):
    """The bot loop should pause and start the bot again."""

    retriable = True


class FatalBotError(BotError):
    """The bot cannot recover; the process exits with this error."""

    retriable = False


def is_retriable(exc: BaseException) -> bool:
    """Return True if the bot loop should retry after ``exc``.

    Only errors classified as retriable at their origin are retried.
    """
    return isinstance(exc, BotError) and exc.retriable
