"""Interfaces of the long-lived collaborators the bootstrap wires together."""

from __future__ import annotations

import pkgutil
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog
import yaml

from ci_chat_bot.clients.openshift_image import ImageClient
from ci_chat_bot.clients.prowjobs import ProwJobClient
from ci_chat_bot.errors import InvalidOptionError
from ci_chat_bot.kubeconfigs import BuildClusterMap
from ci_chat_bot.resolver import URLConfigResolver

log = structlog.get_logger()


@runtime_checkable
class ConfigAgent(Protocol):
    """Source of the prow and job configuration."""

    def load(self) -> dict[str, Any]: ...


@runtime_checkable
class JobManager(Protocol):
    """Schedules and tracks jobs on the build clusters."""

    def start(self) -> None:
        """Load the initial configuration. Raises if it cannot be loaded."""
        ...


@runtime_checkable
class Bot(Protocol):
    """Chat front end bound to a job manager. Expected to run forever."""

    async def start(self, manager: JobManager) -> None: ...


class JobManagerFactory(Protocol):
    def __call__(
        self,
        *,
        config_agent: ConfigAgent,
        resolver: URLConfigResolver,
        prow_client: ProwJobClient,
        image_client: ImageClient,
        build_clusters: BuildClusterMap,
        github_endpoint: str,
        force_pr_owner: str,
    ) -> JobManager: ...


BotFactory = Callable[[str], Bot]


class ProwConfigAgent:
    """Loads the prow config and the job config from local YAML files."""

    def __init__(self, config_path: Path | None, job_config_path: Path | None) -> None:
        self._config_path = config_path
        self._job_config_path = job_config_path

    def load(self) -> dict[str, Any]:
        """Return ``{"config": ..., "jobs": ...}``; unset paths load as empty mappings.

        Raises:
            FileNotFoundError: If a configured path does not exist.
            ValueError: If a file is not a YAML mapping.
        """
        return {
            "config": self._load_one(self._config_path),
            "jobs": self._load_one(self._job_config_path),
        }

    @staticmethod
    def _load_one(path: Path | None) -> dict[str, Any]:
        if path is None:
            return {}
        if not path.exists():
            msg = f"Configuration file not found: {path}"
            raise FileNotFoundError(msg)
        if path.is_dir():
            merged: dict[str, Any] = {}
            for child in sorted(path.rglob("*.yaml")):
                merged.update(ProwConfigAgent._load_one(child))
            return merged
        raw = yaml.safe_load(path.read_text())
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            msg = f"Configuration file {path} must contain a mapping, got {type(raw).__name__}."
            raise ValueError(msg)
        return raw


def load_factory(path: str, option: str) -> Callable[..., Any]:
    """Import a ``module:callable`` factory named by a command-line option."""
    try:
        factory = pkgutil.resolve_name(path)
    except (ImportError, AttributeError, ValueError) as exc:
        msg = f"{option}: cannot import {path!r}: {exc}"
        raise InvalidOptionError(msg) from exc
    if not callable(factory):
        msg = f"{option}: {path!r} is not callable"
        raise InvalidOptionError(msg)
    log.debug("factory_loaded", option=option, path=path)
    return factory
