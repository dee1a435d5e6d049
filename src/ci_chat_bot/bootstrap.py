"""Startup sequencing: cluster discovery, kubeconfig watches, job manager, and the bot retry loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from watchdog.observers import Observer

from ci_chat_bot.clients.openshift_image import ImageClient
from ci_chat_bot.clients.prowjobs import ProwJobClient
from ci_chat_bot.collaborators import Bot, BotFactory, ConfigAgent, JobManager, JobManagerFactory
from ci_chat_bot.config import ConnectionConfig, get_bot_token, load_ambient_connection, load_connection_from_file
from ci_chat_bot.errors import (
    BootstrapError,
    BuildClusterError,
    ManagerStartError,
    ReleaseClusterError,
    WatchSetupError,
    is_retriable,
)
from ci_chat_bot.kubeconfigs import BuildClusterMap, read_build_cluster_kubeconfigs
from ci_chat_bot.models import BotOptions, scrub_sensitive_values
from ci_chat_bot.resolver import URLConfigResolver
from ci_chat_bot.watch import KubeconfigWatcher, RestartRequest, restart_process, setup_kubeconfig_watches

log = structlog.get_logger()

RETRY_INTERVAL_SECONDS = 5.0
RELEASE_CLUSTER_NAME = "release"


@dataclass(frozen=True)
class Collaborators:
    """Factories for the collaborators whose internals live outside this package."""

    config_agent: ConfigAgent
    job_manager_factory: JobManagerFactory
    bot_factory: BotFactory


@dataclass(frozen=True)
class Startup:
    """Everything built before the bot loop is entered."""

    build_clusters: BuildClusterMap
    watcher: KubeconfigWatcher | None
    manager: JobManager
    bot: Bot


def _load_release_clients(options: BotOptions) -> tuple[ConnectionConfig, ImageClient]:
    """Resolve the prow job connection and the release image client.

    The release cluster defaults to the process's own ambient credential.
    """
    try:
        ambient = load_ambient_connection()
    except BootstrapError as exc:
        msg = f"unable to load the ambient cluster credential: {exc}"
        raise ReleaseClusterError(msg) from exc

    release = ambient
    if options.release_cluster_kubeconfig is not None:
        try:
            release = load_connection_from_file(options.release_cluster_kubeconfig, RELEASE_CLUSTER_NAME)
        except BuildClusterError as exc:
            msg = f"unable to load release cluster kubeconfig: {exc}"
            raise ReleaseClusterError(msg) from exc

    try:
        image_client = ImageClient(RELEASE_CLUSTER_NAME, release)
    except Exception as exc:
        msg = f"unable to create image client: {exc}"
        raise ReleaseClusterError(msg) from exc
    log.info("release_cluster_resolved", host=release.host, context=release.context)
    return ambient, image_client


def prepare(
    options: BotOptions,
    collaborators: Collaborators,
    *,
    trigger_restart: Callable[[RestartRequest], Any] = restart_process,
    observer_factory: Callable[[], Any] = Observer,
) -> Startup:
    """Run every startup step up to, but not including, the bot loop.

    Raises:
        BootstrapError: On any fatal startup condition.
    """
    token = get_bot_token()

    build_clusters = read_build_cluster_kubeconfigs(options.build_cluster_kubeconfigs_location)

    watcher: KubeconfigWatcher | None = None
    try:
        watcher = setup_kubeconfig_watches(
            build_clusters,
            trigger_restart=trigger_restart,
            observer_factory=observer_factory,
        )
    except WatchSetupError as exc:
        log.warning("kubeconfig_watch_setup_failed", error=str(exc))

    resolver = URLConfigResolver(options.config_resolver)
    prow_connection, image_client = _load_release_clients(options)

    try:
        prow_client = ProwJobClient(prow_connection, namespace=options.prowjob_namespace)
    except Exception as exc:
        msg = f"unable to create prow client: {exc}"
        raise BootstrapError(msg) from exc

    manager = collaborators.job_manager_factory(
        config_agent=collaborators.config_agent,
        resolver=resolver,
        prow_client=prow_client,
        image_client=image_client,
        build_clusters=build_clusters,
        github_endpoint=options.github_endpoint,
        force_pr_owner=options.force_pr_owner,
    )
    try:
        manager.start()
    except Exception as exc:
        msg = f"unable to load initial configuration: {exc}"
        raise ManagerStartError(msg) from exc
    log.info("job_manager_started", build_clusters=sorted(build_clusters))

    return Startup(
        build_clusters=build_clusters,
        watcher=watcher,
        manager=manager,
        bot=collaborators.bot_factory(token),
    )


async def run_bot_forever(
    bot: Bot,
    manager: JobManager,
    *,
    interval: float = RETRY_INTERVAL_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    """Keep the bot running; retry after a fixed pause until it fails non-retriably.

    A clean return is retried as well since the bot is meant to run forever.

    Raises:
        Exception: The first error that is not classified as retriable.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            await bot.start(manager)
        except Exception as exc:
            if not is_retriable(exc):
                log.error("bot_failed", attempt=attempt, error=scrub_sensitive_values(str(exc)))
                raise
            log.warning("bot_retrying", attempt=attempt, error=scrub_sensitive_values(str(exc)), retry_in=interval)
        else:
            log.warning("bot_returned", attempt=attempt, retry_in=interval)
        await sleep(interval)


async def bootstrap(
    options: BotOptions,
    collaborators: Collaborators,
    *,
    trigger_restart: Callable[[RestartRequest], Any] = restart_process,
    observer_factory: Callable[[], Any] = Observer,
    interval: float = RETRY_INTERVAL_SECONDS,
) -> None:
    """Start everything and run the bot loop. Only returns by raising."""
    startup = prepare(options, collaborators, trigger_restart=trigger_restart, observer_factory=observer_factory)
    await run_bot_forever(startup.bot, startup.manager, interval=interval)
