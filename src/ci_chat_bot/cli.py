"""ci-chat-bot command-line entry point."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog
from pydantic import ValidationError

from ci_chat_bot import __version__
from ci_chat_bot.bootstrap import Collaborators, bootstrap
from ci_chat_bot.collaborators import ProwConfigAgent, load_factory
from ci_chat_bot.config import (
    DEFAULT_BUILD_CLUSTER_KUBECONFIGS_LOCATION,
    DEFAULT_CONFIG_RESOLVER,
    DEFAULT_GITHUB_ENDPOINT,
    DEFAULT_PROWJOB_NAMESPACE,
)
from ci_chat_bot.errors import BootstrapError, InvalidOptionError
from ci_chat_bot.models import BotOptions, scrub_sensitive_values

# Configure structlog for JSON output to stderr
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

log = structlog.get_logger()

EXIT_FATAL = 1


def _build_collaborators(options: BotOptions) -> Collaborators:
    if not options.job_manager_factory:
        msg = "--job-manager-factory (or JOB_MANAGER_FACTORY) must be set"
        raise InvalidOptionError(msg)
    if not options.bot_factory:
        msg = "--bot-factory (or BOT_FACTORY) must be set"
        raise InvalidOptionError(msg)
    return Collaborators(
        config_agent=ProwConfigAgent(options.prow_config, options.job_config),
        job_manager_factory=load_factory(options.job_manager_factory, "--job-manager-factory"),
        bot_factory=load_factory(options.bot_factory, "--bot-factory"),
    )


@click.command()
@click.version_option(version=__version__)
@click.option(
    "--config-resolver",
    envvar="CONFIG_RESOLVER",
    default=DEFAULT_CONFIG_RESOLVER,
    show_default=True,
    help="URL of a config resolver for ci-operator config, or file://<abs_path> to a local config checkout.",
)
@click.option(
    "--github-endpoint",
    envvar="GITHUB_ENDPOINT",
    default=DEFAULT_GITHUB_ENDPOINT,
    show_default=True,
    help="An optional proxy for connecting to GitHub.",
)
@click.option(
    "--force-pr-owner",
    envvar="FORCE_PR_OWNER",
    default="",
    help="Make the supplied user the owner of all PRs for access control purposes.",
)
@click.option(
    "--build-cluster-kubeconfigs-location",
    envvar="BUILD_CLUSTER_KUBECONFIGS_LOCATION",
    default=DEFAULT_BUILD_CLUSTER_KUBECONFIGS_LOCATION,
    show_default=True,
    type=click.Path(path_type=Path),
    help="Directory holding one <cluster>.kubeconfig per build cluster.",
)
@click.option(
    "--release-cluster-kubeconfig",
    envvar="RELEASE_CLUSTER_KUBECONFIG",
    default=None,
    type=click.Path(path_type=Path),
    help="Kubeconfig for the cluster housing the release imagestreams. Defaults to the ambient credential.",
)
@click.option("--prow-config", envvar="PROW_CONFIG", default=None, type=click.Path(path_type=Path))
@click.option("--job-config", envvar="JOB_CONFIG", default=None, type=click.Path(path_type=Path))
@click.option("--prowjob-namespace", envvar="PROWJOB_NAMESPACE", default=DEFAULT_PROWJOB_NAMESPACE, show_default=True)
@click.option("--job-manager-factory", envvar="JOB_MANAGER_FACTORY", default=None, help="module:callable")
@click.option("--bot-factory", envvar="BOT_FACTORY", default=None, help="module:callable")
def cli(**kwargs: object) -> None:
    """Run the CI chat bot against every build cluster found in the kubeconfig directory."""
    try:
        try:
            options = BotOptions(**kwargs)
        except ValidationError as exc:
            raise InvalidOptionError(str(exc)) from exc
        collaborators = _build_collaborators(options)
        asyncio.run(bootstrap(options, collaborators))
    except BootstrapError as exc:
        log.error("startup_failed", error=scrub_sensitive_values(str(exc)), error_type=type(exc).__name__)
        sys.exit(EXIT_FATAL)
    except Exception as exc:
        log.error("bot_exited", error=scrub_sensitive_values(str(exc)), error_type=type(exc).__name__)
        sys.exit(EXIT_FATAL)


def main() -> None:
    cli()
