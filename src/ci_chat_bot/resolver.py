"""ci-operator configuration lookup, served by a config resolver endpoint or a local checkout."""

from __future__ import annotations

import asyncio
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlparse

import structlog
import yaml

from ci_chat_bot.errors import ConfigResolverError, InvalidOptionError

log = structlog.get_logger()


class URLConfigResolver:
    """Resolve ci-operator configuration by org, repo, branch, and variant.

    ``http(s)://`` URLs are queried with the lookup as query parameters.
    ``file://`` URLs point either at a single configuration file or at a
    directory laid out as ``<org>/<repo>/<org>-<repo>-<branch>[__<variant>].yaml``.
    """

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https", "file"}:
            msg = f"--config-resolver is not a valid URL: {url!r}"
            raise InvalidOptionError(msg)
        self._url = url
        self._parsed = parsed
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    async def resolve(self, org: str, repo: str, branch: str, variant: str = "") -> dict[str, Any]:
        """Return the ci-operator configuration for one branch of a repository."""
        if self._parsed.scheme == "file":
            return await asyncio.to_thread(self._resolve_file, org, repo, branch, variant)
        return await asyncio.to_thread(self._resolve_http, org, repo, branch, variant)

    def _resolve_http(self, org: str, repo: str, branch: str, variant: str) -> dict[str, Any]:
        params = {"org": org, "repo": repo, "branch": branch}
        if variant:
            params["variant"] = variant
        url = f"{self._url}?{urlencode(params)}"
        try:
            with urllib.request.urlopen(url, timeout=self._timeout) as resp:  # noqa: S310
                body = resp.read()
        except urllib.error.HTTPError as exc:
            log.error("config_resolver_http_error", org=org, repo=repo, branch=branch, status=exc.code)
            msg = f"config resolver returned {exc.code} for {org}/{repo}@{branch}"
            raise ConfigResolverError(msg) from exc
        except (urllib.error.URLError, OSError) as exc:
            log.error("config_resolver_unreachable", url=self._url, error=str(exc))
            msg = f"config resolver {self._url} is unreachable: {exc}"
            raise ConfigResolverError(msg) from exc
        return self._decode(body, f"{org}/{repo}@{branch}")

    def _resolve_file(self, org: str, repo: str, branch: str, variant: str) -> dict[str, Any]:
        root = Path(self._parsed.path)
        if root.is_dir():
            filename = f"{org}-{repo}-{branch}"
            if variant:
                filename += f"__{variant}"
            path = root / org / repo / f"{filename}.yaml"
        else:
            path = root
        try:
            body = path.read_bytes()
        except OSError as exc:
            msg = f"no ci-operator configuration for {org}/{repo}@{branch} at {path}: {exc}"
            raise ConfigResolverError(msg) from exc
        return self._decode(body, str(path))

    @staticmethod
    def _decode(body: bytes, source: str) -> dict[str, Any]:
        try:
            config = yaml.safe_load(body)
        except yaml.YAMLError as exc:
            msg = f"malformed ci-operator configuration from {source}: {exc}"
            raise ConfigResolverError(msg) from exc
        if not isinstance(config, dict):
            msg = f"ci-operator configuration from {source} must be a mapping"
            raise ConfigResolverError(msg)
        return config
